"""Loading of the optional TLS certificate bundle."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter

CERTIFICATE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.bootstrap.certificates"), {}
)

CERTIFICATE_SUFFIXES = (".key", ".csr", ".crt")


class CertificateIOError(Exception):
    """Raised when a certificate file exists but cannot be read."""


@dataclass(frozen=True)
class CertificateBundle:
    """PEM text of the private key, signing request and certificate."""

    private_key: str
    certificate_signing_request: str
    certificate: str
    private_key_path: Path
    certificate_path: Path


def certificate_paths(certificate_name: str, directory: Path) -> tuple[Path, Path, Path]:
    key_path, csr_path, crt_path = (
        directory / f"{certificate_name}{suffix}" for suffix in CERTIFICATE_SUFFIXES
    )
    return key_path, csr_path, crt_path


def load_certificate_bundle(
    certificate_name: str, directory: Optional[Path] = None
) -> Optional[CertificateBundle]:
    """Read ``<name>.key``, ``<name>.csr`` and ``<name>.crt``.

    Returns ``None`` when any of the three files is missing, which disables
    HTTPS. Other read failures raise ``CertificateIOError``.
    """
    directory = Path.cwd() if directory is None else directory
    paths = certificate_paths(certificate_name, directory)
    contents = []
    for path in paths:
        try:
            contents.append(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            CERTIFICATE_LOGGER.info(
                "Certificate file not found, HTTPS disabled",
                extra={"event": "certificate_missing", "path": str(path)},
            )
            return None
        except (OSError, UnicodeDecodeError) as error:
            raise CertificateIOError(f"Unable to read {path}: {error}") from error

    private_key, signing_request, certificate = contents
    return CertificateBundle(
        private_key=private_key,
        certificate_signing_request=signing_request,
        certificate=certificate,
        private_key_path=paths[0],
        certificate_path=paths[2],
    )
