"""Filesystem sandbox utilities for safe path resolution."""

from pathlib import Path


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the root folder."""


def resolve_sandbox_path(root_folder: str, user_path: str) -> Path:
    """Resolve a request path inside ``root_folder``.

    An empty path (or ``/``) resolves to the root folder itself. Any ``..``
    segment, and any path whose resolution (symlinks included) lands outside
    the root, raises ``ForbiddenPath``.
    """
    if "\x00" in user_path:
        raise ForbiddenPath

    root = Path(root_folder).resolve()
    relative_part = user_path.lstrip("/")
    if ".." in Path(relative_part).parts:
        raise ForbiddenPath

    target = (root / relative_part).resolve()
    if not (target == root or root in target.parents):
        raise ForbiddenPath

    return target


def is_hidden(user_path: str) -> bool:
    """Return True when any path segment names a dot-file or dot-folder."""
    return any(part.startswith(".") for part in user_path.split("/") if part)
