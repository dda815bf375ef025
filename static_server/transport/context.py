"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from static_server.bootstrap.config import Configuration, ServerConfig
from static_server.lifecycle.state import ServerLifecycle
from static_server.pipeline.base import Pipeline


@dataclass(frozen=True)
class WorkerContext:
    """Read-only dependencies handed to every connection worker."""

    configuration: Configuration
    pipeline: Pipeline
    server_config: ServerConfig = ServerConfig()
    lifecycle: Optional[ServerLifecycle] = None
