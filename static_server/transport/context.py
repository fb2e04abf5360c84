"""Context object shared across worker threads."""

import logging
from dataclasses import dataclass

from static_server.bootstrap.config import ServerConfig
from static_server.domain.http_types import Handler
from static_server.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    handler: Handler
    config: ServerConfig
    lifecycle: ServerLifecycle
    logger: logging.Logger
