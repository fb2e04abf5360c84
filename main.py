"""Static file HTTP server with structured request logging and graceful shutdown."""

import sys
from typing import Optional

from static_server.bootstrap.config import (
    SHUTDOWN_TIMEOUT_SECONDS,
    config_from_args,
    parse_cli_args,
)
from static_server.bootstrap.logging_setup import configure_logging
from static_server.handlers.file_handler import FileServer
from static_server.lifecycle.controller import (
    ServerStartError,
    StaticServer,
    wait_for_signal,
)
from static_server.pipeline.request_logger import request_logger


def run(argv: Optional[list[str]] = None) -> int:
    """Serve until SIGINT or SIGTERM and return the process exit code."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    config = config_from_args(args)
    logger = configure_logging(args.log_level, args.log_destination)

    handler = request_logger(
        logger, FileServer(config.static_dir, logger.getChild("handlers.file"))
    )
    server = StaticServer(config, handler, logger)

    logger.info("Starting server", extra={"port": config.port, "dir": config.static_dir})
    try:
        server.start()
    except ServerStartError as error:
        logger.error(
            "Could not listen on", extra={"addr": config.address, "error": str(error)}
        )
        return 1

    received = wait_for_signal(server)
    if received is None:
        logger.error(
            "Could not listen on",
            extra={"addr": config.address, "error": str(server.failure)},
        )
        return 1

    logger.info("Server is shutting down...", extra={"signal": received.name})
    if server.shutdown(SHUTDOWN_TIMEOUT_SECONDS):
        logger.info("Server exited properly")
    else:
        logger.error(
            "Server forced to shutdown",
            extra={
                "error": "shutdown deadline exceeded",
                "in_flight": server.lifecycle.active_worker_count(),
            },
        )
    return 0


def main() -> None:
    """Console entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
