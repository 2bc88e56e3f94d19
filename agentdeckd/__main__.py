"""Entry point for running agentdeckd daemon.

This module provides the CLI entry point for starting the daemon.
"""

import logging
import sys

import uvicorn

from agentdeck_library.config.loader import load_config

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the agentdeckd daemon.

    Loads configuration and starts the uvicorn server.
    """
    try:
        settings = load_config()

        # A single worker: the process registry lives in this process
        uvicorn.run(
            "agentdeckd.main:app",
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )

    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Failed to start daemon: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
