"""
Run the API with uvicorn.

Usage:
    python -m src.api.server

HOST, PORT (default 5000) and LOG_LEVEL are read from the environment.
"""
from __future__ import annotations

import logging

import uvicorn

from .logging_setup import setup_logging
from .settings import get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def run() -> None:
    """Configure logging and serve the application until interrupted."""
    settings = get_settings()
    setup_logging(settings.log_level)

    from .main import app

    logger.info("Server running at %s:%d (backend: %s)", settings.host, settings.port, settings.persistence_backend)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
