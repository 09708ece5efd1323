from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Logging configuration for the service.

    Notes:
    - stdlib logging only; Uvicorn installs its own handlers for access logs.
    - When nothing has configured the root logger yet (e.g. running under a plain
      ASGI server or a script), a basic stream handler is installed.
    - Set `APP_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    if not logging.getLogger().handlers:
        logging.basicConfig(format=_FORMAT)

    package_logger = logging.getLogger("projecthub")
    package_logger.setLevel(normalized)
    package_logger.propagate = True
