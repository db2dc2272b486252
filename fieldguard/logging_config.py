from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the ``fieldguard`` logger tree.

    Uvicorn installs its own handlers; when nothing is attached to the root
    logger (embedded use, scripts) a stderr handler is added so reconciliation
    output is not lost. ``FIELDGUARD_LOG_LEVEL=DEBUG`` shows per-field
    permission decisions.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(format=_FORMAT)

    package_logger = logging.getLogger("fieldguard")
    package_logger.setLevel(level.upper())
    package_logger.propagate = True

    # SQL echo is noise at DEBUG; enable it explicitly when needed.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
