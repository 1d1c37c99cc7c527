from __future__ import annotations

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("pymongo", "urllib3", "python_http_client")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for the API process and the reminder job.

    Must run before uvicorn.run() so workers inherit the handlers.
    Level falls back to LOG_LEVEL from settings.
    """
    if level is None:
        from insuretrack.config import settings

        level = settings.log_level

    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("insuretrack.logging").debug("Logging configured at %s", level)
