"""
Process-wide logging setup for AuthDiag.

Every record that reaches the root stream handler is passed through
scrub_secrets(), so a token interpolated into a log message by mistake is
printed as a hash. httpx and httpcore log each request URL at INFO, and the
tokeninfo URL carries the access token as a query parameter, so both are
held at WARNING.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from authdiag.utils.redaction import scrub_secrets

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_QUIET_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore")


class SecretScrubbingFilter(logging.Filter):
    """Replace token-looking substrings in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = scrub_secrets(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def _resolve_level() -> int:
    level_name = os.getenv("AUTHDIAG_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the scrubbing root handler is attached once per process."""
    global _HANDLER_ATTACHED

    level = _resolve_level()
    root = logging.getLogger()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(SecretScrubbingFilter())
        root.addHandler(handler)
        for quiet in _QUIET_LOGGERS:
            logging.getLogger(quiet).setLevel(max(level, logging.WARNING))
        _HANDLER_ATTACHED = True
    root.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
