"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this module
configures the handlers once at process start.
"""

import logging

from core_ledger.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the ``core_ledger`` logger tree."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    root = logging.getLogger("core_ledger")
    root.setLevel(level or settings.LOG_LEVEL)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def reset_logging() -> None:
    """Remove handlers installed by configure_logging (used by tests)."""
    global _configured
    root = logging.getLogger("core_ledger")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    _configured = False
