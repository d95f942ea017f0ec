from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Route all loggers to stdout with one format.

    Safe to call more than once (uvicorn reload, Celery worker init).
    """

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    for h in root.handlers:
        if getattr(h, "_relay_handler", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._relay_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # Redis/Celery are chatty at DEBUG.
    logging.getLogger("celery").setLevel(max(root.level, logging.INFO))
