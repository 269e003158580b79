# rollcall/core/logging.py
from __future__ import annotations

import logging
import sys

from rollcall.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# libraries that are too chatty at INFO
_QUIET = ("sqlalchemy.engine", "alembic.runtime.migration", "passlib", "multipart")


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # idempotent: uvicorn --reload and the test suite import main more than once
    if not any(getattr(h, "_rollcall", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._rollcall = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
