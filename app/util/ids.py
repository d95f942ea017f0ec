from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from app.util.time import now_utc

ALPHANUMERIC = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def new_uuid() -> str:
    return str(uuid.uuid4())


def random_alnum(n: int) -> str:
    return "".join(secrets.choice(ALPHANUMERIC) for _ in range(n))


def new_correlation_key() -> str:
    """9-char key shared by both legs of a pair, e.g. ``616964F32``.

    First character is always a digit.
    """
    return str(secrets.randbelow(10)) + random_alnum(8)


def new_transaction_base(now: datetime | None = None) -> str:
    """``yyMMdd`` + 6 random chars; legs append ``A``/``B``."""
    now = now or now_utc()
    return now.strftime("%y%m%d") + random_alnum(6)


def new_transaction_id(now: datetime | None = None) -> str:
    """Timestamp to the millisecond + 3 random chars (20 chars)."""
    now = now or now_utc()
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}" + random_alnum(3)
