from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException

from app.core.config import settings

log = logging.getLogger("security")

ADMIN_TOKEN_DETAIL = "Admin token required for listener and template administration"


def require_admin_token(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    """Guards the operator routes: listener lifecycle and template overrides."""
    if settings.AUTH_DISABLED:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), settings.ADMIN_TOKEN.encode()):
        log.warning("Rejected admin request: %s", "missing token" if not x_admin_token else "token mismatch")
        raise HTTPException(status_code=401, detail=ADMIN_TOKEN_DETAIL)
