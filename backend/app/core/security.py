from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status


async def require_admin_token(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    admin_header: str | None = Header(default=None, alias="X-Moodpeek-Admin-Token"),
) -> None:
    """Guard maintenance endpoints behind the configured admin token."""

    settings = request.app.state.settings
    expected = getattr(settings, "admin_api_token", None)
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="admin disabled",
        )
    token_value: str | None = None
    if authorization and authorization.lower().startswith("bearer "):
        token_value = authorization.split(" ", 1)[1].strip()
    elif admin_header:
        token_value = admin_header.strip()
    if token_value is None or not hmac.compare_digest(token_value, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="admin token invalid")
