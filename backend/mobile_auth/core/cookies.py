"""Refresh token cookie transport."""

from datetime import datetime
from typing import Any, Optional

from fastapi import Response

from mobile_auth.config import MobileAuthConfig
from mobile_auth.core.clock import utcnow


def set_refresh_cookie(response: Response, config: MobileAuthConfig, token: str,
                       expires_at: datetime) -> None:
    """HTTP-only, same-site strict, scoped to the mobile auth routes only."""
    max_age = max(0, int((expires_at - utcnow()).total_seconds()))
    response.set_cookie(
        key=config.refresh_cookie_name,
        value=token,
        max_age=max_age,
        path=config.auth_path,
        httponly=True,
        secure=config.secure_cookies,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response, config: MobileAuthConfig) -> None:
    response.delete_cookie(
        key=config.refresh_cookie_name,
        path=config.auth_path,
        httponly=True,
        secure=config.secure_cookies,
        samesite="strict",
    )


def read_refresh_token(request: Any, config: MobileAuthConfig, body_token: Optional[str] = None) -> str:
    """An explicit JSON body value wins over the cookie, which may be stale on native clients."""
    return body_token or request.cookies.get(config.refresh_cookie_name) or ""
