"""API dependencies - configuration wiring and mobile auth guards"""

from functools import lru_cache

from fastapi import Depends, Request, Response

from mobile_auth.config import MobileAuthConfig, settings
from mobile_auth.core.guards import (
    DeviceBoundAuth,
    require_device_bound_auth,
    require_employee_auth_with_device,
)
from mobile_auth.core.security import TokenCodec
from mobile_auth.services.challenge_service import ChallengeService
from mobile_auth.services.rate_limiter import rate_limiter
from mobile_auth.services.token_service import RefreshTokenService


@lru_cache()
def get_mobile_config() -> MobileAuthConfig:
    return MobileAuthConfig.from_settings(settings)


@lru_cache()
def get_token_codec() -> TokenCodec:
    return TokenCodec(get_mobile_config())


@lru_cache()
def get_challenge_service() -> ChallengeService:
    return ChallengeService(get_mobile_config())


@lru_cache()
def get_refresh_token_service() -> RefreshTokenService:
    return RefreshTokenService(get_mobile_config())


def get_device_bound_auth(
    request: Request,
    codec: TokenCodec = Depends(get_token_codec),
) -> DeviceBoundAuth:
    """
    Bearer token plus a matching ``x-device-id`` header

    Raises:
        UnauthorizedError: If the token is missing, invalid or expired
        MissingDeviceError: If the device header is absent or malformed
        DeviceMismatchError: If the token belongs to another device
    """
    return require_device_bound_auth(request, codec)


def get_employee_device_auth(
    request: Request,
    codec: TokenCodec = Depends(get_token_codec),
) -> DeviceBoundAuth:
    """Device-bound auth that also requires an employee id in the token"""
    return require_employee_auth_with_device(request, codec)


def rate_limit(prefix: str, limit: int, window_seconds: int):
    """
    Per-client fixed-window limit, evaluated before any other dependency of the route

    Usage:
        @router.post("/x", dependencies=[Depends(rate_limit("mobile:x", 10, 60))])
    """

    def _dependency(request: Request, response: Response) -> None:
        info = rate_limiter.enforce(request, prefix, limit, window_seconds)
        # Read back by the API exception handler for error responses.
        request.state.rate_limit = info
        for name, value in info.headers().items():
            response.headers[name] = value

    return _dependency
