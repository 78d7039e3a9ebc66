"""Pydantic schemas for API validation"""

from mobile_auth.schemas.user import (
    MobileLoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    AccessTokenData,
    LoginResponse,
    RefreshResponse,
    LogoutResponse,
)
from mobile_auth.schemas.challenge import (
    ChallengeResponse,
    ChallengeVerifyRequest,
    ChallengeVerifyResponse,
)
from mobile_auth.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "MobileLoginRequest", "RefreshTokenRequest", "LogoutRequest",
    "AccessTokenData", "LoginResponse", "RefreshResponse", "LogoutResponse",
    "ChallengeResponse", "ChallengeVerifyRequest", "ChallengeVerifyResponse",
    "ErrorResponse", "HealthResponse",
]
