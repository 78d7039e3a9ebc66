"""Mobile sign-in and session schemas"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the mobile clients expect"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MobileLoginRequest(CamelModel):
    """Mobile login schema"""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def email_shape(cls, v):
        """Lower-case and require a plausible address"""
        v = v.strip().lower()
        local, _, domain = v.partition('@')
        if not local or '.' not in domain:
            raise ValueError('Invalid email address')
        return v


class RefreshTokenRequest(CamelModel):
    """Optional body for clients that cannot send the refresh cookie"""
    refresh_token: Optional[str] = Field(None, min_length=10)


class LogoutRequest(CamelModel):
    """Optional body for clients that cannot send the refresh cookie"""
    refresh_token: Optional[str] = Field(None, min_length=10)


class AccessTokenData(CamelModel):
    """New access token; the refresh token travels only in the cookie"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginData(AccessTokenData):
    user: dict


class LoginResponse(BaseModel):
    data: LoginData


class RefreshResponse(BaseModel):
    data: AccessTokenData


class LogoutData(BaseModel):
    ok: bool = True
    revoked: Optional[int] = None


class LogoutResponse(BaseModel):
    data: LogoutData
