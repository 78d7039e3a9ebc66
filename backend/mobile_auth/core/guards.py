"""Request-level guards for mobile endpoints.

Each guard either returns the authenticated context or raises one of the
``BaseAPIException`` subclasses; handlers propagate the failure unchanged.
"""

from dataclasses import dataclass
from typing import Any, Optional

from mobile_auth.core.exceptions import (
    DeviceMismatchError,
    EmployeeContextRequiredError,
    UnauthorizedError,
)
from mobile_auth.core.security import AccessTokenClaims, TokenCodec
from mobile_auth.services.device_service import DeviceHeaders, extract_device_headers


@dataclass(frozen=True)
class DeviceBoundAuth:
    """Verified claims plus the device headers that matched them."""

    claims: AccessTokenClaims
    device: DeviceHeaders

    @property
    def user_id(self) -> str:
        return self.claims.user_id

    @property
    def tenant_id(self) -> Optional[str]:
        return self.claims.tenant_id

    @property
    def role(self) -> str:
        return self.claims.role

    @property
    def employee_id(self) -> Optional[str]:
        return self.claims.employee_id

    @property
    def device_id(self) -> str:
        return self.device.device_id


def bearer_token(request: Any) -> str:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError()
    return token


def require_mobile_auth(request: Any, codec: TokenCodec) -> AccessTokenClaims:
    return codec.verify_access_token(bearer_token(request))


def require_device_bound_auth(request: Any, codec: TokenCodec) -> DeviceBoundAuth:
    """Valid bearer token first, then device headers that match the token's device."""
    claims = require_mobile_auth(request, codec)
    device = extract_device_headers(request)
    if claims.device_id is None or claims.device_id != device.device_id:
        raise DeviceMismatchError()
    return DeviceBoundAuth(claims=claims, device=device)


def require_employee_auth_with_device(request: Any, codec: TokenCodec) -> DeviceBoundAuth:
    auth = require_device_bound_auth(request, codec)
    if not auth.employee_id:
        raise EmployeeContextRequiredError()
    return auth
