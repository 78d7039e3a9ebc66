"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration (e.g. a signing secret is not set).

    Deliberately not an API exception: it must fail startup or the code
    path that first needs the setting, never turn into a per-request response.
    """


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class UnauthorizedError(BaseAPIException):
    """Missing, invalid or expired credentials"""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class InvalidTokenError(UnauthorizedError):
    """Access token failed signature, structure, claim or expiry checks"""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class DeviceMismatchError(UnauthorizedError):
    """Token is bound to a different device than the request declares"""
    def __init__(self):
        super().__init__("Device mismatch")


class RefreshTokenRejectedError(UnauthorizedError):
    """Refresh token could not be used.

    ``reason`` is for logs only; clients always see the same message.
    """

    def __init__(self, reason: str = "invalid"):
        self.reason = reason
        super().__init__("Invalid refresh token")


class InvalidCredentialsError(UnauthorizedError):
    """Invalid email or password"""
    def __init__(self):
        super().__init__("Invalid credentials")


# Account state errors
class ForbiddenError(BaseAPIException):
    """Authenticated but not allowed"""
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=403, details=details)


class AccountLockedError(ForbiddenError):
    """Account is locked due to failed login attempts"""
    def __init__(self, locked_until: str):
        super().__init__(
            "Account is temporarily locked",
            details={"locked_until": locked_until}
        )


class AccountDisabledError(ForbiddenError):
    """Account is inactive, suspended or not yet verified"""
    def __init__(self, message: str = "Account is disabled"):
        super().__init__(message)


class TenantInactiveError(ForbiddenError):
    """User's tenant is not active"""
    def __init__(self):
        super().__init__("Tenant is not active")


# Request context errors
class BadRequestError(BaseAPIException):
    """Malformed request or missing required context"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class MissingDeviceError(BadRequestError):
    """Device header absent or malformed"""
    def __init__(self):
        super().__init__("Missing or invalid device")


class DeviceNotRegisteredError(BadRequestError):
    """Device header is well-formed but no device record exists for the user"""
    def __init__(self):
        super().__init__("Device not registered")


class EmployeeContextRequiredError(BadRequestError):
    """Token carries no employee id"""
    def __init__(self):
        super().__init__("Employee context required")


class ChallengeRejectedError(BadRequestError):
    """Challenge nonce could not be consumed; the reason is never disclosed"""
    def __init__(self):
        super().__init__("Challenge rejected")


class ValidationError(BadRequestError):
    """Validation error"""
    def __init__(self, message: str = "Invalid payload", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(
        self,
        message: str = "Too many requests",
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, status_code=429)
        self.headers = headers or {}
