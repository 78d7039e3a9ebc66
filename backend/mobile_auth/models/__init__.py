"""Database models"""

from mobile_auth.models.user import Tenant, User, Employee
from mobile_auth.models.security import MobileDevice, MobileChallenge, MobileRefreshToken
from mobile_auth.models.audit import AuditEvent

__all__ = [
    "Tenant",
    "User",
    "Employee",
    "MobileDevice",
    "MobileChallenge",
    "MobileRefreshToken",
    "AuditEvent",
]
