"""User service - credential checks and account state for mobile sign-in"""

from sqlalchemy.orm import Session
from typing import Optional
from datetime import timedelta
from mobile_auth.config import settings
from mobile_auth.core.clock import naive_utc, to_iso, utcnow
from mobile_auth.core.security import verify_password
from mobile_auth.core.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    InvalidCredentialsError,
    TenantInactiveError,
    UnauthorizedError,
)
from mobile_auth.models.user import User
import logging

logger = logging.getLogger(__name__)

DISABLED_STATUSES = {"INACTIVE", "SUSPENDED"}
PENDING_VERIFICATION = "PENDING_VERIFICATION"
SUPER_ADMIN = "SUPER_ADMIN"


class UserService:
    """Service for user lookup and authentication"""

    MAX_FAILED_ATTEMPTS = settings.MAX_FAILED_LOGIN_ATTEMPTS
    LOCKOUT_DURATION_MINUTES = settings.ACCOUNT_LOCKOUT_MINUTES

    @staticmethod
    def ensure_account_usable(user: User) -> None:
        """
        Reject disabled, unverified and inactive-tenant accounts

        Raises:
            AccountDisabledError: If the account is inactive, suspended or unverified
            TenantInactiveError: If the tenant is not active (super admins are exempt)
        """
        UserService.check_status(user)
        UserService.check_tenant(user)

    @staticmethod
    def check_status(user: User) -> None:
        if user.status in DISABLED_STATUSES:
            raise AccountDisabledError()
        if user.status == PENDING_VERIFICATION:
            raise AccountDisabledError("Email verification required")

    @staticmethod
    def check_tenant(user: User) -> None:
        if user.tenant is not None and user.tenant.status != "ACTIVE" and user.role != SUPER_ADMIN:
            raise TenantInactiveError()

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> User:
        """
        Authenticate user with email and password

        Args:
            db: Database session
            email: Email, compared case-insensitively
            password: Password

        Returns:
            Authenticated user
        """
        normalized = email.strip().lower()
        user = db.query(User).filter(User.email == normalized).first()

        if not user:
            raise InvalidCredentialsError()

        now = utcnow()

        # Check if account is locked
        locked_until = naive_utc(user.locked_until)
        if locked_until and locked_until > now:
            raise AccountLockedError(to_iso(locked_until))

        UserService.check_status(user)

        # Verify password
        if not verify_password(password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

            # Lock account if max attempts reached
            if user.failed_login_attempts >= UserService.MAX_FAILED_ATTEMPTS:
                user.locked_until = now + timedelta(minutes=UserService.LOCKOUT_DURATION_MINUTES)
                logger.warning("Account locked after failed mobile logins: user=%s", user.id)

            db.commit()
            raise InvalidCredentialsError()

        UserService.check_tenant(user)

        # Reset failed attempts on successful login
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        db.commit()

        logger.info("User authenticated via mobile: user=%s", user.id)
        return user

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_active_user(db: Session, user_id: str) -> User:
        """Load a user for token minting and re-check account state"""
        user = UserService.get_user_by_id(db, user_id)
        if not user:
            raise UnauthorizedError()
        UserService.ensure_account_usable(user)
        return user


# Singleton instance
user_service = UserService()
