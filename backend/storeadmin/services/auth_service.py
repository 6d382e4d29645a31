"""
Customer password handling.

Handles:
- Password hashing and verification (bcrypt, 12 rounds)
- Password policy validation
"""

import re

from passlib.context import CryptContext

from storeadmin.config import get_settings

settings = get_settings()

# Password hashing context (bcrypt with 12 rounds)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


class PasswordValidationError(Exception):
    """Raised when password doesn't meet policy requirements"""
    pass


class AuthService:
    """Password operations for customer accounts"""

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash password using bcrypt (12 rounds)."""
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Return True if the password matches the bcrypt hash."""
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def validate_password_policy(password: str) -> None:
        """
        Validate password against security policy.

        Args:
            password: Password to validate

        Raises:
            PasswordValidationError: If password doesn't meet requirements
        """
        if len(password) < settings.password_min_length:
            raise PasswordValidationError(
                f"Password must be at least {settings.password_min_length} characters long"
            )

        if settings.password_require_uppercase and not re.search(r"[A-Z]", password):
            raise PasswordValidationError("Password must contain at least one uppercase letter")

        if settings.password_require_lowercase and not re.search(r"[a-z]", password):
            raise PasswordValidationError("Password must contain at least one lowercase letter")

        if settings.password_require_digit and not re.search(r"\d", password):
            raise PasswordValidationError("Password must contain at least one digit")

        if settings.password_require_special and not re.search(r"[!@#$%^&*(),.?\":{}|<>]", password):
            raise PasswordValidationError("Password must contain at least one special character")
