"""
Redemption of e-mailed account tokens.

Handles:
- Validating a presented verification / reset token against the stored hash and expiry
- Marking the e-mail address verified
- Setting a new password

Redeeming a token clears both the stored hash and its expiry.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from storeadmin.models import Customer, EmailType, CREDENTIAL_FIELDS
from storeadmin.services.auth_service import AuthService, PasswordValidationError
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import PersistenceError, TokenRedemptionError
from storeadmin.services.token_mailer import hash_token

logger = logging.getLogger(__name__)


class TokenRedemptionService:
    """Service for consuming verification and password reset tokens"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.repository = CustomerRepository(db)
        self.clock = clock

    def validate_token(
        self,
        email_type: Union[EmailType, str],
        token: str
    ) -> Optional[Customer]:
        """
        Validate a presented token.

        Args:
            email_type: Purpose the token was issued for
            token: Raw token from the e-mailed link

        Returns:
            Customer if the token matches an unexpired credential, None otherwise
        """
        if not token:
            return None

        email_type = EmailType(email_type)
        customer = self.repository.get_by_token_hash(email_type, hash_token(token))
        if not customer:
            return None

        _, expiry_column = CREDENTIAL_FIELDS[email_type]
        expires_at = getattr(customer, expiry_column.key)
        if expires_at is None or self.clock() > expires_at:
            logger.info(f"Expired {email_type.value} token presented for customer {customer.id}")
            return None

        return customer

    def verify_email(self, token: str) -> Customer:
        """
        Mark the customer's e-mail address as verified.

        Raises:
            TokenRedemptionError: If the token is invalid or expired
        """
        customer = self.validate_token(EmailType.VERIFY, token)
        if not customer:
            raise TokenRedemptionError("Invalid or expired verification token")

        self._redeem(customer, EmailType.VERIFY, {"email_verified": True})
        logger.info(f"E-mail verified for customer {customer.id}")

        return customer

    def reset_password(self, token: str, new_password: str) -> Customer:
        """
        Set a new password using a reset token.

        Raises:
            TokenRedemptionError: If the token is invalid, expired, or the password violates policy
        """
        customer = self.validate_token(EmailType.RESET, token)
        if not customer:
            raise TokenRedemptionError("Invalid or expired reset token")

        try:
            AuthService.validate_password_policy(new_password)
        except PasswordValidationError as e:
            raise TokenRedemptionError(str(e))

        self._redeem(customer, EmailType.RESET, {
            "hashed_password": AuthService.hash_password(new_password),
        })
        logger.info(f"Password reset for customer {customer.id}")

        return customer

    def _redeem(self, customer: Customer, email_type: EmailType, changes: dict) -> None:
        token_column, expiry_column = CREDENTIAL_FIELDS[email_type]
        fields = dict(changes)
        fields[token_column.key] = None
        fields[expiry_column.key] = None

        try:
            self.repository.update_fields(customer.id, fields)
        except PersistenceError as e:
            raise TokenRedemptionError(f"Could not redeem token: {e}") from e
