"""
Database access for customer records.

Credential writes go through update_fields(), a single UPDATE + COMMIT, so a
token and its expiry are always stored together.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storeadmin.models import Customer, EmailType, CREDENTIAL_FIELDS
from storeadmin.services.errors import PersistenceError

logger = logging.getLogger(__name__)

# Columns that update_fields() may write. Identity and timestamps are excluded.
_UPDATABLE_FIELDS = frozenset({
    "name",
    "hashed_password",
    "email_verified",
    "verify_token",
    "verify_token_expiry",
    "forgot_password_token",
    "forgot_password_token_expiry",
})


class CustomerRepository:
    """Persistence operations on the customers table"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: str) -> Optional[Customer]:
        return self.db.get(Customer, customer_id)

    def get_by_email(self, email: str) -> Optional[Customer]:
        """Case-insensitive lookup by e-mail address"""
        return self.db.query(Customer).filter(
            func.lower(Customer.email) == email.strip().lower()
        ).first()

    def get_by_token_hash(self, email_type: EmailType, token_hash: str) -> Optional[Customer]:
        """Find the customer holding the given credential hash for a purpose"""
        token_column, _ = CREDENTIAL_FIELDS[EmailType(email_type)]
        return self.db.query(Customer).filter(token_column == token_hash).first()

    def update_fields(self, customer_id: str, fields: dict) -> None:
        """
        Set named fields on one customer in a single atomic update.

        Args:
            customer_id: Customer primary key
            fields: Mapping of column name to new value

        Raises:
            ValueError: If a field is not updatable
            PersistenceError: If the customer does not exist or the write fails
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        try:
            updated = self.db.query(Customer).filter(
                Customer.id == customer_id
            ).update(fields, synchronize_session="fetch")

            if not updated:
                self.db.rollback()
                raise PersistenceError(f"Customer {customer_id} not found")

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update customer {customer_id}: {e}")
            raise PersistenceError(f"Failed to update customer {customer_id}: {e}") from e

        logger.debug(f"Updated customer {customer_id}: {', '.join(sorted(fields))}")
