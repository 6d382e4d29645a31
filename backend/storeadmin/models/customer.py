"""
Store customer account model.

The e-mail verification and password reset credentials live directly on the
customer row as (token hash, expiry) pairs. Issuing a new credential
overwrites the pair; redeeming one clears it.
"""

from sqlalchemy import Column, String, DateTime, Boolean
from datetime import datetime
import uuid
import enum
from storeadmin.database import Base


class EmailType(str, enum.Enum):
    """Purpose of an account e-mail; selects credential fields and template"""
    VERIFY = "VERIFY"    # Confirm ownership of the e-mail address
    RESET = "RESET"      # Set a new password


class Customer(Base):
    """Storefront customer account"""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)

    # E-mail verification credential (SHA256 of the token sent by e-mail)
    verify_token = Column(String(64), nullable=True, index=True)
    verify_token_expiry = Column(DateTime, nullable=True)

    # Password reset credential (SHA256 of the token sent by e-mail)
    forgot_password_token = Column(String(64), nullable=True, index=True)
    forgot_password_token_expiry = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Customer(id={self.id}, email={self.email}, verified={self.email_verified})>"


# Credential column pair per purpose: (token hash column, expiry column)
CREDENTIAL_FIELDS = {
    EmailType.VERIFY: (Customer.verify_token, Customer.verify_token_expiry),
    EmailType.RESET: (Customer.forgot_password_token, Customer.forgot_password_token_expiry),
}
