"""
SQLAlchemy models for the store admin backend.
"""

from storeadmin.models.customer import Customer, EmailType, CREDENTIAL_FIELDS

__all__ = [
    "Customer",
    "EmailType",
    "CREDENTIAL_FIELDS",
]
