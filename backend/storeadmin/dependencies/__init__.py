"""
FastAPI dependencies for the store admin backend.
"""

from storeadmin.dependencies.mail import (
    get_mailer_config,
    get_token_mailer,
    get_redemption_service,
)

__all__ = [
    "get_mailer_config",
    "get_token_mailer",
    "get_redemption_service",
]
