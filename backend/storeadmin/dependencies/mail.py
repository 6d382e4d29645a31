"""
FastAPI dependencies for the account e-mail flows.

Tests override get_mail_transport (or get_token_mailer) through
app.dependency_overrides instead of touching the environment.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from storeadmin.config import get_settings
from storeadmin.database import get_db
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.mail_transport import MailTransport, get_mail_transport
from storeadmin.services.token_mailer import MailerConfig, TokenMailer
from storeadmin.services.token_redemption_service import TokenRedemptionService


def get_mailer_config() -> MailerConfig:
    return MailerConfig.from_settings(get_settings())


def get_token_mailer(
    db: Session = Depends(get_db),
    transport: MailTransport = Depends(get_mail_transport),
    config: MailerConfig = Depends(get_mailer_config)
) -> TokenMailer:
    """Request-scoped mailer bound to the request's database session"""
    return TokenMailer(CustomerRepository(db), transport, config)


def get_redemption_service(db: Session = Depends(get_db)) -> TokenRedemptionService:
    return TokenRedemptionService(db)
