#!/usr/bin/env python3
"""
Send a verification or password reset e-mail to a customer.

Usage:
    python scripts/send_account_email.py customer@example.com --type verify
    python scripts/send_account_email.py customer@example.com --type reset

Or via Docker:
    docker compose exec backend python scripts/send_account_email.py customer@example.com

Uses the transport configured by MAIL_TRANSPORT (smtp, resend, console).
"""
import sys
import logging
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storeadmin.config import get_settings
from storeadmin.database import SessionLocal
from storeadmin.models import EmailType
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import TokenIssuanceError
from storeadmin.services.mail_transport import create_mail_transport
from storeadmin.services.token_mailer import MailerConfig, TokenMailer

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Send an account verification or password reset e-mail",
    )
    parser.add_argument("email", help="Customer e-mail address")
    parser.add_argument(
        "--type",
        dest="email_type",
        choices=["verify", "reset"],
        default="verify",
        help="Which link to send (default: verify)",
    )
    return parser.parse_args(argv)


def main(argv=None, session_factory=SessionLocal, transport=None) -> int:
    """Entry point; returns the process exit code"""
    args = parse_args(argv)
    settings = get_settings()
    email_type = EmailType(args.email_type.upper())

    db = session_factory()
    try:
        repository = CustomerRepository(db)
        customer = repository.get_by_email(args.email)
        if not customer:
            logger.error(f"No customer with email {args.email}")
            return 1

        mailer = TokenMailer(
            repository,
            transport or create_mail_transport(settings),
            MailerConfig.from_settings(settings),
        )
        try:
            receipt = mailer.send_email(customer.email, email_type, customer.id)
        except TokenIssuanceError as e:
            logger.error(f"Failed to send {email_type.value} e-mail: {e}")
            return 1

        logger.info(f"Sent via {receipt.transport} (message id: {receipt.message_id or 'n/a'})")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
