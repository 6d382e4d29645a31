"""
Account e-mail service for e-mail verification and password reset links.

Handles:
- Generating single-use tokens (256-bit random, only the SHA256 hash is stored)
- Writing token hash + expiry onto the customer record
- Building the storefront callback URL
- Rendering the e-mail and handing it to the configured mail transport

The flow either completes both the database write and the send, or raises.
There are no retries, and a failed send does not roll back the stored token.
"""

import hashlib
import html
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Tuple, Union

from storeadmin.config import Settings
from storeadmin.metrics import record_token_issued, record_email_sent, record_email_failed
from storeadmin.models import EmailType, CREDENTIAL_FIELDS
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import PersistenceError, DeliveryError
from storeadmin.services.mail_transport import MailTransport, OutgoingEmail, DeliveryReceipt

logger = logging.getLogger(__name__)

# Storefront page that consumes each token type
CALLBACK_PATHS = {
    EmailType.VERIFY: "verify-email",
    EmailType.RESET: "change-password",
}

SUBJECTS = {
    EmailType.VERIFY: "Verify your email",
    EmailType.RESET: "Reset your password",
}

_ACTIONS = {
    EmailType.VERIFY: "verify your email",
    EmailType.RESET: "reset your password",
}


def hash_token(token: str) -> str:
    """SHA256 hex digest stored in place of the raw token"""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token() -> Tuple[str, str]:
    """
    Generate a cryptographically secure account token.

    Returns:
        Tuple of (token, token_hash)
    """
    token = secrets.token_urlsafe(32)
    return token, hash_token(token)


def _describe_ttl(ttl: timedelta) -> str:
    minutes = int(ttl.total_seconds() // 60)
    if minutes and minutes % 60 == 0:
        return f"{minutes // 60} hour(s)"
    return f"{minutes} minute(s)"


@dataclass
class MailerConfig:
    """Settings the mailer needs, passed in explicitly"""
    frontend_base_url: str
    from_address: str
    token_ttl: timedelta = timedelta(hours=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailerConfig":
        return cls(
            frontend_base_url=settings.frontend_store_url,
            from_address=settings.mail_from,
            token_ttl=timedelta(minutes=settings.token_expiry_minutes),
        )


class TokenMailer:
    """Issues verification / reset tokens and e-mails the callback link"""

    def __init__(
        self,
        repository: CustomerRepository,
        transport: MailTransport,
        config: MailerConfig,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.repository = repository
        self.transport = transport
        self.config = config
        self.clock = clock

    def send_email(
        self,
        email: str,
        email_type: Union[EmailType, str],
        user_id: str
    ) -> DeliveryReceipt:
        """
        Issue a token for a customer and e-mail the link.

        Args:
            email: Destination address (not checked against the customer record)
            email_type: EmailType.VERIFY or EmailType.RESET
            user_id: Customer whose credential fields are overwritten

        Returns:
            DeliveryReceipt from the mail transport

        Raises:
            PersistenceError: If the customer record could not be updated (no send is attempted)
            DeliveryError: If the transport rejected the message (the stored token remains)
        """
        email_type = EmailType(email_type)
        token, token_hash = generate_token()
        expires_at = self.clock() + self.config.token_ttl

        token_column, expiry_column = CREDENTIAL_FIELDS[email_type]
        try:
            self.repository.update_fields(user_id, {
                token_column.key: token_hash,
                expiry_column.key: expires_at,
            })
        except PersistenceError as e:
            record_email_failed(email_type.value, "persistence")
            logger.error(f"Could not store {email_type.value} token for customer {user_id}: {e}")
            raise

        record_token_issued(email_type.value)
        logger.info(
            f"{email_type.value} token issued for customer {user_id}, expires {expires_at.isoformat()}"
        )

        url = self.build_callback_url(email_type, token)
        message = self.render_email(email, email_type, url)

        try:
            receipt = self.transport.send(message)
        except DeliveryError as e:
            record_email_failed(email_type.value, "delivery")
            logger.error(f"Failed to send {email_type.value} e-mail to {email} via {e.transport}: {e}")
            raise

        record_email_sent(email_type.value, receipt.transport)
        logger.info(f"{email_type.value} e-mail sent to {email} via {receipt.transport}")

        return receipt

    def build_callback_url(self, email_type: EmailType, token: str) -> str:
        """Storefront URL of the form {base}/{verify-email|change-password}?token={token}"""
        base_url = self.config.frontend_base_url.rstrip("/")
        return f"{base_url}/{CALLBACK_PATHS[EmailType(email_type)]}?token={token}"

    def render_email(self, email: str, email_type: EmailType, url: str) -> OutgoingEmail:
        email_type = EmailType(email_type)
        action = _ACTIONS[email_type]
        expires_in = _describe_ttl(self.config.token_ttl)
        safe_url = html.escape(url)

        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif;">
            <p>
                Click <a href="{safe_url}">here</a> to {action},
                or copy &amp; paste the following link into your browser:
            </p>
            <p>{safe_url}</p>
            <p>This link expires in {expires_in}.</p>
        </body>
        </html>
        """

        text_body = (
            f"Open the following link to {action}:\n\n{url}\n\n"
            f"This link expires in {expires_in}."
        )

        return OutgoingEmail(
            from_address=self.config.from_address,
            to=email,
            subject=SUBJECTS[email_type],
            html=html_body,
            text=text_body,
        )
