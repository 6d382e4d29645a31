"""
Outgoing mail transports.

Every transport exposes a single ``send`` capability and raises DeliveryError
on failure. Exactly one transport is active per process, selected by the
MAIL_TRANSPORT setting:

- smtp:    SMTP relay (STARTTLS + optional login)
- resend:  Resend transactional e-mail HTTP API
- console: log the message instead of sending it (local development)
"""
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from functools import lru_cache
from typing import List, Optional

import httpx

from storeadmin.config import Settings, get_settings
from storeadmin.services.errors import DeliveryError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass
class OutgoingEmail:
    """A rendered message ready for a transport"""
    from_address: str
    to: str
    subject: str
    html: str
    text: Optional[str] = None  # Plain-text alternative


@dataclass
class DeliveryReceipt:
    """Transport acknowledgment for an accepted message"""
    transport: str
    message_id: Optional[str] = None
    accepted: List[str] = field(default_factory=list)


class MailTransport(ABC):
    """Interface for mail delivery backends"""

    name = "base"

    @abstractmethod
    def send(self, message: OutgoingEmail) -> DeliveryReceipt:
        """
        Deliver a message.

        Returns:
            DeliveryReceipt for the accepted message

        Raises:
            DeliveryError: If the backend rejects the message or is unreachable
        """


class SMTPTransport(MailTransport):
    """Send mail through an SMTP relay"""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_mime(self, message: OutgoingEmail) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = message.subject
        msg['From'] = message.from_address
        msg['To'] = message.to
        msg['Date'] = formatdate(usegmt=True)
        msg['Message-ID'] = make_msgid()
        # Clients render the last alternative they support, so HTML goes last
        if message.text:
            msg.attach(MIMEText(message.text, 'plain'))
        msg.attach(MIMEText(message.html, 'html'))
        return msg

    def send(self, message: OutgoingEmail) -> DeliveryReceipt:
        if not self.host:
            raise DeliveryError("SMTP host is not configured", transport=self.name)

        msg = self._build_mime(message)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(
                f"SMTP delivery to {message.to} via {self.host}:{self.port} failed: {e}",
                transport=self.name
            ) from e

        accepted = [message.to] if message.to not in (refused or {}) else []
        logger.debug(f"SMTP relay {self.host} accepted message {msg['Message-ID']}")

        return DeliveryReceipt(transport=self.name, message_id=msg['Message-ID'], accepted=accepted)


class ResendTransport(MailTransport):
    """Send mail through the Resend HTTP API"""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        api_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    def _post(self, payload: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self._client is not None:
            return self._client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        with httpx.Client() as client:
            return client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)

    def send(self, message: OutgoingEmail) -> DeliveryReceipt:
        if not self.api_key:
            raise DeliveryError("Resend API key is not configured", transport=self.name)

        payload = {
            "from": message.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text

        try:
            response = self._post(payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"Resend API rejected message to {message.to}: HTTP {e.response.status_code}",
                transport=self.name
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DeliveryError(f"Resend API request failed: {e}", transport=self.name) from e

        # Message is accepted at this point; a malformed body only loses the id
        try:
            data = response.json()
        except ValueError:
            data = None
        message_id = data.get("id") if isinstance(data, dict) else None

        return DeliveryReceipt(transport=self.name, message_id=message_id, accepted=[message.to])


class ConsoleTransport(MailTransport):
    """Log messages instead of sending them"""

    name = "console"

    def send(self, message: OutgoingEmail) -> DeliveryReceipt:
        logger.info(
            f"Mail not sent (console transport): to={message.to} subject={message.subject!r}",
            extra={"mail_to": message.to}
        )
        logger.info(message.text or message.html)
        return DeliveryReceipt(transport=self.name, accepted=[message.to])


def create_mail_transport(settings: Settings) -> MailTransport:
    """
    Build the transport named by settings.mail_transport.

    Raises:
        ValueError: If the transport name is unknown
    """
    if settings.mail_transport == "smtp":
        return SMTPTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )
    elif settings.mail_transport == "resend":
        return ResendTransport(
            api_key=settings.resend_api_key,
            api_url=settings.resend_api_url,
            timeout=settings.resend_timeout,
        )
    elif settings.mail_transport == "console":
        return ConsoleTransport()
    else:
        raise ValueError(f"Unknown mail transport: {settings.mail_transport}")


@lru_cache()
def get_mail_transport() -> MailTransport:
    """Process-wide transport built from settings (FastAPI dependency)"""
    transport = create_mail_transport(get_settings())
    logger.info(f"Mail transport configured: {transport.name}")
    return transport
