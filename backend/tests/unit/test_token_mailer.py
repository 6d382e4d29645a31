"""Unit tests for the account e-mail token flow"""
import re
import pytest
from datetime import timedelta
from unittest.mock import Mock

from storeadmin.metrics import ACCOUNT_EMAILS_FAILED, ACCOUNT_TOKENS_ISSUED
from storeadmin.models import Customer, EmailType
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import PersistenceError, DeliveryError, TokenIssuanceError
from storeadmin.services.token_mailer import (
    TokenMailer,
    MailerConfig,
    generate_token,
    hash_token,
)

TOKEN_RE = re.compile(r"\?token=([A-Za-z0-9_\-]+)")


def token_from(message) -> str:
    """Pull the raw token out of the plain-text body"""
    return TOKEN_RE.search(message.text).group(1)


@pytest.fixture
def repository(db_session):
    return CustomerRepository(db_session)


@pytest.fixture
def mailer(repository, recording_transport, mailer_config, frozen_clock):
    return TokenMailer(repository, recording_transport, mailer_config, clock=frozen_clock)


class TestTokenGeneration:
    """Test token generation helpers"""

    def test_generate_token_returns_token_and_hash(self):
        token, token_hash = generate_token()

        assert len(token) >= 43  # 32 bytes urlsafe-base64
        assert token_hash == hash_token(token)
        assert len(token_hash) == 64

    def test_tokens_are_unique(self):
        tokens = {generate_token()[0] for _ in range(50)}
        assert len(tokens) == 50


class TestIssuance:
    """Test token persistence on issuance"""

    def test_verify_sets_verify_fields_only(self, mailer, customer, db_session, frozen_clock):
        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        db_session.refresh(customer)
        assert customer.verify_token is not None
        assert customer.verify_token_expiry == frozen_clock.now + timedelta(hours=1)
        assert customer.forgot_password_token is None
        assert customer.forgot_password_token_expiry is None

    def test_reset_sets_reset_fields_only(self, mailer, customer, db_session, frozen_clock):
        mailer.send_email(customer.email, EmailType.RESET, customer.id)

        db_session.refresh(customer)
        assert customer.forgot_password_token is not None
        assert customer.forgot_password_token_expiry == frozen_clock.now + timedelta(hours=1)
        assert customer.verify_token is None
        assert customer.verify_token_expiry is None

    def test_reset_leaves_existing_verify_token(self, mailer, customer, db_session):
        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)
        db_session.refresh(customer)
        verify_token = customer.verify_token
        verify_expiry = customer.verify_token_expiry

        mailer.send_email(customer.email, EmailType.RESET, customer.id)

        db_session.refresh(customer)
        assert customer.verify_token == verify_token
        assert customer.verify_token_expiry == verify_expiry

    def test_only_hash_is_stored(self, mailer, customer, db_session, recording_transport):
        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        db_session.refresh(customer)
        token = token_from(recording_transport.sent[0])
        assert customer.verify_token != token
        assert customer.verify_token == hash_token(token)

    def test_second_issuance_overwrites_first(
        self, mailer, customer, db_session, recording_transport, frozen_clock
    ):
        mailer.send_email(customer.email, EmailType.RESET, customer.id)
        frozen_clock.advance(minutes=10)
        mailer.send_email(customer.email, EmailType.RESET, customer.id)

        first, second = (token_from(m) for m in recording_transport.sent)
        assert first != second

        db_session.refresh(customer)
        assert customer.forgot_password_token == hash_token(second)
        assert customer.forgot_password_token_expiry == frozen_clock.now + timedelta(hours=1)

    def test_accepts_string_email_type(self, mailer, customer, db_session):
        mailer.send_email(customer.email, "VERIFY", customer.id)

        db_session.refresh(customer)
        assert customer.verify_token is not None

    def test_rejects_unknown_email_type(self, mailer, customer, recording_transport):
        with pytest.raises(ValueError):
            mailer.send_email(customer.email, "WELCOME", customer.id)

        assert recording_transport.sent == []

    def test_custom_ttl(self, repository, recording_transport, customer, db_session, frozen_clock):
        config = MailerConfig(
            frontend_base_url="https://shop.example.com",
            from_address="no-reply@shop.example.com",
            token_ttl=timedelta(minutes=15),
        )
        mailer = TokenMailer(repository, recording_transport, config, clock=frozen_clock)

        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        db_session.refresh(customer)
        assert customer.verify_token_expiry == frozen_clock.now + timedelta(minutes=15)
        assert "15 minute(s)" in recording_transport.sent[0].html

    def test_issuance_metric_incremented(self, mailer, customer):
        before = ACCOUNT_TOKENS_ISSUED.labels(email_type="VERIFY")._value.get()
        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)
        after = ACCOUNT_TOKENS_ISSUED.labels(email_type="VERIFY")._value.get()

        assert after == before + 1


class TestEmailContent:
    """Test callback URL and rendered message"""

    @pytest.mark.parametrize("email_type,path", [
        (EmailType.VERIFY, "verify-email"),
        (EmailType.RESET, "change-password"),
    ])
    def test_callback_path_matches_type(self, mailer, customer, recording_transport, email_type, path):
        mailer.send_email(customer.email, email_type, customer.id)

        message = recording_transport.sent[0]
        token = token_from(message)
        url = f"https://shop.example.com/{path}?token={token}"
        assert url in message.text
        assert f'href="{url}"' in message.html

    def test_build_callback_url_strips_trailing_slash(self, repository, recording_transport):
        config = MailerConfig(frontend_base_url="https://shop.example.com/", from_address="a@b.c")
        mailer = TokenMailer(repository, recording_transport, config)

        url = mailer.build_callback_url(EmailType.RESET, "abc")

        assert url == "https://shop.example.com/change-password?token=abc"

    @pytest.mark.parametrize("email_type,subject", [
        (EmailType.VERIFY, "Verify your email"),
        (EmailType.RESET, "Reset your password"),
    ])
    def test_subject_matches_type(self, mailer, customer, recording_transport, email_type, subject):
        mailer.send_email(customer.email, email_type, customer.id)

        assert recording_transport.sent[0].subject == subject

    def test_message_addressing(self, mailer, customer, recording_transport):
        mailer.send_email("someone-else@example.com", EmailType.VERIFY, customer.id)

        message = recording_transport.sent[0]
        assert message.to == "someone-else@example.com"
        assert message.from_address == "no-reply@shop.example.com"
        assert "1 hour(s)" in message.html

    def test_url_appears_as_link_and_plain_text(self, mailer, customer, recording_transport):
        mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        message = recording_transport.sent[0]
        url = TOKEN_RE.search(message.text).group(0)
        # Once inside the href, once as copyable text
        assert message.html.count(url) == 2

    def test_verify_scenario(self, make_customer, repository, recording_transport, mailer_config,
                             frozen_clock, db_session):
        """Issuing for u1 at time T stores hash + T+3600s and mails the matching link"""
        make_customer(email="owner@x.com", customer_id="u1")
        mailer = TokenMailer(repository, recording_transport, mailer_config, clock=frozen_clock)

        receipt = mailer.send_email(email="a@x.com", email_type="VERIFY", user_id="u1")

        record = db_session.get(Customer, "u1")
        db_session.refresh(record)
        message = recording_transport.sent[0]
        token = token_from(message)

        assert receipt.transport == "recording"
        assert receipt.accepted == ["a@x.com"]
        assert record.verify_token == hash_token(token)
        assert (record.verify_token_expiry - frozen_clock.now).total_seconds() == 3600
        assert f"https://shop.example.com/verify-email?token={token}" in message.html


class TestFailures:
    """Test failure propagation"""

    def test_unknown_customer_raises_persistence_error_without_send(
        self, mailer, recording_transport
    ):
        with pytest.raises(PersistenceError, match="not found"):
            mailer.send_email("ghost@example.com", EmailType.VERIFY, "no-such-id")

        assert recording_transport.sent == []

    def test_persistence_failure_skips_transport(self, mailer_config):
        repository = Mock()
        repository.update_fields.side_effect = PersistenceError("connection refused")
        transport = Mock()
        mailer = TokenMailer(repository, transport, mailer_config)

        with pytest.raises(PersistenceError):
            mailer.send_email("a@x.com", EmailType.RESET, "u1")

        transport.send.assert_not_called()

    def test_persistence_failure_metric(self, mailer):
        before = ACCOUNT_EMAILS_FAILED.labels(email_type="RESET", stage="persistence")._value.get()
        with pytest.raises(PersistenceError):
            mailer.send_email("a@x.com", EmailType.RESET, "missing")
        after = ACCOUNT_EMAILS_FAILED.labels(email_type="RESET", stage="persistence")._value.get()

        assert after == before + 1

    def test_delivery_failure_raises_and_keeps_token(
        self, repository, failing_transport, mailer_config, customer, db_session
    ):
        mailer = TokenMailer(repository, failing_transport, mailer_config)

        with pytest.raises(DeliveryError, match="relay refused"):
            mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        db_session.refresh(customer)
        assert customer.verify_token is not None
        assert customer.verify_token_expiry is not None

    def test_delivery_failure_is_issuance_error(
        self, repository, failing_transport, mailer_config, customer
    ):
        mailer = TokenMailer(repository, failing_transport, mailer_config)

        with pytest.raises(TokenIssuanceError):
            mailer.send_email(customer.email, EmailType.RESET, customer.id)

    def test_no_retry_on_delivery_failure(self, repository, mailer_config, customer):
        transport = Mock()
        transport.send.side_effect = DeliveryError("timeout", transport="smtp")
        mailer = TokenMailer(repository, transport, mailer_config)

        with pytest.raises(DeliveryError):
            mailer.send_email(customer.email, EmailType.VERIFY, customer.id)

        assert transport.send.call_count == 1


class TestMailerConfig:
    """Test MailerConfig construction"""

    def test_from_settings(self):
        settings = Mock()
        settings.frontend_store_url = "https://store.example.org"
        settings.mail_from = "hello@store.example.org"
        settings.token_expiry_minutes = 30

        config = MailerConfig.from_settings(settings)

        assert config.frontend_base_url == "https://store.example.org"
        assert config.from_address == "hello@store.example.org"
        assert config.token_ttl == timedelta(minutes=30)
