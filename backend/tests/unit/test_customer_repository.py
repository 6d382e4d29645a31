"""Unit tests for customer repository"""
import pytest
from datetime import datetime
from unittest.mock import Mock
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from storeadmin.models import Customer, EmailType
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import PersistenceError


@pytest.fixture
def repository(db_session):
    return CustomerRepository(db_session)


class TestLookups:
    """Test customer lookups"""

    def test_get_by_id(self, repository, customer):
        assert repository.get_by_id(customer.id).email == "customer@example.com"

    def test_get_by_id_missing(self, repository):
        assert repository.get_by_id("missing") is None

    def test_get_by_email_is_case_insensitive(self, repository, customer):
        found = repository.get_by_email("  Customer@Example.COM ")

        assert found is not None
        assert found.id == customer.id

    def test_get_by_email_missing(self, repository, customer):
        assert repository.get_by_email("nobody@example.com") is None

    def test_get_by_token_hash_uses_purpose_column(self, repository, make_customer):
        holder = make_customer(email="holder@example.com", forgot_password_token="a" * 64)

        assert repository.get_by_token_hash(EmailType.RESET, "a" * 64).id == holder.id
        assert repository.get_by_token_hash(EmailType.VERIFY, "a" * 64) is None


class TestUpdateFields:
    """Test atomic field updates"""

    def test_update_sets_fields(self, repository, customer, db_session):
        expiry = datetime(2026, 1, 15, 13, 0, 0)

        repository.update_fields(customer.id, {
            "verify_token": "b" * 64,
            "verify_token_expiry": expiry,
        })

        db_session.refresh(customer)
        assert customer.verify_token == "b" * 64
        assert customer.verify_token_expiry == expiry

    def test_update_can_clear_fields(self, repository, make_customer, db_session):
        customer = make_customer(
            verify_token="c" * 64, verify_token_expiry=datetime(2026, 1, 1)
        )

        repository.update_fields(customer.id, {"verify_token": None, "verify_token_expiry": None})

        db_session.refresh(customer)
        assert customer.verify_token is None
        assert customer.verify_token_expiry is None

    def test_update_unknown_customer(self, repository):
        with pytest.raises(PersistenceError, match="not found"):
            repository.update_fields("missing", {"verify_token": "x"})

    def test_update_rejects_protected_fields(self, repository, customer):
        with pytest.raises(ValueError, match="email"):
            repository.update_fields(customer.id, {"email": "attacker@example.com"})

    def test_update_leaves_other_customers_alone(self, repository, make_customer, db_session):
        first = make_customer(email="first@example.com")
        second = make_customer(email="second@example.com")

        repository.update_fields(first.id, {"forgot_password_token": "d" * 64})

        db_session.refresh(second)
        assert second.forgot_password_token is None

    def test_database_error_rolls_back(self):
        db = Mock()
        db.query.return_value.filter.return_value.update.side_effect = OperationalError(
            "UPDATE customers", {}, Exception("server closed the connection")
        )
        repository = CustomerRepository(db)

        with pytest.raises(PersistenceError, match="Failed to update"):
            repository.update_fields("u1", {"verify_token": "x"})

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_commit_error_rolls_back(self):
        db = Mock()
        db.query.return_value.filter.return_value.update.return_value = 1
        db.commit.side_effect = SQLAlchemyError("deadlock detected")
        repository = CustomerRepository(db)

        with pytest.raises(PersistenceError, match="deadlock"):
            repository.update_fields("u1", {"verify_token": "x"})

        db.rollback.assert_called_once()
