"""
Tests for the transaction() unit-of-work context manager.
"""
import logging
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from cbt.core.db_error_handling import transaction
from cbt.core.exceptions import (
    AlreadyActiveError,
    StoreUnavailableError,
)


def create_mock_db():
    """Create a MagicMock that passes isinstance(mock, Session) check."""
    return MagicMock(spec=Session)


class TestTransaction:
    """Tests for the transaction context manager."""

    def test_commits_on_success(self):
        db = create_mock_db()

        with transaction(db, "test operation") as session:
            assert session is db

        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_domain_error_rolls_back_and_propagates(self):
        db = create_mock_db()

        with pytest.raises(AlreadyActiveError):
            with transaction(db, "activate test code"):
                raise AlreadyActiveError()

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_sqlalchemy_error_becomes_store_unavailable(self):
        db = create_mock_db()
        original = OperationalError("SELECT 1", {}, Exception("server closed"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            with transaction(db, "activate test code"):
                raise original

        error = exc_info.value
        assert error.status_code == 503
        assert error.operation_name == "activate test code"
        assert error.original_error is original
        assert error.__cause__ is original
        assert error.message == "Failed to activate test code. Please try again later."
        assert "server closed" not in error.message
        db.rollback.assert_called_once()

    def test_commit_failure_is_translated(self):
        db = create_mock_db()
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(StoreUnavailableError):
            with transaction(db, "submit test"):
                pass

        db.rollback.assert_called_once()

    def test_unexpected_error_rolls_back_and_propagates(self):
        db = create_mock_db()

        with pytest.raises(ValueError, match="bad value"):
            with transaction(db, "generate test codes"):
                raise ValueError("bad value")

        db.rollback.assert_called_once()

    def test_store_failure_is_logged_at_requested_level(self):
        db = create_mock_db()

        with patch("cbt.core.db_error_handling.logger") as mock_logger:
            with pytest.raises(StoreUnavailableError):
                with transaction(db, "start test", log_level=logging.WARNING):
                    raise SQLAlchemyError("timeout")

        args, kwargs = mock_logger.log.call_args
        assert args[0] == logging.WARNING
        assert "start test" in args[1]
        assert kwargs["exc_info"] is True
