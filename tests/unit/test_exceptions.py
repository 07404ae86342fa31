"""Unit tests for custom exception hierarchy"""
import pytest
import psycopg
from datetime import datetime
from src.exceptions import (
    HabitQuestError,
    ValidationError,
    DatabaseError,
    ConnectionError,
    QueryError,
    StoreDecodeError,
    ConfigurationError,
    DEFAULT_USER_MESSAGE,
    wrap_external_exception
)


class TestHabitQuestError:
    """Test base exception class"""

    def test_basic_exception(self):
        error = HabitQuestError("Test error")
        assert error.message == "Test error"
        assert error.user_message == DEFAULT_USER_MESSAGE
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)

    def test_exception_with_context(self):
        error = HabitQuestError(
            message="Award failed",
            user_id="user-123",
            operation="award_xp",
            context={"gain": 10},
            user_message="Could not update your XP"
        )
        assert error.user_id == "user-123"
        assert error.operation == "award_xp"
        assert error.context["gain"] == 10
        assert error.user_message == "Could not update your XP"

    def test_to_dict(self):
        error = HabitQuestError("Test error", request_id="req-1")
        data = error.to_dict()

        assert data["error"] == "HabitQuestError"
        assert data["message"] == "Test error"
        assert data["request_id"] == "req-1"
        assert "timestamp" in data

    def test_exception_is_logged(self, caplog):
        with caplog.at_level("ERROR", logger="src.exceptions"):
            HabitQuestError("Logged error")

        assert "HabitQuestError in unknown operation: Logged error" in caplog.text


class TestValidationError:

    def test_field_and_value(self):
        error = ValidationError("XP gain must not be negative", field="gain", value=-5)
        assert error.field == "gain"
        assert error.value == -5
        assert error.context == {"field": "gain", "value": -5}
        assert "gain" in error.user_message


class TestDatabaseErrors:

    def test_connection_error(self):
        error = ConnectionError()
        assert isinstance(error, DatabaseError)
        assert "unavailable" in error.user_message

    def test_query_error_merges_context(self):
        error = QueryError("Query failed", query="SELECT 1", context={"table": "habits"})
        assert error.query == "SELECT 1"
        assert error.context == {"query": "SELECT 1", "table": "habits"}

    def test_store_decode_error_truncates_payload(self):
        error = StoreDecodeError("bad row", record_type="profile", payload={"blob": "x" * 1000})
        assert isinstance(error, DatabaseError)
        assert error.record_type == "profile"
        assert len(error.context["payload"]) == 200


class TestConfigurationError:

    def test_configuration_error(self):
        error = ConfigurationError("Missing DATABASE_URL", config_key="DATABASE_URL")
        assert error.config_key == "DATABASE_URL"
        assert error.context["config_key"] == "DATABASE_URL"


class TestWrapExternalException:
    """Test exception wrapping helper"""

    def test_wrap_generic_exception(self):
        original = ValueError("Invalid input")
        wrapped = wrap_external_exception(original, operation="process_data", user_id="user-123")

        assert type(wrapped) is HabitQuestError
        assert wrapped.cause == original
        assert wrapped.operation == "process_data"
        assert wrapped.user_id == "user-123"

    def test_wrap_psycopg_operational_error(self):
        original = psycopg.OperationalError("Connection refused")
        wrapped = wrap_external_exception(original, operation="connect_db")

        assert isinstance(wrapped, ConnectionError)
        assert wrapped.cause == original

    def test_wrap_psycopg_error(self):
        original = psycopg.Error("Query failed")
        wrapped = wrap_external_exception(original, operation="execute_query", context={"table": "profiles"})

        assert isinstance(wrapped, QueryError)
        assert wrapped.context["table"] == "profiles"

    def test_own_errors_pass_through(self):
        original = StoreDecodeError("bad row")
        assert wrap_external_exception(original, operation="get_profile") is original


class TestInheritance:

    @pytest.mark.parametrize("error_class", [
        ValidationError, DatabaseError, ConnectionError, QueryError,
        StoreDecodeError, ConfigurationError,
    ])
    def test_all_errors_derive_from_base(self, error_class):
        assert issubclass(error_class, HabitQuestError)
