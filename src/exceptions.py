"""
Exception hierarchy for habit-quest

Every error carries a request id, the failing operation and a message that is
safe to show to the user, and is logged once when it is created.

Refusals that the presentation layer is expected to handle (empty habit name,
no free slot, missing habit or profile) are NOT exceptions: the lifecycle
operations report them through their return values.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)

DEFAULT_USER_MESSAGE = "Something went wrong. Please try again."


class HabitQuestError(Exception):
    """
    Base exception for all habit-quest errors

    Example:
        raise HabitQuestError(
            message="Failed to award XP",
            user_id="uid-123",
            operation="award_xp",
            context={"gain": 10}
        )
    """

    # Subclasses describing caller mistakes log below ERROR
    log_level = logging.ERROR
    default_user_message = DEFAULT_USER_MESSAGE

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.cause = cause
        self.context = dict(context or {})
        self.request_id = request_id or uuid4().hex
        self.user_message = user_message or self.default_user_message
        self.timestamp = datetime.now(timezone.utc)

        self._log()

    def _log(self) -> None:
        details = {
            "error_type": type(self).__name__,
            # 'message' is reserved on LogRecord
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
        }
        if self.cause is not None:
            details["cause"] = repr(self.cause)
        logger.log(
            self.log_level,
            f"{type(self).__name__} in {self.operation or 'unknown operation'}: {self.message}",
            extra=details,
            exc_info=self.cause,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(HabitQuestError):
    """An argument is outside its contract (e.g. a negative XP gain)"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        super().__init__(message, context={"field": field, "value": value}, **kwargs)


# ==========================================
# Store errors
# ==========================================

class DatabaseError(HabitQuestError):
    """Base class for profile/habit store failures"""

    default_user_message = "Your progress could not be loaded or saved. Please try again."


class ConnectionError(DatabaseError):
    """The store could not be reached"""

    default_user_message = "The habit store is unavailable right now. Please try again in a moment."

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message, **kwargs)


class QueryError(DatabaseError):
    """A statement against the store failed"""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        self.query = query
        kwargs["context"] = {"query": query, **(kwargs.get("context") or {})}
        super().__init__(message, **kwargs)


class StoreDecodeError(DatabaseError):
    """A stored record or change notification did not match its schema"""

    default_user_message = "Some of your saved data could not be read."

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        payload: Optional[Any] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.payload = payload
        kwargs["context"] = {
            "record_type": record_type,
            "payload": repr(payload)[:200],
            **(kwargs.get("context") or {}),
        }
        super().__init__(message, **kwargs)


class ConfigurationError(HabitQuestError):
    """Settings are missing or inconsistent"""

    default_user_message = "The service is misconfigured."

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        self.config_key = config_key
        super().__init__(message, context={"config_key": config_key}, **kwargs)


def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> HabitQuestError:
    """
    Map a third-party exception onto the habit-quest hierarchy

    psycopg.OperationalError -> ConnectionError, any other psycopg.Error ->
    QueryError, habit-quest errors are returned unchanged and anything else
    becomes a plain HabitQuestError.

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="insert_habit", user_id="uid-123")
    """
    import psycopg

    if isinstance(error, HabitQuestError):
        return error

    details = dict(user_id=user_id, operation=operation, context=context, cause=error)
    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(f"Database connection failed: {error}", **details)
    if isinstance(error, psycopg.Error):
        return QueryError(f"Database query failed: {error}", **details)
    return HabitQuestError(f"{operation} failed: {error}", **details)
