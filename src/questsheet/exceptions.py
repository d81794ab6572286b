"""
QuestSheet - Custom Exceptions.

Centralized exception handling with standardized error responses.
Every exception here is caller-facing and maps to one HTTP status;
store-level failures live in ``questsheet.core.store``.
"""

from typing import Any


class QuestSheetException(Exception):
    """Base exception for QuestSheet application."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationException(QuestSheetException):
    """Raised for missing or malformed input. Never retried."""

    def __init__(self, message: str = "Required fields are missing", code: str = "missing_fields", fields: list[str] | None = None):
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details={"fields": fields} if fields else None,
        )


class NotFoundException(QuestSheetException):
    """Raised when a task or player is absent."""

    def __init__(self, resource_type: str, resource_id: str, code: str = "NOT_FOUND"):
        super().__init__(
            code=code,
            message=f"{resource_type} not found: {resource_id}",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class NotRegisteredException(NotFoundException):
    """Raised when mission progress is recorded for an unknown sid."""

    def __init__(self, sid: str):
        super().__init__("player", sid, code="NOT_REGISTERED")


class ConflictException(QuestSheetException):
    """Raised when a write would break the sid/name pairing. Requires human resolution."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class RegisterMismatchException(ConflictException):
    """The sid or the name is already registered, but not as this pair."""

    def __init__(self, sid_taken: bool, name_taken: bool):
        super().__init__(
            code="REGISTER_MISMATCH",
            message="Already registered: student id and name do not match",
            details={"sid_taken": sid_taken, "name_taken": name_taken},
        )


class NameMismatchException(ConflictException):
    """The sid is registered under a different name."""

    def __init__(self, sid: str):
        super().__init__(
            code="NAME_MISMATCH",
            message=f"Name does not match the registration for {sid}",
        )


class UnsupportedMissionException(QuestSheetException):
    """Raised for a mission identifier with no column mapping."""

    def __init__(self, mission: str, supported: list[str]):
        super().__init__(
            code="MISSION_UNSUPPORTED",
            message=f"Mission '{mission}' is not supported",
            status_code=400,
            details={"mission": mission, "supported": supported},
        )


class StoreOperationException(QuestSheetException):
    """Raised when a synchronous store round-trip fails. Not retried server-side."""

    def __init__(self, code: str, message: str, operation: str | None = None):
        super().__init__(
            code=code,
            message=message,
            status_code=500,
            details={"operation": operation} if operation else None,
        )
