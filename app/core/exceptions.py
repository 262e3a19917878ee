"""
Error taxonomy for the dynamic table layer.

Input-validation errors are always recoverable by the caller fixing the input.
Persistence errors carry the engine's own message in ``detail``.
"""

from typing import Optional


class DynamicoError(Exception):
    """Base class for every error raised by the core."""


# =========================
# Input validation
# =========================
class ValidationFailed(DynamicoError):
    pass


class InvalidIdentifier(ValidationFailed):
    pass


class ReservedWord(ValidationFailed):
    pass


class InvalidDataType(ValidationFailed):
    pass


class EmptyPayload(ValidationFailed):
    pass


# =========================
# Authorization
# =========================
class AccessDenied(DynamicoError):
    def __init__(self, table_name: str, reason: Optional[str] = None):
        self.table_name = table_name
        message = f"Access denied to table '{table_name}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


# =========================
# Persistence
# =========================
class PersistenceError(DynamicoError):
    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StatementFailed(PersistenceError):
    pass


class SchemaCreationFailed(PersistenceError):
    pass


class DuplicateTable(PersistenceError):
    pass
