"""Error kinds raised by the record store.

Every failure the store reports on purpose is a ``StoreError`` subclass with a
fixed ``kind``. Callers (the HTTP layer included) branch on ``kind`` and never
on message text.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    REFERENCE_VIOLATION = "reference_violation"
    CONSTRAINT_VIOLATION = "constraint_violation"
    DUPLICATE_KEY = "duplicate_key"
    EMPTY_UPDATE = "empty_update"
    EMPTY_INPUT = "empty_input"
    INVALID_ARGUMENT = "invalid_argument"
    CONNECTION_UNAVAILABLE = "connection_unavailable"


class StoreError(Exception):
    """Base class for every expected store failure."""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(StoreError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} not found",
            {"entity": entity.lower(), "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ReferenceViolation(StoreError):
    kind = ErrorKind.REFERENCE_VIOLATION


class ConstraintViolation(StoreError):
    kind = ErrorKind.CONSTRAINT_VIOLATION


class DuplicateKey(StoreError):
    kind = ErrorKind.DUPLICATE_KEY

    def __init__(self, field: str, value: Any = None):
        super().__init__(
            f"{field.capitalize()} already exists",
            {"field": field, "value": value},
        )
        self.field = field


class EmptyUpdate(StoreError):
    kind = ErrorKind.EMPTY_UPDATE

    def __init__(self, message: str = "No fields to update"):
        super().__init__(message)


class EmptyInput(StoreError):
    kind = ErrorKind.EMPTY_INPUT


class InvalidArgument(StoreError):
    kind = ErrorKind.INVALID_ARGUMENT


class ConnectionUnavailable(StoreError):
    kind = ErrorKind.CONNECTION_UNAVAILABLE

    def __init__(self, message: str = "Unable to connect to the database"):
        super().__init__(message)


def require_id(value: Any, entity: str) -> int:
    """Return ``value`` as a positive integer id or raise ``InvalidArgument``."""
    if isinstance(value, bool):
        raise InvalidArgument(f"Valid {entity.lower()} ID is required", {"id": value})
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Valid {entity.lower()} ID is required", {"id": value}) from None
    if ident <= 0 or (isinstance(value, float) and value != ident):
        raise InvalidArgument(f"Valid {entity.lower()} ID is required", {"id": value})
    return ident
