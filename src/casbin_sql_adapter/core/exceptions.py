"""Adapter exception hierarchy."""

from __future__ import annotations

from typing import Optional


class AdapterError(Exception):
    """Base exception for all adapter errors."""


class StorageError(AdapterError):
    """Raised when a storage operation still fails after every retry."""

    def __init__(self, message: str, attempts: Optional[int] = None):
        self.attempts = attempts
        super().__init__(message)


class SchemaError(AdapterError):
    """Raised when the rule table cannot be provisioned for the connected database."""


class InvalidFilterError(AdapterError, TypeError):
    """Raised when a filtered load receives something that is not a filter."""


class RemovePolicyError(AdapterError):
    """Raised when a removal deletes fewer rows than required."""

    def __init__(self, operation: str, expected: int, actual: int):
        self.operation = operation
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{operation} error, removed {actual} rows, expected at least {expected} rows"
        )
