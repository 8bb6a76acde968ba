"""Exception hierarchy for sharedbloom.

Every error raised by a filter operation carries the filter name and the
operation that failed once it has passed through the filter facade.
"""

from __future__ import annotations


class SharedBloomError(Exception):
    """Base exception for all sharedbloom errors."""

    def __init__(self, message: str, *, filter_name: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.message = message
        self.filter_name = filter_name
        self.operation = operation

    def annotate(self, filter_name: str, operation: str) -> None:
        """Attach the filter name and operation, keeping any already set."""
        if self.filter_name is None:
            self.filter_name = filter_name
        if self.operation is None:
            self.operation = operation

    def __str__(self) -> str:
        prefix = ""
        if self.filter_name is not None:
            prefix += f"{self.filter_name}: "
        if self.operation is not None:
            prefix += f"{self.operation}: "
        return prefix + self.message


class ConfigError(SharedBloomError):
    """Raised for invalid sizing parameters or an unusable store."""
    pass


class EncodingError(SharedBloomError):
    """Raised when an element cannot be serialized for hashing."""
    pass


class StoreError(SharedBloomError):
    """Raised when the backing store fails or aborts a transaction."""
    pass


class UnderflowError(SharedBloomError):
    """Raised when a removal would drive a counter below zero."""
    pass


class ConsistencyError(SharedBloomError):
    """Raised when a persisted filter disagrees with the caller's sizing."""
    pass
