"""Common exceptions for vector index integrations."""
from __future__ import annotations


class VectorStoreUnavailableError(RuntimeError):
    """Raised when the vector index backend cannot be initialised or queried."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause
