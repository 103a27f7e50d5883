"""
Custom exceptions for the clinic records core.
Centralized error taxonomy shared by entities, repositories and services.
"""

from typing import Optional


class FivetError(Exception):
    """Base class for every error raised by the records core."""

    pass


class DomainValidationError(FivetError):
    """
    Raised by an entity constructor when a field breaks a domain rule.
    Never reaches the repository layer.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class MissingFieldError(DomainValidationError):
    """A required field is absent."""

    pass


class InvalidFormatError(DomainValidationError):
    """A pattern-checked field (rut, phone, email, enum) does not match."""

    pass


class OutOfRangeError(DomainValidationError):
    """A bounded field (length, date window, vital sign) is outside policy."""

    pass


class InvalidArgumentError(FivetError):
    """Absent or malformed input at a search or repository entry point."""

    pass


class NotFoundError(FivetError):
    """A lookup that requires an existing record found none."""

    pass


class RepositoryError(FivetError):
    """Base class for backing-store failures surfaced by a repository."""

    pass


class DuplicateKeyError(RepositoryError):
    """A uniqueness constraint was violated on create or update."""

    pass


class StorageError(RepositoryError):
    """
    Any other backing-store fault (connectivity, serialization, constraint).
    The original SQLAlchemy exception is kept as ``__cause__``.
    """

    pass
