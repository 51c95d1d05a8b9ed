"""Exceptions raised by the repositories."""

from __future__ import annotations


class DataError(Exception):
    """Base exception for repository errors."""


class RecordNotFoundError(DataError):
    """Raised when no record matches the requested id."""


class EditConflictError(DataError):
    """Raised when a record changed since the caller read it."""


class DuplicateEmailError(DataError):
    """Raised when registering an email address that is already taken."""
