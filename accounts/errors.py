"""Error kinds raised while proxying account operations."""
from __future__ import annotations

from typing import Optional


class AccountError(RuntimeError):
    """Base class for failures surfaced to HTTP clients."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProviderError(AccountError):
    """Raised when a call to the identity provider fails."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class ConstraintError(AccountError):
    """Raised when a local uniqueness constraint is violated."""


class DuplicateError(ConstraintError):
    """Raised when registration finds an existing record for the email."""


class NotFoundError(AccountError):
    """Raised when no local record matches the requested user."""


__all__ = [
    "AccountError",
    "ConstraintError",
    "DuplicateError",
    "NotFoundError",
    "ProviderError",
]
