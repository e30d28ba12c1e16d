"""Domain models for the mirrored user table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents a user record mirrored from the identity provider."""

    id: int
    username: str
    email: str
    confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None


__all__ = ["User"]
