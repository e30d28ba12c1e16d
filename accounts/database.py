"""SQLite-backed mirror of the identity provider's user accounts."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import ConstraintError, NotFoundError
from .models import User

logger = logging.getLogger("accounts.database")

_LOOKUP_FIELDS = frozenset({"id", "username", "email"})


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for the mirrored ``users`` table."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    confirmed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_user_by(self, field: str, value: object) -> Optional[User]:
        """Return the user whose unique ``field`` equals ``value``."""

        if field not in _LOOKUP_FIELDS:
            raise ValueError(f"Cannot look up users by {field!r}")

        with self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM users WHERE {field} = ?",
                (value,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user(self, user_id: int) -> Optional[User]:
        return self.find_user_by("id", user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.find_user_by("email", email)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.find_user_by("username", username)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_user(self, username: str, email: str) -> User:
        """Insert a new, unconfirmed user record."""

        normalized_username = username.strip()
        normalized_email = email.strip()
        if not normalized_username:
            raise ValueError("Username must not be empty")
        if not normalized_email:
            raise ValueError("Email must not be empty")

        created_at = _current_timestamp()
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (username, email, confirmed_at, created_at, updated_at)
                    VALUES (?, ?, NULL, ?, ?)
                    """,
                    (
                        normalized_username,
                        normalized_email,
                        _serialize_datetime(created_at),
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConstraintError(_describe_integrity_error(exc)) from exc
            user_id = cursor.lastrowid

        logger.debug("Stored local record #%s for %s", user_id, normalized_username)
        return User(
            id=user_id,
            username=normalized_username,
            email=normalized_email,
            confirmed_at=None,
            created_at=created_at,
            updated_at=created_at,
        )

    def mark_confirmed(self, username: str, *, confirmed_at: Optional[datetime] = None) -> User:
        """Stamp the confirmation time on an existing record.

        A record that is already confirmed keeps its original timestamp.
        """

        timestamp = confirmed_at or _current_timestamp()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE users SET confirmed_at = ?, updated_at = ?
                WHERE username = ? AND confirmed_at IS NULL
                """,
                (
                    _serialize_datetime(timestamp),
                    _serialize_datetime(_current_timestamp()),
                    username,
                ),
            )

        refreshed = self.get_user_by_username(username)
        if refreshed is None:
            raise NotFoundError("User not found")
        return refreshed

    def delete_user(self, username: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM users WHERE username = ?",
                (username,),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            confirmed_at=_parse_datetime(row["confirmed_at"]),
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )


def _describe_integrity_error(exc: sqlite3.IntegrityError) -> str:
    message = str(exc)
    if "users.username" in message:
        return "A user with that username already exists"
    if "users.email" in message:
        return "A user with that email already exists"
    return message


__all__ = ["Database"]
