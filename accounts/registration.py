"""Account workflows that keep the local mirror in step with Cognito."""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict

from .database import Database
from .errors import ConstraintError, DuplicateError, NotFoundError
from .identity import IdentityProviderClient
from .models import User

logger = logging.getLogger("accounts.registration")


class AccountService:
    """Coordinate identity provider calls with the mirrored ``users`` table.

    The remote and local writes are not transactional. A registration that
    succeeds remotely but fails to store its local record leaves the remote
    account behind; nothing here reconciles the two.
    """

    def __init__(self, database: Database, identity: IdentityProviderClient) -> None:
        self._database = database
        self._identity = identity

    def register(self, username: str, password: str, email: str) -> User:
        """Create the remote account, then the local record, in that order."""

        if self._database.get_user_by_email(email) is not None:
            raise DuplicateError("User with this email already exists")

        self._identity.create_account(username, password, email)

        try:
            user = self._database.create_user(username, email)
        except (ConstraintError, sqlite3.Error):
            logger.warning(
                "Remote account %s was created but the local record could not be stored",
                username,
            )
            raise

        logger.info("Registered user %s (#%s)", user.username, user.id)
        return user

    def confirm(self, username: str, code: str) -> Dict[str, Any]:
        """Confirm the remote account and stamp the local record."""

        response = self._identity.confirm_account(username, code)
        try:
            self._database.mark_confirmed(username)
        except NotFoundError:
            logger.warning("Remote account %s confirmed without a local record", username)
            raise

        logger.info("Confirmed user %s", username)
        return response

    def resend_confirmation_code(self, username: str) -> Dict[str, Any]:
        return self._identity.resend_confirmation_code(username)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self._identity.authenticate(username, password)

    def delete(self, username: str) -> None:
        """Remove the local record only; the remote account is left intact."""

        user = self._database.get_user_by_username(username)
        if user is None:
            raise NotFoundError("User not found")

        self._database.delete_user(user.username)
        logger.info("Deleted local record for %s (#%s)", user.username, user.id)


__all__ = ["AccountService"]
