"""Thin wrapper around the Cognito user pool API."""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import ServiceConfig
from .errors import ProviderError

logger = logging.getLogger("accounts.identity")


def compute_secret_hash(username: str, client_id: str, client_secret: str) -> str:
    """Return the ``SecretHash`` Cognito expects from app clients with a secret."""

    digest = hmac.new(
        client_secret.encode("utf-8"),
        (username + client_id).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _strip_metadata(response: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in response.items() if key != "ResponseMetadata"}


class IdentityProviderClient:
    """Forward account operations to Cognito using a fixed app client."""

    def __init__(self, config: ServiceConfig, *, client: Any = None) -> None:
        self._client_id = config.client_id
        self._client_secret = config.client_secret
        if client is None:
            client = boto3.client(
                "cognito-idp",
                region_name=config.region,
                endpoint_url=config.endpoint_url,
            )
        self._client = client

    @property
    def client_id(self) -> str:
        return self._client_id

    def _base_params(self, username: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {"ClientId": self._client_id, "Username": username}
        if self._client_secret:
            params["SecretHash"] = compute_secret_hash(
                username, self._client_id, self._client_secret
            )
        return params

    def _call(self, operation: str, username: str, **params: Any) -> Dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            response = method(**params)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code: Optional[str] = error.get("Code")
            message = error.get("Message") or str(exc)
            logger.warning("Cognito %s failed for %s (%s): %s", operation, username, code, message)
            raise ProviderError(message, code=code) from exc
        except BotoCoreError as exc:
            logger.warning("Cognito %s failed for %s: %s", operation, username, exc)
            raise ProviderError(str(exc)) from exc
        return _strip_metadata(response or {})

    def create_account(self, username: str, password: str, email: str) -> Dict[str, Any]:
        params = self._base_params(username)
        params["Password"] = password
        params["UserAttributes"] = [{"Name": "email", "Value": email}]
        return self._call("sign_up", username, **params)

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        auth_parameters = {"USERNAME": username, "PASSWORD": password}
        if self._client_secret:
            auth_parameters["SECRET_HASH"] = compute_secret_hash(
                username, self._client_id, self._client_secret
            )
        return self._call(
            "initiate_auth",
            username,
            AuthFlow="USER_PASSWORD_AUTH",
            ClientId=self._client_id,
            AuthParameters=auth_parameters,
        )

    def confirm_account(self, username: str, code: str) -> Dict[str, Any]:
        params = self._base_params(username)
        params["ConfirmationCode"] = code
        return self._call("confirm_sign_up", username, **params)

    def resend_confirmation_code(self, username: str) -> Dict[str, Any]:
        return self._call("resend_confirmation_code", username, **self._base_params(username))


__all__ = ["IdentityProviderClient", "compute_secret_hash"]
