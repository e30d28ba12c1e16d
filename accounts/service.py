"""HTTP API that proxies account operations to the identity provider."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from functools import partial
from typing import Any, Dict, Optional

import anyio
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import ServiceConfig, load_config
from .database import Database
from .errors import AccountError, DuplicateError, NotFoundError
from .identity import IdentityProviderClient
from .models import User
from .registration import AccountService

logger = logging.getLogger("accounts.service")


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be empty")
    return stripped


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, max_length=320)

    @field_validator("username", "email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return _strip_required(value)


class ConfirmRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    code: str = Field(..., min_length=1, max_length=64)

    @field_validator("username", "code")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return _strip_required(value)


class ResendCodeRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return _strip_required(value)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return _strip_required(value)


class UserPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str
    email: str
    confirmed_at: Optional[datetime] = Field(default=None, serialization_alias="confirmedAt")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")


def user_to_payload(user: User) -> Dict[str, Any]:
    payload = UserPayload(
        id=user.id,
        username=user.username,
        email=user.email,
        confirmed_at=user.confirmed_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
    return payload.model_dump(mode="json", by_alias=True)


def _success(status_code: int, message: str, data: Any = None) -> JSONResponse:
    content: Dict[str, Any] = {"message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


def _failure(status_code: int, message: str, exc: Optional[Exception] = None) -> JSONResponse:
    content: Dict[str, Any] = {"message": message}
    if exc is not None:
        content["error"] = exc.message if isinstance(exc, AccountError) else str(exc)
    return JSONResponse(status_code=status_code, content=content)


def _log_store_error(action: str, exc: Exception) -> None:
    logger.error("Store failure while %s: %s", action, exc, exc_info=exc)


def create_app(
    *,
    config: Optional[ServiceConfig] = None,
    database: Optional[Database] = None,
    identity: Optional[IdentityProviderClient] = None,
) -> FastAPI:
    """Build the FastAPI application wired to the store and identity provider."""

    if config is None:
        config = load_config()
    if database is None:
        database = Database(config.database_path)
    database.initialize()
    if identity is None:
        identity = IdentityProviderClient(config)

    accounts = AccountService(database, identity)

    app = FastAPI(
        title="Account Proxy API",
        version="1.0.0",
        description="Registers, confirms and authenticates users against Cognito "
        "while mirroring them in a local table.",
        docs_url="/api-docs",
        redoc_url=None,
    )
    app.state.config = config
    app.state.database = database
    app.state.accounts = accounts

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/register", status_code=status.HTTP_201_CREATED)
    async def register(request: RegisterRequest) -> JSONResponse:
        try:
            user = await anyio.to_thread.run_sync(
                partial(accounts.register, request.username, request.password, request.email)
            )
        except DuplicateError as exc:
            return _failure(status.HTTP_409_CONFLICT, exc.message)
        except AccountError as exc:
            return _failure(status.HTTP_400_BAD_REQUEST, "Failed to register user", exc)
        except sqlite3.Error as exc:
            _log_store_error("registering", exc)
            return _failure(status.HTTP_400_BAD_REQUEST, "Failed to register user", exc)

        return _success(
            status.HTTP_201_CREATED,
            "User registered successfully",
            user_to_payload(user),
        )

    @app.post("/confirm-user")
    async def confirm_user(request: ConfirmRequest) -> JSONResponse:
        try:
            response = await anyio.to_thread.run_sync(
                partial(accounts.confirm, request.username, request.code)
            )
        except AccountError as exc:
            return _failure(status.HTTP_400_BAD_REQUEST, "Failed to confirm user", exc)
        except sqlite3.Error as exc:
            _log_store_error("confirming", exc)
            return _failure(status.HTTP_400_BAD_REQUEST, "Failed to confirm user", exc)

        return _success(status.HTTP_200_OK, "User confirmed successfully", response)

    @app.post("/resend-confirmation-code")
    async def resend_confirmation_code(request: ResendCodeRequest) -> JSONResponse:
        try:
            response = await anyio.to_thread.run_sync(
                partial(accounts.resend_confirmation_code, request.username)
            )
        except AccountError as exc:
            return _failure(
                status.HTTP_400_BAD_REQUEST, "Failed to resend confirmation code", exc
            )

        return _success(status.HTTP_200_OK, "Confirmation code resent successfully", response)

    @app.post("/login")
    async def login(request: LoginRequest) -> JSONResponse:
        try:
            response = await anyio.to_thread.run_sync(
                partial(accounts.login, request.username, request.password)
            )
        except AccountError as exc:
            return _failure(status.HTTP_401_UNAUTHORIZED, "Login failed", exc)

        return _success(status.HTTP_200_OK, "User logged in successfully", response)

    @app.delete("/delete-user/{username}")
    async def delete_user(username: str) -> JSONResponse:
        try:
            await anyio.to_thread.run_sync(partial(accounts.delete, username))
        except NotFoundError as exc:
            return _failure(status.HTTP_404_NOT_FOUND, exc.message)
        except (AccountError, sqlite3.Error) as exc:
            _log_store_error("deleting", exc)
            return _failure(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete user", exc
            )

        return _success(status.HTTP_200_OK, "User deleted successfully")

    return app


__all__ = ["create_app", "user_to_payload"]
