"""Configuration management for the account proxy service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_REGION = "ap-south-1"
# App client registered for the production user pool.
DEFAULT_CLIENT_ID = "3sj9a6lhd7nppmrdiv0js1511g"


class ConfigError(ValueError):
    """Raised when the service configuration is invalid."""


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the accounts database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "accounts.sqlite3").resolve(strict=False)


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid port value {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ConfigError(f"Port {port} is out of range")
    return port


@dataclass(frozen=True)
class ServiceConfig:
    """Settings shared by the identity client, the store and the HTTP server."""

    region: str = DEFAULT_REGION
    client_id: str = DEFAULT_CLIENT_ID
    client_secret: Optional[str] = None
    endpoint_url: Optional[str] = None
    database_path: Path = resolve_database_path(None)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if not self.client_id.strip():
            raise ConfigError("Cognito app client id must not be empty")
        if not self.region.strip():
            raise ConfigError("Cognito region must not be empty")

    def with_overrides(self, **changes: object) -> "ServiceConfig":
        """Return a copy with the non-``None`` values in ``changes`` applied."""

        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from the nested YAML layout."""

        server = data.get("server") or {}
        cognito = data.get("cognito") or {}
        database = data.get("database") or {}
        for name, section in (("server", server), ("cognito", cognito), ("database", database)):
            if not isinstance(section, dict):
                raise ConfigError(f"Configuration section '{name}' must be a mapping")

        values: Dict[str, object] = {}
        if _clean(server.get("host")):
            values["host"] = _clean(server["host"])
        if server.get("port") is not None:
            values["port"] = _parse_port(server["port"])
        for key in ("region", "client_id", "client_secret", "endpoint_url"):
            cleaned = _clean(cognito.get(key))
            if cleaned:
                values[key] = cleaned

        raw_path = _clean(database.get("path"))
        if raw_path:
            path = Path(raw_path).expanduser()
            if not path.is_absolute() and base_path is not None:
                path = base_path / path
            values["database_path"] = path.resolve(strict=False)

        return ServiceConfig(**values)


def load_config_file(config_path: Path) -> ServiceConfig:
    """Load settings from a YAML file."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")
    return ServiceConfig.from_dict(raw, base_path=config_path.parent)


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """Build the service configuration from the environment.

    Values from the YAML file named by ``ACCOUNTS_CONFIG`` are applied first,
    then individual environment variables override them.
    """

    env = os.environ if environ is None else environ

    config_file = _clean(env.get("ACCOUNTS_CONFIG"))
    if config_file:
        config = load_config_file(Path(config_file).expanduser())
    else:
        config = ServiceConfig()

    port_env = _clean(env.get("PORT"))
    db_env = _clean(env.get("ACCOUNTS_DB_PATH"))

    return config.with_overrides(
        host=_clean(env.get("ACCOUNTS_HOST")),
        port=_parse_port(port_env) if port_env else None,
        region=_clean(env.get("ACCOUNTS_COGNITO_REGION")),
        client_id=_clean(env.get("ACCOUNTS_COGNITO_CLIENT_ID")),
        client_secret=_clean(env.get("ACCOUNTS_COGNITO_CLIENT_SECRET")),
        endpoint_url=_clean(env.get("ACCOUNTS_COGNITO_ENDPOINT_URL")),
        database_path=resolve_database_path(db_env) if db_env else None,
    )


__all__ = [
    "ConfigError",
    "DEFAULT_CLIENT_ID",
    "DEFAULT_PORT",
    "DEFAULT_REGION",
    "ServiceConfig",
    "load_config",
    "load_config_file",
    "resolve_database_path",
]
