from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from asset_proxy.core.errors import StartupConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True, populate_by_name=True)

    assets_api_host: str = Field(validation_alias="ASSETS_API_HOST")
    resizer_api_host: str = Field(validation_alias="RESIZER_API_HOST")

    upstream_timeout_seconds: float = Field(default=10.0, gt=0, validation_alias="UPSTREAM_TIMEOUT_SECONDS")
    upstream_max_connections: int = Field(default=100, gt=0, validation_alias="UPSTREAM_MAX_CONNECTIONS")

    server_host: str = Field(default="0.0.0.0", validation_alias="SERVER_HOST")
    server_port: int = Field(default=8080, validation_alias="SERVER_PORT")
    shutdown_grace_seconds: int = Field(default=10, ge=0, validation_alias="SHUTDOWN_GRACE_SECONDS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("assets_api_host", "resizer_api_host")
    @classmethod
    def _require_host(cls, v: str) -> str:
        v = str(v or "").strip().rstrip("/")
        if not v:
            raise ValueError("required")
        return v


def _env_name(loc: tuple[Any, ...]) -> str:
    name = str(loc[0]) if loc else "configuration"
    field = Settings.model_fields.get(name)
    if field is not None and isinstance(field.validation_alias, str):
        return field.validation_alias
    return name


def load_settings(**overrides: Any) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        err = e.errors()[0]
        env_name = _env_name(tuple(err.get("loc") or ()))
        if err.get("type") == "missing" or str(err.get("msg") or "").endswith("required"):
            raise StartupConfigError(f"{env_name} environment variable is required") from e
        raise StartupConfigError(f"{env_name} is invalid: {err.get('msg')}") from e
