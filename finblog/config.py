from __future__ import annotations

import os
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the auth service."""

    base_url: str = env_field(
        "http://localhost:8000",
        "BASE_URL",
        description="Public URL of the blog; OAuth callbacks and the session cookie domain derive from it",
    )
    listen_addr: str = env_field("0.0.0.0:8000", "AUTH_LISTEN_ADDR")

    # Session store
    redis_url: str = env_field("redis://localhost:6379/0", "REDIS_URL")
    redis_pool_size: int = env_field(
        10, "REDIS_POOL_SIZE", description="Maximum concurrent Redis connections"
    )
    redis_pool_timeout: float = env_field(
        30.0,
        "REDIS_POOL_TIMEOUT",
        description="Seconds a caller waits for a free pooled connection",
    )
    redis_socket_timeout: float = env_field(5.0, "REDIS_SOCKET_TIMEOUT")
    session_ttl_seconds: int = env_field(
        24 * 60 * 60, "SESSION_TTL_SECONDS", description="Lifetime of a login session"
    )
    session_key_prefix: str = env_field("auth:session:", "SESSION_KEY_PREFIX")
    use_memory_store: bool = env_field(False, "USE_MEMORY_STORE")

    # GitHub OAuth
    gh_client_id: str = env_field("", "GH_CLIENT_ID")
    gh_client_secret: str = env_field("", "GH_CLIENT_SECRET")
    gh_org: str = env_field(
        "", "GH_ORG", description="Organization whose members may log in"
    )
    github_url: str = env_field("https://github.com", "GITHUB_URL")
    github_api_url: str = env_field("https://api.github.com", "GITHUB_API_URL")
    github_timeout_seconds: float = env_field(
        10.0,
        "GITHUB_TIMEOUT_SECONDS",
        description="Upper bound for each outbound call to GitHub",
    )

    cookie_name: str = env_field("sid", "COOKIE_NAME")

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("base_url", "github_url", "github_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator(
        "redis_pool_size",
        "redis_pool_timeout",
        "redis_socket_timeout",
        "session_ttl_seconds",
        "github_timeout_seconds",
    )
    @classmethod
    def _ensure_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("cookie_name")
    @classmethod
    def _ensure_cookie_name(cls, value: str) -> str:
        if not value:
            raise ValueError("cookie name must not be empty")
        return value


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
