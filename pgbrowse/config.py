"""App configuration loading helpers."""

from __future__ import annotations

from datetime import datetime
import json
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .models import ConnectionProfile, new_profile_id

CONFIG_FILE = Path.home() / ".config" / "pgbrowse" / "config.toml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConnectionProfileConfig(BaseModel):
    """Connection profile stored in config.toml."""

    id: str = Field(default_factory=new_profile_id)
    name: str
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = "postgres"
    username: str = "postgres"
    password: str = ""
    use_tls: bool = False
    persist_password: bool = False
    last_used_at: datetime | None = None

    def to_profile(self) -> ConnectionProfile:
        return ConnectionProfile(
            id=self.id,
            name=self.name,
            host=self.host,
            port=self.port,
            database=self.database,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            persist_password=self.persist_password,
            last_used_at=self.last_used_at,
        )

    @classmethod
    def from_profile(cls, profile: ConnectionProfile) -> ConnectionProfileConfig:
        return cls(
            id=profile.id,
            name=profile.name,
            host=profile.host,
            port=profile.port,
            database=profile.database,
            username=profile.username,
            password=profile.password if profile.persist_password else "",
            use_tls=profile.use_tls,
            persist_password=profile.persist_password,
            last_used_at=profile.last_used_at,
        )


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    connect_timeout: float = Field(default=5.0, gt=0)
    page_size: int = Field(default=100, ge=1)
    log_level: str = "WARNING"
    log_file: str | None = None
    last_used_profile: str | None = None
    profiles: list[ConnectionProfileConfig] = Field(default_factory=lambda: list(_default_profiles()))

    def with_profiles(self, profiles: list[ConnectionProfileConfig]) -> AppConfig:
        """Return a copy with the profile list replaced."""

        return self.model_copy(update={"profiles": list(profiles)})

    def with_last_used(self, profile_id: str | None) -> AppConfig:
        """Return a copy with the last-used profile updated."""

        return self.model_copy(update={"last_used_profile": profile_id})

    def resolved_log_level(self) -> str:
        level = self.log_level.upper()
        return level if level in _LOG_LEVELS else "WARNING"


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    profiles: list[ConnectionProfileConfig] | None = None
    raw_profiles = data.pop("profiles", None)
    if isinstance(raw_profiles, list):
        profiles = []
        for entry in raw_profiles:
            try:
                profiles.append(ConnectionProfileConfig(**entry))
            except ValidationError:
                continue
    try:
        config = AppConfig(**data)
    except ValidationError:
        config = AppConfig()
    if profiles is not None:
        config = config.with_profiles(profiles)
    return config


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f"theme = {_toml_string(config.theme)}",
        f"connect_timeout = {config.connect_timeout}",
        f"page_size = {config.page_size}",
        f"log_level = {_toml_string(config.log_level)}",
    ]
    if config.log_file:
        lines.append(f"log_file = {_toml_string(config.log_file)}")
    if config.last_used_profile:
        lines.append(f"last_used_profile = {_toml_string(config.last_used_profile)}")
    if not config.profiles:
        lines.append("profiles = []")
    else:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"id = {_toml_string(profile.id)}")
            lines.append(f"name = {_toml_string(profile.name)}")
            lines.append(f"host = {_toml_string(profile.host)}")
            lines.append(f"port = {profile.port}")
            lines.append(f"database = {_toml_string(profile.database)}")
            lines.append(f"username = {_toml_string(profile.username)}")
            if profile.persist_password and profile.password:
                lines.append(f"password = {_toml_string(profile.password)}")
            lines.append(f"use_tls = {str(profile.use_tls).lower()}")
            lines.append(f"persist_password = {str(profile.persist_password).lower()}")
            if profile.last_used_at is not None:
                lines.append(f"last_used_at = {profile.last_used_at.isoformat()}")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    for key in ("theme", "log_level", "log_file", "last_used_profile"):
        value = raw.get(key)
        if isinstance(value, str):
            data[key] = value
    timeout = raw.get("connect_timeout")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
        data["connect_timeout"] = float(timeout)
    page_size = raw.get("page_size")
    if isinstance(page_size, int) and not isinstance(page_size, bool):
        data["page_size"] = page_size
    profiles = raw.get("profiles")
    if isinstance(profiles, list):
        data["profiles"] = [profile for profile in profiles if isinstance(profile, dict) and profile.get("name")]
    return data


def _toml_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)


def _default_profiles() -> tuple[ConnectionProfileConfig, ...]:
    """Profile shown on first run before config is customized."""

    return (
        ConnectionProfileConfig(
            id="local",
            name="Local PostgreSQL",
            host="localhost",
            port=5432,
            database="postgres",
            username="postgres",
        ),
    )


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConnectionProfileConfig",
    "load_config",
    "save_config",
]
