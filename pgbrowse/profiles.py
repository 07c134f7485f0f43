"""Saved connection profiles persisted through the app config file."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import logging

from .config import AppConfig, ConnectionProfileConfig, load_config, save_config
from .models import ConnectionProfile, new_profile_id

LOG = logging.getLogger(__name__)


class ProfileStore:
    """Keyed profile records; the session never touches this directly."""

    def __init__(self, config: AppConfig | None = None, *, autosave: bool = True) -> None:
        self._config = config if config is not None else load_config()
        self._autosave = autosave

    @property
    def config(self) -> AppConfig:
        return self._config

    def list_profiles(self) -> tuple[ConnectionProfile, ...]:
        return tuple(entry.to_profile() for entry in self._config.profiles)

    def get(self, profile_id: str) -> ConnectionProfile | None:
        for entry in self._config.profiles:
            if entry.id == profile_id:
                return entry.to_profile()
        return None

    def save(self, profile: ConnectionProfile) -> ConnectionProfile:
        """Insert or replace ``profile`` by id; drops the password unless persisted."""

        if not profile.id:
            profile = replace(profile, id=new_profile_id())
        if not profile.persist_password:
            profile = profile.with_password("")
        record = ConnectionProfileConfig.from_profile(profile)
        entries = list(self._config.profiles)
        for idx, entry in enumerate(entries):
            if entry.id == record.id:
                entries[idx] = record
                break
        else:
            entries.append(record)
        self._update(self._config.with_profiles(entries))
        LOG.debug("Saved profile", extra={"profile_id": profile.id})
        return profile

    def delete(self, profile_id: str) -> bool:
        entries = [entry for entry in self._config.profiles if entry.id != profile_id]
        if len(entries) == len(self._config.profiles):
            return False
        config = self._config.with_profiles(entries)
        if config.last_used_profile == profile_id:
            config = config.with_last_used(None)
        self._update(config)
        return True

    def mark_used(self, profile_id: str, *, now: datetime | None = None) -> ConnectionProfile | None:
        """Stamp ``last_used_at`` and remember the profile as last used."""

        profile = self.get(profile_id)
        if profile is None:
            return None
        stamp = now or datetime.now(tz=timezone.utc)
        entries = [
            entry.model_copy(update={"last_used_at": stamp}) if entry.id == profile_id else entry
            for entry in self._config.profiles
        ]
        self._update(self._config.with_profiles(entries).with_last_used(profile_id))
        return replace(profile, last_used_at=stamp)

    def last_used(self) -> ConnectionProfile | None:
        profile_id = self._config.last_used_profile
        if not profile_id:
            return None
        return self.get(profile_id)

    def _update(self, config: AppConfig) -> None:
        self._config = config
        if self._autosave:
            save_config(config)


__all__ = ["ProfileStore"]
