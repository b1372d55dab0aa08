"""Durable user configuration: auth token and sync switches.

Unlike the static settings, these values change at runtime (login, toggles
in the options surface) and must survive a host process restart. They are
rehydrated from a ``ConfigStorage`` on ``initialize()``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class UserConfig(BaseModel):
    """Persisted user configuration (camelCase on disk)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    auth_token: str | None = Field(default=None, alias="authToken")
    sync_enabled: bool = Field(default=False, alias="syncEnabled")
    auto_move_to_recommended_folder: bool = Field(
        default=True, alias="autoMoveToRecommendedFolder"
    )
    show_notifications: bool = Field(default=True, alias="showNotifications")
    last_sync_time: str | None = Field(default=None, alias="lastSyncTime")


ConfigListener = Callable[[UserConfig], Awaitable[None] | None]


@runtime_checkable
class ConfigStorage(Protocol):
    """Durable key/value storage for the user configuration."""

    async def load(self) -> dict[str, Any] | None:
        """Return the stored document or None when nothing was saved yet."""
        ...

    async def save(self, data: dict[str, Any]) -> None:
        """Persist the full document."""
        ...


class InMemoryConfigStorage:
    """Storage that lives as long as the object; used by tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] | None = dict(initial) if initial is not None else None
        self.save_count = 0

    async def load(self) -> dict[str, Any] | None:
        return dict(self.data) if self.data is not None else None

    async def save(self, data: dict[str, Any]) -> None:
        self.data = dict(data)
        self.save_count += 1


class JsonFileConfigStorage:
    """Stores the configuration as a JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    async def load(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def save(self, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, data)

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("config_file_corrupt", extra={"path": str(self.path)})
            return None
        return raw if isinstance(raw, dict) else None

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)


class ConfigManager:
    """Owns the user configuration and keeps storage in step with it."""

    def __init__(self, storage: ConfigStorage | None = None) -> None:
        self._storage: ConfigStorage = storage or InMemoryConfigStorage()
        self._config = UserConfig()
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._listeners: list[ConfigListener] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> UserConfig:
        """Load the stored configuration once; later calls are no-ops."""
        async with self._init_lock:
            if self._initialized:
                return self._config
            stored = await self._storage.load()
            if stored:
                try:
                    self._config = UserConfig.model_validate(stored)
                except ValidationError as exc:
                    logger.warning("config_load_invalid", extra={"error": str(exc)})
                    self._config = UserConfig()
            self._initialized = True
            logger.info(
                "config_initialized",
                extra={
                    "sync_enabled": self._config.sync_enabled,
                    "authenticated": self.is_authenticated(),
                },
            )
            return self._config

    def get(self) -> UserConfig:
        return self._config

    def is_authenticated(self) -> bool:
        return bool(self._config.auth_token)

    @property
    def auth_token(self) -> str | None:
        return self._config.auth_token

    async def set(self, key: str, value: Any) -> UserConfig:
        return await self.update(**{key: value})

    async def update(self, **fields: Any) -> UserConfig:
        unknown = set(fields) - set(UserConfig.model_fields)
        if unknown:
            msg = f"Unknown configuration keys: {sorted(unknown)}"
            raise KeyError(msg)
        merged = {**self._config.model_dump(), **fields}
        self._config = UserConfig.model_validate(merged)
        await self._persist()
        return self._config

    async def set_auth_token(self, token: str | None) -> None:
        await self.update(auth_token=token or None)

    async def reset(self) -> UserConfig:
        self._config = UserConfig()
        await self._persist()
        logger.info("config_reset")
        return self._config

    def add_listener(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConfigListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _persist(self) -> None:
        await self._storage.save(self._config.model_dump(by_alias=True))
        for listener in list(self._listeners):
            try:
                result = listener(self._config)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("config_listener_failed")
