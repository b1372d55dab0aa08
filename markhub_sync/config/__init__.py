from __future__ import annotations

from ._validators import _ensure_api_key, validate_http_url
from .integrations import FolderRecommendationConfig, MarkhubConfig
from .manager import (
    ConfigManager,
    ConfigStorage,
    InMemoryConfigStorage,
    JsonFileConfigStorage,
    UserConfig,
)
from .settings import AppConfig, RuntimeConfig, Settings, SyncBehaviorConfig, load_config

__all__ = [
    "AppConfig",
    "ConfigManager",
    "ConfigStorage",
    "FolderRecommendationConfig",
    "InMemoryConfigStorage",
    "JsonFileConfigStorage",
    "MarkhubConfig",
    "RuntimeConfig",
    "Settings",
    "SyncBehaviorConfig",
    "UserConfig",
    "_ensure_api_key",
    "load_config",
    "validate_http_url",
]
