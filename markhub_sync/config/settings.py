from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .integrations import FolderRecommendationConfig, MarkhubConfig

logger = logging.getLogger(__name__)


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    use_loguru: bool = Field(default=True, validation_alias="LOG_USE_LOGURU")
    config_path: str = Field(
        default="~/.config/markhub-sync/config.json",
        validation_alias=AliasChoices("MARKHUB_CONFIG_PATH", "MARKHUB_SYNC_CONFIG"),
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        level = str(value or "INFO").upper().strip()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if level not in valid_levels:
            msg = f"Invalid log level: {level}. Must be one of {sorted(valid_levels)}"
            raise ValueError(msg)
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value).strip()

    @field_validator("use_loguru", mode="before")
    @classmethod
    def _validate_use_loguru(cls, value: Any) -> bool:
        if value in (None, ""):
            return True
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}

    @field_validator("config_path", mode="before")
    @classmethod
    def _validate_config_path(cls, value: Any) -> str:
        path = str(value or "~/.config/markhub-sync/config.json").strip()
        if "\x00" in path:
            msg = "Config path contains invalid characters"
            raise ValueError(msg)
        return path


class SyncBehaviorConfig(BaseModel):
    """Pacing between local mutations during reverse and batch sync."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    folder_delay_sec: float = Field(default=0.05, validation_alias="SYNC_FOLDER_DELAY_SEC")
    bookmark_delay_sec: float = Field(default=0.1, validation_alias="SYNC_BOOKMARK_DELAY_SEC")
    batch_delay_sec: float = Field(default=0.1, validation_alias="SYNC_BATCH_DELAY_SEC")

    @field_validator("folder_delay_sec", "bookmark_delay_sec", "batch_delay_sec", mode="before")
    @classmethod
    def _validate_delay(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 10:
            msg = f"{info.field_name.replace('_', ' ')} must be between 0 and 10"
            raise ValueError(msg)
        return parsed


@dataclass(frozen=True)
class AppConfig:
    markhub: MarkhubConfig
    folder_recommendation: FolderRecommendationConfig
    sync: SyncBehaviorConfig
    runtime: RuntimeConfig


class Settings(BaseSettings):
    """Application settings loaded automatically from environment variables.

    Nested models are populated by matching validation_alias on each field.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    markhub: MarkhubConfig = Field(default_factory=MarkhubConfig)
    folder_recommendation: FolderRecommendationConfig = Field(
        default_factory=FolderRecommendationConfig
    )
    sync: SyncBehaviorConfig = Field(default_factory=SyncBehaviorConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over os.environ.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve environment variable value for a field using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            markhub=self.markhub,
            folder_recommendation=self.folder_recommendation,
            sync=self.sync,
            runtime=self.runtime,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from environment variables and `.env`.

    Keyword overrides are section dictionaries (``markhub={"api_url": ...}``)
    and win over the environment.

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc

    config = settings.as_app_config()
    logger.debug(
        "config_loaded",
        extra={
            "markhub_api_url": config.markhub.api_url,
            "ai_configured": config.folder_recommendation.is_configured,
        },
    )
    return config
