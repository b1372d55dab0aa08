from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import _ensure_api_key, _parse_bool, _parse_positive_float, validate_http_url

logger = logging.getLogger(__name__)

DEFAULT_MARKHUB_API_URL = "https://db.markhub.app"
DEFAULT_AI_API_URL = "https://api.openai.com/v1"


class MarkhubConfig(BaseModel):
    """Markhub remote store connection configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(default=DEFAULT_MARKHUB_API_URL, validation_alias="MARKHUB_API_URL")
    timeout_sec: float = Field(default=30.0, validation_alias="MARKHUB_TIMEOUT_SEC")
    export_timeout_sec: float = Field(default=120.0, validation_alias="MARKHUB_EXPORT_TIMEOUT_SEC")
    folder_cache_ttl_sec: float = Field(
        default=30.0,
        validation_alias="MARKHUB_FOLDER_CACHE_TTL_SEC",
        description="Seconds before the cached remote folder list is refreshed",
    )
    prefer_server_path_api: bool = Field(
        default=True,
        validation_alias="MARKHUB_PREFER_SERVER_PATH_API",
        description="Use the ensure-folder-path endpoint before the client-driven walk",
    )
    ai_tags_enabled: bool = Field(
        default=True,
        validation_alias="MARKHUB_AI_TAGS_ENABLED",
        description="Ask the server to suggest tags after a bookmark is created",
    )
    page_size: int = Field(default=200, validation_alias="MARKHUB_PAGE_SIZE")

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        return validate_http_url(value, name="Markhub API URL", default=DEFAULT_MARKHUB_API_URL)

    @field_validator("timeout_sec", "export_timeout_sec", "folder_cache_ttl_sec", mode="before")
    @classmethod
    def _validate_seconds(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        return _parse_positive_float(
            value, name=info.field_name.replace("_", " "), default=default, maximum=3600
        )

    @field_validator("prefer_server_path_api", "ai_tags_enabled", mode="before")
    @classmethod
    def _validate_flags(cls, value: Any, info: ValidationInfo) -> bool:
        return _parse_bool(value, default=cls.model_fields[info.field_name].default)

    @field_validator("page_size", mode="before")
    @classmethod
    def _validate_page_size(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 200))
        except ValueError as exc:
            msg = "Markhub page size must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 500:
            msg = "Markhub page size must be between 1 and 500"
            raise ValueError(msg)
        return parsed


class FolderRecommendationConfig(BaseModel):
    """OpenAI-compatible service used to suggest a folder for new bookmarks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(default=DEFAULT_AI_API_URL, validation_alias="AI_FOLDER_REC_API_URL")
    api_key: str = Field(default="", validation_alias="AI_FOLDER_REC_API_KEY")
    model_name: str = Field(default="gpt-3.5-turbo", validation_alias="AI_FOLDER_REC_MODEL")
    timeout_sec: float = Field(default=20.0, validation_alias="AI_FOLDER_REC_TIMEOUT_SEC")
    auto_accept_min_confidence: float = Field(
        default=0.7,
        validation_alias="AI_AUTO_ACCEPT_MIN_CONFIDENCE",
        description="Minimum confidence for accepting a suggestion without a UI surface",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.model_name)

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        return validate_http_url(value, name="AI service URL", default=DEFAULT_AI_API_URL)

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        return _ensure_api_key(value, name="AI folder recommendation")

    @field_validator("model_name", mode="before")
    @classmethod
    def _validate_model_name(cls, value: Any) -> str:
        model = str(value or "gpt-3.5-turbo").strip()
        if len(model) > 100:
            msg = "Model name too long"
            raise ValueError(msg)
        return model

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        return _parse_positive_float(value, name="AI timeout", default=20.0, maximum=600)

    @field_validator("auto_accept_min_confidence", mode="before")
    @classmethod
    def _validate_confidence(cls, value: Any) -> float:
        try:
            parsed = float(str(value if value not in (None, "") else 0.7))
        except ValueError as exc:
            msg = "Auto-accept confidence must be a valid number"
            raise ValueError(msg) from exc
        if not 0.0 <= parsed <= 1.0:
            msg = "Auto-accept confidence must be between 0 and 1"
            raise ValueError(msg)
        return parsed
