"""Messages exchanged with the presentation layer (toasts, popups).

Wire form is ``{"type": <MessageType>, "data": {...}}`` with camelCase keys.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class MessageType(StrEnum):
    SHOW_AI_PROCESSING = "SHOW_AI_PROCESSING"
    SHOW_AI_ERROR = "SHOW_AI_ERROR"
    SHOW_FOLDER_RECOMMENDATION = "SHOW_FOLDER_RECOMMENDATION"
    ACCEPT_FOLDER_RECOMMENDATION = "ACCEPT_FOLDER_RECOMMENDATION"
    DISMISS_FOLDER_RECOMMENDATION = "DISMISS_FOLDER_RECOMMENDATION"


INBOUND_TYPES = frozenset(
    {MessageType.ACCEPT_FOLDER_RECOMMENDATION, MessageType.DISMISS_FOLDER_RECOMMENDATION}
)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AIErrorData(_WireModel):
    message: str


class FolderRecommendationData(_WireModel):
    bookmark_title: str = Field(alias="bookmarkTitle")
    recommended_folder: str = Field(alias="recommendedFolder")
    bookmark_id: str = Field(alias="bookmarkId")
    confidence: float
    reason: str = ""
    is_already_in_folder: bool = Field(default=False, alias="isAlreadyInFolder")


class BookmarkRef(_WireModel):
    bookmark_id: str = Field(alias="bookmarkId")


class UIMessage(_WireModel):
    type: MessageType
    data: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"type": str(self.type), "data": dict(self.data)}

    @classmethod
    def ai_processing(cls) -> UIMessage:
        return cls(type=MessageType.SHOW_AI_PROCESSING)

    @classmethod
    def ai_error(cls, message: str) -> UIMessage:
        return cls(
            type=MessageType.SHOW_AI_ERROR,
            data=AIErrorData(message=message).model_dump(by_alias=True),
        )

    @classmethod
    def folder_recommendation(cls, data: FolderRecommendationData) -> UIMessage:
        return cls(
            type=MessageType.SHOW_FOLDER_RECOMMENDATION,
            data=data.model_dump(by_alias=True),
        )


class InboundMessage(_WireModel):
    type: MessageType
    bookmark_id: str


class MessageAck(_WireModel):
    success: bool
    error: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def parse_inbound(payload: Any) -> InboundMessage:
    """Validate an inbound UI message; raises ``ValueError`` for anything unexpected."""
    if not isinstance(payload, dict):
        raise ValueError("Message must be an object")
    raw_type = payload.get("type")
    try:
        message_type = MessageType(raw_type)
    except ValueError:
        raise ValueError(f"Unknown message type: {raw_type}") from None
    if message_type not in INBOUND_TYPES:
        raise ValueError(f"Unsupported inbound message type: {raw_type}")
    try:
        ref = BookmarkRef.model_validate(payload.get("data") or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid {raw_type} payload: missing bookmarkId") from exc
    return InboundMessage(type=message_type, bookmark_id=ref.bookmark_id)


@runtime_checkable
class Presenter(Protocol):
    """UI surface for toasts and notifications."""

    async def send(self, message: UIMessage) -> bool:
        """Deliver ``message``; False when no UI surface is available."""
        ...

    async def notify(self, title: str, message: str) -> None: ...


class NullPresenter:
    """Headless presenter: nothing is shown, notifications go to the log."""

    async def send(self, message: UIMessage) -> bool:
        logger.debug("ui_message_dropped", extra={"message_type": str(message.type)})
        return False

    async def notify(self, title: str, message: str) -> None:
        logger.info("ui_notification", extra={"title": title, "text": message})
