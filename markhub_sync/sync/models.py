"""Result and state types for forward sync, reverse sync and recommendations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    """Outcome of one reverse sync pass; counters accumulate across the pass."""

    success: bool = False
    folders_created: int = 0
    bookmarks_created: int = 0
    bookmarks_updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0


class SyncAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SKIPPED = "skipped"


class ForwardSyncOutcome(BaseModel):
    success: bool
    action: SyncAction
    remote_id: str | None = None
    error: str | None = None
    reason: str | None = None


class BatchSyncResult(BaseModel):
    """Outcome of pushing every local bookmark to the remote store."""

    successful: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class RecommendationState(StrEnum):
    NEW = "new"
    REQUESTED = "requested"
    SUGGESTED = "suggested"
    SAME_FOLDER = "same_folder"
    FAILED = "failed"
    NO_FOLDERS = "no_folders"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


TRANSITIONS: dict[RecommendationState, frozenset[RecommendationState]] = {
    RecommendationState.NEW: frozenset({RecommendationState.REQUESTED}),
    RecommendationState.REQUESTED: frozenset(
        {
            RecommendationState.SUGGESTED,
            RecommendationState.SAME_FOLDER,
            RecommendationState.FAILED,
            RecommendationState.NO_FOLDERS,
        }
    ),
    RecommendationState.SUGGESTED: frozenset(
        {RecommendationState.ACCEPTED, RecommendationState.DISMISSED}
    ),
    RecommendationState.SAME_FOLDER: frozenset(),
    RecommendationState.FAILED: frozenset(),
    RecommendationState.NO_FOLDERS: frozenset(),
    RecommendationState.ACCEPTED: frozenset(),
    RecommendationState.DISMISSED: frozenset(),
}


@dataclass(frozen=True)
class PendingRecommendation:
    """A suggestion waiting for the user to accept or dismiss it. Never persisted."""

    bookmark_id: str
    recommended_folder_id: str
    recommended_folder_name: str
    confidence: float
    reason: str
    original_parent_id: str | None


def record_error(result: SyncResult | BatchSyncResult, message: str) -> None:
    result.errors.append(message)
