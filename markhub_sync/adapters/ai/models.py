"""Models for the folder recommendation service."""

from __future__ import annotations

from pydantic import BaseModel, Field


class FolderRecommendationError(Exception):
    """The recommendation service could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FolderRecommendation(BaseModel):
    """A suggested destination folder for a bookmark."""

    folder_id: str
    folder_name: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reason: str = ""
    is_fallback: bool = False


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    model: str | None = None
