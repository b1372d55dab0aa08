"""Pydantic models for the Markhub API."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    return None if value == "" else value


class RemoteFolder(BaseModel):
    """Folder record from the folders collection."""

    id: str
    name: str
    parent_id: str | None = Field(default=None, alias="parentId")
    owner_id: str | None = Field(default=None, alias="userId")
    created_at: str | None = Field(
        default=None, validation_alias=AliasChoices("created", "createdAt")
    )
    updated_at: str | None = Field(
        default=None, validation_alias=AliasChoices("updated", "updatedAt")
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("parent_id", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class RemoteBookmark(BaseModel):
    """Bookmark record from the bookmarks collection."""

    id: str
    title: str = ""
    url: str
    folder_id: str | None = Field(default=None, alias="folderId")
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = Field(default=False, alias="isFavorite")
    local_id: str | None = Field(default=None, alias="chromeBookmarkId")
    owner_id: str | None = Field(default=None, alias="userId")
    created_at: str | None = Field(
        default=None, validation_alias=AliasChoices("created", "createdAt")
    )
    updated_at: str | None = Field(
        default=None, validation_alias=AliasChoices("updated", "updatedAt")
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("folder_id", "local_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        return value or []


class RecordPage(BaseModel):
    """One page of a PocketBase-style record listing."""

    page: int = 1
    per_page: int = Field(default=0, alias="perPage")
    total_items: int = Field(default=0, alias="totalItems")
    total_pages: int = Field(default=1, alias="totalPages")
    items: list[dict[str, Any]] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class ExportFolder(BaseModel):
    """Folder as returned by the sync export, with its precomputed path."""

    id: str
    name: str
    parent_id: str | None = Field(default=None, alias="parentId")
    path: list[str] = Field(default_factory=list)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("parent_id", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ExportBookmark(BaseModel):
    """Bookmark as returned by the sync export, with its folder path."""

    id: str
    title: str = ""
    url: str
    folder_id: str | None = Field(default=None, alias="folderId")
    folder_path: list[str] = Field(default_factory=list, alias="folderPath")
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = Field(default=False, alias="isFavorite")
    local_id: str | None = Field(default=None, alias="chromeBookmarkId")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("folder_id", "local_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("folder_path", "tags", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> Any:
        return value or []


class SyncExportMetadata(BaseModel):
    total_folders: int = Field(default=0, alias="totalFolders")
    total_bookmarks: int = Field(default=0, alias="totalBookmarks")
    export_time: str | None = Field(default=None, alias="exportTime")
    is_incremental: bool = Field(default=False, alias="isIncremental")
    last_sync_time: str | None = Field(default=None, alias="lastSyncTime")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class SyncExportData(BaseModel):
    """Payload of the sync export endpoint."""

    folders: list[ExportFolder] = Field(default_factory=list)
    bookmarks: list[ExportBookmark] = Field(default_factory=list)
    metadata: SyncExportMetadata = Field(
        default_factory=SyncExportMetadata, alias="syncMetadata"
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}


class EnsureFolderPathResponse(BaseModel):
    folder_id: str | None = Field(default=None, alias="folderId")
    created: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("folder_id", mode="before")
    @classmethod
    def _normalize_folder_id(cls, value: Any) -> Any:
        return _blank_to_none(value)


class AuthRecord(BaseModel):
    id: str
    email: str | None = None
    username: str | None = None

    model_config = {"extra": "ignore"}


class AuthResponse(BaseModel):
    token: str
    record: AuthRecord


class CreateFolderRequest(BaseModel):
    name: str
    parent_id: str | None = Field(default=None, serialization_alias="parentId")


class CreateBookmarkRequest(BaseModel):
    title: str
    url: str
    folder_id: str | None = Field(default=None, serialization_alias="folderId")
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = Field(default=False, serialization_alias="isFavorite")
    local_id: str | None = Field(default=None, serialization_alias="chromeBookmarkId")
