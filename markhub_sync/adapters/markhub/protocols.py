"""Protocol definitions (ports) for the Markhub remote store.

The sync engines depend on these instead of ``MarkhubClient`` so that the
orchestration can be exercised without HTTP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from markhub_sync.adapters.markhub.models import (
        EnsureFolderPathResponse,
        RemoteBookmark,
        RemoteFolder,
        SyncExportData,
    )


class FolderStore(Protocol):
    """What the remote folder path resolver needs from the server."""

    async def get_folders(self) -> list[RemoteFolder]: ...

    async def create_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder: ...

    async def ensure_folder_path_via_api(
        self, path: Sequence[str]
    ) -> EnsureFolderPathResponse: ...


class RemoteStore(Protocol):
    """Remote bookmark store as seen by forward and reverse sync."""

    def is_authenticated(self) -> bool: ...

    async def ensure_folder_path(self, path: Sequence[str]) -> str | None: ...

    async def find_bookmark_by_url(self, url: str) -> RemoteBookmark | None: ...

    async def find_bookmark_by_local_id(self, local_id: str) -> RemoteBookmark | None: ...

    async def create_bookmark(
        self,
        *,
        title: str,
        url: str,
        folder_id: str | None = None,
        local_id: str | None = None,
        tags: list[str] | None = None,
        is_favorite: bool = False,
    ) -> RemoteBookmark: ...

    async def update_bookmark(self, bookmark_id: str, **fields: Any) -> RemoteBookmark: ...

    async def delete_bookmark(self, bookmark_id: str) -> None: ...

    async def trigger_ai_tag_suggestion(self, bookmark_id: str) -> bool: ...

    async def get_sync_export(self, last_sync_time: str | None = None) -> SyncExportData: ...
