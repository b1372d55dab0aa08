"""Get-or-create resolution of remote folder paths.

Two concurrent resolutions of the same path never create the same folder
twice: creation is single-flighted per ``folder_path_key`` and the new folder
is in the cache before the key is released.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from markhub_sync.adapters.markhub.errors import AuthError, MarkhubClientError, NotFoundError
from markhub_sync.core.folder_paths import folder_path_key, normalize_path
from markhub_sync.core.single_flight import SingleFlight

if TYPE_CHECKING:
    from collections.abc import Iterable

    from markhub_sync.adapters.markhub.folder_cache import FolderCache
    from markhub_sync.adapters.markhub.models import RemoteFolder
    from markhub_sync.adapters.markhub.protocols import FolderStore

logger = logging.getLogger(__name__)


class RemoteFolderPathResolver:
    def __init__(
        self,
        store: FolderStore,
        cache: FolderCache,
        *,
        prefer_server_api: bool = True,
    ) -> None:
        self._store = store
        self._cache = cache
        self._server_api_available = prefer_server_api
        self._creates: SingleFlight[RemoteFolder] = SingleFlight("remote_folder_create")
        self._refreshes: SingleFlight[None] = SingleFlight("remote_folder_refresh")
        self.create_calls = 0

    @property
    def server_api_available(self) -> bool:
        return self._server_api_available

    async def refresh(self, *, force: bool = False) -> None:
        if force or self._cache.is_stale:
            await self._refreshes.do("folders", self._load_folders)

    async def _load_folders(self) -> None:
        requested_at = self._cache.now()
        folders = await self._store.get_folders()
        self._cache.replace(folders, requested_at=requested_at)
        logger.debug("markhub_folder_cache_refreshed", extra={"count": len(folders)})

    async def resolve(self, path: Iterable[str]) -> str | None:
        """Walk ``path`` from the root, creating missing folders; return the leaf id."""
        segments = normalize_path(path)
        if not segments:
            return None

        await self.refresh()
        parent_id: str | None = None
        for name in segments:
            folder = self._cache.find(name, parent_id)
            if folder is None:
                folder = await self._get_or_create(name, parent_id)
            parent_id = folder.id
        return parent_id

    async def _get_or_create(self, name: str, parent_id: str | None) -> RemoteFolder:
        async def _create() -> RemoteFolder:
            existing = self._cache.find(name, parent_id)
            if existing is not None:
                return existing
            self.create_calls += 1
            folder = await self._store.create_folder(name, parent_id)
            self._cache.add(folder)
            logger.info(
                "markhub_folder_created",
                extra={"folder_id": folder.id, "folder_name": name, "parent_id": parent_id},
            )
            return folder

        return await self._creates.do(folder_path_key(name, parent_id), _create)

    async def ensure(self, path: Iterable[str]) -> str | None:
        """Resolve ``path`` using the server endpoint, falling back to the client walk.

        The fallback runs at most once per call. When it fails as well, the
        server error is raised. Authentication failures are never retried.
        """
        segments = normalize_path(path)
        if not segments:
            return None
        if not self._server_api_available:
            return await self.resolve(segments)

        try:
            response = await self._store.ensure_folder_path_via_api(segments)
        except AuthError:
            raise
        except NotFoundError:
            self._server_api_available = False
            logger.info("markhub_ensure_path_api_unavailable")
            return await self.resolve(segments)
        except MarkhubClientError as server_exc:
            logger.warning(
                "markhub_ensure_path_api_failed",
                extra={"folder_path": segments, "error": str(server_exc)},
            )
            try:
                return await self.resolve(segments)
            except AuthError:
                raise
            except MarkhubClientError as fallback_exc:
                logger.error(
                    "markhub_ensure_path_fallback_failed",
                    extra={"folder_path": segments, "error": str(fallback_exc)},
                )
                raise server_exc from fallback_exc

        if response.created:
            self._cache.invalidate()
            logger.info(
                "markhub_folders_created_by_server",
                extra={"folder_path": segments, "created_folders": response.created},
            )
        if response.folder_id:
            return response.folder_id
        return await self.resolve(segments)

    def reset(self) -> None:
        self._cache.clear()
        self._creates.clear()
        self._refreshes.clear()
