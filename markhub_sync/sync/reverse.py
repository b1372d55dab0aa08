"""One-shot import of the Markhub tree into the local bookmark tree.

The pass is additive and idempotent: folders are matched by path and
bookmarks by URL, missing ones are created locally and a differing title is
copied from Markhub. Nothing is ever deleted locally. Failures of single items
are collected and the pass carries on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.models import LocalBookmarkEntry
from markhub_sync.adapters.local_tree.paths import RESERVED_FOLDER_NAMES, extract_tree
from markhub_sync.core.folder_paths import normalize_path
from markhub_sync.core.logging_utils import generate_correlation_id
from markhub_sync.sync.local_resolver import LocalFolderPathResolver
from markhub_sync.sync.models import SyncResult, record_error

if TYPE_CHECKING:
    from collections.abc import Iterable

    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter
    from markhub_sync.adapters.markhub.models import ExportBookmark, ExportFolder
    from markhub_sync.adapters.markhub.protocols import RemoteStore
    from markhub_sync.config.manager import ConfigManager
    from markhub_sync.sync.forward import ForwardSyncEngine

logger = logging.getLogger(__name__)


def user_path(path: Iterable[str]) -> tuple[str, ...]:
    """Normalize a remote path and drop the browser's reserved folder names."""
    segments = normalize_path(path)
    return tuple(segment for segment in segments if segment not in RESERVED_FOLDER_NAMES)


class ReverseSyncManager:
    def __init__(
        self,
        remote: RemoteStore,
        tree: LocalTreeAdapter,
        config_manager: ConfigManager,
        forward: ForwardSyncEngine | None = None,
        *,
        folder_delay: float = 0.05,
        bookmark_delay: float = 0.1,
    ) -> None:
        self._remote = remote
        self._tree = tree
        self._config = config_manager
        self._forward = forward
        self.folder_delay = folder_delay
        self.bookmark_delay = bookmark_delay

    def is_available(self) -> bool:
        return self._config.get().sync_enabled and self._config.is_authenticated()

    async def sync_from_markhub(self) -> SyncResult:
        started = time.perf_counter()
        result = SyncResult()
        if not self.is_available():
            record_error(result, "Sync is disabled or not authenticated")
            return result

        correlation_id = generate_correlation_id()
        logger.info("reverse_sync_started", extra={"cid": correlation_id})

        try:
            export = await self._remote.get_sync_export()
        except Exception as exc:
            logger.error(
                "reverse_sync_export_failed", extra={"cid": correlation_id, "error": str(exc)}
            )
            record_error(result, f"Failed to fetch Markhub data: {exc}")
            return result

        try:
            local_folders, local_bookmarks = extract_tree(await self._tree.get_full_tree())
        except Exception as exc:
            logger.error(
                "reverse_sync_local_tree_failed",
                extra={"cid": correlation_id, "error": str(exc)},
            )
            record_error(result, f"Failed to read local bookmarks: {exc}")
            return result

        resolver = LocalFolderPathResolver(self._tree)
        for folder in local_folders:
            resolver.seed(folder.path, folder.id)

        await self._import_folders(export.folders, resolver, result)

        by_url: dict[str, LocalBookmarkEntry] = {}
        for entry in local_bookmarks:
            if entry.url:
                by_url.setdefault(entry.url, entry)
        for bookmark in export.bookmarks:
            try:
                await self._import_bookmark(bookmark, by_url, resolver, result)
            except Exception as exc:
                logger.warning(
                    "reverse_sync_bookmark_failed",
                    extra={"cid": correlation_id, "url": bookmark.url, "error": str(exc)},
                )
                record_error(result, f"Bookmark {bookmark.title or bookmark.url}: {exc}")

        result.folders_created = resolver.created_count
        result.success = True
        result.duration_seconds = round(time.perf_counter() - started, 3)
        await self._config.update(
            last_sync_time=export.metadata.export_time or datetime.now(UTC).isoformat()
        )
        logger.info(
            "reverse_sync_completed",
            extra={
                "cid": correlation_id,
                "folders_created": result.folders_created,
                "bookmarks_created": result.bookmarks_created,
                "bookmarks_updated": result.bookmarks_updated,
                "skipped": result.skipped,
                "errors": len(result.errors),
                "duration_sec": result.duration_seconds,
            },
        )
        return result

    async def _import_folders(
        self, folders: Iterable[ExportFolder], resolver: LocalFolderPathResolver, result: SyncResult
    ) -> None:
        paths = sorted({user_path(folder.path) for folder in folders} - {()}, key=len)
        for path in paths:
            if resolver.lookup(path) is not None:
                continue
            before = resolver.created_count
            try:
                await resolver.resolve(path)
            except Exception as exc:
                logger.warning(
                    "reverse_sync_folder_failed",
                    extra={"folder_path": list(path), "error": str(exc)},
                )
                record_error(result, f"Folder {'/'.join(path)}: {exc}")
                continue
            if resolver.created_count > before and self.folder_delay > 0:
                await asyncio.sleep(self.folder_delay)

    async def _import_bookmark(
        self,
        bookmark: ExportBookmark,
        by_url: dict[str, LocalBookmarkEntry],
        resolver: LocalFolderPathResolver,
        result: SyncResult,
    ) -> None:
        if not bookmark.url:
            result.skipped += 1
            return
        title = bookmark.title or bookmark.url

        local = by_url.get(bookmark.url)
        if local is not None:
            if local.title == title:
                result.skipped += 1
                return
            if self._forward is not None:
                self._forward.expect_echo(local.id)
            try:
                await self._tree.update(local.id, title=title)
            except Exception:
                if self._forward is not None:
                    self._forward.cancel_echo(local.id)
                raise
            if self._forward is not None:
                self._forward.register_imported(local.id, bookmark.id)
            by_url[bookmark.url] = replace(local, title=title)
            result.bookmarks_updated += 1
            await self._pause()
            return

        folder_path = user_path(bookmark.folder_path)
        parent_id = await resolver.resolve(folder_path)
        node = await self._tree.create(parent_id, title, bookmark.url)
        if self._forward is not None:
            self._forward.register_imported(node.id, bookmark.id)
        by_url[bookmark.url] = LocalBookmarkEntry(
            id=node.id,
            title=title,
            url=bookmark.url,
            parent_id=parent_id,
            folder_path=folder_path,
        )
        result.bookmarks_created += 1
        await self._pause()

    async def _pause(self) -> None:
        if self.bookmark_delay > 0:
            await asyncio.sleep(self.bookmark_delay)
