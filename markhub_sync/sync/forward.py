"""Pushes local bookmark changes to Markhub.

Each local bookmark is upserted by URL: the remote record is created when no
bookmark with that URL exists and patched otherwise. Which local ids have
already been pushed, and the remote id each maps to, is kept in memory only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.paths import extract_tree, folder_path_of
from markhub_sync.adapters.markhub.errors import NotFoundError
from markhub_sync.core.logging_utils import generate_correlation_id
from markhub_sync.core.single_flight import SingleFlight
from markhub_sync.sync.models import BatchSyncResult, ForwardSyncOutcome, SyncAction, record_error

if TYPE_CHECKING:
    from markhub_sync.adapters.local_tree.models import LocalNode
    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter
    from markhub_sync.adapters.markhub.models import RemoteBookmark
    from markhub_sync.adapters.markhub.protocols import RemoteStore
    from markhub_sync.config.manager import ConfigManager
    from markhub_sync.sync.messaging import Presenter
    from markhub_sync.sync.recommendation import RecommendationWorkflow

logger = logging.getLogger(__name__)

FAILURE_TITLE = "Markhub sync failed"


def _skipped(reason: str) -> ForwardSyncOutcome:
    return ForwardSyncOutcome(success=True, action=SyncAction.SKIPPED, reason=reason)


class ForwardSyncEngine:
    def __init__(
        self,
        remote: RemoteStore,
        tree: LocalTreeAdapter,
        config_manager: ConfigManager,
        presenter: Presenter,
        *,
        ai_tags_enabled: bool = True,
        batch_delay: float = 0.1,
    ) -> None:
        self._remote = remote
        self._tree = tree
        self._config = config_manager
        self._presenter = presenter
        self.ai_tags_enabled = ai_tags_enabled
        self.batch_delay = batch_delay
        self._synced: set[str] = set()
        self._remote_ids: dict[str, str] = {}
        self._echoes: set[str] = set()
        self._upserts: SingleFlight[tuple[RemoteBookmark, SyncAction]] = SingleFlight(
            "bookmark_upsert"
        )
        self._workflow: RecommendationWorkflow | None = None

    def attach_workflow(self, workflow: RecommendationWorkflow | None) -> None:
        self._workflow = workflow

    def is_available(self) -> bool:
        config = self._config.get()
        return config.sync_enabled and self._config.is_authenticated()

    def is_synced(self, local_id: str) -> bool:
        return local_id in self._synced

    def remote_id_for(self, local_id: str) -> str | None:
        return self._remote_ids.get(local_id)

    def register_imported(self, local_id: str, remote_id: str) -> None:
        """Mark a node created from remote data so its creation is not pushed back."""
        self._synced.add(local_id)
        self._remote_ids[local_id] = remote_id

    def expect_echo(self, local_id: str) -> None:
        """Drop the next `changed` event for a node updated from remote data."""
        self._echoes.add(local_id)

    def cancel_echo(self, local_id: str) -> None:
        self._echoes.discard(local_id)

    # ------------------------------------------------------------------
    # Tree events
    # ------------------------------------------------------------------

    async def on_created(self, node: LocalNode) -> ForwardSyncOutcome | None:
        if node.is_folder:
            return None
        if node.id in self._synced:
            logger.debug("forward_sync_already_synced", extra={"bookmark_id": node.id})
            return None
        if self._workflow is not None:
            await self._workflow.handle_new_bookmark(node)
            return None
        return await self.sync_create(node)

    async def on_changed(self, node: LocalNode) -> ForwardSyncOutcome | None:
        if node.is_folder:
            return None
        if node.id in self._echoes:
            self._echoes.discard(node.id)
            logger.debug("forward_sync_echo_dropped", extra={"bookmark_id": node.id})
            return None
        return await self.sync_update(node)

    async def on_moved(self, node: LocalNode) -> ForwardSyncOutcome | None:
        if node.is_folder:
            return None
        return await self.sync_update(node)

    async def on_removed(self, node: LocalNode) -> ForwardSyncOutcome | None:
        if node.is_folder:
            return None
        return await self.sync_delete(node.id, title=node.title)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sync_create(self, node: LocalNode) -> ForwardSyncOutcome:
        if node.id in self._synced:
            return _skipped("already_synced")
        return await self._sync(node)

    async def sync_update(self, node: LocalNode) -> ForwardSyncOutcome:
        if node.url and self._upserts.in_flight(node.url):
            # Let the running upsert land first so this one sees its record.
            await self._sync(node)
        return await self._sync(node)

    async def _sync(self, node: LocalNode, *, notify: bool = True) -> ForwardSyncOutcome:
        if not node.url:
            return _skipped("not_a_bookmark")
        if not self.is_available():
            return _skipped("sync_unavailable")

        self._synced.add(node.id)
        local_id = node.id
        try:
            bookmark, action = await self._upserts.do(node.url, lambda: self._upsert(local_id))
        except Exception as exc:
            self._synced.discard(node.id)
            logger.warning(
                "forward_sync_failed",
                extra={"bookmark_id": node.id, "url": node.url, "error": str(exc)},
            )
            if notify:
                await self._notify_failure(node.title, exc)
            return ForwardSyncOutcome(success=False, action=SyncAction.SKIPPED, error=str(exc))

        self._remote_ids[node.id] = bookmark.id
        return ForwardSyncOutcome(success=True, action=action, remote_id=bookmark.id)

    async def _upsert(self, local_id: str) -> tuple[RemoteBookmark, SyncAction]:
        node = await self._tree.get(local_id)
        url = node.url or ""
        title = node.title or url
        path = await folder_path_of(self._tree, local_id)
        folder_id = await self._remote.ensure_folder_path(path)

        existing = await self._remote.find_bookmark_by_url(url)
        if existing is None:
            mapped_id = self._remote_ids.get(local_id)
            if mapped_id is not None:
                try:
                    patched = await self._remote.update_bookmark(
                        mapped_id, title=title, url=url, folder_id=folder_id, local_id=local_id
                    )
                except NotFoundError:
                    self._remote_ids.pop(local_id, None)
                else:
                    logger.info(
                        "forward_sync_url_changed",
                        extra={"bookmark_id": local_id, "remote_id": mapped_id, "url": url},
                    )
                    return patched, SyncAction.UPDATED
            existing = await self._remote.find_bookmark_by_local_id(local_id)

        if existing is None:
            return await self._create(local_id, title, url, folder_id), SyncAction.CREATED

        changes: dict[str, str | None] = {}
        if existing.title != title:
            changes["title"] = title
        if existing.url != url:
            changes["url"] = url
        if existing.folder_id != folder_id:
            changes["folder_id"] = folder_id
        if existing.local_id != local_id:
            changes["local_id"] = local_id
        if not changes:
            return existing, SyncAction.SKIPPED

        try:
            updated = await self._remote.update_bookmark(existing.id, **changes)
        except NotFoundError:
            return await self._create(local_id, title, url, folder_id), SyncAction.CREATED
        logger.info(
            "forward_sync_updated",
            extra={"bookmark_id": local_id, "remote_id": existing.id, "fields": sorted(changes)},
        )
        return updated, SyncAction.UPDATED

    async def _create(
        self, local_id: str, title: str, url: str, folder_id: str | None
    ) -> RemoteBookmark:
        created = await self._remote.create_bookmark(
            title=title, url=url, folder_id=folder_id, local_id=local_id
        )
        if self.ai_tags_enabled:
            await self._remote.trigger_ai_tag_suggestion(created.id)
        return created

    async def sync_delete(self, local_id: str, *, title: str = "") -> ForwardSyncOutcome:
        if not self.is_available():
            return _skipped("sync_unavailable")
        try:
            remote_id = self._remote_ids.get(local_id)
            if remote_id is None:
                record = await self._remote.find_bookmark_by_local_id(local_id)
                remote_id = record.id if record is not None else None
            if remote_id is None:
                self._synced.discard(local_id)
                logger.debug("forward_delete_no_mapping", extra={"bookmark_id": local_id})
                return _skipped("no_mapping")
            try:
                await self._remote.delete_bookmark(remote_id)
            except NotFoundError:
                logger.info("forward_delete_already_gone", extra={"remote_id": remote_id})
            self._remote_ids.pop(local_id, None)
            self._synced.discard(local_id)
        except Exception as exc:
            logger.warning(
                "forward_delete_failed", extra={"bookmark_id": local_id, "error": str(exc)}
            )
            await self._notify_failure(title or local_id, exc)
            return ForwardSyncOutcome(success=False, action=SyncAction.SKIPPED, error=str(exc))
        return ForwardSyncOutcome(success=True, action=SyncAction.DELETED, remote_id=remote_id)

    async def batch_sync(self) -> BatchSyncResult:
        """Upsert every local bookmark, pausing ``batch_delay`` between items."""
        result = BatchSyncResult()
        if not self.is_available():
            record_error(result, "Sync is disabled or not authenticated")
            return result

        correlation_id = generate_correlation_id()
        root = await self._tree.get_full_tree()
        _, bookmarks = extract_tree(root)
        logger.info(
            "batch_sync_started", extra={"cid": correlation_id, "count": len(bookmarks)}
        )
        for position, entry in enumerate(bookmarks):
            if position and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
            try:
                node = await self._tree.get(entry.id)
            except Exception as exc:
                result.failed += 1
                record_error(result, f"{entry.title or entry.url}: {exc}")
                continue
            outcome = await self._sync(node, notify=False)
            if outcome.success:
                result.successful += 1
            else:
                result.failed += 1
                record_error(result, f"{entry.title or entry.url}: {outcome.error}")

        logger.info(
            "batch_sync_completed",
            extra={
                "cid": correlation_id,
                "successful": result.successful,
                "failed": result.failed,
            },
        )
        return result

    async def _notify_failure(self, title: str, exc: Exception) -> None:
        if not self._config.get().show_notifications:
            return
        try:
            await self._presenter.notify(FAILURE_TITLE, f"{title}: {exc}")
        except Exception:
            logger.exception("forward_sync_notify_failed")
