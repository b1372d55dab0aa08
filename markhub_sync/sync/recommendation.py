"""Folder recommendation workflow for newly created bookmarks.

A new bookmark is scored against the user's folders. The user may accept the
suggestion (the bookmark is moved and the move is synced) or dismiss it (the
bookmark is synced where it is). Every path ends with exactly one remote
upsert for the bookmark.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.models import LocalTreeError
from markhub_sync.adapters.local_tree.paths import recommendation_candidates
from markhub_sync.sync.messaging import FolderRecommendationData, MessageAck, UIMessage
from markhub_sync.sync.models import (
    TRANSITIONS,
    ForwardSyncOutcome,
    PendingRecommendation,
    RecommendationState,
)

if TYPE_CHECKING:
    from markhub_sync.adapters.ai.models import FolderRecommendation
    from markhub_sync.adapters.ai.protocols import FolderScorer
    from markhub_sync.adapters.local_tree.models import LocalNode
    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter
    from markhub_sync.config.manager import ConfigManager
    from markhub_sync.sync.forward import ForwardSyncEngine
    from markhub_sync.sync.messaging import Presenter

logger = logging.getLogger(__name__)

NO_FOLDERS_MESSAGE = "No folders available for a recommendation"
FAILED_MESSAGE = "Folder recommendation failed"


class WorkflowError(Exception):
    """Raised on an illegal recommendation state transition."""


@dataclass
class _Entry:
    bookmark_id: str
    state: RecommendationState = RecommendationState.NEW
    pending: PendingRecommendation | None = None


class RecommendationWorkflow:
    def __init__(
        self,
        tree: LocalTreeAdapter,
        scorer: FolderScorer,
        forward: ForwardSyncEngine,
        presenter: Presenter,
        config_manager: ConfigManager,
        *,
        auto_accept_min_confidence: float = 0.7,
    ) -> None:
        self._tree = tree
        self._scorer = scorer
        self._forward = forward
        self._presenter = presenter
        self._config = config_manager
        self.auto_accept_min_confidence = auto_accept_min_confidence
        self._entries: dict[str, _Entry] = {}

    def state_of(self, bookmark_id: str) -> RecommendationState | None:
        entry = self._entries.get(bookmark_id)
        return entry.state if entry is not None else None

    def pending(self, bookmark_id: str) -> PendingRecommendation | None:
        entry = self._entries.get(bookmark_id)
        return entry.pending if entry is not None else None

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.pending is not None)

    def _transition(self, entry: _Entry, target: RecommendationState) -> None:
        if target not in TRANSITIONS[entry.state]:
            msg = f"Illegal transition {entry.state} -> {target} for {entry.bookmark_id}"
            raise WorkflowError(msg)
        logger.debug(
            "recommendation_transition",
            extra={"bookmark_id": entry.bookmark_id, "from": entry.state, "to": target},
        )
        entry.state = target

    def _finish(self, entry: _Entry, target: RecommendationState) -> None:
        self._transition(entry, target)
        if self._entries.get(entry.bookmark_id) is entry:
            del self._entries[entry.bookmark_id]

    async def handle_new_bookmark(self, node: LocalNode) -> RecommendationState:
        """Run the workflow for ``node`` and return the state it settled in."""
        entry = _Entry(node.id)
        # A newer request for the same bookmark replaces the older one.
        self._entries[node.id] = entry
        self._transition(entry, RecommendationState.REQUESTED)
        await self._send(UIMessage.ai_processing())

        try:
            candidates = recommendation_candidates(await self._tree.get_full_tree())
        except LocalTreeError as exc:
            logger.warning("recommendation_tree_failed", extra={"error": str(exc)})
            return await self._fail(entry, RecommendationState.FAILED, FAILED_MESSAGE)
        if not candidates:
            return await self._fail(entry, RecommendationState.NO_FOLDERS, NO_FOLDERS_MESSAGE)

        recommendation: FolderRecommendation | None = None
        try:
            recommendation = await self._scorer.recommend(node.title, node.url or "", candidates)
        except Exception as exc:
            logger.warning(
                "recommendation_scorer_failed",
                extra={"bookmark_id": node.id, "error": str(exc)},
            )

        if self._entries.get(node.id) is not entry:
            logger.info("recommendation_superseded", extra={"bookmark_id": node.id})
            return entry.state
        if recommendation is None:
            return await self._fail(entry, RecommendationState.FAILED, FAILED_MESSAGE)

        data = FolderRecommendationData(
            bookmark_title=node.title,
            recommended_folder=recommendation.folder_name,
            bookmark_id=node.id,
            confidence=recommendation.confidence,
            reason=recommendation.reason,
        )

        if recommendation.folder_id == node.parent_id:
            self._finish(entry, RecommendationState.SAME_FOLDER)
            data.is_already_in_folder = True
            await self._send(UIMessage.folder_recommendation(data))
            await self._sync_current(node.id)
            return RecommendationState.SAME_FOLDER

        self._transition(entry, RecommendationState.SUGGESTED)
        entry.pending = PendingRecommendation(
            bookmark_id=node.id,
            recommended_folder_id=recommendation.folder_id,
            recommended_folder_name=recommendation.folder_name,
            confidence=recommendation.confidence,
            reason=recommendation.reason,
            original_parent_id=node.parent_id,
        )
        if await self._send(UIMessage.folder_recommendation(data)):
            return RecommendationState.SUGGESTED

        if (
            recommendation.confidence >= self.auto_accept_min_confidence
            and self._config.get().auto_move_to_recommended_folder
        ):
            ack = await self.accept(node.id)
            if ack.success:
                logger.info(
                    "recommendation_auto_accepted",
                    extra={"bookmark_id": node.id, "confidence": recommendation.confidence},
                )
                return RecommendationState.ACCEPTED
        await self.dismiss(node.id)
        return RecommendationState.DISMISSED

    async def accept(self, bookmark_id: str) -> MessageAck:
        """Move the bookmark into the recommended folder; the move event syncs it."""
        entry = self._entries.get(bookmark_id)
        if entry is None or entry.pending is None:
            return MessageAck(success=False, error="No pending recommendation for bookmark")
        try:
            await self._tree.move(bookmark_id, entry.pending.recommended_folder_id)
        except LocalTreeError as exc:
            logger.warning(
                "recommendation_move_failed",
                extra={"bookmark_id": bookmark_id, "error": str(exc)},
            )
            return MessageAck(success=False, error=str(exc))
        self._finish(entry, RecommendationState.ACCEPTED)
        logger.info(
            "recommendation_accepted",
            extra={"bookmark_id": bookmark_id, "folder_id": entry.pending.recommended_folder_id},
        )
        return MessageAck(success=True)

    async def dismiss(self, bookmark_id: str) -> MessageAck:
        """Drop the suggestion and sync the bookmark where it currently is."""
        entry = self._entries.get(bookmark_id)
        if entry is None or entry.pending is None:
            return MessageAck(success=False, error="No pending recommendation for bookmark")
        self._finish(entry, RecommendationState.DISMISSED)
        outcome = await self._sync_current(bookmark_id)
        if outcome is None:
            return MessageAck(success=False, error="Bookmark no longer exists")
        return MessageAck(success=True)

    async def _fail(
        self, entry: _Entry, target: RecommendationState, message: str
    ) -> RecommendationState:
        self._finish(entry, target)
        await self._send(UIMessage.ai_error(message))
        await self._sync_current(entry.bookmark_id)
        return target

    async def _sync_current(self, bookmark_id: str) -> ForwardSyncOutcome | None:
        try:
            node = await self._tree.get(bookmark_id)
        except LocalTreeError:
            logger.info("recommendation_bookmark_gone", extra={"bookmark_id": bookmark_id})
            return None
        return await self._forward.sync_create(node)

    async def _send(self, message: UIMessage) -> bool:
        try:
            return await self._presenter.send(message)
        except Exception:
            logger.exception("recommendation_send_failed", extra={"message_type": message.type})
            return False
