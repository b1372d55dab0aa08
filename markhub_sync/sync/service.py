"""Composition root wiring the Markhub client, the local tree and the sync engines."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from markhub_sync.adapters.ai.client import FolderRecommendationClient
from markhub_sync.adapters.markhub.client import MarkhubClient
from markhub_sync.config.manager import ConfigManager
from markhub_sync.sync.forward import ForwardSyncEngine
from markhub_sync.sync.messaging import MessageAck, MessageType, NullPresenter, parse_inbound
from markhub_sync.sync.recommendation import RecommendationWorkflow
from markhub_sync.sync.reverse import ReverseSyncManager

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from markhub_sync.adapters.ai.protocols import FolderScorer
    from markhub_sync.adapters.local_tree.models import LocalNode
    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter
    from markhub_sync.config.settings import AppConfig
    from markhub_sync.sync.messaging import Presenter
    from markhub_sync.sync.models import BatchSyncResult, SyncResult

logger = logging.getLogger(__name__)


class SyncService:
    """Owns every sync component for one local tree.

    A recommendation workflow is only wired when a scorer is passed in or the
    AI folder recommendation service is configured.
    """

    def __init__(
        self,
        app_config: AppConfig,
        tree: LocalTreeAdapter,
        *,
        config_manager: ConfigManager | None = None,
        presenter: Presenter | None = None,
        scorer: FolderScorer | None = None,
        markhub_transport: httpx.AsyncBaseTransport | None = None,
        ai_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_config = app_config
        self.tree = tree
        self.config_manager = config_manager or ConfigManager()
        self.presenter: Presenter = presenter or NullPresenter()
        self.client = MarkhubClient.from_config(
            app_config.markhub, self.config_manager, transport=markhub_transport
        )

        self._ai_client: FolderRecommendationClient | None = None
        if scorer is None and app_config.folder_recommendation.is_configured:
            self._ai_client = FolderRecommendationClient.from_config(
                app_config.folder_recommendation, transport=ai_transport
            )
            scorer = self._ai_client

        self.forward = ForwardSyncEngine(
            self.client,
            tree,
            self.config_manager,
            self.presenter,
            ai_tags_enabled=app_config.markhub.ai_tags_enabled,
            batch_delay=app_config.sync.batch_delay_sec,
        )
        self.workflow: RecommendationWorkflow | None = None
        if scorer is not None:
            self.workflow = RecommendationWorkflow(
                tree,
                scorer,
                self.forward,
                self.presenter,
                self.config_manager,
                auto_accept_min_confidence=(
                    app_config.folder_recommendation.auto_accept_min_confidence
                ),
            )
            self.forward.attach_workflow(self.workflow)
        self.reverse = ReverseSyncManager(
            self.client,
            tree,
            self.config_manager,
            self.forward,
            folder_delay=app_config.sync.folder_delay_sec,
            bookmark_delay=app_config.sync.bookmark_delay_sec,
        )

        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Load user config, open the HTTP client and subscribe to tree events once."""
        async with self._init_lock:
            if self._initialized:
                return
            await self.config_manager.initialize()
            await self.client.open()
            self.tree.on_created(self._guard("created", self.forward.on_created))
            self.tree.on_changed(self._guard("changed", self.forward.on_changed))
            self.tree.on_moved(self._guard("moved", self.forward.on_moved))
            self.tree.on_removed(self._guard("removed", self.forward.on_removed))
            self._initialized = True
            logger.info(
                "sync_service_initialized",
                extra={
                    "recommendations": self.workflow is not None,
                    "sync_enabled": self.config_manager.get().sync_enabled,
                },
            )

    @staticmethod
    def _guard(
        event: str, handler: Callable[[LocalNode], Awaitable[Any]]
    ) -> Callable[[LocalNode], Awaitable[None]]:
        async def _handle(node: LocalNode) -> None:
            try:
                await handler(node)
            except Exception:
                logger.exception(
                    "tree_event_handler_failed", extra={"event": event, "bookmark_id": node.id}
                )

        return _handle

    async def handle_message(self, payload: Any) -> dict[str, Any]:
        """Dispatch an inbound UI message and return its acknowledgement."""
        try:
            message = parse_inbound(payload)
        except ValueError as exc:
            logger.warning("ui_message_rejected", extra={"error": str(exc)})
            return MessageAck(success=False, error=str(exc)).to_wire()

        if self.workflow is None:
            return MessageAck(
                success=False, error="Folder recommendations are not enabled"
            ).to_wire()

        if message.type is MessageType.ACCEPT_FOLDER_RECOMMENDATION:
            ack = await self.workflow.accept(message.bookmark_id)
        else:
            ack = await self.workflow.dismiss(message.bookmark_id)
        return ack.to_wire()

    async def sync_from_markhub(self) -> SyncResult:
        return await self.reverse.sync_from_markhub()

    async def batch_sync(self) -> BatchSyncResult:
        return await self.forward.batch_sync()

    async def aclose(self) -> None:
        await self.client.aclose()
        if self._ai_client is not None:
            await self._ai_client.aclose()
