"""SyncService wiring and inbound message dispatch."""

from __future__ import annotations

import pytest

from markhub_sync.adapters.ai.client import FolderRecommendationClient
from markhub_sync.adapters.ai.models import FolderRecommendation
from markhub_sync.adapters.local_tree.models import LocalNode, TreeEvent
from markhub_sync.adapters.local_tree.paths import BOOKMARKS_BAR_ID
from markhub_sync.adapters.markhub.client import BOOKMARKS_PATH
from markhub_sync.config.integrations import FolderRecommendationConfig, MarkhubConfig
from markhub_sync.config.settings import AppConfig, RuntimeConfig, SyncBehaviorConfig
from markhub_sync.sync.service import SyncService

from tests.conftest import API_URL, FakeScorer


def make_app_config(**ai: str) -> AppConfig:
    return AppConfig(
        markhub=MarkhubConfig(api_url=API_URL, ai_tags_enabled=False),
        folder_recommendation=FolderRecommendationConfig(**ai),
        sync=SyncBehaviorConfig(folder_delay_sec=0, bookmark_delay_sec=0, batch_delay_sec=0),
        runtime=RuntimeConfig(),
    )


@pytest.fixture
def make_service(fake_server, tree, config_manager, presenter):
    def _make(**kwargs) -> SyncService:
        ai = kwargs.pop("ai", {})
        service = SyncService(
            make_app_config(**ai),
            tree,
            config_manager=config_manager,
            presenter=presenter,
            markhub_transport=fake_server.transport(),
            **kwargs,
        )
        return service

    return _make


class TestWiring:
    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, make_service, tree):
        service = make_service()
        await service.initialize()
        await service.initialize()
        try:
            assert service.initialized
            for event in TreeEvent:
                assert tree.events.handler_count(event) == 1
        finally:
            await service.aclose()

    @pytest.mark.asyncio
    async def test_workflow_only_with_a_scorer(self, make_service):
        assert make_service().workflow is None
        assert make_service(scorer=FakeScorer(None)).workflow is not None

    @pytest.mark.asyncio
    async def test_configured_ai_service_becomes_the_scorer(self, make_service):
        service = make_service(ai={"api_key": "sk-test"})
        try:
            assert service.workflow is not None
            assert isinstance(service._ai_client, FolderRecommendationClient)
        finally:
            await service.aclose()

    @pytest.mark.asyncio
    async def test_guard_contains_handler_errors(self):
        async def broken(node):
            raise RuntimeError("handler bug")

        guarded = SyncService._guard("created", broken)
        await guarded(LocalNode(id="5", title="x", url="https://example.com/"))


class TestMessages:
    @pytest.mark.asyncio
    async def test_accept_message_moves_and_syncs(self, make_service, tree, fake_server):
        work = tree.add_node(BOOKMARKS_BAR_ID, "Work")
        scorer = FakeScorer(
            FolderRecommendation(folder_id=work.id, folder_name="Work", confidence=0.9)
        )
        service = make_service(scorer=scorer)
        await service.initialize()
        try:
            node = await tree.create(BOOKMARKS_BAR_ID, "Q3 report", "https://example.com/q3")
            await tree.drain_events()
            ack = await service.handle_message(
                {"type": "ACCEPT_FOLDER_RECOMMENDATION", "data": {"bookmarkId": node.id}}
            )
            await tree.drain_events()
        finally:
            await service.aclose()

        assert ack == {"success": True}
        assert fake_server.count("POST", BOOKMARKS_PATH) == 1
        record = next(iter(fake_server.bookmarks.values()))
        assert fake_server.folder_path(record["folderId"]) == ["Work"]

    @pytest.mark.asyncio
    async def test_dismiss_without_pending(self, make_service):
        service = make_service(scorer=FakeScorer(None))
        ack = await service.handle_message(
            {"type": "DISMISS_FOLDER_RECOMMENDATION", "data": {"bookmarkId": "42"}}
        )
        assert ack == {"success": False, "error": "No pending recommendation for bookmark"}

    @pytest.mark.asyncio
    async def test_malformed_message(self, make_service):
        ack = await make_service(scorer=FakeScorer(None)).handle_message({"type": "PING"})
        assert ack["success"] is False
        assert "Unknown message type" in ack["error"]

    @pytest.mark.asyncio
    async def test_recommendations_disabled(self, make_service):
        ack = await make_service().handle_message(
            {"type": "ACCEPT_FOLDER_RECOMMENDATION", "data": {"bookmarkId": "42"}}
        )
        assert ack == {"success": False, "error": "Folder recommendations are not enabled"}


class TestSyncEntryPoints:
    @pytest.mark.asyncio
    async def test_pull_then_push(self, make_service, tree, fake_server):
        fake_server.add_bookmark("Remote", "https://remote.test/")
        tree.add_node(BOOKMARKS_BAR_ID, "Local", "https://local.test/")
        service = make_service()
        await service.initialize()
        try:
            pulled = await service.sync_from_markhub()
            await tree.drain_events()
            pushed = await service.batch_sync()
        finally:
            await service.aclose()

        assert pulled.success and pulled.bookmarks_created == 1
        assert (pushed.successful, pushed.failed) == (2, 0)
        assert {record["url"] for record in fake_server.bookmarks.values()} == {
            "https://remote.test/",
            "https://local.test/",
        }
