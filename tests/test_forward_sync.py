"""Forward sync: local tree changes pushed to Markhub."""

from __future__ import annotations

import asyncio

import pytest

from markhub_sync.adapters.local_tree.paths import BOOKMARKS_BAR_ID
from markhub_sync.adapters.markhub.client import BOOKMARKS_PATH
from markhub_sync.sync.forward import FAILURE_TITLE, ForwardSyncEngine
from markhub_sync.sync.models import SyncAction

AI_TAGS_PATH = "/api/custom/bookmarks/{}/ai-suggest-and-set-tags"


@pytest.fixture
def engine(markhub_client, tree, config_manager, presenter) -> ForwardSyncEngine:
    return ForwardSyncEngine(
        markhub_client, tree, config_manager, presenter, ai_tags_enabled=False, batch_delay=0
    )


def only_bookmark(fake_server) -> dict:
    assert len(fake_server.bookmarks) == 1
    return next(iter(fake_server.bookmarks.values()))


class TestCreate:
    @pytest.mark.asyncio
    async def test_bookmark_on_bar_is_created_without_folder(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        outcome = await engine.on_created(node)

        assert outcome.action is SyncAction.CREATED
        assert fake_server.count("POST", BOOKMARKS_PATH) == 1
        record = only_bookmark(fake_server)
        assert record["folderId"] is None
        assert record["chromeBookmarkId"] == node.id
        assert engine.is_synced(node.id)
        assert engine.remote_id_for(node.id) == record["id"]

    @pytest.mark.asyncio
    async def test_folder_path_is_mirrored(self, engine, fake_server, tree):
        work = tree.add_node(BOOKMARKS_BAR_ID, "Work")
        reports = tree.add_node(work.id, "Reports")
        node = tree.add_node(reports.id, "Q3", "https://example.com/q3")

        await engine.on_created(node)

        record = only_bookmark(fake_server)
        assert fake_server.folder_path(record["folderId"]) == ["Work", "Reports"]

    @pytest.mark.asyncio
    async def test_repeated_creation_events_push_once(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        await engine.on_created(node)
        assert await engine.on_created(node) is None
        assert (await engine.sync_create(node)).reason == "already_synced"

        assert fake_server.count("POST", BOOKMARKS_PATH) == 1

    @pytest.mark.asyncio
    async def test_racing_create_and_change_make_one_record(self, engine, fake_server, tree):
        fake_server.latency = 0.01
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        created, changed = await asyncio.gather(engine.sync_create(node), engine.sync_update(node))

        assert created.action is SyncAction.CREATED
        assert changed.success
        assert fake_server.count("POST", BOOKMARKS_PATH) == 1
        assert len(fake_server.bookmarks) == 1

    @pytest.mark.asyncio
    async def test_existing_url_is_updated_not_duplicated(self, engine, fake_server, tree):
        fake_server.add_bookmark("Old title", "https://example.com/")
        node = tree.add_node(BOOKMARKS_BAR_ID, "New title", "https://example.com/")

        outcome = await engine.on_created(node)

        assert outcome.action is SyncAction.UPDATED
        assert fake_server.count("POST", BOOKMARKS_PATH) == 0
        record = only_bookmark(fake_server)
        assert record["title"] == "New title"
        assert record["chromeBookmarkId"] == node.id

    @pytest.mark.asyncio
    async def test_ai_tags_requested_after_create(
        self, markhub_client, tree, config_manager, presenter, fake_server
    ):
        engine = ForwardSyncEngine(markhub_client, tree, config_manager, presenter)
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        outcome = await engine.on_created(node)

        assert fake_server.count("POST", AI_TAGS_PATH.format(outcome.remote_id)) == 1

    @pytest.mark.asyncio
    async def test_folders_are_ignored(self, engine, fake_server, tree):
        folder = tree.add_node(BOOKMARKS_BAR_ID, "Work")
        assert await engine.on_created(folder) is None
        assert await engine.on_changed(folder) is None
        assert fake_server.calls == []


class TestUpdate:
    @pytest.mark.asyncio
    async def test_title_change_is_patched(self, engine, fake_server, tree):
        node = await tree.create(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        await engine.sync_create(node)

        renamed = await tree.update(node.id, title="Renamed")
        outcome = await engine.on_changed(renamed)

        assert outcome.action is SyncAction.UPDATED
        assert only_bookmark(fake_server)["title"] == "Renamed"

    @pytest.mark.asyncio
    async def test_unchanged_bookmark_is_skipped(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        await engine.sync_create(node)

        outcome = await engine.sync_update(node)

        assert outcome.action is SyncAction.SKIPPED
        assert fake_server.count("PATCH", f"{BOOKMARKS_PATH}/{outcome.remote_id}") == 0

    @pytest.mark.asyncio
    async def test_url_change_patches_mapped_record(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/old")
        await engine.sync_create(node)

        edited = await tree.update(node.id, url="https://example.com/new")
        outcome = await engine.on_changed(edited)

        assert outcome.action is SyncAction.UPDATED
        assert only_bookmark(fake_server)["url"] == "https://example.com/new"

    @pytest.mark.asyncio
    async def test_move_updates_folder(self, engine, fake_server, tree):
        work = tree.add_node(BOOKMARKS_BAR_ID, "Work")
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        await engine.sync_create(node)

        moved = await tree.move(node.id, work.id)
        await engine.on_moved(moved)

        assert fake_server.folder_path(only_bookmark(fake_server)["folderId"]) == ["Work"]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_uses_mapping(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        created = await engine.sync_create(node)

        outcome = await engine.on_removed(node)

        assert outcome.action is SyncAction.DELETED
        assert fake_server.bookmarks == {}
        assert fake_server.count("DELETE", f"{BOOKMARKS_PATH}/{created.remote_id}") == 1
        assert not engine.is_synced(node.id)

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_mapping(self, engine, fake_server, tree):
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        created = await engine.sync_create(node)
        fake_server.fail_deletes = True

        failed = await engine.sync_delete(node.id)

        assert not failed.success
        assert engine.remote_id_for(node.id) == created.remote_id
        assert engine.is_synced(node.id)

        fake_server.fail_deletes = False
        retried = await engine.sync_delete(node.id)

        assert retried.action is SyncAction.DELETED
        assert retried.remote_id == created.remote_id
        assert fake_server.bookmarks == {}
        assert engine.remote_id_for(node.id) is None

    @pytest.mark.asyncio
    async def test_delete_finds_record_by_local_id(self, engine, fake_server):
        fake_server.add_bookmark("Example", "https://example.com/", local_id="321")

        outcome = await engine.sync_delete("321")

        assert outcome.action is SyncAction.DELETED
        assert fake_server.bookmarks == {}

    @pytest.mark.asyncio
    async def test_delete_without_mapping_is_a_no_op(self, engine, fake_server):
        outcome = await engine.sync_delete("404")
        assert outcome.success
        assert outcome.reason == "no_mapping"
        assert all(method != "DELETE" for method, _ in fake_server.calls)


class TestAvailabilityAndFailures:
    @pytest.mark.asyncio
    async def test_disabled_sync_pushes_nothing(self, engine, fake_server, tree, config_manager):
        await config_manager.update(sync_enabled=False)
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        assert (await engine.on_created(node)).reason == "sync_unavailable"
        assert (await engine.sync_update(node)).reason == "sync_unavailable"
        assert fake_server.calls == []

    @pytest.mark.asyncio
    async def test_failure_notifies_and_allows_retry(self, engine, fake_server, tree, presenter):
        fake_server.fail_bookmark_urls.add("https://example.com/")
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        failed = await engine.sync_create(node)

        assert not failed.success
        assert not engine.is_synced(node.id)
        assert presenter.notifications[0][0] == FAILURE_TITLE
        assert "Example" in presenter.notifications[0][1]

        fake_server.fail_bookmark_urls.clear()
        retried = await engine.sync_create(node)
        assert retried.action is SyncAction.CREATED

    @pytest.mark.asyncio
    async def test_notifications_can_be_turned_off(
        self, engine, fake_server, tree, presenter, config_manager
    ):
        await config_manager.update(show_notifications=False)
        fake_server.fail_bookmark_urls.add("https://example.com/")
        node = tree.add_node(BOOKMARKS_BAR_ID, "Example", "https://example.com/")

        await engine.sync_create(node)

        assert presenter.notifications == []


class TestBatchSync:
    @pytest.mark.asyncio
    async def test_pushes_every_bookmark(self, engine, fake_server, tree, presenter):
        work = tree.add_node(BOOKMARKS_BAR_ID, "Work")
        tree.add_node(work.id, "One", "https://example.com/1")
        tree.add_node(BOOKMARKS_BAR_ID, "Two", "https://example.com/2")
        tree.add_node(BOOKMARKS_BAR_ID, "Broken", "https://broken.test/")
        fake_server.fail_bookmark_urls.add("https://broken.test/")

        result = await engine.batch_sync()

        assert (result.successful, result.failed) == (2, 1)
        assert result.errors[0].startswith("Broken:")
        assert len(fake_server.bookmarks) == 2
        assert presenter.notifications == []

    @pytest.mark.asyncio
    async def test_unavailable(self, engine, config_manager):
        await config_manager.update(sync_enabled=False)
        result = await engine.batch_sync()
        assert result.successful == 0
        assert result.errors == ["Sync is disabled or not authenticated"]


class TestTreeWiring:
    @pytest.mark.asyncio
    async def test_tree_events_drive_sync(self, engine, fake_server, tree):
        tree.on_created(engine.on_created)
        tree.on_changed(engine.on_changed)
        tree.on_removed(engine.on_removed)

        node = await tree.create(BOOKMARKS_BAR_ID, "Example", "https://example.com/")
        await tree.drain_events()
        await tree.update(node.id, title="Renamed")
        await tree.drain_events()
        assert only_bookmark(fake_server)["title"] == "Renamed"

        await tree.remove(node.id)
        await tree.drain_events()
        assert fake_server.bookmarks == {}
        assert fake_server.count("POST", BOOKMARKS_PATH) == 1
