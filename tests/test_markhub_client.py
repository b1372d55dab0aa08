"""Tests for the Markhub HTTP client against the in-process fake server."""

from __future__ import annotations

import httpx
import pytest

from markhub_sync.adapters.markhub.client import BOOKMARKS_PATH, FOLDERS_PATH, MarkhubClient
from markhub_sync.adapters.markhub.errors import (
    AuthError,
    MarkhubAPIError,
    MarkhubClientError,
    NetworkError,
    NotFoundError,
)
from markhub_sync.config.integrations import MarkhubConfig
from markhub_sync.config.manager import ConfigManager, InMemoryConfigStorage

from tests.conftest import API_URL, EXPORT_TIME, PASSWORD, TOKEN


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_login_stores_token(self, fake_server):
        manager = ConfigManager(InMemoryConfigStorage())
        await manager.initialize()
        async with MarkhubClient(manager, API_URL, transport=fake_server.transport()) as client:
            auth = await client.login("user@example.com", PASSWORD)

        assert auth.token == TOKEN
        assert auth.record.email == "user@example.com"
        assert manager.auth_token == TOKEN
        assert client.is_authenticated()

    @pytest.mark.asyncio
    async def test_wrong_password_raises_auth_error(self, fake_server):
        manager = ConfigManager(InMemoryConfigStorage())
        await manager.initialize()
        async with MarkhubClient(manager, API_URL, transport=fake_server.transport()) as client:
            with pytest.raises(AuthError):
                await client.login("user@example.com", "wrong")
        assert manager.auth_token is None

    @pytest.mark.asyncio
    async def test_rejected_token_is_cleared(self, fake_server, markhub_client, config_manager):
        fake_server.reject_auth = True
        with pytest.raises(AuthError) as exc_info:
            await markhub_client.get_folders()

        assert exc_info.value.status_code == 401
        assert config_manager.auth_token is None
        assert not markhub_client.is_authenticated()

    @pytest.mark.asyncio
    async def test_logout_clears_token(self, markhub_client, config_manager):
        await markhub_client.logout()
        assert config_manager.auth_token is None


class TestRequests:
    @pytest.mark.asyncio
    async def test_missing_record_raises_not_found(self, markhub_client):
        with pytest.raises(NotFoundError):
            await markhub_client.update_bookmark("missing", title="x")

    @pytest.mark.asyncio
    async def test_server_error_raises_api_error(self, fake_server, markhub_client):
        fake_server.fail_bookmark_urls.add("https://broken.test/")
        with pytest.raises(MarkhubAPIError) as exc_info:
            await markhub_client.create_bookmark(title="Broken", url="https://broken.test/")
        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value, MarkhubClientError)

    @pytest.mark.asyncio
    async def test_transport_error_raises_network_error(self, config_manager):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with MarkhubClient(
            config_manager, API_URL, transport=httpx.MockTransport(handler)
        ) as client:
            with pytest.raises(NetworkError):
                await client.get_folders()

    @pytest.mark.asyncio
    async def test_client_must_be_opened(self, config_manager):
        client = MarkhubClient(config_manager, API_URL)
        with pytest.raises(MarkhubClientError):
            await client.get_folders()

    @pytest.mark.asyncio
    async def test_listing_follows_pages(self, fake_server, config_manager):
        for index in range(5):
            fake_server.add_folder(f"Folder {index}")
        async with MarkhubClient(
            config_manager, API_URL, page_size=2, transport=fake_server.transport()
        ) as client:
            folders = await client.get_folders()

        assert [folder.name for folder in folders] == [f"Folder {i}" for i in range(5)]
        assert fake_server.count("GET", FOLDERS_PATH) == 3

    @pytest.mark.asyncio
    async def test_blank_parent_is_none(self, fake_server, markhub_client):
        fake_server.add_folder("Work")
        folders = await markhub_client.get_folders()
        assert folders[0].parent_id is None

    def test_from_config_applies_export_timeout(self):
        config = MarkhubConfig(api_url="https://example.test/", export_timeout_sec=300)
        client = MarkhubClient.from_config(config, ConfigManager())
        assert client.api_url == "https://example.test"
        assert client.get_timeout("sync_export") == 300
        assert client.get_timeout("unknown") == client.timeout


class TestFolders:
    @pytest.mark.asyncio
    async def test_update_folder_refreshes_cache(self, fake_server, markhub_client):
        work = fake_server.add_folder("Work")
        await markhub_client.folders.refresh(force=True)
        assert markhub_client.folder_cache.find("Work", None) is not None

        renamed = await markhub_client.update_folder(work["id"], name="Projects")

        assert renamed.name == "Projects"
        assert fake_server.folders[work["id"]]["name"] == "Projects"
        assert markhub_client.folder_cache.get(work["id"]) is None
        assert markhub_client.folder_cache.is_stale
        assert await markhub_client.resolve_folder_path(["Projects"]) == work["id"]
        assert fake_server.count("POST", FOLDERS_PATH) == 0

    @pytest.mark.asyncio
    async def test_update_folder_uses_wire_names(self, fake_server, markhub_client):
        parent = fake_server.add_folder("Archive")
        child = fake_server.add_folder("Reports")

        moved = await markhub_client.update_folder(child["id"], parent_id=parent["id"])

        assert moved.parent_id == parent["id"]
        assert fake_server.folders[child["id"]]["parentId"] == parent["id"]

    @pytest.mark.asyncio
    async def test_delete_folder_evicts_cache(self, fake_server, markhub_client):
        work = fake_server.add_folder("Work")
        await markhub_client.folders.refresh(force=True)

        await markhub_client.delete_folder(work["id"])

        assert work["id"] not in fake_server.folders
        assert fake_server.count("DELETE", f"{FOLDERS_PATH}/{work['id']}") == 1
        assert markhub_client.folder_cache.get(work["id"]) is None
        assert markhub_client.folder_cache.find("Work", None) is None

    @pytest.mark.asyncio
    async def test_delete_missing_folder_raises_not_found(self, markhub_client):
        with pytest.raises(NotFoundError):
            await markhub_client.delete_folder("missing")


class TestBookmarks:
    @pytest.mark.asyncio
    async def test_create_and_find(self, fake_server, markhub_client):
        created = await markhub_client.create_bookmark(
            title="Example", url="https://example.com/", local_id="101"
        )
        assert created.local_id == "101"
        assert created.folder_id is None

        by_url = await markhub_client.find_bookmark_by_url("https://example.com/")
        by_local = await markhub_client.find_bookmark_by_local_id("101")
        assert by_url is not None and by_url.id == created.id
        assert by_local is not None and by_local.id == created.id
        assert await markhub_client.find_bookmark_by_url("https://other.com/") is None

    @pytest.mark.asyncio
    async def test_get_bookmarks_lists_every_record(self, fake_server, config_manager):
        for index in range(5):
            fake_server.add_bookmark(f"Page {index}", f"https://example.com/{index}")
        async with MarkhubClient(
            config_manager, API_URL, transport=fake_server.transport(), page_size=2
        ) as client:
            bookmarks = await client.get_bookmarks()

        assert [bookmark.url for bookmark in bookmarks] == [
            f"https://example.com/{index}" for index in range(5)
        ]
        assert fake_server.count("GET", BOOKMARKS_PATH) == 3

    @pytest.mark.asyncio
    async def test_find_by_url_escapes_quotes(self, fake_server, markhub_client):
        url = 'https://example.com/?q="quoted"'
        fake_server.add_bookmark("Quoted", url)
        found = await markhub_client.find_bookmark_by_url(url)
        assert found is not None
        assert found.url == url

    @pytest.mark.asyncio
    async def test_update_uses_wire_names(self, fake_server, markhub_client):
        record = fake_server.add_bookmark("Old", "https://example.com/")
        updated = await markhub_client.update_bookmark(
            record["id"], title="New", folder_id="f1", local_id="55"
        )
        assert updated.title == "New"
        assert fake_server.bookmarks[record["id"]]["folderId"] == "f1"
        assert fake_server.bookmarks[record["id"]]["chromeBookmarkId"] == "55"

    @pytest.mark.asyncio
    async def test_delete(self, fake_server, markhub_client):
        record = fake_server.add_bookmark("Gone", "https://example.com/")
        await markhub_client.delete_bookmark(record["id"])
        assert record["id"] not in fake_server.bookmarks
        assert fake_server.count("DELETE", f"{BOOKMARKS_PATH}/{record['id']}") == 1

    @pytest.mark.asyncio
    async def test_ai_tag_failure_is_not_raised(self, config_manager):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "AI unavailable"})

        async with MarkhubClient(
            config_manager, API_URL, transport=httpx.MockTransport(handler)
        ) as client:
            assert await client.trigger_ai_tag_suggestion("b1") is False

    @pytest.mark.asyncio
    async def test_ai_tag_success(self, markhub_client):
        assert await markhub_client.trigger_ai_tag_suggestion("b1") is True


class TestSyncExport:
    @pytest.mark.asyncio
    async def test_export_parses_paths(self, fake_server, markhub_client):
        work = fake_server.add_folder("Work")
        reports = fake_server.add_folder("Reports", work["id"])
        fake_server.add_bookmark("Q3", "https://example.com/q3", reports["id"])

        export = await markhub_client.get_sync_export()

        assert sorted(tuple(folder.path) for folder in export.folders) == [
            ("Work",),
            ("Work", "Reports"),
        ]
        assert export.bookmarks[0].folder_path == ["Work", "Reports"]
        assert export.metadata.export_time == EXPORT_TIME
        assert export.metadata.total_bookmarks == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_export_raises(self, config_manager):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "message": "not allowed"})

        async with MarkhubClient(
            config_manager, API_URL, transport=httpx.MockTransport(handler)
        ) as client:
            with pytest.raises(MarkhubAPIError, match="not allowed"):
                await client.get_sync_export()

    @pytest.mark.asyncio
    async def test_health_check(self, markhub_client):
        assert await markhub_client.health_check() is True
