"""Pytest configuration and shared fixtures.

``FakeMarkhub`` is an in-process stand-in for the Markhub server that speaks
the same JSON over ``httpx.MockTransport`` and records every request.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import httpx
import pytest
import pytest_asyncio

from markhub_sync.adapters.ai.models import FolderRecommendation
from markhub_sync.adapters.local_tree.memory import InMemoryLocalTree
from markhub_sync.adapters.markhub.client import (
    AUTH_PATH,
    BOOKMARKS_PATH,
    ENSURE_PATH_PATH,
    EXPORT_PATH,
    FOLDERS_PATH,
    MarkhubClient,
)
from markhub_sync.config.manager import ConfigManager, InMemoryConfigStorage
from markhub_sync.sync.messaging import UIMessage

API_URL = "https://markhub.test"
TOKEN = "test-token"
PASSWORD = "secret"
EXPORT_TIME = "2026-10-19T12:00:00Z"

_FILTER_RE = re.compile(r'^(\w+) = "((?:[^"\\]|\\.)*)"$')
_AI_TAGS_RE = re.compile(r"^/api/custom/bookmarks/([^/]+)/ai-suggest-and-set-tags$")


class FakeMarkhub:
    """Minimal Markhub server keeping folders and bookmarks in dicts."""

    def __init__(self) -> None:
        self.folders: dict[str, dict[str, Any]] = {}
        self.bookmarks: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.ensure_path_enabled = True
        self.ensure_path_status: int | None = None
        self.fail_bookmark_urls: set[str] = set()
        self.fail_export = False
        self.fail_deletes = False
        self.reject_auth = False
        self.latency = 0.0
        self._ids = 0

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}{self._ids}"

    def add_folder(self, name: str, parent_id: str | None = None) -> dict[str, Any]:
        record = {"id": self._next_id("f"), "name": name, "parentId": parent_id or ""}
        self.folders[record["id"]] = record
        return record

    def add_bookmark(
        self,
        title: str,
        url: str,
        folder_id: str | None = None,
        local_id: str | None = None,
    ) -> dict[str, Any]:
        record = {
            "id": self._next_id("b"),
            "title": title,
            "url": url,
            "folderId": folder_id or "",
            "chromeBookmarkId": local_id or "",
            "tags": [],
            "isFavorite": False,
        }
        self.bookmarks[record["id"]] = record
        return record

    def folder_path(self, folder_id: str | None) -> list[str]:
        path: list[str] = []
        while folder_id:
            folder = self.folders[folder_id]
            path.append(folder["name"])
            folder_id = folder["parentId"] or None
        path.reverse()
        return path

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method
        self.calls.append((method, path))
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)

        if path == "/api/health":
            return httpx.Response(200, json={"code": 200, "message": "API is healthy."})
        if path == AUTH_PATH:
            return self._login(request)

        if self.reject_auth or request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "The request requires valid token."})

        body = json.loads(request.content) if request.content else {}
        if path == FOLDERS_PATH:
            if method == "GET":
                return self._list(list(self.folders.values()), request)
            record = self.add_folder(body["name"], body.get("parentId"))
            return httpx.Response(200, json=record)
        if path == BOOKMARKS_PATH:
            if method == "GET":
                return self._list(list(self.bookmarks.values()), request)
            return self._create_bookmark(body)
        if path.startswith(BOOKMARKS_PATH + "/"):
            return self._bookmark_item(method, path.rsplit("/", 1)[-1], body)
        if path.startswith(FOLDERS_PATH + "/"):
            folder_id = path.rsplit("/", 1)[-1]
            if folder_id not in self.folders:
                return httpx.Response(404, json={"message": "Not found."})
            if method == "DELETE":
                del self.folders[folder_id]
                return httpx.Response(204)
            self.folders[folder_id].update(body)
            return httpx.Response(200, json=self.folders[folder_id])
        if path == ENSURE_PATH_PATH:
            return self._ensure_path(body)
        if path == EXPORT_PATH:
            return self._export()
        if _AI_TAGS_RE.match(path):
            return httpx.Response(200, json={"success": True, "tags": ["example"]})
        return httpx.Response(404, json={"message": "Not found."})

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body.get("password") != PASSWORD:
            return httpx.Response(400, json={"message": "Failed to authenticate."})
        return httpx.Response(
            200,
            json={
                "token": TOKEN,
                "record": {"id": "u1", "email": body.get("identity"), "username": "user"},
            },
        )

    def _list(self, records: list[dict[str, Any]], request: httpx.Request) -> httpx.Response:
        filter_expr = request.url.params.get("filter")
        if filter_expr:
            match = _FILTER_RE.match(filter_expr)
            assert match, filter_expr
            field, raw = match.groups()
            value = raw.replace('\\"', '"').replace("\\\\", "\\")
            records = [record for record in records if record.get(field) == value]
        page = int(request.url.params.get("page", 1))
        per_page = int(request.url.params.get("perPage", 30))
        total_pages = max(1, -(-len(records) // per_page))
        items = records[(page - 1) * per_page : page * per_page]
        return httpx.Response(
            200,
            json={
                "page": page,
                "perPage": per_page,
                "totalItems": len(records),
                "totalPages": total_pages,
                "items": items,
            },
        )

    def _create_bookmark(self, body: dict[str, Any]) -> httpx.Response:
        if body.get("url") in self.fail_bookmark_urls:
            return httpx.Response(500, json={"message": "Something went wrong."})
        record = self.add_bookmark(
            body["title"], body["url"], body.get("folderId"), body.get("chromeBookmarkId")
        )
        record["folderId"] = body.get("folderId")
        return httpx.Response(200, json=record)

    def _bookmark_item(self, method: str, bookmark_id: str, body: dict[str, Any]) -> httpx.Response:
        if bookmark_id not in self.bookmarks:
            return httpx.Response(404, json={"message": "Not found."})
        if method == "DELETE":
            if self.fail_deletes:
                return httpx.Response(503, json={"message": "Service unavailable."})
            del self.bookmarks[bookmark_id]
            return httpx.Response(204)
        self.bookmarks[bookmark_id].update(body)
        return httpx.Response(200, json=self.bookmarks[bookmark_id])

    def _ensure_path(self, body: dict[str, Any]) -> httpx.Response:
        if not self.ensure_path_enabled:
            return httpx.Response(404, json={"message": "Not found."})
        if self.ensure_path_status is not None:
            return httpx.Response(self.ensure_path_status, json={"message": "Failed."})
        parent_id: str | None = None
        created: list[str] = []
        for name in body["folderPath"]:
            existing = next(
                (
                    folder
                    for folder in self.folders.values()
                    if folder["name"] == name and (folder["parentId"] or None) == parent_id
                ),
                None,
            )
            if existing is None:
                existing = self.add_folder(name, parent_id)
                created.append(name)
            parent_id = existing["id"]
        return httpx.Response(200, json={"folderId": parent_id, "created": created})

    def _export(self) -> httpx.Response:
        if self.fail_export:
            return httpx.Response(500, json={"message": "Export failed."})
        folders = [
            {**folder, "path": self.folder_path(folder["id"])} for folder in self.folders.values()
        ]
        bookmarks = [
            {**bookmark, "folderPath": self.folder_path(bookmark["folderId"] or None)}
            for bookmark in self.bookmarks.values()
        ]
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "folders": folders,
                    "bookmarks": bookmarks,
                    "syncMetadata": {
                        "totalFolders": len(folders),
                        "totalBookmarks": len(bookmarks),
                        "exportTime": EXPORT_TIME,
                        "isIncremental": False,
                    },
                },
            },
        )


class RecordingPresenter:
    """Presenter that records messages; ``deliver`` controls what ``send`` reports."""

    def __init__(self, *, deliver: bool = True) -> None:
        self.deliver = deliver
        self.messages: list[UIMessage] = []
        self.notifications: list[tuple[str, str]] = []

    async def send(self, message: UIMessage) -> bool:
        self.messages.append(message)
        return self.deliver

    async def notify(self, title: str, message: str) -> None:
        self.notifications.append((title, message))

    def types(self) -> list[str]:
        return [str(message.type) for message in self.messages]


class FakeScorer:
    """Scorer returning a fixed answer, or raising ``error`` when set."""

    def __init__(
        self,
        recommendation: FolderRecommendation | None = None,
        *,
        error: Exception | None = None,
    ) -> None:
        self.recommendation = recommendation
        self.error = error
        self.calls: list[tuple[str, str, list[str]]] = []

    async def recommend(self, title, url, folders):
        self.calls.append((title, url, [folder.id for folder in folders]))
        if self.error is not None:
            raise self.error
        return self.recommendation


@pytest.fixture
def fake_server() -> FakeMarkhub:
    return FakeMarkhub()


@pytest.fixture
def tree() -> InMemoryLocalTree:
    return InMemoryLocalTree()


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest_asyncio.fixture
async def config_manager() -> ConfigManager:
    manager = ConfigManager(
        InMemoryConfigStorage({"authToken": TOKEN, "syncEnabled": True})
    )
    await manager.initialize()
    return manager


@pytest_asyncio.fixture
async def markhub_client(fake_server: FakeMarkhub, config_manager: ConfigManager):
    client = MarkhubClient(
        config_manager,
        API_URL,
        transport=fake_server.transport(),
    )
    await client.open()
    yield client
    await client.aclose()
