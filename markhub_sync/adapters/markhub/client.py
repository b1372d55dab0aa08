"""Markhub API client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from markhub_sync.adapters.markhub.errors import (
    AuthError,
    MarkhubAPIError,
    MarkhubClientError,
    NetworkError,
    NotFoundError,
)
from markhub_sync.adapters.markhub.folder_cache import DEFAULT_TTL_SECONDS, FolderCache
from markhub_sync.adapters.markhub.folder_resolver import RemoteFolderPathResolver
from markhub_sync.adapters.markhub.models import (
    AuthResponse,
    CreateBookmarkRequest,
    CreateFolderRequest,
    EnsureFolderPathResponse,
    RecordPage,
    RemoteBookmark,
    RemoteFolder,
    SyncExportData,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from typing import Self

    from markhub_sync.config.integrations import MarkhubConfig
    from markhub_sync.config.manager import ConfigManager

logger = logging.getLogger(__name__)

FOLDERS_PATH = "/api/collections/folders/records"
BOOKMARKS_PATH = "/api/collections/bookmarks/records"
AUTH_PATH = "/api/collections/users/auth-with-password"
EXPORT_PATH = "/api/custom/sync/export-data"
ENSURE_PATH_PATH = "/api/custom/ensure-folder-path"

DEFAULT_PAGE_SIZE = 200


def _filter_literal(value: str) -> str:
    """Quote a value for a PocketBase filter expression."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class MarkhubClient:
    """Async HTTP client for the Markhub API.

    The bearer token is read from the ``ConfigManager`` on every request, so a
    login or logout elsewhere in the process takes effect immediately.
    """

    # Default per-endpoint timeouts (seconds)
    DEFAULT_TIMEOUTS: dict[str, float] = {
        "login": 15.0,
        "get_folders": 30.0,
        "get_bookmarks": 30.0,
        "find_bookmark": 15.0,
        "create_folder": 15.0,
        "update_folder": 15.0,
        "delete_folder": 15.0,
        "create_bookmark": 15.0,
        "update_bookmark": 15.0,
        "delete_bookmark": 15.0,
        "ensure_folder_path": 30.0,
        "sync_export": 120.0,
        "ai_tags": 60.0,
        "health_check": 10.0,
    }

    def __init__(
        self,
        config_manager: ConfigManager,
        api_url: str = "https://db.markhub.app",
        timeout: float = 30.0,
        *,
        folder_cache_ttl: float = DEFAULT_TTL_SECONDS,
        prefer_server_path_api: bool = True,
        page_size: int = DEFAULT_PAGE_SIZE,
        endpoint_timeouts: dict[str, float] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the Markhub client.

        Args:
            config_manager: Source of the auth token; updated on login/logout
            api_url: Base URL of the Markhub server
            timeout: Default request timeout in seconds
            folder_cache_ttl: Seconds before the remote folder list is refetched
            prefer_server_path_api: Try the server path-ensure endpoint first
            page_size: Records requested per page when listing collections
            endpoint_timeouts: Custom per-endpoint timeouts (overrides defaults)
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
            clock: Optional monotonic clock for the folder cache
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.endpoint_timeouts = {**self.DEFAULT_TIMEOUTS}
        if endpoint_timeouts:
            self.endpoint_timeouts.update(endpoint_timeouts)
        self._config = config_manager
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self.folder_cache = FolderCache(folder_cache_ttl, **cache_kwargs)
        self.folders = RemoteFolderPathResolver(
            self, self.folder_cache, prefer_server_api=prefer_server_path_api
        )

    @classmethod
    def from_config(
        cls,
        config: MarkhubConfig,
        config_manager: ConfigManager,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> MarkhubClient:
        return cls(
            config_manager,
            config.api_url,
            config.timeout_sec,
            folder_cache_ttl=config.folder_cache_ttl_sec,
            prefer_server_path_api=config.prefer_server_path_api,
            page_size=config.page_size,
            endpoint_timeouts={"sync_export": config.export_timeout_sec},
            transport=transport,
        )

    def get_timeout(self, endpoint: str) -> float:
        return self.endpoint_timeouts.get(endpoint, self.timeout)

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client."""
        if self._client is None:
            raise MarkhubClientError("Client not initialized. Use async context manager.")
        return self._client

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        endpoint: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        use_auth: bool = True,
    ) -> Any:
        headers: dict[str, str] = {}
        token = self._config.auth_token if use_auth else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self.client.request(
                method,
                path,
                json=json,
                params=params,
                headers=headers,
                timeout=self.get_timeout(endpoint),
            )
        except httpx.TimeoutException as exc:
            logger.warning("markhub_request_timeout", extra={"endpoint": endpoint, "path": path})
            raise NetworkError(f"{endpoint} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning(
                "markhub_request_network_error",
                extra={"endpoint": endpoint, "path": path, "error": str(exc)},
            )
            raise NetworkError(f"{endpoint} failed: {exc}") from exc

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        message = _error_message(response)
        status = response.status_code
        if status in (401, 403):
            if use_auth:
                await self._handle_auth_failure(endpoint, status)
            raise AuthError(message, status)
        if status == 404:
            raise NotFoundError(message, status)
        logger.warning(
            "markhub_request_failed",
            extra={"endpoint": endpoint, "status_code": status, "error": message},
        )
        raise MarkhubAPIError(message, status, body=response.text)

    async def _handle_auth_failure(self, endpoint: str, status: int) -> None:
        logger.warning("markhub_auth_rejected", extra={"endpoint": endpoint, "status_code": status})
        await self._config.set_auth_token(None)
        self.folders.reset()

    async def _list_records(
        self, path: str, *, endpoint: str, filter_expr: str | None = None
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            params: dict[str, Any] = {"page": page, "perPage": self.page_size}
            if filter_expr:
                params["filter"] = filter_expr
            data = await self._request("GET", path, endpoint=endpoint, params=params)
            result = RecordPage.model_validate(data or {})
            items.extend(result.items)
            if result.page >= result.total_pages or not result.items:
                break
            page += 1
        return items

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, identity: str, password: str) -> AuthResponse:
        try:
            data = await self._request(
                "POST",
                AUTH_PATH,
                endpoint="login",
                json={"identity": identity, "password": password},
                use_auth=False,
            )
        except MarkhubAPIError as exc:
            if exc.status_code == 400:
                raise AuthError(str(exc), exc.status_code) from exc
            raise
        auth = AuthResponse.model_validate(data)
        await self._config.set_auth_token(auth.token)
        self.folders.reset()
        logger.info("markhub_login_succeeded", extra={"user_id": auth.record.id})
        return auth

    async def logout(self) -> None:
        await self._config.set_auth_token(None)
        self.folders.reset()
        logger.info("markhub_logged_out")

    def is_authenticated(self) -> bool:
        return self._config.is_authenticated()

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def get_folders(self) -> list[RemoteFolder]:
        items = await self._list_records(FOLDERS_PATH, endpoint="get_folders")
        return [RemoteFolder.model_validate(item) for item in items]

    async def create_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder:
        request = CreateFolderRequest(name=name, parent_id=parent_id)
        data = await self._request(
            "POST",
            FOLDERS_PATH,
            endpoint="create_folder",
            json=request.model_dump(by_alias=True),
        )
        return RemoteFolder.model_validate(data)

    async def update_folder(self, folder_id: str, **fields: Any) -> RemoteFolder:
        payload = {
            ("parentId" if key == "parent_id" else key): value for key, value in fields.items()
        }
        data = await self._request(
            "PATCH", f"{FOLDERS_PATH}/{folder_id}", endpoint="update_folder", json=payload
        )
        folder = RemoteFolder.model_validate(data)
        self.folder_cache.remove(folder_id)
        self.folder_cache.invalidate()
        return folder

    async def delete_folder(self, folder_id: str) -> None:
        await self._request("DELETE", f"{FOLDERS_PATH}/{folder_id}", endpoint="delete_folder")
        self.folder_cache.remove(folder_id)
        logger.info("markhub_folder_deleted", extra={"folder_id": folder_id})

    async def ensure_folder_path_via_api(self, path: Sequence[str]) -> EnsureFolderPathResponse:
        data = await self._request(
            "POST",
            ENSURE_PATH_PATH,
            endpoint="ensure_folder_path",
            json={"folderPath": list(path)},
        )
        return EnsureFolderPathResponse.model_validate(data or {})

    async def resolve_folder_path(self, path: Sequence[str]) -> str | None:
        """Client-driven get-or-create walk of ``path``; empty path is the root."""
        return await self.folders.resolve(path)

    async def ensure_folder_path(self, path: Sequence[str]) -> str | None:
        """Server-preferred get-or-create of ``path``; empty path is the root."""
        return await self.folders.ensure(path)

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    async def get_bookmarks(self) -> list[RemoteBookmark]:
        items = await self._list_records(BOOKMARKS_PATH, endpoint="get_bookmarks")
        bookmarks = [RemoteBookmark.model_validate(item) for item in items]
        logger.info("markhub_fetched_all_bookmarks", extra={"count": len(bookmarks)})
        return bookmarks

    async def find_bookmark_by_url(self, url: str) -> RemoteBookmark | None:
        items = await self._list_records(
            BOOKMARKS_PATH, endpoint="find_bookmark", filter_expr=f"url = {_filter_literal(url)}"
        )
        for item in items:
            bookmark = RemoteBookmark.model_validate(item)
            if bookmark.url == url:
                return bookmark
        return None

    async def find_bookmark_by_local_id(self, local_id: str) -> RemoteBookmark | None:
        items = await self._list_records(
            BOOKMARKS_PATH,
            endpoint="find_bookmark",
            filter_expr=f"chromeBookmarkId = {_filter_literal(local_id)}",
        )
        for item in items:
            bookmark = RemoteBookmark.model_validate(item)
            if bookmark.local_id == local_id:
                return bookmark
        return None

    async def create_bookmark(
        self,
        *,
        title: str,
        url: str,
        folder_id: str | None = None,
        local_id: str | None = None,
        tags: list[str] | None = None,
        is_favorite: bool = False,
    ) -> RemoteBookmark:
        request = CreateBookmarkRequest(
            title=title,
            url=url,
            folder_id=folder_id,
            local_id=local_id,
            tags=tags or [],
            is_favorite=is_favorite,
        )
        data = await self._request(
            "POST",
            BOOKMARKS_PATH,
            endpoint="create_bookmark",
            json=request.model_dump(by_alias=True),
        )
        bookmark = RemoteBookmark.model_validate(data)
        logger.info(
            "markhub_bookmark_created",
            extra={"remote_id": bookmark.id, "url": url, "folder_id": folder_id},
        )
        return bookmark

    async def update_bookmark(self, bookmark_id: str, **fields: Any) -> RemoteBookmark:
        """Patch a bookmark; keyword names follow the model (``folder_id``, ``local_id``)."""
        aliases = {
            "folder_id": "folderId",
            "local_id": "chromeBookmarkId",
            "is_favorite": "isFavorite",
        }
        payload = {aliases.get(key, key): value for key, value in fields.items()}
        data = await self._request(
            "PATCH", f"{BOOKMARKS_PATH}/{bookmark_id}", endpoint="update_bookmark", json=payload
        )
        return RemoteBookmark.model_validate(data)

    async def delete_bookmark(self, bookmark_id: str) -> None:
        await self._request(
            "DELETE", f"{BOOKMARKS_PATH}/{bookmark_id}", endpoint="delete_bookmark"
        )
        logger.info("markhub_bookmark_deleted", extra={"remote_id": bookmark_id})

    async def trigger_ai_tag_suggestion(self, bookmark_id: str) -> bool:
        """Ask the server to tag ``bookmark_id``. Failures are logged, never raised."""
        try:
            await self._request(
                "POST",
                f"/api/custom/bookmarks/{bookmark_id}/ai-suggest-and-set-tags",
                endpoint="ai_tags",
                json={},
            )
        except MarkhubClientError as exc:
            logger.warning(
                "markhub_ai_tags_failed", extra={"remote_id": bookmark_id, "error": str(exc)}
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Sync export
    # ------------------------------------------------------------------

    async def get_sync_export(self, last_sync_time: str | None = None) -> SyncExportData:
        params = {"lastSyncTime": last_sync_time} if last_sync_time else None
        data = await self._request("GET", EXPORT_PATH, endpoint="sync_export", params=params)
        if not isinstance(data, dict) or not data.get("success", True):
            message = data.get("message") if isinstance(data, dict) else None
            raise MarkhubAPIError(message or "Sync export failed")
        export = SyncExportData.model_validate(data.get("data") or {})
        logger.info(
            "markhub_sync_export_fetched",
            extra={
                "folders": len(export.folders),
                "bookmarks": len(export.bookmarks),
                "incremental": export.metadata.is_incremental,
            },
        )
        return export

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/api/health", endpoint="health_check", use_auth=False)
        except MarkhubClientError as exc:
            logger.warning("markhub_health_check_failed", extra={"error": str(exc)})
            return False
        return True
