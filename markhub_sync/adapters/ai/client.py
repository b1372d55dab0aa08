"""OpenAI-compatible chat client that recommends a folder for a bookmark."""

from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING, Any

import httpx

from markhub_sync.adapters.ai.models import (
    ConnectionTestResult,
    FolderRecommendation,
    FolderRecommendationError,
)
from markhub_sync.core.json_utils import extract_json
from markhub_sync.core.logging_utils import truncate_log_content

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Self

    from markhub_sync.adapters.local_tree.models import LocalFolderEntry
    from markhub_sync.config.integrations import FolderRecommendationConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional bookmark management assistant who is good at recommending "
    "a suitable folder based on a web page's content."
)

# Matched case-insensitively as substrings of folder titles, in order
FALLBACK_FOLDER_NAMES = (
    "其他",
    "未分类",
    "Other",
    "Uncategorized",
    "书签栏",
    "Bookmarks bar",
)
FALLBACK_CONFIDENCE = 0.3
FIRST_FOLDER_CONFIDENCE = 0.2
DEFAULT_CONFIDENCE = 0.5


def build_prompt(title: str, url: str, folders: Sequence[LocalFolderEntry]) -> str:
    folder_list = "\n".join(
        f"- {folder.title} (ID: {folder.id}, path: {'/'.join(folder.path)})" for folder in folders
    )
    return (
        "Choose the most suitable folder for the bookmark below from the folder list.\n\n"
        "Bookmark:\n"
        f"- Title: {title}\n"
        f"- URL: {url}\n\n"
        "Folders:\n"
        f"{folder_list}\n\n"
        "Reply in JSON with these fields:\n"
        "{\n"
        '  "folderId": "id of the chosen folder",\n'
        '  "folderName": "name of the chosen folder",\n'
        '  "confidence": 0.xx,\n'
        '  "reason": "why this folder was chosen"\n'
        "}\n\n"
        "Rules:\n"
        "1. The folder must come from the list above.\n"
        "2. confidence is a number between 0 and 1.\n"
        "3. reason is one short sentence.\n"
        "4. If no folder fits, pick the most generic one and lower the confidence."
    )


def fallback_recommendation(
    folders: Sequence[LocalFolderEntry],
) -> FolderRecommendation | None:
    """Pick a generic folder when the model's answer is unusable."""
    for name in FALLBACK_FOLDER_NAMES:
        needle = name.lower()
        for folder in folders:
            if needle in folder.title.lower():
                return FolderRecommendation(
                    folder_id=folder.id,
                    folder_name=folder.title,
                    confidence=FALLBACK_CONFIDENCE,
                    reason="AI answer unusable; suggesting a generic folder",
                    is_fallback=True,
                )
    if folders:
        folder = folders[0]
        return FolderRecommendation(
            folder_id=folder.id,
            folder_name=folder.title,
            confidence=FIRST_FOLDER_CONFIDENCE,
            reason="AI answer unusable; suggesting the first folder",
            is_fallback=True,
        )
    return None


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def parse_recommendation(
    content: str, folders: Sequence[LocalFolderEntry]
) -> FolderRecommendation | None:
    """Turn a model reply into a recommendation, falling back when it is unusable."""
    data = extract_json(content)
    if data is None:
        logger.warning(
            "folder_rec_unparseable_reply", extra={"reply": truncate_log_content(content)}
        )
        return fallback_recommendation(folders)

    folder_id = str(data.get("folderId") or "").strip()
    folder_name = str(data.get("folderName") or "").strip()
    if not folder_id or not folder_name:
        logger.warning("folder_rec_missing_fields", extra={"reply": truncate_log_content(content)})
        return fallback_recommendation(folders)

    folder = next((f for f in folders if f.id == folder_id), None)
    if folder is None:
        logger.warning("folder_rec_unknown_folder", extra={"folder_id": folder_id})
        return fallback_recommendation(folders)

    return FolderRecommendation(
        folder_id=folder.id,
        folder_name=folder_name,
        confidence=_clamp_confidence(data.get("confidence")),
        reason=str(data.get("reason") or ""),
    )


def _extract_content(data: Any) -> str:
    if not isinstance(data, dict):
        raise FolderRecommendationError("Unexpected response format")
    choices = data.get("choices")
    if choices:
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
    if "response" in data:
        return str(data["response"] or "")
    raise FolderRecommendationError("Unexpected response format")


class FolderRecommendationClient:
    """Calls ``{api_url}/chat/completions`` and parses a folder choice from the reply."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        timeout: float = 20.0,
        *,
        temperature: float = 0.3,
        max_tokens: int = 500,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: FolderRecommendationConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> FolderRecommendationClient:
        return cls(
            config.api_url,
            config.api_key,
            config.model_name,
            config.timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def _chat(self, prompt: str) -> dict[str, Any]:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        started = time.perf_counter()
        try:
            response = await self._ensure_client().post("/chat/completions", json=body)
        except httpx.TimeoutException as exc:
            raise FolderRecommendationError("AI service request timed out") from exc
        except httpx.TransportError as exc:
            raise FolderRecommendationError(f"AI service unreachable: {exc}") from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        if response.is_error:
            logger.warning(
                "folder_rec_http_error",
                extra={
                    "status_code": response.status_code,
                    "latency_ms": latency_ms,
                    "body": truncate_log_content(response.text),
                },
            )
            raise FolderRecommendationError(
                f"AI service returned HTTP {response.status_code}", response.status_code
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise FolderRecommendationError("AI service returned invalid JSON") from exc
        logger.debug("folder_rec_response", extra={"latency_ms": latency_ms, "model": self.model})
        return data

    async def recommend(
        self, title: str, url: str, folders: Sequence[LocalFolderEntry]
    ) -> FolderRecommendation | None:
        if not folders:
            return None
        data = await self._chat(build_prompt(title, url, folders))
        recommendation = parse_recommendation(_extract_content(data), folders)
        if recommendation is not None:
            logger.info(
                "folder_rec_received",
                extra={
                    "folder_id": recommendation.folder_id,
                    "confidence": recommendation.confidence,
                    "fallback": recommendation.is_fallback,
                },
            )
        return recommendation

    async def test_connection(self) -> ConnectionTestResult:
        """Send a trivial prompt and report whether the service answered."""
        if not self.api_url or not self.api_key or not self.model:
            return ConnectionTestResult(success=False, message="AI service is not configured")
        try:
            data = await self._chat("Reply with 'OK' to confirm the service works.")
            _extract_content(data)
        except FolderRecommendationError as exc:
            return ConnectionTestResult(success=False, message=str(exc), model=self.model)
        return ConnectionTestResult(success=True, message="Connection succeeded", model=self.model)
