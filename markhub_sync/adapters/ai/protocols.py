from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from markhub_sync.adapters.ai.models import FolderRecommendation
    from markhub_sync.adapters.local_tree.models import LocalFolderEntry


@runtime_checkable
class FolderScorer(Protocol):
    """Opaque scorer choosing a folder for a bookmark.

    Returns ``None`` when it has no answer. Raising any exception is treated
    by the caller as a failed recommendation.
    """

    async def recommend(
        self, title: str, url: str, folders: Sequence[LocalFolderEntry]
    ) -> FolderRecommendation | None: ...
