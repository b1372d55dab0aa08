"""Get-or-create resolution of folder paths in the local bookmark tree."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.paths import BOOKMARKS_BAR_ID
from markhub_sync.core.folder_paths import folder_path_key, normalize_path
from markhub_sync.core.single_flight import SingleFlight

if TYPE_CHECKING:
    from collections.abc import Iterable

    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter

logger = logging.getLogger(__name__)


class LocalFolderPathResolver:
    """Walks a folder path below ``root_id``, creating missing local folders.

    Lookups go through a ``folder_path_key`` cache first, then the parent's
    children by exact title. Creation of one key is single-flighted so
    concurrent walks share a folder.
    """

    def __init__(self, tree: LocalTreeAdapter, *, root_id: str = BOOKMARKS_BAR_ID) -> None:
        self._tree = tree
        self.root_id = root_id
        self._by_key: dict[str, str] = {}
        self._by_path: dict[tuple[str, ...], str] = {}
        self._creates: SingleFlight[str] = SingleFlight("local_folder_create")
        self.created_count = 0

    def seed(self, path: Iterable[str], folder_id: str) -> None:
        """Record an existing local folder; the first registration of a path wins."""
        segments = tuple(normalize_path(path))
        if not segments:
            return
        self._by_path.setdefault(segments, folder_id)

    def lookup(self, path: Iterable[str]) -> str | None:
        segments = tuple(normalize_path(path))
        if not segments:
            return self.root_id
        return self._by_path.get(segments)

    async def resolve(self, path: Iterable[str]) -> str:
        """Return the id of the folder at ``path``; an empty path is the root."""
        segments = tuple(normalize_path(path))
        if not segments:
            return self.root_id

        memo = self._by_path.get(segments)
        if memo is not None:
            return memo

        parent_id = self.root_id
        for depth, name in enumerate(segments, start=1):
            prefix = segments[:depth]
            folder_id = self._by_path.get(prefix)
            if folder_id is None:
                folder_id = await self._get_or_create(name, parent_id)
                self._by_path[prefix] = folder_id
            parent_id = folder_id
        return parent_id

    async def _get_or_create(self, name: str, parent_id: str) -> str:
        key = folder_path_key(name, parent_id)
        cached = self._by_key.get(key)
        if cached is not None:
            return cached

        async def _create() -> str:
            for child in await self._tree.get_children(parent_id):
                if child.is_folder and child.title == name:
                    self._by_key[key] = child.id
                    return child.id
            node = await self._tree.create(parent_id, name)
            self._by_key[key] = node.id
            self.created_count += 1
            logger.info(
                "local_folder_created",
                extra={"folder_id": node.id, "folder_name": name, "parent_id": parent_id},
            )
            return node.id

        return await self._creates.do(key, _create)

    def clear(self) -> None:
        self._by_key.clear()
        self._by_path.clear()
        self._creates.clear()
