"""Value types for the local bookmark tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class TreeEvent(StrEnum):
    CREATED = "created"
    CHANGED = "changed"
    MOVED = "moved"
    REMOVED = "removed"


class LocalTreeError(Exception):
    """Raised for unknown node ids and invalid tree operations."""


@dataclass(frozen=True)
class LocalNode:
    """Snapshot of one node of the local tree.

    ``children`` is only populated by tree-returning calls such as
    ``get_full_tree``; other calls return nodes with an empty tuple.
    """

    id: str
    title: str
    url: str | None = None
    parent_id: str | None = None
    index: int = 0
    children: tuple[LocalNode, ...] = field(default=(), compare=False)

    @property
    def is_folder(self) -> bool:
        return self.url is None


@dataclass(frozen=True)
class LocalFolderEntry:
    """A user folder found while traversing the tree, with its path from the root."""

    id: str
    title: str
    parent_id: str | None
    path: tuple[str, ...]


@dataclass(frozen=True)
class LocalBookmarkEntry:
    """A bookmark found while traversing the tree, with its containing folder path."""

    id: str
    title: str
    url: str
    parent_id: str | None
    folder_path: tuple[str, ...]
