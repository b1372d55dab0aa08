"""Folder path helpers shared by forward sync, reverse sync and the recommender.

A folder path is the list of user folder titles from the top of the tree down
to a node. The invisible root and the browser's system folders never appear
in a path, so a bookmark directly under the bookmarks bar has path ``[]``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from markhub_sync.adapters.local_tree.models import (
    LocalBookmarkEntry,
    LocalFolderEntry,
    LocalNode,
    LocalTreeError,
)

if TYPE_CHECKING:
    from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter

ROOT_ID = "0"
BOOKMARKS_BAR_ID = "1"
OTHER_BOOKMARKS_ID = "2"

RESERVED_FOLDER_NAMES = frozenset({"Bookmarks bar", "书签栏", "Other bookmarks", "其他书签"})
# Folders never offered as a recommendation target
NON_CANDIDATE_FOLDER_NAMES = frozenset({"Other bookmarks", "其他书签"})


def is_system_folder(node: LocalNode) -> bool:
    """True for the root, untitled folders and the browser's reserved folders."""
    return node.id == ROOT_ID or not node.title or node.title in RESERVED_FOLDER_NAMES


async def folder_path_of(tree: LocalTreeAdapter, node_id: str) -> list[str]:
    """Return the user folder path containing ``node_id`` (excluding the node itself)."""
    node = await tree.get(node_id)
    path: list[str] = []
    parent_id = node.parent_id
    seen: set[str] = set()
    while parent_id is not None and parent_id not in seen:
        seen.add(parent_id)
        try:
            parent = await tree.get(parent_id)
        except LocalTreeError:
            break
        if parent.is_folder and not is_system_folder(parent):
            path.append(parent.title)
        parent_id = parent.parent_id
    path.reverse()
    return path


def extract_tree(root: LocalNode) -> tuple[list[LocalFolderEntry], list[LocalBookmarkEntry]]:
    """Flatten a full tree into user folders (with path) and bookmarks (with folder path)."""
    folders: list[LocalFolderEntry] = []
    bookmarks: list[LocalBookmarkEntry] = []

    def _walk(node: LocalNode, parent_path: tuple[str, ...]) -> None:
        if not node.is_folder:
            bookmarks.append(
                LocalBookmarkEntry(
                    id=node.id,
                    title=node.title or "",
                    url=node.url or "",
                    parent_id=node.parent_id,
                    folder_path=parent_path,
                )
            )
            return
        path = parent_path
        if not is_system_folder(node):
            path = (*parent_path, node.title)
            folders.append(
                LocalFolderEntry(id=node.id, title=node.title, parent_id=node.parent_id, path=path)
            )
        for child in node.children:
            _walk(child, path)

    _walk(root, ())
    return folders, bookmarks


def recommendation_candidates(root: LocalNode) -> list[LocalFolderEntry]:
    """Folders a new bookmark may be moved into.

    Unlike ``extract_tree`` the bookmarks bar is a valid target, so paths here
    carry every folder title (``("Bookmarks bar", "Work")``).
    """
    candidates: list[LocalFolderEntry] = []

    def _walk(node: LocalNode, parent_path: tuple[str, ...]) -> None:
        if not node.is_folder:
            return
        path = (*parent_path, node.title) if node.title else parent_path
        if node.id != ROOT_ID and node.title and node.title not in NON_CANDIDATE_FOLDER_NAMES:
            candidates.append(
                LocalFolderEntry(id=node.id, title=node.title, parent_id=node.parent_id, path=path)
            )
        for child in node.children:
            _walk(child, path)

    _walk(root, ())
    return candidates
