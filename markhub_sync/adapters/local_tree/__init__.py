"""Local (browser-side) bookmark tree adapter."""

from markhub_sync.adapters.local_tree.memory import InMemoryLocalTree
from markhub_sync.adapters.local_tree.models import (
    LocalBookmarkEntry,
    LocalFolderEntry,
    LocalNode,
    LocalTreeError,
    TreeEvent,
)
from markhub_sync.adapters.local_tree.protocols import LocalTreeAdapter, TreeListener

__all__ = [
    "InMemoryLocalTree",
    "LocalBookmarkEntry",
    "LocalFolderEntry",
    "LocalNode",
    "LocalTreeAdapter",
    "LocalTreeError",
    "TreeEvent",
    "TreeListener",
]
