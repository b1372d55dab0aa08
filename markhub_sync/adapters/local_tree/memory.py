"""Reference in-memory implementation of the local bookmark tree.

Lays out permanent roots the way Chromium does: ``0`` is the invisible root,
``1`` the bookmarks bar and ``2`` the "Other bookmarks" folder. Mutations
publish events through ``TreeEventBus``.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any

from markhub_sync.adapters.local_tree.events import TreeEventBus
from markhub_sync.adapters.local_tree.models import LocalNode, LocalTreeError, TreeEvent
from markhub_sync.adapters.local_tree.paths import BOOKMARKS_BAR_ID, OTHER_BOOKMARKS_ID, ROOT_ID
from markhub_sync.adapters.local_tree.protocols import TreeListener

logger = logging.getLogger(__name__)

PERMANENT_IDS = frozenset({ROOT_ID, BOOKMARKS_BAR_ID, OTHER_BOOKMARKS_ID})


@dataclass
class _Record:
    id: str
    title: str
    url: str | None
    parent_id: str | None
    children: list[str] = field(default_factory=list)


class InMemoryLocalTree:
    def __init__(
        self,
        *,
        bookmarks_bar_title: str = "Bookmarks bar",
        other_bookmarks_title: str = "Other bookmarks",
    ) -> None:
        self._records: dict[str, _Record] = {}
        self._ids = itertools.count(100)
        self.events = TreeEventBus()
        self._records[ROOT_ID] = _Record(ROOT_ID, "", None, None)
        self.add_node(ROOT_ID, bookmarks_bar_title, node_id=BOOKMARKS_BAR_ID)
        self.add_node(ROOT_ID, other_bookmarks_title, node_id=OTHER_BOOKMARKS_ID)

    # ------------------------------------------------------------------
    # Seeding (no events)
    # ------------------------------------------------------------------

    def add_node(
        self,
        parent_id: str,
        title: str,
        url: str | None = None,
        *,
        node_id: str | None = None,
    ) -> LocalNode:
        """Insert a node without publishing an event."""
        parent = self._record(parent_id)
        if parent.url is not None:
            raise LocalTreeError(f"Parent {parent_id} is not a folder")
        new_id = node_id or self._next_id()
        if new_id in self._records:
            raise LocalTreeError(f"Node id {new_id} already exists")
        self._records[new_id] = _Record(new_id, title, url, parent_id)
        parent.children.append(new_id)
        return self._snapshot(new_id)

    def _next_id(self) -> str:
        while True:
            candidate = str(next(self._ids))
            if candidate not in self._records:
                return candidate

    # ------------------------------------------------------------------
    # LocalTreeAdapter
    # ------------------------------------------------------------------

    async def get(self, node_id: str) -> LocalNode:
        return self._snapshot(node_id)

    def find(self, node_id: str) -> LocalNode | None:
        if node_id not in self._records:
            return None
        return self._snapshot(node_id)

    async def get_children(self, node_id: str) -> list[LocalNode]:
        return [self._snapshot(child_id) for child_id in self._record(node_id).children]

    async def create(self, parent_id: str, title: str, url: str | None = None) -> LocalNode:
        node = self.add_node(parent_id, title, url)
        logger.debug("local_node_created", extra={"bookmark_id": node.id, "parent_id": parent_id})
        self.events.publish(TreeEvent.CREATED, node)
        return node

    async def update(self, node_id: str, **fields: Any) -> LocalNode:
        record = self._mutable(node_id)
        unknown = set(fields) - {"title", "url"}
        if unknown:
            raise LocalTreeError(f"Cannot update fields: {sorted(unknown)}")
        if "url" in fields and record.url is None:
            raise LocalTreeError(f"Node {node_id} is a folder and has no URL")
        if fields.get("title") is not None:
            record.title = str(fields["title"])
        if fields.get("url") is not None:
            record.url = str(fields["url"])
        node = self._snapshot(node_id)
        self.events.publish(TreeEvent.CHANGED, node)
        return node

    async def move(self, node_id: str, new_parent_id: str) -> LocalNode:
        record = self._mutable(node_id)
        parent = self._record(new_parent_id)
        if parent.url is not None:
            raise LocalTreeError(f"Target {new_parent_id} is not a folder")
        if new_parent_id == node_id or self._is_ancestor(node_id, new_parent_id):
            raise LocalTreeError(f"Cannot move {node_id} into its own subtree")
        if record.parent_id is not None:
            self._records[record.parent_id].children.remove(node_id)
        parent.children.append(node_id)
        record.parent_id = new_parent_id
        node = self._snapshot(node_id)
        self.events.publish(TreeEvent.MOVED, node)
        return node

    async def remove(self, node_id: str) -> None:
        self._mutable(node_id)
        node = self._snapshot(node_id)
        self._drop_subtree(node_id)
        self.events.publish(TreeEvent.REMOVED, node)

    async def get_full_tree(self) -> LocalNode:
        return self._subtree(ROOT_ID)

    def on_created(self, listener: TreeListener) -> None:
        self.events.subscribe(TreeEvent.CREATED, listener)

    def on_changed(self, listener: TreeListener) -> None:
        self.events.subscribe(TreeEvent.CHANGED, listener)

    def on_moved(self, listener: TreeListener) -> None:
        self.events.subscribe(TreeEvent.MOVED, listener)

    def on_removed(self, listener: TreeListener) -> None:
        self.events.subscribe(TreeEvent.REMOVED, listener)

    async def drain_events(self) -> None:
        await self.events.drain()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def _record(self, node_id: str) -> _Record:
        try:
            return self._records[node_id]
        except KeyError:
            raise LocalTreeError(f"Unknown node id: {node_id}") from None

    def _mutable(self, node_id: str) -> _Record:
        if node_id in PERMANENT_IDS:
            raise LocalTreeError(f"Node {node_id} is a permanent folder")
        return self._record(node_id)

    def _is_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        current = self._records[node_id].parent_id
        while current is not None:
            if current == ancestor_id:
                return True
            current = self._records[current].parent_id
        return False

    def _drop_subtree(self, node_id: str) -> None:
        record = self._records.pop(node_id)
        for child_id in record.children:
            self._drop_subtree(child_id)
        if record.parent_id is not None and record.parent_id in self._records:
            siblings = self._records[record.parent_id].children
            if node_id in siblings:
                siblings.remove(node_id)

    def _snapshot(self, node_id: str) -> LocalNode:
        record = self._record(node_id)
        index = 0
        if record.parent_id is not None:
            index = self._records[record.parent_id].children.index(node_id)
        return LocalNode(
            id=record.id,
            title=record.title,
            url=record.url,
            parent_id=record.parent_id,
            index=index,
        )

    def _subtree(self, node_id: str) -> LocalNode:
        node = self._snapshot(node_id)
        record = self._records[node_id]
        if record.url is not None:
            return node
        children = tuple(self._subtree(child_id) for child_id in record.children)
        return LocalNode(
            id=node.id,
            title=node.title,
            url=None,
            parent_id=node.parent_id,
            index=node.index,
            children=children,
        )
