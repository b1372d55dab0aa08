"""Load and save an in-memory tree as JSON.

The document mirrors the browser's ``getTree()`` output: nested objects with
``id``, ``title``, ``url`` (bookmarks only) and ``children`` (folders only).
The permanent roots are matched by id and keep their ids across a round trip.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from markhub_sync.adapters.local_tree.memory import PERMANENT_IDS, InMemoryLocalTree
from markhub_sync.adapters.local_tree.models import LocalNode, LocalTreeError
from markhub_sync.adapters.local_tree.paths import BOOKMARKS_BAR_ID, OTHER_BOOKMARKS_ID, ROOT_ID

logger = logging.getLogger(__name__)


def node_to_dict(node: LocalNode) -> dict[str, Any]:
    data: dict[str, Any] = {"id": node.id, "title": node.title}
    if node.is_folder:
        data["children"] = [node_to_dict(child) for child in node.children]
    else:
        data["url"] = node.url
    return data


def tree_from_dict(data: dict[str, Any]) -> InMemoryLocalTree:
    """Build a tree from a ``getTree()``-shaped document without firing events."""
    if str(data.get("id", ROOT_ID)) != ROOT_ID:
        raise LocalTreeError("Snapshot must start at the root node")

    titles = {str(child.get("id")): child.get("title") for child in data.get("children", [])}
    tree = InMemoryLocalTree(
        bookmarks_bar_title=titles.get(BOOKMARKS_BAR_ID) or "Bookmarks bar",
        other_bookmarks_title=titles.get(OTHER_BOOKMARKS_ID) or "Other bookmarks",
    )

    def _load_children(parent_id: str, children: list[dict[str, Any]]) -> None:
        for child in children:
            child_id = str(child["id"]) if child.get("id") is not None else None
            if child_id in PERMANENT_IDS:
                _load_children(child_id, child.get("children", []))
                continue
            node = tree.add_node(
                parent_id, child.get("title") or "", child.get("url"), node_id=child_id
            )
            if node.is_folder:
                _load_children(node.id, child.get("children", []))

    _load_children(ROOT_ID, data.get("children", []))
    return tree


async def save_tree(tree: InMemoryLocalTree, path: str | Path) -> None:
    root = await tree.get_full_tree()
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(node_to_dict(root), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    logger.info("local_tree_saved", extra={"path": str(target), "nodes": len(tree)})


def load_tree(path: str | Path) -> InMemoryLocalTree:
    """Load a snapshot file; a missing file yields an empty tree."""
    source = Path(path).expanduser()
    if not source.exists():
        logger.info("local_tree_snapshot_missing", extra={"path": str(source)})
        return InMemoryLocalTree()
    data = json.loads(source.read_text(encoding="utf-8"))
    if isinstance(data, list):
        # getTree() returns a one-element list
        data = data[0] if data else {}
    tree = tree_from_dict(data)
    logger.info("local_tree_loaded", extra={"path": str(source), "nodes": len(tree)})
    return tree
