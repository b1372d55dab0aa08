"""In-memory dispatcher for local tree change events.

Each published event starts one task per subscribed handler, mirroring how a
browser delivers bookmark events: in order, without waiting for the previous
handler to finish.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from markhub_sync.adapters.local_tree.models import LocalNode, TreeEvent
    from markhub_sync.adapters.local_tree.protocols import TreeListener

logger = logging.getLogger(__name__)


class TreeEventBus:
    def __init__(self) -> None:
        self._handlers: dict[TreeEvent, list[TreeListener]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, event: TreeEvent, handler: TreeListener) -> None:
        self._handlers[event].append(handler)
        logger.debug(
            "tree_handler_subscribed",
            extra={
                "event_type": str(event),
                "handler": getattr(handler, "__name__", repr(handler)),
                "total_handlers": len(self._handlers[event]),
            },
        )

    def handler_count(self, event: TreeEvent) -> int:
        return len(self._handlers.get(event, []))

    def publish(self, event: TreeEvent, node: LocalNode) -> None:
        """Schedule every handler for ``event``; does not wait for them."""
        for handler in list(self._handlers.get(event, [])):
            task = asyncio.create_task(self._dispatch(event, handler, node))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _dispatch(self, event: TreeEvent, handler: TreeListener, node: LocalNode) -> None:
        try:
            await handler(node)
        except Exception as exc:
            logger.exception(
                "tree_handler_failed",
                extra={
                    "event_type": str(event),
                    "bookmark_id": node.id,
                    "handler": getattr(handler, "__name__", repr(handler)),
                    "error": str(exc),
                },
            )

    async def drain(self) -> None:
        """Wait until no handler task is running, including ones scheduled meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def clear(self) -> None:
        self._handlers.clear()
