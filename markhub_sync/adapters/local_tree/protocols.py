"""Port for the host's native bookmark tree."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from markhub_sync.adapters.local_tree.models import LocalNode

TreeListener = Callable[[LocalNode], Awaitable[None]]


@runtime_checkable
class LocalTreeAdapter(Protocol):
    """Read/write access to the local tree plus change subscriptions.

    Events are delivered in host order, but handlers run concurrently and may
    complete out of order.
    """

    async def get(self, node_id: str) -> LocalNode: ...

    async def get_children(self, node_id: str) -> list[LocalNode]: ...

    async def create(self, parent_id: str, title: str, url: str | None = None) -> LocalNode: ...

    async def update(self, node_id: str, **fields: Any) -> LocalNode: ...

    async def move(self, node_id: str, new_parent_id: str) -> LocalNode: ...

    async def remove(self, node_id: str) -> None: ...

    async def get_full_tree(self) -> LocalNode: ...

    def on_created(self, listener: TreeListener) -> None: ...

    def on_changed(self, listener: TreeListener) -> None: ...

    def on_moved(self, listener: TreeListener) -> None: ...

    def on_removed(self, listener: TreeListener) -> None: ...
