"""Short-lived cache of the user's remote folders."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from markhub_sync.core.folder_paths import folder_path_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from markhub_sync.adapters.markhub.models import RemoteFolder

DEFAULT_TTL_SECONDS = 30.0


class FolderCache:
    """Remote folder list indexed by (name, parent), refreshed after a TTL.

    Folders added locally after a listing was requested survive the
    ``replace`` that installs that listing, so a slow refresh cannot hide a
    folder this process just created.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._folders: dict[str, RemoteFolder] = {}
        self._by_key: dict[str, RemoteFolder] = {}
        self._added_at: dict[str, float] = {}
        self._loaded_at: float | None = None

    def now(self) -> float:
        return self._clock()

    @property
    def is_stale(self) -> bool:
        if self._loaded_at is None or not self._folders:
            return True
        return self._clock() - self._loaded_at >= self._ttl

    def replace(
        self, folders: Iterable[RemoteFolder], *, requested_at: float | None = None
    ) -> None:
        """Install a fresh server listing requested at ``requested_at``."""
        requested_at = self._clock() if requested_at is None else requested_at
        recent = [
            self._folders[folder_id]
            for folder_id, added_at in self._added_at.items()
            if added_at >= requested_at and folder_id in self._folders
        ]
        self._folders = {}
        self._by_key = {}
        for folder in folders:
            self._store(folder)
        self._added_at = {}
        for folder in recent:
            if folder.id not in self._folders:
                self._store(folder)
                self._added_at[folder.id] = requested_at
        self._loaded_at = self._clock()

    def add(self, folder: RemoteFolder) -> None:
        self._store(folder)
        self._added_at[folder.id] = self._clock()

    def find(self, name: str, parent_id: str | None) -> RemoteFolder | None:
        return self._by_key.get(folder_path_key(name, parent_id))

    def get(self, folder_id: str) -> RemoteFolder | None:
        return self._folders.get(folder_id)

    def all(self) -> list[RemoteFolder]:
        return list(self._folders.values())

    def remove(self, folder_id: str) -> None:
        folder = self._folders.pop(folder_id, None)
        self._added_at.pop(folder_id, None)
        if folder is not None:
            key = folder_path_key(folder.name, folder.parent_id)
            if self._by_key.get(key) is folder:
                del self._by_key[key]

    def invalidate(self) -> None:
        """Force a refresh on next use while keeping current entries."""
        self._loaded_at = None

    def clear(self) -> None:
        self._folders.clear()
        self._by_key.clear()
        self._added_at.clear()
        self._loaded_at = None

    def __len__(self) -> int:
        return len(self._folders)

    def _store(self, folder: RemoteFolder) -> None:
        self._folders[folder.id] = folder
        # First folder wins if the server already holds duplicates.
        self._by_key.setdefault(folder_path_key(folder.name, folder.parent_id), folder)
