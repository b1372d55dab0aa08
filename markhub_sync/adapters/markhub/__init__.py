"""Markhub remote store adapter."""

from markhub_sync.adapters.markhub.client import MarkhubClient
from markhub_sync.adapters.markhub.errors import (
    AuthError,
    MarkhubAPIError,
    MarkhubClientError,
    NetworkError,
    NotFoundError,
)
from markhub_sync.adapters.markhub.folder_cache import FolderCache
from markhub_sync.core.folder_paths import folder_path_key

__all__ = [
    "AuthError",
    "FolderCache",
    "MarkhubAPIError",
    "MarkhubClient",
    "MarkhubClientError",
    "NetworkError",
    "NotFoundError",
    "folder_path_key",
]
