"""Helpers for folder paths shared by the remote and local resolvers."""

from __future__ import annotations

from collections.abc import Iterable


def folder_path_key(name: str, parent_id: str | None) -> str:
    """Key identifying a folder by its name under a parent (``None`` is the root)."""
    return f"{name}:{parent_id or 'root'}"


def normalize_path(path: Iterable[str]) -> list[str]:
    """Strip segment whitespace and drop empty segments."""
    return [segment.strip() for segment in path if segment and segment.strip()]
