from __future__ import annotations

from typing import Any
from urllib.parse import urlparse


def validate_http_url(value: Any, *, name: str, default: str) -> str:
    """Validate an HTTP(S) base URL and strip the trailing slash."""
    url = str(value or default).strip() or default
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"{name} must be an http(s) URL"
        raise ValueError(msg)
    return url.rstrip("/")


def _ensure_api_key(value: Any, *, name: str) -> str:
    if value in (None, ""):
        return ""
    key = str(value).strip()
    if len(key) > 500:
        msg = f"{name} API key appears to be too long"
        raise ValueError(msg)
    if any(char in key for char in [" ", "\n", "\t"]):
        msg = f"{name} API key contains invalid characters"
        raise ValueError(msg)
    return key


def _parse_positive_float(value: Any, *, name: str, default: float, maximum: float) -> float:
    try:
        parsed = float(str(value if value not in (None, "") else default))
    except ValueError as exc:
        msg = f"{name} must be a valid number"
        raise ValueError(msg) from exc
    if parsed <= 0 or parsed > maximum:
        msg = f"{name} must be between 0 and {maximum}"
        raise ValueError(msg)
    return parsed


def _parse_bool(value: Any, *, default: bool) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
