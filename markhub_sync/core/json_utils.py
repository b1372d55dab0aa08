from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", flags=re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _loads_object(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from a chat model reply.

    Tolerates Markdown code fences, prose around the object, trailing commas
    and a truncated tail with missing closing braces. Returns ``None`` when
    nothing parseable is found.
    """
    if not isinstance(text, str):
        return None

    candidate = text.strip()
    if not candidate:
        return None

    fence_match = _FENCE_RE.search(candidate)
    candidate = fence_match.group(1).strip() if fence_match else candidate.strip("`")
    candidate = re.sub(r"^json\s*", "", candidate, flags=re.IGNORECASE)

    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    start = candidate.find("{")
    if start == -1:
        return None
    end = candidate.rfind("}")
    snippet = candidate[start:] if end <= start else candidate[start : end + 1]

    for repaired in (snippet, _TRAILING_COMMA_RE.sub(r"\1", snippet)):
        parsed = _loads_object(repaired)
        if parsed is not None:
            return parsed
        missing = repaired.count("{") - repaired.count("}")
        if missing > 0:
            parsed = _loads_object(repaired + "}" * missing)
            if parsed is not None:
                return parsed

    return None
