from __future__ import annotations

import re
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_TIMESTAMP_PREFIX = re.compile(r"^(\d{10,16})-")


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    limit: int,
    offset: int,
) -> Dict[str, Any]:
    """
    Build a standard pagination envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current page.
        total: Total number of items that match the query (ignoring pagination).
        limit: The limit used for pagination.
        offset: The offset used for pagination.

    Returns:
        Dict with keys: items, total, limit, offset.
    """
    # Ensure items is materialized as a list (in case an iterator is passed)
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(total),
        "limit": int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }


# PUBLIC_INTERFACE
def timestamped_object_name(filename: Optional[str], now_ms: Optional[int] = None) -> str:
    """
    Build a bucket object name "<epoch ms>-<filename>" for an uploaded file.

    The filename is reduced to its base name and characters outside
    [A-Za-z0-9._-] are replaced with '_'.
    """
    ms = int(time.time() * 1000) if now_ms is None else now_ms
    base = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "image"
    return f"{ms}-{safe}"


# PUBLIC_INTERFACE
def object_timestamp(path: str) -> Optional[float]:
    """Return the upload time (epoch seconds) encoded in an object name, if any."""
    match = _TIMESTAMP_PREFIX.match(path.rsplit("/", 1)[-1])
    if not match:
        return None
    return int(match.group(1)) / 1000.0
