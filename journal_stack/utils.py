from __future__ import annotations

import re
import time
from datetime import datetime, timezone

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]+")


def now_millis() -> int:
    return int(time.time() * 1000)


def millis_to_iso(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc).isoformat()


def safe_segment(value: str) -> str:
    """Turn an opaque id into a single filesystem path segment."""
    cleaned = _UNSAFE_SEGMENT.sub("_", value.strip()).strip(".")
    return cleaned or "_"
