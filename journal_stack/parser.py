from __future__ import annotations

import logging
import re

from .config import (
    DEFAULT_FACT,
    DEFAULT_NAME,
    FACT_MARKERS,
    NAME_MARKERS,
    UNIDENTIFIABLE_SENTINELS,
)
from .errors import ParseDegraded
from .models import Identification

logger = logging.getLogger(__name__)

MAX_FALLBACK_NAME = 80
MAX_FALLBACK_FACT = 400

_DECORATION = r"[ \t*#>_-]*"
# Bold closing a decorated marker ("**NAME:** Rose") sits right after the colon.
_AFTER_COLON = r"(?:\*\*|__)?[ \t]*"
_EMPHASIS_PAIRS = ("**", "__")


def _marker_pattern(markers: tuple[str, ...]) -> str:
    return "|".join(re.escape(m) for m in markers)


_ANY_MARKER = _marker_pattern(NAME_MARKERS + FACT_MARKERS)

# Marker at line start, optional markdown decoration around it, then the value
# up to the next marker line (or end of text).
_NAME_RE = re.compile(
    rf"^{_DECORATION}(?:{_marker_pattern(NAME_MARKERS)}){_DECORATION}:{_AFTER_COLON}"
    rf"(?P<value>.*?)(?=^{_DECORATION}(?:{_ANY_MARKER}){_DECORATION}:|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)
_FACT_RE = re.compile(
    rf"^{_DECORATION}(?:{_marker_pattern(FACT_MARKERS)}){_DECORATION}:{_AFTER_COLON}"
    rf"(?P<value>.*?)(?=^{_DECORATION}(?:{_marker_pattern(NAME_MARKERS)}){_DECORATION}:|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)


def _clean(value: str) -> str:
    value = value.strip()
    for pair in _EMPHASIS_PAIRS:
        if len(value) > 2 * len(pair) and value.startswith(pair) and value.endswith(pair):
            value = value[len(pair) : -len(pair)].strip()
    return value


def _extract(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    value = _clean(match.group("value"))
    return value or None


def _fallback(text: str) -> Identification:
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    name = lines[0][:MAX_FALLBACK_NAME] if lines else DEFAULT_NAME
    fact = text.strip()[:MAX_FALLBACK_FACT] or DEFAULT_FACT
    return Identification(name=name, fact=fact, degraded=True, raw_text=text)


def _parse_strict(text: str) -> Identification:
    if not isinstance(text, str):
        raise ParseDegraded(f"reply is {type(text).__name__}, not text")
    name = _extract(_NAME_RE, text)
    fact = _extract(_FACT_RE, text)
    return Identification(
        name=name or DEFAULT_NAME,
        fact=fact or DEFAULT_FACT,
        raw_text=text,
    )


def parse_reply(raw_text: str | None) -> Identification:
    """
    Extract ``{name, fact}`` from a vision model reply.

    Missing markers keep the placeholders. Anything unexpected degrades to
    raw-text heuristics instead of raising, so a paid call is never thrown away.
    """
    if raw_text is None or (isinstance(raw_text, str) and not raw_text.strip()):
        return Identification(name=DEFAULT_NAME, fact=DEFAULT_FACT, raw_text=raw_text or "")
    try:
        return _parse_strict(raw_text)
    except Exception as exc:
        logger.warning("Reply parse degraded to raw text: %s", exc)
        return _fallback(str(raw_text))


def is_unidentifiable(name: str) -> bool:
    lowered = (name or "").casefold()
    return any(sentinel in lowered for sentinel in UNIDENTIFIABLE_SENTINELS)
