"""
ModBoard Formatting Utilities

Helpers for timestamps and user-supplied text.
"""

import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional


# Control characters except \t (0x09) and \n (0x0A)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string.

    Args:
        dt: Aware or naive (assumed UTC) datetime

    Returns:
        String like "2026-10-17T09:30:00.123Z"
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Returns an aware UTC datetime, or None for anything unparseable.
    """
    if not isinstance(value, str) or not value:
        return None

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def sort_key_timestamp(value: Any) -> float:
    """Timestamp as epoch seconds for sorting; unparseable sorts oldest."""
    dt = parse_timestamp(value)
    return dt.timestamp() if dt else float("-inf")


def sanitize_text(value: Any, max_len: int) -> str:
    """
    Normalize user text and truncate it.

    Folds CRLF/CR to LF and strips control characters other than
    newline and tab. None becomes the empty string.
    """
    if value is None:
        return ""
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    return text[:max_len]


def sanitize_identity(value: Any, max_len: int = 64, default: str = "") -> str:
    """Trim and truncate an identity string, falling back to default."""
    return sanitize_text(value, max_len).strip() or default


def sanitize_tags(tags: Any, max_tags: int = 12, max_len: int = 24) -> list[str]:
    """
    Clean a tag list.

    Non-list input yields no tags. Each tag is truncated and trimmed,
    blanks are dropped, duplicates removed (case-sensitive), and at
    most max_tags are kept in first-seen order.
    """
    if not isinstance(tags, (list, tuple)):
        return []

    out: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        value = sanitize_text(tag, max_len).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
        if len(out) >= max_tags:
            break
    return out


def merge_tags(existing: Iterable[str], new: Iterable[str], max_tags: int = 12) -> list[str]:
    """Union of two tag lists, existing order first, capped at max_tags."""
    merged: list[str] = []
    for tag in list(existing) + list(new):
        if tag not in merged:
            merged.append(tag)
    return merged[:max_tags]
