"""Public feed index helpers."""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from clipshare.models.schemas import FeedEntry, FeedItem

logger = logging.getLogger(__name__)

FEED_KEY = "PUBLIC_FEED"
FEED_PREVIEW_LENGTH = 60

_feed_adapter = TypeAdapter(List[FeedEntry])


def make_preview(text: str, length: int) -> str:
    """First ``length`` characters, with an ellipsis if truncated."""
    return text[:length] + ("..." if len(text) > length else "")


def relative_time(timestamp_ms: int, now_ms: int) -> str:
    """Coarse age label for a feed entry."""
    seconds = (now_ms - timestamp_ms) // 1000
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60} min ago"
    if seconds < 86400:
        return f"{seconds // 3600} hr ago"
    return f"{seconds // 86400} days ago"


def parse_feed(raw: Optional[str]) -> List[FeedEntry]:
    """Decode the feed record; a missing or unreadable record is empty."""
    if not raw:
        return []

    try:
        return _feed_adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding unreadable public feed record: %s", e)
        return []


def dump_feed(entries: List[FeedEntry]) -> str:
    return json.dumps([entry.model_dump() for entry in entries])


def push_entry(entries: List[FeedEntry], entry: FeedEntry, capacity: int) -> List[FeedEntry]:
    """Prepend ``entry`` and evict from the tail beyond ``capacity``."""
    return ([entry] + entries)[:capacity]


def remove_entry(entries: List[FeedEntry], clip_id: str) -> List[FeedEntry]:
    return [entry for entry in entries if entry.id != clip_id]


def render(entries: List[FeedEntry], now_ms: int) -> List[FeedItem]:
    return [
        FeedItem(
            id=entry.id,
            preview=entry.preview,
            timestamp=relative_time(entry.timestamp, now_ms),
        )
        for entry in entries
    ]
