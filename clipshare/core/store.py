"""Clip lifecycle over a key-value store."""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from clipshare.core import feed
from clipshare.core.identifiers import IdentifierGenerator, now_ms
from clipshare.core.kv import KVStore
from clipshare.models.schemas import (
    DEFAULT_EXPIRATION,
    Clip,
    ClipResult,
    ClipSummary,
    FeedEntry,
    FeedItem,
)

logger = logging.getLogger(__name__)

EXPIRATION_TTLS: Dict[str, Optional[int]] = {
    "5m": 300,
    "1h": 3600,
    "24h": 86400,
    "first": None,
}
ADMIN_PREVIEW_LENGTH = 50


def resolve_expiration(code: Optional[str]) -> str:
    """Map a requested expiration code onto a supported one."""
    return code if code in EXPIRATION_TTLS else DEFAULT_EXPIRATION


def ttl_for(code: Optional[str]) -> Optional[int]:
    """Seconds to live for an expiration code; None means no store expiry."""
    return EXPIRATION_TTLS[resolve_expiration(code)]


class ClipStore:
    """Creates, reads and retires clips and keeps the public feed in step.

    The store is the only source of truth. There is no locking: the phrase
    collision check, the feed read-modify-write and first-view
    read-then-delete are all check-then-act sequences that can interleave
    under concurrent calls. Only the feed index can drift; clip records stay
    individually consistent.
    """

    def __init__(
        self,
        kv: KVStore,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        feed_capacity: int = 50,
        max_id_attempts: int = 1000,
    ):
        self.kv = kv
        self.clock = clock
        self.feed_capacity = feed_capacity
        self.ids = IdentifierGenerator(rng=rng, clock=clock, max_attempts=max_id_attempts)

    async def _exists(self, key: str) -> bool:
        return await self.kv.get(key) is not None

    async def _load_clip(self, clip_id: str) -> Optional[Clip]:
        if clip_id == feed.FEED_KEY:
            return None

        raw = await self.kv.get(clip_id)
        if raw is None:
            return None

        try:
            return Clip.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Unreadable clip record %s: %s", clip_id, e)
            return None

    async def _load_feed(self) -> List[FeedEntry]:
        return feed.parse_feed(await self.kv.get(feed.FEED_KEY))

    async def _save_feed(self, entries: List[FeedEntry]):
        await self.kv.put(feed.FEED_KEY, feed.dump_feed(entries))

    async def create(
        self, text: str, is_public: bool = False, expiration: Optional[str] = None
    ) -> ClipResult:
        """Store a clip; private clips get a phrase id back."""
        created_at = now_ms(self.clock)

        if is_public:
            clip_id = self.ids.public()
            clip = Clip(text=text, is_public=True, expiration="first", created_at=created_at)
            await self.kv.put(clip_id, clip.to_json())

            entry = FeedEntry(
                id=clip_id,
                preview=feed.make_preview(text, feed.FEED_PREVIEW_LENGTH),
                timestamp=created_at,
            )
            entries = await self._load_feed()
            await self._save_feed(feed.push_entry(entries, entry, self.feed_capacity))

            logger.debug("Created public clip %s", clip_id)
            return ClipResult(success=True)

        code = resolve_expiration(expiration)
        phrase_id = await self.ids.unique_phrase(self._exists)
        clip = Clip(text=text, is_public=False, expiration=code, created_at=created_at)
        await self.kv.put(phrase_id, clip.to_json(), ttl=EXPIRATION_TTLS[code])

        logger.debug("Created private clip %s (expiration %s)", phrase_id, code)
        return ClipResult(success=True, phrase_id=phrase_id)

    async def view(self, clip_id: str) -> ClipResult:
        """Read a clip; first-view clips are deleted by the read."""
        clip = await self._load_clip(clip_id)
        if clip is None:
            return ClipResult(success=False, status="not_found")

        if clip.expiration == "first":
            await self.kv.delete(clip_id)
            logger.debug("Consumed first-view clip %s", clip_id)

        return ClipResult(success=True, text=clip.text)

    async def copy(self, clip_id: str) -> ClipResult:
        """Take a clip out of the store and the public feed."""
        clip = await self._load_clip(clip_id)
        if clip is not None:
            await self.kv.delete(clip_id)

        entries = await self._load_feed()
        remaining = feed.remove_entry(entries, clip_id)
        if len(remaining) != len(entries):
            await self._save_feed(remaining)
            if clip is None:
                logger.debug("Pruned stale feed entry %s", clip_id)

        if clip is None:
            return ClipResult(success=False, status="not_found")

        logger.debug("Copied clip %s", clip_id)
        return ClipResult(success=True, text=clip.text)

    async def list_feed(self) -> List[FeedItem]:
        """Public feed, newest first, with labels relative to now."""
        entries = await self._load_feed()
        return feed.render(entries, now_ms(self.clock))

    async def delete(self, clip_id: str) -> ClipResult:
        """Admin delete; the public feed is left untouched."""
        await self.kv.delete(clip_id)
        logger.debug("Deleted clip %s", clip_id)
        return ClipResult(success=True)

    async def list_all(self) -> List[ClipSummary]:
        """Summaries of every stored clip, newest first.

        Full scan of the store; meant for small personal deployments.
        """
        summaries = []
        for key in await self.kv.list():
            clip = await self._load_clip(key)
            if clip is None:
                continue

            summaries.append(
                ClipSummary(
                    id=key,
                    is_public=clip.is_public,
                    expiration=clip.expiration,
                    preview=feed.make_preview(clip.text, ADMIN_PREVIEW_LENGTH),
                    created_at=clip.created_at,
                )
            )

        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    async def get_stats(self) -> Dict[str, Any]:
        """Aggregate statistics over all stored clips."""
        rows = []
        for key in await self.kv.list():
            clip = await self._load_clip(key)
            if clip is not None:
                rows.append(
                    {
                        "id": key,
                        "is_public": clip.is_public,
                        "expiration": clip.expiration,
                        "length": len(clip.text),
                        "created_at": clip.created_at,
                    }
                )

        df = pd.DataFrame(rows)

        if len(df) == 0:
            return {
                "total_clips": 0,
                "public_clips": 0,
                "private_clips": 0,
                "by_expiration": {},
                "avg_text_length": 0,
            }

        public_clips = int(df["is_public"].sum())
        by_expiration = {
            code: int(count) for code, count in df["expiration"].value_counts().items()
        }

        return {
            "total_clips": len(df),
            "public_clips": public_clips,
            "private_clips": len(df) - public_clips,
            "by_expiration": by_expiration,
            "avg_text_length": round(float(df["length"].mean()), 1),
            "oldest_clip": int(df["created_at"].min()),
            "newest_clip": int(df["created_at"].max()),
        }
