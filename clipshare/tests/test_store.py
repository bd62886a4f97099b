"""Tests for the clip lifecycle."""

import json
import random

import pytest
from unittest.mock import AsyncMock

from clipshare.core.feed import FEED_KEY
from clipshare.core.identifiers import IdentifierSpaceExhausted
from clipshare.core.kv import MemoryKV
from clipshare.core.store import ClipStore, resolve_expiration, ttl_for


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv(clock):
    return MemoryKV(clock=clock)


@pytest.fixture
def store(kv, clock):
    return ClipStore(kv, rng=random.Random(1234), clock=clock)


async def read_feed(kv):
    raw = await kv.get(FEED_KEY)
    return json.loads(raw) if raw else []


class TestExpirationCodes:
    def test_ttl_mapping(self):
        assert ttl_for("5m") == 300
        assert ttl_for("1h") == 3600
        assert ttl_for("24h") == 86400
        assert ttl_for("first") is None

    def test_unknown_code_defaults_to_one_hour(self):
        assert ttl_for("forever") == 3600
        assert ttl_for(None) == 3600
        assert resolve_expiration("forever") == "1h"


class TestPrivateClips:
    @pytest.mark.asyncio
    async def test_create_returns_free_phrase_id(self, store, kv):
        result = await store.create("secret", expiration="1h")

        assert result.success is True
        assert result.phrase_id
        stored = json.loads(await kv.get(result.phrase_id))
        assert stored["text"] == "secret"
        assert stored["isPublic"] is False
        assert stored["expiration"] == "1h"
        assert stored["createdAt"] == 1_700_000_000_000

    @pytest.mark.asyncio
    async def test_create_skips_occupied_phrase(self, kv, clock):
        """The assigned id was absent from the store before creation."""
        seeded = ClipStore(kv, rng=random.Random(99), clock=clock)
        occupied = seeded.ids.phrase()
        await kv.put(occupied, "someone else's clip")

        store = ClipStore(kv, rng=random.Random(99), clock=clock)
        result = await store.create("mine", expiration="5m")

        assert result.phrase_id != occupied
        assert await kv.get(occupied) == "someone else's clip"

    @pytest.mark.asyncio
    async def test_create_raises_when_space_exhausted(self, clock):
        kv = MemoryKV(clock=clock)
        kv.get = AsyncMock(return_value="taken")
        store = ClipStore(kv, rng=random.Random(1), clock=clock, max_id_attempts=3)

        with pytest.raises(IdentifierSpaceExhausted):
            await store.create("text", expiration="1h")

        assert kv.get.await_count == 3

    @pytest.mark.asyncio
    async def test_first_view_is_single_use(self, store):
        result = await store.create("one time", expiration="first")

        first = await store.view(result.phrase_id)
        second = await store.view(result.phrase_id)

        assert first.success is True
        assert first.text == "one time"
        assert second.success is False
        assert second.not_found

    @pytest.mark.asyncio
    async def test_timed_clip_is_multi_read(self, store):
        result = await store.create("reusable", expiration="5m")

        assert (await store.view(result.phrase_id)).text == "reusable"
        assert (await store.view(result.phrase_id)).text == "reusable"

    @pytest.mark.asyncio
    async def test_timed_clip_expires(self, store, clock):
        result = await store.create("short lived", expiration="5m")

        clock.now += 300

        assert (await store.view(result.phrase_id)).not_found

    @pytest.mark.asyncio
    async def test_first_view_clip_has_no_ttl(self, store, clock):
        result = await store.create("waits", expiration="first")

        clock.now += 30 * 86400

        assert (await store.view(result.phrase_id)).text == "waits"

    @pytest.mark.asyncio
    async def test_unknown_expiration_stored_as_default(self, store, kv, clock):
        result = await store.create("text", expiration="never")

        assert json.loads(await kv.get(result.phrase_id))["expiration"] == "1h"
        clock.now += 3600
        assert await kv.get(result.phrase_id) is None

    @pytest.mark.asyncio
    async def test_view_missing(self, store):
        result = await store.view("sad-rock-3")

        assert result.success is False
        assert result.status == "not_found"

    @pytest.mark.asyncio
    async def test_view_never_returns_feed_record(self, store):
        await store.create("public", is_public=True)

        assert (await store.view(FEED_KEY)).not_found


class TestPublicClips:
    @pytest.mark.asyncio
    async def test_create_adds_feed_entry(self, store, kv):
        result = await store.create("hello world", is_public=True, expiration="24h")

        assert result.success is True
        assert result.phrase_id is None

        feed = await read_feed(kv)
        assert len(feed) == 1
        assert feed[0]["preview"] == "hello world"
        assert feed[0]["id"].startswith("pub_")

        stored = json.loads(await kv.get(feed[0]["id"]))
        assert stored["isPublic"] is True
        assert stored["expiration"] == "first"

    @pytest.mark.asyncio
    async def test_feed_listing_labels(self, store, clock):
        await store.create("hello world", is_public=True)

        items = await store.list_feed()
        assert items[0].preview == "hello world"
        assert items[0].timestamp == "just now"

        clock.now += 125
        items = await store.list_feed()
        assert items[0].timestamp == "2 min ago"

    @pytest.mark.asyncio
    async def test_long_text_preview(self, store):
        text = "x" * 70
        await store.create(text, is_public=True)

        items = await store.list_feed()
        assert items[0].preview == "x" * 60 + "..."

    @pytest.mark.asyncio
    async def test_feed_newest_first_and_capped(self, kv, clock):
        store = ClipStore(kv, rng=random.Random(5), clock=clock, feed_capacity=50)

        for n in range(55):
            clock.now += 1
            await store.create(f"clip {n}", is_public=True)
            feed = await read_feed(kv)
            assert len(feed) == min(n + 1, 50)
            assert feed[0]["preview"] == f"clip {n}"

        feed = await read_feed(kv)
        assert feed[-1]["preview"] == "clip 5"

    @pytest.mark.asyncio
    async def test_copy_removes_clip_and_entry(self, store, kv):
        await store.create("take me", is_public=True)
        clip_id = (await store.list_feed())[0].id

        result = await store.copy(clip_id)

        assert result.success is True
        assert result.text == "take me"
        assert await kv.get(clip_id) is None
        assert await store.list_feed() == []

        again = await store.copy(clip_id)
        assert again.not_found

    @pytest.mark.asyncio
    async def test_copy_keeps_other_entries(self, store, clock):
        await store.create("first", is_public=True)
        clock.now += 1
        await store.create("second", is_public=True)
        items = await store.list_feed()

        await store.copy(items[1].id)

        remaining = await store.list_feed()
        assert [item.id for item in remaining] == [items[0].id]

    @pytest.mark.asyncio
    async def test_view_consumes_public_clip(self, store):
        await store.create("peek", is_public=True)
        clip_id = (await store.list_feed())[0].id

        assert (await store.view(clip_id)).text == "peek"
        assert (await store.view(clip_id)).not_found

    @pytest.mark.asyncio
    async def test_admin_delete_leaves_stale_entry_until_copy(self, store):
        await store.create("doomed", is_public=True)
        clip_id = (await store.list_feed())[0].id

        result = await store.delete(clip_id)

        assert result.success is True
        assert (await store.view(clip_id)).not_found
        assert [item.id for item in await store.list_feed()] == [clip_id]

        copy = await store.copy(clip_id)
        assert copy.not_found
        assert await store.list_feed() == []

    @pytest.mark.asyncio
    async def test_unreadable_feed_does_not_block_creation(self, store, kv):
        await kv.put(FEED_KEY, "not json at all")

        result = await store.create("still works", is_public=True)

        assert result.success is True
        items = await store.list_feed()
        assert len(items) == 1


class TestAdmin:
    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, store, kv, clock):
        older = await store.create("a" * 80, expiration="24h")
        clock.now += 10
        await store.create("public one", is_public=True)
        await kv.put("broken", "{oops")

        clips = await store.list_all()

        assert len(clips) == 2
        assert clips[0].is_public is True
        assert clips[0].expiration == "first"
        assert clips[1].id == older.phrase_id
        assert clips[1].preview == "a" * 50 + "..."
        assert clips[0].created_at > clips[1].created_at

    @pytest.mark.asyncio
    async def test_delete_missing_is_success(self, store):
        assert (await store.delete("no-such-1")).success is True

    @pytest.mark.asyncio
    async def test_stats_empty(self, store):
        stats = await store.get_stats()

        assert stats["total_clips"] == 0
        assert stats["public_clips"] == 0

    @pytest.mark.asyncio
    async def test_stats(self, store, clock):
        await store.create("1234", expiration="5m")
        clock.now += 1
        await store.create("123456", expiration="5m")
        clock.now += 1
        await store.create("12", is_public=True)

        stats = await store.get_stats()

        assert stats["total_clips"] == 3
        assert stats["public_clips"] == 1
        assert stats["private_clips"] == 2
        assert stats["by_expiration"] == {"5m": 2, "first": 1}
        assert stats["avg_text_length"] == 4.0
        assert stats["oldest_clip"] == 1_700_000_000_000
        assert stats["newest_clip"] == 1_700_000_002_000


class TestLegacyRecords:
    @pytest.mark.asyncio
    async def test_unknown_stored_expiration_is_still_readable(self, store, kv):
        """Records written with codes outside the supported set stay viewable."""
        legacy = {
            "text": "written by an older deployment",
            "isPublic": False,
            "expiration": "2h",
            "createdAt": 1_600_000_000_000,
        }
        await kv.put("brave-owl-8", json.dumps(legacy), ttl=7200)

        first = await store.view("brave-owl-8")
        second = await store.view("brave-owl-8")

        assert first.text == "written by an older deployment"
        assert second.text == "written by an older deployment"

        clips = await store.list_all()
        assert clips[0].id == "brave-owl-8"
        assert clips[0].expiration == "1h"

    @pytest.mark.asyncio
    async def test_unknown_stored_expiration_can_be_copied(self, store, kv):
        legacy = {"text": "old", "isPublic": True, "expiration": "", "createdAt": 1}
        await kv.put("pub_1_abc", json.dumps(legacy))

        result = await store.copy("pub_1_abc")

        assert result.text == "old"
        assert await kv.get("pub_1_abc") is None
