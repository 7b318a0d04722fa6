"""Tests for read-time expiry of stories."""

from datetime import timedelta

import pytest

from basker.models.content import Story
from basker.models.session import Session
from basker.services.atproto.gateway import RecordGateway
from basker.services.collections import get_descriptor
from basker.services.ephemeral import EphemeralContentFilter, partition_expired
from basker.services.sync import CollectionSynchronizer
from basker.utils import to_iso

from .conftest import DID, NOW

STORIES = "app.basker.stories"


def story(id: str, expires_in: timedelta | None) -> dict:
    data = {"id": id, "content": f"story {id}", "createdAt": to_iso(NOW - timedelta(hours=2))}
    if expires_in is not None:
        data["expiresAt"] = to_iso(NOW + expires_in)
    return data


class RecordingSynchronizer(CollectionSynchronizer):
    def __init__(self, gateway, fail: bool = False):
        super().__init__(gateway)
        self.fail = fail
        self.calls = []

    async def sync(self, descriptor, desired, now=None):
        self.calls.append((descriptor.name, [item.id for item in desired]))
        if self.fail:
            raise RuntimeError("PDS unavailable")
        return await super().sync(descriptor, desired, now=now)


def test_partition_treats_missing_and_malformed_as_expired():
    items = [
        Story(id="ok", expires_at=to_iso(NOW + timedelta(minutes=1))),
        Story(id="none"),
        Story(id="junk", expires_at="tomorrow"),
        Story(id="edge", expires_at=to_iso(NOW)),
        Story(id="naive", expires_at="2025-06-01T13:00:00"),
    ]
    active, expired = partition_expired(items, NOW)
    assert [s.id for s in active] == ["ok", "naive"]
    assert [s.id for s in expired] == ["none", "junk", "edge"]


class TestEphemeralContentFilter:
    @pytest.mark.asyncio
    async def test_expired_items_hidden_and_compacted(self, gateway, pds):
        pds.seed(DID, STORIES, "self", {"stories": [story("s1", -timedelta(hours=1)), story("s2", timedelta(hours=1))]})
        synchronizer = RecordingSynchronizer(gateway)
        content_filter = EphemeralContentFilter(gateway, synchronizer)

        active = await content_filter.read(get_descriptor("stories"), now=NOW)
        assert [s.id for s in active] == ["s2"]

        await content_filter.drain()
        assert synchronizer.calls == [("stories", ["s2"])]
        assert pds.write_ops() == [("put", "self")]
        stored = pds.records(DID, STORIES)["self"]["stories"]
        assert [s["id"] for s in stored] == ["s2"]

    @pytest.mark.asyncio
    async def test_n_expired_m_active(self, gateway, pds):
        stories = [story(f"old{i}", -timedelta(minutes=i + 1)) for i in range(3)]
        stories += [story(f"new{i}", timedelta(minutes=i + 1)) for i in range(2)]
        pds.seed(DID, STORIES, "self", {"stories": stories})
        content_filter = EphemeralContentFilter(gateway)

        active = await content_filter.read(get_descriptor("stories"), now=NOW)
        await content_filter.drain()

        assert sorted(s.id for s in active) == ["new0", "new1"]
        puts = pds.calls("com.atproto.repo.putRecord")
        assert len(puts) == 1
        assert sorted(s["id"] for s in puts[0]["record"]["stories"]) == ["new0", "new1"]

    @pytest.mark.asyncio
    async def test_nothing_expired_means_no_write(self, gateway, pds):
        pds.seed(DID, STORIES, "self", {"stories": [story("s2", timedelta(hours=1))]})
        synchronizer = RecordingSynchronizer(gateway)
        content_filter = EphemeralContentFilter(gateway, synchronizer)

        active = await content_filter.read(get_descriptor("stories"), now=NOW)
        await content_filter.drain()

        assert [s.id for s in active] == ["s2"]
        assert synchronizer.calls == []
        assert pds.write_ops() == []

    @pytest.mark.asyncio
    async def test_compaction_failure_is_not_surfaced(self, gateway, pds):
        pds.seed(DID, STORIES, "self", {"stories": [story("s1", -timedelta(hours=1))]})
        synchronizer = RecordingSynchronizer(gateway, fail=True)
        content_filter = EphemeralContentFilter(gateway, synchronizer)

        active = await content_filter.read(get_descriptor("stories"), now=NOW)
        await content_filter.drain()

        assert active == []
        assert synchronizer.calls == [("stories", [])]
        assert pds.write_ops() == []

    @pytest.mark.asyncio
    async def test_missing_record_reads_empty(self, gateway, pds):
        content_filter = EphemeralContentFilter(gateway)
        assert await content_filter.read(get_descriptor("stories"), now=NOW) == []
        assert pds.write_ops() == []

    @pytest.mark.asyncio
    async def test_read_only_gateway_skips_compaction(self, xrpc, pds):
        pds.seed(DID, STORIES, "self", {"stories": [story("s1", -timedelta(hours=1)), story("s2", timedelta(hours=1))]})
        gateway = RecordGateway(xrpc, Session.public(DID))
        synchronizer = RecordingSynchronizer(gateway)
        content_filter = EphemeralContentFilter(gateway, synchronizer)

        active = await content_filter.read(get_descriptor("stories"), now=NOW)
        await content_filter.drain()

        assert [s.id for s in active] == ["s2"]
        assert synchronizer.calls == []

    @pytest.mark.asyncio
    async def test_per_item_collection_rejected(self, gateway):
        with pytest.raises(ValueError):
            await EphemeralContentFilter(gateway).read(get_descriptor("links"), now=NOW)
