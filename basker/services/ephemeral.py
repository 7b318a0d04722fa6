import asyncio
from datetime import datetime
from typing import Any

from loguru import logger

from basker.core.config import settings
from basker.services.atproto.gateway import RecordGateway
from basker.services.collections import CollectionDescriptor
from basker.services.sync import CollectionSynchronizer
from basker.utils import parse_timestamp, utc_now


def partition_expired(items: list[Any], now: datetime) -> tuple[list[Any], list[Any]]:
    """
    Split items into ``(active, expired)``.

    An item is active only while its ``expires_at`` lies strictly after ``now``;
    a missing or malformed timestamp counts as expired.
    """
    active, expired = [], []
    for item in items:
        expires_at = parse_timestamp(getattr(item, "expires_at", None))
        if expires_at is not None and expires_at > now:
            active.append(item)
        else:
            expired.append(item)
    return active, expired


class EphemeralContentFilter:
    """
    Reads singleton collections whose items expire, hiding expired items.

    Expiry is enforced only here, lazily, at read time. When expired items are
    found, a write-back of the active items is started in the background; its
    failure is logged and never reaches the reader.

    A caller that writes the same collection should wait for pending
    compactions first, or the compaction may land after its write.
    """

    def __init__(
        self,
        gateway: RecordGateway,
        synchronizer: CollectionSynchronizer | None = None,
        pending: set[asyncio.Task] | None = None,
    ):
        self.gateway = gateway
        self.synchronizer = synchronizer or CollectionSynchronizer(gateway)
        # Shared with the owner when compactions must outlive this filter
        self._pending: set[asyncio.Task] = pending if pending is not None else set()

    async def read(self, descriptor: CollectionDescriptor, now: datetime | None = None) -> list[Any]:
        if not descriptor.is_singleton:
            raise ValueError(f"{descriptor.name} is not a singleton collection")
        now = now or utc_now()

        record = await self.gateway.get(descriptor.nsid, settings.SINGLETON_RKEY)
        items = descriptor.decode_payload(record.payload) if record else []
        active, expired = partition_expired(items, now)

        if expired:
            logger.debug(f"{descriptor.nsid}: {len(expired)} expired, {len(active)} active for {self.gateway.actor_id}")
            self._schedule_compaction(descriptor, active, now)
        return active

    def _schedule_compaction(self, descriptor: CollectionDescriptor, active: list[Any], now: datetime) -> None:
        if not self.gateway.can_write:
            logger.debug(f"Skipping compaction of {descriptor.nsid}: no write credential")
            return
        task = asyncio.create_task(self._compact(descriptor, list(active), now))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _compact(self, descriptor: CollectionDescriptor, active: list[Any], now: datetime) -> None:
        try:
            await self.synchronizer.sync(descriptor, active, now=now)
            logger.info(f"Compacted {descriptor.nsid} for {self.gateway.actor_id} to {len(active)} items")
        except Exception as e:
            logger.warning(f"Compaction of {descriptor.nsid} for {self.gateway.actor_id} failed: {e}")

    async def drain(self) -> None:
        """Wait for outstanding compactions (tests, shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
