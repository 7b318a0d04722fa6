from datetime import datetime
from typing import Any

from loguru import logger

from basker.core.config import settings
from basker.core.constants import VOLATILE_PAYLOAD_KEYS
from basker.models.records import PlannedWrite, Record, SyncPlan, SyncResult
from basker.services.atproto.gateway import RecordGateway
from basker.services.collections import CollectionDescriptor, sort_by_order
from basker.utils import to_iso, utc_now


def _comparable(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in VOLATILE_PAYLOAD_KEYS}


def plan_per_item(desired: list[tuple[str, dict[str, Any]]], snapshot: list[Record]) -> SyncPlan:
    """
    Diff a desired list against the remote snapshot of a per-item collection.

    ``desired`` holds ``(id, payload)`` pairs in caller order. Remote keys not
    among the desired ids are deleted, matching ids whose payload changed are
    put, and everything else is created. Timestamps and ``$type`` are ignored
    when comparing payloads, so an unchanged list plans nothing.
    """
    existing: dict[str, Record] = {}
    for record in snapshot:
        existing.setdefault(record.key, record)

    desired_ids = {item_id for item_id, _ in desired if item_id}
    plan = SyncPlan(deletes=[key for key in existing if key not in desired_ids])

    claimed: set[str] = set()
    for index, (item_id, payload) in enumerate(desired):
        if item_id and item_id in existing and item_id not in claimed:
            claimed.add(item_id)
            if _comparable(payload) != _comparable(existing[item_id].payload):
                plan.updates.append(PlannedWrite(index=index, key=item_id, payload=payload))
            continue
        if item_id in claimed:
            logger.warning(f"Duplicate id '{item_id}' in desired state; later occurrence will be created as new")
        plan.creates.append(PlannedWrite(index=index, payload=payload))
    return plan


class CollectionSynchronizer:
    """
    Moves a remote collection to a caller-supplied desired state.

    Every call re-reads the remote side first; nothing is cached between calls.
    Operations are issued one at a time and are not transactional: a failure
    part-way leaves the collection partially updated and the error is raised
    unchanged. Re-running the same sync is safe for puts and deletes, but a
    create whose new key never reached the caller will be created again.
    """

    def __init__(self, gateway: RecordGateway):
        self.gateway = gateway

    async def sync(self, descriptor: CollectionDescriptor, desired: list[Any], now: datetime | None = None) -> SyncResult:
        items = [descriptor.coerce(item) for item in desired]
        stamp = to_iso(now or utc_now())
        if descriptor.is_singleton:
            return await self._sync_singleton(descriptor, items, stamp)
        return await self._sync_per_item(descriptor, items, stamp)

    async def _sync_per_item(self, descriptor: CollectionDescriptor, items: list[Any], stamp: str) -> SyncResult:
        collection = descriptor.nsid
        snapshot = await self.gateway.list(collection)
        created_at = {record.key: record.created_at for record in snapshot}

        desired = []
        for item in items:
            payload = descriptor.encode_item(item)
            payload["createdAt"] = payload.get("createdAt") or created_at.get(item.id) or stamp
            payload["updatedAt"] = stamp
            desired.append((item.id, payload))

        plan = plan_per_item(desired, snapshot)
        if plan.is_empty:
            logger.debug(f"{collection}: already in sync ({len(items)} items)")
            return SyncResult(collection=collection, plan=plan, items=sort_by_order(items))

        logger.info(
            f"Syncing {collection} for {self.gateway.actor_id}: "
            f"{len(plan.creates)} create, {len(plan.updates)} update, {len(plan.deletes)} delete"
        )

        result_items = list(items)
        created: list[str] = []
        try:
            for key in plan.deletes:
                await self.gateway.delete(collection, key)

            writes = sorted(plan.updates + plan.creates, key=lambda write: write.index)
            for write in writes:
                if write.key is not None:
                    await self.gateway.put(collection, write.key, write.payload)
                    continue
                record = await self.gateway.create(collection, write.payload)
                created.append(record.key)
                result_items[write.index] = items[write.index].model_copy(update={"id": record.key})
        except Exception as e:
            if created:
                logger.error(
                    f"Sync of {collection} failed after creating {created}; "
                    f"a retry with the old ids will create these again: {e}"
                )
            else:
                logger.error(f"Sync of {collection} failed part-way: {e}")
            raise

        return SyncResult(collection=collection, plan=plan, items=sort_by_order(result_items))

    async def _sync_singleton(self, descriptor: CollectionDescriptor, items: list[Any], stamp: str) -> SyncResult:
        collection = descriptor.nsid
        key = settings.SINGLETON_RKEY
        current = await self.gateway.get(collection, key)

        items = sort_by_order(items)
        current_items = descriptor.decode_payload(current.payload) if current else []
        if current is not None and self._encode_all(descriptor, current_items) == self._encode_all(descriptor, items):
            logger.debug(f"{collection}: singleton unchanged")
            return SyncResult(collection=collection, plan=SyncPlan(), items=items)

        payload = descriptor.encode_payload(items, stamp)
        payload["createdAt"] = (current.created_at if current else None) or stamp
        plan = SyncPlan(updates=[PlannedWrite(index=0, key=key, payload=payload)])

        logger.info(f"Replacing {collection} for {self.gateway.actor_id} ({len(items)} items)")
        try:
            await self.gateway.put(collection, key, payload)
        except Exception as e:
            logger.error(f"Replacing {collection} failed: {e}")
            raise
        return SyncResult(collection=collection, plan=plan, items=items)

    @staticmethod
    def _encode_all(descriptor: CollectionDescriptor, items: list[Any]) -> list[dict[str, Any]]:
        return [descriptor.encode_item(item) for item in items]
