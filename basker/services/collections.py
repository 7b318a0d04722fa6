"""
Collection registry: every collection the app stores, its storage strategy and
the codec that turns remote payloads into domain items and back.

Shape drift is handled here and nowhere else: a payload that does not decode is
logged and skipped.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from basker.core.config import settings
from basker.models.content import (
    AdminRole,
    BlogPost,
    ChatMessage,
    Company,
    Group,
    HeatMapEntry,
    Link,
    Note,
    Poll,
    PortfolioItem,
    Product,
    Settings,
    Story,
    Widget,
    WorkHistory,
)
from basker.models.records import Record, StorageStrategy

_ITEM_KEY_FIELDS = ("id", "$type")


def sort_by_order(items: list[Any]) -> list[Any]:
    """Stable ascending sort on ``order``; items without one sort as 0."""
    return sorted(items, key=lambda item: getattr(item, "order", 0) or 0)


class CollectionDescriptor:
    def __init__(
        self,
        name: str,
        suffix: str,
        strategy: StorageStrategy,
        model: type[BaseModel],
        field: str | None = None,
        single: bool = False,
        expiring: bool = False,
    ):
        if strategy is StorageStrategy.SINGLETON and not field:
            raise ValueError(f"Singleton collection {name} needs a payload field")
        self.name = name
        self.nsid = f"{settings.COLLECTION_NAMESPACE}.{suffix}"
        self.strategy = strategy
        self.model = model
        self.field = field
        self.single = single
        self.expiring = expiring

    def __repr__(self) -> str:
        return f"CollectionDescriptor({self.name!r}, {self.nsid!r}, {self.strategy.name})"

    @property
    def is_singleton(self) -> bool:
        return self.strategy is StorageStrategy.SINGLETON

    def coerce(self, item: Any) -> BaseModel:
        if isinstance(item, self.model):
            return item
        if isinstance(item, BaseModel):
            item = item.model_dump(by_alias=True)
        return self.model.model_validate(item)

    def encode_item(self, item: Any) -> dict[str, Any]:
        payload = self.coerce(item).to_payload()
        if not self.is_singleton:
            # The record key carries the id
            for key in _ITEM_KEY_FIELDS:
                payload.pop(key, None)
        return payload

    def decode_item(self, payload: dict[str, Any], key: str | None = None) -> BaseModel | None:
        data = {k: v for k, v in payload.items() if k != "$type"}
        if key is not None:
            data["id"] = key
        try:
            return self.model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping undecodable {self.name} item {key or data.get('id', '?')}: {e}")
            return None

    def decode_records(self, records: list[Record]) -> list[BaseModel]:
        items = [self.decode_item(record.payload, key=record.key) for record in records]
        return sort_by_order([item for item in items if item is not None])

    def encode_payload(self, items: list[Any], now: str) -> dict[str, Any]:
        """Full singleton payload; always the whole collection."""
        if self.single:
            body: Any = self.encode_item(items[0]) if items else None
        else:
            body = [self.encode_item(item) for item in items]
        return {self.field: body, "updatedAt": now}

    def decode_payload(self, value: dict[str, Any] | None) -> list[BaseModel]:
        if not value:
            return []
        body = value.get(self.field)
        if body is None:
            return []
        if self.single:
            item = self.decode_item(body) if isinstance(body, dict) else None
            return [item] if item is not None else []
        if not isinstance(body, list):
            logger.warning(f"{self.nsid}: expected a list under '{self.field}', got {type(body).__name__}")
            return []
        items = [self.decode_item(raw) for raw in body if isinstance(raw, dict)]
        return sort_by_order([item for item in items if item is not None])


PER_ITEM = StorageStrategy.PER_ITEM
SINGLETON = StorageStrategy.SINGLETON

COLLECTIONS: dict[str, CollectionDescriptor] = {
    d.name: d
    for d in (
        CollectionDescriptor("links", "links", PER_ITEM, Link),
        CollectionDescriptor("notes", "notes", PER_ITEM, Note),
        CollectionDescriptor("widgets", "widgets", PER_ITEM, Widget),
        CollectionDescriptor("stories", "stories", SINGLETON, Story, field="stories", expiring=True),
        CollectionDescriptor("settings", "settings", SINGLETON, Settings, field="settings", single=True),
        CollectionDescriptor("companies", "companies", SINGLETON, Company, field="companies"),
        CollectionDescriptor("work_history", "workHistory", SINGLETON, WorkHistory, field="workHistory"),
        CollectionDescriptor("admin_roles", "adminUsers", SINGLETON, AdminRole, field="adminUsers"),
        CollectionDescriptor("polls", "polls", SINGLETON, Poll, field="polls"),
        CollectionDescriptor("blog", "blog", SINGLETON, BlogPost, field="posts"),
        CollectionDescriptor("portfolio", "portfolio", SINGLETON, PortfolioItem, field="items"),
        CollectionDescriptor("products", "products", SINGLETON, Product, field="products"),
        CollectionDescriptor("heatmap", "heatmap", SINGLETON, HeatMapEntry, field="heatMapData"),
        CollectionDescriptor("chat", "chat", SINGLETON, ChatMessage, field="messages"),
        CollectionDescriptor("groups", "groups", SINGLETON, Group, field="groups"),
    )
}


def get_descriptor(name: str) -> CollectionDescriptor:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown collection '{name}'") from None
