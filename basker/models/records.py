from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StorageStrategy(Enum):
    PER_ITEM = "per_item"
    SINGLETON = "singleton"


class Record(BaseModel):
    """A record as seen through the gateway; ``payload`` is the raw record value."""

    key: str
    collection: str
    uri: str | None = None
    cid: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def created_at(self) -> str | None:
        return self.payload.get("createdAt")

    @property
    def updated_at(self) -> str | None:
        return self.payload.get("updatedAt")


class PlannedWrite(BaseModel):
    # Position of the item in the desired list
    index: int
    key: str | None = None
    payload: dict[str, Any]


class SyncPlan(BaseModel):
    creates: list[PlannedWrite] = Field(default_factory=list)
    updates: list[PlannedWrite] = Field(default_factory=list)
    deletes: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)

    @property
    def operation_count(self) -> int:
        return len(self.creates) + len(self.updates) + len(self.deletes)


class SyncResult(BaseModel):
    """Outcome of an applied sync: the plan and the desired items with server keys substituted."""

    collection: str
    plan: SyncPlan
    items: list[Any] = Field(default_factory=list)
