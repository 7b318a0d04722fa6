from typing import Any

from loguru import logger

from basker.core.config import settings
from basker.core.constants import CREATE_RECORD, DELETE_RECORD, GET_RECORD, LIST_RECORDS, MAX_LIST_LIMIT, PUT_RECORD
from basker.core.exceptions import AuthRequiredError, CredentialUnavailableError, NotFoundError
from basker.models.records import Record
from basker.models.session import Session
from basker.services.atproto.client import XrpcClient
from basker.utils import utc_now_iso


def key_from_uri(uri: str) -> str:
    """``at://did:plc:abc/app.basker.links/3kxyz`` -> ``3kxyz``"""
    return uri.rstrip("/").split("/")[-1] if uri else ""


class RecordGateway:
    """
    The five record primitives of one actor's repository.

    Reads only need an actor; writes also need a live credential. Both checks
    happen before any network I/O. No state is kept between calls.
    """

    def __init__(self, client: XrpcClient, session: Session):
        self.client = client
        self.session = session

    @property
    def actor_id(self) -> str | None:
        return self.session.actor_id

    @property
    def can_write(self) -> bool:
        return self.session.can_write

    def _require_actor(self) -> str:
        if not self.session.has_actor:
            raise AuthRequiredError()
        return self.session.actor_id

    def _require_credential(self) -> str:
        actor_id = self._require_actor()
        if not self.session.access_jwt:
            raise CredentialUnavailableError(actor_id)
        return actor_id

    @staticmethod
    def _stamp(collection: str, payload: dict[str, Any]) -> dict[str, Any]:
        record = {"$type": collection, **payload}
        record.setdefault("createdAt", utc_now_iso())
        return record

    async def create(self, collection: str, payload: dict[str, Any]) -> Record:
        """Create a record; the server assigns the key."""
        repo = self._require_credential()
        record = self._stamp(collection, payload)
        # Not idempotent: a blind retry could leave a duplicate behind
        data = await self.client.procedure(
            CREATE_RECORD,
            {"repo": repo, "collection": collection, "record": record},
            token=self.session.access_jwt,
            max_tries=1,
        )
        uri = data.get("uri", "")
        logger.debug(f"create {collection} -> {uri}")
        return Record(key=key_from_uri(uri), collection=collection, uri=uri, cid=data.get("cid"), payload=record)

    async def put(self, collection: str, key: str, payload: dict[str, Any]) -> Record:
        """Create or replace the record stored under ``key``."""
        repo = self._require_credential()
        record = self._stamp(collection, payload)
        data = await self.client.procedure(
            PUT_RECORD,
            {"repo": repo, "collection": collection, "rkey": key, "record": record},
            token=self.session.access_jwt,
        )
        logger.debug(f"put {collection}/{key}")
        return Record(key=key, collection=collection, uri=data.get("uri"), cid=data.get("cid"), payload=record)

    async def get(self, collection: str, key: str) -> Record | None:
        """Fetch one record; ``None`` when it does not exist."""
        repo = self._require_actor()
        try:
            data = await self.client.query(
                GET_RECORD,
                {"repo": repo, "collection": collection, "rkey": key},
                token=self.session.access_jwt,
            )
        except NotFoundError:
            logger.debug(f"No record at {collection}/{key} for {repo}")
            return None
        return Record(
            key=key,
            collection=collection,
            uri=data.get("uri"),
            cid=data.get("cid"),
            payload=data.get("value") or {},
        )

    async def list(self, collection: str, limit: int | None = None) -> list[Record]:
        """
        Fetch a single page of records.

        The continuation cursor is not followed: anything past the first page
        (at most 100 records) is not returned.
        """
        repo = self._require_actor()
        limit = max(1, min(limit or settings.LIST_PAGE_LIMIT, MAX_LIST_LIMIT))
        try:
            data = await self.client.query(
                LIST_RECORDS,
                {"repo": repo, "collection": collection, "limit": limit},
                token=self.session.access_jwt,
            )
        except NotFoundError:
            logger.debug(f"No {collection} collection for {repo}")
            return []

        if data.get("cursor") and len(data.get("records") or []) >= limit:
            logger.warning(f"{collection} for {repo} has more than {limit} records; only the first page is visible")

        records = []
        for raw in data.get("records") or []:
            uri = raw.get("uri", "")
            records.append(
                Record(
                    key=key_from_uri(uri),
                    collection=collection,
                    uri=uri,
                    cid=raw.get("cid"),
                    payload=raw.get("value") or {},
                )
            )
        return records

    async def delete(self, collection: str, key: str) -> None:
        """Delete a record. Deleting something already gone is a success."""
        repo = self._require_credential()
        try:
            await self.client.procedure(
                DELETE_RECORD,
                {"repo": repo, "collection": collection, "rkey": key},
                token=self.session.access_jwt,
            )
        except NotFoundError:
            logger.debug(f"delete {collection}/{key}: already absent")
            return
        logger.debug(f"delete {collection}/{key}")
