"""Shared fixtures: an in-memory PDS behind httpx.MockTransport and an async Redis double."""

import itertools
import json
from datetime import datetime, timezone

import httpx
import pytest

from basker.models.session import Session
from basker.services.atproto import AtprotoBundle
from basker.services.atproto.client import XrpcClient
from basker.services.atproto.gateway import RecordGateway
from basker.services.session_manager import SessionManager
from basker.services.session_store import SessionStore

DID = "did:plc:alice"
OTHER_DID = "did:plc:bob"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

WRITE_METHODS = {
    "com.atproto.repo.createRecord": "create",
    "com.atproto.repo.putRecord": "put",
    "com.atproto.repo.deleteRecord": "delete",
}


class FakePDS:
    """Just enough of com.atproto.repo / com.atproto.server to exercise the client."""

    def __init__(self, password: str = "app-pass"):
        self.password = password
        # (repo, collection) -> {rkey: value}, insertion ordered
        self.repos: dict[tuple[str, str], dict[str, dict]] = {}
        self.requests: list[tuple[str, dict]] = []
        self.failures: dict[str, list[int]] = {}
        self.refresh_fails = False
        self.delete_missing_status = 200
        self._keys = itertools.count(1)
        self._tokens = itertools.count(1)

    # Test helpers

    def seed(self, repo: str, collection: str, rkey: str, value: dict) -> None:
        self.repos.setdefault((repo, collection), {})[rkey] = value

    def records(self, repo: str, collection: str) -> dict[str, dict]:
        return self.repos.get((repo, collection), {})

    def fail(self, nsid: str, status: int = 500, times: int = 1) -> None:
        self.failures.setdefault(nsid, []).extend([status] * times)

    def write_ops(self) -> list[tuple[str, str | None]]:
        ops = []
        for nsid, body in self.requests:
            if nsid in WRITE_METHODS:
                ops.append((WRITE_METHODS[nsid], body.get("rkey")))
        return ops

    def calls(self, nsid: str) -> list[dict]:
        return [body for name, body in self.requests if name == nsid]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # Request handling

    @staticmethod
    def _error(status: int, error: str, message: str = "") -> httpx.Response:
        return httpx.Response(status, json={"error": error, "message": message or error})

    def handler(self, request: httpx.Request) -> httpx.Response:
        nsid = request.url.path.removeprefix("/xrpc/")
        if request.method == "GET":
            body = dict(request.url.params)
        else:
            body = json.loads(request.content) if request.content else {}
        self.requests.append((nsid, body))

        pending = self.failures.get(nsid)
        if pending:
            status = pending.pop(0)
            return self._error(status, "InternalServerError" if status >= 500 else "InvalidRequest")

        auth = request.headers.get("Authorization", "")
        handler = getattr(self, "_" + nsid.split(".")[-1], None)
        if handler is None:
            return self._error(501, "MethodNotImplemented")
        return handler(body, auth)

    def _new_session(self, did: str, handle: str) -> httpx.Response:
        n = next(self._tokens)
        return httpx.Response(
            200,
            json={"did": did, "handle": handle, "accessJwt": f"access-{n}", "refreshJwt": f"refresh-{n}"},
        )

    def _createSession(self, body, auth):
        if body.get("password") != self.password:
            return self._error(401, "AuthenticationRequired", "Invalid identifier or password")
        return self._new_session(DID, body.get("identifier", "alice.bsky.social"))

    def _refreshSession(self, body, auth):
        if self.refresh_fails or not auth.startswith("Bearer refresh-"):
            return self._error(400, "ExpiredToken", "Token has expired")
        return self._new_session(DID, "alice.bsky.social")

    def _require_write_auth(self, auth):
        if not auth.startswith("Bearer access-"):
            return self._error(401, "AuthenticationRequired")
        return None

    def _createRecord(self, body, auth):
        if denied := self._require_write_auth(auth):
            return denied
        rkey = f"3k{next(self._keys):04d}"
        self.seed(body["repo"], body["collection"], rkey, body["record"])
        return httpx.Response(
            200, json={"uri": f"at://{body['repo']}/{body['collection']}/{rkey}", "cid": f"cid-{rkey}"}
        )

    def _putRecord(self, body, auth):
        if denied := self._require_write_auth(auth):
            return denied
        self.seed(body["repo"], body["collection"], body["rkey"], body["record"])
        return httpx.Response(
            200, json={"uri": f"at://{body['repo']}/{body['collection']}/{body['rkey']}", "cid": "cid"}
        )

    def _getRecord(self, body, auth):
        value = self.records(body["repo"], body["collection"]).get(body["rkey"])
        if value is None:
            return self._error(400, "RecordNotFound", "Could not locate record")
        return httpx.Response(
            200,
            json={"uri": f"at://{body['repo']}/{body['collection']}/{body['rkey']}", "cid": "cid", "value": value},
        )

    def _listRecords(self, body, auth):
        limit = int(body.get("limit", 50))
        items = list(self.records(body["repo"], body["collection"]).items())
        page = [
            {"uri": f"at://{body['repo']}/{body['collection']}/{rkey}", "cid": "cid", "value": value}
            for rkey, value in items[:limit]
        ]
        payload = {"records": page}
        if len(items) > limit:
            payload["cursor"] = page[-1]["uri"].split("/")[-1]
        return httpx.Response(200, json=payload)

    def _deleteRecord(self, body, auth):
        if denied := self._require_write_auth(auth):
            return denied
        records = self.records(body["repo"], body["collection"])
        if body["rkey"] not in records and self.delete_missing_status != 200:
            return self._error(self.delete_missing_status, "RecordNotFound")
        records.pop(body["rkey"], None)
        return httpx.Response(200, json={})


class FakeRedis:
    """Async stand-in for the handful of redis.asyncio calls SessionStore makes."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.ttls[key] = ttl
        self.data[key] = value
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def close(self):
        return None


@pytest.fixture
def pds() -> FakePDS:
    return FakePDS()


@pytest.fixture
def xrpc(pds: FakePDS) -> XrpcClient:
    return XrpcClient(base_url="https://pds.test", max_retries=1, transport=pds.transport())


@pytest.fixture
def session() -> Session:
    return Session(actor_id=DID, handle="alice.bsky.social", access_jwt="access-0", refresh_jwt="refresh-0")


@pytest.fixture
def gateway(xrpc: XrpcClient, session: Session) -> RecordGateway:
    return RecordGateway(xrpc, session)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> SessionStore:
    return SessionStore(scope="test", client=fake_redis, secret="test-secret")


@pytest.fixture
def manager(pds: FakePDS, xrpc: XrpcClient, store: SessionStore) -> SessionManager:
    public = XrpcClient(base_url="https://public.test", max_retries=1, transport=pds.transport())
    return SessionManager(atproto=AtprotoBundle(client=xrpc, public_client=public), store=store)
