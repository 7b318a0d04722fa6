from typing import Awaitable, Callable

from loguru import logger

from basker.core.exceptions import AuthRequiredError
from basker.core.security import redact_token
from basker.models.session import Session
from basker.services.atproto import AtprotoBundle
from basker.services.atproto.gateway import RecordGateway
from basker.services.session_store import SessionStore

PurgeCallback = Callable[[str], Awaitable[None] | None]


class SessionManager:
    """
    Holds the current actor and its credential.

    Knowing the actor is enough to read; writing needs a live credential. A
    restored session keeps its actor even when the credential cannot be
    refreshed.
    """

    def __init__(self, atproto: AtprotoBundle | None = None, store: SessionStore | None = None):
        self.atproto = atproto or AtprotoBundle()
        self.store = store or SessionStore()
        self._session = Session()
        self._purge_callbacks: list[PurgeCallback] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def actor_id(self) -> str | None:
        return self._session.actor_id

    @property
    def is_authenticated(self) -> bool:
        return self._session.has_actor

    @property
    def can_write(self) -> bool:
        return self._session.can_write

    def require_actor(self) -> str:
        if not self._session.has_actor:
            raise AuthRequiredError()
        return self._session.actor_id

    def on_logout(self, callback: PurgeCallback) -> None:
        """Register a callback that purges per-actor state when the session ends."""
        self._purge_callbacks.append(callback)

    async def login(self, identifier: str, secret: str) -> Session:
        session = await self.atproto.auth.create_session(identifier, secret)
        await self.store.save(session)
        self._session = session
        return session

    async def restore_session(self) -> Session | None:
        stored = await self.store.load()
        if stored is None or not stored.has_actor:
            return None

        # Identity is usable for reads straight away
        self._session = stored
        logger.info(f"Restored session for {stored.actor_id}")

        if not stored.refresh_jwt:
            logger.warning(f"No refresh token for {stored.actor_id}; writes disabled")
            self._session = stored.without_credential()
            return self._session

        try:
            refreshed = await self.atproto.auth.refresh_session(stored)
        except Exception as e:
            logger.warning(
                f"Credential refresh failed for {stored.actor_id} ({redact_token(stored.refresh_jwt)}); "
                f"keeping identity for reads: {e}"
            )
            self._session = stored.without_credential()
            return self._session

        self._session = refreshed
        try:
            await self.store.save(refreshed)
        except Exception as e:
            logger.warning(f"Could not persist refreshed session for {refreshed.actor_id}: {e}")
        return self._session

    async def logout(self) -> None:
        actor_id = self._session.actor_id
        self._session = Session()
        try:
            if actor_id:
                for callback in self._purge_callbacks:
                    result = callback(actor_id)
                    if result is not None:
                        await result
        finally:
            await self.store.clear()
            logger.info(f"Logged out {actor_id}")

    def gateway(self) -> RecordGateway:
        """Gateway for the current actor; raises AuthRequiredError when none is bound."""
        self.require_actor()
        return RecordGateway(self.atproto.client, self._session)

    def public_gateway(self, target_actor_id: str) -> RecordGateway:
        """Read-only gateway over the unauthenticated client, scoped to another actor."""
        if not target_actor_id:
            raise ValueError("target actor id is required")
        return RecordGateway(self.atproto.public_client, Session.public(target_actor_id))

    async def close(self) -> None:
        await self.atproto.close()
        await self.store.close()
