from loguru import logger

from basker.core.constants import CREATE_SESSION, REFRESH_SESSION
from basker.core.security import redact_token
from basker.models.session import Session
from basker.services.atproto.client import XrpcClient


def _session_from_response(data: dict) -> Session:
    did = data.get("did")
    if not did:
        raise ValueError("DID missing in session response")
    return Session(
        actor_id=did,
        handle=data.get("handle"),
        access_jwt=data.get("accessJwt"),
        refresh_jwt=data.get("refreshJwt"),
    )


class AuthService:
    """
    Handles session creation and refresh against the PDS.
    """

    def __init__(self, client: XrpcClient):
        self.client = client

    async def create_session(self, identifier: str, password: str) -> Session:
        """
        Authenticate with a handle (or DID/email) and an app password.
        Returns the new Session.
        """
        payload = {"identifier": identifier, "password": password}
        try:
            # Credentials are never replayed automatically
            data = await self.client.procedure(CREATE_SESSION, payload, max_tries=1)
            session = _session_from_response(data)
            logger.info(f"Created session for {session.handle or identifier} ({session.actor_id})")
            return session
        except Exception as e:
            logger.exception(f"Failed to create session for {identifier}: {e}")
            raise

    async def refresh_session(self, session: Session) -> Session:
        """
        Exchange the refresh token for a new access token.
        """
        if not session.refresh_jwt:
            raise ValueError("Session has no refresh token")
        logger.debug(f"Refreshing session {redact_token(session.refresh_jwt)} for {session.actor_id}")
        data = await self.client.procedure(REFRESH_SESSION, token=session.refresh_jwt, max_tries=1)
        refreshed = _session_from_response(data)
        if refreshed.actor_id != session.actor_id:
            raise ValueError(f"Refreshed session belongs to {refreshed.actor_id}, expected {session.actor_id}")
        return refreshed
