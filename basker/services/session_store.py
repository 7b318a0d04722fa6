import base64
import json
from typing import Any

import redis.asyncio as redis
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from basker.core.config import settings
from basker.core.exceptions import SessionStoreError
from basker.core.security import redact_token
from basker.models.session import Session

_ENCRYPTED_FIELDS = ("access_jwt", "refresh_jwt")


class SessionStore:
    """Redis-backed durable store for one persisted session per scope."""

    KEY_PREFIX = settings.REDIS_SESSION_KEY

    def __init__(self, scope: str = "default", client: redis.Redis | None = None, secret: str | None = None) -> None:
        self.scope = scope
        self._client = client
        self._secret = secret if secret is not None else settings.SESSION_SECRET
        if not self._secret or self._secret == "change-me":
            logger.warning(
                "SESSION_SECRET is missing or using the default placeholder. Set a strong value to secure sessions."
            )

    def _ensure_secure_secret(self) -> None:
        if not self._secret or self._secret == "change-me":
            logger.error("Refusing to store credentials because SESSION_SECRET is unset or using the insecure default.")
            raise SessionStoreError("SESSION_SECRET must be set to a non-default value before storing sessions")

    def _get_cipher(self) -> Fernet:
        salt = b"Qm7vR2kXp9LsT4wB8nYc3HdZ6jFa1GeU"
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=200_000,
        )

        key = base64.urlsafe_b64encode(kdf.derive(self._secret.encode("utf-8")))
        return Fernet(key)

    def encrypt_token(self, token: str) -> str:
        cipher = self._get_cipher()
        return cipher.encrypt(token.encode("utf-8")).decode("utf-8")

    def decrypt_token(self, enc: str) -> str:
        cipher = self._get_cipher()
        return cipher.decrypt(enc.encode("utf-8")).decode("utf-8")

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info("Creating Redis client for SessionStore")
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the Redis client (call on shutdown)."""
        if self._client is None:
            return
        try:
            await self._client.close()
            logger.info("SessionStore Redis client closed")
        except Exception as exc:
            logger.warning(f"Failed to close SessionStore Redis client: {exc}")
        finally:
            self._client = None

    def _format_key(self) -> str:
        return f"{self.KEY_PREFIX}{self.scope}"

    async def save(self, session: Session) -> None:
        self._ensure_secure_secret()
        data: dict[str, Any] = session.model_dump()
        for field in _ENCRYPTED_FIELDS:
            if data.get(field):
                data[field] = self.encrypt_token(data[field])

        client = await self._get_client()
        json_str = json.dumps(data)
        if settings.SESSION_TTL_SECONDS and settings.SESSION_TTL_SECONDS > 0:
            await client.setex(self._format_key(), settings.SESSION_TTL_SECONDS, json_str)
        else:
            await client.set(self._format_key(), json_str)
        logger.debug(f"Persisted session for {session.actor_id} in scope '{self.scope}'")

    async def load(self) -> Session | None:
        client = await self._get_client()
        data_raw = await client.get(self._format_key())
        if not data_raw:
            return None

        try:
            data = json.loads(data_raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed session in scope '{self.scope}'")
            return None

        # Decrypt fields individually; identity survives a broken credential
        for field in _ENCRYPTED_FIELDS:
            if not data.get(field):
                continue
            try:
                data[field] = self.decrypt_token(data[field])
            except (InvalidToken, ValueError) as e:
                logger.warning(f"Decryption failed for {field} of {redact_token(data.get('actor_id'))}: {e!r}")
                data[field] = None
        return Session.model_validate(data)

    async def clear(self) -> None:
        client = await self._get_client()
        await client.delete(self._format_key())
