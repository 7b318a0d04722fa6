"""
Error taxonomy for Basker.

Network and protocol failures are not wrapped: ``httpx.HTTPStatusError`` and
``httpx.RequestError`` reach the caller unchanged.
"""

__all__ = [
    "BaskerError",
    "NotFoundError",
    "AuthRequiredError",
    "CredentialUnavailableError",
    "SessionStoreError",
]


class BaskerError(Exception):
    """Base class for all Basker errors."""


class NotFoundError(BaskerError):
    """The record, collection or repo does not exist on the remote side."""

    def __init__(self, message: str = "Record not found", error: str | None = None):
        self.error = error
        super().__init__(message)


class AuthRequiredError(BaskerError):
    """No actor identity is bound; raised before any network call."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class CredentialUnavailableError(AuthRequiredError):
    """An actor is bound but has no live credential, so writes are disabled."""

    def __init__(self, actor_id: str | None = None):
        self.actor_id = actor_id
        super().__init__(f"No valid credential for {actor_id or 'current actor'}; write operations are disabled")


class SessionStoreError(BaskerError):
    """The durable session store refused an operation (e.g. insecure secret)."""
