from pydantic import BaseModel


class Session(BaseModel):
    """
    The identity a gateway acts for.

    ``actor_id`` alone is enough to read; writes also need ``access_jwt``.
    """

    actor_id: str | None = None
    handle: str | None = None
    access_jwt: str | None = None
    refresh_jwt: str | None = None

    @property
    def has_actor(self) -> bool:
        return bool(self.actor_id)

    @property
    def can_write(self) -> bool:
        return bool(self.actor_id and self.access_jwt)

    @classmethod
    def public(cls, actor_id: str) -> "Session":
        """A read-only session scoped to another actor's repository."""
        return cls(actor_id=actor_id)

    def without_credential(self) -> "Session":
        return self.model_copy(update={"access_jwt": None, "refresh_jwt": None})
