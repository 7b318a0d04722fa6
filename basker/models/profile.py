from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ProfileModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Associated(_ProfileModel):
    labeler: bool | None = None
    lists: int | None = None
    feedgens: int | None = None
    starter_packs: int | None = None


class Label(_ProfileModel):
    src: str = ""
    uri: str = ""
    val: str = ""
    cts: str | None = None
    exp: str | None = None


class VerificationEntry(_ProfileModel):
    issuer: str = ""
    uri: str = ""
    is_valid: bool = True
    created_at: str | None = None


class VerificationState(_ProfileModel):
    verifications: list[VerificationEntry] = Field(default_factory=list)
    verified_status: str | None = None
    trusted_verifier_status: str | None = None


class UserProfile(_ProfileModel):
    """Profile view as returned by the app view (``app.bsky.actor.getProfile``)."""

    did: str = ""
    handle: str = ""
    display_name: str | None = None
    description: str | None = None
    avatar: str | None = None
    associated: Associated | None = None
    labels: list[Label] = Field(default_factory=list)
    verification: VerificationState | None = None
