"""
Verification tier of a profile.

Each signal is an independent predicate; the evaluator walks them in
precedence order and the first match wins. Nothing here does I/O.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Protocol

from pydantic import BaseModel

from basker.core.config import settings
from basker.models.profile import UserProfile
from basker.utils import parse_timestamp, utc_now

VALID_STATUS = "valid"

VERIFICATION_LABELS: frozenset[str] = frozenset({"verified", "!no-unauthenticated"})

LABEL_ISSUERS: dict[str, str] = {
    "did:plc:ar7c4by46qjdydhdevvrndac": "Bluesky Moderation",
}
DEFAULT_LABEL_ISSUER = "AT Protocol labeler"


class TrustTier(Enum):
    PLATFORM_VERIFIED = "platform_verified"
    TRUSTED_VERIFIER = "trusted_verifier"
    NETWORK_VERIFIED = "network_verified"
    DOMAIN_VERIFIED = "domain_verified"
    UNVERIFIED = "unverified"


class TrustResult(BaseModel):
    tier: TrustTier
    source: str | None = None
    as_of: str | None = None
    reason: str = ""

    @property
    def is_verified(self) -> bool:
        return self.tier is not TrustTier.UNVERIFIED

    @property
    def tooltip(self) -> str:
        if self.tier is TrustTier.TRUSTED_VERIFIER:
            return "Verified Organization"
        if self.is_verified:
            return "Verified Account"
        return ""


class TrustSignal(Protocol):
    name: str

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None: ...


class AllowListSignal:
    """Operator-curated set of DIDs or handles."""

    name = "allow_list"

    def __init__(self, allowed: Iterable[str], source: str | None = None):
        self.allowed = frozenset(a.strip().lower() for a in allowed if a and a.strip())
        self.source = source or settings.PLATFORM_NAME

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None:
        for identifier in (profile.did, profile.handle):
            if identifier and identifier.lower() in self.allowed:
                return TrustResult(
                    tier=TrustTier.PLATFORM_VERIFIED,
                    source=self.source,
                    reason=f"{identifier} is on the platform allow-list",
                )
        return None


class SelfDeclaredVerifierSignal:
    """The account declares itself a labeler service."""

    name = "self_declared_verifier"

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None:
        if profile.associated and profile.associated.labeler is True:
            return TrustResult(
                tier=TrustTier.TRUSTED_VERIFIER,
                source="Bluesky",
                reason="Account is a labeler",
            )
        return None


class NetworkVerificationSignal:
    """A ``valid`` verification status backed by at least one dated verification."""

    name = "network_verification"

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None:
        state = profile.verification
        if state is None or state.verified_status != VALID_STATUS:
            return None

        dated = []
        for entry in state.verifications:
            created = parse_timestamp(entry.created_at)
            if entry.is_valid and created is not None:
                dated.append((created, entry))
        if not dated:
            return None

        earliest, entry = min(dated, key=lambda pair: pair[0])
        return TrustResult(
            tier=TrustTier.NETWORK_VERIFIED,
            source=entry.issuer or None,
            as_of=earliest.date().isoformat(),
            reason=f"Verified by {len(dated)} issuer(s)",
        )


class ModerationLabelSignal:
    """Legacy path: a verification-equivalent moderation label."""

    name = "moderation_label"

    def __init__(
        self,
        labels: Iterable[str] = VERIFICATION_LABELS,
        issuers: dict[str, str] | None = None,
        default_issuer: str = DEFAULT_LABEL_ISSUER,
    ):
        self.labels = frozenset(labels)
        self.issuers = LABEL_ISSUERS if issuers is None else issuers
        self.default_issuer = default_issuer

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None:
        for label in profile.labels:
            if label.val in self.labels:
                applied = parse_timestamp(label.cts)
                return TrustResult(
                    tier=TrustTier.NETWORK_VERIFIED,
                    source=self.issuers.get(label.src, self.default_issuer),
                    as_of=applied.date().isoformat() if applied else None,
                    reason=f"Label '{label.val}'",
                )
        return None


class CustomDomainSignal:
    """Any handle outside the platform's default suffix."""

    name = "custom_domain"

    def __init__(self, default_suffix: str | None = None):
        self.default_suffix = (default_suffix or settings.DEFAULT_HANDLE_SUFFIX).lower()

    def match(self, profile: UserProfile, now: datetime) -> TrustResult | None:
        handle = (profile.handle or "").strip().lower()
        if not handle or handle.endswith(self.default_suffix):
            return None
        return TrustResult(
            tier=TrustTier.DOMAIN_VERIFIED,
            source="DNS ownership",
            as_of=str(now.year),
            reason=f"Custom domain handle {handle}",
        )


def default_signals() -> list[TrustSignal]:
    return [
        AllowListSignal(settings.PLATFORM_VERIFIED_DIDS),
        SelfDeclaredVerifierSignal(),
        NetworkVerificationSignal(),
        ModerationLabelSignal(),
        CustomDomainSignal(),
    ]


class TrustEvaluator:
    """
    Classifies a profile into a trust tier.

    Pure function: no side effects, easy to test.
    """

    def __init__(self, signals: list[TrustSignal] | None = None):
        self.signals = default_signals() if signals is None else list(signals)

    def evaluate(self, profile: UserProfile | dict | None, now: datetime | None = None) -> TrustResult:
        """
        Evaluate the signals in precedence order.

        Args:
            profile: Profile view (model or raw dict)
            now: Reference time; pass it for deterministic results

        Returns:
            The first matching TrustResult, or an Unverified result
        """
        if profile is None:
            return TrustResult(tier=TrustTier.UNVERIFIED, reason="No profile")
        if isinstance(profile, dict):
            profile = UserProfile.model_validate(profile)
        now = now or utc_now()

        for signal in self.signals:
            result = signal.match(profile, now)
            if result is not None:
                return result
        return TrustResult(tier=TrustTier.UNVERIFIED, reason="No verification signal")
