"""Tests for the trust-tier evaluator."""

import pytest

from basker.models.profile import UserProfile
from basker.services.trust import (
    AllowListSignal,
    CustomDomainSignal,
    ModerationLabelSignal,
    NetworkVerificationSignal,
    SelfDeclaredVerifierSignal,
    TrustEvaluator,
    TrustTier,
)

from .conftest import NOW

ALLOWED = "did:plc:official"


def profile(**overrides) -> UserProfile:
    data = {"did": "did:plc:someone", "handle": "someone.bsky.social"}
    data.update(overrides)
    return UserProfile.model_validate(data)


def network_verified(**overrides) -> dict:
    return {
        "verification": {
            "verifiedStatus": "valid",
            "verifications": [
                {"issuer": "did:plc:nyt", "uri": "at://x/1", "isValid": True, "createdAt": "2025-03-02T10:00:00Z"},
                {"issuer": "did:plc:bsky", "uri": "at://x/2", "isValid": True, "createdAt": "2024-11-20T08:00:00Z"},
            ],
        },
        **overrides,
    }


@pytest.fixture
def evaluator() -> TrustEvaluator:
    return TrustEvaluator(
        [
            AllowListSignal([ALLOWED], source="Basker"),
            SelfDeclaredVerifierSignal(),
            NetworkVerificationSignal(),
            ModerationLabelSignal(),
            CustomDomainSignal(".bsky.social"),
        ]
    )


class TestPrecedence:
    def test_allow_list_beats_network_verification(self, evaluator):
        result = evaluator.evaluate(profile(did=ALLOWED, **network_verified()), now=NOW)
        assert result.tier is TrustTier.PLATFORM_VERIFIED
        assert result.source == "Basker"

    def test_labeler_beats_custom_domain(self, evaluator):
        result = evaluator.evaluate(profile(handle="mod.example.org", associated={"labeler": True}), now=NOW)
        assert result.tier is TrustTier.TRUSTED_VERIFIER
        assert result.tooltip == "Verified Organization"

    def test_network_record_beats_label(self, evaluator):
        p = profile(labels=[{"src": "did:plc:ar7c4by46qjdydhdevvrndac", "val": "verified"}], **network_verified())
        assert evaluator.evaluate(p, now=NOW).source == "did:plc:bsky"

    def test_unverified_when_nothing_matches(self, evaluator):
        result = evaluator.evaluate(profile(), now=NOW)
        assert result.tier is TrustTier.UNVERIFIED
        assert not result.is_verified
        assert result.tooltip == ""

    def test_none_profile(self, evaluator):
        assert evaluator.evaluate(None).tier is TrustTier.UNVERIFIED

    def test_deterministic(self, evaluator):
        p = profile(handle="alice.dev")
        assert evaluator.evaluate(p, now=NOW) == evaluator.evaluate(p, now=NOW)


class TestSignals:
    def test_allow_list_matches_handle(self):
        signal = AllowListSignal(["Alice.Example.COM"])
        assert signal.match(profile(handle="alice.example.com"), NOW).tier is TrustTier.PLATFORM_VERIFIED

    def test_network_verification_uses_earliest_entry(self):
        result = NetworkVerificationSignal().match(profile(**network_verified()), NOW)
        assert result.tier is TrustTier.NETWORK_VERIFIED
        assert result.as_of == "2024-11-20"
        assert result.source == "did:plc:bsky"

    def test_network_verification_needs_valid_status(self):
        data = network_verified()
        data["verification"]["verifiedStatus"] = "none"
        assert NetworkVerificationSignal().match(profile(**data), NOW) is None

    def test_network_verification_needs_dated_entry(self):
        data = {"verification": {"verifiedStatus": "valid", "verifications": [{"issuer": "did:plc:x"}]}}
        assert NetworkVerificationSignal().match(profile(**data), NOW) is None

    def test_label_issuer_mapping(self):
        signal = ModerationLabelSignal()
        known = profile(labels=[{"src": "did:plc:ar7c4by46qjdydhdevvrndac", "val": "verified", "cts": "2024-05-01T00:00:00Z"}])
        unknown = profile(labels=[{"src": "did:plc:someone-else", "val": "!no-unauthenticated"}])
        assert signal.match(known, NOW).source == "Bluesky Moderation"
        assert signal.match(known, NOW).as_of == "2024-05-01"
        assert signal.match(unknown, NOW).source == "AT Protocol labeler"

    def test_unrelated_label_ignored(self):
        assert ModerationLabelSignal().match(profile(labels=[{"src": "x", "val": "porn"}]), NOW) is None

    def test_custom_domain(self):
        result = CustomDomainSignal(".bsky.social").match(profile(handle="alice.dev"), NOW)
        assert result.tier is TrustTier.DOMAIN_VERIFIED
        assert result.as_of == "2025"
        assert result.source == "DNS ownership"
        assert result.tooltip == "Verified Account"

    def test_default_suffix_is_not_custom(self):
        assert CustomDomainSignal(".bsky.social").match(profile(handle="Alice.BSKY.social"), NOW) is None
        assert CustomDomainSignal(".bsky.social").match(profile(handle=""), NOW) is None

    def test_dict_profile_accepted(self, evaluator):
        assert evaluator.evaluate({"did": "d", "handle": "x.org"}, now=NOW).tier is TrustTier.DOMAIN_VERIFIED
