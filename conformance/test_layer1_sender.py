"""Layer 1 -- Sender Identity conformance tests.

Verifies that sender-identity envelopes bind a DID to the exact message
content, that stale envelopes are rejected without touching resolution,
and that a claimed DID cannot be borrowed by another key.
"""
from __future__ import annotations

import time

from a2a_trust.core.types import SigningIdentity
from a2a_trust.sender.envelope import (
    SenderVerifier,
    compute_parts_digest,
    create_sender_envelope,
    extract_sender_envelope,
    sign_message,
)
from a2a_trust.wire.messages import DataPart, TextPart, build_message

from .conftest import CountingResolver

# ===================================================================
# Round trip
# ===================================================================

class TestRoundTrip:
    """A freshly signed envelope MUST verify against its own DID."""

    async def test_MUST_verify_fresh_envelope(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        message = build_message("Book a room in Lisbon", data={"nights": 2})
        digest = compute_parts_digest(message.parts)
        envelope = create_sender_envelope(message.message_id, digest, sender)

        result = await SenderVerifier(resolver).verify(envelope, digest)
        assert result.signature_valid is True
        assert result.did_resolved is True
        assert result.did == sender.did
        assert result.signed_at == envelope.timestamp

    async def test_MUST_survive_metadata_transport(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        """Envelope attached to metadata MUST verify after a wire round trip."""
        signed = sign_message(build_message("hello"), sender)
        envelope = extract_sender_envelope(signed.to_wire()["metadata"])
        assert envelope is not None
        result = await SenderVerifier(resolver).verify(envelope, compute_parts_digest(signed.parts))
        assert result.signature_valid is True


# ===================================================================
# Tampering
# ===================================================================

class TestTamper:
    """Any change to the signed parts MUST invalidate the signature."""

    async def test_MUST_reject_altered_text(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        signed = sign_message(build_message("transfer 10"), sender)
        altered = signed.model_copy(update={"parts": [TextPart(text="transfer 10000")]})
        result = await SenderVerifier(resolver).verify_message(altered)
        assert result is not None
        assert result.signature_valid is False

    async def test_MUST_reject_appended_part(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        signed = sign_message(build_message("hello"), sender)
        altered = signed.model_copy(update={"parts": [*signed.parts, DataPart(data={"x": 1})]})
        result = await SenderVerifier(resolver).verify_message(altered)
        assert result is not None
        assert result.signature_valid is False

    async def test_MUST_reject_envelope_moved_to_other_message(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        signed = sign_message(build_message("hello"), sender)
        replayed = build_message("hello", metadata=dict(signed.metadata))
        result = await SenderVerifier(resolver).verify_message(replayed)
        assert result is not None
        assert result.signature_valid is False


# ===================================================================
# Staleness
# ===================================================================

class TestStaleness:
    """Envelopes older than max_message_age MUST fail before any resolution."""

    async def test_MUST_reject_stale_envelope_without_resolving(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        digest = compute_parts_digest([TextPart(text="hi")])
        old = int(time.time() * 1000) - 301_000
        envelope = create_sender_envelope("m-1", digest, sender, timestamp=old)

        result = await SenderVerifier(resolver, max_message_age=300).verify(envelope, digest)
        assert result.signature_valid is False
        assert result.did_resolved is False
        assert resolver.calls == []

    async def test_MUST_reject_future_envelope_beyond_skew(
        self, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        digest = compute_parts_digest([TextPart(text="hi")])
        future = int(time.time() * 1000) + 120_000
        envelope = create_sender_envelope("m-1", digest, sender, timestamp=future)

        result = await SenderVerifier(resolver, clock_skew=30).verify(envelope, digest)
        assert result.signature_valid is False
        assert resolver.calls == []


# ===================================================================
# Impersonation
# ===================================================================

class TestImpersonation:
    """A signature by one key MUST NOT verify under another agent's DID."""

    async def test_MUST_reject_claimed_did_of_other_agent(
        self,
        sender: SigningIdentity,
        other: SigningIdentity,
        resolver: CountingResolver,
    ) -> None:
        digest = compute_parts_digest([TextPart(text="hi")])
        forged = SigningIdentity(did=other.did, private_key=sender.private_key)
        envelope = create_sender_envelope("m-1", digest, forged)

        result = await SenderVerifier(resolver).verify(envelope, digest)
        assert result.did == other.did
        assert result.did_resolved is True
        assert result.signature_valid is False
        assert resolver.calls == [other.did]
