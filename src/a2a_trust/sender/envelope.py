"""Layer 1 -- sender identity envelopes.

A :class:`~a2a_trust.core.types.SenderEnvelope` proves which agent
produced a message.  The sender signs the pair ``(messageId,
partsDigest)`` -- never the raw content -- so a signature copied onto a
different message, or onto altered content, fails verification.

Signing input (RFC 8785 canonical JSON, Ed25519)::

    {"payload": {"messageId": ..., "partsDigest": ...},
     "signer": "<senderDid>", "timestamp": <epoch ms>}

Verification never raises.  Every failure (stale timestamp, unresolvable
DID, bad signature) is reported on the returned
:class:`~a2a_trust.core.types.VerifiedSender`; cancellation of the
surrounding task still propagates.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from a2a_trust.core.canonical import canonical_bytes, sha256_hex
from a2a_trust.core.errors import MalformedEnvelope
from a2a_trust.core.types import SenderEnvelope, SigningIdentity, VerifiedSender
from a2a_trust.identity.keys import SignedAgentMessage, sign_agent_message, verify_agent_message
from a2a_trust.wire.messages import SENDER_IDENTITY_EXTENSION, Message

if TYPE_CHECKING:
    from a2a_trust.core.interfaces import DIDResolver
    from a2a_trust.identity.did import DIDDocument

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_AGE: float = 300.0
"""Seconds after signing that an envelope is still accepted."""

DEFAULT_CLOCK_SKEW: float = 30.0
"""Seconds an envelope timestamp may lie in the future."""


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

def compute_parts_digest(parts: Sequence[BaseModel | Mapping[str, Any]]) -> str:
    """SHA-256 hex digest of the canonical encoding of *parts*.

    Parts may be :mod:`~a2a_trust.wire.messages` models or their wire
    dictionaries; both produce the same digest.

    Parameters
    ----------
    parts:
        The ordered content parts of a message.

    Returns
    -------
    str
        64 lowercase hex characters.
    """
    wire: list[Any] = []
    for part in parts:
        if isinstance(part, BaseModel):
            wire.append(part.model_dump(mode="json", by_alias=True, exclude_none=True))
        else:
            wire.append(dict(part))
    return sha256_hex(canonical_bytes(wire))


def _signed_payload(message_id: str, digest: str) -> dict[str, Any]:
    return {"messageId": message_id, "partsDigest": digest}


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def create_sender_envelope(
    message_id: str,
    digest: str,
    identity: SigningIdentity,
    *,
    timestamp: int | None = None,
) -> SenderEnvelope:
    """Sign ``(message_id, digest)`` as ``identity.did``.

    Parameters
    ----------
    message_id:
        Identifier of the message being sent.
    digest:
        :func:`compute_parts_digest` of the message content.
    identity:
        Sender DID and Ed25519 private key.
    timestamp:
        Epoch milliseconds; defaults to now.

    Raises
    ------
    ValueError
        If the private key is not a 32-byte hex seed.
    """
    signed = sign_agent_message(_signed_payload(message_id, digest), identity, timestamp=timestamp)
    return SenderEnvelope(
        sender_did=identity.did,
        signature=signed.signature,
        timestamp=signed.timestamp,
        message_id=message_id,
    )


def sign_message(
    message: Message,
    identity: SigningIdentity,
    *,
    timestamp: int | None = None,
) -> Message:
    """Return a copy of *message* carrying a sender envelope in its metadata."""
    digest = compute_parts_digest(message.parts)
    envelope = create_sender_envelope(message.message_id, digest, identity, timestamp=timestamp)
    return message.with_metadata(SENDER_IDENTITY_EXTENSION, envelope.to_wire())


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def parse_sender_envelope(raw: Any) -> SenderEnvelope:
    """Decode *raw* into a :class:`SenderEnvelope`.

    Every field must be present with its exact JSON type; nothing is
    coerced.

    Raises
    ------
    MalformedEnvelope
        If *raw* does not match the envelope schema.
    """
    if not isinstance(raw, Mapping):
        raise MalformedEnvelope(
            "Sender envelope must be a JSON object",
            details={"type": type(raw).__name__},
        )
    try:
        return SenderEnvelope.model_validate(dict(raw))
    except ValidationError as exc:
        raise MalformedEnvelope(
            "Sender envelope does not match the expected schema",
            details={"errors": exc.error_count()},
        ) from exc


def extract_sender_envelope(metadata: Mapping[str, Any] | None) -> SenderEnvelope | None:
    """Return the sender envelope in *metadata*, or ``None``.

    ``None`` is returned both when the extension key is absent and when
    its value is malformed.
    """
    if not metadata or SENDER_IDENTITY_EXTENSION not in metadata:
        return None
    try:
        return parse_sender_envelope(metadata[SENDER_IDENTITY_EXTENSION])
    except MalformedEnvelope as exc:
        logger.debug("Ignoring malformed sender envelope: %s", exc.message)
        return None


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class SenderVerifier:
    """Verifies sender envelopes against freshly recomputed digests.

    Parameters
    ----------
    resolver:
        DID-resolution capability used to fetch the sender's keys.
    max_message_age:
        Default maximum age in seconds of an accepted envelope.
    clock_skew:
        Seconds an envelope timestamp may lie in the future.
    resolve_timeout:
        Optional timeout in seconds for each DID resolution.  A timeout
        is reported as ``did_resolved=False``.
    """

    def __init__(
        self,
        resolver: DIDResolver,
        *,
        max_message_age: float = DEFAULT_MAX_MESSAGE_AGE,
        clock_skew: float = DEFAULT_CLOCK_SKEW,
        resolve_timeout: float | None = None,
    ) -> None:
        self._resolver = resolver
        self._max_message_age = max_message_age
        self._clock_skew = clock_skew
        self._resolve_timeout = resolve_timeout

    async def verify(
        self,
        envelope: SenderEnvelope,
        digest: str,
        *,
        max_message_age: float | None = None,
    ) -> VerifiedSender:
        """Verify *envelope* against the recomputed content *digest*.

        Steps:

        1. Freshness -- stale or future-dated envelopes are rejected
           without resolving the DID.
        2. Resolve ``envelope.sender_did``.
        3. Verify the signature over ``(message_id, digest)`` against
           the document's Ed25519 keys.

        Returns
        -------
        VerifiedSender
            Always; failures are reported as ``False`` fields.
        """
        max_age = self._max_message_age if max_message_age is None else max_message_age
        did = envelope.sender_did

        age = (time.time() * 1000 - envelope.timestamp) / 1000
        if age > max_age or age < -self._clock_skew:
            logger.info(
                "Rejecting sender envelope from %s: age %.1fs outside [-%gs, %gs]",
                did, age, self._clock_skew, max_age,
            )
            return self._result(envelope, signature_valid=False, did_resolved=False)

        try:
            document = await self._resolve(did)
        except Exception as exc:
            logger.warning("Could not resolve sender DID %s: %s", did, exc)
            return self._result(envelope, signature_valid=False, did_resolved=False)

        try:
            signed = SignedAgentMessage(
                payload=_signed_payload(envelope.message_id, digest),
                signature=envelope.signature,
                signer=did,
                timestamp=envelope.timestamp,
            )
            valid = verify_agent_message(signed, document)
        except Exception:
            logger.warning("Sender signature check for %s failed unexpectedly", did, exc_info=True)
            valid = False

        if not valid:
            logger.info("Invalid sender signature for message %s from %s", envelope.message_id, did)
        return self._result(envelope, signature_valid=valid, did_resolved=True)

    async def verify_message(
        self,
        message: Message,
        *,
        max_message_age: float | None = None,
    ) -> VerifiedSender | None:
        """Extract and verify the sender envelope of *message*.

        Returns ``None`` for unsigned messages (or a malformed envelope).
        The digest is always recomputed from the message's own parts.
        """
        envelope = extract_sender_envelope(message.metadata)
        if envelope is None:
            return None
        if envelope.message_id != message.message_id:
            logger.info(
                "Sender envelope names message %s but arrived on %s",
                envelope.message_id, message.message_id,
            )
            return self._result(envelope, signature_valid=False, did_resolved=False)
        digest = compute_parts_digest(message.parts)
        return await self.verify(envelope, digest, max_message_age=max_message_age)

    async def _resolve(self, did: str) -> DIDDocument:
        if self._resolve_timeout is None:
            return await self._resolver.resolve(did)
        return await asyncio.wait_for(self._resolver.resolve(did), timeout=self._resolve_timeout)

    @staticmethod
    def _result(envelope: SenderEnvelope, *, signature_valid: bool, did_resolved: bool) -> VerifiedSender:
        return VerifiedSender(
            did=envelope.sender_did,
            signature_valid=signature_valid,
            did_resolved=did_resolved,
            signed_at=envelope.timestamp,
        )
