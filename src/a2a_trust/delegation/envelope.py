"""Layer 2 -- user delegation envelopes.

A :class:`~a2a_trust.core.types.DelegationEnvelope` proves that a human
user (an Ethereum account) authorised a specific agent to act within a
scope until an expiry.  The user signs the EIP-712 typed data of
:mod:`a2a_trust.delegation.typed_data`, normally from a wallet;
:func:`sign_user_delegation` exists for servers and tests.

Usage
-----
Verifying an inbound delegation::

    envelope = extract_user_delegation(message.metadata)
    if envelope is not None:
        user = verify_user_delegation(envelope, expected_delegate_did=sender.did)
        if user.valid:
            ...

Verification never raises; every failure is a ``False`` field on the
returned :class:`~a2a_trust.core.types.VerifiedUser`.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from pydantic import ValidationError

from a2a_trust.core.errors import MalformedEnvelope
from a2a_trust.core.types import DelegationEnvelope, UserDelegation, VerifiedUser
from a2a_trust.delegation.typed_data import build_typed_data
from a2a_trust.wire.messages import USER_DELEGATION_EXTENSION, Message

if TYPE_CHECKING:
    from a2a_trust.delegation.nonce import NonceManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def sign_user_delegation(delegation: UserDelegation, private_key: str | bytes) -> DelegationEnvelope:
    """Sign *delegation* with a raw secp256k1 private key.

    Production delegations are signed by the user's wallet; this is for
    server-side tooling and tests.

    Parameters
    ----------
    delegation:
        The delegation to sign.  ``user_address`` should be the address
        of *private_key*, otherwise the envelope will never verify.
    private_key:
        32-byte key as bytes or (``0x``-prefixed) hex.

    Returns
    -------
    DelegationEnvelope
        With a ``0x``-prefixed 65-byte hex signature.
    """
    signable = encode_typed_data(full_message=build_typed_data(delegation))
    signed = Account.sign_message(signable, private_key=private_key)
    return DelegationEnvelope(
        delegation=delegation,
        signature="0x" + bytes(signed.signature).hex(),
    )


def recover_delegation_signer(envelope: DelegationEnvelope) -> str:
    """Return the checksummed address that signed *envelope*.

    Raises whatever the typed-data encoder or signature recovery raises
    for malformed input.
    """
    signable = encode_typed_data(full_message=build_typed_data(envelope.delegation))
    return Account.recover_message(signable, signature=envelope.signature)


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

def verify_user_delegation(
    envelope: DelegationEnvelope,
    expected_delegate_did: str | None = None,
    *,
    now: float | None = None,
) -> VerifiedUser:
    """Verify a delegation envelope.

    1. ``expired`` -- the current time is past ``delegation.exp``.
    2. Delegate match -- skipped when *expected_delegate_did* is not given.
    3. Recover the signer; on failure the result is invalid and carries
       the claimed (unverified) ``user_address``.
    4. Address match -- case-insensitive.
    5. ``valid`` -- not expired, delegate match and address match.

    Parameters
    ----------
    envelope:
        The delegation and its signature.
    expected_delegate_did:
        DID of the agent presenting the delegation, normally the verified
        Layer 1 sender.
    now:
        Unix seconds to evaluate expiry at; defaults to the current time.
    """
    delegation = envelope.delegation
    current = time.time() if now is None else now
    expired = int(current) > delegation.exp
    delegate_match = not expected_delegate_did or delegation.delegate_did == expected_delegate_did

    try:
        recovered = recover_delegation_signer(envelope)
    except Exception as exc:
        logger.info("Could not recover delegation signer for %s: %s", delegation.user_address, exc)
        return VerifiedUser(
            address=delegation.user_address,
            delegated_to=delegation.delegate_did,
            scope=delegation.scope,
            valid=False,
            expired=expired,
        )

    address_match = recovered.lower() == delegation.user_address.lower()
    if not delegate_match:
        logger.info(
            "Delegation for %s names %s but was presented by %s",
            delegation.user_address, delegation.delegate_did, expected_delegate_did,
        )
    elif not address_match:
        logger.info("Delegation claims %s but was signed by %s", delegation.user_address, recovered)

    return VerifiedUser(
        address=recovered,
        delegated_to=delegation.delegate_did,
        scope=delegation.scope,
        valid=not expired and delegate_match and address_match,
        expired=expired,
    )


class DelegationVerifier:
    """Verifies delegation envelopes, optionally rejecting replayed nonces.

    Parameters
    ----------
    nonce_manager:
        When given, a delegation whose nonce was already consumed (and
        has not expired) yields ``valid=False, nonce_fresh=False``.
        Nonces are only consumed by delegations that are otherwise valid.
        When ``None`` no tracking happens and ``nonce_fresh`` stays ``None``.
    """

    def __init__(self, nonce_manager: NonceManager | None = None) -> None:
        self._nonce_manager = nonce_manager

    @property
    def tracks_nonces(self) -> bool:
        return self._nonce_manager is not None

    async def verify(
        self,
        envelope: DelegationEnvelope,
        expected_delegate_did: str | None = None,
    ) -> VerifiedUser:
        result = verify_user_delegation(envelope, expected_delegate_did)
        if self._nonce_manager is None or not result.valid:
            return result
        fresh = await self._nonce_manager.consume(envelope.delegation)
        return result.model_copy(update={"nonce_fresh": fresh, "valid": fresh})

    async def verify_message(
        self,
        message: Message,
        expected_delegate_did: str | None = None,
    ) -> VerifiedUser | None:
        """Extract and verify the delegation carried by *message*, if any."""
        envelope = extract_user_delegation(message.metadata)
        if envelope is None:
            return None
        return await self.verify(envelope, expected_delegate_did)


# ---------------------------------------------------------------------------
# Extraction / attachment
# ---------------------------------------------------------------------------

def parse_user_delegation(raw: Any) -> DelegationEnvelope:
    """Decode *raw* into a :class:`DelegationEnvelope`.

    ``exp`` may be a JSON integer, an integral float or a decimal string;
    every other field must have its exact JSON type.

    Raises
    ------
    MalformedEnvelope
        If *raw* does not match the envelope schema.
    """
    if not isinstance(raw, Mapping):
        raise MalformedEnvelope(
            "Delegation envelope must be a JSON object",
            details={"type": type(raw).__name__},
        )
    try:
        return DelegationEnvelope.model_validate(dict(raw))
    except ValidationError as exc:
        raise MalformedEnvelope(
            "Delegation envelope does not match the expected schema",
            details={"errors": exc.error_count()},
        ) from exc


def extract_user_delegation(metadata: Mapping[str, Any] | None) -> DelegationEnvelope | None:
    """Return the delegation envelope in *metadata*, or ``None`` if absent or malformed."""
    if not metadata or USER_DELEGATION_EXTENSION not in metadata:
        return None
    try:
        return parse_user_delegation(metadata[USER_DELEGATION_EXTENSION])
    except MalformedEnvelope as exc:
        logger.debug("Ignoring malformed delegation envelope: %s", exc.message)
        return None


def attach_user_delegation(message: Message, envelope: DelegationEnvelope) -> Message:
    """Return a copy of *message* carrying *envelope* in its metadata."""
    return message.with_metadata(USER_DELEGATION_EXTENSION, envelope.to_wire())
