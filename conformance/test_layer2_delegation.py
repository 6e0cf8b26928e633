"""Layer 2 -- User Delegation conformance tests.

Verifies that a wallet-signed delegation is attributed to the signing
address, bounded by its expiry, bound to one delegate DID, and (when
nonce tracking is on) accepted at most once.
"""
from __future__ import annotations

from eth_account import Account

from a2a_trust.core.interfaces import InMemoryNonceStore
from a2a_trust.core.types import SigningIdentity
from a2a_trust.delegation.envelope import (
    DelegationVerifier,
    attach_user_delegation,
    sign_user_delegation,
    verify_user_delegation,
)
from a2a_trust.delegation.nonce import NonceManager
from a2a_trust.inbound.verification import InboundVerifier
from a2a_trust.sender.envelope import SenderVerifier, sign_message
from a2a_trust.wire.messages import build_message

from .conftest import SCOPE, CountingResolver, make_delegation

# ===================================================================
# Happy path
# ===================================================================

class TestDelegationHappyPath:
    """A delegation signed by its user MUST verify for its delegate."""

    def test_MUST_accept_valid_delegation(self, wallet, sender: SigningIdentity) -> None:
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), wallet.key)
        result = verify_user_delegation(envelope, sender.did)
        assert result.valid is True
        assert result.expired is False
        assert result.address.lower() == wallet.address.lower()
        assert result.delegated_to == sender.did
        assert result.scope == SCOPE

    async def test_MUST_attribute_user_on_signed_message(
        self, wallet, sender: SigningIdentity, resolver: CountingResolver
    ) -> None:
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), wallet.key)
        message = sign_message(attach_user_delegation(build_message("book it"), envelope), sender)

        context = await InboundVerifier(SenderVerifier(resolver)).build_context(message)
        assert context.sender_did == sender.did
        assert context.user_address == wallet.address


# ===================================================================
# Expiry
# ===================================================================

class TestDelegationExpiry:
    """A delegation past its exp MUST be reported expired and invalid."""

    def test_MUST_reject_expired_delegation(self, wallet, sender: SigningIdentity) -> None:
        delegation = make_delegation(wallet.address, sender.did, ttl=-1)
        result = verify_user_delegation(sign_user_delegation(delegation, wallet.key), sender.did)
        assert result.expired is True
        assert result.valid is False

    def test_MUST_accept_at_exact_expiry(self, wallet, sender: SigningIdentity) -> None:
        delegation = make_delegation(wallet.address, sender.did)
        envelope = sign_user_delegation(delegation, wallet.key)
        result = verify_user_delegation(envelope, sender.did, now=delegation.exp)
        assert result.expired is False
        assert result.valid is True


# ===================================================================
# Delegate binding
# ===================================================================

class TestDelegateBinding:
    """A delegation MUST NOT be usable by an agent it does not name."""

    def test_MUST_reject_other_delegate(
        self, wallet, sender: SigningIdentity, other: SigningIdentity
    ) -> None:
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), wallet.key)
        result = verify_user_delegation(envelope, other.did)
        assert result.valid is False
        assert result.expired is False

    def test_MUST_reject_foreign_signer(self, wallet, sender: SigningIdentity) -> None:
        attacker = Account.create()
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), attacker.key)
        result = verify_user_delegation(envelope, sender.did)
        assert result.valid is False

    def test_MUST_reject_widened_scope(self, wallet, sender: SigningIdentity) -> None:
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), wallet.key)
        widened = envelope.model_copy(
            update={"delegation": envelope.delegation.model_copy(update={"scope": "*"})}
        )
        assert verify_user_delegation(widened, sender.did).valid is False


# ===================================================================
# Replay
# ===================================================================

class TestDelegationReplay:
    """With nonce tracking, a delegation MUST be accepted only once."""

    async def test_MUST_reject_replayed_nonce(
        self, wallet, sender: SigningIdentity, nonce_store: InMemoryNonceStore
    ) -> None:
        envelope = sign_user_delegation(make_delegation(wallet.address, sender.did), wallet.key)
        verifier = DelegationVerifier(NonceManager(nonce_store))
        assert (await verifier.verify(envelope, sender.did)).nonce_fresh is True
        replay = await verifier.verify(envelope, sender.did)
        assert replay.nonce_fresh is False
        assert replay.valid is False
