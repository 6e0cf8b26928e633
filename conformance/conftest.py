"""Shared fixtures for a2a-trust conformance tests.

Provides agent identities, a user wallet, a counting DID resolver and a
registry whose agents can be registered with any trust state.
"""
from __future__ import annotations

import time

import pytest
from eth_account import Account

from a2a_trust.core.interfaces import InMemoryAgentRegistry, InMemoryNonceStore
from a2a_trust.core.types import AgentRecord, SigningIdentity, UserDelegation
from a2a_trust.identity.did import DefaultDIDResolver, DIDDocument
from a2a_trust.identity.keys import AgentKeyPair

# ---------------------------------------------------------------------------
# Common values used across tests
# ---------------------------------------------------------------------------
SCOPE = "hotel-booking"
DELEGATION_TTL = 1800


class CountingResolver:
    """Resolves did:key offline and records every DID it was asked for."""

    def __init__(self) -> None:
        self._inner = DefaultDIDResolver()
        self.calls: list[str] = []

    async def resolve(self, did: str) -> DIDDocument:
        self.calls.append(did)
        return await self._inner.resolve(did)


# ---------------------------------------------------------------------------
# Identity fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def sender_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture()
def other_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture()
def sender(sender_keys: AgentKeyPair) -> SigningIdentity:
    return sender_keys.signing_identity()


@pytest.fixture()
def other(other_keys: AgentKeyPair) -> SigningIdentity:
    return other_keys.signing_identity()


@pytest.fixture()
def wallet():
    return Account.create()


@pytest.fixture()
def resolver() -> CountingResolver:
    return CountingResolver()


@pytest.fixture()
def nonce_store() -> InMemoryNonceStore:
    return InMemoryNonceStore()


@pytest.fixture()
def agent_registry() -> InMemoryAgentRegistry:
    return InMemoryAgentRegistry()


# ---------------------------------------------------------------------------
# Agent record helper
# ---------------------------------------------------------------------------
def make_agent(
    did: str,
    *,
    trust_score: float | None = 85,
    is_live: bool = True,
    is_battle_tested: bool = False,
) -> AgentRecord:
    """Build an AgentRecord with sensible defaults for testing."""
    return AgentRecord(
        did=did,
        url="https://agent.example.com",
        name="Test Agent",
        trust_score=trust_score,
        is_live=is_live,
        is_battle_tested=is_battle_tested,
    )


# ---------------------------------------------------------------------------
# Delegation helper
# ---------------------------------------------------------------------------
def make_delegation(
    user_address: str,
    delegate_did: str,
    *,
    scope: str = SCOPE,
    ttl: int = DELEGATION_TTL,
    nonce: str = "conformance-nonce",
) -> UserDelegation:
    """Build a UserDelegation expiring *ttl* seconds from now."""
    return UserDelegation(
        user_address=user_address,
        delegate_did=delegate_did,
        scope=scope,
        exp=int(time.time()) + ttl,
        nonce=nonce,
    )
