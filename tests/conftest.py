"""Shared fixtures for a2a-trust unit tests.

Provides agent key pairs, a registry pre-populated with a live agent,
and a DID resolver that counts calls so tests can assert whether a code
path touched resolution at all.
"""
from __future__ import annotations

import time

import pytest
from eth_account import Account

from a2a_trust.core.interfaces import InMemoryAgentRegistry
from a2a_trust.core.types import AgentRecord, SigningIdentity, UserDelegation
from a2a_trust.identity.did import DefaultDIDResolver, DIDDocument
from a2a_trust.identity.keys import AgentKeyPair


class CountingResolver:
    """DID resolver double: delegates to :class:`DefaultDIDResolver` and counts calls."""

    def __init__(self) -> None:
        self._inner = DefaultDIDResolver()
        self.calls: list[str] = []
        self.error: Exception | None = None

    async def resolve(self, did: str) -> DIDDocument:
        self.calls.append(did)
        if self.error is not None:
            raise self.error
        return await self._inner.resolve(did)


def make_delegation(
    user_address: str,
    *,
    delegate_did: str = "did:key:z6MkariaAgent",
    scope: str = "hotel-booking",
    ttl: int = 1800,
    nonce: str = "nonce-1",
) -> UserDelegation:
    return UserDelegation(
        user_address=user_address,
        delegate_did=delegate_did,
        scope=scope,
        exp=int(time.time()) + ttl,
        nonce=nonce,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def alice_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture
def bob_keys() -> AgentKeyPair:
    return AgentKeyPair.generate()


@pytest.fixture
def alice(alice_keys: AgentKeyPair) -> SigningIdentity:
    return alice_keys.signing_identity()


@pytest.fixture
def bob(bob_keys: AgentKeyPair) -> SigningIdentity:
    return bob_keys.signing_identity()


@pytest.fixture
def resolver() -> CountingResolver:
    return CountingResolver()


@pytest.fixture
def user_account():
    return Account.create()


@pytest.fixture
def agent(alice_keys: AgentKeyPair) -> AgentRecord:
    return AgentRecord(
        did=alice_keys.did,
        url="https://alice.example.com",
        name="Alice",
        trust_score=85,
        is_live=True,
        is_battle_tested=True,
    )


@pytest.fixture
def registry(agent: AgentRecord) -> InMemoryAgentRegistry:
    reg = InMemoryAgentRegistry()
    reg.put_agent(agent)
    return reg
