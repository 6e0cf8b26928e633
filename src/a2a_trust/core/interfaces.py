"""a2a-trust abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
the capabilities consumed by the trust engine -- the agent registry, DID
resolution and nonce tracking -- plus lightweight in-memory
implementations suitable for testing and local development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

In-memory implementations are **not** thread-safe.  Production deployments
MUST substitute real registry and storage backends.
"""
from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from a2a_trust.core.errors import AgentNotFound, DIDNotFound

if TYPE_CHECKING:
    from a2a_trust.core.types import AgentRecord
    from a2a_trust.identity.did import DIDDocument

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class AgentRegistry(Protocol):
    """Registry capability consumed by the trust gate."""

    async def resolve_did(self, did: str) -> DIDDocument:
        """Resolve *did* to its DID document.

        Raises on any failure (not found, network, malformed document).
        """
        ...

    async def check_liveness(self, did: str) -> bool:
        """Probe the agent now and return whether it responded."""
        ...

    async def get_agent(self, did: str) -> AgentRecord:
        """Return the registry's record for *did*.

        Raises :class:`AgentNotFound` if the agent is unknown.
        """
        ...


@runtime_checkable
class DIDResolver(Protocol):
    """DID-resolution capability consumed by the sender verifier."""

    async def resolve(self, did: str) -> DIDDocument:
        """Return the DID document for *did*; raise on any failure."""
        ...


@runtime_checkable
class NonceStore(Protocol):
    """Backend for delegation nonce / replay tracking."""

    async def check_and_store(self, nonce: str, expires_at: datetime) -> bool:
        """Return ``True`` if *nonce* is novel and was stored successfully.

        Return ``False`` if the nonce has already been seen (replay).
        """
        ...

    async def cleanup_expired(self) -> int:
        """Remove all expired nonces and return the number removed."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryAgentRegistry:
    """In-memory agent registry for testing and development.

    DID documents are served from explicitly registered documents first;
    otherwise ``did:key`` identifiers are expanded offline.  Call counts
    per method are recorded in :attr:`calls` so tests can assert which
    stages touched the registry.
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentRecord] = {}
        self._documents: dict[str, DIDDocument] = {}
        self._liveness: dict[str, bool] = {}
        self._failures: dict[tuple[str, str], Exception] = {}
        self.calls: Counter[str] = Counter()

    # -- mutation helpers (not part of the Protocol) --------------------

    def put_agent(self, agent: AgentRecord, document: DIDDocument | None = None) -> None:
        """Register or replace an agent record (test helper)."""
        self._agents[agent.did] = agent
        if document is not None:
            self._documents[agent.did] = document

    def remove_agent(self, did: str) -> None:
        """Forget an agent (test helper)."""
        self._agents.pop(did, None)
        self._documents.pop(did, None)
        self._liveness.pop(did, None)

    def set_liveness(self, did: str, live: bool) -> None:
        """Set the result returned by :meth:`check_liveness` (test helper)."""
        self._liveness[did] = live

    def fail(self, method: str, did: str, error: Exception) -> None:
        """Make *method* raise *error* for *did* (test helper)."""
        self._failures[(method, did)] = error

    def _maybe_fail(self, method: str, did: str) -> None:
        self.calls[method] += 1
        error = self._failures.get((method, did))
        if error is not None:
            raise error

    # -- Protocol implementation ---------------------------------------

    async def resolve_did(self, did: str) -> DIDDocument:
        """Return the registered document, or the derived ``did:key`` document."""
        self._maybe_fail("resolve_did", did)
        document = self._documents.get(did)
        if document is not None:
            return document
        if did not in self._agents:
            raise DIDNotFound(f"DID not registered: {did}", details={"did": did})
        from a2a_trust.identity.did import did_key_document

        return did_key_document(did)

    async def check_liveness(self, did: str) -> bool:
        """Return the configured liveness, defaulting to the record's cached flag."""
        self._maybe_fail("check_liveness", did)
        if did in self._liveness:
            return self._liveness[did]
        agent = self._agents.get(did)
        return agent.is_live if agent is not None else False

    async def get_agent(self, did: str) -> AgentRecord:
        """Return the agent record for *did*."""
        self._maybe_fail("get_agent", did)
        agent = self._agents.get(did)
        if agent is None:
            raise AgentNotFound(f"Agent not found: {did}", details={"did": did})
        return agent


class InMemoryNonceStore:
    """In-memory nonce store for replay-prevention testing.

    Expired entries are pruned every *prune_every* inserts so a long-lived
    store stays bounded by the number of nonces still inside their window.
    """

    def __init__(self, *, prune_every: int = 256) -> None:
        if prune_every < 1:
            raise ValueError("prune_every must be at least 1")
        self._nonces: dict[str, datetime] = {}  # nonce -> expires_at
        self._prune_every = prune_every
        self._inserts = 0

    async def check_and_store(self, nonce: str, expires_at: datetime) -> bool:
        """Return ``True`` if *nonce* is novel; ``False`` on replay.

        An entry whose expiry has passed no longer counts as seen.
        """
        now = datetime.now(UTC)
        seen = self._nonces.get(nonce)
        if seen is not None and seen > now:
            return False
        self._inserts += 1
        if self._inserts >= self._prune_every:
            self._inserts = 0
            self._prune(now)
        self._nonces[nonce] = expires_at
        return True

    async def cleanup_expired(self) -> int:
        """Remove expired nonces and return the count removed."""
        return self._prune(datetime.now(UTC))

    def _prune(self, now: datetime) -> int:
        expired = [n for n, exp in self._nonces.items() if exp <= now]
        for n in expired:
            del self._nonces[n]
        return len(expired)

    def __len__(self) -> int:
        return len(self._nonces)
