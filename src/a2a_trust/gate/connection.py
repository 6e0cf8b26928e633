"""Trusted connection handle.

A :class:`TrustedConnection` is what a caller holds after an agent has
passed the trust gate.  It carries the current
:class:`~a2a_trust.core.types.TrustSnapshot` alongside every message
exchanged with that agent, signs outbound messages when a signing
identity is configured and tracks the conversation (``context_id`` /
``task_id``) reported by the agent's replies.

Transport is not handled here: :meth:`TrustedConnection.prepare_message`
returns a :class:`~a2a_trust.wire.messages.Message` for the caller's
client to deliver.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from a2a_trust.core.config import TrustConfig, TrustGatePolicy
from a2a_trust.core.types import AgentRecord, TrustSnapshot
from a2a_trust.gate.pipeline import TrustGate
from a2a_trust.sender.envelope import sign_message
from a2a_trust.wire.messages import DataPart, FilePart, Message, TextPart, build_message

if TYPE_CHECKING:
    from a2a_trust.core.interfaces import AgentRegistry
    from a2a_trust.core.types import SigningIdentity, VerifiedSender
    from a2a_trust.sender.envelope import SenderVerifier

logger = logging.getLogger(__name__)


class TrustedConnection:
    """An agent that passed the trust gate, plus its current trust snapshot.

    Use :meth:`open` rather than constructing directly.  :meth:`direct`
    covers peers reached by URL alone; their snapshot stays unverified.
    """

    def __init__(
        self,
        agent: AgentRecord,
        snapshot: TrustSnapshot,
        gate: TrustGate | None,
        registry: AgentRegistry | None,
        signing_identity: SigningIdentity | None = None,
    ) -> None:
        self._agent = agent
        self._snapshot = snapshot
        self._gate = gate
        self._registry = registry
        self._signing_identity = signing_identity
        self._context_id: str | None = None
        self._task_id: str | None = None

    @classmethod
    async def open(
        cls,
        did: str,
        registry: AgentRegistry,
        policy: TrustGatePolicy | None = None,
        signing_identity: SigningIdentity | None = None,
    ) -> TrustedConnection:
        """Look up *did* in the registry and run the trust gate.

        Raises
        ------
        AgentNotFound
            The registry has no record for *did*.
        GateError
            Any gate stage rejected the agent.
        """
        agent = await registry.get_agent(did)
        gate = TrustGate(registry, policy)
        snapshot = await gate.verify_preconditions(agent)
        return cls(agent, snapshot, gate, registry, signing_identity)

    @classmethod
    async def from_config(cls, did: str, registry: AgentRegistry, config: TrustConfig) -> TrustedConnection:
        """Like :meth:`open`, taking the policy and signer from *config*.

        Outbound messages are signed only when ``sign_outbound_messages``
        is set.
        """
        identity = config.signing_identity if config.sign_outbound_messages else None
        return await cls.open(did, registry, config.policy, identity)

    @classmethod
    def direct(
        cls,
        url: str,
        *,
        did: str | None = None,
        signing_identity: SigningIdentity | None = None,
    ) -> TrustedConnection:
        """Connect to an agent by URL without consulting a registry.

        No gate stage runs, so the snapshot is
        :meth:`~a2a_trust.core.types.TrustSnapshot.unverified`.  Replies can
        still be verified when the expected *did* is known.
        """
        logger.info("Connecting to %s without registry verification", url)
        agent = AgentRecord(did=did or "", url=url)
        return cls(agent, TrustSnapshot.unverified(), None, None, signing_identity)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def did(self) -> str:
        return self._agent.did

    @property
    def url(self) -> str:
        return self._agent.url

    @property
    def agent(self) -> AgentRecord:
        return self._agent

    @property
    def trust(self) -> TrustSnapshot:
        return self._snapshot

    @property
    def context_id(self) -> str | None:
        return self._context_id

    @property
    def task_id(self) -> str | None:
        return self._task_id

    async def refresh_trust(self) -> TrustSnapshot:
        """Re-fetch the agent and re-run every enabled gate stage.

        On success the held snapshot is replaced.  On failure the error
        propagates and the previous snapshot and record are kept.  A
        connection made with :meth:`direct` has nothing to re-check and
        gets a fresh unverified snapshot.
        """
        if self._registry is None or self._gate is None:
            self._snapshot = TrustSnapshot.unverified()
            return self._snapshot
        agent = await self._registry.get_agent(self.did)
        snapshot = await self._gate.verify_preconditions(agent)
        self._agent = agent
        self._snapshot = snapshot
        return snapshot

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def prepare_message(
        self,
        text: str | None = None,
        data: dict[str, Any] | None = None,
        parts: list[TextPart | DataPart | FilePart] | None = None,
        *,
        message_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        context_id: str | None = None,
        task_id: str | None = None,
    ) -> Message:
        """Build an outbound message for this agent.

        The conversation's ``context_id`` and ``task_id`` are carried
        forward unless overridden.  With a signing identity, the message
        carries a sender envelope.
        """
        message = build_message(
            text,
            data,
            parts,
            message_id=message_id,
            metadata=metadata,
            context_id=context_id or self._context_id,
            task_id=task_id or self._task_id,
        )
        if self._signing_identity is not None:
            message = sign_message(message, self._signing_identity)
        return message

    def record_reply(self, reply: Message) -> None:
        """Track the conversation identifiers reported by *reply*."""
        if reply.context_id is not None:
            self._context_id = reply.context_id
        if reply.task_id is not None:
            self._task_id = reply.task_id

    async def verify_reply(self, reply: Message, verifier: SenderVerifier) -> VerifiedSender | None:
        """Verify that *reply* was signed by this agent.

        The held snapshot is replaced with one whose ``response_verified``
        reflects the outcome: ``True`` only for a valid signature by this
        connection's DID, so never for a :meth:`direct` connection
        opened without one.  Returns the sender verification, or ``None``
        for an unsigned reply.
        """
        self.record_reply(reply)
        result = await verifier.verify_message(reply)
        verified = (
            result is not None
            and result.signature_valid
            and bool(self.did)
            and result.did == self.did
        )
        if result is not None and self.did and result.did != self.did:
            logger.warning("Reply from %s is signed by %s", self.did, result.did)
        self._snapshot = self._snapshot.model_copy(update={"response_verified": verified})
        return result

    def __repr__(self) -> str:
        return f"TrustedConnection(did={self.did!r}, trust_score={self._snapshot.trust_score!r})"
