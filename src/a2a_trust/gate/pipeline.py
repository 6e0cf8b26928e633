"""TrustGate -- connection-time precondition pipeline.

The gate runs once per connection attempt, before any message is sent to
an agent.  Stages are strictly sequential and short-circuit on the first
failure:

1. **Identity** (``verify_identity``) -- the registry must resolve the
   agent's DID.  Failure raises :class:`DIDResolutionFailed`.
2. **Liveness** -- with ``liveness_check_before_send`` the registry is
   asked to check the agent; otherwise, with ``require_live``, the cached
   ``is_live`` flag is checked without any network call.  Failure raises
   :class:`AgentNotLive`.
3. **Reputation** (``min_trust_score > 0``) -- an unknown score or one
   below the threshold raises :class:`TrustScoreBelowThreshold`.

On success a new :class:`~a2a_trust.core.types.TrustSnapshot` is
returned.  There are no internal retries.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from a2a_trust.core.config import TrustGatePolicy
from a2a_trust.core.errors import AgentNotLive, DIDResolutionFailed, TrustScoreBelowThreshold
from a2a_trust.core.types import AgentRecord, TrustSnapshot

if TYPE_CHECKING:
    from a2a_trust.core.interfaces import AgentRegistry

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class TrustGate:
    """Gates outbound connections on identity, liveness and reputation.

    Parameters
    ----------
    registry:
        Registry capability used to resolve DIDs and check liveness.
    policy:
        The gate policy; defaults to :class:`TrustGatePolicy()`.
    """

    def __init__(self, registry: AgentRegistry, policy: TrustGatePolicy | None = None) -> None:
        self._registry = registry
        self._policy = policy or TrustGatePolicy()

    @property
    def policy(self) -> TrustGatePolicy:
        return self._policy

    async def verify_preconditions(self, agent: AgentRecord) -> TrustSnapshot:
        """Run every enabled stage against *agent*.

        Returns
        -------
        TrustSnapshot
            A fresh snapshot of the agent's trust state.

        Raises
        ------
        DIDResolutionFailed
            The identity stage could not resolve the DID.
        AgentNotLive
            The liveness stage rejected the agent.
        TrustScoreBelowThreshold
            The reputation stage rejected the agent.
        """
        policy = self._policy
        did = agent.did

        if policy.verify_identity:
            await self._check_identity(did)
        else:
            logger.debug("Identity stage skipped for %s", did)

        await self._check_liveness(agent)
        self._check_reputation(agent)

        snapshot = TrustSnapshot.from_agent(agent, did_verified=policy.verify_identity)
        logger.info(
            "Trust gate passed for %s (score=%s, live=%s)",
            did, agent.trust_score, agent.is_live,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _check_identity(self, did: str) -> None:
        logger.debug("Resolving DID %s", did)
        try:
            await self._call(self._registry.resolve_did(did))
        except Exception as exc:
            logger.warning("DID resolution failed for %s: %s", did, exc)
            raise DIDResolutionFailed(
                f"Failed to resolve agent DID {did}",
                details={"did": did},
            ) from exc

    async def _check_liveness(self, agent: AgentRecord) -> None:
        policy = self._policy
        did = agent.did
        if policy.liveness_check_before_send:
            logger.debug("Probing liveness of %s", did)
            try:
                live = await self._call(self._registry.check_liveness(did))
            except Exception as exc:
                logger.warning("Liveness check failed for %s: %s", did, exc)
                raise AgentNotLive(
                    f"Liveness check failed for agent {did}",
                    details={"did": did, "checked": True},
                ) from exc
            if not live:
                logger.warning("Agent %s did not respond to liveness check", did)
                raise AgentNotLive(
                    f"Agent {did} is not live",
                    details={"did": did, "checked": True},
                )
        elif policy.require_live and not agent.is_live:
            logger.warning("Agent %s is cached as not live", did)
            raise AgentNotLive(
                f"Agent {did} is not live",
                details={"did": did, "checked": False},
            )

    def _check_reputation(self, agent: AgentRecord) -> None:
        threshold = self._policy.min_trust_score
        if threshold <= 0:
            return
        score = agent.trust_score
        if score is None or score < threshold:
            logger.warning(
                "Agent %s trust score %s is below threshold %s",
                agent.did, score, threshold,
            )
            raise TrustScoreBelowThreshold(score, threshold, details={"did": agent.did})

    async def _call(self, call: Awaitable[_T]) -> _T:
        timeout = self._policy.registry_timeout
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)


async def verify_preconditions(
    agent: AgentRecord,
    policy: TrustGatePolicy,
    registry: AgentRegistry,
) -> TrustSnapshot:
    """Functional form of :meth:`TrustGate.verify_preconditions`."""
    return await TrustGate(registry, policy).verify_preconditions(agent)
