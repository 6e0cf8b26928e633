"""Nonce tracking for user-delegation replay prevention.

A delegation's ``nonce`` is accepted at most once while the delegation
is unexpired.  Nonces are namespaced by the signing user's address, so
two users picking the same nonce never collide.  Tracking is opt-in: a
:class:`~a2a_trust.delegation.envelope.DelegationVerifier` only consults
a :class:`NonceManager` when one is supplied.
"""
from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from a2a_trust.core.interfaces import NonceStore
    from a2a_trust.core.types import UserDelegation

logger = logging.getLogger(__name__)


def nonce_key(delegation: UserDelegation) -> str:
    """Store key for a delegation's nonce: ``<lowercased address>:<nonce>``."""
    return f"{delegation.user_address.lower()}:{delegation.nonce}"


class NonceManager:
    """Generates delegation nonces and enforces one-time use.

    Parameters
    ----------
    nonce_store:
        Backend that remembers consumed nonces until they expire.
    """

    def __init__(self, nonce_store: NonceStore) -> None:
        self._store = nonce_store

    @staticmethod
    def generate_nonce() -> str:
        """Return a URL-safe random nonce with 256 bits of entropy."""
        return secrets.token_urlsafe(32)

    async def consume(self, delegation: UserDelegation) -> bool:
        """Record the nonce of *delegation* as used.

        Returns
        -------
        bool
            ``True`` on first use; ``False`` if the nonce was already
            consumed and its delegation has not yet expired (replay).
        """
        try:
            expires_at = datetime.fromtimestamp(delegation.exp, UTC)
        except (OverflowError, OSError, ValueError):
            expires_at = datetime.max.replace(tzinfo=UTC)
        fresh = await self._store.check_and_store(nonce_key(delegation), expires_at)
        if not fresh:
            logger.warning(
                "Replayed delegation nonce for user %s (scope %s)",
                delegation.user_address, delegation.scope,
            )
        return fresh

    async def cleanup_expired(self) -> int:
        """Drop nonces whose delegations have expired; return how many."""
        return await self._store.cleanup_expired()
