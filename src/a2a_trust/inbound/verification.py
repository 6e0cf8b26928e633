"""Inbound message verification and request-scoped results.

For every inbound message the receiving agent wants to know *who sent
it* (Layer 1) and *which user, if any, authorised that sender* (Layer 2).
:class:`InboundVerifier` answers both and attaches the answers to a
per-request :class:`RequestContext`.

The results belong to exactly one request.  They are never stored in
process-wide state keyed by anything other than a live request: either
they travel on the :class:`RequestContext` itself, or -- for frameworks
that own their own context object -- in a :class:`VerificationArena`
whose :meth:`~VerificationArena.scope` removes them when the request
completes.
"""
from __future__ import annotations

import functools
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from a2a_trust.core.interfaces import InMemoryNonceStore
from a2a_trust.delegation.envelope import DelegationVerifier
from a2a_trust.delegation.nonce import NonceManager
from a2a_trust.sender.envelope import SenderVerifier
from a2a_trust.wire.messages import Message, TextPart

if TYPE_CHECKING:
    from a2a_trust.core.config import TrustConfig
    from a2a_trust.core.interfaces import DIDResolver, NonceStore
    from a2a_trust.core.types import VerifiedSender, VerifiedUser

logger = logging.getLogger(__name__)

_R = TypeVar("_R")


@dataclass(slots=True)
class RequestContext:
    """Everything a handler knows about one inbound request."""

    message: Message
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    verified_sender: VerifiedSender | None = None
    verified_user: VerifiedUser | None = None

    @property
    def sender_did(self) -> str | None:
        """The sender's DID, only when its signature verified."""
        sender = self.verified_sender
        if sender is None or not sender.signature_valid:
            return None
        return sender.did

    @property
    def user_address(self) -> str | None:
        """The delegating user's address, only when the delegation is valid."""
        user = self.verified_user
        if user is None or not user.valid:
            return None
        return user.address

    @property
    def text(self) -> str:
        """Concatenated text of the message's text parts."""
        return "".join(p.text for p in self.message.parts if isinstance(p, TextPart))


# ---------------------------------------------------------------------------
# Arena
# ---------------------------------------------------------------------------

class VerificationArena:
    """Thread-safe request-id -> verification results mapping.

    Entries exist only inside :meth:`scope`; leaving the scope, normally
    or by exception, removes them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[VerifiedSender | None, VerifiedUser | None]] = {}

    @contextmanager
    def scope(
        self,
        request_id: str,
        verified_sender: VerifiedSender | None = None,
        verified_user: VerifiedUser | None = None,
    ) -> Iterator[str]:
        """Hold results for *request_id* for the duration of the ``with`` block.

        Raises
        ------
        ValueError
            If *request_id* is already in scope.
        """
        with self._lock:
            if request_id in self._entries:
                raise ValueError(f"Request {request_id!r} is already in scope")
            self._entries[request_id] = (verified_sender, verified_user)
        try:
            yield request_id
        finally:
            with self._lock:
                self._entries.pop(request_id, None)

    def set_verified_sender(self, request_id: str, sender: VerifiedSender | None) -> None:
        with self._lock:
            _, user = self._require(request_id)
            self._entries[request_id] = (sender, user)

    def set_verified_user(self, request_id: str, user: VerifiedUser | None) -> None:
        with self._lock:
            sender, _ = self._require(request_id)
            self._entries[request_id] = (sender, user)

    def get_verified_sender(self, request_id: str) -> VerifiedSender | None:
        with self._lock:
            entry = self._entries.get(request_id)
        return entry[0] if entry is not None else None

    def get_verified_user(self, request_id: str) -> VerifiedUser | None:
        with self._lock:
            entry = self._entries.get(request_id)
        return entry[1] if entry is not None else None

    def _require(self, request_id: str) -> tuple[VerifiedSender | None, VerifiedUser | None]:
        entry = self._entries.get(request_id)
        if entry is None:
            raise KeyError(f"Request {request_id!r} is not in scope")
        return entry

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------

class InboundVerifier:
    """Verifies both envelope layers of inbound messages.

    Parameters
    ----------
    sender_verifier:
        Layer 1 verifier.
    delegation_verifier:
        Layer 2 verifier; defaults to one without nonce tracking.
    verify_sender_signatures:
        When ``False`` sender envelopes are ignored.
    verify_user_delegations:
        When ``False`` delegation envelopes are ignored.
    """

    def __init__(
        self,
        sender_verifier: SenderVerifier,
        delegation_verifier: DelegationVerifier | None = None,
        *,
        verify_sender_signatures: bool = True,
        verify_user_delegations: bool = True,
    ) -> None:
        self._sender_verifier = sender_verifier
        self._delegation_verifier = delegation_verifier or DelegationVerifier()
        self._verify_senders = verify_sender_signatures
        self._verify_delegations = verify_user_delegations

    @classmethod
    def from_config(
        cls,
        config: TrustConfig,
        resolver: DIDResolver,
        *,
        nonce_store: NonceStore | None = None,
    ) -> InboundVerifier:
        """Build a verifier from a :class:`~a2a_trust.core.config.TrustConfig`.

        With ``track_delegation_nonces`` enabled and no *nonce_store*
        given, nonces are tracked in memory.
        """
        sender_verifier = SenderVerifier(
            resolver,
            max_message_age=config.policy.max_message_age,
            clock_skew=config.clock_skew_tolerance,
            resolve_timeout=config.policy.registry_timeout,
        )
        nonce_manager = None
        if config.track_delegation_nonces:
            nonce_manager = NonceManager(nonce_store if nonce_store is not None else InMemoryNonceStore())
        return cls(
            sender_verifier,
            DelegationVerifier(nonce_manager),
            verify_sender_signatures=config.verify_sender_signatures,
            verify_user_delegations=config.verify_user_delegations,
        )

    async def build_context(self, message: Message, request_id: str | None = None) -> RequestContext:
        """Verify *message* and return its populated :class:`RequestContext`.

        The Layer 1 DID is used as the expected delegate for Layer 2 only
        when the sender signature is valid.  Unsigned messages (or a
        disabled layer) leave the corresponding field ``None``.
        """
        context = RequestContext(message=message)
        if request_id is not None:
            context.request_id = request_id

        if self._verify_senders:
            context.verified_sender = await self._sender_verifier.verify_message(message)

        if self._verify_delegations:
            context.verified_user = await self._delegation_verifier.verify_message(
                message, expected_delegate_did=context.sender_did,
            )

        logger.debug(
            "Request %s: sender=%s user=%s",
            context.request_id, context.sender_did, context.user_address,
        )
        return context

    def wrap(
        self,
        handler: Callable[[RequestContext], Awaitable[_R]],
        *,
        arena: VerificationArena | None = None,
    ) -> Callable[..., Awaitable[_R]]:
        """Wrap a context handler into one that takes a raw :class:`Message`.

        With an *arena*, the results are also published under the request
        id for the duration of the handler call.
        """

        @functools.wraps(handler)
        async def wrapped(message: Message, request_id: str | None = None) -> _R:
            context = await self.build_context(message, request_id)
            if arena is None:
                return await handler(context)
            with arena.scope(context.request_id, context.verified_sender, context.verified_user):
                return await handler(context)

        return wrapped
