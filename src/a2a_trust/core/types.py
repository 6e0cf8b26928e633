"""a2a-trust shared domain types.

This module defines every value type and Pydantic model shared across
the gate, the sender-identity layer and the user-delegation layer.

Key design decisions:
* Models that travel inside message metadata (envelopes) are **strict**
  and **frozen**: a field of the wrong JSON type is a decode error, never
  a coercion, and a decoded envelope cannot be edited in place.
* Wire names are camelCase (``senderDid``, ``messageId``...).  Python code
  uses the snake_case attribute names; both are accepted on input and
  :meth:`WireModel.to_wire` emits the camelCase form.
* Verification results (:class:`VerifiedSender`, :class:`VerifiedUser`)
  are plain data.  They are produced for every verification attempt,
  successful or not.
"""
from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic.alias_generators import to_camel

_DECIMAL_RE: re.Pattern[str] = re.compile(r"[0-9]+")


def _utcnow() -> datetime:
    """Return the current UTC datetime with timezone information."""
    return datetime.now(UTC)


class WireModel(BaseModel):
    """Base for models exchanged with other implementations."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible camelCase representation, unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Registry data
# ---------------------------------------------------------------------------

class AgentRecord(BaseModel):
    """An agent as reported by the registry.

    Owned by the registry; the gate only reads it.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    did: str
    url: str = ""
    name: str | None = None
    trust_score: float | None = None
    is_live: bool = False
    last_liveness_check: datetime | None = None
    is_battle_tested: bool = False


class TrustSnapshot(BaseModel):
    """Immutable result of one successful pass through the trust gate.

    A connection holds exactly one snapshot at a time.  Re-verification
    builds a new snapshot; the old one is never edited.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    did_verified: bool
    is_live: bool
    trust_score: float | None
    is_battle_tested: bool
    response_verified: bool | None = None
    verified_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_agent(cls, agent: AgentRecord, *, did_verified: bool) -> TrustSnapshot:
        return cls(
            did_verified=did_verified,
            is_live=agent.is_live,
            trust_score=agent.trust_score,
            is_battle_tested=agent.is_battle_tested,
            response_verified=None,
        )

    @classmethod
    def unverified(cls) -> TrustSnapshot:
        """Conservative snapshot for peers reached without registry data."""
        return cls(
            did_verified=False,
            is_live=False,
            trust_score=None,
            is_battle_tested=False,
            response_verified=None,
        )


# ---------------------------------------------------------------------------
# Layer 1 -- sender identity
# ---------------------------------------------------------------------------

class SigningIdentity(BaseModel):
    """A DID plus the raw Ed25519 private key (32-byte seed, hex) that controls it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    did: StrictStr
    private_key: StrictStr = Field(repr=False)


class SenderEnvelope(WireModel):
    """Signed proof that ``sender_did`` produced the message ``message_id``.

    ``timestamp`` is Unix epoch milliseconds; ``signature`` is lowercase hex.
    """

    sender_did: StrictStr
    signature: StrictStr
    timestamp: StrictInt
    message_id: StrictStr


class VerifiedSender(BaseModel):
    """Outcome of verifying a :class:`SenderEnvelope` for one inbound request."""

    model_config = ConfigDict(frozen=True)

    did: str
    signature_valid: bool
    did_resolved: bool
    signed_at: int


# ---------------------------------------------------------------------------
# Layer 2 -- user delegation
# ---------------------------------------------------------------------------

class UserDelegation(WireModel):
    """A user's authorization for ``delegate_did`` to act within ``scope``.

    ``exp`` is Unix seconds.  On input it may be a JSON number or a decimal
    string (wallets commonly serialise ``uint256`` as a string).
    """

    user_address: StrictStr
    delegate_did: StrictStr
    scope: StrictStr
    exp: int
    nonce: StrictStr

    @field_validator("exp", mode="before")
    @classmethod
    def _coerce_exp(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("exp must be a number or decimal string")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("exp must be an integral number of seconds")
            return int(value)
        if isinstance(value, str):
            if not _DECIMAL_RE.fullmatch(value):
                raise ValueError("exp string must contain only decimal digits")
            return int(value)
        return value


class DelegationEnvelope(WireModel):
    """A :class:`UserDelegation` plus its ``0x``-prefixed typed-data signature."""

    delegation: UserDelegation
    signature: StrictStr


class VerifiedUser(BaseModel):
    """Outcome of verifying a :class:`DelegationEnvelope` for one inbound request.

    ``address`` is the recovered signer when recovery succeeded, otherwise
    the (unverified) claimed ``userAddress``.  ``nonce_fresh`` is ``None``
    unless nonce tracking is enabled.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    delegated_to: str
    scope: str
    valid: bool
    expired: bool
    nonce_fresh: bool | None = None
