"""a2a-trust configuration.

Defines the validated configuration models consumed by the trust gate,
the outbound signer and the inbound verifier.  Defaults are chosen so
that an empty configuration gives the conservative behaviour: identity
verification on, cached liveness required, no reputation floor.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from a2a_trust.core.types import SigningIdentity


class TrustGatePolicy(BaseModel):
    """Connection-time policy applied by :class:`~a2a_trust.gate.pipeline.TrustGate`.

    Immutable for the lifetime of a client or session.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    verify_identity: bool = Field(
        default=True,
        description="Resolve the agent's DID through the registry before connecting.",
    )
    liveness_check_before_send: bool = Field(
        default=False,
        description=(
            "Probe the agent's liveness through the registry before "
            "connecting instead of trusting the cached status."
        ),
    )
    min_trust_score: float = Field(
        default=0,
        ge=0,
        description=(
            "Minimum registry trust score.  0 disables the reputation stage; "
            "any positive value also rejects agents with an unknown score."
        ),
    )
    require_live: bool = Field(
        default=True,
        description=(
            "Reject agents whose cached status is not live.  Ignored when "
            "liveness_check_before_send is set."
        ),
    )
    max_message_age: float = Field(
        default=300.0,
        gt=0,
        description="Maximum accepted age in seconds of a signed inbound message.",
    )
    registry_timeout: float | None = Field(
        default=None,
        gt=0,
        description=(
            "Timeout in seconds for each registry call made by the gate.  "
            "None leaves timing to the caller's own cancellation."
        ),
    )


class TrustConfig(BaseModel):
    """Top-level configuration for an agent taking part in trusted messaging."""

    model_config = ConfigDict(frozen=True)

    policy: TrustGatePolicy = Field(default_factory=TrustGatePolicy)
    sign_outbound_messages: bool = Field(
        default=False,
        description="Attach a sender-identity envelope to every outbound message.",
    )
    signing_identity: SigningIdentity | None = Field(
        default=None,
        description="DID and key used when sign_outbound_messages is enabled.",
    )
    verify_sender_signatures: bool = Field(
        default=True,
        description="Verify sender-identity envelopes on inbound messages.",
    )
    verify_user_delegations: bool = Field(
        default=True,
        description="Verify user-delegation envelopes on inbound messages.",
    )
    track_delegation_nonces: bool = Field(
        default=False,
        description=(
            "Reject delegations whose nonce was already accepted while the "
            "delegation is unexpired."
        ),
    )
    clock_skew_tolerance: float = Field(
        default=30.0,
        ge=0,
        description="Accepted forward clock skew in seconds for signed messages.",
    )

    @model_validator(mode="after")
    def _require_identity_for_signing(self) -> TrustConfig:
        if self.sign_outbound_messages and self.signing_identity is None:
            raise ValueError(
                "sign_outbound_messages requires signing_identity to be provided"
            )
        return self
