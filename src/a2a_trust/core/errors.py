"""a2a-trust error hierarchy.

Only the connection-time gate and the capabilities it consumes raise.
Envelope *verification* never raises: its failures are reported as
fields on :class:`~a2a_trust.core.types.VerifiedSender` and
:class:`~a2a_trust.core.types.VerifiedUser`.

Hierarchy
---------
::

    TrustError
    +-- GateError                   (connection-time, terminal)
    |   +-- DIDResolutionFailed
    |   +-- AgentNotLive
    |   +-- TrustScoreBelowThreshold
    +-- AgentNotFound
    +-- EnvelopeError
    |   +-- MalformedEnvelope
    +-- ResolutionError             (raised by DID resolvers)
        +-- DIDNotFound
        +-- UnsupportedDIDMethod
        +-- InvalidDIDDocument

Usage
-----
Catch by category::

    try:
        snapshot = await gate.verify_preconditions(agent)
    except GateError as exc:
        log.warning("refusing to connect: %s (%s)", exc.message, exc.code)

Wrapped failures keep the underlying exception as ``__cause__``.
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class TrustError(Exception):
    """Base exception for all a2a-trust errors.

    Attributes
    ----------
    code : str
        Stable machine-readable error code, e.g. ``"AGENT_NOT_LIVE"``.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    """

    code: str = "TRUST_ERROR"
    message: str = "Unknown trust error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for logs or API responses."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        if self.__cause__ is not None:
            payload["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# Category base classes
# ===================================================================

class GateError(TrustError):
    """A TrustGate stage rejected the agent; the connection must not proceed."""

    code = "GATE_ERROR"


class EnvelopeError(TrustError):
    """Errors decoding identity or delegation envelopes."""

    code = "ENVELOPE_ERROR"


class ResolutionError(TrustError):
    """Errors raised by DID resolvers."""

    code = "RESOLUTION_ERROR"


# ===================================================================
# TrustGate errors
# ===================================================================

class DIDResolutionFailed(GateError):
    """The agent's DID could not be resolved by the registry."""

    code = "DID_RESOLUTION_FAILED"
    message = "Failed to resolve agent DID"


class AgentNotLive(GateError):
    """The agent is not live, or its liveness could not be confirmed."""

    code = "AGENT_NOT_LIVE"
    message = "Agent is not live"


class TrustScoreBelowThreshold(GateError):
    """The agent's trust score is unknown or below the configured minimum."""

    code = "TRUST_SCORE_BELOW_THRESHOLD"

    def __init__(
        self,
        trust_score: float | None,
        threshold: float,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.trust_score = trust_score
        self.threshold = threshold
        score = "unknown" if trust_score is None else f"{trust_score:g}"
        merged = {"trust_score": trust_score, "threshold": threshold}
        merged.update(details or {})
        super().__init__(
            f"Agent trust score {score} is below threshold {threshold:g}",
            details=merged,
        )


# ===================================================================
# Registry errors
# ===================================================================

class AgentNotFound(TrustError):
    """No agent record exists for the requested DID."""

    code = "AGENT_NOT_FOUND"
    message = "Agent not found"


# ===================================================================
# Envelope errors
# ===================================================================

class MalformedEnvelope(EnvelopeError):
    """An envelope is present but does not match the expected schema."""

    code = "MALFORMED_ENVELOPE"
    message = "Envelope does not match the expected schema"


# ===================================================================
# Resolution errors
# ===================================================================

class DIDNotFound(ResolutionError):
    """The DID method resolved nothing for this identifier."""

    code = "DID_NOT_FOUND"
    message = "DID document not found"


class UnsupportedDIDMethod(ResolutionError):
    """The resolver does not handle this DID method."""

    code = "UNSUPPORTED_DID_METHOD"
    message = "Unsupported DID method"


class InvalidDIDDocument(ResolutionError):
    """The DID (or its document) is syntactically or semantically invalid."""

    code = "INVALID_DID_DOCUMENT"
    message = "Invalid DID or DID document"

