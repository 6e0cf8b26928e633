"""a2a-trust connection-time gating.

Public API
----------
- :class:`TrustGate` -- identity, liveness and reputation stages.
- :func:`verify_preconditions` -- functional form of the gate.
- :class:`TrustedConnection` -- a gated agent plus its current trust snapshot.
"""
from __future__ import annotations

from a2a_trust.gate.connection import TrustedConnection
from a2a_trust.gate.pipeline import TrustGate, verify_preconditions

__all__ = [
    "TrustGate",
    "TrustedConnection",
    "verify_preconditions",
]
