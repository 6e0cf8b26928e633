"""a2a-trust inbound verification and request-scoped results."""
from __future__ import annotations

from a2a_trust.inbound.verification import InboundVerifier, RequestContext, VerificationArena

__all__ = [
    "InboundVerifier",
    "RequestContext",
    "VerificationArena",
]
