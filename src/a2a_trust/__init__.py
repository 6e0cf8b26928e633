"""a2a-trust -- cryptographic trust between communicating agents.

Three independent facets, composed by the caller:

1. Connection-time gating (:mod:`a2a_trust.gate`) -- is the agent's
   identity resolvable, is it live, is it reputable enough.
2. Sender identity, Layer 1 (:mod:`a2a_trust.sender`) -- which agent
   produced an inbound message.
3. User delegation, Layer 2 (:mod:`a2a_trust.delegation`) -- which human
   user, if any, authorised the sending agent.

Inbound messages are verified on both layers by
:class:`~a2a_trust.inbound.InboundVerifier`.
"""
from __future__ import annotations

__version__ = "0.1.0a1"

# ---------------------------------------------------------------------------
# Core -- types, errors, config, interfaces
# ---------------------------------------------------------------------------
from a2a_trust.core.config import TrustConfig, TrustGatePolicy
from a2a_trust.core.errors import (
    AgentNotFound,
    AgentNotLive,
    DIDNotFound,
    DIDResolutionFailed,
    EnvelopeError,
    GateError,
    InvalidDIDDocument,
    MalformedEnvelope,
    ResolutionError,
    TrustError,
    TrustScoreBelowThreshold,
    UnsupportedDIDMethod,
)
from a2a_trust.core.interfaces import (
    AgentRegistry,
    DIDResolver,
    InMemoryAgentRegistry,
    InMemoryNonceStore,
    NonceStore,
)
from a2a_trust.core.types import (
    AgentRecord,
    DelegationEnvelope,
    SenderEnvelope,
    SigningIdentity,
    TrustSnapshot,
    UserDelegation,
    VerifiedSender,
    VerifiedUser,
)

# ---------------------------------------------------------------------------
# Layer 2 -- user delegation
# ---------------------------------------------------------------------------
from a2a_trust.delegation import (
    DELEGATION_DOMAIN,
    DELEGATION_TYPES,
    DelegationVerifier,
    NonceManager,
    attach_user_delegation,
    extract_user_delegation,
    parse_user_delegation,
    sign_user_delegation,
    verify_user_delegation,
)

# ---------------------------------------------------------------------------
# Connection-time gating
# ---------------------------------------------------------------------------
from a2a_trust.gate import TrustedConnection, TrustGate, verify_preconditions

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
from a2a_trust.identity import AgentKeyPair, DefaultDIDResolver, DIDDocument

# ---------------------------------------------------------------------------
# Inbound verification
# ---------------------------------------------------------------------------
from a2a_trust.inbound import InboundVerifier, RequestContext, VerificationArena

# ---------------------------------------------------------------------------
# Layer 1 -- sender identity
# ---------------------------------------------------------------------------
from a2a_trust.sender import (
    SenderVerifier,
    compute_parts_digest,
    create_sender_envelope,
    extract_sender_envelope,
    parse_sender_envelope,
    sign_message,
)

# ---------------------------------------------------------------------------
# Wire
# ---------------------------------------------------------------------------
from a2a_trust.wire import (
    SENDER_IDENTITY_EXTENSION,
    USER_DELEGATION_EXTENSION,
    DataPart,
    FilePart,
    Message,
    TextPart,
    build_message,
)

__all__ = [
    "__version__",
    # Core
    "AgentRecord",
    "AgentRegistry",
    "DIDResolver",
    "DelegationEnvelope",
    "InMemoryAgentRegistry",
    "InMemoryNonceStore",
    "NonceStore",
    "SenderEnvelope",
    "SigningIdentity",
    "TrustConfig",
    "TrustGatePolicy",
    "TrustSnapshot",
    "UserDelegation",
    "VerifiedSender",
    "VerifiedUser",
    # Errors
    "AgentNotFound",
    "AgentNotLive",
    "DIDNotFound",
    "DIDResolutionFailed",
    "EnvelopeError",
    "GateError",
    "InvalidDIDDocument",
    "MalformedEnvelope",
    "ResolutionError",
    "TrustError",
    "TrustScoreBelowThreshold",
    "UnsupportedDIDMethod",
    # Gate
    "TrustGate",
    "TrustedConnection",
    "verify_preconditions",
    # Identity
    "AgentKeyPair",
    "DIDDocument",
    "DefaultDIDResolver",
    # Layer 1
    "SenderVerifier",
    "compute_parts_digest",
    "create_sender_envelope",
    "extract_sender_envelope",
    "parse_sender_envelope",
    "sign_message",
    # Layer 2
    "DELEGATION_DOMAIN",
    "DELEGATION_TYPES",
    "DelegationVerifier",
    "NonceManager",
    "attach_user_delegation",
    "extract_user_delegation",
    "parse_user_delegation",
    "sign_user_delegation",
    "verify_user_delegation",
    # Inbound
    "InboundVerifier",
    "RequestContext",
    "VerificationArena",
    # Wire
    "SENDER_IDENTITY_EXTENSION",
    "USER_DELEGATION_EXTENSION",
    "DataPart",
    "FilePart",
    "Message",
    "TextPart",
    "build_message",
]
