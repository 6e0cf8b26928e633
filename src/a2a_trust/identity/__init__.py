"""a2a-trust identity -- DIDs, DID resolution and Ed25519 agent keys.

Public API
----------
- :class:`DefaultDIDResolver` -- ``did:key`` offline, ``did:web`` over HTTPS.
- :class:`DIDDocument` / :class:`VerificationMethod` -- resolved documents.
- :class:`AgentKeyPair` -- Ed25519 key pair with its ``did:key``.
- :func:`sign_agent_message` / :func:`verify_agent_message` -- the signing
  primitive used by sender envelopes.
"""
from __future__ import annotations

from a2a_trust.identity.did import (
    DefaultDIDResolver,
    DIDDocument,
    VerificationMethod,
    decode_did_key,
    did_key_document,
    did_web_url,
    encode_did_key,
)
from a2a_trust.identity.keys import (
    AgentKeyPair,
    SignedAgentMessage,
    load_private_key,
    sign_agent_message,
    verify_agent_message,
)

__all__ = [
    "AgentKeyPair",
    "DIDDocument",
    "DefaultDIDResolver",
    "SignedAgentMessage",
    "VerificationMethod",
    "decode_did_key",
    "did_key_document",
    "did_web_url",
    "encode_did_key",
    "load_private_key",
    "sign_agent_message",
    "verify_agent_message",
]
