"""Ed25519 agent keys and signed agent messages.

An agent's signing key is a raw 32-byte Ed25519 seed carried as lowercase
hex.  Its public half is published as a ``did:key`` identifier (see
:mod:`a2a_trust.identity.did`) or inside a ``did:web`` document.

A *signed agent message* is the generic signing primitive used by the
sender-identity layer::

    {"payload": {...}, "signer": "<did>", "timestamp": <epoch ms>,
     "signature": "<hex>"}

The signature covers the RFC 8785 canonical JSON of everything except
``signature`` itself.
"""
from __future__ import annotations

import logging
import time
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import StrictInt, StrictStr

from a2a_trust.core.canonical import canonical_bytes
from a2a_trust.core.types import SigningIdentity, WireModel
from a2a_trust.identity.did import DIDDocument, encode_did_key

logger = logging.getLogger(__name__)


class AgentKeyPair:
    """An Ed25519 key pair together with its ``did:key`` identifier.

    Attributes
    ----------
    private_key : Ed25519PrivateKey
    public_key : Ed25519PublicKey
    did : str
        The ``did:key`` form of :attr:`public_key`.
    """

    __slots__ = ("did", "private_key", "public_key")

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self.private_key = private_key
        self.public_key = private_key.public_key()
        self.did = encode_did_key(public_key_bytes(self.public_key))

    @classmethod
    def generate(cls) -> AgentKeyPair:
        """Create a fresh random key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_hex(cls, private_key: str) -> AgentKeyPair:
        return cls(load_private_key(private_key))

    @property
    def private_key_hex(self) -> str:
        raw = self.private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return raw.hex()

    def signing_identity(self, did: str | None = None) -> SigningIdentity:
        """Return a :class:`SigningIdentity` for this key.

        *did* overrides the ``did:key`` identifier, e.g. for a ``did:web``
        agent whose document publishes this key.
        """
        return SigningIdentity(did=did or self.did, private_key=self.private_key_hex)

    def __repr__(self) -> str:
        return f"AgentKeyPair(did={self.did!r})"


def public_key_bytes(public_key: Ed25519PublicKey) -> bytes:
    """Raw 32-byte encoding of an Ed25519 public key."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def load_private_key(private_key: str) -> Ed25519PrivateKey:
    """Load an Ed25519 private key from its 32-byte hex seed.

    Raises
    ------
    ValueError
        If *private_key* is not 64 hex characters.
    """
    key = private_key[2:] if private_key.startswith("0x") else private_key
    raw = bytes.fromhex(key)
    if len(raw) != 32:
        raise ValueError(f"Ed25519 private key must be 32 bytes, got {len(raw)}")
    return Ed25519PrivateKey.from_private_bytes(raw)


# ---------------------------------------------------------------------------
# Signed agent messages
# ---------------------------------------------------------------------------

class SignedAgentMessage(WireModel):
    """A JSON payload signed by an agent's Ed25519 key."""

    payload: dict[str, Any]
    signature: StrictStr
    signer: StrictStr
    timestamp: StrictInt

    def signing_input(self) -> bytes:
        return signing_input(self.payload, self.signer, self.timestamp)


def signing_input(payload: dict[str, Any], signer: str, timestamp: int) -> bytes:
    """Canonical bytes covered by a signed agent message's signature."""
    return canonical_bytes({"payload": payload, "signer": signer, "timestamp": timestamp})


def sign_agent_message(
    payload: dict[str, Any],
    identity: SigningIdentity,
    *,
    timestamp: int | None = None,
) -> SignedAgentMessage:
    """Sign *payload* as ``identity.did``.

    Parameters
    ----------
    payload:
        JSON-compatible object to sign.
    identity:
        The signer's DID and private key.
    timestamp:
        Epoch milliseconds to sign at; defaults to now.

    Returns
    -------
    SignedAgentMessage
    """
    ts = timestamp if timestamp is not None else int(time.time() * 1000)
    key = load_private_key(identity.private_key)
    signature = key.sign(signing_input(payload, identity.did, ts))
    return SignedAgentMessage(
        payload=payload,
        signature=signature.hex(),
        signer=identity.did,
        timestamp=ts,
    )


def verify_agent_message(message: SignedAgentMessage, document: DIDDocument) -> bool:
    """Return ``True`` if any Ed25519 key in *document* verifies *message*.

    A signature that is not valid hex, or a document without Ed25519
    keys, yields ``False``.
    """
    try:
        signature = bytes.fromhex(message.signature)
    except ValueError:
        return False
    keys = document.ed25519_public_keys()
    if not keys:
        logger.debug("DID document %s declares no Ed25519 keys", document.id)
        return False
    data = message.signing_input()
    for key in keys:
        try:
            key.verify(signature, data)
        except InvalidSignature:
            continue
        return True
    return False
