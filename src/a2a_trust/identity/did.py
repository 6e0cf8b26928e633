"""DID documents and DID resolution.

Two DID methods are supported:

* ``did:key`` -- Ed25519 keys only (multicodec ``0xed01``, base58btc
  multibase).  Resolved offline by decoding the identifier itself.
* ``did:web`` -- fetched over HTTPS from ``/.well-known/did.json`` (or
  ``/<path>/did.json``) per the did:web method specification.

:class:`DefaultDIDResolver` is an explicitly constructed capability: pass
it to whichever component needs resolution.  There is no module-level
resolver instance.
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Any
from urllib.parse import unquote

import base58
import httpx
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from a2a_trust.core.errors import (
    DIDNotFound,
    InvalidDIDDocument,
    ResolutionError,
    UnsupportedDIDMethod,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ED25519_MULTICODEC: bytes = b"\xed\x01"
"""Multicodec varint prefix for an Ed25519 public key."""

DID_KEY_PREFIX: str = "did:key:z"
DID_WEB_PREFIX: str = "did:web:"

_ED25519_KEY_LENGTH = 32

_ED25519_METHOD_TYPES: frozenset[str] = frozenset(
    {
        "Ed25519VerificationKey2018",
        "Ed25519VerificationKey2020",
        "Multikey",
        "JsonWebKey2020",
    }
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class VerificationMethod(BaseModel):
    """A single ``verificationMethod`` entry of a DID document."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    id: str
    type: str
    controller: str = ""
    public_key_multibase: str | None = None
    public_key_base58: str | None = None
    public_key_jwk: dict[str, Any] | None = None

    def ed25519_public_key(self) -> Ed25519PublicKey | None:
        """Return the Ed25519 key carried by this method, or ``None``."""
        if self.type not in _ED25519_METHOD_TYPES:
            return None
        raw: bytes | None = None
        if self.public_key_multibase is not None:
            raw = _decode_multibase_ed25519(self.public_key_multibase)
        elif self.public_key_base58 is not None:
            raw = base58.b58decode(self.public_key_base58)
        elif self.public_key_jwk is not None:
            jwk = self.public_key_jwk
            if jwk.get("kty") != "OKP" or jwk.get("crv") != "Ed25519" or "x" not in jwk:
                return None
            x = str(jwk["x"])
            raw = base64.urlsafe_b64decode(x + "=" * (-len(x) % 4))
        if raw is None or len(raw) != _ED25519_KEY_LENGTH:
            return None
        return Ed25519PublicKey.from_public_bytes(raw)


class DIDDocument(BaseModel):
    """The subset of a W3C DID document used for signature verification."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    id: str
    verification_method: list[VerificationMethod] = Field(default_factory=list)
    authentication: list[str | dict[str, Any]] = Field(default_factory=list)
    assertion_method: list[str | dict[str, Any]] = Field(default_factory=list)

    def ed25519_public_keys(self) -> list[Ed25519PublicKey]:
        """All Ed25519 public keys declared by the document, in document order.

        Methods whose key material is for another curve or cannot be
        decoded are skipped.
        """
        keys: list[Ed25519PublicKey] = []
        for method in self.verification_method:
            try:
                key = method.ed25519_public_key()
            except (InvalidDIDDocument, ValueError) as exc:
                logger.debug("Skipping verification method %s: %s", method.id, exc)
                continue
            if key is not None:
                keys.append(key)
        return keys


# ---------------------------------------------------------------------------
# did:key
# ---------------------------------------------------------------------------

def _decode_multibase_ed25519(value: str) -> bytes:
    if not value.startswith("z"):
        raise InvalidDIDDocument(
            "Only base58btc ('z') multibase keys are supported",
            details={"value": value[:16]},
        )
    try:
        decoded = base58.b58decode(value[1:])
    except ValueError as exc:
        raise InvalidDIDDocument("Invalid base58btc encoding") from exc
    if not decoded.startswith(ED25519_MULTICODEC):
        raise InvalidDIDDocument("Multibase key is not an Ed25519 public key")
    key = decoded[len(ED25519_MULTICODEC):]
    if len(key) != _ED25519_KEY_LENGTH:
        raise InvalidDIDDocument(
            f"Ed25519 public key must be {_ED25519_KEY_LENGTH} bytes, got {len(key)}",
        )
    return key


def encode_did_key(public_key: bytes) -> str:
    """Return the ``did:key`` identifier for a raw 32-byte Ed25519 public key."""
    if len(public_key) != _ED25519_KEY_LENGTH:
        raise ValueError(
            f"Ed25519 public key must be {_ED25519_KEY_LENGTH} bytes, got {len(public_key)}"
        )
    encoded = base58.b58encode(ED25519_MULTICODEC + public_key).decode("ascii")
    return f"{DID_KEY_PREFIX}{encoded}"


def decode_did_key(did: str) -> bytes:
    """Return the raw Ed25519 public key embedded in a ``did:key`` identifier.

    Raises
    ------
    InvalidDIDDocument
        If *did* is not an Ed25519 ``did:key``.
    """
    if not did.startswith(DID_KEY_PREFIX):
        raise InvalidDIDDocument(
            f"Not a base58btc did:key identifier: {did!r}",
            details={"did": did},
        )
    return _decode_multibase_ed25519(did[len("did:key:"):])


def did_key_document(did: str) -> DIDDocument:
    """Build the DID document implied by a ``did:key`` identifier."""
    multibase = did[len("did:key:"):]
    decode_did_key(did)
    key_id = f"{did}#{multibase}"
    return DIDDocument(
        id=did,
        verification_method=[
            VerificationMethod(
                id=key_id,
                type="Ed25519VerificationKey2020",
                controller=did,
                public_key_multibase=multibase,
            )
        ],
        authentication=[key_id],
        assertion_method=[key_id],
    )


# ---------------------------------------------------------------------------
# did:web
# ---------------------------------------------------------------------------

def did_web_url(did: str) -> str:
    """Return the HTTPS URL of the DID document for a ``did:web`` identifier.

    ``did:web:example.com`` maps to ``https://example.com/.well-known/did.json``;
    ``did:web:example.com:agents:alice`` maps to
    ``https://example.com/agents/alice/did.json``.  A percent-encoded port
    (``example.com%3A8443``) is decoded.
    """
    if not did.startswith(DID_WEB_PREFIX):
        raise InvalidDIDDocument(f"Not a did:web identifier: {did!r}", details={"did": did})
    segments = did[len(DID_WEB_PREFIX):].split(":")
    if not segments or not segments[0]:
        raise InvalidDIDDocument(f"did:web identifier has no host: {did!r}", details={"did": did})
    host = unquote(segments[0])
    path = [unquote(s) for s in segments[1:]]
    if any(not s for s in path):
        raise InvalidDIDDocument(f"did:web identifier has an empty path segment: {did!r}")
    if path:
        return f"https://{host}/{'/'.join(path)}/did.json"
    return f"https://{host}/.well-known/did.json"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class DefaultDIDResolver:
    """Resolves ``did:key`` offline and ``did:web`` over HTTPS.

    Parameters
    ----------
    http_client:
        An ``httpx.AsyncClient`` to reuse for ``did:web`` fetches.  When
        ``None`` a short-lived client is created per fetch.
    timeout:
        Per-request timeout in seconds for ``did:web`` fetches.
    cache_ttl:
        Seconds a fetched ``did:web`` document is reused.  ``0`` disables
        caching.  ``did:key`` documents are derived, never cached.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        cache_ttl: float = 300.0,
    ) -> None:
        self._client = http_client
        self._timeout = timeout
        self._cache_ttl = cache_ttl
        self._cache: dict[str, tuple[float, DIDDocument]] = {}

    async def resolve(self, did: str) -> DIDDocument:
        """Resolve *did* to its DID document.

        Raises
        ------
        UnsupportedDIDMethod
            For DID methods other than ``key`` and ``web``.
        InvalidDIDDocument
            If the identifier or the fetched document is malformed.
        DIDNotFound
            If a ``did:web`` document does not exist.
        ResolutionError
            On network failure while fetching a ``did:web`` document.
        """
        if did.startswith("did:key:"):
            return did_key_document(did)
        if did.startswith(DID_WEB_PREFIX):
            return await self._resolve_web(did)
        method = did.split(":", 2)[1] if did.count(":") >= 2 else did
        raise UnsupportedDIDMethod(
            f"Unsupported DID method: {method!r}",
            details={"did": did},
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _resolve_web(self, did: str) -> DIDDocument:
        cached = self._cache.get(did)
        if cached is not None:
            expires_at, document = cached
            if time.monotonic() < expires_at:
                return document
            del self._cache[did]

        url = did_web_url(did)
        logger.debug("Fetching did:web document %s", url)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as exc:
            raise ResolutionError(
                f"Failed to fetch DID document for {did}",
                details={"did": did, "url": url},
            ) from exc

        if response.status_code == 404:
            raise DIDNotFound(f"DID document not found: {did}", details={"did": did, "url": url})
        if response.status_code >= 400:
            raise ResolutionError(
                f"DID document fetch for {did} returned HTTP {response.status_code}",
                details={"did": did, "url": url, "status": response.status_code},
            )

        try:
            document = DIDDocument.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise InvalidDIDDocument(
                f"Malformed DID document for {did}",
                details={"did": did, "url": url},
            ) from exc

        if document.id != did:
            raise InvalidDIDDocument(
                "DID document id does not match the requested DID",
                details={"did": did, "document_id": document.id},
            )

        if self._cache_ttl > 0:
            self._cache[did] = (time.monotonic() + self._cache_ttl, document)
        return document
