"""a2a-trust Layer 1 -- sender identity envelopes.

Public API
----------
- :func:`compute_parts_digest` -- canonical digest of message content.
- :func:`create_sender_envelope` / :func:`sign_message` -- outbound signing.
- :func:`parse_sender_envelope` / :func:`extract_sender_envelope` -- strict decoding.
- :class:`SenderVerifier` -- freshness, DID resolution and signature checks.
"""
from __future__ import annotations

from a2a_trust.sender.envelope import (
    SenderVerifier,
    compute_parts_digest,
    create_sender_envelope,
    extract_sender_envelope,
    parse_sender_envelope,
    sign_message,
)

__all__ = [
    "SenderVerifier",
    "compute_parts_digest",
    "create_sender_envelope",
    "extract_sender_envelope",
    "parse_sender_envelope",
    "sign_message",
]
