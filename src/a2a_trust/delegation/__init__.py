"""a2a-trust Layer 2 -- user delegation envelopes.

Public API
----------
- :data:`DELEGATION_DOMAIN`, :data:`DELEGATION_TYPES` -- the EIP-712 schema.
- :func:`sign_user_delegation` -- server/test-side signing.
- :func:`verify_user_delegation` -- expiry, delegate and signer checks.
- :class:`DelegationVerifier` -- async verifier with optional nonce replay tracking.
- :class:`NonceManager` -- one-time-use delegation nonces.
"""
from __future__ import annotations

from a2a_trust.delegation.envelope import (
    DelegationVerifier,
    attach_user_delegation,
    extract_user_delegation,
    parse_user_delegation,
    recover_delegation_signer,
    sign_user_delegation,
    verify_user_delegation,
)
from a2a_trust.delegation.nonce import NonceManager
from a2a_trust.delegation.typed_data import (
    DELEGATION_DOMAIN,
    DELEGATION_TYPES,
    PRIMARY_TYPE,
    build_typed_data,
)

__all__ = [
    "DELEGATION_DOMAIN",
    "DELEGATION_TYPES",
    "PRIMARY_TYPE",
    "DelegationVerifier",
    "NonceManager",
    "attach_user_delegation",
    "build_typed_data",
    "extract_user_delegation",
    "parse_user_delegation",
    "recover_delegation_signer",
    "sign_user_delegation",
    "verify_user_delegation",
]
