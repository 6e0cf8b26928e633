"""EIP-712 typed-data schema for user delegations.

This schema is the wire contract with externally signed delegations
(wallet ``eth_signTypedData_v4`` signatures).  Domain, type name, field
names, field types and field order must stay byte-for-byte identical to
what wallets sign; changing any of them invalidates every existing
delegation.
"""
from __future__ import annotations

from typing import Any

from a2a_trust.core.types import UserDelegation

DELEGATION_DOMAIN: dict[str, str] = {
    "name": "Aletheia User Delegation",
    "version": "1",
}

PRIMARY_TYPE: str = "UserDelegation"

DELEGATION_TYPES: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
    ],
    PRIMARY_TYPE: [
        {"name": "userAddress", "type": "address"},
        {"name": "delegateDid", "type": "string"},
        {"name": "scope", "type": "string"},
        {"name": "exp", "type": "uint256"},
        {"name": "nonce", "type": "string"},
    ],
}


def build_typed_data(delegation: UserDelegation) -> dict[str, Any]:
    """Return the full EIP-712 ``typedData`` structure for *delegation*.

    The result is suitable both for :func:`eth_account.messages.encode_typed_data`
    and for handing to a wallet's ``eth_signTypedData_v4``.
    """
    return {
        "types": {name: [dict(field) for field in fields] for name, fields in DELEGATION_TYPES.items()},
        "primaryType": PRIMARY_TYPE,
        "domain": dict(DELEGATION_DOMAIN),
        "message": {
            "userAddress": delegation.user_address,
            "delegateDid": delegation.delegate_did,
            "scope": delegation.scope,
            "exp": delegation.exp,
            "nonce": delegation.nonce,
        },
    }
