#!/usr/bin/env python3
"""a2a-trust quickstart -- trusted agent-to-agent hello.

Demonstrates the full trusted messaging workflow:

1. Generate did:key identities for a client agent and a hotel agent.
2. Register the hotel agent in an in-memory registry.
3. Open a gated connection (identity, liveness, reputation).
4. A user wallet delegates "hotel-booking" to the client agent.
5. The client sends a signed message carrying the delegation.
6. The hotel agent verifies both layers and answers.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import asyncio
import time

from eth_account import Account

from a2a_trust import (
    AgentKeyPair,
    AgentRecord,
    DefaultDIDResolver,
    DelegationVerifier,
    InboundVerifier,
    InMemoryAgentRegistry,
    RequestContext,
    SenderVerifier,
    TrustedConnection,
    TrustGatePolicy,
    TrustScoreBelowThreshold,
    UserDelegation,
    attach_user_delegation,
    sign_user_delegation,
)


async def main() -> None:
    # -- Step 1: Identities ----------------------------------------------------
    client_keys = AgentKeyPair.generate()
    hotel_keys = AgentKeyPair.generate()
    print(f"[1] Client agent: {client_keys.did}")
    print(f"    Hotel agent:  {hotel_keys.did}")

    # -- Step 2: Registry --------------------------------------------------------
    registry = InMemoryAgentRegistry()
    registry.put_agent(
        AgentRecord(
            did=hotel_keys.did,
            url="https://hotel.example.com",
            name="Hotel Agent",
            trust_score=85,
            is_live=True,
            is_battle_tested=True,
        )
    )
    print("[2] Hotel agent registered (trust score 85)")

    # -- Step 3: Gated connection ----------------------------------------------
    try:
        await TrustedConnection.open(hotel_keys.did, registry, TrustGatePolicy(min_trust_score=90))
    except TrustScoreBelowThreshold as exc:
        print(f"[3] Strict policy refused: {exc}")

    conn = await TrustedConnection.open(
        hotel_keys.did,
        registry,
        TrustGatePolicy(min_trust_score=50),
        signing_identity=client_keys.signing_identity(),
    )
    print(f"    Relaxed policy accepted: {conn.trust.model_dump(exclude={'verified_at'})}")

    # -- Step 4: User delegation -----------------------------------------------
    wallet = Account.create()
    envelope = sign_user_delegation(
        UserDelegation(
            user_address=wallet.address,
            delegate_did=client_keys.did,
            scope="hotel-booking",
            exp=int(time.time()) + 1800,
            nonce="quickstart-1",
        ),
        wallet.key,
    )
    print(f"[4] User {wallet.address} delegated hotel-booking to the client")

    # -- Step 5: Signed outbound message ---------------------------------------
    message = attach_user_delegation(
        conn.prepare_message("Book a double room in Lisbon", data={"nights": 2}),
        envelope,
    )
    print(f"[5] Sent message {message.message_id}")

    # -- Step 6: Inbound verification ------------------------------------------
    async def handle(context: RequestContext) -> str:
        if context.sender_did is None:
            return "Who are you?"
        if context.user_address is None:
            return f"Hello {context.sender_did}, but no user authorised this."
        return f"Booking for {context.user_address} via {context.sender_did}: {context.text}"

    resolver = DefaultDIDResolver()
    inbound = InboundVerifier(SenderVerifier(resolver), DelegationVerifier())
    reply = await inbound.wrap(handle)(message)
    print(f"[6] Hotel agent replied: {reply}")


if __name__ == "__main__":
    asyncio.run(main())
