"""Tests for inbound verification and request-scoped results."""
from __future__ import annotations

import asyncio
import threading

import pytest

from a2a_trust.core.config import TrustConfig, TrustGatePolicy
from a2a_trust.core.types import SigningIdentity, VerifiedSender, VerifiedUser
from a2a_trust.delegation.envelope import attach_user_delegation, sign_user_delegation
from a2a_trust.inbound.verification import InboundVerifier, RequestContext, VerificationArena
from a2a_trust.sender.envelope import SenderVerifier, sign_message
from a2a_trust.wire.messages import build_message

from .conftest import CountingResolver, make_delegation


def _sender(did: str = "did:key:zX") -> VerifiedSender:
    return VerifiedSender(did=did, signature_valid=True, did_resolved=True, signed_at=1)


def _user() -> VerifiedUser:
    return VerifiedUser(address="0xabc", delegated_to="did:key:zX", scope="s", valid=True, expired=False)


# ===================================================================
# InboundVerifier
# ===================================================================


class TestInboundVerifier:
    @pytest.mark.asyncio
    async def test_unsigned_message(self, resolver: CountingResolver) -> None:
        context = await InboundVerifier(SenderVerifier(resolver)).build_context(build_message("hi"))
        assert context.verified_sender is None
        assert context.verified_user is None
        assert context.sender_did is None
        assert context.text == "hi"
        assert context.request_id

    @pytest.mark.asyncio
    async def test_explicit_request_id(self, resolver: CountingResolver) -> None:
        verifier = InboundVerifier(SenderVerifier(resolver))
        context = await verifier.build_context(build_message("hi"), request_id="req-1")
        assert context.request_id == "req-1"

    @pytest.mark.asyncio
    async def test_both_layers(
        self, alice: SigningIdentity, resolver: CountingResolver, user_account
    ) -> None:
        delegation = make_delegation(user_account.address, delegate_did=alice.did)
        envelope = sign_user_delegation(delegation, user_account.key)
        message = sign_message(attach_user_delegation(build_message("book"), envelope), alice)

        context = await InboundVerifier(SenderVerifier(resolver)).build_context(message)
        assert context.sender_did == alice.did
        assert context.verified_user is not None
        assert context.verified_user.valid is True
        assert context.user_address == user_account.address

    @pytest.mark.asyncio
    async def test_delegation_for_other_agent(
        self, alice: SigningIdentity, bob: SigningIdentity, resolver: CountingResolver, user_account
    ) -> None:
        delegation = make_delegation(user_account.address, delegate_did=bob.did)
        envelope = sign_user_delegation(delegation, user_account.key)
        message = sign_message(attach_user_delegation(build_message("book"), envelope), alice)

        context = await InboundVerifier(SenderVerifier(resolver)).build_context(message)
        assert context.sender_did == alice.did
        assert context.verified_user is not None
        assert context.verified_user.valid is False
        assert context.user_address is None

    @pytest.mark.asyncio
    async def test_delegation_without_sender(self, resolver: CountingResolver, user_account) -> None:
        envelope = sign_user_delegation(make_delegation(user_account.address), user_account.key)
        message = attach_user_delegation(build_message("book"), envelope)
        context = await InboundVerifier(SenderVerifier(resolver)).build_context(message)
        assert context.verified_sender is None
        assert context.verified_user is not None
        assert context.verified_user.valid is True

    @pytest.mark.asyncio
    async def test_invalid_sender_is_not_used_as_delegate(
        self, alice: SigningIdentity, resolver: CountingResolver, user_account
    ) -> None:
        delegation = make_delegation(user_account.address, delegate_did="did:key:z6MkelseAgent")
        envelope = sign_user_delegation(delegation, user_account.key)
        message = sign_message(attach_user_delegation(build_message("book"), envelope), alice)
        tampered = message.model_copy(update={"parts": build_message("steal").parts})

        context = await InboundVerifier(SenderVerifier(resolver)).build_context(tampered)
        assert context.verified_sender is not None
        assert context.verified_sender.signature_valid is False
        assert context.sender_did is None
        assert context.verified_user is not None
        assert context.verified_user.valid is True

    @pytest.mark.asyncio
    async def test_layers_can_be_disabled(
        self, alice: SigningIdentity, resolver: CountingResolver, user_account
    ) -> None:
        envelope = sign_user_delegation(make_delegation(user_account.address), user_account.key)
        message = sign_message(attach_user_delegation(build_message("book"), envelope), alice)
        verifier = InboundVerifier(
            SenderVerifier(resolver),
            verify_sender_signatures=False,
            verify_user_delegations=False,
        )
        context = await verifier.build_context(message)
        assert context.verified_sender is None
        assert context.verified_user is None
        assert resolver.calls == []

    @pytest.mark.asyncio
    async def test_from_config_tracks_nonces(
        self, alice: SigningIdentity, resolver: CountingResolver, user_account
    ) -> None:
        config = TrustConfig(track_delegation_nonces=True, policy=TrustGatePolicy(max_message_age=60))
        verifier = InboundVerifier.from_config(config, resolver)
        delegation = make_delegation(user_account.address, delegate_did=alice.did)
        envelope = sign_user_delegation(delegation, user_account.key)

        first = await verifier.build_context(sign_message(attach_user_delegation(build_message("a"), envelope), alice))
        second = await verifier.build_context(sign_message(attach_user_delegation(build_message("b"), envelope), alice))
        assert first.verified_user is not None and first.verified_user.nonce_fresh is True
        assert second.verified_user is not None and second.verified_user.nonce_fresh is False
        assert second.verified_user.valid is False

    @pytest.mark.asyncio
    async def test_wrap(self, alice: SigningIdentity, resolver: CountingResolver) -> None:
        seen: list[RequestContext] = []

        async def handler(context: RequestContext) -> str:
            seen.append(context)
            return f"hello {context.sender_did}"

        wrapped = InboundVerifier(SenderVerifier(resolver)).wrap(handler)
        reply = await wrapped(sign_message(build_message("hi"), alice))
        assert reply == f"hello {alice.did}"
        assert seen[0].verified_sender is not None
        assert wrapped.__name__ == "handler"

    @pytest.mark.asyncio
    async def test_wrap_with_arena(self, alice: SigningIdentity, resolver: CountingResolver) -> None:
        arena = VerificationArena()
        observed: list[VerifiedSender | None] = []

        async def handler(context: RequestContext) -> None:
            observed.append(arena.get_verified_sender(context.request_id))

        wrapped = InboundVerifier(SenderVerifier(resolver)).wrap(handler, arena=arena)
        await wrapped(sign_message(build_message("hi"), alice), "req-7")
        assert observed[0] is not None
        assert observed[0].did == alice.did
        assert "req-7" not in arena
        assert len(arena) == 0

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_isolated(
        self, alice: SigningIdentity, bob: SigningIdentity, resolver: CountingResolver
    ) -> None:
        arena = VerificationArena()

        async def handler(context: RequestContext) -> str | None:
            await asyncio.sleep(0.01)
            sender = arena.get_verified_sender(context.request_id)
            return sender.did if sender else None

        wrapped = InboundVerifier(SenderVerifier(resolver)).wrap(handler, arena=arena)
        results = await asyncio.gather(
            wrapped(sign_message(build_message("a"), alice), "req-a"),
            wrapped(sign_message(build_message("b"), bob), "req-b"),
            wrapped(build_message("c"), "req-c"),
        )
        assert results == [alice.did, bob.did, None]
        assert len(arena) == 0


# ===================================================================
# VerificationArena
# ===================================================================


class TestVerificationArena:
    def test_scope_lifecycle(self) -> None:
        arena = VerificationArena()
        with arena.scope("r1", _sender()) as request_id:
            assert request_id == "r1"
            assert arena.get_verified_sender("r1") == _sender()
            assert arena.get_verified_user("r1") is None
            arena.set_verified_user("r1", _user())
            assert arena.get_verified_user("r1") == _user()
        assert arena.get_verified_sender("r1") is None
        assert "r1" not in arena

    def test_scope_removes_on_error(self) -> None:
        arena = VerificationArena()
        with pytest.raises(RuntimeError):
            with arena.scope("r1", _sender()):
                raise RuntimeError("handler failed")
        assert len(arena) == 0

    def test_duplicate_scope_rejected(self) -> None:
        arena = VerificationArena()
        with arena.scope("r1"):
            with pytest.raises(ValueError):
                with arena.scope("r1"):
                    pass
            assert "r1" in arena

    def test_set_outside_scope(self) -> None:
        with pytest.raises(KeyError):
            VerificationArena().set_verified_sender("r1", _sender())

    def test_unknown_request(self) -> None:
        arena = VerificationArena()
        assert arena.get_verified_sender("nope") is None
        assert arena.get_verified_user("nope") is None

    def test_thread_safety(self) -> None:
        arena = VerificationArena()
        errors: list[BaseException] = []

        def worker(n: int) -> None:
            try:
                for i in range(200):
                    request_id = f"{n}-{i}"
                    sender = _sender(f"did:key:z{n}")
                    with arena.scope(request_id, sender):
                        assert arena.get_verified_sender(request_id) == sender
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(arena) == 0
