# -*- coding: utf-8 -*-
"""
Temporary approvals: the grant is visible to the callback and gone again
afterwards on every exit path, nested grants unwind innermost-first, and a
rejected callback discards the whole invocation.
"""
from __future__ import annotations

from typing import List

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from erc6909x.allowances import GrantKey
from erc6909x.errors import (
    CallbackRejected,
    DeadlineExpired,
    InvalidSignature,
    MalformedOperatorRequest,
    NonceAlreadyConsumed,
)
from erc6909x.interfaces import TEMPORARY_APPROVE_ACK
from erc6909x.runtime.host import Host
from erc6909x.state import UINT256_MAX
from erc6909x.temporary import Phase
from erc6909x.token import ERC6909XToken
from erc6909x.typed_data import ApproveAndCall

from .conftest import (
    MINTER,
    NOW,
    RELAYER,
    SPENDER,
    TOKEN_ADDR,
    Receiver,
    CrashingReceiver,
    RevertingReceiver,
    SilentReceiver,
    deploy,
    make_config,
    sign_payload,
)

ID = 5
DEADLINE = NOW + 600


def _temporary(owner: bytes, target: bytes, **kw) -> ApproveAndCall:
    base = dict(
        temporary=True,
        owner=owner,
        spender=SPENDER,
        operator=False,
        id=ID,
        amount=100,
        target=target,
        data=b"",
        nonce=1,
        deadline=DEADLINE,
    )
    base.update(kw)
    return ApproveAndCall(**base)


def _relay(token: ERC6909XToken, p: ApproveAndCall, sig: bytes, caller: bytes = RELAYER) -> bool:
    return token.temporary_approve_and_call_by_sig(
        caller, p.owner, p.spender, p.operator, p.id, p.amount,
        p.target, p.data, p.deadline, p.nonce, sig,
    )


# ----------------------------- native ----------------------------------------


def test_grant_is_live_during_callback_only(host, token, alice, receiver):
    assert token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address, b"hi")
    (obs,) = receiver.seen
    assert obs.allowance == 100
    assert (obs.owner, obs.operator, obs.id, obs.amount, obs.data) == (alice.address, False, ID, 100, b"hi")
    assert obs.sender == TOKEN_ADDR
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert token.orchestrator.active_count() == 0


def test_restores_previous_value_not_zero(token, alice, receiver):
    token.approve(alice.address, SPENDER, ID, 30)
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address)
    assert receiver.seen[0].allowance == 100
    assert token.allowance(alice.address, SPENDER, ID) == 30


@pytest.mark.parametrize("preexisting", [False, True])
def test_operator_grant(token, alice, receiver, preexisting):
    if preexisting:
        token.set_operator(alice.address, SPENDER, True)
    token.temporary_approve_and_call(alice.address, SPENDER, True, 0, 0, receiver.address)
    assert receiver.seen[0].is_operator is True
    assert receiver.seen[0].operator is True
    assert token.is_operator(alice.address, SPENDER) is preexisting


def test_no_approval_events_for_temporary_grant(host, token, alice, receiver):
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address)
    assert list(host.sink.get_logs(name="Approval")) == []


def test_malformed_operator_request_never_calls_target(token, alice, receiver):
    with pytest.raises(MalformedOperatorRequest):
        token.temporary_approve_and_call(alice.address, SPENDER, True, 1, 0, receiver.address)
    with pytest.raises(MalformedOperatorRequest):
        token.temporary_approve_and_call(alice.address, SPENDER, True, 0, 9, receiver.address)
    assert receiver.seen == []


def test_callback_may_pull_within_grant(host, token, alice, bob):
    token.mint(MINTER, alice.address, ID, 500)
    pulled: List[int] = []

    def pull(ctx, tok):
        tok.transfer_from(ctx.address, alice.address, bob.address, ID, 40)
        pulled.append(tok.allowance(alice.address, ctx.address, ID))

    r = Receiver(action=pull)
    r.spender = deploy(host, 0x7B, r)
    token.temporary_approve_and_call(alice.address, r.spender, False, ID, 100, r.spender)
    assert pulled == [60]
    assert token.balance_of(bob.address, ID) == 40
    assert token.balance_of(alice.address, ID) == 460
    assert token.allowance(alice.address, r.spender, ID) == 0


# ----------------------------- rejection -------------------------------------


REJECTING_TARGETS = {
    "reverts": RevertingReceiver,
    "raises": CrashingReceiver,
    "returns-nothing": SilentReceiver,
    "wrong-selector": lambda: Receiver(ack=b"\xde\xad\xbe\xef"),
    "ack-plus-padding": lambda: Receiver(ack=TEMPORARY_APPROVE_ACK + b"\x00" * 28),
    "no-callback-method": object,
    "no-code": None,
}


@pytest.mark.parametrize("label", sorted(REJECTING_TARGETS))
def test_rejected_callback_reverts_everything(host, token, alice, label):
    factory = REJECTING_TARGETS[label]
    contract = None if factory is None else factory()
    token.approve(alice.address, SPENDER, ID, 7)
    target = b"\x6f" * 20
    if contract is not None:
        deploy(host, 0x6F, contract)
    before = len(host.sink)
    with pytest.raises(CallbackRejected):
        token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, target)
    assert token.allowance(alice.address, SPENDER, ID) == 7
    assert len(host.sink) == before
    assert token.orchestrator.active_count() == 0


def test_rejected_callback_undoes_callee_effects(host, token, alice, bob):
    token.mint(MINTER, alice.address, ID, 500)

    def pull(ctx, tok):
        tok.transfer_from(ctx.address, alice.address, bob.address, ID, 40)

    r = Receiver(action=pull, ack=b"\x00\x00\x00\x00")
    r.spender = deploy(host, 0x7C, r)
    with pytest.raises(CallbackRejected) as ei:
        token.temporary_approve_and_call(alice.address, r.spender, False, ID, 100, r.spender)
    assert ei.value.data["returned"] == "00000000"
    assert token.balance_of(bob.address, ID) == 0
    assert token.balance_of(alice.address, ID) == 500


def test_crashing_callback_is_rejected_with_cause(host, token, alice):
    target = deploy(host, 0x6D, CrashingReceiver())
    token.approve(alice.address, SPENDER, ID, 7)
    with pytest.raises(CallbackRejected) as ei:
        token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, target, b"x")
    cause = ei.value.data["cause"]
    assert cause["code"] == "REVERT"
    assert cause["data"]["reason"] == "KeyError"
    assert token.allowance(alice.address, SPENDER, ID) == 7
    assert token.orchestrator.active_count() == 0


def test_phase_tracking(token, alice, receiver):
    key = GrantKey(owner=alice.address, spender=SPENDER, operator=False, id=ID)
    live = []
    receiver.action = lambda ctx, tok: live.extend(tok.orchestrator.in_flight(key))
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address)
    (rec,) = live
    assert rec.snapshot == 0 and rec.granted == 100
    assert rec.phase is Phase.IDLE
    assert token.orchestrator.in_flight(key) == ()

    live.clear()
    receiver.ack = b"\x00" * 4
    with pytest.raises(CallbackRejected):
        token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address)
    assert live[0].phase is Phase.REVERTED


def test_phase_is_callback_pending_while_target_runs(token, alice, receiver):
    key = GrantKey(owner=alice.address, spender=SPENDER, operator=False, id=ID)
    phases = []
    receiver.action = lambda ctx, tok: phases.append(tok.orchestrator.in_flight(key)[0].phase)
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, receiver.address)
    assert phases == [Phase.CALLBACK_PENDING]


# ----------------------------- by signature ----------------------------------


def test_by_signature_grants_for_owner(host, token, alice, receiver):
    p = _temporary(alice.address, receiver.address, data=b"\x42")
    sig = sign_payload(token, alice.key, p)
    assert _relay(token, p, sig) is True
    (obs,) = receiver.seen
    assert obs.owner == alice.address and obs.allowance == 100 and obs.data == b"\x42"
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert token.is_nonce_consumed(alice.address, 1)
    with pytest.raises(NonceAlreadyConsumed):
        _relay(token, p, sig)
    assert len(receiver.seen) == 1


def test_by_signature_target_is_signed(host, token, alice, receiver):
    other = Receiver()
    other_addr = deploy(host, 0x7D, other)
    p = _temporary(alice.address, receiver.address)
    sig = sign_payload(token, alice.key, p)
    forged = _temporary(alice.address, other_addr)
    with pytest.raises(InvalidSignature):
        _relay(token, forged, sig)
    assert other.seen == [] and receiver.seen == []


def test_by_signature_rejected_callback_keeps_nonce_fresh(host, token, alice):
    deploy(host, 0x6E, RevertingReceiver())
    p = _temporary(alice.address, b"\x6e" * 20)
    with pytest.raises(CallbackRejected):
        _relay(token, p, sign_payload(token, alice.key, p))
    assert not token.is_nonce_consumed(alice.address, 1)
    assert list(host.sink.get_logs(name="NonceInvalidation")) == []


@pytest.mark.parametrize("offset, ok", [(-1, True), (0, True), (1, False)])
def test_by_signature_deadline_is_inclusive(host, token, alice, receiver, offset, ok):
    p = _temporary(alice.address, receiver.address)
    sig = sign_payload(token, alice.key, p)
    host.advance(DEADLINE - NOW + offset)
    if ok:
        assert _relay(token, p, sig) is True
        assert len(receiver.seen) == 1
    else:
        with pytest.raises(DeadlineExpired):
            _relay(token, p, sig)
        assert receiver.seen == []
        assert not token.is_nonce_consumed(alice.address, 1)


# ----------------------------- reentrancy ------------------------------------


def test_nested_grants_on_same_slot_unwind_lifo(host, token, alice):
    key = GrantKey(owner=alice.address, spender=SPENDER, operator=False, id=ID)
    inner = Receiver()
    inner_addr = deploy(host, 0x7E, inner)
    depth_seen: List[int] = []
    after_inner: List[int] = []

    def relay_inner(ctx, tok):
        p = _temporary(alice.address, inner_addr, amount=50, nonce=2)
        tok.temporary_approve_and_call_by_sig(
            ctx.address, p.owner, p.spender, p.operator, p.id, p.amount,
            p.target, p.data, p.deadline, p.nonce, sign_payload(tok, alice.key, p),
        )
        after_inner.append(tok.allowance(alice.address, SPENDER, ID))

    inner.action = lambda ctx, tok: depth_seen.append(len(tok.orchestrator.in_flight(key)))
    outer = Receiver(action=relay_inner)
    outer_addr = deploy(host, 0x7F, outer)

    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, outer_addr)
    assert outer.seen[0].allowance == 100
    assert inner.seen[0].allowance == 50
    assert depth_seen == [2]
    assert after_inner == [100]
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert token.is_nonce_consumed(alice.address, 2)


def test_reentrant_permanent_change_to_same_slot_is_overwritten(host, token, alice):
    def approve_same_slot(ctx, tok):
        p = ApproveAndCall.permanent(
            owner=alice.address, spender=SPENDER, operator=False, id=ID, amount=999, nonce=3, deadline=DEADLINE
        )
        tok.approve_by_sig(
            ctx.address, p.owner, p.spender, False, ID, 999, DEADLINE, 3, sign_payload(tok, alice.key, p)
        )

    r = Receiver(action=approve_same_slot)
    addr = deploy(host, 0x80, r)
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, addr)
    # the outer restoration wins; the signed approval is spent anyway
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert token.is_nonce_consumed(alice.address, 3)


def test_reentrant_change_to_other_slot_survives(host, token, alice):
    def approve_other_id(ctx, tok):
        p = ApproveAndCall.permanent(
            owner=alice.address, spender=SPENDER, operator=False, id=ID + 1, amount=999, nonce=3, deadline=DEADLINE
        )
        tok.approve_by_sig(
            ctx.address, p.owner, p.spender, False, ID + 1, 999, DEADLINE, 3, sign_payload(tok, alice.key, p)
        )

    r = Receiver(action=approve_other_id)
    addr = deploy(host, 0x81, r)
    token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, addr)
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert token.allowance(alice.address, SPENDER, ID + 1) == 999


def test_call_depth_limit_rejects_nested_callback(alice):
    host = Host(timestamp=NOW, config=make_config(max_call_depth=1))
    token = ERC6909XToken(host, TOKEN_ADDR, name="Multi", version="1", minter=MINTER)
    inner = Receiver()
    inner_addr = deploy(host, 0x82, inner)

    def relay_inner(ctx, tok):
        p = _temporary(alice.address, inner_addr, amount=50, nonce=9)
        tok.temporary_approve_and_call_by_sig(
            ctx.address, p.owner, p.spender, p.operator, p.id, p.amount,
            p.target, p.data, p.deadline, p.nonce, sign_payload(tok, alice.key, p),
        )

    outer_addr = deploy(host, 0x83, Receiver(action=relay_inner))
    with pytest.raises(CallbackRejected) as ei:
        token.temporary_approve_and_call(alice.address, SPENDER, False, ID, 100, outer_addr)
    cause = ei.value.data["cause"]
    assert cause["code"] == "CALLBACK_REJECTED"
    assert cause["data"]["cause"]["code"] == "CALL_DEPTH_EXCEEDED"
    assert inner.seen == []
    assert token.allowance(alice.address, SPENDER, ID) == 0
    assert not token.is_nonce_consumed(alice.address, 9)


@settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    before=st.integers(min_value=0, max_value=UINT256_MAX),
    granted=st.integers(min_value=0, max_value=UINT256_MAX),
    ack=st.booleans(),
)
def test_slot_always_returns_to_snapshot(before, granted, ack):
    host = Host(timestamp=NOW, config=make_config())
    token = ERC6909XToken(host, TOKEN_ADDR, name="Multi", version="1", minter=MINTER)
    owner = b"\x0a" * 20
    token.approve(owner, SPENDER, ID, before)
    r = Receiver(ack=TEMPORARY_APPROVE_ACK if ack else b"")
    addr = deploy(host, 0x84, r)
    if ack:
        token.temporary_approve_and_call(owner, SPENDER, False, ID, granted, addr)
    else:
        with pytest.raises(CallbackRejected):
            token.temporary_approve_and_call(owner, SPENDER, False, ID, granted, addr)
    assert r.seen[0].allowance == granted
    assert token.allowance(owner, SPENDER, ID) == before


def test_receivers_satisfy_callback_protocol():
    from erc6909x.interfaces import TemporaryApproveReceiver

    assert isinstance(Receiver(), TemporaryApproveReceiver)
    assert isinstance(RevertingReceiver(), TemporaryApproveReceiver)
    assert not isinstance(object(), TemporaryApproveReceiver)
