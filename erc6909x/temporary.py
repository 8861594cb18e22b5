# -*- coding: utf-8 -*-
"""
Temporary-approval orchestrator
===============================

Grants a right for the duration of one external call and takes it back
before returning, on every exit path.

State machine (per invocation)
------------------------------

    IDLE → GRANTING → CALLBACK_PENDING → RESTORING → IDLE
                 ↘ REVERTED   (any failure; the enclosing atomic scope
                              discards the whole invocation)

1. GRANTING: check the operator shape, snapshot the current slot value,
   write the temporary grant.
2. CALLBACK_PENDING: call `on_temporary_approve(owner, operator, id, amount,
   data)` on the target through the host's call boundary. This is the only
   point where control leaves the token; the target may re-enter any entry
   point, including another temporary approval on the same slot.
3. The call must succeed and return exactly `TEMPORARY_APPROVE_ACK`
   (0xb74de3da). A revert, empty return data (no code at target), any other
   value or an exceeded call depth raises `CallbackRejected`.
4. RESTORING: the slot is written back to the snapshot, unconditionally, in a
   `finally` block.

Snapshots are kept on an explicit stack per slot, so nested temporary
approvals of the same slot restore innermost-first. A *permanent* change to
the same slot made reentrantly during the callback is overwritten by the
outer restoration; restoring to the snapshot (not to zero) keeps legitimate
interleavings on other slots intact.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from . import metrics
from .allowances import AuthorizationState, GrantKey, require_operator_shape
from .errors import CallbackRejected
from .interfaces import ON_TEMPORARY_APPROVE, TEMPORARY_APPROVE_ACK
from .runtime.host import Host

log = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "idle"
    GRANTING = "granting"
    CALLBACK_PENDING = "callback_pending"
    RESTORING = "restoring"
    REVERTED = "reverted"


@dataclass
class TemporaryApproval:
    """One in-flight temporary grant and the value it must restore."""

    key: GrantKey
    snapshot: int
    granted: int
    target: bytes
    phase: Phase = Phase.IDLE


class TemporaryApprovalOrchestrator:
    """
    Parameters
    ----------
    host : Host
        Call boundary and journal.
    token : bytes
        Address the callback is made from (msg.sender seen by the target).
    state : AuthorizationState
        Slots being granted and restored.
    """

    def __init__(self, host: Host, token: bytes, state: AuthorizationState) -> None:
        self._host = host
        self._token = token
        self._state = state
        self._stacks: Dict[GrantKey, List[TemporaryApproval]] = {}

    def in_flight(self, key: GrantKey) -> Tuple[TemporaryApproval, ...]:
        """Grants currently live on `key`, outermost first."""
        return tuple(self._stacks.get(key, ()))

    def active_count(self) -> int:
        return sum(len(s) for s in self._stacks.values())

    def run(
        self,
        owner: bytes,
        spender: bytes,
        operator: bool,
        id: int,
        amount: int,
        target: bytes,
        data: bytes,
    ) -> None:
        require_operator_shape(operator, id, amount)
        key = GrantKey(owner=owner, spender=spender, operator=operator, id=0 if operator else id)
        rec = TemporaryApproval(
            key=key,
            snapshot=self._state.read(key),
            granted=1 if operator else amount,
            target=target,
            phase=Phase.GRANTING,
        )
        stack = self._stacks.setdefault(key, [])
        stack.append(rec)
        try:
            self._state.write(key, rec.granted)
            rec.phase = Phase.CALLBACK_PENDING
            self._invoke(rec, owner, operator, id, amount, data)
        except BaseException:
            rec.phase = Phase.REVERTED
            raise
        finally:
            if rec.phase is not Phase.REVERTED:
                rec.phase = Phase.RESTORING
            self._state.write(key, rec.snapshot)
            stack.pop()
            if not stack:
                del self._stacks[key]
            if rec.phase is Phase.RESTORING:
                rec.phase = Phase.IDLE

    def _invoke(
        self,
        rec: TemporaryApproval,
        owner: bytes,
        operator: bool,
        id: int,
        amount: int,
        data: bytes,
    ) -> None:
        target_hex = "0x" + rec.target.hex()
        res = self._host.call(
            self._token, rec.target, ON_TEMPORARY_APPROVE, owner, operator, id, amount, data
        )
        if not res.success:
            metrics.observe_callback("failed")
            log.info("temporary approval callback failed target=%s", target_hex)
            raise CallbackRejected(
                "temporary approval callback failed",
                target=target_hex,
                cause=res.error.to_dict() if res.error is not None else None,
            )
        if res.return_data != TEMPORARY_APPROVE_ACK:
            metrics.observe_callback("bad_ack")
            log.info("temporary approval callback returned a bad ack target=%s", target_hex)
            raise CallbackRejected(target=target_hex, returned=res.return_data)
        metrics.observe_callback("ack")
        log.debug("temporary approval acknowledged %s", rec.key.describe())


__all__ = ["Phase", "TemporaryApproval", "TemporaryApprovalOrchestrator"]
