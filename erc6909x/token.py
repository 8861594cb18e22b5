# -*- coding: utf-8 -*-
"""
ERC-6909X token
===============

An ERC-6909 multi-token ledger extended with temporary and by-signature
approvals. Instead of leaving an indefinite approval behind, a holder grants a
right that lives for exactly one external call (`temporary_approve_and_call`),
or signs a typed message that anyone may relay (`approve_by_sig`,
`temporary_approve_and_call_by_sig`).

Entry points
------------
ERC-6909X:
- temporary_approve_and_call(caller, spender, operator, id, amount, target, data) -> True
- temporary_approve_and_call_by_sig(caller, owner, spender, operator, id, amount,
                                    target, data, deadline, nonce, signature) -> True
- approve_by_sig(caller, owner, spender, operator, id, amount, deadline, nonce,
                 signature) -> True
- invalidate_nonce(caller, nonce) -> True

ERC-6909 (base ledger):
- transfer, transfer_from, approve, set_operator, plus minter-only mint/burn
- balance_of, allowance, is_operator, supports_interface

`caller` is the msg.sender of the invocation. Contracts re-entering the token
from a callback pass their own address (`ctx.address`).

Atomicity
---------
Every mutating entry point runs inside `host.atomic()`: any failure (bad
signature, expired deadline, consumed nonce, rejected callback, arithmetic
overflow, ...) raises and discards every write and event of the invocation.
By-signature entry points never succeed on a failed check.

By-signature flow
-----------------
shape checks → deadline (`deadline >= host.timestamp`) → signature over the
EIP-712 digest (temporary flag included) → nonce consumption → mutation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from . import metrics
from .allowances import AuthorizationState, require_operator_shape
from .errors import (
    DeadlineExpired,
    ExecError,
    InsufficientBalance,
    InsufficientPermission,
    InvalidSignature,
)
from .interfaces import (
    APPROVAL,
    ERC165_INTERFACE_ID,
    ERC6909_INTERFACE_ID,
    ERC6909X_INTERFACE_ID,
    OPERATOR_SET,
    TRANSFER,
)
from .nonces import NonceRegistry
from .runtime.host import Host, as_address
from .safe_uint import U48_MAX, require_uint, u256_add, u256_sub
from .signature import SignatureVerifier
from .temporary import TemporaryApprovalOrchestrator
from .typed_data import ApproveAndCall, domain_separator

log = logging.getLogger(__name__)

NS_BALANCE = "balance"
ZERO_ADDRESS = b"\x00" * 20

SUPPORTED_INTERFACES = frozenset(
    {ERC165_INTERFACE_ID, ERC6909_INTERFACE_ID, ERC6909X_INTERFACE_ID}
)


class ERC6909XToken:
    """
    Parameters
    ----------
    host : Host
        Chain host; the token deploys itself at `address`.
    address : bytes | str
        Token address (EIP-712 verifyingContract).
    name, version : str, optional
        EIP-712 domain; default to the configured signing domain.
    minter : bytes | str, optional
        Address allowed to mint; mint is disabled when None.
    """

    def __init__(
        self,
        host: Host,
        address: Any,
        *,
        name: Optional[str] = None,
        version: Optional[str] = None,
        minter: Any = None,
    ) -> None:
        self._host = host
        self.address = as_address(address)
        self.name = host.config.domain.name if name is None else name
        self.version = host.config.domain.version if version is None else version
        self.minter = None if minter is None else as_address(minter)

        self._auth = AuthorizationState(host)
        self._nonces = NonceRegistry(host, self.address)
        self._verifier = SignatureVerifier(host, self.address)
        self.orchestrator = TemporaryApprovalOrchestrator(host, self.address, self._auth)

        self._ds_chain_id: Optional[int] = None
        self._ds: bytes = b""
        host.deploy(self.address, self)

    # ------------------------------------------------------------------ views

    @property
    def host(self) -> Host:
        return self._host

    @property
    def domain_separator(self) -> bytes:
        """EIP-712 domain separator, recomputed if the host's chain id changes."""
        if self._ds_chain_id != self._host.chain_id:
            self._ds = domain_separator(self.name, self.version, self._host.chain_id, self.address)
            self._ds_chain_id = self._host.chain_id
        return self._ds

    def balance_of(self, owner: Any, id: int) -> int:
        return self._host.journal.get(NS_BALANCE, (as_address(owner), require_uint(id, what="id")))

    def allowance(self, owner: Any, spender: Any, id: int) -> int:
        return self._auth.get_allowance(as_address(owner), as_address(spender), id)

    def is_operator(self, owner: Any, spender: Any) -> bool:
        return self._auth.is_operator(as_address(owner), as_address(spender))

    def is_nonce_consumed(self, owner: Any, nonce: int) -> bool:
        return self._nonces.is_consumed(as_address(owner), nonce)

    def supports_interface(self, interface_id: Union[bytes, str]) -> bool:
        if isinstance(interface_id, str):
            s = interface_id[2:] if interface_id.startswith(("0x", "0X")) else interface_id
            try:
                interface_id = bytes.fromhex(s)
            except ValueError:
                return False
        return bytes(interface_id) in SUPPORTED_INTERFACES

    # --------------------------------------------------------------- plumbing

    @contextmanager
    def _entrypoint(self, name: str) -> Iterator[None]:
        try:
            with self._host.atomic():
                yield
        except ExecError as exc:
            metrics.observe_authorization(name, exc.code)
            log.info("%s rejected: %s", name, exc.code)
            raise
        metrics.observe_authorization(name)

    def _set_balance(self, owner: bytes, id: int, amount: int) -> None:
        self._host.journal.set(NS_BALANCE, (owner, id), amount)

    def _move(self, caller: bytes, sender: bytes, receiver: bytes, id: int, amount: int) -> None:
        require_uint(id, what="id")
        require_uint(amount, what="amount")
        if sender != ZERO_ADDRESS:
            bal = self.balance_of(sender, id)
            if bal < amount:
                raise InsufficientBalance(owner="0x" + sender.hex(), id=id)
            self._set_balance(sender, id, u256_sub(bal, amount))
        if receiver != ZERO_ADDRESS:
            self._set_balance(receiver, id, u256_add(self.balance_of(receiver, id), amount))
        self._host.emit(
            TRANSFER.build(
                self.address, caller=caller, sender=sender, receiver=receiver, id=id, amount=amount
            )
        )

    def _accept_signature(self, payload: ApproveAndCall, signature: bytes) -> None:
        now = self._host.timestamp
        if payload.deadline < now:
            raise DeadlineExpired(deadline=payload.deadline, now=now)
        digest = payload.digest(self.domain_separator)
        if not self._verifier.verify(digest, payload.owner, bytes(signature)):
            raise InvalidSignature(owner="0x" + payload.owner.hex())
        self._nonces.consume(payload.owner, payload.nonce)
        metrics.observe_nonce("signature")

    @staticmethod
    def _check_signed_ranges(id: int, amount: int, nonce: int, deadline: int) -> None:
        require_uint(id, what="id")
        require_uint(amount, what="amount")
        require_uint(nonce, what="nonce")
        require_uint(deadline, U48_MAX, what="deadline")

    # ---------------------------------------------------------- ERC-6909 base

    def transfer(self, caller: Any, receiver: Any, id: int, amount: int) -> bool:
        caller_b = as_address(caller)
        with self._entrypoint("transfer"):
            self._move(caller_b, caller_b, as_address(receiver), id, amount)
        return True

    def transfer_from(self, caller: Any, sender: Any, receiver: Any, id: int, amount: int) -> bool:
        caller_b = as_address(caller)
        sender_b = as_address(sender)
        with self._entrypoint("transfer_from"):
            if caller_b != sender_b and not self._auth.is_operator(sender_b, caller_b):
                self._auth.spend_allowance(sender_b, caller_b, id, amount)
            self._move(caller_b, sender_b, as_address(receiver), id, amount)
        return True

    def approve(self, caller: Any, spender: Any, id: int, amount: int) -> bool:
        owner = as_address(caller)
        spender_b = as_address(spender)
        with self._entrypoint("approve"):
            self._auth.set_allowance(owner, spender_b, id, amount)
            self._host.emit(
                APPROVAL.build(self.address, owner=owner, spender=spender_b, id=id, amount=amount)
            )
        return True

    def set_operator(self, caller: Any, spender: Any, approved: bool) -> bool:
        owner = as_address(caller)
        spender_b = as_address(spender)
        with self._entrypoint("set_operator"):
            self._auth.set_operator(owner, spender_b, bool(approved))
            self._host.emit(
                OPERATOR_SET.build(
                    self.address, owner=owner, spender=spender_b, approved=bool(approved)
                )
            )
        return True

    def mint(self, caller: Any, receiver: Any, id: int, amount: int) -> bool:
        caller_b = as_address(caller)
        with self._entrypoint("mint"):
            if self.minter is None or caller_b != self.minter:
                raise InsufficientPermission("caller is not the minter", spender="0x" + caller_b.hex())
            self._move(caller_b, ZERO_ADDRESS, as_address(receiver), id, amount)
        return True

    def burn(self, caller: Any, id: int, amount: int) -> bool:
        caller_b = as_address(caller)
        with self._entrypoint("burn"):
            self._move(caller_b, caller_b, ZERO_ADDRESS, id, amount)
        return True

    # -------------------------------------------------------------- ERC-6909X

    def temporary_approve_and_call(
        self,
        caller: Any,
        spender: Any,
        operator: bool,
        id: int,
        amount: int,
        target: Any,
        data: bytes = b"",
    ) -> bool:
        """Native temporary approval: the caller is the owner."""
        owner = as_address(caller)
        with self._entrypoint("temporary_approve_and_call"):
            require_operator_shape(operator, id, amount)
            require_uint(id, what="id")
            require_uint(amount, what="amount")
            self.orchestrator.run(
                owner, as_address(spender), bool(operator), id, amount, as_address(target), bytes(data)
            )
        return True

    def temporary_approve_and_call_by_sig(
        self,
        caller: Any,
        owner: Any,
        spender: Any,
        operator: bool,
        id: int,
        amount: int,
        target: Any,
        data: bytes,
        deadline: int,
        nonce: int,
        signature: bytes,
    ) -> bool:
        """Temporary approval on behalf of `owner`, authorized by a temporary=true signature."""
        with self._entrypoint("temporary_approve_and_call_by_sig"):
            require_operator_shape(operator, id, amount)
            self._check_signed_ranges(id, amount, nonce, deadline)
            payload = ApproveAndCall(
                temporary=True,
                owner=owner,
                spender=spender,
                operator=operator,
                id=id,
                amount=amount,
                target=target,
                data=data,
                nonce=nonce,
                deadline=deadline,
            )
            self._accept_signature(payload, signature)
            log.debug("temporary approval by signature accepted owner=0x%s", payload.owner.hex())
            self.orchestrator.run(
                payload.owner,
                payload.spender,
                payload.operator,
                payload.id,
                payload.amount,
                payload.target,
                payload.data,
            )
        return True

    def approve_by_sig(
        self,
        caller: Any,
        owner: Any,
        spender: Any,
        operator: bool,
        id: int,
        amount: int,
        deadline: int,
        nonce: int,
        signature: bytes,
    ) -> bool:
        """Permanent approval on behalf of `owner`, authorized by a temporary=false signature."""
        with self._entrypoint("approve_by_sig"):
            require_operator_shape(operator, id, amount)
            self._check_signed_ranges(id, amount, nonce, deadline)
            payload = ApproveAndCall.permanent(
                owner=owner,
                spender=spender,
                operator=operator,
                id=id,
                amount=amount,
                nonce=nonce,
                deadline=deadline,
            )
            self._accept_signature(payload, signature)
            if payload.operator:
                self._auth.set_operator(payload.owner, payload.spender, True)
                self._host.emit(
                    OPERATOR_SET.build(
                        self.address, owner=payload.owner, spender=payload.spender, approved=True
                    )
                )
            else:
                self._auth.set_allowance(payload.owner, payload.spender, payload.id, payload.amount)
                self._host.emit(
                    APPROVAL.build(
                        self.address,
                        owner=payload.owner,
                        spender=payload.spender,
                        id=payload.id,
                        amount=payload.amount,
                    )
                )
            log.info("approval by signature accepted owner=0x%s", payload.owner.hex())
        return True

    def invalidate_nonce(self, caller: Any, nonce: int) -> bool:
        """Burn one of the caller's own nonces so a signed-but-unsubmitted payload dies."""
        owner = as_address(caller)
        with self._entrypoint("invalidate_nonce"):
            self._nonces.invalidate(owner, nonce)
            metrics.observe_nonce("invalidation")
        return True


__all__ = ["ERC6909XToken", "SUPPORTED_INTERFACES", "NS_BALANCE"]
