# -*- coding: utf-8 -*-
"""
Authorization state: allowances and operator grants
===================================================

Pure state container over the host journal:

- allowance  (owner, spender, id) -> uint256   journal namespace "allowance"
- operator   (owner, spender)     -> bool      journal namespace "operator"

`GrantKey` names one entry of either table, which lets the temporary-approval
orchestrator snapshot and restore a grant without caring which table it lives
in.

The container does not know whether `id`/`amount` of an operator request are
meaningful; callers enforce `operator ⇒ id == 0 and amount == 0` through
`require_operator_shape()` before touching state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .errors import InsufficientPermission, MalformedOperatorRequest
from .runtime.host import Host
from .safe_uint import U256_MAX, require_uint, u256_sub

NS_ALLOWANCE: Final[str] = "allowance"
NS_OPERATOR: Final[str] = "operator"


def require_operator_shape(operator: bool, id: int, amount: int) -> None:
    """Operator grants cover every id; a non-zero id or amount is a malformed request."""
    if operator and (id != 0 or amount != 0):
        raise MalformedOperatorRequest(id=id, amount=amount)


@dataclass(frozen=True)
class GrantKey:
    """One allowance slot (operator=False) or one operator slot (operator=True, id=0)."""

    owner: bytes
    spender: bytes
    operator: bool
    id: int = 0

    def describe(self) -> str:
        if self.operator:
            return f"operator(0x{self.owner.hex()},0x{self.spender.hex()})"
        return f"allowance(0x{self.owner.hex()},0x{self.spender.hex()},{self.id})"


class AuthorizationState:
    def __init__(self, host: Host) -> None:
        self._host = host

    # -- allowance -------------------------------------------------------------

    def get_allowance(self, owner: bytes, spender: bytes, id: int) -> int:
        return self._host.journal.get(NS_ALLOWANCE, (owner, spender, require_uint(id, what="id")))

    def set_allowance(self, owner: bytes, spender: bytes, id: int, amount: int) -> None:
        require_uint(id, what="id")
        require_uint(amount, what="amount")
        self._host.journal.set(NS_ALLOWANCE, (owner, spender, id), amount)

    def spend_allowance(self, owner: bytes, spender: bytes, id: int, amount: int) -> None:
        """
        Debit `amount` from the allowance; an infinite allowance (U256_MAX)
        is left untouched.
        """
        current = self.get_allowance(owner, spender, id)
        if current == U256_MAX:
            return
        if current < amount:
            raise InsufficientPermission(spender="0x" + spender.hex(), id=id)
        self.set_allowance(owner, spender, id, u256_sub(current, amount))

    # -- operator --------------------------------------------------------------

    def is_operator(self, owner: bytes, spender: bytes) -> bool:
        return self._host.journal.get(NS_OPERATOR, (owner, spender)) != 0

    def set_operator(self, owner: bytes, spender: bytes, approved: bool) -> None:
        self._host.journal.set(NS_OPERATOR, (owner, spender), 1 if approved else 0)

    # -- generic slot access (snapshot/restore) ---------------------------------

    def read(self, key: GrantKey) -> int:
        if key.operator:
            return int(self.is_operator(key.owner, key.spender))
        return self.get_allowance(key.owner, key.spender, key.id)

    def write(self, key: GrantKey, value: int) -> None:
        if key.operator:
            self.set_operator(key.owner, key.spender, bool(value))
        else:
            self.set_allowance(key.owner, key.spender, key.id, value)


__all__ = [
    "NS_ALLOWANCE",
    "NS_OPERATOR",
    "GrantKey",
    "AuthorizationState",
    "require_operator_shape",
]
