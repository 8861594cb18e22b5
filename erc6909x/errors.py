"""
erc6909x.errors — typed failures of the ERC-6909X authorization engine.

Every entry point communicates failure by raising one of these exceptions.
The host's atomic scope (see `erc6909x.state.journal.Journal.atomic`) turns
any of them into a full revert of the invocation: no journaled write and no
pending event survives.

Hierarchy
---------
ExecError (base)
 ├─ Revert                    : generic contract-triggered revert
 │   ├─ InvalidSignature       : ECDSA/contract verification failed
 │   ├─ NonceAlreadyConsumed   : replay or double invalidation
 │   ├─ DeadlineExpired        : block time is past the signed deadline
 │   ├─ MalformedOperatorRequest : operator=True with non-zero id/amount
 │   ├─ CallbackRejected       : temporary-approval callback failed or bad ack
 │   ├─ ArithmeticOverflow     : amount left the uint256 range
 │   ├─ InsufficientBalance    : ledger debit larger than balance
 │   └─ InsufficientPermission : caller is neither owner, operator nor allowed
 ├─ CallDepthExceeded         : external call nesting beyond the configured limit
 └─ StateConflict             : journal misuse (unbalanced commit/revert)

Notes
-----
* Subclasses of `Revert` are *semantic* failures of a call and map to a
  "REVERT" receipt status; the other classes map to "ERROR".
* Signatures and keys are never placed into `data`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ExecError(Exception):
    """
    Base error.

    Attributes:
        message: Human-readable explanation.
        code:    Stable machine code string (e.g., 'INVALID_SIGNATURE').
        data:    Optional structured details (kept JSON-serializable).
    """
    message: str = "execution error"
    code: str = "EXEC_ERROR"
    data: Optional[Dict[str, Any]] = field(default=None)

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.data:
            return f"{self.code}: {self.message} ({self.data})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict for receipts/logs."""
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


def _merge(data: Optional[Dict[str, Any]], **extra: Any) -> Optional[Dict[str, Any]]:
    d: Dict[str, Any] = {}
    if data:
        d.update(data)
    for k, v in extra.items():
        if v is not None:
            d.setdefault(k, v)
    return d or None


class Revert(ExecError):
    """
    Contract-triggered revert.

    Optional fields:
        reason:       short textual reason.
        return_data:  raw revert payload (stored as hex).
    """
    code_name = "REVERT"

    def __init__(
        self,
        message: str = "reverted",
        *,
        reason: Optional[str] = None,
        return_data: Optional[bytes] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=self.code_name,
            data=_merge(
                data,
                reason=reason,
                return_data=None if return_data is None else return_data.hex(),
            ),
        )


class InvalidSignature(Revert):
    """Signature does not verify for the claimed owner (or wrong `temporary` flavor)."""
    code_name = "INVALID_SIGNATURE"

    def __init__(self, message: str = "invalid signature", *, owner: Optional[str] = None):
        super().__init__(message, data=_merge(None, owner=owner))


class NonceAlreadyConsumed(Revert):
    code_name = "NONCE_ALREADY_CONSUMED"

    def __init__(
        self,
        message: str = "nonce already consumed",
        *,
        owner: Optional[str] = None,
        nonce: Optional[int] = None,
    ):
        # nonces are uint256; keep them as decimal strings for JSON consumers
        super().__init__(
            message, data=_merge(None, owner=owner, nonce=None if nonce is None else str(nonce))
        )


class DeadlineExpired(Revert):
    code_name = "DEADLINE_EXPIRED"

    def __init__(
        self,
        message: str = "signature deadline expired",
        *,
        deadline: Optional[int] = None,
        now: Optional[int] = None,
    ):
        super().__init__(message, data=_merge(None, deadline=deadline, now=now))


class MalformedOperatorRequest(Revert):
    """operator=True requests must carry id == 0 and amount == 0."""
    code_name = "MALFORMED_OPERATOR_REQUEST"

    def __init__(
        self,
        message: str = "operator request must have zero id and amount",
        *,
        id: Optional[int] = None,
        amount: Optional[int] = None,
    ):
        super().__init__(
            message,
            data=_merge(
                None,
                id=None if id is None else str(id),
                amount=None if amount is None else str(amount),
            ),
        )


class CallbackRejected(Revert):
    """
    The temporary-approval target reverted, had no code, or returned
    something other than the acknowledgment selector.
    """
    code_name = "CALLBACK_REJECTED"

    def __init__(
        self,
        message: str = "temporary approval callback rejected",
        *,
        target: Optional[str] = None,
        returned: Optional[bytes] = None,
        cause: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            data=_merge(
                None,
                target=target,
                returned=None if returned is None else returned.hex(),
                cause=cause,
            ),
        )


class ArithmeticOverflow(Revert):
    code_name = "ARITHMETIC_OVERFLOW"

    def __init__(self, message: str = "uint256 overflow", *, value: Optional[int] = None):
        super().__init__(message, data=_merge(None, value=None if value is None else str(value)))


class InsufficientBalance(Revert):
    code_name = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        message: str = "insufficient balance",
        *,
        owner: Optional[str] = None,
        id: Optional[int] = None,
    ):
        super().__init__(message, data=_merge(None, owner=owner, id=None if id is None else str(id)))


class InsufficientPermission(Revert):
    code_name = "INSUFFICIENT_PERMISSION"

    def __init__(
        self,
        message: str = "insufficient permission",
        *,
        spender: Optional[str] = None,
        id: Optional[int] = None,
    ):
        super().__init__(
            message, data=_merge(None, spender=spender, id=None if id is None else str(id))
        )


class CallDepthExceeded(ExecError):
    """External call nesting went beyond `Limits.max_call_depth`."""

    def __init__(self, message: str = "call depth exceeded", *, depth: Optional[int] = None):
        super().__init__(message=message, code="CALL_DEPTH_EXCEEDED", data=_merge(None, depth=depth))


class StateConflict(ExecError):
    """Journal used out of order (e.g. commit without a matching begin)."""

    def __init__(self, message: str = "state conflict", *, data: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="STATE_CONFLICT", data=data)


# -------- helper utilities ---------------------------------------------------


def error_to_receipt_fields(err: ExecError) -> Dict[str, Any]:
    """
    Map an ExecError to canonical receipt-like fields.

    Returns:
        {
          "status": "REVERT" | "ERROR",
          "error":  {code, message, data?}
        }
    """
    status = "REVERT" if isinstance(err, Revert) else "ERROR"
    return {"status": status, "error": err.to_dict()}


__all__ = [
    "ExecError",
    "Revert",
    "InvalidSignature",
    "NonceAlreadyConsumed",
    "DeadlineExpired",
    "MalformedOperatorRequest",
    "CallbackRejected",
    "ArithmeticOverflow",
    "InsufficientBalance",
    "InsufficientPermission",
    "CallDepthExceeded",
    "StateConflict",
    "error_to_receipt_fields",
]
