"""
erc6909x.interfaces — fixed ABI surface of an ERC-6909X token.

Constants
---------
- TEMPORARY_APPROVE_ACK   : bytes4 a temporary-approval receiver must return
- ERC1271_MAGIC_VALUE     : bytes4 an ERC-1271 wallet returns for a valid signature
- ERC165_INTERFACE_ID, ERC6909_INTERFACE_ID, ERC6909X_INTERFACE_ID

Events
------
Transfer, Approval, OperatorSet (ERC-6909) and NonceInvalidation (ERC-6909X).

Callee protocols
----------------
Contracts deployed on the host are plain Python objects. The host calls them
by method name with a `CallContext` as first argument; the two callee shapes
the token relies on are described by `TemporaryApproveReceiver` and
`SignatureValidator`.
"""

from __future__ import annotations

from functools import reduce
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from eth_utils import function_signature_to_4byte_selector

from .types.events import EventABI

if TYPE_CHECKING:  # pragma: no cover
    from .runtime.host import CallContext


def selector(signature: str) -> bytes:
    """4-byte function selector of a canonical Solidity signature."""
    return function_signature_to_4byte_selector(signature)


# ------------------------------------------------------------------------------
# Callback / wallet constants
# ------------------------------------------------------------------------------

ON_TEMPORARY_APPROVE_SIG: Final[str] = "onTemporaryApprove(address,bool,uint256,uint256,bytes)"
TEMPORARY_APPROVE_ACK: Final[bytes] = bytes.fromhex("b74de3da")

ERC1271_MAGIC_VALUE: Final[bytes] = bytes.fromhex("1626ba7e")

# Python method names the host dispatches to
ON_TEMPORARY_APPROVE: Final[str] = "on_temporary_approve"
IS_VALID_SIGNATURE: Final[str] = "is_valid_signature"


# ------------------------------------------------------------------------------
# Interface ids (ERC-165)
# ------------------------------------------------------------------------------

ERC6909X_FUNCTIONS: Final = (
    "temporaryApproveAndCall(address,bool,uint256,uint256,address,bytes)",
    "temporaryApproveAndCallBySig(address,address,bool,uint256,uint256,address,bytes,uint48,uint256,bytes)",
    "approveBySig(address,address,bool,uint256,uint256,uint48,uint256,bytes)",
)


def interface_id(signatures) -> bytes:
    """XOR of the selectors, as Solidity's `type(I).interfaceId`."""
    acc = reduce(
        lambda a, s: a ^ int.from_bytes(selector(s), "big"), signatures, 0
    )
    return acc.to_bytes(4, "big")


ERC165_INTERFACE_ID: Final[bytes] = bytes.fromhex("01ffc9a7")
ERC6909_INTERFACE_ID: Final[bytes] = bytes.fromhex("0f632fb3")
ERC6909X_INTERFACE_ID: Final[bytes] = interface_id(ERC6909X_FUNCTIONS)


# ------------------------------------------------------------------------------
# Events
# ------------------------------------------------------------------------------

TRANSFER = EventABI(
    "Transfer",
    (
        ("caller", "address", False),
        ("sender", "address", True),
        ("receiver", "address", True),
        ("id", "uint256", True),
        ("amount", "uint256", False),
    ),
)

APPROVAL = EventABI(
    "Approval",
    (
        ("owner", "address", True),
        ("spender", "address", True),
        ("id", "uint256", True),
        ("amount", "uint256", False),
    ),
)

OPERATOR_SET = EventABI(
    "OperatorSet",
    (
        ("owner", "address", True),
        ("spender", "address", True),
        ("approved", "bool", False),
    ),
)

NONCE_INVALIDATION = EventABI(
    "NonceInvalidation",
    (
        ("owner", "address", True),
        ("nonce", "uint256", True),
    ),
)


# ------------------------------------------------------------------------------
# Callee protocols
# ------------------------------------------------------------------------------


@runtime_checkable
class TemporaryApproveReceiver(Protocol):
    def on_temporary_approve(
        self,
        ctx: "CallContext",
        owner: bytes,
        operator: bool,
        id: int,
        amount: int,
        data: bytes,
    ) -> bytes:
        """Runs while the grant is live; must return TEMPORARY_APPROVE_ACK."""
        ...


@runtime_checkable
class SignatureValidator(Protocol):
    def is_valid_signature(self, ctx: "CallContext", digest: bytes, signature: bytes) -> bytes:
        """Return ERC1271_MAGIC_VALUE when `signature` is valid for `digest`."""
        ...


__all__ = [
    "selector",
    "interface_id",
    "ON_TEMPORARY_APPROVE_SIG",
    "TEMPORARY_APPROVE_ACK",
    "ERC1271_MAGIC_VALUE",
    "ON_TEMPORARY_APPROVE",
    "IS_VALID_SIGNATURE",
    "ERC6909X_FUNCTIONS",
    "ERC165_INTERFACE_ID",
    "ERC6909_INTERFACE_ID",
    "ERC6909X_INTERFACE_ID",
    "TRANSFER",
    "APPROVAL",
    "OPERATOR_SET",
    "NONCE_INVALIDATION",
    "TemporaryApproveReceiver",
    "SignatureValidator",
]
