# -*- coding: utf-8 -*-
"""
EIP-712 typed data for ERC-6909X approvals
==========================================

Every by-signature entry point authenticates the claimed owner against one
structured message:

    ERC6909XApproveAndCall(bool temporary,address owner,address spender,
                           bool operator,uint256 id,uint256 amount,
                           address target,bytes data,uint256 nonce,
                           uint48 deadline)

Field order and types are part of the signing contract; any deviation breaks
signature compatibility with wallets.

The `temporary` discriminator is hashed like every other field, so a signature
produced for `temporaryApproveAndCallBySig` (temporary=true) can never be
replayed against `approveBySig` (temporary=false), and vice versa.

Digest
------
    digest = keccak256(0x19 0x01 || domainSeparator || hashStruct(message))
    hashStruct(m) = keccak256(abi.encode(TYPEHASH, temporary, owner, spender,
                              operator, id, amount, target, keccak256(data),
                              nonce, deadline))

The domain separator is an opaque 32-byte value to this module; the helper
`domain_separator()` computes the standard one for a token
(name, version, chainId, verifyingContract).

Public API
----------
- ApproveAndCall                         -> payload dataclass
- APPROVE_AND_CALL_TYPE, APPROVE_AND_CALL_TYPEHASH
- domain_separator(name, version, chain_id, verifying_contract) -> bytes32
- ApproveAndCall.struct_hash() / .signable(ds) / .digest(ds)
- ApproveAndCall.to_typed_data(name, version, chain_id, verifying_contract) -> dict
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Final

from eth_abi import encode as abi_encode
from eth_account.messages import SignableMessage
from eth_utils import keccak, to_checksum_address

from .runtime.host import as_address

# ------------------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------------------

PRIMARY_TYPE: Final[str] = "ERC6909XApproveAndCall"

APPROVE_AND_CALL_FIELDS: Final = (
    ("temporary", "bool"),
    ("owner", "address"),
    ("spender", "address"),
    ("operator", "bool"),
    ("id", "uint256"),
    ("amount", "uint256"),
    ("target", "address"),
    ("data", "bytes"),
    ("nonce", "uint256"),
    ("deadline", "uint48"),
)

APPROVE_AND_CALL_TYPE: Final[str] = (
    PRIMARY_TYPE + "(" + ",".join(f"{t} {n}" for n, t in APPROVE_AND_CALL_FIELDS) + ")"
)
APPROVE_AND_CALL_TYPEHASH: Final[bytes] = keccak(text=APPROVE_AND_CALL_TYPE)

DOMAIN_FIELDS: Final = (
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
)
DOMAIN_TYPE: Final[str] = "EIP712Domain(" + ",".join(f"{t} {n}" for n, t in DOMAIN_FIELDS) + ")"
DOMAIN_TYPEHASH: Final[bytes] = keccak(text=DOMAIN_TYPE)

ZERO_ADDRESS: Final[bytes] = b"\x00" * 20

U256_MAX: Final[int] = (1 << 256) - 1
U48_MAX: Final[int] = (1 << 48) - 1


def _check_uint(name: str, value: int, hi: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > hi:
        raise ValueError(f"{name} out of range: {value}")
    return value


# ------------------------------------------------------------------------------
# Domain
# ------------------------------------------------------------------------------


def domain_separator(name: str, version: str, chain_id: int, verifying_contract: Any) -> bytes:
    """
    Standard EIP-712 domain separator bound to (name, version, chainId, contract).
    """
    return keccak(
        abi_encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                DOMAIN_TYPEHASH,
                keccak(text=name),
                keccak(text=version),
                _check_uint("chain_id", chain_id, U256_MAX),
                as_address(verifying_contract),
            ],
        )
    )


# ------------------------------------------------------------------------------
# Payload
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class ApproveAndCall:
    """
    The signed payload shared by all by-signature entry points.

    Permanent approvals use `temporary=False`, `target=0x0…0` and `data=b""`.
    Addresses are canonicalized to 20 raw bytes.
    """

    temporary: bool
    owner: bytes
    spender: bytes
    operator: bool
    id: int
    amount: int
    target: bytes
    data: bytes
    nonce: int
    deadline: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "temporary", bool(self.temporary))
        object.__setattr__(self, "operator", bool(self.operator))
        object.__setattr__(self, "owner", as_address(self.owner))
        object.__setattr__(self, "spender", as_address(self.spender))
        object.__setattr__(self, "target", as_address(self.target))
        object.__setattr__(self, "data", bytes(self.data))
        _check_uint("id", self.id, U256_MAX)
        _check_uint("amount", self.amount, U256_MAX)
        _check_uint("nonce", self.nonce, U256_MAX)
        _check_uint("deadline", self.deadline, U48_MAX)

    @classmethod
    def permanent(
        cls,
        *,
        owner: Any,
        spender: Any,
        operator: bool,
        id: int,
        amount: int,
        nonce: int,
        deadline: int,
    ) -> "ApproveAndCall":
        return cls(
            temporary=False,
            owner=owner,
            spender=spender,
            operator=operator,
            id=id,
            amount=amount,
            target=ZERO_ADDRESS,
            data=b"",
            nonce=nonce,
            deadline=deadline,
        )

    # -- hashing ---------------------------------------------------------------

    def struct_hash(self) -> bytes:
        return keccak(
            abi_encode(
                [
                    "bytes32", "bool", "address", "address", "bool", "uint256",
                    "uint256", "address", "bytes32", "uint256", "uint48",
                ],
                [
                    APPROVE_AND_CALL_TYPEHASH,
                    self.temporary,
                    self.owner,
                    self.spender,
                    self.operator,
                    self.id,
                    self.amount,
                    self.target,
                    keccak(self.data),
                    self.nonce,
                    self.deadline,
                ],
            )
        )

    def signable(self, domain_sep: bytes) -> SignableMessage:
        """EIP-191 version 0x01 envelope, ready for `Account.sign_message`."""
        if len(domain_sep) != 32:
            raise ValueError("domain separator must be 32 bytes")
        return SignableMessage(version=b"\x01", header=bytes(domain_sep), body=self.struct_hash())

    def digest(self, domain_sep: bytes) -> bytes:
        """The 32-byte hash that is actually signed."""
        if len(domain_sep) != 32:
            raise ValueError("domain separator must be 32 bytes")
        return keccak(b"\x19\x01" + bytes(domain_sep) + self.struct_hash())

    # -- wallet interop ----------------------------------------------------------

    def message(self) -> Dict[str, Any]:
        return {
            "temporary": self.temporary,
            "owner": to_checksum_address(self.owner),
            "spender": to_checksum_address(self.spender),
            "operator": self.operator,
            "id": self.id,
            "amount": self.amount,
            "target": to_checksum_address(self.target),
            "data": self.data,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }

    def to_typed_data(
        self, name: str, version: str, chain_id: int, verifying_contract: Any
    ) -> Dict[str, Any]:
        """
        Full `eth_signTypedData_v4` document, accepted by
        `eth_account.messages.encode_typed_data(full_message=...)`.
        """
        return {
            "types": {
                "EIP712Domain": [{"name": n, "type": t} for n, t in DOMAIN_FIELDS],
                PRIMARY_TYPE: [{"name": n, "type": t} for n, t in APPROVE_AND_CALL_FIELDS],
            },
            "primaryType": PRIMARY_TYPE,
            "domain": {
                "name": name,
                "version": version,
                "chainId": chain_id,
                "verifyingContract": to_checksum_address(as_address(verifying_contract)),
            },
            "message": self.message(),
        }


__all__ = [
    "PRIMARY_TYPE",
    "APPROVE_AND_CALL_FIELDS",
    "APPROVE_AND_CALL_TYPE",
    "APPROVE_AND_CALL_TYPEHASH",
    "DOMAIN_TYPE",
    "DOMAIN_TYPEHASH",
    "ZERO_ADDRESS",
    "domain_separator",
    "ApproveAndCall",
]
