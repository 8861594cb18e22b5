# -*- coding: utf-8 -*-
"""
Signature verification for by-signature approvals
=================================================

Two schemes sit behind one contract, `verify(digest, signer, blob) -> bool`:

- **ECDSA** (`EcdsaScheme`): a 65-byte `r || s || v` secp256k1 signature.
  The signer is recovered from the digest and compared to the claimed owner.
- **Contract** (`ContractScheme`): an opaque blob of any length, confirmed by
  the claimed signer itself through ERC-1271
  `isValidSignature(hash, signature) == 0x1626ba7e`, invoked as a static call
  on the host.

Dispatch is by shape, not by a tag field: 65-byte blobs are tried as ECDSA;
any other length goes to the contract scheme. A 65-byte blob that does not
recover to the signer is still offered to the contract scheme when the signer
has code, since smart wallets commonly produce 65-byte signatures.

Verification never raises for a malformed blob. Wrong lengths, `v` outside
{0, 1, 27, 28}, zero or out-of-range `r`/`s`, high-`s` (malleable)
signatures, unrecoverable points and reverting or silent wallets all resolve
to `False`. Callers cannot tell "badly formed" from "wrong".
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .interfaces import ERC1271_MAGIC_VALUE, IS_VALID_SIGNATURE
from .runtime.host import Host, as_address

log = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

ECDSA_SIGNATURE_LENGTH = 65
ZERO_ADDRESS = b"\x00" * 20


class SignatureKind(enum.Enum):
    ECDSA = "ecdsa"
    CONTRACT = "contract"


def classify(blob: bytes) -> SignatureKind:
    return SignatureKind.ECDSA if len(blob) == ECDSA_SIGNATURE_LENGTH else SignatureKind.CONTRACT


def split_signature(blob: bytes) -> Optional[tuple]:
    """
    Split a 65-byte blob into (v, r, s) with v normalized to {27, 28}.
    Returns None if the blob is not a well-formed, low-s signature.
    """
    if len(blob) != ECDSA_SIGNATURE_LENGTH:
        return None
    r = int.from_bytes(blob[0:32], "big")
    s = int.from_bytes(blob[32:64], "big")
    v = blob[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        return None
    if not (0 < r < SECP256K1_N):
        return None
    if not (0 < s <= SECP256K1_HALF_N):
        return None
    return v, r, s


class EcdsaScheme:
    """secp256k1 recovery over the 32-byte EIP-712 digest."""

    @staticmethod
    def recover(digest: bytes, blob: bytes) -> Optional[bytes]:
        parts = split_signature(bytes(blob))
        if parts is None or len(digest) != 32:
            return None
        v, r, s = parts
        try:
            sig = keys.Signature(vrs=(v - 27, r, s))
            pub = sig.recover_public_key_from_msg_hash(bytes(digest))
        except (BadSignature, ValidationError, ValueError):
            return None
        return pub.to_canonical_address()

    def verify(self, digest: bytes, signer: bytes, blob: bytes) -> bool:
        recovered = self.recover(digest, blob)
        return recovered is not None and recovered == signer


class ContractScheme:
    """
    ERC-1271 confirmation by the claimed signer. The call is static: any
    writes the wallet makes are discarded.
    """

    def __init__(self, host: Host, caller: bytes) -> None:
        self._host = host
        self._caller = caller

    def verify(self, digest: bytes, signer: bytes, blob: bytes) -> bool:
        if not self._host.has_code(signer):
            return False
        res = self._host.call(
            self._caller, signer, IS_VALID_SIGNATURE, bytes(digest), bytes(blob), static=True
        )
        if not res.success:
            log.debug(
                "isValidSignature on 0x%s failed: %s",
                signer.hex(),
                res.error.code if res.error else "unknown",
            )
            return False
        return res.return_data == ERC1271_MAGIC_VALUE


class SignatureVerifier:
    """
    Shape-dispatching verifier used by the token.

    Parameters
    ----------
    host : Host
        Needed for the contract scheme's static call.
    caller : bytes
        Address the ERC-1271 call is made from (the token).
    """

    def __init__(self, host: Host, caller: bytes) -> None:
        self.ecdsa = EcdsaScheme()
        self.contract = ContractScheme(host, as_address(caller))

    def verify(self, digest: bytes, signer, blob: bytes) -> bool:
        try:
            signer_b = as_address(signer)
        except ValueError:
            return False
        if signer_b == ZERO_ADDRESS:
            return False
        blob = bytes(blob)
        if classify(blob) is SignatureKind.ECDSA and self.ecdsa.verify(digest, signer_b, blob):
            return True
        return self.contract.verify(digest, signer_b, blob)


__all__ = [
    "SECP256K1_N",
    "SignatureKind",
    "classify",
    "split_signature",
    "EcdsaScheme",
    "ContractScheme",
    "SignatureVerifier",
]
