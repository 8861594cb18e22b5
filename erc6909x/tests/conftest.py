# -*- coding: utf-8 -*-
"""
erc6909x.tests.conftest
=======================

Fixtures for the authorization engine:

- `host`      : a Host pinned to a fixed timestamp and chain id
- `token`     : an ERC6909XToken deployed on `host` with a minter
- `alice`, `bob`, `carol` : deterministic secp256k1 accounts (eth_account)
- `sign`      : sign an ApproveAndCall payload for `token`
- receiver/wallet contract classes used as callback targets

Contracts are plain objects; the host calls them with a CallContext first.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import pytest
from eth_account import Account

from erc6909x.config import load_config
from erc6909x.errors import Revert
from erc6909x.interfaces import ERC1271_MAGIC_VALUE, TEMPORARY_APPROVE_ACK
from erc6909x.runtime.host import CallContext, Host
from erc6909x.signature import EcdsaScheme
from erc6909x.token import ERC6909XToken
from erc6909x.typed_data import ApproveAndCall

NOW = 1_700_000_000
CHAIN_ID = 31337

TOKEN_ADDR = bytes.fromhex("70" * 20)
MINTER = bytes.fromhex("0d" * 20)
SPENDER = bytes.fromhex("5e" * 20)
RELAYER = bytes.fromhex("4e" * 20)


# --- deterministic keys -------------------------------------------------------

def _account(seed: int):
    return Account.from_key(seed.to_bytes(32, "big"))


@dataclass(frozen=True)
class Signer:
    key: bytes
    address: bytes


def _signer(seed: int) -> Signer:
    acct = _account(seed)
    return Signer(key=bytes(acct.key), address=bytes.fromhex(acct.address[2:]))


@pytest.fixture
def alice() -> Signer:
    return _signer(0xA11CE)


@pytest.fixture
def bob() -> Signer:
    return _signer(0xB0B)


@pytest.fixture
def carol() -> Signer:
    return _signer(0xCA201)


# --- host & token ---------------------------------------------------------------

def make_config(**overrides: Any):
    base = {"chain_id": CHAIN_ID, "metrics_enabled": True}
    base.update(overrides)
    return load_config(env={}, overrides=base)


@pytest.fixture
def host() -> Host:
    return Host(timestamp=NOW, config=make_config())


@pytest.fixture
def token(host: Host) -> ERC6909XToken:
    return ERC6909XToken(host, TOKEN_ADDR, name="Multi", version="1", minter=MINTER)


def sign_payload(token: ERC6909XToken, key: bytes, payload: ApproveAndCall) -> bytes:
    signed = Account.sign_message(payload.signable(token.domain_separator), private_key=key)
    return bytes(signed.signature)


@pytest.fixture
def sign(token: ERC6909XToken) -> Callable[[bytes, ApproveAndCall], bytes]:
    def _sign(key: bytes, payload: ApproveAndCall) -> bytes:
        return sign_payload(token, key, payload)

    return _sign


# --- callback targets -----------------------------------------------------------

@dataclass
class Observation:
    owner: bytes
    operator: bool
    id: int
    amount: int
    data: bytes
    sender: bytes
    allowance: int
    is_operator: bool


@dataclass
class Receiver:
    """
    Acknowledging receiver. Records what it saw while the grant was live and
    runs an optional `action(ctx, token)` before returning `ack`.
    """

    spender: bytes = SPENDER
    ack: bytes = TEMPORARY_APPROVE_ACK
    action: Optional[Callable[[CallContext, ERC6909XToken], None]] = None
    seen: List[Observation] = field(default_factory=list)

    def on_temporary_approve(
        self, ctx: CallContext, owner: bytes, operator: bool, id: int, amount: int, data: bytes
    ) -> bytes:
        tok = ctx.host.code_at(ctx.sender)
        self.seen.append(
            Observation(
                owner=owner,
                operator=operator,
                id=id,
                amount=amount,
                data=data,
                sender=ctx.sender,
                allowance=tok.allowance(owner, self.spender, id),
                is_operator=tok.is_operator(owner, self.spender),
            )
        )
        if self.action is not None:
            self.action(ctx, tok)
        return self.ack


class RevertingReceiver:
    def on_temporary_approve(self, ctx, owner, operator, id, amount, data) -> bytes:
        raise Revert("receiver refuses", reason="nope")


class SilentReceiver:
    def on_temporary_approve(self, ctx, owner, operator, id, amount, data) -> None:
        return None


class CrashingReceiver:
    """Callback with a plain Python bug in it."""

    def on_temporary_approve(self, ctx, owner, operator, id, amount, data) -> bytes:
        return {}[data]


@dataclass
class Wallet:
    """ERC-1271 wallet owned by an EOA; accepts any-length blobs whose first 65 bytes are the owner's signature."""

    owner: bytes
    revert: bool = False

    def is_valid_signature(self, ctx: CallContext, digest: bytes, signature: bytes) -> bytes:
        if self.revert:
            raise Revert("wallet offline")
        if EcdsaScheme.recover(digest, signature[:65]) == self.owner:
            return ERC1271_MAGIC_VALUE
        return b"\xff\xff\xff\xff"


class CrashingWallet:
    """ERC-1271 wallet that indexes past the end of short blobs."""

    def is_valid_signature(self, ctx: CallContext, digest: bytes, signature: bytes) -> bytes:
        signature[100]
        return ERC1271_MAGIC_VALUE


def deploy(host: Host, seed: int, contract: Any) -> bytes:
    addr = bytes([seed]) * 20
    host.deploy(addr, contract)
    return addr


@pytest.fixture
def receiver(host: Host) -> Receiver:
    r = Receiver()
    r.address = deploy(host, 0x7A, r)  # type: ignore[attr-defined]
    return r
