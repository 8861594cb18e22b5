# -*- coding: utf-8 -*-
"""
Unordered nonce registry
========================

Replay protection for by-signature approvals. A nonce is any uint256 the
signer picks; the registry only remembers which `(owner, nonce)` pairs have
been used. There is no sequencing, so one owner can keep many signatures in
flight at once (e.g. delegations to several protocols) and each is
independently usable or cancellable.

State & events
--------------
- Consumed set: journal namespace "nonce", key (owner, nonce) -> 1
- Every transition to consumed emits `NonceInvalidation(owner, nonce)`,
  whether caused by an accepted signature or by an explicit invalidation.

Consumption is monotonic: a pair never leaves the set. Because writes go
through the host journal, a consumption made inside an invocation that later
reverts is discarded with it; only committed consumptions are permanent.

Public API
----------
- is_consumed(owner, nonce) -> bool
- consume(owner, nonce)       (raises NonceAlreadyConsumed)
- invalidate(owner, nonce)    (raises NonceAlreadyConsumed; not idempotent)
- random_nonce() -> int       (recommended way for signers to pick a nonce)
"""

from __future__ import annotations

import logging
import secrets
from typing import Final

from .errors import ArithmeticOverflow, NonceAlreadyConsumed
from .interfaces import NONCE_INVALIDATION
from .runtime.host import Host

log = logging.getLogger(__name__)

NS_NONCE: Final[str] = "nonce"
U256_MAX: Final[int] = (1 << 256) - 1


def random_nonce() -> int:
    """A uniformly random 256-bit nonce."""
    return secrets.randbits(256)


def _check_nonce(nonce: int) -> int:
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise TypeError("nonce must be an int")
    if nonce < 0 or nonce > U256_MAX:
        raise ArithmeticOverflow("nonce out of uint256 range", value=nonce)
    return nonce


class NonceRegistry:
    """
    Consumed-nonce set for one token.

    Parameters
    ----------
    host : Host
        Provides the journal and event emission.
    token : bytes
        Emitter address for NonceInvalidation logs.
    """

    def __init__(self, host: Host, token: bytes) -> None:
        self._host = host
        self._token = token

    def is_consumed(self, owner: bytes, nonce: int) -> bool:
        return self._host.journal.get(NS_NONCE, (owner, _check_nonce(nonce))) != 0

    def _mark(self, owner: bytes, nonce: int) -> None:
        nonce = _check_nonce(nonce)
        key = (owner, nonce)
        if self._host.journal.get(NS_NONCE, key) != 0:
            raise NonceAlreadyConsumed(owner="0x" + owner.hex(), nonce=nonce)
        self._host.journal.set(NS_NONCE, key, 1)
        self._host.emit(NONCE_INVALIDATION.build(self._token, owner=owner, nonce=nonce))

    def consume(self, owner: bytes, nonce: int) -> None:
        """Check-and-mark for an accepted signature."""
        self._mark(owner, nonce)
        log.debug("nonce consumed owner=0x%s", owner.hex())

    def invalidate(self, owner: bytes, nonce: int) -> None:
        """Owner-initiated burn of a nonce that was never used."""
        self._mark(owner, nonce)
        log.info("nonce invalidated owner=0x%s", owner.hex())


__all__ = ["NS_NONCE", "NonceRegistry", "random_nonce"]
