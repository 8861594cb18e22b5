"""
erc6909x.runtime.host — in-process chain host for ERC-6909X contracts.

The host plays the role the chain plays for a deployed token:

- a block clock (`timestamp`, `block_number`) used for deadline checks
- a registry of deployed contracts (`deploy`, `code_at`)
- the journaled state (`journal`) and an `atomic()` unit of work
- the external-call boundary (`call`) through which the token reaches
  untrusted code (temporary-approval receivers, ERC-1271 wallets)
- the committed event log (`sink`)

External-call semantics
-----------------------
`call(sender, target, method, *args)` mirrors an EVM message call:

* a target without a deployed contract succeeds with empty return data;
* the callee runs in its own checkpoint and receives a `CallContext`
  (`host`, `sender`, `address`, `depth`) as its first argument;
* any exception raised by the callee becomes a failed `CallResult` and its
  writes are reverted. An `ExecError` is returned as is; other exceptions
  are wrapped in a `Revert` naming the exception type. Only
  `KeyboardInterrupt`, `SystemExit` and other non-`Exception` signals
  propagate;
* nesting is bounded by `Limits.max_call_depth`;
* `static=True` discards every write the callee made, even on success.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from eth_utils import to_canonical_address

from ..config import EngineConfig, get_config
from ..errors import CallDepthExceeded, ExecError, Revert
from ..state.journal import Journal
from ..state.store import StateStore
from ..types.events import LogEvent
from .event_sink import InMemoryEventSink

log = logging.getLogger(__name__)


def as_address(value: Any) -> bytes:
    """Coerce a 0x-hex string or 20 raw bytes into a canonical 20-byte address."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        b = bytes(value)
        if len(b) != 20:
            raise ValueError(f"address must be 20 bytes (got {len(b)})")
        return b
    return to_canonical_address(value)


@dataclass(frozen=True)
class CallContext:
    """What a callee sees about the call it is serving (msg.sender & co)."""

    host: "Host"
    sender: bytes
    address: bytes
    depth: int


@dataclass(frozen=True)
class CallResult:
    """
    Outcome of an external call.

    success     : False when the callee reverted or the call could not be made
    return_data : bytes returned by the callee (b"" for no/non-bytes output)
    value       : the raw Python return value (for non-bytes returns)
    error       : the ExecError that failed the call, if any
    """

    success: bool
    return_data: bytes = b""
    value: Any = None
    error: Optional[ExecError] = None


class Host:
    """
    Deterministic in-memory host.

    Parameters
    ----------
    timestamp : int, optional
        Initial block timestamp (epoch seconds). Defaults to wall clock.
    chain_id : int, optional
        Overrides the configured chain id.
    config : EngineConfig, optional
        Defaults to `get_config()`.
    store : StateStore, optional
        Pre-populated base state.
    """

    def __init__(
        self,
        *,
        timestamp: Optional[int] = None,
        chain_id: Optional[int] = None,
        config: Optional[EngineConfig] = None,
        store: Optional[StateStore] = None,
    ) -> None:
        self.config = config or get_config()
        self.chain_id = self.config.domain.chain_id if chain_id is None else int(chain_id)
        self.sink = InMemoryEventSink()
        self.journal = Journal(store if store is not None else StateStore(), on_logs=self._deliver)
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self._block_number = 1
        self._contracts: Dict[bytes, Any] = {}
        self._depth = 0

    # ------------------------------------------------------------------ clock

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def block_number(self) -> int:
        return self._block_number

    def advance(self, seconds: int = 12, *, blocks: int = 1) -> int:
        """Move the clock forward; returns the new timestamp."""
        if seconds < 0 or blocks < 0:
            raise ValueError("cannot move the clock backwards")
        self._timestamp += int(seconds)
        self._block_number += int(blocks)
        return self._timestamp

    # -------------------------------------------------------------- contracts

    def deploy(self, address: Any, contract: Any) -> bytes:
        addr = as_address(address)
        if addr in self._contracts:
            raise ValueError(f"address already has code: 0x{addr.hex()}")
        self._contracts[addr] = contract
        log.debug("deployed %s at 0x%s", type(contract).__name__, addr.hex())
        return addr

    def code_at(self, address: Any) -> Optional[Any]:
        return self._contracts.get(as_address(address))

    def has_code(self, address: Any) -> bool:
        return self.code_at(address) is not None

    # ------------------------------------------------------------------ state

    @contextmanager
    def atomic(self) -> Iterator[Journal]:
        with self.journal.atomic() as j:
            yield j

    def emit(self, event: LogEvent) -> None:
        self.journal.log(event)

    def _deliver(self, logs: Any) -> None:
        for ev in logs:
            self.sink.append(ev, block_number=self._block_number)

    # ------------------------------------------------------------ call boundary

    @property
    def depth(self) -> int:
        return self._depth

    def call(
        self,
        sender: Any,
        target: Any,
        method: str,
        *args: Any,
        static: bool = False,
    ) -> CallResult:
        sender_b = as_address(sender)
        target_b = as_address(target)
        contract = self._contracts.get(target_b)
        if contract is None:
            return CallResult(success=True)

        if self._depth >= self.config.limits.max_call_depth:
            log.info("call depth %d reached calling 0x%s", self._depth, target_b.hex())
            return CallResult(success=False, error=CallDepthExceeded(depth=self._depth))

        fn = getattr(contract, method, None)
        if not callable(fn):
            return CallResult(
                success=False,
                error=Revert("function not found", reason=method, data={"target": target_b.hex()}),
            )

        ctx = CallContext(host=self, sender=sender_b, address=target_b, depth=self._depth + 1)
        marker = self.journal.depth()
        self.journal.begin()
        self._depth += 1
        try:
            out = fn(ctx, *args)
        except ExecError as exc:
            self.journal.revert_to(marker)
            log.debug("call to 0x%s.%s failed: %s", target_b.hex(), method, exc.code)
            return CallResult(success=False, error=exc)
        except Exception as exc:
            self.journal.revert_to(marker)
            log.info(
                "call to 0x%s.%s raised %s: %s", target_b.hex(), method, type(exc).__name__, exc
            )
            return CallResult(
                success=False,
                error=Revert("callee raised", reason=type(exc).__name__, data={"target": target_b.hex()}),
            )
        except BaseException:
            self.journal.revert_to(marker)
            raise
        finally:
            self._depth -= 1

        if static:
            self.journal.revert_to(marker)
        else:
            self.journal.commit_to(marker)
            if marker == 1:
                self.journal.flush()

        if isinstance(out, (bytes, bytearray, memoryview)):
            return CallResult(success=True, return_data=bytes(out), value=out)
        return CallResult(success=True, value=out)


__all__ = ["Host", "CallContext", "CallResult", "as_address"]
