"""
erc6909x.types.events — event/log record types.

`LogEvent` is a compact, deterministic container for contract-emitted events,
shaped like an EVM log:

* `address` is the emitter (20 raw bytes).
* `topics[0]` is keccak256 of the event signature; indexed arguments follow,
  each ABI-encoded to 32 bytes.
* `data` is the ABI encoding of the non-indexed arguments.

For readability in tests and logs, the decoded `name` and `args` are carried
along; they do not take part in equality.

`EventABI` describes one event and builds/decodes `LogEvent`s through
`eth_abi`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak, to_canonical_address


def _bytes_to_hex(b: bytes) -> str:
    return "0x" + b.hex()


@dataclass(frozen=True)
class LogEvent:
    """
    A single event/log emitted during execution.

    Attributes:
        address: bytes — emitter address
        topics:  tuple[bytes, ...] — ordered 32-byte topics
        data:    bytes — ABI-encoded non-indexed arguments
        name:    str — event name (informational)
        args:    mapping — decoded arguments (informational)
    """

    address: bytes
    topics: Tuple[bytes, ...]
    data: bytes = b""
    name: str = field(default="", compare=False)
    args: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly mapping using hex strings."""
        return {
            "address": _bytes_to_hex(self.address),
            "topics": [_bytes_to_hex(t) for t in self.topics],
            "data": _bytes_to_hex(self.data),
            "name": self.name,
        }


@dataclass(frozen=True)
class EventABI:
    """
    Event description: `name` plus ordered `(arg_name, abi_type, indexed)` inputs.

        Approval = EventABI("Approval", (("owner", "address", True), ...))
        ev = Approval.build(token_addr, owner=..., spender=..., id=1, amount=5)
    """

    name: str
    inputs: Tuple[Tuple[str, str, bool], ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(t for _, t, _ in self.inputs)})"

    @property
    def topic0(self) -> bytes:
        return keccak(text=self.signature)

    def build(self, address: bytes, **values: Any) -> LogEvent:
        missing = [n for n, _, _ in self.inputs if n not in values]
        if missing:
            raise ValueError(f"{self.name}: missing event args {missing}")
        topics = [self.topic0]
        data_types = []
        data_values = []
        for arg, typ, indexed in self.inputs:
            if indexed:
                topics.append(abi_encode([typ], [values[arg]]))
            else:
                data_types.append(typ)
                data_values.append(values[arg])
        data = abi_encode(data_types, data_values) if data_types else b""
        return LogEvent(
            address=bytes(address),
            topics=tuple(topics),
            data=data,
            name=self.name,
            args={n: values[n] for n, _, _ in self.inputs},
        )

    def matches(self, event: LogEvent) -> bool:
        return bool(event.topics) and event.topics[0] == self.topic0

    def decode(self, event: LogEvent) -> Dict[str, Any]:
        """Decode topics + data back into a name → value mapping."""
        if not self.matches(event):
            raise ValueError(f"log is not a {self.name} event")
        out: Dict[str, Any] = {}
        indexed = [(n, t) for n, t, i in self.inputs if i]
        plain = [(n, t) for n, t, i in self.inputs if not i]
        if len(event.topics) != 1 + len(indexed):
            raise ValueError(f"{self.name}: expected {1 + len(indexed)} topics")
        for (n, t), topic in zip(indexed, event.topics[1:]):
            (out[n],) = abi_decode([t], topic)
        if plain:
            values: Sequence[Any] = abi_decode([t for _, t in plain], event.data)
            for (n, _), v in zip(plain, values):
                out[n] = v
        for n, t, _ in self.inputs:
            if t == "address":
                out[n] = to_canonical_address(out[n])
        return out


__all__ = ["LogEvent", "EventABI"]
