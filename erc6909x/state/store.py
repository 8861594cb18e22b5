"""
erc6909x.state.store — namespaced key/value store for token state

A minimal, deterministic store keyed by a namespace (`str`, e.g. "allowance")
and a tuple key (e.g. `(owner, spender, id)`) with unsigned integer values.
Booleans are stored as 0/1.

Design goals
------------
- Pure Python, no I/O; deterministic semantics.
- Canonicalization: tuple keys are stored as immutable tuples of `bytes`/`int`.
- "Zero means absent": storing 0 deletes the key (canonical form), so an
  allowance restored to 0 leaves no residue behind.
- Values are range-checked against uint256.

Typical usage
-------------
    st = StateStore()
    st.set("allowance", (owner, spender, 3), 100)
    st.get("allowance", (owner, spender, 3))   # 100
    st.set("allowance", (owner, spender, 3), 0)
    st.has("allowance", (owner, spender, 3))   # False

Higher layers (the journal) are stacked on top without changing this API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple

UINT256_MAX = (1 << 256) - 1

Key = Tuple[Any, ...]


# ------------------------------- helpers -------------------------------------


def _canon_key(key: Key) -> Key:
    if not isinstance(key, tuple):
        raise TypeError("state key must be a tuple")
    out = []
    for part in key:
        if isinstance(part, (bytes, bytearray, memoryview)):
            out.append(bytes(part))
        elif isinstance(part, bool):
            out.append(int(part))
        elif isinstance(part, int):
            out.append(part)
        else:
            raise TypeError(f"unsupported key part type: {type(part).__name__}")
    return tuple(out)


def _canon_value(value: int) -> int:
    if isinstance(value, bool):
        return int(value)
    if not isinstance(value, int):
        raise TypeError("state value must be an int")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"state value out of uint256 range: {value}")
    return value


# ------------------------------- StateStore ----------------------------------


@dataclass
class StateStore:
    """
    A namespaced integer store.

    Parameters
    ----------
    backend :
        Optional external mapping to store state. If not provided, an internal
        dict is used. The shape is {namespace: {key_tuple: value}}.
    """
    backend: Optional[MutableMapping[str, Dict[Key, int]]] = None

    _store: MutableMapping[str, Dict[Key, int]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._store = self.backend if self.backend is not None else {}

    # ------------------------------ core ops --------------------------------

    def get(self, namespace: str, key: Key, default: int = 0) -> int:
        """Return the value for (namespace, key), or `default` if absent."""
        return self._store.get(namespace, {}).get(_canon_key(key), default)

    def has(self, namespace: str, key: Key) -> bool:
        return _canon_key(key) in self._store.get(namespace, {})

    def set(self, namespace: str, key: Key, value: int) -> None:
        """Set value for (namespace, key). Zero deletes the key (canonical)."""
        k = _canon_key(key)
        v = _canon_value(value)
        if v == 0:
            self.delete(namespace, k)
            return
        bucket = self._store.get(namespace)
        if bucket is None:
            bucket = {}
            self._store[namespace] = bucket
        bucket[k] = v

    def delete(self, namespace: str, key: Key) -> bool:
        """Delete (namespace, key). Returns True if a key existed and was removed."""
        bucket = self._store.get(namespace)
        if bucket is None:
            return False
        removed = bucket.pop(_canon_key(key), None) is not None
        if not bucket:
            # Drop empty namespace bucket to keep memory tidy
            self._store.pop(namespace, None)
        return removed

    # ------------------------------ iteration -------------------------------

    def items(self, namespace: str) -> Iterator[Tuple[Key, int]]:
        """Iterate (key, value) pairs of a namespace in a stable (sorted) order."""
        bucket = self._store.get(namespace, {})
        for k in sorted(bucket.keys(), key=repr):
            yield k, bucket[k]

    def namespaces(self) -> Iterator[str]:
        yield from sorted(self._store.keys())

    # ------------------------------ diagnostics -----------------------------

    def total_keys(self) -> int:
        """Total number of keys across all namespaces."""
        return sum(len(b) for b in self._store.values())

    def export(self) -> Dict[str, Dict[str, str]]:
        """
        Export as {namespace: {key_repr: decimal_value}}; handy for debugging and
        for comparing two stores in tests.
        """
        out: Dict[str, Dict[str, str]] = {}
        for ns in self.namespaces():
            out[ns] = {
                ":".join(p.hex() if isinstance(p, bytes) else str(p) for p in k): str(v)
                for k, v in self.items(ns)
            }
        return out

    def __repr__(self) -> str:  # pragma: no cover (human-only)
        return f"StateStore(namespaces={len(self._store)}, total_keys={self.total_keys()})"


__all__ = ["StateStore", "UINT256_MAX", "Key"]
