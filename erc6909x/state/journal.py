"""
erc6909x.state.journal — journaling writes, checkpoints, revert/commit.

This module provides a deterministic, in-memory write journal layered over a
`StateStore`. It supports nested checkpoints via a stack of overlays. Writes go
to the top overlay; reads consult overlays from top → base. `commit()` merges
the top overlay into the next layer; `revert()` discards the top overlay.

Besides state writes, each overlay stages the event logs emitted while it was
on top. A reverted overlay therefore drops its events together with its
writes, and logs reach the sink only when the outermost scope commits.

Key properties
--------------
- Pure Python, no I/O; safe for unit tests and simulations.
- Per-(namespace, key) staged values; 0 is a staged deletion.
- Nested checkpoints (begin/commit/revert) with O(changes) merge cost.
- `atomic()` wraps one unit of work: commit on normal exit, revert on any
  exception (which is re-raised).

Intended usage
--------------
    j = Journal(StateStore())
    with j.atomic():
        j.set("allowance", (owner, spender, 1), 10)
        j.log(event)
    # committed to the store; `event` delivered to `on_logs`
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from erc6909x.errors import StateConflict

from ..types.events import LogEvent
from .store import Key, StateStore, _canon_key, _canon_value

log = logging.getLogger(__name__)

LogsCallback = Callable[[Sequence[LogEvent]], None]


# =============================================================================
# Overlay model
# =============================================================================


@dataclass
class _Overlay:
    """
    A single journal layer.

    - `writes`: staged values keyed by (namespace, key). 0 means deletion.
    - `logs`:   events emitted while this layer was on top, in order.
    """

    writes: Dict[Tuple[str, Key], int] = field(default_factory=dict)
    logs: List[LogEvent] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.writes or self.logs)


# =============================================================================
# Journal
# =============================================================================


class Journal:
    """
    A copy-on-write write journal with nested checkpoints.

    Parameters
    ----------
    store : StateStore
        The base (persisted) state.
    on_logs : callable, optional
        Receives the logs of the root layer when it is flushed to the base.

    API highlights
    --------------
    - begin() / commit() / revert() / flush()
    - checkpoint() / commit_to(marker) / revert_to(marker)
    - get(), set(), log()
    - atomic() context manager
    """

    def __init__(self, store: StateStore, *, on_logs: Optional[LogsCallback] = None) -> None:
        self._base = store
        self._on_logs = on_logs
        # The root layer collects committed-but-not-flushed changes.
        self._layers: List[_Overlay] = [_Overlay()]

    @property
    def store(self) -> StateStore:
        return self._base

    # --------------------------------------------------------------------- #
    # Checkpointing
    # --------------------------------------------------------------------- #

    def depth(self) -> int:
        """Number of overlays (>= 1)."""
        return len(self._layers)

    def begin(self) -> int:
        """Start a new checkpoint. Returns the new depth marker (int)."""
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> None:
        """Merge the top overlay into its parent."""
        if len(self._layers) < 2:
            raise StateConflict("commit without an open checkpoint")
        top = self._layers.pop()
        self._merge_layers(self._layers[-1], top)

    def revert(self) -> None:
        """Discard the top overlay (or clear it if it's the root)."""
        if len(self._layers) > 1:
            top = self._layers.pop()
        else:
            top = self._layers[0]
            self._layers[0] = _Overlay()
        if not top.is_empty():
            log.debug(
                "journal revert: dropped %d writes, %d logs", len(top.writes), len(top.logs)
            )

    def flush(self) -> None:
        """
        Apply the root layer to the base store and hand its logs to `on_logs`.
        Only valid when no checkpoint is open.
        """
        if len(self._layers) != 1:
            raise StateConflict(
                "flush with open checkpoints", data={"depth": len(self._layers)}
            )
        root = self._layers[0]
        self._layers[0] = _Overlay()
        for (ns, key), value in root.writes.items():
            self._base.set(ns, key, value)
        if root.logs and self._on_logs is not None:
            self._on_logs(tuple(root.logs))

    # Markers for convenience ------------------------------------------------ #

    def checkpoint(self) -> int:
        """Alias for `begin()` returning a marker token (current depth)."""
        return self.begin()

    def commit_to(self, marker: int) -> None:
        """Commit repeatedly until the current depth equals `marker`."""
        if marker < 1:
            raise ValueError("marker must be >= 1")
        while len(self._layers) > marker:
            self.commit()

    def revert_to(self, marker: int) -> None:
        """Revert repeatedly until the current depth equals `marker`."""
        if marker < 1:
            raise ValueError("marker must be >= 1")
        while len(self._layers) > marker:
            self.revert()

    @contextmanager
    def atomic(self) -> Iterator["Journal"]:
        """
        One unit of work. Nested scopes merge into their parent on success;
        the outermost scope also flushes to the base store. Any exception
        reverts everything staged inside the scope and propagates.
        """
        marker = self.depth()
        self.begin()
        try:
            yield self
        except BaseException:
            self.revert_to(marker)
            raise
        self.commit_to(marker)
        if marker == 1:
            self.flush()

    # --------------------------------------------------------------------- #
    # State API
    # --------------------------------------------------------------------- #

    def get(self, namespace: str, key: Key, default: int = 0) -> int:
        """Read with overlay precedence. Returns `default` if absent."""
        k = (namespace, _canon_key(key))
        for layer in reversed(self._layers):
            if k in layer.writes:
                v = layer.writes[k]
                return default if v == 0 else v
        return self._base.get(namespace, key, default)

    def set(self, namespace: str, key: Key, value: int) -> None:
        """Stage a write in the top overlay. Zero is a deletion."""
        self._layers[-1].writes[(namespace, _canon_key(key))] = _canon_value(value)

    def log(self, event: LogEvent) -> None:
        """Stage an event log in the top overlay."""
        self._layers[-1].logs.append(event)

    # --------------------------------------------------------------------- #
    # Internal merge
    # --------------------------------------------------------------------- #

    @staticmethod
    def _merge_layers(dst: _Overlay, src: _Overlay) -> None:
        dst.writes.update(src.writes)
        dst.logs.extend(src.logs)

    # --------------------------------------------------------------------- #
    # Debug/Introspection
    # --------------------------------------------------------------------- #

    def pending_writes(self) -> int:
        """Total number of staged (namespace, key) entries across layers."""
        return sum(len(layer.writes) for layer in self._layers)

    def pending_logs(self) -> Tuple[LogEvent, ...]:
        """Staged (not yet flushed) logs, oldest first."""
        out: List[LogEvent] = []
        for layer in self._layers:
            out.extend(layer.logs)
        return tuple(out)


__all__ = ["Journal"]
