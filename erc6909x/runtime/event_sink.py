"""
erc6909x.runtime.event_sink — in-memory event/log sink.

Records the logs of committed invocations, in emission order, and answers
Ethereum-style filter queries (emitter address + per-position topic
selectors). Logs of reverted invocations never reach the sink: the journal
drops them together with the frame that emitted them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from ..types.events import LogEvent

TopicSelector = Optional[Union[bytes, Sequence[bytes]]]
# Per-position topic filter. None = wildcard; bytes = exact; sequence = OR-of-options.


@dataclass(frozen=True)
class EventRecord:
    """
    A committed event with its execution context.

    block_number : block timestamp-height the host was at when flushed
    log_index    : 0-based, strictly increasing across the sink
    event        : the log itself
    """

    block_number: int
    log_index: int
    event: LogEvent

    @property
    def address(self) -> bytes:
        return self.event.address

    @property
    def topics(self) -> Sequence[bytes]:
        return self.event.topics

    @property
    def name(self) -> str:
        return self.event.name


# =============================================================================
# Filter logic
# =============================================================================


def _topic_pos_matches(value: bytes, selector: TopicSelector) -> bool:
    if selector is None:
        return True
    if isinstance(selector, (bytes, bytearray)):
        return value == bytes(selector)
    return any(value == bytes(c) for c in selector)


def _topics_match(event_topics: Sequence[bytes], selectors: Sequence[TopicSelector]) -> bool:
    if len(selectors) > len(event_topics):
        return False
    return all(_topic_pos_matches(event_topics[i], sel) for i, sel in enumerate(selectors))


def _record_matches(
    rec: EventRecord,
    address: Optional[bytes],
    topics: Optional[Sequence[TopicSelector]],
    name: Optional[str],
) -> bool:
    if address is not None and rec.address != address:
        return False
    if name is not None and rec.name != name:
        return False
    if topics is not None and not _topics_match(rec.topics, topics):
        return False
    return True


# =============================================================================
# In-memory sink
# =============================================================================


class InMemoryEventSink:
    """
    A simple, thread-safe in-memory sink.

    Keeps all logs in RAM; meant for tests, simulations and tooling.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: List[EventRecord] = []

    def append(self, event: LogEvent, *, block_number: int) -> EventRecord:
        with self._lock:
            rec = EventRecord(
                block_number=block_number, log_index=len(self._records), event=event
            )
            self._records.append(rec)
        return rec

    def get_logs(
        self,
        *,
        address: Optional[bytes] = None,
        topics: Optional[Sequence[TopicSelector]] = None,
        name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Iterable[EventRecord]:
        with self._lock:
            snapshot = list(self._records)
        n = 0
        for rec in snapshot:
            if not _record_matches(rec, address, topics, name):
                continue
            yield rec
            n += 1
            if limit is not None and n >= limit:
                break

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


__all__ = ["EventRecord", "TopicSelector", "InMemoryEventSink"]
