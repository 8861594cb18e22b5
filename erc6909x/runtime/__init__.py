"""
erc6909x.runtime — host environment the token runs in.

- host:        clock, contract registry, external-call boundary, atomic scopes
- event_sink:  committed event log with filter queries
"""

from __future__ import annotations

from .event_sink import EventRecord, InMemoryEventSink
from .host import CallContext, CallResult, Host, as_address

__all__ = ["Host", "CallContext", "CallResult", "as_address", "EventRecord", "InMemoryEventSink"]
