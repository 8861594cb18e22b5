"""erc6909x.types — small value types shared across the engine."""

from __future__ import annotations

from .events import EventABI, LogEvent

__all__ = ["EventABI", "LogEvent"]
