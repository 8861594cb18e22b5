"""
erc6909x.state — journaled token state (store + journal).

- store:    namespaced uint256 key/value store ("zero means absent")
- journal:  nested checkpoints, atomic units of work, staged event logs
"""

from __future__ import annotations

from .journal import Journal
from .store import UINT256_MAX, StateStore

__all__ = ["Journal", "StateStore", "UINT256_MAX"]
