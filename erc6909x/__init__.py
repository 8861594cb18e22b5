"""
erc6909x — authorization engine for ERC-6909X multi-token contracts.

Temporary (call-scoped) and by-signature approvals over ERC-6909 balances:
a journaled state layer, an EIP-712 signature verifier, an unordered nonce
registry and the temporary-approval orchestrator, composed by
`erc6909x.token.ERC6909XToken` running on an in-process `Host`.

Heavy modules are imported lazily on attribute access.
"""

from __future__ import annotations

from importlib import import_module as _imp
from typing import Any, Dict, Tuple

from .version import __version__, git_describe

_exports: Dict[str, Tuple[str, str]] = {
    "ERC6909XToken": ("token", "ERC6909XToken"),
    "Host": ("runtime.host", "Host"),
    "ApproveAndCall": ("typed_data", "ApproveAndCall"),
    "domain_separator": ("typed_data", "domain_separator"),
    "load_config": ("config", "load_config"),
    "get_config": ("config", "get_config"),
}

__all__ = ("__version__", "git_describe", *_exports.keys())


def __getattr__(name: str) -> Any:
    if name in _exports:
        submod, symbol = _exports[name]
        mod = _imp(f"{__name__}.{submod}")
        return getattr(mod, symbol)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover
    return sorted(list(globals().keys()) + list(__all__))
