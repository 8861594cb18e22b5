"""
erc6909x.config — runtime configuration for the ERC-6909X engine.

This module centralizes knobs for:
  • the EIP-712 signing domain (name, version, chain id)
  • limits (external call depth)
  • ambient features (metrics, log level)

Configuration may be provided via environment variables. Safe defaults are chosen so a
local developer run works out of the box.

Environment variables (all optional):
  ERC6909X_NAME            -> EIP-712 domain name (default: "ERC6909X")
  ERC6909X_VERSION         -> EIP-712 domain version (default: "1")
  ERC6909X_CHAIN_ID        -> integer chain id (default: 1)
  ERC6909X_MAX_CALL_DEPTH  -> integer, nesting bound for external calls (default: 1024)
  ERC6909X_LOG_LEVEL       -> logging level name (default: INFO)
  ERC6909X_METRICS         -> 0/1/true/false, record Prometheus metrics (default: 1)

Programmatic usage:
    from erc6909x.config import get_config
    cfg = get_config()
    token = ERC6909XToken(host, address, name=cfg.domain.name, ...)

Note: This module does not perform any I/O beyond reading env vars.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Dict, Mapping, Optional, Union

# ----------------------------- helpers -------------------------------------


_BOOL_TRUE = {"1", "true", "t", "yes", "y", "on"}
_BOOL_FALSE = {"0", "false", "f", "no", "n", "off"}


def _bool_env(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in _BOOL_TRUE:
        return True
    if v in _BOOL_FALSE:
        return False
    # Be forgiving: non-empty → True, empty → default
    return bool(v) if v != "" else default


def _int_env(value: Union[str, int, None], default: int) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    s = value.strip()
    if s == "":
        return default
    return int(s, 16) if s.lower().startswith("0x") else int(s, 10)


# ------------------------------ dataclasses ---------------------------------


@dataclass(frozen=True)
class SigningDomain:
    name: str = "ERC6909X"
    version: str = "1"
    chain_id: int = 1


@dataclass(frozen=True)
class Limits:
    max_call_depth: int = 1024


@dataclass(frozen=True)
class EngineConfig:
    domain: SigningDomain
    limits: Limits
    log_level: str = "INFO"
    metrics_enabled: bool = True

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


# ------------------------------ loader --------------------------------------


def _validate(cfg: EngineConfig) -> EngineConfig:
    if not cfg.domain.name:
        raise ValueError("domain name must not be empty")
    if cfg.domain.chain_id < 0 or cfg.domain.chain_id >= 1 << 256:
        raise ValueError("chain_id must fit uint256")
    if cfg.limits.max_call_depth <= 0:
        raise ValueError("max_call_depth must be > 0")
    if not isinstance(logging.getLevelName(cfg.log_level), int):
        raise ValueError(f"unknown log level: {cfg.log_level!r}")
    return cfg


def load_config(
    env: Optional[Mapping[str, str]] = None,
    *,
    overrides: Optional[Mapping[str, Union[str, int, bool]]] = None,
) -> EngineConfig:
    """
    Build an EngineConfig from environment and optional overrides.

    Args:
        env: mapping to read variables from (default: os.environ)
        overrides: explicit field overrides; keys support:
          'name', 'version', 'chain_id', 'max_call_depth', 'log_level',
          'metrics_enabled'
    """
    env = os.environ if env is None else env
    overrides = dict(overrides or {})

    domain = SigningDomain(
        name=str(overrides.get("name", env.get("ERC6909X_NAME", "ERC6909X"))),
        version=str(overrides.get("version", env.get("ERC6909X_VERSION", "1"))),
        chain_id=_int_env(overrides.get("chain_id", env.get("ERC6909X_CHAIN_ID")), 1),
    )
    limits = Limits(
        max_call_depth=_int_env(
            overrides.get("max_call_depth", env.get("ERC6909X_MAX_CALL_DEPTH")), 1024
        ),
    )
    log_level = str(overrides.get("log_level", env.get("ERC6909X_LOG_LEVEL", "INFO"))).upper()
    if "metrics_enabled" in overrides:
        metrics_enabled = bool(overrides["metrics_enabled"])
    else:
        metrics_enabled = _bool_env(env.get("ERC6909X_METRICS"), True)

    return _validate(
        EngineConfig(
            domain=domain,
            limits=limits,
            log_level=log_level,
            metrics_enabled=metrics_enabled,
        )
    )


@lru_cache(maxsize=1)
def get_config() -> EngineConfig:
    """
    Cached global config. Suitable for application bootstraps and module-level consumers.
    """
    return load_config()


def summary(cfg: Optional[EngineConfig] = None) -> str:
    """
    Return a human-friendly one-line summary of the most important knobs.
    """
    cfg = cfg or get_config()
    d = cfg.domain
    return (
        "erc6909x{"
        f"name={d.name}, version={d.version}, chain={d.chain_id}, "
        f"depth={cfg.limits.max_call_depth}, log={cfg.log_level}, "
        f"metrics={int(cfg.metrics_enabled)}"
        "}"
    )


__all__ = [
    "SigningDomain",
    "Limits",
    "EngineConfig",
    "load_config",
    "get_config",
    "summary",
]
