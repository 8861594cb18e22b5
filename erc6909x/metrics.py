"""
erc6909x.metrics — Prometheus counters for the authorization engine.

Exposed metrics (names are prefixed with `erc6909x_`):
  - authorizations_total{entrypoint,result}  : Counter — entry-point invocations
  - nonces_consumed_total{reason}            : Counter — nonces moved to consumed
  - callbacks_total{outcome}                 : Counter — temporary-approval callbacks

Labels:
  - entrypoint ∈ {approve_by_sig, temporary_approve_and_call,
                  temporary_approve_and_call_by_sig, invalidate_nonce}
                 plus the base ledger methods (transfer, approve, ...)
  - result     ∈ {success} ∪ {lower-cased error code}
  - reason     ∈ {signature, invalidation}
  - outcome    ∈ {ack, bad_ack, failed}

All metrics live on a private registry (`get_registry()`), so several hosts in
one process and repeated test imports do not collide with the default
registry. Recording is skipped when `EngineConfig.metrics_enabled` is false.

Counts are taken when an entry point returns or raises, not when the
outermost unit of work commits. An entry point re-entered from inside a
temporary-approval callback is counted as `success` when it returns, even
if the enclosing call is later rejected and its state rolled back.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest

from .config import get_config

_PREFIX = "erc6909x_"

_REGISTRY = CollectorRegistry(auto_describe=True)

AUTHORIZATIONS = Counter(
    _PREFIX + "authorizations_total",
    "ERC-6909X entry-point invocations by result (nested calls counted on return)",
    labelnames=("entrypoint", "result"),
    registry=_REGISTRY,
)

NONCES_CONSUMED = Counter(
    _PREFIX + "nonces_consumed_total",
    "Nonces transitioned to consumed",
    labelnames=("reason",),
    registry=_REGISTRY,
)

CALLBACKS = Counter(
    _PREFIX + "callbacks_total",
    "Temporary-approval callbacks by outcome",
    labelnames=("outcome",),
    registry=_REGISTRY,
)


def _enabled() -> bool:
    return get_config().metrics_enabled


def observe_authorization(entrypoint: str, result: str = "success") -> None:
    if _enabled():
        AUTHORIZATIONS.labels(entrypoint=entrypoint, result=result.lower()).inc()


def observe_nonce(reason: str) -> None:
    if _enabled():
        NONCES_CONSUMED.labels(reason=reason).inc()


def observe_callback(outcome: str) -> None:
    if _enabled():
        CALLBACKS.labels(outcome=outcome).inc()


def get_registry() -> CollectorRegistry:
    return _REGISTRY


def generate_latest_text() -> bytes:
    """Prometheus text exposition of the engine registry."""
    return generate_latest(_REGISTRY)


__all__ = [
    "AUTHORIZATIONS",
    "NONCES_CONSUMED",
    "CALLBACKS",
    "observe_authorization",
    "observe_nonce",
    "observe_callback",
    "get_registry",
    "generate_latest_text",
]
