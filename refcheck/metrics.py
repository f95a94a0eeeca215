"""In-process counters and timings for gateway calls and form submissions."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

_COUNTERS: Dict[str, int] = defaultdict(int)
_TIMINGS: Dict[str, List[float]] = defaultdict(list)


def incr(name: str, amount: int = 1) -> None:
    _COUNTERS[name] += amount


def timing(name: str, duration_seconds: float) -> None:
    _TIMINGS[name].append(duration_seconds)


def reset() -> None:
    _COUNTERS.clear()
    _TIMINGS.clear()


def snapshot() -> Dict[str, object]:
    return {
        "counters": dict(_COUNTERS),
        "timings": {
            k: {"count": len(v), "p50_ms": _percentile_ms(v, 50), "p95_ms": _percentile_ms(v, 95)}
            for k, v in _TIMINGS.items()
        },
        "gateway": _gateway_health(),
    }


def _percentile_ms(samples: List[float], pct: float) -> float:
    if not samples:
        return 0.0
    ordered = sorted(samples)
    idx = int(len(ordered) * (pct / 100))
    idx = min(max(idx, 0), len(ordered) - 1)
    return ordered[idx] * 1000


def _gateway_health() -> Dict[str, object]:
    failures = _COUNTERS.get("gateway_logical_error", 0) + _COUNTERS.get("gateway_transport_error", 0)
    successes = _COUNTERS.get("gateway_success", 0)
    return {
        "failures": failures,
        "successes": successes,
        "failure_spike": failures > successes + 5,
    }
