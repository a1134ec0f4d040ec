# src/depviz/core/metrics.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, List, Optional, Tuple

LabelKey = Tuple[Tuple[str, str], ...]  # sorted (k, v) pairs
MetricKey = Tuple[str, LabelKey]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(vals: List[float], q: float) -> float:
    if not vals:
        return 0.0
    idx = max(0, min(len(vals) - 1, int(round((len(vals) - 1) * q))))
    return vals[idx]


class _Series:
    """Bounded sample window behind a latency histogram."""
    def __init__(self, maxlen: int = 1024):
        self.values: Deque[float] = deque(maxlen=maxlen)

    def summary(self) -> Dict[str, float]:
        vals = sorted(self.values)
        if not vals:
            return {"count": 0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        return {
            "count": len(vals),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p99": _pct(vals, 0.99),
        }


class _Registry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.counters: Dict[MetricKey, float] = {}
        self.gauges: Dict[MetricKey, float] = {}
        self.hists: Dict[MetricKey, _Series] = {}

    def inc(self, name: str, n: float, labels: Dict[str, Any]) -> None:
        key = (name, _labels_key(labels))
        with self._lock:
            self.counters[key] = self.counters.get(key, 0.0) + n

    def set(self, name: str, v: float, labels: Dict[str, Any]) -> None:
        with self._lock:
            self.gauges[(name, _labels_key(labels))] = float(v)

    def observe(self, name: str, v: float, labels: Dict[str, Any]) -> None:
        key = (name, _labels_key(labels))
        with self._lock:
            series = self.hists.get(key)
            if series is None:
                series = self.hists[key] = _Series()
            series.values.append(float(v))

    def clear(self) -> None:
        with self._lock:
            self.counters.clear()
            self.gauges.clear()
            self.hists.clear()

    def snapshot(self) -> dict:
        with self._lock:
            counters = list(self.counters.items())
            gauges = list(self.gauges.items())
            hists = [(k, s.summary()) for k, s in self.hists.items()]
        return {
            "counters": [{"name": n, "labels": dict(l), "value": v} for (n, l), v in counters],
            "gauges": [{"name": n, "labels": dict(l), "value": v} for (n, l), v in gauges],
            "hists": [{"name": n, "labels": dict(l), **s} for (n, l), s in hists],
        }


_REG = _Registry()

# ---------------- Public API ----------------

def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.inc(name, n, labels)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    _REG.set(name, v, labels)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.observe(name, v, labels)


def snapshot_all() -> dict:
    """Return a snapshot of current metrics (for tests)."""
    return _REG.snapshot()


def value(name: str, **labels: Any) -> float:
    """Current value of a counter or gauge, 0.0 when never touched."""
    key = (name, _labels_key(labels))
    with _REG._lock:
        if key in _REG.counters:
            return _REG.counters[key]
        return _REG.gauges.get(key, 0.0)


def reset() -> None:
    _REG.clear()


def dump(logger: Optional[logging.Logger] = None) -> None:
    """Log one line per metric."""
    out = logger or logging.getLogger("depviz.metrics")
    snap = snapshot_all()
    for m in snap["counters"]:
        out.info("[ctr] %s %s value=%.0f", m["name"], m["labels"], m["value"])
    for m in snap["gauges"]:
        out.info("[gauge] %s %s value=%.3f", m["name"], m["labels"], m["value"])
    for m in snap["hists"]:
        out.info(
            "[hist] %s %s n=%d min=%.3f p50=%.3f p99=%.3f max=%.3f mean=%.3f",
            m["name"], m["labels"], m["count"], m["min"], m["p50"], m["p99"], m["max"], m["mean"],
        )


class Timer:
    """Context manager for measuring latency and reporting into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        dt_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, dt_ms, **self.labels)
        return False
