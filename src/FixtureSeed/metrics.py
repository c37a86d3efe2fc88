"""In-process counters and duration histograms for fixture imports.

Values live in module state for the lifetime of the process. Per-entity counts
are kept beside the totals as ``<name>.<Entity>``, so a test can ask how many
Employee rows were imported as easily as how many rows were imported overall.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager

DURATION_BUCKETS_MS = (10, 50, 100, 250, 500, 1000, 2500, 5000, 10000)

_counters: Counter[str] = Counter()
_histograms: dict[str, Counter[str]] = {}
_hist_totals: Counter[str] = Counter()


def inc_counter(name: str, value: int = 1, *, entity: str | None = None) -> None:
    _counters[name] += int(value)
    if entity:
        _counters[f"{name}.{entity}"] += int(value)


def get_counter(name: str) -> int:
    return _counters.get(name, 0)


def get_counters(prefix: str | None = None) -> dict[str, int]:
    """Copy of the counters, histogram buckets included as ``histo.*`` keys."""
    out = dict(_counters)
    for name, buckets in _histograms.items():
        out.update({f"histo.{name}.{label}": n for label, n in buckets.items()})
        out[f"histo.{name}.count"] = sum(buckets.values())
        out[f"histo.{name}.sum"] = _hist_totals[name]
    if prefix:
        out = {k: v for k, v in out.items() if k.startswith(prefix)}
    return out


def reset_counters() -> None:
    _counters.clear()
    _histograms.clear()
    _hist_totals.clear()


def observe_histogram(name: str, value: int, *, buckets: tuple[int, ...] = DURATION_BUCKETS_MS) -> None:
    """Count ``value`` in the first bucket whose bound it does not exceed."""
    label = next((f"le_{bound}" for bound in buckets if value <= bound), f"gt_{buckets[-1]}")
    _histograms.setdefault(name, Counter())[label] += 1
    _hist_totals[name] += int(value)


@contextmanager
def timed(name: str) -> Iterator[None]:
    """Observe the wall time of the block, in milliseconds, even when it raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        observe_histogram(name, int((time.perf_counter() - start) * 1000))
