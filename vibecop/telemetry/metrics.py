"""In-process metric instruments for permission-check verdicts and latency."""

from __future__ import annotations

import threading
from bisect import bisect_left
from collections.abc import Mapping
from dataclasses import dataclass

VERDICTS_METRIC = "vibecop.verdicts_total"
LATENCY_METRIC = "vibecop.evaluator_latency_ms"

DEFAULT_BOUNDARIES: tuple[float, ...] = (
    0, 5, 10, 25, 50, 75, 100, 250, 500, 750, 1000, 2500, 5000, 7500, 10000,
)

_Key = tuple[tuple[str, str], ...]


def _key(attributes: Mapping[str, str] | None) -> _Key:
    return tuple(sorted((attributes or {}).items()))


@dataclass(frozen=True)
class SumPoint:
    """Cumulative total of a counter for one attribute set."""

    attributes: dict[str, str]
    value: int


@dataclass(frozen=True)
class HistogramPoint:
    """Cumulative distribution of a histogram for one attribute set."""

    attributes: dict[str, str]
    count: int
    sum: int
    min: int
    max: int
    boundaries: tuple[float, ...]
    bucket_counts: tuple[int, ...]


class Counter:
    """A monotonic integer counter partitioned by attribute set."""

    def __init__(self, name: str, description: str = "", unit: str = "") -> None:
        self.name = name
        self.description = description
        self.unit = unit
        self._values: dict[_Key, int] = {}
        self._lock = threading.Lock()

    def add(self, value: int, attributes: Mapping[str, str] | None = None) -> None:
        """Add a non-negative amount to the total for the given attributes."""
        if value < 0:
            raise ValueError(f"{self.name}: counter increment must be non-negative")
        key = _key(attributes)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def collect(self) -> list[SumPoint]:
        """Return the cumulative totals, one point per attribute set."""
        with self._lock:
            return [SumPoint(dict(key), value) for key, value in self._values.items()]


class _HistogramState:
    __slots__ = ("count", "total", "low", "high", "buckets")

    def __init__(self, buckets: int) -> None:
        self.count = 0
        self.total = 0
        self.low = 0
        self.high = 0
        self.buckets = [0] * buckets


class Histogram:
    """An integer histogram with explicit bucket boundaries."""

    def __init__(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        boundaries: tuple[float, ...] = DEFAULT_BOUNDARIES,
    ) -> None:
        self.name = name
        self.description = description
        self.unit = unit
        self.boundaries = tuple(boundaries)
        self._states: dict[_Key, _HistogramState] = {}
        self._lock = threading.Lock()

    def record(self, value: int, attributes: Mapping[str, str] | None = None) -> None:
        """Record one measurement for the given attributes."""
        key = _key(attributes)
        with self._lock:
            state = self._states.get(key)
            if state is None:
                state = self._states[key] = _HistogramState(len(self.boundaries) + 1)
                state.low = state.high = value
            state.count += 1
            state.total += value
            state.low = min(state.low, value)
            state.high = max(state.high, value)
            state.buckets[bisect_left(self.boundaries, value)] += 1

    def collect(self) -> list[HistogramPoint]:
        """Return the cumulative distributions, one point per attribute set."""
        with self._lock:
            return [
                HistogramPoint(
                    attributes=dict(key),
                    count=state.count,
                    sum=state.total,
                    min=state.low,
                    max=state.high,
                    boundaries=self.boundaries,
                    bucket_counts=tuple(state.buckets),
                )
                for key, state in self._states.items()
            ]


class Metrics:
    """The named instruments emitted by the permission handler."""

    def __init__(self) -> None:
        self.verdicts = Counter(
            VERDICTS_METRIC,
            description="Permission-check verdicts emitted by vibecop",
            unit="{verdict}",
        )
        self.latency = Histogram(
            LATENCY_METRIC,
            description="Round-trip latency of evaluator LLM calls",
            unit="ms",
        )

    def record_verdict(self, verdict: str, tool: str, harness: str = "") -> None:
        """Count one permission check; an empty harness is left off the labels."""
        attributes = {"vibecop.verdict": verdict, "vibecop.tool": tool}
        if harness:
            attributes["vibecop.harness"] = harness
        self.verdicts.add(1, attributes)

    def record_evaluator_latency(
        self, latency_ms: int, verdict: str, harness: str = ""
    ) -> None:
        """Record evaluator round-trip latency; an empty harness is left off."""
        attributes = {"vibecop.verdict": verdict}
        if harness:
            attributes["vibecop.harness"] = harness
        self.latency.record(latency_ms, attributes)

    def collect(self) -> dict[str, list[SumPoint] | list[HistogramPoint]]:
        """Snapshot every instrument, keyed by metric name."""
        return {
            self.verdicts.name: self.verdicts.collect(),
            self.latency.name: self.latency.collect(),
        }