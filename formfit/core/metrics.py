"""Process-local counters behind GET /internal/metrics.

Request timings are grouped by route template, so every
``/api/orders/{order_id}/...`` call lands in one bucket. Domain events
(webhook messages, duplicates, pipeline outcomes) are plain named counters.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class RouteTiming:
    calls: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    by_status: Counter = field(default_factory=Counter)

    def add(self, status_code: int, duration_ms: float) -> None:
        self.calls += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        self.by_status[str(status_code)] += 1

    @property
    def failures(self) -> int:
        return sum(count for code, count in self.by_status.items() if int(code) >= 400)

    def as_dict(self) -> dict:
        return {
            "total_requests": self.calls,
            "avg_duration_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "max_duration_ms": round(self.max_ms, 2),
            "error_count": self.failures,
            "status_codes": dict(self.by_status),
        }


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._routes: dict[str, RouteTiming] = {}
        self._events: Counter = Counter()
        self._lock = Lock()

    def observe(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            self._routes.setdefault(f"{method} {endpoint}", RouteTiming()).add(status_code, duration_ms)

    def increment(self, event: str, amount: int = 1) -> None:
        with self._lock:
            self._events[event] += amount

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {route: timing.as_dict() for route, timing in sorted(self._routes.items())}

    def events(self) -> dict[str, int]:
        with self._lock:
            return dict(self._events)

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()
            self._events.clear()


request_metrics = InMemoryRequestMetrics()
