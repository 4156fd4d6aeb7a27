"""Prometheus text metrics for the persona gateway.

One ``GatewayMetrics`` instance is created per application and served on
``/metrics``. Counters and histograms live in-process behind a lock; no
prometheus_client dependency is required.
"""

import threading
from collections import defaultdict

from fastapi import APIRouter, Request, Response

LabelKey = tuple[tuple[str, str], ...]

LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


def _key(labels: dict[str, str]) -> LabelKey:
    return tuple(sorted(labels.items()))


def _format_labels(label_pairs: LabelKey) -> str:
    if not label_pairs:
        return ""
    parts = [f'{k}="{v}"' for k, v in label_pairs]
    return "{" + ",".join(parts) + "}"


class GatewayMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, dict[LabelKey, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._hist_sums: dict[str, dict[LabelKey, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._hist_buckets: dict[str, dict[LabelKey, list[int]]] = defaultdict(
            lambda: defaultdict(lambda: [0] * (len(LATENCY_BUCKETS) + 1))
        )

    def inc_counter(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        with self._lock:
            self._counters[name][_key(labels)] += value

    def observe(self, name: str, labels: dict[str, str], value: float) -> None:
        key = _key(labels)
        with self._lock:
            self._hist_sums[name][key] += value
            buckets = self._hist_buckets[name][key]
            for i, bound in enumerate(LATENCY_BUCKETS):
                if value <= bound:
                    buckets[i] += 1
            buckets[-1] += 1

    def counter_value(self, name: str, labels: dict[str, str]) -> float:
        with self._lock:
            return self._counters[name].get(_key(labels), 0.0)

    def record_rejection(self, status_code: int, error_code: str) -> None:
        """A request rejected before any stream was opened."""
        self.inc_counter(
            "pgw_requests_total",
            {"provider": "none", "outcome": "rejected", "status": str(status_code)},
        )
        self.inc_counter("pgw_rejections_total", {"code": error_code})

    def record_stream(
        self,
        provider: str,
        model: str,
        outcome: str,
        latency_s: float,
        content_events: int,
    ) -> None:
        """A stream that was opened; outcome is done, error or cancelled."""
        self.inc_counter(
            "pgw_requests_total",
            {"provider": provider, "outcome": outcome, "status": "200"},
        )
        self.inc_counter(
            "pgw_content_events_total",
            {"provider": provider, "model": model},
            float(content_events),
        )
        self.observe("pgw_stream_duration_seconds", {"provider": provider}, latency_s)

    def render(self) -> str:
        lines: list[str] = []
        with self._lock:
            for name, label_map in sorted(self._counters.items()):
                lines.append(f"# TYPE {name} counter")
                for label_pairs, value in sorted(label_map.items()):
                    lines.append(f"{name}{_format_labels(label_pairs)} {value}")

            for name in sorted(self._hist_sums):
                lines.append(f"# TYPE {name} histogram")
                for label_pairs in sorted(self._hist_sums[name]):
                    buckets = self._hist_buckets[name][label_pairs]
                    for i, bound in enumerate(LATENCY_BUCKETS):
                        bl = _key({**dict(label_pairs), "le": str(bound)})
                        lines.append(f"{name}_bucket{_format_labels(bl)} {buckets[i]}")
                    inf = _key({**dict(label_pairs), "le": "+Inf"})
                    lines.append(f"{name}_bucket{_format_labels(inf)} {buckets[-1]}")
                    base = _format_labels(label_pairs)
                    lines.append(f"{name}_sum{base} {self._hist_sums[name][label_pairs]}")
                    lines.append(f"{name}_count{base} {buckets[-1]}")

        lines.append("")
        return "\n".join(lines)


metrics_router = APIRouter()


@metrics_router.get("/metrics")
def prometheus_metrics(request: Request) -> Response:
    metrics: GatewayMetrics = request.app.state.metrics
    return Response(
        content=metrics.render(),
        media_type="text/plain; charset=utf-8",
    )
