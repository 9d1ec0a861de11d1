"""
Metrics Collection Module
In-process counters, gauges and timers for adapter calls, vault access,
model calls and imports, with a Prometheus text export
"""
from __future__ import annotations

import json
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional

Labels = Optional[Dict[str, str]]


def _series(name: str, labels: Labels = None) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return name + "{" + rendered + "}"


class MetricsCollector:
    """Process-wide, thread-safe store of metric series"""

    _instance: Optional["MetricsCollector"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    collector = super().__new__(cls)
                    collector._series_lock = threading.Lock()
                    collector._counters = defaultdict(float)
                    collector._gauges = {}
                    # series -> [count, total, max]
                    collector._timings = {}
                    collector._enabled = True
                    cls._instance = collector
        return cls._instance

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def increment(self, name: str, amount: float = 1.0, labels: Labels = None) -> None:
        if self._enabled:
            with self._series_lock:
                self._counters[_series(name, labels)] += amount

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        if self._enabled:
            with self._series_lock:
                self._gauges[_series(name, labels)] = value

    def observe(self, name: str, seconds: float, labels: Labels = None) -> None:
        if not self._enabled:
            return
        key = _series(name, labels)
        with self._series_lock:
            entry = self._timings.setdefault(key, [0, 0.0, 0.0])
            entry[0] += 1
            entry[1] += seconds
            entry[2] = max(entry[2], seconds)

    def get_counter(self, name: str, labels: Labels = None) -> float:
        with self._series_lock:
            return self._counters.get(_series(name, labels), 0.0)

    def get_gauge(self, name: str, labels: Labels = None) -> Optional[float]:
        with self._series_lock:
            return self._gauges.get(_series(name, labels))

    def snapshot(self) -> Dict[str, Any]:
        """Copy of every series; timings as count, total and max seconds"""
        with self._series_lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "timings": {
                    key: {"count": count, "total_seconds": total, "max_seconds": longest}
                    for key, (count, total, longest) in self._timings.items()
                },
            }

    def reset(self) -> None:
        with self._series_lock:
            self._counters.clear()
            self._gauges.clear()
            self._timings.clear()

    def export_json(self) -> str:
        return json.dumps(self.snapshot(), indent=2, sort_keys=True)

    def export_prometheus(self) -> str:
        snap = self.snapshot()
        lines: List[str] = []
        for section, metric_type in (("counters", "counter"), ("gauges", "gauge")):
            for key, value in sorted(snap[section].items()):
                lines.append(f"# TYPE {key.split('{')[0]} {metric_type}")
                lines.append(f"{key} {value}")
        for key, timing in sorted(snap["timings"].items()):
            name, brace, rest = key.partition("{")
            suffix = brace + rest
            lines.append(f"# TYPE {name} summary")
            lines.append(f"{name}_count{suffix} {timing['count']}")
            lines.append(f"{name}_sum{suffix} {timing['total_seconds']}")
        return "\n".join(lines)


def get_metrics_collector() -> MetricsCollector:
    return MetricsCollector()


class IntrospectionMetrics:
    """Metric helpers for adapters, the vault, the model client and the pipelines"""

    @staticmethod
    def record_adapter_call(duration: float, engine: str, operation: str, success: bool) -> None:
        labels = {"engine": engine, "operation": operation, "success": str(success).lower()}
        collector = get_metrics_collector()
        collector.observe("adapter_call_seconds", duration, labels)
        collector.increment("adapter_calls_total", labels=labels)

    @staticmethod
    def record_vault_call(provider: str, operation: str, success: bool) -> None:
        get_metrics_collector().increment(
            "vault_calls_total",
            labels={"provider": provider, "operation": operation, "success": str(success).lower()},
        )

    @staticmethod
    def record_llm_call(
        duration: float,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        max_tokens: Optional[int] = None
    ) -> None:
        labels = {"model_id": model_id}
        collector = get_metrics_collector()
        collector.observe("llm_call_seconds", duration, labels)
        collector.increment("llm_calls_total", labels=labels)
        collector.increment("llm_prompt_tokens_total", float(input_tokens), labels)
        collector.increment("llm_completion_tokens_total", float(output_tokens), labels)
        if max_tokens:
            # Close to 1.0 means the reply probably hit the output budget
            collector.set_gauge("llm_output_budget_ratio", output_tokens / max_tokens, labels)

    @staticmethod
    def record_import(engine: str, imported: int, failed: int) -> None:
        collector = get_metrics_collector()
        collector.increment("tables_imported_total", float(imported), {"engine": engine})
        if failed:
            collector.increment("table_import_failures_total", float(failed), {"engine": engine})

    @staticmethod
    def record_relationships(suggested: int, created: int, skipped: int) -> None:
        collector = get_metrics_collector()
        collector.increment("relationships_suggested_total", float(suggested))
        collector.increment("relationships_created_total", float(created))
        collector.increment("relationships_skipped_total", float(skipped))

    @staticmethod
    def record_error(error_type: str, category: str, engine: str) -> None:
        get_metrics_collector().increment(
            "introspection_errors_total",
            labels={"error_type": error_type, "category": category, "engine": engine},
        )
