"""In-process metrics for API requests and FTP round trips."""
from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
import threading
import time
from typing import Deque, Dict, Iterator


@dataclass
class MetricPoint:
    ok: bool
    duration_ms: int


class MetricTimer:
    """Handle yielded by ``MetricsCollector.timer``; call ``fail()`` to flag the sample."""

    def __init__(self) -> None:
        self.ok = True

    def fail(self) -> None:
        self.ok = False


class MetricsCollector:
    def __init__(self, window_size: int = 200) -> None:
        self._window_size = window_size
        self._points: Dict[str, Deque[MetricPoint]] = {}
        self._last_alert: Dict[str, float] = {}
        # FTP samples are recorded from worker threads
        self._lock = threading.Lock()

    def record(self, name: str, *, ok: bool, duration_ms: int) -> None:
        with self._lock:
            bucket = self._points.setdefault(name, deque(maxlen=self._window_size))
            bucket.append(MetricPoint(ok=ok, duration_ms=duration_ms))

    @contextmanager
    def timer(self, name: str) -> Iterator[MetricTimer]:
        handle = MetricTimer()
        start = time.perf_counter()
        try:
            yield handle
        except BaseException:
            handle.fail()
            raise
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            self.record(name, ok=handle.ok, duration_ms=duration_ms)

    def snapshot(self) -> dict:
        with self._lock:
            items = [(name, list(points)) for name, points in self._points.items()]
        payload: dict[str, dict] = {}
        for name, points in items:
            if not points:
                continue
            total = len(points)
            errors = sum(1 for p in points if not p.ok)
            durations = sorted(p.duration_ms for p in points)
            payload[name] = {
                "count": total,
                "errors": errors,
                "error_rate": round(errors / total, 3),
                "avg_ms": int(sum(durations) / total),
                "max_ms": durations[-1],
            }
        return payload

    def reset(self) -> None:
        with self._lock:
            self._points.clear()
            self._last_alert.clear()

    def should_alert(
        self,
        name: str,
        *,
        error_rate: float = 0.2,
        avg_ms: int = 2000,
        min_interval_s: int = 60,
    ) -> bool:
        with self._lock:
            bucket = list(self._points.get(name) or ())
        total = len(bucket)
        if total < 5:
            return False
        errors = sum(1 for p in bucket if not p.ok)
        avg = int(sum(p.duration_ms for p in bucket) / total)
        if (errors / total) < error_rate and avg < avg_ms:
            return False
        now = time.time()
        last = self._last_alert.get(name, 0.0)
        if now - last < min_interval_s:
            return False
        self._last_alert[name] = now
        return True


metrics = MetricsCollector()
