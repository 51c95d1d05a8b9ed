"""Minimal in-process metrics recorder (not suitable for multi-process aggregation)."""

from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Dict

MAX_RECENT_DURATIONS = 100


class MetricsRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._requests = 0
        self._request_durations_ms: Dict[str, float] = {}
        self._rate_limited = 0
        self._responses: Counter[str] = Counter()
        self._tasks_launched = 0
        self._tasks_failed = 0

    def incr_request(self) -> None:
        with self._lock:
            self._requests += 1

    def record_response(self, status_code: int) -> None:
        with self._lock:
            self._responses[str(status_code)] += 1

    def record_duration(self, request_id: str, duration_ms: float) -> None:
        with self._lock:
            self._request_durations_ms[request_id] = duration_ms
            while len(self._request_durations_ms) > MAX_RECENT_DURATIONS:
                del self._request_durations_ms[next(iter(self._request_durations_ms))]

    def incr_rate_limited(self) -> None:
        with self._lock:
            self._rate_limited += 1

    def incr_task_launched(self) -> None:
        with self._lock:
            self._tasks_launched += 1

    def incr_task_failed(self) -> None:
        with self._lock:
            self._tasks_failed += 1

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "requests": self._requests,
                "rate_limited": self._rate_limited,
                "responses_by_status": dict(self._responses),
                "background_tasks_launched": self._tasks_launched,
                "background_tasks_failed": self._tasks_failed,
                "recent_request_durations_ms": dict(self._request_durations_ms),
            }

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._request_durations_ms.clear()
            self._rate_limited = 0
            self._responses.clear()
            self._tasks_launched = 0
            self._tasks_failed = 0


default_metrics = MetricsRecorder()
