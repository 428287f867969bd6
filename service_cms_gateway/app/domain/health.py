"""
In-memory error ring buffer used for rolling health status.
"""

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List

from shared.errors import AccessLayerException, ErrorRecord


class HealthMonitor:
    """Aggregates recent gateway errors into health statistics."""

    def __init__(
        self,
        max_entries: int = 1000,
        *,
        max_critical_errors: int = 10,
        max_total_errors: int = 100,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self._records: Deque[ErrorRecord] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self.max_critical_errors = max_critical_errors
        self.max_total_errors = max_total_errors
        self.window_seconds = window_seconds
        self._clock = clock

    def record(self, error: AccessLayerException) -> ErrorRecord:
        record = error.to_record()
        record.timestamp = self._clock()
        with self._lock:
            self._records.append(record)
        return record

    def _window(self, window_seconds: float) -> List[ErrorRecord]:
        cutoff = self._clock() - window_seconds
        with self._lock:
            return [record for record in self._records if record.timestamp > cutoff]

    def get_error_stats(self, window_seconds: float = 3600) -> Dict[str, Any]:
        records = self._window(window_seconds)
        by_type: Dict[str, int] = {}
        for record in records:
            by_type[record.kind.value] = by_type.get(record.kind.value, 0) + 1

        return {
            "total": len(records),
            "byType": by_type,
            "retryableErrors": sum(1 for r in records if r.retryable),
            "criticalErrors": sum(1 for r in records if r.status_code >= 500),
        }

    def is_healthy(self) -> bool:
        stats = self.get_error_stats(self.window_seconds)
        return (
            stats["criticalErrors"] < self.max_critical_errors
            and stats["total"] < self.max_total_errors
        )

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        with self._lock:
            records = list(self._records)[-limit:]
        return [
            {
                "kind": r.kind.value,
                "message": r.message,
                "statusCode": r.status_code,
                "retryable": r.retryable,
                "timestamp": r.timestamp,
            }
            for r in reversed(records)
        ]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
