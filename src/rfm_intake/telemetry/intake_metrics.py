from __future__ import annotations

from collections import Counter
from threading import Lock


INTAKE_EVENTS: tuple[str, ...] = (
    "upload_accepted",
    "upload_rejected",
    "persistence_failed",
    "extraction_completed",
    "extraction_failed",
    "doc_type_mismatch",
    "export_completed",
    "export_failed",
)


class IntakeMetrics:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: Counter[str] = Counter()

    def increment(self, event: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[event] += amount

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            counts = {event: self._counters.get(event, 0) for event in INTAKE_EVENTS}
            counts.update(
                {event: count for event, count in self._counters.items() if event not in counts}
            )
            return counts


__all__ = ["INTAKE_EVENTS", "IntakeMetrics"]
