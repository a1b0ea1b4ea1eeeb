from __future__ import annotations

import threading

from alert_engine.contracts.alert import Alert
from alert_engine.sinks.base import AlertSinkBase


class MemoryAlertSink(AlertSinkBase):
    """Collects alerts in process memory (tests, dry runs)."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.alerts: list[Alert] = []

    def _write(self, alert: Alert) -> None:
        with self._lock:
            self.alerts.append(alert)
