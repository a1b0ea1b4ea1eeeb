from __future__ import annotations

from typing import Sequence

from alert_engine.contracts.alert import Alert
from alert_engine.sinks.base import AlertSink, SinkResult


class CompositeAlertSink:
    """Persist first, then notify.

    Notifiers only run once the persistence sink has accepted the alert.
    Every notifier is attempted; the first failure is the reported result.
    """

    name = "composite"

    def __init__(self, persist: AlertSink | None, notifiers: Sequence[AlertSink] = ()) -> None:
        self._persist = persist
        self._notifiers = list(notifiers)

    def record(self, alert: Alert) -> SinkResult:
        if self._persist is not None:
            result = self._persist.record(alert)
            if not result.ok:
                return result

        failure: SinkResult | None = None
        for notifier in self._notifiers:
            result = notifier.record(alert)
            if not result.ok and failure is None:
                failure = result
        return failure or SinkResult.success(self.name)
