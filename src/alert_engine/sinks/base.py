from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from alert_engine.contracts.alert import Alert


@dataclass(frozen=True)
class SinkResult:
    ok: bool
    sink: str
    error: str | None = None

    @classmethod
    def success(cls, sink: str) -> "SinkResult":
        return cls(ok=True, sink=sink)

    @classmethod
    def failure(cls, sink: str, error: BaseException | str) -> "SinkResult":
        if isinstance(error, BaseException):
            error = f"{type(error).__name__}: {error}"
        return cls(ok=False, sink=sink, error=str(error))


class AlertSink(Protocol):
    """
    Alert sink protocol:
        • record(alert) -> SinkResult
        • must not raise; failures are reported in the result
        • retry policy, if any, lives inside the sink
    """

    name: str

    def record(self, alert: Alert) -> SinkResult:
        ...


class AlertSinkBase(AlertSink):
    """Converts exceptions raised by `_write` into failed SinkResults."""

    name: str = "sink"

    def record(self, alert: Alert) -> SinkResult:
        try:
            self._write(alert)
        except Exception as exc:
            return SinkResult.failure(self.name, exc)
        return SinkResult.success(self.name)

    def _write(self, alert: Alert) -> None:
        raise NotImplementedError
