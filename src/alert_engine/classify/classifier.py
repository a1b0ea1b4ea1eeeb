from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from alert_engine.contracts.alert import Alert, AlertKind
from alert_engine.tracking.high_water import HighWaterResult
from ingestion.contracts.tick import TradeTick

DEFAULT_VOLUME_THRESHOLD = 1.5

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def relative_volume(notional: float, baseline: float) -> float:
    """notional / baseline; 1.0 when there is no positive baseline to compare against."""
    if baseline <= 0:
        return 1.0
    return notional / baseline


class AlertClassifier:
    """
    Turns one tick plus its tracker results into at most one Alert.

    Rule:
        1. relative volume >= threshold  -> VOLUME_SPIKE
        2. new high                      -> NEW_HIGH (overrides 1)
    Both conditions are always evaluated; no cross-tick deduplication.
    """

    def __init__(self, *, volume_threshold: float = DEFAULT_VOLUME_THRESHOLD, clock: Clock | None = None):
        if volume_threshold <= 0:
            raise ValueError(f"volume_threshold must be > 0, got {volume_threshold}")
        self.volume_threshold = float(volume_threshold)
        self._clock = clock or _utcnow

    def classify(self, tick: TradeTick, baseline: float, high: HighWaterResult) -> Alert | None:
        rvol = relative_volume(tick.notional, baseline)

        kind: AlertKind | None = None
        if rvol >= self.volume_threshold:
            kind = AlertKind.VOLUME_SPIKE
        if high.is_new_high:
            kind = AlertKind.NEW_HIGH

        if kind is None:
            return None

        return Alert(
            symbol=tick.symbol,
            price=tick.price,
            change_percent=tick.change_percent or 0.0,
            relative_volume=rvol,
            kind=kind,
            created_at=self._clock(),
        )
