from __future__ import annotations

from datetime import datetime, timezone

import pytest

from alert_engine.classify.classifier import AlertClassifier, relative_volume
from alert_engine.contracts.alert import AlertKind
from alert_engine.tracking.high_water import HighWaterResult
from ingestion.contracts.tick import TradeTick

_FIXED = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
_NO_HIGH = HighWaterResult(previous_high=100.0, is_new_high=False)
_NEW_HIGH = HighWaterResult(previous_high=100.0, is_new_high=True)


def _classifier(threshold: float = 1.5) -> AlertClassifier:
    return AlertClassifier(volume_threshold=threshold, clock=lambda: _FIXED)


def _tick(price: float = 100.0, size: float = 1.0, dp: float = 0.0) -> TradeTick:
    return TradeTick(symbol="BTC-USD", price=price, size=size, change_percent=dp, timestamp=1)


def test_no_condition_no_alert() -> None:
    assert _classifier().classify(_tick(size=1.0), baseline=100.0, high=_NO_HIGH) is None


def test_volume_spike_at_threshold() -> None:
    tick = _tick(price=100.0, size=1.5)  # notional 150 vs baseline 100
    alert = _classifier().classify(tick, baseline=100.0, high=_NO_HIGH)
    assert alert is not None
    assert alert.kind is AlertKind.VOLUME_SPIKE
    assert alert.relative_volume == pytest.approx(1.5)


def test_new_high_with_unremarkable_volume() -> None:
    tick = _tick(price=101.0, size=1.0)  # notional 101 vs baseline 101
    alert = _classifier().classify(tick, baseline=101.0, high=_NEW_HIGH)
    assert alert is not None
    assert alert.kind is AlertKind.NEW_HIGH
    assert alert.relative_volume == pytest.approx(1.0)


def test_new_high_overrides_volume_spike_and_keeps_ratio() -> None:
    tick = _tick(price=101.0, size=3.0)  # notional 303 vs baseline 101 -> 3.0
    alert = _classifier().classify(tick, baseline=101.0, high=_NEW_HIGH)
    assert alert is not None
    assert alert.kind is AlertKind.NEW_HIGH
    assert alert.relative_volume == pytest.approx(3.0)


def test_alert_fields() -> None:
    tick = _tick(price=2.5, size=10.0, dp=-3.25)
    alert = _classifier().classify(tick, baseline=10.0, high=_NO_HIGH)
    assert alert is not None
    assert alert.symbol == "BTC-USD"
    assert alert.price == 2.5
    assert alert.change_percent == -3.25
    assert alert.created_at == _FIXED
    record = alert.to_record()
    assert record == {
        "ticker": "BTC-USD",
        "price": 2.5,
        "change_percent": -3.25,
        "relative_volume": 2.5,
        "alert_type": "volume",
        "created_at": "2024-03-01T12:00:00+00:00",
    }


def test_relative_volume_without_positive_baseline() -> None:
    assert relative_volume(50.0, 0.0) == 1.0
    assert relative_volume(50.0, 25.0) == 2.0


def test_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AlertClassifier(volume_threshold=0)
