from __future__ import annotations

import pytest

from ingestion.contracts.tick import TradeTick, normalize_tick


def test_trade_tick_notional_and_defaults() -> None:
    tick = TradeTick(symbol="BTC-USD", price=40_000.0, size=0.25, timestamp=1_700_000_000_000)
    assert tick.notional == 10_000.0
    assert tick.change_percent == 0.0
    assert tick.data_ts is None


def test_normalize_tick_coerces_epoch_ms() -> None:
    tick = normalize_tick(
        symbol="ETH-USD",
        price="2500.5",  # type: ignore[arg-type]
        size=2,
        change_percent=None,
        data_ts=1_700_000_000.5,  # seconds -> ms
        timestamp=1_700_000_001_234,
    )
    assert tick.price == 2500.5
    assert isinstance(tick.size, float)
    assert tick.change_percent == 0.0
    assert tick.data_ts == 1_700_000_000_500
    assert tick.timestamp == 1_700_000_001_234


def test_normalize_tick_defaults_timestamp_to_now() -> None:
    tick = normalize_tick(symbol="X", price=1.0, size=1.0)
    assert tick.timestamp > 1_600_000_000_000


def test_normalize_tick_rejects_bad_timestamp() -> None:
    with pytest.raises(ValueError):
        normalize_tick(symbol="X", price=1.0, size=1.0, data_ts=True)
    with pytest.raises(ValueError):
        normalize_tick(symbol="X", price=1.0, size=1.0, timestamp="yesterday")


@pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan")])
def test_normalize_tick_rejects_non_finite_timestamp(bad: float) -> None:
    with pytest.raises(ValueError):
        normalize_tick(symbol="X", price=1.0, size=1.0, data_ts=bad)
