from __future__ import annotations

import pytest

from alert_engine.tracking.state import InstrumentRegistry
from alert_engine.tracking.volume import RollingVolumeTracker


def _tracker(window: int = 10, warmup: int = 5) -> tuple[InstrumentRegistry, RollingVolumeTracker]:
    registry = InstrumentRegistry(window_size=window)
    return registry, RollingVolumeTracker(registry, warmup=warmup)


def test_history_never_exceeds_window() -> None:
    registry, tracker = _tracker()
    for i in range(57):
        tracker.observe("BTC-USD", float(i + 1))
        assert len(registry.get_or_create("BTC-USD").volume_history) <= 10
    # FIFO: only the 10 most recent samples remain
    assert tracker.history("BTC-USD") == [float(i) for i in range(48, 58)]


def test_warmup_baseline_is_current_sample() -> None:
    _, tracker = _tracker()
    for v in (100.0, 250.0, 5.0, 10_000.0, 42.0):
        assert tracker.observe("ETH-USD", v) == v


def test_fifth_sample_is_still_warmup_boundary() -> None:
    # 4 samples held before the 5th -> still warm-up, even for a huge sample
    _, tracker = _tracker()
    for _ in range(4):
        tracker.observe("ETH-USD", 100.0)
    assert tracker.observe("ETH-USD", 1_000_000.0) == 1_000_000.0


def test_baseline_is_mean_of_prior_samples_once_primed() -> None:
    _, tracker = _tracker()
    for _ in range(5):
        tracker.observe("SOL-USD", 100.0)
    assert tracker.observe("SOL-USD", 400.0) == pytest.approx(100.0)
    # the 400 sample is now part of the window: (5*100 + 400) / 6
    assert tracker.observe("SOL-USD", 100.0) == pytest.approx(150.0)


def test_baseline_uses_full_window_after_overflow() -> None:
    _, tracker = _tracker()
    for v in range(1, 13):  # 1..12, window keeps 3..12
        tracker.observe("BTC-USD", float(v))
    assert tracker.observe("BTC-USD", 0.5) == pytest.approx(sum(range(3, 13)) / 10)


def test_instruments_are_independent() -> None:
    registry, tracker = _tracker()
    for _ in range(6):
        tracker.observe("A", 10.0)
    assert tracker.observe("B", 999.0) == 999.0
    assert len(registry) == 2
    assert tracker.history("C") == []


def test_baseline_is_recorded_on_state() -> None:
    registry, tracker = _tracker()
    tracker.observe("A", 10.0)
    state = registry.get("A")
    assert state is not None
    assert state.baseline_volume == 10.0


def test_warmup_cannot_exceed_window() -> None:
    registry = InstrumentRegistry(window_size=3)
    with pytest.raises(ValueError):
        RollingVolumeTracker(registry, warmup=4)
    with pytest.raises(ValueError):
        InstrumentRegistry(window_size=0)
