from __future__ import annotations

from alert_engine.tracking.state import InstrumentRegistry

DEFAULT_WARMUP = 5


class RollingVolumeTracker:
    """Simple moving average of notional volume per instrument, with warm-up.

    Policy: the baseline for a tick is taken from the history held *before*
    that tick's sample is appended. While fewer than `warmup` samples are held
    the baseline is the current sample itself (relative volume 1.0), so the
    first tick that can spike is number `warmup + 1`.
    """

    def __init__(self, registry: InstrumentRegistry, *, warmup: int = DEFAULT_WARMUP):
        if warmup < 1:
            raise ValueError(f"warmup must be >= 1, got {warmup}")
        if warmup > registry.window_size:
            raise ValueError(
                f"warmup ({warmup}) cannot exceed window size ({registry.window_size})"
            )
        self._registry = registry
        self.warmup = int(warmup)

    def observe(self, symbol: str, notional: float) -> float:
        """Record `notional` for `symbol` and return the baseline to compare it against."""
        state = self._registry.get_or_create(symbol)
        history = state.volume_history

        if len(history) < self.warmup:
            baseline = notional
        else:
            baseline = sum(history) / len(history)

        # deque(maxlen=window) evicts the oldest sample
        history.append(notional)
        state.baseline_volume = baseline
        return baseline

    def history(self, symbol: str) -> list[float]:
        state = self._registry.get(symbol)
        return list(state.volume_history) if state is not None else []
