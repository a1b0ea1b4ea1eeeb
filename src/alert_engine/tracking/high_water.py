from __future__ import annotations

from dataclasses import dataclass

from alert_engine.tracking.state import InstrumentRegistry


@dataclass(frozen=True)
class HighWaterResult:
    previous_high: float
    is_new_high: bool


class HighWaterMarkTracker:
    """Highest observed price per instrument since the last reset."""

    def __init__(self, registry: InstrumentRegistry):
        self._registry = registry

    def observe(self, symbol: str, price: float) -> HighWaterResult:
        state = self._registry.get_or_create(symbol)
        if state.daily_high is None:
            # first sighting initializes the mark and never counts as a new high
            state.daily_high = price
            return HighWaterResult(previous_high=price, is_new_high=False)

        previous = state.daily_high
        if price > previous:
            state.daily_high = price
            return HighWaterResult(previous_high=previous, is_new_high=True)
        return HighWaterResult(previous_high=previous, is_new_high=False)

    def high(self, symbol: str) -> float | None:
        state = self._registry.get(symbol)
        return state.daily_high if state is not None else None

    def reset(self, symbol: str | None = None) -> int:
        """Forget the high for `symbol` (or every instrument). Returns how many were cleared."""
        if symbol is not None:
            state = self._registry.get(symbol)
            if state is None or state.daily_high is None:
                return 0
            state.daily_high = None
            return 1
        cleared = 0
        for state in self._registry:
            if state.daily_high is not None:
                state.daily_high = None
                cleared += 1
        return cleared
