from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

DEFAULT_WINDOW = 10


@dataclass
class InstrumentState:
    """Rolling statistics for one instrument.

    Created lazily on the first tick and mutated only through the trackers'
    `observe` calls for that instrument.
    """

    symbol: str
    volume_history: deque[float] = field(default_factory=lambda: deque(maxlen=DEFAULT_WINDOW))
    baseline_volume: float | None = None
    daily_high: float | None = None


class InstrumentRegistry:
    """Map of instrument id -> InstrumentState shared by the trackers."""

    def __init__(self, window_size: int = DEFAULT_WINDOW):
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = int(window_size)
        self._states: dict[str, InstrumentState] = {}

    def get(self, symbol: str) -> InstrumentState | None:
        return self._states.get(symbol)

    def get_or_create(self, symbol: str) -> InstrumentState:
        state = self._states.get(symbol)
        if state is None:
            state = InstrumentState(symbol=symbol, volume_history=deque(maxlen=self.window_size))
            self._states[symbol] = state
        return state

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._states

    def __iter__(self) -> Iterator[InstrumentState]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)
