from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TradeTick:
    """
    Canonical trade tick.

    This is the ONLY object allowed to cross the boundary:
        Stream decoder -> Alert engine

    Semantics:
        - `symbol`         : instrument identifier (e.g. 'BTC-USD')
        - `price`          : last trade price (> 0)
        - `size`           : last trade size (> 0)
        - `change_percent` : percent change over the feed's reference period (0.0 when absent)
        - `data_ts`        : exchange trade timestamp (epoch ms int), None when the feed omits it
        - `timestamp`      : arrival timestamp (epoch ms int)
    """

    symbol: str
    price: float
    size: float
    change_percent: float = 0.0
    data_ts: int | None = None
    timestamp: int = 0

    @property
    def notional(self) -> float:
        """Trade size in quote currency (price x size)."""
        return self.price * self.size


def _coerce_epoch_ms(x: Any) -> int:
    """Coerce seconds-or-ms epoch into epoch milliseconds int.

    Heuristic: seconds are ~1e9, ms are ~1e12.
    """
    if x is None:
        raise ValueError("timestamp cannot be None")
    if isinstance(x, bool):
        raise ValueError("invalid timestamp type: bool")
    try:
        v = float(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid timestamp: {x!r}") from e
    if not math.isfinite(v):
        raise ValueError(f"non-finite timestamp: {x!r}")
    if v < 10_000_000_000:
        return int(round(v * 1000.0))
    return int(round(v))


def normalize_tick(
    *,
    symbol: str,
    price: float,
    size: float,
    change_percent: float | None = None,
    data_ts: Any | None = None,
    timestamp: Any | None = None,
) -> TradeTick:
    """
    Build a TradeTick from already-validated fields.

    Rules:
        - timestamp defaults to wall clock at the decode boundary
        - change_percent defaults to 0.0
        - no enrichment, no inference
    """
    arrival_ts = _coerce_epoch_ms(timestamp) if timestamp is not None else int(time.time() * 1000)
    event_ts = _coerce_epoch_ms(data_ts) if data_ts is not None else None
    return TradeTick(
        symbol=str(symbol),
        price=float(price),
        size=float(size),
        change_percent=float(change_percent) if change_percent is not None else 0.0,
        data_ts=event_ts,
        timestamp=arrival_ts,
    )
