from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AlertKind(str, Enum):
    """Alert kind; values are the tags persisted in `alert_type`."""

    VOLUME_SPIKE = "volume"
    NEW_HIGH = "high"

    @property
    def title(self) -> str:
        return "Volume Alert" if self is AlertKind.VOLUME_SPIKE else "New High"


@dataclass(frozen=True)
class Alert:
    """
    Immutable alert handed to the sink.

    Semantics:
        - `relative_volume` is notional / baseline for the triggering tick,
          reported regardless of which kind won.
        - `created_at` is a tz-aware UTC datetime.
    """

    symbol: str
    price: float
    change_percent: float
    relative_volume: float
    kind: AlertKind
    created_at: datetime

    def to_record(self) -> dict[str, Any]:
        """Row shape written by the persistence sink."""
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return {
            "ticker": self.symbol,
            "price": self.price,
            "change_percent": self.change_percent,
            "relative_volume": self.relative_volume,
            "alert_type": self.kind.value,
            "created_at": created.astimezone(timezone.utc).isoformat(),
        }
