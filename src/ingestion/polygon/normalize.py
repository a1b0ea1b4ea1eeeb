"""Inbound frame shapes (Polygon crypto cluster):

A frame is a JSON object or a JSON array of objects. Each object is either

    status : {"ev": "status", "status": "auth_success", "message": "authenticated"}
    trade  : {"ev": "XT", "pair": "BTC-USD", "p": 43000.5, "s": 0.01, "v": 0.01, "dp": 1.2, "t": 1700000000000}

Only trade events with a truthy price, a truthy size and an instrument id
become ticks. Everything else is dropped without raising.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alert_engine.exceptions.core import DecodeError
from ingestion.contracts.tick import TradeTick, normalize_tick


STATUS_EVENT = "status"


def _now_ms() -> int:
    return int(time.time() * 1000.0)


class TradeEventSchema(BaseModel):
    """Strict shape of one trade event; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    ev: str
    pair: str = Field(..., min_length=1)
    p: float = Field(..., gt=0, allow_inf_nan=False)
    v: float = Field(..., gt=0, allow_inf_nan=False)
    dp: Optional[float] = Field(None, allow_inf_nan=False)
    t: Optional[float] = Field(None, allow_inf_nan=False)


@dataclass(frozen=True)
class StatusMessage:
    status: str
    message: str = ""

    @property
    def key(self) -> str:
        """Status normalized to snake case ('auth success' -> 'auth_success')."""
        return self.status.strip().lower().replace(" ", "_")


@dataclass
class DecodedFrame:
    ticks: list[TradeTick] = field(default_factory=list)
    statuses: list[StatusMessage] = field(default_factory=list)
    dropped: int = 0


class PolygonTradeDecoder:
    """Decode raw text frames into `TradeTick`s and control `StatusMessage`s.

    `decode` raises `DecodeError` only when the frame itself is not JSON (or
    not an object/array); individual bad elements are counted and dropped.
    """

    def __init__(self, *, event_type: str = "XT"):
        self.event_type = event_type

    def decode(self, raw: str | bytes, *, arrival_ts: int | None = None) -> DecodedFrame:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as exc:
            raise DecodeError(f"frame is not valid JSON: {exc}") from exc
        return self.decode_payload(payload, arrival_ts=arrival_ts)

    def decode_payload(self, payload: Any, *, arrival_ts: int | None = None) -> DecodedFrame:
        if isinstance(payload, Mapping):
            items = [payload]
        elif isinstance(payload, list):
            items = payload
        else:
            raise DecodeError(f"frame must be an object or array, got {type(payload).__name__}")

        ts = arrival_ts if arrival_ts is not None else _now_ms()
        out = DecodedFrame()
        for item in items:
            if not isinstance(item, Mapping):
                out.dropped += 1
                continue
            ev = item.get("ev")
            if ev == STATUS_EVENT:
                out.statuses.append(
                    StatusMessage(status=str(item.get("status", "")), message=str(item.get("message", "")))
                )
                continue
            if ev != self.event_type:
                out.dropped += 1
                continue
            tick = self._to_tick(item, ts)
            if tick is None:
                out.dropped += 1
                continue
            out.ticks.append(tick)
        return out

    def _to_tick(self, item: Mapping[str, Any], arrival_ts: int) -> TradeTick | None:
        try:
            event = TradeEventSchema.model_validate(item)
        except ValidationError:
            return None
        try:
            return normalize_tick(
                symbol=event.pair,
                price=event.p,
                size=event.v,
                change_percent=event.dp,
                data_ts=event.t,
                timestamp=arrival_ts,
            )
        except (ValueError, OverflowError):
            return None

    __call__ = decode
