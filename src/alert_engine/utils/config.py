from __future__ import annotations

import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from alert_engine.exceptions.core import ConfigError

DEFAULT_WS_URL = "wss://socket.polygon.io/crypto"


class StreamConfig(BaseModel):
    url: str = Field(DEFAULT_WS_URL, description="Streaming endpoint.")
    api_key: str = Field(..., min_length=1, description="Opaque credential sent in the auth frame.")
    subscriptions: List[str] = Field(default_factory=lambda: ["XT.*"])
    event_type: str = "XT"
    wait_for_auth_ack: bool = True
    auth_timeout_s: float = Field(10.0, gt=0)
    subscribe_delay_s: float = Field(0.2, ge=0)
    ping_interval_s: Optional[float] = Field(30.0, gt=0)
    reconnect_initial_s: float = Field(5.0, gt=0)
    reconnect_max_s: float = Field(60.0, gt=0)
    reconnect_factor: float = Field(2.0, ge=1.0)

    @field_validator("subscriptions")
    @classmethod
    def _non_empty_channels(cls, v: List[str]) -> List[str]:
        channels = [c.strip() for c in v if c and c.strip()]
        if not channels:
            raise ValueError("at least one subscription channel is required")
        return channels

    @model_validator(mode="after")
    def _backoff_bounds(self) -> "StreamConfig":
        if self.reconnect_max_s < self.reconnect_initial_s:
            raise ValueError(
                f"reconnect_max_s ({self.reconnect_max_s}) must be >= reconnect_initial_s ({self.reconnect_initial_s})"
            )
        return self

    @property
    def subscription_param(self) -> str:
        return ",".join(self.subscriptions)


class DetectionConfig(BaseModel):
    volume_threshold: float = Field(1.5, gt=0)
    window_size: int = Field(10, ge=1)
    warmup_samples: int = Field(5, ge=1)

    @model_validator(mode="after")
    def _warmup_fits_window(self) -> "DetectionConfig":
        if self.warmup_samples > self.window_size:
            raise ValueError(f"warmup_samples ({self.warmup_samples}) must be <= window_size ({self.window_size})")
        return self


class SupabaseConfig(BaseModel):
    url: str
    key: str
    table: str = "crypto_alerts"


class TelegramConfig(BaseModel):
    bot_token: str
    chat_id: str
    timeout_s: float = 10.0


class AlertSettings(BaseModel):
    stream: StreamConfig
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    supabase: Optional[SupabaseConfig] = None
    telegram: Optional[TelegramConfig] = None
    daily_reset_enabled: bool = True
    log_config: str = "configs/logging.json"
    log_profile: Optional[str] = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> "AlertSettings":
        """Build settings from the process environment (after loading `.env`)."""
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ
        try:
            return cls.model_validate(_settings_dict(env))
        except ValidationError as exc:
            raise ConfigError(f"invalid settings: {exc}") from exc


def _bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _set_if(out: dict, key: str, value: str | None) -> None:
    if value is not None and value.strip() != "":
        out[key] = value.strip()


def _settings_dict(env: Mapping[str, str]) -> dict:
    api_key = env.get("POLYGON_API_KEY")
    if not api_key:
        raise ConfigError("POLYGON_API_KEY is not set")

    stream: dict = {"api_key": api_key}
    _set_if(stream, "url", env.get("POLYGON_WS_URL"))
    _set_if(stream, "event_type", env.get("POLYGON_EVENT_TYPE"))
    subs = env.get("POLYGON_SUBSCRIPTIONS")
    if subs:
        stream["subscriptions"] = subs.split(",")
    stream["wait_for_auth_ack"] = _bool(env.get("STREAM_WAIT_FOR_AUTH_ACK"), True)
    _set_if(stream, "auth_timeout_s", env.get("STREAM_AUTH_TIMEOUT_S"))
    _set_if(stream, "subscribe_delay_s", env.get("STREAM_SUBSCRIBE_DELAY_S"))
    _set_if(stream, "ping_interval_s", env.get("STREAM_PING_INTERVAL_S"))
    _set_if(stream, "reconnect_initial_s", env.get("STREAM_RECONNECT_INITIAL_S"))
    _set_if(stream, "reconnect_max_s", env.get("STREAM_RECONNECT_MAX_S"))
    _set_if(stream, "reconnect_factor", env.get("STREAM_RECONNECT_FACTOR"))

    detection: dict = {}
    _set_if(detection, "volume_threshold", env.get("ALERT_VOLUME_THRESHOLD"))
    _set_if(detection, "window_size", env.get("ALERT_WINDOW_SIZE"))
    _set_if(detection, "warmup_samples", env.get("ALERT_WARMUP_SAMPLES"))

    out: dict = {
        "stream": stream,
        "detection": detection,
        "daily_reset_enabled": _bool(env.get("DAILY_RESET_ENABLED"), True),
    }

    sb_url, sb_key = env.get("SUPABASE_URL"), env.get("SUPABASE_SERVICE_ROLE_KEY")
    if sb_url and sb_key:
        supabase: dict = {"url": sb_url, "key": sb_key}
        _set_if(supabase, "table", env.get("SUPABASE_ALERTS_TABLE"))
        out["supabase"] = supabase

    tg_token, tg_chat = env.get("TELEGRAM_BOT_TOKEN"), env.get("TELEGRAM_CHAT_ID")
    if tg_token and tg_chat:
        out["telegram"] = {"bot_token": tg_token, "chat_id": tg_chat}

    _set_if(out, "log_config", env.get("LOG_CONFIG"))
    _set_if(out, "log_profile", env.get("LOG_PROFILE"))
    return out
