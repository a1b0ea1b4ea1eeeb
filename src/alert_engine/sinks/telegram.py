from __future__ import annotations

from typing import Any

import requests

from alert_engine.contracts.alert import Alert
from alert_engine.exceptions.core import SinkError
from alert_engine.sinks.base import AlertSinkBase
from alert_engine.utils.format import format_currency, format_percent, format_ratio

TELEGRAM_API_BASE = "https://api.telegram.org/bot"


def render_message(alert: Alert) -> str:
    return (
        f"\U0001F6A8 {alert.kind.title} for {alert.symbol}\n"
        f"\U0001F4B0 Price: {format_currency(alert.price)}\n"
        f"\U0001F4C8 Change: {format_percent(alert.change_percent)}\n"
        f"\U0001F4CA Relative Volume: {format_ratio(alert.relative_volume)}"
    )


class TelegramAlertSink(AlertSinkBase):
    """Push alerts to a Telegram chat via the Bot API `sendMessage`."""

    name = "telegram"

    def __init__(
        self,
        *,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        session: Any | None = None,
    ) -> None:
        self._url = f"{TELEGRAM_API_BASE}{bot_token}/sendMessage"
        self.chat_id = chat_id
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    def _write(self, alert: Alert) -> None:
        resp = self._session.post(
            self._url,
            json={
                "chat_id": self.chat_id,
                "text": render_message(alert),
                "disable_web_page_preview": True,
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        if not body.get("ok", False):
            raise SinkError(f"telegram rejected message: {body.get('description', 'unknown error')}")
