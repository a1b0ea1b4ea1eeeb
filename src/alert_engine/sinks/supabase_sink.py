from __future__ import annotations

from typing import Any

from alert_engine.contracts.alert import Alert
from alert_engine.exceptions.core import SinkError
from alert_engine.sinks.base import AlertSinkBase

DEFAULT_TABLE = "crypto_alerts"


class SupabaseAlertSink(AlertSinkBase):
    """Insert alerts as rows into a Supabase (PostgREST) table.

    Row columns: ticker, price, change_percent, relative_volume, alert_type,
    created_at (ISO-8601).
    """

    name = "supabase"

    def __init__(self, *, client: Any, table: str = DEFAULT_TABLE) -> None:
        self._client = client
        self.table = table

    @classmethod
    def from_credentials(cls, url: str, key: str, *, table: str = DEFAULT_TABLE) -> "SupabaseAlertSink":
        from supabase import create_client

        return cls(client=create_client(url, key), table=table)

    def _write(self, alert: Alert) -> None:
        response = self._client.table(self.table).insert(alert.to_record()).execute()
        # older clients report errors on the response instead of raising
        error = getattr(response, "error", None)
        if error:
            raise SinkError(f"insert into {self.table!r} failed: {error}")
