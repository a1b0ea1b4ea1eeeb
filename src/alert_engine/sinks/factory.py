from __future__ import annotations

from alert_engine.sinks.base import AlertSink
from alert_engine.sinks.composite import CompositeAlertSink
from alert_engine.sinks.logging_sink import LoggingAlertSink
from alert_engine.sinks.supabase_sink import SupabaseAlertSink
from alert_engine.sinks.telegram import TelegramAlertSink
from alert_engine.utils.config import AlertSettings
from alert_engine.utils.logger import get_logger, log_info, log_warn

logger = get_logger(__name__)


def build_sink(settings: AlertSettings) -> AlertSink:
    """Persistence (Supabase) then notification (Telegram); log-only when neither is configured."""
    persist: AlertSink | None = None
    notifiers: list[AlertSink] = []

    if settings.supabase is not None:
        persist = SupabaseAlertSink.from_credentials(
            settings.supabase.url,
            settings.supabase.key,
            table=settings.supabase.table,
        )
    if settings.telegram is not None:
        notifiers.append(
            TelegramAlertSink(
                bot_token=settings.telegram.bot_token,
                chat_id=settings.telegram.chat_id,
                timeout=settings.telegram.timeout_s,
            )
        )

    if persist is None and not notifiers:
        log_warn(logger, "sink.none_configured", fallback="log")
        return LoggingAlertSink()

    log_info(
        logger,
        "sink.configured",
        persist=getattr(persist, "name", None),
        notifiers=[n.name for n in notifiers],
    )
    return CompositeAlertSink(persist, notifiers)
