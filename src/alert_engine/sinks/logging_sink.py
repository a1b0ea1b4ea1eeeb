from __future__ import annotations

import logging

from alert_engine.contracts.alert import Alert
from alert_engine.sinks.base import AlertSinkBase
from alert_engine.utils.logger import get_logger, log_alert


class LoggingAlertSink(AlertSinkBase):
    """Fallback sink when no persistence/notification backend is configured."""

    name = "log"

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def _write(self, alert: Alert) -> None:
        log_alert(self._logger, "alert.recorded", **alert.to_record())
