from __future__ import annotations

import asyncio
import logging
from typing import Any

from alert_engine.contracts.alert import Alert
from alert_engine.runtime.engine import AlertEngine
from alert_engine.sinks.base import AlertSink, SinkResult
from alert_engine.utils.logger import (
    get_logger,
    log_alert,
    log_debug,
    log_exception,
    log_heartbeat,
    log_sink,
)
from ingestion.contracts.tick import TradeTick

_LOG_SAMPLE_EVERY = 1000


class AlertWorker:
    """Stream-side worker.

    Responsibility:
        tick -> engine -> (alert) -> sink dispatch

    Non-responsibilities:
        - transport / reconnect policy (ConnectionManager)
        - frame decoding (decoder)
        - sink retries (sink implementations)

    `on_tick` is the emit callback handed to the connection manager. It never
    raises: a failing tick is logged and the stream moves on. Sink writes run
    off the event loop as tracked tasks so a slow backend cannot stall ingestion.
    """

    def __init__(
        self,
        *,
        engine: AlertEngine,
        sink: AlertSink,
        logger: logging.Logger | None = None,
    ) -> None:
        self._engine = engine
        self._sink = sink
        self._logger = logger or get_logger(f"alert_engine.runtime.{self.__class__.__name__}")
        self._pending: set[asyncio.Task[SinkResult]] = set()
        self.tick_errors = 0
        self.sink_failures = 0

    @property
    def engine(self) -> AlertEngine:
        return self._engine

    def on_tick(self, tick: TradeTick) -> Alert | None:
        try:
            alert = self._engine.process(tick)
        except Exception as exc:
            self.tick_errors += 1
            log_exception(
                self._logger,
                "tick.process_error",
                symbol=getattr(tick, "symbol", None),
                err_type=type(exc).__name__,
                err=str(exc),
            )
            return None

        n = self._engine.stats.ticks
        if n % _LOG_SAMPLE_EVERY == 0:
            log_debug(self._logger, "tick.sample", ticks=n, instruments=len(self._engine.registry))

        if alert is None:
            return None

        log_alert(
            self._logger,
            "alert.emitted",
            symbol=alert.symbol,
            kind=alert.kind,
            price=alert.price,
            relative_volume=round(alert.relative_volume, 4),
            change_percent=alert.change_percent,
        )
        try:
            self._dispatch(alert)
        except Exception as exc:
            log_exception(self._logger, "alert.dispatch_error", symbol=alert.symbol, err=str(exc))
        return alert

    def _dispatch(self, alert: Alert) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(alert))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, alert: Alert) -> SinkResult:
        try:
            result = await asyncio.to_thread(self._sink.record, alert)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # contract says sinks do not raise; a broken sink is still just a failed write
            result = SinkResult.failure(getattr(self._sink, "name", type(self._sink).__name__), exc)
        if not result.ok:
            self.sink_failures += 1
            log_sink(
                self._logger,
                "sink.write_failed",
                sink=result.sink,
                symbol=alert.symbol,
                kind=alert.kind,
                err=result.error,
            )
        return result

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> list[SinkResult]:
        """Wait for every in-flight sink write."""
        if not self._pending:
            return []
        results = await asyncio.gather(*list(self._pending), return_exceptions=True)
        return [r for r in results if isinstance(r, SinkResult)]

    async def close(self) -> None:
        """Abandon in-flight sink writes."""
        tasks = list(self._pending)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def heartbeat(self, **extra: Any) -> None:
        stats = self._engine.stats
        log_heartbeat(
            self._logger,
            "worker.heartbeat",
            ticks=stats.ticks,
            alerts=stats.alerts,
            instruments=len(self._engine.registry),
            tick_errors=self.tick_errors,
            sink_failures=self.sink_failures,
            pending_writes=self.pending,
            **extra,
        )
