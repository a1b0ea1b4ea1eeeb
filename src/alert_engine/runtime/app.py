from __future__ import annotations

import asyncio
import signal
from typing import Any

from alert_engine.runtime.engine import AlertEngine
from alert_engine.runtime.reset import DailyResetScheduler
from alert_engine.runtime.worker import AlertWorker
from alert_engine.sinks.base import AlertSink
from alert_engine.sinks.factory import build_sink
from alert_engine.utils.config import AlertSettings
from alert_engine.utils.logger import get_logger, log_info, log_warn
from ingestion.polygon.source import ConnectFn, PolygonConnectionManager

DEFAULT_HEARTBEAT_S = 60.0


class AlertApp:
    """Wires stream -> worker -> sink and owns process-level lifecycle.

    Background tasks (daily rollover, heartbeat) live only as long as the
    stream; `shutdown()` closes the session deterministically and abandons
    in-flight sink writes.
    """

    def __init__(
        self,
        settings: AlertSettings,
        *,
        sink: AlertSink | None = None,
        connect: ConnectFn | None = None,
        heartbeat_s: float = DEFAULT_HEARTBEAT_S,
    ) -> None:
        self.settings = settings
        self.engine = AlertEngine.from_config(settings.detection)
        self.worker = AlertWorker(engine=self.engine, sink=sink or build_sink(settings))
        self.stream = PolygonConnectionManager.from_config(
            settings.stream,
            emit=self.worker.on_tick,
            connect=connect,
        )
        self.reset = DailyResetScheduler(self.engine.high_water) if settings.daily_reset_enabled else None
        self._heartbeat_s = float(heartbeat_s)
        self._tasks: list[asyncio.Task[Any]] = []
        self._stop_task: asyncio.Task[None] | None = None
        self._logger = get_logger(f"alert_engine.runtime.{self.__class__.__name__}")

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig)
            except (NotImplementedError, RuntimeError):
                # not available on this platform/loop; Ctrl-C still cancels asyncio.run
                log_warn(self._logger, "app.signal_handler_unavailable", signal=sig.name)

    def request_stop(self, sig: signal.Signals | None = None) -> asyncio.Task[None]:
        log_info(self._logger, "app.stop_requested", signal=sig.name if sig is not None else None)
        if self._stop_task is None:
            self._stop_task = asyncio.get_running_loop().create_task(self.stream.stop())
        return self._stop_task

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_s)
            self.worker.heartbeat(
                state=self.stream.state,
                frames=self.stream.frames,
                decode_failures=self.stream.decode_failures,
                reconnects=self.stream.reconnects_scheduled,
            )

    async def run(self) -> None:
        log_info(
            self._logger,
            "app.start",
            url=self.settings.stream.url,
            subscriptions=self.settings.stream.subscriptions,
            volume_threshold=self.settings.detection.volume_threshold,
            daily_reset=self.reset is not None,
        )
        loop = asyncio.get_running_loop()
        if self.reset is not None:
            self._tasks.append(loop.create_task(self.reset.run()))
        if self._heartbeat_s > 0:
            self._tasks.append(loop.create_task(self._heartbeat()))
        try:
            await self.stream.run()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self._stop_task is not None:
            await asyncio.gather(self._stop_task, return_exceptions=True)
        if not self.stream.stopped:
            await self.stream.stop()
        for t in self._tasks:
            t.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.worker.close()
        self.worker.heartbeat(state=self.stream.state, final=True)
        log_info(self._logger, "app.stopped")
