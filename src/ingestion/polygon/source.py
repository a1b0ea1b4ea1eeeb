"""Session protocol (Polygon websocket cluster):

    client -> {"action": "auth", "params": "<api key>"}
    server <- [{"ev": "status", "status": "auth_success", ...}]
    client -> {"action": "subscribe", "params": "XT.*"}          (or "XT.BTC-USD,XT.ETH-USD")
    server <- [{"ev": "status", "status": "success", ...}]
    server <- [{"ev": "XT", "pair": ..., "p": ..., "v": ..., "dp": ...}, ...]

Reconnect bookkeeping:
  - every session runs under the generation current when it was spawned
  - closing a session bumps the generation first, so a late close/error
    from the same session is recognized as stale and ignored
  - at most one reconnect task is pending at any time
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from alert_engine.exceptions.core import DecodeError, TransportError
from alert_engine.utils.config import StreamConfig
from alert_engine.utils.logger import (
    get_logger,
    log_connection,
    log_data_integrity,
    log_debug,
    log_exception,
    log_info,
)
from ingestion.contracts.tick import TradeTick
from ingestion.polygon.normalize import PolygonTradeDecoder, StatusMessage


AUTH_OK = {"auth_success"}
AUTH_FAILED = {"auth_failed", "auth_failure", "auth_timeout"}
SUBSCRIBE_OK = {"success", "subscription_success"}

EmitFn = Callable[[TradeTick], Any]
ConnectFn = Callable[..., Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    SUBSCRIBED = "subscribed"
    ERROR = "error"


class BackoffPolicy:
    """Capped exponential reconnect delay: initial, initial*factor, ... <= maximum."""

    def __init__(self, *, initial: float = 5.0, maximum: float = 60.0, factor: float = 2.0):
        if initial <= 0:
            raise ValueError(f"initial backoff must be > 0, got {initial}")
        if maximum < initial:
            raise ValueError(f"maximum backoff ({maximum}) must be >= initial ({initial})")
        if factor < 1.0:
            raise ValueError(f"backoff factor must be >= 1, got {factor}")
        self.initial = float(initial)
        self.maximum = float(maximum)
        self.factor = float(factor)
        self._attempt = 0

    def next_delay(self) -> float:
        delay = min(self.initial * (self.factor ** self._attempt), self.maximum)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0

    @property
    def attempt(self) -> int:
        return self._attempt


async def _default_connect(url: str, **kwargs: Any) -> Any:
    import websockets

    return await websockets.connect(url, **kwargs)


async def _close_quietly(ws: Any, logger: logging.Logger) -> None:
    try:
        await ws.close()
    except Exception as exc:
        log_debug(logger, "stream.close_error", err_type=type(exc).__name__, err=str(exc))


class PolygonConnectionManager:
    """Own the streaming session: connect, authenticate, subscribe, reconnect.

    Decoded ticks are handed to `emit(tick)` synchronously, in arrival order.
    `emit` failures are logged and never end the session; transport failures
    end the session and schedule exactly one reconnect.
    """

    def __init__(
        self,
        *,
        api_key: str,
        emit: EmitFn,
        url: str = "wss://socket.polygon.io/crypto",
        subscriptions: Sequence[str] = ("XT.*",),
        decoder: PolygonTradeDecoder | None = None,
        wait_for_auth_ack: bool = True,
        auth_timeout_s: float = 10.0,
        subscribe_delay_s: float = 0.2,
        ping_interval_s: float | None = 30.0,
        backoff: BackoffPolicy | None = None,
        connect: ConnectFn | None = None,
        sleep: SleepFn | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        channels = [s.strip() for s in subscriptions if s and s.strip()]
        if not channels:
            raise ValueError("at least one subscription channel is required")

        self._api_key = api_key
        self._emit = emit
        self._url = url
        self._subscription = ",".join(channels)
        self._decoder = decoder or PolygonTradeDecoder()
        self._wait_for_auth_ack = bool(wait_for_auth_ack)
        self._auth_timeout_s = float(auth_timeout_s)
        self._subscribe_delay_s = float(subscribe_delay_s)
        self._ping_interval_s = ping_interval_s
        self._backoff = backoff or BackoffPolicy()
        self._connect = connect or _default_connect
        self._sleep = sleep or asyncio.sleep
        self._logger = logger or get_logger(f"ingestion.polygon.{self.__class__.__name__}")

        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        self._ws: Any | None = None
        self._session_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._authenticated = False
        self._stopping = False
        self._stopped = asyncio.Event()

        self.frames = 0
        self.ticks = 0
        self.decode_failures = 0
        self.emit_errors = 0
        self.reconnects_scheduled = 0

    @classmethod
    def from_config(
        cls,
        cfg: StreamConfig,
        *,
        emit: EmitFn,
        connect: ConnectFn | None = None,
        logger: logging.Logger | None = None,
    ) -> "PolygonConnectionManager":
        return cls(
            api_key=cfg.api_key,
            emit=emit,
            url=cfg.url,
            subscriptions=cfg.subscriptions,
            decoder=PolygonTradeDecoder(event_type=cfg.event_type),
            wait_for_auth_ack=cfg.wait_for_auth_ack,
            auth_timeout_s=cfg.auth_timeout_s,
            subscribe_delay_s=cfg.subscribe_delay_s,
            ping_interval_s=cfg.ping_interval_s,
            backoff=BackoffPolicy(
                initial=cfg.reconnect_initial_s,
                maximum=cfg.reconnect_max_s,
                factor=cfg.reconnect_factor,
            ),
            connect=connect,
            logger=logger,
        )

    # -------------------------------------------------
    # Public surface
    # -------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> None:
        """Spawn the first session (no-op if one is active or we are stopping)."""
        if self._stopping:
            return
        if self._session_task is not None and not self._session_task.done():
            return
        if self.reconnect_pending:
            return
        self._spawn_session()

    async def run(self) -> None:
        """Run until `stop()` is called."""
        self.start()
        await self._stopped.wait()

    async def stop(self) -> None:
        """Close the active session and suppress any further reconnects."""
        if self._stopping and self._stopped.is_set():
            return
        self._stopping = True
        # invalidate in-flight handlers before touching the socket
        self._generation += 1

        reconnect, self._reconnect_task = self._reconnect_task, None
        if reconnect is not None and not reconnect.done():
            reconnect.cancel()
            await asyncio.gather(reconnect, return_exceptions=True)

        ws, self._ws = self._ws, None
        if ws is not None:
            await _close_quietly(ws, self._logger)

        task = self._session_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._session_task = None

        self._set_state(ConnectionState.DISCONNECTED, reason="shutdown")
        log_info(
            self._logger,
            "stream.stopped",
            frames=self.frames,
            ticks=self.ticks,
            decode_failures=self.decode_failures,
            reconnects=self.reconnects_scheduled,
        )
        self._stopped.set()

    # -------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------

    def _spawn_session(self) -> None:
        gen = self._generation
        self._session_task = asyncio.get_running_loop().create_task(self._session(gen))

    async def _session(self, gen: int) -> None:
        self._set_state(ConnectionState.CONNECTING, generation=gen, url=self._url)
        try:
            ws = await self._connect(self._url, ping_interval=self._ping_interval_s)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._on_error(gen, exc)
            return

        if gen != self._generation or self._stopping:
            await _close_quietly(ws, self._logger)
            return
        self._ws = ws

        try:
            await self._handshake(gen, ws)
            async for raw in ws:
                self._on_message(gen, raw)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._on_error(gen, exc)
            return
        self._on_close(gen, reason="remote_close")

    async def _handshake(self, gen: int, ws: Any) -> None:
        self._authenticated = False
        await ws.send(json.dumps({"action": "auth", "params": self._api_key}))
        self._set_state(ConnectionState.AWAITING_AUTH, generation=gen)

        if self._wait_for_auth_ack:
            try:
                await asyncio.wait_for(self._await_auth(gen, ws), timeout=self._auth_timeout_s)
            except asyncio.TimeoutError as exc:
                raise TransportError(
                    f"no auth acknowledgement within {self._auth_timeout_s}s"
                ) from exc
        else:
            # best-effort ordering only; the server is not confirmed to have authenticated us
            await self._sleep(self._subscribe_delay_s)

        await ws.send(json.dumps({"action": "subscribe", "params": self._subscription}))
        self._set_state(ConnectionState.SUBSCRIBED, generation=gen, params=self._subscription)
        self._backoff.reset()

    async def _await_auth(self, gen: int, ws: Any) -> None:
        while not self._authenticated:
            raw = await ws.recv()
            self._on_message(gen, raw)

    def _on_close(self, gen: int, *, reason: str = "closed") -> bool:
        """Session ended. Only the current generation may schedule a reconnect."""
        if gen != self._generation:
            log_debug(self._logger, "stream.stale_close", generation=gen, current=self._generation)
            return False
        self._generation += 1
        self._ws = None
        self._authenticated = False
        self._set_state(ConnectionState.DISCONNECTED, generation=gen, reason=reason)
        return self._schedule_reconnect()

    async def _on_error(self, gen: int, exc: BaseException) -> bool:
        """Transport error: close the socket and let the close path schedule the reconnect."""
        if gen != self._generation:
            log_debug(
                self._logger,
                "stream.stale_error",
                generation=gen,
                current=self._generation,
                err_type=type(exc).__name__,
            )
            return False
        self._set_state(
            ConnectionState.ERROR,
            level=logging.WARNING,
            generation=gen,
            err_type=type(exc).__name__,
            err=str(exc),
        )
        ws = self._ws
        if ws is not None:
            await _close_quietly(ws, self._logger)
        return self._on_close(gen, reason="error")

    def _schedule_reconnect(self) -> bool:
        if self._stopping:
            return False
        if self.reconnect_pending:
            return False
        delay = self._backoff.next_delay()
        self.reconnects_scheduled += 1
        log_connection(
            self._logger,
            "stream.reconnect_scheduled",
            delay_s=delay,
            attempt=self._backoff.attempt,
            generation=self._generation,
        )
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))
        return True

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if not self._stopping:
            self._spawn_session()

    # -------------------------------------------------
    # Inbound frames
    # -------------------------------------------------

    def _on_message(self, gen: int, raw: Any) -> None:
        self.frames += 1
        try:
            frame = self._decoder.decode(raw)
        except DecodeError as exc:
            self.decode_failures += 1
            log_data_integrity(
                self._logger,
                "decode.failed",
                generation=gen,
                raw_type=type(raw).__name__,
                err=str(exc),
            )
            return

        for status in frame.statuses:
            self._on_status(gen, status)

        if frame.dropped:
            log_debug(self._logger, "decode.drop", dropped=frame.dropped, kept=len(frame.ticks))

        for tick in frame.ticks:
            self.ticks += 1
            try:
                self._emit(tick)
            except Exception as exc:
                self.emit_errors += 1
                log_exception(
                    self._logger,
                    "stream.emit_error",
                    symbol=tick.symbol,
                    err_type=type(exc).__name__,
                    err=str(exc),
                )

    def _on_status(self, gen: int, status: StatusMessage) -> None:
        key = status.key
        if key in AUTH_OK:
            self._authenticated = True
            log_connection(self._logger, "stream.authenticated", generation=gen, message=status.message)
        elif key in AUTH_FAILED:
            raise TransportError(f"authentication rejected: {status.message or status.status}")
        elif key in SUBSCRIBE_OK:
            log_connection(self._logger, "stream.subscription_ack", generation=gen, message=status.message)
        else:
            log_connection(
                self._logger,
                "stream.status",
                generation=gen,
                status=status.status,
                message=status.message,
            )

    def _set_state(self, state: ConnectionState, *, level: int = logging.INFO, **context: Any) -> None:
        prev, self._state = self._state, state
        log_connection(self._logger, "stream.state", level=level, state=state, prev=prev, **context)
