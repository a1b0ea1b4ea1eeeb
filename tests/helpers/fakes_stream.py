from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable

from alert_engine.contracts.alert import Alert
from alert_engine.sinks.base import AlertSinkBase, SinkResult

_EOF = object()


class FakeClosed(Exception):
    """Raised by FakeWebSocket.recv() once the peer has closed."""


def status(status: str, message: str = "") -> str:
    return json.dumps([{"ev": "status", "status": status, "message": message}])


def trade(pair: str, p: float, v: float, dp: float | None = None, ev: str = "XT") -> dict[str, Any]:
    out: dict[str, Any] = {"ev": ev, "pair": pair, "p": p, "v": v}
    if dp is not None:
        out["dp"] = dp
    return out


def frame(*events: dict[str, Any]) -> str:
    return json.dumps(list(events))


class FakeWebSocket:
    """Scripted transport session.

    Frames are delivered in order; once exhausted the session ends with a
    normal close (or `close_error`), unless `hold_open` keeps it idle.
    """

    def __init__(
        self,
        frames: list[Any] | tuple[Any, ...] = (),
        *,
        hold_open: bool = False,
        close_error: BaseException | None = None,
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.close_error = close_error
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        for f in frames:
            self._queue.put_nowait(f)
        if not hold_open:
            self._queue.put_nowait(_EOF)

    def push(self, raw: Any) -> None:
        self._queue.put_nowait(raw)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def recv(self) -> Any:
        item = await self._queue.get()
        if item is _EOF:
            self._queue.put_nowait(_EOF)
            if self.close_error is not None:
                raise self.close_error
            raise FakeClosed("peer closed")
        return item

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.recv()
        except FakeClosed:
            raise StopAsyncIteration

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_EOF)


class FakeConnector:
    """Stand-in for `websockets.connect`: returns scripted sockets or raises scripted errors.

    Once the script is exhausted every call returns an idle socket.
    """

    def __init__(self, *script: FakeWebSocket | BaseException) -> None:
        self._script = list(script)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.sockets: list[FakeWebSocket] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.calls.append((url, kwargs))
        item: FakeWebSocket | BaseException = self._script.pop(0) if self._script else FakeWebSocket(hold_open=True)
        if isinstance(item, BaseException):
            raise item
        self.sockets.append(item)
        return item


class FailingSink(AlertSinkBase):
    name = "failing"

    def __init__(self, exc: Exception | None = None) -> None:
        self.calls = 0
        self._exc = exc or RuntimeError("backend down")

    def _write(self, alert: Alert) -> None:
        self.calls += 1
        raise self._exc


class RecordingSink:
    name = "recording"

    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.alerts: list[Alert] = []

    def record(self, alert: Alert) -> SinkResult:
        self.alerts.append(alert)
        if self.ok:
            return SinkResult.success(self.name)
        return SinkResult.failure(self.name, "rejected")


async def never(_delay: float) -> None:
    """Sleep replacement that parks forever (keeps reconnect tasks pending)."""
    await asyncio.Event().wait()


async def wait_until(cond: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = time.monotonic() + timeout
    while not cond():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)
