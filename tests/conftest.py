"""Pytest configuration, fake collaborators and an echo server."""
import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

import pytest
from aiohttp import WSMsgType, web

# Add project root to Python path to support 'from src.resilient_ws...' imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.resilient_ws.client import ResilientWebSocket  # noqa: E402
from src.resilient_ws.network.scheduler import Scheduler  # noqa: E402
from src.resilient_ws.network.transport import Transport  # noqa: E402


class ManualTimer:
    """Timer entry driven by ManualScheduler.advance()."""

    def __init__(self, when: float, seq: int, callback: Callable[[], None], interval=None):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler with a virtual clock. Nothing runs until advance() is called."""

    def __init__(self):
        self.now = 0.0
        self._timers: List[ManualTimer] = []
        self._seq = 0

    def call_soon(self, callback):
        return self.call_later(0, callback)

    def call_later(self, delay, callback):
        return self._add(delay, callback)

    def call_every(self, interval, callback):
        return self._add(interval, callback, interval)

    def _add(self, delay, callback, interval=None) -> ManualTimer:
        self._seq += 1
        timer = ManualTimer(self.now + delay, self._seq, callback, interval)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float = 0.0) -> None:
        """Move the clock forward, running every timer that falls due."""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self.now = max(self.now, timer.when)
            if timer.interval is not None:
                self._seq += 1
                timer.when += timer.interval
                timer.seq = self._seq
            else:
                self._timers.remove(timer)
            timer.callback()
        self.now = target
        self._timers = self.pending


class FakeTransport(Transport):
    """Transport whose notifications are triggered by the test."""

    def __init__(self, url: str, protocols: Optional[Sequence[str]] = None):
        super().__init__(url, protocols)
        self.connect_calls = 0
        self.sent: List = []
        self.close_calls: List = []

    @property
    def subscribed(self) -> bool:
        return self._listener is not None

    def connect(self) -> None:
        self.connect_calls += 1

    def send(self, data) -> None:
        self.sent.append(data)

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls.append((code, reason))

    def open(self, protocol: str = "", extensions: str = "") -> None:
        self.protocol = protocol
        self.extensions = extensions
        self._emit_open()

    def receive(self, data) -> None:
        self._emit_message(data)

    def drop(self, code: int = 1006, reason: str = "", was_clean: bool = False) -> None:
        self._emit_close(code, reason, was_clean)

    def fail(self, error: Exception) -> None:
        """Report a failed connect the way a real transport does."""
        self._emit_error(error)
        self._emit_close(1006, str(error), False)

    def complete_close(self) -> None:
        """Finish the closing handshake started by close()."""
        code, reason = self.close_calls[-1]
        self._emit_close(code, reason, True)


class TransportRecorder:
    """Transport factory keeping every transport it built."""

    def __init__(self):
        self.created: List[FakeTransport] = []
        self.failing_urls: Set[str] = set()

    def __call__(self, url, protocols=None) -> FakeTransport:
        if url in self.failing_urls:
            raise ValueError(f"Invalid WebSocket URL: {url!r}")
        transport = FakeTransport(url, protocols)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Create a scheduler with a virtual clock."""
    return ManualScheduler()


@pytest.fixture
def transports() -> TransportRecorder:
    """Create a recording fake transport factory."""
    return TransportRecorder()


@pytest.fixture
def fake_ws(scheduler: ManualScheduler, transports: TransportRecorder):
    """Build ResilientWebSocket instances on the fake collaborators."""
    created = []

    def factory(urls="ws://primary/ws", protocols=None, **options) -> ResilientWebSocket:
        ws = ResilientWebSocket(
            urls,
            protocols,
            scheduler=scheduler,
            transport_factory=transports,
            **options,
        )
        created.append(ws)
        return ws

    yield factory

    for ws in created:
        ws.destroy()


@pytest.fixture
async def echo_server():
    """Run an echo server answering "ping" with "pong".

    Yields:
        WebSocket URL of the server
    """
    sockets: Set[web.WebSocketResponse] = set()

    async def handle_ws(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(protocols=("chat",))
        await ws.prepare(request)
        sockets.add(ws)
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    if msg.data == "ping":
                        await ws.send_str("pong")
                    else:
                        await ws.send_str(f"echo: {msg.data}")
                elif msg.type == WSMsgType.BINARY:
                    await ws.send_bytes(msg.data)
        finally:
            sockets.discard(ws)
        return ws

    app = web.Application()
    app.router.add_get("/ws", handle_ws)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]

    yield f"ws://{host}:{port}/ws"

    for ws in list(sockets):
        await ws.close()
    await runner.cleanup()


@pytest.fixture
async def live_ws():
    """Build ResilientWebSocket instances on the real aiohttp transport."""
    created = []

    def factory(urls, protocols=None, **options) -> ResilientWebSocket:
        ws = ResilientWebSocket(urls, protocols, **options)
        created.append(ws)
        return ws

    yield factory

    for ws in created:
        ws.destroy()
    # Let closing handshakes finish before the loop goes away
    await asyncio.sleep(0.05)
