"""WebSocket transport primitive and its aiohttp implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Set

import aiohttp
from yarl import URL

from ..models import ABNORMAL_CLOSURE, NORMAL_CLOSURE, Payload


logger = logging.getLogger(__name__)

WS_SCHEMES = {"ws", "wss", "http", "https"}


class TransportListener(ABC):
    """Receives notifications from one transport instance."""

    @abstractmethod
    def on_transport_open(self, transport: "Transport") -> None:
        pass

    @abstractmethod
    def on_transport_message(self, transport: "Transport", data: Payload) -> None:
        pass

    @abstractmethod
    def on_transport_close(
        self, transport: "Transport", code: int, reason: str, was_clean: bool
    ) -> None:
        pass

    @abstractmethod
    def on_transport_error(
        self, transport: "Transport", error: Optional[BaseException]
    ) -> None:
        pass


class Transport(ABC):
    """A single connection attempt to one URL.

    ``connect``, ``send`` and ``close`` return immediately; outcomes are
    delivered to the subscribed listener. A transport is never reused after
    it closed.
    """

    def __init__(self, url: str, protocols: Optional[Sequence[str]] = None):
        self.url = url
        self.protocols = list(protocols or [])
        self.protocol = ""
        self.extensions = ""
        self._listener: Optional[TransportListener] = None

    def subscribe(self, listener: TransportListener) -> None:
        self._listener = listener

    def unsubscribe(self) -> None:
        """Detach the listener; later notifications are dropped."""
        self._listener = None

    @abstractmethod
    def connect(self) -> None:
        """Start connecting."""

    @abstractmethod
    def send(self, data: Payload) -> None:
        """Send a payload on the open connection."""

    @abstractmethod
    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Start the closing handshake, or abort a pending connect."""

    def _emit_open(self) -> None:
        if self._listener:
            self._listener.on_transport_open(self)

    def _emit_message(self, data: Payload) -> None:
        if self._listener:
            self._listener.on_transport_message(self, data)

    def _emit_close(self, code: int, reason: str, was_clean: bool) -> None:
        if self._listener:
            self._listener.on_transport_close(self, code, reason, was_clean)

    def _emit_error(self, error: Optional[BaseException]) -> None:
        if self._listener:
            self._listener.on_transport_error(self, error)


class AiohttpTransport(Transport):
    """Transport over ``aiohttp.ClientSession.ws_connect``.

    One task owns the connection: it performs the handshake, reads frames
    until the connection ends and then reports the close exactly once.
    """

    def __init__(
        self,
        url: str,
        protocols: Optional[Sequence[str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize transport.

        Args:
            url: WebSocket URL
            protocols: Sub-protocols offered in the handshake
            session: Shared HTTP session (default: one owned per connection)

        Raises:
            ValueError: If the URL is not a WebSocket or HTTP URL
        """
        parsed = URL(url)
        if parsed.scheme not in WS_SCHEMES or not parsed.host:
            raise ValueError(f"Invalid WebSocket URL: {url!r}")
        super().__init__(url, protocols)
        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()
        self._close_requested: Optional[tuple] = None
        self._close_task: Optional[asyncio.Task] = None
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()

    def connect(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_task_done)

    def send(self, data: Payload) -> None:
        if not isinstance(data, (str, bytes, bytearray, memoryview)):
            raise TypeError(f"Unsupported payload type: {type(data).__name__}")
        if self._ws is None or self._ws.closed or self._close_requested:
            logger.warning("Cannot send on %s; connection not open", self.url)
            return
        self._track(asyncio.get_running_loop().create_task(self._send(data)))

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self._closed or self._close_requested:
            return
        self._close_requested = (code, reason)
        if self._ws is None:
            # Still handshaking
            if self._task:
                self._task.cancel()
            else:
                self._finish(code, reason, True)
            return
        self._close_task = asyncio.get_running_loop().create_task(
            self._ws.close(code=code, message=reason.encode("utf-8"))
        )
        self._track(self._close_task)

    def _track(self, task: asyncio.Task) -> None:
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, data: Payload) -> None:
        async with self._send_lock:
            ws = self._ws
            if ws is None or ws.closed:
                return
            try:
                if isinstance(data, str):
                    await ws.send_str(data)
                else:
                    await ws.send_bytes(bytes(data))
            except Exception as e:
                logger.error(f"WebSocket send failed: {e}")
                self._emit_error(e)

    async def _run(self) -> None:
        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True
            self._ws = await self._session.ws_connect(
                self.url, protocols=tuple(self.protocols)
            )
        except asyncio.CancelledError:
            code, reason = self._close_requested or (ABNORMAL_CLOSURE, "Connection aborted")
            await self._release_session()
            self._finish(code, reason, False)
            return
        except Exception as e:
            logger.warning(f"WebSocket connection to {self.url} failed: {e}")
            await self._release_session()
            self._emit_error(e)
            self._finish(ABNORMAL_CLOSURE, str(e) or type(e).__name__, False)
            return

        self.protocol = self._ws.protocol or ""
        self.extensions = "permessage-deflate" if self._ws.compress else ""
        self._emit_open()

        code, reason, was_clean = await self._read_loop()
        await self._release_session()
        self._finish(code, reason, was_clean)

    async def _read_loop(self) -> tuple:
        ws = self._ws
        reason = ""
        while True:
            try:
                msg = await ws.receive()
            except asyncio.CancelledError:
                return ABNORMAL_CLOSURE, "Connection aborted", False
            except Exception as e:
                logger.error(f"WebSocket receive error: {e}")
                self._emit_error(e)
                return ABNORMAL_CLOSURE, str(e), False

            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self._emit_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._emit_error(ws.exception())
                return ABNORMAL_CLOSURE, str(ws.exception() or "WebSocket error"), False
            elif msg.type == aiohttp.WSMsgType.CLOSE:
                reason = msg.extra or ""
                break
            elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                break

        if self._close_requested:
            if self._close_task:
                try:
                    await self._close_task
                except Exception as e:
                    logger.debug(f"Closing handshake failed: {e}")
            code, reason = self._close_requested
            return code, reason, True
        return ws.close_code or ABNORMAL_CLOSURE, reason, ws.close_code is not None

    def _on_task_done(self, task: asyncio.Task) -> None:
        # Covers a cancel that lands before the task ever ran
        if task.cancelled():
            code, reason = self._close_requested or (ABNORMAL_CLOSURE, "Connection aborted")
            self._finish(code, reason, False)

    async def _release_session(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _finish(self, code: int, reason: str, was_clean: bool) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("WebSocket %s closed (%d %s)", self.url, code, reason)
        self._emit_close(code, reason, was_clean)
