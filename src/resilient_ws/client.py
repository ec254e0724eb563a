"""Resilient WebSocket client with a browser-style WebSocket surface."""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .config import ConnectionConfig
from .models import (
    NORMAL_CLOSURE,
    ConnectionState,
    Event,
    Payload,
    QueuedMessage,
    payload_size,
)
from .network.controller import ConnectionController, TransportFactory
from .network.queue import RingBufferQueue
from .network.scheduler import Scheduler


logger = logging.getLogger(__name__)

EventListener = Callable[[Any], None]

EVENT_TYPES = ("open", "message", "close", "error")


class ResilientWebSocket:
    """WebSocket that falls back across URLs, reconnects and buffers sends.

    Mirrors the browser ``WebSocket`` object: ``ready_state``, ``url``,
    ``protocol``, ``extensions``, ``buffered_amount``, ``send`` and ``close``,
    with both ``add_event_listener`` and ``on_<event>`` handler slots. While
    the connection is not open, ``send`` queues payloads (bounded by
    ``max_queue_count`` and ``max_queue_bytes``) and the queue is flushed in
    order once the connection opens.

    Must be created while an asyncio event loop is running when the default
    scheduler and transport are used.

    Example:
        ws = ResilientWebSocket(
            ["ws://primary:8765/ws", "ws://backup:8765/ws"],
            enable_heartbeat=True,
        )
        ws.on_message = lambda event: print(event.data)
        ws.send("hello")  # queued until open
    """

    CONNECTING = ConnectionState.CONNECTING
    OPEN = ConnectionState.OPEN
    CLOSING = ConnectionState.CLOSING
    CLOSED = ConnectionState.CLOSED

    def __init__(
        self,
        urls: Union[str, Sequence[str]],
        protocols: Optional[Union[str, Sequence[str]]] = None,
        config: Optional[ConnectionConfig] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        transport_factory: Optional[TransportFactory] = None,
        **options: Any,
    ):
        """Initialize and start connecting to the first URL.

        Args:
            urls: A URL or candidate URLs in preference order
            protocols: Sub-protocol(s) offered during the handshake
            config: Connection configuration (default: ConnectionConfig())
            scheduler: Timer service (default: running asyncio loop)
            transport_factory: Builds a transport for a URL (default: aiohttp)
            **options: Overrides for individual ConnectionConfig fields

        Raises:
            ValueError: If no URL is given or an option is invalid
        """
        url_list = [urls] if isinstance(urls, str) else list(urls)
        if not url_list:
            raise ValueError("At least one URL must be provided")

        config = (config or ConnectionConfig()).with_overrides(**options)
        if protocols:
            if isinstance(protocols, str):
                protocols = [protocols]
            config = config.with_overrides(protocols=list(protocols))
        self.config = config

        self.on_open: Optional[EventListener] = None
        self.on_message: Optional[EventListener] = None
        self.on_close: Optional[EventListener] = None
        self.on_error: Optional[EventListener] = None
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)

        self._queue: RingBufferQueue[QueuedMessage] = RingBufferQueue(
            config.max_queue_count, config.max_queue_bytes
        )
        self._controller = ConnectionController(
            url_list,
            config,
            self._queue,
            emit=self._dispatch,
            send=self.send,
            scheduler=scheduler,
            transport_factory=transport_factory,
        )
        self._controller.connect()

    def __enter__(self) -> "ResilientWebSocket":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.destroy()

    def __repr__(self) -> str:
        return (
            f"ResilientWebSocket(url={self.url!r}, "
            f"ready_state={self.ready_state.name})"
        )

    # WebSocket surface

    @property
    def ready_state(self) -> ConnectionState:
        return self._controller.state

    @property
    def url(self) -> str:
        return self._controller.url

    @property
    def protocol(self) -> str:
        return self._controller.protocol

    @property
    def extensions(self) -> str:
        return self._controller.extensions

    @property
    def buffered_amount(self) -> int:
        """Bytes queued but not yet handed to the transport."""
        return self._queue.byte_size

    def send(self, data: Payload) -> None:
        """Send now if open, otherwise queue for delivery on open.

        Sends after ``destroy()`` are silently dropped.

        Raises:
            TypeError: If data is neither text nor bytes-like
            QueueCapacityError: If data alone exceeds ``max_queue_bytes``
        """
        if self._controller.destroyed:
            return

        size = payload_size(data)
        if self._controller.state == ConnectionState.OPEN:
            self._controller.send_direct(data)
            return

        self._queue.push(QueuedMessage(data=data, size=size))
        logger.debug("Queued %d byte message (%d pending)", size, len(self._queue))

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the connection without reconnecting.

        A no-op when already closing or closed.
        """
        self._controller.close(code, reason)

    def destroy(self) -> None:
        """Close for good, drop queued messages and cancel every timer."""
        self._controller.destroy()

    def force_reconnect(self) -> None:
        """Reconnect now, re-enabling reconnection if it was given up."""
        self._controller.force_reconnect()

    def get_queued_message_count(self) -> int:
        return len(self._queue)

    def clear_message_queue(self) -> None:
        self._queue.clear()

    def get_current_url(self) -> str:
        return self._controller.policy.current_url

    def get_reconnect_attempts(self) -> int:
        return self._controller.reconnect_attempts

    # Events

    def add_event_listener(self, event_type: str, listener: EventListener) -> None:
        """Register a listener for "open", "message", "close" or "error"."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        if listener not in self._listeners[event_type]:
            self._listeners[event_type].append(listener)

    def remove_event_listener(self, event_type: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def _dispatch(self, event: Event) -> None:
        """Call listeners in registration order, then the handler slot."""
        callbacks = list(self._listeners.get(event.type, ()))
        handler = getattr(self, f"on_{event.type}", None)
        if handler is not None:
            callbacks.append(handler)

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Error in %s event handler", event.type)
