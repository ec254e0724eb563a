"""Connection lifecycle: connect, fallback, backoff, heartbeat."""

import logging
from typing import Callable, Optional, Sequence

from ..config import ConnectionConfig
from ..models import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    CloseEvent,
    ConnectionState,
    ErrorEvent,
    Event,
    MessageEvent,
    Payload,
    QueuedMessage,
)
from .heartbeat import HeartbeatMonitor
from .queue import RingBufferQueue
from .reconnect import ReconnectPolicy
from .scheduler import AsyncioScheduler, Scheduler, Timer
from .transport import AiohttpTransport, Transport, TransportListener


logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, Optional[Sequence[str]]], Transport]


def default_transport_factory(url: str, protocols: Optional[Sequence[str]]) -> Transport:
    return AiohttpTransport(url, protocols)


class ConnectionController(TransportListener):
    """Owns the live transport and drives every state transition.

    Exactly one transport is subscribed at a time. Notifications from a
    transport that has been replaced or detached are ignored.
    """

    def __init__(
        self,
        urls: Sequence[str],
        config: ConnectionConfig,
        queue: RingBufferQueue[QueuedMessage],
        emit: Callable[[Event], None],
        send: Optional[Callable[[Payload], None]] = None,
        scheduler: Optional[Scheduler] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """Initialize controller.

        Args:
            urls: Candidate URLs in preference order
            config: Connection configuration
            queue: Outbound queue flushed on open
            emit: Callback receiving every public event
            send: Send path used for heartbeat probes
            scheduler: Timer service (default: asyncio loop)
            transport_factory: Builds a transport for a URL
        """
        self.config = config
        self.queue = queue
        self.scheduler = scheduler or AsyncioScheduler()
        self.transport_factory = transport_factory or default_transport_factory
        self.policy = ReconnectPolicy(
            urls,
            max_attempts=config.max_reconnect_attempts,
            backoff_factor=config.reconnect_backoff_factor,
            fallback_delay=config.fallback_delay,
            max_delay=config.max_reconnect_delay,
        )
        self.heartbeat = HeartbeatMonitor(
            self.scheduler,
            interval=config.heartbeat_interval,
            timeout=config.heartbeat_timeout,
            message=config.heartbeat_message,
            enabled=config.enable_heartbeat,
            send=send or self.send_direct,
            on_timeout=self._on_heartbeat_timeout,
            is_active=self._is_open,
        )
        self._emit = emit

        self.state = ConnectionState.CONNECTING
        self.url = self.policy.current_url
        self.protocol = ""
        self.extensions = ""
        self.destroyed = False
        self.should_reconnect = True

        self._transport: Optional[Transport] = None
        self._connect_timer: Optional[Timer] = None
        self._reconnect_timer: Optional[Timer] = None
        self._close_notice: Optional[Timer] = None

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def reconnect_attempts(self) -> int:
        return self.policy.attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def _is_open(self) -> bool:
        return self.state == ConnectionState.OPEN and not self.destroyed

    # Lifecycle

    def connect(self) -> None:
        """Start a connection attempt to the current URL."""
        if self.destroyed:
            return

        self.state = ConnectionState.CONNECTING
        self.clear_timers()
        self.url = self.policy.current_url
        self._disconnect_transport()

        try:
            transport = self.transport_factory(self.url, self.config.protocols)
            transport.subscribe(self)
            self._transport = transport
            self._connect_timer = self.scheduler.call_later(
                self.config.connect_timeout, self._on_connect_timeout
            )
            logger.info("Connecting to %s", self.url)
            transport.connect()
        except Exception as e:
            logger.warning(f"Failed to start connection to {self.url}: {e}")
            self._disconnect_transport()
            self.clear_timers()
            reason = str(e) or type(e).__name__
            # Reported on the next tick so listeners added after construction see it
            self._connect_timer = self.scheduler.call_soon(
                lambda: self._on_connection_error(reason)
            )

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the connection and disable automatic reconnection."""
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            self.should_reconnect = False
            if self._reconnect_timer:
                logger.info("Cancelling pending reconnect to %s", self.url)
                self.clear_timers()
            return
        self.should_reconnect = False
        self._close_internal(code, reason)

    def destroy(self) -> None:
        """Tear everything down for good. No further events are emitted."""
        if self.destroyed:
            return
        self.destroyed = True
        self.should_reconnect = False
        self.clear_timers()
        if self._close_notice:
            self._close_notice.cancel()
            self._close_notice = None
        self.queue.clear()
        self._disconnect_transport()
        self.state = ConnectionState.CLOSED
        logger.info("Connection to %s destroyed", self.url)

    def force_reconnect(self) -> None:
        """Re-enable reconnection and reconnect now."""
        if self.destroyed:
            return
        self.should_reconnect = True
        if self._transport and self.state == ConnectionState.OPEN:
            self._close_internal(NORMAL_CLOSURE, "forced reconnect")
        elif self.state == ConnectionState.CLOSED:
            self.connect()

    def clear_timers(self) -> None:
        """Cancel connect-timeout, reconnect-delay and both heartbeat timers."""
        if self._connect_timer:
            self._connect_timer.cancel()
            self._connect_timer = None
        if self._reconnect_timer:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        self.heartbeat.stop()

    def _close_internal(self, code: int, reason: str) -> None:
        self.state = ConnectionState.CLOSING
        self.clear_timers()
        if self._transport:
            self._transport.close(code, reason)
            return

        self.state = ConnectionState.CLOSED
        event = CloseEvent(code=code, reason=reason, was_clean=True)
        self._close_notice = self.scheduler.call_soon(lambda: self._deliver_close_notice(event))

    def _deliver_close_notice(self, event: CloseEvent) -> None:
        self._close_notice = None
        self._emit(event)

    def _disconnect_transport(self) -> None:
        transport = self._transport
        if transport is None:
            return
        self._transport = None
        transport.unsubscribe()
        transport.close()

    # Outbound

    def send_direct(self, data: Payload) -> None:
        if self._transport and self.state == ConnectionState.OPEN:
            self._transport.send(data)

    def flush_queue(self) -> None:
        """Deliver queued messages oldest first while the connection stays open."""
        while len(self.queue) > 0 and self.state == ConnectionState.OPEN:
            message = self.queue.shift()
            self.send_direct(message.data)

    # Transport notifications

    def on_transport_open(self, transport: Transport) -> None:
        if transport is not self._transport or self.state != ConnectionState.CONNECTING:
            return
        self.clear_timers()
        self.state = ConnectionState.OPEN
        self.policy.reset()
        self.protocol = transport.protocol
        self.extensions = transport.extensions
        logger.info("Connected to %s", self.url)

        self.flush_queue()
        self.heartbeat.start()
        self._emit(Event(type="open"))

    def on_transport_message(self, transport: Transport, data: Payload) -> None:
        if transport is not self._transport:
            return
        self.heartbeat.record_activity()
        self._emit(MessageEvent(data=data))

    def on_transport_close(
        self, transport: Transport, code: int, reason: str, was_clean: bool
    ) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        transport.unsubscribe()
        self._handle_close(code, reason, was_clean)

    def on_transport_error(
        self, transport: Transport, error: Optional[BaseException]
    ) -> None:
        if transport is not self._transport:
            return
        # The close notification that follows drives reconnection
        self._emit(ErrorEvent(error=error))

    # Failure paths

    def _on_connect_timeout(self) -> None:
        self._connect_timer = None
        if self.state != ConnectionState.CONNECTING or self._transport is None:
            return
        logger.warning(
            "Connection to %s timed out after %.2fs", self.url, self.config.connect_timeout
        )
        self._disconnect_transport()
        self._handle_close(ABNORMAL_CLOSURE, "Connection timeout", False)

    def _on_connection_error(self, reason: str) -> None:
        self._connect_timer = None
        self._handle_close(ABNORMAL_CLOSURE, reason, False)

    def _on_heartbeat_timeout(self) -> None:
        if not self._is_open():
            return
        self._close_internal(NORMAL_CLOSURE, "Heartbeat response timeout")

    def _handle_close(self, code: int, reason: str, was_clean: bool) -> None:
        self.clear_timers()
        self.state = ConnectionState.CLOSED
        logger.info("Connection to %s closed (%d %s)", self.url, code, reason)
        self._emit(CloseEvent(code=code, reason=reason, was_clean=was_clean))

        # A close listener may have reconnected or destroyed us already
        if self.state != ConnectionState.CLOSED or self._reconnect_timer:
            return
        if self.should_reconnect and not self.destroyed:
            self._attempt_reconnect()

    def _attempt_reconnect(self) -> None:
        if self.destroyed or not self.should_reconnect:
            return

        delay = self.policy.next_delay()
        self.url = self.policy.current_url
        if delay is None:
            self.should_reconnect = False
            logger.warning(
                "Giving up after %d reconnect attempts", self.policy.attempts
            )
            return

        logger.info(
            "Reconnecting to %s in %.2fs (attempt %d/%d)",
            self.url,
            delay,
            self.policy.attempts,
            self.policy.max_attempts,
        )
        self._reconnect_timer = self.scheduler.call_later(delay, self._on_reconnect_timer)

    def _on_reconnect_timer(self) -> None:
        self._reconnect_timer = None
        self.connect()
