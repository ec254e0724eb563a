"""Heartbeat (probe/response) management."""

import logging
from typing import Callable, Optional

from ..models import Payload
from .scheduler import Scheduler, Timer


logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """Sends periodic probes and watches for inbound traffic.

    Any inbound message counts as a response, not only replies to the probe.
    Each probe and each inbound message restarts a ``timeout`` second
    watchdog; when it expires ``on_timeout`` is called.
    Nothing is ever scheduled while ``enabled`` is False.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float = 30.0,
        timeout: float = 5.0,
        message: Payload = "ping",
        enabled: bool = False,
        send: Optional[Callable[[Payload], None]] = None,
        on_timeout: Optional[Callable[[], None]] = None,
        is_active: Optional[Callable[[], bool]] = None,
    ):
        """Initialize heartbeat monitor.

        Args:
            scheduler: Timer service
            interval: Probe interval in seconds (default: 30)
            timeout: Response timeout in seconds (default: 5)
            message: Probe payload
            enabled: Whether probes are sent at all
            send: Callback used to send the probe
            on_timeout: Callback when no response arrived in time
            is_active: Predicate checked before each probe and timeout
        """
        self.scheduler = scheduler
        self.interval = interval
        self.timeout = timeout
        self.message = message
        self.enabled = enabled
        self.send = send
        self.on_timeout = on_timeout
        self.is_active = is_active or (lambda: True)

        self._interval_timer: Optional[Timer] = None
        self._timeout_timer: Optional[Timer] = None

    @property
    def running(self) -> bool:
        return self._interval_timer is not None

    @property
    def awaiting_response(self) -> bool:
        return self._timeout_timer is not None

    def start(self) -> None:
        """Start sending probes every interval."""
        if not self.enabled:
            return
        self.stop()
        self._interval_timer = self.scheduler.call_every(self.interval, self._on_interval)

    def stop(self) -> None:
        """Cancel both the probe interval and the response timeout."""
        if self._interval_timer:
            self._interval_timer.cancel()
            self._interval_timer = None
        self._cancel_timeout()

    def record_activity(self) -> None:
        """Restart the response timeout after inbound traffic.

        Only while running, so a stopped monitor is never re-armed.
        """
        if not self.enabled or not self.running:
            return
        self._arm_timeout()

    def _on_interval(self) -> None:
        if not self.is_active():
            return
        logger.debug("Sending heartbeat probe")
        if self.send:
            self.send(self.message)
        self._arm_timeout()

    def _arm_timeout(self) -> None:
        if not self.enabled:
            return
        self._cancel_timeout()
        self._timeout_timer = self.scheduler.call_later(self.timeout, self._on_timeout)

    def _cancel_timeout(self) -> None:
        if self._timeout_timer:
            self._timeout_timer.cancel()
            self._timeout_timer = None

    def _on_timeout(self) -> None:
        self._timeout_timer = None
        if not self.is_active():
            return
        logger.warning("No heartbeat response within %.2fs", self.timeout)
        if self.on_timeout:
            self.on_timeout()
