"""Connection management components."""

from .queue import RingBufferQueue, QueueCapacityError
from .heartbeat import HeartbeatMonitor
from .reconnect import ReconnectPolicy
from .scheduler import Scheduler, AsyncioScheduler, Timer
from .transport import Transport, TransportListener, AiohttpTransport
from .controller import ConnectionController, default_transport_factory

__all__ = [
    "RingBufferQueue",
    "QueueCapacityError",
    "HeartbeatMonitor",
    "ReconnectPolicy",
    "Scheduler",
    "AsyncioScheduler",
    "Timer",
    "Transport",
    "TransportListener",
    "AiohttpTransport",
    "ConnectionController",
    "default_transport_factory",
]
