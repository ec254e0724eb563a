"""Resilient WebSocket client: URL fallback, backoff, heartbeat and offline queue."""

from .client import ResilientWebSocket
from .config import ConnectionConfig
from .models import (
    ConnectionState,
    Event,
    MessageEvent,
    CloseEvent,
    ErrorEvent,
    QueuedMessage,
)
from .network import QueueCapacityError

__all__ = [
    "ResilientWebSocket",
    "ConnectionConfig",
    "ConnectionState",
    "Event",
    "MessageEvent",
    "CloseEvent",
    "ErrorEvent",
    "QueuedMessage",
    "QueueCapacityError",
]
