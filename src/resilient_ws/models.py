"""Connection state, queued message and event models."""

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Union

Payload = Union[str, bytes, bytearray, memoryview]

ABNORMAL_CLOSURE = 1006
NORMAL_CLOSURE = 1000


class ConnectionState(IntEnum):
    """Ready state values, numbered like the browser WebSocket API."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


def payload_size(data: Payload) -> int:
    """Get the byte size of an outbound payload.

    Args:
        data: Text or bytes-like payload

    Returns:
        UTF-8 encoded length for text, byte length otherwise
    """
    if isinstance(data, str):
        return len(data.encode("utf-8"))
    if isinstance(data, (bytes, bytearray, memoryview)):
        return memoryview(data).nbytes
    raise TypeError(f"Unsupported payload type: {type(data).__name__}")


@dataclass
class QueuedMessage:
    """A payload waiting for the connection to open."""

    data: Payload
    size: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class Event:
    """Base event delivered to listeners."""

    type: str


@dataclass
class MessageEvent(Event):
    """Inbound message."""

    data: Payload = ""
    type: str = "message"


@dataclass
class CloseEvent(Event):
    """Connection closed, either reported by the transport or synthesized."""

    code: int = NORMAL_CLOSURE
    reason: str = ""
    was_clean: bool = True
    type: str = "close"


@dataclass
class ErrorEvent(Event):
    """Transport error. Reconnection is driven by the close that follows."""

    error: Optional[BaseException] = None
    type: str = "error"
