"""Ring buffer bounded by element count and total byte size."""

import logging
import math
from typing import Generic, List, Optional, Protocol, TypeVar


logger = logging.getLogger(__name__)


class Sized(Protocol):
    """Anything carrying a byte size."""

    size: int


T = TypeVar("T", bound=Sized)


class QueueCapacityError(ValueError):
    """A single item is larger than the queue's byte capacity.

    Retrying with the same item will fail again; the payload must shrink.
    """

    def __init__(self, size: int, max_bytes: float):
        super().__init__(
            f"Item size {size} exceeds queue byte limit {max_bytes}"
        )
        self.size = size
        self.max_bytes = max_bytes


class RingBufferQueue(Generic[T]):
    """FIFO queue over a fixed ring of ``max_count`` slots.

    Pushing into a full queue evicts the oldest items until both the count
    and the byte limits hold for the new item.
    """

    def __init__(self, max_count: int, max_bytes: Optional[int] = None):
        """Initialize queue.

        Args:
            max_count: Maximum number of items
            max_bytes: Maximum cumulative size (None = unbounded)
        """
        if max_count <= 0:
            raise ValueError("max_count must be positive")
        self._max_count = max_count
        self._max_bytes = math.inf if max_bytes is None else max_bytes
        self._buffer: List[Optional[T]] = [None] * max_count
        self._head = 0
        self._tail = 0
        self._count = 0
        self._total_bytes = 0

    def __len__(self) -> int:
        return self._count

    @property
    def byte_size(self) -> int:
        """Sum of the sizes of all queued items."""
        return self._total_bytes

    @property
    def max_count(self) -> int:
        return self._max_count

    @property
    def max_bytes(self) -> float:
        return self._max_bytes

    def push(self, item: T) -> None:
        """Append an item, evicting the oldest ones if needed.

        Args:
            item: Item to append

        Raises:
            QueueCapacityError: If the item alone exceeds the byte limit
        """
        if item.size > self._max_bytes:
            raise QueueCapacityError(item.size, self._max_bytes)

        while (
            self._count >= self._max_count
            or self._total_bytes + item.size > self._max_bytes
        ):
            evicted = self.shift()
            logger.debug("Queue full; evicted oldest item (%d bytes)", evicted.size)

        self._buffer[self._tail] = item
        self._tail = (self._tail + 1) % self._max_count
        self._count += 1
        self._total_bytes += item.size

    def shift(self) -> Optional[T]:
        """Remove and return the oldest item.

        Returns:
            Oldest item or None if the queue is empty
        """
        if self._count == 0:
            return None
        item = self._buffer[self._head]
        self._buffer[self._head] = None
        self._head = (self._head + 1) % self._max_count
        self._count -= 1
        self._total_bytes -= item.size
        return item

    def clear(self) -> None:
        """Drop every item."""
        self._buffer = [None] * self._max_count
        self._head = 0
        self._tail = 0
        self._count = 0
        self._total_bytes = 0

    def values(self) -> List[T]:
        """Get queued items, oldest first."""
        return [
            self._buffer[(self._head + i) % self._max_count]
            for i in range(self._count)
        ]
