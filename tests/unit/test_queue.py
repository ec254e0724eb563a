"""Tests for the bounded ring buffer queue."""

import pytest

from src.resilient_ws.models import QueuedMessage
from src.resilient_ws.network.queue import QueueCapacityError, RingBufferQueue


def item(data: str, size: int = None) -> QueuedMessage:
    return QueuedMessage(data=data, size=len(data) if size is None else size)


class TestRingBufferQueue:
    """Test cases for RingBufferQueue."""

    def test_fifo_order(self) -> None:
        """Test that items come out oldest first."""
        queue = RingBufferQueue(max_count=5)
        for data in ("a", "b", "c"):
            queue.push(item(data))

        assert [queue.shift().data for _ in range(3)] == ["a", "b", "c"]
        assert queue.shift() is None

    def test_count_limit_evicts_oldest(self) -> None:
        """Test that pushing past max_count drops the oldest item."""
        queue = RingBufferQueue(max_count=2)
        for data in ("a", "b", "c"):
            queue.push(item(data))

        assert [m.data for m in queue.values()] == ["b", "c"]
        assert len(queue) == 2

    def test_byte_limit_evicts_oldest(self) -> None:
        """Test that the byte limit evicts until the new item fits."""
        queue = RingBufferQueue(max_count=10, max_bytes=10)
        queue.push(item("first", size=4))
        queue.push(item("second", size=4))
        queue.push(item("third", size=4))

        assert queue.byte_size <= 10
        assert [m.data for m in queue.values()] == ["second", "third"]

    def test_oversized_item_rejected(self) -> None:
        """Test that an item larger than max_bytes raises and changes nothing."""
        queue = RingBufferQueue(max_count=10, max_bytes=10)
        queue.push(item("keep", size=6))

        with pytest.raises(QueueCapacityError) as exc_info:
            queue.push(item("huge", size=11))

        assert exc_info.value.size == 11
        assert [m.data for m in queue.values()] == ["keep"]
        assert queue.byte_size == 6

    def test_item_exactly_at_limit(self) -> None:
        """Test that an item equal to max_bytes evicts everything else."""
        queue = RingBufferQueue(max_count=10, max_bytes=10)
        queue.push(item("a", size=3))
        queue.push(item("b", size=3))
        queue.push(item("full", size=10))

        assert [m.data for m in queue.values()] == ["full"]
        assert queue.byte_size == 10

    def test_unbounded_bytes(self) -> None:
        """Test that no byte limit leaves only the count limit."""
        queue = RingBufferQueue(max_count=3)
        queue.push(item("x", size=10_000_000))
        queue.push(item("y", size=10_000_000))

        assert len(queue) == 2
        assert queue.byte_size == 20_000_000

    def test_byte_accounting_after_mutations(self) -> None:
        """Test that byte_size always equals the sum of queued sizes."""
        queue = RingBufferQueue(max_count=3, max_bytes=20)
        sizes = [5, 7, 3, 9, 2, 8, 1]
        for i, size in enumerate(sizes):
            queue.push(item(str(i), size=size))
            assert queue.byte_size == sum(m.size for m in queue.values())
            assert len(queue) <= 3
            assert queue.byte_size <= 20

        queue.shift()
        assert queue.byte_size == sum(m.size for m in queue.values())

    def test_wraps_around_ring(self) -> None:
        """Test ordering after head and tail wrap past the end of the ring."""
        queue = RingBufferQueue(max_count=3)
        for i in range(7):
            queue.push(item(str(i)))
            if i % 2:
                queue.shift()

        values = [m.data for m in queue.values()]
        assert values == sorted(values, key=int)
        assert len(queue) == len(values)

    def test_clear(self) -> None:
        """Test that clear empties the queue and resets the byte total."""
        queue = RingBufferQueue(max_count=3, max_bytes=100)
        queue.push(item("a"))
        queue.push(item("b"))

        queue.clear()

        assert len(queue) == 0
        assert queue.byte_size == 0
        assert queue.shift() is None
        queue.push(item("c"))
        assert [m.data for m in queue.values()] == ["c"]

    def test_invalid_max_count(self) -> None:
        """Test that a non-positive count limit is rejected."""
        with pytest.raises(ValueError):
            RingBufferQueue(max_count=0)
