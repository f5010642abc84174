"""
Staging Buffers - Bounded FIFO byte channels.

Each endpoint keeps two staging buffers between the application and the
socket:

RX Buffer:
- Holds data read from the socket but not yet consumed by the application
- Filled by read_into_buffer(), drained by pop_front()/pop_all()

TX Buffer:
- Holds data queued by the application but not yet sent
- Filled by push_back(), drained by flush()

Both are capacity-limited. When new data would overflow the buffer, the
OLDEST bytes are discarded to make room:

    capacity = 5
    [A B C]          push "DEFGH"
    [] + [D E F G H] oldest 3 evicted, then appended

This is a lossy policy, not backpressure: a push never fails, it only ever
keeps the newest `capacity` bytes.
"""

from typing import Optional


DEFAULT_CAPACITY = 1000


class ByteChannel:
    """
    Capacity-limited FIFO of bytes.

    Invariant: len(channel) <= capacity after every push. Shrinking the
    capacity with set_capacity() does not evict anything already held; the
    next push restores the invariant.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the channel.

        Args:
            capacity: Maximum number of bytes retained
        """
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self._buffer = bytearray()

    @property
    def available_space(self) -> int:
        """Bytes that can be pushed without evicting anything."""
        return max(0, self.capacity - len(self._buffer))

    def set_capacity(self, capacity: int):
        """Change the maximum size. Existing content is kept as-is."""
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity

    def push_back(self, data: bytes) -> int:
        """
        Append data, evicting the oldest bytes on overflow.

        Returns:
            Number of bytes evicted to make room
        """
        overflow = len(self._buffer) + len(data) - self.capacity
        evicted = 0
        if overflow > 0:
            evicted = self.remove_front(overflow)

        self._buffer.extend(data)

        # data alone was larger than the whole channel
        excess = len(self._buffer) - self.capacity
        if excess > 0:
            del self._buffer[:excess]
            evicted += excess

        return evicted

    def pop_front(self, size: int) -> bytes:
        """
        Remove and return up to `size` bytes from the front.

        Returns fewer bytes (possibly none) if the channel holds less.
        """
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def pop_all(self) -> bytes:
        """Remove and return everything."""
        data = bytes(self._buffer)
        self._buffer.clear()
        return data

    def peek(self, size: Optional[int] = None) -> bytes:
        """Return up to `size` bytes (all if None) without removing them."""
        if size is None:
            return bytes(self._buffer)
        return bytes(self._buffer[:max(0, size)])

    def remove_front(self, size: int) -> int:
        """
        Drop up to `size` bytes from the front.

        Stops early if the channel empties.

        Returns:
            Number of bytes actually removed
        """
        removed = min(max(0, size), len(self._buffer))
        del self._buffer[:removed]
        return removed

    def remove_all(self):
        self._buffer.clear()

    def is_empty(self) -> bool:
        return len(self._buffer) == 0

    def __len__(self) -> int:
        return len(self._buffer)

    def __bytes__(self) -> bytes:
        return bytes(self._buffer)

    def __repr__(self) -> str:
        return f"ByteChannel({len(self._buffer)}/{self.capacity} bytes)"
