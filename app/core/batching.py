"""
Size-or-timeout batch accumulator.

A batch is released when it reaches max_size items, or when timeout_seconds
have passed since the first unflushed item arrived, whichever comes first.
The accumulator knows nothing about queues; the matcher worker feeds it
deliveries and asks it when to flush.
"""

import time
from typing import Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")


class BatchAccumulator(Generic[T]):

    def __init__(
        self,
        max_size: int,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.max_size = max_size
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._items: List[T] = []
        self._first_item_at: Optional[float] = None

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: T) -> Optional[List[T]]:
        """
        Add an item. Returns the full batch when the size threshold is hit,
        otherwise None.
        """
        if not self._items:
            self._first_item_at = self._clock()
        self._items.append(item)
        if len(self._items) >= self.max_size:
            return self.flush()
        return None

    def due(self) -> bool:
        """True when a non-empty batch has waited at least timeout_seconds."""
        if not self._items or self._first_item_at is None:
            return False
        return self._clock() - self._first_item_at >= self.timeout_seconds

    def seconds_until_due(self) -> Optional[float]:
        """Time left before the pending batch times out, None when empty."""
        if not self._items or self._first_item_at is None:
            return None
        return max(0.0, self.timeout_seconds - (self._clock() - self._first_item_at))

    def flush(self) -> List[T]:
        """Release everything accumulated so far and reset the timer."""
        batch = self._items
        self._items = []
        self._first_item_at = None
        return batch
