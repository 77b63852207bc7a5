"""
Bounded rolling buffers.

Sliding-window storage used for per-asset price history and the bot
trade log. Appending past capacity evicts the oldest entries.
"""

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar


T = TypeVar("T")
K = TypeVar("K")


class RollingWindow(Generic[T]):
    """
    Fixed-capacity FIFO window.

    Keeps the most recent ``capacity`` items in insertion order.
    """

    __slots__ = ("_items", "_capacity")

    def __init__(self, capacity: int, items: Iterable[T] = ()) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._items: deque[T] = deque(items, maxlen=capacity)

    def append(self, item: T) -> None:
        """Append an item, evicting the oldest on overflow."""
        self._items.append(item)

    def extend(self, items: Iterable[T]) -> None:
        """Append several items in order."""
        self._items.extend(items)

    def latest(self) -> T | None:
        """Most recent item, or None when empty."""
        return self._items[-1] if self._items else None

    def to_list(self) -> list[T]:
        """Snapshot of the window, oldest first."""
        return list(self._items)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"RollingWindow(capacity={self._capacity}, size={len(self._items)})"


class KeyedHistory(Generic[K, T]):
    """
    One RollingWindow per key.

    Keys registered up front always appear in snapshots, even before
    their first sample arrives.
    """

    def __init__(self, capacity: int, keys: Iterable[K] = ()) -> None:
        self._capacity = capacity
        self._windows: dict[K, RollingWindow[T]] = {k: RollingWindow(capacity) for k in keys}

    def append(self, key: K, item: T) -> None:
        """Append a sample for a key, creating its window on first use."""
        window = self._windows.get(key)
        if window is None:
            window = RollingWindow(self._capacity)
            self._windows[key] = window
        window.append(item)

    def get(self, key: K) -> list[T]:
        """Samples for one key, oldest first. Unknown keys give an empty list."""
        window = self._windows.get(key)
        return window.to_list() if window else []

    def snapshot(self) -> dict[K, list[T]]:
        """Copy of every window, oldest sample first."""
        return {k: w.to_list() for k, w in self._windows.items()}

    def keys(self) -> list[K]:
        return list(self._windows)

    def __contains__(self, key: object) -> bool:
        return key in self._windows

    def __len__(self) -> int:
        return len(self._windows)
