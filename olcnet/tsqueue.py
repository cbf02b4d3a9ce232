"""A thread-safe FIFO queue with blocking access to its front."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Optional


class TSQueue:
    """Many producers and consumers may use this queue at once."""

    def __init__(self) -> None:
        self._items: deque[Any] = deque()
        self._cond = threading.Condition()

    def push_back(self, item: Any) -> None:
        """Append an item and wake one waiting consumer."""
        with self._cond:
            self._items.append(item)
            self._cond.notify()

    def _wait_nonempty(self, timeout: Optional[float]) -> None:
        if not self._cond.wait_for(lambda: bool(self._items), timeout):
            raise TimeoutError("queue stayed empty")

    def front(self, timeout: Optional[float] = None) -> Any:
        """Block until the queue holds an item and return it without removing it."""
        with self._cond:
            self._wait_nonempty(timeout)
            return self._items[0]

    def pop_front(self, timeout: Optional[float] = None) -> Any:
        """Block until the queue holds an item, then remove and return it."""
        with self._cond:
            self._wait_nonempty(timeout)
            return self._items.popleft()

    def empty(self) -> bool:
        """Whether the queue holds nothing right now."""
        with self._cond:
            return not self._items

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is non-empty; False if the timeout ran out first."""
        with self._cond:
            return self._cond.wait_for(lambda: bool(self._items), timeout)

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)