"""
Bounded LRU Cache for Orders

In-memory, fixed-capacity order cache shared by the Kafka ingestion loop and
the lookup API request threads.

STRUCTURE:
┌──────────────────────────────────────────────────────────────────┐
│  _index: order_uid -> _Node                                      │
│                                                                  │
│  head <-> [most recent] <-> ... <-> [least recent] <-> tail      │
└──────────────────────────────────────────────────────────────────┘
- head / tail are sentinels, so link and unlink never branch on emptiness
- every key in _index has exactly one node in the list and vice versa
- get, set and snapshot are O(1), O(1) and O(n)

LOCKING:
- get() moves the hit node to the front, so it mutates the list and takes
  the same exclusive lock as set()
- snapshot() takes the lock too; it copies every entry

ZERO CAPACITY:
- A cache built with capacity 0 never retains anything: set() is a no-op
  and get() always misses
"""

import logging
import threading
from typing import Dict, Optional

from src.order_service.schemas import Order


class _Node:
    __slots__ = ("key", "value", "prev", "next")

    def __init__(self, key: str, value: Optional[Order]):
        self.key = key
        self.value = value
        self.prev: Optional["_Node"] = None
        self.next: Optional["_Node"] = None


class OrderCache:
    """
    Thread-safe least-recently-used cache of Order records.

    Values are deep-copied on the way in and on the way out, so callers can
    never mutate a cached order in place.

    Attributes:
        capacity: Maximum number of cached orders, fixed at construction
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"Cache capacity must be >= 0, got {capacity}")

        self.capacity = capacity
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._index: Dict[str, _Node] = {}

        self._head = _Node("", None)
        self._tail = _Node("", None)
        self._head.next = self._tail
        self._tail.prev = self._head

    def get(self, order_uid: str) -> Optional[Order]:
        """Return a copy of the cached order and mark it most recently used."""
        with self._lock:
            node = self._index.get(order_uid)
            if node is None:
                return None
            self._unlink(node)
            self._push_front(node)
            return node.value.model_copy(deep=True)

    def set(self, order_uid: str, order: Order) -> None:
        """Insert or replace an order, evicting the least recently used one if full."""
        if self.capacity == 0:
            return

        value = order.model_copy(deep=True)

        with self._lock:
            node = self._index.get(order_uid)
            if node is not None:
                node.value = value
                self._unlink(node)
                self._push_front(node)
                return

            if len(self._index) >= self.capacity:
                self._evict_oldest()

            node = _Node(order_uid, value)
            self._push_front(node)
            self._index[order_uid] = node

    def snapshot(self) -> Dict[str, Order]:
        """Point-in-time copy of every cached order (no particular order)."""
        with self._lock:
            return {key: node.value.model_copy(deep=True) for key, node in self._index.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, order_uid: object) -> bool:
        # Membership check only: does not promote
        with self._lock:
            return order_uid in self._index

    # ==========================================================================
    # LINKED LIST HELPERS (caller holds the lock)
    # ==========================================================================

    def _push_front(self, node: _Node) -> None:
        first = self._head.next
        node.prev = self._head
        node.next = first
        first.prev = node
        self._head.next = node

    @staticmethod
    def _unlink(node: _Node) -> None:
        node.prev.next = node.next
        node.next.prev = node.prev
        node.prev = None
        node.next = None

    def _evict_oldest(self) -> None:
        oldest = self._tail.prev
        if oldest is self._head:
            return
        self._unlink(oldest)
        del self._index[oldest.key]
        self.logger.debug("Evicted least recently used order", extra={"correlation_id": oldest.key})
