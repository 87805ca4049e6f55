"""
Order Query Path

Cache-first order lookup with read-through to PostgreSQL, plus the startup
warm-up that fills the cache from the store before any traffic is served.

LOOKUP FLOW:
1. cache.get(order_uid)  → hit: return it
2. repository.get_order(order_uid, timeout_ms=lookup_timeout_ms)
3. found → cache.set(order_uid, order) and return it
4. not found, or the store failed / timed out → None

CONSISTENCY:
- Between the ingestion loop's store write and its cache update a reader can
  see either the previously cached version or (on a miss) the new stored one
- The cache converges once the ingestion loop publishes the new version
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from src.order_service.cache import OrderCache
from src.order_service.database import OrderRepository
from src.order_service.schemas import Order


class OrderQueryService:
    """Serves order lookups for the HTTP API."""

    def __init__(self, repository: OrderRepository, cache: OrderCache, lookup_timeout_ms: int = 5000):
        self.repository = repository
        self.cache = cache
        self.lookup_timeout_ms = lookup_timeout_ms
        self.logger = logging.getLogger(__name__)

    def lookup(self, order_uid: str) -> Optional[Order]:
        """
        Find an order by uid.

        Returns:
            The order, or None when neither the cache nor the store has it.
            Store errors are logged and also reported as None.
        """
        order = self.cache.get(order_uid)
        if order is not None:
            self.logger.debug("Order served from cache", extra={"correlation_id": order_uid})
            return order

        self.logger.debug("Cache miss, loading from database", extra={"correlation_id": order_uid})

        try:
            order = self.repository.get_order(order_uid, timeout_ms=self.lookup_timeout_ms)
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to load order from database",
                extra={"correlation_id": order_uid, "error_type": type(e).__name__},
            )
            return None

        if order is None:
            return None

        self.cache.set(order_uid, order)
        return order

    def warm_up(self) -> int:
        """
        Load every stored order into the cache.

        Orders arrive oldest first (see OrderRepository.get_all_orders); with
        more orders than capacity, the most recently created ones stay resident.

        Returns:
            Number of orders loaded from the store

        Raises:
            SQLAlchemyError: the store could not be read (fatal at startup)
        """
        self.logger.info("Restoring cache from database...")

        orders = self.repository.get_all_orders()
        for order in orders:
            self.cache.set(order.order_uid, order)

        self.logger.info(
            "Cache restored",
            extra={
                "loaded": len(orders),
                "resident": len(self.cache),
                "capacity": self.cache.capacity,
            },
        )
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                "Resident orders after warm-up",
                extra={"order_uids": sorted(self.cache.snapshot())},
            )
        return len(orders)
