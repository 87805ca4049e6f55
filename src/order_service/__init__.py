"""
Order Service Package

A single process that:
1. Restores an in-memory LRU order cache from PostgreSQL at startup
2. Consumes order change events from the 'orders' Kafka topic
3. Upserts each order into PostgreSQL (retrying transient failures)
4. Publishes the persisted order to the cache, then commits the offset
5. Serves GET /order/{order_uid} from the cache, falling back to PostgreSQL

ARCHITECTURE:
┌─────────────┐     ┌──────────────┐     ┌────────────────┐
│   Kafka     │────▶│ OrderConsumer│────▶│   PostgreSQL   │
│   orders    │     │  (1 thread)  │     │ orders/items/..│
└─────────────┘     └──────┬───────┘     └───────▲────────┘
                           │ set after persist   │ read on miss
                    ┌──────▼───────┐     ┌───────┴────────┐
                    │  OrderCache  │◀───▶│ OrderQuery     │◀── GET /order/{uid}
                    │  (LRU, lock) │     │ Service        │
                    └──────────────┘     └────────────────┘

WRITE ORDER: store → cache → offset commit, never the reverse.

Package components:
- config.py: Configuration from environment variables
- schemas.py: Order record (pydantic) and message decoding
- models.py: SQLAlchemy tables
- database.py: Connection pool, sessions, OrderRepository
- cache.py: Bounded LRU cache
- consumer.py: Kafka ingestion loop
- query.py: Lookup and startup warm-up
- api.py: FastAPI application
- main.py: Entry point with CLI and shutdown handling
"""

__version__ = "1.0.0"

from src.order_service.cache import OrderCache
from src.order_service.config import ServiceConfig, load_config
from src.order_service.schemas import Order

__all__ = [
    "Order",
    "OrderCache",
    "ServiceConfig",
    "load_config",
]
