"""
Pytest Configuration and Shared Fixtures

Unit tests run without any external service: Kafka messages and the order
repository are replaced by unittest.mock objects.

Integration tests use testcontainers to spin up a real PostgreSQL (and, for
the end-to-end test, Kafka) in Docker.

FIXTURE SCOPES:
- session: containers (started once, shared across all tests)
- function: database tables, configs, sample data (isolated per test)
"""

import copy
import json
import threading
from typing import Callable, Generator, List, Optional
from unittest.mock import MagicMock

import pytest

from src.order_service.config import ServiceConfig

# ==============================================================================
# SAMPLE ORDER DATA
# ==============================================================================

SAMPLE_ORDER = {
    "order_uid": "b563feb7b2b84b6test",
    "track_number": "WBILMTESTTRACK",
    "entry": "WBIL",
    "delivery": {
        "name": "Test Testov",
        "phone": "+9720000000",
        "zip": "2639809",
        "city": "Kiryat Mozkin",
        "address": "Ploshad Mira 15",
        "region": "Kraiot",
        "email": "test@gmail.com",
    },
    "payment": {
        "transaction": "b563feb7b2b84b6test",
        "request_id": "",
        "currency": "USD",
        "provider": "wbpay",
        "amount": 1817,
        "payment_dt": 1637907727,
        "bank": "alpha",
        "delivery_cost": 1500,
        "goods_total": 317,
        "custom_fee": 0,
    },
    "items": [
        {
            "chrt_id": 9934930,
            "track_number": "WBILMTESTTRACK",
            "price": 453,
            "rid": "ab4219087a764ae0btest",
            "name": "Mascaras",
            "sale": 30,
            "size": "0",
            "total_price": 317,
            "nm_id": 2389212,
            "brand": "Vivienne Sabo",
            "status": 202,
        }
    ],
    "locale": "en",
    "internal_signature": "",
    "customer_id": "test",
    "delivery_service": "meest",
    "shardkey": "9",
    "sm_id": 99,
    "date_created": "2021-11-26T06:22:19Z",
    "oof_shard": "1",
}


def build_order_data(order_uid: str, **overrides) -> dict:
    """Copy of SAMPLE_ORDER with a different uid and optional field overrides."""
    data = copy.deepcopy(SAMPLE_ORDER)
    data["order_uid"] = order_uid
    data["payment"]["transaction"] = order_uid
    data.update(overrides)
    return data


@pytest.fixture
def sample_order_data() -> dict:
    """A complete, valid order change event as a dict."""
    return copy.deepcopy(SAMPLE_ORDER)


@pytest.fixture
def sample_order_payload(sample_order_data) -> bytes:
    """The sample order as a Kafka message value."""
    return json.dumps(sample_order_data).encode("utf-8")


# ==============================================================================
# CONFIG / KAFKA FAKES
# ==============================================================================


@pytest.fixture
def service_config() -> ServiceConfig:
    """Config with the default retry policy (5 attempts, 1s doubling backoff)."""
    return ServiceConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic_orders="test-orders",
        consumer_group_id="test-consumer-group",
        persist_max_attempts=5,
        retry_backoff_ms=1000,
        persist_timeout_ms=10000,
        lookup_timeout_ms=5000,
    )


@pytest.fixture
def make_message() -> Callable[..., MagicMock]:
    """
    Factory for fake confluent_kafka.Message objects.

    Usage:
        msg = make_message(b'{"order_uid": "x"}', offset=3)
    """

    def _make(
        value: Optional[bytes],
        partition: int = 0,
        offset: int = 0,
        error=None,
    ) -> MagicMock:
        msg = MagicMock(name=f"Message(p={partition}, o={offset})")
        msg.value.return_value = value
        msg.error.return_value = error
        msg.partition.return_value = partition
        msg.offset.return_value = offset
        msg.topic.return_value = "test-orders"
        return msg

    return _make


class RecordingEvent(threading.Event):
    """
    Shutdown event that records backoff waits instead of sleeping.

    Args:
        cancel_on_wait: set the event (simulating shutdown) on this wait number
    """

    def __init__(self, cancel_on_wait: Optional[int] = None):
        super().__init__()
        self.waits: List[float] = []
        self.cancel_on_wait = cancel_on_wait

    def wait(self, timeout=None) -> bool:
        self.waits.append(timeout)
        if self.cancel_on_wait is not None and len(self.waits) >= self.cancel_on_wait:
            self.set()
        return self.is_set()


@pytest.fixture
def recording_event() -> RecordingEvent:
    return RecordingEvent()


# ==============================================================================
# POSTGRESQL FIXTURES (integration)
# ==============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """PostgreSQL testcontainer for the entire test session."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:15") as postgres:
        postgres.get_connection_url()
        yield postgres


@pytest.fixture
def db_config(postgres_container) -> ServiceConfig:
    """ServiceConfig pointing at the PostgreSQL testcontainer."""
    return ServiceConfig(
        database_url=postgres_container.get_connection_url(),
        persist_max_attempts=5,
        retry_backoff_ms=10,
        lookup_timeout_ms=5000,
    )


@pytest.fixture
def db_manager(db_config) -> Generator:
    """DatabaseManager with fresh order tables for each test."""
    from src.order_service.database import DatabaseManager, OrderRepository
    from src.order_service.models import Base

    manager = DatabaseManager(db_config)
    OrderRepository(manager).create_schema()
    try:
        yield manager
    finally:
        Base.metadata.drop_all(manager.engine)
        manager.close()


@pytest.fixture
def repository(db_manager):
    from src.order_service.database import OrderRepository

    return OrderRepository(db_manager)


# ==============================================================================
# KAFKA FIXTURES (end-to-end)
# ==============================================================================


@pytest.fixture(scope="session")
def kafka_container() -> Generator:
    """Kafka testcontainer for the entire test session."""
    from testcontainers.kafka import KafkaContainer

    with KafkaContainer() as kafka:
        kafka.get_bootstrap_server()
        yield kafka


# ==============================================================================
# TEST ENVIRONMENT CONFIGURATION
# ==============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires containers)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 5 seconds)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
