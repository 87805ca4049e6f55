"""
Unit Tests for OrderQueryService (lookup + warm-up)
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.order_service.cache import OrderCache
from src.order_service.database import OrderRepository
from src.order_service.query import OrderQueryService
from src.order_service.schemas import Order


@pytest.fixture
def repository():
    repo = MagicMock(spec=OrderRepository)
    repo.get_order.return_value = None
    repo.get_all_orders.return_value = []
    return repo


@pytest.fixture
def cache():
    return OrderCache(capacity=3)


@pytest.fixture
def query_service(repository, cache):
    return OrderQueryService(repository, cache, lookup_timeout_ms=5000)


# ==============================================================================
# LOOKUP
# ==============================================================================


@pytest.mark.unit
def test_lookup_cache_hit_skips_store(query_service, repository, cache):
    cache.set("ORD-1", Order(order_uid="ORD-1"))

    order = query_service.lookup("ORD-1")

    assert order.order_uid == "ORD-1"
    repository.get_order.assert_not_called()


@pytest.mark.unit
def test_lookup_miss_loads_from_store_then_serves_from_cache(query_service, repository, cache):
    repository.get_order.return_value = Order(order_uid="ORD-1", track_number="T1")

    first = query_service.lookup("ORD-1")
    second = query_service.lookup("ORD-1")

    assert first.track_number == "T1"
    assert second == first
    repository.get_order.assert_called_once_with("ORD-1", timeout_ms=5000)
    assert "ORD-1" in cache


@pytest.mark.unit
def test_lookup_not_found(query_service, repository, cache):
    assert query_service.lookup("missing") is None
    assert "missing" not in cache


@pytest.mark.unit
def test_lookup_store_error_reported_as_not_found(query_service, repository, cache):
    repository.get_order.side_effect = OperationalError(
        "SELECT ...", {}, Exception("canceling statement due to statement timeout")
    )

    assert query_service.lookup("ORD-1") is None
    assert len(cache) == 0


# ==============================================================================
# WARM-UP
# ==============================================================================


@pytest.mark.unit
def test_warm_up_loads_all_orders(query_service, repository, cache):
    repository.get_all_orders.return_value = [Order(order_uid=f"ORD-{i}") for i in range(3)]

    loaded = query_service.warm_up()

    assert loaded == 3
    assert set(cache.snapshot()) == {"ORD-0", "ORD-1", "ORD-2"}


@pytest.mark.unit
def test_warm_up_over_capacity_keeps_last_loaded(query_service, repository, cache):
    orders = [
        Order(order_uid=f"ORD-{day}", date_created=datetime(2024, 1, day, tzinfo=timezone.utc))
        for day in range(1, 6)
    ]
    repository.get_all_orders.return_value = orders

    loaded = query_service.warm_up()

    assert loaded == 5
    assert set(cache.snapshot()) == {"ORD-3", "ORD-4", "ORD-5"}


@pytest.mark.unit
def test_warm_up_propagates_store_failure(query_service, repository):
    repository.get_all_orders.side_effect = OperationalError("SELECT ...", {}, Exception("down"))

    with pytest.raises(OperationalError):
        query_service.warm_up()
