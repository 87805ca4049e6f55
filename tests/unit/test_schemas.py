"""
Unit Tests for Order Schemas and Message Decoding

TEST STRATEGY:
- Full sample message decodes into nested records
- Unknown fields are ignored, missing fields take zero values
- Undecodable payloads raise MalformedOrderError
- validate_order rejects an empty order_uid
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from src.order_service.errors import MalformedOrderError
from src.order_service.schemas import Delivery, Order, Payment, decode_order, validate_order


@pytest.mark.unit
def test_decode_full_order(sample_order_payload):
    order = decode_order(sample_order_payload)

    assert order.order_uid == "b563feb7b2b84b6test"
    assert order.delivery.email == "test@gmail.com"
    assert order.payment.goods_total == 317
    assert len(order.items) == 1
    assert order.items[0].brand == "Vivienne Sabo"
    assert order.sm_id == 99
    assert order.date_created == datetime(2021, 11, 26, 6, 22, 19, tzinfo=timezone.utc)


@pytest.mark.unit
def test_decode_accepts_str_payload(sample_order_data):
    order = decode_order(json.dumps(sample_order_data))
    assert order.order_uid == sample_order_data["order_uid"]


@pytest.mark.unit
def test_unknown_fields_ignored(sample_order_data):
    sample_order_data["unexpected"] = {"nested": True}
    sample_order_data["delivery"]["floor"] = 3

    order = decode_order(json.dumps(sample_order_data).encode())

    data = order.model_dump(mode="json")
    assert "unexpected" not in data
    assert "floor" not in data["delivery"]


@pytest.mark.unit
def test_missing_fields_take_zero_values():
    order = decode_order(b'{"order_uid": "ORD-1"}')

    assert order.track_number == ""
    assert order.sm_id == 0
    assert order.date_created is None
    assert order.delivery == Delivery()
    assert order.payment == Payment()
    assert order.items == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [b"", None, b"{broken", b"[1, 2]", b'{"order_uid": "ORD-1", "items": {"not": "a list"}}'],
)
def test_undecodable_payload_raises(payload):
    with pytest.raises(MalformedOrderError):
        decode_order(payload)


@pytest.mark.unit
def test_malformed_order_error_is_value_error():
    with pytest.raises(ValueError):
        decode_order(b"{broken")


@pytest.mark.unit
def test_validate_order_requires_uid():
    with pytest.raises(MalformedOrderError, match="order_uid"):
        validate_order(Order(order_uid=""))

    validate_order(Order(order_uid="ORD-1"))


@pytest.mark.unit
def test_json_dump_is_json_compatible(sample_order_data):
    order = Order.model_validate(sample_order_data)

    data = order.model_dump(mode="json")

    assert isinstance(data["date_created"], str)
    assert json.loads(json.dumps(data))["items"][0]["nm_id"] == 2389212


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"sm_id": 2**63},
        {"payment": {"amount": -(2**63) - 1}},
        {"items": [{"chrt_id": 2**70}]},
    ],
)
def test_integer_out_of_bigint_range_is_malformed(sample_order_data, overrides):
    sample_order_data.update(overrides)

    with pytest.raises(MalformedOrderError):
        decode_order(json.dumps(sample_order_data))


@pytest.mark.unit
def test_large_values_within_range_accepted(sample_order_data):
    sample_order_data["sm_id"] = 2**40
    sample_order_data["locale"] = "x" * 40

    order = decode_order(json.dumps(sample_order_data))

    assert order.sm_id == 2**40
    assert order.locale == "x" * 40


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    ["2021-11-26T06:22:19", "2021-11-26T06:22:19Z", "2021-11-26T09:22:19+03:00"],
)
def test_date_created_normalized_to_utc(raw):
    order = decode_order(json.dumps({"order_uid": "ORD-1", "date_created": raw}))

    assert order.date_created == datetime(2021, 11, 26, 6, 22, 19, tzinfo=timezone.utc)
    assert order.date_created.utcoffset() == timedelta(0)


@pytest.mark.unit
def test_aware_datetime_from_store_normalized_to_utc():
    moscow = timezone(timedelta(hours=3))

    order = Order(order_uid="ORD-1", date_created=datetime(2021, 11, 26, 9, 22, 19, tzinfo=moscow))

    assert order.model_dump(mode="json")["date_created"] == "2021-11-26T06:22:19Z"
