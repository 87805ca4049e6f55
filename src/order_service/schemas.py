"""
Order Record Schemas

Pydantic models for the order record as it travels on the wire: decoded from
Kafka change events, held in the in-memory cache and returned by the lookup
API.

MESSAGE FORMAT (Kafka value, UTF-8 JSON):
{
  "order_uid": "b563feb7b2b84b6test",
  "track_number": "WBILMTESTTRACK",
  "entry": "WBIL",
  "delivery": {"name": "Test Testov", "phone": "+9720000000", ...},
  "payment": {"transaction": "b563feb7b2b84b6test", "amount": 1817, ...},
  "items": [{"chrt_id": 9934930, "price": 453, ...}],
  "locale": "en",
  ...
  "date_created": "2021-11-26T06:22:19Z"
}

DECODING RULES:
- Unknown fields are ignored
- Missing fields take their zero value ("" / 0 / empty list / null)
- A field with the wrong type makes the whole message undecodable
- Integers must fit a signed 64-bit column (BIGINT), otherwise the message is
  undecodable
- date_created is normalized to UTC; a timestamp without offset is read as UTC
- order_uid is checked separately (validate_order): it must be non-empty
"""

from datetime import datetime, timezone
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.order_service.errors import MalformedOrderError

# Range of PostgreSQL BIGINT
Int64 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Delivery(_Record):
    """Delivery sub-record (exactly one per order)."""

    name: str = ""
    phone: str = ""
    zip: str = ""
    city: str = ""
    address: str = ""
    region: str = ""
    email: str = ""


class Payment(_Record):
    """Payment sub-record (exactly one per order)."""

    transaction: str = ""
    request_id: str = ""
    currency: str = ""
    provider: str = ""
    amount: Int64 = 0
    payment_dt: Int64 = 0
    bank: str = ""
    delivery_cost: Int64 = 0
    goods_total: Int64 = 0
    custom_fee: Int64 = 0


class Item(_Record):
    """One line item. Order of items inside an order is significant."""

    chrt_id: Int64 = 0
    track_number: str = ""
    price: Int64 = 0
    rid: str = ""
    name: str = ""
    sale: Int64 = 0
    size: str = ""
    total_price: Int64 = 0
    nm_id: Int64 = 0
    brand: str = ""
    status: Int64 = 0


class Order(_Record):
    """
    Complete order record.

    Always read and written as a whole: header fields, one delivery, one
    payment and the ordered list of items.
    """

    order_uid: str = ""
    track_number: str = ""
    entry: str = ""
    delivery: Delivery = Field(default_factory=Delivery)
    payment: Payment = Field(default_factory=Payment)
    items: List[Item] = Field(default_factory=list)
    locale: str = ""
    internal_signature: str = ""
    customer_id: str = ""
    delivery_service: str = ""
    shardkey: str = ""
    sm_id: Int64 = 0
    date_created: Optional[datetime] = None
    oof_shard: str = ""

    @field_validator("date_created")
    @classmethod
    def normalize_date_created(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are taken as UTC
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def decode_order(payload: Union[bytes, str, None]) -> Order:
    """
    Decode a Kafka message value into an Order.

    Raises:
        MalformedOrderError: empty payload, invalid UTF-8/JSON, or a field of
            the wrong type or out of range
    """
    if payload is None or len(payload) == 0:
        raise MalformedOrderError("Empty message payload")

    try:
        return Order.model_validate_json(payload)
    except (ValidationError, UnicodeDecodeError) as e:
        raise MalformedOrderError(f"Undecodable order payload: {e}") from e


def validate_order(order: Order) -> None:
    """
    Reject orders that cannot be keyed.

    Raises:
        MalformedOrderError: order_uid is empty
    """
    if not order.order_uid:
        raise MalformedOrderError("Missing required field: order_uid")
