"""
SQLAlchemy ORM Models for Order Storage

Four related tables, all keyed by order_uid:

┌──────────────┐      ┌──────────────┐
│   orders     │──1:1─│  deliveries  │
│  (header)    │──1:1─│  payments    │
│              │──1:N─│  items       │
└──────────────┘      └──────────────┘

WRITE PATTERN (see database.OrderRepository.save_order):
- orders / deliveries / payments: INSERT ... ON CONFLICT (order_uid) DO UPDATE
- items: DELETE WHERE order_uid = ? then INSERT every item again
- items.id is a surrogate serial key; reading ORDER BY id returns items in
  the order they were written

COLUMN TYPES:
- Strings are TEXT and integers BIGINT, matching what schemas.Order accepts,
  so any decodable order fits the tables
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, ForeignKey, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.order_service.schemas import Delivery, Item, Order, Payment


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ==============================================================================
# ORDER HEADER
# ==============================================================================


class OrderRow(Base):
    """Order header row plus relationships to its sub-records."""

    __tablename__ = "orders"

    order_uid: Mapped[str] = mapped_column(Text, primary_key=True)
    track_number: Mapped[str] = mapped_column(Text, nullable=False, default="")
    entry: Mapped[str] = mapped_column(Text, nullable=False, default="")
    locale: Mapped[str] = mapped_column(Text, nullable=False, default="")
    internal_signature: Mapped[str] = mapped_column(Text, nullable=False, default="")
    customer_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    delivery_service: Mapped[str] = mapped_column(Text, nullable=False, default="")
    shardkey: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sm_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    date_created: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, index=True
    )
    oof_shard: Mapped[str] = mapped_column(Text, nullable=False, default="")

    delivery: Mapped[Optional["DeliveryRow"]] = relationship(
        back_populates="order", uselist=False, lazy="selectin"
    )
    payment: Mapped[Optional["PaymentRow"]] = relationship(
        back_populates="order", uselist=False, lazy="selectin"
    )
    items: Mapped[List["ItemRow"]] = relationship(
        back_populates="order", order_by="ItemRow.id", lazy="selectin"
    )

    __table_args__ = ({"comment": "Order headers consumed from the orders topic"},)

    def to_schema(self) -> Order:
        """Assemble the full Order record from this row and its children."""
        return Order(
            order_uid=self.order_uid,
            track_number=self.track_number,
            entry=self.entry,
            delivery=self.delivery.to_schema() if self.delivery else Delivery(),
            payment=self.payment.to_schema() if self.payment else Payment(),
            items=[item.to_schema() for item in self.items],
            locale=self.locale,
            internal_signature=self.internal_signature,
            customer_id=self.customer_id,
            delivery_service=self.delivery_service,
            shardkey=self.shardkey,
            sm_id=self.sm_id,
            date_created=self.date_created,
            oof_shard=self.oof_shard,
        )

    def __repr__(self) -> str:
        return f"<OrderRow(order_uid={self.order_uid}, track_number={self.track_number})>"


# ==============================================================================
# DELIVERY / PAYMENT (one row per order)
# ==============================================================================


class DeliveryRow(Base):
    __tablename__ = "deliveries"

    order_uid: Mapped[str] = mapped_column(
        Text, ForeignKey("orders.order_uid", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    phone: Mapped[str] = mapped_column(Text, nullable=False, default="")
    zip: Mapped[str] = mapped_column(Text, nullable=False, default="")
    city: Mapped[str] = mapped_column(Text, nullable=False, default="")
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    region: Mapped[str] = mapped_column(Text, nullable=False, default="")
    email: Mapped[str] = mapped_column(Text, nullable=False, default="")

    order: Mapped[OrderRow] = relationship(back_populates="delivery")

    def to_schema(self) -> Delivery:
        return Delivery(
            name=self.name,
            phone=self.phone,
            zip=self.zip,
            city=self.city,
            address=self.address,
            region=self.region,
            email=self.email,
        )


class PaymentRow(Base):
    __tablename__ = "payments"

    order_uid: Mapped[str] = mapped_column(
        Text, ForeignKey("orders.order_uid", ondelete="CASCADE"), primary_key=True
    )
    transaction: Mapped[str] = mapped_column(Text, nullable=False, default="")
    request_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="")
    provider: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Amounts are integer minor units, as sent upstream
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    payment_dt: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    bank: Mapped[str] = mapped_column(Text, nullable=False, default="")
    delivery_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    goods_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    custom_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    order: Mapped[OrderRow] = relationship(back_populates="payment")

    def to_schema(self) -> Payment:
        return Payment(
            transaction=self.transaction,
            request_id=self.request_id,
            currency=self.currency,
            provider=self.provider,
            amount=self.amount,
            payment_dt=self.payment_dt,
            bank=self.bank,
            delivery_cost=self.delivery_cost,
            goods_total=self.goods_total,
            custom_fee=self.custom_fee,
        )


# ==============================================================================
# ITEMS (many rows per order, fully replaced on every write)
# ==============================================================================


class ItemRow(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    order_uid: Mapped[str] = mapped_column(
        Text,
        ForeignKey("orders.order_uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chrt_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    track_number: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rid: Mapped[str] = mapped_column(Text, nullable=False, default="")
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sale: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    size: Mapped[str] = mapped_column(Text, nullable=False, default="")
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    nm_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    brand: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    order: Mapped[OrderRow] = relationship(back_populates="items")

    def to_schema(self) -> Item:
        return Item(
            chrt_id=self.chrt_id,
            track_number=self.track_number,
            price=self.price,
            rid=self.rid,
            name=self.name,
            sale=self.sale,
            size=self.size,
            total_price=self.total_price,
            nm_id=self.nm_id,
            brand=self.brand,
            status=self.status,
        )
