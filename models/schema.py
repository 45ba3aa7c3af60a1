# models/schema.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint,
)
from models.base import Base


# --- ORDERS

class Order(Base):
    __tablename__ = "orders"
    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, default="")
    gross_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False)
    payment_url: Mapped[Optional[str]] = mapped_column(Text)
    # pending | settlement | failure | expire
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False)
    __table_args__ = (
        CheckConstraint(
            "payment_status in ('pending','settlement','failure','expire')",
            name="ck_orders_payment_status"),
        CheckConstraint("gross_amount > 0", name="ck_orders_gross_amount"),
    )


# --- WEBHOOK DELIVERIES (audit trail, one row per delivery)

class PaymentEvent(Base):
    __tablename__ = "payment_events"
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(64))
    transaction_status: Mapped[Optional[str]] = mapped_column(String(32))
    fraud_status: Mapped[Optional[str]] = mapped_column(String(32))
    signature_ok: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # ok | changed | duplicate | ignored | rejected | not_found | invalid
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    raw: Mapped[str] = mapped_column(Text, nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False)
    __table_args__ = (
        Index("ix_payment_events_order", "order_id"),
    )


# --- NOTIFICATION OUTBOX

class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orders.order_id"), nullable=False)
    # settlement | pending | expire | payment_link
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    destination: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    payment_url: Mapped[Optional[str]] = mapped_column(Text)
    # pending | sending | sent | failed | delivered
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False)
    __table_args__ = (
        UniqueConstraint("order_id", "kind", name="uq_outbox_order_kind"),
        CheckConstraint(
            "status in ('pending','sending','sent','failed','delivered')", name="ck_outbox_status"),
        Index("ix_outbox_status", "status"),
        Index("ix_outbox_provider_message_id", "provider_message_id"),
    )
