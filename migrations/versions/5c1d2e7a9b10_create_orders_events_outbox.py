"""create orders, payment_events and notification_outbox

Revision ID: 5c1d2e7a9b10
Revises:
Create Date: 2026-10-19 10:02:11.418204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1d2e7a9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "orders",
        sa.Column("order_id", sa.String(64), primary_key=True),
        sa.Column("customer_name", sa.String(128), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("gross_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_url", sa.Text()),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "payment_status in ('pending','settlement','failure','expire')",
            name="ck_orders_payment_status"),
        sa.CheckConstraint("gross_amount > 0", name="ck_orders_gross_amount"),
    )

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("order_id", sa.String(64)),
        sa.Column("transaction_status", sa.String(32)),
        sa.Column("fraud_status", sa.String(32)),
        sa.Column("signature_ok", sa.Boolean(), nullable=False),
        sa.Column("outcome", sa.String(16), nullable=False),
        sa.Column("raw", sa.Text(), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payment_events_order", "payment_events", ["order_id"])

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.order_id"), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("destination", sa.String(32), nullable=False),
        sa.Column("customer_name", sa.String(128), nullable=False),
        sa.Column("payment_url", sa.Text()),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text()),
        sa.Column("provider_message_id", sa.String(128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("order_id", "kind", name="uq_outbox_order_kind"),
        sa.CheckConstraint(
            "status in ('pending','sending','sent','failed','delivered')", name="ck_outbox_status"),
    )
    op.create_index("ix_outbox_status", "notification_outbox", ["status"])
    op.create_index("ix_outbox_provider_message_id", "notification_outbox", ["provider_message_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_outbox_provider_message_id", table_name="notification_outbox")
    op.drop_index("ix_outbox_status", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_index("ix_payment_events_order", table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_table("orders")
