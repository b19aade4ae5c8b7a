from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(16), nullable=False),
        sa.Column("customer_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False, server_default=""),
        sa.Column("status", sa.String(), nullable=False, server_default="new"),
        sa.Column("photo_path", sa.String(), nullable=False, server_default=""),
        sa.Column("material", sa.String(), nullable=False, server_default=""),
        sa.Column("color", sa.String(), nullable=False, server_default=""),
        sa.Column("size", sa.String(), nullable=False, server_default=""),
        sa.Column("fulfillment_type", sa.String(), nullable=False, server_default=""),
        sa.Column("rush", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cad_design", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("base_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("addons_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("shipping", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("vendor_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("margin", sa.Float(), nullable=False, server_default="0"),
        sa.Column("model_path", sa.String(), nullable=False, server_default=""),
        sa.Column("vendor_quote_id", sa.String(), nullable=False, server_default=""),
        sa.Column("vendor_order_id", sa.String(), nullable=False, server_default=""),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_orders_order_id", "orders", ["order_id"], unique=True)
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False, server_default=""),
        _timestamp("timestamp"),
    )
    op.create_index("ix_messages_customer_id", "messages", ["customer_id"])
    op.create_index("ix_messages_customer_timestamp", "messages", ["customer_id", "timestamp"])

    op.create_table(
        "conversation_state",
        sa.Column("customer_id", sa.String(), primary_key=True),
        sa.Column("stage", sa.String(), nullable=False, server_default="NEW"),
        sa.Column("pending_order_id", sa.String(), nullable=False, server_default=""),
        _timestamp("updated_at"),
    )

    op.create_table(
        "processed_messages",
        sa.Column("message_id", sa.String(), primary_key=True),
        _timestamp("processed_at"),
    )


def downgrade() -> None:
    op.drop_table("processed_messages")
    op.drop_table("conversation_state")
    op.drop_index("ix_messages_customer_timestamp", table_name="messages")
    op.drop_index("ix_messages_customer_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_index("ix_orders_order_id", table_name="orders")
    op.drop_table("orders")
