"""storefront schema: items, payments, orders, order_items, users

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("username", sa.String(length=150), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="admin"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_username", "users", ["username"], unique=True)

    if not _table_exists(inspector, "items"):
        op.create_table(
            "items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("size", sa.String(length=32), nullable=False),
            sa.Column("material", sa.String(length=255), nullable=True),
            sa.Column("producer", sa.String(length=255), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
            sa.Column("image", sa.JSON(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_items_id", "items", ["id"], unique=False)
        op.create_index("ix_items_category", "items", ["category"], unique=False)
        op.create_index("ix_items_status", "items", ["status"], unique=False)

    if not _table_exists(inspector, "payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("checkout_id", sa.String(length=36), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("tax_amount", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("customer_email", sa.String(length=255), nullable=False),
            sa.Column("customer_full_name", sa.String(length=255), nullable=False),
            sa.Column("address", sa.JSON(), nullable=False),
            sa.Column("cart_snapshot", sa.JSON(), nullable=False),
            sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_payments_id", "payments", ["id"], unique=False)
        op.create_index("ix_payments_checkout_id", "payments", ["checkout_id"], unique=True)
        op.create_index(
            "ix_payments_stripe_payment_intent_id", "payments", ["stripe_payment_intent_id"], unique=False
        )

    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("checkout_id", sa.String(length=36), nullable=True),
            sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True, unique=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=255), nullable=False),
            sa.Column("total_amount_cents", sa.Integer(), nullable=False),
            sa.Column("tax_amount_cents", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("address", sa.JSON(), nullable=True),
            sa.Column("country_code", sa.String(length=2), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_checkout_id", "orders", ["checkout_id"], unique=True)
        op.create_index("ix_orders_country_code", "orders", ["country_code"], unique=False)
        op.create_index("ix_orders_status", "orders", ["status"], unique=False)

    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "order_id",
                sa.Integer(),
                sa.ForeignKey("orders.id", ondelete="CASCADE"),
                nullable=False,
            ),
            # Weak reference to items.id; no foreign key.
            sa.Column("product_id", sa.Integer(), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("price_cents", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        )
        op.create_index("ix_order_items_id", "order_items", ["id"], unique=False)
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
        op.create_index("ix_order_items_product_id", "order_items", ["product_id"], unique=False)


def downgrade() -> None:
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("payments")
    op.drop_table("items")
    op.drop_table("users")
