"""create orders and order_sequences

Revision ID: 3c1f0a7d2b91
Revises:
Create Date: 2026-10-12 10:04:17.512830
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3c1f0a7d2b91"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_ORDERS = "orders"
_SEQ = "order_sequences"


def upgrade() -> None:
    """
    新增：orders / order_sequences

    - orders：一次提交一行，items 整体存 JSON（PG 为 JSONB）
    - order_sequences：period_key → last_seq，只通过原子 upsert 自增
    - 短单号在 (period_key, kh_short_id) 内唯一；历史行可为空

    幂等：表已存在则跳过 create_table（托管库可能已有 orders）
    """
    bind = op.get_bind()
    insp = inspect(bind)

    if not insp.has_table(_ORDERS):
        op.create_table(
            _ORDERS,
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.Column("customer_name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("phone", sa.String(length=64), nullable=True),
            sa.Column("ship", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("fulfillment", sa.String(length=16), nullable=False, server_default="pickup"),
            sa.Column("address_line1", sa.String(length=255), nullable=True),
            sa.Column("address_line2", sa.String(length=255), nullable=True),
            sa.Column("city", sa.String(length=128), nullable=True),
            sa.Column("state", sa.String(length=64), nullable=True),
            sa.Column("postal_code", sa.String(length=32), nullable=True),
            sa.Column("country", sa.String(length=64), nullable=True),
            sa.Column(
                "items",
                sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
                nullable=False,
            ),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
            sa.Column("kh_short_id", sa.String(length=32), nullable=True),
            sa.Column("period_key", sa.String(length=16), nullable=True),
            sa.Column("requested_date", sa.Date(), nullable=True),
            sa.Column("pickup_date", sa.Date(), nullable=True),
            sa.Column("ship_date", sa.Date(), nullable=True),
            sa.Column("order_total", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.UniqueConstraint("period_key", "kh_short_id", name="uq_orders_period_short_id"),
        )
        op.create_index("ix_orders_created_at", _ORDERS, ["created_at"])
        op.create_index("ix_orders_period_key", _ORDERS, ["period_key"])

    if not insp.has_table(_SEQ):
        op.create_table(
            _SEQ,
            sa.Column("period_key", sa.String(length=16), primary_key=True),
            sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )


def downgrade() -> None:
    """Downgrade schema: drop order_sequences / orders."""
    op.drop_table(_SEQ)
    op.drop_index("ix_orders_period_key", table_name=_ORDERS)
    op.drop_index("ix_orders_created_at", table_name=_ORDERS)
    op.drop_table(_ORDERS)
