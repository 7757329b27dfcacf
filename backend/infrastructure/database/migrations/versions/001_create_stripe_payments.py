"""Create stripe_payments ledger table.

Payments ledger read by the revenue metrics aggregator. Rows are written
by the Stripe webhook and backfill jobs.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stripe_payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("stripe_payment_id", sa.String(255), nullable=False, unique=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True, index=True),
        sa.Column("amount_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(50), nullable=False, server_default="succeeded"),
        sa.Column("payment_type", sa.String(50), nullable=False),  # subscription, one_time_session, credit_topup
        sa.Column("product_type", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_test_mode", sa.Boolean, nullable=True, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_stripe_payments_status_type", "stripe_payments", ["status", "payment_type"])
    op.create_index("ix_stripe_payments_payment_date", "stripe_payments", ["payment_date"])


def downgrade() -> None:
    op.drop_index("ix_stripe_payments_payment_date", table_name="stripe_payments")
    op.drop_index("ix_stripe_payments_status_type", table_name="stripe_payments")
    op.drop_table("stripe_payments")
