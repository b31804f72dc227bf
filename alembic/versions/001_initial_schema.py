"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all initial tables for the Stowage booking engine:
- Locations and units
- Users and loyalty ledger
- Bookings and extensions
- Pricing rules
- Payment transactions
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== LOCATIONS & UNITS ====================
    op.create_table(
        "locations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("city", sa.String(100), nullable=False, index=True),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("unit_number", sa.String(20), nullable=False),
        sa.Column("size", sa.String(10), nullable=False),
        sa.Column("base_price_hourly", sa.Numeric(10, 2), nullable=False),
        sa.Column("base_price_daily", sa.Numeric(10, 2), nullable=False),
        sa.Column("base_price_monthly", sa.Numeric(10, 2)),
        sa.Column("currency", sa.String(3), default="USD"),
        sa.Column("status", sa.String(20), default="AVAILABLE", index=True),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("location_id", "unit_number", name="uq_units_location_number"),
    )

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("loyalty_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "loyalty_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("reference_id", postgresql.UUID(as_uuid=True)),
        sa.Column("description", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(30), unique=True, nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("unit_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("units.id"), nullable=False, index=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), default="USD"),
        sa.Column("status", sa.String(20), default="PENDING", index=True),
        sa.Column("access_code", sa.String(6), nullable=False),
        sa.Column("check_in_time", sa.DateTime(timezone=True)),
        sa.Column("check_out_time", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("notes", sa.Text),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_interval"),
    )
    op.create_index(
        "ix_bookings_unit_status_interval",
        "bookings",
        ["unit_id", "status", "start_time", "end_time"],
    )

    op.create_table(
        "booking_extensions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("original_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("new_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("additional_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== PRICING ====================
    op.create_table(
        "pricing_rules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("rule_type", sa.String(20), nullable=False, index=True),
        sa.Column("conditions", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("multiplier", sa.Numeric(6, 4), nullable=False, server_default="1"),
        sa.Column("priority", sa.Integer, server_default="0"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), index=True),
        sa.Column("start_date", sa.DateTime(timezone=True)),
        sa.Column("end_date", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== PAYMENTS ====================
    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), default="USD"),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), default="PENDING", index=True),
        sa.Column("gateway", sa.String(30)),
        sa.Column("gateway_payment_intent_id", sa.String(100), unique=True),
        sa.Column("gateway_charge_id", sa.String(100), index=True),
        sa.Column("gateway_refund_id", sa.String(100), unique=True),
        sa.Column("gateway_response", postgresql.JSONB),
        sa.Column("failure_reason", sa.Text),
        sa.Column("original_transaction_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("transactions.id")),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("transactions")
    op.drop_table("pricing_rules")
    op.drop_table("booking_extensions")
    op.drop_index("ix_bookings_unit_status_interval", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("loyalty_transactions")
    op.drop_table("users")
    op.drop_table("units")
    op.drop_table("locations")
