"""Initial schema: users, listings, inventory, bookings, payments, reschedules.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default=sa.text("'customer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Listings and slot definitions
    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("operator_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("booking_format", sa.String(32), nullable=False),
        sa.Column("tax_rate_bp", sa.Integer(), nullable=True),
        sa.Column("advance_booking_rate_bp", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'INR'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint(
            "tax_rate_bp IS NULL OR (tax_rate_bp >= 0 AND tax_rate_bp <= 10000)",
            name="check_listing_tax_rate_range",
        ),
        sa.CheckConstraint(
            "advance_booking_rate_bp IS NULL OR "
            "(advance_booking_rate_bp >= 0 AND advance_booking_rate_bp <= 10000)",
            name="check_listing_advance_rate_range",
        ),
    )
    op.create_index("ix_listings_id", "listings", ["id"])
    op.create_index("ix_listings_operator_id", "listings", ["operator_id"])

    op.create_table(
        "slot_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(100), nullable=True),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_slot_definitions_id", "slot_definitions", ["id"])
    op.create_index("ix_slot_definitions_listing_id", "slot_definitions", ["listing_id"])

    # Batch slots and slot instances share one table, told apart by `kind`.
    # The CHECKs are the last line of defence against overselling: the
    # guarded UPDATEs should never get here, but if they do the database
    # refuses a negative count.
    op.create_table(
        "listing_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=False),
        sa.Column("available_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("batch_start_date", sa.Date(), nullable=True),
        sa.Column("batch_end_date", sa.Date(), nullable=True),
        sa.Column(
            "slot_definition_id",
            sa.Integer(),
            sa.ForeignKey("slot_definitions.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("slot_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("available_count >= 0", name="check_slot_available_non_negative"),
        sa.CheckConstraint("available_count <= total_capacity", name="check_slot_available_lte_total"),
        sa.CheckConstraint("base_price > 0", name="check_slot_base_price_positive"),
    )
    op.create_index("ix_listing_slots_id", "listing_slots", ["id"])
    op.create_index("ix_listing_slots_listing_kind", "listing_slots", ["listing_id", "kind"])

    op.create_table(
        "inventory_date_ranges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "slot_definition_id",
            sa.Integer(),
            sa.ForeignKey("slot_definitions.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("available_from_date", sa.Date(), nullable=False),
        sa.Column("available_to_date", sa.Date(), nullable=False),
        sa.Column("base_price_per_day", sa.Integer(), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=True),
        sa.Column("available_count", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("available_from_date <= available_to_date", name="check_range_dates_ordered"),
        sa.CheckConstraint("base_price_per_day > 0", name="check_range_price_positive"),
        sa.CheckConstraint(
            "(total_capacity IS NULL AND available_count IS NULL) OR "
            "(total_capacity IS NOT NULL AND available_count IS NOT NULL)",
            name="check_range_capacity_tracked_together",
        ),
        sa.CheckConstraint(
            "available_count IS NULL OR available_count >= 0",
            name="check_range_available_non_negative",
        ),
        sa.CheckConstraint(
            "available_count IS NULL OR available_count <= total_capacity",
            name="check_range_available_lte_total",
        ),
    )
    op.create_index("ix_inventory_date_ranges_id", "inventory_date_ranges", ["id"])
    # Covering-range lookups filter by listing and both window ends.
    op.create_index(
        "ix_date_ranges_listing_dates",
        "inventory_date_ranges",
        ["listing_id", "available_from_date", "available_to_date"],
    )

    op.create_table(
        "inventory_date_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "date_range_id",
            sa.Integer(),
            sa.ForeignKey("inventory_date_ranges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=False),
        sa.Column("available_count", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("date_range_id", "override_date", name="uq_override_range_date"),
        sa.CheckConstraint("available_count >= 0", name="check_override_available_non_negative"),
        sa.CheckConstraint("available_count <= total_capacity", name="check_override_available_lte_total"),
        sa.CheckConstraint("price > 0", name="check_override_price_positive"),
    )
    op.create_index("ix_inventory_date_overrides_id", "inventory_date_overrides", ["id"])

    op.create_table(
        "inventory_blocked_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("blocked_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("listing_id", "blocked_date", name="uq_blocked_listing_date"),
    )
    op.create_index("ix_inventory_blocked_dates_id", "inventory_blocked_dates", ["id"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(20), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("booking_format", sa.String(32), nullable=False),
        sa.Column("listing_slot_id", sa.Integer(), sa.ForeignKey("listing_slots.id"), nullable=True),
        sa.Column("date_range_id", sa.Integer(), sa.ForeignKey("inventory_date_ranges.id"), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'CONFIRMED'")),
        sa.Column("pricing_snapshot", sa.JSON(), nullable=True),
        sa.Column("participants", sa.JSON(), nullable=True),
        sa.Column("contact_details", sa.JSON(), nullable=True),
        sa.Column("selected_addons", sa.JSON(), nullable=True),
        sa.Column("promo_code", sa.String(50), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inventory_holds", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(listing_slot_id IS NOT NULL AND date_range_id IS NULL) OR "
            "(listing_slot_id IS NULL AND date_range_id IS NOT NULL)",
            name="check_booking_single_inventory_target",
        ),
        sa.CheckConstraint("participant_count > 0", name="check_booking_participants_positive"),
        sa.CheckConstraint("total_days > 0", name="check_booking_total_days_positive"),
        sa.CheckConstraint("start_date <= end_date", name="check_booking_dates_ordered"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_listing_id", "bookings", ["listing_id"])
    op.create_index("ix_bookings_listing_slot_id", "bookings", ["listing_slot_id"])
    op.create_index("ix_bookings_date_range_id", "bookings", ["date_range_id"])
    # Operator dashboards: "confirmed bookings on my listings".
    op.create_index("ix_bookings_listing_status", "bookings", ["listing_id", "status"])

    op.create_table(
        "booking_payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'INR'")),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default=sa.text("'online'")),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal_amount", sa.Integer(), nullable=False),
        sa.Column("addons_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("taxable_amount", sa.Integer(), nullable=False),
        sa.Column("tax_rate_bp", sa.Integer(), nullable=False),
        sa.Column("tax_amount", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("amount_paid_online", sa.Integer(), nullable=False),
        sa.Column("amount_to_collect_offline", sa.Integer(), nullable=False),
        sa.Column("platform_commission_rate_bp", sa.Integer(), nullable=False),
        sa.Column("platform_commission", sa.Integer(), nullable=False),
        sa.Column("tcs_rate_bp", sa.Integer(), nullable=False),
        sa.Column("tcs_amount", sa.Integer(), nullable=False),
        sa.Column("seller_gross_earnings", sa.Integer(), nullable=False),
        sa.Column("net_payable_to_seller", sa.Integer(), nullable=False),
        sa.Column("settlement_status", sa.String(32), nullable=False, server_default=sa.text("'PENDING'")),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="check_payment_quantity_positive"),
        sa.CheckConstraint(
            "amount_paid_online + amount_to_collect_offline = total_amount",
            name="check_payment_split_sums_to_total",
        ),
        sa.CheckConstraint("taxable_amount + tax_amount = total_amount", name="check_payment_total"),
    )
    op.create_index("ix_booking_payments_id", "booking_payments", ["id"])
    op.create_index("ix_booking_payments_booking_id", "booking_payments", ["booking_id"], unique=True)

    op.create_table(
        "reschedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reschedule_reference", sa.String(20), nullable=False, unique=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("initiated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("initiated_by_role", sa.String(32), nullable=False),
        sa.Column("operator_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("booking_format", sa.String(32), nullable=False),
        sa.Column("old_inventory_id", sa.Integer(), nullable=False),
        sa.Column("new_inventory_id", sa.Integer(), nullable=False),
        sa.Column("old_start_date", sa.Date(), nullable=False),
        sa.Column("old_end_date", sa.Date(), nullable=False),
        sa.Column("new_start_date", sa.Date(), nullable=False),
        sa.Column("new_end_date", sa.Date(), nullable=False),
        sa.Column("reschedule_fee_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_payment_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by_admin_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("reschedule_fee_amount >= 0", name="check_reschedule_fee_non_negative"),
        sa.CheckConstraint("new_start_date <= new_end_date", name="check_reschedule_new_dates_ordered"),
    )
    op.create_index("ix_reschedules_id", "reschedules", ["id"])
    op.create_index("ix_reschedules_booking_id", "reschedules", ["booking_id"])
    op.create_index("ix_reschedules_operator_id", "reschedules", ["operator_id"])
    # ONE PENDING REQUEST PER BOOKING: two concurrent initiates both pass the
    # application check; the second INSERT fails here instead.
    op.create_index(
        "uq_reschedules_one_pending_per_booking",
        "reschedules",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table("reschedules")
    op.drop_table("booking_payments")
    op.drop_table("bookings")
    op.drop_table("inventory_blocked_dates")
    op.drop_table("inventory_date_overrides")
    op.drop_table("inventory_date_ranges")
    op.drop_table("listing_slots")
    op.drop_table("slot_definitions")
    op.drop_table("listings")
    op.drop_table("users")
