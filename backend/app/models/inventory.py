"""
Inventory records: the capacity-bearing rows a booking consumes from.

Key design decisions:
- Batch slots and single-day slot instances share `listing_slots` with a
  `kind` discriminator, so a slot id resolves to exactly one row.
- Day-wise and recurring-slot rentals share `inventory_date_ranges`; a
  range with a slot definition is a recurring-slot rental.
- `available_count` is denormalized and only ever changed through the
  guarded UPDATE statements in services.inventory_service. CHECK
  constraints are the final safety net (0 <= available <= total).
- Date overrides replace the range's price/capacity for one date only.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class ListingSlot(Base, TimestampMixin):
    __tablename__ = "listing_slots"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    base_price = Column(Integer, nullable=False)  # paise per participant
    total_capacity = Column(Integer, nullable=False)
    available_count = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __mapper_args__ = {
        "polymorphic_on": kind,
        "polymorphic_identity": "slot",
        # Async sessions cannot lazy load subclass columns.
        "with_polymorphic": "*",
    }

    __table_args__ = (
        CheckConstraint("available_count >= 0", name="check_slot_available_non_negative"),
        CheckConstraint("available_count <= total_capacity", name="check_slot_available_lte_total"),
        CheckConstraint("base_price > 0", name="check_slot_base_price_positive"),
        Index("ix_listing_slots_listing_kind", "listing_id", "kind"),
    )

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(id={self.id}, "
            f"available={self.available_count}/{self.total_capacity})>"
        )


class BatchSlot(ListingSlot):
    """A multi-day batch shared by many participants."""

    batch_start_date = Column(Date, nullable=True)
    batch_end_date = Column(Date, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "batch"}


class SlotInstance(ListingSlot):
    """One date of one slot definition, with its own counters."""

    slot_definition_id = Column(
        Integer, ForeignKey("slot_definitions.id", ondelete="CASCADE"), nullable=True
    )
    slot_date = Column(Date, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "instance"}


class InventoryDateRange(Base, TimestampMixin):
    __tablename__ = "inventory_date_ranges"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    slot_definition_id = Column(
        Integer, ForeignKey("slot_definitions.id", ondelete="CASCADE"), nullable=True
    )
    available_from_date = Column(Date, nullable=False)
    available_to_date = Column(Date, nullable=False)
    base_price_per_day = Column(Integer, nullable=False)  # paise
    # Both null: capacity is not tracked for this range.
    total_capacity = Column(Integer, nullable=True)
    available_count = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    overrides = relationship(
        "InventoryDateOverride",
        back_populates="date_range",
        lazy="raise",
        order_by="InventoryDateOverride.override_date",
    )

    __table_args__ = (
        CheckConstraint("available_from_date <= available_to_date", name="check_range_dates_ordered"),
        CheckConstraint("base_price_per_day > 0", name="check_range_price_positive"),
        CheckConstraint(
            "(total_capacity IS NULL AND available_count IS NULL) OR "
            "(total_capacity IS NOT NULL AND available_count IS NOT NULL)",
            name="check_range_capacity_tracked_together",
        ),
        CheckConstraint(
            "available_count IS NULL OR available_count >= 0",
            name="check_range_available_non_negative",
        ),
        CheckConstraint(
            "available_count IS NULL OR available_count <= total_capacity",
            name="check_range_available_lte_total",
        ),
        Index("ix_date_ranges_listing_dates", "listing_id", "available_from_date", "available_to_date"),
    )

    @property
    def tracks_capacity(self) -> bool:
        return self.total_capacity is not None

    @property
    def is_slot_rental(self) -> bool:
        return self.slot_definition_id is not None

    def __repr__(self) -> str:
        return (
            f"<InventoryDateRange(id={self.id}, {self.available_from_date}..{self.available_to_date}, "
            f"available={self.available_count}/{self.total_capacity})>"
        )


class InventoryDateOverride(Base, TimestampMixin):
    __tablename__ = "inventory_date_overrides"

    id = Column(Integer, primary_key=True, index=True)
    date_range_id = Column(
        Integer, ForeignKey("inventory_date_ranges.id", ondelete="CASCADE"), nullable=False
    )
    override_date = Column(Date, nullable=False)
    price = Column(Integer, nullable=False)  # paise
    total_capacity = Column(Integer, nullable=False)
    available_count = Column(Integer, nullable=False)

    date_range = relationship("InventoryDateRange", back_populates="overrides")

    __table_args__ = (
        UniqueConstraint("date_range_id", "override_date", name="uq_override_range_date"),
        CheckConstraint("available_count >= 0", name="check_override_available_non_negative"),
        CheckConstraint("available_count <= total_capacity", name="check_override_available_lte_total"),
        CheckConstraint("price > 0", name="check_override_price_positive"),
    )


class InventoryBlockedDate(Base, TimestampMixin):
    __tablename__ = "inventory_blocked_dates"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    blocked_date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("listing_id", "blocked_date", name="uq_blocked_listing_date"),
    )
