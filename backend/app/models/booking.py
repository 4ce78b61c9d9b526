"""
Booking model representing a customer's reservation against one
inventory record.

Key design decisions:
- Exactly one of listing_slot_id / date_range_id is set; the pair is
  exposed as a tagged InventoryRef so callers never branch on nulls
- Status field allows cancellation without deleting records
- Prices are stored in paise (integer minor units)
- pricing_snapshot freezes the breakdown shown to the customer
- inventory_holds records which date-range counters were debited
"""

from dataclasses import dataclass

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import BookingFormat, BookingStatus, enum_column


@dataclass(frozen=True)
class InventoryRef:
    """Which inventory record a booking (or reschedule target) consumes."""

    format: BookingFormat
    inventory_id: int

    @property
    def is_date_range(self) -> bool:
        return self.format in (BookingFormat.DAY_RENTAL, BookingFormat.SLOT_RENTAL)

    @property
    def listing_slot_id(self):
        return None if self.is_date_range else self.inventory_id

    @property
    def date_range_id(self):
        return self.inventory_id if self.is_date_range else None


@dataclass(frozen=True)
class InventoryHolds:
    """
    The counters a date-range reservation took units from.

    Overrides may be added or removed after a booking is made, so a
    release credits exactly these rows instead of re-deriving them from
    the overrides present at that time. Slot bookings hold nothing here.
    """

    override_ids: tuple = ()
    range_counter: bool = False

    def to_json(self) -> dict:
        return {"overrideIds": list(self.override_ids), "rangeCounter": self.range_counter}

    @classmethod
    def from_json(cls, data) -> "InventoryHolds":
        if not data:
            return cls()
        return cls(
            override_ids=tuple(data.get("overrideIds", ())),
            range_counter=bool(data.get("rangeCounter", False)),
        )


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(20), nullable=False, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    booking_format = Column(enum_column(BookingFormat), nullable=False)

    listing_slot_id = Column(Integer, ForeignKey("listing_slots.id"), nullable=True, index=True)
    date_range_id = Column(Integer, ForeignKey("inventory_date_ranges.id"), nullable=True, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    participant_count = Column(Integer, nullable=False, default=1)
    total_days = Column(Integer, nullable=False, default=1)
    base_price = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False)
    status = Column(enum_column(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)

    pricing_snapshot = Column(JSON, nullable=True)
    participants = Column(JSON, nullable=True)
    contact_details = Column(JSON, nullable=True)
    selected_addons = Column(JSON, nullable=True)
    promo_code = Column(String(50), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    inventory_holds = Column(JSON, nullable=True)

    # Relationships
    customer = relationship("User", back_populates="bookings")
    payment = relationship("BookingPayment", back_populates="booking", uselist=False, lazy="raise")

    __table_args__ = (
        CheckConstraint(
            "(listing_slot_id IS NOT NULL AND date_range_id IS NULL) OR "
            "(listing_slot_id IS NULL AND date_range_id IS NOT NULL)",
            name="check_booking_single_inventory_target",
        ),
        CheckConstraint("participant_count > 0", name="check_booking_participants_positive"),
        CheckConstraint("total_days > 0", name="check_booking_total_days_positive"),
        CheckConstraint("start_date <= end_date", name="check_booking_dates_ordered"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        Index("ix_bookings_listing_status", "listing_id", "status"),
    )

    @property
    def inventory_ref(self) -> InventoryRef:
        if self.listing_slot_id is not None:
            return InventoryRef(BookingFormat(self.booking_format), self.listing_slot_id)
        return InventoryRef(BookingFormat(self.booking_format), self.date_range_id)

    @property
    def holds(self) -> InventoryHolds:
        return InventoryHolds.from_json(self.inventory_holds)

    def point_at(self, ref: InventoryRef, holds: InventoryHolds) -> None:
        self.listing_slot_id = ref.listing_slot_id
        self.date_range_id = ref.date_range_id
        self.inventory_holds = holds.to_json()

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, ref={self.booking_reference}, status={self.status})>"
