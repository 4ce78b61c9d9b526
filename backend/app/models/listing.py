"""
Listing and slot-definition lookups.

Listings are managed by the catalogue service. The booking engine only
reads the booking format, tax rate, advance-payment policy and owning
operator from them.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import BookingFormat, enum_column


class Listing(Base, TimestampMixin):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    operator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    booking_format = Column(enum_column(BookingFormat), nullable=False)
    tax_rate_bp = Column(Integer, nullable=True)  # falls back to DEFAULT_TAX_RATE_BP
    advance_booking_rate_bp = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=False, default="INR")
    is_active = Column(Boolean, nullable=False, default=True)

    operator = relationship("User", back_populates="listings", lazy="joined")
    slot_definitions = relationship("SlotDefinition", back_populates="listing", lazy="raise")

    __table_args__ = (
        CheckConstraint(
            "tax_rate_bp IS NULL OR (tax_rate_bp >= 0 AND tax_rate_bp <= 10000)",
            name="check_listing_tax_rate_range",
        ),
        CheckConstraint(
            "advance_booking_rate_bp IS NULL OR "
            "(advance_booking_rate_bp >= 0 AND advance_booking_rate_bp <= 10000)",
            name="check_listing_advance_rate_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, name={self.name}, format={self.booking_format})>"


class SlotDefinition(Base, TimestampMixin):
    """A named recurring time slot, e.g. 06:00-08:00 every day."""

    __tablename__ = "slot_definitions"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(100), nullable=True)
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    listing = relationship("Listing", back_populates="slot_definitions")

    def __repr__(self) -> str:
        return f"<SlotDefinition(id={self.id}, {self.start_time}-{self.end_time})>"
