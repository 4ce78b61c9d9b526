"""
Reschedule request: move a booking to another inventory record of the
same listing.

Key design decisions:
- The old/new targets are stored as ids plus the booking format, the same
  tagged shape the Booking carries, so processing never guesses a format
- A partial unique index allows only one pending request per booking
- processed_at marks the one-time inventory swap; status alone cannot,
  because approved_with_charge stays the status after payment
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.booking import InventoryRef
from app.models.enums import BookingFormat, InitiatorRole, RescheduleStatus, enum_column


class Reschedule(Base, TimestampMixin):
    __tablename__ = "reschedules"

    id = Column(Integer, primary_key=True, index=True)
    reschedule_reference = Column(String(20), nullable=False, unique=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    initiated_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    initiated_by_role = Column(enum_column(InitiatorRole), nullable=False)
    operator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    admin_notes = Column(Text, nullable=True)
    status = Column(enum_column(RescheduleStatus), nullable=False, default=RescheduleStatus.PENDING)
    booking_format = Column(enum_column(BookingFormat), nullable=False)

    old_inventory_id = Column(Integer, nullable=False)
    new_inventory_id = Column(Integer, nullable=False)
    old_start_date = Column(Date, nullable=False)
    old_end_date = Column(Date, nullable=False)
    new_start_date = Column(Date, nullable=False)
    new_end_date = Column(Date, nullable=False)

    reschedule_fee_amount = Column(Integer, nullable=False, default=0)  # paise
    is_payment_required = Column(Boolean, nullable=False, default=False)
    payment_reference = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    approved_by_admin_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", lazy="raise")

    __table_args__ = (
        CheckConstraint("reschedule_fee_amount >= 0", name="check_reschedule_fee_non_negative"),
        CheckConstraint("new_start_date <= new_end_date", name="check_reschedule_new_dates_ordered"),
        Index(
            "uq_reschedules_one_pending_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    @property
    def old_ref(self) -> InventoryRef:
        return InventoryRef(BookingFormat(self.booking_format), self.old_inventory_id)

    @property
    def new_ref(self) -> InventoryRef:
        return InventoryRef(BookingFormat(self.booking_format), self.new_inventory_id)

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    def __repr__(self) -> str:
        return f"<Reschedule(id={self.id}, booking={self.booking_id}, status={self.status})>"
