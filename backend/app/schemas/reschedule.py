"""
Pydantic schemas for reschedule requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.models.enums import BookingFormat, InitiatorRole, RescheduleStatus
from app.models.reschedule import Reschedule
from app.schemas.common import CamelModel, Money, to_rupees
from app.services.reschedule_service import RescheduleTarget


class RescheduleInitiate(CamelModel):
    booking_id: Optional[int] = None
    reschedule_reason: Optional[str] = None
    new_batch_id: Optional[int] = None
    new_slot_id: Optional[int] = None
    new_date_range_id: Optional[int] = None
    new_rental_start_date: Optional[date] = None
    new_rental_end_date: Optional[date] = None

    def to_target(self) -> RescheduleTarget:
        return RescheduleTarget(
            new_batch_id=self.new_batch_id,
            new_slot_id=self.new_slot_id,
            new_date_range_id=self.new_date_range_id,
            new_rental_start_date=self.new_rental_start_date,
            new_rental_end_date=self.new_rental_end_date,
        )


class RescheduleReview(CamelModel):
    decision: Optional[str] = None
    admin_notes: Optional[str] = None
    reschedule_fee_amount: Optional[Decimal] = Field(default=None, ge=0)


class ReschedulePayment(CamelModel):
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class RescheduleView(CamelModel):
    id: int
    reschedule_reference: str
    booking_id: int
    initiated_by_user_id: int
    initiated_by_role: InitiatorRole
    operator_id: int
    reason: str
    admin_notes: Optional[str] = None
    status: RescheduleStatus
    booking_format: BookingFormat
    old_inventory_id: int
    new_inventory_id: int
    old_start_date: date
    old_end_date: date
    new_start_date: date
    new_end_date: date
    reschedule_fee_amount: Money
    is_payment_required: bool
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    approved_by_admin_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    is_processed: bool
    created_at: datetime


def reschedule_view(reschedule: Reschedule) -> RescheduleView:
    view = RescheduleView.model_validate(reschedule)
    return view.model_copy(update={"reschedule_fee_amount": to_rupees(reschedule.reschedule_fee_amount)})
