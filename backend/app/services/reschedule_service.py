"""
Reschedule workflow: move a confirmed booking to another inventory
record of the same listing.

Lifecycle:

    initiate ──> pending ──review──> rejected
                    │  ├──review──> approved ──(same txn)──> processed
                    │  └──review──> approved_with_charge ──pay──> processed
                    └──cancel──> cancelled

"Processed" is not a status: it is processed_at being set, which happens
exactly once. process_reschedule() refuses to run twice, so retried
approvals or payments can never release/reserve capacity a second time.

Processing releases the booking's current counters and reserves the new
target's in the caller's transaction. If the new target filled up after
the request was initiated, the reserve fails and the whole review or
payment is rolled back.
"""

import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientCapacityError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import record_reschedule_transition
from app.models.booking import Booking, InventoryRef
from app.models.enums import (
    BookingFormat,
    BookingStatus,
    InitiatorRole,
    RescheduleDecision,
    RescheduleStatus,
    UserRole,
)
from app.models.reschedule import Reschedule
from app.models.user import User
from app.services import booking_service, inventory_service
from app.services.reschedule_state_machine import RescheduleStateMachine

logger = get_logger(__name__)


@dataclass
class RescheduleTarget:
    """Format-specific description of where the booking should move."""

    new_batch_id: Optional[int] = None
    new_slot_id: Optional[int] = None
    new_date_range_id: Optional[int] = None
    new_rental_start_date: Optional[date] = None
    new_rental_end_date: Optional[date] = None


def generate_reschedule_reference(today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f"RSC-{year}-{secrets.randbelow(1_000_000):06d}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status(reschedule: Reschedule) -> RescheduleStatus:
    return RescheduleStatus(reschedule.status)


async def _resolve_target(
    db: AsyncSession, booking: Booking, target: RescheduleTarget
) -> tuple[inventory_service.InventoryRecord, date, date]:
    booking_format = BookingFormat(booking.booking_format)

    if booking_format == BookingFormat.BATCH:
        if target.new_batch_id is None:
            raise ValidationError.missing(["newBatchId"])
        record = await inventory_service.resolve(db, InventoryRef(booking_format, target.new_batch_id))
        start, end = inventory_service.booking_window(record)

    elif booking_format == BookingFormat.SLOT:
        if target.new_slot_id is None:
            raise ValidationError.missing(["newSlotId"])
        record = await inventory_service.resolve(db, InventoryRef(booking_format, target.new_slot_id))
        start, end = inventory_service.booking_window(record)

    elif booking_format == BookingFormat.DAY_RENTAL:
        missing = [
            name
            for name, value in (
                ("newRentalStartDate", target.new_rental_start_date),
                ("newRentalEndDate", target.new_rental_end_date),
            )
            if value is None
        ]
        if missing:
            raise ValidationError.missing(missing)
        if target.new_rental_start_date > target.new_rental_end_date:
            raise ValidationError(
                "newRentalStartDate must not be after newRentalEndDate",
                fields=["newRentalStartDate", "newRentalEndDate"],
            )
        if target.new_date_range_id is not None:
            record = await inventory_service.resolve(
                db, InventoryRef(booking_format, target.new_date_range_id)
            )
        else:
            record = await inventory_service.find_covering_range(
                db, booking.listing_id, target.new_rental_start_date, target.new_rental_end_date
            )
        start, end = inventory_service.booking_window(
            record,
            target.new_rental_start_date,
            target.new_rental_end_date,
            field_names=("newRentalStartDate", "newRentalEndDate"),
        )

    else:
        if target.new_date_range_id is None:
            raise ValidationError.missing(["newDateRangeId"])
        record = await inventory_service.resolve(db, InventoryRef(booking_format, target.new_date_range_id))
        start, end = inventory_service.booking_window(
            record,
            target.new_rental_start_date or record.available_from_date,
            target.new_rental_end_date or record.available_to_date,
            field_names=("newRentalStartDate", "newRentalEndDate"),
        )

    if record.listing_id != booking.listing_id:
        raise ValidationError(
            f"New target {record.id} does not belong to listing {booking.listing_id}",
            fields=["newBatchId", "newSlotId", "newDateRangeId"],
        )
    return record, start, end


async def initiate_reschedule(
    db: AsyncSession,
    booking_id: Optional[int],
    actor: User,
    reason: Optional[str],
    target: RescheduleTarget,
) -> Reschedule:
    """
    Create a pending reschedule request after checking the new target has
    room for the booking's participants.
    """
    missing = []
    if booking_id is None:
        missing.append("bookingId")
    if not reason:
        missing.append("rescheduleReason")
    if missing:
        raise ValidationError.missing(missing)

    booking = await booking_service.get_booking(db, booking_id, lock=True)
    role = await booking_service.ensure_booking_access(db, booking, actor)

    if booking.status != BookingStatus.CONFIRMED:
        raise ConflictError(f"Cannot reschedule a {BookingStatus(booking.status).value} booking")

    existing = await db.execute(
        select(Reschedule.id).where(
            Reschedule.booking_id == booking.id,
            Reschedule.status == RescheduleStatus.PENDING,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Booking {booking.id} already has a pending reschedule request")

    record, start, end = await _resolve_target(db, booking, target)
    if (
        record.id == booking.inventory_ref.inventory_id
        and start == booking.start_date
        and end == booking.end_date
    ):
        raise ValidationError(
            "New target is the same as the current booking",
            fields=["newBatchId", "newSlotId", "newDateRangeId"],
        )

    booking_format = BookingFormat(booking.booking_format)
    units = inventory_service.units_for(booking_format, booking.participant_count)
    if not await inventory_service.check_capacity(db, record, units, start, end):
        raise InsufficientCapacityError(
            f"New target {record.id} cannot take {units} more unit(s)",
            requested=units,
            available=record.available_count,
        )

    listing = await inventory_service.get_listing(db, booking.listing_id)
    reschedule = Reschedule(
        reschedule_reference=generate_reschedule_reference(),
        booking_id=booking.id,
        initiated_by_user_id=actor.id,
        initiated_by_role=InitiatorRole(role.value),
        operator_id=listing.operator_id,
        reason=reason,
        status=RescheduleStatus.PENDING,
        booking_format=booking_format,
        old_inventory_id=booking.inventory_ref.inventory_id,
        new_inventory_id=record.id,
        old_start_date=booking.start_date,
        old_end_date=booking.end_date,
        new_start_date=start,
        new_end_date=end,
        reschedule_fee_amount=0,
        is_payment_required=False,
    )
    db.add(reschedule)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost the race to a concurrent initiate on the same booking.
        raise ConflictError(
            f"Booking {booking.id} already has a pending reschedule request", retryable=True
        ) from e

    record_reschedule_transition(RescheduleStatus.PENDING.value)
    logger.info(
        "reschedule_initiated",
        reschedule_id=reschedule.id,
        booking_id=booking.id,
        initiated_by=actor.id,
        role=role.value,
        new_inventory_id=record.id,
    )
    return reschedule


async def get_reschedule(db: AsyncSession, reschedule_id: int, lock: bool = False) -> Reschedule:
    stmt = (
        select(Reschedule)
        .where(Reschedule.id == reschedule_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    reschedule = (await db.execute(stmt)).scalar_one_or_none()
    if not reschedule:
        raise NotFoundError("Reschedule", reschedule_id)
    return reschedule


async def review_reschedule(
    db: AsyncSession,
    reschedule_id: int,
    admin_id: int,
    decision: Optional[str],
    admin_notes: Optional[str] = None,
    fee_amount: Optional[int] = None,
) -> Reschedule:
    """
    Admin decision on a pending request. `approved` processes immediately;
    `approved_with_charge` waits for the customer's payment.
    """
    try:
        outcome = RescheduleDecision(decision)
    except ValueError:
        raise ValidationError(
            "Invalid decision. Must be 'approved', 'approved_with_charge', or 'rejected'",
            fields=["decision"],
        ) from None

    reschedule = await get_reschedule(db, reschedule_id, lock=True)
    current = _status(reschedule)
    if current != RescheduleStatus.PENDING:
        raise ConflictError(f"Reschedule already {current.value}")

    if outcome == RescheduleDecision.APPROVED_WITH_CHARGE and (fee_amount is None or fee_amount <= 0):
        raise ValidationError(
            "Reschedule fee amount required for approval with charge",
            fields=["rescheduleFeeAmount"],
        )

    new_status = RescheduleStatus(outcome.value)
    RescheduleStateMachine.validate_transition(current, new_status)

    reschedule.status = new_status
    reschedule.admin_notes = admin_notes
    reschedule.approved_by_admin_id = admin_id
    reschedule.approved_at = _utcnow()
    if outcome == RescheduleDecision.APPROVED_WITH_CHARGE:
        reschedule.reschedule_fee_amount = fee_amount
        reschedule.is_payment_required = True
    await db.flush()

    record_reschedule_transition(new_status.value)
    logger.info(
        "reschedule_reviewed",
        reschedule_id=reschedule.id,
        decision=new_status.value,
        admin_id=admin_id,
        fee_amount=reschedule.reschedule_fee_amount,
    )

    if outcome == RescheduleDecision.APPROVED:
        reschedule = await process_reschedule(db, reschedule.id)
    return reschedule


async def process_reschedule(db: AsyncSession, reschedule_id: int) -> Reschedule:
    """
    Swap the booking's inventory reservation from the old target to the
    new one. Runs at most once per request.
    """
    reschedule = await get_reschedule(db, reschedule_id, lock=True)
    current = _status(reschedule)
    if current not in RescheduleStateMachine.PROCESSABLE:
        raise ConflictError(f"Reschedule {reschedule.id} is {current.value} and cannot be processed")
    if reschedule.is_processed:
        raise ConflictError(f"Reschedule {reschedule.id} has already been processed")
    if reschedule.is_payment_required and reschedule.paid_at is None:
        raise ConflictError(f"Reschedule {reschedule.id} is awaiting payment")

    booking = await booking_service.get_booking(db, reschedule.booking_id, lock=True)
    if booking.status != BookingStatus.CONFIRMED:
        raise ConflictError(f"Booking {booking.id} is {BookingStatus(booking.status).value}")

    booking_format = BookingFormat(booking.booking_format)
    units = inventory_service.units_for(booking_format, booking.participant_count)

    # Lock both records in a fixed order so two swaps in opposite
    # directions cannot deadlock.
    refs = sorted({booking.inventory_ref, reschedule.new_ref}, key=lambda ref: ref.inventory_id)
    records = {ref: await inventory_service.resolve(db, ref, lock=True) for ref in refs}
    old_record = records[booking.inventory_ref]
    new_record = records[reschedule.new_ref]

    await inventory_service.release(db, old_record, units, booking.holds)
    holds = await inventory_service.reserve(
        db, new_record, units, reschedule.new_start_date, reschedule.new_end_date
    )

    booking.point_at(reschedule.new_ref, holds)
    booking.start_date = reschedule.new_start_date
    booking.end_date = reschedule.new_end_date
    booking.total_days = inventory_service.total_days(reschedule.new_start_date, reschedule.new_end_date)
    reschedule.processed_at = _utcnow()
    await db.flush()

    record_reschedule_transition("processed")
    logger.info(
        "reschedule_processed",
        reschedule_id=reschedule.id,
        booking_id=booking.id,
        old_inventory_id=reschedule.old_inventory_id,
        new_inventory_id=reschedule.new_inventory_id,
        units=units,
    )
    return reschedule


async def complete_reschedule_payment(
    db: AsyncSession,
    reschedule_id: int,
    customer: User,
    transaction_id: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Reschedule:
    """Record the customer's fee payment, then process the reschedule."""
    reschedule = await get_reschedule(db, reschedule_id, lock=True)
    booking = await booking_service.get_booking(db, reschedule.booking_id)
    if customer.role != UserRole.CUSTOMER or booking.customer_id != customer.id:
        raise ForbiddenError("Only the booking's customer can pay for this reschedule")

    if not reschedule.is_payment_required:
        raise ValidationError("No payment required for this reschedule", fields=["rescheduleId"])
    if _status(reschedule) != RescheduleStatus.APPROVED_WITH_CHARGE:
        raise ConflictError("Reschedule not in payable state")
    if reschedule.is_processed:
        raise ConflictError("Reschedule payment already completed")

    payment_reference = transaction_id or "N/A"
    reschedule.payment_reference = transaction_id
    reschedule.paid_at = _utcnow()
    await db.flush()

    reschedule = await process_reschedule(db, reschedule.id)

    note = f"Payment completed: {payment_reference}"
    reschedule.admin_notes = f"{reschedule.admin_notes}\n{note}" if reschedule.admin_notes else note
    await db.flush()

    logger.info(
        "reschedule_payment_completed",
        reschedule_id=reschedule.id,
        booking_id=booking.id,
        fee_amount=reschedule.reschedule_fee_amount,
        payment_method=payment_method,
        payment_reference=payment_reference,
    )
    return reschedule


async def cancel_reschedule(db: AsyncSession, reschedule_id: int, actor: User) -> Reschedule:
    """Withdraw a pending request. Only its initiator or an admin may do this."""
    reschedule = await get_reschedule(db, reschedule_id, lock=True)
    if actor.role != UserRole.ADMIN and reschedule.initiated_by_user_id != actor.id:
        raise ForbiddenError("Only the initiator or an admin can cancel this reschedule")

    RescheduleStateMachine.validate_transition(_status(reschedule), RescheduleStatus.CANCELLED)
    reschedule.status = RescheduleStatus.CANCELLED
    await db.flush()

    record_reschedule_transition(RescheduleStatus.CANCELLED.value)
    logger.info("reschedule_cancelled", reschedule_id=reschedule.id, cancelled_by=actor.id)
    return reschedule


async def list_booking_reschedules(db: AsyncSession, booking_id: int) -> list[Reschedule]:
    result = await db.execute(
        select(Reschedule)
        .where(Reschedule.booking_id == booking_id)
        .order_by(Reschedule.created_at.desc(), Reschedule.id.desc())
    )
    return list(result.scalars().all())


async def list_pending_reschedules(db: AsyncSession) -> list[Reschedule]:
    result = await db.execute(
        select(Reschedule)
        .where(Reschedule.status == RescheduleStatus.PENDING)
        .order_by(Reschedule.created_at.asc(), Reschedule.id.asc())
    )
    return list(result.scalars().all())
