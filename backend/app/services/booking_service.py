"""
Booking engine: create and cancel bookings against any of the four
inventory formats.

CONCURRENCY STRATEGY
====================

A booking is one database transaction (see app.db.session.get_db):

  1. Lock the inventory row (SELECT ... FOR UPDATE) and check capacity
  2. Compute the payment breakdown from the locked row's prices
  3. Guarded decrement(s) in inventory_service.reserve()
  4. INSERT booking + booking_payment

If anything after step 1 fails, nothing is committed: no booking without
a decrement and no decrement without a booking. The guarded UPDATE in
step 3 is what closes the "last seat" race; the check in step 1 only
produces a better error message when the answer is already known.

Booking references are random (BOK-<year>-<6 digits>) and not checked
for collisions up front. A duplicate-key error on insert surfaces as a
retryable ConflictError; the client resubmits.
"""

import secrets
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientCapacityError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_cancellation,
    record_reschedule_transition,
)
from app.models.booking import Booking
from app.models.booking_payment import BookingPayment
from app.models.enums import BookingFormat, BookingStatus, PaymentMethod, RescheduleStatus, UserRole
from app.models.inventory import ListingSlot
from app.models.listing import Listing
from app.models.reschedule import Reschedule
from app.models.user import User
from app.services import inventory_service
from app.services.payment_calculator import (
    Breakdown,
    BreakdownInput,
    calculate_breakdown,
    quantity_for_format,
)
from app.services.reschedule_state_machine import RescheduleStateMachine

logger = get_logger(__name__)


@dataclass
class BookingRequest:
    """Service-level booking input. Money fields are already in paise."""

    customer_id: Optional[int] = None
    slot_id: Optional[int] = None
    date_range_id: Optional[int] = None
    participant_count: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    participants: list = field(default_factory=list)
    contact_details: Optional[dict] = None
    selected_addons: list = field(default_factory=list)  # [{"name", "price" (paise), "quantity"}]
    addons_total: Optional[int] = None
    discount_amount: int = 0
    amount_paid_now: Optional[int] = None
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    promo_code: Optional[str] = None
    client_total_amount: Optional[int] = None


@dataclass
class BookingResult:
    booking: Booking
    payment: BookingPayment

    @property
    def booking_reference(self) -> str:
        return self.booking.booking_reference


def generate_booking_reference(today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f"BOK-{year}-{secrets.randbelow(1_000_000):06d}"


def _validate_request(data: BookingRequest) -> None:
    missing = []
    if data.customer_id is None:
        missing.append("customerId")
    if data.participant_count is None:
        missing.append("participantCount")
    if data.slot_id is None and data.date_range_id is None:
        missing.append("slotId or dateRangeId")
    if missing:
        raise ValidationError.missing(missing)

    if data.slot_id is not None and data.date_range_id is not None:
        raise ValidationError(
            "Provide exactly one of slotId or dateRangeId", fields=["slotId", "dateRangeId"]
        )
    if data.participant_count <= 0:
        raise ValidationError("participantCount must be positive", fields=["participantCount"])


def addons_amount(data: BookingRequest) -> int:
    """Sum of price x quantity over selected addons; falls back to addonsTotal."""
    if data.selected_addons:
        return sum(int(addon.get("price", 0)) * int(addon.get("quantity", 1)) for addon in data.selected_addons)
    return data.addons_total or 0


async def _price(
    db: AsyncSession,
    listing: Listing,
    record: inventory_service.InventoryRecord,
    booking_format: BookingFormat,
    data: BookingRequest,
    start: date,
    end: date,
    days: int,
) -> Breakdown:
    quantity = quantity_for_format(booking_format, data.participant_count, days)
    daily_prices: list[int] = []
    if isinstance(record, ListingSlot):
        base_price = record.base_price
    else:
        base_price = record.base_price_per_day
        daily_prices = await inventory_service.effective_daily_prices(db, record, start, end)

    units_per_day = data.participant_count if booking_format == BookingFormat.SLOT_RENTAL else 1
    return calculate_breakdown(
        BreakdownInput(
            booking_format=booking_format,
            base_price=base_price,
            quantity=quantity,
            addons_amount=addons_amount(data),
            discount_amount=data.discount_amount or 0,
            amount_paid_online=data.amount_paid_now,
            payment_method=data.payment_method,
            tax_rate_bp=listing.tax_rate_bp,
            advance_booking_rate_bp=listing.advance_booking_rate_bp,
            daily_prices=daily_prices,
            units_per_day=units_per_day,
        )
    )


async def create_booking(db: AsyncSession, data: BookingRequest) -> BookingResult:
    """
    Validate, price and persist one booking, consuming inventory capacity.

    Raises ValidationError, NotFoundError, InsufficientCapacityError or a
    retryable ConflictError. Nothing is flushed unless every step passed.
    """
    start_time = time.perf_counter()
    _validate_request(data)

    customer = await db.get(User, data.customer_id)
    if not customer:
        raise NotFoundError("Customer", data.customer_id)

    if data.slot_id is not None:
        record = await inventory_service.get_slot(db, data.slot_id, lock=True)
    else:
        record = await inventory_service.get_date_range(db, data.date_range_id, lock=True)

    listing = await inventory_service.get_listing(db, record.listing_id)
    booking_format = inventory_service.format_of(record)
    if BookingFormat(listing.booking_format) != booking_format:
        raise ValidationError(
            f"Invalid format: listing {listing.id} books as {BookingFormat(listing.booking_format).value}, "
            f"inventory {record.id} is a {booking_format.value} record",
            fields=["slotId" if data.slot_id is not None else "dateRangeId"],
        )

    start, end = inventory_service.booking_window(record, data.start_date, data.end_date)
    units = inventory_service.units_for(booking_format, data.participant_count)

    if not await inventory_service.check_capacity(db, record, units, start, end):
        record_booking_attempt("insufficient_capacity")
        logger.warning(
            "booking_capacity_rejected",
            inventory_id=record.id,
            booking_format=booking_format.value,
            requested=units,
            available=record.available_count,
        )
        raise InsufficientCapacityError(
            f"Not enough capacity available. Requested: {units}",
            requested=units,
            available=record.available_count,
        )

    days = inventory_service.total_days(start, end)
    breakdown = await _price(db, listing, record, booking_format, data, start, end, days)

    if data.client_total_amount is not None and data.client_total_amount != breakdown.total_amount:
        logger.warning(
            "client_pricing_mismatch",
            client_total=data.client_total_amount,
            computed_total=breakdown.total_amount,
            inventory_id=record.id,
        )

    try:
        holds = await inventory_service.reserve(db, record, units, start, end)
    except InsufficientCapacityError:
        record_booking_attempt("insufficient_capacity")
        raise

    ref = inventory_service.ref_for(record)
    booking = Booking(
        booking_reference=generate_booking_reference(),
        customer_id=customer.id,
        listing_id=listing.id,
        booking_format=booking_format,
        start_date=start,
        end_date=end,
        participant_count=data.participant_count,
        total_days=days,
        base_price=breakdown.base_price,
        total_amount=breakdown.total_amount,
        status=BookingStatus.CONFIRMED,
        pricing_snapshot=breakdown.snapshot(),
        participants=data.participants or [],
        contact_details=data.contact_details,
        selected_addons=data.selected_addons or [],
        promo_code=data.promo_code,
        payment=BookingPayment(
            currency=listing.currency,
            payment_method=breakdown.payment_method,
            base_price=breakdown.base_price,
            quantity=breakdown.quantity,
            subtotal_amount=breakdown.subtotal_amount,
            addons_amount=breakdown.addons_amount,
            discount_amount=breakdown.discount_amount,
            taxable_amount=breakdown.taxable_amount,
            tax_rate_bp=breakdown.tax_rate_bp,
            tax_amount=breakdown.tax_amount,
            total_amount=breakdown.total_amount,
            amount_paid_online=breakdown.amount_paid_online,
            amount_to_collect_offline=breakdown.amount_to_collect_offline,
            platform_commission_rate_bp=breakdown.platform_commission_rate_bp,
            platform_commission=breakdown.platform_commission,
            tcs_rate_bp=breakdown.tcs_rate_bp,
            tcs_amount=breakdown.tcs_amount,
            seller_gross_earnings=breakdown.seller_gross_earnings,
            net_payable_to_seller=breakdown.net_payable_to_seller,
        ),
    )
    booking.point_at(ref, holds)
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError as e:
        record_booking_attempt("error")
        logger.warning("booking_reference_collision", reference=booking.booking_reference, error=str(e.orig))
        raise ConflictError("Booking reference collision, please retry", retryable=True) from e

    payment = booking.payment

    record_booking_attempt("success")
    booking_latency.observe(time.perf_counter() - start_time)
    logger.info(
        "booking_created",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        customer_id=customer.id,
        booking_format=booking_format.value,
        inventory_id=record.id,
        units=units,
        total_amount=breakdown.total_amount,
    )
    return BookingResult(booking=booking, payment=payment)


async def get_booking(db: AsyncSession, booking_id: int, lock: bool = False) -> Booking:
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id)
        .options(selectinload(Booking.payment))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    booking = (await db.execute(stmt)).scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking", booking_id)
    return booking


async def cancel_booking(db: AsyncSession, booking_id: int) -> Booking:
    """
    Cancel a booking and release its capacity back to the same counters it
    consumed. A pending reschedule on the booking is cancelled with it.
    """
    booking = await get_booking(db, booking_id, lock=True)
    if booking.status == BookingStatus.CANCELLED:
        raise ValidationError("Booking is already cancelled", fields=["bookingId"])

    booking_format = BookingFormat(booking.booking_format)
    record = await inventory_service.resolve(db, booking.inventory_ref, lock=True)
    units = inventory_service.units_for(booking_format, booking.participant_count)
    await inventory_service.release(db, record, units, booking.holds)

    pending = (
        await db.execute(
            select(Reschedule).where(
                Reschedule.booking_id == booking.id,
                Reschedule.status == RescheduleStatus.PENDING,
            )
        )
    ).scalar_one_or_none()
    if pending:
        RescheduleStateMachine.validate_transition(RescheduleStatus.PENDING, RescheduleStatus.CANCELLED)
        pending.status = RescheduleStatus.CANCELLED
        record_reschedule_transition(RescheduleStatus.CANCELLED.value)
        logger.info("reschedule_cancelled", reschedule_id=pending.id, reason="booking_cancelled")

    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = datetime.now(timezone.utc)
    await db.flush()

    record_cancellation(booking_format.value)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        inventory_id=record.id,
        units_released=units,
    )
    return booking


async def ensure_booking_access(db: AsyncSession, booking: Booking, user: User) -> UserRole:
    """
    The role in which `user` may act on `booking`: the owning customer, the
    operator of the booked listing, or an admin. Anyone else is forbidden.
    """
    if user.role == UserRole.ADMIN:
        return UserRole.ADMIN
    if user.role == UserRole.CUSTOMER and booking.customer_id == user.id:
        return UserRole.CUSTOMER
    if user.role == UserRole.OPERATOR:
        listing = await inventory_service.get_listing(db, booking.listing_id)
        if listing.operator_id == user.id:
            return UserRole.OPERATOR
    raise ForbiddenError(f"Not allowed to access booking {booking.id}")


def _list_query():
    return select(Booking).options(selectinload(Booking.payment)).order_by(Booking.created_at.desc(), Booking.id.desc())


async def list_customer_bookings(db: AsyncSession, customer_id: int) -> list[Booking]:
    result = await db.execute(_list_query().where(Booking.customer_id == customer_id))
    return list(result.scalars().all())


async def list_operator_bookings(db: AsyncSession, operator_id: int) -> list[Booking]:
    listing_ids = select(Listing.id).where(Listing.operator_id == operator_id)
    result = await db.execute(_list_query().where(Booking.listing_id.in_(listing_ids)))
    return list(result.scalars().all())


async def list_all_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(_list_query())
    return list(result.scalars().all())
