"""
Booking endpoints: create, cancel and role-scoped listings.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError
from app.core.security import get_current_user, require_roles
from app.db.session import get_db
from app.models.booking import Booking
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.booking import (
    AdminBookingView,
    BookingCreate,
    BookingCreateResponse,
    BookingView,
    booking_view,
    payment_view,
)
from app.services import booking_service, inventory_service
from app.services.cache_service import (
    CUSTOMER_SCOPE,
    OPERATOR_SCOPE,
    get_cached_bookings,
    invalidate_booking_lists,
    set_cached_bookings,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _commit_and_invalidate(db: AsyncSession, booking: Booking) -> None:
    """Commit the write, then drop the cached lists it changed."""
    listing = await inventory_service.get_listing(db, booking.listing_id)
    await db.commit()
    await invalidate_booking_lists(booking.customer_id, listing.operator_id)


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
):
    """
    Book capacity on a slot or date range.

    The capacity decrement is a guarded UPDATE, so concurrent requests for
    the last unit cannot both succeed; the loser gets a 409.
    """
    if booking_data.customer_id is not None and booking_data.customer_id != user.id:
        raise ForbiddenError("Customers can only book for themselves")

    request = booking_data.to_request()
    request.customer_id = user.id
    result = await booking_service.create_booking(db, request)
    await _commit_and_invalidate(db, result.booking)
    return BookingCreateResponse(
        booking=booking_view(result.booking, result.payment),
        booking_payment=payment_view(result.payment),
        booking_reference=result.booking_reference,
    )


@router.post("/{booking_id}/cancel", response_model=BookingView)
async def cancel_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its capacity back to inventory."""
    booking = await booking_service.get_booking(db, booking_id)
    await booking_service.ensure_booking_access(db, booking, user)
    booking = await booking_service.cancel_booking(db, booking_id)
    await _commit_and_invalidate(db, booking)
    return booking_view(booking)


@router.get("/user/{customer_id}", response_model=list[BookingView])
async def list_customer_bookings(
    customer_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.role != UserRole.ADMIN and user.id != customer_id:
        raise ForbiddenError("Not allowed to view these bookings")

    cached = await get_cached_bookings(CUSTOMER_SCOPE, customer_id)
    if cached is not None:
        return cached

    bookings = await booking_service.list_customer_bookings(db, customer_id)
    views = [booking_view(booking) for booking in bookings]
    await set_cached_bookings(
        CUSTOMER_SCOPE, customer_id, [view.model_dump(mode="json", by_alias=True) for view in views]
    )
    return views


@router.get("/operator/{operator_id}", response_model=list[BookingView])
async def list_operator_bookings(
    operator_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.role != UserRole.ADMIN and not (user.role == UserRole.OPERATOR and user.id == operator_id):
        raise ForbiddenError("Not allowed to view these bookings")

    cached = await get_cached_bookings(OPERATOR_SCOPE, operator_id)
    if cached is not None:
        return cached

    bookings = await booking_service.list_operator_bookings(db, operator_id)
    views = [booking_view(booking) for booking in bookings]
    await set_cached_bookings(
        OPERATOR_SCOPE, operator_id, [view.model_dump(mode="json", by_alias=True) for view in views]
    )
    return views


@router.get("/admin/all", response_model=list[AdminBookingView])
async def list_all_bookings(
    user: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """All bookings with commission, TCS and settlement fields."""
    bookings = await booking_service.list_all_bookings(db)
    return [booking_view(booking, admin=True) for booking in bookings]
