"""
Reschedule endpoints: initiate, admin review, customer payment, cancel
and reads.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user, require_roles
from app.db.session import get_db
from app.models.enums import UserRole
from app.models.reschedule import Reschedule
from app.models.user import User
from app.schemas.common import to_paise
from app.schemas.reschedule import (
    RescheduleInitiate,
    ReschedulePayment,
    RescheduleReview,
    RescheduleView,
    reschedule_view,
)
from app.services import booking_service, reschedule_service
from app.services.cache_service import invalidate_booking_lists

router = APIRouter(prefix="/reschedules", tags=["Reschedules"])


async def _commit_and_invalidate(db: AsyncSession, reschedule: Reschedule) -> None:
    """Commit the processed move, then drop the cached lists it changed."""
    booking = await booking_service.get_booking(db, reschedule.booking_id)
    await db.commit()
    await invalidate_booking_lists(booking.customer_id, reschedule.operator_id)


@router.post("/initiate", response_model=RescheduleView)
async def initiate_reschedule(
    payload: RescheduleInitiate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Request to move a booking; the new target must have room now."""
    reschedule = await reschedule_service.initiate_reschedule(
        db,
        booking_id=payload.booking_id,
        actor=user,
        reason=payload.reschedule_reason,
        target=payload.to_target(),
    )
    return reschedule_view(reschedule)


@router.get("/pending", response_model=list[RescheduleView])
async def list_pending_reschedules(
    user: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    reschedules = await reschedule_service.list_pending_reschedules(db)
    return [reschedule_view(reschedule) for reschedule in reschedules]


@router.get("/booking/{booking_id}", response_model=list[RescheduleView])
async def list_booking_reschedules(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id)
    await booking_service.ensure_booking_access(db, booking, user)
    reschedules = await reschedule_service.list_booking_reschedules(db, booking_id)
    return [reschedule_view(reschedule) for reschedule in reschedules]


@router.get("/{reschedule_id}", response_model=RescheduleView)
async def get_reschedule(
    reschedule_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reschedule = await reschedule_service.get_reschedule(db, reschedule_id)
    booking = await booking_service.get_booking(db, reschedule.booking_id)
    await booking_service.ensure_booking_access(db, booking, user)
    return reschedule_view(reschedule)


@router.put("/{reschedule_id}/review", response_model=RescheduleView)
async def review_reschedule(
    reschedule_id: int,
    payload: RescheduleReview,
    user: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve, approve with a fee, or reject a pending request.

    A plain approval moves the booking in the same transaction.
    """
    reschedule = await reschedule_service.review_reschedule(
        db,
        reschedule_id,
        admin_id=user.id,
        decision=payload.decision,
        admin_notes=payload.admin_notes,
        fee_amount=to_paise(payload.reschedule_fee_amount),
    )
    if reschedule.is_processed:
        await _commit_and_invalidate(db, reschedule)
    return reschedule_view(reschedule)


@router.post("/{reschedule_id}/pay", response_model=RescheduleView)
async def pay_reschedule(
    reschedule_id: int,
    payload: ReschedulePayment,
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
):
    """Complete the reschedule fee payment; the booking moves immediately."""
    reschedule = await reschedule_service.complete_reschedule_payment(
        db,
        reschedule_id,
        customer=user,
        transaction_id=payload.transaction_id,
        payment_method=payload.payment_method,
    )
    await _commit_and_invalidate(db, reschedule)
    return reschedule_view(reschedule)


@router.post("/{reschedule_id}/cancel", response_model=RescheduleView)
async def cancel_reschedule(
    reschedule_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reschedule = await reschedule_service.cancel_reschedule(db, reschedule_id, actor=user)
    return reschedule_view(reschedule)
