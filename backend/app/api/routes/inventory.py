"""
Inventory read endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.inventory import DateRangeCalendar, calendar_view
from app.services import inventory_service

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/date-ranges/{date_range_id}/calendar", response_model=DateRangeCalendar)
async def date_range_calendar(
    date_range_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Per-day price, remaining capacity and blocked flag; overrides win."""
    date_range, days = await inventory_service.calendar(db, date_range_id)
    return calendar_view(date_range, days)
