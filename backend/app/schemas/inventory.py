"""
Pydantic schemas for the date-range availability calendar.
"""

import datetime as dt
from typing import Optional

from app.models.inventory import InventoryDateRange
from app.schemas.common import CamelModel, Money, to_rupees
from app.services.inventory_service import CalendarDay


class CalendarDayView(CamelModel):
    date: dt.date
    price: Money
    total_capacity: Optional[int] = None
    available_count: Optional[int] = None
    is_blocked: bool
    source: str


class DateRangeCalendar(CamelModel):
    date_range_id: int
    listing_id: int
    slot_definition_id: Optional[int] = None
    available_from_date: dt.date
    available_to_date: dt.date
    base_price_per_day: Money
    tracks_capacity: bool
    days: list[CalendarDayView]


def calendar_view(date_range: InventoryDateRange, days: list[CalendarDay]) -> DateRangeCalendar:
    return DateRangeCalendar(
        date_range_id=date_range.id,
        listing_id=date_range.listing_id,
        slot_definition_id=date_range.slot_definition_id,
        available_from_date=date_range.available_from_date,
        available_to_date=date_range.available_to_date,
        base_price_per_day=to_rupees(date_range.base_price_per_day),
        tracks_capacity=date_range.tracks_capacity,
        days=[
            CalendarDayView(
                date=day.day,
                price=to_rupees(day.price),
                total_capacity=day.total_capacity,
                available_count=day.available_count,
                is_blocked=day.is_blocked,
                source=day.source,
            )
            for day in days
        ],
    )
