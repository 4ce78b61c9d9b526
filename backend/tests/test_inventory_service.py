"""
Tests for capacity checks and guarded counter updates.
"""

from datetime import date

import pytest

from app.core.exceptions import InsufficientCapacityError, InternalError, NotFoundError, ValidationError
from app.models import InventoryHolds, InventoryRef
from app.models.enums import BookingFormat
from app.services import inventory_service

from factories import block_date, create_date_range, create_override


@pytest.mark.asyncio
async def test_range_without_overrides_uses_range_counter(db_session, rental_range):
    assert await inventory_service.check_capacity(db_session, rental_range, 5, date(2026, 12, 1), date(2026, 12, 3))
    assert not await inventory_service.check_capacity(
        db_session, rental_range, 6, date(2026, 12, 1), date(2026, 12, 3)
    )


@pytest.mark.asyncio
async def test_exhausted_override_day_blocks_window(db_session, rental_range):
    """An override with no capacity left makes any window containing it unavailable."""
    await create_override(db_session, rental_range, date(2026, 12, 10), price=300000, available=0, total=2)

    assert not await inventory_service.check_capacity(
        db_session, rental_range, 1, date(2026, 12, 9), date(2026, 12, 11)
    )
    assert await inventory_service.check_capacity(
        db_session, rental_range, 1, date(2026, 12, 11), date(2026, 12, 12)
    )


@pytest.mark.asyncio
async def test_fully_overridden_window_ignores_range_counter(db_session, rental_listing):
    date_range = await create_date_range(db_session, rental_listing, total=5, available=0)
    for day in (date(2026, 12, 5), date(2026, 12, 6)):
        await create_override(db_session, date_range, day, price=250000, available=2)

    assert await inventory_service.check_capacity(
        db_session, date_range, 1, date(2026, 12, 5), date(2026, 12, 6)
    )
    assert not await inventory_service.check_capacity(
        db_session, date_range, 1, date(2026, 12, 5), date(2026, 12, 7)
    )


@pytest.mark.asyncio
async def test_blocked_date_makes_window_unavailable(db_session, rental_listing, rental_range):
    await block_date(db_session, rental_listing, date(2026, 12, 24))

    assert not await inventory_service.check_capacity(
        db_session, rental_range, 1, date(2026, 12, 23), date(2026, 12, 25)
    )
    with pytest.raises(InsufficientCapacityError):
        await inventory_service.reserve(db_session, rental_range, 1, date(2026, 12, 23), date(2026, 12, 25))


@pytest.mark.asyncio
async def test_reserve_and_release_mixed_window(db_session, rental_range):
    """Override days and the range counter each move by the booked units, and back."""
    override = await create_override(db_session, rental_range, date(2026, 12, 10), price=300000, available=3)
    start, end = date(2026, 12, 9), date(2026, 12, 11)

    holds = await inventory_service.reserve(db_session, rental_range, 2, start, end)
    assert holds == InventoryHolds(override_ids=(override.id,), range_counter=True)
    overrides = await inventory_service.get_overrides(db_session, rental_range.id, start, end)
    assert overrides[override.override_date].available_count == 1
    assert rental_range.available_count == 3

    await inventory_service.release(db_session, rental_range, 2, holds)
    overrides = await inventory_service.get_overrides(db_session, rental_range.id, start, end)
    assert overrides[override.override_date].available_count == 3
    assert rental_range.available_count == 5


@pytest.mark.asyncio
async def test_guarded_decrement_rejects_oversell(db_session, batch_slot):
    with pytest.raises(InsufficientCapacityError) as exc_info:
        await inventory_service.reserve(db_session, batch_slot, 4, batch_slot.batch_start_date, batch_slot.batch_end_date)

    assert exc_info.value.requested == 4
    assert exc_info.value.available == 3
    slot = await inventory_service.get_slot(db_session, batch_slot.id)
    assert slot.available_count == 3


@pytest.mark.asyncio
async def test_release_past_total_capacity_is_internal_error(db_session, batch_slot):
    with pytest.raises(InternalError) as exc_info:
        await inventory_service.release(db_session, batch_slot, 1, InventoryHolds())

    # Table names and row ids stay in the logs.
    detail = exc_info.value.to_dict()["detail"]
    assert "listing_slots" not in detail
    assert str(batch_slot.id) not in detail


@pytest.mark.asyncio
async def test_release_credits_only_held_counters(db_session, rental_range):
    """Overrides added after the reservation are left alone; the range gets its unit back."""
    start, end = date(2026, 12, 9), date(2026, 12, 11)
    holds = await inventory_service.reserve(db_session, rental_range, 1, start, end)
    assert holds == InventoryHolds(range_counter=True)
    await db_session.commit()

    await create_override(db_session, rental_range, date(2026, 12, 10), price=300000, available=5)
    await inventory_service.release(db_session, rental_range, 1, holds)

    overrides = await inventory_service.get_overrides(db_session, rental_range.id, start, end)
    assert overrides[date(2026, 12, 10)].available_count == 5
    assert rental_range.available_count == 5


@pytest.mark.asyncio
async def test_release_skips_deleted_override(db_session, rental_range):
    day = date(2026, 12, 10)
    override = await create_override(db_session, rental_range, day, price=300000, available=3)
    holds = await inventory_service.reserve(db_session, rental_range, 1, day, day)
    assert holds == InventoryHolds(override_ids=(override.id,), range_counter=False)
    await db_session.delete(override)
    await db_session.commit()

    await inventory_service.release(db_session, rental_range, 1, holds)

    assert rental_range.available_count == 5


@pytest.mark.asyncio
async def test_effective_daily_prices(db_session, rental_range):
    await create_override(db_session, rental_range, date(2026, 12, 2), price=350000, available=5)

    prices = await inventory_service.effective_daily_prices(
        db_session, rental_range, date(2026, 12, 1), date(2026, 12, 3)
    )
    assert prices == [200000, 350000, 200000]


@pytest.mark.asyncio
async def test_calendar_marks_overrides_and_blocked_days(db_session, rental_listing, rental_range):
    await create_override(db_session, rental_range, date(2026, 12, 25), price=500000, available=1, total=2)
    await block_date(db_session, rental_listing, date(2026, 12, 31))

    date_range, days = await inventory_service.calendar(db_session, rental_range.id)

    assert date_range.id == rental_range.id
    assert len(days) == 31
    christmas = days[24]
    assert christmas.day == date(2026, 12, 25)
    assert christmas.source == "override"
    assert christmas.price == 500000
    assert christmas.available_count == 1
    assert days[0].source == "range"
    assert days[0].available_count == 5
    assert days[30].is_blocked
    assert not days[29].is_blocked


@pytest.mark.asyncio
async def test_resolve_rejects_format_mismatch(db_session, batch_slot):
    with pytest.raises(ValidationError):
        await inventory_service.resolve(db_session, InventoryRef(BookingFormat.SLOT, batch_slot.id))

    record = await inventory_service.resolve(db_session, InventoryRef(BookingFormat.BATCH, batch_slot.id))
    assert record.id == batch_slot.id


@pytest.mark.asyncio
async def test_booking_window_must_fit_range(rental_range):
    with pytest.raises(ValidationError) as exc_info:
        inventory_service.booking_window(rental_range, date(2026, 11, 30), date(2026, 12, 2))
    assert exc_info.value.fields == ["startDate", "endDate"]

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.booking_window(rental_range, None, date(2026, 12, 2))
    assert exc_info.value.fields == ["startDate"]


@pytest.mark.asyncio
async def test_batch_window_comes_from_batch(batch_slot):
    assert inventory_service.booking_window(batch_slot) == (date(2026, 12, 1), date(2026, 12, 5))


@pytest.mark.asyncio
async def test_find_covering_range(db_session, rental_listing, rental_range):
    found = await inventory_service.find_covering_range(
        db_session, rental_listing.id, date(2026, 12, 20), date(2026, 12, 22)
    )
    assert found.id == rental_range.id

    with pytest.raises(NotFoundError):
        await inventory_service.find_covering_range(
            db_session, rental_listing.id, date(2027, 1, 1), date(2027, 1, 2)
        )


def test_units_per_format():
    assert inventory_service.units_for(BookingFormat.DAY_RENTAL, 4) == 1
    assert inventory_service.units_for(BookingFormat.SLOT_RENTAL, 4) == 4
    assert inventory_service.units_for(BookingFormat.BATCH, 2) == 2
    assert inventory_service.total_days(date(2026, 12, 1), date(2026, 12, 3)) == 3
