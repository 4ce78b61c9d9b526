"""
Inventory model: resolve records, check and move capacity counters.

CONCURRENCY STRATEGY: Conditional UPDATE
========================================

Problem:
  Two customers try to take the last unit of one slot at the same time.
  Both read available_count=1, both write 0, both succeed -> oversell.

Solution:
  Every counter change is one statement that carries its own guard:

    UPDATE listing_slots SET available_count = available_count - :n
     WHERE id = :id AND is_active AND available_count >= :n

    UPDATE listing_slots SET available_count = available_count + :n
     WHERE id = :id AND available_count + :n <= total_capacity

  rowcount == 0 means the guard lost. For a decrement that is an
  InsufficientCapacityError; for an increment it means the counters are
  inconsistent and is an InternalError. Either way the caller's
  transaction is rolled back by get_db, so a multi-counter reservation
  (override days + range) is all-or-nothing.

  Rows that are about to be mutated are also read with SELECT ... FOR
  UPDATE so the application-level check sees the latest committed
  value. The guard in the UPDATE is what makes it correct; the lock only
  makes the friendly error message accurate.

Date ranges (day_rental / slot_rental):
  A date override replaces the range's price and capacity for that one
  date. Availability of [start, end] = every override day covers the
  units, and the range counter covers them too if any day in the window
  has no override (and the range tracks capacity at all).

  reserve() returns the counters it debited as InventoryHolds, stored on
  the booking; release() credits exactly those.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InsufficientCapacityError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import record_inventory_operation
from app.models.booking import InventoryHolds, InventoryRef
from app.models.enums import BookingFormat
from app.models.inventory import (
    BatchSlot,
    InventoryBlockedDate,
    InventoryDateOverride,
    InventoryDateRange,
    ListingSlot,
    SlotInstance,
)
from app.models.listing import Listing

logger = get_logger(__name__)

InventoryRecord = Union[BatchSlot, SlotInstance, InventoryDateRange]


@dataclass(frozen=True)
class CalendarDay:
    day: date
    price: int
    total_capacity: Optional[int]
    available_count: Optional[int]
    is_blocked: bool
    source: str  # "range" | "override"


def days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def total_days(start: date, end: date) -> int:
    return max(1, (end - start).days + 1)


def format_of(record: InventoryRecord) -> BookingFormat:
    if isinstance(record, BatchSlot):
        return BookingFormat.BATCH
    if isinstance(record, SlotInstance):
        return BookingFormat.SLOT
    if record.is_slot_rental:
        return BookingFormat.SLOT_RENTAL
    return BookingFormat.DAY_RENTAL


def units_for(booking_format: BookingFormat, participant_count: int) -> int:
    """Capacity units one booking consumes. A day-wise rental is one unit."""
    if booking_format == BookingFormat.DAY_RENTAL:
        return 1
    return participant_count


def ref_for(record: InventoryRecord) -> InventoryRef:
    return InventoryRef(format_of(record), record.id)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_listing(db: AsyncSession, listing_id: int) -> Listing:
    listing = await db.get(Listing, listing_id)
    if not listing:
        raise NotFoundError("Listing", listing_id)
    return listing


async def get_slot(db: AsyncSession, slot_id: int, lock: bool = False) -> ListingSlot:
    stmt = (
        select(ListingSlot)
        .where(ListingSlot.id == slot_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    slot = (await db.execute(stmt)).scalar_one_or_none()
    if not slot:
        raise NotFoundError("Slot", slot_id)
    return slot


async def get_date_range(db: AsyncSession, date_range_id: int, lock: bool = False) -> InventoryDateRange:
    stmt = (
        select(InventoryDateRange)
        .where(InventoryDateRange.id == date_range_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    date_range = (await db.execute(stmt)).scalar_one_or_none()
    if not date_range:
        raise NotFoundError("Date range", date_range_id)
    return date_range


async def resolve(db: AsyncSession, ref: InventoryRef, lock: bool = False) -> InventoryRecord:
    """Load the record a ref points at; the record kind must match the ref's format."""
    if ref.is_date_range:
        record = await get_date_range(db, ref.inventory_id, lock=lock)
    else:
        record = await get_slot(db, ref.inventory_id, lock=lock)

    actual = format_of(record)
    if actual != ref.format:
        raise ValidationError(
            f"Inventory {ref.inventory_id} is a {actual.value} record, not {ref.format.value}",
            fields=["bookingFormat"],
        )
    return record


async def find_covering_range(
    db: AsyncSession,
    listing_id: int,
    start: date,
    end: date,
    slot_definition_id: Optional[int] = None,
) -> InventoryDateRange:
    """First active range of the listing whose window contains [start, end]."""
    stmt = (
        select(InventoryDateRange)
        .where(
            InventoryDateRange.listing_id == listing_id,
            InventoryDateRange.is_active.is_(True),
            InventoryDateRange.available_from_date <= start,
            InventoryDateRange.available_to_date >= end,
        )
        .order_by(InventoryDateRange.id)
        .limit(1)
    )
    if slot_definition_id is None:
        stmt = stmt.where(InventoryDateRange.slot_definition_id.is_(None))
    else:
        stmt = stmt.where(InventoryDateRange.slot_definition_id == slot_definition_id)

    date_range = (await db.execute(stmt)).scalar_one_or_none()
    if not date_range:
        raise NotFoundError("Date range covering the requested dates")
    return date_range


async def get_overrides(
    db: AsyncSession, date_range_id: int, start: date, end: date
) -> dict[date, InventoryDateOverride]:
    result = await db.execute(
        select(InventoryDateOverride)
        .where(
            InventoryDateOverride.date_range_id == date_range_id,
            InventoryDateOverride.override_date >= start,
            InventoryDateOverride.override_date <= end,
        )
        .order_by(InventoryDateOverride.override_date)
        .execution_options(populate_existing=True)
    )
    return {override.override_date: override for override in result.scalars().all()}


async def get_blocked_dates(db: AsyncSession, listing_id: int, start: date, end: date) -> set[date]:
    result = await db.execute(
        select(InventoryBlockedDate.blocked_date).where(
            InventoryBlockedDate.listing_id == listing_id,
            InventoryBlockedDate.blocked_date >= start,
            InventoryBlockedDate.blocked_date <= end,
        )
    )
    return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def booking_window(
    record: InventoryRecord,
    start: Optional[date] = None,
    end: Optional[date] = None,
    field_names: Sequence[str] = ("startDate", "endDate"),
) -> tuple[date, date]:
    """
    Start/end dates a booking on this record covers.

    Batch slots and slot instances carry their own dates; date ranges take
    the caller's dates, which must lie inside the range's window.
    """
    if isinstance(record, BatchSlot):
        if record.batch_start_date is None or record.batch_end_date is None:
            raise ValidationError(f"Batch {record.id} has no dates", fields=["slotId"])
        return record.batch_start_date, record.batch_end_date

    if isinstance(record, SlotInstance):
        if record.slot_date is None:
            raise ValidationError(f"Slot {record.id} has no date", fields=["slotId"])
        return record.slot_date, record.slot_date

    missing = [name for name, value in zip(field_names, (start, end)) if value is None]
    if missing:
        raise ValidationError.missing(missing)
    if start > end:
        raise ValidationError(
            f"{field_names[0]} must not be after {field_names[1]}", fields=list(field_names)
        )
    if start < record.available_from_date or end > record.available_to_date:
        raise ValidationError(
            f"Requested dates {start}..{end} fall outside the availability window "
            f"{record.available_from_date}..{record.available_to_date}",
            fields=list(field_names),
        )
    return start, end


# ---------------------------------------------------------------------------
# Capacity checks
# ---------------------------------------------------------------------------


async def check_capacity(
    db: AsyncSession,
    record: InventoryRecord,
    units: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> bool:
    """
    Whether `units` can currently be taken from the record.

    Advisory only: the guarded UPDATE in reserve() is the source of truth.
    """
    if not record.is_active:
        return False

    if isinstance(record, ListingSlot):
        return record.available_count >= units

    start = start or record.available_from_date
    end = end or record.available_to_date
    if start < record.available_from_date or end > record.available_to_date:
        return False
    if await get_blocked_dates(db, record.listing_id, start, end):
        return False

    overrides = await get_overrides(db, record.id, start, end)
    if any(override.available_count < units for override in overrides.values()):
        return False
    uses_range_counter = len(overrides) < len(days_between(start, end))
    if uses_range_counter and record.tracks_capacity:
        return record.available_count >= units
    return True


async def effective_daily_prices(
    db: AsyncSession, date_range: InventoryDateRange, start: date, end: date
) -> list[int]:
    overrides = await get_overrides(db, date_range.id, start, end)
    return [
        overrides[day].price if day in overrides else date_range.base_price_per_day
        for day in days_between(start, end)
    ]


async def calendar(db: AsyncSession, date_range_id: int) -> tuple[InventoryDateRange, list[CalendarDay]]:
    """Per-day price and remaining capacity for a whole date range."""
    date_range = await get_date_range(db, date_range_id)
    start, end = date_range.available_from_date, date_range.available_to_date
    overrides = await get_overrides(db, date_range.id, start, end)
    blocked = await get_blocked_dates(db, date_range.listing_id, start, end)

    days = []
    for day in days_between(start, end):
        override = overrides.get(day)
        if override:
            days.append(CalendarDay(
                day=day,
                price=override.price,
                total_capacity=override.total_capacity,
                available_count=override.available_count,
                is_blocked=day in blocked,
                source="override",
            ))
        else:
            days.append(CalendarDay(
                day=day,
                price=date_range.base_price_per_day,
                total_capacity=date_range.total_capacity,
                available_count=date_range.available_count,
                is_blocked=day in blocked,
                source="range",
            ))
    return date_range, days


# ---------------------------------------------------------------------------
# Counter mutations
# ---------------------------------------------------------------------------


async def _decrement(db: AsyncSession, model, row_id: int, units: int, require_active: bool = True) -> bool:
    conditions = [model.id == row_id, model.available_count >= units]
    if require_active:
        conditions.append(model.is_active.is_(True))
    result = await db.execute(
        update(model)
        .where(*conditions)
        .values(available_count=model.available_count - units)
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1
    record_inventory_operation("decrement", applied)
    if not applied:
        logger.warning(
            "inventory_decrement_rejected",
            table=model.__tablename__,
            row_id=row_id,
            requested=units,
        )
    return applied


async def _increment(db: AsyncSession, model, row_id: int, units: int) -> None:
    result = await db.execute(
        update(model)
        .where(
            model.id == row_id,
            model.available_count + units <= model.total_capacity,
        )
        .values(available_count=model.available_count + units)
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1
    record_inventory_operation("increment", applied)
    if not applied:
        logger.error(
            "inventory_increment_rejected",
            table=model.__tablename__,
            row_id=row_id,
            released=units,
        )
        raise InternalError("Inventory counters are inconsistent; the booking could not be released")


async def reserve(
    db: AsyncSession,
    record: InventoryRecord,
    units: int,
    start: date,
    end: date,
) -> InventoryHolds:
    """
    Take `units` from the record for [start, end].

    Returns the counters that were debited; pass them back to release().
    Raises InsufficientCapacityError if any guarded counter cannot cover
    the request; counters already moved in this call are undone by the
    transaction rollback.
    """
    if units <= 0:
        raise ValidationError("participantCount must be positive", fields=["participantCount"])

    if isinstance(record, ListingSlot):
        if not await _decrement(db, ListingSlot, record.id, units):
            await db.refresh(record)
            raise InsufficientCapacityError(
                f"Not enough capacity. Requested: {units}, Available: "
                f"{record.available_count if record.is_active else 0}",
                requested=units,
                available=record.available_count if record.is_active else 0,
            )
        await db.refresh(record)
        return InventoryHolds()

    if not record.is_active:
        raise InsufficientCapacityError("Date range is not active", requested=units, available=0)
    blocked = await get_blocked_dates(db, record.listing_id, start, end)
    if blocked:
        raise InsufficientCapacityError(
            "Requested dates include blocked dates: " + ", ".join(str(d) for d in sorted(blocked)),
            requested=units,
            available=0,
        )

    overrides = await get_overrides(db, record.id, start, end)
    for override in overrides.values():
        if not await _decrement(db, InventoryDateOverride, override.id, units, require_active=False):
            await db.refresh(override)
            raise InsufficientCapacityError(
                f"Not enough capacity on {override.override_date}. "
                f"Requested: {units}, Available: {override.available_count}",
                requested=units,
                available=override.available_count,
            )
        await db.refresh(override)

    uses_range_counter = len(overrides) < len(days_between(start, end))
    range_counter = uses_range_counter and record.tracks_capacity
    if range_counter:
        if not await _decrement(db, InventoryDateRange, record.id, units):
            await db.refresh(record)
            raise InsufficientCapacityError(
                f"Not enough capacity. Requested: {units}, Available: {record.available_count}",
                requested=units,
                available=record.available_count,
            )
        await db.refresh(record)

    return InventoryHolds(
        override_ids=tuple(override.id for override in overrides.values()),
        range_counter=range_counter,
    )


async def release(
    db: AsyncSession,
    record: InventoryRecord,
    units: int,
    holds: InventoryHolds,
) -> None:
    """
    Exact inverse of the reserve() call that returned `holds`.

    An override deleted since then has nothing left to credit and is
    skipped; overrides created since then were never debited and are left
    alone.
    """
    if isinstance(record, ListingSlot):
        await _increment(db, ListingSlot, record.id, units)
        await db.refresh(record)
        return

    if holds.override_ids:
        result = await db.execute(
            select(InventoryDateOverride)
            .where(
                InventoryDateOverride.id.in_(holds.override_ids),
                InventoryDateOverride.date_range_id == record.id,
            )
            .execution_options(populate_existing=True)
        )
        overrides = result.scalars().all()
        missing = set(holds.override_ids) - {override.id for override in overrides}
        if missing:
            logger.warning("inventory_hold_override_missing", date_range_id=record.id, override_ids=sorted(missing))
        for override in overrides:
            await _increment(db, InventoryDateOverride, override.id, units)
            await db.refresh(override)

    if holds.range_counter and record.tracks_capacity:
        await _increment(db, InventoryDateRange, record.id, units)
        await db.refresh(record)
