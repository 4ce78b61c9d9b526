"""
Seed demo users, listings and inventory for local runs and load tests.

    cd backend && python -m scripts.seed_demo_data

Re-running is safe: users and listings that already exist are reused
and their inventory is left as it is.
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import select

from app.core.logging import get_logger, setup_logging
from app.core.security import create_access_token
from app.db.session import AsyncSessionLocal
from app.models import (
    BatchSlot,
    InventoryDateRange,
    Listing,
    SlotDefinition,
    SlotInstance,
    User,
)
from app.models.enums import BookingFormat, UserRole

logger = get_logger(__name__)

USERS = [
    ("admin@demo.local", "Demo Admin", UserRole.ADMIN),
    ("operator@demo.local", "Rishikesh Rafting Co", UserRole.OPERATOR),
    *[(f"customer{n}@demo.local", f"Customer {n}", UserRole.CUSTOMER) for n in range(1, 6)],
]


async def _user(db, email: str, full_name: str, role: UserRole) -> User:
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if not user:
        user = User(email=email, full_name=full_name, role=role)
        db.add(user)
        await db.flush()
    return user


async def _listing(db, operator: User, name: str, booking_format: BookingFormat, **kwargs) -> tuple[Listing, bool]:
    listing = (await db.execute(select(Listing).where(Listing.name == name))).scalar_one_or_none()
    if listing:
        return listing, False
    listing = Listing(operator_id=operator.id, name=name, booking_format=booking_format, **kwargs)
    db.add(listing)
    await db.flush()
    return listing, True


async def seed(db) -> dict:
    users = {email: await _user(db, email, name, role) for email, name, role in USERS}
    operator = users["operator@demo.local"]
    start = date.today() + timedelta(days=14)

    trek, created = await _listing(db, operator, "Kedarkantha Winter Trek", BookingFormat.BATCH, tax_rate_bp=500)
    if created:
        for offset in (0, 7, 14):
            db.add(
                BatchSlot(
                    listing_id=trek.id,
                    base_price=850000,
                    total_capacity=10,
                    available_count=10,
                    batch_start_date=start + timedelta(days=offset),
                    batch_end_date=start + timedelta(days=offset + 5),
                )
            )

    kayak, created = await _listing(db, operator, "Ganga Kayak Rental", BookingFormat.DAY_RENTAL)
    if created:
        db.add(
            InventoryDateRange(
                listing_id=kayak.id,
                available_from_date=start,
                available_to_date=start + timedelta(days=60),
                base_price_per_day=150000,
                total_capacity=8,
                available_count=8,
            )
        )

    rafting, created = await _listing(db, operator, "Shivpuri Rafting Morning Run", BookingFormat.SLOT)
    if created:
        definition = SlotDefinition(listing_id=rafting.id, label="Morning", start_time="07:00", end_time="10:00")
        db.add(definition)
        await db.flush()
        for offset in range(7):
            db.add(
                SlotInstance(
                    listing_id=rafting.id,
                    slot_definition_id=definition.id,
                    slot_date=start + timedelta(days=offset),
                    base_price=120000,
                    total_capacity=12,
                    available_count=12,
                )
            )

    await db.flush()
    batch_ids = (
        await db.execute(select(BatchSlot.id).where(BatchSlot.listing_id == trek.id).order_by(BatchSlot.id))
    ).scalars().all()
    date_range_id = (
        await db.execute(select(InventoryDateRange.id).where(InventoryDateRange.listing_id == kayak.id))
    ).scalars().first()
    return {
        "users": {email: user.id for email, user in users.items()},
        "batch_ids": list(batch_ids),
        "kayak_date_range_id": date_range_id,
    }


async def main() -> None:
    setup_logging()
    async with AsyncSessionLocal() as db:
        summary = await seed(db)
        await db.commit()

    logger.info("demo_data_seeded", **summary)
    for email, user_id in summary["users"].items():
        print(f"{email:<24} id={user_id:<4} token={create_access_token({'sub': str(user_id)})}")
    print(f"LOAD_SLOT_ID={summary['batch_ids'][0]}")


if __name__ == "__main__":
    asyncio.run(main())
