"""
Tests for booking endpoints: roles, error codes and the wire format.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from app.api.routes import bookings as bookings_routes
from app.models import Booking, ListingSlot
from app.models.enums import BookingStatus
from app.services import inventory_service

from factories import auth_headers_for


async def _create(client: AsyncClient, user, **payload):
    return await client.post("/api/v1/bookings", json=payload, headers=auth_headers_for(user))


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, db_session, customer, batch_slot):
    """Successful booking returns 201 with the booking, its payment and reference."""
    response = await _create(client, customer, slotId=batch_slot.id, participantCount=2, totalAmount=11800)

    assert response.status_code == 201
    data = response.json()
    assert data["bookingReference"] == data["booking"]["bookingReference"]
    assert data["booking"]["status"] == "CONFIRMED"
    assert data["booking"]["bookingFormat"] == "batch"
    assert data["booking"]["slotId"] == batch_slot.id
    assert data["booking"]["customerId"] == customer.id
    assert data["booking"]["totalAmount"] == 11800.0
    assert data["booking"]["pricingSnapshot"]["total"] == 11800.0
    assert data["bookingPayment"]["subtotalAmount"] == 10000.0
    assert data["bookingPayment"]["taxAmount"] == 1800.0
    assert data["bookingPayment"]["amountPaidOnline"] == 2950.0
    assert data["bookingPayment"]["amountToCollectOffline"] == 8850.0
    # Seller-side figures are admin-only.
    assert "platformCommission" not in data["bookingPayment"]
    assert "tcsAmount" not in data["bookingPayment"]

    slot = await inventory_service.get_slot(db_session, batch_slot.id)
    assert slot.available_count == 1


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, batch_slot):
    """Unauthenticated booking returns 401."""
    response = await client.post("/api/v1/bookings", json={"slotId": batch_slot.id, "participantCount": 1})
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


@pytest.mark.asyncio
async def test_operator_cannot_book(client: AsyncClient, operator, batch_slot):
    response = await _create(client, operator, slotId=batch_slot.id, participantCount=1)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cannot_book_for_someone_else(client: AsyncClient, customer, other_customer, batch_slot):
    response = await _create(
        client, customer, customerId=other_customer.id, slotId=batch_slot.id, participantCount=1
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_fields_return_400(client: AsyncClient, customer):
    response = await _create(client, customer)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["fields"] == ["participantCount", "slotId or dateRangeId"]


@pytest.mark.asyncio
async def test_sold_out_returns_409(client: AsyncClient, customer, other_customer, batch_slot):
    """Booking more than what is left returns 409 and leaves nothing behind."""
    first = await _create(client, customer, slotId=batch_slot.id, participantCount=3)
    assert first.status_code == 201

    second = await _create(client, other_customer, slotId=batch_slot.id, participantCount=1)
    assert second.status_code == 409
    assert second.json()["code"] == "insufficient_capacity"

    listing = await client.get(f"/api/v1/bookings/user/{other_customer.id}", headers=auth_headers_for(other_customer))
    assert listing.json() == []


@pytest.mark.asyncio
async def test_unknown_slot_returns_404(client: AsyncClient, customer):
    response = await _create(client, customer, slotId=9999, participantCount=1)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_day_rental_booking(client: AsyncClient, customer, rental_range):
    response = await _create(
        client,
        customer,
        dateRangeId=rental_range.id,
        participantCount=4,
        startDate="2026-12-01",
        endDate="2026-12-02",
        selectedAddons=[{"name": "Life jacket", "price": 250.5, "quantity": 2}],
    )

    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["dateRangeId"] == rental_range.id
    assert booking["slotId"] is None
    assert booking["totalDays"] == 2
    assert booking["selectedAddons"][0]["price"] == 250.5
    payment = response.json()["bookingPayment"]
    assert payment["quantity"] == 2
    assert payment["subtotalAmount"] == 4000.0
    assert payment["addonsAmount"] == 501.0


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, db_session, customer, batch_slot):
    created = await _create(client, customer, slotId=batch_slot.id, participantCount=2)
    booking_id = created.json()["booking"]["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(customer))

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancelledAt"] is not None
    slot = await inventory_service.get_slot(db_session, batch_slot.id)
    assert slot.available_count == 3

    again = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(customer))
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_cancel_permissions(client: AsyncClient, customer, other_customer, operator, batch_slot):
    created = await _create(client, customer, slotId=batch_slot.id, participantCount=1)
    booking_id = created.json()["booking"]["id"]

    stranger = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(other_customer))
    assert stranger.status_code == 403

    by_operator = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(operator))
    assert by_operator.status_code == 200


@pytest.mark.asyncio
async def test_list_customer_bookings(client: AsyncClient, customer, other_customer, admin, batch_slot):
    await _create(client, customer, slotId=batch_slot.id, participantCount=1)
    await _create(client, customer, slotId=batch_slot.id, participantCount=1)

    own = await client.get(f"/api/v1/bookings/user/{customer.id}", headers=auth_headers_for(customer))
    assert own.status_code == 200
    assert len(own.json()) == 2
    assert own.json()[0]["id"] > own.json()[1]["id"]

    other = await client.get(f"/api/v1/bookings/user/{customer.id}", headers=auth_headers_for(other_customer))
    assert other.status_code == 403

    as_admin = await client.get(f"/api/v1/bookings/user/{customer.id}", headers=auth_headers_for(admin))
    assert as_admin.status_code == 200
    assert len(as_admin.json()) == 2


@pytest.mark.asyncio
async def test_list_operator_bookings(client: AsyncClient, customer, operator, batch_slot):
    await _create(client, customer, slotId=batch_slot.id, participantCount=1)

    response = await client.get(f"/api/v1/bookings/operator/{operator.id}", headers=auth_headers_for(operator))
    assert response.status_code == 200
    assert len(response.json()) == 1

    forbidden = await client.get(f"/api/v1/bookings/operator/{operator.id}", headers=auth_headers_for(customer))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_admin_sees_seller_figures(client: AsyncClient, customer, admin, batch_slot):
    await _create(client, customer, slotId=batch_slot.id, participantCount=2)

    response = await client.get("/api/v1/bookings/admin/all", headers=auth_headers_for(admin))

    assert response.status_code == 200
    payment = response.json()[0]["payment"]
    assert payment["platformCommission"] == 1000.0
    assert payment["tcsAmount"] == 118.0
    assert payment["netPayableToSeller"] == 8882.0
    assert payment["settlementStatus"] == "PENDING"

    forbidden = await client.get("/api/v1/bookings/admin/all", headers=auth_headers_for(customer))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_date_range_calendar(client: AsyncClient, customer, rental_range):
    await _create(
        client,
        customer,
        dateRangeId=rental_range.id,
        participantCount=1,
        startDate="2026-12-01",
        endDate="2026-12-01",
    )

    response = await client.get(
        f"/api/v1/inventory/date-ranges/{rental_range.id}/calendar", headers=auth_headers_for(customer)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["tracksCapacity"] is True
    assert len(data["days"]) == 31
    assert data["days"][0] == {
        "date": "2026-12-01",
        "price": 2000.0,
        "totalCapacity": 5,
        "availableCount": 4,
        "isBlocked": False,
        "source": "range",
    }


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


@pytest.mark.asyncio
async def test_malformed_body_is_400(client: AsyncClient, customer):
    response = await client.post(
        "/api/v1/bookings",
        content="not json at all",
        headers={**auth_headers_for(customer), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert response.json()["fields"] == ["body"]


@pytest.mark.asyncio
async def test_wrong_field_type_names_the_field(client: AsyncClient, customer, batch_slot):
    response = await _create(client, customer, slotId=batch_slot.id, participantCount="lots")

    assert response.status_code == 400
    assert response.json()["fields"] == ["participantCount"]


@pytest.mark.asyncio
async def test_lists_dropped_only_after_commit(
    client: AsyncClient, session_factory, monkeypatch, customer, batch_slot
):
    """When the cached lists are dropped, a separate session already sees the write."""
    seen = []

    async def record_committed_statuses(customer_id, operator_id):
        async with session_factory() as session:
            result = await session.execute(select(Booking.status).where(Booking.customer_id == customer_id))
            seen.append([BookingStatus(status) for status in result.scalars().all()])

    monkeypatch.setattr(bookings_routes, "invalidate_booking_lists", record_committed_statuses)

    created = await _create(client, customer, slotId=batch_slot.id, participantCount=1)
    booking_id = created.json()["booking"]["id"]
    cancelled = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(customer))

    assert cancelled.status_code == 200
    assert seen == [[BookingStatus.CONFIRMED], [BookingStatus.CANCELLED]]


@pytest.mark.asyncio
async def test_inconsistent_counters_hide_internals(
    client: AsyncClient, db_session, customer, batch_slot
):
    """A release that would overflow capacity is a 500 whose body names no tables or rows."""
    created = await _create(client, customer, slotId=batch_slot.id, participantCount=1)
    booking_id = created.json()["booking"]["id"]
    await db_session.execute(update(ListingSlot).where(ListingSlot.id == batch_slot.id).values(available_count=3))
    await db_session.commit()

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(customer))

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error", "code": "internal_error"}
