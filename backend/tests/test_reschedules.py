"""
Tests for reschedule endpoints.
"""

from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from app.api.routes import reschedules as reschedules_routes
from app.models import Booking
from app.services import inventory_service

from factories import auth_headers_for, create_batch


@pytest_asyncio.fixture
async def booking_id(client: AsyncClient, customer, batch_slot) -> int:
    response = await client.post(
        "/api/v1/bookings",
        json={"slotId": batch_slot.id, "participantCount": 2},
        headers=auth_headers_for(customer),
    )
    assert response.status_code == 201
    return response.json()["booking"]["id"]


@pytest_asyncio.fixture
async def later_batch(db_session, batch_listing):
    return await create_batch(db_session, batch_listing, start=date(2026, 12, 10), end=date(2026, 12, 14))


async def _initiate(client: AsyncClient, user, booking_id: int, new_batch_id: int):
    return await client.post(
        "/api/v1/reschedules/initiate",
        json={"bookingId": booking_id, "rescheduleReason": "Travel plans changed", "newBatchId": new_batch_id},
        headers=auth_headers_for(user),
    )


@pytest.mark.asyncio
async def test_initiate(client: AsyncClient, customer, booking_id, later_batch):
    response = await _initiate(client, customer, booking_id, later_batch.id)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["bookingId"] == booking_id
    assert data["initiatedByRole"] == "customer"
    assert data["newInventoryId"] == later_batch.id
    assert data["newStartDate"] == "2026-12-10"
    assert data["isProcessed"] is False
    assert data["rescheduleFeeAmount"] == 0.0


@pytest.mark.asyncio
async def test_initiate_missing_fields(client: AsyncClient, customer):
    response = await client.post("/api/v1/reschedules/initiate", json={}, headers=auth_headers_for(customer))

    assert response.status_code == 400
    assert response.json()["fields"] == ["bookingId", "rescheduleReason"]


@pytest.mark.asyncio
async def test_second_pending_request_conflicts(client: AsyncClient, customer, booking_id, later_batch):
    assert (await _initiate(client, customer, booking_id, later_batch.id)).status_code == 200

    response = await _initiate(client, customer, booking_id, later_batch.id)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_cancelled_booking_conflicts(client: AsyncClient, customer, booking_id, later_batch):
    await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers_for(customer))

    response = await _initiate(client, customer, booking_id, later_batch.id)
    assert response.status_code == 409

    history = await client.get(f"/api/v1/reschedules/booking/{booking_id}", headers=auth_headers_for(customer))
    assert history.json() == []


@pytest.mark.asyncio
async def test_review_requires_admin(client: AsyncClient, customer, operator, booking_id, later_batch):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]

    for user in (customer, operator):
        response = await client.put(
            f"/api/v1/reschedules/{reschedule_id}/review",
            json={"decision": "approved"},
            headers=auth_headers_for(user),
        )
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_approve_moves_booking(
    client: AsyncClient, db_session, customer, admin, batch_slot, booking_id, later_batch
):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]

    response = await client.put(
        f"/api/v1/reschedules/{reschedule_id}/review",
        json={"decision": "approved", "adminNotes": "Fine"},
        headers=auth_headers_for(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["isProcessed"] is True
    assert (await inventory_service.get_slot(db_session, batch_slot.id)).available_count == 3
    assert (await inventory_service.get_slot(db_session, later_batch.id)).available_count == 1

    bookings = await client.get(f"/api/v1/bookings/user/{customer.id}", headers=auth_headers_for(customer))
    moved = bookings.json()[0]
    assert moved["slotId"] == later_batch.id
    assert moved["startDate"] == "2026-12-10"


@pytest.mark.asyncio
async def test_charge_and_pay(client: AsyncClient, db_session, customer, admin, batch_slot, booking_id, later_batch):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]

    reviewed = await client.put(
        f"/api/v1/reschedules/{reschedule_id}/review",
        json={"decision": "approved_with_charge", "rescheduleFeeAmount": 50},
        headers=auth_headers_for(admin),
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["rescheduleFeeAmount"] == 50.0
    assert reviewed.json()["isPaymentRequired"] is True
    assert reviewed.json()["isProcessed"] is False

    by_admin = await client.post(
        f"/api/v1/reschedules/{reschedule_id}/pay",
        json={"transactionId": "TXN-9"},
        headers=auth_headers_for(admin),
    )
    assert by_admin.status_code == 403

    paid = await client.post(
        f"/api/v1/reschedules/{reschedule_id}/pay",
        json={"transactionId": "TXN-9", "paymentMethod": "upi"},
        headers=auth_headers_for(customer),
    )
    assert paid.status_code == 200
    assert paid.json()["isProcessed"] is True
    assert paid.json()["paymentReference"] == "TXN-9"
    assert "Payment completed: TXN-9" in paid.json()["adminNotes"]
    assert (await inventory_service.get_slot(db_session, batch_slot.id)).available_count == 3
    assert (await inventory_service.get_slot(db_session, later_batch.id)).available_count == 1

    again = await client.post(
        f"/api/v1/reschedules/{reschedule_id}/pay",
        json={"transactionId": "TXN-10"},
        headers=auth_headers_for(customer),
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_charge_without_fee(client: AsyncClient, customer, admin, booking_id, later_batch):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]

    response = await client.put(
        f"/api/v1/reschedules/{reschedule_id}/review",
        json={"decision": "approved_with_charge"},
        headers=auth_headers_for(admin),
    )
    assert response.status_code == 400
    assert response.json()["fields"] == ["rescheduleFeeAmount"]


@pytest.mark.asyncio
async def test_reject_then_review_again(client: AsyncClient, customer, admin, booking_id, later_batch):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]
    url = f"/api/v1/reschedules/{reschedule_id}/review"

    rejected = await client.put(url, json={"decision": "rejected"}, headers=auth_headers_for(admin))
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    again = await client.put(url, json={"decision": "approved"}, headers=auth_headers_for(admin))
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_pending_queue_is_admin_only(client: AsyncClient, customer, admin, booking_id, later_batch):
    await _initiate(client, customer, booking_id, later_batch.id)

    response = await client.get("/api/v1/reschedules/pending", headers=auth_headers_for(admin))
    assert response.status_code == 200
    assert len(response.json()) == 1

    forbidden = await client.get("/api/v1/reschedules/pending", headers=auth_headers_for(customer))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_get_reschedule_access(
    client: AsyncClient, customer, other_customer, operator, booking_id, later_batch
):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]
    url = f"/api/v1/reschedules/{reschedule_id}"

    assert (await client.get(url, headers=auth_headers_for(customer))).status_code == 200
    assert (await client.get(url, headers=auth_headers_for(operator))).status_code == 200
    assert (await client.get(url, headers=auth_headers_for(other_customer))).status_code == 403
    assert (await client.get("/api/v1/reschedules/9999", headers=auth_headers_for(customer))).status_code == 404


@pytest.mark.asyncio
async def test_cancel_reschedule(client: AsyncClient, customer, other_customer, booking_id, later_batch):
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]
    url = f"/api/v1/reschedules/{reschedule_id}/cancel"

    assert (await client.post(url, headers=auth_headers_for(other_customer))).status_code == 403

    response = await client.post(url, headers=auth_headers_for(customer))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = await client.post(url, headers=auth_headers_for(customer))
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_transition"


@pytest.mark.asyncio
async def test_lists_dropped_after_move_commits(
    client: AsyncClient, session_factory, monkeypatch, customer, admin, booking_id, later_batch
):
    seen = []

    async def record_committed_slot(customer_id, operator_id):
        async with session_factory() as session:
            seen.append(await session.scalar(select(Booking.listing_slot_id).where(Booking.id == booking_id)))

    monkeypatch.setattr(reschedules_routes, "invalidate_booking_lists", record_committed_slot)
    reschedule_id = (await _initiate(client, customer, booking_id, later_batch.id)).json()["id"]

    response = await client.put(
        f"/api/v1/reschedules/{reschedule_id}/review",
        json={"decision": "approved"},
        headers=auth_headers_for(admin),
    )

    assert response.status_code == 200
    assert seen == [later_batch.id]
