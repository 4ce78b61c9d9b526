"""
Locust Load Test Suite

Seed first (prints user ids, tokens and LOAD_SLOT_ID):
  cd backend && python -m scripts.seed_demo_data

Run scenarios:
  LOAD_SLOT_ID=1 locust -f locustfile.py --tags concurrency  # Test overselling
  locust -f locustfile.py --tags throughput                  # Test cache
  locust -f locustfile.py --tags edge                        # Test bad input
  locust -f locustfile.py                                    # All tests

Tokens are minted locally with the app's SECRET_KEY, so run from backend/
with the same environment as the API.
"""

import os
import random

from locust import HttpUser, task, between, tag, events

from app.core.security import create_access_token

CUSTOMER_IDS = [int(i) for i in os.getenv("LOAD_CUSTOMER_IDS", "3,4,5,6,7").split(",")]
OPERATOR_ID = int(os.getenv("LOAD_OPERATOR_ID", "2"))
SLOT_ID = int(os.getenv("LOAD_SLOT_ID", "1"))
DATE_RANGE_ID = int(os.getenv("LOAD_DATE_RANGE_ID", "1"))


def headers_for(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Target slot {SLOT_ID}, date range {DATE_RANGE_ID}, customers {CUSTOMER_IDS}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many customers -> one 10-place batch

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(participant_count) FROM bookings
       WHERE listing_slot_id = X AND status = 'CONFIRMED';
    Should be <= total_capacity, and equal total_capacity - available_count.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = headers_for(random.choice(CUSTOMER_IDS))

    @tag("concurrency")
    @task
    def book_last_places(self):
        """All users fight for the same places."""
        with self.client.post(
            "/api/v1/bookings",
            json={"slotId": SLOT_ID, "participantCount": 1},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings [batch]",
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: sold out, or a retryable reference collision
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - booking list cache

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. With REDIS_ENABLED=false, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.customer_id = random.choice(CUSTOMER_IDS)
        self.headers = headers_for(self.customer_id)

    @tag("throughput", "read")
    @task(10)
    def list_my_bookings(self):
        self.client.get(
            f"/api/v1/bookings/user/{self.customer_id}",
            headers=self.headers,
            name="/api/v1/bookings/user/{id} [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def operator_bookings(self):
        self.client.get(
            f"/api/v1/bookings/operator/{OPERATOR_ID}",
            headers=headers_for(OPERATOR_ID),
            name="/api/v1/bookings/operator/{id} [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def rental_calendar(self):
        self.client.get(
            f"/api/v1/inventory/date-ranges/{DATE_RANGE_ID}/calendar",
            headers=self.headers,
            name="/api/v1/inventory/date-ranges/{id}/calendar",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = headers_for(random.choice(CUSTOMER_IDS))

    def _expect(self, allowed, **kwargs):
        with self.client.post("/api/v1/bookings", catch_response=True, **kwargs) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_slot(self):
        self._expect((404,), json={"slotId": 999999, "participantCount": 1}, headers=self.headers)

    @tag("edge")
    @task
    def zero_participants(self):
        self._expect((400,), json={"slotId": SLOT_ID, "participantCount": 0}, headers=self.headers)

    @tag("edge")
    @task
    def missing_fields(self):
        self._expect((400,), json={}, headers=self.headers)

    @tag("edge")
    @task
    def both_targets(self):
        self._expect(
            (400,),
            json={"slotId": SLOT_ID, "dateRangeId": DATE_RANGE_ID, "participantCount": 1},
            headers=self.headers,
        )

    @tag("edge")
    @task
    def huge_party(self):
        self._expect((409,), json={"slotId": SLOT_ID, "participantCount": 999999}, headers=self.headers)

    @tag("edge")
    @task
    def rental_outside_window(self):
        self._expect(
            (400,),
            json={
                "dateRangeId": DATE_RANGE_ID,
                "participantCount": 1,
                "startDate": "2000-01-01",
                "endDate": "2000-01-02",
            },
            headers=self.headers,
        )

    @tag("edge")
    @task
    def malformed_json(self):
        self._expect((400,), data="not json at all", headers=self.headers)

    @tag("edge")
    @task
    def missing_auth(self):
        self._expect((401,), json={"slotId": SLOT_ID, "participantCount": 1})


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly reading own bookings and calendars, some bookings, rare cancels.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.customer_id = random.choice(CUSTOMER_IDS)
        self.headers = headers_for(self.customer_id)
        self.booking_ids = []

    @task(50)
    def browse_bookings(self):
        self.client.get(
            f"/api/v1/bookings/user/{self.customer_id}",
            headers=self.headers,
            name="/api/v1/bookings/user/{id}",
        )

    @task(20)
    def view_calendar(self):
        self.client.get(
            f"/api/v1/inventory/date-ranges/{DATE_RANGE_ID}/calendar",
            headers=self.headers,
            name="/api/v1/inventory/date-ranges/{id}/calendar",
        )

    @task(10)
    def book_batch(self):
        resp = self.client.post(
            "/api/v1/bookings",
            json={"slotId": SLOT_ID, "participantCount": random.randint(1, 3)},
            headers=self.headers,
            name="/api/v1/bookings [batch]",
        )
        if resp.status_code == 201:
            self.booking_ids.append(resp.json()["booking"]["id"])

    @task(3)
    def cancel_booking(self):
        if self.booking_ids:
            self.client.post(
                f"/api/v1/bookings/{self.booking_ids.pop()}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )
