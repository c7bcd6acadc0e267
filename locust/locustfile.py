"""
Locust Load Test Suite

Tokens are minted locally with the service's SECRET_KEY, so the target must
share it. The trip and its operator come from the environment:

  LOCUST_TRIP_ID=1 LOCUST_OPERATOR_ID=operator-1 locust -f locust/locustfile.py

Run scenarios:
  locust -f locustfile.py --tags seats       # Same seats, many travelers
  locust -f locustfile.py --tags accept      # Operator accepting under load
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests
"""

import os
import random
import uuid
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

from tripshare.core.security import create_access_token

TRIP_ID = int(os.environ.get("LOCUST_TRIP_ID", "1"))
OPERATOR_ID = os.environ.get("LOCUST_OPERATOR_ID", "operator-1")

# Small pool so travelers collide on the same labels
CONTESTED_SEATS = [f"{row}{n}" for row in "AB" for n in range(1, 6)]

PENDING_BOOKING_IDS: list[int] = []


def traveler_headers() -> dict:
    token = create_access_token(data={"sub": f"load-{uuid.uuid4().hex[:12]}"})
    return {"Authorization": f"Bearer {token}"}


def booking_body(seat_labels=None, seat_count=None) -> dict:
    seat_labels = seat_labels or []
    return {
        "trip_id": TRIP_ID,
        "seat_count": seat_count if seat_count is not None else max(len(seat_labels), 1),
        "seat_labels": seat_labels,
        "date": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        "phone": f"010{random.randint(10000000, 99999999)}",
        "first_name": "Load",
        "last_name": "Test",
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Target trip {TRIP_ID}, operator {OPERATOR_ID}")
    print(f"Contested seats: {', '.join(CONTESTED_SEATS)}")
    print("=" * 60)


class SeatContentionUser(HttpUser):
    """
    TEST 1: Many travelers, ten seat labels

    Run: locust -f locustfile.py --tags seats -u 100 -r 50 --run-time 30s

    After test, verify no label was handed out twice:
      SELECT seat_label, COUNT(*) FROM confirmed_seats
      WHERE trip_id = X GROUP BY seat_label HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = traveler_headers()

    @tag("seats")
    @task
    def request_contested_seat(self):
        seats = random.sample(CONTESTED_SEATS, k=random.randint(1, 2))
        with self.client.post(
            "/api/v1/bookings",
            json=booking_body(seats),
            headers=self.headers,
            name="/api/v1/bookings [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                PENDING_BOOKING_IDS.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 400 and resp.json().get("error") in ("SeatConflict", "ValidationError"):
                resp.success()  # Expected: seat taken or already booked this trip
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("seats", "read")
    @task(3)
    def view_seat_map(self):
        self.client.get(f"/api/v1/trips/{TRIP_ID}/seats", headers=self.headers,
                        name="/api/v1/trips/{id}/seats")


class OperatorUser(HttpUser):
    """
    TEST 2: Operator accepting and cancelling while travelers keep booking

    Run: locust -f locustfile.py --tags accept -u 5 -r 5 --run-time 60s
    """
    wait_time = between(0.2, 0.5)

    def on_start(self):
        token = create_access_token(data={"sub": OPERATOR_ID})
        self.headers = {"Authorization": f"Bearer {token}"}

    @tag("accept")
    @task(5)
    def accept_pending(self):
        if not PENDING_BOOKING_IDS:
            return
        booking_id = random.choice(PENDING_BOOKING_IDS)
        with self.client.post(
            f"/api/v1/bookings/{booking_id}/accept",
            headers=self.headers,
            name="/api/v1/bookings/{id}/accept",
            catch_response=True,
        ) as resp:
            # 400: already cancelled/rejected or a seat got confirmed elsewhere
            if resp.status_code in (200, 400):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("accept")
    @task(1)
    def cancel_accepted(self):
        if not PENDING_BOOKING_IDS:
            return
        booking_id = PENDING_BOOKING_IDS.pop(random.randrange(len(PENDING_BOOKING_IDS)))
        with self.client.post(
            f"/api/v1/bookings/{booking_id}/cancel-by-company",
            json={"reason": "load test"},
            headers=self.headers,
            name="/api/v1/bookings/{id}/cancel-by-company",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("accept", "read")
    @task(2)
    def analytics(self):
        self.client.get("/api/v1/bookings/analytics", headers=self.headers)

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
        self.headers = traveler_headers()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_trip(self):
        body = booking_body()
        body["trip_id"] = 999999
        with self.client.post("/api/v1/bookings", json=body, headers=self.headers,
                              catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post("/api/v1/bookings", json=booking_body(seat_count=0),
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def duplicate_labels(self):
        with self.client.post("/api/v1/bookings", json=booking_body(["A1", "A1"]),
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def bad_phone(self):
        body = booking_body()
        body["phone"] = "12345"
        with self.client.post("/api/v1/bookings", json=body, headers=self.headers,
                              catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings", data="not json at all",
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings", json=booking_body(),
                              catch_response=True) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def foreign_accept(self):
        """Travelers are not operators."""
        with self.client.post("/api/v1/bookings/1/accept", headers=self.headers,
                              catch_response=True) as resp:
            self._expect(resp, [403, 404])
