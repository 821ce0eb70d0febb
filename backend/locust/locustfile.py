"""
Locust Load Test Suite

Bearer tokens come from the identity provider, so they are supplied up front:
  LOAD_TEST_TOKENS="tok1,tok2,..."    controllers (one per simulated user, reused round robin)
  LOAD_TEST_STAFF_TOKEN="tok"         staff token, used to create the test position

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Overlapping booking storm
  locust -f locustfile.py --tags throughput   # Position list cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import os
import random
from datetime import datetime, timedelta, timezone

import httpx
from locust import HttpUser, between, events, tag, task

TOKENS = [t for t in os.environ.get("LOAD_TEST_TOKENS", "").split(",") if t]
STAFF_TOKEN = os.environ.get("LOAD_TEST_STAFF_TOKEN", "")
_token_cycle = itertools.cycle(TOKENS or [""])

STORM_POSITION = "LOAD_APP"
STORM_DATE = (datetime.now(timezone.utc) + timedelta(days=30)).strftime("%Y-%m-%d")
BOOKING_IDS = []


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


def random_slot(step_minutes: int = 30) -> tuple[str, str]:
    """One to three hours, aligned to the half hour, inside the day."""
    duration = random.choice([60, 90, 120, 180])
    start = random.randrange(0, 24 * 60 - duration, step_minutes)
    end = start + duration
    return f"{start // 60:02d}:{start % 60:02d}", f"{end // 60:02d}:{end % 60:02d}"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: create the position everyone fights over."""
    print("\n" + "=" * 60)
    print(f"SETUP: booking storm on {STORM_POSITION} for {STORM_DATE}")
    print("=" * 60)
    if not STAFF_TOKEN or environment.host is None:
        return

    httpx.post(
        f"{environment.host}/api/v1/positions",
        json={"id": STORM_POSITION, "name": "Load Test Approach", "description": "Load test"},
        headers=auth_headers(STAFF_TOKEN),
    )


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many controllers, one position, one day

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no two active bookings overlap:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.position = b.position AND a.date = b.date AND a.id < b.id
       WHERE a.status = 'active' AND b.status = 'active'
         AND a.start_time < b.end_time AND b.start_time < a.end_time;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers(next(_token_cycle))

    @tag("concurrency")
    @task
    def book_overlapping_slot(self):
        """Everyone requests random slots on the same calendar."""
        if not self.headers:
            return

        start, end = random_slot()
        with self.client.post(
            "/api/v1/bookings",
            json={
                "position": STORM_POSITION,
                "date": STORM_DATE,
                "start_time": start,
                "end_time": end,
                "type": "controlling",
            },
            headers=self.headers,
            name="/api/v1/bookings [storm]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                BOOKING_IDS.append(resp.json()["booking"]["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_positions_cached(self):
        self.client.get("/api/v1/positions?active=true", name="/api/v1/positions [cached]")

    @tag("throughput", "read")
    @task(3)
    def list_month(self):
        self.client.get(
            f"/api/v1/bookings?position={STORM_POSITION}&month={STORM_DATE[5:7]}&year={STORM_DATE[:4]}",
            name="/api/v1/bookings?month",
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
        self.headers = auth_headers(next(_token_cycle))

    def _expect(self, expected, json=None, data=None, headers=None):
        with self.client.post(
            "/api/v1/bookings",
            json=json,
            data=data,
            headers=self.headers if headers is None else headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    def _payload(self, **overrides):
        payload = {
            "position": STORM_POSITION,
            "date": STORM_DATE,
            "start_time": "10:00",
            "end_time": "12:00",
            "type": "controlling",
        }
        payload.update(overrides)
        return payload

    @tag("edge")
    @task
    def unknown_position(self):
        self._expect([404], json=self._payload(position="NOWHERE_CTR"))

    @tag("edge")
    @task
    def too_short(self):
        self._expect([400], json=self._payload(start_time="10:00", end_time="10:30"))

    @tag("edge")
    @task
    def reversed_slot(self):
        self._expect([400], json=self._payload(start_time="14:00", end_time="12:00"))

    @tag("edge")
    @task
    def bad_type(self):
        self._expect([400, 422], json=self._payload(type="sightseeing"))

    @tag("edge")
    @task
    def malformed_json(self):
        self._expect([400, 422], data="not json at all")

    @tag("edge")
    @task
    def missing_auth(self):
        self._expect([401], json=self._payload(), headers={})
