"""
Locust Load Test Suite

Tokens are minted locally with the API's SECRET_KEY (the identity provider is
not part of this service), so run with the same environment as the server.
Each simulated user sends its own X-Forwarded-For address so the per-client
rate limiter treats them as separate clients.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # 100 users race for 10 places
  locust -f locustfile.py --tags read         # Browsing throughput
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import random
import uuid
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

from eventdesk.core.security import create_access_token

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
STAFF_ID = "load_staff"


def staff_headers():
    return {"Authorization": f"Bearer {create_access_token(STAFF_ID, role='staff', expires_minutes=240)}"}


def random_ip():
    return f"10.{random.randint(0, 255)}.{random.randint(0, 255)}.{random.randint(1, 254)}"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: concurrency event is created by the first user to start")
    print("=" * 60)


class ApprovedParticipant(HttpUser):
    """Signs in, gets approved by staff, then acts as a participant."""
    abstract = True

    def on_start(self):
        self.user_id = f"load_{uuid.uuid4().hex[:12]}"
        self.ip = random_ip()
        self.headers = {
            "Authorization": f"Bearer {create_access_token(self.user_id)}",
            "X-Forwarded-For": self.ip,
        }
        self.email = f"{self.user_id}@test.com"

        self.client.post("/api/v1/users", json={"name": self.user_id, "email": self.email},
                         headers=self.headers)
        self.client.put(f"/api/v1/users/{self.user_id}",
                        json={"status": "active", "membership_type": "three_plus_weekly"},
                        headers={**staff_headers(), "X-Forwarded-For": random_ip()},
                        name="/api/v1/users/{id}")

    def registration(self, event_id):
        return {
            "event_id": event_id,
            "user_name": self.user_id,
            "user_email": self.email,
            "registration_type": "participant",
        }


class ConcurrencyUser(ApprovedParticipant):
    """
    TEST 1: Concurrency - 100 users -> 10 places

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After the test, GET /api/v1/events/{id}: current_signups must be <= 10 and
    equal the number of registered rows for the event.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        super().on_start()
        global CONCURRENCY_EVENT_ID
        if not CONCURRENCY_EVENT_ID:
            resp = self.client.post(
                "/api/v1/events",
                json={
                    "title": "Concurrency Test Event",
                    "description": "10 places only",
                    "date": (date.today() + timedelta(days=30)).isoformat(),
                    "start_time": "10:00",
                    "end_time": "12:00",
                    "location": "Test",
                    "capacity": 10,
                },
                headers={**staff_headers(), "X-Forwarded-For": random_ip()},
            )
            if resp.status_code == 201:
                CONCURRENCY_EVENT_ID = resp.json()["events"][0]["id"]
                print(f"\nCreated event {CONCURRENCY_EVENT_ID} with 10 places\n")

    @tag("concurrency")
    @task
    def register_for_limited_event(self):
        """All users fight for the same 10 places."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post("/api/v1/registrations",
                              json=self.registration(CONCURRENCY_EVENT_ID),
                              headers=self.headers,
                              catch_response=True) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400 and resp.json()["error"]["kind"] in ("EventFull", "DuplicateRegistration"):
                resp.success()  # Expected: full, or already in
            elif resp.status_code == 429:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - event browsing

    Run: locust -f locustfile.py --tags read -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = {"X-Forwarded-For": random_ip()}

    @tag("read")
    @task(10)
    def list_events(self):
        resp = self.client.get("/api/v1/events?page=1&page_size=50", headers=self.headers,
                               name="/api/v1/events")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", headers=self.headers,
                            name="/api/v1/events/{id}")

    @tag("read")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(ApprovedParticipant):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/registrations", json=self.registration("evt_missing"),
                              headers=self.headers, catch_response=True) as resp:
            self.expect(resp, (404, 429))

    @tag("edge")
    @task
    def bad_email(self):
        payload = {**self.registration("evt_missing"), "user_email": "not-an-email"}
        with self.client.post("/api/v1/registrations", json=payload,
                              headers=self.headers, catch_response=True) as resp:
            self.expect(resp, (400, 429))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/registrations", data="not json at all",
                              headers={**self.headers, "Content-Type": "application/json"},
                              catch_response=True) as resp:
            self.expect(resp, (400, 429))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/registrations", json=self.registration("evt_missing"),
                              headers={"X-Forwarded-For": self.ip}, catch_response=True) as resp:
            self.expect(resp, (401, 429))

    @tag("edge")
    @task
    def participant_creating_event(self):
        with self.client.post("/api/v1/events",
                              json={"title": "Nope", "date": date.today().isoformat(), "start_time": "09:00"},
                              headers=self.headers, catch_response=True) as resp:
            self.expect(resp, (403, 429))
