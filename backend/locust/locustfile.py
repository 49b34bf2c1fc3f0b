"""
Locust Load Test Suite

Expects the demo data from `python -m facility_access.db.init_db --demo`
(token POOL-DEMO-0001 / GYM-DEMO-0001, members 1..500 subscribed).

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test over-admission
  locust -f locustfile.py --tags throughput   # Test catalog cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import date

from locust import HttpUser, task, between, tag

POOL_TOKEN = os.getenv("LOAD_POOL_TOKEN", "POOL-DEMO-0001")
GYM_TOKEN = os.getenv("LOAD_GYM_TOKEN", "GYM-DEMO-0001")
MEMBER_COUNT = int(os.getenv("LOAD_MEMBER_COUNT", "500"))


def random_member():
    return {
        "id": random.randint(1, MEMBER_COUNT),
        "gender": random.choice(["male", "female", None]),
        "tier": random.choice(["student", "student", "faculty", "pg"]),
    }


def expected_denial(resp):
    """Denials carry a reason code; anything else is a real failure."""
    if resp.status_code in (201, 403, 404, 409):
        resp.success()
    else:
        resp.failure(f"Unexpected: {resp.status_code}")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many members scan the same session at once

    Run: locust -f locustfile.py --tags concurrency -u 200 -r 100 --run-time 30s

    After test, verify for today's session:
      SELECT COUNT(*) FROM attendance_records WHERE time_slot_id = X AND session_date = CURRENT_DATE;
    Should be <= the slot capacity and equal to slot_occupancy.admitted
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def scan_pool(self):
        with self.client.post("/api/v1/scan",
            json={"token": POOL_TOKEN, "member": random_member()},
            name="/api/v1/scan [pool]",
            catch_response=True
        ) as resp:
            expected_denial(resp)

    @tag("concurrency")
    @task
    def double_scan(self):
        """The same member scanning twice in a row: second one must be 409."""
        member = random_member()
        for _ in range(2):
            with self.client.post("/api/v1/scan",
                json={"token": GYM_TOKEN, "member": member},
                name="/api/v1/scan [gym double]",
                catch_response=True
            ) as resp:
                expected_denial(resp)


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - catalog cache effectiveness

    Run twice (REDIS_ENABLED=true, then false) and compare P95/P99 of /scan.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(10)
    def availability(self):
        self.client.get("/api/v1/facilities/pool/availability",
            name="/api/v1/facilities/{code}/availability")

    @tag("throughput")
    @task(5)
    def scan(self):
        with self.client.post("/api/v1/scan",
            json={"token": random.choice([POOL_TOKEN, GYM_TOKEN]), "member": random_member()},
            catch_response=True
        ) as resp:
            expected_denial(resp)

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

    @tag("edge")
    @task
    def unknown_token(self):
        with self.client.post("/api/v1/scan",
            json={"token": "NOT-A-TOKEN", "member": random_member()},
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_member(self):
        with self.client.post("/api/v1/scan",
            json={"token": POOL_TOKEN, "member": {"id": -1, "tier": ""}},
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/scan",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def waitlist_unknown_slot(self):
        with self.client.post("/api/v1/waitlist",
            json={"member": random_member(), "slot_id": 999999, "session_date": date.today().isoformat()},
            catch_response=True
        ) as resp:
            if resp.status_code == 409:
                resp.success()
            else:
                resp.failure(f"Expected 409, got {resp.status_code}")
