"""
POS Core Load Testing with Locust

Seed the demo tenant first (flask system seed-demo), start the server, then:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 20 --spawn-rate 5 --run-time 60s --headless

Every user works the same register, so the run doubles as a contention
check: get-or-create must keep returning one session, and sales must stop
with 409 when stock runs out instead of going negative.

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1% (409 insufficient stock counts as expected)
"""

import os
import time
import random
from typing import Optional, Dict, List

from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

DEMO_VENDOR = os.environ.get("POS_VENDOR", "demo")
DEMO_PASSWORD = os.environ.get("POS_PASSWORD", "Password123!")

TEST_USERS = [
    {"username": "cashier", "role": "cashier"},
    {"username": "manager", "role": "manager"},
]


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.session_ids: set = set()

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p50_idx = int(count * 0.50)
            p95_idx = int(count * 0.95)

            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p50_ms": times[p50_idx] if p50_idx < count else times[-1],
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class POSUser(HttpUser):
    """
    Base POS user: logs in, finds the first register at its location and
    the stocked inventory rows.
    """
    wait_time = between(0.2, 1)
    abstract = True

    token: Optional[str] = None
    location_id: Optional[int] = None
    register_id: Optional[int] = None
    inventory_ids: List[int] = []

    def on_start(self):
        self.login()
        self.discover()

    def login(self):
        creds = random.choice(TEST_USERS)
        response = self.client.post(
            "/api/auth/login",
            json={"username": creds["username"], "password": DEMO_PASSWORD, "vendor": DEMO_VENDOR},
            name="auth/login"
        )
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("token")
            self.location_id = data.get("location_id")

    def discover(self):
        response = self.client.get("/api/registers", headers=self.get_headers(), name="registers/list")
        registers = response.json().get("registers", []) if response.status_code == 200 else []
        if registers:
            self.register_id = registers[0]["id"]

        response = self.client.get("/api/inventory", headers=self.get_headers(), name="inventory/list")
        rows = response.json().get("inventory", []) if response.status_code == 200 else []
        self.inventory_ids = [row["id"] for row in rows]

    def get_headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def open_session(self) -> Optional[int]:
        if self.register_id is None:
            return None
        start = time.time()
        response = self.client.post(
            "/api/sessions/get-or-create",
            json={"register_id": self.register_id, "location_id": self.location_id},
            headers=self.get_headers(),
            name="sessions/get-or-create"
        )
        ok = response.status_code == 200
        metrics.record("sessions/get-or-create", (time.time() - start) * 1000, ok)
        if not ok:
            return None
        session_id = response.json()["session"]["id"]
        metrics.session_ids.add(session_id)
        return session_id


class CashierUser(POSUser):
    """Rings up sales and bumps counters on the shared register."""
    weight = 4

    @task(5)
    def ring_up_sale(self):
        session_id = self.open_session()
        if session_id is None or not self.inventory_ids:
            return

        start = time.time()
        with self.client.post(
            "/api/sales",
            json={
                "session_id": session_id,
                "items": [{
                    "inventory_id": random.choice(self.inventory_ids),
                    "quantity": random.randint(1, 2),
                    "unit_price": 10.00,
                }],
                "payment_method": random.choice(["cash", "card"]),
            },
            headers=self.get_headers(),
            name="sales/complete",
            catch_response=True,
        ) as response:
            # Running out of stock is the correct answer under load
            ok = response.status_code in (201, 409)
            if ok:
                response.success()
            metrics.record("sales/complete", (time.time() - start) * 1000, ok)

    @task(2)
    def increment_counter(self):
        session_id = self.open_session()
        if session_id is None:
            return

        start = time.time()
        response = self.client.post(
            f"/api/sessions/{session_id}/increment",
            json={"counter_name": "walk_in_sales", "amount": round(random.uniform(5, 50), 2)},
            headers=self.get_headers(),
            name="sessions/increment"
        )
        metrics.record("sessions/increment", (time.time() - start) * 1000, response.status_code in (200, 409))

    @task(1)
    def session_summary(self):
        session_id = self.open_session()
        if session_id is None:
            return

        start = time.time()
        response = self.client.get(
            f"/api/sessions/{session_id}/summary",
            headers=self.get_headers(),
            name="sessions/summary"
        )
        metrics.record("sessions/summary", (time.time() - start) * 1000, response.status_code == 200)


class StockUser(POSUser):
    """Browses the movement ledger and adds stock back."""
    weight = 1

    @task(3)
    def list_movements(self):
        start = time.time()
        response = self.client.get(
            "/api/stock-movements",
            params={"limit": 50},
            headers=self.get_headers(),
            name="stock-movements/list"
        )
        metrics.record("stock-movements/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def found_stock(self):
        if not self.inventory_ids:
            return
        inventory_id = random.choice(self.inventory_ids)
        record = self.client.get(f"/api/inventory/{inventory_id}", headers=self.get_headers(), name="inventory/get")
        if record.status_code != 200:
            return

        start = time.time()
        response = self.client.post(
            "/api/stock-movements",
            json={
                "inventory_id": inventory_id,
                "product_id": record.json()["inventory"]["product_id"],
                "movement_type": "found",
                "quantity": random.randint(1, 5),
                "reason": "Load test recount",
            },
            headers=self.get_headers(),
            name="stock-movements/create"
        )
        metrics.record("stock-movements/create", (time.time() - start) * 1000, response.status_code == 201)

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = True

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 500 if name.endswith(("list", "summary", "get", "health")) else 1000
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)

    # Each process only sees its own users; run single-process for this check
    if len(metrics.session_ids) > 1:
        all_pass = False
        print(f"\n[FAIL] Register had {len(metrics.session_ids)} different open sessions: {sorted(metrics.session_ids)}")

    if all_pass:
        print("\n[PASS] All endpoints within thresholds")
    else:
        print("\n[FAIL] Some checks failed")
        print("  - Reads (list/get): P95 < 500ms, Error rate < 1%")
        print("  - Writes: P95 < 1000ms, Error rate < 1%")

    print("=" * 80)
