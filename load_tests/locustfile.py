"""
Locust load tests for the ePayco checkout proxy.

Only endpoints that do not reach ePayco are exercised: confirmation
callbacks, webhook inspection, health and transaction lookups served from a
cache seeded in on_start.

Run against a local server (tunnel off, so nothing is exposed publicly):
    TUNNEL_ENABLED=false uv run uvicorn epayco_proxy.app:create_app --factory --port 3001

Headless benchmark (60 s, 50 users, ramp 10/s):
    uv run locust -f load_tests/locustfile.py --headless \
        -u 50 -r 10 --run-time 60s --host http://localhost:3001

Interactive web UI:
    uv run locust -f load_tests/locustfile.py --host http://localhost:3001
"""

import random
import uuid

from locust import HttpUser, between, task


class EpaycoConfirmationUser(HttpUser):
    """Simulates ePayco posting form-encoded payment confirmations."""

    wait_time = between(0.05, 0.2)
    weight = 3

    @task
    def post_confirmation(self) -> None:
        ref = str(uuid.uuid4())
        self.client.post(
            "/api/checkout/confirmation",
            data={
                "x_ref_payco": ref,
                "x_transaction_id": str(random.randint(10**8, 10**9)),
                "x_amount": "10000",
                "x_currency_code": "COP",
                "x_transaction_state": random.choice(["Aceptada", "Rechazada", "Pendiente"]),
            },
        )


class TransactionStatusUser(HttpUser):
    """Simulates the result page polling a transaction the proxy already knows."""

    wait_time = between(0.1, 0.5)
    weight = 2

    def on_start(self) -> None:
        self._reference = f"LOAD-{uuid.uuid4()}"
        self.client.post(
            "/api/transaction/cache",
            json={"reference": self._reference, "data": {"reference": self._reference, "x_transaction_state": "Aceptada"}},
        )

    @task(3)
    def get_transaction(self) -> None:
        self.client.get(f"/api/transaction/{self._reference}", name="/api/transaction/[reference]")

    @task(1)
    def list_webhooks(self) -> None:
        self.client.get("/api/checkout/webhooks")

    @task(1)
    def get_health(self) -> None:
        self.client.get("/health")
