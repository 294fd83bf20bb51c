from httpx import AsyncClient

from conftest import FakeEpayco


async def test_metrics_endpoint_returns_200(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


async def test_metrics_exposes_webhook_store_size(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert "epayco_webhook_store_size" in response.text


async def test_metrics_exposes_tunnel_status(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert "epayco_tunnel_up" in response.text


async def test_confirmation_increments_received_counter(client: AsyncClient) -> None:
    await client.post("/api/checkout/confirmation", json={"x_ref_payco": "M-1"})
    response = await client.get("/metrics")
    assert 'epayco_webhooks_received_total{method="POST"}' in response.text


async def test_transaction_lookups_are_counted(client: AsyncClient, fake_epayco: FakeEpayco) -> None:
    fake_epayco.transactions["M-REF"] = (200, {"reference": "M-REF"})
    await client.get("/api/transaction/M-REF")
    await client.get("/api/transaction/M-REF")
    await client.get("/api/transaction/M-MISSING")
    response = await client.get("/metrics")
    assert 'epayco_transaction_lookups_total{result="epayco"}' in response.text
    assert 'epayco_transaction_lookups_total{result="cache"}' in response.text
    assert 'epayco_transaction_lookups_total{result="not_found"}' in response.text


async def test_gateway_calls_are_timed(client: AsyncClient) -> None:
    await client.post("/api/auth/login")
    response = await client.get("/metrics")
    assert 'epayco_gateway_request_duration_seconds_count{operation="login"}' in response.text
