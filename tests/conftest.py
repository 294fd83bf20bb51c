from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from epayco_proxy.app import create_app
from epayco_proxy.config import Settings
from epayco_proxy.dependencies import (
    get_gateway,
    get_transaction_cache,
    get_tunnel_state,
    get_webhook_store,
)
from epayco_proxy.gateway import EpaycoClient
from epayco_proxy.transactions import TransactionCache
from epayco_proxy.tunnel import TunnelState
from epayco_proxy.webhooks import WebhookStore

SESSION_OK = {
    "success": True,
    "titleResponse": "Session created successfully",
    "textResponse": "Session created successfully",
    "lastAction": "create session",
    "data": {
        "sessionId": "68eefbc11d65f1d39c0f6da7",
        "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.session_token",
    },
}

SESSION_INVALID = {
    "success": False,
    "titleResponse": "Error",
    "textResponse": "Some fields are required, please correct the errors and try again",
    "lastAction": "validation data",
    "data": {
        "totalErrors": 2,
        "errors": [
            {"codError": 500, "errorMessage": "field ip is required"},
            {"codError": 500, "errorMessage": "field amount is invalid"},
        ],
    },
}


class FakeEpayco:
    """httpx.MockTransport handler that records requests and replays canned ePayco answers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.login: tuple[int, Any] = (200, {"token": "test-token"})
        self.session: tuple[int, Any] = (200, SESSION_OK)
        self.transactions: dict[str, tuple[int, Any]] = {}
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        path = request.url.path
        if path == "/login":
            status, body = self.login
        elif path == "/payment/session/create":
            status, body = self.session
        else:
            status, body = self.transactions.get(path.rsplit("/", 1)[-1], (404, "Transaction not found"))
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_settings(**overrides: Any) -> Settings:
    values = {
        "epayco_public_key": "test_public_key",
        "epayco_private_key": "test_private_key",
        "response_url": "http://localhost:3002/transaction-result.html",
        "tunnel_enabled": False,
        **overrides,
    }
    return Settings(_env_file=None, **values)


def build_app(
    settings: Settings,
    gateway: EpaycoClient,
    webhooks: WebhookStore,
    tunnel: TunnelState,
    transactions: TransactionCache,
) -> FastAPI:
    app = create_app(settings)
    app.state.ready = True
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_webhook_store] = lambda: webhooks
    app.dependency_overrides[get_tunnel_state] = lambda: tunnel
    app.dependency_overrides[get_transaction_cache] = lambda: transactions
    return app


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_epayco() -> FakeEpayco:
    return FakeEpayco()


@pytest.fixture
async def gateway(settings: Settings, fake_epayco: FakeEpayco) -> EpaycoClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_epayco))
    yield EpaycoClient(settings, http_client)
    await http_client.aclose()


@pytest.fixture
def webhook_store() -> WebhookStore:
    return WebhookStore(capacity=100)


@pytest.fixture
def tunnel_state() -> TunnelState:
    return TunnelState()


@pytest.fixture
def transaction_cache() -> TransactionCache:
    return TransactionCache()


@pytest.fixture
async def client(
    settings: Settings,
    gateway: EpaycoClient,
    webhook_store: WebhookStore,
    tunnel_state: TunnelState,
    transaction_cache: TransactionCache,
) -> AsyncClient:
    app = build_app(settings, gateway, webhook_store, tunnel_state, transaction_cache)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
