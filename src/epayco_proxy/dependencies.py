from functools import lru_cache

from fastapi import Request

from epayco_proxy.config import Settings
from epayco_proxy.gateway import EpaycoClient
from epayco_proxy.transactions import TransactionCache
from epayco_proxy.tunnel import TunnelState
from epayco_proxy.webhooks import WebhookStore


@lru_cache
def get_settings() -> Settings:
    return Settings()


async def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_webhook_store(request: Request) -> WebhookStore:
    return request.app.state.webhooks


async def get_tunnel_state(request: Request) -> TunnelState:
    return request.app.state.tunnel


async def get_transaction_cache(request: Request) -> TransactionCache:
    return request.app.state.transactions


async def get_gateway(request: Request) -> EpaycoClient:
    return request.app.state.gateway
