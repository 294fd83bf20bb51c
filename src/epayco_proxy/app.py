import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from epayco_proxy.config import Settings
from epayco_proxy.dependencies import get_settings
from epayco_proxy.exception_handlers import register_exception_handlers
from epayco_proxy.gateway import EpaycoClient
from epayco_proxy.logging_setup import configure_logging
from epayco_proxy.router import router
from epayco_proxy.transactions import TransactionCache
from epayco_proxy.tunnel import TunnelManager, TunnelState, establish_tunnel
from epayco_proxy.webhooks import WebhookStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, settings.log_format)
        app.state.ready = False
        app.state.webhooks = WebhookStore(capacity=settings.webhook_capacity)
        app.state.tunnel = TunnelState()
        app.state.transactions = TransactionCache()
        http_client = httpx.AsyncClient(timeout=settings.http_timeout)
        app.state.gateway = EpaycoClient(settings, http_client)
        tunnel_manager = TunnelManager(
            app.state.tunnel,
            settings.tunnel_command,
            timeout=settings.tunnel_timeout,
            url_pattern=settings.tunnel_url_pattern,
        )
        tasks = []
        if settings.tunnel_enabled:
            tasks.append(asyncio.create_task(establish_tunnel(tunnel_manager, settings.port)))
        logger.info("ePayco checkout proxy listening on port %d (environment=%s)", settings.port, settings.environment)
        settings.warn_if_unconfigured()
        app.state.ready = True
        yield
        for task in tasks:
            task.cancel()
        await tunnel_manager.stop()
        await http_client.aclose()

    app = FastAPI(
        title="ePayco Checkout Proxy",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    register_exception_handlers(app, settings)
    app.include_router(router)
    return app
