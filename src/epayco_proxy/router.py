import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from epayco_proxy.checkout import build_session_data
from epayco_proxy.config import Settings
from epayco_proxy.dependencies import (
    get_app_settings,
    get_gateway,
    get_transaction_cache,
    get_tunnel_state,
    get_webhook_store,
)
from epayco_proxy.errors import RemoteLookupNotFound
from epayco_proxy.gateway import EpaycoClient
from epayco_proxy.metrics import TRANSACTION_LOOKUPS_TOTAL
from epayco_proxy.models import (
    CachedTransaction,
    CacheListResponse,
    CacheSeedRequest,
    ConfirmationResponse,
    CreateSessionRequest,
    TransactionNotFoundResponse,
    TransactionResponse,
    WebhookListResponse,
)
from epayco_proxy.transactions import TransactionCache
from epayco_proxy.tunnel import TunnelState
from epayco_proxy.webhooks import Headers, WebhookStore

logger = logging.getLogger(__name__)
router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@router.get("/health")
async def health(
    settings: Settings = Depends(get_app_settings),
    webhooks: WebhookStore = Depends(get_webhook_store),
    tunnel: TunnelState = Depends(get_tunnel_state),
) -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "tunnelUrl": tunnel.public_url,
        "webhookStats": webhooks.stats(),
        "env": {
            "publicKeyConfigured": settings.public_key_configured,
            "privateKeyConfigured": settings.private_key_configured,
            "responseUrlConfigured": settings.response_url_configured,
        },
    }


@router.get("/ready")
async def ready(request: Request) -> dict:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="Not ready")
    return {"status": "ok"}


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post("/api/auth/login")
async def login(gateway: EpaycoClient = Depends(get_gateway)) -> dict:
    return await gateway.login()


@router.post("/api/checkout/create-session")
async def create_session(
    body: CreateSessionRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    gateway: EpaycoClient = Depends(get_gateway),
    tunnel: TunnelState = Depends(get_tunnel_state),
) -> dict:
    session_data = build_session_data(
        body,
        client_ip=request.client.host if request.client else None,
        confirmation_url=tunnel.confirmation_url(settings.local_base_url),
        response_url=settings.effective_response_url(),
    )
    token = await gateway.authenticate()
    return await gateway.create_session(token, session_data)


@router.api_route("/api/checkout/confirmation", methods=["GET", "POST"])
async def confirmation(
    request: Request,
    webhooks: WebhookStore = Depends(get_webhook_store),
) -> ConfirmationResponse:
    body = await _read_callback_body(request)
    webhooks.add_event(body, _collect_headers(request), request.method)
    return ConfirmationResponse()


@router.get("/api/checkout/webhooks")
async def list_webhooks(webhooks: WebhookStore = Depends(get_webhook_store)) -> WebhookListResponse:
    events = webhooks.list_events()
    return WebhookListResponse(total=len(events), webhooks=[event.to_dict() for event in events])


@router.get("/api/checkout/webhooks/{event_id}")
async def get_webhook(event_id: str, webhooks: WebhookStore = Depends(get_webhook_store)) -> dict:
    event = webhooks.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return {"success": True, "webhook": event.to_dict()}


@router.delete("/api/checkout/webhooks")
async def clear_webhooks(webhooks: WebhookStore = Depends(get_webhook_store)) -> dict:
    webhooks.clear()
    return {"success": True, "message": "Webhooks cleared"}


@router.get("/api/transaction/cache/list")
async def list_cached_transactions(
    cache: TransactionCache = Depends(get_transaction_cache),
) -> CacheListResponse:
    transactions = [CachedTransaction(reference=reference, data=data) for reference, data in cache.items()]
    return CacheListResponse(count=len(transactions), transactions=transactions)


@router.post("/api/transaction/cache")
async def seed_transaction_cache(
    body: CacheSeedRequest,
    cache: TransactionCache = Depends(get_transaction_cache),
) -> dict:
    if not body.reference or body.data is None:
        raise HTTPException(status_code=400, detail="reference and data are required")
    cache.put(body.reference, body.data)
    logger.info("Transaction %s stored in cache manually", body.reference)
    return {"success": True, "message": "Transaction stored in cache", "reference": body.reference}


@router.get("/api/transaction/ref/{reference}")
async def get_transaction_by_ref(
    reference: str,
    cache: TransactionCache = Depends(get_transaction_cache),
    gateway: EpaycoClient = Depends(get_gateway),
) -> Any:
    return await _lookup_transaction(reference, cache, gateway)


@router.get("/api/transaction/{reference}")
async def get_transaction(
    reference: str,
    cache: TransactionCache = Depends(get_transaction_cache),
    gateway: EpaycoClient = Depends(get_gateway),
) -> Any:
    return await _lookup_transaction(reference, cache, gateway)


async def _lookup_transaction(
    reference: str,
    cache: TransactionCache,
    gateway: EpaycoClient,
) -> TransactionResponse | JSONResponse:
    logger.info("Looking up transaction %s", reference)
    try:
        lookup = await cache.lookup(reference, gateway.get_transaction)
    except RemoteLookupNotFound as e:
        # unknown to ePayco usually means not settled yet, not a failure
        TRANSACTION_LOOKUPS_TOTAL.labels(result="not_found").inc()
        logger.info("Transaction %s not found: %s", reference, e.message)
        return JSONResponse(
            status_code=404,
            content=TransactionNotFoundResponse(reference=reference).model_dump(),
        )
    source = "epayco" if lookup.source == "remote" else "cache"
    TRANSACTION_LOOKUPS_TOTAL.labels(result=source).inc()
    return TransactionResponse(data=lookup.data, source=source)


async def _read_callback_body(request: Request) -> dict[str, Any]:
    """
    Best-effort parse of a confirmation callback.

    ePayco may send form fields, JSON or query parameters. A body that
    cannot be parsed is logged and recorded empty: the provider's call must
    never fail.
    """
    body: dict[str, Any] = dict(request.query_params)
    if request.method == "GET":
        return body
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()
            body.update((key, value) for key, value in form.items() if isinstance(value, str))
        elif await request.body():
            payload = await request.json()
            body.update(payload if isinstance(payload, dict) else {"payload": payload})
    except Exception:
        logger.warning("Could not parse confirmation body content-type=%s", content_type, exc_info=True)
    return body


def _collect_headers(request: Request) -> Headers:
    headers: Headers = {}
    for key in request.headers.keys():
        if key in headers:
            continue
        values = request.headers.getlist(key)
        headers[key] = values[0] if len(values) == 1 else values
    return headers
