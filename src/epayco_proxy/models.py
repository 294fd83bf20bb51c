from typing import Any

from pydantic import BaseModel


class CreateSessionRequest(BaseModel):
    name: str
    amount: int | float | str
    currency: str
    description: str


class CacheSeedRequest(BaseModel):
    reference: str | None = None
    data: dict[str, Any] | None = None


class ConfirmationResponse(BaseModel):
    success: bool = True
    message: str = "Confirmation received"


class WebhookListResponse(BaseModel):
    success: bool = True
    total: int
    webhooks: list[dict[str, Any]]


class TransactionResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]
    source: str


class TransactionNotFoundResponse(BaseModel):
    success: bool = False
    error: str = "Transaction not found"
    reference: str
    message: str = "The transaction may still be pending processing"


class CachedTransaction(BaseModel):
    reference: str
    data: dict[str, Any]


class CacheListResponse(BaseModel):
    success: bool = True
    count: int
    transactions: list[CachedTransaction]
