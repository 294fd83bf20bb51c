import math
from typing import Any

from epayco_proxy.errors import InvalidAmountError
from epayco_proxy.gateway import CHECKOUT_VERSION, session_defaults
from epayco_proxy.models import CreateSessionRequest

COUNTRY = "CO"
LANG = "ES"
FALLBACK_CLIENT_IP = "201.245.254.45"
IPV4_MAPPED_PREFIX = "::ffff:"


def parse_amount(amount: int | float | str) -> int | float:
    """
    Accept a number or a numeric string; reject anything not > 0.

    Whole amounts come back as int so ePayco receives ``10000``, not ``10000.0``.
    """
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidAmountError("Amount must be a valid number greater than 0") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidAmountError("Amount must be a valid number greater than 0")
    return int(value) if value.is_integer() else value


def normalize_client_ip(host: str | None) -> str:
    if not host:
        return FALLBACK_CLIENT_IP
    return host.removeprefix(IPV4_MAPPED_PREFIX)


def build_session_data(
    request: CreateSessionRequest,
    client_ip: str | None,
    confirmation_url: str,
    response_url: str,
) -> dict[str, Any]:
    return {
        "checkout_version": CHECKOUT_VERSION,
        "name": request.name,
        "description": request.description,
        "currency": request.currency.upper(),
        "amount": parse_amount(request.amount),
        "country": COUNTRY,
        "lang": LANG,
        "ip": normalize_client_ip(client_ip),
        "test": True,
        "response": response_url,
        "confirmation": confirmation_url,
        **session_defaults(),
    }
