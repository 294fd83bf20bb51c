"""
ePayco API client.

Wraps the three remote operations the proxy needs: login (token
acquisition), checkout session creation and transaction lookup by
reference. Response bodies are provider-defined JSON and are passed through
as plain dicts.
"""

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from epayco_proxy.config import Settings
from epayco_proxy.errors import (
    ConfigurationError,
    GatewayProtocolError,
    RemoteAuthError,
    RemoteLookupNotFound,
    RemoteValidationError,
)
from epayco_proxy.metrics import GATEWAY_REQUEST_DURATION

logger = logging.getLogger(__name__)

CHECKOUT_VERSION = "2"

def session_defaults() -> dict[str, Any]:
    """Session fields filled in only when the caller did not set them."""
    return {
        "method": "POST",
        "dues": 1,
        "noRedirectOnClose": True,
        "forceResponse": False,
        "uniqueTransactionPerBill": False,
        "autoClick": False,
        "methodsDisable": [],
        "config": {},
    }


def basic_auth_header(public_key: str, private_key: str) -> str:
    credentials = base64.b64encode(f"{public_key}:{private_key}".encode()).decode()
    return f"Basic {credentials}"


class EpaycoClient:
    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http_client

    async def login(self) -> dict[str, Any]:
        """
        Exchange the public/private key pair for an API token.

        Returns the full ePayco response, which carries ``token``.
        """
        public_key = self._settings.epayco_public_key
        private_key = self._settings.epayco_private_key
        if not public_key or not private_key:
            raise ConfigurationError("ePayco credentials are not configured")

        logger.info("Requesting ePayco token")
        with GATEWAY_REQUEST_DURATION.labels(operation="login").time():
            response = await self._http.post(
                self._settings.epayco_login_url,
                headers={"Authorization": basic_auth_header(public_key, private_key)},
            )
        if not response.is_success:
            logger.error("ePayco login failed status=%d", response.status_code)
            raise RemoteAuthError(response.status_code, response.text)

        data = _json_body(response)
        if not data.get("token"):
            raise GatewayProtocolError("No token received from ePayco")
        return data

    async def authenticate(self) -> str:
        return (await self.login())["token"]

    async def create_session(self, token: str, session_data: dict[str, Any]) -> dict[str, Any]:
        payload = {**session_defaults(), **session_data, "checkout_version": CHECKOUT_VERSION, "test": True}
        with GATEWAY_REQUEST_DURATION.labels(operation="create_session").time():
            response = await self._http.post(
                self._settings.epayco_session_url,
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )
        # ePayco reports validation problems in the body, whatever the status
        data = _json_body(response)
        if not data.get("success"):
            logger.warning(
                "ePayco rejected session status=%d text=%s",
                response.status_code,
                data.get("textResponse"),
            )
            raise RemoteValidationError(data)
        logger.info("Checkout session created sessionId=%s", (data.get("data") or {}).get("sessionId"))
        return data

    async def get_transaction(self, reference: str) -> dict[str, Any]:
        public_key = self._settings.epayco_public_key
        if not public_key:
            raise ConfigurationError("EPAYCO_PUBLIC_KEY is not configured")

        url = f"{self._settings.epayco_transaction_url.rstrip('/')}/{quote(reference, safe='')}"
        with GATEWAY_REQUEST_DURATION.labels(operation="get_transaction").time():
            response = await self._http.get(url, headers={"Authorization": f"Bearer {public_key}"})
        if not response.is_success:
            raise RemoteLookupNotFound(reference, response.status_code, response.text)
        return _json_body(response)


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise GatewayProtocolError(
            f"ePayco returned a non-JSON response ({response.status_code})",
            {"body": response.text[:500]},
        ) from e
    if not isinstance(data, dict):
        raise GatewayProtocolError("ePayco returned an unexpected JSON document", {"body": data})
    return data
