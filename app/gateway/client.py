"""
HTTP client for the upstream payment gateway.

Every request carries:
  - Basic auth derived from the secret key (key as username, empty password)
  - the endpoint's own api-version header
  - X-IDEMPOTENCY-KEY set to the caller's external id, so a request retried
    at the transport layer is deduplicated by the gateway itself

The client never retries. Retry policy belongs to the caller and only
applies to GatewayUnreachable (see app.engine.retry).
"""

import base64
import logging
from typing import Any, Optional

import httpx

from app.engine.errors import GatewayNotConfigured, GatewayRejected, GatewayUnreachable
from app.gateway.base import GatewayEndpoint

logger = logging.getLogger("payment_router.gateway")


def basic_auth_header(secret_key: str) -> str:
    token = base64.b64encode(f"{secret_key}:".encode()).decode()
    return f"Basic {token}"


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text}
    return data if isinstance(data, dict) else {"data": data}


class GatewayClient:
    """
    Thin async wrapper over one shared httpx.AsyncClient.

    The underlying client is owned by the caller (created in the app
    lifespan, or a MockTransport-backed client in tests).
    """

    def __init__(self, http: httpx.AsyncClient, secret_key: Optional[str], base_url: str = ""):
        self._http = http
        self._secret_key = secret_key or ""
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    async def send(
        self,
        endpoint: GatewayEndpoint,
        payload: dict[str, Any],
        idempotency_key: str,
    ) -> dict[str, Any]:
        """
        POST a payload to a gateway endpoint.

        Returns:
            The decoded JSON body of a 2xx response.

        Raises:
            GatewayNotConfigured: No secret key.
            GatewayRejected: Non-2xx response; carries status and body.
            GatewayUnreachable: Connect failure, timeout or other transport error.
        """
        if not self.configured:
            raise GatewayNotConfigured()

        headers = {
            "Authorization": basic_auth_header(self._secret_key),
            "Content-Type": "application/json",
            "api-version": endpoint.api_version,
            "X-IDEMPOTENCY-KEY": idempotency_key,
        }
        url = f"{self._base_url}{endpoint.path}"

        try:
            response = await self._http.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            logger.error("Gateway %s unreachable for %s: %s", endpoint.name, idempotency_key, e)
            raise GatewayUnreachable(f"{endpoint.name}: {e.__class__.__name__}") from e

        body = _decode_body(response)
        if not response.is_success:
            logger.warning(
                "Gateway %s rejected %s: status=%d code=%s",
                endpoint.name,
                idempotency_key,
                response.status_code,
                body.get("error_code", "-"),
            )
            raise GatewayRejected(response.status_code, body)

        logger.info("Gateway %s accepted %s: id=%s", endpoint.name, idempotency_key, body.get("id", "-"))
        return body
