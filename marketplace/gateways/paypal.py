# marketplace/gateways/paypal.py
"""
PayPal: autorizar al crear la orden, capturar o anular después.

Flujo:
  1. POST /v2/checkout/orders con intent=AUTHORIZE (importe en USD, 2 decimales)
  2. El comprador aprueba la orden en PayPal (fuera del servidor)
  3. POST /v2/payments/authorizations/{id}/capture  o  .../void
"""
import logging
from typing import Optional

import httpx

from ..config import Settings
from ..errors import GatewayError, GatewayResponseError, MissingCredentials
from .base import CaptureResult, PaymentGateway, TokenCache

logger = logging.getLogger(__name__)


class PayPalGateway(PaymentGateway):
    name = "paypal"
    delayed_capture = True

    # Un token por entorno + client id, compartido entre peticiones
    _token_caches: dict[tuple[str, str], TokenCache] = {}

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None):
        super().__init__(timeout=settings.gateway_timeout_seconds, http=http)
        self.base_url = settings.paypal_api_base
        self.client_id = settings.paypal_client_id
        self.client_secret = settings.paypal_client_secret
        self._tokens = self._token_caches.setdefault((self.base_url, self.client_id), TokenCache())

    async def _request_token(self) -> str:
        response = await self._send(
            "POST",
            f"{self.base_url}/v1/oauth2/token",
            stage="token",
            auth=(self.client_id, self.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={"grant_type": "client_credentials"},
        )
        data = self._json(response, "token", "access_token")
        token = data["access_token"]
        self._tokens.set(token, int(data.get("expires_in", 300)))
        return token

    async def access_token(self) -> str:
        if not (self.client_id and self.client_secret):
            raise MissingCredentials("Missing PayPal credentials")
        cached = self._tokens.get()
        if cached:
            return cached
        try:
            return await self._request_token()
        except GatewayError as e:
            # La obtención del token se reintenta una vez
            logger.warning(f"PayPal auth failed ({e.status}); reintentando")
            return await self._request_token()

    async def _authorized(self, method: str, path: str, stage: str, **kwargs) -> httpx.Response:
        token = await self.access_token()
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        try:
            return await self._send(method, f"{self.base_url}{path}", stage=stage, headers=headers, **kwargs)
        except GatewayError as e:
            if e.status == 401:
                self._tokens.clear()
            raise

    async def create_authorization(self, amount: float, currency: str) -> str:
        response = await self._authorized(
            "POST",
            "/v2/checkout/orders",
            stage="create_order",
            json={
                "intent": "AUTHORIZE",
                "purchase_units": [
                    {"amount": {"currency_code": currency.upper(), "value": f"{amount:.2f}"}}
                ],
            },
        )
        order_id = self._json(response, "create_order", "id")["id"]
        logger.info(f"PayPal order {order_id} creada por {amount:.2f} {currency}")
        return order_id

    async def capture(self, authorization_id: str) -> CaptureResult:
        response = await self._authorized(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/capture",
            stage="capture",
            json={},
        )
        data = self._json(response, "capture", "id")
        return CaptureResult(capture_id=data["id"], status=data.get("status", "COMPLETED"))

    async def authorization_order(self, authorization_id: str) -> str:
        """Orden a la que pertenece la autorización, según PayPal."""
        response = await self._authorized(
            "GET",
            f"/v2/payments/authorizations/{authorization_id}",
            stage="authorization",
        )
        data = self._json(response, "authorization", "id")
        related = (data.get("supplementary_data") or {}).get("related_ids") or {}
        order_id = related.get("order_id")
        if not order_id:
            raise GatewayResponseError(response.status_code, response.text, stage="authorization")
        return order_id

    async def void(self, authorization_id: str) -> str:
        await self._authorized(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/void",
            stage="void",
        )
        return "VOIDED"
