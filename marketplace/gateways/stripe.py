# marketplace/gateways/stripe.py
"""
Stripe: PaymentIntent en moneda local con captura automática.
El cliente confirma el pago con el client_secret.
"""
import logging
from typing import Optional

import httpx

from ..config import STRIPE_API_BASE, Settings
from ..errors import MissingCredentials
from .base import Charge, PaymentGateway

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    name = "stripe"
    delayed_capture = False

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None):
        super().__init__(timeout=settings.gateway_timeout_seconds, http=http)
        self.secret_key = settings.stripe_secret_key

    def _headers(self) -> dict[str, str]:
        if not self.secret_key:
            raise MissingCredentials("Stripe not configured", status_code=503)
        return {"Authorization": f"Bearer {self.secret_key}"}

    async def create_immediate_charge(self, amount: float, currency: str) -> Charge:
        headers = self._headers()
        response = await self._send(
            "POST",
            f"{STRIPE_API_BASE}/v1/payment_intents",
            stage="create_charge",
            headers=headers,
            data={
                # Stripe trabaja en unidades mínimas (halalas, céntimos...)
                "amount": str(int(round(amount * 100))),
                "currency": currency.lower(),
                "automatic_payment_methods[enabled]": "true",
            },
        )
        data = self._json(response, "create_charge", "id", "client_secret")
        logger.info(f"Stripe intent {data['id']} creado por {amount:.2f} {currency}")
        return Charge(charge_id=data["id"], client_secret=data["client_secret"], status=data.get("status", ""))

    async def retrieve_charge(self, charge_id: str) -> Charge:
        headers = self._headers()
        response = await self._send(
            "GET",
            f"{STRIPE_API_BASE}/v1/payment_intents/{charge_id}",
            stage="retrieve_charge",
            headers=headers,
        )
        data = self._json(response, "retrieve_charge", "id", "status")
        return Charge(charge_id=data["id"], client_secret=None, status=data["status"])
