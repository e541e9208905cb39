# marketplace/gateways/base.py
"""
Contrato común de las pasarelas de pago.

Cada variante implementa sólo las operaciones que su protocolo admite; el
resto responde UnsupportedOperation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from ..errors import GatewayError, GatewayResponseError, UnsupportedOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    capture_id: str
    status: str


@dataclass(frozen=True)
class Charge:
    charge_id: str
    client_secret: Optional[str]
    status: str


class TokenCache:
    """Cache para el bearer token de la pasarela."""

    def __init__(self) -> None:
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def get(self) -> Optional[str]:
        if self._token and self._expires_at:
            now = datetime.now(timezone.utc)
            if now < (self._expires_at - timedelta(seconds=60)):
                return self._token
        return None

    def set(self, token: str, expires_in: int) -> None:
        self._token = token
        self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

    def clear(self) -> None:
        self._token = None
        self._expires_at = None


class PaymentGateway:
    name: str = "gateway"
    delayed_capture: bool = False

    def __init__(self, timeout: float = 30.0, http: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._http = http

    async def _send(self, method: str, url: str, stage: str, **kwargs) -> httpx.Response:
        """Envía la petición y traduce cualquier fallo a GatewayError."""
        client = self._http or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} {stage}: timeout ({e})")
            raise GatewayError(504, f"{self.name} {stage} timed out", stage=stage, status_code=504)
        except httpx.TransportError as e:
            logger.error(f"{self.name} {stage}: error de red ({e})")
            raise GatewayError(502, f"{self.name} {stage} failed: {e}", stage=stage)
        finally:
            if self._http is None:
                await client.aclose()

        if not response.is_success:
            logger.error(f"{self.name} {stage} error: {response.status_code} {response.text}")
            raise GatewayError(response.status_code, response.text, stage=stage)
        return response

    def _json(self, response: httpx.Response, stage: str, *required: str) -> dict:
        """Cuerpo JSON de una respuesta 2xx; exige los campos indicados."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or any(not data.get(field) for field in required):
            logger.error(f"{self.name} {stage}: respuesta ilegible ({response.status_code}) {response.text[:200]}")
            raise GatewayResponseError(response.status_code, response.text, stage=stage)
        return data

    # ---------- Capacidades ----------

    async def create_authorization(self, amount: float, currency: str) -> str:
        raise UnsupportedOperation(f"{self.name} no admite autorizaciones diferidas")

    async def capture(self, authorization_id: str) -> CaptureResult:
        raise UnsupportedOperation(f"{self.name} no admite captura diferida")

    async def authorization_order(self, authorization_id: str) -> str:
        raise UnsupportedOperation(f"{self.name} no admite consultar autorizaciones")

    async def void(self, authorization_id: str) -> str:
        raise UnsupportedOperation(f"{self.name} no admite anular autorizaciones")

    async def create_immediate_charge(self, amount: float, currency: str) -> Charge:
        raise UnsupportedOperation(f"{self.name} no admite cobros inmediatos")

    async def retrieve_charge(self, charge_id: str) -> Charge:
        raise UnsupportedOperation(f"{self.name} no admite consultar cobros")
