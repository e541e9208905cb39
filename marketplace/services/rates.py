# marketplace/services/rates.py
"""
Resolución del tipo de cambio entre la moneda local del marketplace y la
moneda de liquidación de una pasarela.

Se consultan los proveedores en orden; el primero que devuelve un tipo válido
gana. Si todos fallan se usa una constante fija para el par (modo degradado,
visible sólo en los logs).
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

# Último recurso cuando ningún proveedor responde
FALLBACK_RATES: dict[tuple[str, str], float] = {
    ("SAR", "USD"): 0.27,
}


@dataclass(frozen=True)
class RateProvider:
    name: str
    url: str  # admite {base} y {quote}
    params: Optional[dict[str, str]] = None

    def build(self, base: str, quote: str) -> tuple[str, dict[str, str]]:
        params = {k: v.format(base=base, quote=quote) for k, v in (self.params or {}).items()}
        return self.url.format(base=base, quote=quote), params

    def extract(self, data: Any, quote: str) -> float:
        rate = data["rates"][quote]
        value = float(rate)
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"rate inválido: {rate!r}")
        return value


DEFAULT_PROVIDERS: tuple[RateProvider, ...] = (
    RateProvider(name="er-api", url="https://open.er-api.com/v6/latest/{base}"),
    RateProvider(
        name="exchangerate.host",
        url="https://api.exchangerate.host/latest",
        params={"base": "{base}", "symbols": "{quote}"},
    ),
)


def fallback_rate(from_currency: str, to_currency: str) -> float:
    """Constante de último recurso; nunca falla."""
    pair = (from_currency, to_currency)
    if pair in FALLBACK_RATES:
        return FALLBACK_RATES[pair]
    inverse = (to_currency, from_currency)
    if inverse in FALLBACK_RATES:
        return 1 / FALLBACK_RATES[inverse]
    logger.error(f"Sin tipo de respaldo para {from_currency}->{to_currency}; usando paridad 1.0")
    return 1.0


class RateResolver:
    def __init__(
        self,
        providers: Sequence[RateProvider] = DEFAULT_PROVIDERS,
        timeout: float = 5.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.providers = list(providers)
        self.timeout = timeout
        self._http = http

    async def _fetch(self, client: httpx.AsyncClient, provider: RateProvider, base: str, quote: str) -> float:
        url, params = provider.build(base, quote)
        response = await client.get(url, params=params or None, timeout=self.timeout)
        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"FX rate failed: {response.status_code} {response.text}",
                request=response.request,
                response=response,
            )
        return provider.extract(response.json(), quote)

    async def resolve_rate(self, from_currency: str, to_currency: str) -> float:
        base = from_currency.upper()
        quote = to_currency.upper()
        if base == quote:
            return 1.0

        client = self._http or httpx.AsyncClient(timeout=self.timeout)
        try:
            for provider in self.providers:
                try:
                    rate = await self._fetch(client, provider, base, quote)
                    logger.info(f"FX {base}->{quote} = {rate} ({provider.name})")
                    return rate
                except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Proveedor FX {provider.name} falló: {e}")
        finally:
            if self._http is None:
                await client.aclose()

        rate = fallback_rate(base, quote)
        logger.warning(f"FX {base}->{quote} sin proveedor disponible. Usando respaldo {rate}")
        return rate
