"""
Límites de peticiones por grupo de endpoints, sobre el limiter de slowapi
"""
from typing import Optional

from fastapi import Request, HTTPException
from limits import parse
from slowapi.util import get_remote_address


def apply_rate_limit(request: Request, limit: str, scope: Optional[str] = None):
    """
    Uso: apply_rate_limit(request, "10/minute", scope="payments:create")

    `scope` agrupa rutas con parámetros (p. ej. /bookings/{id}/status) en un
    único contador; por defecto se usa la ruta. Sin limiter (tests) no hace nada.
    """
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None:
        return

    key = get_remote_address(request)
    if not limiter.limiter.hit(parse(limit), scope or request.url.path, key):
        raise HTTPException(
            status_code=429,
            detail=f"Demasiadas solicitudes ({limit}). Intenta más tarde.",
        )
