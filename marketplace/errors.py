# marketplace/errors.py
"""
Errores de dominio y su traducción a respuestas HTTP.

Todas las respuestas no-2xx llevan el cuerpo {"error": "<mensaje>"}.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(MarketplaceError):
    status_code = 400


class InvalidAmount(InvalidInput):
    pass


class UnsupportedOperation(InvalidInput):
    pass


class MissingCredentials(MarketplaceError):
    status_code = 500


class GatewayError(MarketplaceError):
    """Respuesta no exitosa de una pasarela; conserva status y cuerpo tal cual."""
    status_code = 502

    def __init__(self, status: int, body: str, stage: str = "request", status_code: Optional[int] = None):
        super().__init__(body or f"Gateway error {status}", status_code=status_code)
        self.status = status
        self.body = body
        self.stage = stage


class GatewayResponseError(GatewayError):
    """La pasarela respondió 2xx pero el cuerpo no se puede interpretar."""

    def __init__(self, status: int, body: str, stage: str = "request"):
        super().__init__(status, body, stage=stage)
        self.message = f"Respuesta inesperada de la pasarela ({stage})"


class NotFound(MarketplaceError):
    status_code = 404


class Forbidden(MarketplaceError):
    status_code = 403


class IllegalTransition(MarketplaceError):
    status_code = 409

    def __init__(self, current: str, action: str, role: Optional[str] = None):
        who = f" para {role}" if role else ""
        super().__init__(f"Transición no permitida: {action}{who} desde {current}")
        self.current = current
        self.action = action
        self.role = role


class AuthorizationFinalized(MarketplaceError):
    status_code = 409


class PaymentAlreadyCaptured(MarketplaceError):
    status_code = 409


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} en {request.url.path}: {exc.message}")
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return _error(422, "; ".join(parts) or "Petición inválida")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Error no controlado en {request.url.path}: {exc}", exc_info=True)
        return _error(500, "Error interno del servidor")
