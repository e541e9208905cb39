# marketplace/security.py
"""
Autenticación por JWT (HS256). Los tokens los emite el servicio de cuentas
con el mismo secreto; aquí sólo se valida la firma y se extrae `sub`.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from .config import get_settings

ALGO = "HS256"
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def create_access_token(user_id: str, expires_hours: Optional[int] = None) -> str:
    """Emite un token para `user_id` (usado por tests y herramientas locales)."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(hours=expires_hours or settings.jwt_expires_hours)
    return jwt.encode({"sub": user_id, "exp": expire}, settings.jwt_secret, algorithm=ALGO)


def decode_user_id(token: str) -> str:
    try:
        payload = jwt.decode(token, get_settings().jwt_secret, algorithms=[ALGO])
    except JWTError:
        raise _unauthorized("Token inválido")
    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("Token inválido")
    return str(sub)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise _unauthorized("No autenticado")
    return decode_user_id(credentials.credentials)
