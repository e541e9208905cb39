from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging
import uvicorn

from .config import get_settings
from .errors import register_error_handlers
from .routers import bookings, payments

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()

# Configurar rate limiting
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title=settings.app_name)
app.state.limiter = limiter
register_error_handlers(app)

# Configuración de CORS según entorno
if settings.client_origin:
    cors_origins = [o.strip() for o in settings.client_origin.split(",") if o.strip()]
    cors_regex = None
elif settings.env == "dev":
    # Desarrollo: más permisivo para facilitar desarrollo
    cors_origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    cors_regex = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"
else:
    cors_origins = []
    cors_regex = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=cors_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
    expose_headers=["Content-Type"],
)

if not settings.paypal_configured:
    logger.warning("PayPal sin credenciales: /payments/delayed/* responderá MissingCredentials")
if not settings.stripe_configured:
    logger.warning("Stripe sin clave: /payments/immediate/* deshabilitado")


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "env": settings.env,
        "paypal": settings.paypal_configured,
        "stripe": settings.stripe_configured,
    }

# Routers
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])


def run():
    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
