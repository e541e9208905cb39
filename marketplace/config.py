from functools import lru_cache
from pydantic import BaseModel
import os
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz

PAYPAL_LIVE_BASE = "https://api-m.paypal.com"
PAYPAL_SANDBOX_BASE = "https://api-m.sandbox.paypal.com"
STRIPE_API_BASE = "https://api.stripe.com"


class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "Marketplace")
    env: str = os.getenv("APP_ENV", "dev")
    port: int = int(os.getenv("PORT", "4242"))
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "marketplace")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "8"))
    client_origin: str = os.getenv("CLIENT_ORIGIN", "")

    # Pasarela con captura diferida (PayPal)
    paypal_client_id: str = os.getenv("PAYPAL_CLIENT_ID", "")
    paypal_client_secret: str = os.getenv("PAYPAL_CLIENT_SECRET", "")
    paypal_env: str = os.getenv("PAYPAL_ENV", "sandbox").lower()

    # Pasarela con captura inmediata (Stripe)
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")

    local_currency: str = os.getenv("LOCAL_CURRENCY", "SAR").upper()
    settlement_currency: str = os.getenv("SETTLEMENT_CURRENCY", "USD").upper()

    fx_timeout_seconds: float = float(os.getenv("FX_TIMEOUT_SECONDS", "5"))
    gateway_timeout_seconds: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "30"))
    order_meta_ttl_seconds: int = int(os.getenv("ORDER_META_TTL_SECONDS", "86400"))

    @property
    def paypal_api_base(self) -> str:
        return PAYPAL_LIVE_BASE if self.paypal_env == "live" else PAYPAL_SANDBOX_BASE

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
