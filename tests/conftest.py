"""
Configuración de pytest para tests
"""
import pytest
import respx
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from marketplace.config import Settings, get_settings
from marketplace.db import get_db
from marketplace.gateways.paypal import PayPalGateway
from marketplace.gateways.stripe import StripeGateway
from marketplace.security import create_access_token
from marketplace.services.orchestrator import PaymentOrchestrator
from marketplace.services.rates import RateResolver

PAYPAL_BASE = "https://api-m.sandbox.paypal.com"
STRIPE_BASE = "https://api.stripe.com"
ER_API_URL = "https://open.er-api.com/v6/latest/SAR"
FX_HOST = "api.exchangerate.host"

CLIENT_ID = "client-1"
PROVIDER_ID = "provider-1"
STRANGER_ID = "stranger-1"


# Deshabilitar rate limiting en la app antes de importarla
@pytest.fixture(scope="session", autouse=True)
def disable_rate_limiting():
    """Deshabilita rate limiting para todos los tests"""
    from marketplace.main import app
    app.state.limiter = None


@pytest.fixture(autouse=True)
def clear_paypal_tokens():
    PayPalGateway._token_caches.clear()
    yield
    PayPalGateway._token_caches.clear()


@pytest.fixture
def settings():
    return Settings(
        paypal_client_id="pp-client",
        paypal_client_secret="pp-secret",
        paypal_env="sandbox",
        stripe_secret_key="sk_test_123",
        local_currency="SAR",
        settlement_currency="USD",
        fx_timeout_seconds=1,
        gateway_timeout_seconds=1,
        order_meta_ttl_seconds=3600,
    )


@pytest.fixture
def db():
    """Base de datos Mongo en memoria"""
    return AsyncMongoMockClient()["marketplace_test"]


@pytest.fixture
def orchestrator(db, settings):
    return PaymentOrchestrator(
        db,
        settings,
        RateResolver(timeout=settings.fx_timeout_seconds),
        delayed=PayPalGateway(settings),
        immediate=StripeGateway(settings),
    )


@pytest.fixture
def http_mock():
    """Intercepta las llamadas salientes (FX, PayPal, Stripe)"""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def fx_rate(http_mock):
    route = http_mock.get(ER_API_URL).respond(200, json={"result": "success", "rates": {"USD": 0.27}})
    http_mock.get(host=FX_HOST, path="/latest").respond(200, json={"rates": {"USD": 0.2666}})
    return route


@pytest.fixture
def paypal_token(http_mock):
    return http_mock.post(f"{PAYPAL_BASE}/v1/oauth2/token").respond(
        200, json={"access_token": "A21AA-token", "token_type": "Bearer", "expires_in": 32400}
    )


@pytest.fixture
def paypal_order(http_mock, paypal_token):
    return http_mock.post(f"{PAYPAL_BASE}/v2/checkout/orders").respond(
        201, json={"id": "5O190127TN364715T", "status": "CREATED"}
    )


@pytest.fixture
def app_client(db, settings):
    """Fixture para cliente de test de FastAPI"""
    from marketplace.main import app
    app.state.limiter = None
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def client_headers():
    return _auth(CLIENT_ID)


@pytest.fixture
def provider_headers():
    return _auth(PROVIDER_ID)


@pytest.fixture
def stranger_headers():
    return _auth(STRANGER_ID)


@pytest.fixture
def booking_payload():
    return {
        "providerId": PROVIDER_ID,
        "serviceId": "service-1",
        "start": "2026-11-02T09:00:00+00:00",
        "end": "2026-11-02T11:00:00+00:00",
        "priceTotal": 100,
        "address": "Riyadh, Al Olaya",
    }
