# marketplace/dependencies.py
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from .config import Settings, get_settings
from .db import get_db
from .gateways.paypal import PayPalGateway
from .gateways.stripe import StripeGateway
from .services.bookings import BookingService
from .services.orchestrator import PaymentOrchestrator
from .services.rates import RateResolver


def get_rate_resolver(settings: Settings = Depends(get_settings)) -> RateResolver:
    return RateResolver(timeout=settings.fx_timeout_seconds)


def get_paypal_gateway(settings: Settings = Depends(get_settings)) -> PayPalGateway:
    return PayPalGateway(settings)


def get_stripe_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    return StripeGateway(settings)


def get_booking_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_orchestrator(
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
    rates: RateResolver = Depends(get_rate_resolver),
    paypal: PayPalGateway = Depends(get_paypal_gateway),
    stripe: StripeGateway = Depends(get_stripe_gateway),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(db, settings, rates, delayed=paypal, immediate=stripe)
