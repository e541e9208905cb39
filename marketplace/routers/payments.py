# marketplace/routers/payments.py
from fastapi import APIRouter, Depends, Request
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db import get_db
from ..dependencies import get_booking_service, get_orchestrator
from ..security import get_current_user_id
from ..utils import to_id
from ..schemas.payment import (
    AmountIn,
    AuthorizationIn,
    CaptureOut,
    ChargeConfirmIn,
    ChargeConfirmOut,
    ChargeOut,
    OrderMetaIn,
    OrderMetaOut,
    OrderOut,
    PaymentOut,
    VoidOut,
)
from ..services.bookings import BookingService
from ..services.orchestrator import PaymentOrchestrator
from ..middleware.rate_limit import apply_rate_limit
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_payment_out(doc: dict) -> dict:
    """Convierte documento de MongoDB a PaymentOut"""
    return to_id(doc)


# ---------- Captura diferida ----------

@router.post("/delayed/create-order", response_model=OrderOut)
async def create_order(
    request: Request,
    body: AmountIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    # Rate limiting: máximo 10 órdenes por minuto por IP
    apply_rate_limit(request, "10/minute", scope="payments:create")
    quote = await orchestrator.quote_and_create(body.amount_local, body.booking_id, user_id)
    return OrderOut(order_id=quote.order_id, settlement_amount=quote.settlement_amount, rate=quote.rate)


@router.post("/delayed/order-meta", response_model=OrderMetaOut)
async def order_meta(
    body: OrderMetaIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    meta = await orchestrator.lookup_meta(body.order_id)
    return OrderMetaOut(settlement_amount=meta.settlement_amount, rate=meta.rate)


@router.post("/delayed/capture", response_model=CaptureOut)
async def capture_authorization(
    request: Request,
    body: AuthorizationIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, "20/minute", scope="payments:finalize")
    result = await orchestrator.finalize_capture(body.authorization_id, body.order_id, user_id)
    return CaptureOut(capture_id=result.capture_id, status=result.status)


@router.post("/delayed/void", response_model=VoidOut)
async def void_authorization(
    request: Request,
    body: AuthorizationIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, "20/minute", scope="payments:finalize")
    status = await orchestrator.finalize_void(body.authorization_id, body.order_id, user_id)
    return VoidOut(status=status)


# ---------- Captura inmediata ----------

@router.post("/immediate/create-charge", response_model=ChargeOut)
async def create_charge(
    request: Request,
    body: AmountIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, "10/minute", scope="payments:create")
    charge = await orchestrator.charge_immediate(body.amount_local, body.booking_id, user_id)
    return ChargeOut(client_secret=charge.client_secret or "", charge_id=charge.charge_id)


@router.post("/immediate/confirm", response_model=ChargeConfirmOut)
async def confirm_charge(
    request: Request,
    body: ChargeConfirmIn,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    """Comprueba en la pasarela si el cobro se completó antes de marcarlo CAPTURED."""
    apply_rate_limit(request, "20/minute", scope="payments:confirm")
    result = await orchestrator.confirm_immediate(body.charge_id, user_id)
    return ChargeConfirmOut(charge_id=result.charge_id, gateway_status=result.gateway_status, status=result.status)


# ---------- Consultas ----------

@router.get("/mine", response_model=List[PaymentOut])
async def list_my_payments(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Lista todos los pagos del usuario (como cliente o proveedor)"""
    docs = await db.payments.find({
        "$or": [{"client_id": user_id}, {"provider_id": user_id}]
    }).sort("created_at", -1).to_list(100)
    return [_to_payment_out(d) for d in docs]


@router.get("/booking/{booking_id}", response_model=List[PaymentOut])
async def get_payments_by_booking(
    booking_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    """Intentos de pago de una reserva, del más reciente al más antiguo"""
    booking = await bookings.get_booking(booking_id)
    bookings.role_of(booking, user_id)
    docs = await db.payments.find({"booking_id": booking["_id"]}).sort("created_at", -1).to_list(50)
    return [_to_payment_out(d) for d in docs]
