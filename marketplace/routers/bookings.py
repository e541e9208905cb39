# marketplace/routers/bookings.py
from fastapi import APIRouter, Depends, status, Path, Request
from typing import List

from ..dependencies import get_booking_service, get_orchestrator
from ..schemas.booking import (
    ActionPatch,
    ActionsOut,
    BookingCreate,
    BookingOut,
    CheckoutCreate,
    Schedule,
)
from ..schemas.payment import ChargeOut, OrderOut
from ..services.bookings import BookingService, available_actions, status_of
from ..services.orchestrator import OrderQuote, PaymentOrchestrator
from ..security import get_current_user_id
from ..utils import to_id
from ..middleware.rate_limit import apply_rate_limit
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

OID = r"^[0-9a-fA-F]{24}$"


def _to_out(doc: dict) -> dict:
    d = to_id(doc)
    d.pop("history", None)
    return d


# ---------- Endpoints ----------

@router.get("/mine", response_model=List[BookingOut])
async def list_my_bookings(
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    docs = await bookings.list_for_user(user_id)
    return [_to_out(d) for d in docs]


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str = Path(..., pattern=OID),
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    doc = await bookings.get_booking(booking_id)
    bookings.role_of(doc, user_id)
    return _to_out(doc)


@router.get("/{booking_id}/actions", response_model=ActionsOut)
async def get_booking_actions(
    booking_id: str = Path(..., pattern=OID),
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    """Acciones que el usuario puede ejecutar ahora (para habilitar botones en la UI)"""
    doc = await bookings.get_booking(booking_id)
    role = bookings.role_of(doc, user_id)
    current = status_of(doc)
    return ActionsOut(role=role, status=current, actions=available_actions(current, role))


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    # Rate limiting: máximo 15 reservas por minuto por IP
    apply_rate_limit(request, "15/minute", scope="bookings:create")
    booking_id = await bookings.create_booking(
        client_id=user_id,
        provider_id=payload.provider_id,
        service_id=payload.service_id,
        schedule=Schedule(start=payload.start, end=payload.end),
        price_total=payload.price_total,
        address=payload.address,
    )
    return _to_out(await bookings.get_booking(booking_id))


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def checkout(
    request: Request,
    payload: CheckoutCreate,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_current_user_id),
):
    """
    Crea la reserva y su primer intento de pago. Si el pago falla la reserva
    queda CANCELLED_BY_CLIENT y se devuelve el error de la pasarela.
    """
    apply_rate_limit(request, "15/minute", scope="bookings:create")
    booking_id, result = await orchestrator.checkout(user_id, payload)
    booking = BookingOut.model_validate(_to_out(await orchestrator.bookings.get_booking(booking_id)))
    if isinstance(result, OrderQuote):
        payment = OrderOut(order_id=result.order_id, settlement_amount=result.settlement_amount, rate=result.rate)
    else:
        payment = ChargeOut(client_secret=result.client_secret or "", charge_id=result.charge_id)
    return {
        "booking": booking.model_dump(mode="json", by_alias=True),
        "payment": payment.model_dump(mode="json", by_alias=True),
    }


@router.patch("/{booking_id}/status", response_model=BookingOut)
async def patch_status(
    request: Request,
    body: ActionPatch,
    booking_id: str = Path(..., pattern=OID),
    bookings: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, "30/minute", scope="bookings:status")
    doc = await bookings.get_booking(booking_id)
    # El rol sale de la propia reserva, no del cliente HTTP
    role = bookings.role_of(doc, user_id)
    await bookings.update_booking_status(booking_id, role, body.action)
    return _to_out(await bookings.get_booking(booking_id))
