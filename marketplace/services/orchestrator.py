# marketplace/services/orchestrator.py
"""
Orquestador de autorización de pagos.

Estados de un intento de pago:
  captura diferida:   CREATED -> AUTHORIZED -> CAPTURED | VOIDED
  captura inmediata:  CREATED -> CAPTURED | FAILED

Flujo de captura diferida:
  ┌──────────────────────────────────────────────────────────────┐
  │ 1. Tipo de cambio (moneda local -> moneda de liquidación)    │
  │ 2. Orden con intent AUTHORIZE en la pasarela                 │
  │ 3. Metadatos de la orden (importe + tipo) en order_meta      │
  │ 4. El comprador aprueba fuera del servidor                   │
  │ 5. capture / void sobre el id de autorización                │
  └──────────────────────────────────────────────────────────────┘

Cada id de autorización se reclama en payment_authorizations antes de
llamar a la pasarela; una segunda captura o anulación se rechaza sin
llegar a la pasarela. La orden de cada autorización se consulta en la
pasarela, y cada reserva admite un único cobro (booking_captures).
"""
import logging
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..config import Settings
from ..errors import (
    AuthorizationFinalized,
    Forbidden,
    GatewayResponseError,
    InvalidAmount,
    InvalidInput,
    MarketplaceError,
    PaymentAlreadyCaptured,
)
from ..gateways.base import CaptureResult, Charge, PaymentGateway
from ..schemas.booking import ActorRole, BookingAction, CheckoutCreate, Schedule
from ..schemas.payment import PaymentStatus
from ..utils import is_positive_amount, require_id, round_money, utcnow
from .bookings import TERMINAL, BookingService, status_of
from .order_meta import OrderMeta, OrderMetaStore
from .rates import RateResolver

logger = logging.getLogger(__name__)

FINAL_PAYMENT_STATES = frozenset({PaymentStatus.captured, PaymentStatus.voided, PaymentStatus.failed})


@dataclass(frozen=True)
class OrderQuote:
    order_id: str
    settlement_amount: float
    rate: float


@dataclass(frozen=True)
class ChargeConfirmation:
    charge_id: str
    gateway_status: str
    status: PaymentStatus


def validate_amount(value) -> float:
    if value is None:
        raise InvalidAmount("Missing amountLocal")
    if not is_positive_amount(value):
        raise InvalidAmount("Invalid amount")
    return float(value)


class PaymentOrchestrator:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        settings: Settings,
        rates: RateResolver,
        delayed: PaymentGateway,
        immediate: PaymentGateway,
    ):
        self.settings = settings
        self.rates = rates
        self.delayed = delayed
        self.immediate = immediate
        self.meta = OrderMetaStore(db, settings.order_meta_ttl_seconds)
        self.bookings = BookingService(db)
        self.payments = db.payments
        self.authorizations = db.payment_authorizations
        self.captures = db.booking_captures

    # ---------- Registros de pago ----------

    async def _payable_booking(self, booking_id: Optional[str], payer_id: Optional[str]) -> Optional[dict]:
        if not booking_id:
            return None
        booking = await self.bookings.get_booking(booking_id)
        if payer_id is not None and booking.get("client_id") != payer_id:
            raise Forbidden("Solo el cliente puede pagar esta reserva")
        status = status_of(booking)
        if status in TERMINAL:
            raise InvalidInput(f"No se puede pagar una reserva en estado {status.value}")
        await self._ensure_not_captured(booking["_id"])
        return booking

    async def _ensure_not_captured(self, booking_oid) -> None:
        captured = await self.payments.find_one({
            "booking_id": booking_oid,
            "status": PaymentStatus.captured.value,
        })
        if captured or await self.captures.find_one({"_id": booking_oid}):
            raise PaymentAlreadyCaptured("La reserva ya tiene un pago capturado")

    async def _record_payment(
        self,
        booking: dict,
        gateway: PaymentGateway,
        order_id: str,
        amount_local: float,
        settlement_amount: Optional[float] = None,
        rate: Optional[float] = None,
    ) -> None:
        now = utcnow()
        await self.payments.insert_one({
            "booking_id": booking["_id"],
            "client_id": booking["client_id"],
            "provider_id": booking["provider_id"],
            "gateway": gateway.name,
            "order_id": order_id,
            "authorization_id": None,
            "capture_id": None,
            "amount_local": round_money(amount_local),
            "currency": self.settings.local_currency,
            "settlement_amount": settlement_amount,
            "rate": rate,
            "status": PaymentStatus.created.value,
            "created_at": now,
            "updated_at": now,
        })

    async def _payment_for_order(self, order_id: Optional[str], payer_id: Optional[str]) -> Optional[dict]:
        if not order_id:
            return None
        payment = await self.payments.find_one({"order_id": order_id})
        if payment and payer_id is not None and payment.get("client_id") != payer_id:
            raise Forbidden("No tienes acceso a este pago")
        return payment

    async def _set_payment(self, payment: Optional[dict], **fields) -> None:
        if not payment:
            return
        fields["updated_at"] = utcnow()
        await self.payments.update_one({"_id": payment["_id"]}, {"$set": fields})

    # ---------- Guardia de autorizaciones ----------

    async def _claim(self, authorization_id: str, operation: str) -> None:
        try:
            await self.authorizations.insert_one({
                "_id": authorization_id,
                "state": f"{operation}_in_progress",
                "created_at": utcnow(),
            })
        except DuplicateKeyError:
            existing = await self.authorizations.find_one({"_id": authorization_id}) or {}
            state = existing.get("state", "en curso")
            raise AuthorizationFinalized(f"La autorización {authorization_id} ya está {state}")

    async def _release(self, authorization_id: str, operation: str) -> None:
        await self.authorizations.delete_one({"_id": authorization_id, "state": f"{operation}_in_progress"})

    async def _settle(self, authorization_id: str, state: str, capture_id: Optional[str] = None) -> None:
        await self.authorizations.update_one(
            {"_id": authorization_id},
            {"$set": {"state": state, "capture_id": capture_id, "finalized_at": utcnow()}},
        )

    async def _claim_booking(self, booking_oid, reference: str) -> None:
        try:
            await self.captures.insert_one({"_id": booking_oid, "reference": reference, "created_at": utcnow()})
        except DuplicateKeyError:
            raise PaymentAlreadyCaptured("La reserva ya tiene un pago capturado")

    async def _release_booking(self, booking_oid, reference: str) -> None:
        if booking_oid is None:
            return
        await self.captures.delete_one({"_id": booking_oid, "reference": reference})

    async def _payment_for_authorization(
        self,
        authorization_id: str,
        order_id: Optional[str],
        payer_id: Optional[str],
    ) -> Optional[dict]:
        linked = await self.delayed.authorization_order(authorization_id)
        if order_id and order_id != linked:
            raise InvalidInput("La autorización no corresponde a la orden indicada")
        return await self._payment_for_order(linked, payer_id)

    # ---------- Operaciones ----------

    async def quote_and_create(
        self,
        amount_local,
        booking_id: Optional[str] = None,
        payer_id: Optional[str] = None,
    ) -> OrderQuote:
        """Convierte el importe, crea la orden AUTHORIZE y guarda sus metadatos."""
        amount = validate_amount(amount_local)
        booking = await self._payable_booking(booking_id, payer_id)

        rate = await self.rates.resolve_rate(self.settings.local_currency, self.settings.settlement_currency)
        settlement_amount = round_money(amount * rate)
        if not is_positive_amount(settlement_amount):
            raise InvalidAmount("Invalid amount")

        order_id = await self.delayed.create_authorization(settlement_amount, self.settings.settlement_currency)
        if self.delayed.delayed_capture:
            await self.meta.put(order_id, settlement_amount, rate)
        if booking:
            await self._record_payment(booking, self.delayed, order_id, amount, settlement_amount, rate)
        return OrderQuote(order_id=order_id, settlement_amount=settlement_amount, rate=rate)

    async def lookup_meta(self, order_id: Optional[str]) -> OrderMeta:
        return await self.meta.get(require_id(order_id, "orderId"))

    async def finalize_capture(
        self,
        authorization_id: Optional[str],
        order_id: Optional[str] = None,
        payer_id: Optional[str] = None,
    ) -> CaptureResult:
        """
        Captura una autorización. La orden se obtiene de la pasarela, así que
        el pago de la reserva se localiza aunque el cliente sólo envíe el id
        de autorización; `order_id`, si llega, debe coincidir.
        """
        authorization_id = require_id(authorization_id, "authorizationId")

        await self._claim(authorization_id, "capture")
        booking_oid = None
        try:
            payment = await self._payment_for_authorization(authorization_id, order_id, payer_id)
            if payment:
                booking_oid = payment["booking_id"]
                await self._claim_booking(booking_oid, authorization_id)
        except Exception:
            await self._release(authorization_id, "capture")
            raise

        await self._set_payment(payment, status=PaymentStatus.authorized.value, authorization_id=authorization_id)
        try:
            result = await self.delayed.capture(authorization_id)
        except GatewayResponseError:
            # La pasarela aceptó la captura: las reclamaciones se mantienen
            await self._settle(authorization_id, "capture_unconfirmed")
            logger.error(f"Captura de {authorization_id} sin confirmar; revisar en la pasarela")
            raise
        except Exception:
            # Sin compensación automática: el cliente reintenta o anula
            await self._release(authorization_id, "capture")
            await self._release_booking(booking_oid, authorization_id)
            raise

        await self._settle(authorization_id, PaymentStatus.captured.value, result.capture_id)
        await self._set_payment(payment, status=PaymentStatus.captured.value, capture_id=result.capture_id)
        logger.info(f"Autorización {authorization_id} capturada ({result.capture_id}, {result.status})")
        return CaptureResult(capture_id=result.capture_id, status=PaymentStatus.captured.value)

    async def finalize_void(
        self,
        authorization_id: Optional[str],
        order_id: Optional[str] = None,
        payer_id: Optional[str] = None,
    ) -> str:
        authorization_id = require_id(authorization_id, "authorizationId")

        await self._claim(authorization_id, "void")
        try:
            payment = await self._payment_for_authorization(authorization_id, order_id, payer_id)
            await self._set_payment(payment, status=PaymentStatus.authorized.value, authorization_id=authorization_id)
            await self.delayed.void(authorization_id)
        except Exception:
            await self._release(authorization_id, "void")
            raise

        await self._settle(authorization_id, PaymentStatus.voided.value)
        await self._set_payment(payment, status=PaymentStatus.voided.value)
        logger.info(f"Autorización {authorization_id} anulada")
        return PaymentStatus.voided.value

    async def charge_immediate(
        self,
        amount_local,
        booking_id: Optional[str] = None,
        payer_id: Optional[str] = None,
    ) -> Charge:
        """Cobro en moneda local; no hay conversión ni captura posterior."""
        amount = validate_amount(amount_local)
        booking = await self._payable_booking(booking_id, payer_id)

        charge = await self.immediate.create_immediate_charge(amount, self.settings.local_currency)
        if booking:
            await self._record_payment(booking, self.immediate, charge.charge_id, amount)
        return charge

    async def confirm_immediate(self, charge_id: Optional[str], payer_id: Optional[str] = None) -> ChargeConfirmation:
        """
        Verifica en la pasarela el estado del cobro. 'succeeded' lo marca como
        CAPTURED y 'canceled' como FAILED; cualquier otro estado deja el
        registro como está. Un registro ya CAPTURED, FAILED o VOIDED no cambia.
        """
        charge_id = require_id(charge_id, "chargeId")
        payment = await self._payment_for_order(charge_id, payer_id)
        charge = await self.immediate.retrieve_charge(charge_id)

        if charge.status == "succeeded":
            target = PaymentStatus.captured
        elif charge.status == "canceled":
            target = PaymentStatus.failed
        else:
            target = None

        if payment is None:
            return ChargeConfirmation(charge_id=charge_id, gateway_status=charge.status, status=target or PaymentStatus.created)

        current = PaymentStatus(payment["status"])
        if target is None or current in FINAL_PAYMENT_STATES or current == target:
            return ChargeConfirmation(charge_id=charge_id, gateway_status=charge.status, status=current)

        if target == PaymentStatus.captured:
            try:
                await self._claim_booking(payment["booking_id"], charge_id)
            except PaymentAlreadyCaptured:
                logger.error(f"Cobro {charge_id} completado en una reserva ya cobrada; requiere reembolso manual")
                raise
        await self._set_payment(payment, status=target.value)
        logger.info(f"Cobro {charge_id}: {current.value} -> {target.value}")
        return ChargeConfirmation(charge_id=charge_id, gateway_status=charge.status, status=target)

    async def checkout(self, client_id: str, payload: CheckoutCreate) -> tuple[str, OrderQuote | Charge]:
        """
        Reserva + primer intento de pago como una unidad. Si el pago falla, por
        el motivo que sea, la reserva se cancela (acción del cliente) y se
        propaga el error.
        """
        booking_id = await self.bookings.create_booking(
            client_id=client_id,
            provider_id=payload.provider_id,
            service_id=payload.service_id,
            schedule=Schedule(start=payload.start, end=payload.end),
            price_total=payload.price_total,
            address=payload.address,
        )
        try:
            if payload.gateway == "immediate":
                result = await self.charge_immediate(payload.price_total, booking_id, client_id)
            else:
                result = await self.quote_and_create(payload.price_total, booking_id, client_id)
        except Exception as e:
            reason = e.message if isinstance(e, MarketplaceError) else repr(e)
            logger.warning(f"Pago inicial de la reserva {booking_id} falló ({reason}); cancelando reserva")
            await self.bookings.update_booking_status(booking_id, ActorRole.client, BookingAction.cancel)
            raise
        return booking_id, result
