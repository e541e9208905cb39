# marketplace/services/bookings.py
"""
Máquina de estados de las reservas.

Las transiciones dependen del estado actual y del rol de quien actúa.
ACCEPTED y CONFIRMED se comportan igual en todas las reglas; las reservas
nuevas sólo llegan a ACCEPTED.
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..errors import Forbidden, IllegalTransition, InvalidInput, NotFound
from ..schemas.booking import ActorRole, BookingAction, BookingStatus, Schedule
from ..utils import require_id, to_object_id, utcnow, is_positive_amount, round_money

logger = logging.getLogger(__name__)

S = BookingStatus
R = ActorRole
A = BookingAction

TRANSITIONS: dict[tuple[BookingStatus, ActorRole, BookingAction], BookingStatus] = {
    (S.pending, R.provider, A.accept): S.accepted,
    (S.pending, R.provider, A.reject): S.rejected,
    (S.pending, R.client, A.cancel): S.cancelled_by_client,
}
for _active in (S.accepted, S.confirmed):
    TRANSITIONS.update({
        (_active, R.client, A.cancel): S.cancelled_by_client,
        (_active, R.provider, A.start): S.in_progress,
        (_active, R.provider, A.cancel): S.cancelled_by_provider,
    })
TRANSITIONS[(S.in_progress, R.provider, A.complete)] = S.completed

TERMINAL = frozenset({S.rejected, S.completed, S.cancelled_by_client, S.cancelled_by_provider})


def next_status(current: BookingStatus, role: ActorRole, action: BookingAction) -> BookingStatus:
    target = TRANSITIONS.get((current, role, action))
    if target is None:
        raise IllegalTransition(current.value, action.value, role.value)
    return target


def available_actions(current: BookingStatus, role: ActorRole) -> list[BookingAction]:
    return [a for a in BookingAction if (current, role, a) in TRANSITIONS]


def status_of(doc: dict) -> BookingStatus:
    raw = doc.get("status")
    try:
        return BookingStatus(raw)
    except ValueError:
        raise InvalidInput(f"Estado de reserva inválido: {raw}")


class BookingService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.bookings

    async def create_booking(
        self,
        client_id: str,
        provider_id: str,
        service_id: str,
        schedule: Schedule,
        price_total: float,
        address: Optional[str] = None,
    ) -> str:
        """Crea la reserva en PENDING y devuelve su id."""
        client_id = require_id(client_id, "clientId")
        provider_id = require_id(provider_id, "providerId")
        service_id = require_id(service_id, "serviceId")
        if client_id == provider_id:
            raise InvalidInput("Un proveedor no puede reservarse a sí mismo")
        if schedule.end <= schedule.start:
            raise InvalidInput("end debe ser posterior a start")
        if not is_positive_amount(price_total):
            raise InvalidInput("priceTotal debe ser un número positivo")

        now = utcnow()
        doc = {
            "client_id": client_id,
            "provider_id": provider_id,
            "service_id": service_id,
            "start": schedule.start,
            "end": schedule.end,
            "price_total": round_money(price_total),
            "address": address,
            "status": BookingStatus.pending.value,
            "history": [],
            "created_at": now,
            "updated_at": now,
        }
        res = await self.collection.insert_one(doc)
        logger.info(f"Reserva {res.inserted_id} creada ({client_id} -> {provider_id})")
        return str(res.inserted_id)

    async def get_booking(self, booking_id: str) -> dict:
        doc = await self.collection.find_one({"_id": to_object_id(booking_id, "bookingId")})
        if not doc:
            raise NotFound("Reserva no encontrada")
        return doc

    async def list_for_user(self, user_id: str, limit: int = 500) -> list[dict]:
        return await self.collection.find({
            "$or": [{"client_id": user_id}, {"provider_id": user_id}]
        }).sort("start", 1).to_list(limit)

    @staticmethod
    def role_of(booking: dict, user_id: str) -> ActorRole:
        if booking.get("client_id") == user_id:
            return ActorRole.client
        if booking.get("provider_id") == user_id:
            return ActorRole.provider
        raise Forbidden("Sin acceso a esta reserva")

    async def update_booking_status(
        self,
        booking_id: str,
        actor_role: ActorRole,
        action: BookingAction,
    ) -> BookingStatus:
        """
        Valida y aplica una acción sobre la reserva.

        La escritura es condicional al estado leído (compare-and-swap): si otra
        petición cambió la reserva entre la lectura y la escritura, ésta falla
        con IllegalTransition indicando el estado que encontró.
        """
        try:
            actor_role = ActorRole(actor_role)
            action = BookingAction(action)
        except ValueError as e:
            raise InvalidInput(str(e))
        doc = await self.get_booking(booking_id)
        current = status_of(doc)
        target = next_status(current, actor_role, action)

        now = utcnow()
        updated = await self.collection.find_one_and_update(
            {"_id": doc["_id"], "status": current.value},
            {
                "$set": {"status": target.value, "updated_at": now},
                "$push": {"history": {
                    "from": current.value,
                    "to": target.value,
                    "role": actor_role.value,
                    "action": action.value,
                    "at": now,
                }},
            },
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            latest = await self.collection.find_one({"_id": doc["_id"]})
            if not latest:
                raise NotFound("Reserva no encontrada")
            found = latest.get("status")
            logger.warning(
                f"Reserva {booking_id}: {action.value} perdió la carrera ({current.value} -> {found})"
            )
            raise IllegalTransition(str(found), action.value, actor_role.value)

        logger.info(f"Reserva {booking_id}: {current.value} → {target.value} ({actor_role.value} {action.value})")
        return target
