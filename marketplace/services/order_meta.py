# marketplace/services/order_meta.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..errors import NotFound
from ..utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderMeta:
    order_id: str
    settlement_amount: float
    rate: float
    created_at: datetime


def _aware(value: datetime) -> datetime:
    # pymongo devuelve datetimes naive en UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class OrderMetaStore:
    """
    Importe y tipo calculados al crear una orden, indexados por el id de orden
    de la pasarela. Se escriben una sola vez y caducan por TTL.
    """

    def __init__(self, db: AsyncIOMotorDatabase, ttl_seconds: int):
        self.collection = db.order_meta
        self.ttl = timedelta(seconds=ttl_seconds)

    async def put(self, order_id: str, settlement_amount: float, rate: float) -> OrderMeta:
        entry = OrderMeta(order_id, settlement_amount, rate, utcnow())
        try:
            await self.collection.insert_one({
                "_id": order_id,
                "settlement_amount": entry.settlement_amount,
                "rate": entry.rate,
                "created_at": entry.created_at,
            })
        except DuplicateKeyError:
            logger.warning(f"Metadatos de la orden {order_id} ya existen; se conserva la primera escritura")
            return await self.get(order_id)
        return entry

    async def get(self, order_id: str) -> OrderMeta:
        doc = await self.collection.find_one({"_id": order_id})
        if not doc:
            raise NotFound("Order meta not found")
        created_at = _aware(doc["created_at"])
        # El índice TTL de Mongo purga con retraso; aquí se aplica en la lectura
        if utcnow() - created_at > self.ttl:
            raise NotFound("Order meta not found")
        return OrderMeta(order_id, float(doc["settlement_amount"]), float(doc["rate"]), created_at)
