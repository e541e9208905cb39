from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from .config import get_settings

_settings = get_settings()
_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.bookings.create_index([("client_id", 1), ("provider_id", 1)])
    await db.bookings.create_index([("status", 1)])
    await db.payments.create_index([("booking_id", 1)])
    await db.payments.create_index([("order_id", 1)])
    await db.payments.create_index([("client_id", 1), ("provider_id", 1)])
    # Los metadatos de orden caducan solos (índice TTL sobre created_at)
    await db.order_meta.create_index(
        [("created_at", 1)], expireAfterSeconds=_settings.order_meta_ttl_seconds
    )


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(_settings.mongodb_uri)
        _db = _client[_settings.db_name]
        await ensure_indexes(_db)
    return _db
