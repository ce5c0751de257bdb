import uuid
from contextlib import asynccontextmanager
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from learnsy.core.config import settings

client = AsyncIOMotorClient(settings.MONGO_URL)
db = client[settings.MONGO_DB_NAME]


def get_db_instance() -> AsyncIOMotorDatabase:
    return db


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate a prefixed document id, e.g. CRS_1A2B3C4D5E6F"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_many(docs: list) -> list:
    return [serialize_doc(doc) for doc in docs]


@asynccontextmanager
async def transaction(db: AsyncIOMotorDatabase):
    """
    Group multi-document writes into one MongoDB transaction.

    Yields the session to pass as ``session=`` to every write. When
    transactions are disabled (standalone servers, tests) it yields None
    and the writes run individually.
    """
    if not settings.MONGO_TRANSACTIONS:
        yield None
        return

    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session
