from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from learnsy.core.dependencies import UserContext


class AuditLog(BaseModel):
    actor_user_id: str
    actor_email: Optional[str] = None
    role: str
    action: str
    target_type: str
    target_id: str
    metadata: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)


async def log_audit(
    db: AsyncIOMotorDatabase,
    actor: UserContext,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None,
    session=None
):
    """
    Log faculty actions that create, change or remove course content

    Args:
        actor: Authenticated user performing the action
        action: Action performed (e.g., 'create_course', 'delete_material')
        target_type: Resource type (e.g., 'course', 'material', 'quiz')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    entry = AuditLog(
        actor_user_id=actor.user_id,
        actor_email=actor.email,
        role=actor.role or "unknown",
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    await db.audit_logs.insert_one(entry.dict(), session=session)


async def get_audit_trail(
    db: AsyncIOMotorDatabase,
    actor_user_id: str = None,
    target_type: str = None,
    target_id: str = None,
    limit: int = 100
):
    """
    Retrieve audit logs with optional filters, newest first
    """
    query = {}
    if actor_user_id:
        query["actor_user_id"] = actor_user_id
    if target_type:
        query["target_type"] = target_type
    if target_id:
        query["target_id"] = target_id

    cursor = db.audit_logs.find(query).sort("timestamp", -1).limit(limit)
    logs = await cursor.to_list(length=limit)

    for log in logs:
        log.pop("_id", None)
    return logs
