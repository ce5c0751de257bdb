import secrets
import time
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import generate_id, transaction
from learnsy.subscriptions.plans import (
    FREE_PLAN, PLAN_PRICES, features_for_plan, end_date_for, is_active, free_subscription
)


def generate_transaction_id() -> str:
    return f"TXN_{int(time.time() * 1000)}_{secrets.token_hex(4).upper()}"


async def get_current_subscription(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    """
    Latest active subscription for the user. Subscriptions past their
    end date are marked expired on read.
    """
    subscription = await db.subscriptions.find_one(
        {"user_id": user_id, "status": "active"}, sort=[("created_at", -1)]
    )
    if subscription and not is_active(subscription):
        await db.subscriptions.update_one(
            {"subscription_id": subscription["subscription_id"]},
            {"$set": {"status": "expired", "updated_at": datetime.utcnow()}}
        )
        await db.users.update_one({"user_id": user_id}, {"$set": {"subscription_plan": FREE_PLAN}})
        return None
    return subscription


async def get_effective_subscription(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    """Current subscription, or the implicit free plan"""
    return await get_current_subscription(db, user_id) or free_subscription(user_id)


def validate_payment(plan: str, payment_method: Optional[str], upi_id: Optional[str]):
    """
    Raises:
        400: Unknown plan, or payment details missing for a paid plan
    """
    if plan not in PLAN_PRICES:
        raise HTTPException(status_code=400, detail="Invalid subscription plan")
    if plan != FREE_PLAN and not payment_method:
        raise HTTPException(status_code=400, detail="Payment method is required for paid plans")
    if payment_method == "upi" and not upi_id:
        raise HTTPException(status_code=400, detail="UPI ID is required for UPI payments")


async def activate_plan(
    db: AsyncIOMotorDatabase,
    user_id: str,
    plan: str,
    payment_method: Optional[str] = None,
    upi_id: Optional[str] = None,
    transaction_id: Optional[str] = None
) -> dict:
    """
    Replace the user's active subscription with ``plan``.
    Previous active subscriptions are cancelled in the same transaction.
    """
    validate_payment(plan, payment_method, upi_id)

    now = datetime.utcnow()
    subscription = {
        "subscription_id": generate_id("SUB"),
        "user_id": user_id,
        "plan": plan,
        "status": "active",
        "start_date": now,
        "end_date": end_date_for(plan, now),
        "price": PLAN_PRICES[plan],
        "payment_method": payment_method,
        "upi_id": upi_id,
        "transaction_id": transaction_id or (generate_transaction_id() if plan != FREE_PLAN else None),
        "features": features_for_plan(plan),
        "created_at": now,
        "updated_at": now,
    }

    async with transaction(db) as session:
        await db.subscriptions.update_many(
            {"user_id": user_id, "status": "active"},
            {"$set": {"status": "cancelled", "updated_at": now}},
            session=session
        )
        await db.subscriptions.insert_one(subscription, session=session)
        await db.users.update_one(
            {"user_id": user_id}, {"$set": {"subscription_plan": plan}}, session=session
        )

    print(f"✅ Subscription {plan} activated for {user_id}")
    return subscription


async def cancel_subscription(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    subscription = await get_current_subscription(db, user_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="No active subscription found")

    async with transaction(db) as session:
        await db.subscriptions.update_one(
            {"subscription_id": subscription["subscription_id"]},
            {"$set": {"status": "cancelled", "updated_at": datetime.utcnow()}},
            session=session
        )
        await db.users.update_one(
            {"user_id": user_id}, {"$set": {"subscription_plan": FREE_PLAN}}, session=session
        )

    subscription["status"] = "cancelled"
    return subscription


async def create_subscription_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for subscriptions and payments"""
    try:
        await db.subscriptions.create_index("subscription_id", unique=True)
        await db.subscriptions.create_index([("user_id", 1), ("status", 1), ("created_at", -1)])
        await db.subscriptions.create_index("transaction_id", sparse=True)
        await db.payment_transactions.create_index("transaction_id", unique=True)
        await db.payment_transactions.create_index([("user_id", 1), ("created_at", -1)])
        print("✅ Subscription indexes created successfully")
    except Exception as e:
        print(f"⚠️  Index creation warning: {e}")
