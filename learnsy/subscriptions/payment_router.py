"""
Simulated UPI payment verification.

Verifying a transaction waits PAYMENT_VERIFY_DELAY seconds (standing in
for a gateway round trip) and then activates the plan. Transaction ids are
unique, so a replayed verification is rejected unless the earlier
attempt failed.
"""
import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field, validator
from pymongo.errors import DuplicateKeyError

from learnsy.core.config import settings
from learnsy.core.database import get_db, serialize_doc
from learnsy.core.dependencies import UserContext, get_current_user
from learnsy.subscriptions.plans import PAYMENT_METHODS, PLAN_PRICES, FREE_PLAN
from learnsy.subscriptions.service import activate_plan, validate_payment

router = APIRouter(prefix="/api/payment-verification", tags=["Payment"])


class VerifyPaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=4, max_length=100)
    plan: str
    payment_method: str
    amount: float = Field(..., ge=0)
    upi_id: Optional[str] = None

    @validator("payment_method")
    def validate_method(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v


async def simulate_upi_verification(payload: VerifyPaymentRequest) -> bool:
    await asyncio.sleep(settings.PAYMENT_VERIFY_DELAY)
    return True


async def _mark_failed(db: AsyncIOMotorDatabase, transaction_id: str):
    await db.payment_transactions.update_one(
        {"transaction_id": transaction_id},
        {"$set": {"status": "failed", "verified_at": datetime.utcnow()}}
    )


async def _record_attempt(db: AsyncIOMotorDatabase, record: dict):
    """
    Store a pending verification. Transaction ids are unique; only an
    earlier failed attempt may be replaced by a retry.

    Raises:
        400: Transaction id already pending or verified
    """
    try:
        await db.payment_transactions.insert_one(record)
    except DuplicateKeyError:
        # insert_one stamped a new _id; a replacement may not change it
        record.pop("_id", None)
        result = await db.payment_transactions.replace_one(
            {"transaction_id": record["transaction_id"], "user_id": record["user_id"], "status": "failed"},
            record
        )
        if not result.matched_count:
            raise HTTPException(status_code=400, detail="Transaction already processed")


@router.post("/verify")
async def verify_payment(
    payload: VerifyPaymentRequest,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if payload.plan not in PLAN_PRICES or payload.plan == FREE_PLAN:
        raise HTTPException(status_code=400, detail="Invalid subscription plan")
    if payload.amount != PLAN_PRICES[payload.plan]:
        raise HTTPException(status_code=400, detail="Payment amount does not match plan price")
    validate_payment(payload.plan, payload.payment_method, payload.upi_id)

    record = {
        "transaction_id": payload.transaction_id,
        "user_id": user.user_id,
        "plan": payload.plan,
        "amount": payload.amount,
        "payment_method": payload.payment_method,
        "status": "pending",
        "created_at": datetime.utcnow(),
    }
    await _record_attempt(db, record)

    try:
        verified = await simulate_upi_verification(payload)
    except Exception as e:
        print(f"❌ Payment verification error: {e}")
        verified = False

    if not verified:
        await _mark_failed(db, payload.transaction_id)
        raise HTTPException(status_code=400, detail="Payment verification failed")

    try:
        subscription = await activate_plan(
            db, user.user_id, payload.plan, payload.payment_method,
            payload.upi_id, payload.transaction_id
        )
    except Exception:
        await _mark_failed(db, payload.transaction_id)
        raise

    await db.payment_transactions.update_one(
        {"transaction_id": payload.transaction_id},
        {"$set": {
            "status": "verified",
            "verified_at": datetime.utcnow(),
            "subscription_id": subscription["subscription_id"],
        }}
    )

    return {
        "success": True,
        "message": "Payment verified successfully",
        "subscription": {
            "subscription_id": subscription["subscription_id"],
            "plan": subscription["plan"],
            "status": subscription["status"],
            "end_date": subscription["end_date"],
            "features": subscription["features"],
        },
    }


@router.get("/status/{transaction_id}")
async def payment_status(
    transaction_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    record = await db.payment_transactions.find_one(
        {"transaction_id": transaction_id, "user_id": user.user_id}
    )
    if not record:
        raise HTTPException(status_code=404, detail="Transaction not found")

    subscription = None
    if record.get("subscription_id"):
        subscription = await db.subscriptions.find_one(
            {"subscription_id": record["subscription_id"]},
            {"_id": 0, "plan": 1, "status": 1, "end_date": 1}
        )

    return {
        "success": True,
        "transaction": serialize_doc(record),
        "subscription": subscription,
    }
