from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, validator

from learnsy.core.database import get_db, serialize_doc
from learnsy.core.dependencies import UserContext, get_current_user
from learnsy.subscriptions.plans import (
    FEATURES, PAYMENT_METHODS, list_plans, has_access, is_active,
    can_access_video, can_access_document
)
from learnsy.subscriptions.service import (
    activate_plan, cancel_subscription, get_effective_subscription
)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


class PaymentRequest(BaseModel):
    plan: str
    payment_method: Optional[str] = None
    upi_id: Optional[str] = None

    @validator("payment_method")
    def validate_method(cls, v):
        if v is not None and v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v


def _subscription_view(subscription: dict) -> dict:
    view = serialize_doc(dict(subscription))
    view["is_active"] = is_active(subscription)
    return view


@router.get("/plans")
async def get_plans():
    return {"success": True, "plans": list_plans()}


@router.post("/process-payment")
async def process_payment(
    payload: PaymentRequest,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    subscription = await activate_plan(
        db, user.user_id, payload.plan, payload.payment_method, payload.upi_id
    )
    return {
        "success": True,
        "message": "Payment processed successfully",
        "subscription": _subscription_view(subscription),
        "transaction_id": subscription["transaction_id"],
    }


@router.get("/current")
async def current_subscription(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    subscription = await get_effective_subscription(db, user.user_id)
    return {"success": True, "subscription": _subscription_view(subscription)}


@router.get("/check-access/{feature}")
async def check_access(
    feature: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if feature not in FEATURES:
        raise HTTPException(status_code=400, detail=f"Unknown feature: {feature}")

    subscription = await get_effective_subscription(db, user.user_id)
    if feature in ("video_limit", "document_limit"):
        # Limited plans still grant some access
        allowed = is_active(subscription) and subscription["features"][feature] != 0
    else:
        allowed = has_access(subscription, feature)

    return {"success": True, "has_access": allowed, "feature": feature}


@router.get("/check-video-access/{video_index}")
async def check_video_access(
    video_index: int,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    subscription = await get_effective_subscription(db, user.user_id)
    return {
        "success": True,
        "can_access": can_access_video(subscription, video_index),
        "video_index": video_index,
    }


@router.get("/check-document-access/{document_index}")
async def check_document_access(
    document_index: int,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    subscription = await get_effective_subscription(db, user.user_id)
    return {
        "success": True,
        "can_access": can_access_document(subscription, document_index),
        "document_index": document_index,
    }


@router.post("/cancel")
async def cancel(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    subscription = await cancel_subscription(db, user.user_id)
    return {
        "success": True,
        "message": "Subscription cancelled successfully",
        "subscription": _subscription_view(subscription),
    }
