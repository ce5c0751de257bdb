"""
Subscription plans and feature rules.

Prices are in INR and can be overridden through the environment.
"""
import calendar
import os
from datetime import datetime
from typing import Optional

FREE_PLAN = "free"

PLAN_MONTHS = {
    "1 Month": 1,
    "3 Months": 3,
    "6 Months": 6,
    "12 Months": 12,
}

PLAN_PRICES = {
    FREE_PLAN: 0,
    "1 Month": int(os.getenv("PLAN_1_MONTH_PRICE", "149")),
    "3 Months": int(os.getenv("PLAN_3_MONTHS_PRICE", "349")),
    "6 Months": int(os.getenv("PLAN_6_MONTHS_PRICE", "649")),
    "12 Months": int(os.getenv("PLAN_12_MONTHS_PRICE", "1099")),
}

FREE_VIDEO_LIMIT = int(os.getenv("FREE_VIDEO_LIMIT", "3"))
FREE_DOCUMENT_LIMIT = int(os.getenv("FREE_DOCUMENT_LIMIT", "2"))

UNLIMITED = -1

PAYMENT_METHODS = ("bhim", "paytm", "googlepay", "phonepe", "upi")

# Lifetime free plan still needs an end date
FREE_PLAN_END = datetime(2099, 12, 31)

FEATURES = (
    "full_course_access", "ai_tools", "notes_access",
    "progress_tracking", "video_limit", "document_limit",
)


def features_for_plan(plan: str) -> dict:
    paid = plan != FREE_PLAN
    return {
        "full_course_access": paid,
        "ai_tools": paid,
        "notes_access": paid,
        "progress_tracking": True,
        "video_limit": UNLIMITED if paid else FREE_VIDEO_LIMIT,
        "document_limit": UNLIMITED if paid else FREE_DOCUMENT_LIMIT,
    }


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day (Jan 31 + 1 month -> Feb 28/29)"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def end_date_for(plan: str, start: Optional[datetime] = None) -> datetime:
    if plan == FREE_PLAN:
        return FREE_PLAN_END
    return add_months(start or datetime.utcnow(), PLAN_MONTHS[plan])


def list_plans() -> list:
    plans = [{
        "id": "free",
        "name": "Free Trial",
        "plan": FREE_PLAN,
        "price": 0,
        "duration": "Lifetime",
        "features": features_for_plan(FREE_PLAN),
    }]
    for plan, months in PLAN_MONTHS.items():
        plans.append({
            "id": f"{months}-month" if months == 1 else f"{months}-months",
            "name": plan,
            "plan": plan,
            "price": PLAN_PRICES[plan],
            "duration": plan.lower(),
            "features": features_for_plan(plan),
        })
    return plans


# ==================== ACCESS RULES ====================

def is_active(subscription: Optional[dict], now: Optional[datetime] = None) -> bool:
    if not subscription:
        return False
    now = now or datetime.utcnow()
    end_date = subscription.get("end_date")
    return subscription.get("status") == "active" and end_date is not None and end_date > now


def has_access(subscription: Optional[dict], feature: str, now: Optional[datetime] = None) -> bool:
    if not is_active(subscription, now):
        return False
    return subscription.get("features", {}).get(feature) is True


def _within_limit(limit: int, index: int) -> bool:
    if limit == UNLIMITED:
        return True
    return index < limit


def can_access_video(subscription: Optional[dict], index: int, now: Optional[datetime] = None) -> bool:
    if not is_active(subscription, now):
        return False
    return _within_limit(subscription["features"]["video_limit"], index)


def can_access_document(subscription: Optional[dict], index: int, now: Optional[datetime] = None) -> bool:
    if not is_active(subscription, now):
        return False
    return _within_limit(subscription["features"]["document_limit"], index)


def free_subscription(user_id: str) -> dict:
    """Implicit subscription for users who never subscribed"""
    return {
        "user_id": user_id,
        "plan": FREE_PLAN,
        "status": "active",
        "start_date": None,
        "end_date": FREE_PLAN_END,
        "price": 0,
        "features": features_for_plan(FREE_PLAN),
    }
