import base64
import io

import qrcode
from fastapi import APIRouter, HTTPException, Query

from learnsy.core.config import settings
from learnsy.subscriptions.plans import PAYMENT_METHODS

router = APIRouter(prefix="/api/qr", tags=["Payment"])

QR_TARGET_WIDTH = 300
QR_BORDER = 2


def format_amount(amount) -> str:
    # 149.0 -> 149, 149.5 -> 149.5
    return f"{float(amount):.2f}".rstrip("0").rstrip(".")


def build_upi_string(amount, plan: str) -> str:
    return (
        f"upi://pay?pa={settings.UPI_ID}&pn={settings.UPI_MERCHANT_NAME}"
        f"&am={format_amount(amount)}&cu=INR&tn={plan} Subscription"
    )


def qr_data_url(data: str) -> str:
    """Render ``data`` as a PNG QR code roughly QR_TARGET_WIDTH pixels wide"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        border=QR_BORDER,
    )
    qr.add_data(data)
    qr.make(fit=True)
    qr.box_size = max(1, QR_TARGET_WIDTH // (qr.modules_count + 2 * QR_BORDER))

    image = qr.make_image(fill_color="#000000", back_color="#FFFFFF")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


# Registered before /{payment_method} so "upi" is not captured as a method
@router.get("/upi/details")
async def upi_details(amount: float = Query(None, ge=0), plan: str = Query(None)):
    return {
        "success": True,
        "upi_id": settings.UPI_ID,
        "amount": amount,
        "plan": plan,
        "merchant_name": settings.UPI_MERCHANT_NAME,
        "currency": "INR",
    }


@router.get("/{payment_method}")
async def generate_qr(
    payment_method: str,
    amount: float = Query(..., gt=0),
    plan: str = Query(..., min_length=1, max_length=50)
):
    if payment_method not in PAYMENT_METHODS:
        raise HTTPException(status_code=400, detail="Unsupported payment method")

    upi_string = build_upi_string(amount, plan)
    try:
        qr_code = qr_data_url(upi_string)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to generate QR code: {str(e)}")

    return {
        "success": True,
        "qr_code": qr_code,
        "upi_id": settings.UPI_ID,
        "upi_string": upi_string,
        "payment_method": payment_method,
    }
