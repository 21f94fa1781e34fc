"""Payment records: validation and idempotent storage of gateway confirmations."""

import logging
from decimal import Decimal

from iiskills_gateway import supabase_client as db
from iiskills_gateway.catalog import DEFAULT_APP_NAME, get_app

logger = logging.getLogger(__name__)

# Required confirmation fields, in the order they are checked
CONFIRMATION_FIELDS = ("purchaseId", "appId", "razorpayPaymentId", "customerPhone", "amountPaise")

ORIGIN_GATEWAY = "aienter"
ORIGIN_DEFAULT_APP = "iiskills"


def synthetic_email(razorpay_payment_id: str) -> str:
    """Record-keeping address for phone-only purchases. Never mailed."""
    return f"{razorpay_payment_id}@payment.iiskills.cloud"


def paise_to_rupees(amount_paise) -> float:
    return float(Decimal(str(amount_paise or 0)) / 100)


def resolve_app_name(app_id: str) -> str:
    app = get_app(app_id)
    if not app:
        logger.warning("Unknown appId in payment: %s", app_id)
        return DEFAULT_APP_NAME
    return app["name"]


def validate_confirmation(payload: dict) -> None:
    """Raise ValueError naming the first missing required field.

    ``amountPaise`` of 0 is allowed; only absent/null fails.
    """
    for field in CONFIRMATION_FIELDS:
        value = payload.get(field)
        if field == "amountPaise":
            if value is None:
                raise ValueError(f"{field} is required")
        elif not value:
            raise ValueError(f"{field} is required")


def store_confirmation(payload: dict, phone: str) -> tuple[str | None, bool]:
    """Insert a payment_confirmations row.

    Returns (confirmation_id, duplicate). Storage problems other than a
    duplicate are logged and yield (None, False) so OTP dispatch can proceed.
    """
    if not db.is_configured():
        logger.warning("Supabase not configured, skipping confirmation storage")
        return None, False

    payment_id = payload["razorpayPaymentId"]
    try:
        row = db.record_payment_confirmation({
            "purchase_id": payload["purchaseId"],
            "app_id": payload["appId"],
            "course_slug": payload.get("courseSlug"),
            "amount_paise": payload["amountPaise"],
            "currency": payload.get("currency") or "INR",
            "customer_phone": phone,
            "razorpay_order_id": payload.get("razorpayOrderId"),
            "razorpay_payment_id": payment_id,
            "paid_at": payload.get("paidAt"),
        })
    except db.DuplicateRowError:
        logger.info("Duplicate razorpayPaymentId %s, already processed", payment_id)
        existing = db.get_payment_confirmation(payment_id)
        return (existing or {}).get("id"), True
    except Exception as e:
        logger.error("Failed to store confirmation for %s: %s", payment_id, e)
        return None, False
    return row.get("id"), False


def store_origin_payment(payload: dict, app_id: str, phone: str | None,
                         email: str | None) -> tuple[dict | None, bool]:
    """Insert a payments row from the origin callback.

    Returns (row, duplicate); row is None when storage was skipped or failed.
    """
    if not db.is_configured():
        logger.warning("Supabase not configured, skipping payment storage")
        return None, False

    payment_id = str(payload["razorpay_payment_id"]).strip()
    try:
        row = db.record_payment({
            "payment_id": payment_id,
            "payment_gateway": ORIGIN_GATEWAY,
            "app_id": app_id,
            "amount": paise_to_rupees(payload.get("amount")),
            "currency": payload.get("currency") or "INR",
            "status": "captured",
            "user_email": email,
            "user_phone": phone,
            "payment_notes": {
                "razorpay_order_id": payload.get("razorpay_order_id"),
                "origin": payload.get("origin") or "aienter.in",
            },
            "created_at": db.now_iso(),
        })
    except db.DuplicateRowError:
        logger.info("Duplicate origin payment %s, already processed", payment_id)
        return db.get_payment(payment_id), True
    except Exception as e:
        logger.error("Failed to store origin payment %s: %s", payment_id, e)
        return None, False
    return row, False
