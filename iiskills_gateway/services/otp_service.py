"""App-bound OTPs: generation, delivery, hashed storage and verification.

OTPs are bound to one app (and optionally one payment transaction). Only an
HMAC-SHA256 of the code and its context is stored; the plain code leaves the
process only through email/SMS, or to an admin caller that asks for it.
"""

import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone

from iiskills_gateway import config
from iiskills_gateway import supabase_client as db
from iiskills_gateway.services import notifier

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_TTL_MINUTES = 10
MAX_VERIFICATION_ATTEMPTS = 5
NOT_FOUND_ERROR = "Invalid OTP or OTP not found for this app"

_DEV_FALLBACK_SECRET = "dev-insecure-fallback-key-do-not-use-in-production"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+\d{10,15}$")


class OTPError(Exception):
    """OTP could not be issued."""


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def is_valid_phone(phone: str | None) -> bool:
    return bool(phone) and bool(_PHONE_RE.match(phone))


def _otp_secret() -> str:
    secret = config.OTP_SECRET
    if secret:
        return secret
    if config.ENVIRONMENT != "development":
        raise OTPError("OTP_SECRET environment variable is required")
    logger.warning("OTP_SECRET not set, using insecure fallback for development only")
    return _DEV_FALLBACK_SECRET


def hash_otp(otp: str, app_id: str, payment_transaction_id: str | None = None,
             email: str | None = None, phone: str | None = None) -> str:
    """HMAC-SHA256 over ``otp|app_id|txn|email|phone`` (normalised, "" for missing)."""
    message = "|".join([
        str(otp),
        app_id,
        payment_transaction_id or "",
        (email or "").lower().strip(),
        (phone or "").strip(),
    ])
    return hmac.new(_otp_secret().encode(), message.encode(), hashlib.sha256).hexdigest()


def generate_otp() -> str:
    """Uniform 6-digit code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def generate_and_dispatch_otp(
    app_id: str,
    app_name: str,
    email: str | None = None,
    phone: str | None = None,
    user_id: str | None = None,
    payment_transaction_id: str | None = None,
    reason: str = "payment_verification",
    admin_generated: bool = False,
    return_code: bool = False,
) -> dict:
    """Issue an OTP for an identity + app and deliver it.

    Raises ValueError on invalid input and OTPError when the record cannot be
    stored. Delivery failures are reported through ``email_sent``/``sms_sent``.
    """
    if not app_id or not app_name:
        raise ValueError("appId and appName are required")
    if not email and not phone:
        raise ValueError("email or phone is required")
    if email and not is_valid_email(email.strip()):
        raise ValueError("Invalid email format")
    if phone and not is_valid_phone(phone.strip()):
        raise ValueError("Invalid phone format. Phone must be in E.164 format (e.g., +1234567890)")

    email = email.lower().strip() if email else None
    phone = phone.strip() if phone else None

    otp = generate_otp()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=OTP_TTL_MINUTES)
    otp_hash = hash_otp(otp, app_id, payment_transaction_id, email, phone)

    if email and phone:
        channel = "both"
    elif phone:
        channel = "sms"
    else:
        channel = "email"

    try:
        db.expire_pending_otps(app_id, email=email, phone=phone if not email else None)
    except Exception as e:
        logger.error("Failed to invalidate previous OTPs for %s/%s: %s", email or phone, app_id, e)

    email_sent = notifier.send_otp_email(email, otp, app_name) if email else False
    sms_sent = notifier.send_otp_sms(phone, otp, app_name) if phone else False

    try:
        db.insert_otp({
            "user_id": user_id,
            "email": email,
            "phone": phone,
            "app_id": app_id,
            "otp_hash": otp_hash,
            "expires_at": expires_at.isoformat(),
            "delivery_channel": channel,
            "email_sent": email_sent,
            "sms_sent": sms_sent,
            "reason": reason,
            "payment_transaction_id": payment_transaction_id,
            "admin_generated": admin_generated,
        })
    except Exception as e:
        logger.error("Failed to store OTP for %s/%s: %s", email or phone, app_id, e)
        raise OTPError(f"Failed to store OTP: {e}") from e

    logger.info("OTP issued for app %s via %s (email_sent=%s, sms_sent=%s)",
                app_id, channel, email_sent, sms_sent)

    result = {
        "success": True,
        "delivery_channel": channel,
        "email_sent": email_sent,
        "sms_sent": sms_sent,
        "expires_at": expires_at.isoformat(),
        "app_id": app_id,
        "message": f"OTP sent successfully via {channel}",
    }
    if return_code:
        result["otp"] = otp
    return result


def verify_otp(otp: str, app_id: str, email: str | None = None, phone: str | None = None,
               payment_transaction_id: str | None = None) -> dict:
    """Check a submitted code against the newest eligible record.

    A mismatch burns one attempt; a match stamps verified_at exactly once.
    """
    if not otp or not app_id or not (email or phone or payment_transaction_id):
        return {"success": False, "error": "OTP, appId and an email, phone or payment reference are required"}
    if email and not is_valid_email(email.strip()):
        return {"success": False, "error": "Invalid email format"}

    email = email.lower().strip() if email else None
    phone = phone.strip() if phone else None

    try:
        record = db.find_active_otp(
            app_id, email=email, phone=phone,
            payment_transaction_id=payment_transaction_id,
            max_attempts=MAX_VERIFICATION_ATTEMPTS,
        )
    except Exception as e:
        logger.error("OTP lookup failed for %s/%s: %s", email or phone, app_id, e)
        return {"success": False, "error": "Failed to verify OTP"}

    if not record:
        return {"success": False, "error": NOT_FOUND_ERROR}

    # Hash with the stored context so it matches what was issued
    candidate = hash_otp(
        str(otp).strip(), app_id,
        record.get("payment_transaction_id"),
        record.get("email"),
        record.get("phone"),
    )
    if not hmac.compare_digest(candidate, record.get("otp_hash") or ""):
        try:
            db.increment_otp_attempts(record["id"], record.get("verification_attempts") or 0)
        except Exception as e:
            logger.error("Failed to record OTP attempt on %s: %s", record["id"], e)
        return {"success": False, "error": "Invalid OTP"}

    try:
        verified = db.mark_otp_verified(record["id"])
    except Exception as e:
        logger.error("Failed to mark OTP %s verified: %s", record["id"], e)
        return {"success": False, "error": "Failed to verify OTP"}
    if not verified:
        return {"success": False, "error": "OTP already used"}

    return {
        "success": True,
        "message": "OTP verified successfully",
        "app_id": record.get("app_id"),
        "user_id": record.get("user_id"),
        "email": record.get("email"),
        "phone": record.get("phone"),
        "payment_transaction_id": record.get("payment_transaction_id"),
    }


def has_valid_otp(email: str, app_id: str) -> bool:
    try:
        return db.find_active_otp(app_id, email=email.lower().strip()) is not None
    except Exception as e:
        logger.error("Error checking for valid OTP: %s", e)
        return False


def get_otp_stats(email: str, app_id: str) -> dict | None:
    """Counts over the last 10 OTPs for an identity + app."""
    try:
        rows = db.get_recent_otps(email.lower().strip(), app_id)
    except Exception as e:
        logger.error("Error fetching OTP stats: %s", e)
        return None

    now = datetime.now(timezone.utc)
    verified = sum(1 for r in rows if r.get("verified_at"))
    expired = sum(
        1 for r in rows
        if not r.get("verified_at") and datetime.fromisoformat(r["expires_at"]) < now
    )
    return {
        "total": len(rows),
        "verified": verified,
        "expired": expired,
        "pending": len(rows) - verified - expired,
        "recent": [
            {k: r.get(k) for k in ("id", "delivery_channel", "created_at", "expires_at",
                                   "verified_at", "verification_attempts")}
            for r in rows
        ],
    }
