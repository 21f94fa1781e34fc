"""OTP gateway: exchange a payment OTP for app entitlements."""

import asyncio
import logging
import re

from fastapi import APIRouter, HTTPException, Query, Request

from iiskills_gateway import supabase_client as db
from iiskills_gateway.catalog import app_name
from iiskills_gateway.guards import check_rate_limit, parse_json_body, text_field
from iiskills_gateway.services import entitlements, otp_service
from iiskills_gateway.services.notifier import is_synthetic_email, send_welcome_email
from iiskills_gateway.services.signatures import format_phone_e164

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_OTP_FORMAT_RE = re.compile(r"^[A-Za-z0-9]{6,8}$")


def _owner_profile(email: str | None, phone: str | None) -> dict | None:
    if email:
        profile = db.get_profile_by_email(email)
        if profile:
            return profile
    if phone:
        return db.get_profile_by_phone(phone)
    return None


@router.post("/verify-otp")
async def verify_otp(request: Request):
    check_rate_limit(request)
    body = parse_json_body(await request.body())

    otp = text_field(body, "otp")
    app_id = text_field(body, "appId")
    email = text_field(body, "email").lower() or None
    phone = format_phone_e164(text_field(body, "phone"))
    txn = text_field(body, "paymentTransactionId") or None

    if not otp or not app_id or not (email or phone or txn):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: otp, appId and one of email, phone, paymentTransactionId",
        )
    if email and not otp_service.is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if not _OTP_FORMAT_RE.match(otp):
        raise HTTPException(
            status_code=400,
            detail="Invalid OTP format. OTP should be 6-8 alphanumeric characters.",
        )

    # Phone-only purchases are recorded under a synthetic address; a real
    # email sent alongside the phone or reference is the address to claim them with.
    claim_email = email if email and not is_synthetic_email(email) else None
    result = otp_service.verify_otp(otp, app_id, email=email, phone=phone,
                                    payment_transaction_id=txn)
    if result.get("error") == otp_service.NOT_FOUND_ERROR and claim_email and (phone or txn):
        result = otp_service.verify_otp(otp, app_id, phone=phone, payment_transaction_id=txn)
    if not result["success"]:
        logger.info("OTP verification failed for %s/%s: %s", email or phone or txn, app_id,
                    result["error"])
        raise HTTPException(status_code=400, detail={
            "error": result["error"],
            "message": "OTP verification failed. Please check your OTP and try again.",
        })

    owner_email = result.get("email")
    if is_synthetic_email(owner_email):
        # The buyer claims a phone-only purchase with their own address
        owner_email = claim_email
    owner_phone = result.get("phone")

    user_id = result.get("user_id")
    if not user_id:
        profile = _owner_profile(owner_email, owner_phone)
        if profile:
            user_id = profile["id"]

    try:
        granted = entitlements.grant_bundle_entitlements(
            app_id,
            user_id=user_id,
            email=owner_email,
            phone=owner_phone,
            source="otp",
            payment_reference=result.get("payment_transaction_id"),
        )
    except Exception as e:
        logger.error("Entitlement grant failed after OTP for %s: %s", app_id, e)
        raise HTTPException(status_code=500, detail="OTP verified but entitlement grant failed")

    if owner_email:
        await asyncio.to_thread(send_welcome_email, owner_email, app_name(app_id))

    db.log_action("otp_verified", "otp", app_id,
                  f"{owner_email or owner_phone} unlocked {len(granted)} app(s)")

    return {
        "success": True,
        "message": "Access granted successfully! Welcome aboard!",
        "appId": app_id,
        "email": owner_email,
        "entitlementGranted": bool(granted),
        "unlockedApps": [row.get("app_id") for row in granted],
    }


@router.get("/entitlements/check")
async def check_entitlement(
    appId: str = Query(...),
    email: str = Query(""),
    phone: str = Query(""),
):
    email = email.strip().lower() or None
    if email and not otp_service.is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email format")
    return {
        "appId": appId,
        "hasAccess": entitlements.has_access(appId, email=email, phone=format_phone_e164(phone)),
    }
