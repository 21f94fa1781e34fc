"""Payment webhooks: signed confirmations from aienter.in.

Two senders post here:
- /api/payments/confirm: aienter.in's checkout, phone-only, timestamped.
- /api/payments/ai-enter/callback: the origin site's payment.success event.

Both are idempotent on the Razorpay payment id via a unique constraint and
answer with an OTP dispatched to the buyer.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from iiskills_gateway import config
from iiskills_gateway.guards import check_rate_limit, parse_json_body, text_field
from iiskills_gateway.services import otp_service, payments
from iiskills_gateway.services.notifier import send_thank_you_email
from iiskills_gateway.services.signatures import check_timestamp, format_phone_e164, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments")


@router.post("/confirm")
async def confirm_payment(request: Request):
    check_rate_limit(request)
    raw_body = await request.body()

    secret = config.AIENTER_CONFIRMATION_SIGNING_SECRET
    if not secret:
        logger.error("AIENTER_CONFIRMATION_SIGNING_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Server misconfiguration")

    signature = request.headers.get("x-aienter-signature", "")
    if not signature:
        raise HTTPException(status_code=401, detail="Missing signature")
    if not verify_signature(secret, raw_body, signature):
        logger.warning("Signature mismatch on payment confirmation")
        raise HTTPException(status_code=401, detail="Invalid signature")

    timestamp = request.headers.get("x-aienter-timestamp")
    if timestamp:
        try:
            fresh = check_timestamp(timestamp)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid timestamp header")
        if not fresh:
            logger.warning("Payment confirmation timestamp outside window: %s", timestamp)
            raise HTTPException(status_code=401, detail="Request timestamp too old or too far in the future")

    payload = parse_json_body(raw_body)
    try:
        payments.validate_confirmation(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    app_id = text_field(payload, "appId")
    app_name = payments.resolve_app_name(app_id)
    payment_id = text_field(payload, "razorpayPaymentId")
    phone = format_phone_e164(payload["customerPhone"])

    confirmation_id, duplicate = payments.store_confirmation(payload, phone)
    if duplicate:
        return {
            "success": True,
            "confirmationId": confirmation_id,
            "message": "Payment already confirmed (idempotent)",
        }

    try:
        result = await asyncio.to_thread(
            otp_service.generate_and_dispatch_otp,
            app_id=app_id,
            app_name=app_name,
            email=payments.synthetic_email(payment_id),
            phone=phone,
            payment_transaction_id=payment_id,
        )
    except (ValueError, otp_service.OTPError) as e:
        logger.error("OTP dispatch failed for %s: %s", payment_id, e)
        return JSONResponse(status_code=500, content={
            "success": False,
            "confirmationId": confirmation_id,
            "error": "Payment confirmed but OTP dispatch failed",
        })

    logger.info("Payment %s confirmed for %s, OTP via %s (sms_sent=%s)",
                payment_id, app_id, result["delivery_channel"], result["sms_sent"])
    return {"success": True, "confirmationId": confirmation_id, "message": "confirmed"}


@router.post("/ai-enter/callback")
async def origin_callback(request: Request):
    check_rate_limit(request)
    raw_body = await request.body()

    secret = config.ORIGIN_WEBHOOK_SECRET
    if secret:
        signature = request.headers.get("x-ai-enter-signature", "")
        if not signature:
            raise HTTPException(status_code=401, detail="Missing signature")
        if not verify_signature(secret, raw_body, signature):
            logger.warning("Signature mismatch on origin callback")
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logger.warning("ORIGIN_WEBHOOK_SECRET not set, skipping signature check")

    payload = parse_json_body(raw_body)

    event = payload.get("event")
    if event != "payment.success":
        logger.info("Ignoring origin event: %s", event)
        return {"message": "Event not processed"}

    payment_id = text_field(payload, "razorpay_payment_id")
    if not payment_id:
        raise HTTPException(status_code=400, detail="razorpay_payment_id is required")

    email = text_field(payload, "email").lower() or None
    raw_phone = text_field(payload, "phone")
    if not raw_phone and not email:
        raise HTTPException(status_code=400,
                            detail="At least one of phone or email is required for OTP delivery")
    phone = format_phone_e164(raw_phone)

    app_id = text_field(payload, "app_id") or payments.ORIGIN_DEFAULT_APP
    app_name = payments.resolve_app_name(app_id)

    row, duplicate = payments.store_origin_payment(payload, app_id, phone, email)
    if duplicate:
        return {
            "success": True,
            "message": "Payment already processed (idempotent)",
            "razorpay_payment_id": payment_id,
        }
    if row and email:
        await asyncio.to_thread(send_thank_you_email, email, app_name, payment_id)

    try:
        result = await asyncio.to_thread(
            otp_service.generate_and_dispatch_otp,
            app_id=app_id,
            app_name=app_name,
            email=email or payments.synthetic_email(payment_id),
            phone=phone,
            payment_transaction_id=payment_id,
        )
    except (ValueError, otp_service.OTPError) as e:
        logger.error("OTP dispatch failed for %s: %s", payment_id, e)
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "Payment recorded but OTP dispatch failed",
            "razorpay_payment_id": payment_id,
        })

    logger.info("Origin payment %s for %s, OTP via %s", payment_id, app_id, result["delivery_channel"])
    return {
        "success": True,
        "message": "Payment received and OTP sent",
        "razorpay_payment_id": payment_id,
        "deliveryChannel": result["delivery_channel"],
    }
