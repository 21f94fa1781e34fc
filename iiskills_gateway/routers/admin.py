"""Admin API: manual OTPs, entitlement grants and content re-indexing.

All routes require ``Authorization: Bearer <ADMIN_API_KEY>``.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from iiskills_gateway import supabase_client as db
from iiskills_gateway.catalog import app_name, get_app
from iiskills_gateway.guards import parse_json_body, require_admin, text_field
from iiskills_gateway.services import content_discovery, entitlements, otp_service
from iiskills_gateway.services.content_catalog import get_content_catalog
from iiskills_gateway.services.signatures import format_phone_e164

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


@router.post("/generate-otp")
async def generate_otp(request: Request):
    body = parse_json_body(await request.body())
    email = text_field(body, "email").lower()
    app_id = text_field(body, "appId")
    if not email or not app_id:
        raise HTTPException(status_code=400, detail="email and appId are required")
    phone = format_phone_e164(text_field(body, "phone"))

    try:
        result = await asyncio.to_thread(
            otp_service.generate_and_dispatch_otp,
            app_id=app_id,
            app_name=app_name(app_id),
            email=email,
            phone=phone,
            reason=text_field(body, "reason") or "admin_generated",
            admin_generated=True,
            return_code=True,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except otp_service.OTPError as e:
        logger.error("Admin OTP generation failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate OTP")

    db.log_action("admin_otp_generated", "otp", app_id, f"{email} ({result['delivery_channel']})")
    return {
        "success": True,
        "message": "OTP generated successfully",
        "otp": result["otp"],
        "emailSent": result["email_sent"],
        "smsSent": result["sms_sent"],
        "expiresAt": result["expires_at"],
        "appId": app_id,
    }


@router.get("/entitlements")
async def list_entitlements(
    userId: str = Query(""),
    email: str = Query(""),
    phone: str = Query(""),
):
    user_id = userId.strip() or None
    email = email.strip().lower() or None
    phone = format_phone_e164(phone)
    if not (user_id or email or phone):
        raise HTTPException(status_code=400, detail="One of userId, email, phone is required")
    rows = entitlements.list_entitlements(user_id=user_id, email=email, phone=phone)
    return {"success": True, "count": len(rows), "entitlements": rows}


@router.post("/entitlements")
async def grant(request: Request):
    body = parse_json_body(await request.body())
    app_id = text_field(body, "appId")
    email = text_field(body, "email").lower() or None
    phone = format_phone_e164(text_field(body, "phone"))
    user_id = text_field(body, "userId") or None
    if not app_id or not (email or user_id or phone):
        raise HTTPException(status_code=400,
                            detail="appId and one of email, userId, phone are required")
    if not get_app(app_id):
        raise HTTPException(status_code=400, detail=f"Unknown appId: {app_id}")

    if body.get("includeBundle", True):
        rows = entitlements.grant_bundle_entitlements(app_id, user_id=user_id, email=email,
                                                      phone=phone, source="admin")
    else:
        rows = [entitlements.grant_entitlement(app_id, user_id=user_id, email=email, phone=phone,
                                               source="admin")]
    return {"success": True, "entitlements": rows}


@router.post("/entitlements/{entitlement_id}/revoke")
async def revoke(entitlement_id: str, request: Request):
    body = parse_json_body(await request.body(), allow_empty=True)
    row = entitlements.revoke_entitlement(entitlement_id, reason=text_field(body, "reason") or "manual")
    if row is None:
        raise HTTPException(status_code=404, detail=f"Entitlement {entitlement_id} not found")
    return {"success": True, "entitlement": row}


@router.post("/content/reindex")
async def reindex_content():
    catalog = get_content_catalog()
    try:
        meta_index = await asyncio.to_thread(catalog.indexer().index_all)
    except FileNotFoundError as e:
        raise HTTPException(status_code=500, detail=str(e))
    catalog.reload()
    content_discovery.clear_discovery_cache()
    db.log_action("content_reindexed", "content", "",
                  f"{meta_index['statistics']['totalContent']} items across "
                  f"{meta_index['statistics']['totalApps']} apps")
    return {"success": True, "statistics": meta_index["statistics"]}
