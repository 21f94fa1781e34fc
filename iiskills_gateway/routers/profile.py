"""Profile endpoints for signed-in users (Supabase access token)."""

import logging

from fastapi import APIRouter, Header, HTTPException

from iiskills_gateway import supabase_client as db
from iiskills_gateway.guards import bearer_token
from iiskills_gateway.services import entitlements

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile")

_PROFILE_FIELDS = (
    "id, first_name, last_name, full_name, gender, date_of_birth, age, education, "
    "qualification, location, state, district, country, specify_country, "
    "phone, is_paid_user, paid_at, subscribed_to_newsletter, created_at, updated_at"
)


def _current_user(authorization: str) -> dict:
    if not db.is_configured():
        raise HTTPException(status_code=503, detail="Database not configured")
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.get_auth_user(token)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


@router.get("")
async def get_profile(authorization: str = Header("")):
    user = _current_user(authorization)

    profile = db.select_one("profiles", columns=_PROFILE_FIELDS, match={"id": user["id"]})
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    if not profile.get("is_paid_user"):
        # Pay-before-register buyers get their paid flag on first fetch
        if entitlements.link_payment(user)["linked"]:
            profile = db.select_one("profiles", columns=_PROFILE_FIELDS, match={"id": user["id"]})

    if not profile.get("is_paid_user"):
        raise HTTPException(status_code=403, detail="Not a paid user")

    return {
        "profile": profile,
        "email": user["email"],
        "access": entitlements.get_access_status(
            user_id=user["id"],
            email=user["email"],
            phone=user.get("phone") or profile.get("phone"),
        ),
    }


@router.post("/link-payment")
async def link_payment(authorization: str = Header("")):
    user = _current_user(authorization)
    result = entitlements.link_payment(user)
    return {"linked": result["linked"], "claimed": result["claimed"], "message": result["message"]}
