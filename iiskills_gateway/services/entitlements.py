"""Entitlements: paid access grants per app, bundle expansion, expiry."""

import logging
from datetime import datetime, timedelta, timezone

from iiskills_gateway import supabase_client as db
from iiskills_gateway.catalog import get_apps_to_unlock, get_free_apps, get_paid_apps, is_free_app
from iiskills_gateway.config import ENTITLEMENT_DURATION_DAYS

logger = logging.getLogger(__name__)

ACTIVE = "active"
REVOKED = "revoked"
EXPIRED = "expired"

SOURCES = {"payment", "bundle", "otp", "admin"}


def _is_expired(row: dict, now: datetime | None = None) -> bool:
    expires = row.get("expires_at")
    if not expires:
        return False
    now = now or datetime.now(timezone.utc)
    return datetime.fromisoformat(expires) <= now


def _active_rows(app_id: str | None, user_id: str | None = None, email: str | None = None,
                 phone: str | None = None) -> list[dict]:
    """Active, unexpired rows; stale ones are flipped to expired on the way."""
    rows = db.find_entitlements(app_id=app_id, user_id=user_id, email=email, phone=phone,
                                status=ACTIVE)
    now = datetime.now(timezone.utc)
    live = []
    for row in rows:
        if _is_expired(row, now):
            db.update_entitlement(row["id"], {"status": EXPIRED})
            logger.info("Entitlement %s for %s expired", row["id"], row.get("app_id"))
            continue
        live.append(row)
    return live


def grant_entitlement(
    app_id: str,
    user_id: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    source: str = "payment",
    payment_reference: str | None = None,
    duration_days: int | None = ENTITLEMENT_DURATION_DAYS,
) -> dict:
    """Grant access to one app. Returns the existing active row if one exists."""
    if not (user_id or email or phone):
        raise ValueError("user_id, email or phone is required")
    if source not in SOURCES:
        raise ValueError(f"Unknown entitlement source: {source}")
    email = email.lower().strip() if email else None

    existing = _active_rows(app_id, user_id=user_id, email=email, phone=phone)
    if existing:
        return existing[0]

    now = datetime.now(timezone.utc)
    expires_at = (now + timedelta(days=duration_days)).isoformat() if duration_days else None
    row = db.insert_entitlement({
        "user_id": user_id,
        "email": email,
        "phone": phone,
        "app_id": app_id,
        "status": ACTIVE,
        "source": source,
        "payment_reference": payment_reference,
        "purchased_at": now.isoformat(),
        "expires_at": expires_at,
    })
    db.log_action("entitlement_granted", "entitlement", row.get("id", ""),
                  f"{app_id} for {user_id or email or phone} via {source}")
    return row


def grant_bundle_entitlements(purchased_app_id: str, user_id: str | None = None,
                              email: str | None = None, phone: str | None = None,
                              source: str = "payment",
                              payment_reference: str | None = None) -> list[dict]:
    """Grant the purchased app plus every other member of its bundle."""
    granted = []
    for app_id in get_apps_to_unlock(purchased_app_id):
        granted.append(grant_entitlement(
            app_id,
            user_id=user_id,
            email=email,
            phone=phone,
            source=source if app_id == purchased_app_id else "bundle",
            payment_reference=payment_reference,
        ))
    return granted


def has_access(app_id: str, user_id: str | None = None, email: str | None = None,
               phone: str | None = None) -> bool:
    if is_free_app(app_id):
        return True
    if not (user_id or email or phone):
        return False
    email = email.lower().strip() if email else None
    if user_id and _active_rows(app_id, user_id=user_id):
        return True
    # Grants made before the buyer registered are keyed by email or phone only
    if email and _active_rows(app_id, email=email):
        return True
    if phone and _active_rows(app_id, phone=phone):
        return True
    return False


def revoke_entitlement(entitlement_id: str, reason: str = "manual") -> dict | None:
    row = db.get_entitlement(entitlement_id)
    if not row:
        return None
    updated = db.update_entitlement(entitlement_id, {
        "status": REVOKED,
        "revoked_at": db.now_iso(),
        "revoke_reason": reason,
    })
    db.log_action("entitlement_revoked", "entitlement", entitlement_id,
                  f"{row.get('app_id')}: {reason}")
    return updated


def list_entitlements(user_id: str | None = None, email: str | None = None,
                      phone: str | None = None) -> list[dict]:
    email = email.lower().strip() if email else None
    return db.find_entitlements(user_id=user_id, email=email, phone=phone)


def get_access_status(user_id: str | None = None, email: str | None = None,
                      phone: str | None = None) -> dict:
    """Per-app access map for a user."""
    paid = {
        app_id: has_access(app_id, user_id=user_id, email=email, phone=phone)
        for app_id in get_paid_apps()
    }
    return {
        "free_apps": get_free_apps(),
        "paid_apps": paid,
        "unlocked": sorted(a for a, ok in paid.items() if ok),
    }


def expire_stale_entitlements() -> int:
    """Flip every active entitlement past its expiry to expired."""
    count = db.expire_entitlements_before(db.now_iso())
    if count:
        logger.info("Expired %d stale entitlements", count)
    return count


def link_payment(user: dict) -> dict:
    """Attach pay-before-register records to a signed-in user.

    Returns {linked, claimed, message}.
    """
    user_id = user["id"]
    email = (user.get("email") or "").lower().strip() or None
    profile = db.get_profile(user_id)
    phone = user.get("phone") or (profile or {}).get("phone") or None

    claimed = db.claim_entitlements(user_id, email=email, phone=phone) if (email or phone) else 0
    if claimed:
        db.log_action("entitlements_claimed", "profile", user_id,
                      f"{claimed} rows for {email or phone}")

    if profile and profile.get("is_paid_user"):
        return {"linked": True, "claimed": claimed, "message": "Already a paid user"}

    paid_at = None
    rows = sorted(_active_rows(None, user_id=user_id), key=lambda r: r.get("purchased_at") or "")
    if rows:
        paid_at = rows[0].get("purchased_at")
    elif email or phone:
        payment = db.find_captured_payment(email=email, phone=phone)
        if payment:
            paid_at = payment.get("created_at")

    if rows or paid_at:
        db.update_profile(user_id, {"is_paid_user": True, "paid_at": paid_at or db.now_iso()})
        logger.info("Linked paid status for user=%s email=%s phone=%s", user_id, email, phone)
        return {"linked": True, "claimed": claimed, "message": "Paid status linked to profile"}

    return {"linked": False, "claimed": claimed, "message": "No payment record found"}
