"""Supabase connection and query helpers for the gateway tables."""

import logging
import threading
from datetime import datetime, timezone

from postgrest.exceptions import APIError
from supabase import Client, create_client

from iiskills_gateway.config import SUPABASE_SERVICE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

_client: Client | None = None
_client_lock = threading.Lock()

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


class DuplicateRowError(Exception):
    """Insert rejected by a unique constraint."""

    def __init__(self, table: str, original: Exception):
        super().__init__(f"Duplicate row in {table}: {original}")
        self.table = table
        self.original = original


def is_configured() -> bool:
    """True when Supabase credentials are present."""
    return bool(SUPABASE_URL and SUPABASE_SERVICE_KEY)


def get_client() -> Client:
    """Return the Supabase client singleton (thread-safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
                    raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
                _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _client


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_unique_violation(exc: Exception) -> bool:
    """Detect duplicate-key errors from PostgREST."""
    code = getattr(exc, "code", None)
    if code == _UNIQUE_VIOLATION:
        return True
    message = (getattr(exc, "message", None) or str(exc)).lower()
    return "duplicate" in message or "unique" in message


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def _table(name: str):
    """Return a table query builder."""
    return get_client().table(name)


def insert(table: str, data: dict) -> dict:
    """Insert a row and return it."""
    result = _table(table).insert(data).execute()
    return result.data[0] if result.data else {}


def insert_unique(table: str, data: dict) -> dict:
    """Insert a row; raise DuplicateRowError if a unique constraint rejects it."""
    try:
        return insert(table, data)
    except APIError as e:
        if is_unique_violation(e):
            raise DuplicateRowError(table, e) from e
        raise


def upsert(table: str, data: dict, on_conflict: str = "") -> dict:
    """Upsert a row and return it."""
    if on_conflict:
        q = _table(table).upsert(data, on_conflict=on_conflict)
    else:
        q = _table(table).upsert(data)
    result = q.execute()
    return result.data[0] if result.data else {}


def update(table: str, data: dict, match: dict) -> dict:
    """Update rows matching conditions."""
    q = _table(table).update(data)
    for k, v in match.items():
        q = q.eq(k, v)
    result = q.execute()
    return result.data[0] if result.data else {}


def select(table: str, columns: str = "*", match: dict | None = None,
           order: str | None = None, order_desc: bool = False,
           limit: int | None = None, offset: int | None = None) -> list[dict]:
    """Select rows with optional filtering, ordering, and pagination."""
    q = _table(table).select(columns)
    if match:
        for k, v in match.items():
            q = q.eq(k, v)
    if order:
        q = q.order(order, desc=order_desc)
    if limit:
        q = q.limit(limit)
    if offset:
        q = q.range(offset, offset + (limit or 100) - 1)
    result = q.execute()
    return result.data or []


def select_one(table: str, columns: str = "*", match: dict | None = None) -> dict | None:
    """Select a single row."""
    rows = select(table, columns, match, limit=1)
    return rows[0] if rows else None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def record_payment_confirmation(data: dict) -> dict:
    """Insert into payment_confirmations (unique on razorpay_payment_id)."""
    return insert_unique("payment_confirmations", data)


def get_payment_confirmation(razorpay_payment_id: str) -> dict | None:
    return select_one("payment_confirmations", match={"razorpay_payment_id": razorpay_payment_id})


def record_payment(data: dict) -> dict:
    """Insert into payments (unique on payment_id)."""
    return insert_unique("payments", data)


def get_payment(payment_id: str) -> dict | None:
    return select_one("payments", match={"payment_id": payment_id})


def find_captured_payment(email: str | None = None, phone: str | None = None) -> dict | None:
    """Oldest captured payment for an email address, else for a phone number."""
    for column, value in (("user_email", email.lower().strip() if email else None),
                          ("user_phone", phone)):
        if not value:
            continue
        rows = select("payments", match={"status": "captured", column: value},
                      order="created_at", limit=1)
        if rows:
            return rows[0]
    return None


# ---------------------------------------------------------------------------
# OTPs
# ---------------------------------------------------------------------------

def insert_otp(data: dict) -> dict:
    data.setdefault("created_at", now_iso())
    data.setdefault("updated_at", data["created_at"])
    data.setdefault("verification_attempts", 0)
    return insert("otps", data)


def expire_pending_otps(app_id: str, email: str | None = None, phone: str | None = None) -> int:
    """Expire unverified OTPs for an identity + app. Returns rows touched."""
    if not email and not phone:
        return 0
    now = now_iso()
    q = _table("otps").update({"expires_at": now, "updated_at": now}).eq("app_id", app_id)
    q = q.eq("email", email) if email else q.eq("phone", phone)
    result = q.is_("verified_at", "null").execute()
    return len(result.data or [])


def find_active_otp(app_id: str, email: str | None = None, phone: str | None = None,
                    payment_transaction_id: str | None = None,
                    max_attempts: int = 5) -> dict | None:
    """Newest unverified, unexpired OTP row with attempts left."""
    q = _table("otps").select("*").eq("app_id", app_id)
    if email:
        q = q.eq("email", email)
    if phone:
        q = q.eq("phone", phone)
    if payment_transaction_id:
        q = q.eq("payment_transaction_id", payment_transaction_id)
    result = (
        q.is_("verified_at", "null")
        .gt("expires_at", now_iso())
        .lt("verification_attempts", max_attempts)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def increment_otp_attempts(otp_id: str, current: int) -> dict:
    return update("otps", {"verification_attempts": current + 1, "updated_at": now_iso()},
                  {"id": otp_id})


def mark_otp_verified(otp_id: str) -> bool:
    """Stamp verified_at; False if the row was already verified."""
    now = now_iso()
    result = (
        _table("otps")
        .update({"verified_at": now, "updated_at": now})
        .eq("id", otp_id)
        .is_("verified_at", "null")
        .execute()
    )
    return bool(result.data)


def get_recent_otps(email: str, app_id: str, limit: int = 10) -> list[dict]:
    return select("otps", match={"email": email, "app_id": app_id},
                  order="created_at", order_desc=True, limit=limit)


# ---------------------------------------------------------------------------
# Entitlements
# ---------------------------------------------------------------------------

def insert_entitlement(data: dict) -> dict:
    now = now_iso()
    data.setdefault("created_at", now)
    data.setdefault("updated_at", now)
    return insert("entitlements", data)


def update_entitlement(entitlement_id: str, data: dict) -> dict:
    data["updated_at"] = now_iso()
    return update("entitlements", data, {"id": entitlement_id})


def get_entitlement(entitlement_id: str) -> dict | None:
    return select_one("entitlements", match={"id": entitlement_id})


def find_entitlements(app_id: str | None = None, user_id: str | None = None,
                      email: str | None = None, phone: str | None = None,
                      status: str | None = None) -> list[dict]:
    """Entitlement rows for one identity, newest first."""
    match = {}
    if app_id:
        match["app_id"] = app_id
    if user_id:
        match["user_id"] = user_id
    elif email:
        match["email"] = email
    elif phone:
        match["phone"] = phone
    else:
        return []
    if status:
        match["status"] = status
    return select("entitlements", match=match, order="created_at", order_desc=True)


def claim_entitlements(user_id: str, email: str | None = None, phone: str | None = None) -> int:
    """Attach unclaimed entitlement rows for an email or phone to a user."""
    claimed = 0
    for column, value in (("email", email), ("phone", phone)):
        if not value:
            continue
        result = (
            _table("entitlements")
            .update({"user_id": user_id, "updated_at": now_iso()})
            .eq(column, value)
            .is_("user_id", "null")
            .execute()
        )
        claimed += len(result.data or [])
    return claimed


def expire_entitlements_before(cutoff_iso: str) -> int:
    """Mark active entitlements past expires_at as expired."""
    result = (
        _table("entitlements")
        .update({"status": "expired", "updated_at": now_iso()})
        .eq("status", "active")
        .lt("expires_at", cutoff_iso)
        .execute()
    )
    return len(result.data or [])


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------

def get_subscriber(email: str) -> dict | None:
    return select_one("newsletter_subscribers", match={"email": email})


def insert_subscriber(data: dict) -> dict:
    now = now_iso()
    data.setdefault("subscribed_at", now)
    data.setdefault("updated_at", now)
    return insert_unique("newsletter_subscribers", data)


def update_subscriber(email: str, data: dict) -> dict:
    data["updated_at"] = now_iso()
    return update("newsletter_subscribers", data, {"email": email})


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_profile(user_id: str) -> dict | None:
    return select_one("profiles", match={"id": user_id})


def get_profile_by_email(email: str) -> dict | None:
    return select_one("profiles", match={"email": email.lower().strip()})


def get_profile_by_phone(phone: str) -> dict | None:
    return select_one("profiles", match={"phone": phone})


def update_profile(user_id: str, data: dict) -> dict:
    data["updated_at"] = now_iso()
    return update("profiles", data, {"id": user_id})


def get_auth_user(access_token: str) -> dict | None:
    """Resolve a Supabase access token to {id, email, phone}, or None if invalid."""
    try:
        response = get_client().auth.get_user(access_token)
    except Exception as e:
        logger.warning("Supabase auth lookup failed: %s", e)
        return None
    user = getattr(response, "user", None)
    if not user:
        return None
    # Supabase stores auth phones as bare digits
    phone = (getattr(user, "phone", None) or "").strip().lstrip("+")
    return {
        "id": user.id,
        "email": (user.email or "").lower().strip(),
        "phone": f"+{phone}" if phone else None,
    }


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------

def log_action(action: str, entity_type: str = "", entity_id: str = "", details: str = "") -> dict:
    """Log a gateway action."""
    return insert("audit_log", {
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": details,
    })
