"""Newsletter subscriptions and HMAC-verified one-click unsubscribe."""

import hashlib
import hmac
import logging
import re
import urllib.parse

from iiskills_gateway import config
from iiskills_gateway import supabase_client as db

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]{1,64}@[^@\s]{1,255}$")

ACTIVE = "active"
UNSUBSCRIBED = "unsubscribed"


def normalize_email(email: str) -> str:
    """Lower-cased, trimmed email; raises ValueError when malformed."""
    email = (email or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise ValueError("Invalid email address")
    return email


def generate_unsubscribe_token(email: str) -> str:
    """Generate an HMAC token for unsubscribe URL verification."""
    secret = (config.NEWSLETTER_SECRET or "fallback-dev-secret").encode()
    return hmac.new(secret, email.lower().encode(), hashlib.sha256).hexdigest()[:32]


def verify_unsubscribe_token(email: str, token: str) -> bool:
    expected = generate_unsubscribe_token(email)
    return hmac.compare_digest(expected, token or "")


def build_unsubscribe_url(email: str) -> str:
    params = urllib.parse.urlencode({"email": email, "token": generate_unsubscribe_token(email)})
    return f"{config.PUBLIC_URL}/unsubscribe?{params}"


def subscribe(email: str, source: str = "unknown", user_id: str | None = None) -> dict:
    """Add or re-activate a subscriber. Returns {message, alreadySubscribed}."""
    email = normalize_email(email)

    if user_id:
        try:
            db.update_profile(user_id, {"subscribed_to_newsletter": True})
        except Exception as e:
            logger.warning("Failed to flag profile %s as subscribed: %s", user_id, e)

    existing = db.get_subscriber(email)
    if existing and existing.get("status") == ACTIVE:
        return {"message": "You are already subscribed!", "alreadySubscribed": True}

    if existing:
        db.update_subscriber(email, {"status": ACTIVE, "unsubscribed_at": None})
        db.log_action("newsletter_resubscribed", "subscriber", email, source)
        return {"message": "Welcome back! You are subscribed again.", "alreadySubscribed": False}

    try:
        db.insert_subscriber({"email": email, "source": source[:100], "status": ACTIVE})
    except db.DuplicateRowError:
        # Concurrent signup for the same address
        return {"message": "You are already subscribed!", "alreadySubscribed": True}
    db.log_action("newsletter_subscribed", "subscriber", email, source)
    return {"message": "Successfully subscribed!", "alreadySubscribed": False}


def unsubscribe(email: str) -> bool:
    """Mark a subscriber unsubscribed. False when there was nothing active."""
    email = email.strip().lower()
    existing = db.get_subscriber(email)
    if not existing or existing.get("status") != ACTIVE:
        return False
    db.update_subscriber(email, {"status": UNSUBSCRIBED, "unsubscribed_at": db.now_iso()})
    db.log_action("newsletter_unsubscribed", "subscriber", email)
    return True
