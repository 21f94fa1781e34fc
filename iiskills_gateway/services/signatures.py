"""Webhook signature checks and phone normalisation for payment callbacks."""

import hashlib
import hmac
import re
import time

from iiskills_gateway.config import DEFAULT_COUNTRY_CODE, MAX_TIMESTAMP_SKEW_SECONDS

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_PHONE_STRIP_RE = re.compile(r"[\s\-.()]")


def compute_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode()
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, raw_body: bytes, received: str) -> bool:
    """Constant-time comparison of a received hex signature.

    Empty or non-hex signatures never match.
    """
    received = (received or "").strip()
    if not received or not _HEX_RE.match(received):
        return False
    expected = compute_signature(secret, raw_body)
    if len(received) != len(expected):
        return False
    return hmac.compare_digest(expected, received.lower())


def check_timestamp(header: str, now: float | None = None,
                    max_skew: int = MAX_TIMESTAMP_SKEW_SECONDS) -> bool:
    """True when a unix-seconds timestamp is within max_skew of now.

    Raises ValueError if the header is not an integer.
    """
    ts = int(str(header).strip())
    current = int(now if now is not None else time.time())
    return abs(current - ts) <= max_skew


def format_phone_e164(phone: str | None,
                      default_country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """Normalise a phone number to E.164.

    "+44 20 7946 0958" -> "+442079460958", "09876543210" -> "+919876543210".
    """
    if not phone:
        return None
    cleaned = _PHONE_STRIP_RE.sub("", str(phone).strip())
    if not cleaned:
        return None
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]
    return f"+{default_country_code}{cleaned}"
