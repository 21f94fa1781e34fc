"""Request guards shared by the routers: per-IP rate limiting, JSON bodies and admin auth."""

import hmac
import json
import logging
import time
from collections import defaultdict

from fastapi import Header, HTTPException, Request

from iiskills_gateway import config

logger = logging.getLogger(__name__)

# In-memory rate limiter: {ip: [timestamp, ...]}
_rate_buckets: dict[str, list[float]] = defaultdict(list)
_RATE_LIMIT = 30       # max requests per window
_RATE_WINDOW = 60      # window in seconds


def check_rate_limit(request: Request) -> None:
    """Raise 429 if IP exceeds rate limit. Simple sliding window."""
    ip = request.client.host if request.client else "unknown"
    now = time.monotonic()
    bucket = _rate_buckets[ip]
    cutoff = now - _RATE_WINDOW
    _rate_buckets[ip] = bucket = [t for t in bucket if t > cutoff]
    if len(bucket) >= _RATE_LIMIT:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    bucket.append(now)


def reset_rate_limits() -> None:
    _rate_buckets.clear()


def bearer_token(authorization: str) -> str:
    """Token from an ``Authorization: Bearer <token>`` header, or ""."""
    if not authorization or not authorization.startswith("Bearer "):
        return ""
    return authorization[len("Bearer "):].strip()


def require_admin(authorization: str = Header("")) -> None:
    """FastAPI dependency: 401 unless the Bearer token equals ADMIN_API_KEY."""
    token = bearer_token(authorization)
    if not config.ADMIN_API_KEY or not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(token, config.ADMIN_API_KEY):
        raise HTTPException(status_code=401, detail="Unauthorized")


def parse_json_body(raw_body: bytes, allow_empty: bool = False) -> dict:
    """Decode a request body that must be a JSON object; 400 otherwise."""
    if allow_empty and not raw_body.strip():
        return {}
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Invalid JSON body: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    return payload


def text_field(body: dict, key: str) -> str:
    """Stripped string value of a body field; "" when absent or null."""
    value = body.get(key)
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()
