"""Gateway configuration: loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Root of this repo
REPO_ROOT = Path(__file__).resolve().parent.parent

# Deployment environment ("production", "staging", "development")
ENVIRONMENT = os.environ.get("ENVIRONMENT", "production")

# Supabase
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = (
    os.environ.get("SUPABASE_SERVICE_KEY", "")
    or os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
)

# Payment confirmations (aienter.in → gateway)
AIENTER_CONFIRMATION_SIGNING_SECRET = os.environ.get("AIENTER_CONFIRMATION_SIGNING_SECRET", "")
ORIGIN_WEBHOOK_SECRET = os.environ.get("ORIGIN_WEBHOOK_SECRET", "")
MAX_TIMESTAMP_SKEW_SECONDS = int(os.environ.get("MAX_TIMESTAMP_SKEW_SECONDS", "300"))
DEFAULT_COUNTRY_CODE = os.environ.get("DEFAULT_COUNTRY_CODE", "91")

# OTP hashing key
OTP_SECRET = os.environ.get("OTP_SECRET", "")

# Admin API (Bearer token)
ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY", "")

# Newsletter unsubscribe tokens
NEWSLETTER_SECRET = os.environ.get("NEWSLETTER_SECRET", "")

# Resend (email sending)
RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
RESEND_FROM_EMAIL = os.environ.get("RESEND_FROM_EMAIL", "info@iiskills.cloud")
RESEND_FROM_NAME = os.environ.get("RESEND_FROM_NAME", "iiskills.cloud")

# Twilio (SMS sending)
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.environ.get("TWILIO_FROM_NUMBER", "")

# Entitlements
ENTITLEMENT_DURATION_DAYS = int(os.environ.get("ENTITLEMENT_DURATION_DAYS", "365"))

# Content discovery: monorepo checkout holding the learn-* apps
CONTENT_ROOT = Path(os.environ.get("CONTENT_ROOT", str(REPO_ROOT)))
CONTENT_APPS_DIR = os.environ.get("CONTENT_APPS_DIR", "apps")
CONTENT_OUTPUT_DIR = os.environ.get("CONTENT_OUTPUT_DIR", "content-index")
CONTENT_REINDEX_MINUTES = int(os.environ.get("CONTENT_REINDEX_MINUTES", "30"))

# Daily Strike (learn-cricket trivia)
ENABLE_DAILY_STRIKE = os.environ.get("ENABLE_DAILY_STRIKE", "true").lower() != "false"
DAILY_STRIKE_APP = os.environ.get("DAILY_STRIKE_APP", "learn-cricket")

# Server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
PUBLIC_URL = os.environ.get("PUBLIC_URL", "https://iiskills.cloud")
