"""Outbound email (Resend) and SMS (Twilio) for OTP and payment messages."""

import logging
from datetime import datetime, timezone

from iiskills_gateway.config import (
    RESEND_API_KEY, RESEND_FROM_EMAIL, RESEND_FROM_NAME,
    TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER,
)

logger = logging.getLogger(__name__)

# Records created for phone-only purchases carry this domain; never mail it.
SYNTHETIC_EMAIL_DOMAIN = "payment.iiskills.cloud"


def is_synthetic_email(email: str | None) -> bool:
    return bool(email) and email.lower().endswith("@" + SYNTHETIC_EMAIL_DOMAIN)


def _send_email_sync(to_email: str, subject: str, html: str, text: str = "") -> str:
    """Send an email via Resend. Returns the Resend message id."""
    import resend

    if not resend.api_key:
        resend.api_key = RESEND_API_KEY

    params = {
        "from": f"{RESEND_FROM_NAME} <{RESEND_FROM_EMAIL}>",
        "to": [to_email],
        "subject": subject,
        "html": html,
    }
    if text:
        params["text"] = text
    result = resend.Emails.send(params)
    return result.get("id", "")


def _send_sms_sync(to_phone: str, body: str) -> str:
    """Send an SMS via Twilio. Returns the message SID."""
    from twilio.rest import Client

    client = Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
    message = client.messages.create(body=body, from_=TWILIO_FROM_NUMBER, to=to_phone)
    return message.sid


def send_email(to_email: str, subject: str, html: str, text: str = "") -> bool:
    """Send an email; False when Resend is unconfigured or the send fails."""
    if not RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set, skipping email to %s", to_email)
        return False
    if is_synthetic_email(to_email):
        logger.info("Skipping email to synthetic address %s", to_email)
        return False
    try:
        resend_id = _send_email_sync(to_email, subject, html, text)
    except Exception as e:
        logger.error("Email send to %s failed: %s", to_email, e)
        return False
    logger.info("Email sent to %s (resend_id=%s)", to_email, resend_id)
    return True


def send_sms(to_phone: str, body: str) -> bool:
    """Send an SMS; False when Twilio is unconfigured or the send fails."""
    if not (TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER):
        logger.warning("Twilio not configured, skipping SMS to %s", to_phone)
        return False
    try:
        sid = _send_sms_sync(to_phone, body)
    except Exception as e:
        logger.error("SMS send to %s failed: %s", to_phone, e)
        return False
    logger.info("SMS sent to %s (sid=%s)", to_phone, sid)
    return True


# ---------------------------------------------------------------------------
# Message bodies
# ---------------------------------------------------------------------------

def _wrap(heading: str, body_html: str) -> str:
    year = datetime.now(timezone.utc).year
    return f"""<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #2563eb; text-align: center;">iiskills.cloud</h1>
  <div style="background: #f9fafb; border-radius: 10px; padding: 30px;">
    <h2 style="color: #1f2937; margin-top: 0;">{heading}</h2>
    {body_html}
  </div>
  <p style="color: #9ca3af; font-size: 12px;">&copy; {year} iiskills.cloud - All rights reserved</p>
</div>"""


def send_otp_email(email: str, otp: str, app_name: str) -> bool:
    html = _wrap("Payment Verification", (
        f"<p>Thank you for your payment! Your OTP for <strong>{app_name}</strong> is:</p>"
        f'<p style="font-size: 36px; font-weight: bold; letter-spacing: 8px; color: #2563eb;">{otp}</p>'
        "<p>Valid for 10 minutes. This OTP is specific to "
        f"<strong>{app_name}</strong> and cannot be used for other apps.</p>"
    ))
    text = f"Your OTP is: {otp}. Valid for 10 minutes. This OTP is specific to {app_name}."
    return send_email(email, f"Your OTP for {app_name}", html, text)


def send_otp_sms(phone: str, otp: str, app_name: str) -> bool:
    return send_sms(
        phone,
        f"Your iiskills.cloud OTP for {app_name}: {otp}. Valid for 10 minutes. Do not share this code.",
    )


def send_welcome_email(email: str, app_name: str) -> bool:
    html = _wrap("You're all set!", (
        f"<p>Your access to <strong>{app_name}</strong> has been verified. Start learning today!</p>"
    ))
    text = f"Welcome to {app_name}! Your access has been verified. Start learning today at iiskills.cloud."
    return send_email(email, f"Welcome to {app_name}!", html, text)


def send_thank_you_email(email: str, app_name: str, payment_reference: str = "") -> bool:
    ref = f"<p>Payment reference: <code>{payment_reference}</code></p>" if payment_reference else ""
    html = _wrap("Thank you for your payment!", (
        f"<p>Your payment for <strong>{app_name}</strong> has been received successfully.</p>"
        "<p>You will shortly receive a separate message with your OTP to verify your access.</p>"
        + ref
    ))
    text = (
        f"Thank you for your payment for {app_name}! You will receive an OTP shortly "
        f"to verify your access. Payment reference: {payment_reference or 'N/A'}."
    )
    return send_email(email, f"Thank you for your payment - Welcome to {app_name}!", html, text)
