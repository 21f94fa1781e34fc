"""Newsletter endpoints: public, no auth required.

Unsubscribe links carry an HMAC token so addresses cannot be removed by guessing.
"""

import html

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from iiskills_gateway import supabase_client as db
from iiskills_gateway.guards import check_rate_limit, parse_json_body, text_field
from iiskills_gateway.services import newsletter

router = APIRouter()


@router.post("/api/newsletter/subscribe")
async def subscribe(request: Request):
    check_rate_limit(request)
    body = parse_json_body(await request.body())
    if not db.is_configured():
        raise HTTPException(status_code=503, detail="Database not configured")
    try:
        result = newsletter.subscribe(
            text_field(body, "email"),
            source=request.headers.get("host", "unknown"),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **result}


@router.post("/api/newsletter/unsubscribe")
async def unsubscribe_json(request: Request):
    check_rate_limit(request)
    body = parse_json_body(await request.body())
    email = text_field(body, "email").lower()
    token = text_field(body, "token")
    if not email or not token:
        raise HTTPException(status_code=400, detail="Invalid unsubscribe token")
    if not newsletter.verify_unsubscribe_token(email, token):
        raise HTTPException(status_code=400, detail="Invalid or expired token")
    removed = newsletter.unsubscribe(email)
    return {
        "success": True,
        "email": email,
        "message": "Successfully unsubscribed" if removed else "Already unsubscribed",
    }


@router.get("/unsubscribe")
async def unsubscribe_page(
    email: str = Query(""),
    token: str = Query(""),
):
    if not email or not token or not newsletter.verify_unsubscribe_token(email, token):
        return HTMLResponse(_render_page(
            "Invalid Link",
            "This unsubscribe link is invalid or incomplete. "
            "Reply to any newsletter with 'unsubscribe' and we will remove you.",
        ), status_code=400)

    safe_email = html.escape(email)
    if newsletter.unsubscribe(email):
        return HTMLResponse(_render_page(
            "You've Been Unsubscribed",
            f"<strong>{safe_email}</strong> will no longer receive the newsletter.",
        ))
    return HTMLResponse(_render_page(
        "Already Unsubscribed",
        f"<strong>{safe_email}</strong> has no active newsletter subscription.",
    ))


def _render_page(title: str, message: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{title} | iiskills.cloud</title></head>"
        f"<body><h1>{title}</h1><p>{message}</p></body></html>"
    )
