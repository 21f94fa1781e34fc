"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from iiskills_gateway.routers import admin, content, daily_strike, newsletter, otp, payments, profile

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        from iiskills_gateway.scheduler import scheduler
        scheduler.start()
        logger.info("Scheduler started: content reindex and entitlement expiry")
    except Exception as e:
        logger.warning("Scheduler failed to start: %s", e)

    yield

    try:
        from iiskills_gateway.scheduler import scheduler
        if scheduler.running:
            scheduler.shutdown(wait=False)
    except Exception as e:
        logger.warning("Scheduler shutdown failed: %s", e)


def _error_body(detail) -> dict:
    """``{"success": false, "error": ...}`` with an optional ``message``."""
    if isinstance(detail, dict):
        body = {"success": False, "error": detail.get("error", "Error")}
        if detail.get("message"):
            body["message"] = detail["message"]
        return body
    return {"success": False, "error": str(detail)}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail),
                        headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", [])[1:]) or "request"
    return JSONResponse(status_code=400, content=_error_body({
        "error": f"Invalid {field}",
        "message": first.get("msg", ""),
    }))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app() -> FastAPI:
    app = FastAPI(
        title="iiskills.cloud Gateway",
        description=(
            "Payment confirmation webhooks, OTP-gated entitlements and "
            "cross-app content discovery for the iiskills.cloud learn-* sites."
        ),
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}

    # Webhooks, auth-gated and admin routes (hidden from API docs)
    for r in [payments, otp, profile, newsletter, admin]:
        app.include_router(r.router, include_in_schema=False)

    # Public read APIs, included in API docs
    for r in [content, daily_strike]:
        app.include_router(r.router)

    return app
