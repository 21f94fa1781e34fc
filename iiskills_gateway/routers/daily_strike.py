"""Daily Strike trivia endpoint for learn-cricket."""

from fastapi import APIRouter, HTTPException, Query, Request

from iiskills_gateway import config
from iiskills_gateway.guards import check_rate_limit
from iiskills_gateway.services.daily_strike import daily_strike

router = APIRouter()


@router.get("/api/daily-strike")
async def get_daily_strike(request: Request, count: str = Query("5")):
    if not config.ENABLE_DAILY_STRIKE:
        raise HTTPException(status_code=403, detail={
            "error": "Daily Strike feature is disabled",
            "message": "Set ENABLE_DAILY_STRIKE=true to enable this feature",
        })
    check_rate_limit(request)

    result = daily_strike(count)
    if not result["questions"]:
        raise HTTPException(status_code=500, detail={
            "error": "No questions available",
            "message": "World Cup fixtures not loaded",
        })
    return {"success": True, **result}
