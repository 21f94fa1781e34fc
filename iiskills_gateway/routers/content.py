"""Content API: cross-app search over the content index and discovered files."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from iiskills_gateway.guards import check_rate_limit
from iiskills_gateway.services import content_discovery
from iiskills_gateway.services.content_catalog import get_content_catalog
from iiskills_gateway.services.content_indexer import CONTENT_TYPES

router = APIRouter(prefix="/api/content", tags=["Content"])


@router.get("/search", summary="Search content across all apps")
async def search_content(
    request: Request,
    type: Optional[list[str]] = Query(None, description="Content type, repeatable"),
    tag: Optional[list[str]] = Query(None, description="Tag, repeatable (any match)"),
    app: Optional[list[str]] = Query(None, description="App id, repeatable"),
    q: Optional[str] = Query(None, description="Text search across title, description, tags"),
    country: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100, description="Results per page (max 100)"),
    offset: int = Query(0, ge=0, description="Pagination offset"),
):
    check_rate_limit(request)
    if type:
        unknown = [t for t in type if t not in CONTENT_TYPES]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown content type: {', '.join(unknown)}")

    location = {"country": country, "state": state, "district": district}
    catalog = get_content_catalog()
    return catalog.search(
        types=type, tags=tag, app_ids=app, query=q,
        location=location if any(location.values()) else None,
        limit=limit, offset=offset,
    )


@router.get("/apps", summary="Apps with indexed content")
async def list_content_apps():
    catalog = get_content_catalog()
    return {"apps": catalog.apps(), "statistics": catalog.statistics}


@router.get("/items/{app_id}/{item_id}", summary="One content item")
async def get_content_item(app_id: str, item_id: str):
    item = get_content_catalog().get_item(app_id, item_id)
    if not item:
        raise HTTPException(status_code=404, detail=f"Content item {app_id}/{item_id} not found")
    return item


@router.get("/modules", summary="Modules for a course, from app content files")
async def list_modules(
    course_id: str = Query(""),
    app: Optional[str] = Query(None),
    include_lessons: bool = Query(False),
):
    if not course_id:
        raise HTTPException(status_code=400, detail="Missing course_id")

    content = (content_discovery.get_app_content(app) if app
               else content_discovery.discover_all_content())
    modules = [m for m in content["modules"] if m.get("course_id") == course_id]
    modules.sort(key=lambda m: (m.get("order") is None, m.get("order") or 0))

    if include_lessons:
        lessons = content["lessons"]
        modules = [
            {**m, "lessons": sorted(
                (ls for ls in lessons if ls.get("module_id") == m.get("id")),
                key=lambda ls: ls.get("order") or 0,
            )}
            for m in modules
        ]
    return {"modules": modules, "course_id": course_id}


@router.get("/discovery", summary="Content discovery metadata")
async def discovery_metadata(refresh: bool = Query(False)):
    content = content_discovery.discover_all_content(force_refresh=refresh)
    return {
        "metadata": content["_metadata"],
        "counts": {name: len(content[name]) for name in content_discovery.COLLECTIONS},
        "apps": content_discovery.get_apps_with_content(),
    }
