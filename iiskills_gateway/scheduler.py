"""APScheduler: periodic content re-index and entitlement expiry."""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from iiskills_gateway import supabase_client as db
from iiskills_gateway.config import CONTENT_REINDEX_MINUTES
from iiskills_gateway.services.content_catalog import get_content_catalog
from iiskills_gateway.services.content_discovery import clear_discovery_cache
from iiskills_gateway.services.entitlements import expire_stale_entitlements

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("interval", minutes=CONTENT_REINDEX_MINUTES, id="reindex_content")
async def reindex_content():
    """Rebuild the content index and reload the catalog."""
    try:
        catalog = get_content_catalog()
        meta_index = await asyncio.to_thread(catalog.indexer().index_all)
        catalog.reload()
        clear_discovery_cache()
        logger.info(
            "Content reindex: %d apps, %d items",
            meta_index["statistics"]["totalApps"],
            meta_index["statistics"]["totalContent"],
        )
    except Exception as e:
        logger.error("Content reindex failed: %s", e)


@scheduler.scheduled_job("interval", hours=1, id="expire_entitlements")
async def expire_entitlements():
    """Flip entitlements past expires_at to expired."""
    if not db.is_configured():
        return
    try:
        await asyncio.to_thread(expire_stale_entitlements)
    except Exception as e:
        logger.error("Entitlement expiry failed: %s", e)
