"""Content catalog: singleton loader over the content index for search APIs.

Loads ``meta-index.json`` and the per-app manifests written by the indexer.
When no index has been built yet, apps are indexed in memory instead.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from iiskills_gateway.config import CONTENT_APPS_DIR, CONTENT_OUTPUT_DIR, CONTENT_ROOT
from iiskills_gateway.services.content_indexer import META_INDEX_FILE, ContentIndexer

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _text(value) -> str:
    # Manifests written by older indexers may carry non-string titles
    return str(value).lower() if value is not None else ""


def _item_tags(item: dict) -> list[str]:
    tags = item.get("tags")
    if isinstance(tags, str):
        return [tags]
    if not isinstance(tags, list):
        return []
    return [str(t) for t in tags]


def _location_matches(item_location, wanted: dict) -> bool:
    if not isinstance(item_location, dict):
        return False
    return all(item_location.get(k) == v for k, v in wanted.items() if v)


class ContentCatalog:
    """All indexed content items, keyed by app."""

    def __init__(self, root_dir: Path | None = None, apps_dir: str = CONTENT_APPS_DIR,
                 output_dir: str = CONTENT_OUTPUT_DIR) -> None:
        self.root_dir = Path(root_dir or CONTENT_ROOT)
        self.apps_dir = apps_dir
        self.output_dir = output_dir
        self._manifests: dict[str, dict] = {}
        self._items: list[dict] = []
        self._meta: dict = {}
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def index_path(self) -> Path:
        return self.root_dir / self.output_dir / META_INDEX_FILE

    def indexer(self, **kwargs) -> ContentIndexer:
        return ContentIndexer(self.root_dir, apps_dir=self.apps_dir,
                              output_dir=self.output_dir, **kwargs)

    def load(self) -> None:
        """Load from disk. No-op after the first successful call."""
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            if self.index_path.exists():
                manifests, meta = self._read_index()
            else:
                logger.warning("Content index not found at %s, indexing in memory", self.index_path)
                manifests, meta = self._index_in_memory()
            self._set(manifests, meta)
            self._loaded = True

    def reload(self) -> dict:
        """Drop cached data and load again. Returns the statistics block."""
        with self._lock:
            self._loaded = False
        self.load()
        return self.statistics

    def _read_index(self) -> tuple[dict[str, dict], dict]:
        meta = json.loads(self.index_path.read_text(encoding="utf-8"))
        manifests = {}
        for entry in meta.get("apps", []):
            path = self.root_dir / entry["manifestPath"]
            try:
                manifests[entry["appId"]] = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Skipping manifest %s: %s", path, e)
        logger.info("Loaded %d content manifests from %s", len(manifests), self.index_path)
        return manifests, meta

    def _index_in_memory(self) -> tuple[dict[str, dict], dict]:
        try:
            manifests = self.indexer().build_manifests()
        except FileNotFoundError as e:
            logger.warning("Content discovery skipped: %s", e)
            return {}, {}
        return manifests, {}

    def _set(self, manifests: dict[str, dict], meta: dict) -> None:
        self._manifests = manifests
        self._meta = meta
        self._items = [
            {**item, "appId": item.get("appId") or app_id}
            for app_id, manifest in manifests.items()
            for item in manifest.get("content", [])
        ]

    @property
    def items(self) -> list[dict]:
        self.load()
        return self._items

    @property
    def statistics(self) -> dict:
        self.load()
        by_type: dict[str, int] = {}
        for item in self._items:
            by_type[item.get("type", "other")] = by_type.get(item.get("type", "other"), 0) + 1
        return {
            "totalApps": len(self._manifests),
            "totalContent": len(self._items),
            "contentByType": by_type,
            "lastUpdated": self._meta.get("lastUpdated"),
        }

    def apps(self) -> list[dict]:
        self.load()
        return [
            {
                "appId": app_id,
                "appName": m.get("appName", app_id),
                "description": m.get("description", ""),
                "contentCount": len(m.get("content", [])),
                "lastUpdated": m.get("lastUpdated"),
            }
            for app_id, m in sorted(self._manifests.items())
        ]

    def get_item(self, app_id: str, item_id: str) -> Optional[dict]:
        for item in self.items:
            if item["appId"] == app_id and str(item.get("id")) == item_id:
                return item
        return None

    def search(self, types: list[str] | None = None, tags: list[str] | None = None,
               app_ids: list[str] | None = None, query: str | None = None,
               location: dict | None = None, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> dict:
        """Filter items; every given filter must match. Tags match any."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        results = list(self.items)

        if types:
            results = [r for r in results if r.get("type") in types]
        if app_ids:
            results = [r for r in results if r.get("appId") in app_ids]
        if tags:
            wanted = {t.lower() for t in tags}
            results = [r for r in results if wanted & {t.lower() for t in _item_tags(r)}]
        if query:
            q = query.lower()
            results = [
                r for r in results
                if q in _text(r.get("title"))
                or q in _text(r.get("description"))
                or any(q in t.lower() for t in _item_tags(r))
            ]
        if location:
            results = [r for r in results if _location_matches(r.get("location"), location)]

        total = len(results)
        return {
            "items": results[offset:offset + limit],
            "total": total,
            "page": offset // limit + 1,
            "page_size": limit,
            "has_more": offset + limit < total,
        }


# Module-level singleton
_catalog: ContentCatalog | None = None


def get_content_catalog() -> ContentCatalog:
    """FastAPI dependency: returns the singleton ContentCatalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = ContentCatalog()
        _catalog.load()
    return _catalog


def reset_content_catalog() -> None:
    global _catalog
    _catalog = None
