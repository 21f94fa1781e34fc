"""Content discovery: aggregate well-known content files from every learn-* app.

Results are cached for five minutes; ``clear_discovery_cache`` forces a rescan.
"""

import json
import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

from iiskills_gateway.config import CONTENT_APPS_DIR, CONTENT_ROOT

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60

CONTENT_FILE_PATTERNS = (
    "data/courses.json",
    "data/modules.json",
    "data/lessons.json",
    "data/content.json",
    "data/newsletters.json",
    "seeds/content.json",
    "content/courses.json",
    "content/data.json",
    "public/data/courses.json",
)

COLLECTIONS = ("courses", "modules", "lessons", "profiles", "questions")

_cache: dict | None = None
_cache_time: float = 0.0
_cache_key: str = ""
_cache_lock = threading.Lock()


def find_learn_apps(apps_path: Path) -> list[Path]:
    if not apps_path.is_dir():
        logger.warning("Apps directory not found: %s", apps_path)
        return []
    return sorted(p for p in apps_path.iterdir() if p.is_dir() and p.name.startswith("learn-"))


def normalize_content(content, source: str, discovered_at: str | None = None) -> dict:
    """Map a parsed file to the five collections, tagging each item with its app.

    A top-level list is treated as courses.
    """
    discovered_at = discovered_at or datetime.now(timezone.utc).isoformat()
    normalized = {name: [] for name in COLLECTIONS}
    if isinstance(content, list):
        normalized["courses"] = content
    elif isinstance(content, dict):
        for name in COLLECTIONS:
            if isinstance(content.get(name), list):
                normalized[name] = content[name]

    return {
        name: [
            {**item, "_discovered_from": source, "_discovered_at": discovered_at}
            for item in items if isinstance(item, dict)
        ]
        for name, items in normalized.items()
    }


def _scan(apps_path: Path) -> dict:
    apps = find_learn_apps(apps_path)
    now = datetime.now(timezone.utc).isoformat()
    result = {name: [] for name in COLLECTIONS}
    meta = {
        "discovered_at": now,
        "total_apps_scanned": len(apps),
        "total_files_found": 0,
        "sources": [],
    }

    for app_dir in apps:
        for pattern in CONTENT_FILE_PATTERNS:
            path = app_dir / pattern
            if not path.is_file():
                continue
            try:
                stat = path.stat()
                content = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.error("Error parsing %s: %s", path, e)
                continue

            normalized = normalize_content(content, app_dir.name, now)
            for name in COLLECTIONS:
                result[name].extend(normalized[name])
            meta["total_files_found"] += 1
            meta["sources"].append({
                "app": app_dir.name,
                "file": pattern,
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                "item_counts": {name: len(normalized[name]) for name in COLLECTIONS},
            })

    logger.info(
        "Content discovery: %d apps, %d files, %d courses, %d modules, %d lessons, %d questions",
        meta["total_apps_scanned"], meta["total_files_found"], len(result["courses"]),
        len(result["modules"]), len(result["lessons"]), len(result["questions"]),
    )
    result["_metadata"] = meta
    return result


def discover_all_content(force_refresh: bool = False, root_dir: Path | None = None,
                         apps_dir: str = CONTENT_APPS_DIR) -> dict:
    """Aggregated content across apps, served from cache while fresh."""
    global _cache, _cache_time, _cache_key
    apps_path = Path(root_dir or CONTENT_ROOT) / apps_dir
    key = str(apps_path)

    with _cache_lock:
        fresh = _cache is not None and _cache_key == key and time.monotonic() - _cache_time < CACHE_TTL_SECONDS
        if fresh and not force_refresh:
            return _cache
        _cache = _scan(apps_path)
        _cache_time = time.monotonic()
        _cache_key = key
        return _cache


def get_app_content(app_name: str, **kwargs) -> dict:
    content = discover_all_content(**kwargs)
    return {
        name: [item for item in content[name] if item["_discovered_from"] == app_name]
        for name in COLLECTIONS
    }


def get_apps_with_content(**kwargs) -> list[str]:
    sources = discover_all_content(**kwargs)["_metadata"]["sources"]
    return list(dict.fromkeys(s["app"] for s in sources))


def get_discovery_metadata(**kwargs) -> dict:
    return discover_all_content(**kwargs)["_metadata"]


def clear_discovery_cache() -> None:
    global _cache, _cache_time, _cache_key
    with _cache_lock:
        _cache = None
        _cache_time = 0.0
        _cache_key = ""
    logger.info("Discovery cache cleared")
