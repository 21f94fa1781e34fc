"""Content indexer: walks app directories and builds content manifests.

Each app under ``<root>/<apps_dir>`` yields one manifest: the app's own
``content-manifest.json`` when present, otherwise items discovered from
JSON and Markdown files in its content folders. ``index_all`` writes
``meta-index.json`` plus ``manifests/<app>/manifest.json`` under the output
directory.

Manifest and item keys are camelCase, matching the manifests the apps ship.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml

from iiskills_gateway.catalog import get_app

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0.0"
APP_MANIFEST_FILE = "content-manifest.json"
META_INDEX_FILE = "meta-index.json"

CONTENT_TYPES = ("job", "lesson", "test", "module", "sports", "article", "quiz", "video", "other")
CONTENT_DIRS = ("content", "data", "lessons", "tests", "modules")
CONTENT_SUFFIXES = (".json", ".md")

_APP_NAMES = {
    "learn-apt": "Aptitude Tests",
    "learn-jee": "JEE Preparation",
    "learn-neet": "NEET Preparation",
    "learn-ias": "IAS Preparation",
    "learn-govt-jobs": "Government Jobs",
    "learn-geography": "Geography",
    "learn-math": "Mathematics",
    "learn-physics": "Physics",
    "learn-chemistry": "Chemistry",
}

_APP_DESCRIPTIONS = {
    "learn-jee": "JEE exam preparation content and practice tests",
    "learn-neet": "NEET exam preparation content and practice tests",
    "learn-ias": "IAS exam preparation content and study material",
    "learn-govt-jobs": "Government job opportunities and eligibility information",
}


def indexed_app_name(app_id: str) -> str:
    if app_id in _APP_NAMES:
        return _APP_NAMES[app_id]
    words = app_id.replace("learn-", "", 1).replace("-", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def indexed_app_description(app_id: str) -> str:
    if app_id in _APP_DESCRIPTIONS:
        return _APP_DESCRIPTIONS[app_id]
    app = get_app(app_id)
    if app and app.get("description"):
        return app["description"]
    return f"Educational content for {indexed_app_name(app_id)}"


def infer_type_from_data(data: dict, app_id: str) -> str:
    if "govt-jobs" in app_id or data.get("company") or data.get("employmentType"):
        return "job"
    if data.get("questions") or data.get("testMode"):
        return "test"
    if data.get("objectives") or data.get("sections"):
        return "lesson"
    if data.get("lessons") or data.get("tests"):
        return "module"
    if "cricket" in app_id or "sports" in app_id:
        return "sports"
    return "other"


def infer_type_from_path(path: str, app_id: str) -> str:
    lower = path.lower()
    if "test" in lower or "quiz" in lower:
        return "test"
    if "lesson" in lower:
        return "lesson"
    if "module" in lower:
        return "module"
    if "govt-jobs" in app_id:
        return "job"
    if "cricket" in app_id or "sports" in app_id:
        return "sports"
    return "article"


def split_front_matter(text: str) -> tuple[dict, str]:
    """Split a leading ``---`` YAML block from Markdown. Bad YAML is ignored."""
    if not text.startswith("---"):
        return {}, text
    parts = text.split("\n")
    for i in range(1, len(parts)):
        if parts[i].strip() == "---":
            try:
                meta = yaml.safe_load("\n".join(parts[1:i])) or {}
            except yaml.YAMLError as e:
                logger.warning("Invalid front matter: %s", e)
                return {}, "\n".join(parts[i + 1:])
            return (meta if isinstance(meta, dict) else {}), "\n".join(parts[i + 1:])
    return {}, text


def _as_tags(value) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, list):
        return [str(t) for t in value]
    return None


def _as_text(value) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _normalize_item(item: dict, app_id: str) -> dict:
    """Coerce an app-provided manifest item to the indexed field types."""
    item = dict(item)
    item["id"] = str(item.get("id") or "")
    if item.get("type") not in CONTENT_TYPES:
        item["type"] = "other"
    item["title"] = _as_text(item.get("title")) or item["id"]
    item["description"] = _as_text(item.get("description"))
    item["tags"] = _as_tags(item.get("tags"))
    item.setdefault("appId", app_id)
    return item


class ContentIndexer:
    """Scan ``<root_dir>/<apps_dir>/*`` and build manifests."""

    def __init__(self, root_dir, apps_dir: str = "apps", output_dir: str = "content-index",
                 include_apps: list[str] | None = None, exclude_apps: list[str] | None = None):
        self.root_dir = Path(root_dir)
        self.apps_dir = apps_dir
        self.output_dir = output_dir
        self.include_apps = list(include_apps or [])
        self.exclude_apps = list(exclude_apps or [])

    @property
    def apps_path(self) -> Path:
        return self.root_dir / self.apps_dir

    @property
    def output_path(self) -> Path:
        return self.root_dir / self.output_dir

    def list_apps(self) -> list[str]:
        if not self.apps_path.is_dir():
            raise FileNotFoundError(f"Apps directory not found: {self.apps_path}")
        apps = sorted(p.name for p in self.apps_path.iterdir() if p.is_dir())
        if self.include_apps:
            return [a for a in apps if a in self.include_apps]
        return [a for a in apps if a not in self.exclude_apps]

    def index_all(self, write: bool = True) -> dict:
        """Index every selected app and return the meta-index."""
        manifests = list(self.build_manifests().values())
        statistics = {t: 0 for t in CONTENT_TYPES}
        for manifest in manifests:
            for item in manifest.get("content", []):
                item_type = item.get("type", "other")
                statistics[item_type] = statistics.get(item_type, 0) + 1

        meta_index = {
            "version": MANIFEST_VERSION,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "apps": [
                {
                    "appId": m["appId"],
                    "appName": m.get("appName", m["appId"]),
                    "contentCount": len(m.get("content", [])),
                    "manifestPath": f"{self.output_dir}/manifests/{m['appId']}/manifest.json",
                }
                for m in manifests
            ],
            "statistics": {
                "totalApps": len(manifests),
                "totalContent": sum(len(m.get("content", [])) for m in manifests),
                "contentByType": statistics,
            },
        }

        if write:
            self._write_json(self.output_path / META_INDEX_FILE, meta_index)
            for m in manifests:
                self._write_json(self.output_path / "manifests" / m["appId"] / "manifest.json", m)
            logger.info("Indexed %d apps, %d items -> %s",
                        len(manifests), meta_index["statistics"]["totalContent"], self.output_path)
        return meta_index

    def index_app(self, app_id: str) -> dict:
        """Manifest for one app. An app-provided manifest wins over discovery."""
        app_path = self.apps_path / app_id
        own_manifest = app_path / APP_MANIFEST_FILE
        if own_manifest.exists():
            manifest = json.loads(own_manifest.read_text(encoding="utf-8"))
            if not isinstance(manifest, dict):
                raise ValueError(f"{own_manifest} is not a JSON object")
            manifest.setdefault("appId", app_id)
            content = manifest.get("content")
            manifest["content"] = [
                _normalize_item(item, app_id)
                for item in (content if isinstance(content, list) else [])
                if isinstance(item, dict)
            ]
            return manifest

        return {
            "appId": app_id,
            "appName": indexed_app_name(app_id),
            "description": indexed_app_description(app_id),
            "content": self.discover_content(app_path, app_id),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "version": MANIFEST_VERSION,
        }

    def discover_content(self, app_path: Path, app_id: str) -> list[dict]:
        items = []
        for dirname in CONTENT_DIRS:
            dir_path = app_path / dirname
            if dir_path.is_dir():
                items.extend(self._scan_directory(dir_path, app_id))
        return items

    def _scan_directory(self, dir_path: Path, app_id: str) -> list[dict]:
        items = []
        try:
            entries = sorted(dir_path.iterdir())
        except OSError as e:
            logger.warning("Error scanning directory %s: %s", dir_path, e)
            return items
        for entry in entries:
            if entry.is_dir():
                items.extend(self._scan_directory(entry, app_id))
            elif entry.suffix in CONTENT_SUFFIXES:
                item = self.parse_file(entry, app_id)
                if item:
                    items.append(item)
        return items

    def _relative_url(self, path: Path) -> str:
        try:
            return path.relative_to(self.root_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def parse_file(self, path: Path, app_id: str) -> dict | None:
        """One content item from a .json or .md file; None if unreadable."""
        try:
            text = path.read_text(encoding="utf-8")
            updated = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Error reading %s: %s", path, e)
            return None

        if path.suffix == ".json":
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning("Error parsing %s: %s", path, e)
                return None
            return self._item_from_json(data, path, app_id, updated)
        return self._item_from_markdown(text, path, app_id, updated)

    def _item_from_json(self, data, path: Path, app_id: str, updated: str) -> dict:
        if not isinstance(data, dict):
            data = {"items": data}
        return {
            "id": str(data.get("id") or path.stem),
            "type": infer_type_from_data(data, app_id),
            "title": _as_text(data.get("title")) or path.stem,
            "description": _as_text(data.get("description")),
            "tags": _as_tags(data.get("tags")),
            "metadata": data,
            "location": data.get("location"),
            "deadline": data.get("deadline"),
            "url": self._relative_url(path),
            "appId": app_id,
            "createdAt": data.get("createdAt") or data.get("created_at"),
            "updatedAt": data.get("updatedAt") or data.get("updated_at") or updated,
        }

    def _item_from_markdown(self, text: str, path: Path, app_id: str, updated: str) -> dict:
        meta, body = split_front_matter(text)
        lines = [ln.strip() for ln in body.splitlines() if ln.strip()]
        heading_at = next((i for i, ln in enumerate(lines) if ln.startswith("#")), None)
        if heading_at is None:
            heading = ""
            summary = " ".join(lines[:2])
        else:
            heading = lines[heading_at].lstrip("#").strip()
            summary = " ".join(lines[heading_at + 1:heading_at + 3])

        item_type = meta.get("type")
        if item_type not in CONTENT_TYPES:
            item_type = infer_type_from_path(self._relative_url(path), app_id)

        return {
            "id": str(meta.get("id") or path.stem),
            "type": item_type,
            "title": _as_text(meta.get("title")) or heading or path.stem,
            "description": _as_text(meta.get("description")) or summary,
            "tags": _as_tags(meta.get("tags")),
            "metadata": meta or None,
            "location": meta.get("location"),
            "deadline": str(meta["deadline"]) if meta.get("deadline") else None,
            "url": self._relative_url(path),
            "appId": app_id,
            "createdAt": str(meta["date"]) if meta.get("date") else None,
            "updatedAt": updated,
        }

    @staticmethod
    def _write_json(path: Path, data: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")

    def build_manifests(self) -> dict[str, dict]:
        """Manifests for every selected app, in memory only."""
        manifests = {}
        for app_id in self.list_apps():
            try:
                manifests[app_id] = self.index_app(app_id)
            except (OSError, ValueError) as e:
                logger.warning("Failed to index app %s: %s", app_id, e)
        return manifests
