"""Tests for the content catalog and the /api/content routes."""

import json

import pytest

from iiskills_gateway.services import content_catalog, content_discovery
from iiskills_gateway.services.content_catalog import ContentCatalog
from iiskills_gateway.services.content_indexer import ContentIndexer


@pytest.fixture
def catalog(apps_tree):
    return ContentCatalog(root_dir=apps_tree)


@pytest.fixture
def content_client(client, apps_tree, monkeypatch):
    monkeypatch.setattr(content_catalog, "_catalog", ContentCatalog(root_dir=apps_tree))
    monkeypatch.setattr(content_discovery, "CONTENT_ROOT", apps_tree)
    return client


class TestCatalogLoad:

    def test_indexes_in_memory_without_index(self, catalog):
        assert len(catalog.items) == 8
        assert catalog.statistics["lastUpdated"] is None

    def test_loads_written_index(self, apps_tree):
        ContentIndexer(apps_tree).index_all()
        catalog = ContentCatalog(root_dir=apps_tree)
        assert len(catalog.items) == 8
        assert catalog.statistics["lastUpdated"]

    def test_reload_picks_up_new_content(self, apps_tree, catalog):
        assert catalog.statistics["totalContent"] == 8
        (apps_tree / "apps" / "learn-math" / "lessons" / "fractions.md").write_text("# Fractions\n")
        assert catalog.reload()["totalContent"] == 9

    def test_missing_apps_dir_is_empty(self, tmp_path):
        catalog = ContentCatalog(root_dir=tmp_path)
        assert catalog.items == []
        assert catalog.apps() == []

    def test_apps_sorted(self, catalog):
        apps = catalog.apps()
        assert [a["appId"] for a in apps] == ["learn-govt-jobs", "learn-math", "learn-physics", "main"]
        physics = next(a for a in apps if a["appId"] == "learn-physics")
        assert physics["contentCount"] == 2

    def test_get_item(self, catalog):
        assert catalog.get_item("learn-physics", "newton")["title"] == "Newton's Laws"
        assert catalog.get_item("learn-math", "newton") is None


class TestCatalogSearch:

    def test_no_filters(self, catalog):
        result = catalog.search()
        assert result["total"] == 8
        assert result["page"] == 1
        assert result["has_more"] is False

    def test_by_type(self, catalog):
        result = catalog.search(types=["job"])
        assert {i["id"] for i in result["items"]} == {"ssc-clerk-2026", "postal-gds"}

    def test_by_tag_case_insensitive(self, catalog):
        result = catalog.search(tags=["ALGEBRA"])
        assert [i["id"] for i in result["items"]] == ["algebra-basics"]

    def test_by_app(self, catalog):
        assert catalog.search(app_ids=["learn-physics"])["total"] == 2

    def test_text_query(self, catalog):
        assert [i["id"] for i in catalog.search(query="NEWTON")["items"]] == ["newton"]
        assert [i["id"] for i in catalog.search(query="optics")["items"]] == ["optics-quiz"]

    def test_by_location(self, catalog):
        result = catalog.search(location={"country": "India", "state": "Kerala", "district": None})
        assert [i["id"] for i in result["items"]] == ["postal-gds"]

    def test_filters_combine(self, catalog):
        assert catalog.search(types=["job"], query="postal")["total"] == 1
        assert catalog.search(types=["lesson"], app_ids=["learn-govt-jobs"])["total"] == 0

    def test_pagination(self, catalog):
        result = catalog.search(limit=3, offset=3)
        assert len(result["items"]) == 3
        assert result["page"] == 2
        assert result["page_size"] == 3
        assert result["has_more"] is True

    def test_page_size_capped(self, catalog):
        assert catalog.search(limit=500)["page_size"] == 100

    def test_non_string_fields_in_stored_index(self, tmp_path):
        manifest_path = tmp_path / "content-index" / "manifests" / "learn-old" / "manifest.json"
        manifest_path.parent.mkdir(parents=True)
        manifest_path.write_text(json.dumps({"appId": "learn-old", "content": [
            {"id": "yearbook", "type": "other", "title": 2024, "description": None, "tags": "archive"},
            {"id": "algebra", "type": "lesson", "title": "Algebra", "description": 7, "tags": [1, "x"]},
        ]}))
        (tmp_path / "content-index" / "meta-index.json").write_text(json.dumps({"apps": [
            {"appId": "learn-old", "manifestPath": "content-index/manifests/learn-old/manifest.json"},
        ]}))
        catalog = ContentCatalog(root_dir=tmp_path)
        assert [i["id"] for i in catalog.search(query="2024")["items"]] == ["yearbook"]
        assert [i["id"] for i in catalog.search(query="algebra")["items"]] == ["algebra"]
        assert [i["id"] for i in catalog.search(tags=["ARCHIVE"])["items"]] == ["yearbook"]
        assert [i["id"] for i in catalog.search(tags=["1"])["items"]] == ["algebra"]


class TestContentRoutes:

    def test_search(self, content_client):
        resp = content_client.get("/api/content/search", params={"type": "job", "state": "Maharashtra"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == "ssc-clerk-2026"

    def test_search_repeatable_params(self, content_client):
        resp = content_client.get("/api/content/search?app=learn-physics&app=learn-govt-jobs")
        assert resp.json()["total"] == 4

    def test_unknown_type(self, content_client):
        resp = content_client.get("/api/content/search", params={"type": "podcast"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Unknown content type: podcast"

    def test_limit_out_of_range(self, content_client):
        assert content_client.get("/api/content/search", params={"limit": 0}).status_code == 400
        assert content_client.get("/api/content/search", params={"limit": 101}).status_code == 400

    def test_apps(self, content_client):
        data = content_client.get("/api/content/apps").json()
        assert len(data["apps"]) == 4
        assert data["statistics"]["totalContent"] == 8

    def test_item(self, content_client):
        resp = content_client.get("/api/content/items/learn-math/algebra-basics")
        assert resp.status_code == 200
        assert resp.json()["title"] == "Algebra Basics"

    def test_item_not_found(self, content_client):
        resp = content_client.get("/api/content/items/learn-math/nope")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_modules_ordered(self, content_client):
        data = content_client.get("/api/content/modules", params={"course_id": "algebra-101"}).json()
        assert data["course_id"] == "algebra-101"
        assert [m["id"] for m in data["modules"]] == ["alg-1", "alg-2"]
        assert "lessons" not in data["modules"][0]

    def test_modules_with_lessons(self, content_client):
        data = content_client.get("/api/content/modules", params={
            "course_id": "algebra-101", "include_lessons": "true", "app": "learn-math",
        }).json()
        assert [ls["id"] for ls in data["modules"][0]["lessons"]] == ["l-1", "l-2"]
        assert [ls["id"] for ls in data["modules"][1]["lessons"]] == ["l-3"]

    def test_modules_requires_course(self, content_client):
        resp = content_client.get("/api/content/modules")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing course_id"

    def test_discovery(self, content_client):
        data = content_client.get("/api/content/discovery").json()
        assert data["apps"] == ["learn-math"]
        assert data["counts"]["modules"] == 3
        assert data["metadata"]["total_apps_scanned"] == 3

    def test_search_with_numeric_title(self, content_client, apps_tree):
        (apps_tree / "apps" / "learn-math" / "data" / "year.json").write_text(
            json.dumps({"id": "exam-year", "title": 2024, "description": 12}))
        resp = content_client.get("/api/content/search", params={"q": "algebra"})
        assert resp.status_code == 200
        assert "exam-year" not in [i["id"] for i in resp.json()["items"]]
        found = content_client.get("/api/content/search", params={"q": "2024"}).json()
        assert [i["id"] for i in found["items"]] == ["exam-year"]
        assert found["items"][0]["title"] == "2024"
