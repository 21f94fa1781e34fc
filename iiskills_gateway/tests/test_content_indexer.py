"""Tests for the content indexer: discovery, parsing and meta-index output."""

import json

import pytest

from iiskills_gateway.services.content_indexer import (
    ContentIndexer,
    indexed_app_description,
    indexed_app_name,
    infer_type_from_data,
    infer_type_from_path,
    split_front_matter,
)


def _by_id(manifest):
    return {item["id"]: item for item in manifest["content"]}


class TestHelpers:

    def test_app_names(self):
        assert indexed_app_name("learn-jee") == "JEE Preparation"
        assert indexed_app_name("learn-data-science") == "Data Science"

    def test_app_description_falls_back_to_catalog(self):
        assert indexed_app_description("learn-govt-jobs").startswith("Government job")
        assert indexed_app_description("learn-unknown") == "Educational content for Unknown"

    @pytest.mark.parametrize("data,app_id,expected", [
        ({"company": "ACME"}, "learn-apt", "job"),
        ({}, "learn-govt-jobs", "job"),
        ({"questions": [1]}, "learn-apt", "test"),
        ({"objectives": ["x"]}, "learn-math", "lesson"),
        ({"lessons": []}, "learn-math", "other"),
        ({"lessons": ["a"]}, "learn-math", "module"),
        ({}, "learn-cricket", "sports"),
        ({}, "learn-math", "other"),
    ])
    def test_infer_type_from_data(self, data, app_id, expected):
        assert infer_type_from_data(data, app_id) == expected

    @pytest.mark.parametrize("path,app_id,expected", [
        ("apps/learn-apt/tests/quant.md", "learn-apt", "test"),
        ("apps/learn-math/content/quiz-1.md", "learn-math", "test"),
        ("apps/learn-math/lessons/a.md", "learn-math", "lesson"),
        ("apps/learn-math/modules/a.md", "learn-math", "module"),
        ("apps/learn-govt-jobs/content/a.md", "learn-govt-jobs", "job"),
        ("apps/learn-math/content/a.md", "learn-math", "article"),
    ])
    def test_infer_type_from_path(self, path, app_id, expected):
        assert infer_type_from_path(path, app_id) == expected

    def test_front_matter(self):
        meta, body = split_front_matter("---\ntitle: Hello\ntags: [a, b]\n---\nBody\n")
        assert meta == {"title": "Hello", "tags": ["a", "b"]}
        assert body == "Body\n"

    def test_no_front_matter(self):
        assert split_front_matter("# Title\n") == ({}, "# Title\n")

    def test_invalid_front_matter_ignored(self):
        meta, body = split_front_matter("---\ntitle: [unclosed\n---\nBody")
        assert meta == {}
        assert body == "Body"

    def test_unterminated_front_matter(self):
        text = "---\ntitle: x\nno closing fence"
        assert split_front_matter(text) == ({}, text)


class TestIndexApp:

    def test_lists_app_directories(self, apps_tree):
        indexer = ContentIndexer(apps_tree)
        assert indexer.list_apps() == ["learn-govt-jobs", "learn-math", "learn-physics", "main"]

    def test_include_and_exclude(self, apps_tree):
        assert ContentIndexer(apps_tree, include_apps=["learn-math"]).list_apps() == ["learn-math"]
        assert "main" not in ContentIndexer(apps_tree, exclude_apps=["main"]).list_apps()

    def test_missing_apps_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ContentIndexer(tmp_path).list_apps()

    def test_json_items(self, apps_tree):
        manifest = ContentIndexer(apps_tree).index_app("learn-govt-jobs")
        items = _by_id(manifest)
        clerk = items["ssc-clerk-2026"]
        assert clerk["type"] == "job"
        assert clerk["tags"] == ["ssc", "clerk"]
        assert clerk["location"]["district"] == "Pune"
        assert clerk["deadline"] == "2026-12-31"
        assert clerk["appId"] == "learn-govt-jobs"
        assert clerk["url"] == "apps/learn-govt-jobs/data/jobs/clerk.json"
        assert clerk["updatedAt"]
        assert items["postal-gds"]["tags"] == ["postal", "rural"]
        assert manifest["appName"] == "Government Jobs"

    def test_markdown_front_matter_wins(self, apps_tree):
        items = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))
        lesson = items["algebra-basics"]
        assert lesson["type"] == "lesson"
        assert lesson["title"] == "Algebra Basics"
        assert lesson["description"] == "Variables and expressions."
        assert lesson["tags"] == ["algebra", "beginner"]
        assert lesson["createdAt"] == "2026-01-15"

    def test_markdown_heading_and_summary(self, apps_tree):
        items = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))
        notes = items["geometry-notes"]
        assert notes["title"] == "Geometry Notes"
        assert notes["description"] == "Angles and triangles. Circles and arcs."
        assert notes["type"] == "article"
        assert notes["metadata"] is None

    def test_json_list_wrapped(self, apps_tree):
        items = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))
        assert items["courses"]["metadata"] == {"items": [
            {"id": "algebra-101", "title": "Algebra 101"},
            {"id": "geometry-101", "title": "Geometry 101"},
        ]}
        assert items["modules"]["type"] == "module"

    def test_app_manifest_wins(self, apps_tree):
        manifest = ContentIndexer(apps_tree).index_app("learn-physics")
        assert manifest["appName"] == "Physics"
        assert [i["id"] for i in manifest["content"]] == ["newton", "optics-quiz"]

    def test_non_string_title_coerced(self, apps_tree):
        path = apps_tree / "apps" / "learn-math" / "data" / "year.json"
        path.write_text(json.dumps({"id": "exam-year", "title": 2024, "description": 3.5}))
        item = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))["exam-year"]
        assert item["title"] == "2024"
        assert item["description"] == "3.5"

    def test_heading_after_intro_text(self, apps_tree):
        path = apps_tree / "apps" / "learn-math" / "content" / "ratios.md"
        path.write_text("Draft, do not publish\n\n## Ratios and Rates\nComparing quantities.\n")
        item = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))["ratios"]
        assert item["title"] == "Ratios and Rates"
        assert item["description"] == "Comparing quantities."

    def test_markdown_without_heading(self, apps_tree):
        path = apps_tree / "apps" / "learn-math" / "content" / "scratch.md"
        path.write_text("First line.\nSecond line.\nThird line.\n")
        item = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))["scratch"]
        assert item["title"] == "scratch"
        assert item["description"] == "First line. Second line."

    def test_app_manifest_items_normalized(self, apps_tree):
        (apps_tree / "apps" / "main" / "content-manifest.json").write_text(json.dumps({
            "appName": "Main",
            "content": [
                {"id": 42, "type": "podcast", "title": 1999, "tags": "a, b"},
                "not an item",
            ],
        }))
        manifest = ContentIndexer(apps_tree).index_app("main")
        assert manifest["content"] == [{
            "id": "42", "type": "other", "title": "1999", "description": None,
            "tags": ["a", "b"], "appId": "main",
        }]

    def test_bad_json_skipped(self, apps_tree):
        broken = apps_tree / "apps" / "learn-math" / "data" / "broken.json"
        broken.write_text("{nope", encoding="utf-8")
        items = _by_id(ContentIndexer(apps_tree).index_app("learn-math"))
        assert "broken" not in items
        assert "algebra-basics" in items

    def test_bad_app_manifest_skipped(self, apps_tree):
        (apps_tree / "apps" / "main" / "content-manifest.json").write_text("[1, 2]")
        manifests = ContentIndexer(apps_tree).build_manifests()
        assert "main" not in manifests
        assert "learn-math" in manifests


class TestIndexAll:

    def test_statistics(self, apps_tree):
        meta = ContentIndexer(apps_tree).index_all(write=False)
        stats = meta["statistics"]
        assert stats["totalApps"] == 4
        assert stats["totalContent"] == 8
        assert stats["contentByType"]["job"] == 2
        assert stats["contentByType"]["lesson"] == 2
        assert stats["contentByType"]["quiz"] == 1
        assert sum(stats["contentByType"].values()) == 8
        assert not (apps_tree / "content-index").exists()

    def test_writes_meta_index_and_manifests(self, apps_tree):
        meta = ContentIndexer(apps_tree).index_all()
        out = apps_tree / "content-index"
        on_disk = json.loads((out / "meta-index.json").read_text())
        assert on_disk["statistics"] == meta["statistics"]

        entry = next(a for a in on_disk["apps"] if a["appId"] == "learn-math")
        assert entry["contentCount"] == 4
        assert entry["manifestPath"] == "content-index/manifests/learn-math/manifest.json"
        manifest = json.loads((apps_tree / entry["manifestPath"]).read_text())
        assert len(manifest["content"]) == 4
