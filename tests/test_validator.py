"""
Tests for the manifest validator
"""

from flideck_core.validator import validate


def _paths(issues):
    return [i.path for i in issues]


class TestStructure:
    """Structural checks."""

    def test_valid_rich_manifest(self):
        report = validate({
            "meta": {"name": "Demo", "displayMode": "grouped"},
            "tabs": [{"id": "dev", "label": "Developers", "file": "index-dev.html", "order": 1}],
            "groups": {
                "intro": {"label": "Intro", "order": 1, "tabId": "dev"},
                "details": {"label": "Details", "order": 2, "parent": "intro"},
            },
            "slides": [
                {"file": "a.html", "group": "intro", "tags": ["x"], "recommended": True},
                {"file": "b.html"},
            ],
        })
        assert report.valid
        assert report.warnings == []

    def test_non_object(self):
        report = validate([])
        assert not report.valid

    def test_collects_every_error(self):
        report = validate({
            "meta": {"displayMode": "carousel"},
            "groups": {"Bad_Id": {"order": "first"}},
            "slides": [{"file": "../x.html"}, {"title": 3}],
        })
        paths = _paths(report.errors)
        assert "meta.displayMode" in paths
        assert "groups.Bad_Id" in paths
        assert "groups.Bad_Id.label" in paths
        assert "groups.Bad_Id.order" in paths
        assert "slides[0].file" in paths
        assert "slides[1].file" in paths
        assert "slides[1].title" in paths

    def test_tabbed_is_a_warning(self):
        report = validate({"meta": {"displayMode": "tabbed"}})
        assert report.valid
        assert _paths(report.warnings) == ["meta.displayMode"]

    def test_duplicate_slide_file(self):
        report = validate({"slides": [{"file": "a.html"}, {"file": "a.html"}]})
        assert _paths(report.errors) == ["slides[1].file"]

    def test_slide_file_names(self):
        report = validate({"slides": [{"file": "My Slide.html"}, {"file": "a..b.html"}, {"file": "notes.txt"}]})
        assert _paths(report.errors) == ["slides[1].file", "slides[2].file"]
        assert ".html or .htm" in report.errors[1].message

    def test_duplicate_tab_id(self):
        report = validate({"tabs": [{"id": "a", "label": "A"}, {"id": "a", "label": "B"}]})
        assert _paths(report.errors) == ["tabs[1].id"]

    def test_unknown_references_are_warnings(self):
        report = validate({
            "groups": {"g": {"label": "G", "tabId": "nope"}},
            "slides": [{"file": "a.html", "group": "missing"}],
        })
        assert report.valid
        assert set(_paths(report.warnings)) == {"groups.g.tabId", "slides[0].group"}

    def test_legacy_assets_order_type(self):
        assert validate({"assets": {"order": ["a.html"]}}).valid
        assert not validate({"assets": {"order": "a.html"}}).valid


class TestParentGraph:
    """Parent link checks."""

    def test_self_parent(self):
        report = validate({"groups": {"a": {"label": "A", "parent": "a"}}})
        assert "groups.a.parent" in _paths(report.errors)

    def test_unknown_parent(self):
        report = validate({"groups": {"a": {"label": "A", "parent": "b"}}})
        assert not report.valid

    def test_cycle_is_reported_for_each_member(self):
        report = validate({"groups": {
            "a": {"label": "A", "parent": "b"},
            "b": {"label": "B", "parent": "c"},
            "c": {"label": "C", "parent": "a"},
            "d": {"label": "D", "parent": "a"},
        }})
        cyclic = [p for p in _paths(report.errors)]
        assert cyclic == ["groups.a.parent", "groups.b.parent", "groups.c.parent"]


class TestReferentialPass:
    """Checks against the files on disk."""

    def test_missing_slide_file_is_an_error(self):
        report = validate({"slides": [{"file": "a.html"}]}, files=["index.html"])
        assert _paths(report.errors) == ["slides[0].file"]

    def test_missing_tab_file_is_a_warning(self):
        report = validate({"tabs": [{"id": "dev", "label": "Dev"}]}, files=["index.html"])
        assert report.valid
        assert _paths(report.warnings) == ["tabs[0].file"]

    def test_orphan_files_skip_index_documents(self):
        report = validate(
            {"slides": [{"file": "a.html"}]},
            files=["index.html", "index-dev.html", "a.html", "b.html", "notes.txt"],
        )
        assert report.valid
        assert [w.message for w in report.warnings] == [
            "orphan file not referenced by any slide: b.html"
        ]
