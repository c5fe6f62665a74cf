"""
Tests for filesystem reconciliation (sync and sync-from-index)
"""

import pytest

from flideck_core.models import (
    CardElement,
    Group,
    Manifest,
    ParsedDocument,
    Slide,
    SyncStrategy,
    Tab,
)
from flideck_core.sync import (
    infer_group_id,
    slide_candidates,
    sync_from_index,
    sync_manifest,
    unusable_files,
)


class TestHelpers:
    """Prefix inference and candidate listing."""

    @pytest.mark.parametrize("filename,expected", [
        ("api-auth.html", "api"),
        ("API_keys.html", "api"),
        ("overview.html", None),
        ("-lead.html", None),
        ("trail-.html", None),
    ])
    def test_infer_group_id(self, filename, expected):
        assert infer_group_id(filename) == expected

    def test_candidates_skip_index_documents(self, make_assets):
        assets = make_assets("index.html", "index-dev.html", "custom.html", "a.html")
        manifest = Manifest(tabs=[Tab(id="ops", label="Ops", file="custom.html")])
        assert slide_candidates(assets, manifest) == ["a.html"]

    def test_unusable_names_are_not_candidates(self, make_assets):
        assets = make_assets("index.html", "My Slide.html", "a..b.html", "Übersicht.htm")
        assert slide_candidates(assets, Manifest()) == ["My Slide.html", "Übersicht.htm"]
        assert unusable_files(assets) == ["a..b.html"]


class TestSyncManifest:
    """merge / replace / addOnly."""

    @pytest.fixture
    def manifest(self) -> Manifest:
        return Manifest(slides=[
            Slide(file="b.html", title="Bee"),
            Slide(file="gone.html"),
            Slide(file="a.html"),
        ])

    def test_merge_appends_and_warns(self, manifest, make_assets):
        assets = make_assets("index.html", "a.html", "b.html", "c.html")
        report = sync_manifest(manifest, assets, SyncStrategy.MERGE, titles={"a.html": "Ay", "c.html": "Sea"})
        assert manifest.slide_files() == ["b.html", "gone.html", "a.html", "c.html"]
        assert report.added == ["c.html"]
        assert report.updated == ["a.html"]
        assert manifest.get_slide("a").title == "Ay"
        assert manifest.get_slide("c").title == "Sea"
        assert report.warnings == ["Slide file not found on disk: gone.html"]

    def test_replace_rebuilds_in_discovery_order(self, manifest, make_assets):
        assets = make_assets("index.html", "a.html", "b.html", "c.html")
        report = sync_manifest(manifest, assets, SyncStrategy.REPLACE)
        assert manifest.slide_files() == ["a.html", "b.html", "c.html"]
        assert manifest.get_slide("b").title == "Bee"
        assert report.removed == ["gone.html"]

    def test_add_only_touches_nothing_existing(self, manifest, make_assets):
        assets = make_assets("index.html", "a.html", "c.html")
        report = sync_manifest(manifest, assets, SyncStrategy.ADD_ONLY, titles={"a.html": "Ay"})
        assert manifest.slide_files() == ["b.html", "gone.html", "a.html", "c.html"]
        assert manifest.get_slide("a").title is None
        assert report.updated == []
        assert report.warnings == []

    def test_infer_groups(self, make_assets):
        manifest = Manifest(groups={"api": Group(id="api", label="API", order=1)})
        assets = make_assets("api-auth.html", "guide-start.html", "guide-end.html", "misc.html")
        report = sync_manifest(manifest, assets, infer_groups=True, infer_titles=False)
        assert report.groups_created == ["guide"]
        assert [s.group for s in manifest.slides] == ["api", "guide", "guide", None]
        assert manifest.groups["guide"].order == 2

    def test_second_sync_is_a_no_op(self, manifest, make_assets):
        assets = make_assets("index.html", "a.html", "b.html")
        sync_manifest(manifest, assets, SyncStrategy.REPLACE)
        report = sync_manifest(manifest, assets, SyncStrategy.REPLACE)
        assert not report.changed

    def test_unusable_names_are_skipped_with_a_warning(self, make_assets):
        manifest = Manifest()
        report = sync_manifest(manifest, make_assets("index.html", "My Slide.html", "a..b.html"))
        assert manifest.slide_files() == ["My Slide.html"]
        assert report.added == ["My Slide.html"]
        assert "Skipped a..b.html: not a usable slide file name" in report.warnings


def _doc(title, *hrefs):
    return ParsedDocument(title=title, cards=[CardElement(href=h, title=h.split(".")[0].upper()) for h in hrefs])


class TestSyncFromIndex:
    """Tabs recovered from index-<tab>.html documents."""

    def test_no_index_documents(self, make_assets):
        manifest = Manifest()
        report = sync_from_index(manifest, make_assets("index.html", "a.html"), {})
        assert report.warnings == ["No index-*.html files found; nothing to sync"]
        assert manifest.tabs == []

    def test_creates_tabs_groups_and_slides(self, make_assets):
        manifest = Manifest()
        assets = make_assets("index.html", "index-dev.html", "index-ops.html", "a.html", "b.html", "c.html", "d.html")
        documents = {
            "index-dev.html": _doc("Developers", "a.html", "b.html", "missing.html"),
            "index-ops.html": _doc(None, "b.html", "c.html", "index.html"),
        }
        report = sync_from_index(manifest, assets, documents)

        assert [(t.id, t.label, t.file) for t in manifest.tabs] == [
            ("dev", "Developers", "index-dev.html"),
            ("ops", "Ops", "index-ops.html"),
        ]
        assert manifest.groups["dev"].tab and manifest.groups["dev"].tab_id == "dev"
        assert report.tabs_created == ["dev", "ops"]
        assert {s.file: s.group for s in manifest.slides} == {"a.html": "dev", "b.html": "dev", "c.html": "ops"}
        assert report.slides_assigned == 3
        assert report.slides_skipped == 1
        assert report.slides_orphaned == 1
        assert [t.slides for t in report.tabs] == [["a.html", "b.html"], ["b.html", "c.html"]]
        assert "d.html does not appear in any index file" in report.warnings

    def test_second_run_updates(self, make_assets):
        manifest = Manifest()
        assets = make_assets("index.html", "index-dev.html", "a.html")
        documents = {"index-dev.html": _doc("Dev", "a.html")}
        sync_from_index(manifest, assets, documents)
        report = sync_from_index(manifest, assets, documents)
        assert report.tabs_created == []
        assert report.tabs_updated == ["dev"]
        assert report.groups_updated == ["dev"]
        assert len(manifest.slides) == 1

    def test_add_only_keeps_existing_groups(self, make_assets):
        manifest = Manifest(
            groups={"misc": Group(id="misc", label="Misc", order=1)},
            slides=[Slide(file="a.html", group="misc")],
        )
        assets = make_assets("index.html", "index-dev.html", "a.html", "b.html")
        documents = {"index-dev.html": _doc("Dev", "a.html", "b.html")}
        sync_from_index(manifest, assets, documents, SyncStrategy.ADD_ONLY)
        assert manifest.get_slide("a").group == "misc"
        assert manifest.get_slide("b").group == "dev"

    def test_replace_orders_slides_by_tab(self, make_assets):
        manifest = Manifest(slides=[Slide(file="z.html"), Slide(file="b.html"), Slide(file="a.html")])
        assets = make_assets("index.html", "index-one.html", "index-two.html", "a.html", "b.html", "z.html")
        documents = {
            "index-one.html": _doc("One", "a.html"),
            "index-two.html": _doc("Two", "b.html"),
        }
        sync_from_index(manifest, assets, documents, SyncStrategy.REPLACE)
        assert manifest.slide_files() == ["a.html", "b.html", "z.html"]

    def test_parse_failures_become_warnings(self, make_assets):
        manifest = Manifest()
        assets = make_assets("index.html", "index-dev.html")
        report = sync_from_index(manifest, assets, {}, parse_failures={"index-dev.html": "boom"})
        assert "Could not parse index-dev.html: boom" in report.warnings
        assert manifest.get_tab("dev").label == "Dev"

    def test_cards_only(self, make_assets):
        manifest = Manifest()
        assets = make_assets("index.html", "index-dev.html", "a.html")
        report = sync_from_index(manifest, assets, {"index-dev.html": _doc("Dev", "a.html")}, infer_tabs=False)
        assert manifest.tabs == []
        assert manifest.get_slide("a").group is None
        assert report.slides_assigned == 1
        assert any("No group for tab 'dev'" in w for w in report.warnings)

    def test_cards_with_unusable_hrefs_are_skipped(self, make_assets):
        manifest = Manifest()
        assets = make_assets("index.html", "index-dev.html", "My Slide.html", "a..b.html")
        report = sync_from_index(manifest, assets, {"index-dev.html": _doc("Dev", "My Slide.html", "a..b.html")})
        assert manifest.slide_files() == ["My Slide.html"]
        assert report.slides_assigned == 1
        assert report.slides_skipped == 1
        assert "Card in index-dev.html references an unusable file name: a..b.html" in report.warnings
        assert "Skipped a..b.html: not a usable slide file name" in report.warnings
