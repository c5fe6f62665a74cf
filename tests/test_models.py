"""
Tests for manifest models and normalization
"""

import pytest

from flideck_core.errors import ValidationError
from flideck_core.models import (
    Asset,
    BulkOperationResult,
    DeleteTabMode,
    DeleteTabStrategy,
    DisplayMode,
    DuplicateFilePolicy,
    Group,
    Manifest,
    Slide,
    SyncStrategy,
    Tab,
    coerce_display_mode,
    format_name,
    is_html_file,
    is_valid_id,
    parse_enum,
    parse_order,
    tab_id_from_filename,
)


class TestNamingRules:
    """Tests for id and file name helpers."""

    @pytest.mark.parametrize("value", ["intro", "my-group", "a1-b2-c3"])
    def test_valid_ids(self, value):
        assert is_valid_id(value)

    @pytest.mark.parametrize("value", ["Intro", "my_group", "-x", "x-", "a--b", "", None, 3])
    def test_invalid_ids(self, value):
        assert not is_valid_id(value)

    def test_html_file_rejects_paths(self):
        assert is_html_file("slide.html")
        assert is_html_file("Slide_01.htm")
        assert not is_html_file("../slide.html")
        assert not is_html_file("sub/slide.html")
        assert not is_html_file("slide.txt")

    @pytest.mark.parametrize("value", ["My Slide.html", "Übersicht.html", "a (1).htm"])
    def test_html_file_allows_spaces_and_unicode(self, value):
        assert is_html_file(value)

    @pytest.mark.parametrize("value", [".hidden.html", " lead.html", "trail.html ", "a..b.html", "a\\b.html", "tab\there.html"])
    def test_html_file_rejects_unsafe_names(self, value):
        assert not is_html_file(value)

    def test_format_name(self):
        assert format_name("getting-started") == "Getting Started"
        assert format_name("api_auth") == "Api Auth"

    def test_tab_id_from_filename(self):
        assert tab_id_from_filename("index-intro.html") == "intro"
        assert tab_id_from_filename("index-deep-dive.html") == "deep-dive"
        assert tab_id_from_filename("index.html") is None
        assert tab_id_from_filename("intro.html") is None


class TestEnums:
    """Tests for enum parsing."""

    def test_sync_strategy_aliases(self):
        assert SyncStrategy("addOnly") is SyncStrategy.ADD_ONLY
        assert SyncStrategy("add_only") is SyncStrategy.ADD_ONLY
        assert SyncStrategy("add-only") is SyncStrategy.ADD_ONLY

    def test_parse_enum_default(self):
        assert parse_enum(DuplicateFilePolicy, None, "x", DuplicateFilePolicy.SKIP) is DuplicateFilePolicy.SKIP

    def test_parse_enum_rejects_unknown_value(self):
        with pytest.raises(ValidationError) as exc:
            parse_enum(DuplicateFilePolicy, "overwrite", "onConflict.duplicateFile")
        assert "overwrite" in str(exc.value)

    def test_parse_enum_missing_without_default(self):
        with pytest.raises(ValidationError):
            parse_enum(DuplicateFilePolicy, "", "policy")

    def test_tabbed_is_coerced_to_grouped(self):
        assert coerce_display_mode("tabbed") is DisplayMode.GROUPED

    def test_unknown_display_mode_is_ignored(self):
        assert coerce_display_mode("carousel") is None
        assert coerce_display_mode(None) is None


class TestDeleteTabStrategy:
    """Tests for delete-tab strategy parsing."""

    def test_default_is_orphan(self):
        assert DeleteTabStrategy.parse(None).mode is DeleteTabMode.ORPHAN

    def test_reparent_with_target(self):
        strategy = DeleteTabStrategy.parse("reparent:other")
        assert strategy.mode is DeleteTabMode.REPARENT
        assert strategy.target == "other"
        assert str(strategy) == "reparent:other"

    @pytest.mark.parametrize("raw", ["reparent", "reparent:", "explode"])
    def test_invalid_strategies(self, raw):
        with pytest.raises(ValidationError):
            DeleteTabStrategy.parse(raw)


class TestEntities:
    """Tests for Tab, Group and Slide."""

    def test_tab_default_file(self):
        assert Tab(id="intro", label="Intro").file == "index-intro.html"

    def test_group_round_trip_keeps_unknown_keys(self):
        group = Group.from_dict("api", {"label": "API", "order": 2, "tabId": "dev", "color": "red"})
        assert group.tab_id == "dev"
        assert group.to_dict() == {"color": "red", "label": "API", "order": 2, "tabId": "dev"}

    def test_group_label_defaults_from_id(self):
        assert Group.from_dict("deep-dive", {}).label == "Deep Dive"

    @pytest.mark.parametrize("raw,expected", [(3, 3), (1.5, 1.5), ("2", 2), (" 2.5 ", 2.5), (None, 0)])
    def test_parse_order_accepts_numbers(self, raw, expected):
        assert parse_order(raw, "group 'x'") == expected

    @pytest.mark.parametrize("raw", ["soon", True, [1], "nan", float("inf")])
    def test_parse_order_rejects_non_numbers(self, raw):
        assert parse_order(raw, "group 'x'") is None

    def test_manifest_moves_bad_orders_last(self):
        manifest = Manifest.from_dict({
            "tabs": [{"id": "dev", "label": "Dev", "order": "first"}, {"id": "ops", "label": "Ops", "order": 4}],
            "groups": {"a": {"label": "A", "order": "2"}, "b": {"label": "B", "order": {}}},
        })
        assert [t.order for t in manifest.tabs] == [5, 4]
        assert manifest.groups["a"].order == 2
        assert manifest.groups["b"].order == 3

    def test_slide_id_and_matching(self):
        slide = Slide(file="intro.html")
        assert slide.id == "intro"
        assert slide.matches("intro")
        assert slide.matches("intro.html")
        assert not slide.matches("outro")

    def test_slide_apply_ignores_file_and_keeps_extra(self):
        slide = Slide(file="a.html", group="x")
        slide.apply({"file": "b.html", "title": "A", "group": "", "type": "diagram"})
        assert slide.file == "a.html"
        assert slide.title == "A"
        assert slide.group is None
        assert slide.extra == {"type": "diagram"}


class TestManifestNormalization:
    """Tests for Manifest.from_dict over legacy and rich shapes."""

    def test_empty_document(self):
        manifest = Manifest.from_dict(None)
        assert manifest.slides == []
        assert manifest.groups == {}

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError):
            Manifest.from_dict(["a.html"])

    def test_legacy_assets_order(self):
        manifest = Manifest.from_dict({"assets": {"order": ["b.html", "a.html"]}})
        assert manifest.asset_order == ["b.html", "a.html"]
        assert manifest.to_dict()["assets"] == {"order": ["b.html", "a.html"]}

    def test_groups_as_list_and_shorthand(self):
        manifest = Manifest.from_dict({"groups": [{"id": "intro", "label": "Intro", "order": 1}]})
        assert manifest.groups["intro"].label == "Intro"

        manifest = Manifest.from_dict({"groups": {"intro": "Introduction"}})
        assert manifest.groups["intro"].label == "Introduction"

    def test_string_slides_and_malformed_entries(self):
        manifest = Manifest.from_dict({"slides": ["a.html", {"file": "b.html"}, {"title": "no file"}, 7]})
        assert manifest.slide_files() == ["a.html", "b.html"]

    def test_tabs_as_dict(self):
        manifest = Manifest.from_dict({"tabs": {"intro": {"label": "Intro"}}})
        assert manifest.get_tab("intro").file == "index-intro.html"

    def test_tabbed_meta_written_back_as_grouped(self):
        manifest = Manifest.from_dict({"meta": {"displayMode": "tabbed"}})
        assert manifest.meta.display_mode is DisplayMode.GROUPED
        assert manifest.to_dict()["meta"]["displayMode"] == "grouped"

    def test_unknown_top_level_keys_survive(self):
        data = {"version": 2, "slides": [{"file": "a.html", "preview": "a.png"}]}
        out = Manifest.from_dict(data).to_dict()
        assert out["version"] == 2
        assert out["slides"][0]["preview"] == "a.png"

    def test_find_slide_prefers_exact_file(self):
        manifest = Manifest(slides=[Slide(file="intro.htm"), Slide(file="intro.html")])
        assert manifest.find_slide_index("intro.html") == 1
        assert manifest.find_slide_index("intro") == 0

    def test_next_orders_and_stats(self):
        manifest = Manifest(groups={"a": Group(id="a", label="A", order=4)}, slides=[Slide(file="x.html")])
        assert manifest.next_group_order() == 5
        assert manifest.next_tab_order() == 1
        manifest.refresh_stats()
        assert manifest.stats == {"total_slides": 1, "groups": 1}

    def test_copy_is_deep(self):
        manifest = Manifest(slides=[Slide(file="a.html")])
        clone = manifest.copy()
        clone.slides[0].title = "changed"
        assert manifest.slides[0].title is None


class TestResults:
    """Tests for result objects."""

    def test_asset_from_filename(self):
        index = Asset.from_filename("index.html")
        assert index.is_index and index.name == "Index"
        slide = Asset.from_filename("getting-started.html")
        assert slide.id == "getting-started"
        assert slide.name == "Getting Started"
        assert slide.to_dict()["relativePath"] == "getting-started.html"

    def test_bulk_result_skip(self):
        result = BulkOperationResult(dry_run=True)
        result.skip("a.html", "file already in manifest")
        data = result.to_dict()
        assert data["skipped"] == 1
        assert data["dryRun"] is True
        assert data["skippedItems"] == [{"file": "a.html", "reason": "file already in manifest"}]
