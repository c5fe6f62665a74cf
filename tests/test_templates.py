"""
Tests for manifest templates
"""

import pytest

from flideck_core.errors import NotFoundError
from flideck_core.models import DisplayMode, Group, Manifest, ManifestMeta, Slide
from flideck_core.templates import apply_template, deep_merge, get_template, get_templates


class TestCatalog:
    """Built-in template catalog."""

    def test_ids(self):
        assert [t.id for t in get_templates()] == [
            "simple", "tutorial", "persona-tabs", "api-docs", "component-library",
        ]

    def test_persona_tabs_structure(self):
        structure = get_template("persona-tabs").to_dict()["structure"]
        assert structure["slides"] == []
        assert structure["groups"]["developer"] == {"label": "Developer", "order": 1, "tab": True}

    def test_unknown_template(self):
        with pytest.raises(NotFoundError):
            get_template("nope")

    def test_structure_is_a_copy(self):
        template = get_template("tutorial")
        template.structure()["groups"]["intro"]["label"] = "changed"
        assert template.groups["intro"]["label"] == "Introduction"


class TestDeepMerge:
    """deep_merge semantics."""

    def test_source_wins_and_lists_replace(self):
        target = {"a": {"x": 1, "y": [1, 2]}, "b": 1}
        source = {"a": {"y": [3]}, "c": 2}
        assert deep_merge(target, source) == {"a": {"x": 1, "y": [3]}, "b": 1, "c": 2}

    def test_inputs_untouched(self):
        target = {"a": {"x": 1}}
        deep_merge(target, {"a": {"x": 2}})
        assert target == {"a": {"x": 1}}


class TestApplyTemplate:
    """apply_template in merge and replace modes."""

    @pytest.fixture
    def manifest(self) -> Manifest:
        return Manifest(
            meta=ManifestMeta(name="Deck", display_mode=DisplayMode.FLAT),
            groups={"intro": Group(id="intro", label="My Intro", order=7)},
            slides=[Slide(file="a.html", group="intro"), Slide(file="b.html")],
        )

    def test_merge_keeps_existing_values(self, manifest):
        apply_template(manifest, get_template("tutorial"), merge=True)
        assert manifest.meta.display_mode is DisplayMode.FLAT
        assert manifest.meta.name == "Deck"
        assert manifest.groups["intro"].label == "My Intro"
        assert manifest.groups["intro"].order == 7
        assert set(manifest.groups) == {"intro", "basics", "advanced", "summary"}

    def test_replace_swaps_meta_and_groups_but_keeps_slides(self, manifest):
        slides_before = [s.to_dict() for s in manifest.slides]
        template = get_template("persona-tabs")
        apply_template(manifest, template, merge=False)
        apply_template(manifest, template, merge=False)
        assert manifest.meta.name is None
        assert manifest.meta.display_mode is DisplayMode.GROUPED
        assert list(manifest.groups) == ["developer", "designer", "manager"]
        assert all(g.tab for g in manifest.groups.values())
        assert [s.to_dict() for s in manifest.slides] == slides_before
