"""
Tests for slide mutations and bulk add
"""

import pytest

from flideck_core.errors import ConflictError, NotFoundError, ValidationError
from flideck_core.models import DuplicateFilePolicy, Group, GroupMismatchPolicy, Manifest, Slide
from flideck_core.slides import BulkAddOptions, add_slide, bulk_add_slides, remove_slide, update_slide


@pytest.fixture
def manifest() -> Manifest:
    return Manifest(
        groups={"intro": Group(id="intro", label="Intro", order=1)},
        slides=[Slide(file="a.html", group="intro"), Slide(file="b.html")],
    )


class TestSingleSlide:
    """add/update/remove."""

    def test_add_slide(self, manifest):
        slide = add_slide(manifest, "c.html", {"title": "C", "tags": ["new"]})
        assert manifest.slides[-1] is slide
        assert slide.tags == ["new"]

    def test_add_duplicate(self, manifest):
        with pytest.raises(ConflictError):
            add_slide(manifest, "a.html")

    @pytest.mark.parametrize("file", ["../c.html", "c.txt", "", "dir/c.html"])
    def test_add_invalid_file(self, manifest, file):
        with pytest.raises(ValidationError):
            add_slide(manifest, file)

    def test_add_invalid_file_message_names_both_extensions(self, manifest):
        with pytest.raises(ValidationError) as exc:
            add_slide(manifest, "c.txt")
        assert ".html or .htm" in str(exc.value)
        assert add_slide(manifest, "c.htm").file == "c.htm"

    def test_add_invalid_metadata(self, manifest):
        with pytest.raises(ValidationError) as exc:
            add_slide(manifest, "c.html", {"recommended": "yes", "tags": "x"})
        assert len(exc.value.errors) == 2

    def test_update_by_id_or_file(self, manifest):
        update_slide(manifest, "b", {"title": "Bee"})
        update_slide(manifest, "b.html", {"group": "intro"})
        assert manifest.slides[1].title == "Bee"
        assert manifest.slides[1].group == "intro"

    def test_update_missing(self, manifest):
        with pytest.raises(NotFoundError):
            update_slide(manifest, "zzz", {"title": "x"})

    def test_remove(self, manifest):
        removed = remove_slide(manifest, "a")
        assert removed.file == "a.html"
        assert manifest.slide_files() == ["b.html"]


class TestBulkOptions:
    """Wire form of bulk options."""

    def test_from_dict(self):
        options = BulkAddOptions.from_dict({
            "createGroups": True,
            "position": {"after": "a.html"},
            "onConflict": {"duplicateFile": "rename", "groupMismatch": "ungroup"},
        })
        assert options.create_groups
        assert options.duplicate_file is DuplicateFilePolicy.RENAME
        assert options.group_mismatch is GroupMismatchPolicy.UNGROUP

    def test_defaults(self):
        options = BulkAddOptions.from_dict(None)
        assert options.position == "end"
        assert options.duplicate_file is DuplicateFilePolicy.SKIP

    def test_bad_policy(self):
        with pytest.raises(ValidationError):
            BulkAddOptions.from_dict({"onConflict": {"duplicateFile": "overwrite"}})


class TestBulkAdd:
    """bulk_add_slides conflict handling."""

    def test_skip_duplicates_by_default(self, manifest):
        result = bulk_add_slides(manifest, [{"file": "a.html"}, {"file": "c.html"}])
        assert (result.added, result.skipped) == (1, 1)
        assert manifest.slide_files() == ["a.html", "b.html", "c.html"]

    def test_rename_duplicate(self):
        manifest = Manifest(slides=[Slide(file="a.html")])
        options = BulkAddOptions(duplicate_file=DuplicateFilePolicy.RENAME)
        result = bulk_add_slides(manifest, [{"file": "a.html", "title": "Copy"}], options)
        assert result.added == 1
        assert result.skipped == 0
        assert result.files == ["a-1.html"]
        assert manifest.slide_files() == ["a.html", "a-1.html"]

    def test_rename_picks_next_free_suffix(self):
        manifest = Manifest(slides=[Slide(file="a.html"), Slide(file="a-1.html")])
        options = BulkAddOptions(duplicate_file=DuplicateFilePolicy.RENAME)
        result = bulk_add_slides(manifest, [{"file": "a.html"}, {"file": "a.html"}], options)
        assert result.files == ["a-2.html", "a-3.html"]

    def test_replace_duplicate_in_place(self, manifest):
        options = BulkAddOptions(duplicate_file=DuplicateFilePolicy.REPLACE)
        result = bulk_add_slides(manifest, [{"file": "b.html", "title": "New B"}], options)
        assert (result.added, result.updated) == (0, 1)
        assert manifest.slides[1].title == "New B"
        assert len(manifest.slides) == 2

    def test_positions(self, manifest):
        bulk_add_slides(manifest, [{"file": "s.html"}], BulkAddOptions(position="start"))
        bulk_add_slides(manifest, [{"file": "m1.html"}, {"file": "m2.html"}],
                        BulkAddOptions(position={"after": "a.html"}))
        assert manifest.slide_files() == ["s.html", "a.html", "m1.html", "m2.html", "b.html"]

    def test_unknown_after_target(self, manifest):
        with pytest.raises(ValidationError):
            bulk_add_slides(manifest, [{"file": "x.html"}], BulkAddOptions(position={"after": "zzz.html"}))
        assert manifest.slide_files() == ["a.html", "b.html"]

    def test_unknown_group_policies(self, manifest):
        items = [{"file": "x.html", "group": "extra"}]

        result = bulk_add_slides(manifest.copy(), items)
        assert result.skipped_items[0].reason == "unknown group 'extra'"

        target = manifest.copy()
        bulk_add_slides(target, items, BulkAddOptions(group_mismatch=GroupMismatchPolicy.UNGROUP))
        assert target.get_slide("x").group is None

        target = manifest.copy()
        result = bulk_add_slides(target, items, BulkAddOptions(create_groups=True))
        assert result.created_groups == ["extra"]
        assert target.groups["extra"].label == "Extra"
        assert target.get_slide("x").group == "extra"

    def test_create_groups_skips_invalid_group_id(self, manifest):
        items = [{"file": "x.html", "group": "My Group"}, {"file": "y.html", "group": "fresh"}]
        result = bulk_add_slides(manifest, items, BulkAddOptions(create_groups=True))
        assert result.added == 1
        assert result.skipped_items[0].file == "x.html"
        assert result.skipped_items[0].reason.startswith("invalid group id 'My Group'")
        assert result.created_groups == ["fresh"]
        assert "My Group" not in manifest.groups
        assert manifest.slide_files() == ["a.html", "b.html", "y.html"]

    def test_malformed_items(self, manifest):
        with pytest.raises(ValidationError) as exc:
            bulk_add_slides(manifest, [{"title": "no file"}, {"file": "../up.html"}, "nope"])
        assert len(exc.value.errors) == 3
        with pytest.raises(ValidationError):
            bulk_add_slides(manifest, None)
