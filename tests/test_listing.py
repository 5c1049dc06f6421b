"""Tests for docwiki.listing: directory walking, filters and sort options."""

import os
from pathlib import Path

import pytest

from docwiki.errors import ContentError, ErrorKind
from docwiki.listing import DirectoryLister, filter_items, sort_file_items
from docwiki.paths import ContentPaths


@pytest.fixture
def tree(content_root: Path) -> Path:
    """content/
    ├── Zeta.md
    ├── alpha.md
    ├── logo.PNG
    ├── .hidden.md
    ├── guides/
    │   ├── setup.md
    │   └── deep/notes.mdx
    └── hipaa/
        └── index.md
    """
    (content_root / "guides" / "deep").mkdir(parents=True)
    (content_root / "hipaa").mkdir()
    (content_root / "Zeta.md").write_text("z" * 30)
    (content_root / "alpha.md").write_text("a" * 10)
    (content_root / "logo.PNG").write_bytes(b"\x89PNG" + b"0" * 100)
    (content_root / ".hidden.md").write_text("hidden")
    (content_root / "guides" / "setup.md").write_text("setup")
    (content_root / "guides" / "deep" / "notes.mdx").write_text("notes")
    (content_root / "hipaa" / "index.md").write_text("index")
    return content_root


@pytest.fixture
def lister(tree: Path) -> DirectoryLister:
    return DirectoryLister(ContentPaths(tree))


class TestListDirectory:
    def test_directories_first_then_case_insensitive_names(self, lister):
        contents = lister.list_directory("")
        assert contents.path == ""
        assert [item.name for item in contents.items] == [
            "guides",
            "hipaa",
            "alpha.md",
            "logo.PNG",
            "Zeta.md",
        ]

    def test_hidden_entries_skipped(self, lister):
        names = [item.name for item in lister.list_directory("", recursive=True).items]
        assert ".hidden.md" not in names

    def test_recursive_appends_children_after_parent(self, lister):
        paths = [item.path for item in lister.list_directory("", recursive=True).items]
        assert paths == [
            "guides",
            "hipaa",
            "alpha.md",
            "logo.PNG",
            "Zeta.md",
            "guides/deep",
            "guides/setup.md",
            "guides/deep/notes.mdx",
            "hipaa/index.md",
        ]

    def test_item_metadata(self, lister):
        items = {item.path: item for item in lister.list_directory("").items}

        assert items["alpha.md"].type == "file"
        assert items["alpha.md"].extension == ".md"
        assert items["alpha.md"].size == 10
        assert items["logo.PNG"].extension == ".png"
        assert items["guides"].type == "directory"
        assert items["guides"].size is None
        assert items["guides"].extension is None

    def test_subdirectory(self, lister):
        contents = lister.list_directory("guides/")
        assert contents.path == "guides"
        assert [item.path for item in contents.items] == ["guides/deep", "guides/setup.md"]

    def test_missing_directory(self, lister):
        with pytest.raises(ContentError) as exc:
            lister.list_directory("nope")
        assert exc.value.kind is ErrorKind.NOT_FOUND

    def test_traversal_rejected(self, lister):
        with pytest.raises(ContentError) as exc:
            lister.list_directory("../")
        assert exc.value.kind is ErrorKind.INVALID_PATH

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_unreadable_directory(self, lister, tree):
        locked = tree / "locked"
        locked.mkdir()
        locked.chmod(0)
        try:
            with pytest.raises(ContentError) as exc:
                lister.list_directory("locked")
            assert exc.value.kind is ErrorKind.OPERATION_FAILED
        finally:
            locked.chmod(0o755)

    def test_walk_markdown(self, lister):
        assert lister.walk_markdown("") == [
            "alpha.md",
            "Zeta.md",
            "guides/setup.md",
            "guides/deep/notes.mdx",
            "hipaa/index.md",
        ]
        assert lister.walk_markdown("", recursive=False) == ["alpha.md", "Zeta.md"]

    def test_file_info(self, lister):
        info = lister.file_info("guides/setup.md")
        assert info.name == "setup.md"
        assert info.size == 5

        with pytest.raises(ContentError):
            lister.file_info("guides/missing.md")


class TestFilterAndSort:
    @pytest.fixture
    def items(self, lister):
        return lister.list_directory("", recursive=True).items

    def test_filter_by_type(self, items):
        dirs = filter_items(items, file_type="directory")
        assert {item.path for item in dirs} == {"guides", "hipaa", "guides/deep"}

    @pytest.mark.parametrize("ext", ["md", ".md", "MD"])
    def test_filter_by_extension_with_or_without_dot(self, items, ext):
        names = {item.name for item in filter_items(items, ext=ext)}
        assert names == {"alpha.md", "Zeta.md", "setup.md", "index.md"}

    def test_sort_by_size_treats_directories_as_zero(self, lister):
        items = lister.list_directory("").items
        ordered = sort_file_items(items, "size", "desc")
        assert ordered[0].name == "logo.PNG"
        assert {item.name for item in ordered[-2:]} == {"guides", "hipaa"}

    def test_sort_by_type_puts_directories_first(self, lister):
        items = lister.list_directory("").items
        ordered = sort_file_items(list(reversed(items)), "type", "asc")
        assert [item.type for item in ordered[:2]] == ["directory", "directory"]
        assert [item.name for item in ordered[2:]] == ["alpha.md", "logo.PNG", "Zeta.md"]

    def test_sort_by_name_desc(self, lister):
        items = lister.list_directory("").items
        names = [item.name for item in sort_file_items(items, "name", "desc")]
        assert names == ["Zeta.md", "logo.PNG", "hipaa", "guides", "alpha.md"]

    @pytest.mark.parametrize("sort_by,sort_order", [("owner", "asc"), ("name", "sideways")])
    def test_invalid_sort(self, items, sort_by, sort_order):
        with pytest.raises(ContentError) as exc:
            sort_file_items(items, sort_by, sort_order)
        assert exc.value.kind is ErrorKind.INVALID_SORT
