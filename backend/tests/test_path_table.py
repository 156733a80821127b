"""
IDE Workspace — PathTable & FileEntry Tests
============================================

What:  Tests for the flat path-keyed table and the per-entry path rules.

What we test:
    ✅ Duplicate paths are rejected at construction
    ✅ children / descendants / subtree are answered by path prefix
    ✅ problems() reports broken ancestor chains
    ✅ FileEntry rejects mismatched or unsafe paths
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from ide_workspace.exceptions import EntryNotFoundError, NameConflictError
from ide_workspace.schemas.project import FileEntry, join_path, split_path
from ide_workspace.services.path_table import PathTable


class TestFileEntry:
    def test_file_factory_derives_parent_and_filename(self):
        entry = FileEntry.file("src/lib/util.py", "x = 1\n")
        assert entry.filename == "util.py"
        assert entry.parent_folder == "src/lib"
        assert entry.is_folder is False

    def test_root_entry_has_no_parent(self):
        assert FileEntry.file("main.py").parent_folder is None

    def test_empty_parent_folder_means_root(self):
        entry = FileEntry(filename="main.py", path="main.py", parent_folder="")
        assert entry.parent_folder is None

    def test_path_must_match_parent_and_filename(self):
        with pytest.raises(PydanticValidationError):
            FileEntry(filename="a.py", path="src/b.py", parent_folder="src")

    @pytest.mark.parametrize("path", ["src//a.py", "../a.py", "src/./a.py", "/a.py"])
    def test_unsafe_segments_are_rejected(self, path):
        parent, filename = split_path(path)
        with pytest.raises(PydanticValidationError):
            FileEntry(filename=filename, path=path, parent_folder=parent)

    def test_folder_cannot_carry_contents(self):
        with pytest.raises(PydanticValidationError):
            FileEntry(filename="src", path="src", is_folder=True, contents="x")

    def test_entries_are_immutable(self):
        entry = FileEntry.file("main.py")
        with pytest.raises(PydanticValidationError):
            entry.contents = "changed"

    def test_relocated_keeps_kind_and_contents(self):
        moved = FileEntry.file("src/a.py", "body").relocated("lib/b.py")
        assert (moved.path, moved.parent_folder, moved.filename) == ("lib/b.py", "lib", "b.py")
        assert moved.contents == "body"

    def test_path_helpers(self):
        assert join_path(None, "a.py") == "a.py"
        assert join_path("src", "a.py") == "src/a.py"
        assert split_path("a.py") == (None, "a.py")
        assert split_path("src/lib/a.py") == ("src/lib", "a.py")


class TestPathTable:
    def test_duplicate_paths_raise_name_conflict(self):
        with pytest.raises(NameConflictError):
            PathTable([FileEntry.file("main.py"), FileEntry.file("main.py", "other")])

    def test_lookup(self, python_table):
        assert "src/app.py" in python_table
        assert python_table.get("missing.py") is None
        assert python_table.require("src").is_folder
        with pytest.raises(EntryNotFoundError):
            python_table.require("missing.py")

    def test_iteration_keeps_table_order(self, python_table):
        assert python_table.paths == ["main.py", "src", "src/app.py", "src/lib", "src/lib/util.py"]
        assert len(python_table) == 5
        assert [e.path for e in python_table.files()] == ["main.py", "src/app.py", "src/lib/util.py"]
        assert [e.path for e in python_table.folders()] == ["src", "src/lib"]

    def test_children_of_root_and_folder(self, python_table):
        assert [e.path for e in python_table.children_of()] == ["main.py", "src"]
        assert [e.path for e in python_table.children_of("src")] == ["src/app.py", "src/lib"]
        assert python_table.children_of("src/lib/util.py") == []

    def test_descendants_match_whole_segments_only(self):
        table = PathTable([
            FileEntry.folder("src"),
            FileEntry.file("src/a.py"),
            FileEntry.folder("src2"),
            FileEntry.file("src2/b.py"),
        ])
        assert [e.path for e in table.descendants_of("src")] == ["src/a.py"]
        assert [e.path for e in table.subtree("src")] == ["src", "src/a.py"]

    def test_consistent_table_has_no_problems(self, python_table):
        assert python_table.problems() == []
        assert python_table.is_consistent()

    def test_missing_parent_is_reported(self):
        table = PathTable([FileEntry.file("src/a.py")])
        problems = table.problems()
        assert len(problems) == 1
        assert "missing" in problems[0]

    def test_file_as_parent_is_reported(self):
        table = PathTable([FileEntry.file("src"), FileEntry.file("src/a.py")])
        assert "is a file" in table.problems()[0]

    def test_records_round_trip(self, python_table):
        assert PathTable.from_records(python_table.to_records()) == python_table
