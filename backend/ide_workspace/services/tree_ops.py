"""
IDE Workspace — Tree Operations
================================

What:  Every structural edit of a project's file tree: add, rename, move,
       remove, plus content edits and file import.
How:   Each operation takes a PathTable and returns a new one. Nothing is
       mutated in place, so a rejected operation leaves the caller's table
       exactly as it was. Folder renames and moves rewrite every descendant's
       path and parent_folder by prefix substitution.
Who:   Called by WorkspaceService on behalf of the editor routes.

Invariants preserved by every operation:
    - paths are unique
    - every parent_folder names an existing folder
    - no entry ends up inside itself
    - the project keeps at least one file once it has one
"""

from typing import Optional, Tuple

from ide_workspace.exceptions import (
    CyclicMoveError,
    LastFileProtectedError,
    NameConflictError,
    ValidationError,
)
from ide_workspace.schemas.project import (
    FileEntry,
    is_descendant_path,
    join_path,
    name_problem,
)
from ide_workspace.services.languages import LanguageCapability
from ide_workspace.services.path_table import PathTable

NEW_FOLDER_STEM = "folder"


def remap_selection(selection: Optional[str], old_path: str, new_path: str) -> Optional[str]:
    """
    Carries a selected path across a rename/move of `old_path` to `new_path`.

    Paths outside the moved subtree come back unchanged.
    """
    if selection is None:
        return None
    if selection == old_path:
        return new_path
    if is_descendant_path(selection, old_path):
        return new_path + selection[len(old_path):]
    return selection


def _check_name(name: str) -> None:
    problem = name_problem(name)
    if problem:
        raise ValidationError(message=problem, field="name", context={"name": name})


def _check_parent(table: PathTable, parent_folder: Optional[str]) -> Optional[str]:
    if not parent_folder:
        return None
    parent = table.require(parent_folder)
    if not parent.is_folder:
        raise ValidationError(
            message=f"'{parent_folder}' is a file, not a folder",
            field="parent_folder",
        )
    return parent_folder


def _relocate(table: PathTable, old_path: str, new_path: str) -> PathTable:
    """Rewrites `old_path` and its whole subtree under `new_path`, keeping order."""
    rewritten = []
    for entry in table:
        if entry.path == old_path:
            rewritten.append(entry.relocated(new_path))
        elif is_descendant_path(entry.path, old_path):
            rewritten.append(entry.relocated(new_path + entry.path[len(old_path):]))
        else:
            rewritten.append(entry)
    return PathTable(rewritten)


def _probe(table: PathTable, parent_folder: Optional[str], stem: str, extension: str = "") -> str:
    """First free sibling name among stem, stem1, stem2, ..."""
    counter = 0
    while True:
        candidate = f"{stem}{counter or ''}{extension}"
        if join_path(parent_folder, candidate) not in table:
            return candidate
        counter += 1


class TreeOps:
    """
    Structural operations parameterized by one language capability.

    The capability only decides new-file naming and contents; everything
    else is the same for all languages.
    """

    def __init__(self, language: LanguageCapability):
        self.language = language

    # ── Create ────────────────────────────────────────────────────────────

    def add_file(
        self, table: PathTable, parent_folder: Optional[str] = None
    ) -> Tuple[PathTable, FileEntry]:
        parent = _check_parent(table, parent_folder)
        filename = _probe(table, parent, self.language.new_file_stem, self.language.extension)
        entry = FileEntry(
            filename=filename,
            path=join_path(parent, filename),
            parent_folder=parent,
            contents=self.language.new_file_contents(filename),
        )
        return PathTable([*table, entry]), entry

    def add_folder(
        self, table: PathTable, parent_folder: Optional[str] = None
    ) -> Tuple[PathTable, FileEntry]:
        parent = _check_parent(table, parent_folder)
        filename = _probe(table, parent, NEW_FOLDER_STEM)
        entry = FileEntry(
            filename=filename,
            path=join_path(parent, filename),
            parent_folder=parent,
            is_folder=True,
        )
        return PathTable([*table, entry]), entry

    def import_file(
        self,
        table: PathTable,
        filename: str,
        contents: str,
        parent_folder: Optional[str] = None,
    ) -> Tuple[PathTable, FileEntry]:
        """Adds an uploaded file under its own name; never renames on collision."""
        _check_name(filename)
        parent = _check_parent(table, parent_folder)
        path = join_path(parent, filename)
        if path in table:
            raise NameConflictError(path)
        entry = FileEntry(filename=filename, path=path, parent_folder=parent, contents=contents)
        return PathTable([*table, entry]), entry

    # ── Rename / Move ─────────────────────────────────────────────────────

    def rename(self, table: PathTable, path: str, new_name: str) -> PathTable:
        entry = table.require(path)
        _check_name(new_name)
        if new_name == entry.filename:
            return table
        new_path = join_path(entry.parent_folder, new_name)
        if new_path in table:
            raise NameConflictError(new_path)
        return _relocate(table, path, new_path)

    def move(
        self, table: PathTable, path: str, new_parent_folder: Optional[str] = None
    ) -> PathTable:
        entry = table.require(path)
        target = _check_parent(table, new_parent_folder)
        if target is not None and (target == path or is_descendant_path(target, path)):
            raise CyclicMoveError(path, target)
        new_path = join_path(target, entry.filename)
        if new_path == path:
            return table
        if new_path in table:
            raise NameConflictError(new_path)
        return _relocate(table, path, new_path)

    # ── Remove ────────────────────────────────────────────────────────────

    def remove(self, table: PathTable, path: str) -> PathTable:
        """Removes `path` and, for a folder, everything below it."""
        table.require(path)
        removed = {entry.path for entry in table.subtree(path)}
        kept = [entry for entry in table if entry.path not in removed]
        drops_files = any(
            not entry.is_folder for entry in table if entry.path in removed
        )
        if drops_files and not any(not entry.is_folder for entry in kept):
            raise LastFileProtectedError(path)
        return PathTable(kept)

    # ── Contents ──────────────────────────────────────────────────────────

    def update_contents(self, table: PathTable, path: str, contents: str) -> PathTable:
        entry = table.require(path)
        if entry.is_folder:
            raise ValidationError(message=f"'{path}' is a folder and has no contents", field="path")
        if entry.contents == contents:
            return table
        updated = entry.with_contents(contents)
        return PathTable(updated if e.path == path else e for e in table)

    # ── Queries ───────────────────────────────────────────────────────────

    def children_of(self, table: PathTable, folder: Optional[str] = None):
        if folder:
            _check_parent(table, folder)
        return table.children_of(folder)

    def new_project_table(self) -> PathTable:
        return PathTable(self.language.default_template())
