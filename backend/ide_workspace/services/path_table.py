"""
IDE Workspace — PathTable
==========================

What:  An immutable, ordered collection of FileEntry records keyed by path.
How:   Backed by a tuple (table order) plus a dict index (path → entry).
       Hierarchy queries are answered by path prefix, never by pointers.
Who:   Built and returned by TreeOps; persisted by ProjectStore; produced by
       SyncEngine when reconstructing a remote tree.

Table order is insertion order and is preserved by every TreeOps operation:
renames and moves rewrite entries in place, new entries are appended.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ide_workspace.exceptions import EntryNotFoundError, NameConflictError
from ide_workspace.schemas.project import FileEntry, is_descendant_path


class PathTable:
    """
    Flat file tree. Instances are never mutated; TreeOps returns new tables.

    Raises:
        NameConflictError: when two entries share a path.
    """

    __slots__ = ("_entries", "_index")

    def __init__(self, entries: Iterable[FileEntry] = ()):
        ordered: Tuple[FileEntry, ...] = tuple(entries)
        index: Dict[str, FileEntry] = {}
        for entry in ordered:
            if entry.path in index:
                raise NameConflictError(entry.path)
            index[entry.path] = entry
        self._entries = ordered
        self._index = index

    # ── Lookup ────────────────────────────────────────────────────────────

    def get(self, path: str) -> Optional[FileEntry]:
        return self._index.get(path)

    def require(self, path: str) -> FileEntry:
        entry = self._index.get(path)
        if entry is None:
            raise EntryNotFoundError(path)
        return entry

    def __contains__(self, path: object) -> bool:
        return path in self._index

    def __iter__(self) -> Iterator[FileEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathTable):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"<PathTable(entries={len(self._entries)}, files={len(self.files())})>"

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self._entries]

    def files(self) -> List[FileEntry]:
        return [entry for entry in self._entries if not entry.is_folder]

    def folders(self) -> List[FileEntry]:
        return [entry for entry in self._entries if entry.is_folder]

    # ── Hierarchy ─────────────────────────────────────────────────────────

    def children_of(self, folder: Optional[str] = None) -> List[FileEntry]:
        """Direct children of `folder` (None for the root), in table order."""
        parent = folder or None
        return [entry for entry in self._entries if entry.parent_folder == parent]

    def descendants_of(self, folder: str) -> List[FileEntry]:
        """Every entry strictly below `folder`, in table order."""
        return [entry for entry in self._entries if is_descendant_path(entry.path, folder)]

    def subtree(self, path: str) -> List[FileEntry]:
        """The entry at `path` plus all of its descendants."""
        return [
            entry for entry in self._entries
            if entry.path == path or is_descendant_path(entry.path, path)
        ]

    # ── Invariants ────────────────────────────────────────────────────────

    def problems(self) -> List[str]:
        """
        Structural problems that the per-entry checks cannot see.

        Paths are already unique (enforced at construction) and each entry's
        path already matches its parent/filename. What remains is the ancestor
        chain: every parent_folder must name an existing folder.
        """
        issues = []
        for entry in self._entries:
            if entry.parent_folder is None:
                continue
            parent = self._index.get(entry.parent_folder)
            if parent is None:
                issues.append(f"'{entry.path}': parent folder '{entry.parent_folder}' is missing")
            elif not parent.is_folder:
                issues.append(f"'{entry.path}': parent '{entry.parent_folder}' is a file")
        return issues

    def is_consistent(self) -> bool:
        return not self.problems()

    # ── Serialization ─────────────────────────────────────────────────────

    def to_list(self) -> List[FileEntry]:
        return list(self._entries)

    def to_records(self) -> List[dict]:
        return [entry.model_dump() for entry in self._entries]

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "PathTable":
        return cls(FileEntry.model_validate(record) for record in records)
