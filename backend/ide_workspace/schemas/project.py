"""
IDE Workspace — Project & File Entry Schemas
=============================================

What:  Pydantic models for the flat file-tree records and the project snapshot.
How:   A FileEntry is a frozen record keyed by its full path. Hierarchy is
       derived purely from `path` / `parent_folder`; there are no child lists.
       Every structural change produces new entries, never mutates old ones.
Who:   Used by PathTable/TreeOps, ProjectStore, SyncEngine and the routes.

Path Rules (checked on every FileEntry construction):
    - path is non-empty, never starts or ends with "/"
    - every "/"-separated segment is non-empty and is not "." or ".."
    - path == parent_folder + "/" + filename, or filename at the root
    - folders carry empty contents
"""

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

PATH_SEPARATOR = "/"

Language = Literal["python", "java", "cpp"]


# ── Path Helpers ──────────────────────────────────────────────────────────

def name_problem(name: str) -> Optional[str]:
    """Returns why `name` cannot be a path segment, or None when it can."""
    if not name:
        return "Name must not be empty"
    if PATH_SEPARATOR in name:
        return f"Name '{name}' must not contain '{PATH_SEPARATOR}'"
    if name in (".", ".."):
        return f"Name '{name}' is reserved"
    if "\x00" in name:
        return "Name must not contain NUL characters"
    return None


def join_path(parent_folder: Optional[str], filename: str) -> str:
    if parent_folder:
        return f"{parent_folder}{PATH_SEPARATOR}{filename}"
    return filename


def split_path(path: str) -> Tuple[Optional[str], str]:
    """Splits "a/b/c.py" into ("a/b", "c.py") and "c.py" into (None, "c.py")."""
    parent, sep, filename = path.rpartition(PATH_SEPARATOR)
    return (parent if sep else None), filename


def is_descendant_path(path: str, ancestor: str) -> bool:
    """True when `path` lies strictly below the folder `ancestor`."""
    return path.startswith(ancestor + PATH_SEPARATOR)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Data Model
# ══════════════════════════════════════════════════════════════════════════


class FileEntry(BaseModel):
    """
    One node of the project tree: a file or a folder.

    Identity is the full `path`. Two entries with the same path cannot coexist
    in a PathTable.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Last path segment")
    path: str = Field(description="Full slash-separated path; unique key")
    is_folder: bool = Field(default=False)
    parent_folder: Optional[str] = Field(
        default=None,
        description="Path of the containing folder, or null at the root",
    )
    contents: str = Field(default="", description="UTF-8 text; always empty for folders")

    @field_validator("parent_folder", mode="before")
    @classmethod
    def empty_parent_is_root(cls, v):
        return v or None

    @model_validator(mode="after")
    def check_path(self) -> "FileEntry":
        if not self.path:
            raise ValueError("Path must not be empty")
        for segment in self.path.split(PATH_SEPARATOR):
            problem = name_problem(segment)
            if problem:
                raise ValueError(f"Invalid path '{self.path}': {problem}")
        if join_path(self.parent_folder, self.filename) != self.path:
            raise ValueError(
                f"Path '{self.path}' does not match parent_folder "
                f"'{self.parent_folder}' and filename '{self.filename}'"
            )
        if self.is_folder and self.contents:
            raise ValueError(f"Folder '{self.path}' cannot carry contents")
        return self

    @classmethod
    def file(cls, path: str, contents: str = "") -> "FileEntry":
        parent, filename = split_path(path)
        return cls(filename=filename, path=path, parent_folder=parent, contents=contents)

    @classmethod
    def folder(cls, path: str) -> "FileEntry":
        parent, filename = split_path(path)
        return cls(filename=filename, path=path, parent_folder=parent, is_folder=True)

    def relocated(self, new_path: str) -> "FileEntry":
        """Same entry under a different path (contents and kind preserved)."""
        parent, filename = split_path(new_path)
        return FileEntry(
            filename=filename,
            path=new_path,
            is_folder=self.is_folder,
            parent_folder=parent,
            contents=self.contents,
        )

    def with_contents(self, contents: str) -> "FileEntry":
        return FileEntry(
            filename=self.filename,
            path=self.path,
            is_folder=self.is_folder,
            parent_folder=self.parent_folder,
            contents=contents,
        )


class Project(BaseModel):
    """
    A project snapshot: identity, the flat file table, auxiliary editor state
    and the optional remote binding.

    `remote_token` is persisted by the ProjectStore but is excluded from every
    serialized API response.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(min_length=1, max_length=255)
    language: Language = Field(default="python")
    created: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)
    files: List[FileEntry] = Field(default_factory=list)
    installed_packages: List[str] = Field(default_factory=list)
    remote_repo: Optional[str] = Field(default=None, description="owner/name")
    remote_branch: str = Field(default="main", min_length=1)
    remote_token: Optional[str] = Field(default=None, exclude=True, repr=False)

    @computed_field
    @property
    def has_remote_token(self) -> bool:
        return bool(self.remote_token)

    @property
    def is_bound(self) -> bool:
        return bool(self.remote_repo)


class ProjectSummary(BaseModel):
    """Compact representation for the project picker."""

    id: str
    name: str
    language: Language
    created: datetime
    last_modified: datetime
    file_count: int
    remote_repo: Optional[str] = None

    @classmethod
    def from_project(cls, project: Project) -> "ProjectSummary":
        return cls(
            id=project.id,
            name=project.name,
            language=project.language,
            created=project.created,
            last_modified=project.last_modified,
            file_count=sum(1 for e in project.files if not e.is_folder),
            remote_repo=project.remote_repo,
        )


# ══════════════════════════════════════════════════════════════════════════
# Request Models — What the editor sends
# ══════════════════════════════════════════════════════════════════════════


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    language: Language = Field(default="python")
    from_template: bool = Field(
        default=True,
        description="Seed the project with the language's default entry file",
    )


class RenameProjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class AddEntryRequest(BaseModel):
    parent_folder: Optional[str] = Field(default=None, description="Null for the root")


class RenameEntryRequest(BaseModel):
    path: str
    new_name: str


class MoveEntryRequest(BaseModel):
    path: str
    new_parent_folder: Optional[str] = Field(default=None, description="Null for the root")


class RemoveEntryRequest(BaseModel):
    path: str


class UpdateContentsRequest(BaseModel):
    path: str
    contents: str


class UploadFileRequest(BaseModel):
    filename: str
    contents: str = ""
    parent_folder: Optional[str] = None


class PackageRequest(BaseModel):
    name: str = Field(min_length=1, max_length=214)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Package name must not be blank")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TreeResponse(BaseModel):
    """
    Result of a tree mutation.

    `entry` is the created/renamed/moved entry where there is one. For a
    folder rename or move, `remapped` maps every old path to its new path so
    the editor can carry open tabs and the active selection across.
    """

    project: Project
    entry: Optional[FileEntry] = None
    remapped: dict = Field(default_factory=dict)


class ChildrenResponse(BaseModel):
    folder: Optional[str] = None
    children: List[FileEntry]
