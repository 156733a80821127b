"""
IDE Workspace — Remote Object & Sync Result Schemas
====================================================

What:  Pydantic models for the remote git object model (refs, commits, trees,
       blobs) and for the outcome of push / pull / clone.
How:   RemoteObjectStore implementations return these instead of raw JSON so
       the SyncEngine never depends on a particular provider's payload shape.
Who:   Produced by GitHubClient (and the in-memory test remote), consumed by
       SyncEngine, returned to the editor inside the sync responses.

Remote model refresher:
    ref    → points a branch name at a commit sha
    commit → one tree sha + parent commit shas
    tree   → entries {path, mode, type: blob|tree, sha}; recursive listings
             flatten the hierarchy into full paths
    blob   → content bytes, addressed by sha
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ide_workspace.schemas.project import FileEntry, Project

BLOB_MODE = "100644"
TREE_MODE = "040000"


# ══════════════════════════════════════════════════════════════════════════
# Remote Objects
# ══════════════════════════════════════════════════════════════════════════


class RemoteUser(BaseModel):
    login: str


class RemoteRepository(BaseModel):
    owner: str
    name: str
    default_branch: Optional[str] = None
    private: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RemoteRef(BaseModel):
    ref: str = Field(description="Fully qualified ref, e.g. refs/heads/main")
    sha: str = Field(description="Commit the ref points at")


class RemoteCommit(BaseModel):
    sha: str
    tree_sha: str
    parents: List[str] = Field(default_factory=list)
    message: str = ""


class RemoteTreeEntry(BaseModel):
    """
    One entry of a (possibly recursive) tree listing.

    Fields are optional because listings come from outside; the SyncEngine
    rejects entries that are missing what it needs.
    """

    path: Optional[str] = None
    mode: Optional[str] = None
    type: Optional[str] = None
    sha: Optional[str] = None
    size: Optional[int] = None


class RemoteTree(BaseModel):
    sha: str
    entries: List[RemoteTreeEntry] = Field(default_factory=list)
    truncated: bool = False


class NewTreeEntry(BaseModel):
    """Entry sent when creating a tree; only blobs are ever sent."""

    path: str
    sha: str
    mode: str = BLOB_MODE
    type: str = "blob"


class RemoteBlob(BaseModel):
    """
    Blob payload as delivered by the remote.

    `content` is inline data in `encoding` ("base64" or "utf-8"). When
    `content` is absent the bytes must be fetched from `download_url`.
    """

    sha: str
    content: Optional[str] = None
    encoding: Optional[str] = None
    size: Optional[int] = None
    download_url: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Sync Outcomes
# ══════════════════════════════════════════════════════════════════════════


class FileOutcome(BaseModel):
    """Per-file accounting for a push."""

    path: str
    status: Literal["staged", "failed"]
    blob_sha: Optional[str] = None
    error: Optional[str] = None


class PushResult(BaseModel):
    """
    What a push did, file by file.

    `commit_sha` is set only when the ref was actually moved. A result with
    `failed > 0` never has a commit: any blob failure aborts the push before
    a tree is created.
    """

    repo: str
    branch: str
    commit_sha: Optional[str] = None
    succeeded: int = 0
    failed: int = 0
    outcomes: List[FileOutcome] = Field(default_factory=list)
    created_repository: bool = False
    created_branch: bool = False
    orphaned_blobs: List[str] = Field(
        default_factory=list,
        description="Blobs uploaded by an aborted push that no commit references",
    )
    project: Optional[Project] = None

    @property
    def failed_paths(self) -> List[str]:
        return [o.path for o in self.outcomes if o.status == "failed"]


class PullResult(BaseModel):
    """
    A fully reconstructed table from the remote.

    Pull is a full mirror: the returned `files` replace the local table, and
    local-only files are discarded.
    """

    repo: str
    branch: str
    commit_sha: str
    files: List[FileEntry]
    active_file: Optional[str] = None
    item_count: int = 0
    project: Optional[Project] = None


# ══════════════════════════════════════════════════════════════════════════
# Sync Requests
# ══════════════════════════════════════════════════════════════════════════


class PushRequest(BaseModel):
    token: Optional[str] = Field(default=None, description="Falls back to the stored token")
    repo: Optional[str] = Field(
        default=None,
        description="owner/name, a bare name, or a GitHub URL; required when unbound",
    )
    branch: Optional[str] = None


class PullRequest(BaseModel):
    token: Optional[str] = Field(default=None, description="Falls back to the stored token")


class CloneRequest(BaseModel):
    repo_url: str = Field(min_length=1)
    token: str = Field(min_length=1)
    branch: Optional[str] = None
    name: Optional[str] = Field(default=None, description="Defaults to the repository name")
    language: Literal["python", "java", "cpp"] = "python"
