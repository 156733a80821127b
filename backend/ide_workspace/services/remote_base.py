"""
IDE Workspace — Abstract Remote Object Store
=============================================

What:  The contract the SyncEngine needs from a git-style remote: refs,
       commits, trees, blobs, plus repository lookup/creation.
How:   Concrete implementations (GitHubClient; an in-memory fake in tests)
       inherit from RemoteObjectStore and translate provider failures into
       the RemoteError family.
Who:   Called only by SyncEngine.

Credential handling:
    Every method takes the bearer token as an explicit argument. Nothing in
    this layer reads a token from global state.

Error contract for every method:
    RemoteAuthError:      credential missing, invalid, or lacking scope
    RemoteNotFoundError:  repository / ref / object does not exist
    RemoteError:          anything else (transport failure, 5xx, 422, ...)
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ide_workspace.schemas.remote import (
    NewTreeEntry,
    RemoteBlob,
    RemoteCommit,
    RemoteRef,
    RemoteRepository,
    RemoteTree,
    RemoteUser,
)


class RemoteObjectStore(ABC):
    """Abstract git object store addressed by owner/repo."""

    @abstractmethod
    async def get_authenticated_user(self, token: str) -> RemoteUser:
        ...

    # ── Repositories ──────────────────────────────────────────────────────

    @abstractmethod
    async def get_repository(self, token: str, owner: str, repo: str) -> RemoteRepository:
        ...

    @abstractmethod
    async def create_repository(
        self,
        token: str,
        owner: str,
        repo: str,
        private: bool = False,
        auto_init: bool = True,
        description: str = "",
    ) -> RemoteRepository:
        """
        Creates `owner/repo`. With `auto_init` the repository starts with an
        initial commit on its default branch.
        """
        ...

    # ── Refs ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_ref(self, token: str, owner: str, repo: str, branch: str) -> RemoteRef:
        """
        Raises:
            RemoteNotFoundError: the branch does not exist (or the repository is empty).
        """
        ...

    @abstractmethod
    async def create_ref(
        self, token: str, owner: str, repo: str, branch: str, sha: str
    ) -> RemoteRef:
        ...

    @abstractmethod
    async def update_ref(
        self, token: str, owner: str, repo: str, branch: str, sha: str, force: bool = False
    ) -> RemoteRef:
        ...

    # ── Commits ───────────────────────────────────────────────────────────

    @abstractmethod
    async def get_commit(self, token: str, owner: str, repo: str, sha: str) -> RemoteCommit:
        ...

    @abstractmethod
    async def create_commit(
        self,
        token: str,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str],
    ) -> RemoteCommit:
        ...

    # ── Trees ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_tree(
        self, token: str, owner: str, repo: str, sha: str, recursive: bool = True
    ) -> RemoteTree:
        ...

    @abstractmethod
    async def create_tree(
        self,
        token: str,
        owner: str,
        repo: str,
        entries: List[NewTreeEntry],
        base_tree: Optional[str] = None,
    ) -> RemoteTree:
        """
        Creates a tree. With `base_tree`, entries are layered over that tree:
        paths not listed keep their base contents.
        """
        ...

    # ── Blobs ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def create_blob(self, token: str, owner: str, repo: str, content: bytes) -> str:
        """Uploads `content` and returns the blob sha."""
        ...

    @abstractmethod
    async def get_blob(self, token: str, owner: str, repo: str, sha: str) -> RemoteBlob:
        ...

    @abstractmethod
    async def download(self, token: str, url: str) -> bytes:
        """Fetches pointer-delivered blob content."""
        ...
