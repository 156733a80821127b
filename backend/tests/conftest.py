"""
IDE Workspace — Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── store_session: AsyncSession on a private SQLite file with the schema created
    ├── remote:        InMemoryRemote (a git object store living in dicts)
    ├── python_table:  A small nested PathTable for tree tests
    └── test_client:   HTTPX AsyncClient wired to the FastAPI app
"""

import asyncio
import base64
import hashlib
import os
import tempfile
from typing import Dict, List, Optional, Set

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any ide_workspace import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="ide_workspace_test_"), "test.db"
)
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["AUTO_CREATE_SCHEMA"] = "true"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from ide_workspace.database import Base, make_engine  # noqa: E402
from ide_workspace.exceptions import (  # noqa: E402
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
)
from ide_workspace.models.project import ProjectRecord  # noqa: E402,F401
from ide_workspace.schemas.project import FileEntry  # noqa: E402
from ide_workspace.schemas.remote import (  # noqa: E402
    NewTreeEntry,
    RemoteBlob,
    RemoteCommit,
    RemoteRef,
    RemoteRepository,
    RemoteTree,
    RemoteTreeEntry,
    RemoteUser,
)
from ide_workspace.services.path_table import PathTable  # noqa: E402
from ide_workspace.services.remote_base import RemoteObjectStore  # noqa: E402


def _sha(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Remote
# ══════════════════════════════════════════════════════════════════════════

class InMemoryRemote(RemoteObjectStore):
    """
    A git object store held in dicts, shaped like the GitHub Git Data API.

    Trees are stored flattened (path → blob sha); listings synthesize the
    folder entries the way a recursive GitHub listing does.

    Failure injection:
        fail_on:                method names that raise RemoteError (HTTP 500)
        fail_blobs_containing:  create_blob raises for content containing it
        rejected_tokens:        tokens answered with RemoteAuthError
        truncate_trees:         listings come back with truncated=True
        list_folders:           False → listings contain blobs only
        extra_entries:          appended verbatim to every listing
        blob_delivery:          "inline" (base64) or "url" (download_url only)
        gate:                   when set, get_ref waits on it (holds a sync open)
    """

    def __init__(self, login: str = "student", blob_delivery: str = "inline"):
        self.login = login
        self.blob_delivery = blob_delivery
        self.repos: Dict[str, RemoteRepository] = {}
        self.refs: Dict[str, Dict[str, str]] = {}
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Dict[str, str]] = {}
        self.commits: Dict[str, RemoteCommit] = {}
        self.calls: List[str] = []
        self.fail_on: Set[str] = set()
        self.fail_blobs_containing: Optional[str] = None
        self.rejected_tokens: Set[str] = {"revoked"}
        self.truncate_trees = False
        self.list_folders = True
        self.extra_entries: List[RemoteTreeEntry] = []
        self.gate: Optional[asyncio.Event] = None
        self._counter = 0

    # ── Helpers for tests ─────────────────────────────────────────────────

    def _record(self, method: str, token: str) -> None:
        self.calls.append(method)
        if token in self.rejected_tokens:
            raise RemoteAuthError(status_code=401)
        if method in self.fail_on:
            raise RemoteError(message=f"{method} failed", status_code=500)

    def _store_blob(self, content: bytes) -> str:
        sha = _sha(b"blob " + content)
        self.blobs[sha] = content
        return sha

    def _store_tree(self, files: Dict[str, str]) -> str:
        sha = _sha(repr(sorted(files.items())).encode("utf-8"))
        self.trees[sha] = dict(files)
        return sha

    def _store_commit(self, message: str, tree_sha: str, parents: List[str]) -> RemoteCommit:
        self._counter += 1
        sha = _sha(f"commit {tree_sha} {parents} {message} {self._counter}".encode("utf-8"))
        commit = RemoteCommit(sha=sha, tree_sha=tree_sha, parents=list(parents), message=message)
        self.commits[sha] = commit
        return commit

    def _repo(self, owner: str, repo: str) -> RemoteRepository:
        full_name = f"{owner}/{repo}"
        if full_name not in self.repos:
            raise RemoteNotFoundError()
        return self.repos[full_name]

    def seed(
        self,
        full_name: str,
        files: Dict[str, str],
        branch: str = "main",
        default_branch: Optional[str] = None,
    ) -> str:
        """Creates (or extends) a repository whose `branch` holds exactly `files`."""
        owner, name = full_name.split("/")
        self.repos.setdefault(
            full_name,
            RemoteRepository(owner=owner, name=name, default_branch=default_branch or branch),
        )
        tree_sha = self._store_tree(
            {path: self._store_blob(text.encode("utf-8")) for path, text in files.items()}
        )
        commit = self._store_commit("seed", tree_sha, [])
        self.refs.setdefault(full_name, {})[branch] = commit.sha
        return commit.sha

    def files_at(self, full_name: str, branch: str = "main") -> Dict[str, str]:
        commit = self.commits[self.refs[full_name][branch]]
        return {
            path: self.blobs[sha].decode("utf-8")
            for path, sha in self.trees[commit.tree_sha].items()
        }

    # ── RemoteObjectStore ─────────────────────────────────────────────────

    async def get_authenticated_user(self, token):
        self._record("get_authenticated_user", token)
        return RemoteUser(login=self.login)

    async def get_repository(self, token, owner, repo):
        self._record("get_repository", token)
        return self._repo(owner, repo)

    async def create_repository(self, token, owner, repo, private=False, auto_init=True, description=""):
        self._record("create_repository", token)
        full_name = f"{owner}/{repo}"
        repository = RemoteRepository(owner=owner, name=repo, default_branch="main", private=private)
        self.repos[full_name] = repository
        self.refs[full_name] = {}
        if auto_init:
            tree_sha = self._store_tree({"README.md": self._store_blob(f"# {repo}\n".encode("utf-8"))})
            self.refs[full_name]["main"] = self._store_commit("Initial commit", tree_sha, []).sha
        return repository

    async def get_ref(self, token, owner, repo, branch):
        self._record("get_ref", token)
        if self.gate is not None:
            await self.gate.wait()
        self._repo(owner, repo)
        sha = self.refs.get(f"{owner}/{repo}", {}).get(branch)
        if sha is None:
            raise RemoteNotFoundError()
        return RemoteRef(ref=f"refs/heads/{branch}", sha=sha)

    async def create_ref(self, token, owner, repo, branch, sha):
        self._record("create_ref", token)
        self.refs.setdefault(f"{owner}/{repo}", {})[branch] = sha
        return RemoteRef(ref=f"refs/heads/{branch}", sha=sha)

    async def update_ref(self, token, owner, repo, branch, sha, force=False):
        self._record("update_ref", token)
        branches = self.refs.get(f"{owner}/{repo}", {})
        if branch not in branches:
            raise RemoteNotFoundError()
        branches[branch] = sha
        return RemoteRef(ref=f"refs/heads/{branch}", sha=sha)

    async def get_commit(self, token, owner, repo, sha):
        self._record("get_commit", token)
        if sha not in self.commits:
            raise RemoteNotFoundError()
        return self.commits[sha]

    async def create_commit(self, token, owner, repo, message, tree_sha, parents):
        self._record("create_commit", token)
        return self._store_commit(message, tree_sha, parents)

    async def get_tree(self, token, owner, repo, sha, recursive=True):
        self._record("get_tree", token)
        files = self.trees[sha]
        entries: List[RemoteTreeEntry] = []
        listed: Set[str] = set()
        for path in sorted(files):
            parts = path.split("/")
            for depth in range(1, len(parts)):
                folder = "/".join(parts[:depth])
                if self.list_folders and folder not in listed:
                    listed.add(folder)
                    entries.append(
                        RemoteTreeEntry(path=folder, mode="040000", type="tree", sha=_sha(folder.encode()))
                    )
            blob_sha = files[path]
            entries.append(
                RemoteTreeEntry(
                    path=path, mode="100644", type="blob", sha=blob_sha, size=len(self.blobs[blob_sha])
                )
            )
        entries.extend(self.extra_entries)
        return RemoteTree(sha=sha, entries=entries, truncated=self.truncate_trees)

    async def create_tree(self, token, owner, repo, entries: List[NewTreeEntry], base_tree=None):
        self._record("create_tree", token)
        files = dict(self.trees[base_tree]) if base_tree else {}
        for entry in entries:
            files[entry.path] = entry.sha
        sha = self._store_tree(files)
        return RemoteTree(sha=sha)

    async def create_blob(self, token, owner, repo, content):
        self._record("create_blob", token)
        if self.fail_blobs_containing and self.fail_blobs_containing.encode("utf-8") in content:
            raise RemoteError(message="blob rejected", status_code=422)
        return self._store_blob(content)

    async def get_blob(self, token, owner, repo, sha):
        self._record("get_blob", token)
        content = self.blobs[sha]
        if self.blob_delivery == "url":
            return RemoteBlob(sha=sha, size=len(content), download_url=f"https://raw.test/{sha}")
        encoded = base64.b64encode(content).decode("ascii")
        # GitHub wraps base64 content at 60 columns
        wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
        return RemoteBlob(sha=sha, content=wrapped, encoding="base64", size=len(content))

    async def download(self, token, url):
        self._record("download", token)
        return self.blobs[url.rsplit("/", 1)[1]]


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def remote():
    return InMemoryRemote()


@pytest.fixture
def python_table():
    """
    main.py
    src/
    src/app.py
    src/lib/
    src/lib/util.py
    """
    return PathTable([
        FileEntry.file("main.py", 'print("main")\n'),
        FileEntry.folder("src"),
        FileEntry.file("src/app.py", "import lib\n"),
        FileEntry.folder("src/lib"),
        FileEntry.file("src/lib/util.py", "def helper():\n    return 1\n"),
    ])


@pytest_asyncio.fixture
async def store_session(tmp_path):
    """
    Provides an AsyncSession on a private SQLite file with the schema created.

    How:     A fresh engine per test (NullPool), disposed afterwards.
    """
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def test_client():
    """
    Provides an async HTTP test client for endpoint testing.

    How:     ASGITransport routes requests straight into the app. The lifespan
             does not run under ASGITransport, so the schema is created here.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from ide_workspace.database import init_models
    from ide_workspace.main import app
    from ide_workspace.services.workspace_service import workspace_service

    await init_models()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    workspace_service.autosave.cancel()
