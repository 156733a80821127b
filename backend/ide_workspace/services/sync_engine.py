"""
IDE Workspace — Sync Engine
============================

What:  Translates between a project's flat PathTable and a remote git object
       store, in both directions.
How:   Push builds one blob per file, one tree layered over the branch tip's
       tree, one commit, then moves (or creates) the branch ref. Pull and
       clone walk ref → commit → recursive tree → blobs and rebuild a table,
       synthesizing every ancestor folder the remote listing implies.
Who:   Called by WorkspaceService for POST /push, /pull and /clone.

Push Flow:
    ┌──────────┐   ┌────────────┐   ┌──────────┐   ┌───────┐   ┌────────┐   ┌─────┐
    │ Resolve  │──▶│ Repo probe │──▶│ Tip ref  │──▶│ Blobs │──▶│ Tree + │──▶│ Ref │
    │ owner/   │   │ (create on │   │ (absent: │   │ (one  │   │ commit │   │     │
    │ repo     │   │  404)      │   │  1st push│   │ /file)│   │        │   │     │
    └──────────┘   └────────────┘   └──────────┘   └───────┘   └────────┘   └─────┘

    Any blob failure aborts before the tree is created: the branch never
    points at a commit missing some of the project's files. A failure after
    the blobs leaves those blobs unreferenced on the remote and the branch
    unchanged; both cases raise RemotePartialFailureError with the per-file
    breakdown.

Pull / Clone contract:
    Pull is a full mirror. The returned table replaces the local one and
    local-only files are discarded. The caller swaps tables only after the
    whole reconstruction succeeded; any failure leaves the local table as it was.

Concurrency:
    One sync at a time per project (SyncInProgressError otherwise). Blob
    uploads and downloads within a sync fan out up to sync_max_concurrency.
    No automatic retries.
"""

import asyncio
import base64
import binascii
import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from ide_workspace.config import settings
from ide_workspace.exceptions import (
    NameConflictError,
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
    RemotePartialFailureError,
    SyncInProgressError,
    TranslationError,
    ValidationError,
)
from ide_workspace.schemas.project import FileEntry, Project, name_problem, split_path
from ide_workspace.schemas.remote import (
    FileOutcome,
    NewTreeEntry,
    PullResult,
    PushResult,
    RemoteTreeEntry,
)
from ide_workspace.services.languages import get_language
from ide_workspace.services.path_table import PathTable
from ide_workspace.services.remote_base import RemoteObjectStore

logger = logging.getLogger(__name__)

_REPO_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


# ── Repository Names ──────────────────────────────────────────────────────

def parse_repo(value: str) -> Tuple[Optional[str], str]:
    """
    Accepts "owner/name", a bare "name", "https://github.com/owner/name(.git)"
    or "git@github.com:owner/name.git". Returns (owner or None, name).

    Raises:
        ValidationError: the value is not a recognizable repository reference.
    """
    raw = (value or "").strip()
    if raw.startswith(("http://", "https://")):
        raw = urlparse(raw).path
    elif raw.startswith("git@") and ":" in raw:
        raw = raw.split(":", 1)[1]
    raw = raw.strip("/")
    if raw.endswith(".git"):
        raw = raw[: -len(".git")]

    parts = [p for p in raw.split("/") if p]
    if len(parts) == 1:
        owner, name = None, parts[0]
    elif len(parts) == 2:
        owner, name = parts
    else:
        raise ValidationError(
            message=f"'{value}' is not a repository. Use owner/name or a GitHub URL.",
            field="repo",
        )
    for segment in (owner, name):
        if segment is not None and not _REPO_SEGMENT.match(segment):
            raise ValidationError(
                message=f"'{value}' is not a valid repository name",
                field="repo",
            )
    return owner, name


def _decode_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        # Every byte maps to one character, so the file still loads; a later
        # push writes it back as UTF-8, not in its original encoding
        return raw.decode("latin-1")


def _require_token(token: Optional[str]) -> str:
    if not token:
        raise RemoteAuthError(
            message="A GitHub access token is required. Supply a personal access token with the 'repo' scope."
        )
    return token


class SyncEngine:
    """
    Push / pull / clone against one RemoteObjectStore.

    Holds no credentials: the token flows in with every call and is passed
    explicitly to every remote request.
    """

    def __init__(self, remote: RemoteObjectStore, max_concurrency: Optional[int] = None):
        self.remote = remote
        self.max_concurrency = max_concurrency or settings.sync_max_concurrency
        self._active: Set[str] = set()

    def is_syncing(self, project_id: str) -> bool:
        return project_id in self._active

    @asynccontextmanager
    async def _exclusive(self, project_id: str) -> AsyncIterator[None]:
        if project_id in self._active:
            raise SyncInProgressError(project_id)
        self._active.add(project_id)
        try:
            yield
        finally:
            self._active.discard(project_id)

    async def _resolve_repo(self, token: str, value: str) -> Tuple[str, str]:
        owner, name = parse_repo(value)
        if owner is None:
            owner = (await self.remote.get_authenticated_user(token)).login
        return owner, name

    # ══════════════════════════════════════════════════════════════════════
    # Push
    # ══════════════════════════════════════════════════════════════════════

    async def push(
        self,
        project: Project,
        token: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> PushResult:
        """
        Commit the project's current files to the remote branch.

        The repository is the project's binding when it has one, else `repo`.
        The snapshot pushed is `project.files` exactly as given.

        Returns:
            PushResult with the new commit sha and the project bound to the
            repository and branch.

        Raises:
            ValidationError: no files, or no repository to push to
            RemoteAuthError: missing or rejected token
            RemotePartialFailureError: blob/tree/commit/ref stage failed
            RemoteError: repository probe or creation failed
        """
        token = _require_token(token or project.remote_token)
        repo_value = project.remote_repo or repo
        if not repo_value:
            raise ValidationError(
                message="Choose a repository to push to (owner/name or a new repository name).",
                field="repo",
            )
        branch = branch or project.remote_branch or settings.default_branch
        files = PathTable(project.files).files()
        if not files:
            raise ValidationError(message="The project has no files to push", field="files")

        async with self._exclusive(project.id):
            owner, name = await self._resolve_repo(token, repo_value)
            full_name = f"{owner}/{name}"
            logger.info("Pushing project %s (%d files) to %s@%s", project.id, len(files), full_name, branch)

            created_repository = False
            try:
                await self.remote.get_repository(token, owner, name)
            except RemoteNotFoundError:
                await self.remote.create_repository(
                    token,
                    owner,
                    name,
                    private=settings.default_repo_private,
                    auto_init=settings.remote_auto_init,
                    description=settings.repo_description,
                )
                created_repository = True

            parent_sha: Optional[str] = None
            base_tree: Optional[str] = None
            try:
                tip = await self.remote.get_ref(token, owner, name, branch)
            except RemoteNotFoundError:
                logger.info("Branch %s does not exist on %s; it will be created", branch, full_name)
            else:
                parent_sha = tip.sha
                base_tree = (await self.remote.get_commit(token, owner, name, tip.sha)).tree_sha

            outcomes = await self._upload_blobs(token, owner, name, files)
            staged = [o for o in outcomes if o.status == "staged"]
            failed = [o for o in outcomes if o.status == "failed"]

            def result(**extra) -> PushResult:
                return PushResult(
                    repo=full_name,
                    branch=branch,
                    succeeded=len(staged),
                    failed=len(failed),
                    outcomes=outcomes,
                    created_repository=created_repository,
                    **extra,
                )

            if failed:
                logger.warning(
                    "Push of %s aborted: %d of %d blobs failed", full_name, len(failed), len(outcomes)
                )
                raise RemotePartialFailureError(
                    message=(
                        f"{len(failed)} of {len(outcomes)} files failed to upload "
                        f"({', '.join(o.path for o in failed)}). Nothing was committed."
                    ),
                    result=result(orphaned_blobs=[o.blob_sha for o in staged]),
                    stage="blob",
                )

            stage = "tree"
            try:
                tree = await self.remote.create_tree(
                    token,
                    owner,
                    name,
                    [NewTreeEntry(path=o.path, sha=o.blob_sha) for o in staged],
                    base_tree=base_tree,
                )
                stage = "commit"
                commit = await self.remote.create_commit(
                    token,
                    owner,
                    name,
                    settings.commit_message_template.format(name=project.name),
                    tree.sha,
                    [parent_sha] if parent_sha else [],
                )
                stage = "ref"
                if parent_sha:
                    await self.remote.update_ref(token, owner, name, branch, commit.sha)
                else:
                    await self.remote.create_ref(token, owner, name, branch, commit.sha)
            except RemoteError as e:
                logger.error("Push of %s failed at %s stage: %s", full_name, stage, e.message)
                raise RemotePartialFailureError(
                    message=(
                        f"Push failed while creating the {stage}: {e.message} "
                        f"{len(staged)} uploaded blobs are unreferenced and the branch was not changed."
                    ),
                    result=result(orphaned_blobs=[o.blob_sha for o in staged]),
                    stage=stage,
                ) from e

        bound = project.model_copy(
            update={
                "remote_repo": full_name,
                "remote_branch": branch,
                "remote_token": token if settings.persist_remote_token else project.remote_token,
            }
        )
        logger.info("Pushed %s to %s@%s as %s", project.id, full_name, branch, commit.sha)
        return result(commit_sha=commit.sha, created_branch=parent_sha is None, project=bound)

    async def _upload_blobs(
        self, token: str, owner: str, name: str, files: List[FileEntry]
    ) -> List[FileOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def upload(entry: FileEntry) -> str:
            async with semaphore:
                return await self.remote.create_blob(token, owner, name, entry.contents.encode("utf-8"))

        results = await asyncio.gather(*(upload(f) for f in files), return_exceptions=True)
        outcomes = []
        for entry, outcome in zip(files, results):
            if isinstance(outcome, Exception):
                error = getattr(outcome, "message", None) or str(outcome)
                logger.warning("Blob upload failed for %s: %s", entry.path, error)
                outcomes.append(FileOutcome(path=entry.path, status="failed", error=error))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                outcomes.append(FileOutcome(path=entry.path, status="staged", blob_sha=outcome))
        return outcomes

    # ══════════════════════════════════════════════════════════════════════
    # Pull / Clone
    # ══════════════════════════════════════════════════════════════════════

    async def pull(self, project: Project, token: Optional[str] = None) -> PullResult:
        """
        Replace the project's table with the bound branch's tip.

        Destructive: files that exist only locally are not in the result.

        Raises:
            ValidationError: the project has no remote binding
            RemoteAuthError / RemoteNotFoundError / RemoteError: remote failures
            TranslationError: the remote tree cannot form a consistent table
        """
        if not project.is_bound:
            raise ValidationError(
                message="This project is not linked to a repository. Push or clone first.",
                field="remote_repo",
            )
        token = _require_token(token or project.remote_token)
        async with self._exclusive(project.id):
            owner, name = await self._resolve_repo(token, project.remote_repo)
            branch = project.remote_branch or settings.default_branch
            result = await self._fetch(token, owner, name, branch, project.language)

        result.project = project.model_copy(
            update={
                "files": result.files,
                "remote_token": token if settings.persist_remote_token else project.remote_token,
            }
        )
        return result

    async def clone(
        self,
        project: Project,
        repo_url: str,
        token: Optional[str],
        branch: Optional[str] = None,
    ) -> PullResult:
        """
        Populate an unbound project from a repository and bind it.

        With no `branch`, the repository's default branch is used.

        Raises:
            ValidationError: the project is already bound
            (plus everything pull raises)
        """
        if project.is_bound:
            raise ValidationError(
                message=f"This project is already linked to {project.remote_repo}. Use pull instead.",
                field="remote_repo",
            )
        token = _require_token(token)
        async with self._exclusive(project.id):
            owner, name = await self._resolve_repo(token, repo_url)
            if not branch:
                repository = await self.remote.get_repository(token, owner, name)
                branch = repository.default_branch or settings.default_branch
            result = await self._fetch(token, owner, name, branch, project.language)

        result.project = project.model_copy(
            update={
                "files": result.files,
                "remote_repo": result.repo,
                "remote_branch": branch,
                "remote_token": token if settings.persist_remote_token else None,
            }
        )
        return result

    async def _fetch(
        self, token: str, owner: str, name: str, branch: str, language: str
    ) -> PullResult:
        full_name = f"{owner}/{name}"
        ref = await self.remote.get_ref(token, owner, name, branch)
        commit = await self.remote.get_commit(token, owner, name, ref.sha)
        tree = await self.remote.get_tree(token, owner, name, commit.tree_sha, recursive=True)
        if tree.truncated:
            raise TranslationError(
                message=f"{full_name} is too large to load: the remote file listing was truncated.",
                context={"repo": full_name, "tree": tree.sha},
            )

        blobs: List[RemoteTreeEntry] = []
        for item in tree.entries:
            self._check_entry(item, full_name)
            if item.type == "blob":
                blobs.append(item)
        if not blobs:
            raise TranslationError(
                message=f"{full_name}@{branch} has no files to load.",
                context={"repo": full_name, "branch": branch},
            )

        texts = await self._download_blobs(token, owner, name, blobs)
        table = self._build_table(tree.entries, texts, full_name)

        entry = get_language(language).entry_point(table)
        logger.info(
            "Loaded %d entries (%d files) from %s@%s at %s",
            len(table), len(blobs), full_name, branch, commit.sha,
        )
        return PullResult(
            repo=full_name,
            branch=branch,
            commit_sha=commit.sha,
            files=table.to_list(),
            active_file=entry.path if entry else None,
            item_count=len(blobs),
        )

    @staticmethod
    def _check_entry(item: RemoteTreeEntry, full_name: str) -> None:
        if not item.path:
            raise TranslationError(
                message=f"{full_name} returned a tree entry without a path.",
                context={"entry": item.model_dump()},
            )
        if item.type not in ("blob", "tree"):
            raise TranslationError(
                message=f"Unsupported entry '{item.path}' of type '{item.type}' in {full_name}.",
                context={"path": item.path, "type": item.type},
            )
        if item.type == "blob" and not item.sha:
            raise TranslationError(
                message=f"File '{item.path}' in {full_name} has no content id.",
                context={"path": item.path},
            )
        if item.path.startswith("/") or item.path.endswith("/"):
            raise TranslationError(message=f"Invalid path '{item.path}' in {full_name}.")
        for segment in item.path.split("/"):
            problem = name_problem(segment)
            if problem:
                raise TranslationError(
                    message=f"Invalid path '{item.path}' in {full_name}: {problem}",
                    context={"path": item.path},
                )

    async def _download_blobs(
        self, token: str, owner: str, name: str, blobs: List[RemoteTreeEntry]
    ) -> Dict[str, str]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch(item: RemoteTreeEntry) -> str:
            async with semaphore:
                return await self._blob_text(token, owner, name, item)

        results = await asyncio.gather(*(fetch(b) for b in blobs), return_exceptions=True)
        texts: Dict[str, str] = {}
        for item, outcome in zip(blobs, results):
            if isinstance(outcome, BaseException):
                raise outcome
            texts[item.path] = outcome
        return texts

    async def _blob_text(self, token: str, owner: str, name: str, item: RemoteTreeEntry) -> str:
        blob = await self.remote.get_blob(token, owner, name, item.sha)
        encoding = (blob.encoding or "base64").lower()

        if blob.content is not None and encoding != "none":
            if encoding == "base64":
                try:
                    raw = base64.b64decode("".join(blob.content.split()), validate=True)
                except (binascii.Error, ValueError):
                    raise TranslationError(
                        message=f"Could not decode '{item.path}' from the remote.",
                        context={"path": item.path, "sha": item.sha},
                    )
                return _decode_text(raw)
            if encoding in ("utf-8", "utf8"):
                return blob.content
            raise TranslationError(
                message=f"'{item.path}' uses unsupported encoding '{blob.encoding}'.",
                context={"path": item.path, "encoding": blob.encoding},
            )

        if blob.download_url:
            return _decode_text(await self.remote.download(token, blob.download_url))

        raise TranslationError(
            message=f"The remote returned no content for '{item.path}'.",
            context={"path": item.path, "sha": item.sha},
        )

    @staticmethod
    def _build_table(
        items: List[RemoteTreeEntry],
        texts: Dict[str, str],
        full_name: str,
    ) -> PathTable:
        """
        Builds the table in remote listing order, inserting each missing
        ancestor folder just before its first descendant.
        """
        kinds: Dict[str, bool] = {}
        entries: List[FileEntry] = []

        def ensure_folder(path: str) -> None:
            if kinds.get(path) is True:
                return
            if path in kinds:
                raise TranslationError(
                    message=f"'{path}' is both a file and a folder in {full_name}.",
                    context={"path": path},
                )
            parent, _ = split_path(path)
            if parent:
                ensure_folder(parent)
            kinds[path] = True
            entries.append(FileEntry.folder(path))

        try:
            for item in items:
                if item.type == "tree":
                    ensure_folder(item.path)
                    continue
                parent, _ = split_path(item.path)
                if parent:
                    ensure_folder(parent)
                if item.path in kinds:
                    raise TranslationError(
                        message=f"'{item.path}' appears more than once in {full_name}.",
                        context={"path": item.path},
                    )
                kinds[item.path] = False
                entries.append(FileEntry.file(item.path, texts[item.path]))
            table = PathTable(entries)
        except (PydanticValidationError, NameConflictError) as e:
            raise TranslationError(
                message=f"{full_name} contains paths the editor cannot represent: {e}",
            )

        problems = table.problems()
        if problems:
            raise TranslationError(
                message=f"{full_name} could not be loaded: {problems[0]}",
                context={"problems": problems},
            )
        return table
