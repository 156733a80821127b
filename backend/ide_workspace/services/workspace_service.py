"""
IDE Workspace — Workspace Service (Business Logic Orchestrator)
================================================================

What:  Everything the editor shell can do to a project, in one place.
How:   Composes ProjectStore (persistence), TreeOps (structure), the
       AutosaveScheduler (debounced content saves), SyncEngine (remote) and
       the language capability (templates, entry point, execution).
Who:   Called by route handlers; calls services and the database layer.

Persistence Rules:
    - Content edits are debounced through the AutosaveScheduler.
    - Structural edits (add/rename/move/remove/upload) save immediately and
      supersede any pending autosave, which they already include.
    - Push sends the latest in-memory snapshot (pending autosave included)
      and saves the remote binding only when the push succeeded.
    - Pull saves the rebuilt table only after the whole pull succeeded.
    - Clone saves a new project only after the clone succeeded.
"""

import logging
import os
from typing import Callable, Dict, List, Optional, Tuple

import aiofiles
from sqlalchemy.ext.asyncio import AsyncSession

from ide_workspace.database import async_session_factory
from ide_workspace.exceptions import ValidationError
from ide_workspace.schemas.api import ExecutionResult
from ide_workspace.schemas.project import FileEntry, Project, ProjectSummary, TreeResponse, join_path
from ide_workspace.schemas.remote import PullResult, PushResult
from ide_workspace.services.autosave import AutosaveScheduler
from ide_workspace.services.github_client import github_client
from ide_workspace.services.languages import get_language
from ide_workspace.services.path_table import PathTable
from ide_workspace.services.project_store import ProjectStore, project_store
from ide_workspace.services.sync_engine import SyncEngine, parse_repo
from ide_workspace.services.tree_ops import TreeOps, remap_selection

logger = logging.getLogger(__name__)


async def _save_in_new_session(project: Project) -> Project:
    """Autosave runs outside any request, so it opens its own session."""
    async with async_session_factory() as session:
        saved = await project_store.save(session, project)
        await session.commit()
    return saved


class WorkspaceService:
    """
    Orchestrates project operations for the editor routes.

    Every method takes the request's database session; the service keeps only
    the autosave scheduler's pending snapshots between requests.
    """

    def __init__(
        self,
        store: ProjectStore,
        sync_engine: SyncEngine,
        autosave: Optional[AutosaveScheduler] = None,
    ):
        self.store = store
        self.sync_engine = sync_engine
        self.autosave = autosave or AutosaveScheduler(_save_in_new_session)

    # ══════════════════════════════════════════════════════════════════════
    # Projects
    # ══════════════════════════════════════════════════════════════════════

    async def create_project(
        self,
        db: AsyncSession,
        name: str,
        language: str = "python",
        from_template: bool = True,
    ) -> Project:
        capability = get_language(language)
        files = capability.default_template() if from_template else []
        project = Project(name=name, language=capability.name, files=files)
        saved = await self.store.save(db, project)
        logger.info("Created %s project %s (%s)", capability.name, saved.id, name)
        return saved

    async def get_project(self, db: AsyncSession, project_id: str) -> Project:
        """Latest snapshot: a pending autosave wins over the stored row."""
        pending = self.autosave.pending(project_id)
        if pending is not None:
            return pending
        return await self.store.load(db, project_id)

    async def list_projects(self, db: AsyncSession) -> List[ProjectSummary]:
        projects = await self.store.list_projects(db)
        return [
            ProjectSummary.from_project(self.autosave.pending(p.id) or p)
            for p in projects
        ]

    async def rename_project(self, db: AsyncSession, project_id: str, name: str) -> Project:
        project = await self.get_project(db, project_id)
        return await self._save(db, project.model_copy(update={"name": name}))

    async def delete_project(self, db: AsyncSession, project_id: str) -> None:
        self.autosave.cancel(project_id)
        await self.store.delete(db, project_id)

    async def save_project(self, db: AsyncSession, project_id: str) -> Project:
        """Explicit save: writes the pending snapshot now, if there is one."""
        project = await self.get_project(db, project_id)
        return await self._save(db, project)

    async def _save(self, db: AsyncSession, project: Project) -> Project:
        self.autosave.cancel(project.id)
        return await self.store.save(db, project)

    # ══════════════════════════════════════════════════════════════════════
    # Tree
    # ══════════════════════════════════════════════════════════════════════

    async def _apply(
        self,
        db: AsyncSession,
        project_id: str,
        operation: Callable[[TreeOps, PathTable], Tuple[PathTable, Optional[FileEntry]]],
    ) -> Tuple[Project, Optional[FileEntry]]:
        project = await self.get_project(db, project_id)
        ops = TreeOps(get_language(project.language))
        table = PathTable(project.files)
        new_table, entry = operation(ops, table)
        if new_table is table:
            return project, entry
        saved = await self._save(db, project.model_copy(update={"files": new_table.to_list()}))
        return saved, entry

    async def add_file(
        self, db: AsyncSession, project_id: str, parent_folder: Optional[str] = None
    ) -> TreeResponse:
        project, entry = await self._apply(
            db, project_id, lambda ops, table: ops.add_file(table, parent_folder)
        )
        return TreeResponse(project=project, entry=entry)

    async def add_folder(
        self, db: AsyncSession, project_id: str, parent_folder: Optional[str] = None
    ) -> TreeResponse:
        project, entry = await self._apply(
            db, project_id, lambda ops, table: ops.add_folder(table, parent_folder)
        )
        return TreeResponse(project=project, entry=entry)

    async def import_file(
        self,
        db: AsyncSession,
        project_id: str,
        filename: str,
        contents: str,
        parent_folder: Optional[str] = None,
    ) -> TreeResponse:
        project, entry = await self._apply(
            db,
            project_id,
            lambda ops, table: ops.import_file(table, filename, contents, parent_folder),
        )
        return TreeResponse(project=project, entry=entry)

    async def rename_entry(
        self, db: AsyncSession, project_id: str, path: str, new_name: str
    ) -> TreeResponse:
        remapped: Dict[str, str] = {}

        def rename(ops: TreeOps, table: PathTable):
            entry = table.require(path)
            new_table = ops.rename(table, path, new_name)
            new_path = join_path(entry.parent_folder, new_name)
            remapped.update(self._remap(table, path, new_path))
            return new_table, new_table.get(new_path)

        project, entry = await self._apply(db, project_id, rename)
        return TreeResponse(project=project, entry=entry, remapped=remapped)

    async def move_entry(
        self,
        db: AsyncSession,
        project_id: str,
        path: str,
        new_parent_folder: Optional[str] = None,
    ) -> TreeResponse:
        remapped: Dict[str, str] = {}

        def move(ops: TreeOps, table: PathTable):
            entry = table.require(path)
            new_table = ops.move(table, path, new_parent_folder)
            new_path = join_path(new_parent_folder, entry.filename)
            remapped.update(self._remap(table, path, new_path))
            return new_table, new_table.get(new_path)

        project, entry = await self._apply(db, project_id, move)
        return TreeResponse(project=project, entry=entry, remapped=remapped)

    @staticmethod
    def _remap(table: PathTable, old_path: str, new_path: str) -> Dict[str, str]:
        """Old → new path for every entry of the moved subtree."""
        if old_path == new_path:
            return {}
        return {
            e.path: remap_selection(e.path, old_path, new_path)
            for e in table.subtree(old_path)
        }

    async def remove_entry(self, db: AsyncSession, project_id: str, path: str) -> TreeResponse:
        project, _ = await self._apply(
            db, project_id, lambda ops, table: (ops.remove(table, path), None)
        )
        return TreeResponse(project=project)

    async def update_contents(
        self, db: AsyncSession, project_id: str, path: str, contents: str
    ) -> Project:
        """Keystroke sink: the change is held in memory and autosaved after a pause."""
        project = await self.get_project(db, project_id)
        ops = TreeOps(get_language(project.language))
        table = PathTable(project.files)
        new_table = ops.update_contents(table, path, contents)
        if new_table is table:
            return project
        updated = project.model_copy(update={"files": new_table.to_list()})
        self.autosave.schedule(updated)
        return updated

    async def children_of(
        self, db: AsyncSession, project_id: str, folder: Optional[str] = None
    ) -> List[FileEntry]:
        project = await self.get_project(db, project_id)
        ops = TreeOps(get_language(project.language))
        return ops.children_of(PathTable(project.files), folder)

    # ══════════════════════════════════════════════════════════════════════
    # Packages
    # ══════════════════════════════════════════════════════════════════════

    async def add_package(self, db: AsyncSession, project_id: str, name: str) -> Project:
        project = await self.get_project(db, project_id)
        if name in project.installed_packages:
            return project
        packages = [*project.installed_packages, name]
        return await self._save(db, project.model_copy(update={"installed_packages": packages}))

    async def remove_package(self, db: AsyncSession, project_id: str, name: str) -> Project:
        project = await self.get_project(db, project_id)
        if name not in project.installed_packages:
            return project
        packages = [p for p in project.installed_packages if p != name]
        return await self._save(db, project.model_copy(update={"installed_packages": packages}))

    # ══════════════════════════════════════════════════════════════════════
    # Local Files (export / import)
    # ══════════════════════════════════════════════════════════════════════

    async def export_project(self, db: AsyncSession, project_id: str, directory: str) -> List[str]:
        """
        Writes the project tree under `directory` and returns the written
        file paths. Folders are created even when empty.
        """
        project = await self.get_project(db, project_id)
        root = os.path.abspath(directory)
        written = []
        for entry in PathTable(project.files):
            target = os.path.join(root, *entry.path.split("/"))
            if entry.is_folder:
                os.makedirs(target, exist_ok=True)
                continue
            os.makedirs(os.path.dirname(target), exist_ok=True)
            async with aiofiles.open(target, "w", encoding="utf-8", newline="") as f:
                await f.write(entry.contents)
            written.append(target)
        logger.info("Exported project %s to %s (%d files)", project_id, root, len(written))
        return written

    async def import_from_disk(
        self,
        db: AsyncSession,
        project_id: str,
        source_path: str,
        parent_folder: Optional[str] = None,
    ) -> TreeResponse:
        """Uploads one file from disk under its own name."""
        if not os.path.isfile(source_path):
            raise ValidationError(message=f"'{source_path}' is not a file", field="source_path")
        async with aiofiles.open(source_path, "rb") as f:
            raw = await f.read()
        try:
            contents = raw.decode("utf-8")
        except UnicodeDecodeError:
            contents = raw.decode("latin-1")
        return await self.import_file(
            db, project_id, os.path.basename(source_path), contents, parent_folder
        )

    # ══════════════════════════════════════════════════════════════════════
    # Sync
    # ══════════════════════════════════════════════════════════════════════

    async def push(
        self,
        db: AsyncSession,
        project_id: str,
        token: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> PushResult:
        """
        Push the latest snapshot, then record the binding.

        Edits made while the push was in flight stay in the project; only the
        remote binding is taken from the push result.
        """
        project = await self.get_project(db, project_id)
        result = await self.sync_engine.push(project, token=token, repo=repo, branch=branch)
        current = await self.get_project(db, project_id)
        bound = current.model_copy(
            update={
                "remote_repo": result.project.remote_repo,
                "remote_branch": result.project.remote_branch,
                "remote_token": result.project.remote_token,
            }
        )
        result.project = await self._save(db, bound)
        return result

    async def pull(
        self, db: AsyncSession, project_id: str, token: Optional[str] = None
    ) -> PullResult:
        project = await self.get_project(db, project_id)
        result = await self.sync_engine.pull(project, token=token)
        result.project = await self._save(db, result.project)
        logger.info("Pulled %d files into project %s", result.item_count, project_id)
        return result

    async def clone(
        self,
        db: AsyncSession,
        repo_url: str,
        token: str,
        branch: Optional[str] = None,
        name: Optional[str] = None,
        language: str = "python",
    ) -> PullResult:
        capability = get_language(language)
        _, repo_name = parse_repo(repo_url)
        project = Project(name=name or repo_name, language=capability.name)
        result = await self.sync_engine.clone(project, repo_url, token, branch=branch)
        result.project = await self.store.save(db, result.project)
        logger.info("Cloned %s into new project %s", result.repo, result.project.id)
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════════════════════════════

    async def run(
        self,
        db: AsyncSession,
        project_id: str,
        entry_point: Optional[str] = None,
        stdin: str = "",
    ) -> ExecutionResult:
        project = await self.get_project(db, project_id)
        capability = get_language(project.language)
        table = PathTable(project.files)
        entry = table.require(entry_point) if entry_point else capability.entry_point(table)
        if entry is None:
            raise ValidationError(message="The project has no files to run", field="entry_point")
        if entry.is_folder:
            raise ValidationError(message=f"'{entry.path}' is a folder", field="entry_point")
        return await capability.execute(table.files(), entry, stdin)


# ── Singleton Instance ────────────────────────────────────────────────────
workspace_service = WorkspaceService(project_store, SyncEngine(github_client))
