"""
IDE Workspace — Project Store
==============================

What:  Durable local storage of project snapshots keyed by project id.
How:   One `projects` row per project (see models/project.py). A save is a
       whole-snapshot overwrite, so saving the same project twice leaves the
       store in the same state as saving it once (apart from last_modified).
Who:   Called by WorkspaceService and the AutosaveScheduler.
When:  On every debounced autosave, on explicit save, after a successful
       pull/clone, and when a push binds a project to a remote.

Transaction handling follows the request session: the store flushes, and
`get_db_session` commits or rolls back at the end of the request.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ide_workspace.exceptions import DatabaseError, ProjectNotFoundError
from ide_workspace.models.project import ProjectRecord
from ide_workspace.schemas.project import FileEntry, Project

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_project(record: ProjectRecord) -> Project:
    return Project(
        id=record.id,
        name=record.name,
        language=record.language,
        created=_as_utc(record.created_at),
        last_modified=_as_utc(record.last_modified),
        files=[FileEntry.model_validate(item) for item in record.files or []],
        installed_packages=list(record.installed_packages or []),
        remote_repo=record.remote_repo,
        remote_branch=record.remote_branch,
        remote_token=record.remote_token,
    )


class ProjectStore:
    """
    Async snapshot store.

    Every method takes the session explicitly; the store holds no state.
    """

    async def save(self, db: AsyncSession, project: Project) -> Project:
        """
        Upserts `project` and returns it with `last_modified` stamped.

        The snapshot written is exactly the one passed in; the store never
        merges with what it held before.
        """
        stamped = project.model_copy(update={"last_modified": datetime.now(timezone.utc)})
        try:
            record = await db.get(ProjectRecord, stamped.id)
            if record is None:
                record = ProjectRecord(id=stamped.id, created_at=stamped.created)
                db.add(record)
            record.name = stamped.name
            record.language = stamped.language
            record.last_modified = stamped.last_modified
            record.files = [entry.model_dump() for entry in stamped.files]
            record.installed_packages = list(stamped.installed_packages)
            record.remote_repo = stamped.remote_repo
            record.remote_branch = stamped.remote_branch
            record.remote_token = stamped.remote_token
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving project %s: %s", stamped.id, e, exc_info=True)
            raise DatabaseError(
                message="Could not save the project. Please try again.",
                context={"project_id": stamped.id},
            )

        logger.debug("Saved project %s (%d entries)", stamped.id, len(stamped.files))
        return stamped

    async def get(self, db: AsyncSession, project_id: str) -> Optional[Project]:
        try:
            record = await db.get(ProjectRecord, project_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading project %s: %s", project_id, e)
            raise DatabaseError(
                message="Could not load the project. Please try again.",
                context={"project_id": project_id},
            )
        return _to_project(record) if record is not None else None

    async def load(self, db: AsyncSession, project_id: str) -> Project:
        """
        Raises:
            ProjectNotFoundError: no snapshot stored under `project_id`.
        """
        project = await self.get(db, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def list_projects(self, db: AsyncSession) -> List[Project]:
        """All snapshots, most recently modified first."""
        try:
            result = await db.execute(
                select(ProjectRecord).order_by(ProjectRecord.last_modified.desc())
            )
            records = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing projects: %s", e, exc_info=True)
            raise DatabaseError(message="Could not list projects. Please try again.")
        return [_to_project(record) for record in records]

    async def delete(self, db: AsyncSession, project_id: str) -> None:
        """Removes the snapshot; deleting an absent id is not an error."""
        try:
            await db.execute(delete(ProjectRecord).where(ProjectRecord.id == project_id))
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting project %s: %s", project_id, e)
            raise DatabaseError(
                message="Could not delete the project. Please try again.",
                context={"project_id": project_id},
            )
        logger.info("Deleted project %s", project_id)


# ── Singleton Instance ────────────────────────────────────────────────────
project_store = ProjectStore()
