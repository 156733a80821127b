"""
IDE Workspace — Project SQLAlchemy Model
=========================================

What:  ORM model representing the `projects` table (the local ProjectStore).
How:   One row per project snapshot. The file tree is stored as a JSON list of
       flat path-keyed records, in table order; hierarchy is never stored.
Who:   Used by ProjectStore for save/load/list/delete and by Alembic.
When:  Written on every save (autosave and explicit), read on open/list.

Table Design:
    - id: uuid4 hex string, assigned by the editor when the project is created
    - files: JSON array of {filename, path, is_folder, parent_folder, contents}
    - installed_packages: JSON array of package names (auxiliary editor state)
    - remote_repo / remote_branch / remote_token: the remote binding; NULL
      until the first successful push/pull/clone
    - last_modified index (DESC): the project picker lists newest first
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ide_workspace.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectRecord(Base):
    """
    Persisted snapshot of one project.

    Lifecycle:
        1. Inserted on the first save after creation (or after clone succeeds)
        2. Overwritten wholesale on every later save (idempotent upsert)
        3. Deleted only from the local store; the remote is never touched
    """

    __tablename__ = "projects"

    # ── Identity ──────────────────────────────────────────────────────────
    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Project identifier (uuid4 hex)",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name chosen by the user",
    )

    language: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="python",
        comment="Editor language: python, java, cpp",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        comment="When the project was created (UTC)",
    )

    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        comment="Stamped by every save (UTC)",
    )

    # ── Tree & Auxiliary State ────────────────────────────────────────────
    files: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Flat path-keyed file/folder records in table order",
    )

    installed_packages: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Package names installed through the editor",
    )

    # ── Remote Binding ────────────────────────────────────────────────────
    remote_repo: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="owner/name of the bound remote repository",
    )

    remote_branch: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="main",
        comment="Branch used by push/pull",
    )

    # Stored locally only; never returned by the API.
    remote_token: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Remote access credential",
    )

    def __repr__(self) -> str:
        return (
            f"<ProjectRecord(id={self.id}, name='{self.name}', "
            f"files={len(self.files or [])}, last_modified='{self.last_modified}')>"
        )


# ── Indexes ───────────────────────────────────────────────────────────────
Index("idx_projects_name", ProjectRecord.name)
Index("idx_projects_last_modified", ProjectRecord.last_modified.desc())
