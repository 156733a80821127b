"""Create projects table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `projects` table backing the local ProjectStore.
How:   Portable column types only (String, Text, JSON, timezone-aware
       DateTime) so the same revision runs on SQLite and PostgreSQL.

Rollback: downgrade() drops the table (destructive; every local snapshot is lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(64), nullable=False, comment="Project identifier (uuid4 hex)"),
        sa.Column("name", sa.String(255), nullable=False, comment="Display name chosen by the user"),
        sa.Column(
            "language",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'python'"),
            comment="Editor language: python, java, cpp",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            comment="When the project was created (UTC)",
        ),
        sa.Column(
            "last_modified",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            comment="Stamped by every save (UTC)",
        ),
        sa.Column("files", sa.JSON(), nullable=False, comment="Flat path-keyed file/folder records in table order"),
        sa.Column(
            "installed_packages",
            sa.JSON(),
            nullable=False,
            comment="Package names installed through the editor",
        ),
        sa.Column("remote_repo", sa.String(255), nullable=True, comment="owner/name of the bound remote repository"),
        sa.Column(
            "remote_branch",
            sa.String(255),
            nullable=False,
            server_default=sa.text("'main'"),
            comment="Branch used by push/pull",
        ),
        sa.Column("remote_token", sa.Text(), nullable=True, comment="Remote access credential"),
        sa.PrimaryKeyConstraint("id", name="pk_projects"),
    )

    op.create_index("idx_projects_name", "projects", ["name"])
    op.create_index(
        "idx_projects_last_modified",
        "projects",
        [sa.text("last_modified DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_projects_last_modified", table_name="projects")
    op.drop_index("idx_projects_name", table_name="projects")
    op.drop_table("projects")
