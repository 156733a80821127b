"""
IDE Workspace — Remote Sync Route Handlers
===========================================

What:  Push, pull and clone against GitHub.
How:   The editor sends the access token with each call (or relies on the
       one stored with the project). Handlers delegate to WorkspaceService;
       remote failures map to 401 / 404 / 409 / 502 in main.py.

Pull is destructive: the project's files are replaced by the branch's
files and local-only files are discarded.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ide_workspace.database import get_db_session
from ide_workspace.schemas.api import ErrorResponse
from ide_workspace.schemas.remote import (
    CloneRequest,
    PullRequest,
    PullResult,
    PushRequest,
    PushResult,
)
from ide_workspace.services.workspace_service import workspace_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Sync"])

_REMOTE_ERRORS = {
    400: {"description": "Missing repository or binding", "model": ErrorResponse},
    401: {"description": "Missing or rejected access token", "model": ErrorResponse},
    404: {"description": "Repository or branch not found", "model": ErrorResponse},
    409: {"description": "A sync is already running for this project", "model": ErrorResponse},
    502: {"description": "Remote failure, partial push, or unreadable tree", "model": ErrorResponse},
}


@router.post(
    "/clone",
    response_model=PullResult,
    status_code=status.HTTP_201_CREATED,
    responses=_REMOTE_ERRORS,
    summary="Create a new project from a GitHub repository",
)
async def clone_repository(
    body: CloneRequest,
    db: AsyncSession = Depends(get_db_session),
) -> PullResult:
    return await workspace_service.clone(
        db,
        repo_url=body.repo_url,
        token=body.token,
        branch=body.branch,
        name=body.name,
        language=body.language,
    )


@router.post(
    "/{project_id}/push",
    response_model=PushResult,
    responses=_REMOTE_ERRORS,
    summary="Commit the project's files to its GitHub branch",
)
async def push_project(
    project_id: str,
    body: PushRequest,
    db: AsyncSession = Depends(get_db_session),
) -> PushResult:
    return await workspace_service.push(
        db, project_id, token=body.token, repo=body.repo, branch=body.branch
    )


@router.post(
    "/{project_id}/pull",
    response_model=PullResult,
    responses=_REMOTE_ERRORS,
    summary="Replace the project's files with its GitHub branch",
)
async def pull_project(
    project_id: str,
    body: PullRequest,
    db: AsyncSession = Depends(get_db_session),
) -> PullResult:
    return await workspace_service.pull(db, project_id, token=body.token)
