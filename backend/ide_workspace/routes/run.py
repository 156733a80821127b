"""
IDE Workspace — Run Route Handler
==================================

What:  POST /api/projects/{id}/run sends the project to an execution provider.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ide_workspace.database import get_db_session
from ide_workspace.schemas.api import ErrorResponse, ExecutionResult, RunRequest
from ide_workspace.services.workspace_service import workspace_service

router = APIRouter(prefix="/api/projects", tags=["Run"])


@router.post(
    "/{project_id}/run",
    response_model=ExecutionResult,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"description": "All execution providers failed", "model": ErrorResponse},
    },
    summary="Run the project (entry point by default)",
)
async def run_project(
    project_id: str,
    body: RunRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ExecutionResult:
    return await workspace_service.run(db, project_id, body.entry_point, body.stdin)
