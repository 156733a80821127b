"""
IDE Workspace — Project & File Tree Route Handlers
===================================================

What:  Project CRUD, tree edits, content edits and package bookkeeping.
How:   Each handler delegates to WorkspaceService and returns the updated
       project (or the tree mutation result). The access token is never
       part of any response body.
Who:   Called by the three editors (Python, Java, C++).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ide_workspace.database import get_db_session
from ide_workspace.schemas.api import ErrorResponse
from ide_workspace.schemas.project import (
    AddEntryRequest,
    ChildrenResponse,
    CreateProjectRequest,
    MoveEntryRequest,
    PackageRequest,
    Project,
    ProjectSummary,
    RemoveEntryRequest,
    RenameEntryRequest,
    RenameProjectRequest,
    TreeResponse,
    UpdateContentsRequest,
    UploadFileRequest,
)
from ide_workspace.services.workspace_service import workspace_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

_TREE_ERRORS = {
    400: {"description": "Invalid name or target", "model": ErrorResponse},
    404: {"description": "Project or entry not found", "model": ErrorResponse},
    409: {"description": "Name conflict, cyclic move, or last file", "model": ErrorResponse},
}


# ── Projects ──────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=List[ProjectSummary],
    summary="List projects, most recently modified first",
)
async def list_projects(db: AsyncSession = Depends(get_db_session)) -> List[ProjectSummary]:
    return await workspace_service.list_projects(db)


@router.post(
    "",
    response_model=Project,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create a project, optionally from the language template",
)
async def create_project(
    body: CreateProjectRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await workspace_service.create_project(
        db, name=body.name, language=body.language, from_template=body.from_template
    )


@router.get(
    "/{project_id}",
    response_model=Project,
    responses={404: {"model": ErrorResponse}},
    summary="Load a project snapshot",
)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db_session)) -> Project:
    return await workspace_service.get_project(db, project_id)


@router.patch(
    "/{project_id}",
    response_model=Project,
    responses={404: {"model": ErrorResponse}},
    summary="Rename a project",
)
async def rename_project(
    project_id: str,
    body: RenameProjectRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await workspace_service.rename_project(db, project_id, body.name)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project from the local store (the remote is untouched)",
)
async def delete_project(project_id: str, db: AsyncSession = Depends(get_db_session)) -> None:
    await workspace_service.delete_project(db, project_id)


@router.post(
    "/{project_id}/save",
    response_model=Project,
    responses={404: {"model": ErrorResponse}},
    summary="Save now instead of waiting for autosave",
)
async def save_project(project_id: str, db: AsyncSession = Depends(get_db_session)) -> Project:
    return await workspace_service.save_project(db, project_id)


# ── Tree ──────────────────────────────────────────────────────────────────

@router.get(
    "/{project_id}/children",
    response_model=ChildrenResponse,
    responses=_TREE_ERRORS,
    summary="Direct children of a folder (root when omitted)",
)
async def children_of(
    project_id: str,
    folder: Optional[str] = Query(default=None, description="Folder path; omit for the root"),
    db: AsyncSession = Depends(get_db_session),
) -> ChildrenResponse:
    children = await workspace_service.children_of(db, project_id, folder)
    return ChildrenResponse(folder=folder or None, children=children)


@router.post(
    "/{project_id}/files",
    response_model=TreeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_TREE_ERRORS,
    summary="Add a new file with the next free default name",
)
async def add_file(
    project_id: str,
    body: AddEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.add_file(db, project_id, body.parent_folder)


@router.post(
    "/{project_id}/folders",
    response_model=TreeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_TREE_ERRORS,
    summary="Add a new folder with the next free default name",
)
async def add_folder(
    project_id: str,
    body: AddEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.add_folder(db, project_id, body.parent_folder)


@router.post(
    "/{project_id}/upload",
    response_model=TreeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_TREE_ERRORS,
    summary="Add an uploaded file under its own name",
)
async def upload_file(
    project_id: str,
    body: UploadFileRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.import_file(
        db, project_id, body.filename, body.contents, body.parent_folder
    )


@router.post(
    "/{project_id}/rename",
    response_model=TreeResponse,
    responses=_TREE_ERRORS,
    summary="Rename a file or folder (folders carry their contents along)",
)
async def rename_entry(
    project_id: str,
    body: RenameEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.rename_entry(db, project_id, body.path, body.new_name)


@router.post(
    "/{project_id}/move",
    response_model=TreeResponse,
    responses=_TREE_ERRORS,
    summary="Move a file or folder into another folder (root when omitted)",
)
async def move_entry(
    project_id: str,
    body: MoveEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.move_entry(db, project_id, body.path, body.new_parent_folder)


@router.post(
    "/{project_id}/remove",
    response_model=TreeResponse,
    responses=_TREE_ERRORS,
    summary="Delete a file, or a folder and everything inside it",
)
async def remove_entry(
    project_id: str,
    body: RemoveEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TreeResponse:
    return await workspace_service.remove_entry(db, project_id, body.path)


@router.put(
    "/{project_id}/contents",
    response_model=Project,
    responses=_TREE_ERRORS,
    summary="Replace a file's contents (autosaved after a pause)",
)
async def update_contents(
    project_id: str,
    body: UpdateContentsRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await workspace_service.update_contents(db, project_id, body.path, body.contents)


# ── Packages ──────────────────────────────────────────────────────────────

@router.post(
    "/{project_id}/packages",
    response_model=Project,
    responses={404: {"model": ErrorResponse}},
    summary="Record an installed package",
)
async def add_package(
    project_id: str,
    body: PackageRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await workspace_service.add_package(db, project_id, body.name)


@router.delete(
    "/{project_id}/packages/{name}",
    response_model=Project,
    responses={404: {"model": ErrorResponse}},
    summary="Forget an installed package",
)
async def remove_package(
    project_id: str,
    name: str,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await workspace_service.remove_package(db, project_id, name)
