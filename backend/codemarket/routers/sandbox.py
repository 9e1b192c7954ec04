"""Sandbox router: upload, browse, run and download project source files."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from codemarket.config import settings
from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.auth.dependencies import get_current_active_user, get_optional_user
from codemarket.schemas.sandbox import (
    SandboxUploadResponse, SandboxTreeResponse, SandboxFileResponse, SandboxRunResponse,
)
from codemarket.services.access import capability_access
from codemarket.services.projects import get_active_license, get_visible_project, increment_views
from codemarket.services.sandbox import (
    InvalidSandboxPath, SandboxNotFound, SandboxStorage, get_sandbox,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _sandbox_error(e: Exception) -> HTTPException:
    if isinstance(e, SandboxNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def _require_capability(db: AsyncSession, project_id: str, capability: str, user: Optional[User]):
    """Load a visible project and check one capability; 403 when denied."""
    project = await get_visible_project(db, project_id, user)
    license_obj = await get_active_license(db, project.uuid, user)

    if not capability_access(project, capability, user, license_obj):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied: {capability.replace('_', ' ')} requires a valid license"
        )
    return project


@router.post("/api/sandbox/upload-project", response_model=SandboxUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_project(
    project_id: str = Form(...),
    description: Optional[str] = Form(None),
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_active_user),
    sandbox: SandboxStorage = Depends(get_sandbox),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload source files into a project's sandbox (author only).

    - Only source/text extensions are accepted
    - At most SANDBOX_MAX_FILES files of SANDBOX_MAX_FILE_BYTES each
    """
    project = await get_visible_project(db, project_id, current_user)
    if project.author_id != current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to upload files for this project"
        )

    if len(files) > settings.SANDBOX_MAX_FILES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files (max {settings.SANDBOX_MAX_FILES})"
        )

    contents = []
    for upload in files:
        data = await upload.read(settings.SANDBOX_MAX_FILE_BYTES + 1)
        if len(data) > settings.SANDBOX_MAX_FILE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large: {upload.filename}"
            )
        contents.append((upload.filename or "", data))

    try:
        saved = sandbox.save_files(project.uuid, contents, description=description)
    except InvalidSandboxPath as e:
        raise _sandbox_error(e)

    return SandboxUploadResponse(
        message="Project uploaded to sandbox successfully",
        project_id=project.uuid,
        files=saved,
    )


@router.get("/api/sandbox/code/{project_id}", response_model=SandboxTreeResponse | SandboxFileResponse)
async def get_code(
    project_id: str,
    file: Optional[str] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    sandbox: SandboxStorage = Depends(get_sandbox),
    db: AsyncSession = Depends(get_db)
):
    """File tree of the sandbox, or one file's content when ``file`` is given."""
    project = await _require_capability(db, project_id, "view_code", current_user)

    try:
        if file:
            return SandboxFileResponse(**sandbox.read_file(project.uuid, file))
        return SandboxTreeResponse(project_id=project.uuid, files=sandbox.file_tree(project.uuid))
    except (SandboxNotFound, InvalidSandboxPath) as e:
        raise _sandbox_error(e)


@router.get("/api/sandbox/run/{project_id}", response_model=SandboxRunResponse)
async def run_project(
    project_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    sandbox: SandboxStorage = Depends(get_sandbox),
    db: AsyncSession = Depends(get_db)
):
    """Run the project: npm start, else serve index.html, else list files."""
    project = await _require_capability(db, project_id, "run_app", current_user)

    try:
        result = await sandbox.run(project.uuid)
    except (SandboxNotFound, InvalidSandboxPath) as e:
        raise _sandbox_error(e)

    await increment_views(db, project.uuid)
    await db.commit()
    return SandboxRunResponse(**result)


@router.get("/api/sandbox/download/{project_id}")
async def download_project(
    project_id: str,
    current_user: User = Depends(get_current_active_user),
    sandbox: SandboxStorage = Depends(get_sandbox),
    db: AsyncSession = Depends(get_db)
):
    """Zip archive of the sandbox (download_code capability)."""
    project = await _require_capability(db, project_id, "download_code", current_user)

    try:
        archive = sandbox.build_zip(project.uuid)
    except (SandboxNotFound, InvalidSandboxPath) as e:
        raise _sandbox_error(e)

    logger.info(f"Sandbox download of project {project.uuid} by {current_user.uuid}")
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{project.uuid}.zip"'},
    )
