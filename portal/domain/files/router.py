"""File router - folders and presigned object storage URLs"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import FolderCreate, FolderResponse, StoredFileResponse, UploadUrlRequest, UploadUrlResponse
from .service import FileService

router = APIRouter(prefix="/files", tags=["Files"])
rate_limit_upload = create_rate_limiter(30, 60, "file_upload", scope="user")


def get_file_service(db: Session = Depends(get_db)) -> FileService:
    return FileService(db)


# ============================================================================
# FOLDERS
# ============================================================================


@router.get("/folders", response_model=list[FolderResponse])
async def list_folders(
    organization_id: int = Query(...),
    parent_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.list_folders(current_user, organization_id, parent_id)


@router.post("/folders", response_model=FolderResponse, status_code=201)
async def create_folder(
    data: FolderCreate,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.create_folder(current_user, data)


@router.delete("/folders/{folder_id}")
async def delete_folder(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.delete_folder(folder_id, current_user)


# ============================================================================
# FILES
# ============================================================================


@router.get("", response_model=list[StoredFileResponse])
async def list_files(
    organization_id: Optional[int] = Query(None),
    folder_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.list_files(current_user, organization_id, folder_id)


@router.post("/upload-url", response_model=UploadUrlResponse, status_code=201)
async def create_upload_url(
    data: UploadUrlRequest,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
    _: None = Depends(rate_limit_upload),
):
    """Create a pending file record and a presigned PUT URL for the browser to upload to"""
    return service.create_upload(current_user, data)


@router.post("/{file_id}/complete", response_model=StoredFileResponse)
async def complete_upload(
    file_id: int,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.complete_upload(file_id, current_user)


@router.get("/{file_id}/download-url")
async def get_download_url(
    file_id: int,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.get_download_url(file_id, current_user)


@router.delete("/{file_id}")
async def delete_file(
    file_id: int,
    current_user: User = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return service.delete_file(file_id, current_user)
