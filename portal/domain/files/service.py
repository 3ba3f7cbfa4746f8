"""File service - folders, presigned uploads and downloads"""

import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import User
from ...models_files import Folder, StoredFile
from ...permissions import ensure_permission, is_privileged
from ...scoping import apply_org_scope, ensure_org_access
from ...security_utils import sanitize_filename
from ...storage import (
    PRESIGNED_URL_EXPIRATION,
    StorageError,
    delete_object,
    generate_download_url,
    generate_upload_url,
)
from .schemas import FolderCreate, UploadUrlRequest

logger = logging.getLogger(__name__)


def build_storage_key(organization_id: int, file_name: str) -> str:
    return f"orgs/{organization_id}/{uuid.uuid4()}-{sanitize_filename(file_name)}"


class FileService:
    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # FOLDERS
    # ========================================================================

    def get_folder(self, folder_id: int, user: User) -> Folder:
        folder = self.db.query(Folder).filter(Folder.id == folder_id).first()
        if not folder or (not is_privileged(user) and not folder.is_client_visible):
            raise HTTPException(status_code=404, detail="Folder not found")
        ensure_org_access(self.db, user, folder.organization_id)
        return folder

    def list_folders(self, user: User, organization_id: int, parent_id: Optional[int] = None) -> list[Folder]:
        ensure_permission(self.db, user, "files.view")
        ensure_org_access(self.db, user, organization_id)
        query = self.db.query(Folder).filter(
            Folder.organization_id == organization_id, Folder.parent_id == parent_id
        )
        if not is_privileged(user):
            query = query.filter(Folder.is_client_visible.is_(True))
        return query.order_by(Folder.name).all()

    def create_folder(self, user: User, data: FolderCreate) -> Folder:
        ensure_permission(self.db, user, "files.upload")
        ensure_org_access(self.db, user, data.organization_id)
        if data.parent_id:
            parent = self.get_folder(data.parent_id, user)
            if parent.organization_id != data.organization_id:
                raise HTTPException(status_code=400, detail="Parent folder belongs to another organization")

        folder = Folder(
            organization_id=data.organization_id,
            parent_id=data.parent_id,
            name=data.name.strip(),
            is_client_visible=data.is_client_visible if is_privileged(user) else True,
            created_by=user.id,
        )
        self.db.add(folder)
        self.db.commit()
        self.db.refresh(folder)
        return folder

    def delete_folder(self, folder_id: int, user: User) -> dict:
        ensure_permission(self.db, user, "files.delete")
        folder = self.get_folder(folder_id, user)
        has_files = self.db.query(StoredFile.id).filter(StoredFile.folder_id == folder.id).first()
        has_children = self.db.query(Folder.id).filter(Folder.parent_id == folder.id).first()
        if has_files or has_children:
            raise HTTPException(status_code=409, detail="Folder is not empty")

        self.db.delete(folder)
        self.db.commit()
        log_action(self.db, user, "folder.delete", "folder", folder_id, organization_id=folder.organization_id)
        return {"message": "Folder deleted"}

    # ========================================================================
    # FILES
    # ========================================================================

    def get_file(self, file_id: int, user: User) -> StoredFile:
        stored = self.db.query(StoredFile).filter(StoredFile.id == file_id).first()
        if not stored or (not is_privileged(user) and not stored.is_client_visible):
            raise HTTPException(status_code=404, detail="File not found")
        ensure_org_access(self.db, user, stored.organization_id)
        return stored

    def list_files(
        self, user: User, organization_id: Optional[int] = None, folder_id: Optional[int] = None
    ) -> list[StoredFile]:
        ensure_permission(self.db, user, "files.view")
        query = apply_org_scope(self.db.query(StoredFile), StoredFile.organization_id, self.db, user)
        if organization_id:
            query = query.filter(StoredFile.organization_id == organization_id)
        query = query.filter(StoredFile.folder_id == folder_id, StoredFile.status == "uploaded")
        if not is_privileged(user):
            query = query.filter(StoredFile.is_client_visible.is_(True))
        return query.order_by(StoredFile.name).all()

    def create_upload(self, user: User, data: UploadUrlRequest) -> dict:
        ensure_permission(self.db, user, "files.upload")
        ensure_org_access(self.db, user, data.organization_id)
        if data.folder_id:
            folder = self.get_folder(data.folder_id, user)
            if folder.organization_id != data.organization_id:
                raise HTTPException(status_code=400, detail="Folder belongs to another organization")

        name = sanitize_filename(data.file_name)
        key = build_storage_key(data.organization_id, name)
        try:
            upload_url = generate_upload_url(key, data.content_type)
        except StorageError as e:
            raise HTTPException(status_code=502, detail="File storage unavailable") from e

        stored = StoredFile(
            organization_id=data.organization_id,
            folder_id=data.folder_id,
            name=name,
            storage_key=key,
            content_type=data.content_type,
            size_bytes=data.size_bytes,
            status="pending",
            is_client_visible=data.is_client_visible if is_privileged(user) else True,
            uploaded_by=user.id,
        )
        self.db.add(stored)
        self.db.commit()
        self.db.refresh(stored)
        logger.info(f"📤 Upload URL issued for file {stored.id} ({data.size_bytes} bytes)")
        return {"file": stored, "upload_url": upload_url, "expires_in": PRESIGNED_URL_EXPIRATION}

    def complete_upload(self, file_id: int, user: User) -> StoredFile:
        stored = self.get_file(file_id, user)
        if stored.uploaded_by != user.id and not is_privileged(user):
            raise HTTPException(status_code=403, detail="Only the uploader can complete this upload")
        if stored.status != "pending":
            raise HTTPException(status_code=400, detail="Upload already completed")

        stored.status = "uploaded"
        self.db.commit()
        self.db.refresh(stored)
        log_action(
            self.db,
            user,
            "file.upload",
            "file",
            stored.id,
            details={"name": stored.name, "size_bytes": stored.size_bytes},
            organization_id=stored.organization_id,
        )
        return stored

    def get_download_url(self, file_id: int, user: User) -> dict:
        ensure_permission(self.db, user, "files.view")
        stored = self.get_file(file_id, user)
        if stored.status != "uploaded":
            raise HTTPException(status_code=400, detail="File upload has not completed")
        try:
            url = generate_download_url(stored.storage_key, stored.name)
        except StorageError as e:
            raise HTTPException(status_code=502, detail="File storage unavailable") from e
        return {"download_url": url, "expires_in": PRESIGNED_URL_EXPIRATION}

    def delete_file(self, file_id: int, user: User) -> dict:
        ensure_permission(self.db, user, "files.delete")
        stored = self.get_file(file_id, user)
        try:
            delete_object(stored.storage_key)
        except StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to delete file from storage") from e

        organization_id = stored.organization_id
        self.db.delete(stored)
        self.db.commit()
        log_action(self.db, user, "file.delete", "file", file_id, organization_id=organization_id)
        return {"message": "File deleted"}
