"""File and folder schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB

ALLOWED_CONTENT_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/zip",
    "application/json",
    "text/plain",
    "text/csv",
    "text/markdown",
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "video/mp4",
    "video/quicktime",
    "audio/mpeg",
]


class FolderCreate(BaseModel):
    organization_id: int
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[int] = None
    is_client_visible: bool = True


class FolderResponse(BaseModel):
    id: int
    organization_id: int
    parent_id: Optional[int] = None
    name: str
    is_client_visible: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UploadUrlRequest(BaseModel):
    organization_id: int
    folder_id: Optional[int] = None
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str
    size_bytes: int = Field(..., gt=0)
    is_client_visible: bool = True

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, v):
        v = v.split(";")[0].strip().lower()
        if v not in ALLOWED_CONTENT_TYPES:
            raise ValueError(f"File type {v} is not allowed")
        return v

    @field_validator("size_bytes")
    @classmethod
    def validate_size(cls, v):
        if v > MAX_FILE_SIZE:
            raise ValueError(f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)}MB")
        return v


class StoredFileResponse(BaseModel):
    id: int
    organization_id: int
    folder_id: Optional[int] = None
    name: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    status: str
    is_client_visible: bool
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UploadUrlResponse(BaseModel):
    file: StoredFileResponse
    upload_url: str
    expires_in: int
