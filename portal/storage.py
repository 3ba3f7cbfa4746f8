"""S3-compatible object storage helpers"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import S3_ACCESS_KEY_ID, S3_BUCKET_NAME, S3_ENDPOINT_URL, S3_REGION, S3_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)

# Presigned URL expiration time (15 minutes)
PRESIGNED_URL_EXPIRATION = 900


class StorageError(Exception):
    """Raised when the object store rejects or fails a request"""

    pass


def get_s3_client():
    """Create and return an S3 client for the configured endpoint."""
    return boto3.client(
        "s3",
        endpoint_url=S3_ENDPOINT_URL,
        aws_access_key_id=S3_ACCESS_KEY_ID,
        aws_secret_access_key=S3_SECRET_ACCESS_KEY,
        region_name=S3_REGION,
        config=Config(signature_version="s3v4"),
    )


def generate_upload_url(key: str, content_type: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
    """Presigned PUT URL; the client must send the same Content-Type header"""
    try:
        return get_s3_client().generate_presigned_url(
            "put_object",
            Params={"Bucket": S3_BUCKET_NAME, "Key": key, "ContentType": content_type},
            ExpiresIn=expiration,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to presign upload for {key}: {e}")
        raise StorageError(str(e)) from e


def generate_download_url(
    key: str, filename: Optional[str] = None, expiration: int = PRESIGNED_URL_EXPIRATION
) -> str:
    params = {"Bucket": S3_BUCKET_NAME, "Key": key}
    if filename:
        params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
    try:
        return get_s3_client().generate_presigned_url("get_object", Params=params, ExpiresIn=expiration)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to presign download for {key}: {e}")
        raise StorageError(str(e)) from e


def delete_object(key: str) -> None:
    try:
        get_s3_client().delete_object(Bucket=S3_BUCKET_NAME, Key=key)
        logger.info(f"🗑️ Deleted object {key}")
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to delete object {key}: {e}")
        raise StorageError(str(e)) from e
