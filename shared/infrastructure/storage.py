"""S3 object storage for business uploads (photos, logos, banners).

Uploads go straight from the browser to S3 through presigned PUT URLs; the API
only hands out URLs, records the resulting keys and deletes objects.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings  # type: ignore

logger = logging.getLogger(__name__)


class UploadValidationError(ValueError):
    """Raised when an upload request violates type or size limits."""


class StorageError(Exception):
    """Raised when S3 rejects an operation."""


@dataclass(frozen=True)
class PresignedUpload:
    upload_url: str
    key: str
    url: str


def get_s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        region_name=settings.AWS_S3_REGION_NAME,
        config=BotoConfig(signature_version="s3v4"),
    )


def validate_upload(content_type: str, file_size: int | None) -> None:
    """Reject anything but small images before handing out an upload URL."""
    if content_type not in settings.UPLOAD_ALLOWED_CONTENT_TYPES:
        raise UploadValidationError("Invalid file type. Only JPEG, PNG, GIF and WebP images are allowed.")
    if file_size is not None and file_size > settings.UPLOAD_MAX_FILE_SIZE:
        max_mb = settings.UPLOAD_MAX_FILE_SIZE / 1024 / 1024
        raise UploadValidationError(f"File too large. Maximum size is {max_mb:.0f}MB.")


def generate_upload_key(business_id: int, upload_type: str, filename: str) -> str:
    """businesses/<id>/<type>/<epoch ms>-<random>.<ext>"""
    _, ext = os.path.splitext(filename or "")
    ext = ext.lstrip(".").lower() or "jpg"
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    return f"businesses/{business_id}/{upload_type.lower()}/{timestamp}-{suffix}.{ext}"


def get_public_url(key: str) -> str:
    if settings.CLOUDFRONT_URL:
        return f"{settings.CLOUDFRONT_URL}/{key}"
    return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.AWS_S3_REGION_NAME}.amazonaws.com/{key}"


def create_presigned_upload(
    business_id: int,
    upload_type: str,
    filename: str,
    content_type: str,
    file_size: int | None = None,
) -> PresignedUpload:
    validate_upload(content_type, file_size)
    key = generate_upload_key(business_id, upload_type, filename)
    try:
        upload_url = get_s3_client().generate_presigned_url(
            "put_object",
            Params={
                "Bucket": settings.S3_BUCKET_NAME,
                "Key": key,
                "ContentType": content_type,
            },
            ExpiresIn=settings.UPLOAD_URL_EXPIRES_IN,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error(f"Failed to presign upload for business {business_id}: {exc}", exc_info=True)
        raise StorageError("Failed to generate upload URL") from exc

    logger.info(f"Presigned upload issued for business {business_id}: {key}")
    return PresignedUpload(upload_url=upload_url, key=key, url=get_public_url(key))


def delete_object(key: str) -> bool:
    """Remove an object; failures are logged and reported, not raised."""
    if not key:
        return False
    try:
        get_s3_client().delete_object(Bucket=settings.S3_BUCKET_NAME, Key=key)
        logger.info(f"Deleted S3 object {key}")
        return True
    except (BotoCoreError, ClientError) as exc:
        logger.error(f"Failed to delete S3 object {key}: {exc}", exc_info=True)
        return False
