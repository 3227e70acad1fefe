"""
S3 object storage gateway (visit photos, generated reports).

store() returns the public URL of the stored object; delete() never raises.
"""

import logging
import uuid
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.exceptions import StorageError

logger = logging.getLogger(__name__)

_s3 = None


def _get_client():
    global _s3
    if _s3 is None:
        session = boto3.session.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.S3_REGION,
        )
        _s3 = session.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            config=BotoConfig(signature_version="s3v4"),
        )
    return _s3


def make_key(path_hint: str, filename: Optional[str] = None) -> str:
    """Builds a collision-free key under path_hint, keeping the file extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "bin"
    return f"{path_hint.strip('/')}/{uuid.uuid4()}.{ext}"


def public_url(key: str) -> str:
    if settings.S3_PUBLIC_BASE_URL:
        return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
    if settings.S3_ENDPOINT_URL:
        return f"{settings.S3_ENDPOINT_URL.rstrip('/')}/{settings.S3_BUCKET}/{key}"
    return f"https://{settings.S3_BUCKET}.s3.{settings.S3_REGION}.amazonaws.com/{key}"


def key_from_url(url: str) -> Optional[str]:
    """Inverse of public_url(), None if the URL does not point into the bucket."""
    prefix = public_url("")
    if not url.startswith(prefix):
        return None
    return url[len(prefix):] or None


def store(
    data: bytes,
    content_type: str,
    path_hint: str,
    filename: Optional[str] = None,
    key: Optional[str] = None,
) -> str:
    """
    Uploads bytes and returns the public URL.
    An explicit key overrides the generated one (used for predictable report paths).
    Raises StorageError when S3 rejects the upload.
    """
    key = key or make_key(path_hint, filename)
    try:
        _get_client().put_object(
            Bucket=settings.S3_BUCKET,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.error("S3 upload failed for %s: %s", key, exc)
        raise StorageError("File upload failed, please retry later.")
    logger.info("Stored %d bytes at s3://%s/%s", len(data), settings.S3_BUCKET, key)
    return public_url(key)


def delete(key: str) -> bool:
    try:
        _get_client().delete_object(Bucket=settings.S3_BUCKET, Key=key)
        return True
    except (BotoCoreError, ClientError) as exc:
        logger.warning("S3 delete failed for %s: %s", key, exc)
        return False
