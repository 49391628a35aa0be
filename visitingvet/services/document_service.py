"""
Document storage on S3
Verification documents and referral attachments are stored privately and
served through short-lived presigned URLs
"""

import logging
import os
import re
import uuid
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    S3_BUCKET_NAME,
    S3_ENDPOINT_URL,
    SIGNED_URL_EXPIRES_SECONDS,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENT_SIZE_BYTES = 10 * 1024 * 1024  # 10MB
ALLOWED_DOCUMENT_TYPES = {
    "application/pdf": (".pdf",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
}

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_\-]")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_\-.]")


class StorageError(Exception):
    """Raised when the object store rejects or fails a request"""


def get_s3_client():
    """Get configured boto3 client for S3 (or an S3-compatible endpoint)"""
    return boto3.client(
        "s3",
        endpoint_url=S3_ENDPOINT_URL or None,
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name=AWS_REGION,
    )


def _safe_file_parts(file_name: str) -> tuple[str, str]:
    base_name, extension = os.path.splitext(os.path.basename(file_name or ""))
    safe_base = _UNSAFE_NAME_CHARS.sub("_", base_name)[:50] or "document"
    return safe_base, extension.lower()


def generate_document_key(user_id, document_type: str, file_name: str) -> str:
    """
    Build a unique key for a verification document.
    Example: verifications/42/VETERINARY_LICENSE/<uuid>-license_scan.pdf
    """
    safe_user_id = _UNSAFE_KEY_CHARS.sub("_", str(user_id))
    safe_doc_type = _UNSAFE_KEY_CHARS.sub("_", str(document_type))
    safe_base, extension = _safe_file_parts(file_name)
    return f"verifications/{safe_user_id}/{safe_doc_type}/{uuid.uuid4()}-{safe_base}{extension}"


def generate_attachment_key(service_request_id: int, file_name: str) -> str:
    safe_base, extension = _safe_file_parts(file_name)
    return f"service-requests/{service_request_id}/{uuid.uuid4()}-{safe_base}{extension}"


def validate_document(
    file_name: str, content_type: Optional[str], size_bytes: int
) -> tuple[bool, Optional[str]]:
    """
    Validate an uploaded document before it is stored.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if size_bytes <= 0:
        return False, "File is empty"

    if size_bytes > MAX_DOCUMENT_SIZE_BYTES:
        return False, f"File size exceeds maximum of {MAX_DOCUMENT_SIZE_BYTES // (1024 * 1024)}MB"

    if content_type not in ALLOWED_DOCUMENT_TYPES:
        return False, "File type not supported. Allowed formats: PDF, JPEG, PNG, WEBP"

    extension = os.path.splitext(file_name or "")[1].lower()
    if extension not in ALLOWED_DOCUMENT_TYPES[content_type]:
        return False, f"File extension does not match content type {content_type}"

    return True, None


def upload_document(
    content: bytes, key: str, content_type: str, metadata: Optional[dict] = None
) -> str:
    """Store a document with server-side encryption and return its key"""
    try:
        client = get_s3_client()
        client.put_object(
            Bucket=S3_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=content_type,
            ServerSideEncryption="AES256",
            Metadata={k: str(v) for k, v in (metadata or {}).items()},
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ S3 upload failed for {key}: {e}")
        raise StorageError(f"Failed to upload document: {e}") from e

    logger.info(f"✅ Uploaded document to S3: {key} ({len(content)} bytes)")
    return key


def get_signed_url(key: str, expires_in: int = SIGNED_URL_EXPIRES_SECONDS) -> str:
    """Presigned GET URL for a stored document"""
    try:
        client = get_s3_client()
        return client.generate_presigned_url(
            "get_object",
            Params={"Bucket": S3_BUCKET_NAME, "Key": key},
            ExpiresIn=expires_in,
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ Failed to sign URL for {key}: {e}")
        raise StorageError(f"Failed to generate signed URL: {e}") from e


def delete_document(key: str) -> None:
    try:
        get_s3_client().delete_object(Bucket=S3_BUCKET_NAME, Key=key)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ S3 delete failed for {key}: {e}")
        raise StorageError(f"Failed to delete document: {e}") from e
    logger.info(f"🗑️ Deleted document from S3: {key}")
