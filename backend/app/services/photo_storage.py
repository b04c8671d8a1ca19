"""
Photo Storage Service - stores capture photos and returns their URL.

Two backends, selected by PHOTO_STORAGE:
- local: files written under PHOTO_DIR and served by GET /photos/{filename}
- s3: objects uploaded with boto3; the public S3 URL is returned

Filenames follow {user_id}-{epoch_ms}-{random}.{ext} so uploads never
collide and can be traced back to the uploader.
"""

import os
import re
import secrets
import time
from typing import Optional

from app.config import (
    PHOTO_STORAGE, PHOTO_DIR, PHOTO_PUBLIC_PREFIX, PHOTO_MAX_BYTES, get_s3_config
)
from app.errors import InvalidPhoto, PhotoStorageUnavailable
from app.logging_config import get_logger, log_with_context

logger = get_logger("photos")

# MIME type -> canonical file extension
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}

_FILENAME_RE = re.compile(r"^[A-Za-z0-9_-]+\.[a-z]{3,4}$")

# Lazy-initialized S3 client
_s3_client = None


def _get_s3_client():
    """Get or create the boto3 S3 client. Lazy-imports boto3 to avoid import-time dependency."""
    global _s3_client
    if _s3_client is None:
        cfg = get_s3_config()
        if not all([cfg["access_key_id"], cfg["secret_access_key"], cfg["bucket"]]):
            raise PhotoStorageUnavailable(
                "Photo storage is not configured. "
                "Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, and AWS_S3_BUCKET."
            )
        import boto3

        _s3_client = boto3.client(
            "s3",
            aws_access_key_id=cfg["access_key_id"],
            aws_secret_access_key=cfg["secret_access_key"],
            region_name=cfg["region"],
        )
    return _s3_client


def build_filename(user_id: str, original_name: Optional[str], content_type: str) -> str:
    """
    Build a unique storage filename for an upload.

    The extension comes from the original filename when it is a known
    image extension, otherwise from the content type.
    """
    extension = None
    if original_name and "." in original_name:
        candidate = original_name.rsplit(".", 1)[-1].lower()
        if candidate in ALLOWED_EXTENSIONS:
            extension = candidate
    if extension is None:
        extension = ALLOWED_CONTENT_TYPES.get(content_type, "jpg")

    timestamp = int(time.time() * 1000)
    random_id = secrets.token_hex(6)
    return f"{user_id}-{timestamp}-{random_id}.{extension}"


def is_valid_filename(filename: str) -> bool:
    """True for names produced by build_filename (no path components)."""
    return bool(_FILENAME_RE.match(filename))


def local_photo_path(filename: str) -> str:
    """Absolute path of a locally stored photo."""
    return os.path.join(os.path.abspath(PHOTO_DIR), filename)


def read_upload(stream) -> bytes:
    """
    Read an uploaded file, stopping one byte past PHOTO_MAX_BYTES.

    An oversized upload is never held in memory in full; save_photo
    rejects anything longer than the limit.
    """
    return stream.read(PHOTO_MAX_BYTES + 1)


def _save_local(filename: str, data: bytes) -> str:
    try:
        os.makedirs(PHOTO_DIR, exist_ok=True)
        with open(local_photo_path(filename), "wb") as f:
            f.write(data)
    except OSError as e:
        log_with_context(logger, "ERROR", "Failed to write photo to disk: {}".format(e),
            context={"filename": filename})
        raise PhotoStorageUnavailable("Failed to upload photo")
    return f"{PHOTO_PUBLIC_PREFIX}/{filename}"


def _save_s3(filename: str, data: bytes, content_type: str) -> str:
    from botocore.exceptions import BotoCoreError, ClientError

    client = _get_s3_client()
    cfg = get_s3_config()
    bucket = cfg["bucket"]
    region = cfg["region"]
    key = f"captures/{filename}"

    try:
        client.put_object(
            Bucket=bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as e:
        log_with_context(logger, "ERROR", "Failed to upload photo to S3: {}".format(e),
            context={"key": key})
        raise PhotoStorageUnavailable("Failed to upload photo")

    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def save_photo(user_id: str, data: bytes, content_type: str,
               original_name: Optional[str] = None) -> str:
    """
    Validate and store an uploaded capture photo.

    Args:
        user_id: Uploading user, embedded in the filename
        data: Raw image bytes
        content_type: MIME type reported by the client
        original_name: Client-side filename, used for the extension

    Returns:
        URL the photo can be retrieved from

    Raises:
        InvalidPhoto: empty, too large, or not an accepted image type
        PhotoStorageUnavailable: the storage backend failed
    """
    if not data:
        raise InvalidPhoto("No photo provided")
    if len(data) > PHOTO_MAX_BYTES:
        raise InvalidPhoto("Photo exceeds the {} byte limit".format(PHOTO_MAX_BYTES))
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise InvalidPhoto("Unsupported photo type: {}".format(content_type))

    filename = build_filename(user_id, original_name, content_type)

    if PHOTO_STORAGE == "s3":
        url = _save_s3(filename, data, content_type)
    else:
        url = _save_local(filename, data)

    log_with_context(logger, "INFO", "Photo stored",
        context={"user_id": user_id, "filename": filename},
        extra_data={"bytes": len(data), "backend": PHOTO_STORAGE})
    return url
