"""
Application configuration read from environment variables.

Values are resolved once at import time. DATABASE_URL lives in
app.database next to the engine it configures.
"""

import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated list; "*" allows any origin (development)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# How many times an approval is re-run after losing a flag-number race
FLAG_APPROVAL_MAX_ATTEMPTS = int(os.getenv("FLAG_APPROVAL_MAX_ATTEMPTS", "3"))

SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))

# Photo storage backend: "local" (directory on disk) or "s3"
PHOTO_STORAGE = os.getenv("PHOTO_STORAGE", "local").lower()
PHOTO_DIR = os.getenv("PHOTO_DIR", "./photos")
PHOTO_PUBLIC_PREFIX = os.getenv("PHOTO_PUBLIC_PREFIX", "/photos").rstrip("/")
PHOTO_MAX_BYTES = int(os.getenv("PHOTO_MAX_BYTES", str(10 * 1024 * 1024)))


def get_s3_config():
    """Read S3 configuration from environment at call time (not import time)."""
    return {
        "access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
        "secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "bucket": os.getenv("AWS_S3_BUCKET"),
        "region": os.getenv("AWS_S3_REGION", "us-west-2"),
    }
