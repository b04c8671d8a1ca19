"""
Photo API routes - uploading capture photos and serving local copies.
"""

import os
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from app.auth_dependencies import get_current_user
from app.models.user import User
from app.schemas import PhotoUploadResponse
from app.services import photo_storage

router = APIRouter()


@router.post("/api/photos", response_model=PhotoUploadResponse, status_code=201)
def upload_photo(photo: UploadFile = File(...), user: User = Depends(get_current_user)):
    """Upload a capture photo; the returned URL goes into POST /api/captures."""
    data = photo_storage.read_upload(photo.file)
    photo_url = photo_storage.save_photo(
        user.id, data, photo.content_type, original_name=photo.filename
    )
    return PhotoUploadResponse(photo_url=photo_url)


@router.get("/photos/{filename}")
def serve_photo(filename: str):
    """Serve a photo stored by the local backend."""
    if not photo_storage.is_valid_filename(filename):
        raise HTTPException(status_code=404, detail="Photo not found")

    path = photo_storage.local_photo_path(filename)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Photo not found")

    return FileResponse(path, headers={"Cache-Control": "public, max-age=31536000, immutable"})
