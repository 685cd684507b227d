from __future__ import annotations

from typing import Optional

from fastapi import Depends, File, Form, HTTPException, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from .repositories import Repository, get_repository
from .schemas import TaskCreate
from .services import ImageUpload, TaskService
from .settings import get_settings
from .storage import ObjectStore, get_object_store


def get_task_service(
    repo: Repository = Depends(get_repository),
    store: ObjectStore = Depends(get_object_store),
) -> TaskService:
    """
    Dependency wiring the configured document store and object store.
    """
    return TaskService(repo, store)


def task_form(
    title: str = Form(..., description="Short title for the task"),
    detail: str = Form(..., description="Detailed description of the task"),
    is_completed: bool = Form(False, description="Completion status flag"),
) -> TaskCreate:
    """
    Collect the multipart form fields into a validated TaskCreate.
    """
    try:
        return TaskCreate(title=title, detail=detail, is_completed=is_completed)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


def image_upload(
    image: Optional[UploadFile] = File(None, description="Optional task image (image/*)"),
) -> Optional[ImageUpload]:
    """
    Read the optional image part. Empty parts (no file chosen) count as no image.

    Raises:
        HTTPException(415) for non-image content types.
        HTTPException(413) when the image exceeds MAX_IMAGE_BYTES.
    """
    if image is None or not image.filename:
        return None

    max_bytes = get_settings().max_image_bytes
    data = image.file.read(max_bytes + 1)
    if not data:
        return None

    content_type = (image.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only image uploads are accepted",
        )
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds the {max_bytes} byte limit",
        )
    return ImageUpload(filename=image.filename, content_type=content_type, data=data)
