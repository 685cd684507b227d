from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..auth import require_basic_auth
from ..dependencies import get_task_service, image_upload, task_form
from ..errors import TaskNotFoundError
from ..repositories import ListQuery
from ..schemas import TaskCreate, TaskOut, TaskPatch
from ..services import ImageUpload, TaskService
from ..utils import pagination_envelope

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
    dependencies=[Depends(require_basic_auth)],
)

_NOT_FOUND = "Task not found"


class PaginationEnvelope(BaseModel):
    """
    Envelope for paginated list responses.
    """
    items: List[TaskOut] = Field(..., description="List of tasks")
    total: int = Field(..., description="Total number of items matching the query")
    limit: int = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description=(
        "Create a new task from a multipart form. When an image is attached it is "
        "uploaded to the bucket before the task record is written."
    ),
    responses={
        201: {"description": "Task created successfully"},
        413: {"description": "Image too large"},
        415: {"description": "Attachment is not an image"},
        422: {"description": "Validation error"},
        502: {"description": "Document store or object store failure"},
    },
)
def create_task(
    payload: TaskCreate = Depends(task_form),
    image: Optional[ImageUpload] = Depends(image_upload),
    service: TaskService = Depends(get_task_service),
) -> TaskOut:
    """
    Create a new Task.
    """
    created = service.create_task(payload, image)
    return TaskOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=PaginationEnvelope,
    summary="List Tasks",
    description=(
        "List tasks ordered by creation time with optional filters and pagination.\n\n"
        "Query parameters:\n"
        "- limit: max number of items to return (0..1000)\n"
        "- offset: number of items to skip (>=0)\n"
        "- completed: filter by completion status\n"
        "- order: 'desc' (newest first, default) or 'asc'\n\n"
        "Returns a pagination envelope with items and total count."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    completed: Optional[bool] = Query(None, description="Filter by completion status"),
    order: Optional[str] = Query("desc", description="Creation time order: 'asc' or 'desc'"),
    service: TaskService = Depends(get_task_service),
) -> PaginationEnvelope:
    """
    List tasks with pagination and filters.
    """
    ord_norm = (order or "desc").strip().lower()
    if ord_norm not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")

    query = ListQuery(limit=limit, offset=offset, completed=completed, descending=ord_norm == "desc")
    items, total = service.list_tasks(query)
    envelope = pagination_envelope(
        items=[TaskOut(**it) for it in items],
        total=total,
        limit=limit,
        offset=offset,
    )
    return PaginationEnvelope(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Retrieve a single Task by its ID.
    """
    try:
        return TaskOut(**service.get_task(task_id))
    except TaskNotFoundError:
        raise _not_found()


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Replace Task",
    description=(
        "Replace a task's fields from a multipart form. A new image is uploaded first, the "
        "task is pointed at it, and the previous image is removed last. Without an image "
        "the current one is kept."
    ),
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
        502: {"description": "Document store or object store failure"},
    },
)
def put_task(
    task_id: str,
    payload: TaskCreate = Depends(task_form),
    image: Optional[ImageUpload] = Depends(image_upload),
    service: TaskService = Depends(get_task_service),
) -> TaskOut:
    try:
        updated = service.replace_task(task_id, payload, image)
    except TaskNotFoundError:
        raise _not_found()
    return TaskOut(**updated)


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Partially update title, detail or completion status of a task.",
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
    },
)
def patch_task(task_id: str, payload: TaskPatch, service: TaskService = Depends(get_task_service)) -> TaskOut:
    """
    Partial update of a Task.
    """
    try:
        updated = service.patch_task(task_id, payload)
    except TaskNotFoundError:
        raise _not_found()
    return TaskOut(**updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description=(
        "Delete a task. The record is removed first; removing its image afterwards is "
        "best-effort and never fails the request."
    ),
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)) -> None:
    """
    Delete a Task. Returns 204 on success, 404 if not found.
    """
    try:
        service.delete_task(task_id)
    except TaskNotFoundError:
        raise _not_found()
    return None
