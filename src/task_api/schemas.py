from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


def _clean_detail(v: str) -> str:
    s = v.strip()
    if not s:
        raise ValueError("detail must not be blank")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Form fields for creating or replacing a Task.

    The optional image travels alongside these fields as a multipart file
    part and is handled by the router.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "detail": "Milk, eggs, bread",
                "is_completed": False,
            }
        }
    )

    title: str = Field(..., description="Short title for the task, 1..200 characters after trimming")
    detail: str = Field(..., description="Detailed description of the task")
    is_completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)

    @field_validator("detail")
    @classmethod
    def validate_detail(cls, v: str) -> str:
        return _clean_detail(v)


# PUBLIC_INTERFACE
class TaskPatch(BaseModel):
    """
    Schema for partially updating an existing Task.
    All fields are optional; only provided fields will be updated. Images are
    only replaced through the multipart PUT endpoint.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "is_completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task, 1..200 characters after trimming")
    detail: Optional[str] = Field(default=None, description="Detailed description of the task")
    is_completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _clean_title(v)

    @field_validator("detail")
    @classmethod
    def validate_detail(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_detail(v)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a Task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "8f14e45fceea167a5a36dedd4bea2543",
                "title": "Buy groceries",
                "detail": "Milk, eggs, bread",
                "image_url": "http://localhost:8000/storage/v1/object/public/task_bk/1735120530123-list.png",
                "is_completed": False,
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-26T09:00:00.000001Z",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    detail: str = Field(..., description="Detailed description of the task")
    image_url: str = Field(default="", description="Public URL of the task image, or empty")
    is_completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class OrphanReportOut(BaseModel):
    """
    Result of an orphan reconciliation pass.
    """

    dry_run: bool = Field(..., description="True when nothing was changed")
    orphan_objects: List[str] = Field(..., description="Bucket paths no task references")
    removed_objects: List[str] = Field(..., description="Orphan paths that were removed")
    dangling_tasks: List[str] = Field(..., description="Task ids whose image_url points at a missing object")
    cleared_tasks: List[str] = Field(..., description="Task ids whose image_url was cleared")
