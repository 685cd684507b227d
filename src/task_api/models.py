from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a Task document as held by the
    document store backends.

    Fields:
    - id: Opaque identifier assigned by the document store
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - detail: Free text describing the task
    - image_url: Public URL of the task image in the bucket, or ''
    - is_completed: Boolean completion flag
    - created_at: UTC creation timestamp (datetime)
    - updated_at: UTC last update timestamp (datetime)
    """

    id: str
    title: str
    detail: str
    image_url: str
    is_completed: bool
    created_at: datetime
    updated_at: datetime


class TaskFields(TypedDict, total=False):
    """Writable subset of a task document; partial for updates."""

    title: str
    detail: str
    image_url: str
    is_completed: bool


WRITABLE_FIELDS = ("title", "detail", "image_url", "is_completed")
