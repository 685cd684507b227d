from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from threading import RLock
from typing import Dict, List, Optional, Tuple

from .models import WRITABLE_FIELDS, TaskEntity, TaskFields
from .settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing tasks. Results are always ordered by
    created_at; newest first unless descending is False.
    """
    limit: int = 50
    offset: int = 0
    completed: Optional[bool] = None
    descending: bool = True


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task document store backends."""

    name: str = "abstract"

    @abstractmethod
    def create(self, fields: TaskFields) -> TaskEntity:
        """Create and return a new TaskEntity with server-assigned id and timestamps."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a TaskEntity by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: str, changes: TaskFields) -> Optional[TaskEntity]:
        """Apply the given fields and bump updated_at. Return updated entity or None if not found."""

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a TaskEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        """
        Return a slice of TaskEntities and total count matching filters.
        - Supports limit/offset
        - Filter by is_completed
        - Ordered by created_at (desc by default)
        """

    @abstractmethod
    def image_urls(self) -> List[Tuple[str, str]]:
        """Return (task_id, image_url) for every task that references an image."""

    @abstractmethod
    def clear_image_url(self, task_id: str, expected_url: str) -> bool:
        """
        Atomically set image_url to '' only if it still equals expected_url.
        Return True if the task was changed.
        """


def writable(changes: TaskFields) -> TaskFields:
    """Drop keys that are not writable task fields."""
    return {k: v for k, v in changes.items() if k in WRITABLE_FIELDS}  # type: ignore[return-value]


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}

    def _now(self) -> datetime:
        return utcnow()

    def create(self, fields: TaskFields) -> TaskEntity:
        now = self._now()
        entity: TaskEntity = {
            "id": uuid.uuid4().hex,
            "title": fields["title"],
            "detail": fields["detail"],
            "image_url": fields.get("image_url", ""),
            "is_completed": fields.get("is_completed", False),
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
        return entity.copy()

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def update(self, task_id: str, changes: TaskFields) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None

            # Update only provided fields
            updated = existing.copy()
            updated.update(writable(changes))  # type: ignore[typeddict-item]
            updated["updated_at"] = self._now()

            self._items[task_id] = updated
            return updated.copy()

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def list(self, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        with self._lock:
            items = list(self._items.values())

            if q.completed is not None:
                items = [t for t in items if t["is_completed"] == q.completed]

            total = len(items)
            items_sorted = sorted(items, key=lambda t: t["created_at"], reverse=q.descending)

            start = max(q.offset, 0)
            end = start + max(q.limit, 0)
            # Return copies to avoid external mutation
            return [t.copy() for t in items_sorted[start:end]], total

    def image_urls(self) -> List[Tuple[str, str]]:
        with self._lock:
            return [(t["id"], t["image_url"]) for t in self._items.values() if t["image_url"]]

    def clear_image_url(self, task_id: str, expected_url: str) -> bool:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None or existing["image_url"] != expected_url:
                return False
            return self.update(task_id, {"image_url": ""}) is not None


def build_repository() -> Repository:
    """
    Build the repository selected by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository
    - firestore: FirestoreRepository (google-cloud-firestore)
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    if settings.persistence_backend == "firestore":
        from .firestore import FirestoreRepository

        return FirestoreRepository(
            collection=settings.firestore_collection,
            project=settings.firestore_project,
        )
    return InMemoryRepository()


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide repository, built on first use from settings.
    """
    repo = build_repository()
    logger.info("Document store backend: %s", repo.name)
    return repo
