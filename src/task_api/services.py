"""
Task operations spanning the document store and the object store.

Every sequence that touches both backends follows one ordering policy:

- upload the new object first,
- write or re-point the task record second,
- remove the old object last, best-effort.

When the record write fails after an upload succeeded, the fresh object is
removed again so that no orphan is left behind. Orphans that still slip
through (crashes, failed best-effort removals) are repaired out of band by
``TaskService.reconcile_orphans``.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .errors import DocumentStoreError, ObjectStoreError, TaskNotFoundError
from .models import TaskEntity, TaskFields
from .repositories import ListQuery, Repository
from .schemas import TaskCreate, TaskPatch
from .storage import ObjectStore
from .utils import object_timestamp, timestamped_object_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    """An image file received from a client, fully read into memory."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class OrphanReport:
    dry_run: bool
    orphan_objects: List[str] = field(default_factory=list)
    removed_objects: List[str] = field(default_factory=list)
    dangling_tasks: List[str] = field(default_factory=list)
    cleared_tasks: List[str] = field(default_factory=list)


# PUBLIC_INTERFACE
class TaskService:
    """Create, edit, delete and reconcile tasks over a repository and a bucket."""

    def __init__(self, repository: Repository, store: ObjectStore) -> None:
        self.repository = repository
        self.store = store

    # Object helpers

    def _upload(self, image: ImageUpload) -> Tuple[str, str]:
        path = timestamped_object_name(image.filename)
        self.store.upload(path, image.data, image.content_type)
        try:
            url = self.store.public_url(path)
        except ObjectStoreError:
            self._discard(path, "public URL unavailable")
            raise
        logger.info("Uploaded object %s (%d bytes)", path, len(image.data), extra={"object_path": path})
        return path, url

    def _discard(self, path: Optional[str], reason: str) -> bool:
        """Best-effort object removal; failures are logged, never raised."""
        if not path:
            return False
        try:
            removed = self.store.remove(path)
        except ObjectStoreError as exc:
            logger.warning("Could not remove object %s (%s): %s", path, reason, exc, extra={"object_path": path})
            return False
        logger.info("Removed object %s (%s)", path, reason, extra={"object_path": path})
        return removed

    # Reads

    def get_task(self, task_id: str) -> TaskEntity:
        task = self.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        return self.repository.list(query)

    # Writes

    def create_task(self, data: TaskCreate, image: Optional[ImageUpload] = None) -> TaskEntity:
        """
        Upload the image (if any), then write the record pointing at it.

        An upload failure aborts before anything is written. A record write
        failure removes the just-uploaded object before re-raising.
        """
        path, url = self._upload(image) if image else (None, "")
        fields: TaskFields = {
            "title": data.title,
            "detail": data.detail,
            "image_url": url,
            "is_completed": data.is_completed,
        }
        try:
            task = self.repository.create(fields)
        except DocumentStoreError:
            logger.warning("Task write failed; rolling back uploaded object %s", path)
            self._discard(path, "task write failed")
            raise
        logger.info("Created task %s", task["id"], extra={"task_id": task["id"]})
        return task

    def replace_task(self, task_id: str, data: TaskCreate, image: Optional[ImageUpload] = None) -> TaskEntity:
        """
        Overwrite a task's fields; with a new image, upload it first, point
        the record at it, and only then remove the previous object.
        """
        current = self.get_task(task_id)
        old_url = current["image_url"]

        path, url = self._upload(image) if image else (None, old_url)
        changes: TaskFields = {
            "title": data.title,
            "detail": data.detail,
            "image_url": url,
            "is_completed": data.is_completed,
        }
        try:
            updated = self.repository.update(task_id, changes)
        except DocumentStoreError:
            logger.warning("Task %s update failed; rolling back uploaded object %s", task_id, path)
            self._discard(path, "task update failed")
            raise
        if updated is None:
            # Deleted between the read and the write.
            self._discard(path, "task vanished during update")
            raise TaskNotFoundError(task_id)

        if image and old_url and old_url != url:
            self._discard(self.store.path_from_url(old_url), f"replaced on task {task_id}")
        logger.info("Replaced task %s", task_id, extra={"task_id": task_id})
        return updated

    def patch_task(self, task_id: str, patch: TaskPatch) -> TaskEntity:
        changes: TaskFields = patch.model_dump(exclude_unset=True, exclude_none=True)  # type: ignore[assignment]
        updated = self.repository.update(task_id, changes)
        if updated is None:
            raise TaskNotFoundError(task_id)
        logger.info("Patched task %s (%s)", task_id, ", ".join(sorted(changes)) or "no fields")
        return updated

    def delete_task(self, task_id: str) -> None:
        """
        Remove the record first, then make a best-effort attempt to remove
        its image. A failed image removal leaves an orphan for reconciliation.
        """
        current = self.get_task(task_id)
        if not self.repository.delete(task_id):
            raise TaskNotFoundError(task_id)
        logger.info("Deleted task %s", task_id, extra={"task_id": task_id})
        if current["image_url"]:
            self._discard(self.store.path_from_url(current["image_url"]), f"task {task_id} deleted")

    # Maintenance

    def _referenced_paths(self) -> Set[str]:
        paths = (self.store.path_from_url(url) for _, url in self.repository.image_urls())
        return {p for p in paths if p}

    def reconcile_orphans(self, grace_seconds: int = 300, dry_run: bool = True) -> OrphanReport:
        """
        Find bucket objects no task references and tasks referencing missing
        objects. Unless dry_run, remove the former and clear the latter's
        image_url.

        Objects younger than grace_seconds (by their name prefix) are left
        alone: they may belong to a create/replace still in flight. A dangling
        image_url is only cleared while it still holds the scanned value, and
        references are re-read before any object is reported as orphaned.
        """
        report = OrphanReport(dry_run=dry_run)
        referenced = set()
        scanned: Dict[str, str] = {}
        for task_id, url in self.repository.image_urls():
            path = self.store.path_from_url(url)
            if path is None or not self.store.exists(path):
                report.dangling_tasks.append(task_id)
                scanned[task_id] = url
                continue
            referenced.add(path)

        cutoff = time.time() - max(grace_seconds, 0)
        candidates = []
        for path in self.store.list_paths():
            if path in referenced:
                continue
            uploaded_at = object_timestamp(path)
            if uploaded_at is not None and uploaded_at > cutoff:
                continue
            candidates.append(path)

        if candidates:
            # Tasks may have been re-pointed since the first scan.
            still_referenced = self._referenced_paths()
            report.orphan_objects = [p for p in candidates if p not in still_referenced]

        if not dry_run:
            for path in report.orphan_objects:
                if self._discard(path, "orphan"):
                    report.removed_objects.append(path)
            for task_id in report.dangling_tasks:
                if self.repository.clear_image_url(task_id, scanned[task_id]):
                    report.cleared_tasks.append(task_id)
                else:
                    logger.info("Task %s changed during reconciliation; image_url kept", task_id)

        logger.info(
            "Reconciliation%s: %d orphan objects, %d removed, %d dangling tasks, %d cleared",
            " (dry run)" if dry_run else "",
            len(report.orphan_objects),
            len(report.removed_objects),
            len(report.dangling_tasks),
            len(report.cleared_tasks),
        )
        return report
