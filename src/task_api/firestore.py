"""
Firestore-backed task repository.

Task documents live in a single collection (``task_tb`` by default) with the
same snake_case fields the API exposes. Timestamps are written as native
datetimes; documents written by older clients that stored ISO strings are
still readable.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import DocumentStoreError
from .models import TaskEntity, TaskFields
from .repositories import ListQuery, Repository, utcnow, writable

logger = logging.getLogger(__name__)


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable task timestamp %r; treating as epoch", value)
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    # Missing or malformed timestamps sort as oldest.
    return datetime.fromtimestamp(0, tz=timezone.utc)


def _to_entity(doc_id: str, data: Dict[str, Any]) -> TaskEntity:
    return {
        "id": doc_id,
        "title": str(data.get("title") or ""),
        "detail": str(data.get("detail") or ""),
        "image_url": str(data.get("image_url") or ""),
        "is_completed": bool(data.get("is_completed", False)),
        "created_at": _as_datetime(data.get("created_at")),
        "updated_at": _as_datetime(data.get("updated_at")),
    }


@contextmanager
def _wrap_errors(action: str) -> Iterator[None]:
    try:
        yield
    except gcp_exceptions.GoogleAPICallError as exc:
        logger.error("Firestore %s failed: %s", action, exc)
        raise DocumentStoreError(f"Firestore {action} failed: {exc}") from exc


class FirestoreRepository(Repository):
    """
    Repository over one Firestore collection.

    Filtering on is_completed while ordering by created_at needs a composite
    index on (is_completed, created_at) in the Firestore project.
    """

    name = "firestore"

    def __init__(self, collection: str, project: Optional[str] = None, client: Optional[firestore.Client] = None) -> None:
        self._client = client or firestore.Client(project=project)
        self._collection = self._client.collection(collection)

    def create(self, fields: TaskFields) -> TaskEntity:
        now = utcnow()
        data = {
            "title": fields["title"],
            "detail": fields["detail"],
            "image_url": fields.get("image_url", ""),
            "is_completed": fields.get("is_completed", False),
            "created_at": now,
            "updated_at": now,
        }
        with _wrap_errors("create"):
            _, ref = self._collection.add(data)
        return _to_entity(ref.id, data)

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with _wrap_errors("get"):
            snap = self._collection.document(task_id).get()
        if not snap.exists:
            return None
        return _to_entity(snap.id, snap.to_dict() or {})

    def update(self, task_id: str, changes: TaskFields) -> Optional[TaskEntity]:
        data: Dict[str, Any] = dict(writable(changes))
        data["updated_at"] = utcnow()
        ref = self._collection.document(task_id)
        try:
            with _wrap_errors("update"):
                ref.update(data)
        except DocumentStoreError as exc:
            if isinstance(exc.__cause__, gcp_exceptions.NotFound):
                return None
            raise
        return self.get(task_id)

    def delete(self, task_id: str) -> bool:
        ref = self._collection.document(task_id)
        with _wrap_errors("delete"):
            # Firestore deletes are idempotent; check first to report 404s.
            if not ref.get().exists:
                return False
            ref.delete()
        return True

    def list(self, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        base = self._collection
        if q.completed is not None:
            base = base.where(filter=FieldFilter("is_completed", "==", q.completed))

        direction = firestore.Query.DESCENDING if q.descending else firestore.Query.ASCENDING
        page = base.order_by("created_at", direction=direction).offset(max(q.offset, 0)).limit(max(q.limit, 0))

        with _wrap_errors("list"):
            count_result = base.count().get()
            total = int(count_result[0][0].value) if count_result else 0
            items = [_to_entity(snap.id, snap.to_dict() or {}) for snap in page.stream()]
        return items, total

    def image_urls(self) -> List[Tuple[str, str]]:
        with _wrap_errors("scan"):
            snaps = self._collection.where(filter=FieldFilter("image_url", "!=", "")).stream()
            return [(snap.id, str((snap.to_dict() or {}).get("image_url") or "")) for snap in snaps]

    def clear_image_url(self, task_id: str, expected_url: str) -> bool:
        """
        Clear image_url with a last_update_time precondition, so the write is
        rejected if the document changed after it was read.
        """
        ref = self._collection.document(task_id)
        with _wrap_errors("clear image"):
            snap = ref.get()
            if not snap.exists or (snap.to_dict() or {}).get("image_url") != expected_url:
                return False
            option = self._client.write_option(last_update_time=snap.update_time)
            try:
                ref.update({"image_url": "", "updated_at": utcnow()}, option=option)
            except (gcp_exceptions.FailedPrecondition, gcp_exceptions.NotFound):
                return False
        return True
