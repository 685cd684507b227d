from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from supabase import Client, create_client

from .errors import ObjectNotFoundError, ObjectStoreError
from .storage import ObjectStore

logger = logging.getLogger(__name__)

_PAGE_SIZE = 1000


@contextmanager
def _wrap_errors(action: str, path: str = "") -> Iterator[None]:
    try:
        yield
    except ObjectStoreError:
        raise
    except Exception as exc:  # storage3 raises several unrelated exception types
        logger.error("Supabase storage %s failed for %r: %s", action, path, exc)
        raise ObjectStoreError(f"Supabase storage {action} failed: {exc}") from exc


class SupabaseObjectStore(ObjectStore):
    """
    Bucket hosted by Supabase Storage. Public URLs are derived by Supabase and
    stored verbatim on the task.
    """

    name = "supabase"

    def __init__(self, url: str, key: str, bucket: str = "task_bk", client: Optional[Client] = None) -> None:
        super().__init__(bucket)
        self._client = client or create_client(url, key)

    def _bucket(self):
        return self._client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        with _wrap_errors("upload", path):
            self._bucket().upload(path, data, {"content-type": content_type})

    def download(self, path: str) -> bytes:
        if not self.exists(path):
            raise ObjectNotFoundError(path)
        with _wrap_errors("download", path):
            return self._bucket().download(path)

    def remove(self, path: str) -> bool:
        with _wrap_errors("remove", path):
            removed = self._bucket().remove([path])
        return bool(removed)

    def exists(self, path: str) -> bool:
        folder, _, name = path.rpartition("/")
        with _wrap_errors("list", path):
            entries = self._bucket().list(folder, {"limit": 100, "offset": 0, "search": name})
        return any(entry.get("name") == name for entry in entries or [])

    def list_paths(self) -> List[str]:
        paths: List[str] = []
        offset = 0
        with _wrap_errors("list"):
            while True:
                entries = self._bucket().list("", {"limit": _PAGE_SIZE, "offset": offset}) or []
                # Folder placeholders have no id.
                paths.extend(e["name"] for e in entries if e.get("id") is not None)
                if len(entries) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        return sorted(paths)

    def public_url(self, path: str) -> str:
        with _wrap_errors("public_url", path):
            url = self._bucket().get_public_url(path)
        # Some client versions append an empty query string.
        return url.rstrip("?")
