from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional
from urllib.parse import quote, unquote, urlparse

from .errors import ObjectNotFoundError, ObjectStoreError
from .settings import get_settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/storage/v1/object/public"


# PUBLIC_INTERFACE
class ObjectStore(ABC):
    """
    Abstract contract for one object storage bucket holding task images.

    Object paths are flat names relative to the bucket. Public URLs follow
    the Supabase layout: <base>/storage/v1/object/public/<bucket>/<path>.
    """

    name: str = "abstract"

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store a new object. Raises ObjectStoreError if the path is taken."""

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Return object bytes. Raises ObjectNotFoundError if missing."""

    @abstractmethod
    def remove(self, path: str) -> bool:
        """Remove an object. Return True if something was removed."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if the object exists."""

    @abstractmethod
    def list_paths(self) -> List[str]:
        """Return every object path in the bucket."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Return the public URL under which the object is served."""

    def path_from_url(self, url: str) -> Optional[str]:
        """
        Return the object path a public URL points at, or None when the URL
        does not point into this bucket.
        """
        if not url:
            return None
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        marker = f"{PUBLIC_PREFIX}/{self.bucket}/"
        i = parsed.path.find(marker)
        if i == -1:
            return None
        path = unquote(parsed.path[i + len(marker):])
        return path or None


def public_url_for(base_url: str, bucket: str, path: str) -> str:
    return f"{base_url.rstrip('/')}{PUBLIC_PREFIX}/{bucket}/{quote(path)}"


def _check_path(path: str) -> None:
    if not path or path.startswith("/") or ".." in path.split("/") or "\\" in path:
        raise ObjectStoreError(f"Invalid object path: {path!r}")


class InMemoryObjectStore(ObjectStore):
    """
    Thread-safe in-memory bucket suitable for testing and default runtime.
    Objects are served by this app's public storage route.
    """

    name = "memory"

    def __init__(self, bucket: str = "task_bk", base_url: str = "http://localhost:8000") -> None:
        super().__init__(bucket)
        self._base_url = base_url
        self._lock = RLock()
        self._objects: Dict[str, bytes] = {}

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        _check_path(path)
        with self._lock:
            if path in self._objects:
                raise ObjectStoreError(f"Object {path!r} already exists")
            self._objects[path] = bytes(data)

    def download(self, path: str) -> bytes:
        with self._lock:
            entry = self._objects.get(path)
        if entry is None:
            raise ObjectNotFoundError(path)
        return entry

    def remove(self, path: str) -> bool:
        with self._lock:
            return self._objects.pop(path, None) is not None

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._objects

    def list_paths(self) -> List[str]:
        with self._lock:
            return sorted(self._objects)

    def public_url(self, path: str) -> str:
        return public_url_for(self._base_url, self.bucket, path)


class LocalObjectStore(ObjectStore):
    """
    Bucket backed by a directory on the local filesystem: <root>/<bucket>/<path>.
    """

    name = "local"

    def __init__(self, root_dir: str, bucket: str = "task_bk", base_url: str = "http://localhost:8000") -> None:
        super().__init__(bucket)
        self._base_url = base_url
        self._dir = Path(root_dir) / bucket
        self._dir.mkdir(parents=True, exist_ok=True)

    def _file(self, path: str) -> Path:
        _check_path(path)
        return self._dir / path

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._file(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # 'xb' refuses to overwrite an existing object
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as exc:
            raise ObjectStoreError(f"Object {path!r} already exists") from exc
        except OSError as exc:
            raise ObjectStoreError(f"Cannot write object {path!r}: {exc}") from exc

    def download(self, path: str) -> bytes:
        target = self._file(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(path) from exc
        except OSError as exc:
            raise ObjectStoreError(f"Cannot read object {path!r}: {exc}") from exc

    def remove(self, path: str) -> bool:
        target = self._file(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ObjectStoreError(f"Cannot remove object {path!r}: {exc}") from exc
        return True

    def exists(self, path: str) -> bool:
        return self._file(path).is_file()

    def list_paths(self) -> List[str]:
        paths = []
        for dirpath, _, filenames in os.walk(self._dir):
            for filename in filenames:
                full = Path(dirpath) / filename
                paths.append(full.relative_to(self._dir).as_posix())
        return sorted(paths)

    def public_url(self, path: str) -> str:
        return public_url_for(self._base_url, self.bucket, path)


def build_object_store() -> ObjectStore:
    """
    Build the object store selected by settings.
    - memory: InMemoryObjectStore
    - local: LocalObjectStore
    - supabase: SupabaseObjectStore (supabase client)
    """
    settings = get_settings()
    if settings.storage_backend == "local":
        return LocalObjectStore(
            settings.local_storage_dir,
            bucket=settings.storage_bucket,
            base_url=settings.public_base_url,
        )
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ObjectStoreError("STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_KEY")

        from .supabase_storage import SupabaseObjectStore

        return SupabaseObjectStore(
            url=settings.supabase_url,
            key=settings.supabase_key,
            bucket=settings.storage_bucket,
        )
    return InMemoryObjectStore(bucket=settings.storage_bucket, base_url=settings.public_base_url)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    """
    Return the process-wide object store, built on first use from settings.
    """
    store = build_object_store()
    logger.info("Object store backend: %s (bucket %s)", store.name, store.bucket)
    return store
