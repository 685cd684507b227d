from __future__ import annotations


class TaskServiceError(Exception):
    """Base class for errors raised by the task service and its backends."""


class TaskNotFoundError(TaskServiceError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id!r} not found")
        self.task_id = task_id


class DocumentStoreError(TaskServiceError):
    """The document store rejected or failed a read/write."""


class ObjectStoreError(TaskServiceError):
    """The object store rejected or failed an upload, read or removal."""


class ObjectNotFoundError(ObjectStoreError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Object {path!r} not found")
        self.path = path
