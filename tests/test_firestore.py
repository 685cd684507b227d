from datetime import datetime, timezone

import pytest
from google.api_core import exceptions as gcp_exceptions

from task_api.errors import DocumentStoreError
from task_api.firestore import FirestoreRepository
from task_api.repositories import ListQuery

from .fakes import FakeFirestoreClient

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@pytest.fixture()
def fs_client():
    return FakeFirestoreClient()


@pytest.fixture()
def repository(fs_client):
    return FirestoreRepository("task_tb", client=fs_client)


def _at(minute):
    return datetime(2024, 12, 25, 9, minute, tzinfo=timezone.utc)


class TestFirestoreWrites:
    def test_create_writes_snake_case_document(self, repository, fs_client):
        task = repository.create({"title": "T", "detail": "D", "image_url": "u"})
        assert fs_client.collections == ["task_tb"]
        stored = fs_client.docs[task["id"]]
        assert stored["image_url"] == "u"
        assert stored["is_completed"] is False
        assert stored["created_at"] == stored["updated_at"] == task["created_at"]
        assert repository.get(task["id"]) == task

    def test_update_missing_document_returns_none(self, repository):
        assert repository.update("nope", {"title": "x"}) is None

    def test_update_other_errors_raise_document_store_error(self, repository, fs_client):
        task = repository.create({"title": "T", "detail": "D"})
        fs_client.failures["update"] = gcp_exceptions.ServiceUnavailable("down")
        with pytest.raises(DocumentStoreError) as excinfo:
            repository.update(task["id"], {"title": "x"})
        assert isinstance(excinfo.value.__cause__, gcp_exceptions.ServiceUnavailable)

    def test_update_drops_unknown_fields(self, repository, fs_client):
        task = repository.create({"title": "T", "detail": "D"})
        updated = repository.update(task["id"], {"is_completed": True, "id": "hijack"})
        assert updated["id"] == task["id"]
        assert updated["is_completed"] is True
        assert "id" not in fs_client.docs[task["id"]]

    def test_delete_reports_missing(self, repository):
        task = repository.create({"title": "T", "detail": "D"})
        assert repository.delete(task["id"]) is True
        assert repository.delete(task["id"]) is False
        assert repository.get(task["id"]) is None


class TestFirestoreList:
    def test_list_orders_and_counts(self, repository, fs_client):
        for i in range(5):
            fs_client.seed(f"t{i}", {
                "title": f"Task {i}", "detail": "D", "image_url": "",
                "is_completed": i % 2 == 0, "created_at": _at(i), "updated_at": _at(i),
            })

        items, total = repository.list(ListQuery(limit=2, offset=1))
        assert total == 5
        assert [t["id"] for t in items] == ["t3", "t2"]

        items, total = repository.list(ListQuery(completed=True, descending=False))
        assert total == 3
        assert [t["id"] for t in items] == ["t0", "t2", "t4"]

    def test_list_wraps_api_errors(self, repository, fs_client):
        fs_client.failures["count"] = gcp_exceptions.ServiceUnavailable("down")
        with pytest.raises(DocumentStoreError):
            repository.list()

    def test_image_urls_skips_tasks_without_images(self, repository):
        with_image = repository.create({"title": "T", "detail": "D", "image_url": "u"})
        repository.create({"title": "T", "detail": "D"})
        assert repository.image_urls() == [(with_image["id"], "u")]


class TestTimestampReads:
    def test_iso_strings_from_older_clients(self, repository, fs_client):
        fs_client.seed("old", {
            "title": "T", "detail": "D",
            "created_at": "2024-12-25T09:55:30.123Z", "updated_at": "2024-12-25T09:55:30",
        })
        task = repository.get("old")
        assert task["created_at"] == datetime(2024, 12, 25, 9, 55, 30, 123000, tzinfo=timezone.utc)
        assert task["updated_at"].tzinfo is not None
        assert task["image_url"] == ""
        assert task["is_completed"] is False

    def test_missing_and_malformed_timestamps_read_as_epoch(self, repository, fs_client):
        fs_client.seed("bad", {"title": "T", "detail": "D", "created_at": "yesterday-ish"})
        task = repository.get("bad")
        assert task["created_at"] == EPOCH
        assert task["updated_at"] == EPOCH

    def test_malformed_timestamp_does_not_break_listing(self, repository, fs_client):
        fs_client.seed("bad", {"title": "T", "detail": "D", "created_at": "not a date"})
        good = repository.create({"title": "T", "detail": "D"})
        items, total = repository.list()
        assert total == 2
        assert {t["id"] for t in items} == {"bad", good["id"]}


class TestClearImageUrl:
    def test_clears_when_url_unchanged(self, repository):
        task = repository.create({"title": "T", "detail": "D", "image_url": "u"})
        assert repository.clear_image_url(task["id"], "u") is True
        assert repository.get(task["id"])["image_url"] == ""

    def test_keeps_url_that_no_longer_matches(self, repository):
        task = repository.create({"title": "T", "detail": "D", "image_url": "new"})
        assert repository.clear_image_url(task["id"], "old") is False
        assert repository.clear_image_url("missing", "old") is False
        assert repository.get(task["id"])["image_url"] == "new"

    def test_concurrent_write_between_read_and_clear_wins(self, repository, fs_client):
        task = repository.create({"title": "T", "detail": "D", "image_url": "old"})
        fs_client.before_next_update = lambda doc_id: repository.update(doc_id, {"image_url": "new"})

        assert repository.clear_image_url(task["id"], "old") is False
        assert repository.get(task["id"])["image_url"] == "new"
