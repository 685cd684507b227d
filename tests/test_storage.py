import pytest

from task_api.errors import ObjectNotFoundError, ObjectStoreError
from task_api.storage import InMemoryObjectStore, LocalObjectStore, build_object_store
from task_api.utils import object_timestamp, pagination_envelope, timestamped_object_name


class TestObjectNames:
    def test_timestamped_object_name(self):
        assert timestamped_object_name("cat.png", now_ms=1735120530123) == "1735120530123-cat.png"
        assert timestamped_object_name("C:\\Users\\me\\my cat!.jpg", now_ms=1) == "1-my_cat_.jpg"
        assert timestamped_object_name("../../etc/passwd", now_ms=1) == "1-passwd"
        assert timestamped_object_name("", now_ms=1) == "1-image"

    def test_object_timestamp(self):
        assert object_timestamp("1735120530123-cat.png") == pytest.approx(1735120530.123)
        assert object_timestamp("cat.png") is None


class TestPublicUrls:
    def test_url_round_trip_through_path_from_url(self):
        store = InMemoryObjectStore(bucket="task_bk", base_url="https://cdn.example.com/")
        url = store.public_url("1-my cat.png")
        assert url == "https://cdn.example.com/storage/v1/object/public/task_bk/1-my%20cat.png"
        assert store.path_from_url(url) == "1-my cat.png"

    def test_path_from_url_rejects_other_buckets(self):
        store = InMemoryObjectStore(bucket="task_bk")
        assert store.path_from_url("https://x.supabase.co/storage/v1/object/public/other/1-a.png") is None
        assert store.path_from_url("https://example.com/a.png") is None
        assert store.path_from_url("") is None

    def test_path_from_supabase_url(self):
        store = InMemoryObjectStore(bucket="task_bk")
        url = "https://abc.supabase.co/storage/v1/object/public/task_bk/1735120530123-a.png?"
        assert store.path_from_url(url) == "1735120530123-a.png"


class TestInMemoryObjectStore:
    def test_upload_refuses_overwrite(self):
        store = InMemoryObjectStore()
        store.upload("1-a.png", b"a", "image/png")
        with pytest.raises(ObjectStoreError):
            store.upload("1-a.png", b"b", "image/png")
        assert store.download("1-a.png") == b"a"

    def test_missing_object(self):
        store = InMemoryObjectStore()
        with pytest.raises(ObjectNotFoundError):
            store.download("nope.png")
        assert store.remove("nope.png") is False


class TestLocalObjectStore:
    def test_upload_download_remove(self, tmp_path):
        store = LocalObjectStore(str(tmp_path), bucket="task_bk")
        store.upload("1-a.png", b"data", "image/png")

        assert (tmp_path / "task_bk" / "1-a.png").read_bytes() == b"data"
        assert store.exists("1-a.png")
        assert store.list_paths() == ["1-a.png"]
        assert store.download("1-a.png") == b"data"

        with pytest.raises(ObjectStoreError):
            store.upload("1-a.png", b"other", "image/png")

        assert store.remove("1-a.png") is True
        assert store.remove("1-a.png") is False
        with pytest.raises(ObjectNotFoundError):
            store.download("1-a.png")

    def test_rejects_escaping_paths(self, tmp_path):
        store = LocalObjectStore(str(tmp_path), bucket="task_bk")
        with pytest.raises(ObjectStoreError):
            store.upload("../escape.png", b"x", "image/png")


class TestBuildObjectStore:
    def test_local_backend_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORAGE_BACKEND", "local")
        monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path))
        monkeypatch.setenv("STORAGE_BUCKET", "images")
        store = build_object_store()
        assert isinstance(store, LocalObjectStore)
        assert store.bucket == "images"

    def test_supabase_backend_requires_credentials(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "supabase")
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        with pytest.raises(ObjectStoreError):
            build_object_store()

    def test_unknown_backend_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "ftp")
        assert isinstance(build_object_store(), InMemoryObjectStore)


def test_pagination_envelope_clamps_negatives():
    env = pagination_envelope(iter([1, 2]), total=2, limit=-1, offset=-5)
    assert env == {"items": [1, 2], "total": 2, "limit": 0, "offset": 0}
