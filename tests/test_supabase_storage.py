import pytest

from task_api import supabase_storage
from task_api.errors import ObjectNotFoundError, ObjectStoreError
from task_api.supabase_storage import SupabaseObjectStore

from .conftest import PNG_BYTES
from .fakes import FakeSupabaseClient


@pytest.fixture()
def sb_client():
    return FakeSupabaseClient()


@pytest.fixture()
def store(sb_client):
    return SupabaseObjectStore("https://proj.supabase.co", "anon-key", bucket="task_bk", client=sb_client)


class TestSupabaseObjects:
    def test_upload_sends_content_type(self, store, sb_client):
        store.upload("1-a.png", PNG_BYTES, "image/png")
        assert sb_client.objects["task_bk"]["1-a.png"] == (PNG_BYTES, "image/png")
        assert store.download("1-a.png") == PNG_BYTES

    def test_client_errors_become_object_store_errors(self, store):
        store.upload("1-a.png", PNG_BYTES, "image/png")
        with pytest.raises(ObjectStoreError) as excinfo:
            store.upload("1-a.png", PNG_BYTES, "image/png")
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_download_missing_object(self, store):
        with pytest.raises(ObjectNotFoundError):
            store.download("1-missing.png")

    def test_remove_reports_whether_anything_was_removed(self, store):
        store.upload("1-a.png", PNG_BYTES, "image/png")
        assert store.remove("1-a.png") is True
        assert store.remove("1-a.png") is False
        assert store.exists("1-a.png") is False

    def test_exists_needs_exact_name_match(self, store, sb_client):
        # Supabase search matches substrings, so look-alike names come back too.
        store.upload("1-a.png.bak", PNG_BYTES, "image/png")
        assert store.exists("1-a.png") is False
        store.upload("1-a.png", PNG_BYTES, "image/png")
        assert store.exists("1-a.png") is True

        _, options = sb_client.calls[-1]
        assert options == {"path": "", "limit": 100, "offset": 0, "search": "1-a.png"}

    def test_exists_searches_inside_folders(self, store, sb_client):
        store.upload("nested/1-a.png", PNG_BYTES, "image/png")
        assert store.exists("nested/1-a.png") is True
        assert sb_client.calls[-1][1]["path"] == "nested"


class TestSupabaseListing:
    def test_list_paths_pages_through_bucket(self, store, sb_client, monkeypatch):
        monkeypatch.setattr(supabase_storage, "_PAGE_SIZE", 2)
        names = [f"{i}-img.png" for i in range(5)]
        for name in names:
            store.upload(name, PNG_BYTES, "image/png")

        assert store.list_paths() == sorted(names)
        offsets = [opts["offset"] for op, opts in sb_client.calls if op == "list"]
        assert offsets == [0, 2, 4]

    def test_list_paths_skips_folder_placeholders(self, store):
        store.upload("1-a.png", PNG_BYTES, "image/png")
        store.upload("nested/2-b.png", PNG_BYTES, "image/png")
        assert store.list_paths() == ["1-a.png"]

    def test_list_paths_on_exact_page_boundary(self, store, sb_client, monkeypatch):
        monkeypatch.setattr(supabase_storage, "_PAGE_SIZE", 2)
        store.upload("1-a.png", PNG_BYTES, "image/png")
        store.upload("2-b.png", PNG_BYTES, "image/png")

        assert store.list_paths() == ["1-a.png", "2-b.png"]
        offsets = [opts["offset"] for op, opts in sb_client.calls if op == "list"]
        assert offsets == [0, 2]


class TestSupabasePublicUrls:
    def test_public_url_drops_empty_query_string(self, store):
        url = store.public_url("1735120530123-a.png")
        assert url == "https://proj.supabase.co/storage/v1/object/public/task_bk/1735120530123-a.png"
        assert store.path_from_url(url) == "1735120530123-a.png"
