import io
import unittest

from fake_api import FakeObjectApi
from liara_storage.config import RetryPolicy
from liara_storage.controller import StorageAdapter
from liara_storage.errors import ConfigurationError, RejectedError, TransportError
from liara_storage.models import EntryType


class FakeService:
    def __init__(self, copy_result=True, copy_error=None):
        self.copy_result = copy_result
        self.copy_error = copy_error
        self.copy_calls = []
        self.delete_calls = []
        self.put_calls = []

    def copy_object(self, key, new_key):
        self.copy_calls.append((key, new_key))
        if self.copy_error:
            raise self.copy_error
        return self.copy_result

    def delete_object(self, key):
        self.delete_calls.append(key)

    def put_object(self, key, contents, **options):
        self.put_calls.append((key, contents, options))

    def close(self):
        pass


class StorageAdapterTests(unittest.TestCase):
    def setUp(self):
        self.api = FakeObjectApi()
        self.adapter = StorageAdapter(self.api.config(namespace="ns"), client_factory=self.api.client_factory)

    def tearDown(self):
        self.adapter.close()

    def test_reports_scenario(self):
        result = self.adapter.write("reports/2024/jan.csv", "a,b\n1,2\n")

        self.assertEqual("reports/2024/jan.csv", result.key)
        self.assertEqual(8, result.size)
        self.assertEqual(8, self.adapter.get_metadata("reports/2024/jan.csv").size)

        entries = list(self.adapter.list_contents("reports/2024", recursive=False))

        self.assertEqual(1, len(entries))
        self.assertEqual(EntryType.FILE, entries[0].type)
        self.assertEqual("reports/2024/jan.csv", entries[0].path)
        self.assertEqual(8, entries[0].size)

    def test_round_trip_for_small_and_multi_chunk_content(self):
        for index, content in enumerate((b"", b"x", bytes(range(256)) * 2000)):
            path = f"blobs/{index}.bin"
            self.adapter.write(path, content)

            self.assertEqual(content, self.adapter.read(path))
            with self.adapter.read_stream(path) as stream:
                self.assertEqual(content, b"".join(stream))

    def test_write_stream_and_update_stream(self):
        self.adapter.write_stream("/a//b.txt", io.BytesIO(b"first"))
        self.adapter.update_stream("a/b.txt", iter([b"sec", b"ond"]))

        self.assertEqual(b"second", self.adapter.read("a/b.txt"))
        self.assertEqual(["a/b.txt"], list(self.api.objects))

    def test_write_rejects_file_objects(self):
        with self.assertRaises(TypeError):
            self.adapter.write("a.txt", io.BytesIO(b"x"))
        with self.assertRaises(TypeError):
            self.adapter.write_stream("a.txt", b"x")

    def test_has_follows_write_and_delete(self):
        self.assertFalse(self.adapter.has("a.txt"))

        self.adapter.write("a.txt", b"1")
        self.assertTrue(self.adapter.has("a.txt"))

        self.assertTrue(self.adapter.delete("a.txt"))
        self.assertFalse(self.adapter.has("a.txt"))

    def test_delete_is_idempotent(self):
        self.adapter.write("a.txt", b"1")

        self.assertEqual(self.adapter.delete("a.txt"), self.adapter.delete("a.txt"))

    def test_read_missing_returns_none(self):
        self.assertIsNone(self.adapter.read("missing.txt"))
        self.assertIsNone(self.adapter.read_stream("missing.txt"))
        self.assertIsNone(self.adapter.get_size("missing.txt"))

    def test_rename_moves_content(self):
        self.adapter.write("a.txt", b"content")

        self.assertTrue(self.adapter.rename("a.txt", "b.txt"))

        self.assertFalse(self.adapter.has("a.txt"))
        self.assertTrue(self.adapter.has("b.txt"))
        self.assertEqual(b"content", self.adapter.read("b.txt"))

    def test_rename_leaves_source_when_copy_fails(self):
        self.adapter.write("a.txt", b"content")
        self.api.fail_copy_with = 409

        with self.assertRaises(RejectedError):
            self.adapter.rename("a.txt", "b.txt")

        self.assertTrue(self.adapter.has("a.txt"))
        self.assertFalse(self.adapter.has("b.txt"))
        self.assertEqual([], self.api.calls("DELETE"))

    def test_rename_of_missing_source_does_not_delete(self):
        service = FakeService(copy_result=False)
        adapter = StorageAdapter(self.api.config(), service=service)

        self.assertFalse(adapter.rename("a.txt", "b.txt"))
        self.assertEqual([("a.txt", "b.txt")], service.copy_calls)
        self.assertEqual([], service.delete_calls)

    def test_rename_does_not_delete_after_transport_failure(self):
        service = FakeService(copy_error=TransportError("down", attempts=3))
        adapter = StorageAdapter(self.api.config(), service=service)

        with self.assertRaises(TransportError):
            adapter.rename("a.txt", "b.txt")
        self.assertEqual([], service.delete_calls)

    def test_copy_returns_false_for_missing_source(self):
        self.assertFalse(self.adapter.copy("missing.txt", "b.txt"))

    def test_create_dir_uploads_marker(self):
        self.adapter.create_dir("/photos/2024/")

        self.assertEqual(b"", self.api.objects["photos/2024/"]["data"])
        self.assertTrue(self.adapter.has("photos/2024/"))
        entries = list(self.adapter.list_contents("photos"))
        self.assertEqual([("dir", "photos/2024")], [(e.type.value, e.path) for e in entries])

    def test_delete_dir_only_removes_marker(self):
        self.adapter.create_dir("photos")
        self.adapter.write("photos/a.jpg", b"1")

        self.assertTrue(self.adapter.delete_dir("photos"))

        self.assertEqual(["photos/a.jpg"], list(self.api.objects))
        self.assertEqual("/v1/storage/objects/photos/", self.api.calls("DELETE")[0].url.path)

    def test_delete_dir_recursive_removes_everything_below(self):
        self.api.page_size = 2
        self.adapter.create_dir("photos")
        self.adapter.create_dir("photos/raw")
        for name in ("a.jpg", "b.jpg", "raw/c.cr2"):
            self.adapter.write(f"photos/{name}", b"1")
        self.adapter.write("photosynthesis.txt", b"keep")

        self.adapter.delete_dir("photos", recursive=True)

        self.assertEqual(["photosynthesis.txt"], list(self.api.objects))

    def test_delete_dir_refuses_root(self):
        with self.assertRaises(ValueError):
            self.adapter.delete_dir("/")

    def test_listing_across_pages_has_no_duplicates_or_omissions(self):
        self.api.page_size = 3
        keys = [f"logs/{index:02d}.txt" for index in range(10)]
        for key in keys:
            self.api.put(key, b"1")

        entries = list(self.adapter.list_contents("logs"))

        self.assertEqual(keys, [e.path for e in entries])
        self.assertEqual(4, len(self.api.calls("GET")))

    def test_non_recursive_listing_synthesizes_one_dir_per_child(self):
        self.api.page_size = 2
        for key in ("root/a/1.txt", "root/a/2.txt", "root/a/deep/3.txt", "root/b/4.txt", "root/top.txt"):
            self.api.put(key, b"1")

        entries = list(self.adapter.list_contents("root"))

        self.assertEqual(
            [("dir", "root/a"), ("dir", "root/b"), ("file", "root/top.txt")],
            [(e.type.value, e.path) for e in entries],
        )

    def test_recursive_listing_includes_implied_directories(self):
        for key in ("root/a/1.txt", "root/a/deep/3.txt", "root/top.txt"):
            self.api.put(key, b"1")

        entries = list(self.adapter.list_contents("/root/", recursive=True))

        self.assertEqual(
            [
                ("dir", "root/a"),
                ("file", "root/a/1.txt"),
                ("dir", "root/a/deep"),
                ("file", "root/a/deep/3.txt"),
                ("file", "root/top.txt"),
            ],
            [(e.type.value, e.path) for e in entries],
        )
        self.assertNotIn("delimiter", self.api.requests[0].url.params)

    def test_metadata_projections(self):
        self.api.put("doc.pdf", b"12345", content_type="application/pdf")

        self.assertEqual(5, self.adapter.get_size("doc.pdf"))
        self.assertEqual("application/pdf", self.adapter.get_mimetype("doc.pdf"))
        self.assertEqual(1704164645, self.adapter.get_timestamp("doc.pdf"))
        self.assertEqual(3, len(self.api.calls("GET")))

    def test_get_url_is_pure(self):
        self.assertEqual("https://storage.test/ns/a/b.txt", self.adapter.get_url("/a//b.txt"))
        self.assertEqual([], self.api.requests)

    def test_get_url_requires_namespace(self):
        adapter = StorageAdapter(self.api.config(), client_factory=self.api.client_factory)

        with self.assertRaises(ConfigurationError):
            adapter.get_url("a.txt")

    def test_server_errors_are_retried_then_raised(self):
        self.api.failures = [503, 503, 503]

        with self.assertRaises(TransportError):
            self.adapter.read("a.txt")

        self.assertEqual(3, len(self.api.requests))

    def test_bad_request_is_raised_without_retry(self):
        self.api.failures = [400]

        with self.assertRaises(RejectedError):
            self.adapter.write("a.txt", b"1")

        self.assertEqual(1, len(self.api.requests))

    def test_retry_ceiling_is_configurable(self):
        config = self.api.config(retry=RetryPolicy(max_attempts=5, backoff_factor=0))
        adapter = StorageAdapter(config, client_factory=self.api.client_factory)
        self.api.failures = [500] * 4

        adapter.write("a.txt", b"1")

        self.assertEqual(5, len(self.api.requests))
        self.assertTrue(adapter.has("a.txt"))

    def test_non_ascii_paths_round_trip(self):
        path = "گزارش/۱۴۰۳/café.txt"

        self.adapter.write(path, "سلام")
        self.adapter.create_dir("گزارش/آرشیو")

        self.assertEqual("سلام".encode("utf-8"), self.adapter.read(path))
        self.assertTrue(self.adapter.has(path))
        self.assertIn("گزارش/آرشیو/", self.api.objects)

    def test_get_metadata_of_missing_path_is_none(self):
        self.assertIsNone(self.adapter.get_metadata(None))
        self.assertIsNone(self.adapter.get_size("missing.txt"))
        self.assertEqual(1, len(self.api.requests))

    def test_from_options_builds_adapter(self):
        adapter = StorageAdapter.from_options(
            {"secret": "t", "url": "https://storage.test"}, client_factory=self.api.client_factory
        )
        adapter.write("a.txt", b"1")

        self.assertEqual("Bearer t", self.api.requests[0].headers["Authorization"])
        self.assertEqual(b"1", adapter.read("a.txt"))
        adapter.close()

    def test_root_path_is_rejected_for_object_operations(self):
        with self.assertRaises(ValueError):
            self.adapter.write("/", b"1")
        self.assertFalse(self.adapter.has(""))


if __name__ == "__main__":
    unittest.main()
