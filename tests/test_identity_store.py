import json
import os
import stat
import sys
import tempfile
import unittest
from pathlib import Path

from pose_creator.core.identity_store import IdentityStore, JsonFileKeyValueStore, MemoryKeyValueStore
from pose_creator.core.models import BaseIdentity
from tests.fakes import make_png

BASE = BaseIdentity(make_png((5, 6, 7, 255)), "image/png")


class IdentityStoreTest(unittest.TestCase):

    def test_empty_store(self):
        self.assertIsNone(IdentityStore(MemoryKeyValueStore()).get())

    def test_set_get_clear(self):
        kv = MemoryKeyValueStore()
        store = IdentityStore(kv)

        store.set(BASE)
        self.assertEqual(store.get(), BASE)
        self.assertEqual(set(kv.get("rex-base-image")), {"data", "mimeType"})

        store.clear()
        self.assertIsNone(store.get())
        store.clear()

    def test_malformed_record_reads_as_absent(self):
        for record in ({"data": "!!not base64!!", "mimeType": "image/png"},
                       {"mimeType": "image/png"},
                       "just a string"):
            kv = MemoryKeyValueStore({"rex-base-image": record})
            self.assertIsNone(IdentityStore(kv).get(), record)

    def test_custom_key(self):
        kv = MemoryKeyValueStore()
        IdentityStore(kv, key="other").set(BASE)
        self.assertIsNone(kv.get("rex-base-image"))
        self.assertIsNotNone(kv.get("other"))


class JsonFileKeyValueStoreTest(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "config.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_identity_survives_a_new_store_instance(self):
        IdentityStore(JsonFileKeyValueStore(self.path)).set(BASE)

        self.assertEqual(IdentityStore(JsonFileKeyValueStore(self.path)).get(), BASE)

    def test_other_keys_are_preserved(self):
        self.path.write_text(json.dumps({"api_key": "secret"}), encoding="utf-8")
        store = IdentityStore(JsonFileKeyValueStore(self.path))

        store.set(BASE)
        store.clear()

        self.assertEqual(json.loads(self.path.read_text(encoding="utf-8")), {"api_key": "secret"})

    def test_missing_or_corrupt_file_reads_empty(self):
        kv = JsonFileKeyValueStore(self.path)
        self.assertIsNone(kv.get("api_key"))

        self.path.write_text("{not json", encoding="utf-8")
        self.assertIsNone(kv.get("api_key"))

        kv.set("api_key", "k")
        self.assertEqual(kv.get("api_key"), "k")

    @unittest.skipIf(sys.platform.startswith("win"), "POSIX permissions only")
    def test_file_is_private(self):
        JsonFileKeyValueStore(self.path).set("api_key", "k")
        self.assertEqual(stat.S_IMODE(os.stat(self.path).st_mode), 0o600)


if __name__ == "__main__":
    unittest.main()
