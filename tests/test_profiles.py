from __future__ import annotations

import copy
import json
import pathlib
import tempfile
import unittest

from gcstudio.calibration import StickCal, TrigCal, default_stick_data
from gcstudio.defaults import STORE_SCHEMA, default_profile_config, default_store_document
from gcstudio.errors import (
    DuplicateName,
    InvalidCalibration,
    InvalidProfileName,
    LastProfileError,
    ProfileNotFound,
    SchemaMismatch,
    StoreIOError,
)
from gcstudio.inputs import ReloadFlag
from gcstudio.profiles import JsonFileDocumentStore, ProfileStore
from gcstudio.schema import profile_schema


class MemoryDocumentStore:
    def __init__(self, document=None) -> None:
        self.document = copy.deepcopy(document)
        self.saves = 0
        self.fail_writes = False

    def load_document(self):
        if self.document is None:
            raise StoreIOError("nothing stored")
        return copy.deepcopy(self.document)

    def save_document(self, document) -> None:
        if self.fail_writes:
            raise StoreIOError("disk full")
        self.document = copy.deepcopy(document)
        self.saves += 1


def two_profile_document():
    document = default_store_document("https://example.invalid/schema.json")
    second = default_profile_config()
    second["rumble"] = "off"
    document["profiles"] = [
        {"name": "A", "config": default_profile_config()},
        {"name": "B", "config": second},
    ]
    document["current_profile"] = "A"
    return document


class ProfileStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryDocumentStore(two_profile_document())
        self.reload_flag = ReloadFlag()
        self.store = ProfileStore(self.backend, profile_schema(STORE_SCHEMA), self.reload_flag)
        self.store.load()

    def test_load_selects_current_and_requests_reload(self) -> None:
        self.assertEqual(self.store.profile_names, ["A", "B"])
        self.assertEqual(self.store.current_profile_name, "A")
        self.assertFalse(self.store.is_dirty())
        self.assertTrue(self.reload_flag.take())

    def test_save_of_load_is_identity(self) -> None:
        original = two_profile_document()
        original["feeder"] = {"poll_ms": 1}
        original["profiles"][1]["note"] = "spare pad"
        self.backend.document = copy.deepcopy(original)
        self.store.load()
        self.store.save()
        self.assertEqual(self.backend.document, original)

    def test_missing_schema_url_stays_missing(self) -> None:
        document = two_profile_document()
        del document["$schema"]
        self.backend.document = document
        self.store.load()
        self.store.save()
        self.assertNotIn("$schema", self.backend.document)

    def test_update_schema_url(self) -> None:
        self.store.update_schema_url("gcstudio.schema.json")
        self.assertTrue(self.store.is_dirty())
        self.store.save()
        self.assertEqual(self.backend.document["$schema"], "gcstudio.schema.json")

    def test_remove_current_reassigns(self) -> None:
        self.store.remove_profile("A")
        self.assertEqual(self.store.profile_names, ["B"])
        self.assertEqual(self.store.current_profile_name, "B")
        with self.assertRaises(LastProfileError):
            self.store.remove_profile("B")
        self.assertEqual(self.store.profile_names, ["B"])

    def test_remove_other_keeps_current(self) -> None:
        self.store.remove_profile("B")
        self.assertEqual(self.store.current_profile_name, "A")

    def test_remove_sole_profile_leaves_store_unchanged(self) -> None:
        self.store.remove_profile("B")
        before = self.store.to_document()
        with self.assertRaises(LastProfileError):
            self.store.remove_profile("A")
        self.assertEqual(self.store.to_document(), before)

    def test_remove_unknown_profile(self) -> None:
        with self.assertRaises(ProfileNotFound):
            self.store.remove_profile("C")

    def test_select_profile(self) -> None:
        self.store.select_profile("B")
        self.assertEqual(self.store.edit_buffer().config["rumble"], "off")
        self.assertTrue(self.store.is_dirty())
        with self.assertRaises(ProfileNotFound):
            self.store.select_profile("C")
        self.assertEqual(self.store.current_profile_name, "B")

    def test_add_profile_clones_edit_buffer(self) -> None:
        buffer = self.store.edit_buffer()
        buffer.config["analog_scale"] = 0.5
        buffer.dirty = True
        added = self.store.add_profile("  Travel ")
        self.assertEqual(added.name, "Travel")
        self.assertEqual(self.store.current_profile_name, "Travel")
        self.assertEqual(added.config["analog_scale"], 0.5)
        self.assertIsNot(added.config, buffer.config)

    def test_add_profile_validation(self) -> None:
        with self.assertRaises(InvalidProfileName):
            self.store.add_profile("   ")
        with self.assertRaises(DuplicateName):
            self.store.add_profile("B")
        self.assertEqual(self.store.profile_names, ["A", "B"])

    def test_add_profile_replace_overwrites(self) -> None:
        config = default_profile_config()
        config["analog_scale"] = 0.25
        self.store.add_profile("B", config=config, replace=True)
        self.assertEqual(self.store.profile_names, ["A", "B"])
        self.assertEqual(self.store.get_profile("B").config["analog_scale"], 0.25)
        self.assertEqual(self.store.current_profile_name, "B")

    def test_edit_buffer_is_a_copy(self) -> None:
        buffer = self.store.edit_buffer()
        buffer.config["rumble"] = "off"
        buffer.dirty = True
        self.assertEqual(self.store.current_profile.config["rumble"], "on")
        self.assertIs(self.store.edit_buffer(), buffer)

        self.store.discard_changes()
        self.assertEqual(self.store.edit_buffer().config["rumble"], "on")
        self.assertFalse(self.store.is_dirty())

    def test_commit_copies_buffer_back(self) -> None:
        buffer = self.store.edit_buffer()
        buffer.config["rumble"] = "off"
        buffer.dirty = True
        self.store.commit()
        self.assertEqual(self.store.current_profile.config["rumble"], "off")
        buffer.config["rumble"] = "on"
        self.assertEqual(self.store.current_profile.config["rumble"], "off")

    def test_save_persists_buffer_and_clears_dirty(self) -> None:
        buffer = self.store.edit_buffer()
        buffer.config["analog_scale"] = 0.8
        buffer.dirty = True
        self.assertTrue(self.store.is_dirty())
        self.reload_flag.take()

        self.store.save()
        self.assertFalse(self.store.is_dirty())
        self.assertEqual(self.backend.document["profiles"][0]["config"]["analog_scale"], 0.8)
        self.assertTrue(self.reload_flag.take())

    def test_failed_save_keeps_state(self) -> None:
        buffer = self.store.edit_buffer()
        buffer.config["analog_scale"] = 0.8
        buffer.dirty = True
        self.backend.fail_writes = True
        with self.assertRaises(StoreIOError):
            self.store.save()
        self.assertTrue(self.store.is_dirty())
        self.assertEqual(self.store.current_profile.config["analog_scale"], 0.8)
        self.assertEqual(self.backend.document["profiles"][0]["config"]["analog_scale"], 1.0)

    def test_apply_stick_calibration(self) -> None:
        self.store.apply_stick_calibration(StickCal.default(), StickCal.default())
        self.assertEqual(self.store.edit_buffer().config["calibration"]["stick_data"], default_stick_data())
        self.assertIsNone(self.store.current_profile.config["calibration"]["stick_data"])
        self.store.save()
        self.assertEqual(
            self.backend.document["profiles"][0]["config"]["calibration"]["stick_data"],
            default_stick_data(),
        )

    def test_apply_trigger_calibration_validates(self) -> None:
        with self.assertRaises(InvalidCalibration):
            self.store.apply_trigger_calibration(TrigCal(200, 50), TrigCal(0, 255))
        self.assertIsNone(self.store.edit_buffer().config["calibration"]["trigger_data"])
        self.assertFalse(self.store.is_dirty())

        self.store.apply_trigger_calibration(TrigCal(0, 255), TrigCal(12, 240))
        self.assertEqual(
            self.store.edit_buffer().config["calibration"]["trigger_data"],
            {"l_trigger": {"min": 0, "max": 255}, "r_trigger": {"min": 12, "max": 240}},
        )
        self.assertTrue(self.store.is_dirty())

    def test_dangling_current_profile_is_repaired(self) -> None:
        document = two_profile_document()
        document["current_profile"] = "gone"
        self.backend.document = document
        with self.assertLogs("gcstudio.profiles", level="WARNING"):
            self.store.load()
        self.assertEqual(self.store.current_profile_name, "A")

    def test_invalid_documents_are_rejected_without_changing_state(self) -> None:
        broken = []
        empty = two_profile_document()
        empty["profiles"] = []
        broken.append(empty)
        duplicate = two_profile_document()
        duplicate["profiles"][1]["name"] = "A"
        broken.append(duplicate)
        no_config = two_profile_document()
        del no_config["profiles"][0]["config"]
        broken.append(no_config)
        broken.append(["not", "an", "object"])

        self.store.select_profile("B")
        for document in broken:
            with self.subTest(document=document):
                self.backend.document = document
                with self.assertRaises(SchemaMismatch):
                    self.store.load()
                self.assertEqual(self.store.current_profile_name, "B")
                self.assertEqual(self.store.profile_names, ["A", "B"])


class JsonFileDocumentStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.root = pathlib.Path(self.tmp.name)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_save_creates_parents_and_formats(self) -> None:
        backend = JsonFileDocumentStore(self.root / "nested" / "gcstudio.json")
        backend.save_document({"b": 1, "a": [1, 2]})
        text = backend.path.read_text(encoding="utf-8")
        self.assertTrue(text.endswith("}\n"))
        self.assertIn('\n  "b": 1', text)
        self.assertEqual(backend.load_document(), {"b": 1, "a": [1, 2]})

    def test_missing_file(self) -> None:
        backend = JsonFileDocumentStore(self.root / "missing.json")
        self.assertFalse(backend.exists())
        with self.assertRaises(StoreIOError):
            backend.load_document()

    def test_invalid_json(self) -> None:
        path = self.root / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(StoreIOError):
            JsonFileDocumentStore(path).load_document()

    def test_store_round_trip_through_file(self) -> None:
        path = self.root / "gcstudio.json"
        path.write_text(json.dumps(two_profile_document(), indent=2) + "\n", encoding="utf-8")
        store = ProfileStore(JsonFileDocumentStore(path), profile_schema(STORE_SCHEMA))
        store.load()
        store.save()
        self.assertEqual(json.loads(path.read_text(encoding="utf-8")), two_profile_document())


if __name__ == "__main__":
    unittest.main()
