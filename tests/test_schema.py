from __future__ import annotations

import unittest

from gcstudio import schema
from gcstudio.defaults import STORE_SCHEMA, default_profile_config
from gcstudio.errors import SchemaMismatch


class ParseSchemaTests(unittest.TestCase):
    def setUp(self) -> None:
        self.profile = schema.profile_schema(STORE_SCHEMA)

    def test_profile_properties_keep_schema_order(self) -> None:
        self.assertIsInstance(self.profile, schema.ObjectNode)
        self.assertEqual(
            self.profile.property_names(),
            ("driver", "rumble", "analog_scale", "vigem_config", "calibration", "ess"),
        )

    def test_number_bounds(self) -> None:
        node = self.profile.get("analog_scale")
        self.assertIsInstance(node, schema.NumberNode)
        self.assertEqual((node.minimum, node.maximum), (0.0, 1.5))

    def test_nullable_enum_from_any_of(self) -> None:
        node = schema.node_at(self.profile, ("ess", "inversion_mapping"))
        self.assertIsInstance(node, schema.NullableNode)
        self.assertIsInstance(node.inner, schema.StringEnumNode)
        self.assertEqual(node.inner.variants, ("oot-vc", "mm-vc", "z64-gc"))

    def test_refs_resolve_through_nullable(self) -> None:
        node = schema.node_at(self.profile, ("calibration", "stick_data"))
        self.assertIsInstance(node, schema.NullableNode)
        self.assertEqual(node.description, "Captured stick centers and notch points.")
        notches = schema.node_at(self.profile, ("calibration", "stick_data", "main_stick", "notch_points"))
        self.assertIsInstance(notches, schema.ArrayNode)
        self.assertEqual(notches.fixed_length, 8)
        self.assertEqual(notches.element.fixed_length, 2)
        self.assertEqual(notches.element.element, schema.IntegerNode(minimum=0, maximum=255))

    def test_node_at_walks_array_elements(self) -> None:
        leaf = schema.node_at(self.profile, ("calibration", "stick_data", "c_stick", "stick_center", 1))
        self.assertIsInstance(leaf, schema.IntegerNode)

    def test_type_list_with_null(self) -> None:
        node = schema.parse_schema({"type": ["integer", "null"], "maximum": 9, "description": "slot"})
        self.assertEqual(node, schema.NullableNode(inner=schema.IntegerNode(maximum=9), description="slot"))

    def test_unsupported_constructs(self) -> None:
        cases = {
            "non-enum strings unsupported": {"type": "string"},
            "two variants": {"anyOf": [{"type": "integer"}, {"type": "boolean"}]},
            "unimplemented json type": {"type": "wat"},
        }
        for fragment, descriptor in cases.items():
            with self.subTest(fragment=fragment):
                node = schema.parse_schema(descriptor)
                self.assertIsInstance(node, schema.UnsupportedNode)
                self.assertIn(fragment, node.reason)

    def test_invalid_bounds_are_local_to_the_field(self) -> None:
        node = schema.parse_schema(
            {
                "type": "object",
                "properties": {
                    "ok": {"type": "boolean"},
                    "low": {"type": "integer", "minimum": "low"},
                    "gain": {"type": "number", "maximum": [1]},
                    "pairs": {"type": "array", "minItems": "two", "items": {"type": "integer"}},
                    "empty": {"type": "integer", "minimum": 0.2, "maximum": 0.8},
                },
            }
        )
        self.assertIsInstance(node.get("ok"), schema.BooleanNode)
        for name in ("low", "gain", "pairs", "empty"):
            with self.subTest(name=name):
                self.assertIsInstance(node.get(name), schema.UnsupportedNode)

    def test_fractional_integer_bounds_round_inward(self) -> None:
        node = schema.parse_schema({"type": "integer", "minimum": 0.5, "maximum": 9.5})
        self.assertEqual((node.minimum, node.maximum), (1, 9))

    def test_any_of_with_three_variants_is_unsupported(self) -> None:
        node = schema.parse_schema(
            {"oneOf": [{"type": "integer"}, {"type": "number"}, {"type": "null"}]}
        )
        self.assertIsInstance(node, schema.UnsupportedNode)

    def test_recursive_ref_is_unsupported(self) -> None:
        descriptor = {"definitions": {"A": {"$ref": "#/definitions/A"}}, "$ref": "#/definitions/A"}
        node = schema.parse_schema(descriptor)
        self.assertIsInstance(node, schema.UnsupportedNode)
        self.assertIn("recursive", node.reason)

    def test_profile_schema_requires_config_entry(self) -> None:
        with self.assertRaises(SchemaMismatch):
            schema.profile_schema({"type": "object", "properties": {}})

    def test_array_depth(self) -> None:
        byte = schema.IntegerNode(0, 255)
        self.assertEqual(schema.array_depth(byte), 0)
        self.assertEqual(schema.array_depth(schema.ArrayNode(byte)), 1)
        self.assertEqual(schema.array_depth(schema.ArrayNode(schema.ArrayNode(byte))), 2)
        self.assertEqual(schema.array_depth(schema.ArrayNode(schema.BooleanNode())), 0)


class DocumentPathTests(unittest.TestCase):
    def setUp(self) -> None:
        self.document = {"a": {"b": [[1, 2], [3, 4]]}, "flag": True}

    def test_format_and_parse_path(self) -> None:
        path = ("a", "b", 1, 0)
        self.assertEqual(schema.format_path(path), "a.b[1][0]")
        self.assertEqual(schema.parse_path("a.b[1][0]"), path)
        self.assertEqual(schema.format_path(()), "<root>")

    def test_parse_path_rejects_malformed_index(self) -> None:
        with self.assertRaises(ValueError):
            schema.parse_path("a[1")

    def test_resolve_and_assign(self) -> None:
        self.assertEqual(schema.resolve(self.document, ("a", "b", 1, 0)), 3)
        schema.assign(self.document, ("a", "b", 1, 0), 9)
        self.assertEqual(self.document["a"]["b"][1], [9, 4])

    def test_missing_key_names_path(self) -> None:
        with self.assertRaises(SchemaMismatch) as caught:
            schema.resolve(self.document, ("a", "c"))
        self.assertEqual(caught.exception.path, ("a", "c"))
        self.assertIn("a.c", str(caught.exception))

    def test_index_out_of_range(self) -> None:
        with self.assertRaises(SchemaMismatch):
            schema.assign(self.document, ("a", "b", 2), [0, 0])

    def test_wrong_kind(self) -> None:
        with self.assertRaises(SchemaMismatch):
            schema.resolve(self.document, ("flag", 0))

    def test_document_kind_distinguishes_bool(self) -> None:
        self.assertEqual(schema.document_kind(True), "bool")
        self.assertEqual(schema.document_kind(1), "integer")
        self.assertEqual(schema.document_kind(1.0), "float")
        self.assertFalse(schema.conforms(schema.IntegerNode(), True))
        self.assertTrue(schema.conforms(schema.NumberNode(), 2))

    def test_default_profile_conforms(self) -> None:
        profile = schema.profile_schema(STORE_SCHEMA)
        config = default_profile_config()
        for name, node in profile.properties:
            with self.subTest(name=name):
                self.assertTrue(schema.conforms(node, config[name]))


if __name__ == "__main__":
    unittest.main()
