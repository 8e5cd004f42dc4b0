"""Schema descriptor nodes and path-addressed document access.

The profile shape is described by a JSON Schema document. ``parse_schema``
turns it into a tree of small immutable node types that the editor pattern
matches on, so traversal never has to look keys up in the raw descriptor
again. Documents themselves stay plain JSON values (dict, list, str, int,
float, bool, None) so they round-trip through ``json`` unchanged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple, Union

from .errors import SchemaMismatch

PathKey = Union[str, int]
Path = Tuple[PathKey, ...]


@dataclass(frozen=True)
class ObjectNode:
    properties: Tuple[Tuple[str, "SchemaNode"], ...]
    description: str = ""

    def property_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.properties)

    def get(self, name: str) -> Optional["SchemaNode"]:
        for key, node in self.properties:
            if key == name:
                return node
        return None


@dataclass(frozen=True)
class BooleanNode:
    description: str = ""


@dataclass(frozen=True)
class IntegerNode:
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class NumberNode:
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    description: str = ""


@dataclass(frozen=True)
class StringEnumNode:
    variants: Tuple[str, ...]
    description: str = ""


@dataclass(frozen=True)
class ArrayNode:
    element: "SchemaNode"
    fixed_length: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class NullableNode:
    inner: "SchemaNode"
    description: str = ""


@dataclass(frozen=True)
class UnsupportedNode:
    kind: str
    reason: str
    description: str = ""


SchemaNode = Union[
    ObjectNode,
    BooleanNode,
    IntegerNode,
    NumberNode,
    StringEnumNode,
    ArrayNode,
    NullableNode,
    UnsupportedNode,
]

NUMERIC_NODES = (IntegerNode, NumberNode)


def parse_schema(descriptor: Mapping[str, Any], root: Optional[Mapping[str, Any]] = None) -> SchemaNode:
    """Build a node tree from a JSON Schema descriptor.

    ``root`` is the document that local ``$ref`` pointers resolve against; it
    defaults to ``descriptor`` itself.
    """
    if root is None:
        root = descriptor
    return _parse(descriptor, root, seen=())


def _parse(descriptor: Any, root: Mapping[str, Any], seen: Tuple[str, ...]) -> SchemaNode:
    if not isinstance(descriptor, Mapping):
        return UnsupportedNode(kind=type(descriptor).__name__, reason="schema entry is not an object")

    description = str(descriptor.get("description", ""))

    ref = descriptor.get("$ref")
    if isinstance(ref, str):
        if ref in seen:
            return UnsupportedNode(kind="$ref", reason=f"recursive reference {ref}", description=description)
        target = _resolve_ref(ref, root)
        if target is None:
            return UnsupportedNode(kind="$ref", reason=f"unresolved reference {ref}", description=description)
        node = _parse(target, root, seen + (ref,))
        if description and not node.description:
            node = replace(node, description=description)
        return node

    for combinator in ("anyOf", "oneOf"):
        variants = descriptor.get(combinator)
        if variants is not None:
            return _parse_nullable(combinator, variants, description, root, seen)

    kind = descriptor.get("type")

    if isinstance(kind, list):
        non_null = [k for k in kind if k != "null"]
        if len(kind) == 2 and len(non_null) == 1:
            inner = dict(descriptor)
            inner["type"] = non_null[0]
            inner.pop("description", None)
            return NullableNode(inner=_parse(inner, root, seen), description=description)
        return UnsupportedNode(kind="type list", reason=f"type union {kind} is not nullable", description=description)

    if kind is None and "enum" in descriptor:
        kind = "string"

    if kind == "object":
        properties = descriptor.get("properties", {})
        if not isinstance(properties, Mapping):
            return UnsupportedNode(kind="object", reason="properties is not an object", description=description)
        return ObjectNode(
            properties=tuple((str(name), _parse(value, root, seen)) for name, value in properties.items()),
            description=description,
        )
    if kind == "boolean":
        return BooleanNode(description=description)
    if kind == "integer":
        try:
            minimum = _optional_int(descriptor.get("minimum"), math.ceil)
            maximum = _optional_int(descriptor.get("maximum"), math.floor)
        except (TypeError, ValueError, OverflowError):
            return UnsupportedNode(kind="integer", reason="invalid bound", description=description)
        if minimum is not None and maximum is not None and minimum > maximum:
            return UnsupportedNode(kind="integer", reason="no integer within bounds", description=description)
        return IntegerNode(minimum=minimum, maximum=maximum, description=description)
    if kind == "number":
        try:
            minimum = _optional_float(descriptor.get("minimum"))
            maximum = _optional_float(descriptor.get("maximum"))
        except (TypeError, ValueError):
            return UnsupportedNode(kind="number", reason="invalid bound", description=description)
        return NumberNode(minimum=minimum, maximum=maximum, description=description)
    if kind == "string":
        variants = descriptor.get("enum")
        if not isinstance(variants, list) or not all(isinstance(v, str) for v in variants):
            return UnsupportedNode(kind="string", reason="non-enum strings unsupported", description=description)
        return StringEnumNode(variants=tuple(variants), description=description)
    if kind == "array":
        items = descriptor.get("items")
        if items is None:
            return UnsupportedNode(kind="array", reason="array without items", description=description)
        try:
            fixed_length = _optional_int(descriptor.get("minItems"), math.ceil)
        except (TypeError, ValueError, OverflowError):
            return UnsupportedNode(kind="array", reason="invalid minItems", description=description)
        return ArrayNode(
            element=_parse(items, root, seen),
            fixed_length=fixed_length,
            description=description,
        )

    return UnsupportedNode(kind=str(kind), reason=f"unimplemented json type: {kind}", description=description)


def _parse_nullable(combinator, variants, description, root, seen) -> SchemaNode:
    if not isinstance(variants, list):
        return UnsupportedNode(kind=combinator, reason=f"{combinator} is not a list", description=description)

    nulls = [v for v in variants if isinstance(v, Mapping) and v.get("type") == "null"]
    others = [v for v in variants if not (isinstance(v, Mapping) and v.get("type") == "null")]
    if len(variants) != 2 or len(nulls) != 1:
        return UnsupportedNode(
            kind=combinator,
            reason=f"{combinator} without null / two variants not supported",
            description=description,
        )
    return NullableNode(inner=_parse(others[0], root, seen), description=description)


def _resolve_ref(ref: str, root: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    if not ref.startswith("#/"):
        return None
    current: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current if isinstance(current, Mapping) else None


def _optional_int(value: Any, rounding) -> Optional[int]:
    # fractional bounds round inward so every allowed integer stays inside them
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"bound {value!r} is not a number")
    return int(rounding(value))


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"bound {value!r} is not a number")
    if not math.isfinite(value):
        raise ValueError(f"bound {value!r} is not finite")
    return float(value)


def profile_schema(store_descriptor: Mapping[str, Any]) -> SchemaNode:
    """Return the node for ``profiles[].config`` of a whole-store schema."""
    current: Any = store_descriptor
    trail = ("properties", "profiles", "items", "properties", "config")
    for step in trail:
        if isinstance(current, Mapping) and "$ref" in current:
            current = _resolve_ref(current["$ref"], store_descriptor)
        if not isinstance(current, Mapping) or step not in current:
            raise SchemaMismatch(f"store schema has no {'.'.join(trail)} entry")
        current = current[step]
    return parse_schema(current, root=store_descriptor)


def array_depth(node: SchemaNode) -> int:
    """Count nested array wrappers down to a numeric leaf (0 if not numeric)."""
    depth = 0
    while isinstance(node, ArrayNode):
        depth += 1
        node = node.element
    if not isinstance(node, NUMERIC_NODES):
        return 0
    return depth


def document_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def format_path(path: Path) -> str:
    text = ""
    for key in path:
        if isinstance(key, int):
            text += f"[{key}]"
        elif text:
            text += f".{key}"
        else:
            text = key
    return text or "<root>"


def parse_path(text: str) -> Path:
    """Inverse of ``format_path``: ``a.b[2][0]`` -> ("a", "b", 2, 0)."""
    parts: list = []
    for chunk in text.split("."):
        name, _, rest = chunk.partition("[")
        if name:
            parts.append(name)
        if rest:
            for index in ("[" + rest).split("[")[1:]:
                if not index.endswith("]"):
                    raise ValueError(f"malformed path: {text!r}")
                parts.append(int(index[:-1]))
    return tuple(parts)


def resolve(document: Any, path: Path) -> Any:
    current = document
    for depth, key in enumerate(path):
        current = _step(current, key, path[: depth + 1])
    return current


def assign(document: Any, path: Path, value: Any) -> None:
    if not path:
        raise SchemaMismatch("cannot assign the document root", path)
    parent = resolve(document, path[:-1])
    key = path[-1]
    _step(parent, key, path)
    parent[key] = value


def _step(container: Any, key: PathKey, path: Path) -> Any:
    if isinstance(key, int):
        if not isinstance(container, list):
            raise SchemaMismatch(
                f"{format_path(path[:-1])}: expected array, found {document_kind(container)}", path
            )
        if not 0 <= key < len(container):
            raise SchemaMismatch(f"{format_path(path)}: index out of range", path)
        return container[key]

    if not isinstance(container, dict):
        raise SchemaMismatch(
            f"{format_path(path[:-1])}: expected object, found {document_kind(container)}", path
        )
    if key not in container:
        raise SchemaMismatch(f"{format_path(path)}: missing from document", path)
    return container[key]


def node_at(schema: SchemaNode, path: Path) -> SchemaNode:
    """Walk the schema alongside a document path."""
    node = schema
    for depth, key in enumerate(path):
        if isinstance(node, NullableNode):
            node = node.inner
        if isinstance(key, int):
            if not isinstance(node, ArrayNode):
                raise SchemaMismatch(f"{format_path(path[: depth + 1])}: schema has no array here", path)
            node = node.element
            continue
        if not isinstance(node, ObjectNode):
            raise SchemaMismatch(f"{format_path(path[: depth + 1])}: schema has no object here", path)
        child = node.get(key)
        if child is None:
            raise SchemaMismatch(f"{format_path(path[: depth + 1])}: not declared in schema", path)
        node = child
    return node


def conforms(node: SchemaNode, value: Any) -> bool:
    """Shallow kind check of a single value against its node."""
    kind = document_kind(value)
    if isinstance(node, NullableNode):
        return kind == "null" or conforms(node.inner, value)
    if isinstance(node, ObjectNode):
        return kind == "object"
    if isinstance(node, BooleanNode):
        return kind == "bool"
    if isinstance(node, IntegerNode):
        return kind == "integer"
    if isinstance(node, NumberNode):
        return kind in ("integer", "float")
    if isinstance(node, StringEnumNode):
        return kind == "string"
    if isinstance(node, ArrayNode):
        return kind == "array"
    return True

