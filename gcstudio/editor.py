"""Schema-driven editor for profile documents.

``SchemaEditor.render`` walks a document against the shared schema and
returns a tree of ``FieldView`` objects that a front end turns into widgets.
``SchemaEditor.edit`` (plus ``toggle`` and ``set_present``) applies a single
validated change at a path, coercing and clamping the value the same way
for every caller. The editor never persists anything; a changed edit only
marks the profile dirty.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from .coercion import clamp_to_bounds, lossy_int, parse_float_text, parse_int_text
from .errors import EditRejected, GcStudioError, SchemaMismatch, UnsupportedSchema
from .schema import (
    ArrayNode,
    BooleanNode,
    IntegerNode,
    NullableNode,
    NumberNode,
    ObjectNode,
    Path,
    SchemaNode,
    StringEnumNode,
    UnsupportedNode,
    array_depth,
    assign,
    conforms,
    document_kind,
    format_path,
    resolve,
)

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_TRUE_TEXT = {"true", "on", "yes", "1"}
_FALSE_TEXT = {"false", "off", "no", "0"}


@dataclass
class Diagnostic:
    path: Path
    message: str
    mismatch: bool

    def __str__(self) -> str:
        return f"{format_path(self.path)}: {self.message}"


@dataclass
class FieldView:
    kind: str
    path: Path
    label: str
    value: Any = None
    description: str = ""
    minimum: Any = None
    maximum: Any = None
    variants: Tuple[str, ...] = ()
    present: Optional[bool] = None
    message: str = ""
    rows: int = 0
    columns: int = 0
    cell: Optional[Tuple[int, int]] = None
    children: List["FieldView"] = field(default_factory=list)

    def walk(self) -> Iterator["FieldView"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, path: Path) -> Optional["FieldView"]:
        for view in self.walk():
            if view.path == path and view.kind != "nullable":
                return view
        for view in self.walk():
            if view.path == path:
                return view
        return None


class SchemaEditor:
    def __init__(
        self,
        schema: SchemaNode,
        defaults: Optional[Mapping[str, Callable[[], Any]]] = None,
    ) -> None:
        self.schema = schema
        self.defaults: Dict[str, Callable[[], Any]] = dict(defaults or {})
        self.diagnostics: List[Diagnostic] = []

    # Rendering

    def render(self, document: Any) -> FieldView:
        self.diagnostics = []
        return self._render(self.schema, document, (), "")

    def _render(self, node: SchemaNode, value: Any, path: Path, label: str) -> FieldView:
        try:
            return self._render_node(node, value, path, label)
        except SchemaMismatch as exc:
            return self._mismatch(path, label, str(exc), node)
        except UnsupportedSchema as exc:
            return self._unsupported(path, label, str(exc), node)

    def _render_node(self, node: SchemaNode, value: Any, path: Path, label: str) -> FieldView:
        description = node.description

        if isinstance(node, UnsupportedNode):
            raise UnsupportedSchema(node.reason, path)

        if isinstance(node, NullableNode):
            present = value is not None
            view = FieldView(kind="nullable", path=path, label=label, present=present, description=description)
            if present:
                view.children.append(self._render(node.inner, value, path, label))
            return view

        self._require_kind(node, value, path)

        if isinstance(node, ObjectNode):
            view = FieldView(kind="object", path=path, label=label, description=description)
            for name, child in node.properties:
                child_path = path + (name,)
                if name not in value:
                    view.children.append(
                        self._mismatch(child_path, name, f"{format_path(child_path)}: missing from document", child)
                    )
                    continue
                view.children.append(self._render(child, value[name], child_path, name))
            return view

        if isinstance(node, BooleanNode):
            return FieldView(kind="boolean", path=path, label=label, value=value, description=description)

        if isinstance(node, (IntegerNode, NumberNode)):
            return FieldView(
                kind="integer" if isinstance(node, IntegerNode) else "number",
                path=path,
                label=label,
                value=value,
                minimum=node.minimum,
                maximum=node.maximum,
                description=description,
            )

        if isinstance(node, StringEnumNode):
            view = FieldView(
                kind="enum",
                path=path,
                label=label,
                value=value,
                variants=node.variants,
                description=description,
            )
            if value not in node.variants:
                view.message = f"'{value}' is not one of {', '.join(node.variants)}"
                self._report(path, view.message, mismatch=False)
            return view

        return self._render_array(node, value, path, label)

    def _render_array(self, node: ArrayNode, value: List[Any], path: Path, label: str) -> FieldView:
        depth = self._check_array(node, path)
        if len(value) != node.fixed_length:
            raise SchemaMismatch(
                f"{format_path(path)}: expected {node.fixed_length} items, found {len(value)}", path
            )

        if depth == 1:
            view = FieldView(kind="array", path=path, label=label, columns=len(value), description=node.description)
            for index, item in enumerate(value):
                view.children.append(self._render(node.element, item, path + (index,), f"[{index}]"))
            return view

        inner = node.element
        for index, column in enumerate(value):
            self._require_kind(inner, column, path + (index,))
            if inner.fixed_length is not None and len(column) != inner.fixed_length:
                raise SchemaMismatch(
                    f"{format_path(path + (index,))}: expected {inner.fixed_length} items, found {len(column)}",
                    path,
                )

        rows = max((len(column) for column in value), default=0)
        view = FieldView(
            kind="grid",
            path=path,
            label=label,
            rows=rows,
            columns=len(value),
            description=node.description,
        )
        # Short columns expose only the cells they actually have.
        for row in range(rows):
            for column_index, column in enumerate(value):
                if row >= len(column):
                    continue
                cell = self._render(inner.element, column[row], path + (column_index, row), f"[{column_index}][{row}]")
                cell.cell = (row, column_index)
                view.children.append(cell)
        return view

    def _mismatch(self, path: Path, label: str, message: str, node: SchemaNode) -> FieldView:
        self._report(path, message, mismatch=True)
        return FieldView(kind="mismatch", path=path, label=label, message=message, description=node.description)

    def _unsupported(self, path: Path, label: str, message: str, node: SchemaNode) -> FieldView:
        self._report(path, message, mismatch=False)
        return FieldView(kind="unsupported", path=path, label=label, message=message, description=node.description)

    def _report(self, path: Path, message: str, mismatch: bool) -> None:
        diagnostic = Diagnostic(path=path, message=message, mismatch=mismatch)
        self.diagnostics.append(diagnostic)
        logger.warning("%s", diagnostic)

    # Editing

    def edit(self, profile, path: Path, value: Any) -> bool:
        """Apply ``value`` at ``path`` of ``profile.config``. Returns True when the document changed."""
        node = self.node_for(path)
        changed = self._apply(node, profile.config, path, value)
        if changed:
            profile.dirty = True
            logger.debug("edited %s of profile %s", format_path(path), profile.name)
        return changed

    def toggle(self, profile, path: Path) -> bool:
        node = self.node_for(path)
        if not isinstance(node, BooleanNode):
            raise EditRejected(f"{format_path(path)} is not a boolean field")
        current = resolve(profile.config, path)
        self._require_kind(node, current, path)
        assign(profile.config, path, not current)
        profile.dirty = True
        return True

    def set_present(self, profile, path: Path, present: bool) -> bool:
        node = self.node_for(path)
        if not isinstance(node, NullableNode):
            raise EditRejected(f"{format_path(path)} is not an optional field")
        changed = self._set_present(node, profile.config, path, present)
        if changed:
            profile.dirty = True
        return changed

    def node_for(self, path: Path) -> SchemaNode:
        """Schema node at ``path``, rejecting paths through unsupported constructs."""
        if not path:
            raise EditRejected("cannot replace the whole document")

        node = self.schema
        outer_array = False
        for depth, key in enumerate(path):
            prefix = path[: depth + 1]
            if isinstance(node, NullableNode):
                node = node.inner
            if isinstance(node, UnsupportedNode):
                raise UnsupportedSchema(node.reason, path[:depth])
            if isinstance(key, int):
                if not isinstance(node, ArrayNode):
                    raise SchemaMismatch(f"{format_path(prefix)}: schema has no array here", path)
                if not outer_array:
                    self._check_array(node, path[:depth])
                    outer_array = True
                node = node.element
                continue
            outer_array = False
            if not isinstance(node, ObjectNode):
                raise SchemaMismatch(f"{format_path(prefix)}: schema has no object here", path)
            child = node.get(key)
            if child is None:
                raise SchemaMismatch(f"{format_path(prefix)}: not declared in schema", path)
            node = child

        if isinstance(node, UnsupportedNode):
            raise UnsupportedSchema(node.reason, path)
        return node

    def _apply(self, node: SchemaNode, document: Any, path: Path, value: Any) -> bool:
        current = resolve(document, path)

        if isinstance(node, NullableNode):
            if value is None:
                return self._set_present(node, document, path, False)
            materialized = False
            if current is None:
                materialized = self._set_present(node, document, path, True)
            try:
                return self._apply(node.inner, document, path, value) or materialized
            except GcStudioError:
                if materialized:
                    assign(document, path, None)
                raise

        if value is None:
            raise EditRejected(f"{format_path(path)} is not optional")

        self._require_kind(node, current, path)

        if isinstance(node, (ObjectNode, ArrayNode)):
            raise EditRejected(f"{format_path(path)}: edit the individual fields instead of the whole {document_kind(current)}")

        if isinstance(node, BooleanNode):
            assign(document, path, _coerce_bool(value, path))
            return True

        if isinstance(node, IntegerNode):
            number = _coerce_int(value, path)
            if number is None:
                return False
            number = int(clamp_to_bounds(number, node.minimum, node.maximum))
            if number == current:
                return False
            assign(document, path, number)
            return True

        if isinstance(node, NumberNode):
            number = _coerce_float(value, path)
            if number is None:
                return False
            number = float(clamp_to_bounds(number, node.minimum, node.maximum))
            # an equal stored int stays an int
            if number == current:
                return False
            assign(document, path, number)
            return True

        if isinstance(node, StringEnumNode):
            if not isinstance(value, str) or value not in node.variants:
                raise EditRejected(
                    f"{format_path(path)}: {value!r} is not one of {', '.join(node.variants)}"
                )
            assign(document, path, value)
            return value != current

        raise UnsupportedSchema(f"{format_path(path)}: cannot edit {type(node).__name__}", path)

    def _set_present(self, node: NullableNode, document: Any, path: Path, present: bool) -> bool:
        current = resolve(document, path)
        if present == (current is not None):
            return False

        if not present:
            assign(document, path, None)
            return True

        name = next((key for key in reversed(path) if isinstance(key, str)), "")
        factory = self.defaults.get(name)
        if factory is None:
            raise UnsupportedSchema(f"{format_path(path)}: no default value registered for '{name}'", path)
        value = factory()
        if not conforms(node.inner, value):
            raise SchemaMismatch(f"{format_path(path)}: default for '{name}' does not match the schema", path)
        assign(document, path, value)
        return True

    def _check_array(self, node: ArrayNode, path: Path) -> int:
        depth = array_depth(node)
        if depth not in (1, 2):
            raise UnsupportedSchema(
                f"{format_path(path)}: only numeric arrays nested at most two levels are supported", path
            )
        if node.fixed_length is None:
            raise UnsupportedSchema(f"{format_path(path)}: arrays without minItems unsupported", path)
        return depth

    @staticmethod
    def _require_kind(node: SchemaNode, value: Any, path: Path) -> None:
        if not conforms(node, value):
            raise SchemaMismatch(
                f"{format_path(path)}: expected {type(node).__name__}, found {document_kind(value)}", path
            )


def _coerce_bool(value: Any, path: Path) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    raise EditRejected(f"{format_path(path)}: {value!r} is not a boolean")


def _coerce_int(value: Any, path: Path) -> Optional[int]:
    if isinstance(value, bool):
        raise EditRejected(f"{format_path(path)}: {value!r} is not a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return lossy_int(value, INT64_MIN, INT64_MAX)
    if isinstance(value, str):
        return parse_int_text(value)
    raise EditRejected(f"{format_path(path)}: {value!r} is not a number")


def _coerce_float(value: Any, path: Path) -> Optional[float]:
    if isinstance(value, bool):
        raise EditRejected(f"{format_path(path)}: {value!r} is not a number")
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        return parse_float_text(value)
    raise EditRejected(f"{format_path(path)}: {value!r} is not a number")
