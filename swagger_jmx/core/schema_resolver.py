"""Schema $ref resolution with a bounded depth.

Raw schema mappings from the document are turned into SchemaNode trees.
Each $ref hop and each step into properties or items increases the depth;
once a $ref is reached at the depth limit it resolves to an empty object,
which is what terminates self-referential schemas.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Union

from swagger_jmx.core.data_structures import (
    SCHEMA_DEPTH_EXCEEDED_WARNING,
    UNRESOLVED_REF_WARNING,
    DiagnosticLog,
    Specification,
)
from swagger_jmx.core.schema_nodes import (
    MISSING,
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    RefSchema,
    SchemaNode,
    StringSchema,
    empty_object,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 5

_COMPOSITION_KEYS = ("oneOf", "anyOf")


def resolve_pointer(document: dict[str, Any], ref: str) -> Optional[dict[str, Any]]:
    """Follow a local JSON pointer such as '#/components/schemas/Foo'.

    "~1" and "~0" escapes are decoded and numeric parts index into lists.

    Returns:
        Target mapping, or None for external refs, missing keys and
        non-mapping targets
    """
    if not ref.startswith("#/"):
        return None

    current: Any = document
    for raw_part in ref[2:].split("/"):
        part = raw_part.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None

    return current if isinstance(current, dict) else None


class SchemaResolver:
    """Resolve raw schemas against one specification.

    Args:
        spec: Specification whose document root $ref pointers refer to
        diagnostics: Log receiving resolver warnings
        max_depth: Depth at which a $ref stops being followed
    """

    def __init__(
        self,
        spec: Specification,
        diagnostics: DiagnosticLog,
        max_depth: int = MAX_DEPTH,
    ) -> None:
        self.spec = spec
        self.diagnostics = diagnostics
        self.max_depth = max_depth

    def resolve(self, node: Union[SchemaNode, dict[str, Any], None], depth: int = 0) -> SchemaNode:
        """Resolve a schema into a SchemaNode tree without $ref nodes.

        Args:
            node: Raw schema mapping, RefSchema, or an already resolved node
            depth: Current depth (0 for a top-level schema)

        Returns:
            Resolved SchemaNode. Unresolvable pointers and pointers reached
            at the depth limit yield an empty ObjectSchema.

        Example:
            >>> resolver = SchemaResolver(spec, DiagnosticLog())
            >>> resolver.resolve({"$ref": "#/components/schemas/User"})
            ObjectSchema(...)
        """
        if isinstance(node, RefSchema):
            return self._follow(node.ref, depth)
        if isinstance(node, SchemaNode):
            return node
        if not isinstance(node, dict):
            return empty_object()

        ref = node.get("$ref")
        if isinstance(ref, str):
            return self._follow(ref, depth)

        return self._classify(node, depth)

    def lookup(self, ref: str) -> Optional[dict[str, Any]]:
        """Follow a local JSON pointer like '#/components/schemas/Foo'."""
        return resolve_pointer(self.spec.document, ref)

    def _follow(self, ref: str, depth: int) -> SchemaNode:
        if depth >= self.max_depth:
            self.diagnostics.warn(
                SCHEMA_DEPTH_EXCEEDED_WARNING,
                f"Schema depth limit {self.max_depth} reached, using empty object",
                context=ref,
            )
            return empty_object()

        target = self.lookup(ref)
        if target is None:
            self.diagnostics.warn(
                UNRESOLVED_REF_WARNING,
                "Cannot resolve $ref, using empty object",
                context=ref,
            )
            return empty_object()

        return self.resolve(target, depth + 1)

    def _classify(self, raw: dict[str, Any], depth: int) -> SchemaNode:
        """Turn a $ref-free mapping into the matching variant."""
        common = self._common(raw)

        all_of = raw.get("allOf")
        if isinstance(all_of, list) and all_of:
            return self._merge_all_of(raw, all_of, depth, common)

        schema_type = self._declared_type(raw)

        if schema_type is None:
            for key in _COMPOSITION_KEYS:
                alternatives = raw.get(key)
                if isinstance(alternatives, list) and alternatives:
                    resolved = self.resolve(alternatives[0], depth)
                    if common["example"] is MISSING:
                        return resolved
                    return _with_example(resolved, common["example"])

        if schema_type == "object" or (schema_type is None and "properties" in raw):
            return ObjectSchema(properties=self._properties(raw, depth), **common)
        if schema_type == "array" or (schema_type is None and "items" in raw):
            items = raw.get("items")
            return ArraySchema(
                items=self.resolve(items, depth + 1) if isinstance(items, dict) else None,
                **common,
            )
        if schema_type == "string":
            fmt = raw.get("format")
            return StringSchema(format=fmt if isinstance(fmt, str) else None, **common)
        if schema_type == "integer":
            return IntegerSchema(minimum=_bound(raw, "minimum"), maximum=_bound(raw, "maximum"), **common)
        if schema_type == "number":
            return NumberSchema(minimum=_bound(raw, "minimum"), maximum=_bound(raw, "maximum"), **common)
        if schema_type == "boolean":
            return BooleanSchema(**common)
        if schema_type == "file":
            # Swagger 2.0 formData file upload
            return StringSchema(format="binary", **common)

        return ObjectSchema(**common)

    def _properties(self, raw: dict[str, Any], depth: int) -> dict[str, SchemaNode]:
        properties = raw.get("properties")
        if not isinstance(properties, dict):
            return {}
        return {str(name): self.resolve(sub, depth + 1) for name, sub in properties.items()}

    def _merge_all_of(
        self,
        raw: dict[str, Any],
        members: list[Any],
        depth: int,
        common: dict[str, Any],
    ) -> SchemaNode:
        """Merge allOf members into one object, properties in member order."""
        merged: dict[str, SchemaNode] = {}
        for member in members:
            resolved = self.resolve(member, depth)
            if isinstance(resolved, ObjectSchema):
                merged.update(resolved.properties)
            elif len(members) == 1:
                return resolved if common["example"] is MISSING else _with_example(resolved, common["example"])

        merged.update(self._properties(raw, depth))
        return ObjectSchema(properties=merged, **common)

    @staticmethod
    def _declared_type(raw: dict[str, Any]) -> Optional[str]:
        schema_type = raw.get("type")
        if isinstance(schema_type, list):
            # OpenAPI 3.1 type arrays such as ["string", "null"]
            non_null = [t for t in schema_type if isinstance(t, str) and t != "null"]
            return non_null[0] if non_null else None
        return schema_type if isinstance(schema_type, str) else None

    @staticmethod
    def _common(raw: dict[str, Any]) -> dict[str, Any]:
        examples = raw.get("examples")
        enum = raw.get("enum")
        return {
            "example": raw["example"] if "example" in raw else MISSING,
            "examples": list(examples) if isinstance(examples, list) else None,
            "enum": list(enum) if isinstance(enum, list) else None,
        }


def _bound(raw: dict[str, Any], key: str) -> Optional[float]:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _with_example(node: SchemaNode, example: Any) -> SchemaNode:
    """Copy of node carrying the outer schema's example."""
    return replace(node, example=example)
