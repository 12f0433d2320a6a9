"""Schema node variants.

A resolved schema is a tree of the dataclasses below. The set is closed:
resolver and synthesizer dispatch on these types only, and anything the
input document expresses differently (untyped nodes, allOf, oneOf) is
classified into one of them by the resolver.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


class _Missing:
    """Marker for "no example declared" (a declared null example is valid)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class SchemaNode:
    """Attributes shared by every schema variant.

    Attributes:
        example: Explicit example value, MISSING when not declared
        examples: List of examples (JSON Schema / OpenAPI 3.1 form)
        enum: Allowed values in declaration order
    """

    example: Any = MISSING
    examples: Optional[list[Any]] = None
    enum: Optional[list[Any]] = None


@dataclass(frozen=True)
class ObjectSchema(SchemaNode):
    """Object with ordered properties."""

    properties: dict[str, SchemaNode] = field(default_factory=dict)


@dataclass(frozen=True)
class ArraySchema(SchemaNode):
    """Array; items is None when the document declared no item schema."""

    items: Optional[SchemaNode] = None


@dataclass(frozen=True)
class StringSchema(SchemaNode):
    format: Optional[str] = None


@dataclass(frozen=True)
class IntegerSchema(SchemaNode):
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class NumberSchema(SchemaNode):
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class BooleanSchema(SchemaNode):
    """true/false value."""


@dataclass(frozen=True)
class RefSchema(SchemaNode):
    """Unresolved pointer. Never appears in resolver output."""

    ref: str = ""


def empty_object() -> ObjectSchema:
    """Fallback node used when resolution gives up."""
    return ObjectSchema()
