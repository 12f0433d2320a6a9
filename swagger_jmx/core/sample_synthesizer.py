"""Sample data synthesis from resolved schemas.

Produces representative JSON values for request bodies. Values come from
declared examples and enums first, then from property-name heuristics,
then from per-type placeholders. No randomness and no clock reads are
involved, so the same schema always yields the same value.
"""

import datetime
import math
from typing import Any, Optional, Union

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
)

# (substrings, value) pairs, first match wins. Property names are lowercased.
STRING_NAME_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("email",), "sample@example.com"),
    (("url", "link"), "https://example.com"),
    (("phone",), "+1234567890"),
    (("address",), "123 Sample St"),
    (("city",), "Sample City"),
    (("country",), "Sample Country"),
    (("description", "comment"), "Sample description"),
    (("status",), "active"),
    (("type", "category"), "sample"),
)

STRING_FORMAT_HINTS: dict[str, str] = {
    "email": "sample@example.com",
    "uri": "https://example.com",
    "url": "https://example.com",
    "date": "2024-01-01",
    "date-time": "2024-01-01T00:00:00Z",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
}

INTEGER_NAME_HINTS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("count", "quantity"), 5),
    (("age",), 25),
    (("year",), 2024),
    (("month", "day"), 1),
    (("price", "amount"), 100),
)

NUMBER_NAME_HINTS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("price", "amount", "cost"), 99.99),
    (("rate", "percentage"), 0.15),
    (("weight",), 1.5),
    (("height",), 1.75),
)

BOOLEAN_TRUE_HINTS = ("active", "enabled", "available")
BOOLEAN_FALSE_HINTS = ("deleted", "disabled", "hidden")


def _match(name: str, hints: tuple[tuple[tuple[str, ...], Any], ...]) -> Any:
    for needles, value in hints:
        if any(needle in name for needle in needles):
            return value
    return MISSING


class SampleSynthesizer:
    """Generate sample values for resolved schema nodes.

    The id counter is shared by all values produced within one
    synthesize() call and restarts at start_counter on the next call.

    Example:
        >>> body = ObjectSchema(properties={"orderId": IntegerSchema(), "customerEmail": StringSchema()})
        >>> SampleSynthesizer().synthesize(body)
        {'orderId': 1, 'customerEmail': 'sample@example.com'}
    """

    def __init__(self, start_counter: int = 1) -> None:
        self.start_counter = start_counter
        self._counter = start_counter

    def synthesize(self, schema: SchemaNode, property_name: Optional[str] = None) -> Any:
        """Produce a JSON-compatible value for a resolved schema.

        Args:
            schema: Resolved schema node
            property_name: Name of the property the value is for, if any

        Returns:
            dict, list, str, int, float, bool or None (declared null example)
        """
        self._counter = self.start_counter
        return self._sample(schema, property_name)

    def _next_id(self) -> int:
        value = self._counter
        self._counter += 1
        return value

    def _sample(self, schema: SchemaNode, property_name: Optional[str]) -> Any:
        declared = _declared_value(schema)
        if declared is not MISSING:
            return declared

        name = property_name.lower() if property_name else ""

        if isinstance(schema, ObjectSchema):
            return {key: self._sample(sub, key) for key, sub in schema.properties.items()}
        if isinstance(schema, ArraySchema):
            if schema.items is None:
                return []
            return [self._sample(schema.items, None)]
        if isinstance(schema, StringSchema):
            return self._string(schema, property_name, name)
        if isinstance(schema, IntegerSchema):
            return self._integer(schema, name)
        if isinstance(schema, NumberSchema):
            return self._number(schema, name)
        if isinstance(schema, BooleanSchema):
            return self._boolean(name)
        if isinstance(schema, RefSchema):
            # Unresolved pointers carry no shape information
            return {}
        raise TypeError(f"Unsupported schema node: {type(schema).__name__}")

    def _string(self, schema: StringSchema, property_name: Optional[str], name: str) -> str:
        if name:
            if "id" in name:
                return str(self._next_id())
            if "name" in name:
                return f"sample{property_name[0].upper()}{property_name[1:]}"
            hinted = _match(name, STRING_NAME_HINTS)
            if hinted is not MISSING:
                return hinted

        if schema.format in STRING_FORMAT_HINTS:
            return STRING_FORMAT_HINTS[schema.format]

        return "sample"

    def _integer(self, schema: IntegerSchema, name: str) -> int:
        value = 1
        if name:
            if "id" in name:
                value = self._next_id()
            else:
                hinted = _match(name, INTEGER_NAME_HINTS)
                if hinted is not MISSING:
                    value = hinted

        lower = math.ceil(schema.minimum) if schema.minimum is not None else None
        upper = math.floor(schema.maximum) if schema.maximum is not None else None
        return int(_clamp(value, lower, upper))

    def _number(self, schema: NumberSchema, name: str) -> float:
        value = 1.0
        if name:
            hinted = _match(name, NUMBER_NAME_HINTS)
            if hinted is not MISSING:
                value = hinted
        return float(_clamp(value, schema.minimum, schema.maximum))

    def _boolean(self, name: str) -> bool:
        if any(hint in name for hint in BOOLEAN_TRUE_HINTS):
            return True
        if any(hint in name for hint in BOOLEAN_FALSE_HINTS):
            return False
        return True


def json_safe(value: Any) -> Any:
    """Replace YAML date and datetime values with ISO 8601 strings, recursively.

    Example:
        >>> json_safe({"start": datetime.date(2024, 5, 1)})
        {'start': '2024-05-01'}
    """
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def _declared_value(schema: SchemaNode) -> Any:
    """example, else first of examples, else first of enum."""
    if schema.example is not MISSING:
        return json_safe(schema.example)
    if schema.examples:
        return json_safe(schema.examples[0])
    if schema.enum:
        return json_safe(schema.enum[0])
    return MISSING


def _clamp(
    value: Union[int, float],
    lower: Optional[Union[int, float]],
    upper: Optional[Union[int, float]],
) -> Union[int, float]:
    if lower is not None and value < lower:
        value = lower
    if upper is not None and value > upper:
        value = upper
    return value
