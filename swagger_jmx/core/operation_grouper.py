"""Operation extraction and thread group partitioning.

Walks the specification's paths in document order, producing one
Operation per HTTP verb, and partitions operations into ordered groups
by first tag or by first path segment.
"""

import logging
from typing import Any, Optional, Union

from swagger_jmx.core.data_structures import (
    GroupingStrategy,
    HttpMethod,
    Operation,
    Parameter,
    Specification,
)
from swagger_jmx.core.schema_resolver import resolve_pointer

logger = logging.getLogger(__name__)

DEFAULT_TAG_GROUP = "Default"
ROOT_PATH_GROUP = "root"

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def extract_operations(spec: Specification) -> list[Operation]:
    """Collect every operation in the specification.

    Path items are visited in document order and verbs in the order they
    appear under the path item. Non-verb keys (vendor x- extensions,
    parameters, servers, summary, description, $ref) and non-mapping
    values are ignored.

    Args:
        spec: Normalized specification

    Returns:
        Operations in discovery order

    Example:
        >>> [op.label for op in extract_operations(spec)]
        ['GET /users', 'POST /users', 'GET /users/{id}']
    """
    operations: list[Operation] = []
    verbs = {m.value.lower(): m for m in HttpMethod}

    for path, path_item in spec.paths.items():
        if not isinstance(path_item, dict):
            continue

        path_params = path_item.get("parameters")
        path_params = path_params if isinstance(path_params, list) else []

        for key, raw_op in path_item.items():
            method = verbs.get(str(key).lower())
            if method is None or not isinstance(raw_op, dict):
                continue

            op_params = raw_op.get("parameters")
            op_params = op_params if isinstance(op_params, list) else []
            raw_params = _merge_parameters(path_params, op_params, spec)

            request_body, content_type = _request_body(raw_op, raw_params, spec)

            tags = raw_op.get("tags")
            tags = tuple(str(t) for t in tags) if isinstance(tags, list) else ()

            operations.append(
                Operation(
                    path=str(path),
                    method=method,
                    operation_id=_optional_str(raw_op.get("operationId")),
                    summary=_optional_str(raw_op.get("summary")),
                    tags=tags,
                    parameters=tuple(_to_parameter(p) for p in raw_params),
                    request_body=request_body,
                    content_type=content_type,
                )
            )

    logger.debug("Extracted %d operations", len(operations))
    return operations


def group_key(operation: Operation, strategy: GroupingStrategy) -> str:
    """Compute the group an operation belongs to.

    by-tag: first tag, or "Default". by-path: first non-empty path
    segment, or "root".
    """
    if GroupingStrategy(strategy) is GroupingStrategy.BY_TAG:
        for tag in operation.tags:
            if tag.strip():
                return tag
        return DEFAULT_TAG_GROUP

    for segment in operation.path.split("/"):
        if segment:
            return segment
    return ROOT_PATH_GROUP


def group_operations(
    operations: list[Operation],
    strategy: Union[GroupingStrategy, str] = GroupingStrategy.BY_TAG,
) -> dict[str, list[Operation]]:
    """Partition operations into ordered groups.

    Groups appear in first-seen order and each group keeps document order.
    Every operation lands in exactly one group.

    Args:
        operations: Operations from extract_operations()
        strategy: GroupingStrategy or its string value

    Returns:
        Mapping of group name to operations

    Raises:
        ValueError: Unknown strategy
    """
    strategy = GroupingStrategy(strategy)
    groups: dict[str, list[Operation]] = {}
    for operation in operations:
        groups.setdefault(group_key(operation, strategy), []).append(operation)

    logger.debug("Grouped %d operations into %d groups (%s)", len(operations), len(groups), strategy.value)
    return groups


def _merge_parameters(
    path_params: list[Any],
    op_params: list[Any],
    spec: Specification,
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level wins on conflict (same name + in). Parameter $refs are
    followed one hop; unresolvable ones are dropped.
    """
    by_key: dict[tuple[str, str], dict[str, Any]] = {}
    for raw in list(path_params) + list(op_params):
        param = _deref(raw, spec)
        if param is None:
            continue
        by_key[(str(param.get("name", "")), str(param.get("in", "")))] = param
    return list(by_key.values())


def _deref(raw: Any, spec: Specification) -> Optional[dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    ref = raw.get("$ref")
    if not isinstance(ref, str):
        return raw
    return resolve_pointer(spec.document, ref)


def _request_body(
    raw_op: dict[str, Any],
    raw_params: list[dict[str, Any]],
    spec: Specification,
) -> tuple[Optional[dict[str, Any]], Optional[str]]:
    """Pick the request body schema and its media type.

    v3: requestBody.content preferring application/json, then any +json
    type, then the first declared type. v2: the 'in: body' parameter's
    schema, or formData parameters (form encoded, no schema).
    """
    request_body = _deref(raw_op.get("requestBody"), spec)
    if request_body is not None:
        content = request_body.get("content")
        if isinstance(content, dict) and content:
            media_type = _preferred_media_type(content)
            media = content.get(media_type)
            schema = media.get("schema") if isinstance(media, dict) else None
            return (schema if isinstance(schema, dict) else None), media_type

    for param in raw_params:
        if param.get("in") == "body":
            schema = param.get("schema")
            return (schema if isinstance(schema, dict) else None), JSON_MEDIA_TYPE

    if any(param.get("in") == "formData" for param in raw_params):
        return None, FORM_MEDIA_TYPE

    return None, None


def _preferred_media_type(content: dict[str, Any]) -> str:
    if JSON_MEDIA_TYPE in content:
        return JSON_MEDIA_TYPE
    for media_type in content:
        if str(media_type).split(";")[0].strip().endswith("+json"):
            return media_type
    return next(iter(content))


def _to_parameter(raw: dict[str, Any]) -> Parameter:
    example = raw.get("example")
    if example is None:
        schema = raw.get("schema")
        if isinstance(schema, dict):
            example = schema.get("example", schema.get("default"))
        else:
            example = raw.get("default")
    return Parameter(
        name=str(raw.get("name", "")),
        location=str(raw.get("in", "")),
        required=bool(raw.get("required", False)),
        example=example,
    )


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
