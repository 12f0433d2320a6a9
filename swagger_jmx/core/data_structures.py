"""Data structures shared by the compiler pipeline.

This module defines the dataclasses passed between pipeline stages:
the normalized specification, extracted operations, the generation
configuration, preset tables, diagnostics and the compile result.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from swagger_jmx.exceptions import InvalidConfigException

logger = logging.getLogger(__name__)

# Diagnostic codes
PARSE_ERROR = "ParseError"
EMPTY_SPEC_ERROR = "EmptySpecError"
UNRESOLVED_REF_WARNING = "UnresolvedRefWarning"
UNSUPPORTED_SECURITY_SCHEME_WARNING = "UnsupportedSecuritySchemeWarning"
SCHEMA_DEPTH_EXCEEDED_WARNING = "SchemaDepthExceededWarning"
INVALID_XML_CHARACTER_WARNING = "InvalidXmlCharacterWarning"
INVALID_BASE_URL_WARNING = "InvalidBaseUrlWarning"


class HttpMethod(str, Enum):
    """HTTP methods that produce a sampler."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @property
    def has_body(self) -> bool:
        """Methods that carry a synthesized JSON request body."""
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class GroupingStrategy(str, Enum):
    """How operations are split into thread groups."""

    BY_TAG = "by-tag"
    BY_PATH = "by-path"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal warning or the single fatal error of an invocation.

    Attributes:
        severity: "warning" or "error"
        code: Taxonomy name (e.g. "UnresolvedRefWarning")
        message: Human readable description
        context: Where it happened (JSON pointer, "GET /users", scheme name)
    """

    severity: str
    code: str
    message: str
    context: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class DiagnosticLog:
    """Accumulates diagnostics for one compiler invocation.

    Exact duplicates (same severity, code, message and context) are
    recorded once, so a cyclic schema visited from many properties
    does not flood the caller with identical warnings.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []
        self._seen: set[Diagnostic] = set()

    def warn(self, code: str, message: str, context: str = "") -> None:
        """Record a warning diagnostic."""
        self.add(Diagnostic(severity="warning", code=code, message=message, context=context))

    def add(self, diagnostic: Diagnostic) -> None:
        """Record a diagnostic unless an identical one is already present."""
        if diagnostic in self._seen:
            return
        self._seen.add(diagnostic)
        self._items.append(diagnostic)
        logger.info("%s: %s (%s)", diagnostic.code, diagnostic.message, diagnostic.context)

    @property
    def items(self) -> list[Diagnostic]:
        """Diagnostics in the order they were recorded."""
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        """Check if a fatal error was recorded."""
        return any(d.severity == "error" for d in self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True)
class Parameter:
    """An operation parameter.

    Attributes:
        name: Parameter name
        location: "path", "query", "header" or "cookie"
        required: Whether the parameter is required
        example: Example or default value from the spec, if any
    """

    name: str
    location: str
    required: bool = False
    example: Optional[Any] = None


@dataclass(frozen=True)
class Operation:
    """One path x method combination from the spec.

    Attributes:
        path: Path template as written in the spec (e.g. "/users/{id}")
        method: HTTP method
        operation_id: operationId from spec, if any
        summary: Operation summary, if any
        tags: Operation tags in declaration order
        parameters: Merged path-item and operation parameters
        request_body: Raw request body schema (may be a $ref mapping)
        content_type: Media type the request body was taken from
    """

    path: str
    method: HttpMethod
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    tags: tuple[str, ...] = ()
    parameters: tuple[Parameter, ...] = ()
    request_body: Optional[dict[str, Any]] = None
    content_type: Optional[str] = None

    @property
    def label(self) -> str:
        """Short "METHOD /path" label used in diagnostics and tables."""
        return f"{self.method.value} {self.path}"

    def parameters_in(self, location: str) -> list[Parameter]:
        """Return the parameters declared in the given location."""
        return [p for p in self.parameters if p.location == location]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "method": self.method.value,
            "operationId": self.operation_id,
            "summary": self.summary,
            "tags": list(self.tags),
            "parameters": [
                {"name": p.name, "in": p.location, "required": p.required}
                for p in self.parameters
            ],
            "content_type": self.content_type,
        }


@dataclass(frozen=True)
class Specification:
    """A decoded OpenAPI 3.x or Swagger 2.0 document.

    Attributes:
        paths: Path -> path item mapping, in document order
        schemas: components.schemas (v3) or definitions (v2)
        security_schemes: components.securitySchemes (v3) or securityDefinitions (v2)
        servers: Server URL candidates
        title: info.title
        version: "openapi" or "swagger" field value ("3.0.3", "2.0", ...)
        api_version: info.version
        default_base_url: Base URL derived from servers/host or the caller's value
        document: The whole decoded document, used for $ref lookup
    """

    paths: dict[str, Any]
    schemas: dict[str, Any] = field(default_factory=dict)
    security_schemes: dict[str, Any] = field(default_factory=dict)
    servers: tuple[str, ...] = ()
    title: str = "Untitled API"
    version: str = "Unknown"
    api_version: str = "1.0.0"
    default_base_url: str = ""
    document: dict[str, Any] = field(default_factory=dict)


# camelCase keys used by the surrounding application
_CONFIG_ALIASES = {
    "threadCount": "thread_count",
    "rampUpTime": "ramp_up_time",
    "loopCount": "loop_count",
    "duration": "duration",
    "baseUrl": "base_url",
    "testPlanName": "test_plan_name",
    "groupingStrategy": "grouping_strategy",
    "addAssertions": "add_assertions",
    "addCorrelation": "add_correlation",
    "generateCsvConfig": "generate_csv_config",
    "followRedirects": "follow_redirects",
    "useKeepAlive": "use_keep_alive",
    "enableReporting": "enable_reporting",
    "connectionTimeout": "connection_timeout",
    "responseTimeout": "response_timeout",
    "responseTimeThreshold": "response_time_threshold",
    "throughputThreshold": "throughput_threshold",
    "errorRateThreshold": "error_rate_threshold",
}

_POSITIVE_INT_FIELDS = (
    "thread_count",
    "ramp_up_time",
    "loop_count",
    "connection_timeout",
    "response_timeout",
    "response_time_threshold",
    "throughput_threshold",
)


@dataclass(frozen=True)
class GenerationConfig:
    """Options controlling test plan generation.

    Attributes:
        thread_count: Virtual users per thread group
        ramp_up_time: Ramp-up period in seconds
        loop_count: Iterations per thread
        duration: Test duration in seconds (None = iteration-based, no scheduler)
        base_url: Target base URL; empty means "use the spec's servers/host"
        test_plan_name: TestPlan element name
        grouping_strategy: by-tag or by-path
        add_assertions: Add status code and duration assertions per sampler
        add_correlation: Add JSON extractors for well-known id fields
        generate_csv_config: Add a CSV Data Set Config per thread group
        follow_redirects: Sampler follow_redirects flag
        use_keep_alive: Sampler use_keepalive flag
        enable_reporting: Add the three result listeners per thread group
        connection_timeout: Connect timeout in milliseconds
        response_timeout: Response timeout in milliseconds
        response_time_threshold: Max response time in milliseconds (duration assertion)
        throughput_threshold: Expected requests per second (documented in the plan)
        error_rate_threshold: Accepted error percentage (documented in the plan)
    """

    thread_count: int = 10
    ramp_up_time: int = 60
    loop_count: int = 1
    duration: Optional[int] = None
    base_url: str = ""
    test_plan_name: str = "API Performance Test"
    grouping_strategy: GroupingStrategy = GroupingStrategy.BY_TAG
    add_assertions: bool = True
    add_correlation: bool = True
    generate_csv_config: bool = False
    follow_redirects: bool = True
    use_keep_alive: bool = True
    enable_reporting: bool = True
    connection_timeout: int = 10000
    response_timeout: int = 30000
    response_time_threshold: int = 5000
    throughput_threshold: int = 100
    error_rate_threshold: int = 5

    def __post_init__(self) -> None:
        """Validate values and coerce the grouping strategy."""
        for name in _POSITIVE_INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfigException(
                    f"'{name}' must be a positive integer, got {value!r}", field_name=name
                )

        if self.duration is not None and (
            isinstance(self.duration, bool) or not isinstance(self.duration, int) or self.duration <= 0
        ):
            raise InvalidConfigException(
                f"'duration' must be a positive integer or None, got {self.duration!r}",
                field_name="duration",
            )

        if (
            isinstance(self.error_rate_threshold, bool)
            or not isinstance(self.error_rate_threshold, int)
            or not 0 <= self.error_rate_threshold <= 100
        ):
            raise InvalidConfigException(
                f"'error_rate_threshold' must be a percentage, got {self.error_rate_threshold!r}",
                field_name="error_rate_threshold",
            )

        try:
            strategy = GroupingStrategy(self.grouping_strategy)
        except ValueError:
            valid = ", ".join(s.value for s in GroupingStrategy)
            raise InvalidConfigException(
                f"Unknown grouping strategy '{self.grouping_strategy}'. Valid options: {valid}",
                field_name="grouping_strategy",
            ) from None
        # frozen dataclass: bypass __setattr__ to store the coerced enum
        object.__setattr__(self, "grouping_strategy", strategy)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationConfig":
        """Build a config from camelCase or snake_case keys.

        Unknown keys are ignored.

        Args:
            data: Mapping of option names to values

        Returns:
            Validated GenerationConfig

        Raises:
            InvalidConfigException: If a value is invalid

        Example:
            >>> GenerationConfig.from_dict({"threadCount": 5, "groupingStrategy": "by-path"})
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CONFIG_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["grouping_strategy"] = self.grouping_strategy.value
        return result


@dataclass(frozen=True)
class PlanPresets:
    """Constant tables used by the plan assembler.

    Attributes:
        standard_headers: Headers added to every thread group; "{group}" in a
            value is replaced with the group name
        correlation_fields: Response fields extracted with JSON extractors
        success_codes: Status codes the response assertion accepts
        csv_filename: CSV Data Set file name
        csv_variable_names: CSV Data Set column variables
    """

    standard_headers: tuple[tuple[str, str], ...] = (
        ("Content-Type", "application/json"),
        ("Accept", "application/json"),
        ("User-Agent", "JMeter Performance Test - {group}"),
    )
    correlation_fields: tuple[str, ...] = (
        "id",
        "userId",
        "orderId",
        "productId",
        "customerId",
        "petId",
    )
    success_codes: tuple[str, ...] = ("200", "201", "202", "204")
    csv_filename: str = "test-data.csv"
    csv_variable_names: tuple[str, ...] = ("userId", "orderId", "productId", "email")


DEFAULT_PRESETS = PlanPresets()


@dataclass
class CompileResult:
    """Result of one compiler invocation.

    Attributes:
        xml: The generated .jmx document, None when compilation failed
        operation_count: Number of operations turned into samplers
        group_count: Number of thread groups
        diagnostics: Warnings, or the single fatal error
        success: True if a document was produced
    """

    xml: Optional[str]
    operation_count: int = 0
    group_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)
    success: bool = True

    @property
    def warnings(self) -> list[Diagnostic]:
        """Non-fatal diagnostics."""
        return [d for d in self.diagnostics if d.severity == "warning"]

    @property
    def errors(self) -> list[Diagnostic]:
        """Fatal diagnostics."""
        return [d for d in self.diagnostics if d.severity == "error"]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "xml": self.xml,
            "operation_count": self.operation_count,
            "group_count": self.group_count,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
