"""Plan assembler: grouped operations to a plan element tree.

Builds the TestPlan root with plan-level variables and HTTP Request
Defaults, then one ThreadGroup per operation group holding the CSV data
set, header and auth managers, samplers and listeners.
"""

import json
import logging
import re
from collections.abc import Iterator
from typing import Any, Optional
from urllib.parse import urlparse

from swagger_jmx.core.data_structures import (
    DEFAULT_PRESETS,
    INVALID_BASE_URL_WARNING,
    UNSUPPORTED_SECURITY_SCHEME_WARNING,
    DiagnosticLog,
    GenerationConfig,
    Operation,
    Parameter,
    PlanPresets,
    Specification,
)
from swagger_jmx.core.operation_grouper import FORM_MEDIA_TYPE
from swagger_jmx.core.plan_elements import (
    AuthManager,
    CsvDataSet,
    DurationAssertion,
    HeaderManager,
    HttpDefaults,
    HttpSampler,
    JsonExtractor,
    PlanElement,
    ResponseAssertion,
    ResultCollector,
    TestPlan,
    ThreadGroup,
)
from swagger_jmx.core.sample_synthesizer import SampleSynthesizer, json_safe
from swagger_jmx.core.schema_resolver import SchemaResolver

logger = logging.getLogger(__name__)

PATH_PARAM_PATTERN = re.compile(r"\{([^}]+)\}")

FALLBACK_HOST = "localhost"
FALLBACK_PROTOCOL = "http"

BASE_URL_VAR = "BASE_URL"
BEARER_TOKEN_VAR = "BEARER_TOKEN"
BASIC_USERNAME_VAR = "BASIC_USERNAME"
BASIC_PASSWORD_VAR = "BASIC_PASSWORD"

ASSERTION_MESSAGE = "Expected successful HTTP status code (2xx)"

# (guiclass, testname prefix) for the per-group listeners
LISTENERS = (
    ("ViewResultsFullVisualizer", "View Results Tree"),
    ("SummaryReport", "Summary Report"),
    ("StatVisualizer", "Aggregate Report"),
)


def property_ref(name: str, default: Any) -> str:
    """JMeter property reference overridable with -J<name>=value."""
    return f"${{__P({name},{default})}}"


def jmeter_path(path: str) -> str:
    """Rewrite {param} path templates to ${param} variables."""
    return PATH_PARAM_PATTERN.sub(r"${\1}", path)


def parameter_ref(parameter: Parameter) -> str:
    """Placeholder for a query, header or form parameter.

    Parameters with an example or default become a property reference
    falling back to that value; the rest stay plain variables that a CSV
    data set or extractor can feed.

    Example:
        >>> parameter_ref(Parameter(name="limit", location="query", example=20))
        '${__P(limit,20)}'
    """
    if parameter.example is None:
        return f"${{{parameter.name}}}"
    default = _argument_value(parameter.example).replace(",", "\\,")
    return property_ref(parameter.name, default)


def scheme_variable(scheme_name: str) -> str:
    """Variable holding an API key, e.g. "api_key" -> "API_KEY_API_KEY"."""
    return "API_KEY_" + re.sub(r"[^A-Za-z0-9]", "_", scheme_name).upper()


class PlanAssembler:
    """Build the plan element tree from grouped operations.

    Args:
        config: Generation configuration
        presets: Header, correlation, assertion and CSV tables
        diagnostics: Log receiving assembler and resolver warnings

    Example:
        >>> assembler = PlanAssembler(GenerationConfig())
        >>> plan = assembler.assemble(spec, group_operations(extract_operations(spec)))
        >>> [tg.name for tg in plan.children[1:]]
        ['users Tests', 'orders Tests']
    """

    def __init__(
        self,
        config: GenerationConfig,
        presets: PlanPresets = DEFAULT_PRESETS,
        diagnostics: Optional[DiagnosticLog] = None,
    ) -> None:
        self.config = config
        self.presets = presets
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        # Header parameters never override headers the plan-level managers set
        self._managed_headers = {header.lower() for header, _ in presets.standard_headers}
        self._managed_headers.add("authorization")

    # === Test plan ===

    def build_test_plan(self, spec: Specification) -> TestPlan:
        """Create the TestPlan root with variables and HTTP Request Defaults.

        Args:
            spec: Normalized specification

        Returns:
            TestPlan whose only child is the HttpDefaults element
        """
        base_url = self.effective_base_url(spec)
        protocol, host, port, base_path = self._split_base_url(base_url)
        config = self.config

        variables = [
            (BASE_URL_VAR, property_ref(BASE_URL_VAR, base_url)),
            ("HOST", property_ref("HOST", host)),
            ("PORT", property_ref("PORT", port)),
            ("PROTOCOL", property_ref("PROTOCOL", protocol)),
            ("BASE_PATH", property_ref("BASE_PATH", base_path)),
            ("CONNECTION_TIMEOUT", property_ref("CONNECTION_TIMEOUT", config.connection_timeout)),
            ("RESPONSE_TIMEOUT", property_ref("RESPONSE_TIMEOUT", config.response_timeout)),
        ]
        variables.extend(self._auth_variables(spec))

        plan = TestPlan(
            name=config.test_plan_name,
            comments=self._comments(spec, base_url),
            variables=variables,
        )
        plan.add(
            HttpDefaults(
                name="HTTP Request Defaults",
                domain="${HOST}",
                port="${PORT}",
                protocol="${PROTOCOL}",
                connect_timeout="${CONNECTION_TIMEOUT}",
                response_timeout="${RESPONSE_TIMEOUT}",
            )
        )
        return plan

    def effective_base_url(self, spec: Specification) -> str:
        """Configured base URL, else the one derived from the document."""
        return (self.config.base_url or spec.default_base_url).rstrip("/")

    def _split_base_url(self, base_url: str) -> tuple[str, str, str, str]:
        """Return (protocol, host, port, base_path) for the base URL."""
        try:
            parsed = urlparse(base_url)
            port = str(parsed.port) if parsed.port else ""
        except ValueError:
            parsed, port = None, ""

        if parsed is None or not parsed.hostname:
            self.diagnostics.warn(
                INVALID_BASE_URL_WARNING,
                f"Base URL has no host, using {FALLBACK_PROTOCOL}://{FALLBACK_HOST}",
                context=base_url or "<empty>",
            )
            base_path = ""
            if parsed is not None and parsed.path.startswith("/"):
                base_path = parsed.path.rstrip("/")
            return FALLBACK_PROTOCOL, FALLBACK_HOST, "", base_path

        return parsed.scheme or FALLBACK_PROTOCOL, parsed.hostname, port, parsed.path.rstrip("/")

    def _comments(self, spec: Specification, base_url: str) -> str:
        config = self.config

        def toggle(flag: bool) -> str:
            return "Enabled" if flag else "Disabled"

        lines = [
            "Generated from OpenAPI/Swagger specification",
            f"API: {spec.title} {spec.api_version}",
            f"Swagger Version: {spec.version}",
            f"Base URL: {base_url}",
            f"Grouping Strategy: {config.grouping_strategy.value}",
            f"Assertions: {toggle(config.add_assertions)}",
            f"Correlation: {toggle(config.add_correlation)}",
            f"CSV Config: {toggle(config.generate_csv_config)}",
            f"Reporting: {toggle(config.enable_reporting)}",
            f"Response Time Threshold: {config.response_time_threshold} ms",
            f"Throughput Threshold: {config.throughput_threshold} req/s",
            f"Error Rate Threshold: {config.error_rate_threshold}%",
        ]
        return "\n".join(lines)

    # === Security ===

    def _security_entries(self, spec: Specification) -> list[tuple[str, str, dict[str, Any]]]:
        """Classify security schemes as (kind, scheme name, scheme).

        kind is "apiKey", "bearer" or "basic". Other schemes are reported
        with UnsupportedSecuritySchemeWarning and skipped.
        """
        entries = []
        for scheme_name, scheme in spec.security_schemes.items():
            if not isinstance(scheme, dict):
                continue
            scheme_type = str(scheme.get("type", ""))
            http_scheme = str(scheme.get("scheme", "")).lower()

            if scheme_type == "apiKey" and scheme.get("in") == "header" and scheme.get("name"):
                entries.append(("apiKey", scheme_name, scheme))
            elif scheme_type == "http" and http_scheme == "bearer":
                entries.append(("bearer", scheme_name, scheme))
            elif (scheme_type == "http" and http_scheme == "basic") or scheme_type == "basic":
                entries.append(("basic", scheme_name, scheme))
            else:
                detail = scheme_type or "untyped"
                if scheme_type == "apiKey":
                    detail = f"apiKey in {scheme.get('in', 'unknown')}"
                elif scheme_type == "http":
                    detail = f"http {http_scheme or 'unknown'}"
                self.diagnostics.warn(
                    UNSUPPORTED_SECURITY_SCHEME_WARNING,
                    f"Security scheme type '{detail}' is not supported, skipping",
                    context=str(scheme_name),
                )
        return entries

    def _auth_variables(self, spec: Specification) -> list[tuple[str, str]]:
        """Placeholder variables for the credentials the schemes need."""
        variables: list[tuple[str, str]] = []
        seen: set[str] = set()

        def add(name: str, placeholder: str) -> None:
            if name not in seen:
                seen.add(name)
                variables.append((name, property_ref(name, placeholder)))

        for kind, scheme_name, _ in self._security_entries(spec):
            if kind == "apiKey":
                add(scheme_variable(scheme_name), "your_api_key_here")
            elif kind == "bearer":
                add(BEARER_TOKEN_VAR, "your_bearer_token_here")
            else:
                add(BASIC_USERNAME_VAR, "your_username_here")
                add(BASIC_PASSWORD_VAR, "your_password_here")
        return variables

    def _auth_managers(self, spec: Specification) -> list[PlanElement]:
        managers: list[PlanElement] = []
        for kind, scheme_name, scheme in self._security_entries(spec):
            if kind == "apiKey":
                managers.append(
                    HeaderManager(
                        name=f"API Key Header Manager - {scheme_name}",
                        headers=[(str(scheme["name"]), f"${{{scheme_variable(scheme_name)}}}")],
                    )
                )
            elif kind == "bearer":
                managers.append(
                    HeaderManager(
                        name=f"Bearer Token Header Manager - {scheme_name}",
                        headers=[("Authorization", f"Bearer ${{{BEARER_TOKEN_VAR}}}")],
                    )
                )
            else:
                managers.append(
                    AuthManager(
                        name=f"HTTP Authorization Manager - {scheme_name}",
                        url=f"${{{BASE_URL_VAR}}}",
                        username=f"${{{BASIC_USERNAME_VAR}}}",
                        password=f"${{{BASIC_PASSWORD_VAR}}}",
                    )
                )
        return managers

    # === Thread groups ===

    def build_thread_group(
        self,
        name: str,
        operations: list[Operation],
        spec: Specification,
    ) -> ThreadGroup:
        """Create one ThreadGroup for a group of operations.

        Children, in order: optional CSV data set, standard header manager,
        security managers, one sampler per operation, then the three
        listeners when reporting is enabled.

        Args:
            name: Group name (tag or first path segment)
            operations: Operations in document order
            spec: Specification used for schema resolution and security

        Returns:
            Populated ThreadGroup
        """
        config = self.config

        if config.duration is not None:
            loops = "-1"  # duration limits execution
            scheduler = True
            duration = property_ref("duration", config.duration)
            delay = "0"
        else:
            loops = property_ref("loops", config.loop_count)
            scheduler = False
            duration = ""
            delay = ""

        thread_group = ThreadGroup(
            name=f"{name} Tests",
            num_threads=property_ref("threads", config.thread_count),
            ramp_time=property_ref("rampup", config.ramp_up_time),
            loops=loops,
            scheduler=scheduler,
            duration=duration,
            delay=delay,
        )

        if config.generate_csv_config:
            thread_group.add(
                CsvDataSet(
                    name="Test Data CSV Config",
                    filename=self.presets.csv_filename,
                    variable_names=",".join(self.presets.csv_variable_names),
                )
            )

        thread_group.add(
            HeaderManager(
                name=f"HTTP Header Manager - {name}",
                headers=[
                    (header, value.replace("{group}", name))
                    for header, value in self.presets.standard_headers
                ],
            )
        )

        for manager in self._auth_managers(spec):
            thread_group.add(manager)

        resolver = SchemaResolver(spec, self.diagnostics)
        for operation in operations:
            thread_group.add(self.build_sampler(operation, resolver))

        if config.enable_reporting:
            for gui_class, title in LISTENERS:
                thread_group.add(ResultCollector(name=f"{title} - {name}", gui_class=gui_class))

        logger.debug("Built thread group '%s' with %d samplers", thread_group.name, len(operations))
        return thread_group

    def iter_thread_groups(
        self,
        spec: Specification,
        groups: dict[str, list[Operation]],
    ) -> Iterator[ThreadGroup]:
        """Yield thread groups one at a time in group order."""
        for name, operations in groups.items():
            yield self.build_thread_group(name, operations, spec)

    def assemble(self, spec: Specification, groups: dict[str, list[Operation]]) -> TestPlan:
        """Build the whole plan tree.

        Args:
            spec: Normalized specification
            groups: Output of group_operations()

        Returns:
            TestPlan with HttpDefaults followed by one ThreadGroup per group
        """
        plan = self.build_test_plan(spec)
        for thread_group in self.iter_thread_groups(spec, groups):
            plan.add(thread_group)
        return plan

    # === Samplers ===

    def build_sampler(self, operation: Operation, resolver: SchemaResolver) -> HttpSampler:
        """Create the sampler for one operation with its assertions and extractors."""
        method = operation.method.value
        description = operation.summary or f"{method} {operation.path}"
        path = "${BASE_PATH}" + jmeter_path(operation.path)

        query_args = [
            (p.name, parameter_ref(p)) for p in operation.parameters_in("query") if p.name
        ]

        body: Optional[str] = None
        arguments: list[tuple[str, str]] = []
        extra_headers: list[tuple[str, str]] = []

        if operation.method.has_body and operation.request_body is not None:
            schema = resolver.resolve(operation.request_body)
            sample = SampleSynthesizer().synthesize(schema)
            if operation.content_type == FORM_MEDIA_TYPE and isinstance(sample, dict):
                arguments = [(key, _argument_value(value)) for key, value in sample.items()]
                extra_headers.append(("Content-Type", FORM_MEDIA_TYPE))
            else:
                body = json.dumps(sample, separators=(",", ":"), ensure_ascii=False)

        if operation.method.has_body and not arguments and operation.content_type == FORM_MEDIA_TYPE:
            # Swagger 2.0 formData parameters carry no schema
            arguments = [
                (p.name, parameter_ref(p)) for p in operation.parameters_in("formData") if p.name
            ]
            if arguments:
                extra_headers.append(("Content-Type", FORM_MEDIA_TYPE))

        if body is None:
            arguments = query_args + arguments
        elif query_args:
            path += "?" + "&".join(f"{name}={value}" for name, value in query_args)

        sampler = HttpSampler(
            name=f"[{method}] {operation.path} → {description}",
            path=path,
            method=method,
            follow_redirects=self.config.follow_redirects,
            use_keepalive=self.config.use_keep_alive,
            body=body,
            arguments=arguments,
            connect_timeout="${CONNECTION_TIMEOUT}",
            response_timeout="${RESPONSE_TIMEOUT}",
        )

        for param in operation.parameters_in("header"):
            if param.name and param.name.lower() not in self._managed_headers:
                extra_headers.append((param.name, parameter_ref(param)))
        if extra_headers:
            sampler.add(HeaderManager(name="Request Headers", headers=extra_headers))

        if self.config.add_assertions:
            sampler.add(
                ResponseAssertion(
                    name="HTTP Success Assertion",
                    test_strings=list(self.presets.success_codes),
                    custom_message=ASSERTION_MESSAGE,
                )
            )
            sampler.add(
                DurationAssertion(
                    name="Response Time Assertion",
                    max_duration=self.config.response_time_threshold,
                )
            )

        if self.config.add_correlation:
            for field_name in self.presets.correlation_fields:
                sampler.add(
                    JsonExtractor(
                        name=f"Extract {field_name}",
                        reference_name=field_name,
                        json_path=f"$.{field_name}",
                    )
                )

        return sampler


def _argument_value(value: Any) -> str:
    value = json_safe(value)
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
