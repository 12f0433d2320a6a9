"""Tests for Plan Assembler module."""

import datetime
import json

import pytest

from swagger_jmx.core.data_structures import (
    DiagnosticLog,
    GenerationConfig,
    HttpMethod,
    Operation,
    Parameter,
    Specification,
)
from swagger_jmx.core.operation_grouper import extract_operations, group_operations
from swagger_jmx.core.plan_assembler import (
    PlanAssembler,
    jmeter_path,
    parameter_ref,
    property_ref,
    scheme_variable,
)
from swagger_jmx.core.plan_elements import (
    AuthManager,
    CsvDataSet,
    DurationAssertion,
    HeaderManager,
    HttpDefaults,
    HttpSampler,
    JsonExtractor,
    ResponseAssertion,
    ResultCollector,
    ThreadGroup,
)
from swagger_jmx.core.schema_resolver import SchemaResolver
from swagger_jmx.core.spec_normalizer import SpecNormalizer


def _assemble(text: str, config: GenerationConfig = None, diagnostics: DiagnosticLog = None):
    spec = SpecNormalizer().normalize(text)
    config = config or GenerationConfig()
    assembler = PlanAssembler(config, diagnostics=diagnostics)
    groups = group_operations(extract_operations(spec), config.grouping_strategy)
    return assembler.assemble(spec, groups)


def _samplers(plan) -> list[HttpSampler]:
    return [element for element in plan.walk() if isinstance(element, HttpSampler)]


class TestHelpers:
    """Tests for module-level helpers."""

    def test_property_ref(self):
        assert property_ref("threads", 10) == "${__P(threads,10)}"

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/users/{id}", "/users/${id}"),
            ("/a/{x}/b/{y}", "/a/${x}/b/${y}"),
            ("/plain", "/plain"),
        ],
    )
    def test_jmeter_path(self, path, expected):
        assert jmeter_path(path) == expected

    @pytest.mark.parametrize(
        "parameter,expected",
        [
            (Parameter(name="limit", location="query", example=20), "${__P(limit,20)}"),
            (Parameter(name="limit", location="query"), "${limit}"),
            (Parameter(name="tags", location="query", example="a,b"), "${__P(tags,a\\,b)}"),
            (Parameter(name="flag", location="header", example=True), "${__P(flag,true)}"),
            (Parameter(name="since", location="query", example=datetime.date(2024, 5, 1)), "${__P(since,2024-05-01)}"),
        ],
    )
    def test_parameter_ref(self, parameter, expected):
        assert parameter_ref(parameter) == expected

    def test_scheme_variable(self):
        assert scheme_variable("api_key") == "API_KEY_API_KEY"
        assert scheme_variable("x-token") == "API_KEY_X_TOKEN"


class TestBuildTestPlan:
    """Tests for the TestPlan root."""

    def test_variables_from_base_url(self, single_get_spec):
        plan = _assemble(single_get_spec)
        variables = dict(plan.variables)

        assert variables["BASE_URL"] == "${__P(BASE_URL,https://api.example.com/v1)}"
        assert variables["HOST"] == "${__P(HOST,api.example.com)}"
        assert variables["PORT"] == "${__P(PORT,)}"
        assert variables["PROTOCOL"] == "${__P(PROTOCOL,https)}"
        assert variables["BASE_PATH"] == "${__P(BASE_PATH,/v1)}"
        assert variables["CONNECTION_TIMEOUT"] == "${__P(CONNECTION_TIMEOUT,10000)}"
        assert variables["RESPONSE_TIMEOUT"] == "${__P(RESPONSE_TIMEOUT,30000)}"

    def test_explicit_port(self, tagged_spec_yaml):
        variables = dict(_assemble(tagged_spec_yaml).variables)

        assert variables["HOST"] == "${__P(HOST,localhost)}"
        assert variables["PORT"] == "${__P(PORT,8080)}"
        assert variables["BASE_PATH"] == "${__P(BASE_PATH,/api)}"

    def test_configured_base_url_wins(self, single_get_spec):
        config = GenerationConfig(base_url="http://staging.internal:9000/")

        plan = _assemble(single_get_spec, config)
        variables = dict(plan.variables)

        assert variables["BASE_URL"] == "${__P(BASE_URL,http://staging.internal:9000)}"
        assert variables["BASE_PATH"] == "${__P(BASE_PATH,)}"
        assert "Base URL: http://staging.internal:9000" in plan.comments

    def test_base_url_without_host_warns(self):
        diagnostics = DiagnosticLog()
        text = '{"openapi": "3.0.0", "servers": [{"url": "/api"}], "paths": {"/a": {"get": {}}}}'

        plan = _assemble(text, diagnostics=diagnostics)
        variables = dict(plan.variables)

        assert variables["HOST"] == "${__P(HOST,localhost)}"
        assert variables["PROTOCOL"] == "${__P(PROTOCOL,http)}"
        assert variables["BASE_PATH"] == "${__P(BASE_PATH,/api)}"
        assert [d.code for d in diagnostics.items] == ["InvalidBaseUrlWarning"]

    def test_http_defaults_child(self, single_get_spec):
        plan = _assemble(single_get_spec)
        defaults = plan.children[0]

        assert isinstance(defaults, HttpDefaults)
        assert defaults.name == "HTTP Request Defaults"
        assert defaults.domain == "${HOST}"
        assert defaults.protocol == "${PROTOCOL}"
        assert defaults.connect_timeout == "${CONNECTION_TIMEOUT}"

    def test_comments(self, tagged_spec_yaml):
        plan = _assemble(tagged_spec_yaml, GenerationConfig(add_correlation=False))

        assert plan.name == "API Performance Test"
        assert "API: Shop API 1.2.0" in plan.comments
        assert "Swagger Version: 3.0.0" in plan.comments
        assert "Correlation: Disabled" in plan.comments
        assert "Assertions: Enabled" in plan.comments
        assert "Error Rate Threshold: 5%" in plan.comments


class TestThreadGroups:
    """Tests for thread group construction."""

    def test_one_thread_group_per_group(self, tagged_spec_yaml):
        plan = _assemble(tagged_spec_yaml)

        thread_groups = [c for c in plan.children if isinstance(c, ThreadGroup)]

        assert [tg.name for tg in thread_groups] == ["users Tests", "orders Tests"]

    def test_loop_based_settings(self, single_get_spec):
        config = GenerationConfig(thread_count=25, ramp_up_time=5, loop_count=3)

        thread_group = _assemble(single_get_spec, config).children[1]

        assert thread_group.num_threads == "${__P(threads,25)}"
        assert thread_group.ramp_time == "${__P(rampup,5)}"
        assert thread_group.loops == "${__P(loops,3)}"
        assert thread_group.scheduler is False
        assert thread_group.duration == ""

    def test_duration_based_settings(self, single_get_spec):
        thread_group = _assemble(single_get_spec, GenerationConfig(duration=300)).children[1]

        assert thread_group.loops == "-1"
        assert thread_group.scheduler is True
        assert thread_group.duration == "${__P(duration,300)}"
        assert thread_group.delay == "0"

    def test_child_order(self, single_get_spec):
        config = GenerationConfig(generate_csv_config=True)

        thread_group = _assemble(single_get_spec, config).children[1]
        kinds = [type(child) for child in thread_group.children]

        assert kinds == [
            CsvDataSet,
            HeaderManager,
            HttpSampler,
            ResultCollector,
            ResultCollector,
            ResultCollector,
        ]

    def test_standard_headers(self, single_get_spec):
        thread_group = _assemble(single_get_spec).children[1]
        header_manager = thread_group.children[0]

        assert header_manager.name == "HTTP Header Manager - Default"
        assert header_manager.headers == [
            ("Content-Type", "application/json"),
            ("Accept", "application/json"),
            ("User-Agent", "JMeter Performance Test - Default"),
        ]

    def test_csv_data_set(self, single_get_spec):
        thread_group = _assemble(single_get_spec, GenerationConfig(generate_csv_config=True)).children[1]
        csv = thread_group.children[0]

        assert csv.filename == "test-data.csv"
        assert csv.variable_names == "userId,orderId,productId,email"

    def test_listeners(self, single_get_spec):
        thread_group = _assemble(single_get_spec).children[1]
        listeners = [c for c in thread_group.children if isinstance(c, ResultCollector)]

        assert [(l.gui_class, l.name) for l in listeners] == [
            ("ViewResultsFullVisualizer", "View Results Tree - Default"),
            ("SummaryReport", "Summary Report - Default"),
            ("StatVisualizer", "Aggregate Report - Default"),
        ]

    def test_reporting_disabled(self, single_get_spec):
        plan = _assemble(single_get_spec, GenerationConfig(enable_reporting=False))

        assert not any(isinstance(e, ResultCollector) for e in plan.walk())


class TestSecurity:
    """Tests for security scheme managers."""

    def test_bearer(self, bearer_spec):
        plan = _assemble(bearer_spec)
        thread_group = plan.children[1]

        bearer = thread_group.children[1]
        assert bearer.name == "Bearer Token Header Manager - bearerAuth"
        assert bearer.headers == [("Authorization", "Bearer ${BEARER_TOKEN}")]
        assert dict(plan.variables)["BEARER_TOKEN"] == "${__P(BEARER_TOKEN,your_bearer_token_here)}"

    def test_swagger2_schemes(self, swagger2_spec_yaml):
        diagnostics = DiagnosticLog()

        plan = _assemble(swagger2_spec_yaml, diagnostics=diagnostics)
        thread_group = plan.children[1]
        variables = dict(plan.variables)

        api_key = thread_group.children[1]
        assert api_key.name == "API Key Header Manager - api_key"
        assert api_key.headers == [("api_key", "${API_KEY_API_KEY}")]

        basic = thread_group.children[2]
        assert isinstance(basic, AuthManager)
        assert basic.username == "${BASIC_USERNAME}"
        assert basic.password == "${BASIC_PASSWORD}"
        assert basic.url == "${BASE_URL}"

        assert variables["API_KEY_API_KEY"] == "${__P(API_KEY_API_KEY,your_api_key_here)}"
        assert "BASIC_USERNAME" in variables
        assert "BASIC_PASSWORD" in variables

        unsupported = [d for d in diagnostics.items if d.code == "UnsupportedSecuritySchemeWarning"]
        assert len(unsupported) == 1
        assert unsupported[0].context == "petstore_auth"

    def test_api_key_in_query_unsupported(self):
        diagnostics = DiagnosticLog()
        text = json.dumps(
            {
                "openapi": "3.0.0",
                "servers": [{"url": "https://x.example.com"}],
                "paths": {"/a": {"get": {}}},
                "components": {"securitySchemes": {"q": {"type": "apiKey", "in": "query", "name": "key"}}},
            }
        )

        plan = _assemble(text, diagnostics=diagnostics)

        assert "apiKey in query" in diagnostics.items[0].message
        assert not any(
            isinstance(e, HeaderManager) and e.name.startswith("API Key") for e in plan.walk()
        )


class TestBuildSampler:
    """Tests for sampler construction."""

    @pytest.fixture
    def assembler(self) -> PlanAssembler:
        return PlanAssembler(GenerationConfig())

    @pytest.fixture
    def resolver(self) -> SchemaResolver:
        spec = Specification(paths={"/a": {}}, document={"paths": {"/a": {}}})
        return SchemaResolver(spec, DiagnosticLog())

    def test_get_sampler(self, single_get_spec):
        sampler = _samplers(_assemble(single_get_spec))[0]

        assert sampler.name == "[GET] /users/{id} → Get user"
        assert sampler.path == "${BASE_PATH}/users/${id}"
        assert sampler.method == "GET"
        assert sampler.body is None
        assert sampler.connect_timeout == "${CONNECTION_TIMEOUT}"

    def test_name_without_summary(self, assembler, resolver):
        sampler = assembler.build_sampler(Operation(path="/ping", method=HttpMethod.HEAD), resolver)

        assert sampler.name == "[HEAD] /ping → HEAD /ping"

    def test_post_body(self, orders_post_spec):
        sampler = _samplers(_assemble(orders_post_spec))[0]

        assert sampler.body == '{"orderId":1,"customerEmail":"sample@example.com"}'
        assert sampler.arguments == []

    def test_ref_body(self, tagged_spec_yaml):
        samplers = _samplers(_assemble(tagged_spec_yaml))
        post = next(s for s in samplers if s.method == "POST")

        assert json.loads(post.body) == {
            "accountId": 1,
            "displayName": "sampleDisplayName",
            "active": True,
        }

    def test_query_parameters_as_arguments(self, tagged_spec_yaml):
        samplers = _samplers(_assemble(tagged_spec_yaml))

        assert samplers[0].arguments == [("limit", "${limit}")]
        assert samplers[0].path == "${BASE_PATH}/users"

    def test_query_appended_when_body_present(self, assembler, resolver):
        operation = Operation(
            path="/items",
            method=HttpMethod.PUT,
            parameters=(Parameter(name="dryRun", location="query"),),
            request_body={"type": "object", "properties": {"count": {"type": "integer"}}},
            content_type="application/json",
        )

        sampler = assembler.build_sampler(operation, resolver)

        assert sampler.path == "${BASE_PATH}/items?dryRun=${dryRun}"
        assert sampler.body == '{"count":5}'

    def test_parameter_examples_become_defaults(self, assembler, resolver):
        operation = Operation(
            path="/items",
            method=HttpMethod.GET,
            parameters=(
                Parameter(name="limit", location="query", example=20),
                Parameter(name="cursor", location="query"),
                Parameter(name="X-Tenant", location="header", example="acme"),
            ),
        )

        sampler = assembler.build_sampler(operation, resolver)
        headers = [c for c in sampler.children if isinstance(c, HeaderManager)]

        assert sampler.arguments == [("limit", "${__P(limit,20)}"), ("cursor", "${cursor}")]
        assert headers[0].headers == [("X-Tenant", "${__P(X-Tenant,acme)}")]

    def test_form_example_keeps_blank_lines(self, assembler, resolver):
        operation = Operation(
            path="/notes",
            method=HttpMethod.POST,
            request_body={
                "type": "object",
                "properties": {"text": {"type": "string", "example": "line one\n\nline three"}},
            },
            content_type="application/x-www-form-urlencoded",
        )

        assert assembler.build_sampler(operation, resolver).arguments == [("text", "line one\n\nline three")]

    def test_get_with_body_schema_sends_no_body(self, assembler, resolver):
        operation = Operation(
            path="/search",
            method=HttpMethod.GET,
            request_body={"type": "object"},
            content_type="application/json",
        )

        assert assembler.build_sampler(operation, resolver).body is None

    def test_swagger2_form_data(self, swagger2_spec_yaml):
        samplers = _samplers(_assemble(swagger2_spec_yaml))
        form = next(s for s in samplers if s.name.startswith("[POST] /pet/{petId}"))

        assert form.path == "${BASE_PATH}/pet/${petId}"
        assert form.body is None
        assert form.arguments == [("name", "${name}"), ("status", "${status}")]
        headers = [c for c in form.children if isinstance(c, HeaderManager)]
        assert headers[0].headers == [("Content-Type", "application/x-www-form-urlencoded")]

    def test_swagger2_body(self, swagger2_spec_yaml):
        samplers = _samplers(_assemble(swagger2_spec_yaml))
        add_pet = next(s for s in samplers if s.name.startswith("[POST] /pet →"))

        assert json.loads(add_pet.body) == {
            "id": 1,
            "name": "doggie",
            "photoUrls": ["sample"],
            "status": "available",
        }

    def test_v3_form_body(self, assembler, resolver):
        operation = Operation(
            path="/login",
            method=HttpMethod.POST,
            request_body={
                "type": "object",
                "properties": {"username": {"type": "string"}, "remember": {"type": "boolean"}},
            },
            content_type="application/x-www-form-urlencoded",
        )

        sampler = assembler.build_sampler(operation, resolver)

        assert sampler.body is None
        assert sampler.arguments == [("username", "sampleUsername"), ("remember", "true")]

    def test_header_parameters(self, assembler, resolver):
        operation = Operation(
            path="/items",
            method=HttpMethod.GET,
            parameters=(
                Parameter(name="X-Request-Id", location="header"),
                Parameter(name="Accept", location="header"),
                Parameter(name="Authorization", location="header"),
            ),
        )

        sampler = assembler.build_sampler(operation, resolver)
        headers = [c for c in sampler.children if isinstance(c, HeaderManager)]

        assert len(headers) == 1
        assert headers[0].name == "Request Headers"
        assert headers[0].headers == [("X-Request-Id", "${X-Request-Id}")]

    def test_assertions_and_extractors(self, assembler, resolver):
        sampler = assembler.build_sampler(Operation(path="/a", method=HttpMethod.GET), resolver)

        response_assertion = sampler.children[0]
        assert isinstance(response_assertion, ResponseAssertion)
        assert response_assertion.test_strings == ["200", "201", "202", "204"]
        assert response_assertion.custom_message == "Expected successful HTTP status code (2xx)"

        duration_assertion = sampler.children[1]
        assert isinstance(duration_assertion, DurationAssertion)
        assert duration_assertion.max_duration == 5000

        extractors = [c for c in sampler.children if isinstance(c, JsonExtractor)]
        assert [e.reference_name for e in extractors] == [
            "id",
            "userId",
            "orderId",
            "productId",
            "customerId",
            "petId",
        ]
        assert extractors[0].json_path == "$.id"
        assert extractors[0].name == "Extract id"

    def test_toggles_remove_children(self, resolver):
        assembler = PlanAssembler(GenerationConfig(add_assertions=False, add_correlation=False))

        sampler = assembler.build_sampler(Operation(path="/a", method=HttpMethod.GET), resolver)

        assert sampler.children == []

    def test_redirect_and_keepalive_flags(self, resolver):
        assembler = PlanAssembler(GenerationConfig(follow_redirects=False, use_keep_alive=False))

        sampler = assembler.build_sampler(Operation(path="/a", method=HttpMethod.GET), resolver)

        assert sampler.follow_redirects is False
        assert sampler.use_keepalive is False
