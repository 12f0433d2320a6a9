"""Typed plan element tree.

The plan assembler builds a tree of these nodes and the JMX serializer
renders it. Nodes carry only the values that end up in the document plus
the list of children they own; a node is never attached to two parents.
"""

from dataclasses import dataclass, field
from typing import Optional

# (name, value) pairs keep declaration order and allow repeated names
NameValue = tuple[str, str]


@dataclass
class PlanElement:
    """Base for all plan elements."""

    name: str
    enabled: bool = True
    children: list["PlanElement"] = field(default_factory=list)

    def add(self, child: "PlanElement") -> "PlanElement":
        """Append a child and return it."""
        self.children.append(child)
        return child

    def walk(self):
        """Yield this element and its descendants, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class TestPlan(PlanElement):
    """Root element.

    Attributes:
        comments: Free text shown in the TestPlan comments field
        variables: User defined variables, in order
    """

    __test__ = False  # keep pytest from collecting this class

    comments: str = ""
    variables: list[NameValue] = field(default_factory=list)


@dataclass
class HttpDefaults(PlanElement):
    """HTTP Request Defaults inherited by every sampler."""

    domain: str = ""
    port: str = ""
    protocol: str = ""
    content_encoding: str = "UTF-8"
    connect_timeout: str = ""
    response_timeout: str = ""


@dataclass
class ThreadGroup(PlanElement):
    num_threads: str = "1"
    ramp_time: str = "0"
    loops: str = "1"
    scheduler: bool = False
    duration: str = ""
    delay: str = ""
    on_sample_error: str = "continue"


@dataclass
class HttpSampler(PlanElement):
    """One HTTP request.

    Domain, port and protocol are left empty so they are inherited from
    HttpDefaults.

    Attributes:
        path: Request path with ${var} placeholders
        method: HTTP method
        body: Raw request body, None for argument-style requests
        arguments: Query or form arguments (ignored when body is set)
    """

    path: str = "/"
    method: str = "GET"
    follow_redirects: bool = True
    use_keepalive: bool = True
    body: Optional[str] = None
    arguments: list[NameValue] = field(default_factory=list)
    connect_timeout: str = ""
    response_timeout: str = ""


@dataclass
class ResponseAssertion(PlanElement):
    test_strings: list[str] = field(default_factory=list)
    custom_message: str = ""
    test_field: str = "Assertion.response_code"
    # 33 = Equals (1 << 3) | Or (1 << 5)
    test_type: int = 33
    assume_success: bool = False


@dataclass
class DurationAssertion(PlanElement):
    max_duration: int = 0


@dataclass
class JsonExtractor(PlanElement):
    reference_name: str = ""
    json_path: str = ""
    match_number: str = "1"
    default_value: str = "NOT_FOUND"


@dataclass
class HeaderManager(PlanElement):
    headers: list[NameValue] = field(default_factory=list)


@dataclass
class AuthManager(PlanElement):
    url: str = ""
    username: str = ""
    password: str = ""
    domain: str = ""
    realm: str = ""


@dataclass
class CsvDataSet(PlanElement):
    filename: str = ""
    variable_names: str = ""
    delimiter: str = ","
    file_encoding: str = "UTF-8"
    ignore_first_line: bool = True
    quoted_data: bool = False
    recycle: bool = True
    share_mode: str = "shareMode.all"
    stop_thread: bool = False


@dataclass
class ResultCollector(PlanElement):
    """Listener; gui_class selects the visualizer (tree, summary, aggregate)."""

    gui_class: str = "ViewResultsFullVisualizer"
    filename: str = ""
