"""JMX serializer for plan element trees.

Renders a TestPlan tree into the JMeter .jmx XML dialect. Every element is
emitted followed by its hashTree container holding the element's children,
walking the tree depth-first in pre-order.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Callable, Optional
from xml.dom import minidom

from swagger_jmx.core.data_structures import INVALID_XML_CHARACTER_WARNING, DiagnosticLog
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
from swagger_jmx.exceptions import JMXSerializationException

logger = logging.getLogger(__name__)

JMETER_VERSION = "5.4.1"

# Characters not allowed anywhere in an XML 1.0 document
ILLEGAL_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

# SampleSaveConfiguration fields shared by all listeners
SAVE_CONFIG = (
    ("time", "true"),
    ("latency", "true"),
    ("timestamp", "true"),
    ("success", "true"),
    ("label", "true"),
    ("code", "true"),
    ("message", "true"),
    ("threadName", "true"),
    ("dataType", "true"),
    ("encoding", "false"),
    ("assertions", "true"),
    ("subresults", "true"),
    ("responseData", "false"),
    ("samplerData", "false"),
    ("xml", "false"),
    ("fieldNames", "true"),
    ("responseHeaders", "false"),
    ("requestHeaders", "false"),
    ("responseDataOnError", "false"),
    ("saveAssertionResultsFailureMessage", "true"),
    ("assertionsResultsToSave", "0"),
    ("bytes", "true"),
    ("sentBytes", "true"),
    ("url", "true"),
    ("threadCounts", "true"),
    ("idleTime", "true"),
    ("connectTime", "true"),
)


def java_string_hash(value: str) -> int:
    """Java String.hashCode(), used by JMeter for collection entry names.

    Example:
        >>> java_string_hash("200")
        49586
    """
    h = 0
    for ch in value:
        h = (31 * h + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def _bool(value: bool) -> str:
    return "true" if value else "false"


class JMXSerializer:
    """Render plan element trees as .jmx documents.

    Args:
        diagnostics: Log receiving InvalidXmlCharacterWarning entries
    """

    def __init__(self, diagnostics: Optional[DiagnosticLog] = None) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self._builders: dict[type, Callable[[PlanElement], ET.Element]] = {
            TestPlan: self._test_plan,
            HttpDefaults: self._http_defaults,
            ThreadGroup: self._thread_group,
            HttpSampler: self._http_sampler,
            ResponseAssertion: self._response_assertion,
            DurationAssertion: self._duration_assertion,
            JsonExtractor: self._json_extractor,
            HeaderManager: self._header_manager,
            AuthManager: self._auth_manager,
            CsvDataSet: self._csv_data_set,
            ResultCollector: self._result_collector,
        }
        self._context = ""

    def serialize(self, plan: TestPlan) -> str:
        """Render the plan tree.

        Args:
            plan: Root of the plan tree

        Returns:
            Pretty-printed XML document (2-space indent, UTF-8 declaration)

        Raises:
            JMXSerializationException: An element type has no builder or the
                document cannot be rendered
        """
        root = ET.Element(
            "jmeterTestPlan", {"version": "1.2", "properties": "5.0", "jmeter": JMETER_VERSION}
        )
        top = ET.SubElement(root, "hashTree")
        self._emit(plan, top)

        try:
            rough_string = ET.tostring(root, encoding="unicode")
            reparsed = minidom.parseString(rough_string)
            pretty_xml = reparsed.toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")
        except Exception as e:
            raise JMXSerializationException(f"Failed to render JMX document: {str(e)}") from e

        # Indentation goes between tags only; text content is written verbatim
        return pretty_xml if pretty_xml.endswith("\n") else pretty_xml + "\n"

    def _emit(self, element: PlanElement, parent: ET.Element) -> None:
        """Append element and its hashTree to parent, then recurse."""
        builder = self._builders.get(type(element))
        if builder is None:
            raise JMXSerializationException(
                f"No serializer for plan element type {type(element).__name__}"
            )
        self._context = element.name
        parent.append(builder(element))
        container = ET.SubElement(parent, "hashTree")
        for child in element.children:
            self._emit(child, container)

    # === Helpers ===

    def _text(self, value: str) -> str:
        """Strip characters XML 1.0 cannot carry, recording a warning."""
        cleaned = ILLEGAL_XML_CHARS.sub("", value)
        if cleaned != value:
            self.diagnostics.warn(
                INVALID_XML_CHARACTER_WARNING,
                "Removed characters not allowed in XML",
                context=self._context,
            )
        return cleaned

    def _element(self, tag: str, gui_class: str, element: PlanElement) -> ET.Element:
        return ET.Element(
            tag,
            {
                "guiclass": gui_class,
                "testclass": tag,
                "testname": self._text(element.name),
                "enabled": _bool(element.enabled),
            },
        )

    def _string_prop(self, parent: ET.Element, name: str, value: str = "") -> ET.Element:
        prop = ET.SubElement(parent, "stringProp", {"name": self._text(name)})
        prop.text = self._text(value)
        return prop

    def _bool_prop(self, parent: ET.Element, name: str, value: bool) -> None:
        ET.SubElement(parent, "boolProp", {"name": name}).text = _bool(value)

    def _arguments_prop(
        self,
        parent: ET.Element,
        name: str,
        arguments: list[tuple[str, str]],
        http: bool,
    ) -> None:
        """Add an Arguments elementProp with Argument or HTTPArgument entries."""
        elem_prop = ET.SubElement(
            parent,
            "elementProp",
            {
                "name": name,
                "elementType": "Arguments",
                "guiclass": "HTTPArgumentsPanel" if http else "ArgumentsPanel",
                "testclass": "Arguments",
                "testname": "User Defined Variables",
                "enabled": "true",
            },
        )
        coll_prop = ET.SubElement(elem_prop, "collectionProp", {"name": "Arguments.arguments"})
        for arg_name, arg_value in arguments:
            arg_elem = ET.SubElement(
                coll_prop,
                "elementProp",
                {"name": self._text(arg_name), "elementType": "HTTPArgument" if http else "Argument"},
            )
            if http:
                self._bool_prop(arg_elem, "HTTPArgument.always_encode", False)
            self._string_prop(arg_elem, "Argument.name", arg_name)
            self._string_prop(arg_elem, "Argument.value", arg_value)
            self._string_prop(arg_elem, "Argument.metadata", "=")
            if http:
                self._bool_prop(arg_elem, "HTTPArgument.use_equals", True)

    # === Element builders ===

    def _test_plan(self, plan: TestPlan) -> ET.Element:
        elem = self._element("TestPlan", "TestPlanGui", plan)
        self._string_prop(elem, "TestPlan.comments", plan.comments)
        self._bool_prop(elem, "TestPlan.functional_mode", False)
        self._bool_prop(elem, "TestPlan.tearDown_on_shutdown", True)
        self._bool_prop(elem, "TestPlan.serialize_threadgroups", False)
        self._arguments_prop(elem, "TestPlan.user_defined_variables", plan.variables, http=False)
        self._string_prop(elem, "TestPlan.user_define_classpath")
        return elem

    def _http_defaults(self, defaults: HttpDefaults) -> ET.Element:
        elem = self._element("ConfigTestElement", "HttpDefaultsGui", defaults)
        self._arguments_prop(elem, "HTTPsampler.Arguments", [], http=True)
        self._string_prop(elem, "HTTPSampler.domain", defaults.domain)
        self._string_prop(elem, "HTTPSampler.port", defaults.port)
        self._string_prop(elem, "HTTPSampler.protocol", defaults.protocol)
        self._string_prop(elem, "HTTPSampler.contentEncoding", defaults.content_encoding)
        self._string_prop(elem, "HTTPSampler.path")
        self._string_prop(elem, "HTTPSampler.connect_timeout", defaults.connect_timeout)
        self._string_prop(elem, "HTTPSampler.response_timeout", defaults.response_timeout)
        return elem

    def _thread_group(self, group: ThreadGroup) -> ET.Element:
        elem = self._element("ThreadGroup", "ThreadGroupGui", group)
        self._string_prop(elem, "ThreadGroup.on_sample_error", group.on_sample_error)

        loop_controller = ET.SubElement(
            elem,
            "elementProp",
            {
                "name": "ThreadGroup.main_controller",
                "elementType": "LoopController",
                "guiclass": "LoopControlPanel",
                "testclass": "LoopController",
                "testname": "Loop Controller",
                "enabled": "true",
            },
        )
        self._bool_prop(loop_controller, "LoopController.continue_forever", False)
        self._string_prop(loop_controller, "LoopController.loops", group.loops)

        self._string_prop(elem, "ThreadGroup.num_threads", group.num_threads)
        self._string_prop(elem, "ThreadGroup.ramp_time", group.ramp_time)
        self._bool_prop(elem, "ThreadGroup.scheduler", group.scheduler)
        self._string_prop(elem, "ThreadGroup.duration", group.duration)
        self._string_prop(elem, "ThreadGroup.delay", group.delay)
        self._bool_prop(elem, "ThreadGroup.same_user_on_next_iteration", True)
        return elem

    def _http_sampler(self, sampler: HttpSampler) -> ET.Element:
        elem = self._element("HTTPSamplerProxy", "HttpTestSampleGui", sampler)

        if sampler.body is not None:
            self._bool_prop(elem, "HTTPSampler.postBodyRaw", True)
            body_prop = ET.SubElement(
                elem, "elementProp", {"name": "HTTPsampler.Arguments", "elementType": "Arguments"}
            )
            coll_prop = ET.SubElement(body_prop, "collectionProp", {"name": "Arguments.arguments"})
            body_arg = ET.SubElement(coll_prop, "elementProp", {"name": "", "elementType": "HTTPArgument"})
            self._bool_prop(body_arg, "HTTPArgument.always_encode", False)
            self._string_prop(body_arg, "Argument.value", sampler.body)
            self._string_prop(body_arg, "Argument.metadata", "=")
        else:
            self._arguments_prop(elem, "HTTPsampler.Arguments", sampler.arguments, http=True)

        # Server fields are inherited from HTTP Request Defaults
        self._string_prop(elem, "HTTPSampler.domain")
        self._string_prop(elem, "HTTPSampler.port")
        self._string_prop(elem, "HTTPSampler.protocol")
        self._string_prop(elem, "HTTPSampler.contentEncoding", "UTF-8")
        self._string_prop(elem, "HTTPSampler.path", sampler.path)
        self._string_prop(elem, "HTTPSampler.method", sampler.method)
        self._bool_prop(elem, "HTTPSampler.follow_redirects", sampler.follow_redirects)
        self._bool_prop(elem, "HTTPSampler.auto_redirects", False)
        self._bool_prop(elem, "HTTPSampler.use_keepalive", sampler.use_keepalive)
        self._bool_prop(elem, "HTTPSampler.DO_MULTIPART_POST", False)
        self._string_prop(elem, "HTTPSampler.embedded_url_re")
        self._string_prop(elem, "HTTPSampler.connect_timeout", sampler.connect_timeout)
        self._string_prop(elem, "HTTPSampler.response_timeout", sampler.response_timeout)
        return elem

    def _response_assertion(self, assertion: ResponseAssertion) -> ET.Element:
        elem = self._element("ResponseAssertion", "AssertionGui", assertion)
        # "Asserion" is JMeter's own spelling of this property
        coll_prop = ET.SubElement(elem, "collectionProp", {"name": "Asserion.test_strings"})
        for value in assertion.test_strings:
            self._string_prop(coll_prop, str(java_string_hash(value)), value)
        self._string_prop(elem, "Assertion.custom_message", assertion.custom_message)
        self._string_prop(elem, "Assertion.test_field", assertion.test_field)
        self._bool_prop(elem, "Assertion.assume_success", assertion.assume_success)
        ET.SubElement(elem, "intProp", {"name": "Assertion.test_type"}).text = str(assertion.test_type)
        return elem

    def _duration_assertion(self, assertion: DurationAssertion) -> ET.Element:
        elem = self._element("DurationAssertion", "DurationAssertionGui", assertion)
        self._string_prop(elem, "DurationAssertion.duration", str(assertion.max_duration))
        return elem

    def _json_extractor(self, extractor: JsonExtractor) -> ET.Element:
        elem = self._element("JSONPostProcessor", "JSONPostProcessorGui", extractor)
        self._string_prop(elem, "JSONPostProcessor.referenceNames", extractor.reference_name)
        self._string_prop(elem, "JSONPostProcessor.jsonPathExprs", extractor.json_path)
        self._string_prop(elem, "JSONPostProcessor.match_numbers", extractor.match_number)
        self._string_prop(elem, "JSONPostProcessor.defaultValues", extractor.default_value)
        return elem

    def _header_manager(self, manager: HeaderManager) -> ET.Element:
        elem = self._element("HeaderManager", "HeaderPanel", manager)
        coll_prop = ET.SubElement(elem, "collectionProp", {"name": "HeaderManager.headers"})
        for header_name, header_value in manager.headers:
            elem_prop = ET.SubElement(coll_prop, "elementProp", {"name": "", "elementType": "Header"})
            self._string_prop(elem_prop, "Header.name", header_name)
            self._string_prop(elem_prop, "Header.value", header_value)
        return elem

    def _auth_manager(self, manager: AuthManager) -> ET.Element:
        elem = self._element("AuthManager", "AuthPanel", manager)
        coll_prop = ET.SubElement(elem, "collectionProp", {"name": "AuthManager.auth_list"})
        elem_prop = ET.SubElement(coll_prop, "elementProp", {"name": "", "elementType": "Authorization"})
        self._string_prop(elem_prop, "Authorization.url", manager.url)
        self._string_prop(elem_prop, "Authorization.username", manager.username)
        self._string_prop(elem_prop, "Authorization.password", manager.password)
        self._string_prop(elem_prop, "Authorization.domain", manager.domain)
        self._string_prop(elem_prop, "Authorization.realm", manager.realm)
        return elem

    def _csv_data_set(self, data_set: CsvDataSet) -> ET.Element:
        elem = self._element("CSVDataSet", "TestBeanGUI", data_set)
        self._string_prop(elem, "delimiter", data_set.delimiter)
        self._string_prop(elem, "fileEncoding", data_set.file_encoding)
        self._string_prop(elem, "filename", data_set.filename)
        self._bool_prop(elem, "ignoreFirstLine", data_set.ignore_first_line)
        self._bool_prop(elem, "quotedData", data_set.quoted_data)
        self._bool_prop(elem, "recycle", data_set.recycle)
        self._string_prop(elem, "shareMode", data_set.share_mode)
        self._bool_prop(elem, "stopThread", data_set.stop_thread)
        self._string_prop(elem, "variableNames", data_set.variable_names)
        return elem

    def _result_collector(self, collector: ResultCollector) -> ET.Element:
        elem = self._element("ResultCollector", collector.gui_class, collector)
        self._bool_prop(elem, "ResultCollector.error_logging", False)

        obj_prop = ET.SubElement(elem, "objProp")
        ET.SubElement(obj_prop, "name").text = "saveConfig"
        value_elem = ET.SubElement(obj_prop, "value", {"class": "SampleSaveConfiguration"})
        for key, val in SAVE_CONFIG:
            ET.SubElement(value_elem, key).text = val

        self._string_prop(elem, "filename", collector.filename)
        return elem
