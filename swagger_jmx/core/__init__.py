"""Core pipeline modules for Swagger JMX."""

from swagger_jmx.core.compiler import JMXCompiler
from swagger_jmx.core.data_structures import (
    DEFAULT_PRESETS,
    CompileResult,
    Diagnostic,
    DiagnosticLog,
    GenerationConfig,
    GroupingStrategy,
    HttpMethod,
    Operation,
    Parameter,
    PlanPresets,
    Specification,
)
from swagger_jmx.core.jmx_serializer import JMXSerializer
from swagger_jmx.core.operation_grouper import extract_operations, group_operations
from swagger_jmx.core.plan_assembler import PlanAssembler
from swagger_jmx.core.sample_synthesizer import SampleSynthesizer
from swagger_jmx.core.schema_resolver import SchemaResolver
from swagger_jmx.core.spec_normalizer import SpecNormalizer

__all__ = [
    # pipeline stages
    "SpecNormalizer",
    "SchemaResolver",
    "SampleSynthesizer",
    "extract_operations",
    "group_operations",
    "PlanAssembler",
    "JMXSerializer",
    "JMXCompiler",
    # data structures
    "Specification",
    "Operation",
    "Parameter",
    "HttpMethod",
    "GroupingStrategy",
    "GenerationConfig",
    "PlanPresets",
    "DEFAULT_PRESETS",
    "Diagnostic",
    "DiagnosticLog",
    "CompileResult",
]
