"""Swagger JMX - Compile OpenAPI/Swagger specs into JMeter test plans."""

__version__ = "1.0.0"

from swagger_jmx.core.compiler import JMXCompiler
from swagger_jmx.core.data_structures import CompileResult, Diagnostic, GenerationConfig

__all__ = [
    "JMXCompiler",
    "CompileResult",
    "Diagnostic",
    "GenerationConfig",
]
