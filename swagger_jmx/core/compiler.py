"""Compiler orchestrating the OpenAPI to JMX pipeline.

Runs normalization, extraction, grouping, assembly and serialization for
one document and returns a CompileResult. Fatal input errors are turned
into a failed result with a single error diagnostic; everything else is
reported as warnings next to a best-effort document.
"""

import asyncio
import logging
from typing import Any, Optional, Union

from swagger_jmx.core.data_structures import (
    DEFAULT_PRESETS,
    CompileResult,
    DiagnosticLog,
    GenerationConfig,
    PlanPresets,
)
from swagger_jmx.core.jmx_serializer import JMXSerializer
from swagger_jmx.core.operation_grouper import extract_operations, group_operations
from swagger_jmx.core.plan_assembler import PlanAssembler
from swagger_jmx.core.spec_normalizer import SpecNormalizer
from swagger_jmx.exceptions import EmptySpecException, FatalSpecException

logger = logging.getLogger(__name__)


class JMXCompiler:
    """Compile OpenAPI/Swagger text into a JMeter test plan.

    Each call owns its own diagnostics, specification and plan tree, so one
    compiler instance can be reused freely.

    Example:
        >>> compiler = JMXCompiler()
        >>> result = compiler.compile(spec_text, {"threadCount": 5})
        >>> result.success, result.operation_count
        (True, 3)
    """

    def __init__(self, presets: PlanPresets = DEFAULT_PRESETS) -> None:
        """Initialize compiler.

        Args:
            presets: Header, correlation, assertion and CSV tables
        """
        self.presets = presets

    def compile(
        self,
        text: str,
        config: Union[GenerationConfig, dict[str, Any], None] = None,
        content_type: Optional[str] = None,
    ) -> CompileResult:
        """Compile specification text into a .jmx document.

        Args:
            text: OpenAPI 3.x or Swagger 2.0 document (JSON or YAML)
            config: GenerationConfig, or a mapping for GenerationConfig.from_dict
            content_type: "json"/"yaml" (auto-detected when omitted)

        Returns:
            CompileResult; success is False with xml None when the document
            cannot be parsed or declares no operations

        Raises:
            InvalidConfigException: config mapping holds invalid values
        """
        config = _as_config(config)
        diagnostics = DiagnosticLog()

        try:
            spec = SpecNormalizer().normalize(text, content_type, config.base_url)
        except FatalSpecException as e:
            return _failed(e)

        operations = extract_operations(spec)
        if not operations:
            return _failed(
                EmptySpecException("Specification declares no HTTP operations", context="paths")
            )
        groups = group_operations(operations, config.grouping_strategy)

        assembler = PlanAssembler(config, self.presets, diagnostics)
        plan = assembler.assemble(spec, groups)
        xml = JMXSerializer(diagnostics).serialize(plan)

        logger.info(
            "Compiled %d operations into %d thread groups (%d warnings)",
            len(operations),
            len(groups),
            len(diagnostics),
        )
        return CompileResult(
            xml=xml,
            operation_count=len(operations),
            group_count=len(groups),
            diagnostics=diagnostics.items,
        )

    async def compile_async(
        self,
        text: str,
        config: Union[GenerationConfig, dict[str, Any], None] = None,
        content_type: Optional[str] = None,
    ) -> CompileResult:
        """Coroutine form of compile().

        Yields control to the event loop after every thread group so large
        documents do not block it. Cancelling the task discards the partial
        plan; the result is identical to compile() for the same input.
        """
        config = _as_config(config)
        diagnostics = DiagnosticLog()

        try:
            spec = SpecNormalizer().normalize(text, content_type, config.base_url)
        except FatalSpecException as e:
            return _failed(e)

        await asyncio.sleep(0)

        operations = extract_operations(spec)
        if not operations:
            return _failed(
                EmptySpecException("Specification declares no HTTP operations", context="paths")
            )
        groups = group_operations(operations, config.grouping_strategy)

        assembler = PlanAssembler(config, self.presets, diagnostics)
        plan = assembler.build_test_plan(spec)
        for thread_group in assembler.iter_thread_groups(spec, groups):
            plan.add(thread_group)
            await asyncio.sleep(0)

        xml = JMXSerializer(diagnostics).serialize(plan)
        return CompileResult(
            xml=xml,
            operation_count=len(operations),
            group_count=len(groups),
            diagnostics=diagnostics.items,
        )


def _as_config(config: Union[GenerationConfig, dict[str, Any], None]) -> GenerationConfig:
    if config is None:
        return GenerationConfig()
    if isinstance(config, GenerationConfig):
        return config
    return GenerationConfig.from_dict(config)


def _failed(error: FatalSpecException) -> CompileResult:
    logger.error("Cannot compile specification: %s", error)
    return CompileResult(xml=None, diagnostics=[error.diagnostic], success=False)
