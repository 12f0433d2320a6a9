"""Custom exceptions for the Swagger to JMX compiler.

This module defines the exception hierarchy for the compiler.
All custom exceptions inherit from SwaggerJMXException base class.
"""

from typing import Any, Optional


class SwaggerJMXException(Exception):
    """Base exception for all compiler errors.

    All custom exceptions in the compiler inherit from this base class
    to allow catching all tool-specific errors.
    """

    pass


class FatalSpecException(SwaggerJMXException):
    """Base exception for input documents that cannot be compiled at all.

    Fatal spec errors abort the pipeline before any plan element is built.
    Each one carries the single error diagnostic reported to the caller.

    Attributes:
        code: Diagnostic code from the error taxonomy
        context: Where the failure was detected (e.g. "document", "paths")
    """

    code = "FatalSpecError"

    def __init__(self, message: str, context: str = "document") -> None:
        """Initialize with message and context.

        Args:
            message: Human readable description of the failure
            context: Location of the failure inside the document
        """
        self.context = context
        super().__init__(message)

    @property
    def diagnostic(self) -> Any:
        """Return the error Diagnostic describing this failure."""
        from swagger_jmx.core.data_structures import Diagnostic

        return Diagnostic(
            severity="error",
            code=self.code,
            message=str(self),
            context=self.context,
        )


class SpecParseException(FatalSpecException):
    """Raised when the specification text cannot be decoded.

    This exception is raised when:
    - Text is empty
    - Text is neither valid JSON nor valid YAML
    - Decoded value is not a mapping
    - Document has no 'paths' mapping
    """

    code = "ParseError"


class EmptySpecException(FatalSpecException):
    """Raised when the 'paths' mapping has no entries.

    A document without paths has no operations to turn into samplers.
    """

    code = "EmptySpecError"


class InvalidConfigException(SwaggerJMXException):
    """Raised when generation configuration values are invalid.

    This exception is raised when:
    - Counts or timeouts are not positive integers
    - Grouping strategy is not recognized
    - Config file cannot be decoded into a mapping

    Attributes:
        field_name: Name of the offending option (None for whole-file errors)
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        """Initialize with message and offending field.

        Args:
            message: Description of the invalid value
            field_name: Configuration field that failed validation
        """
        self.field_name = field_name
        super().__init__(message)


class JMXSerializationException(SwaggerJMXException):
    """Raised when the plan tree cannot be rendered to XML.

    This exception is raised when:
    - A plan element type has no serializer
    - ElementTree or minidom fail on the built document
    """

    pass
