"""Specification normalizer for JMeter test plan compilation.

This module decodes OpenAPI 3.x and Swagger 2.0 documents from JSON or YAML
text into a Specification, and derives the default base URL from the
document's servers (v3) or host/schemes/basePath (v2) fields.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from swagger_jmx.core.data_structures import Specification
from swagger_jmx.exceptions import EmptySpecException, SpecParseException

logger = logging.getLogger(__name__)

# Content type aliases accepted by normalize()
JSON_CONTENT_TYPES = {"json", ".json", "application/json", "text/json"}
YAML_CONTENT_TYPES = {
    "yaml",
    "yml",
    ".yaml",
    ".yml",
    "application/yaml",
    "application/x-yaml",
    "text/yaml",
    "text/x-yaml",
}

DEFAULT_SWAGGER_SCHEME = "https"


class SpecNormalizer:
    """Decode OpenAPI/Swagger text into a Specification."""

    def normalize(
        self,
        text: str,
        content_type: Optional[str] = None,
        configured_base_url: str = "",
    ) -> Specification:
        """Parse specification text.

        When content_type is omitted the format is detected from the first
        non-whitespace character: '{' or '[' means JSON, anything else YAML.
        A document detected as JSON that fails to decode is retried as YAML.

        Args:
            text: Raw document text
            content_type: "json", "yaml", a MIME type or a file suffix
            configured_base_url: Base URL to fall back on when the document
                declares neither servers nor host

        Returns:
            Specification with paths, schemas, security schemes and servers

        Raises:
            SpecParseException: Text is empty, undecodable, not a mapping,
                or has no 'paths' mapping
            EmptySpecException: 'paths' has no entries

        Example:
            >>> spec = SpecNormalizer().normalize('{"openapi": "3.0.0", "paths": {"/a": {}}}')
            >>> list(spec.paths)
            ['/a']
        """
        if text is None or not text.strip():
            raise SpecParseException("Specification text is empty")

        document = self._decode(text, self._detect_format(text, content_type))

        if not isinstance(document, dict):
            raise SpecParseException(
                f"Specification must decode to a mapping, got {type(document).__name__}"
            )

        paths = document.get("paths")
        if not isinstance(paths, dict):
            raise SpecParseException("Specification has no 'paths' mapping", context="paths")
        if not paths:
            raise EmptySpecException("Specification 'paths' has no entries", context="paths")

        if "openapi" in document:
            version = str(document["openapi"])
        elif "swagger" in document:
            version = str(document["swagger"])
        else:
            version = "Unknown"

        info = document.get("info") if isinstance(document.get("info"), dict) else {}

        if version.startswith("2"):
            schemas = document.get("definitions")
            security_schemes = document.get("securityDefinitions")
        else:
            components = document.get("components")
            components = components if isinstance(components, dict) else {}
            schemas = components.get("schemas")
            security_schemes = components.get("securitySchemes")

        servers = self._server_urls(document)
        default_base_url = self._default_base_url(document, servers, configured_base_url)

        logger.debug(
            "Normalized %s document '%s' with %d paths", version, info.get("title"), len(paths)
        )

        return Specification(
            paths=paths,
            schemas=schemas if isinstance(schemas, dict) else {},
            security_schemes=security_schemes if isinstance(security_schemes, dict) else {},
            servers=servers,
            title=str(info.get("title") or "Untitled API"),
            version=version,
            api_version=str(info.get("version") or "1.0.0"),
            default_base_url=default_base_url,
            document=document,
        )

    @staticmethod
    def load(spec_path: str, configured_base_url: str = "") -> Specification:
        """Read and normalize a specification file.

        The file suffix is used as the content type; unknown suffixes fall
        back to auto-detection.

        Args:
            spec_path: Path to a .json, .yaml or .yml file
            configured_base_url: Fallback base URL

        Returns:
            Parsed Specification

        Raises:
            FileNotFoundError: Spec file doesn't exist
            SpecParseException: File content cannot be decoded
            EmptySpecException: File declares no paths
            UnicodeDecodeError: File is not UTF-8 text
        """
        spec_file = Path(spec_path)
        if not spec_file.exists():
            raise FileNotFoundError(f"OpenAPI spec file not found: {spec_path}")

        text = spec_file.read_text(encoding="utf-8")
        suffix = spec_file.suffix.lower() or None
        return SpecNormalizer().normalize(text, suffix, configured_base_url)

    def _detect_format(self, text: str, content_type: Optional[str]) -> str:
        """Return "json" or "yaml" for the given text and declared type."""
        if content_type:
            declared = content_type.split(";")[0].strip().lower()
            if declared in JSON_CONTENT_TYPES or declared.endswith("+json"):
                return "json"
            if declared in YAML_CONTENT_TYPES or declared.endswith("+yaml"):
                return "yaml"

        first = text.lstrip()[:1]
        return "json" if first in ("{", "[") else "yaml"

    def _decode(self, text: str, fmt: str) -> Any:
        if fmt == "json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                logger.debug("JSON decoding failed (%s), retrying as YAML", e)

        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SpecParseException(
                f"Specification is neither valid JSON nor valid YAML: {e}"
            ) from e

    def _server_urls(self, document: dict[str, Any]) -> tuple[str, ...]:
        """Collect v3 server URLs in declaration order."""
        servers = document.get("servers")
        if not isinstance(servers, list):
            return ()
        urls = []
        for server in servers:
            if isinstance(server, dict) and server.get("url"):
                urls.append(str(server["url"]))
        return tuple(urls)

    def _default_base_url(
        self,
        document: dict[str, Any],
        servers: tuple[str, ...],
        configured_base_url: str,
    ) -> str:
        """Derive the base URL.

        Order: v3 servers[0].url, then v2 schemes[0]://host + basePath,
        then the caller's configured value.
        """
        if servers:
            return servers[0]

        host = document.get("host")
        if isinstance(host, str) and host:
            schemes = document.get("schemes")
            if isinstance(schemes, list) and schemes:
                scheme = str(schemes[0])
            else:
                scheme = DEFAULT_SWAGGER_SCHEME
            base_path = document.get("basePath")
            base_path = base_path if isinstance(base_path, str) else ""
            return f"{scheme}://{host}{base_path}"

        return configured_base_url
