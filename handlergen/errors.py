"""Exception hierarchy for the handler generator.

Two families:
  - fatal errors abort the whole run (bad schema, unusable output root)
  - EndpointError subclasses are caught at the endpoint boundary; the
    endpoint is skipped and the run continues
"""

from __future__ import annotations


class GeneratorError(Exception):
    """Base class for all generator errors."""


class SchemaError(GeneratorError):
    """The schema document is missing, unreadable or malformed."""


class OutputError(GeneratorError):
    """The output root cannot be created or written."""


class EndpointError(GeneratorError):
    """A single endpoint cannot be generated."""


class ClassNotFoundError(EndpointError):
    """A class required for resolution is absent from the metadata source."""

    def __init__(self, class_name: str) -> None:
        super().__init__(f"Could not load class: {class_name}")
        self.class_name = class_name


class ClassFormatError(EndpointError):
    """A class file exists but cannot be decoded."""


class ActionResolutionError(EndpointError):
    """Request/response types or the dispatch reference cannot be determined."""


class UnsupportedParameterError(EndpointError):
    """A required path or query parameter has no extraction mapping."""

    def __init__(self, parameter: str, kind: str | None) -> None:
        super().__init__(
            f"Unsupported type for required parameter {parameter!r} (kind={kind})"
        )
        self.parameter = parameter
