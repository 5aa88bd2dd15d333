"""Map schema type descriptors to Java types and RestRequest extraction code.

Handles:
- _builtins scalars (boolean, integer, long, float, double, string)
- _types domain scalars (Duration, ByteSize, names/ids, ExpandWildcards, ...)
- array_of string-like elements (comma-split arrays)
- The IndicesOptions group: expand_wildcards, ignore_unavailable and
  allow_no_indices are always read together by one
  IndicesOptions.fromRequest(...) call

dictionary_of, union_of and literal_value are body shapes and never map to
a request parameter.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable

from .errors import UnsupportedParameterError
from .models import Property, TypeDefinition, TypeDescriptor, TypeReference

GROUPED_PARAM_NAMES: tuple[str, ...] = (
    "allow_no_indices",
    "expand_wildcards",
    "ignore_unavailable",
)

GROUPED_TARGET_TYPE = "IndicesOptions"
GROUPED_EXTRACTION = (
    "IndicesOptions.fromRequest(request, IndicesOptions.strictExpandOpenAndForbidClosed())"
)

BUILTINS_NAMESPACE = "_builtins"
TYPES_NAMESPACE = "_types"

# {name} is replaced by the quoted parameter name, {default} by the Java literal
_BUILTIN_TABLE: dict[str, tuple[str, str]] = {
    "boolean": ("boolean", "request.paramAsBoolean({name}, {default})"),
    "integer": ("int", "request.paramAsInt({name}, {default})"),
    "long": ("long", "request.paramAsLong({name}, {default})"),
    "float": ("float", "Float.parseFloat(request.param({name}))"),
    "double": ("double", "Double.parseDouble(request.param({name}))"),
    "string": ("String", "request.param({name})"),
}

_STRING = ("String", "request.param({name})")
_STRING_ARRAY = ("String[]", "Strings.splitStringByCommaToArray(request.param({name}))")

_TYPES_TABLE: dict[str, tuple[str, str]] = {
    "Duration": ("TimeValue", "request.paramAsTime({name}, {default})"),
    "ByteSize": ("ByteSizeValue", "request.paramAsSize({name}, {default})"),
    "IndexName": _STRING,
    "Name": _STRING,
    "Id": _STRING,
    "Routing": _STRING,
    "Indices": _STRING_ARRAY,
    "Names": _STRING_ARRAY,
    "Ids": _STRING_ARRAY,
    "ExpandWildcards": ("ExpandWildcards", "ExpandWildcards.fromString(request.param({name}))"),
    "WaitForActiveShards": (
        "ActiveShardCount", "ActiveShardCount.parseString(request.param({name}))",
    ),
    "VersionType": ("VersionType", "VersionType.fromString(request.param({name}))"),
    "Refresh": _STRING,
    "Scroll": ("Scroll", "new Scroll(request.paramAsTime({name}, {default}))"),
}


class SpecialHandling(enum.Enum):
    NONE = "none"
    GROUPED = "grouped"


@dataclass(frozen=True)
class ParameterMapping:
    """Java type, extraction expression and special handling for one parameter."""

    target_type: str
    extraction: str
    special_handling: SpecialHandling = SpecialHandling.NONE

    @property
    def is_grouped(self) -> bool:
        return self.special_handling is SpecialHandling.GROUPED


GROUPED_MAPPING = ParameterMapping(
    GROUPED_TARGET_TYPE, GROUPED_EXTRACTION, SpecialHandling.GROUPED
)


def java_string_literal(value: str) -> str:
    """Quote a string as a Java literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def default_literal(server_default: Any) -> str:
    """Render a schema serverDefault as a Java literal ('null' when absent)."""
    if server_default is None:
        return "null"
    # bool before int: True is an int in Python
    if isinstance(server_default, bool):
        return "true" if server_default else "false"
    if isinstance(server_default, (int, float)):
        return str(server_default)
    if isinstance(server_default, str):
        return java_string_literal(server_default)
    return "null"


def _render(entry: tuple[str, str], param_name: str, server_default: Any) -> ParameterMapping:
    target_type, template = entry
    extraction = template.format(
        name=java_string_literal(param_name),
        default=default_literal(server_default),
    )
    return ParameterMapping(target_type, extraction)


def _map_instance_of(
    ref: TypeReference | None, param_name: str, server_default: Any,
) -> ParameterMapping | None:
    if ref is None:
        return None
    if ref.namespace == BUILTINS_NAMESPACE:
        entry = _BUILTIN_TABLE.get(ref.name)
        return _render(entry, param_name, server_default) if entry else None
    if ref.namespace == TYPES_NAMESPACE:
        # Unrecognized domain scalars are read as plain strings
        entry = _TYPES_TABLE.get(ref.name, _STRING)
        return _render(entry, param_name, server_default)
    return None


def map_type_descriptor(
    descriptor: TypeDescriptor | None,
    param_name: str,
    server_default: Any = None,
) -> ParameterMapping | None:
    """Map a type descriptor to a Java type and extraction expression.

    Does not apply the IndicesOptions grouping; use map_property for that.
    Returns None when the descriptor cannot be read from a request parameter.
    """
    if descriptor is None:
        return None
    if descriptor.kind == "instance_of":
        return _map_instance_of(descriptor.type, param_name, server_default)
    if descriptor.kind == "array_of":
        element = map_type_descriptor(descriptor.value, param_name, server_default)
        if element is None or element.target_type != "String":
            return None
        return _render(_STRING_ARRAY, param_name, server_default)
    return None


def map_property(
    prop: Property | None,
    sibling_query_properties: Iterable[Property] = (),
) -> ParameterMapping | None:
    """Map a path or query property.

    Members of the IndicesOptions group map to GROUPED_MAPPING regardless
    of their declared type or of the other query properties.
    """
    if prop is None:
        return None
    if prop.name in GROUPED_PARAM_NAMES:
        return GROUPED_MAPPING
    if prop.type is None:
        return None
    return map_type_descriptor(prop.type, prop.name, prop.server_default)


def map_request_parameters(
    request_type: TypeDefinition,
) -> dict[str, ParameterMapping]:
    """Map every path and query property of a request type.

    Path parameters come first, then query parameters, each in declaration
    order. Optional properties without a mapping are left out; a required
    one raises UnsupportedParameterError.
    """
    mappings: dict[str, ParameterMapping] = {}
    for prop in (*request_type.path, *request_type.query):
        mapping = map_property(prop, request_type.query)
        if mapping is None:
            if prop.required:
                kind = prop.type.kind if prop.type else None
                raise UnsupportedParameterError(prop.name, kind)
            continue
        mappings.setdefault(prop.name, mapping)
    return mappings
