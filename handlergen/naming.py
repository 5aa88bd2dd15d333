"""Convert endpoint names and class names into generated Java names and paths.

Pattern: Rest{CamelCase(endpoint)}Action in a package mirroring the
transport action's package.

Examples:
  indices.delete        -> RestIndicesDeleteAction, "indices_delete_action"
  cluster.get_settings  -> RestClusterGetSettingsAction, "cluster_get_settings_action"
  org.elasticsearch.action.admin.indices.delete.TransportDeleteIndexAction
                        -> package org.elasticsearch.rest.action.admin.indices.delete
  org.example.TransportFooAction
                        -> package org.elasticsearch.rest.action
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

BASE_PACKAGE = "org.elasticsearch.rest.action"
ACTION_PACKAGE_PREFIX = "org.elasticsearch.action."

HANDLER_CLASS_PREFIX = "Rest"
HANDLER_CLASS_SUFFIX = "Action"
HANDLER_NAME_SUFFIX = "_action"

REGISTRY_CLASS_NAME = "GeneratedRestHandlerRegistry"

_SEGMENT_SPLIT = re.compile(r"[._]")


def _capitalize(segment: str) -> str:
    """First letter upper-cased, the rest lower-cased."""
    return segment[:1].upper() + segment[1:].lower()


def to_camel_case(name: str) -> str:
    """``cluster.get_settings`` -> ``ClusterGetSettings``."""
    return "".join(_capitalize(s) for s in _SEGMENT_SPLIT.split(name) if s)


def handler_class_name(endpoint_name: str | None) -> str:
    """Handler class name: Rest + CamelCase(endpoint name) + Action."""
    return f"{HANDLER_CLASS_PREFIX}{to_camel_case(endpoint_name or '')}{HANDLER_CLASS_SUFFIX}"


def handler_name(endpoint_name: str | None) -> str:
    """Value returned by the handler's getName()."""
    if not endpoint_name:
        return HANDLER_NAME_SUFFIX.lstrip("_")
    return endpoint_name.replace(".", "_") + HANDLER_NAME_SUFFIX


def java_package(binary_name: str) -> str:
    """Package of a binary class name (``a.b.Outer$Inner`` -> ``a.b``)."""
    return binary_name.rpartition(".")[0]


def java_source_name(binary_name: str) -> str:
    """Name as written in source after the package (``Outer$Inner`` -> ``Outer.Inner``)."""
    return binary_name.rpartition(".")[2].replace("$", ".")


def java_top_level_name(binary_name: str) -> str:
    """Fully qualified name of the top-level class to import."""
    package, _, simple = binary_name.rpartition(".")
    top = simple.partition("$")[0]
    return f"{package}.{top}" if package else top


def package_for_dispatch_target(dispatch_target: str | None) -> str:
    """Handler package: BASE_PACKAGE plus the action package after ``action.``.

    Falls back to BASE_PACKAGE when the transport action lives outside
    ``org.elasticsearch.action``.
    """
    if not dispatch_target or "." not in dispatch_target:
        return BASE_PACKAGE
    action_package = java_package(dispatch_target)
    if not action_package.startswith(ACTION_PACKAGE_PREFIX):
        return BASE_PACKAGE
    suffix = action_package[len(ACTION_PACKAGE_PREFIX):]
    return f"{BASE_PACKAGE}.{suffix}" if suffix else BASE_PACKAGE


def source_path(package: str, class_name: str) -> PurePosixPath:
    """Relative path of a generated source file under the output root."""
    return PurePosixPath(*package.split("."), f"{class_name}.java")
