"""Build Jinja2 template context for generated REST handlers.

Turns an endpoint, its request type and the resolved action into the flat
dict handler.java.j2 renders, and collects the registry context for
registry.java.j2. All ordering here is deterministic so that identical
inputs render byte-identical sources.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .action_resolver import ResolvedAction
from .listeners import ResponseStrategy
from .models import Endpoint, TypeDefinition
from .naming import (
    BASE_PACKAGE,
    REGISTRY_CLASS_NAME,
    handler_class_name,
    handler_name,
    java_package,
    java_source_name,
    java_top_level_name,
    package_for_dispatch_target,
)
from .type_mapper import GROUPED_EXTRACTION, GROUPED_PARAM_NAMES, map_request_parameters

BASE_REST_HANDLER = "org.elasticsearch.rest.BaseRestHandler"
REST_HANDLER = "org.elasticsearch.rest.RestHandler"
REST_REQUEST = "org.elasticsearch.rest.RestRequest"
REST_REQUEST_METHOD = "org.elasticsearch.rest.RestRequest.Method"
NODE_CLIENT = "org.elasticsearch.client.internal.node.NodeClient"
REST_CANCELLABLE_NODE_CLIENT = "org.elasticsearch.rest.action.RestCancellableNodeClient"
ACTION_LISTENER = "org.elasticsearch.action.ActionListener"
INDICES_OPTIONS = "org.elasticsearch.action.support.IndicesOptions"
SCOPE = "org.elasticsearch.rest.Scope"
SERVERLESS_SCOPE = "org.elasticsearch.rest.ServerlessScope"
IO_EXCEPTION = "java.io.IOException"
JAVA_LIST = "java.util.List"
JAVA_SET = "java.util.Set"
JAVA_CONSUMER = "java.util.function.Consumer"

FACTORY_METHOD = "fromRestRequest"
RELEASE_METHOD = "getSourceForRelease"

# Path parameter whose presence means IndicesOptions.fromRequest consumes the group
INDEX_PATH_PARAM = "index"

# RestRequest.Method constants; anything else falls back to GET
_HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH", "TRACE", "CONNECT")


class ImportSet:
    """Collect imports for one compilation unit and hand out source names.

    A simple name already taken by another class is written fully
    qualified instead of imported. Classes in the unit's own package and
    in java.lang are referenced without an import.
    """

    def __init__(self, package: str, own_class: str) -> None:
        self.package = package
        self._by_simple: dict[str, str] = {own_class: f"{package}.{own_class}"}

    def ref(self, binary_name: str) -> str:
        """Register a class and return the name to write in source."""
        top = java_top_level_name(binary_name)
        simple = top.rpartition(".")[2]
        source_name = java_source_name(binary_name)
        owner = self._by_simple.setdefault(simple, top)
        if owner != top:
            package = java_package(binary_name)
            return f"{package}.{source_name}" if package else source_name
        return source_name

    def imports(self) -> list[str]:
        return sorted(
            fqn for fqn in self._by_simple.values()
            if java_package(fqn) not in (self.package, "java.lang", "")
        )


@dataclass(frozen=True)
class HandlerRef:
    """A generated handler class, for the registry."""

    package: str
    class_name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.package}.{self.class_name}"


def method_constant(method: str) -> str:
    upper = method.upper()
    return upper if upper in _HTTP_METHODS else "GET"


def build_routes(endpoint: Endpoint) -> list[tuple[str, str]]:
    """(method constant, path) pairs, deduplicated in declaration order."""
    routes: list[tuple[str, str]] = []
    for url in endpoint.urls:
        for method in url.methods:
            route = (method_constant(method), url.path)
            if route not in routes:
                routes.append(route)
    return routes


def _unique(values: Iterable[str] | None) -> list[str]:
    """Order-preserving de-duplication (Set.of rejects duplicates)."""
    return list(dict.fromkeys(values or ()))


def uses_grouped_parameters(request_type: TypeDefinition | None) -> bool:
    """Whether the handler reads the IndicesOptions group."""
    if request_type is None:
        return False
    if any(p.name == INDEX_PATH_PARAM for p in request_type.path):
        return True
    return any(p.name in GROUPED_PARAM_NAMES for p in request_type.query)


def supported_query_parameters(
    endpoint: Endpoint, request_type: TypeDefinition | None,
) -> list[str]:
    """Names for supportedQueryParameters(), sorted.

    Query and path parameter names, plus the whole IndicesOptions group
    when the handler reads it, minus the endpoint's responseParams (those
    are declared by responseParams() only).
    """
    if request_type is None:
        return []
    names = {p.name for p in request_type.query} | {p.name for p in request_type.path}
    if uses_grouped_parameters(request_type):
        names.update(GROUPED_PARAM_NAMES)
    names.difference_update(endpoint.response_params or ())
    return sorted(names)


def serverless_scope(endpoint: Endpoint) -> str | None:
    """PUBLIC or INTERNAL from availability.serverless.visibility, if declared."""
    availability = endpoint.availability
    if availability is None or availability.serverless is None:
        return None
    visibility = availability.serverless.visibility
    if visibility is None:
        return None
    return "PUBLIC" if visibility.lower() == "public" else "INTERNAL"


def _listener_expression(
    imports: ImportSet,
    strategy: ResponseStrategy,
    resolved: ResolvedAction,
    releasable: bool,
) -> str:
    listener = imports.ref(strategy.listener_class)
    if strategy.needs_status_reference:
        response = imports.ref(resolved.response_class.name)
        expression = f"new {listener}<>(channel, {response}::status)"
    else:
        expression = f"new {listener}<>(channel)"
    if releasable:
        action_listener = imports.ref(ACTION_LISTENER)
        expression = (
            f"{action_listener}.releaseAfter({expression}, actionRequest.{RELEASE_METHOD}())"
        )
    return expression


def build_handler_context(
    endpoint: Endpoint,
    request_type: TypeDefinition | None,
    resolved: ResolvedAction,
    strategy: ResponseStrategy,
    cancellable: bool = False,
    releasable: bool = False,
) -> dict[str, Any]:
    """Build the template context for one handler.

    Raises UnsupportedParameterError when a required parameter of the
    request type has no extraction mapping.
    """
    package = package_for_dispatch_target(resolved.action_class.name)
    class_name = handler_class_name(endpoint.name)
    mappings = map_request_parameters(request_type) if request_type else {}

    imports = ImportSet(package, class_name)
    base_handler = imports.ref(BASE_REST_HANDLER)
    rest_request = imports.ref(REST_REQUEST)
    node_client = imports.ref(NODE_CLIENT)
    io_exception = imports.ref(IO_EXCEPTION)
    java_list = imports.ref(JAVA_LIST)

    routes = build_routes(endpoint)
    supported = supported_query_parameters(endpoint, request_type)
    response_params = _unique(endpoint.response_params)
    capabilities = _unique(endpoint.capabilities)
    java_set = imports.ref(JAVA_SET) if supported or response_params or capabilities else None

    scope = serverless_scope(endpoint)
    scope_annotation = None
    if scope is not None:
        scope_annotation = f"@{imports.ref(SERVERLESS_SCOPE)}({imports.ref(SCOPE)}.{scope})"

    grouped = uses_grouped_parameters(request_type)
    indices_options = imports.ref(INDICES_OPTIONS) if grouped else None

    request_class = imports.ref(resolved.request_class.name)
    dispatch = resolved.dispatch_reference
    dispatch_expression = f"{imports.ref(dispatch.owner.name)}.{dispatch.member}"
    client_expression = "client"
    if cancellable:
        cancellable_client = imports.ref(REST_CANCELLABLE_NODE_CLIENT)
        client_expression = f"new {cancellable_client}(client, request.getHttpChannel())"
    listener_expression = _listener_expression(imports, strategy, resolved, releasable)

    parameters = [
        {"name": name, "target_type": mapping.target_type}
        for name, mapping in mappings.items()
        if not mapping.is_grouped
    ]

    return {
        "package": package,
        "class_name": class_name,
        "endpoint_name": endpoint.name,
        "handler_name": handler_name(endpoint.name),
        "imports": imports.imports(),
        "static_imports": sorted({f"{REST_REQUEST_METHOD}.{m}" for m, _ in routes}),
        "scope_annotation": scope_annotation,
        "base_handler": base_handler,
        "rest_request": rest_request,
        "node_client": node_client,
        "io_exception": io_exception,
        "java_list": java_list,
        "java_set": java_set,
        "routes": routes,
        "supported_params": supported,
        "response_params": response_params,
        "capabilities": capabilities,
        "allow_system_index_access": endpoint.allow_system_index_access is True,
        "cannot_trip_circuit_breaker": endpoint.can_trip_circuit_breaker is False,
        "indices_options": indices_options,
        "grouped_params": list(GROUPED_PARAM_NAMES) if grouped else [],
        "grouped_extraction": GROUPED_EXTRACTION if grouped else None,
        "parameters": parameters,
        "request_class": request_class,
        "factory_method": FACTORY_METHOD,
        "client_expression": client_expression,
        "dispatch_expression": dispatch_expression,
        "listener_expression": listener_expression,
    }


def build_registry_context(handlers: Sequence[HandlerRef]) -> dict[str, Any]:
    """Build the template context for the handler registry."""
    imports = ImportSet(BASE_PACKAGE, REGISTRY_CLASS_NAME)
    consumer = imports.ref(JAVA_CONSUMER)
    rest_handler = imports.ref(REST_HANDLER)
    handler_names = [imports.ref(h.qualified_name) for h in handlers]
    return {
        "package": BASE_PACKAGE,
        "class_name": REGISTRY_CLASS_NAME,
        "imports": imports.imports(),
        "consumer": consumer,
        "rest_handler": rest_handler,
        "handlers": handler_names,
        "handler_count": len(handler_names),
    }
