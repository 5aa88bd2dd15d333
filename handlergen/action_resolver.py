"""Resolve a transport action's request/response classes and ActionType reference.

The action's request and response types are the two arguments of the
TransportAction<Request, Response> base class. They are usually supplied
several levels below it, possibly through intermediate type variables:

    TransportFooAction extends HandledTransportAction<FooRequest, FooResponse>
    HandledTransportAction<Request, Response> extends TransportAction<Request, Response>

Resolution walks the superclass chain from the leaf upward and threads the
type-variable bindings of every step into the next one.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from .errors import ActionResolutionError
from .metadata import ClassInfo, ClassMetadataSource, ClassType, JavaType, TypeVariable

TRANSPORT_ACTION_CLASS = "org.elasticsearch.action.support.TransportAction"
TRANSPORT_PREFIX = "Transport"
TYPE_FIELD = "TYPE"
INSTANCE_FIELD = "INSTANCE"

# (declaring class, type variable name) -> bound type
Bindings = Mapping[tuple[str, str], JavaType]

_NO_BINDINGS: Bindings = MappingProxyType({})


@dataclass(frozen=True)
class DispatchReference:
    """Where the ActionType token lives: ``owner.member``."""

    owner: ClassInfo
    member: str


@dataclass(frozen=True)
class ResolvedAction:
    action_class: ClassInfo
    request_class: ClassInfo
    response_class: ClassInfo
    dispatch_reference: DispatchReference


@dataclass(frozen=True)
class AncestorStep:
    """One ``child extends supertype`` edge of the superclass chain.

    ``parent`` is the metadata of ``supertype`` or None when the source
    does not have it.
    """

    child: ClassInfo
    supertype: ClassType
    parent: ClassInfo | None


def ancestor_chain(source: ClassMetadataSource, class_name: str) -> Iterator[AncestorStep]:
    """Yield the superclass edges of ``class_name`` from the leaf upward."""
    current = source.load_class(class_name)
    seen: set[str] = set()
    while current.superclass is not None and current.name not in seen:
        seen.add(current.name)
        parent = source.find_class(current.superclass.name)
        yield AncestorStep(current, current.superclass, parent)
        if parent is None:
            return
        current = parent


def substitute(java_type: JavaType, owner: str, bindings: Bindings) -> JavaType:
    """Replace a type variable declared by ``owner`` with its binding, if any."""
    if isinstance(java_type, TypeVariable):
        return bindings.get((owner, java_type.name), java_type)
    return java_type


def bind_step(bindings: Bindings, step: AncestorStep) -> Bindings:
    """Return new bindings with the parent's type parameters bound for this step.

    Arguments written in terms of the child's own type variables are
    substituted through ``bindings`` so that the result only refers to
    types supplied further down the chain.
    """
    if step.parent is None:
        return bindings
    updated = dict(bindings)
    for param, argument in zip(step.parent.type_parameters, step.supertype.arguments):
        updated[(step.parent.name, param)] = substitute(argument, step.child.name, bindings)
    return MappingProxyType(updated)


def concrete_class_name(java_type: JavaType) -> str | None:
    """The class a type resolves to, or None for variables, wildcards and arrays."""
    if isinstance(java_type, ClassType):
        return java_type.name
    return None


def resolve_type_arguments(
    steps: Iterable[AncestorStep],
    base_class: str = TRANSPORT_ACTION_CLASS,
) -> tuple[str, str] | None:
    """Fold the chain into bindings and read the base class's two arguments.

    Returns (request class, response class) or None when the chain ends or
    the base's arguments do not resolve to concrete classes.
    """
    bindings = _NO_BINDINGS
    for step in steps:
        if step.supertype.name == base_class:
            arguments = [substitute(a, step.child.name, bindings) for a in step.supertype.arguments]
            if len(arguments) < 2:
                return None
            request, response = concrete_class_name(arguments[0]), concrete_class_name(arguments[1])
            if request is None or response is None:
                return None
            return request, response
        bindings = bind_step(bindings, step)
    return None


def has_public_static_field(
    class_info: ClassInfo, field_name: str, source: ClassMetadataSource,
) -> bool:
    """True if the class declares or inherits a public static ``field_name``.

    Superclasses and interfaces are searched breadth first. Supertypes
    missing from the source are not searched.
    """
    pending = [class_info]
    seen: set[str] = set()
    while pending:
        current = pending.pop(0)
        if current.name in seen:
            continue
        seen.add(current.name)
        if field_name in current.public_static_fields:
            return True
        for supertype in current.supertypes():
            parent = source.find_class(supertype.name)
            if parent is not None:
                pending.append(parent)
    return False


def resolve_dispatch_reference(
    action_class: ClassInfo, source: ClassMetadataSource,
) -> DispatchReference:
    """Prefer ``TransportFooAction.TYPE``; fall back to ``FooAction.INSTANCE``.

    ``TYPE`` may be inherited; it is still referenced through the action class.
    """
    if has_public_static_field(action_class, TYPE_FIELD, source):
        return DispatchReference(action_class, TYPE_FIELD)
    simple = action_class.simple_name
    if simple.startswith(TRANSPORT_PREFIX) and len(simple) > len(TRANSPORT_PREFIX):
        sibling_name = f"{action_class.package}.{simple[len(TRANSPORT_PREFIX):]}"
        sibling = source.find_class(sibling_name)
        if sibling is not None:
            return DispatchReference(sibling, INSTANCE_FIELD)
        raise ActionResolutionError(
            f"Could not resolve action type reference for {action_class.name}: "
            f"no {TYPE_FIELD} field and no class {sibling_name}"
        )
    raise ActionResolutionError(
        f"Could not resolve action type reference for {action_class.name}"
    )


def resolve(dispatch_target: str, source: ClassMetadataSource) -> ResolvedAction:
    """Resolve the action class, its request/response classes and ActionType reference.

    Raises ClassNotFoundError when a class is missing from the source and
    ActionResolutionError when the type arguments or the ActionType
    reference cannot be determined.
    """
    action_class = source.load_class(dispatch_target)
    resolved = resolve_type_arguments(ancestor_chain(source, dispatch_target))
    if resolved is None:
        raise ActionResolutionError(
            f"Could not resolve Request/Response type parameters for {dispatch_target}"
        )
    request_name, response_name = resolved
    return ResolvedAction(
        action_class=action_class,
        request_class=source.load_class(request_name),
        response_class=source.load_class(response_name),
        dispatch_reference=resolve_dispatch_reference(action_class, source),
    )
