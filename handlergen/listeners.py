"""Choose the REST response listener and detect request marker interfaces.

Marker types are probed by name through the metadata source. A marker the
source does not know about simply does not match, so the generator keeps
working against server builds that predate a marker.
"""

from __future__ import annotations

import enum

from .metadata import Assignability, ClassInfo, ClassMetadataSource

LISTENER_PACKAGE = "org.elasticsearch.rest.action"

CHUNKED_TO_XCONTENT_OBJECT = "org.elasticsearch.common.xcontent.ChunkedToXContentObject"
BASE_NODES_RESPONSE = "org.elasticsearch.action.support.nodes.BaseNodesResponse"
REST_STATUS_PROVIDER = "org.elasticsearch.rest.action.RestStatusProvider"

CANCELLABLE_ACTION_REQUEST = "org.elasticsearch.rest.action.CancellableActionRequest"
RELEASABLE_SOURCE_REQUEST = "org.elasticsearch.rest.action.ReleasableSourceRequest"


class ResponseStrategy(enum.Enum):
    """Listener construction pattern, with the listener's binary class name."""

    CHUNKED = f"{LISTENER_PACKAGE}.RestRefCountedChunkedToXContentListener"
    ENVELOPE = f"{LISTENER_PACKAGE}.RestActions$NodesResponseRestListener"
    STATUS_PROVIDING = f"{LISTENER_PACKAGE}.RestStatusToXContentListener"
    DEFAULT = f"{LISTENER_PACKAGE}.RestToXContentListener"

    @property
    def listener_class(self) -> str:
        return self.value

    @property
    def needs_status_reference(self) -> bool:
        """STATUS_PROVIDING listeners also take ``Response::status``."""
        return self is ResponseStrategy.STATUS_PROVIDING


# Checked in order; the first match wins
_STRATEGY_MARKERS: tuple[tuple[str, ResponseStrategy], ...] = (
    (CHUNKED_TO_XCONTENT_OBJECT, ResponseStrategy.CHUNKED),
    (BASE_NODES_RESPONSE, ResponseStrategy.ENVELOPE),
    (REST_STATUS_PROVIDER, ResponseStrategy.STATUS_PROVIDING),
)


def implements_marker(cls: ClassInfo, marker: str, source: ClassMetadataSource) -> bool:
    """True only when the marker is known and ``cls`` is assignable to it."""
    return source.is_assignable(cls.name, marker) is Assignability.ASSIGNABLE


def resolve_strategy(response_class: ClassInfo, source: ClassMetadataSource) -> ResponseStrategy:
    """Resolve the listener strategy for an ActionResponse class."""
    for marker, strategy in _STRATEGY_MARKERS:
        if implements_marker(response_class, marker, source):
            return strategy
    return ResponseStrategy.DEFAULT


def is_cancellable(request_class: ClassInfo, source: ClassMetadataSource) -> bool:
    """Whether the client should be wrapped in RestCancellableNodeClient."""
    return implements_marker(request_class, CANCELLABLE_ACTION_REQUEST, source)


def has_releasable_source(request_class: ClassInfo, source: ClassMetadataSource) -> bool:
    """Whether the listener must release the request's source on completion."""
    return implements_marker(request_class, RELEASABLE_SOURCE_REQUEST, source)
