"""Tests for the listeners module."""

from handlergen.listeners import (
    BASE_NODES_RESPONSE,
    CHUNKED_TO_XCONTENT_OBJECT,
    REST_STATUS_PROVIDER,
    ResponseStrategy,
    has_releasable_source,
    is_cancellable,
    resolve_strategy,
)
from handlergen.metadata import ManifestMetadataSource

from conftest import ACTION_RESPONSE, DELETE_INDEX_PACKAGE, HEALTH_PACKAGE, make_class


class TestResolveStrategy:
    """Listener selection by response type, in priority order."""

    def test_default(self, source):
        response = source.load_class("org.elasticsearch.action.support.master.AcknowledgedResponse")
        assert resolve_strategy(response, source) is ResponseStrategy.DEFAULT

    def test_status_providing(self, source):
        response = source.load_class(f"{HEALTH_PACKAGE}.ClusterHealthResponse")
        assert resolve_strategy(response, source) is ResponseStrategy.STATUS_PROVIDING

    def test_envelope(self, make_source):
        response = make_class("org.example.NodesFooResponse", BASE_NODES_RESPONSE)
        assert resolve_strategy(response, make_source(response)) is ResponseStrategy.ENVELOPE

    def test_chunked_beats_status(self, make_source):
        response = make_class(
            "org.example.FooResponse", ACTION_RESPONSE,
            interfaces=(REST_STATUS_PROVIDER, CHUNKED_TO_XCONTENT_OBJECT),
        )
        assert resolve_strategy(response, make_source(response)) is ResponseStrategy.CHUNKED

    def test_envelope_beats_status(self, make_source):
        response = make_class(
            "org.example.NodesFooResponse", BASE_NODES_RESPONSE, interfaces=(REST_STATUS_PROVIDER,),
        )
        assert resolve_strategy(response, make_source(response)) is ResponseStrategy.ENVELOPE

    def test_unknown_marker_does_not_match(self):
        response = make_class("org.example.FooResponse", interfaces=(CHUNKED_TO_XCONTENT_OBJECT,))
        source = ManifestMetadataSource([response])
        assert resolve_strategy(response, source) is ResponseStrategy.DEFAULT

    def test_listener_classes(self):
        assert ResponseStrategy.ENVELOPE.listener_class.endswith("RestActions$NodesResponseRestListener")
        assert ResponseStrategy.STATUS_PROVIDING.needs_status_reference
        assert not ResponseStrategy.DEFAULT.needs_status_reference


class TestRequestMarkers:
    def test_cancellable(self, source):
        assert is_cancellable(source.load_class(f"{HEALTH_PACKAGE}.ClusterHealthRequest"), source)
        assert not is_cancellable(source.load_class(f"{DELETE_INDEX_PACKAGE}.DeleteIndexRequest"), source)

    def test_releasable_source(self, make_source):
        request = make_class(
            "org.example.BulkFooRequest", interfaces=("org.elasticsearch.rest.action.ReleasableSourceRequest",),
        )
        source = make_source(request)
        assert has_releasable_source(request, source)
        assert not is_cancellable(request, source)
