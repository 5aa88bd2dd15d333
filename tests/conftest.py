"""Shared fixtures for handlergen tests.

Class metadata comes from an in-memory ManifestMetadataSource that models
the slice of the Elasticsearch server the generator looks at. Class files
for the classpath reader are assembled byte by byte, so no JDK is needed.
"""

from __future__ import annotations

import json
import struct
from pathlib import Path
from typing import Any, Callable

import pytest

from handlergen.metadata import ClassInfo, ClassType, ManifestMetadataSource, TypeVariable


# ---------------------------------------------------------------------------
# Class metadata
# ---------------------------------------------------------------------------

TRANSPORT_ACTION = "org.elasticsearch.action.support.TransportAction"
HANDLED_TRANSPORT_ACTION = "org.elasticsearch.action.support.HandledTransportAction"
ACTION_REQUEST = "org.elasticsearch.action.ActionRequest"
ACTION_RESPONSE = "org.elasticsearch.action.ActionResponse"

DELETE_INDEX_PACKAGE = "org.elasticsearch.action.admin.indices.delete"
HEALTH_PACKAGE = "org.elasticsearch.action.admin.cluster.health"


def make_class(
    name: str,
    superclass: str | None = None,
    arguments: tuple = (),
    type_parameters: tuple[str, ...] = (),
    interfaces: tuple[str, ...] = (),
    static_fields: tuple[str, ...] = (),
    interface: bool = False,
) -> ClassInfo:
    """Build ClassInfo; string arguments become ClassType, ``"T:"`` prefixed ones TypeVariable."""
    def arg(value: Any) -> Any:
        if isinstance(value, str):
            return TypeVariable(value[2:]) if value.startswith("T:") else ClassType(value)
        return value

    return ClassInfo(
        name=name,
        type_parameters=type_parameters,
        superclass=ClassType(superclass, tuple(arg(a) for a in arguments)) if superclass else None,
        interfaces=tuple(ClassType(i) for i in interfaces),
        public_static_fields=frozenset(static_fields),
        is_interface=interface,
    )


def server_classes() -> list[ClassInfo]:
    """Framework classes plus the indices.delete and cluster.health actions."""
    return [
        make_class(TRANSPORT_ACTION, "java.lang.Object", type_parameters=("Request", "Response")),
        make_class(
            HANDLED_TRANSPORT_ACTION, TRANSPORT_ACTION, ("T:Request", "T:Response"),
            type_parameters=("Request", "Response"),
        ),
        make_class(ACTION_REQUEST, "java.lang.Object"),
        make_class(ACTION_RESPONSE, "java.lang.Object"),
        make_class("org.elasticsearch.common.xcontent.ChunkedToXContentObject", interface=True),
        make_class("org.elasticsearch.action.support.nodes.BaseNodesResponse", ACTION_RESPONSE),
        make_class("org.elasticsearch.rest.action.RestStatusProvider", interface=True),
        make_class("org.elasticsearch.rest.action.CancellableActionRequest", interface=True),
        make_class("org.elasticsearch.rest.action.ReleasableSourceRequest", interface=True),
        # indices.delete
        make_class(
            f"{DELETE_INDEX_PACKAGE}.TransportDeleteIndexAction",
            HANDLED_TRANSPORT_ACTION,
            (f"{DELETE_INDEX_PACKAGE}.DeleteIndexRequest", "org.elasticsearch.action.support.master.AcknowledgedResponse"),
            static_fields=("TYPE",),
        ),
        make_class(f"{DELETE_INDEX_PACKAGE}.DeleteIndexRequest", ACTION_REQUEST),
        make_class("org.elasticsearch.action.support.master.AcknowledgedResponse", ACTION_RESPONSE),
        # cluster.health
        make_class(
            f"{HEALTH_PACKAGE}.TransportClusterHealthAction",
            HANDLED_TRANSPORT_ACTION,
            (f"{HEALTH_PACKAGE}.ClusterHealthRequest", f"{HEALTH_PACKAGE}.ClusterHealthResponse"),
        ),
        make_class(f"{HEALTH_PACKAGE}.ClusterHealthAction", static_fields=("INSTANCE",)),
        make_class(
            f"{HEALTH_PACKAGE}.ClusterHealthRequest", ACTION_REQUEST,
            interfaces=("org.elasticsearch.rest.action.CancellableActionRequest",),
        ),
        make_class(
            f"{HEALTH_PACKAGE}.ClusterHealthResponse", ACTION_RESPONSE,
            interfaces=("org.elasticsearch.rest.action.RestStatusProvider",),
        ),
    ]


@pytest.fixture
def make_source() -> Callable[..., ManifestMetadataSource]:
    """Factory: server classes plus any extra ClassInfo."""
    def factory(*extra: ClassInfo) -> ManifestMetadataSource:
        return ManifestMetadataSource([*server_classes(), *extra])
    return factory


@pytest.fixture
def source(make_source) -> ManifestMetadataSource:
    return make_source()


# ---------------------------------------------------------------------------
# Schema documents
# ---------------------------------------------------------------------------

def builtin(name: str) -> dict:
    return {"kind": "instance_of", "type": {"name": name, "namespace": "_builtins"}}


def domain(name: str) -> dict:
    return {"kind": "instance_of", "type": {"name": name, "namespace": "_types"}}


def request_type(
    name: str,
    namespace: str,
    path: list[dict] | None = None,
    query: list[dict] | None = None,
    body_kind: str = "no_body",
) -> dict:
    return {
        "kind": "request",
        "name": {"name": name, "namespace": namespace},
        "path": path or [],
        "query": query or [],
        "body": {"kind": body_kind},
    }


def response_type(namespace: str) -> dict:
    return {
        "kind": "response",
        "name": {"name": "Response", "namespace": namespace},
        "body": {"kind": "no_body"},
    }


INDICES_DELETE_REQUEST = request_type(
    "Request", "indices.delete",
    path=[{"name": "index", "required": True, "type": domain("Indices")}],
    query=[
        {"name": "allow_no_indices", "type": builtin("boolean")},
        {"name": "expand_wildcards", "type": domain("ExpandWildcards")},
        {"name": "ignore_unavailable", "type": builtin("boolean")},
        {"name": "master_timeout", "type": domain("Duration")},
        {"name": "timeout", "type": domain("Duration")},
    ],
)

CLUSTER_HEALTH_REQUEST = request_type(
    "Request", "cluster.health",
    path=[{"name": "index", "type": domain("Indices")}],
    query=[
        {"name": "level", "type": builtin("string")},
        {"name": "local", "type": builtin("boolean"), "serverDefault": False},
        {"name": "wait_for_status", "type": builtin("string")},
        {"name": "timeout", "type": domain("Duration")},
    ],
)

INDICES_DELETE_RESPONSE = response_type("indices.delete")
CLUSTER_HEALTH_RESPONSE = response_type("cluster.health")

INDICES_DELETE_ENDPOINT = {
    "name": "indices.delete",
    "urls": [{"path": "/{index}", "methods": ["DELETE"]}],
    "request": {"name": "Request", "namespace": "indices.delete"},
    "response": {"name": "Response", "namespace": "indices.delete"},
    "availability": {"serverless": {"visibility": "public"}},
    "serverTransportAction": f"{DELETE_INDEX_PACKAGE}.TransportDeleteIndexAction",
}

CLUSTER_HEALTH_ENDPOINT = {
    "name": "cluster.health",
    "urls": [
        {"path": "/_cluster/health", "methods": ["GET"]},
        {"path": "/_cluster/health/{index}", "methods": ["GET"]},
    ],
    "request": {"name": "Request", "namespace": "cluster.health"},
    "response": {"name": "Response", "namespace": "cluster.health"},
    "serverTransportAction": f"{HEALTH_PACKAGE}.TransportClusterHealthAction",
    "allowSystemIndexAccess": True,
    "canTripCircuitBreaker": False,
}


@pytest.fixture
def schema_document() -> dict:
    """Two generatable endpoints, one without a dispatch target, one with a body kind we skip."""
    return {
        "types": [
            INDICES_DELETE_REQUEST,
            INDICES_DELETE_RESPONSE,
            CLUSTER_HEALTH_REQUEST,
            CLUSTER_HEALTH_RESPONSE,
            request_type("Request", "cat.indices"),
            request_type("Request", "ingest.simulate", body_kind="dictionary_of"),
            response_type("ingest.simulate"),
        ],
        "endpoints": [
            INDICES_DELETE_ENDPOINT,
            CLUSTER_HEALTH_ENDPOINT,
            {
                "name": "cat.indices",
                "urls": [{"path": "/_cat/indices", "methods": ["GET"]}],
                "request": {"name": "Request", "namespace": "cat.indices"},
            },
            {
                "name": "ingest.simulate",
                "urls": [{"path": "/_ingest/pipeline/_simulate", "methods": ["POST"]}],
                "request": {"name": "Request", "namespace": "ingest.simulate"},
                "response": {"name": "Response", "namespace": "ingest.simulate"},
                "serverTransportAction": "org.elasticsearch.action.ingest.TransportSimulatePipelineAction",
            },
        ],
    }


@pytest.fixture
def write_json(tmp_path) -> Callable[[str, Any], Path]:
    def writer(name: str, document: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path
    return writer


@pytest.fixture
def schema_path(write_json, schema_document) -> Path:
    return write_json("schema.json", schema_document)


# ---------------------------------------------------------------------------
# Class file assembly
# ---------------------------------------------------------------------------

class ClassFileBuilder:
    """Assemble a minimal but valid class file.

    Only the structures read_class looks at are emitted: constant pool,
    this/super/interfaces, fields, an empty method table and an optional
    class Signature attribute.
    """

    ACC_PUBLIC = 0x0001
    ACC_STATIC = 0x0008
    ACC_INTERFACE = 0x0200

    def __init__(self, name: str, superclass: str | None = "java/lang/Object") -> None:
        self.name = name
        self.superclass = superclass
        self.interfaces: list[str] = []
        self.fields: list[tuple[int, str, str]] = []
        self.signature: str | None = None
        self.access = self.ACC_PUBLIC
        self._pool: list[bytes] = []
        self._index: dict[tuple, int] = {}

    def _add(self, key: tuple, entry: bytes, slots: int = 1) -> int:
        if key not in self._index:
            self._index[key] = len(self._pool) + 1
            self._pool.append(entry)
            for _ in range(slots - 1):
                self._pool.append(b"")
        return self._index[key]

    def utf8(self, text: str) -> int:
        data = text.encode("utf-8")
        return self._add(("utf8", text), struct.pack(">BH", 1, len(data)) + data)

    def class_ref(self, name: str) -> int:
        name_index = self.utf8(name)
        return self._add(("class", name), struct.pack(">BH", 7, name_index))

    def long_constant(self, value: int) -> int:
        return self._add(("long", value), struct.pack(">Bq", 5, value), slots=2)

    def build(self) -> bytes:
        this_index = self.class_ref(self.name)
        super_index = self.class_ref(self.superclass) if self.superclass else 0
        interface_indexes = [self.class_ref(i) for i in self.interfaces]
        field_entries = [
            struct.pack(">HHHH", flags, self.utf8(name), self.utf8(descriptor), 0)
            for flags, name, descriptor in self.fields
        ]
        attributes = b""
        attribute_count = 0
        if self.signature is not None:
            attributes = struct.pack(">HIH", self.utf8("Signature"), 2, self.utf8(self.signature))
            attribute_count = 1

        out = struct.pack(">IHH", 0xCAFEBABE, 0, 61)
        out += struct.pack(">H", len(self._pool) + 1) + b"".join(self._pool)
        out += struct.pack(">HHH", self.access, this_index, super_index)
        out += struct.pack(">H", len(interface_indexes))
        out += b"".join(struct.pack(">H", i) for i in interface_indexes)
        out += struct.pack(">H", len(field_entries)) + b"".join(field_entries)
        out += struct.pack(">H", 0)  # methods
        out += struct.pack(">H", attribute_count) + attributes
        return out


@pytest.fixture
def class_file() -> Callable[..., ClassFileBuilder]:
    return ClassFileBuilder
