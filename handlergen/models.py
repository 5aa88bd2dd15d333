"""Typed records for the compiled API schema (schema.json).

Every record is a frozen pydantic model. Unknown keys are ignored so newer
schema files keep loading, and JSON camelCase keys map onto snake_case
attributes. Lists are stored as tuples so a parsed schema cannot be
mutated after load.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class SchemaModel(BaseModel):
    """Base for all schema records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _none_to_empty(value: Any) -> Any:
    return () if value is None else value


class TypeReference(SchemaModel):
    """Points at a TypeDefinition by name and namespace."""

    name: str = ""
    namespace: str = ""

    @field_validator("name", "namespace", mode="before")
    @classmethod
    def _coerce_none(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def key(self) -> str:
        return f"{self.namespace}.{self.name}"


class TypeDescriptor(SchemaModel):
    """A (recursive) type expression attached to a property or body."""

    kind: str | None = None
    type: TypeReference | None = None
    value: TypeDescriptor | None = None
    key: TypeDescriptor | None = None
    items: tuple[TypeDescriptor, ...] = ()
    literal: Any = None

    @model_validator(mode="before")
    @classmethod
    def _split_literal(cls, data: Any) -> Any:
        # literal_value carries the literal itself under "value"
        if isinstance(data, dict) and data.get("kind") == "literal_value" and "value" in data:
            data = dict(data)
            data["literal"] = data.pop("value")
        return data

    @field_validator("items", mode="before")
    @classmethod
    def _items_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)


class Property(SchemaModel):
    """A path, query or body property of a type."""

    name: str
    required: bool = False
    type: TypeDescriptor | None = None
    server_default: Any = None
    description: str | None = None


class Body(SchemaModel):
    """Request body shape: no_body, value or properties."""

    kind: str | None = None
    value: TypeDescriptor | None = None
    properties: tuple[Property, ...] = ()

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)


class EnumMember(SchemaModel):
    name: str
    description: str | None = None


class TypeDefinition(SchemaModel):
    """An entry of the schema ``types`` array.

    Structure depends on ``kind``:
      - request: ``path``, ``query`` and ``body``
      - interface (and other object kinds): ``properties``
      - enum: ``members``

    The schema ships the name either as flat ``name``/``namespace`` keys or
    as a nested ``{"name": {"name": ..., "namespace": ...}}`` object; both
    are accepted.
    """

    name: str
    namespace: str = ""
    kind: str | None = None
    inherits: TypeReference | None = None
    path: tuple[Property, ...] = ()
    query: tuple[Property, ...] = ()
    body: Body | None = None
    properties: tuple[Property, ...] = ()
    members: tuple[EnumMember, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _flatten_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("name"), dict):
            data = dict(data)
            ref = data.pop("name")
            data["name"] = ref.get("name") or ""
            data["namespace"] = ref.get("namespace") or ""
        return data

    @field_validator("path", "query", "properties", "members", mode="before")
    @classmethod
    def _lists_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def key(self) -> str:
        return f"{self.namespace}.{self.name}"


class UrlPattern(SchemaModel):
    path: str
    methods: tuple[str, ...] = ()

    @field_validator("methods", mode="before")
    @classmethod
    def _methods_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)


class AvailabilityDetail(SchemaModel):
    since: str | None = None
    stability: str | None = None
    visibility: str | None = None


class Availability(SchemaModel):
    """Per-surface availability (stack and serverless)."""

    stack: AvailabilityDetail | None = None
    serverless: AvailabilityDetail | None = None


class Endpoint(SchemaModel):
    """One API operation and its optional server-side generation hints."""

    name: str
    description: str | None = None
    urls: tuple[UrlPattern, ...] = ()
    stability: str | None = None
    request: TypeReference | None = None
    response: TypeReference | None = None
    request_body_required: bool = False
    availability: Availability | None = None
    dispatch_target: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "serverTransportAction", "dispatchTarget", "dispatch_target"
        ),
    )
    capabilities: tuple[str, ...] | None = None
    allow_system_index_access: bool | None = None
    can_trip_circuit_breaker: bool | None = None
    response_params: tuple[str, ...] | None = None

    @field_validator("urls", mode="before")
    @classmethod
    def _urls_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def has_dispatch_target(self) -> bool:
        return bool(self.dispatch_target and self.dispatch_target.strip())


class Schema(SchemaModel):
    """The whole schema document."""

    types: tuple[TypeDefinition, ...] = ()
    endpoints: tuple[Endpoint, ...] = ()

    @field_validator("types", "endpoints", mode="before")
    @classmethod
    def _lists_not_null(cls, value: Any) -> Any:
        return _none_to_empty(value)
