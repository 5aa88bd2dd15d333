"""Load schema.json and index its types.

Reads the compiled API schema into the typed model and builds the
``namespace.name`` lookup used to resolve each endpoint's request and
response types.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import ValidationError

from .errors import SchemaError
from .models import Endpoint, Schema, TypeDefinition, TypeReference

logger = logging.getLogger(__name__)


def type_key(namespace: str | None, name: str | None) -> str:
    """Build the type index key for a namespace and name."""
    return f"{namespace or ''}.{name or ''}"


@dataclass(frozen=True)
class ParsedSchema:
    """A parsed schema together with its type index."""

    schema: Schema
    type_index: Mapping[str, TypeDefinition]

    def lookup(self, ref: TypeReference | None) -> TypeDefinition | None:
        """Look up a type by reference. Returns None if absent or not found."""
        if ref is None:
            return None
        return self.type_index.get(type_key(ref.namespace, ref.name))

    def request_type(self, endpoint: Endpoint) -> TypeDefinition | None:
        return self.lookup(endpoint.request)

    def response_type(self, endpoint: Endpoint) -> TypeDefinition | None:
        return self.lookup(endpoint.response)


def build_type_index(schema: Schema) -> Mapping[str, TypeDefinition]:
    """Index types by key. Later duplicates overwrite earlier ones."""
    index: dict[str, TypeDefinition] = {}
    for type_def in schema.types:
        index[type_key(type_def.namespace, type_def.name)] = type_def
    return MappingProxyType(index)


def load_document(path: Path) -> dict[str, Any]:
    """Read the raw JSON document from disk."""
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, ValueError) as exc:
        raise SchemaError(f"Failed to parse schema at {path}: {exc}") from exc
    if not isinstance(document, dict):
        raise SchemaError(f"Failed to parse schema at {path}: top level is not an object")
    return document


def parse_document(document: dict[str, Any]) -> ParsedSchema:
    """Validate a raw document into a ParsedSchema."""
    try:
        schema = Schema.model_validate(document)
    except ValidationError as exc:
        raise SchemaError(f"Malformed schema document: {exc}") from exc
    return ParsedSchema(schema=schema, type_index=build_type_index(schema))


def parse(path: Path) -> ParsedSchema:
    """Parse the schema file and build the type index."""
    parsed = parse_document(load_document(Path(path)))
    logger.debug(
        "Loaded %s: %d types, %d endpoints",
        path, len(parsed.schema.types), len(parsed.schema.endpoints),
    )
    return parsed
