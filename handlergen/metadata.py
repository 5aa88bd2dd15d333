"""Queryable class metadata for the server's compiled classes.

The generator never imports server code. It reads what it needs (super
class with generic arguments, interfaces, public static fields) from a
ClassMetadataSource:

  - ManifestMetadataSource: a JSON manifest describing the classes
  - ClasspathMetadataSource (classfile.py): .class files in directories
    and jars

Class names are JVM binary names with dots: ``a.b.Outer$Inner``.
"""

from __future__ import annotations

import enum
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ClassNotFoundError, GeneratorError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic type model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClassType:
    """A class or interface type, possibly parameterized."""

    name: str
    arguments: tuple[JavaType, ...] = ()


@dataclass(frozen=True)
class TypeVariable:
    name: str


@dataclass(frozen=True)
class WildcardType:
    """``?``, ``? extends X`` (bound_kind '+') or ``? super X`` ('-')."""

    bound: JavaType | None = None
    bound_kind: str = ""


@dataclass(frozen=True)
class ArrayType:
    component: JavaType


@dataclass(frozen=True)
class PrimitiveType:
    descriptor: str


JavaType = Union[ClassType, TypeVariable, WildcardType, ArrayType, PrimitiveType]


@dataclass(frozen=True)
class ClassInfo:
    """What the generator knows about one compiled class."""

    name: str
    type_parameters: tuple[str, ...] = ()
    superclass: ClassType | None = None
    interfaces: tuple[ClassType, ...] = ()
    public_static_fields: frozenset[str] = field(default_factory=frozenset)
    is_interface: bool = False

    @property
    def package(self) -> str:
        return self.name.rpartition(".")[0]

    @property
    def simple_name(self) -> str:
        """Innermost simple name: ``a.b.Outer$Inner`` -> ``Inner``."""
        return self.name.rpartition(".")[2].rpartition("$")[2]

    def supertypes(self) -> tuple[ClassType, ...]:
        if self.superclass is None:
            return self.interfaces
        return (self.superclass, *self.interfaces)


class Assignability(enum.Enum):
    ASSIGNABLE = "assignable"
    NOT_ASSIGNABLE = "not_assignable"
    UNKNOWN = "unknown"  # the target type itself is not in the source


# ---------------------------------------------------------------------------
# Source base class
# ---------------------------------------------------------------------------

class ClassMetadataSource(ABC):
    """Read-only class lookup shared by every endpoint of one run.

    Use as a context manager; ``close`` releases open archives.
    """

    def __init__(self) -> None:
        self._cache: dict[str, ClassInfo | None] = {}

    @abstractmethod
    def _read_class(self, name: str) -> ClassInfo | None:
        """Read a class, or return None when it is not present."""

    def find_class(self, name: str) -> ClassInfo | None:
        """Return the class, or None when the source does not have it."""
        if name not in self._cache:
            self._cache[name] = self._read_class(name)
        return self._cache[name]

    def load_class(self, name: str) -> ClassInfo:
        """Return the class, raising ClassNotFoundError when absent."""
        info = self.find_class(name)
        if info is None:
            raise ClassNotFoundError(name)
        return info

    def is_assignable(self, class_name: str, target_name: str) -> Assignability:
        """Whether ``class_name`` is ``target_name`` or one of its subtypes.

        Supertypes missing from the source (typically JDK classes) end that
        branch of the search.
        """
        if self.find_class(target_name) is None:
            return Assignability.UNKNOWN
        seen: set[str] = set()
        pending = [class_name]
        while pending:
            current = pending.pop()
            if current == target_name:
                return Assignability.ASSIGNABLE
            if current in seen:
                continue
            seen.add(current)
            info = self.find_class(current)
            if info is not None:
                pending.extend(t.name for t in info.supertypes())
        return Assignability.NOT_ASSIGNABLE

    def close(self) -> None:
        self._cache.clear()

    def __enter__(self) -> ClassMetadataSource:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# ---------------------------------------------------------------------------
# JSON manifest source
# ---------------------------------------------------------------------------

class _ManifestModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ManifestType(_ManifestModel):
    """``{"name": "a.B", "arguments": [...]}`` or ``{"variable": "T"}``."""

    name: str | None = None
    variable: str | None = None
    wildcard: bool = False
    arguments: tuple[ManifestType, ...] = ()


class ManifestClass(_ManifestModel):
    name: str
    type_parameters: tuple[str, ...] = Field(default=(), alias="typeParameters")
    superclass: ManifestType | None = None
    interfaces: tuple[ManifestType, ...] = ()
    static_fields: tuple[str, ...] = Field(default=(), alias="staticFields")
    interface: bool = False


class Manifest(_ManifestModel):
    classes: tuple[ManifestClass, ...] = ()


def _manifest_type(entry: ManifestType) -> JavaType:
    if entry.variable is not None:
        return TypeVariable(entry.variable)
    if entry.wildcard or entry.name is None:
        return WildcardType()
    return ClassType(entry.name, tuple(_manifest_type(a) for a in entry.arguments))


def _manifest_class(entry: ManifestClass) -> ClassInfo:
    superclass = _manifest_type(entry.superclass) if entry.superclass else None
    if superclass is not None and not isinstance(superclass, ClassType):
        raise GeneratorError(f"Superclass of {entry.name} must be a class type")
    interfaces = tuple(_manifest_type(i) for i in entry.interfaces)
    return ClassInfo(
        name=entry.name,
        type_parameters=entry.type_parameters,
        superclass=superclass,
        interfaces=tuple(i for i in interfaces if isinstance(i, ClassType)),
        public_static_fields=frozenset(entry.static_fields),
        is_interface=entry.interface,
    )


class ManifestMetadataSource(ClassMetadataSource):
    """Class metadata described by a JSON manifest.

    Manifest shape::

        {"classes": [
          {"name": "org.example.TransportFooAction",
           "superclass": {"name": "org.example.Base",
                          "arguments": [{"name": "org.example.FooRequest"},
                                        {"variable": "T"}]},
           "interfaces": [],
           "typeParameters": ["T"],
           "staticFields": ["TYPE"],
           "interface": false}
        ]}
    """

    def __init__(self, classes: Iterable[ClassInfo]) -> None:
        super().__init__()
        self._classes = {c.name: c for c in classes}

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> ManifestMetadataSource:
        try:
            manifest = Manifest.model_validate(document)
        except ValidationError as exc:
            raise GeneratorError(f"Malformed class manifest: {exc}") from exc
        return cls(_manifest_class(entry) for entry in manifest.classes)

    @classmethod
    def from_file(cls, path: Path) -> ManifestMetadataSource:
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as exc:
            raise GeneratorError(f"Failed to read class manifest {path}: {exc}") from exc
        source = cls.from_dict(document)
        logger.debug("Loaded %d classes from manifest %s", len(source._classes), path)
        return source

    def _read_class(self, name: str) -> ClassInfo | None:
        return self._classes.get(name)
