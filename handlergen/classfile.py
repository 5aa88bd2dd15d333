"""Read class metadata straight from compiled .class files.

Only the parts the generator needs are decoded: the constant pool, access
flags, this/super class, interfaces, field names and flags, and the class
``Signature`` attribute (JVMS 4.7.9.1) which carries generic super types.
Method bodies and other attributes are skipped by length.
"""

from __future__ import annotations

import logging
import struct
import zipfile
from pathlib import Path
from typing import Iterable

from .errors import ClassFormatError
from .metadata import (
    ArrayType,
    ClassInfo,
    ClassMetadataSource,
    ClassType,
    JavaType,
    PrimitiveType,
    TypeVariable,
    WildcardType,
)

logger = logging.getLogger(__name__)

MAGIC = 0xCAFEBABE

ACC_PUBLIC = 0x0001
ACC_STATIC = 0x0008
ACC_INTERFACE = 0x0200

CONSTANT_UTF8 = 1
CONSTANT_LONG = 5
CONSTANT_DOUBLE = 6
CONSTANT_CLASS = 7

# Fixed payload sizes per constant tag (Utf8 is variable-length)
_CONSTANT_SIZES: dict[int, int] = {
    3: 4,   # Integer
    4: 4,   # Float
    5: 8,   # Long
    6: 8,   # Double
    7: 2,   # Class
    8: 2,   # String
    9: 4,   # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}

_PRIMITIVE_DESCRIPTORS = frozenset("BCDFIJSZV")


class _ByteReader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def _take(self, fmt: str) -> int:
        try:
            (value,) = struct.unpack_from(fmt, self.data, self.pos)
        except struct.error as exc:
            raise ClassFormatError(f"Truncated class file at offset {self.pos}") from exc
        self.pos += struct.calcsize(fmt)
        return value

    def u1(self) -> int:
        return self._take(">B")

    def u2(self) -> int:
        return self._take(">H")

    def u4(self) -> int:
        return self._take(">I")

    def read(self, length: int) -> bytes:
        if self.pos + length > len(self.data):
            raise ClassFormatError(f"Truncated class file at offset {self.pos}")
        chunk = self.data[self.pos:self.pos + length]
        self.pos += length
        return chunk

    def skip(self, length: int) -> None:
        self.read(length)


class _ConstantPool:
    def __init__(self, reader: _ByteReader) -> None:
        count = reader.u2()
        self._tags: dict[int, int] = {}
        self._values: dict[int, object] = {}
        index = 1
        while index < count:
            tag = reader.u1()
            self._tags[index] = tag
            if tag == CONSTANT_UTF8:
                length = reader.u2()
                # Modified UTF-8; identifiers decode cleanly as UTF-8
                self._values[index] = reader.read(length).decode("utf-8", errors="replace")
            elif tag == CONSTANT_CLASS:
                self._values[index] = reader.u2()
            elif tag in _CONSTANT_SIZES:
                reader.skip(_CONSTANT_SIZES[tag])
            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at index {index}")
            # Long and Double occupy two slots
            index += 2 if tag in (CONSTANT_LONG, CONSTANT_DOUBLE) else 1

    def utf8(self, index: int) -> str:
        if self._tags.get(index) != CONSTANT_UTF8:
            raise ClassFormatError(f"Constant #{index} is not a Utf8 entry")
        return self._values[index]  # type: ignore[return-value]

    def class_name(self, index: int) -> str:
        """Binary class name with dots, e.g. ``a.b.Outer$Inner``."""
        if self._tags.get(index) != CONSTANT_CLASS:
            raise ClassFormatError(f"Constant #{index} is not a Class entry")
        return self.utf8(self._values[index]).replace("/", ".")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Generic signatures
# ---------------------------------------------------------------------------

class SignatureParser:
    """Recursive-descent parser for class signatures (JVMS 4.7.9.1)."""

    def __init__(self, signature: str) -> None:
        self.text = signature
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise ClassFormatError(
                f"Bad signature {self.text!r}: expected {char!r} at {self.pos}"
            )
        self.pos += 1

    def _identifier(self, stops: str) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in stops:
            self.pos += 1
        if start == self.pos:
            raise ClassFormatError(f"Bad signature {self.text!r}: empty identifier at {start}")
        return self.text[start:self.pos]

    def parse_class_signature(self) -> tuple[tuple[str, ...], ClassType, tuple[ClassType, ...]]:
        """Return (type parameters, superclass, interfaces)."""
        params = self._type_parameters() if self._peek() == "<" else ()
        superclass = self._class_type()
        interfaces = []
        while self.pos < len(self.text):
            interfaces.append(self._class_type())
        return params, superclass, tuple(interfaces)

    def _type_parameters(self) -> tuple[str, ...]:
        self._expect("<")
        names = []
        while self._peek() != ">":
            names.append(self._identifier(":"))
            # class bound may be empty, interface bounds follow
            self._expect(":")
            if self._peek() not in (":", ">", ""):
                self.reference_type()
            while self._peek() == ":":
                self.pos += 1
                self.reference_type()
        self._expect(">")
        return tuple(names)

    def reference_type(self) -> JavaType:
        char = self._peek()
        if char == "L":
            return self._class_type()
        if char == "T":
            self.pos += 1
            name = self._identifier(";")
            self._expect(";")
            return TypeVariable(name)
        if char == "[":
            self.pos += 1
            return ArrayType(self._java_type())
        raise ClassFormatError(f"Bad signature {self.text!r}: unexpected {char!r} at {self.pos}")

    def _java_type(self) -> JavaType:
        char = self._peek()
        if char and char in _PRIMITIVE_DESCRIPTORS:
            self.pos += 1
            return PrimitiveType(char)
        return self.reference_type()

    def _class_type(self) -> ClassType:
        self._expect("L")
        name = self._identifier("<.;")
        arguments = self._type_arguments() if self._peek() == "<" else ()
        # Inner class suffixes: Outer<T>.Inner<U>
        while self._peek() == ".":
            self.pos += 1
            name = f"{name}${self._identifier('<.;')}"
            arguments = self._type_arguments() if self._peek() == "<" else ()
        self._expect(";")
        return ClassType(name.replace("/", "."), arguments)

    def _type_arguments(self) -> tuple[JavaType, ...]:
        self._expect("<")
        arguments: list[JavaType] = []
        while self._peek() != ">":
            char = self._peek()
            if char == "*":
                self.pos += 1
                arguments.append(WildcardType())
            elif char in ("+", "-"):
                self.pos += 1
                arguments.append(WildcardType(self.reference_type(), char))
            else:
                arguments.append(self.reference_type())
        self._expect(">")
        return tuple(arguments)


def parse_class_signature(signature: str) -> tuple[tuple[str, ...], ClassType, tuple[ClassType, ...]]:
    return SignatureParser(signature).parse_class_signature()


# ---------------------------------------------------------------------------
# Class file decoding
# ---------------------------------------------------------------------------

def _read_attributes(reader: _ByteReader, pool: _ConstantPool) -> dict[str, bytes]:
    attributes: dict[str, bytes] = {}
    for _ in range(reader.u2()):
        name = pool.utf8(reader.u2())
        attributes[name] = reader.read(reader.u4())
    return attributes


def read_class(data: bytes) -> ClassInfo:
    """Decode a class file into ClassInfo."""
    reader = _ByteReader(data)
    if reader.u4() != MAGIC:
        raise ClassFormatError("Not a class file (bad magic)")
    reader.u2()  # minor version
    reader.u2()  # major version
    pool = _ConstantPool(reader)

    access_flags = reader.u2()
    name = pool.class_name(reader.u2())
    super_index = reader.u2()
    superclass = ClassType(pool.class_name(super_index)) if super_index else None
    interfaces = tuple(ClassType(pool.class_name(reader.u2())) for _ in range(reader.u2()))

    static_fields = set()
    for _ in range(reader.u2()):
        field_flags = reader.u2()
        field_name = pool.utf8(reader.u2())
        reader.u2()  # descriptor
        _read_attributes(reader, pool)
        if field_flags & ACC_PUBLIC and field_flags & ACC_STATIC:
            static_fields.add(field_name)

    for _ in range(reader.u2()):
        reader.skip(6)  # access, name, descriptor
        _read_attributes(reader, pool)

    type_parameters: tuple[str, ...] = ()
    attributes = _read_attributes(reader, pool)
    if "Signature" in attributes:
        (signature_index,) = struct.unpack(">H", attributes["Signature"][:2])
        type_parameters, superclass, interfaces = parse_class_signature(pool.utf8(signature_index))

    return ClassInfo(
        name=name,
        type_parameters=type_parameters,
        superclass=superclass,
        interfaces=interfaces,
        public_static_fields=frozenset(static_fields),
        is_interface=bool(access_flags & ACC_INTERFACE),
    )


# ---------------------------------------------------------------------------
# Classpath source
# ---------------------------------------------------------------------------

class ClasspathMetadataSource(ClassMetadataSource):
    """Class metadata read from class directories and jar/zip archives.

    Entries are searched in classpath order; entries that are neither a
    directory nor an archive are ignored. Archives stay open until ``close``.
    """

    def __init__(self, entries: Iterable[Path]) -> None:
        super().__init__()
        self._entries: list[Path | zipfile.ZipFile] = []
        for entry in entries:
            entry = Path(entry)
            if entry.is_dir():
                self._entries.append(entry)
            elif entry.is_file() and zipfile.is_zipfile(entry):
                self._entries.append(zipfile.ZipFile(entry))
            else:
                logger.debug("Ignoring classpath entry %s", entry)

    def _read_class(self, name: str) -> ClassInfo | None:
        relative = name.replace(".", "/") + ".class"
        for entry in self._entries:
            if isinstance(entry, zipfile.ZipFile):
                try:
                    data = entry.read(relative)
                except KeyError:
                    continue
            else:
                candidate = entry / relative
                if not candidate.is_file():
                    continue
                data = candidate.read_bytes()
            return self._decode(name, data)
        return None

    @staticmethod
    def _decode(name: str, data: bytes) -> ClassInfo:
        try:
            return read_class(data)
        except ClassFormatError as exc:
            raise ClassFormatError(f"{name}: {exc}") from exc

    def close(self) -> None:
        for entry in self._entries:
            if isinstance(entry, zipfile.ZipFile):
                entry.close()
        self._entries.clear()
        super().close()
