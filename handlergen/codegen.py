"""Render templates and write generated output.

Takes the context from context_builder and produces one Java compilation
unit per handler plus the handler registry. Rendering happens in memory;
``write_unit`` only touches the file system when the bytes change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Sequence

import jinja2

from .action_resolver import ResolvedAction
from .context_builder import HandlerRef, build_handler_context, build_registry_context
from .errors import OutputError
from .listeners import ResponseStrategy
from .models import Endpoint, TypeDefinition
from .naming import source_path
from .type_mapper import java_string_literal

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
HANDLER_TEMPLATE = "handler.java.j2"
REGISTRY_TEMPLATE = "registry.java.j2"
GENERATOR_NAME = "rest-handler-codegen"


@dataclass(frozen=True)
class SourceUnit:
    """A rendered Java source file."""

    package: str
    class_name: str
    source: str

    @property
    def relative_path(self) -> PurePosixPath:
        return source_path(self.package, self.class_name)

    @property
    def ref(self) -> HandlerRef:
        return HandlerRef(self.package, self.class_name)


@lru_cache(maxsize=1)
def _environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["java_string"] = java_string_literal
    env.globals["generator_name"] = GENERATOR_NAME
    return env


def render(template_name: str, context: dict) -> str:
    return _environment().get_template(template_name).render(**context)


def emit(
    endpoint: Endpoint,
    request_type: TypeDefinition | None,
    resolved: ResolvedAction,
    strategy: ResponseStrategy,
    cancellable: bool = False,
    releasable: bool = False,
) -> SourceUnit:
    """Render the REST handler for one endpoint."""
    context = build_handler_context(
        endpoint, request_type, resolved, strategy, cancellable, releasable,
    )
    return SourceUnit(
        package=context["package"],
        class_name=context["class_name"],
        source=render(HANDLER_TEMPLATE, context),
    )


def emit_registry(handlers: Sequence[HandlerRef]) -> SourceUnit:
    """Render the registry that registers every generated handler."""
    context = build_registry_context(handlers)
    return SourceUnit(
        package=context["package"],
        class_name=context["class_name"],
        source=render(REGISTRY_TEMPLATE, context),
    )


def write_unit(unit: SourceUnit, output_dir: Path) -> Path:
    """Write a unit under ``output_dir`` unless the file already holds the same bytes.

    Returns the absolute path of the file either way.
    """
    path = Path(output_dir, *unit.relative_path.parts)
    data = unit.source.encode("utf-8")
    try:
        if path.is_file() and path.read_bytes() == data:
            logger.debug("Unchanged %s", path)
            return path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise OutputError(f"Could not write {path}: {exc}") from exc
    logger.debug("Wrote %s", path)
    return path
