"""Drive one generation run: schema -> handlers -> registry -> reconcile.

Every endpoint is processed in isolation. Filtered endpoints are skipped
with a debug diagnostic, failing endpoints are logged and recorded, and
the run carries on. Only schema and output-root problems abort the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import action_resolver, codegen, listeners, loader
from .errors import OutputError
from .metadata import ClassMetadataSource
from .models import Endpoint, TypeDefinition

logger = logging.getLogger(__name__)

SUPPORTED_BODY_KINDS = frozenset({"no_body", "value", "properties"})


@dataclass
class RunSummary:
    """What a run did, for the CLI and for tests."""

    types_parsed: int = 0
    endpoints_seen: int = 0
    generated: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)


def is_supported_body_kind(request_type: TypeDefinition) -> bool:
    """A missing body counts as no body."""
    body = request_type.body
    return body is None or body.kind is None or body.kind in SUPPORTED_BODY_KINDS


def skip_reason(
    endpoint: Endpoint,
    request_type: TypeDefinition | None,
    response_type: TypeDefinition | None,
) -> str | None:
    """Why a dispatchable endpoint cannot be generated, or None if it can."""
    if request_type is None:
        return "request type not found in schema"
    if response_type is None:
        return "response type not found in schema"
    if not is_supported_body_kind(request_type):
        return f"unsupported body kind {request_type.body.kind!r}"
    return None


def prepare_output_dir(output_dir: Path) -> Path:
    """Create the output root. Raises OutputError when that is impossible."""
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"Could not create output directory {output_dir}: {exc}") from exc
    return output_dir


def generate_endpoint(
    endpoint: Endpoint,
    request_type: TypeDefinition,
    source: ClassMetadataSource,
) -> codegen.SourceUnit:
    """RESOLVE then EMIT for one endpoint."""
    resolved = action_resolver.resolve(endpoint.dispatch_target.strip(), source)
    strategy = listeners.resolve_strategy(resolved.response_class, source)
    cancellable = listeners.is_cancellable(resolved.request_class, source)
    releasable = listeners.has_releasable_source(resolved.request_class, source)
    return codegen.emit(endpoint, request_type, resolved, strategy, cancellable, releasable)


def reconcile_output(output_dir: Path, written: set[Path]) -> list[Path]:
    """Delete generated sources under ``output_dir`` that this run did not write."""
    deleted = []
    for path in sorted(output_dir.rglob("*.java")):
        if path.resolve() in written:
            continue
        try:
            path.unlink()
        except OSError as exc:
            raise OutputError(f"Could not delete stale file {path}: {exc}") from exc
        logger.info("Deleted stale %s", path)
        deleted.append(path)
    return deleted


def run(schema_path: Path, source: ClassMetadataSource, output_dir: Path) -> RunSummary:
    """Generate handlers for every dispatchable endpoint in the schema.

    ``source`` is closed when the run ends. Raises SchemaError or
    OutputError; everything that goes wrong for a single endpoint is
    reported in the returned summary instead.
    """
    with source:
        parsed = loader.parse(schema_path)
        summary = RunSummary(
            types_parsed=len(parsed.schema.types),
            endpoints_seen=len(parsed.schema.endpoints),
        )
        output_dir = prepare_output_dir(output_dir)
        written: set[Path] = set()
        handlers = []

        for endpoint in parsed.schema.endpoints:
            if not endpoint.has_dispatch_target:
                continue
            request_type = parsed.request_type(endpoint)
            reason = skip_reason(endpoint, request_type, parsed.response_type(endpoint))
            if reason is not None:
                logger.debug("Skipping %s: %s", endpoint.name, reason)
                summary.skipped.append((endpoint.name, reason))
                continue
            try:
                unit = generate_endpoint(endpoint, request_type, source)
            except Exception as exc:
                logger.warning("Failed to generate handler for %s: %s", endpoint.name, exc)
                summary.failed.append((endpoint.name, str(exc)))
                continue
            path = Path(output_dir, *unit.relative_path.parts).resolve()
            if path in written:
                logger.warning(
                    "Handler %s for %s collides with an earlier endpoint",
                    unit.class_name, endpoint.name,
                )
                summary.failed.append((endpoint.name, f"duplicate handler class {unit.class_name}"))
                continue
            codegen.write_unit(unit, output_dir)
            written.add(path)
            handlers.append(unit.ref)
            summary.generated.append(unit.class_name)

    registry = codegen.emit_registry(handlers)
    written.add(codegen.write_unit(registry, output_dir).resolve())
    summary.deleted = reconcile_output(output_dir, written)

    logger.info(
        "Generated %d handlers (%d skipped, %d failed, %d stale files deleted)",
        len(summary.generated), len(summary.skipped), len(summary.failed), len(summary.deleted),
    )
    return summary
