# File: crudgen/generator.py
"""
crudgen - Generation Pipeline
===============================
Connects every part of crudgen into one run::

    Schema file -> Validate -> (model, controller, view) per entity -> Routes

The pipeline is a small state machine::

    INIT -> VALIDATE -> PER_ENTITY -> ROUTE_GENERATION -> DONE
                  any stage -> FAILED

Entities are processed strictly in input order.  Each stage is bracketed by
its ``before_*`` / ``after_*`` hooks.  Any ``GeneratorError`` (invalid
association, schema error, write error, hook error) stops the run: the
report records the failing entity and stage, files already written stay on
disk, and no later entity is generated.  Exceptions that are not
``GeneratorError`` propagate to the caller untouched.

Usage::

    schema, config = parse_raw_schema(load_schema_file(Path("schema.yaml")))
    report = ScaffoldGenerator(config).generate(schema)
    print(report.summary())
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from crudgen.associations import CompiledRelation, compile_entity
from crudgen.errors import GeneratorError, InvalidAssociationError, SchemaError, TargetError
from crudgen.hooks import STAGES, HookRegistry
from crudgen.manifest import Registration, RegistrationManifest
from crudgen.models import (
    ArtifactFile,
    Entity,
    GenerationConfig,
    GenerationTarget,
    SchemaDefinition,
)
from crudgen.routes import RouteTree, resolve_routes
from crudgen.strategies import RenderStrategy, resolve_strategy
from crudgen.templates import Renderer, TemplateRenderer
from crudgen.utils import Timer
from crudgen.validators import ValidationResult, validate_full
from crudgen.writer import FileRecord, IdempotentWriter, WriteOutcome

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.generator")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


class PipelineState(str, Enum):
    INIT = "init"
    VALIDATE = "validate"
    PER_ENTITY = "per_entity"
    ROUTE_GENERATION = "route_generation"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Everything ``ScaffoldGenerator.generate()`` knows about one run."""

    target: str = ""
    output_directory: str = ""
    dry_run: bool = False
    state: PipelineState = PipelineState.INIT

    failed_entity: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[GeneratorError] = None

    entities_processed: List[str] = field(default_factory=list)
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    unresolved_references: List[str] = field(default_factory=list)
    records: List[FileRecord] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state == PipelineState.DONE

    @property
    def written(self) -> List[FileRecord]:
        return [r for r in self.records if r.outcome == WriteOutcome.WRITTEN]

    @property
    def skipped(self) -> List[FileRecord]:
        return [r for r in self.records if r.outcome == WriteOutcome.SKIPPED]

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        lines.append("=" * 60)
        lines.append("  crudgen - Generation Report")
        lines.append("=" * 60)
        lines.append(f"  Status:     {status}{' (dry run)' if self.dry_run else ''}")
        lines.append(f"  Target:     {self.target}")
        lines.append(f"  Output:     {self.output_directory}")
        lines.append(f"  Entities:   {len(self.entities_processed)}")
        lines.append(f"  Written:    {len(self.written)}")
        lines.append(f"  Skipped:    {len(self.skipped)}")
        lines.append(f"  Total time: {self.total_elapsed_seconds:.3f}s")

        if self.step_metrics:
            lines.append("-" * 60)
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "ok" if step.success else "!!"
                lines.append(
                    f"    {icon} {step.step_name:<28s} {step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        if self.error is not None:
            lines.append("-" * 60)
            where: str = self.failed_stage or "?"
            if self.failed_entity:
                where = f"{self.failed_entity} / {where}"
            lines.append(f"  Failed at {where}:")
            lines.append(f"    {self.error.message}")
            for problem in getattr(self.error, "problems", []):
                lines.append(f"      - {problem}")

        if self.validation_warnings:
            lines.append("-" * 60)
            lines.append(f"  Warnings ({len(self.validation_warnings)}):")
            lines.extend(f"    - {w}" for w in self.validation_warnings)

        if self.unresolved_references:
            lines.append("-" * 60)
            lines.append(f"  Unresolved references ({len(self.unresolved_references)}):")
            lines.extend(f"    - {u}" for u in self.unresolved_references)

        if self.skipped:
            lines.append("-" * 60)
            lines.append("  Kept existing files:")
            lines.extend(f"    = {r.relative_path}" for r in self.skipped)

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Schema loader helpers
# ---------------------------------------------------------------------------


class _UniqueKeyLoader(yaml.SafeLoader):
    """``SafeLoader`` that rejects duplicate mapping keys."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> Dict[Any, Any]:
        seen: Set[Any] = set()
        for key_node, _ in node.value:
            key: Any = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _load_json_file(path: Path) -> Any:
    def reject_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, value in pairs:
            if key in data:
                raise SchemaError(f"Duplicate key '{key}' in {path}")
            data[key] = value
        return data

    try:
        return json.loads(path.read_text(encoding="utf-8"), object_pairs_hook=reject_duplicates)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    try:
        return yaml.load(path.read_text(encoding="utf-8"), Loader=_UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SchemaError(f"Invalid YAML in {path}: {exc}") from exc


def load_schema_file(path: Path) -> Dict[str, Any]:
    """
    Load a schema file (YAML or JSON), dispatching on the extension.

    Raises:
        FileNotFoundError: the file does not exist.
        SchemaError: the file cannot be parsed, repeats a key, or is not a
            mapping at the top level.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Schema file not found: {path}")

    data: Any = _load_json_file(path) if path.suffix.lower() == ".json" else _load_yaml_file(path)
    if not isinstance(data, dict):
        raise SchemaError(
            f"Expected a mapping at the top level of {path}, got {type(data).__name__}."
        )
    logger.info("Loaded schema file %s (%d top-level keys).", path, len(data))
    return data


def _entity_payloads(raw_entities: Any) -> List[Dict[str, Any]]:
    # entities may be a mapping (name -> body) or a list of bodies with "name"
    if raw_entities is None:
        return []
    if isinstance(raw_entities, dict):
        payloads: List[Dict[str, Any]] = []
        for name, body in raw_entities.items():
            if body is not None and not isinstance(body, dict):
                raise SchemaError(f"Entity '{name}' must be a mapping.")
            payloads.append({"name": str(name), **(body or {})})
        return payloads
    if isinstance(raw_entities, list):
        return list(raw_entities)
    raise SchemaError("'entities' must be a mapping or a list.")


def _format_problems(exc: PydanticValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


def parse_raw_schema(
    raw: Dict[str, Any],
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[SchemaDefinition, GenerationConfig]:
    """
    Turn the loaded schema mapping into validated models.

    Expected top-level keys: ``target`` (framework / persistence_backend),
    ``config`` (run settings) and ``entities``.  *overrides* wins over the
    file for both ``target`` keys (``framework``, ``persistence_backend``)
    and ``config`` keys.

    Raises:
        SchemaError: the entities do not match the schema model.
        TargetError: unknown or incompatible framework / backend.
    """
    overrides = dict(overrides or {})

    target_data: Any = raw.get("target") or {}
    if isinstance(target_data, str):
        framework, _, backend = target_data.partition("/")
        target_data = {"framework": framework}
        if backend:
            target_data["persistence_backend"] = backend
    target_data = dict(target_data)
    if "framework" in overrides:
        target_data["framework"] = overrides.pop("framework")
        if "persistence_backend" not in overrides and "backend" not in overrides:
            target_data.pop("persistence_backend", None)
            target_data.pop("backend", None)
    for key in ("persistence_backend", "backend"):
        if key in overrides:
            target_data.pop("backend", None)
            target_data["persistence_backend"] = overrides.pop(key)

    try:
        target: GenerationTarget = GenerationTarget.model_validate(target_data)
    except PydanticValidationError as exc:
        raise TargetError(
            str(target_data.get("framework", "")),
            str(target_data.get("persistence_backend", target_data.get("backend", ""))),
            "; ".join(_format_problems(exc)),
        ) from exc

    config_data: Dict[str, Any] = dict(raw.get("config") or {})
    config_data.update(overrides)
    config_data["target"] = target
    try:
        config: GenerationConfig = GenerationConfig.model_validate(config_data)
    except PydanticValidationError as exc:
        problems: List[str] = _format_problems(exc)
        raise SchemaError("Invalid generation config.", problems=problems) from exc

    try:
        schema: SchemaDefinition = SchemaDefinition.model_validate(
            {"entities": _entity_payloads(raw.get("entities"))}
        )
    except PydanticValidationError as exc:
        problems = _format_problems(exc)
        raise SchemaError(
            f"Schema has {len(problems)} problem(s).", problems=problems
        ) from exc

    logger.info("Parsed schema: %d entities, target=%s.", schema.entity_count, config.target)
    return schema, config


def _failing_entity(exc: GeneratorError) -> Optional[str]:
    # errors raised outside the per-entity loop still know which entity they concern
    if isinstance(exc, InvalidAssociationError):
        return exc.owner
    entities: List[str] = exc.details.get("entities") or []
    return entities[0] if entities else None


# ---------------------------------------------------------------------------
# ScaffoldGenerator
# ---------------------------------------------------------------------------


class ScaffoldGenerator:
    """
    Runs the pipeline for one configuration.

    The render strategy is resolved here, once; an incompatible target
    raises ``TargetError`` before anything is generated.  The generator is
    reusable: every ``generate()`` call gets a fresh writer and manifest.
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        *,
        hooks: Optional[HookRegistry] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._hooks: HookRegistry = hooks if hooks is not None else HookRegistry()
        self._renderer: Renderer = renderer if renderer is not None else TemplateRenderer()
        self._strategy: RenderStrategy = resolve_strategy(
            self._config.target, self._renderer, self._config
        )
        logger.debug(
            "ScaffoldGenerator initialised: target=%s, inheritance=%s, hooks=%d.",
            self._config.target,
            self._config.controller_inheritance,
            len(self._hooks),
        )

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def strategy(self) -> RenderStrategy:
        return self._strategy

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate(
        self,
        schema: SchemaDefinition,
        output_dir: Optional[Path] = None,
    ) -> GenerationReport:
        """Run the whole pipeline and return its report; never raises ``GeneratorError``."""
        root: Path = Path(output_dir if output_dir is not None else self._config.output_dir)
        writer: IdempotentWriter = IdempotentWriter(root, dry_run=self._config.dry_run)
        manifest: RegistrationManifest = RegistrationManifest()
        report: GenerationReport = GenerationReport(
            target=str(self._config.target),
            output_directory=str(writer.root),
            dry_run=self._config.dry_run,
        )

        current_entity: Optional[str] = None
        current_stage: str = "generate"
        started: float = time.perf_counter()

        try:
            self._hooks.run("before_generate", schema.entities)

            current_stage = "validate"
            report.state = PipelineState.VALIDATE
            relations: Dict[str, List[CompiledRelation]] = self._step_validate(schema, report)

            report.state = PipelineState.PER_ENTITY
            for entity in schema.entities:
                current_entity = entity.name
                with Timer(f"entity:{entity.name}") as t:
                    written_before: int = len(writer.records)
                    for stage in STAGES:
                        current_stage = stage
                        self._step_entity_stage(
                            entity, stage, relations[entity.name], writer, manifest
                        )
                report.entities_processed.append(entity.name)
                report.step_metrics.append(GenerationStepMetric(
                    step_name=f"Entity {entity.name}",
                    elapsed_seconds=t.elapsed,
                    detail=f"{len(writer.records) - written_before} file(s)",
                ))
            current_entity = None

            current_stage = "routes"
            report.state = PipelineState.ROUTE_GENERATION
            self._step_routes(schema, writer, manifest, report)

            current_stage = "generate"
            self._hooks.run("after_generate", schema.entities)
            report.state = PipelineState.DONE

        except GeneratorError as exc:
            self._fail(report, exc, current_entity or _failing_entity(exc), current_stage)

        finally:
            report.records = writer.records
            report.total_elapsed_seconds = time.perf_counter() - started

        if report.success:
            logger.info(
                "Generation complete: %d entities, %d written, %d kept, in %.3fs.",
                len(report.entities_processed),
                len(report.written),
                len(report.skipped),
                report.total_elapsed_seconds,
            )
        return report

    # -----------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        schema: SchemaDefinition,
        report: GenerationReport,
    ) -> Dict[str, List[CompiledRelation]]:
        """Run the validators, then compile every association of the now-valid schema."""
        with Timer("validation") as t:
            result: ValidationResult = validate_full(schema, self._config)

        for warning in result.warnings:
            logger.warning("%s", warning)
            report.validation_warnings.append(str(warning))

        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Schema",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=f"{result.error_count} error(s), {result.warning_count} warning(s)",
        ))

        if result.has_errors:
            entities: List[str] = []
            for err in result.errors:
                owner: Optional[str] = err.context.get("entity")
                if owner and owner not in entities:
                    entities.append(owner)
            raise SchemaError(
                f"Schema validation failed with {result.error_count} error(s).",
                {"codes": [e.code for e in result.errors], "entities": entities},
                problems=[e.message for e in result.errors],
            )

        return {entity.name: compile_entity(entity) for entity in schema.entities}

    def _step_entity_stage(
        self,
        entity: Entity,
        stage: str,
        relations: List[CompiledRelation],
        writer: IdempotentWriter,
        manifest: RegistrationManifest,
    ) -> None:
        self._hooks.run(f"before_{stage}_generate", entity)

        artifacts: Tuple[ArtifactFile, ...]
        if stage == "model":
            artifacts = self._strategy.model_artifacts(entity, relations)
        elif stage == "controller":
            artifacts = self._strategy.controller_artifacts(entity, relations)
            registration: Optional[Registration] = self._strategy.registration(entity)
            if registration is not None:
                manifest.add(registration)
        else:
            artifacts = self._strategy.view_artifacts(entity, relations)

        writer.write_all(artifacts)
        logger.debug("%s/%s: %d artifact(s).", entity.name, stage, len(artifacts))

        self._hooks.run(f"after_{stage}_generate", entity, artifacts)

    def _step_routes(
        self,
        schema: SchemaDefinition,
        writer: IdempotentWriter,
        manifest: RegistrationManifest,
        report: GenerationReport,
    ) -> None:
        with Timer("routes") as t:
            tree: RouteTree = resolve_routes(schema.entities)
            report.unresolved_references.extend(str(e) for e in tree.unresolved)

            self._hooks.run("before_routes_generate", tree)
            artifacts: Tuple[ArtifactFile, ...] = self._strategy.routes_artifacts(tree, manifest)
            writer.write_all(artifacts)
            self._hooks.run("after_routes_generate", tree, artifacts)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Routes",
            elapsed_seconds=t.elapsed,
            detail=f"{len(tree.standalone)} standalone, {len(tree.nested)} nested block(s)",
        ))

    @staticmethod
    def _fail(
        report: GenerationReport,
        exc: GeneratorError,
        entity: Optional[str],
        stage: str,
    ) -> None:
        report.state = PipelineState.FAILED
        report.failed_entity = entity
        report.failed_stage = stage
        report.error = exc
        report.step_metrics.append(GenerationStepMetric(
            step_name=f"{entity} / {stage}" if entity else stage.capitalize(),
            success=False,
            detail=type(exc).__name__,
        ))
        logger.error(
            "Generation failed during %s%s: %s",
            stage,
            f" of {entity}" if entity else "",
            exc.message,
        )


def generate_from_file(
    schema_path: Path,
    *,
    overrides: Optional[Dict[str, Any]] = None,
    hooks: Optional[HookRegistry] = None,
    renderer: Optional[Renderer] = None,
) -> GenerationReport:
    """
    Load, parse and generate in one call.

    Loading and parsing errors (``FileNotFoundError``, ``SchemaError``,
    ``TargetError``) are raised; pipeline errors end up in the report.
    """
    raw: Dict[str, Any] = load_schema_file(Path(schema_path))
    schema, config = parse_raw_schema(raw, overrides)
    return ScaffoldGenerator(config, hooks=hooks, renderer=renderer).generate(schema)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PipelineState",
    "GenerationStepMetric",
    "GenerationReport",
    "ScaffoldGenerator",
    "load_schema_file",
    "parse_raw_schema",
    "generate_from_file",
]

logger.debug("crudgen.generator loaded.")
