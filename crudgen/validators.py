# File: crudgen/validators.py
"""
crudgen - Schema & Configuration Validators
=============================================
Pydantic handles per-field structure (attribute types, association kinds,
target compatibility).  This module adds the **cross-entity** checks: unique
entity and attribute names, identifier shape, association option combinations
and association targets that point outside the schema.

Each validator is a pure function returning a ``ValidationResult``;
``validate_full`` runs them all.

Usage::

    from crudgen.validators import validate_full
    result = validate_full(schema, config)
    if result.has_errors:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from crudgen.associations import compile_association
from crudgen.errors import InvalidAssociationError
from crudgen.models import Association, AssociationKind, GenerationConfig, SchemaDefinition
from crudgen.utils import to_plural, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight error descriptor."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationError`` items from the validators."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return f"Validation: {self.error_count} error(s), {self.warning_count} warning(s)."

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            lines.append(f"  {item.level.upper():<7} [{item.code}] {item.message}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Patterns & reserved names
# ---------------------------------------------------------------------------

_SNAKE_CASE_RE: re.Pattern[str] = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$")
_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# Class names the generated code already defines or inherits from
_RESERVED_ENTITY_NAMES: FrozenSet[str] = frozenset({
    "application", "application_record", "application_controller",
    "base", "object", "class", "module", "generated", "router",
})

_RESERVED_ATTRIBUTE_NAMES: FrozenSet[str] = frozenset({"id", "_id"})


# ---------------------------------------------------------------------------
# Individual validators
# ---------------------------------------------------------------------------


def validate_entity_names(schema: SchemaDefinition) -> ValidationResult:
    """
    Entity names must be identifiers, unique, and not collide once turned
    into file names (``BlogPost`` and ``blog_post`` both become
    ``blog_posts``).
    """
    result: ValidationResult = ValidationResult()
    seen: Dict[str, str] = {}

    for entity in schema.entities:
        name: str = entity.name
        ctx: Dict[str, Any] = {"entity": name}

        if not _IDENTIFIER_RE.match(name):
            result.add_error(
                "INVALID_ENTITY_NAME",
                f"Entity name '{name}' is not a valid identifier.",
                ctx,
            )
            continue

        resource: str = to_plural(to_snake_case(name))
        if resource in seen:
            result.add_error(
                "DUPLICATE_ENTITY_NAME",
                f"Entity '{name}' collides with '{seen[resource]}' (both map to '{resource}').",
                ctx,
            )
        else:
            seen[resource] = name

        if not _SNAKE_CASE_RE.match(name):
            result.add_warning(
                "ENTITY_NAME_NOT_SNAKE_CASE",
                f"Entity name '{name}' is not snake_case; associations must "
                f"spell it exactly this way to resolve.",
                ctx,
            )

        if to_snake_case(name) in _RESERVED_ENTITY_NAMES:
            result.add_error(
                "ENTITY_NAME_RESERVED",
                f"Entity name '{name}' clashes with a class the generated code defines.",
                ctx,
            )

    logger.debug("validate_entity_names: %d issue(s).", len(result))
    return result


def validate_attribute_names(schema: SchemaDefinition) -> ValidationResult:
    """Attribute names per entity: identifiers, unique after snake-casing, not reserved."""
    result: ValidationResult = ValidationResult()

    for entity in schema.entities:
        seen: Set[str] = set()
        for attr in entity.attributes:
            ctx: Dict[str, Any] = {"entity": entity.name, "attribute": attr}
            if not _IDENTIFIER_RE.match(attr):
                result.add_error(
                    "INVALID_ATTRIBUTE_NAME",
                    f"{entity.name}.{attr} is not a valid identifier.",
                    ctx,
                )
                continue
            key: str = to_snake_case(attr)
            if key in seen:
                result.add_error(
                    "DUPLICATE_ATTRIBUTE_NAME",
                    f"{entity.name} declares attribute '{key}' more than once.",
                    ctx,
                )
            seen.add(key)
            if key in _RESERVED_ATTRIBUTE_NAMES:
                result.add_error(
                    "ATTRIBUTE_NAME_RESERVED",
                    f"{entity.name}.{attr} is reserved for the generated primary key.",
                    ctx,
                )

        for association in entity.associations:
            if association.name in seen:
                result.add_warning(
                    "ATTRIBUTE_SHADOWS_ASSOCIATION",
                    f"{entity.name}.{association.name} is both an attribute and an association.",
                    {"entity": entity.name, "attribute": association.name},
                )

    logger.debug("validate_attribute_names: %d issue(s).", len(result))
    return result


def validate_associations(schema: SchemaDefinition) -> ValidationResult:
    """Compile every association; report invalid option combinations and duplicate names."""
    result: ValidationResult = ValidationResult()

    for entity in schema.entities:
        names: Set[str] = set()
        for association in entity.associations:
            ctx: Dict[str, Any] = {"entity": entity.name, "association": association.name}
            if association.name in names:
                result.add_error(
                    "DUPLICATE_ASSOCIATION_NAME",
                    f"{entity.name} declares association '{association.name}' more than once.",
                    ctx,
                )
            names.add(association.name)
            try:
                compile_association(association, entity.name)
            except InvalidAssociationError as exc:
                result.add_error("INVALID_ASSOCIATION", exc.message, ctx)

    logger.debug("validate_associations: %d issue(s).", len(result))
    return result


def _skips_target_check(association: Association) -> bool:
    # polymorphic belongs_to has no single target; through resolves via source
    if association.kind == AssociationKind.BELONGS_TO and association.options.polymorphic:
        return True
    return association.options.through is not None


def validate_association_targets(schema: SchemaDefinition) -> ValidationResult:
    """Warn about associations whose target entity is not part of the schema."""
    result: ValidationResult = ValidationResult()
    known: Set[str] = set(schema.entity_names)

    for entity in schema.entities:
        for association in entity.associations:
            if _skips_target_check(association) or association.target in known:
                continue
            result.add_warning(
                "UNRESOLVED_ASSOCIATION_TARGET",
                f"{entity.name}.{association.name} references unknown entity "
                f"'{association.target}'.",
                {
                    "entity": entity.name,
                    "association": association.name,
                    "target": association.target,
                },
            )

    logger.debug("validate_association_targets: %d issue(s).", len(result))
    return result


def validate_through_associations(schema: SchemaDefinition) -> ValidationResult:
    """A ``through`` option must name another association of the same entity."""
    result: ValidationResult = ValidationResult()

    for entity in schema.entities:
        declared: Set[str] = {a.name for a in entity.associations}
        for association in entity.associations:
            through: Optional[str] = association.options.through
            if through and through not in declared:
                result.add_warning(
                    "THROUGH_ASSOCIATION_MISSING",
                    f"{entity.name}.{association.name} goes through '{through}', "
                    f"which {entity.name} does not declare.",
                    {"entity": entity.name, "association": association.name},
                )

    return result


def validate_schema_size(schema: SchemaDefinition) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if not schema.entities:
        result.add_warning("EMPTY_SCHEMA", "Schema defines no entities; nothing to generate.")
    return result


def validate_generation_config(config: GenerationConfig) -> ValidationResult:
    """Sanity checks on the output directory."""
    result: ValidationResult = ValidationResult()
    out: Path = Path(config.output_dir).expanduser()

    if out.exists() and not out.is_dir():
        result.add_error(
            "OUTPUT_DIR_NOT_A_DIRECTORY",
            f"Output path '{config.output_dir}' exists and is not a directory.",
            {"output_dir": config.output_dir},
        )
    elif out.resolve() == Path(out.resolve().anchor):
        result.add_error(
            "OUTPUT_DIR_IS_ROOT",
            "Refusing to generate into the filesystem root.",
            {"output_dir": config.output_dir},
        )

    return result


# ---------------------------------------------------------------------------
# Aggregate entry points
# ---------------------------------------------------------------------------


def validate_schema(schema: SchemaDefinition) -> ValidationResult:
    """Run all schema-level validators."""
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[SchemaDefinition], ValidationResult]] = [
        validate_entity_names,
        validate_attribute_names,
        validate_associations,
        validate_association_targets,
        validate_through_associations,
        validate_schema_size,
    ]

    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(schema))

    return result


def validate_full(schema: SchemaDefinition, config: GenerationConfig) -> ValidationResult:
    """
    **Master validation entry point**, called by the generator and by
    ``crudgen --validate-only``.
    """
    logger.info(
        "Starting validation: %d entities, target=%s",
        schema.entity_count,
        config.target,
    )

    result: ValidationResult = validate_schema(schema)
    result.merge(validate_generation_config(config))

    if result.has_errors:
        logger.error("Validation FAILED. %s", result.summary())
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_entity_names",
    "validate_attribute_names",
    "validate_associations",
    "validate_association_targets",
    "validate_through_associations",
    "validate_schema_size",
    "validate_generation_config",
    "validate_schema",
    "validate_full",
]

logger.debug("crudgen.validators loaded.")
