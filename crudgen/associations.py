# File: crudgen/associations.py
"""
crudgen - Association Compiler
================================
Turns one declared ``Association`` into a ``CompiledRelation``: a
target-neutral relation declaration with its options validated, its
cascade default applied, and its options laid out in one fixed order.

The fixed order is what makes regenerated model files byte-identical for an
unchanged schema, no matter how the options were ordered in the YAML.

Rules enforced here (anything else is left to the target framework):

    * ``source`` and ``through`` must be given together.
    * ``through`` only applies to ``has_many`` / ``has_one``.
    * ``as`` requires ``polymorphic: true``; a polymorphic ``has_*``
      association must name its interface with ``as``.
    * ``optional`` and ``counter_cache`` only apply to ``belongs_to``.
    * ``dependent`` does not apply to ``has_and_belongs_to_many``.
    * ``has_many`` / ``has_one`` default to ``dependent: nullify``.

Everything in this module is pure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from crudgen.errors import InvalidAssociationError
from crudgen.models import (
    Association,
    AssociationKind,
    AssociationOptions,
    DependentAction,
    Entity,
)
from crudgen.utils import to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.associations")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OPTION_ORDER: Tuple[str, ...] = (
    "dependent",
    "through",
    "source",
    "class_name",
    "foreign_key",
    "optional",
    "polymorphic",
    "as",
    "counter_cache",
    "validate",
    "autosave",
)

_CASCADE_DEFAULT_KINDS: FrozenSet[AssociationKind] = frozenset({
    AssociationKind.HAS_MANY,
    AssociationKind.HAS_ONE,
})

_THROUGH_KINDS: FrozenSet[AssociationKind] = _CASCADE_DEFAULT_KINDS

_COLLECTION_KINDS: FrozenSet[AssociationKind] = frozenset({
    AssociationKind.HAS_MANY,
    AssociationKind.HAS_AND_BELONGS_TO_MANY,
})


# ---------------------------------------------------------------------------
# Compiled form
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CompiledRelation:
    """
    A validated association, ready for any render strategy.

    ``options`` holds ``(name, value)`` pairs in ``OPTION_ORDER``.  Values
    are plain Python: strings for names, ``True``/``False`` for flags.
    """

    owner: str
    kind: AssociationKind
    name: str
    target: str
    options: Tuple[Tuple[str, Any], ...] = ()

    def option(self, key: str, default: Any = None) -> Any:
        for name, value in self.options:
            if name == key:
                return value
        return default

    def has_option(self, key: str) -> bool:
        return any(name == key for name, _ in self.options)

    @property
    def cascade(self) -> Optional[DependentAction]:
        value: Optional[str] = self.option("dependent")
        return DependentAction(value) if value else None

    @property
    def is_polymorphic(self) -> bool:
        return bool(self.option("polymorphic", False))

    @property
    def is_collection(self) -> bool:
        return self.kind in _COLLECTION_KINDS

    @property
    def is_through(self) -> bool:
        return self.has_option("through")

    @property
    def foreign_key_column(self) -> Optional[str]:
        """
        Column holding the reference.

        ``belongs_to`` keeps it on the owner (``<name>_id``); ``has_*`` keeps
        it on the target (``<as or owner>_id``).  Join-table and ``through``
        associations have no single column.
        """
        explicit: Optional[str] = self.option("foreign_key")
        if explicit:
            return explicit
        if self.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY or self.is_through:
            return None
        if self.kind == AssociationKind.BELONGS_TO:
            return f"{self.name}_id"
        return f"{self.option('as') or to_snake_case(self.owner)}_id"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "kind": self.kind.value,
            "name": self.name,
            "target": self.target,
            "options": dict(self.options),
        }

    def __repr__(self) -> str:
        opts: str = ", ".join(f"{k}={v!r}" for k, v in self.options)
        return f"<CompiledRelation {self.owner} {self.kind.value} :{self.name} ({opts})>"


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


def _check_combinations(association: Association, owner: str) -> None:
    opts: AssociationOptions = association.options
    kind: AssociationKind = association.kind

    def fail(message: str) -> None:
        raise InvalidAssociationError(owner, association.name, message)

    if opts.source and not opts.through:
        fail("'source' is only valid together with 'through'")
    if opts.through and not opts.source:
        fail("'through' requires 'source'")
    if opts.through and kind not in _THROUGH_KINDS:
        fail(f"'through' is not supported on {kind.value}")
    if opts.as_ and not opts.polymorphic:
        fail("'as' requires 'polymorphic: true'")
    if opts.polymorphic and not opts.as_ and kind != AssociationKind.BELONGS_TO:
        fail(f"polymorphic {kind.value} must name its interface with 'as'")
    if opts.optional is not None and kind != AssociationKind.BELONGS_TO:
        fail("'optional' only applies to belongs_to")
    if opts.is_set("counter_cache") and kind != AssociationKind.BELONGS_TO:
        fail("'counter_cache' only applies to belongs_to")
    if opts.dependent is not None and kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
        fail("'dependent' is not supported on has_and_belongs_to_many")


def _option_values(association: Association) -> Dict[str, Any]:
    """Collect the options that end up in the declaration, keyed by schema name."""
    opts: AssociationOptions = association.options
    values: Dict[str, Any] = {}

    if opts.dependent is not None:
        values["dependent"] = opts.dependent.value
    elif association.kind in _CASCADE_DEFAULT_KINDS:
        values["dependent"] = DependentAction.NULLIFY.value

    if opts.through:
        values["through"] = opts.through
    if opts.source:
        values["source"] = opts.source
    if opts.class_name:
        values["class_name"] = opts.class_name
    if opts.foreign_key:
        values["foreign_key"] = opts.foreign_key
    if opts.optional is not None:
        values["optional"] = opts.optional
    if opts.polymorphic:
        values["polymorphic"] = True
    if opts.as_:
        values["as"] = opts.as_
    if opts.is_set("counter_cache"):
        values["counter_cache"] = opts.counter_cache
    if opts.validate_ is not None:
        values["validate"] = opts.validate_
    if opts.autosave is not None:
        values["autosave"] = opts.autosave

    return values


def compile_association(association: Association, owner: str) -> CompiledRelation:
    """
    Compile one association declared on entity *owner*.

    Raises:
        InvalidAssociationError: on an invalid option combination.
    """
    _check_combinations(association, owner)

    values: Dict[str, Any] = _option_values(association)
    ordered: Tuple[Tuple[str, Any], ...] = tuple(
        (key, values[key]) for key in OPTION_ORDER if key in values
    )

    relation: CompiledRelation = CompiledRelation(
        owner=owner,
        kind=association.kind,
        name=association.name,
        target=association.target,
        options=ordered,
    )
    logger.debug("Compiled %r", relation)
    return relation


def compile_entity(entity: Entity) -> List[CompiledRelation]:
    """Compile every association of *entity* in declaration order."""
    return [compile_association(a, entity.name) for a in entity.associations]


__all__: List[str] = [
    "OPTION_ORDER",
    "CompiledRelation",
    "compile_association",
    "compile_entity",
]

logger.debug("crudgen.associations loaded.")
