# File: crudgen/routes.py
"""
crudgen - Route Topology Resolver
===================================
Consumes every entity of a run and produces an ordered ``RouteTree``:

    1. Standalone resources (entities with no present ``belongs_to``
       parent), in input order.
    2. Nested blocks: each remaining entity is nested under its *first*
       candidate parent.  Children of the same parent share one wrapping
       block; blocks appear in order of first use.
    3. An optional root route.

Every entity appears in the tree exactly once.  An entity that belongs to
several present parents is nested under the first one only; the others are
dropped from the route tree (logged at DEBUG).

A ``belongs_to`` pointing at an entity that is not part of the run raises
``UnresolvedReferenceError`` inside the resolver; it is caught right here,
logged, recorded on ``RouteTree.unresolved`` and the parent is ignored.

Member and collection actions come from attribute-name conventions unless the
entity turns them off with ``routes: {infer: false}``; declared actions are
appended after the inferred ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from crudgen.errors import UnresolvedReferenceError
from crudgen.models import Association, Entity, HttpVerb, RouteActionSpec
from crudgen.utils import to_plural, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.routes")

# ---------------------------------------------------------------------------
# Conventions
# ---------------------------------------------------------------------------

_STATUS_ATTRIBUTES: FrozenSet[str] = frozenset({"active", "status"})
_SEARCHABLE_ATTRIBUTES: FrozenSet[str] = frozenset(
    {"name", "title", "description", "email", "username"}
)
_IMPORTABLE_ENTITIES: FrozenSet[str] = frozenset({"product", "user", "customer", "account"})
_EXPORT_ATTRIBUTE_THRESHOLD: int = 5

# Root route candidates after ``dashboard`` and ``home``
_LANDING_ENTITIES: Tuple[str, ...] = ("post", "article", "page", "product")


def resource_name(entity_name: str) -> str:
    """Plural snake_case resource name (``BlogPost`` -> ``blog_posts``)."""
    return to_plural(to_snake_case(entity_name))


# ---------------------------------------------------------------------------
# Route tree types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RouteAction:
    """A named custom endpoint on a resource."""

    name: str
    verb: HttpVerb = HttpVerb.GET

    def __str__(self) -> str:
        return f"{self.verb.value} :{self.name}"


@dataclass(frozen=True, slots=True)
class RouteNode:
    """One resource in the tree: standalone, or nested under ``parent``."""

    entity: str
    resource: str
    parent: Optional[str] = None
    member_actions: Tuple[RouteAction, ...] = ()
    collection_actions: Tuple[RouteAction, ...] = ()

    @property
    def is_nested(self) -> bool:
        return self.parent is not None

    @property
    def has_actions(self) -> bool:
        return bool(self.member_actions or self.collection_actions)


@dataclass(frozen=True, slots=True)
class NestedBlock:
    """A parent resource wrapping the resources nested under it."""

    parent: str
    parent_resource: str
    children: Tuple[RouteNode, ...]


@dataclass(frozen=True, slots=True)
class RootRoute:
    entity: str
    resource: str

    @property
    def to(self) -> str:
        return f"{self.resource}#index"


@dataclass(frozen=True, slots=True)
class RouteTree:
    """Ordered result of :func:`resolve_routes`."""

    standalone: Tuple[RouteNode, ...] = ()
    nested: Tuple[NestedBlock, ...] = ()
    root: Optional[RootRoute] = None
    unresolved: Tuple[UnresolvedReferenceError, ...] = ()

    def nodes(self) -> Iterator[RouteNode]:
        """All resource nodes in emission order."""
        yield from self.standalone
        for block in self.nested:
            yield from block.children

    def find(self, entity: str) -> Optional[RouteNode]:
        for node in self.nodes():
            if node.entity == entity:
                return node
        return None

    @property
    def entity_names(self) -> List[str]:
        return [node.entity for node in self.nodes()]

    @property
    def is_empty(self) -> bool:
        return not self.standalone and not self.nested


# ---------------------------------------------------------------------------
# Action inference
# ---------------------------------------------------------------------------


def _append_unique(actions: List[RouteAction], action: RouteAction) -> None:
    if all(a.name != action.name for a in actions):
        actions.append(action)


def infer_actions(entity: Entity) -> Tuple[Tuple[RouteAction, ...], Tuple[RouteAction, ...]]:
    """
    Return ``(member_actions, collection_actions)`` for *entity*.

    The conventions:

        * ``active`` / ``status``  -> member activate/deactivate,
          collection active/inactive
        * ``position``             -> member move_up/move_down
        * ``archived_at``          -> member archive/unarchive
        * 5 or more attributes     -> collection export
        * product/user/customer/account -> collection import
        * name/title/description/email/username -> collection search
    """
    member: List[RouteAction] = []
    collection: List[RouteAction] = []
    attrs: Set[str] = set(entity.attributes)

    if entity.routes.infer:
        if attrs & _STATUS_ATTRIBUTES:
            member.append(RouteAction("activate", HttpVerb.GET))
            member.append(RouteAction("deactivate", HttpVerb.GET))
        if "position" in attrs:
            member.append(RouteAction("move_up", HttpVerb.PUT))
            member.append(RouteAction("move_down", HttpVerb.PUT))
        if "archived_at" in attrs:
            member.append(RouteAction("archive", HttpVerb.PUT))
            member.append(RouteAction("unarchive", HttpVerb.PUT))

        if attrs & _STATUS_ATTRIBUTES:
            collection.append(RouteAction("active", HttpVerb.GET))
            collection.append(RouteAction("inactive", HttpVerb.GET))
        if len(entity.attributes) >= _EXPORT_ATTRIBUTE_THRESHOLD:
            collection.append(RouteAction("export", HttpVerb.GET))
        if entity.name in _IMPORTABLE_ENTITIES:
            collection.append(RouteAction("import", HttpVerb.POST))
        if attrs & _SEARCHABLE_ATTRIBUTES:
            collection.append(RouteAction("search", HttpVerb.GET))

    declared: RouteActionSpec
    for declared in entity.routes.member:
        _append_unique(member, RouteAction(declared.name, declared.verb))
    for declared in entity.routes.collection:
        _append_unique(collection, RouteAction(declared.name, declared.verb))

    return tuple(member), tuple(collection)


# ---------------------------------------------------------------------------
# Parent discovery
# ---------------------------------------------------------------------------


def _lookup_parent(entity: Entity, association: Association, known: Set[str]) -> str:
    target: str = association.target
    if target not in known:
        raise UnresolvedReferenceError(entity.name, association.name, target)
    return target


def candidate_parents(
    entity: Entity,
    known: Set[str],
    unresolved: Optional[List[UnresolvedReferenceError]] = None,
) -> List[str]:
    """
    Present ``belongs_to`` targets of *entity*, in declaration order.

    Polymorphic and self-referencing ``belongs_to`` associations never make
    an entity nestable.  Missing targets are appended to *unresolved*.
    """
    parents: List[str] = []
    for association in entity.belongs_to():
        if association.options.polymorphic:
            continue
        if association.target == entity.name:
            logger.debug("%s: ignoring self-reference :%s", entity.name, association.name)
            continue
        try:
            parent: str = _lookup_parent(entity, association, known)
        except UnresolvedReferenceError as exc:
            logger.warning("%s; %s will not be nested under it.", exc, entity.name)
            if unresolved is not None:
                unresolved.append(exc)
            continue
        if parent not in parents:
            parents.append(parent)
    return parents


# ---------------------------------------------------------------------------
# Root route
# ---------------------------------------------------------------------------


def choose_root(entities: Sequence[Entity]) -> Optional[RootRoute]:
    """
    Pick the landing resource: ``dashboard``, then ``home``, then the first
    present of post/article/page/product, then the first entity.
    """
    if not entities:
        return None
    by_name: Dict[str, Entity] = {}
    for entity in entities:
        by_name.setdefault(entity.name, entity)

    for name in ("dashboard", "home") + _LANDING_ENTITIES:
        if name in by_name:
            return RootRoute(name, resource_name(name))

    first: Entity = entities[0]
    return RootRoute(first.name, resource_name(first.name))


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _BlockBuilder:
    parent: str
    children: List[RouteNode] = field(default_factory=list)


def _make_node(entity: Entity, parent: Optional[str] = None) -> RouteNode:
    member, collection = infer_actions(entity)
    return RouteNode(
        entity=entity.name,
        resource=resource_name(entity.name),
        parent=parent,
        member_actions=member,
        collection_actions=collection,
    )


def resolve_routes(entities: Sequence[Entity]) -> RouteTree:
    """
    Build the route tree for *entities* (input order is significant).

    Never raises for schema content: unresolved parents degrade the entity
    to a standalone resource.
    """
    known: Set[str] = {e.name for e in entities}
    unresolved: List[UnresolvedReferenceError] = []
    parents_of: Dict[str, List[str]] = {}

    for entity in entities:
        if entity.name not in parents_of:
            parents_of[entity.name] = candidate_parents(entity, known, unresolved)

    processed: Set[str] = set()
    standalone: List[RouteNode] = []
    blocks: Dict[str, _BlockBuilder] = {}

    # Pass 1: standalone resources
    for entity in entities:
        if parents_of[entity.name] or entity.name in processed:
            continue
        standalone.append(_make_node(entity))
        processed.add(entity.name)

    # Pass 2: nest each remaining entity under its first parent
    for entity in entities:
        if entity.name in processed:
            continue
        parents: List[str] = parents_of[entity.name]
        parent: str = parents[0]
        if len(parents) > 1:
            logger.debug(
                "%s belongs to %s; nesting under '%s' only.",
                entity.name,
                ", ".join(parents),
                parent,
            )
        block: _BlockBuilder = blocks.setdefault(parent, _BlockBuilder(parent))
        block.children.append(_make_node(entity, parent))
        processed.add(entity.name)

    tree: RouteTree = RouteTree(
        standalone=tuple(standalone),
        nested=tuple(
            NestedBlock(b.parent, resource_name(b.parent), tuple(b.children))
            for b in blocks.values()
        ),
        root=choose_root(entities),
        unresolved=tuple(unresolved),
    )

    logger.info(
        "Resolved routes: %d standalone, %d nested block(s), root=%s.",
        len(tree.standalone),
        len(tree.nested),
        tree.root.to if tree.root else None,
    )
    return tree


__all__: List[str] = [
    "RouteAction",
    "RouteNode",
    "NestedBlock",
    "RootRoute",
    "RouteTree",
    "resource_name",
    "infer_actions",
    "candidate_parents",
    "choose_root",
    "resolve_routes",
]

logger.debug("crudgen.routes loaded.")
