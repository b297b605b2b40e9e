# File: crudgen/models.py
"""
crudgen - Schema Model
========================
Pydantic V2 models for everything the pipeline consumes: entities and their
attributes, associations and association options, the generation target
(framework + persistence backend), the run configuration, and the
``ArtifactFile`` values handed to the writer.

Entities and associations are built once per run from the schema file and
are frozen afterwards; the compiler and the route resolver only ever read
them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from crudgen.utils import to_pascal_case, to_plural, to_singular, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AttributeType(str, Enum):
    """Scalar attribute types accepted in a schema."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    JSON = "json"
    ARRAY = "array"


class AssociationKind(str, Enum):
    """Association cardinalities, named the ActiveRecord way."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"


class DependentAction(str, Enum):
    """Cascade policy applied to associated records when the owner is destroyed."""

    DESTROY = "destroy"
    NULLIFY = "nullify"
    RESTRICT = "restrict"


class HttpVerb(str, Enum):
    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"


class Framework(str, Enum):
    """Web frameworks a scaffold can be generated for."""

    RAILS = "rails"
    EXPRESS = "express"
    FASTAPI = "fastapi"


class PersistenceBackend(str, Enum):
    """Persistence layers; each one has exactly one render strategy."""

    ACTIVE_RECORD = "active_record"
    SEQUELIZE = "sequelize"
    MONGOOSE = "mongoose"
    SQLALCHEMY = "sqlalchemy"
    MONGODB = "mongodb"


class ArtifactKind(str, Enum):
    """
    ``generated`` files are owned by the pipeline and rewritten every run.
    ``derived`` files are handed to the developer and written only once.
    """

    GENERATED = "generated"
    DERIVED = "derived"


# Which backends each framework can be paired with.  The first entry is the
# default when a schema names only the framework.
COMPATIBLE_BACKENDS: Dict[Framework, Tuple[PersistenceBackend, ...]] = {
    Framework.RAILS: (PersistenceBackend.ACTIVE_RECORD,),
    Framework.EXPRESS: (PersistenceBackend.SEQUELIZE, PersistenceBackend.MONGOOSE),
    Framework.FASTAPI: (PersistenceBackend.SQLALCHEMY, PersistenceBackend.MONGODB),
}

# Loose spellings seen in older schema files
_BACKEND_ALIASES: Dict[str, str] = {
    "activerecord": "active_record",
    "sql": "sequelize",
    "mysql": "sequelize",
    "postgres": "sequelize",
    "postgresql": "sequelize",
    "mongo": "mongoose",
    "sqla": "sqlalchemy",
}

_PLURAL_KINDS: FrozenSet[AssociationKind] = frozenset({
    AssociationKind.HAS_MANY,
    AssociationKind.HAS_AND_BELONGS_TO_MANY,
})


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------


class AssociationOptions(BaseModel):
    """
    Options attached to one association.

    ``as`` and ``validate`` are reserved in Python / pydantic, so they are
    stored as ``as_`` and ``validate_`` and read from the schema by alias.
    ``None`` means "not given"; the compiler only emits options that were set.
    """

    model_config = _SHARED_CONFIG

    dependent: Optional[DependentAction] = None
    through: Optional[str] = None
    source: Optional[str] = None
    class_name: Optional[str] = None
    foreign_key: Optional[str] = None
    optional: Optional[bool] = None
    polymorphic: bool = False
    as_: Optional[str] = Field(default=None, alias="as")
    counter_cache: Union[bool, str, None] = None
    validate_: Optional[bool] = Field(default=None, alias="validate")
    autosave: Optional[bool] = None

    @field_validator("dependent", mode="before")
    @classmethod
    def _strip_symbol_prefix(cls, v: Any) -> Any:
        # ":destroy" is accepted for familiarity
        if isinstance(v, str):
            return v.lstrip(":").lower()
        return v

    @field_validator("through", "source", "foreign_key", "as_", mode="before")
    @classmethod
    def _strip_symbol(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lstrip(":")
        return v

    def is_set(self, option: str) -> bool:
        """True when *option* (schema spelling) was given explicitly."""
        attr: str = {"as": "as_", "validate": "validate_"}.get(option, option)
        value: Any = getattr(self, attr)
        if option == "polymorphic":
            return bool(value)
        if option == "counter_cache":
            return value not in (None, False)
        return value is not None


class Association(BaseModel):
    """One declared relationship from an owning entity to another entity."""

    model_config = _SHARED_CONFIG

    kind: AssociationKind
    name: str = Field(..., min_length=1)
    options: AssociationOptions = Field(
        default_factory=AssociationOptions, alias="attrs"
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _normalise_kind(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lstrip(":").lower()
        return v

    @field_validator("options", mode="before")
    @classmethod
    def _none_means_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @computed_field  # type: ignore[misc]
    @property
    def target(self) -> str:
        """
        Name of the entity on the other side.

        ``class_name`` wins; a ``through`` association points at its
        ``source``; collection associations are singularised
        (``has_many :comments`` -> ``comment``).
        """
        if self.options.class_name:
            return to_snake_case(self.options.class_name)
        if self.options.source:
            return to_singular(self.options.source)
        if self.kind in _PLURAL_KINDS:
            return to_singular(self.name)
        return self.name

    @property
    def is_belongs_to(self) -> bool:
        return self.kind == AssociationKind.BELONGS_TO

    def __repr__(self) -> str:
        return f"<Association {self.kind.value} :{self.name}>"


# ---------------------------------------------------------------------------
# Declarative route actions
# ---------------------------------------------------------------------------


class RouteActionSpec(BaseModel):
    """A custom member or collection endpoint declared in the schema."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., pattern=r"^[a-z_][a-z0-9_]*$")
    verb: HttpVerb = HttpVerb.GET


class EntityRoutes(BaseModel):
    """
    Per-entity routing hints.

    ``infer`` keeps the attribute-name heuristics on (the default); declared
    actions are added after the inferred ones.
    """

    model_config = _SHARED_CONFIG

    member: Tuple[RouteActionSpec, ...] = ()
    collection: Tuple[RouteActionSpec, ...] = ()
    infer: bool = True

    @field_validator("member", "collection", mode="before")
    @classmethod
    def _expand_shorthand(cls, v: Any) -> Any:
        # "archive" is shorthand for {name: archive, verb: get}
        if isinstance(v, (list, tuple)):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Entity(BaseModel):
    """
    Abstract definition of one data model.

    ``attributes`` keeps schema order; generated code lists fields in the
    order they were declared.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    attributes: Dict[str, AttributeType] = Field(default_factory=dict)
    associations: Tuple[Association, ...] = ()
    routes: EntityRoutes = Field(default_factory=EntityRoutes)

    @field_validator("attributes", mode="before")
    @classmethod
    def _normalise_types(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                str(k): (t.lstrip(":").lower() if isinstance(t, str) else t)
                for k, t in v.items()
            }
        return v

    @field_validator("associations", mode="before")
    @classmethod
    def _none_means_no_associations(cls, v: Any) -> Any:
        return () if v is None else v

    # -- Naming helpers ------------------------------------------------------

    @computed_field  # type: ignore[misc]
    @property
    def plural(self) -> str:
        return to_plural(to_snake_case(self.name))

    @computed_field  # type: ignore[misc]
    @property
    def class_name(self) -> str:
        return to_pascal_case(self.name)

    # -- Queries --------------------------------------------------------------

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def belongs_to(self) -> List[Association]:
        """``belongs_to`` associations in declaration order."""
        return [a for a in self.associations if a.is_belongs_to]

    def __repr__(self) -> str:
        return (
            f"<Entity {self.name} attrs={len(self.attributes)} "
            f"assocs={len(self.associations)}>"
        )


class SchemaDefinition(BaseModel):
    """All entities of one run, in input order."""

    model_config = _SHARED_CONFIG

    entities: Tuple[Entity, ...] = ()

    @computed_field  # type: ignore[misc]
    @property
    def entity_count(self) -> int:
        return len(self.entities)

    @property
    def entity_names(self) -> List[str]:
        return [e.name for e in self.entities]

    def get_entity(self, name: str) -> Optional[Entity]:
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None


# ---------------------------------------------------------------------------
# Generation target & configuration
# ---------------------------------------------------------------------------


class GenerationTarget(BaseModel):
    """
    The (framework, persistence backend) pair that selects a render strategy.

    Incompatible pairs are rejected here, when the configuration is loaded,
    so the pipeline never has to re-check them.
    """

    model_config = _SHARED_CONFIG

    framework: Framework = Framework.RAILS
    persistence_backend: PersistenceBackend = Field(
        default=PersistenceBackend.ACTIVE_RECORD, alias="backend"
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_default_backend(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        framework: Any = data.get("framework", Framework.RAILS.value)
        if isinstance(framework, str):
            framework = framework.lower()
            data["framework"] = framework
        backend: Any = data.get("persistence_backend", data.get("backend"))
        if backend is None:
            # unknown frameworks are reported by field validation
            if framework in {f.value for f in Framework}:
                data["persistence_backend"] = COMPATIBLE_BACKENDS[Framework(framework)][0]
        elif isinstance(backend, str):
            key: str = backend.lower()
            data["persistence_backend"] = _BACKEND_ALIASES.get(key, key)
        data.pop("backend", None)
        return data

    @model_validator(mode="after")
    def _check_compatible(self) -> "GenerationTarget":
        allowed: Tuple[PersistenceBackend, ...] = COMPATIBLE_BACKENDS[self.framework]
        if self.persistence_backend not in allowed:
            raise ValueError(
                f"backend '{self.persistence_backend.value}' cannot be used with "
                f"framework '{self.framework.value}' "
                f"(expected one of: {', '.join(b.value for b in allowed)})"
            )
        return self

    def __str__(self) -> str:
        return f"{self.framework.value}/{self.persistence_backend.value}"


class GenerationConfig(BaseModel):
    """Settings for one generation run."""

    model_config = _SHARED_CONFIG

    target: GenerationTarget = Field(default_factory=GenerationTarget)
    output_dir: str = Field(default="./out", min_length=1)
    controller_inheritance: bool = True
    dry_run: bool = False
    api_prefix: str = Field(default="/api", pattern=r"^(/[a-zA-Z0-9_\-]+)*$")


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class ArtifactFile(BaseModel):
    """One file the pipeline wants on disk, relative to the output root."""

    model_config = _SHARED_CONFIG

    path: str = Field(..., min_length=1)
    kind: ArtifactKind
    content: str
    entity: Optional[str] = None

    @field_validator("path")
    @classmethod
    def _relative_path(cls, v: str) -> str:
        parts: List[str] = v.replace("\\", "/").split("/")
        if v.startswith(("/", "\\")) or ".." in parts:
            raise ValueError(f"artifact path must stay inside the output root: {v!r}")
        return "/".join(p for p in parts if p not in ("", "."))

    @property
    def is_derived(self) -> bool:
        return self.kind == ArtifactKind.DERIVED


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "AttributeType",
    "AssociationKind",
    "DependentAction",
    "HttpVerb",
    "Framework",
    "PersistenceBackend",
    "ArtifactKind",
    "COMPATIBLE_BACKENDS",
    "AssociationOptions",
    "Association",
    "RouteActionSpec",
    "EntityRoutes",
    "Entity",
    "SchemaDefinition",
    "GenerationTarget",
    "GenerationConfig",
    "ArtifactFile",
]

logger.debug("crudgen.models loaded: %d public symbols.", len(__all__))
