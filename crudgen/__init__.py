# File: crudgen/__init__.py
"""
crudgen - Schema-Driven CRUD Scaffold Generator
=================================================

Reads an entity schema (YAML/JSON) and writes a CRUD scaffold for a chosen
web framework and persistence backend: models, controllers, views and a
route table.  Regenerating is safe: files under ``generated`` paths are
rewritten, developer-owned (derived) files are created once and then left
alone.

Architecture overview::

    ┌──────────────┐     ┌───────────────────┐     ┌────────────────┐
    │  CLI / Entry │────▶│ ScaffoldGenerator  │────▶│ RenderStrategy │
    │   (cli.py)   │     │  (generator.py)    │     │ (strategies.py)│
    └──────────────┘     └─────────┬─────────┘     └───────┬────────┘
                                   │                       ▼
           ┌──────────────┬────────┼─────────┬──────────────────┐
           ▼              ▼        ▼         ▼                  ▼
     ┌──────────┐ ┌────────────┐ ┌──────┐ ┌────────┐ ┌──────────────┐
     │validators│ │associations│ │routes│ │ hooks  │ │  templates   │
     └──────────┘ └────────────┘ └──────┘ └────────┘ └──────────────┘
                                   │
                                   ▼
                            ┌─────────────┐
                            │   writer    │
                            └─────────────┘

Usage::

    # As a library
    from crudgen import ScaffoldGenerator, load_schema_file, parse_raw_schema
    schema, config = parse_raw_schema(load_schema_file("schema.yaml"))
    report = ScaffoldGenerator(config).generate(schema)

    # From the command line
    python -m crudgen --schema schema.yaml --output ./blog --verbose
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from crudgen.associations import CompiledRelation, compile_association, compile_entity
from crudgen.errors import (
    ArtifactWriteError,
    GeneratorError,
    HookError,
    InvalidAssociationError,
    SchemaError,
    TargetError,
    UnresolvedReferenceError,
)
from crudgen.generator import (
    GenerationReport,
    PipelineState,
    ScaffoldGenerator,
    generate_from_file,
    load_schema_file,
    parse_raw_schema,
)
from crudgen.hooks import HookRegistry, Plugin
from crudgen.manifest import Registration, RegistrationManifest
from crudgen.models import (
    ArtifactFile,
    ArtifactKind,
    Association,
    AssociationKind,
    AssociationOptions,
    AttributeType,
    DependentAction,
    Entity,
    Framework,
    GenerationConfig,
    GenerationTarget,
    PersistenceBackend,
    SchemaDefinition,
)
from crudgen.routes import RouteTree, resolve_routes
from crudgen.strategies import RenderStrategy, resolve_strategy
from crudgen.templates import Renderer, TemplateRenderer
from crudgen.validators import ValidationResult, validate_full
from crudgen.writer import FileRecord, IdempotentWriter, WriteOutcome

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Pipeline
    "ScaffoldGenerator",
    "GenerationReport",
    "PipelineState",
    "generate_from_file",
    "load_schema_file",
    "parse_raw_schema",
    # Models
    "ArtifactFile",
    "ArtifactKind",
    "Association",
    "AssociationKind",
    "AssociationOptions",
    "AttributeType",
    "DependentAction",
    "Entity",
    "Framework",
    "GenerationConfig",
    "GenerationTarget",
    "PersistenceBackend",
    "SchemaDefinition",
    # Associations & routes
    "CompiledRelation",
    "compile_association",
    "compile_entity",
    "RouteTree",
    "resolve_routes",
    # Rendering
    "Renderer",
    "TemplateRenderer",
    "RenderStrategy",
    "resolve_strategy",
    "Registration",
    "RegistrationManifest",
    # Hooks
    "HookRegistry",
    "Plugin",
    # Writing
    "IdempotentWriter",
    "FileRecord",
    "WriteOutcome",
    # Validation
    "ValidationResult",
    "validate_full",
    # Errors
    "GeneratorError",
    "SchemaError",
    "TargetError",
    "InvalidAssociationError",
    "UnresolvedReferenceError",
    "ArtifactWriteError",
    "HookError",
]
