# File: crudgen/strategies.py
"""
crudgen - Artifact Strategy Dispatch
======================================
One ``RenderStrategy`` per ``PersistenceBackend``.  The generator resolves
its strategy once, when it is constructed, and from then on asks it for the
artifacts of each stage:

    model_artifacts(entity, relations)
    controller_artifacts(entity, relations)
    view_artifacts(entity, relations)
    routes_artifacts(tree, manifest)
    registration(entity)

A strategy decides paths and artifact kinds (generated vs. derived); the
text itself comes from the injected ``Renderer``.

Layouts::

    rails/active_record   app/models/post.rb
                          app/controllers/generated/posts_controller.rb
                          app/controllers/posts_controller.rb
                          app/views/posts/{index,show,new,edit,_form}.html.erb
                          config/routes.rb
    express/*             models/post.js
                          controllers/generated/posts_controller.js
                          controllers/posts_controller.js
                          routes/post_routes.js, routes/index.js
    fastapi/*             app/models/post.py, app/schemas/post.py
                          app/routers/generated/posts.py, app/routers/posts.py
                          app/routes.py
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from crudgen.associations import CompiledRelation
from crudgen.errors import TargetError
from crudgen.manifest import Registration, RegistrationManifest
from crudgen.models import (
    ArtifactFile,
    ArtifactKind,
    Entity,
    Framework,
    GenerationConfig,
    GenerationTarget,
    PersistenceBackend,
)
from crudgen.routes import RouteTree, infer_actions
from crudgen.templates import Renderer
from crudgen.utils import to_camel_case, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.strategies")

Artifacts = Tuple[ArtifactFile, ...]


class RenderStrategy(ABC):
    """Base class for all per-backend strategies."""

    framework: Framework
    backend: PersistenceBackend

    def __init__(self, renderer: Renderer, config: GenerationConfig) -> None:
        self._renderer: Renderer = renderer
        self._config: GenerationConfig = config

    @property
    def inheritance(self) -> bool:
        return self._config.controller_inheritance

    def _context(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Dict[str, Any]:
        member, collection = infer_actions(entity)
        return {
            "entity": entity,
            "relations": tuple(relations),
            "member_actions": member,
            "collection_actions": collection,
            "config": self._config,
            "backend": self.backend,
        }

    def _artifact(
        self,
        path: str,
        template_id: str,
        context: Dict[str, Any],
        kind: ArtifactKind = ArtifactKind.GENERATED,
        entity: Optional[str] = None,
    ) -> ArtifactFile:
        return ArtifactFile(
            path=path,
            kind=kind,
            content=self._renderer.render(template_id, context),
            entity=entity,
        )

    def _controller_pair(
        self,
        entity: Entity,
        context: Dict[str, Any],
        generated_path: str,
        derived_path: str,
        prefix: str,
        single_template: str,
    ) -> List[ArtifactFile]:
        if not self.inheritance:
            return [self._artifact(derived_path, single_template, context, entity=entity.name)]
        return [
            self._artifact(
                generated_path, f"{prefix}/generated_{single_template.split('/')[1]}",
                context, entity=entity.name,
            ),
            self._artifact(
                derived_path, f"{prefix}/derived_{single_template.split('/')[1]}",
                context, ArtifactKind.DERIVED, entity.name,
            ),
        ]

    @abstractmethod
    def model_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ...

    @abstractmethod
    def controller_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ...

    def view_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        return ()

    @abstractmethod
    def routes_artifacts(self, tree: RouteTree, manifest: RegistrationManifest) -> Artifacts:
        ...

    def registration(self, entity: Entity) -> Optional[Registration]:
        """Central wiring entry for *entity*, or ``None`` when not needed."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.framework.value}/{self.backend.value}>"


# ---------------------------------------------------------------------------
# Rails
# ---------------------------------------------------------------------------


class ActiveRecordStrategy(RenderStrategy):
    framework = Framework.RAILS
    backend = PersistenceBackend.ACTIVE_RECORD

    _VIEWS: Tuple[Tuple[str, str], ...] = (
        ("index", "view_index"),
        ("show", "view_show"),
        ("new", "view_new"),
        ("edit", "view_edit"),
        ("_form", "view_form"),
    )

    def model_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        return (
            self._artifact(f"app/models/{to_snake_case(entity.name)}.rb", "rails/model", ctx,
                           entity=entity.name),
        )

    def controller_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        name: str = f"{entity.plural}_controller.rb"
        return tuple(self._controller_pair(
            entity, ctx,
            generated_path=f"app/controllers/generated/{name}",
            derived_path=f"app/controllers/{name}",
            prefix="rails",
            single_template="rails/controller",
        ))

    def view_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        return tuple(
            self._artifact(
                f"app/views/{entity.plural}/{page}.html.erb", f"rails/{template}", ctx,
                entity=entity.name,
            )
            for page, template in self._VIEWS
        )

    def routes_artifacts(self, tree: RouteTree, manifest: RegistrationManifest) -> Artifacts:
        ctx: Dict[str, Any] = {"tree": tree, "manifest": manifest, "config": self._config}
        return (self._artifact("config/routes.rb", "rails/routes", ctx),)


# ---------------------------------------------------------------------------
# Express
# ---------------------------------------------------------------------------


class _ExpressStrategy(RenderStrategy):
    framework = Framework.EXPRESS
    _model_template: str

    def model_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        return (
            self._artifact(f"models/{to_snake_case(entity.name)}.js", self._model_template, ctx,
                           entity=entity.name),
        )

    def controller_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        name: str = f"{entity.plural}_controller.js"
        artifacts: List[ArtifactFile] = self._controller_pair(
            entity, ctx,
            generated_path=f"controllers/generated/{name}",
            derived_path=f"controllers/{name}",
            prefix="express",
            single_template="express/controller",
        )
        artifacts.append(self._artifact(
            f"routes/{to_snake_case(entity.name)}_routes.js", "express/router", ctx,
            entity=entity.name,
        ))
        return tuple(artifacts)

    def routes_artifacts(self, tree: RouteTree, manifest: RegistrationManifest) -> Artifacts:
        ctx: Dict[str, Any] = {"tree": tree, "manifest": manifest, "config": self._config}
        return (self._artifact("routes/index.js", "express/routes_index", ctx),)

    def registration(self, entity: Entity) -> Optional[Registration]:
        snake: str = to_snake_case(entity.name)
        return Registration(
            entity=entity.name,
            resource=entity.plural,
            module=f"./{snake}_routes",
            symbol=f"{to_camel_case(entity.name)}Routes",
            mount=f"{self._config.api_prefix}/{entity.plural}",
        )


class SequelizeStrategy(_ExpressStrategy):
    backend = PersistenceBackend.SEQUELIZE
    _model_template = "express/sequelize_model"


class MongooseStrategy(_ExpressStrategy):
    backend = PersistenceBackend.MONGOOSE
    _model_template = "express/mongoose_model"


# ---------------------------------------------------------------------------
# FastAPI
# ---------------------------------------------------------------------------


class _FastApiStrategy(RenderStrategy):
    framework = Framework.FASTAPI
    _model_template: str

    def model_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        return (
            self._artifact(f"app/models/{to_snake_case(entity.name)}.py", self._model_template, ctx,
                           entity=entity.name),
        )

    def controller_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        ctx: Dict[str, Any] = self._context(entity, relations)
        name: str = f"{entity.plural}.py"
        return tuple(self._controller_pair(
            entity, ctx,
            generated_path=f"app/routers/generated/{name}",
            derived_path=f"app/routers/{name}",
            prefix="fastapi",
            single_template="fastapi/router",
        ))

    def view_artifacts(self, entity: Entity, relations: Sequence[CompiledRelation]) -> Artifacts:
        # request/response schemas are the presentation layer of an API
        ctx: Dict[str, Any] = self._context(entity, relations)
        return (
            self._artifact(f"app/schemas/{to_snake_case(entity.name)}.py", "fastapi/schemas", ctx,
                           entity=entity.name),
        )

    def routes_artifacts(self, tree: RouteTree, manifest: RegistrationManifest) -> Artifacts:
        ctx: Dict[str, Any] = {"tree": tree, "manifest": manifest, "config": self._config}
        return (self._artifact("app/routes.py", "fastapi/routes_registry", ctx),)

    def registration(self, entity: Entity) -> Optional[Registration]:
        return Registration(
            entity=entity.name,
            resource=entity.plural,
            module=f"app.routers.{entity.plural}",
            symbol=f"{entity.plural}_router",
            mount=f"{self._config.api_prefix}/{entity.plural}",
        )


class SqlAlchemyStrategy(_FastApiStrategy):
    backend = PersistenceBackend.SQLALCHEMY
    _model_template = "fastapi/sqlalchemy_model"


class MongoDbStrategy(_FastApiStrategy):
    backend = PersistenceBackend.MONGODB
    _model_template = "fastapi/mongodb_model"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

STRATEGIES: Dict[PersistenceBackend, Type[RenderStrategy]] = {
    PersistenceBackend.ACTIVE_RECORD: ActiveRecordStrategy,
    PersistenceBackend.SEQUELIZE: SequelizeStrategy,
    PersistenceBackend.MONGOOSE: MongooseStrategy,
    PersistenceBackend.SQLALCHEMY: SqlAlchemyStrategy,
    PersistenceBackend.MONGODB: MongoDbStrategy,
}


def resolve_strategy(
    target: GenerationTarget,
    renderer: Renderer,
    config: GenerationConfig,
) -> RenderStrategy:
    """
    Return the strategy for *target*.

    Raises:
        TargetError: no strategy exists for the backend, or it belongs to a
            different framework.
    """
    strategy_cls: Optional[Type[RenderStrategy]] = STRATEGIES.get(target.persistence_backend)
    if strategy_cls is None:
        raise TargetError(
            target.framework.value, target.persistence_backend.value, "no render strategy"
        )
    if strategy_cls.framework != target.framework:
        raise TargetError(
            target.framework.value,
            target.persistence_backend.value,
            f"backend belongs to {strategy_cls.framework.value}",
        )
    strategy: RenderStrategy = strategy_cls(renderer, config)
    logger.debug("Resolved strategy %r", strategy)
    return strategy


__all__: List[str] = [
    "RenderStrategy",
    "ActiveRecordStrategy",
    "SequelizeStrategy",
    "MongooseStrategy",
    "SqlAlchemyStrategy",
    "MongoDbStrategy",
    "STRATEGIES",
    "resolve_strategy",
]

logger.debug("crudgen.strategies loaded.")
