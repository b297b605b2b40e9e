"""
tests/test_models.py
Unit tests for the crudgen schema model (pydantic layer).
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crudgen.models import (
    ArtifactFile,
    ArtifactKind,
    Association,
    AssociationKind,
    AttributeType,
    DependentAction,
    Framework,
    GenerationConfig,
    GenerationTarget,
    PersistenceBackend,
    SchemaDefinition,
)

from conftest import belongs_to, has_many, make_entity


class TestAssociation:
    def test_reads_options_from_attrs_alias(self) -> None:
        assoc = Association.model_validate(
            {"kind": "has_many", "name": "comments", "attrs": {"dependent": ":destroy"}}
        )
        assert assoc.kind == AssociationKind.HAS_MANY
        assert assoc.options.dependent == DependentAction.DESTROY

    def test_reserved_word_options(self) -> None:
        assoc = Association.model_validate(
            {"kind": "has_many", "name": "pictures", "attrs": {"as": "imageable", "polymorphic": True, "validate": False}}
        )
        assert assoc.options.as_ == "imageable"
        assert assoc.options.validate_ is False
        assert assoc.options.is_set("as")
        assert assoc.options.is_set("validate")
        assert not assoc.options.is_set("through")

    @pytest.mark.parametrize(
        "body, target",
        [
            ({"kind": "has_many", "name": "comments"}, "comment"),
            ({"kind": "belongs_to", "name": "author", "attrs": {"class_name": "User"}}, "user"),
            ({"kind": "has_many", "name": "tags", "attrs": {"through": "taggings", "source": "tag"}}, "tag"),
            ({"kind": "has_one", "name": "profile"}, "profile"),
            ({"kind": "has_and_belongs_to_many", "name": "categories"}, "category"),
        ],
    )
    def test_target_resolution(self, body, target: str) -> None:
        assert Association.model_validate(body).target == target

    def test_unknown_kind_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Association.model_validate({"kind": "has_some", "name": "x"})

    def test_unknown_option_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Association.model_validate({"kind": "has_many", "name": "x", "attrs": {"inverse": "y"}})


class TestEntity:
    def test_naming_helpers(self) -> None:
        entity = make_entity("line_item", attributes={"quantity": "integer"})
        assert entity.plural == "line_items"
        assert entity.class_name == "LineItem"
        assert entity.attributes["quantity"] == AttributeType.INTEGER

    def test_attribute_order_is_kept(self) -> None:
        entity = make_entity("post", attributes={"title": "string", "body": "text", "views": "integer"})
        assert list(entity.attributes) == ["title", "body", "views"]

    def test_unknown_attribute_type_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_entity("post", attributes={"title": "varchar"})

    def test_belongs_to_in_declaration_order(self) -> None:
        entity = make_entity(
            "comment",
            associations=[belongs_to("post"), has_many("likes"), belongs_to("user")],
        )
        assert [a.name for a in entity.belongs_to()] == ["post", "user"]

    def test_route_shorthand(self) -> None:
        entity = make_entity("post", routes={"member": ["publish"]})
        assert entity.routes.member[0].name == "publish"
        assert entity.routes.infer is True

    def test_entities_are_frozen(self) -> None:
        entity = make_entity("post")
        with pytest.raises(ValidationError):
            entity.name = "article"


class TestSchemaDefinition:
    def test_lookup(self) -> None:
        schema = SchemaDefinition(entities=(make_entity("post"), make_entity("comment")))
        assert schema.entity_count == 2
        assert schema.entity_names == ["post", "comment"]
        assert schema.get_entity("comment") is schema.entities[1]
        assert schema.get_entity("missing") is None


class TestGenerationTarget:
    def test_default_backend_per_framework(self) -> None:
        assert GenerationTarget(framework="express").persistence_backend == PersistenceBackend.SEQUELIZE
        assert GenerationTarget(framework="fastapi").persistence_backend == PersistenceBackend.SQLALCHEMY
        assert GenerationTarget().framework == Framework.RAILS

    def test_backend_alias(self) -> None:
        target = GenerationTarget.model_validate({"framework": "express", "backend": "mongo"})
        assert target.persistence_backend == PersistenceBackend.MONGOOSE
        assert str(target) == "express/mongoose"

    def test_incompatible_pair_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot be used with"):
            GenerationTarget.model_validate({"framework": "rails", "persistence_backend": "mongoose"})

    def test_unknown_framework_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GenerationTarget.model_validate({"framework": "django"})


class TestGenerationConfig:
    def test_defaults(self) -> None:
        config = GenerationConfig()
        assert config.controller_inheritance is True
        assert config.dry_run is False
        assert config.api_prefix == "/api"

    def test_bad_api_prefix(self) -> None:
        with pytest.raises(ValidationError):
            GenerationConfig(api_prefix="api/")


class TestArtifactFile:
    def test_path_is_normalised(self) -> None:
        artifact = ArtifactFile(path="./app//models/post.rb", kind=ArtifactKind.GENERATED, content="")
        assert artifact.path == "app/models/post.rb"
        assert not artifact.is_derived

    @pytest.mark.parametrize("path", ["/etc/passwd", "../outside.rb", "app/../../x"])
    def test_path_must_stay_inside_root(self, path: str) -> None:
        with pytest.raises(ValidationError):
            ArtifactFile(path=path, kind=ArtifactKind.DERIVED, content="")
