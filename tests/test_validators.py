"""
tests/test_validators.py
Unit tests for crudgen.validators.

Tests cover:
- ValidationResult bookkeeping
- Entity and attribute naming rules
- Association option combinations and duplicate association names
- Association targets outside the schema
- Output directory sanity checks
- Full validation pipeline (validate_full)
"""

from __future__ import annotations

import pathlib
from typing import Any, Dict, List

import pytest

from crudgen.models import GenerationConfig, SchemaDefinition
from crudgen.validators import (
    ValidationResult,
    validate_association_targets,
    validate_associations,
    validate_attribute_names,
    validate_entity_names,
    validate_full,
    validate_generation_config,
    validate_schema_size,
    validate_through_associations,
)

from conftest import belongs_to, has_many, make_entity


def _schema(*entities: Dict[str, Any]) -> SchemaDefinition:
    return SchemaDefinition.model_validate({"entities": list(entities)})


class TestValidationResult:
    def test_empty_result_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result)
        assert len(result) == 0

    def test_errors_and_warnings(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "bad")
        result.add_warning("W1", "meh")
        assert not result.is_valid
        assert result.error_count == 1
        assert result.warning_count == 1
        assert result.codes == ["E1", "W1"]
        assert "1 error(s), 1 warning(s)" in result.summary()
        assert "[E1] bad" in result.format_report()

    def test_merge(self) -> None:
        a, b = ValidationResult(), ValidationResult()
        b.add_warning("W", "w")
        a.merge(b)
        assert a.warning_count == 1
        assert a.is_valid


class TestEntityNames:
    def test_valid_names(self, blog_schema: SchemaDefinition) -> None:
        assert validate_entity_names(blog_schema).is_valid

    def test_duplicate_after_inflection(self) -> None:
        result = validate_entity_names(_schema({"name": "BlogPost"}, {"name": "blog_post"}))
        assert "DUPLICATE_ENTITY_NAME" in result.codes

    def test_exact_duplicate(self) -> None:
        result = validate_entity_names(_schema({"name": "post"}, {"name": "post"}))
        assert result.error_count == 1

    def test_invalid_identifier(self) -> None:
        result = validate_entity_names(_schema({"name": "blog-post"}))
        assert result.codes == ["INVALID_ENTITY_NAME"]

    def test_reserved_name(self) -> None:
        assert "ENTITY_NAME_RESERVED" in validate_entity_names(_schema({"name": "ApplicationRecord"})).codes

    def test_pascal_case_only_warns(self) -> None:
        result = validate_entity_names(_schema({"name": "BlogPost"}))
        assert result.is_valid
        assert result.codes == ["ENTITY_NAME_NOT_SNAKE_CASE"]


class TestAttributeNames:
    def test_reserved_primary_key(self) -> None:
        result = validate_attribute_names(_schema({"name": "post", "attributes": {"id": "integer"}}))
        assert result.codes == ["ATTRIBUTE_NAME_RESERVED"]

    def test_duplicate_after_snake_case(self) -> None:
        result = validate_attribute_names(
            _schema({"name": "post", "attributes": {"publishedAt": "datetime", "published_at": "datetime"}})
        )
        assert "DUPLICATE_ATTRIBUTE_NAME" in result.codes

    def test_invalid_identifier(self) -> None:
        result = validate_attribute_names(_schema({"name": "post", "attributes": {"2fa": "boolean"}}))
        assert result.codes == ["INVALID_ATTRIBUTE_NAME"]

    def test_attribute_shadowing_association_warns(self) -> None:
        result = validate_attribute_names(
            _schema({"name": "post", "attributes": {"user": "string"}, "associations": [belongs_to("user")]})
        )
        assert result.is_valid
        assert result.codes == ["ATTRIBUTE_SHADOWS_ASSOCIATION"]


class TestAssociations:
    def test_invalid_combination_is_an_error(self) -> None:
        result = validate_associations(
            _schema({"name": "post", "associations": [has_many("tags", through="taggings")]})
        )
        assert result.codes == ["INVALID_ASSOCIATION"]
        assert "requires 'source'" in result.errors[0].message

    def test_duplicate_association_name(self) -> None:
        result = validate_associations(
            _schema({"name": "post", "associations": [has_many("comments"), has_many("comments")]})
        )
        assert result.codes == ["DUPLICATE_ASSOCIATION_NAME"]

    def test_unknown_target_is_a_warning(self) -> None:
        result = validate_association_targets(
            _schema({"name": "comment", "associations": [belongs_to("post")]})
        )
        assert result.is_valid
        assert result.codes == ["UNRESOLVED_ASSOCIATION_TARGET"]
        assert result.warnings[0].context["target"] == "post"

    def test_polymorphic_and_through_skip_target_check(self) -> None:
        schema = _schema(
            {
                "name": "post",
                "associations": [
                    belongs_to("imageable", polymorphic=True),
                    has_many("tags", through="taggings", source="tag"),
                ],
            }
        )
        assert len(validate_association_targets(schema)) == 0

    def test_through_must_be_declared(self) -> None:
        schema = _schema(
            {"name": "post", "associations": [has_many("tags", through="taggings", source="tag")]},
            {"name": "tag"},
        )
        assert validate_through_associations(schema).codes == ["THROUGH_ASSOCIATION_MISSING"]


class TestGenerationConfigChecks:
    def test_output_path_is_a_file(self, tmp_path: pathlib.Path) -> None:
        occupied = tmp_path / "out"
        occupied.write_text("", encoding="utf-8")
        result = validate_generation_config(GenerationConfig(output_dir=str(occupied)))
        assert result.codes == ["OUTPUT_DIR_NOT_A_DIRECTORY"]

    def test_filesystem_root_is_refused(self) -> None:
        result = validate_generation_config(GenerationConfig(output_dir="/"))
        assert "OUTPUT_DIR_IS_ROOT" in result.codes

    def test_missing_directory_is_fine(self, tmp_path: pathlib.Path) -> None:
        assert validate_generation_config(GenerationConfig(output_dir=str(tmp_path / "new"))).is_valid


class TestValidateFull:
    def test_reference_schema_is_valid(
        self, blog_schema: SchemaDefinition, blog_config: GenerationConfig
    ) -> None:
        result = validate_full(blog_schema, blog_config)
        assert result.is_valid, result.format_report()
        assert result.warnings == []

    def test_empty_schema_warns(self, blog_config: GenerationConfig) -> None:
        result = validate_schema_size(SchemaDefinition())
        assert result.codes == ["EMPTY_SCHEMA"]
        assert validate_full(SchemaDefinition(), blog_config).is_valid

    @pytest.mark.parametrize(
        "entities, code",
        [
            ([{"name": "post"}, {"name": "post"}], "DUPLICATE_ENTITY_NAME"),
            ([{"name": "post", "associations": [has_many("x", optional=True)]}], "INVALID_ASSOCIATION"),
        ],
    )
    def test_errors_surface(
        self, entities: List[Dict[str, Any]], code: str, blog_config: GenerationConfig
    ) -> None:
        result = validate_full(_schema(*entities), blog_config)
        assert code in [e.code for e in result.errors]

    def test_make_entity_helper_roundtrip(self) -> None:
        schema = SchemaDefinition(entities=(make_entity("note"),))
        assert validate_entity_names(schema).is_valid
