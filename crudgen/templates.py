# File: crudgen/templates.py
"""
crudgen - Default Renderer
============================
Plain string-assembly renderer for every supported target.

The pipeline only knows the ``Renderer`` protocol: a ``render(template_id,
context)`` call returning text it treats as opaque.  ``TemplateRenderer`` is
the implementation shipped with crudgen; callers can hand the generator any
other object with the same method (a Jinja environment wrapper, say).

**Conventions:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Output is deterministic: no timestamps, no set iteration without
      sorting, so an unchanged schema renders byte-identical files.
    - Template methods are stateless; one renderer may serve many runs.

Context keys used by the templates:

    entity               Entity being rendered
    relations            its CompiledRelation list, declaration order
    member_actions       RouteAction tuple for the entity
    collection_actions   RouteAction tuple for the entity
    config               GenerationConfig of the run
    backend              PersistenceBackend of the run
    tree                 RouteTree (route templates only)
    manifest             RegistrationManifest (route templates only)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from crudgen.associations import CompiledRelation
from crudgen.manifest import Registration, RegistrationManifest
from crudgen.models import (
    AssociationKind,
    AttributeType,
    Entity,
    GenerationConfig,
    PersistenceBackend,
)
from crudgen.routes import RouteAction, RouteNode, RouteTree
from crudgen.utils import (
    build_import_block,
    indent_lines,
    to_camel_case,
    to_pascal_case,
    to_plural,
    to_singular,
    to_snake_case,
    to_title_human,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.templates")


class Renderer(Protocol):
    """Anything that turns a template id and a context into file text."""

    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        ...


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GENERATED_NOTICE: str = "Generated by crudgen. Do not edit: this file is rewritten on every run."
_DERIVED_NOTICE: str = "Generated once by crudgen. This file is yours; it is never overwritten."

# Search actions filter on the first of these the entity has
_SEARCH_FIELDS: Tuple[str, ...] = ("name", "title", "description", "email", "username")

_ERB_FIELD_HELPERS: Dict[AttributeType, str] = {
    AttributeType.STRING: "text_field",
    AttributeType.TEXT: "text_area",
    AttributeType.INTEGER: "number_field",
    AttributeType.FLOAT: "number_field",
    AttributeType.DECIMAL: "number_field",
    AttributeType.BOOLEAN: "check_box",
    AttributeType.DATE: "date_field",
    AttributeType.DATETIME: "datetime_local_field",
    AttributeType.JSON: "text_area",
    AttributeType.ARRAY: "text_area",
}

_RAILS_DEPENDENT: Dict[str, str] = {
    "destroy": "destroy",
    "nullify": "nullify",
    "restrict": "restrict_with_error",
}

_SEQUELIZE_TYPES: Dict[AttributeType, str] = {
    AttributeType.STRING: "DataTypes.STRING",
    AttributeType.TEXT: "DataTypes.TEXT",
    AttributeType.INTEGER: "DataTypes.INTEGER",
    AttributeType.FLOAT: "DataTypes.FLOAT",
    AttributeType.DECIMAL: "DataTypes.DECIMAL(12, 2)",
    AttributeType.BOOLEAN: "DataTypes.BOOLEAN",
    AttributeType.DATE: "DataTypes.DATEONLY",
    AttributeType.DATETIME: "DataTypes.DATE",
    AttributeType.JSON: "DataTypes.JSON",
    AttributeType.ARRAY: "DataTypes.JSON",
}

_SEQUELIZE_ON_DELETE: Dict[str, str] = {
    "destroy": "CASCADE",
    "nullify": "SET NULL",
    "restrict": "RESTRICT",
}

_MONGOOSE_TYPES: Dict[AttributeType, str] = {
    AttributeType.STRING: "String",
    AttributeType.TEXT: "String",
    AttributeType.INTEGER: "Number",
    AttributeType.FLOAT: "Number",
    AttributeType.DECIMAL: "Schema.Types.Decimal128",
    AttributeType.BOOLEAN: "Boolean",
    AttributeType.DATE: "Date",
    AttributeType.DATETIME: "Date",
    AttributeType.JSON: "Schema.Types.Mixed",
    AttributeType.ARRAY: "[Schema.Types.Mixed]",
}

# (SQLAlchemy column type, python annotation)
_SQLALCHEMY_TYPES: Dict[AttributeType, Tuple[str, str]] = {
    AttributeType.STRING: ("String(255)", "str"),
    AttributeType.TEXT: ("Text", "str"),
    AttributeType.INTEGER: ("Integer", "int"),
    AttributeType.FLOAT: ("Float", "float"),
    AttributeType.DECIMAL: ("Numeric(12, 2)", "Decimal"),
    AttributeType.BOOLEAN: ("Boolean", "bool"),
    AttributeType.DATE: ("Date", "date"),
    AttributeType.DATETIME: ("DateTime", "datetime"),
    AttributeType.JSON: ("JSON", "Dict[str, Any]"),
    AttributeType.ARRAY: ("JSON", "List[Any]"),
}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _notice(prefix: str, derived: bool = False) -> str:
    return f"{prefix} {_DERIVED_NOTICE if derived else _GENERATED_NOTICE}"


def _search_field(entity: Entity) -> Optional[str]:
    for name in _SEARCH_FIELDS:
        if entity.has_attribute(name):
            return name
    return None


def _status_field(entity: Entity) -> Optional[str]:
    if entity.has_attribute("active"):
        return "active"
    if entity.has_attribute("status"):
        return "status"
    return None


def _permitted_columns(entity: Entity, relations: Sequence[CompiledRelation]) -> List[str]:
    """Attribute names plus the foreign-key columns the entity owns."""
    columns: List[str] = list(entity.attributes)
    for rel in relations:
        if rel.kind != AssociationKind.BELONGS_TO:
            continue
        fk: Optional[str] = rel.foreign_key_column
        if fk and fk not in columns:
            columns.append(fk)
        if rel.is_polymorphic and f"{rel.name}_type" not in columns:
            columns.append(f"{rel.name}_type")
    return columns


def _join_table(left: str, right: str) -> str:
    """Join table of a has_and_belongs_to_many pair, lexical order."""
    return "_".join(sorted((to_plural(to_snake_case(left)), to_plural(to_snake_case(right)))))


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """
    Stateless code-generation engine for all supported targets.

    Usage::

        renderer = TemplateRenderer()
        text = renderer.render("rails/model", {"entity": post, "relations": rels})
    """

    def __init__(self, indent_size: int = 2) -> None:
        self._indent_size: int = indent_size
        self._templates: Dict[str, Callable[[Mapping[str, Any]], str]] = {
            "rails/model": self._rails_model,
            "rails/generated_controller": lambda ctx: self._rails_controller(ctx, wrap=True),
            "rails/controller": lambda ctx: self._rails_controller(ctx, wrap=False),
            "rails/derived_controller": self._rails_derived_controller,
            "rails/view_index": self._rails_view_index,
            "rails/view_show": self._rails_view_show,
            "rails/view_new": lambda ctx: self._rails_view_page(ctx, "new"),
            "rails/view_edit": lambda ctx: self._rails_view_page(ctx, "edit"),
            "rails/view_form": self._rails_view_form,
            "rails/routes": self._rails_routes,
            "express/sequelize_model": self._sequelize_model,
            "express/mongoose_model": self._mongoose_model,
            "express/generated_controller": lambda ctx: self._express_controller(ctx, base=True),
            "express/controller": lambda ctx: self._express_controller(ctx, base=False),
            "express/derived_controller": self._express_derived_controller,
            "express/router": self._express_router,
            "express/routes_index": self._express_routes_index,
            "fastapi/sqlalchemy_model": self._sqlalchemy_model,
            "fastapi/mongodb_model": self._mongodb_model,
            "fastapi/schemas": self._fastapi_schemas,
            "fastapi/generated_router": lambda ctx: self._fastapi_router(ctx, standalone=False),
            "fastapi/router": lambda ctx: self._fastapi_router(ctx, standalone=True),
            "fastapi/derived_router": self._fastapi_derived_router,
            "fastapi/routes_registry": self._fastapi_routes_registry,
        }
        logger.debug("TemplateRenderer initialised with %d templates.", len(self._templates))

    @property
    def template_ids(self) -> List[str]:
        return sorted(self._templates)

    def render(self, template_id: str, context: Mapping[str, Any]) -> str:
        template: Optional[Callable[[Mapping[str, Any]], str]] = self._templates.get(template_id)
        if template is None:
            raise ValueError(f"Unknown template '{template_id}'")
        content: str = template(context)
        logger.debug("Rendered %s: %d lines.", template_id, content.count("\n"))
        return content

    def _indent(self, lines: Sequence[str], level: int = 1) -> List[str]:
        return indent_lines(lines, level, self._indent_size)

    # ===================================================================
    # Rails / ActiveRecord
    # ===================================================================

    @staticmethod
    def _ruby_option(key: str, value: Any) -> str:
        if isinstance(value, bool):
            return f"{key}: {str(value).lower()}"
        if key == "class_name":
            return f"{key}: '{value}'"
        if key == "dependent":
            return f"{key}: :{_RAILS_DEPENDENT[value]}"
        return f"{key}: :{value}"

    def _rails_association_line(self, rel: CompiledRelation) -> str:
        parts: List[str] = [f"{rel.kind.value} :{rel.name}"]
        parts.extend(self._ruby_option(key, value) for key, value in rel.options)
        return ", ".join(parts)

    def _rails_model(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        attrs: Dict[str, AttributeType] = entity.attributes
        body: List[str] = []

        if relations:
            body.extend(self._rails_association_line(rel) for rel in relations)
            body.append("")

        validations: List[str] = []
        for name, attr_type in attrs.items():
            if attr_type in (AttributeType.STRING, AttributeType.TEXT):
                if name == "email":
                    validations.append(
                        "validates :email, presence: true, "
                        "format: { with: URI::MailTo::EMAIL_REGEXP }, "
                        "uniqueness: { case_sensitive: false }"
                    )
                elif name in ("name", "title"):
                    validations.append(f"validates :{name}, presence: true")
            elif attr_type in (AttributeType.INTEGER, AttributeType.DECIMAL, AttributeType.FLOAT):
                if name.endswith(("_count", "_amount")):
                    validations.append(
                        f"validates :{name}, numericality: {{ greater_than_or_equal_to: 0 }}"
                    )
        for rel in relations:
            if rel.kind == AssociationKind.BELONGS_TO and not rel.option("optional", False):
                validations.append(f"validates :{rel.foreign_key_column}, presence: true")
        if validations:
            body.extend(validations)
            body.append("")

        scopes: List[str] = []
        if "created_at" in attrs or "updated_at" in attrs:
            scopes.append("scope :recent, -> { order(created_at: :desc) }")
        status: Optional[str] = _status_field(entity)
        if status == "active":
            scopes.append("scope :active, -> { where(active: true) }")
            scopes.append("scope :inactive, -> { where(active: false) }")
        elif status == "status":
            scopes.append("scope :active, -> { where(status: 'active') }")
            scopes.append("scope :inactive, -> { where.not(status: 'active') }")
        if scopes:
            body.extend(scopes)
            body.append("")

        if "slug" in attrs and "name" in attrs:
            body.append("before_validation :generate_slug, if: -> { name_changed? || slug.blank? }")
            body.append("")
            body.append("private")
            body.append("")
            body.append("def generate_slug")
            body.append("  self.slug = name.to_s.parameterize")
            body.append("end")

        while body and not body[-1]:
            body.pop()

        lines: List[str] = [_notice("#")]
        if attrs:
            lines.append("#")
            lines.append("# == Attributes")
            width: int = max(len(n) for n in attrs)
            lines.extend(f"#  {n.ljust(width)}  :{t.value}" for n, t in attrs.items())
        lines.append(f"class {entity.class_name} < ApplicationRecord")
        lines.extend(self._indent(body))
        lines.append("end")
        lines.append("")
        return "\n".join(lines)

    def _rails_action_body(self, entity: Entity, action: RouteAction, member: bool) -> List[str]:
        single: str = to_snake_case(entity.name)
        cls: str = entity.class_name
        status: Optional[str] = _status_field(entity)

        if member:
            record: str = f"@{single}"
            if action.name in ("activate", "deactivate") and status:
                on: bool = action.name == "activate"
                value: str = str(on).lower() if status == "active" else (
                    "'active'" if on else "'inactive'"
                )
                return [f"{record}.update({status}: {value})", f"redirect_to {record}"]
            if action.name in ("move_up", "move_down") and entity.has_attribute("position"):
                step: str = "- 1" if action.name == "move_up" else "+ 1"
                return [
                    f"{record}.update(position: {record}.position.to_i {step})",
                    f"redirect_to {entity.plural}_url",
                ]
            if action.name in ("archive", "unarchive") and entity.has_attribute("archived_at"):
                stamp: str = "Time.current" if action.name == "archive" else "nil"
                return [f"{record}.update(archived_at: {stamp})", f"redirect_to {record}"]
            return ["head :not_implemented"]

        if action.name in ("active", "inactive") and status:
            return [f"@{entity.plural} = {cls}.{action.name}", "render :index"]
        if action.name == "export":
            return [f"render json: {cls}.all"]
        if action.name == "search" and _search_field(entity):
            field: str = _search_field(entity) or ""
            return [
                f'@{entity.plural} = {cls}.where("{field} LIKE ?", "%#{{params[:q]}}%")',
                "render :index",
            ]
        return ["head :not_implemented"]

    def _rails_controller(self, ctx: Mapping[str, Any], wrap: bool) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        member: Sequence[RouteAction] = ctx.get("member_actions", ())
        collection: Sequence[RouteAction] = ctx.get("collection_actions", ())
        single: str = to_snake_case(entity.name)
        plural: str = entity.plural
        cls: str = entity.class_name
        human: str = to_title_human(entity.name)

        record_actions: List[str] = ["show", "edit", "update", "destroy"]
        record_actions.extend(a.name for a in member)

        body: List[str] = [
            f"before_action :set_{single}, only: %i[{' '.join(record_actions)}]",
            "",
            "def index",
            f"  @{plural} = {cls}.all",
            "end",
            "",
            "def show",
            "end",
            "",
            "def new",
            f"  @{single} = {cls}.new",
            "end",
            "",
            "def edit",
            "end",
            "",
            "def create",
            f"  @{single} = {cls}.new({single}_params)",
            f"  if @{single}.save",
            f"    redirect_to @{single}, notice: '{human} was successfully created.'",
            "  else",
            "    render :new, status: :unprocessable_entity",
            "  end",
            "end",
            "",
            "def update",
            f"  if @{single}.update({single}_params)",
            f"    redirect_to @{single}, notice: '{human} was successfully updated.'",
            "  else",
            "    render :edit, status: :unprocessable_entity",
            "  end",
            "end",
            "",
            "def destroy",
            f"  @{single}.destroy",
            f"  redirect_to {plural}_url, notice: '{human} was successfully destroyed.'",
            "end",
        ]

        for action in member:
            body.append("")
            body.append(f"def {action.name}")
            body.extend(self._indent(self._rails_action_body(entity, action, True)))
            body.append("end")
        for action in collection:
            body.append("")
            body.append(f"def {action.name}")
            body.extend(self._indent(self._rails_action_body(entity, action, False)))
            body.append("end")

        permitted: List[str] = [f":{c}" for c in _permitted_columns(entity, relations)]
        for rel in relations:
            if rel.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
                permitted.append(f"{to_singular(rel.name)}_ids: []")

        body.extend([
            "",
            "private",
            "",
            f"def set_{single}",
            f"  @{single} = {cls}.find(params[:id])",
            "end",
            "",
            f"def {single}_params",
            f"  params.require(:{single}).permit({', '.join(permitted)})",
            "end",
        ])

        klass: List[str] = [f"class {to_pascal_case(plural)}Controller < ApplicationController"]
        klass.extend(self._indent(body))
        klass.append("end")

        lines: List[str] = [_notice("#")]
        if wrap:
            lines.append("module Generated")
            lines.extend(self._indent(klass))
            lines.append("end")
        else:
            lines.extend(klass)
        lines.append("")
        return "\n".join(lines)

    def _rails_derived_controller(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        name: str = f"{to_pascal_case(entity.plural)}Controller"
        lines: List[str] = [
            _notice("#", derived=True),
            f"# Override or extend the actions inherited from Generated::{name} here.",
            f"class {name} < Generated::{name}",
            "end",
            "",
        ]
        return "\n".join(lines)

    def _rails_view_index(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        single: str = to_snake_case(entity.name)
        plural: str = entity.plural
        lines: List[str] = [
            f"<%# {_GENERATED_NOTICE} %>",
            f"<h1>{to_title_human(plural)}</h1>",
            "",
            "<table>",
            "  <thead>",
            "    <tr>",
        ]
        lines.extend(f"      <th>{to_title_human(name)}</th>" for name in entity.attributes)
        lines.extend([
            "      <th colspan=\"3\"></th>",
            "    </tr>",
            "  </thead>",
            "",
            "  <tbody>",
            f"    <% @{plural}.each do |{single}| %>",
            "      <tr>",
        ])
        lines.extend(f"        <td><%= {single}.{name} %></td>" for name in entity.attributes)
        lines.extend([
            f"        <td><%= link_to 'Show', {single} %></td>",
            f"        <td><%= link_to 'Edit', edit_{single}_path({single}) %></td>",
            f"        <td><%= button_to 'Destroy', {single}, method: :delete %></td>",
            "      </tr>",
            "    <% end %>",
            "  </tbody>",
            "</table>",
            "",
            f"<%= link_to 'New {to_title_human(single)}', new_{single}_path %>",
            "",
        ])
        return "\n".join(lines)

    def _rails_view_show(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        single: str = to_snake_case(entity.name)
        lines: List[str] = [f"<%# {_GENERATED_NOTICE} %>"]
        for name in entity.attributes:
            lines.extend([
                "<p>",
                f"  <strong>{to_title_human(name)}:</strong>",
                f"  <%= @{single}.{name} %>",
                "</p>",
                "",
            ])
        lines.extend([
            f"<%= link_to 'Edit', edit_{single}_path(@{single}) %> |",
            f"<%= link_to 'Back', {entity.plural}_path %>",
            "",
        ])
        return "\n".join(lines)

    def _rails_view_page(self, ctx: Mapping[str, Any], page: str) -> str:
        entity: Entity = ctx["entity"]
        single: str = to_snake_case(entity.name)
        title: str = f"{'New' if page == 'new' else 'Editing'} {to_title_human(single)}"
        lines: List[str] = [
            f"<%# {_GENERATED_NOTICE} %>",
            f"<h1>{title}</h1>",
            "",
            f"<%= render 'form', {single}: @{single} %>",
            "",
        ]
        if page == "edit":
            lines.append(f"<%= link_to 'Show', @{single} %> |")
        lines.append(f"<%= link_to 'Back', {entity.plural}_path %>")
        lines.append("")
        return "\n".join(lines)

    def _rails_view_form(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        single: str = to_snake_case(entity.name)
        lines: List[str] = [
            f"<%# {_GENERATED_NOTICE} %>",
            f"<%= form_with(model: {single}) do |form| %>",
            f"  <% if {single}.errors.any? %>",
            "    <div id=\"error_explanation\">",
            "      <ul>",
            f"        <% {single}.errors.each do |error| %>",
            "          <li><%= error.full_message %></li>",
            "        <% end %>",
            "      </ul>",
            "    </div>",
            "  <% end %>",
            "",
        ]
        fields: List[Tuple[str, str]] = [
            (name, _ERB_FIELD_HELPERS[t]) for name, t in entity.attributes.items()
        ]
        for column in _permitted_columns(entity, relations):
            if column not in entity.attributes:
                fields.append((column, "text_field" if column.endswith("_type") else "number_field"))
        for name, helper in fields:
            lines.extend([
                "  <div class=\"field\">",
                f"    <%= form.label :{name} %>",
                f"    <%= form.{helper} :{name} %>",
                "  </div>",
                "",
            ])
        lines.extend([
            "  <div class=\"actions\">",
            "    <%= form.submit %>",
            "  </div>",
            "<% end %>",
            "",
        ])
        return "\n".join(lines)

    def _rails_resource(self, node: RouteNode) -> List[str]:
        if not node.has_actions:
            return [f"resources :{node.resource}"]
        lines: List[str] = [f"resources :{node.resource} do"]
        if node.member_actions:
            lines.append("  member do")
            lines.extend(f"    {a}" for a in node.member_actions)
            lines.append("  end")
        if node.collection_actions:
            lines.append("  collection do")
            lines.extend(f"    {a}" for a in node.collection_actions)
            lines.append("  end")
        lines.append("end")
        return lines

    def _rails_routes(self, ctx: Mapping[str, Any]) -> str:
        tree: RouteTree = ctx["tree"]
        body: List[str] = []
        for node in tree.standalone:
            body.extend(self._rails_resource(node))
        for block in tree.nested:
            if body:
                body.append("")
            body.append(f"resources :{block.parent_resource} do")
            for child in block.children:
                body.extend(self._indent(self._rails_resource(child)))
            body.append("end")
        if tree.root is not None:
            if body:
                body.append("")
            body.append(f"root to: '{tree.root.to}'")

        lines: List[str] = [_notice("#"), "Rails.application.routes.draw do"]
        lines.extend(self._indent(body))
        lines.append("end")
        lines.append("")
        return "\n".join(lines)

    # ===================================================================
    # Express / Sequelize & Mongoose
    # ===================================================================

    def _sequelize_model(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        cls: str = entity.class_name

        fields: List[str] = [
            f"{name}: {{ type: {_SEQUELIZE_TYPES[t]} }},"
            for name, t in entity.attributes.items()
        ]
        assoc: List[str] = []
        for rel in relations:
            target: str = to_pascal_case(rel.target)
            opts: List[str] = [f"as: '{rel.name}'"]
            fk: Optional[str] = rel.foreign_key_column
            if rel.kind == AssociationKind.BELONGS_TO:
                if rel.is_polymorphic:
                    fields.append(f"{rel.name}_id: {{ type: DataTypes.INTEGER }},")
                    fields.append(f"{rel.name}_type: {{ type: DataTypes.STRING }},")
                    assoc.append(f"// polymorphic {rel.name}: resolve through {rel.name}_type / {rel.name}_id")
                    continue
                fields.append(
                    f"{fk}: {{ type: DataTypes.INTEGER, "
                    f"allowNull: {str(bool(rel.option('optional', False))).lower()} }},"
                )
                opts.append(f"foreignKey: '{fk}'")
                assoc.append(f"{cls}.belongsTo(models.{target}, {{ {', '.join(opts)} }});")
                continue
            if rel.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
                opts.append(f"through: '{_join_table(entity.name, rel.target)}'")
                assoc.append(f"{cls}.belongsToMany(models.{target}, {{ {', '.join(opts)} }});")
                continue
            if rel.is_through:
                opts.append(f"through: models.{to_pascal_case(to_singular(rel.option('through')))}")
                assoc.append(f"{cls}.belongsToMany(models.{target}, {{ {', '.join(opts)} }});")
                continue
            method: str = "hasMany" if rel.kind == AssociationKind.HAS_MANY else "hasOne"
            if fk:
                opts.append(f"foreignKey: '{fk}'")
            if rel.is_polymorphic:
                opts.append("constraints: false")
                opts.append(f"scope: {{ {rel.option('as')}_type: '{cls}' }}")
            elif rel.cascade is not None:
                opts.append(f"onDelete: '{_SEQUELIZE_ON_DELETE[rel.cascade.value]}'")
            assoc.append(f"{cls}.{method}(models.{target}, {{ {', '.join(opts)} }});")

        lines: List[str] = [
            _notice("//"),
            "const { DataTypes } = require('sequelize');",
            "",
            "module.exports = (sequelize) => {",
            f"  const {cls} = sequelize.define('{cls}', {{",
        ]
        lines.extend(self._indent(fields, 2))
        lines.append(f"  }}, {{ tableName: '{entity.plural}', underscored: true }});")
        lines.append("")
        lines.append(f"  {cls}.associate = (models) => {{")
        lines.extend(self._indent(assoc, 2))
        lines.append("  };")
        lines.append("")
        lines.append(f"  return {cls};")
        lines.append("};")
        lines.append("")
        return "\n".join(lines)

    def _mongoose_model(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        cls: str = entity.class_name
        schema_var: str = f"{to_camel_case(entity.name)}Schema"

        fields: List[str] = [
            f"{name}: {{ type: {_MONGOOSE_TYPES[t]} }},"
            for name, t in entity.attributes.items()
        ]
        extras: List[str] = []
        for rel in relations:
            target: str = to_pascal_case(rel.target)
            if rel.kind == AssociationKind.BELONGS_TO:
                if rel.is_polymorphic:
                    fields.append(f"{rel.name}: {{ type: Schema.Types.ObjectId, refPath: '{rel.name}_type' }},")
                    fields.append(f"{rel.name}_type: {{ type: String }},")
                    continue
                required: bool = not rel.option("optional", False)
                field: str = rel.option("foreign_key") or rel.name
                fields.append(
                    f"{field}: {{ type: Schema.Types.ObjectId, ref: '{target}', "
                    f"required: {str(required).lower()} }},"
                )
                continue
            if rel.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
                fields.append(f"{rel.name}: [{{ type: Schema.Types.ObjectId, ref: '{target}' }}],")
                continue
            if rel.is_through:
                extras.append(f"// {rel.name}: reached through {rel.option('through')}.{rel.option('source')}")
                continue
            foreign: str = rel.option("foreign_key") or rel.option("as") or to_snake_case(entity.name)
            extras.append(f"{schema_var}.virtual('{rel.name}', {{")
            extras.append(f"  ref: '{target}',")
            extras.append("  localField: '_id',")
            extras.append(f"  foreignField: '{foreign}',")
            extras.append(f"  justOne: {str(rel.kind == AssociationKind.HAS_ONE).lower()},")
            extras.append("});")
            action: Optional[str] = rel.option("dependent")
            if action:
                extras.extend(self._mongoose_cascade(schema_var, target, foreign, action))

        lines: List[str] = [
            _notice("//"),
            "const mongoose = require('mongoose');",
            "",
            "const { Schema } = mongoose;",
            "",
            f"const {schema_var} = new Schema({{",
        ]
        lines.extend(self._indent(fields))
        lines.append("}, { timestamps: true, toJSON: { virtuals: true } });")
        if extras:
            lines.append("")
            lines.extend(extras)
        lines.append("")
        lines.append(f"module.exports = mongoose.model('{cls}', {schema_var});")
        lines.append("")
        return "\n".join(lines)

    @staticmethod
    def _mongoose_cascade(schema_var: str, target: str, foreign: str, action: str) -> List[str]:
        lines: List[str] = [
            f"{schema_var}.pre('deleteOne', {{ document: true, query: false }}, async function () {{",
        ]
        query: str = f"{{ {foreign}: this._id }}"
        if action == "destroy":
            lines.append(f"  await mongoose.model('{target}').deleteMany({query});")
        elif action == "nullify":
            lines.append(f"  await mongoose.model('{target}').updateMany({query}, {{ {foreign}: null }});")
        else:
            lines.append(f"  const count = await mongoose.model('{target}').countDocuments({query});")
            lines.append(f"  if (count > 0) throw new Error('Cannot delete record with dependent {target}');")
        lines.append("});")
        return lines

    def _express_queries(self, backend: PersistenceBackend, cls: str) -> Dict[str, str]:
        if backend == PersistenceBackend.MONGOOSE:
            return {
                "all": f"{cls}.find()",
                "find": f"{cls}.findById(req.params.id)",
                "create": f"{cls}.create(req.body)",
                "update": f"{cls}.findByIdAndUpdate(req.params.id, req.body, {{ new: true }})",
                "destroy": "record.deleteOne()",
                "where": f"{cls}.find",
            }
        return {
            "all": f"{cls}.findAll()",
            "find": f"{cls}.findByPk(req.params.id)",
            "create": f"{cls}.create(req.body)",
            "update": "record.update(req.body)",
            "destroy": "record.destroy()",
            "where": f"{cls}.findAll",
        }

    def _express_action_body(
        self, entity: Entity, action: RouteAction, member: bool, backend: PersistenceBackend
    ) -> List[str]:
        cls: str = entity.class_name
        q: Dict[str, str] = self._express_queries(backend, cls)
        status: Optional[str] = _status_field(entity)
        mongo: bool = backend == PersistenceBackend.MONGOOSE

        def where(clause: str) -> str:
            return f"{q['where']}({clause})" if mongo else f"{q['where']}({{ where: {clause} }})"

        def save(changes: str) -> List[str]:
            if mongo:
                return [f"record.set({changes});", "await record.save();", "res.json(record);"]
            return [f"await record.update({changes});", "res.json(record);"]

        if member:
            found: List[str] = [
                f"const record = await {q['find']};",
                f"if (!record) return res.status(404).json({{ error: '{cls} not found' }});",
            ]
            if action.name in ("activate", "deactivate") and status:
                on: bool = action.name == "activate"
                value: str = str(on).lower() if status == "active" else (
                    "'active'" if on else "'inactive'"
                )
                return found + save(f"{{ {status}: {value} }}")
            if action.name in ("move_up", "move_down") and entity.has_attribute("position"):
                step: str = "- 1" if action.name == "move_up" else "+ 1"
                return found + save(f"{{ position: (record.position || 0) {step} }}")
            if action.name in ("archive", "unarchive") and entity.has_attribute("archived_at"):
                stamp: str = "new Date()" if action.name == "archive" else "null"
                return found + save(f"{{ archived_at: {stamp} }}")
            return ["res.status(501).json({ error: 'Not implemented' });"]

        if action.name in ("active", "inactive") and status:
            on = action.name == "active"
            if status == "active":
                clause: str = f"{{ active: {str(on).lower()} }}"
            elif mongo:
                clause = "{ status: 'active' }" if on else "{ status: { $ne: 'active' } }"
            else:
                clause = "{ status: 'active' }" if on else "{ status: { [Op.ne]: 'active' } }"
            return [f"res.json(await {where(clause)});"]
        if action.name == "export":
            return [f"res.json(await {q['all']});"]
        if action.name == "search" and _search_field(entity):
            field: str = _search_field(entity) or ""
            if mongo:
                clause = f"{{ {field}: new RegExp(req.query.q || '', 'i') }}"
            else:
                clause = f"{{ {field}: {{ [Op.like]: `%${{req.query.q || ''}}%` }} }}"
            return [f"res.json(await {where(clause)});"]
        return ["res.status(501).json({ error: 'Not implemented' });"]

    @staticmethod
    def _express_method(name: str, body: Sequence[str]) -> List[str]:
        lines: List[str] = [f"async {to_camel_case(name)}(req, res, next) {{", "  try {"]
        lines.extend(f"    {line}" for line in body)
        lines.extend(["  } catch (err) {", "    next(err);", "  }", "}"])
        return lines

    def _express_controller(self, ctx: Mapping[str, Any], base: bool) -> str:
        entity: Entity = ctx["entity"]
        backend: PersistenceBackend = ctx["backend"]
        member: Sequence[RouteAction] = ctx.get("member_actions", ())
        collection: Sequence[RouteAction] = ctx.get("collection_actions", ())
        cls: str = entity.class_name
        q: Dict[str, str] = self._express_queries(backend, cls)
        name: str = f"{to_pascal_case(entity.plural)}Controller"
        models: str = "../../models" if base else "../models"
        not_found: str = f"if (!record) return res.status(404).json({{ error: '{cls} not found' }});"

        lines: List[str] = [_notice("//")]
        if backend == PersistenceBackend.MONGOOSE:
            lines.append(f"const {cls} = require('{models}/{to_snake_case(entity.name)}');")
        else:
            lines.append("const { Op } = require('sequelize');")
            lines.append(f"const {{ {cls} }} = require('{models}');")
        lines.append("")

        methods: List[List[str]] = [
            self._express_method("index", [f"res.json(await {q['all']});"]),
            self._express_method("show", [
                f"const record = await {q['find']};",
                not_found,
                "res.json(record);",
            ]),
            self._express_method("create", [
                f"const record = await {q['create']};",
                "res.status(201).json(record);",
            ]),
        ]
        if backend == PersistenceBackend.MONGOOSE:
            methods.append(self._express_method("update", [
                f"const record = await {q['update']};",
                not_found,
                "res.json(record);",
            ]))
        else:
            methods.append(self._express_method("update", [
                f"const record = await {q['find']};",
                not_found,
                f"await {q['update']};",
                "res.json(record);",
            ]))
        methods.append(self._express_method("destroy", [
            f"const record = await {q['find']};",
            not_found,
            f"await {q['destroy']};",
            "res.status(204).end();",
        ]))
        for action in member:
            methods.append(self._express_method(
                action.name, self._express_action_body(entity, action, True, backend)
            ))
        for action in collection:
            methods.append(self._express_method(
                action.name, self._express_action_body(entity, action, False, backend)
            ))

        lines.append(f"class {name} {{")
        for i, method in enumerate(methods):
            if i:
                lines.append("")
            lines.extend(self._indent(method))
        lines.append("}")
        lines.append("")
        lines.append(f"module.exports = {name};" if base else f"module.exports = new {name}();")
        lines.append("")
        return "\n".join(lines)

    def _express_derived_controller(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        name: str = f"{to_pascal_case(entity.plural)}Controller"
        lines: List[str] = [
            _notice("//", derived=True),
            f"const Generated{name} = require('./generated/{entity.plural}_controller');",
            "",
            f"class {name} extends Generated{name} {{",
            "  // Override or add actions here.",
            "}",
            "",
            f"module.exports = new {name}();",
            "",
        ]
        return "\n".join(lines)

    def _express_router(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        member: Sequence[RouteAction] = ctx.get("member_actions", ())
        collection: Sequence[RouteAction] = ctx.get("collection_actions", ())

        def route(verb: str, path: str, action: str) -> str:
            handler: str = to_camel_case(action)
            return f"router.{verb}('{path}', controller.{handler}.bind(controller));"

        lines: List[str] = [
            _notice("//"),
            "const express = require('express');",
            "",
            f"const controller = require('../controllers/{entity.plural}_controller');",
            "",
            "const router = express.Router({ mergeParams: true });",
            "",
        ]
        # collection routes must come before '/:id'
        lines.extend(route(a.verb.value, f"/{a.name}", a.name) for a in collection)
        lines.extend([
            route("get", "/", "index"),
            route("post", "/", "create"),
            route("get", "/:id", "show"),
            route("put", "/:id", "update"),
            route("patch", "/:id", "update"),
            route("delete", "/:id", "destroy"),
        ])
        lines.extend(route(a.verb.value, f"/:id/{a.name}", a.name) for a in member)
        lines.append("")
        lines.append("module.exports = router;")
        lines.append("")
        return "\n".join(lines)

    @staticmethod
    def _mount_path(config: GenerationConfig, tree: RouteTree, entity: str, param: str) -> str:
        node: Optional[RouteNode] = tree.find(entity)
        if node is None:
            return f"{config.api_prefix}/{to_plural(to_snake_case(entity))}"
        if node.parent is None:
            return f"{config.api_prefix}/{node.resource}"
        parent_resource: str = to_plural(to_snake_case(node.parent))
        return f"{config.api_prefix}/{parent_resource}/{param.format(to_snake_case(node.parent))}/{node.resource}"

    def _express_routes_index(self, ctx: Mapping[str, Any]) -> str:
        config: GenerationConfig = ctx["config"]
        tree: RouteTree = ctx["tree"]
        manifest: RegistrationManifest = ctx["manifest"]
        lines: List[str] = [_notice("//"), "const express = require('express');", ""]
        registrations: List[Registration] = manifest.registrations
        lines.extend(f"const {r.symbol} = require('{r.module}');" for r in registrations)
        lines.append("")
        lines.append("const router = express.Router();")
        lines.append("")
        for r in registrations:
            lines.append(f"router.use('{self._mount_path(config, tree, r.entity, ':{}_id')}', {r.symbol});")
        lines.append("")
        lines.append("module.exports = router;")
        lines.append("")
        return "\n".join(lines)

    # ===================================================================
    # FastAPI / SQLAlchemy & MongoDB
    # ===================================================================

    def _sqlalchemy_model(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        cls: str = entity.class_name
        table: str = entity.plural

        imports: Dict[str, Set[str]] = {
            "sqlalchemy": {"Integer"},
            "sqlalchemy.orm": {"Mapped", "mapped_column"},
            "typing": {"Optional"},
            "app.database": {"Base"},
        }
        columns: List[str] = ["id: Mapped[int] = mapped_column(Integer, primary_key=True)"]
        for name, attr_type in entity.attributes.items():
            sa_type, py_type = _SQLALCHEMY_TYPES[attr_type]
            imports["sqlalchemy"].add(sa_type.split("(")[0])
            if py_type == "Decimal":
                imports.setdefault("decimal", set()).add("Decimal")
            elif py_type in ("date", "datetime"):
                imports.setdefault("datetime", set()).add(py_type)
            elif py_type.startswith(("Dict", "List")):
                imports["typing"].update({py_type.split("[")[0], "Any"})
            columns.append(f"{name}: Mapped[Optional[{py_type}]] = mapped_column({sa_type})")

        tables: List[str] = []
        relationships: List[str] = []
        for rel in relations:
            target: str = to_pascal_case(rel.target)
            target_table: str = to_plural(rel.target)
            if rel.kind == AssociationKind.BELONGS_TO:
                fk: str = rel.foreign_key_column or f"{rel.name}_id"
                nullable: bool = bool(rel.option("optional", False))
                if rel.is_polymorphic:
                    imports["sqlalchemy"].add("String")
                    columns.append(f"{fk}: Mapped[Optional[int]] = mapped_column(Integer, index=True)")
                    columns.append(f"{rel.name}_type: Mapped[Optional[str]] = mapped_column(String(255))")
                    relationships.append(f"# polymorphic {rel.name}: resolved through {rel.name}_type / {fk}")
                    continue
                imports["sqlalchemy"].add("ForeignKey")
                hint: str = "Optional[int]" if nullable else "int"
                columns.append(
                    f'{fk}: Mapped[{hint}] = mapped_column(ForeignKey("{target_table}.id"), '
                    f"nullable={nullable}, index=True)"
                )
                imports["sqlalchemy.orm"].add("relationship")
                relationships.append(
                    f'{rel.name}: Mapped[Optional["{target}"]] = relationship('
                    f'"{target}", foreign_keys=[{fk}])'
                )
                continue

            imports["sqlalchemy.orm"].add("relationship")
            many: bool = rel.is_collection
            if many:
                imports["typing"].add("List")
            hint = f'List["{target}"]' if many else f'Optional["{target}"]'
            args: List[str] = [f'"{target}"']
            if rel.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
                join: str = _join_table(entity.name, rel.target)
                join_var: str = f"{join}_table"
                imports["sqlalchemy"].update({"Column", "ForeignKey", "Table"})
                left: str = to_snake_case(entity.name)
                right: str = to_snake_case(rel.target)
                tables.extend([
                    f"{join_var} = Table(",
                    f'    "{join}",',
                    "    Base.metadata,",
                    f'    Column("{left}_id", ForeignKey("{table}.id"), primary_key=True),',
                    f'    Column("{right}_id", ForeignKey("{target_table}.id"), primary_key=True),',
                    "    extend_existing=True,",
                    ")",
                    "",
                    "",
                ])
                args.append(f"secondary={join_var}")
            elif rel.is_through:
                args.append(f'secondary="{rel.option("through")}"')
                args.append("viewonly=True")
            elif rel.is_polymorphic:
                interface: str = rel.option("as")
                args.append(
                    f"primaryjoin=\"and_(foreign({target}.{interface}_id) == {cls}.id, "
                    f"{target}.{interface}_type == '{cls}')\""
                )
                args.append("viewonly=True")
            else:
                fk_col: Optional[str] = rel.foreign_key_column
                if fk_col:
                    args.append(f'foreign_keys="{target}.{fk_col}"')
                action: Optional[str] = rel.option("dependent")
                if action == "destroy":
                    args.append('cascade="all, delete-orphan"')
                elif action == "restrict":
                    args.append('passive_deletes="all"')
            if not many:
                args.append("uselist=False")
            relationships.append(f"{rel.name}: Mapped[{hint}] = relationship({', '.join(args)})")

        lines: List[str] = [
            '"""',
            f"SQLAlchemy model for {entity.name}.",
            _GENERATED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            build_import_block(imports),
            "",
            "",
        ]
        lines.extend(tables)
        lines.append(f"class {cls}(Base):")
        lines.append(f'    __tablename__ = "{table}"')
        lines.append("")
        lines.extend(f"    {c}" for c in columns)
        if relationships:
            lines.append("")
            lines.extend(f"    {r}" for r in relationships)
        lines.append("")
        lines.append("    def __repr__(self) -> str:")
        lines.append(f'        return f"<{cls} id={{self.id!r}}>"')
        lines.append("")
        return "\n".join(lines)

    def _mongodb_model(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        cls: str = entity.class_name

        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel", "ConfigDict", "Field"},
            "typing": {"Dict", "List", "Optional", "Tuple"},
        }
        fields: List[str] = ['id: Optional[str] = Field(default=None, alias="_id")']
        for name, attr_type in entity.attributes.items():
            py_type: str = _SQLALCHEMY_TYPES[attr_type][1]
            if py_type == "Decimal":
                imports.setdefault("decimal", set()).add("Decimal")
            elif py_type in ("date", "datetime"):
                imports.setdefault("datetime", set()).add(py_type)
            elif py_type.startswith(("Dict", "List")):
                imports["typing"].add("Any")
            fields.append(f"{name}: Optional[{py_type}] = None")

        cascades: List[str] = []
        for rel in relations:
            if rel.kind == AssociationKind.BELONGS_TO:
                fk: str = rel.foreign_key_column or f"{rel.name}_id"
                if rel.is_polymorphic:
                    fields.append(f"{fk}: Optional[str] = None")
                    fields.append(f"{rel.name}_type: Optional[str] = None")
                elif rel.option("optional", False):
                    fields.append(f"{fk}: Optional[str] = None")
                else:
                    fields.append(f"{fk}: str")
            elif rel.kind == AssociationKind.HAS_AND_BELONGS_TO_MANY:
                fields.append(f"{to_singular(rel.name)}_ids: List[str] = Field(default_factory=list)")
            elif not rel.is_through and rel.option("dependent"):
                cascades.append(
                    f'    ("{to_plural(rel.target)}", "{rel.foreign_key_column}", '
                    f'"{rel.option("dependent")}"),'
                )

        lines: List[str] = [
            '"""',
            f"MongoDB document model for {entity.name}.",
            _GENERATED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            build_import_block(imports),
            "",
            f'COLLECTION: str = "{entity.plural}"',
            "",
            "# (collection, foreign key, action) applied when a document is deleted",
            "CASCADES: List[Tuple[str, str, str]] = [",
        ]
        lines.extend(cascades)
        lines.extend([
            "]",
            "",
            "",
            f"class {cls}Document(BaseModel):",
            "    model_config = ConfigDict(populate_by_name=True)",
            "",
        ])
        lines.extend(f"    {f}" for f in fields)
        lines.append("")
        lines.append("    def to_mongo(self) -> Dict[str, object]:")
        lines.append('        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)')
        lines.append("")
        return "\n".join(lines)

    def _fastapi_schemas(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        relations: Sequence[CompiledRelation] = ctx["relations"]
        backend: PersistenceBackend = ctx["backend"]
        cls: str = entity.class_name
        mongo: bool = backend == PersistenceBackend.MONGODB
        key_type: str = "str" if mongo else "int"

        imports: Dict[str, Set[str]] = {
            "pydantic": {"BaseModel", "ConfigDict"},
            "typing": {"Optional"},
        }
        fields: List[str] = []
        for name, attr_type in entity.attributes.items():
            py_type: str = _SQLALCHEMY_TYPES[attr_type][1]
            if py_type == "Decimal":
                imports.setdefault("decimal", set()).add("Decimal")
            elif py_type in ("date", "datetime"):
                imports.setdefault("datetime", set()).add(py_type)
            elif py_type.startswith(("Dict", "List")):
                imports["typing"].update({py_type.split("[")[0], "Any"})
            fields.append(f"{name}: Optional[{py_type}] = None")
        for column in _permitted_columns(entity, relations):
            if column not in entity.attributes:
                col_type: str = "str" if column.endswith("_type") else key_type
                fields.append(f"{column}: Optional[{col_type}] = None")

        lines: List[str] = [
            '"""',
            f"Request and response schemas for {entity.name}.",
            _GENERATED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            build_import_block(imports),
            "",
            "",
            f"class {cls}Base(BaseModel):",
        ]
        lines.extend(f"    {f}" for f in fields or ["pass"])
        lines.extend([
            "",
            "",
            f"class {cls}Create({cls}Base):",
            "    pass",
            "",
            "",
            f"class {cls}Update({cls}Base):",
            "    pass",
            "",
            "",
            f"class {cls}Read({cls}Base):",
            "    model_config = ConfigDict(from_attributes=True, populate_by_name=True)",
            "",
            f"    id: {key_type}",
            "",
        ])
        return "\n".join(lines)

    def _fastapi_action(
        self, entity: Entity, action: RouteAction, member: bool, mongo: bool
    ) -> List[str]:
        cls: str = entity.class_name
        snake: str = to_snake_case(entity.name)
        status: Optional[str] = _status_field(entity)
        fn: str = f"{action.name}_{snake}" if member else f"{action.name}_{entity.plural}"
        path: str = f"/{{item_id}}/{action.name}" if member else f"/{action.name}"
        key: str = "str" if mongo else "int"
        params: List[str] = [f"item_id: {key}"] if member else []
        if action.name == "search":
            params.append('q: str = ""')
        params.append("db=Depends(get_database)" if mongo else "db: Session = Depends(get_db)")

        changes: Optional[str] = None
        if member:
            if action.name in ("activate", "deactivate") and status:
                on: bool = action.name == "activate"
                value: str = str(on) if status == "active" else (
                    '"active"' if on else '"inactive"'
                )
                changes = f'{{"{status}": {value}}}'
            elif action.name in ("archive", "unarchive") and entity.has_attribute("archived_at"):
                changes = '{"archived_at": datetime.utcnow()}' if action.name == "archive" else '{"archived_at": None}'
            elif action.name in ("move_up", "move_down") and entity.has_attribute("position"):
                step: str = "- 1" if action.name == "move_up" else "+ 1"
                changes = f'{{"position": (item.position or 0) {step}}}' if not mongo else (
                    f'{{"position": (item.get("position") or 0) {step}}}'
                )

        lines: List[str] = [
            f'    @router.{action.verb.value}("{path}")',
            f"    {'async ' if mongo else ''}def {fn}({', '.join(params)}):",
        ]
        body: List[str] = []
        if member and changes is not None:
            if mongo:
                body.extend([
                    f"item = await db[{cls.upper()}_COLLECTION].find_one({{\"_id\": ObjectId(item_id)}})",
                    "if item is None:",
                    f'    raise HTTPException(status_code=404, detail="{cls} not found")',
                    f"await db[{cls.upper()}_COLLECTION].update_one({{\"_id\": item[\"_id\"]}}, {{\"$set\": {changes}}})",
                    "return {\"ok\": True}",
                ])
            else:
                body.extend([
                    f"item = db.get({cls}, item_id)",
                    "if item is None:",
                    f'    raise HTTPException(status_code=404, detail="{cls} not found")',
                    f"for key, value in {changes}.items():",
                    "    setattr(item, key, value)",
                    "db.commit()",
                    f"return {cls}Read.model_validate(item)",
                ])
        elif not member and action.name in ("active", "inactive") and status:
            on = action.name == "active"
            if mongo:
                if status == "active":
                    query: str = f'{{"active": {on}}}'
                else:
                    query = '{"status": "active"}' if on else '{"status": {"$ne": "active"}}'
                body.append(f"return [_serialize(d) for d in await db[{cls.upper()}_COLLECTION].find({query}).to_list(None)]")
            else:
                cond: str = (
                    f"{cls}.active.is_({on})" if status == "active"
                    else (f'{cls}.status == "active"' if on else f'{cls}.status != "active"')
                )
                body.append(f"return [{cls}Read.model_validate(i) for i in db.query({cls}).filter({cond}).all()]")
        elif not member and action.name == "export":
            if mongo:
                body.append(f"return [_serialize(d) for d in await db[{cls.upper()}_COLLECTION].find().to_list(None)]")
            else:
                body.append(f"return [{cls}Read.model_validate(i) for i in db.query({cls}).all()]")
        elif not member and action.name == "search" and _search_field(entity):
            field: str = _search_field(entity) or ""
            if mongo:
                body.append(
                    f'return [_serialize(d) for d in await db[{cls.upper()}_COLLECTION]'
                    f'.find({{"{field}": {{"$regex": q, "$options": "i"}}}}).to_list(None)]'
                )
            else:
                body.append(
                    f'return [{cls}Read.model_validate(i) for i in '
                    f'db.query({cls}).filter({cls}.{field}.ilike(f"%{{q}}%")).all()]'
                )
        else:
            body.append('raise HTTPException(status_code=501, detail="Not implemented")')
        lines.extend(f"        {b}" for b in body)
        return lines

    def _fastapi_router(self, ctx: Mapping[str, Any], standalone: bool) -> str:
        entity: Entity = ctx["entity"]
        backend: PersistenceBackend = ctx["backend"]
        member: Sequence[RouteAction] = ctx.get("member_actions", ())
        collection: Sequence[RouteAction] = ctx.get("collection_actions", ())
        cls: str = entity.class_name
        snake: str = to_snake_case(entity.name)
        plural: str = entity.plural
        mongo: bool = backend == PersistenceBackend.MONGODB
        coll: str = f"{cls.upper()}_COLLECTION"

        imports: Dict[str, Set[str]] = {
            "fastapi": {"APIRouter", "Depends", "HTTPException"},
            "typing": {"List"},
            f"app.schemas.{snake}": {f"{cls}Create", f"{cls}Read", f"{cls}Update"},
        }
        if mongo:
            imports["bson"] = {"ObjectId"}
            imports["app.database"] = {"get_database"}
            imports[f"app.models.{snake}"] = {f"COLLECTION as {coll}", "CASCADES"}
            imports["typing"].update({"Any", "Dict"})
        else:
            imports["sqlalchemy.orm"] = {"Session"}
            imports["app.database"] = {"get_db"}
            imports[f"app.models.{snake}"] = {cls}
        if any(a.name == "archive" for a in member) and entity.has_attribute("archived_at"):
            imports.setdefault("datetime", set()).add("datetime")

        lines: List[str] = [
            '"""',
            f"CRUD endpoints for {entity.name}.",
            _GENERATED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            build_import_block(imports),
            "",
            "",
        ]
        if mongo:
            lines.extend([
                "def _serialize(document: Dict[str, Any]) -> Dict[str, Any]:",
                '    document["id"] = str(document.pop("_id"))',
                "    return document",
                "",
                "",
            ])

        lines.append("def build_router() -> APIRouter:")
        lines.append(f'    router = APIRouter(tags=["{to_title_human(plural)}"])')
        lines.append("")

        for action in collection:
            lines.extend(self._fastapi_action(entity, action, False, mongo))
            lines.append("")

        db_param: str = "db=Depends(get_database)" if mongo else "db: Session = Depends(get_db)"
        key: str = "str" if mongo else "int"
        if mongo:
            crud: List[str] = [
                f'@router.get("/", response_model=List[{cls}Read])',
                f"async def list_{plural}(skip: int = 0, limit: int = 100, {db_param}):",
                f"    cursor = db[{coll}].find().skip(skip).limit(limit)",
                "    return [_serialize(d) for d in await cursor.to_list(length=limit)]",
                "",
                f'@router.post("/", response_model={cls}Read, status_code=201)',
                f"async def create_{snake}(payload: {cls}Create, {db_param}):",
                "    document = payload.model_dump(exclude_unset=True)",
                f"    result = await db[{coll}].insert_one(document)",
                '    document["_id"] = result.inserted_id',
                "    return _serialize(document)",
                "",
                f'@router.get("/{{item_id}}", response_model={cls}Read)',
                f"async def get_{snake}(item_id: str, {db_param}):",
                f'    document = await db[{coll}].find_one({{"_id": ObjectId(item_id)}})',
                "    if document is None:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
                "    return _serialize(document)",
                "",
                f'@router.put("/{{item_id}}", response_model={cls}Read)',
                f"async def update_{snake}(item_id: str, payload: {cls}Update, {db_param}):",
                "    changes = payload.model_dump(exclude_unset=True)",
                f'    await db[{coll}].update_one({{"_id": ObjectId(item_id)}}, {{"$set": changes}})',
                f'    document = await db[{coll}].find_one({{"_id": ObjectId(item_id)}})',
                "    if document is None:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
                "    return _serialize(document)",
                "",
                '@router.delete("/{item_id}", status_code=204)',
                f"async def delete_{snake}(item_id: str, {db_param}) -> None:",
                "    for collection, foreign_key, action in CASCADES:",
                "        query = {foreign_key: item_id}",
                '        if action == "destroy":',
                "            await db[collection].delete_many(query)",
                '        elif action == "nullify":',
                '            await db[collection].update_many(query, {"$set": {foreign_key: None}})',
                "        elif await db[collection].count_documents(query):",
                '            raise HTTPException(status_code=409, detail="Record has dependents")',
                f'    result = await db[{coll}].delete_one({{"_id": ObjectId(item_id)}})',
                "    if result.deleted_count == 0:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
            ]
        else:
            crud = [
                f'@router.get("/", response_model=List[{cls}Read])',
                f"def list_{plural}(skip: int = 0, limit: int = 100, {db_param}):",
                f"    return db.query({cls}).offset(skip).limit(limit).all()",
                "",
                f'@router.post("/", response_model={cls}Read, status_code=201)',
                f"def create_{snake}(payload: {cls}Create, {db_param}):",
                f"    item = {cls}(**payload.model_dump(exclude_unset=True))",
                "    db.add(item)",
                "    db.commit()",
                "    db.refresh(item)",
                "    return item",
                "",
                f'@router.get("/{{item_id}}", response_model={cls}Read)',
                f"def get_{snake}(item_id: {key}, {db_param}):",
                f"    item = db.get({cls}, item_id)",
                "    if item is None:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
                "    return item",
                "",
                f'@router.put("/{{item_id}}", response_model={cls}Read)',
                f"def update_{snake}(item_id: {key}, payload: {cls}Update, {db_param}):",
                f"    item = db.get({cls}, item_id)",
                "    if item is None:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
                "    for field, value in payload.model_dump(exclude_unset=True).items():",
                "        setattr(item, field, value)",
                "    db.commit()",
                "    db.refresh(item)",
                "    return item",
                "",
                '@router.delete("/{item_id}", status_code=204)',
                f"def delete_{snake}(item_id: {key}, {db_param}) -> None:",
                f"    item = db.get({cls}, item_id)",
                "    if item is None:",
                f'        raise HTTPException(status_code=404, detail="{cls} not found")',
                "    db.delete(item)",
                "    db.commit()",
            ]
        lines.extend(f"    {c}" if c else "" for c in crud)

        for action in member:
            lines.append("")
            lines.extend(self._fastapi_action(entity, action, True, mongo))

        lines.append("")
        lines.append("    return router")
        if standalone:
            lines.extend(["", "", "router = build_router()"])
        lines.append("")
        return "\n".join(lines)

    def _fastapi_derived_router(self, ctx: Mapping[str, Any]) -> str:
        entity: Entity = ctx["entity"]
        lines: List[str] = [
            '"""',
            f"Endpoints for {entity.name}.",
            _DERIVED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            f"from app.routers.generated.{entity.plural} import build_router",
            "",
            "router = build_router()",
            "",
            "# Add or override endpoints on ``router`` below.",
            "",
        ]
        return "\n".join(lines)

    def _fastapi_routes_registry(self, ctx: Mapping[str, Any]) -> str:
        config: GenerationConfig = ctx["config"]
        tree: RouteTree = ctx["tree"]
        manifest: RegistrationManifest = ctx["manifest"]
        registrations: List[Registration] = manifest.registrations

        imports: Dict[str, Set[str]] = {"fastapi": {"FastAPI"}}
        for r in registrations:
            imports.setdefault(r.module, set()).add(f"router as {r.symbol}")

        lines: List[str] = [
            '"""',
            "Router registration for the generated application.",
            _GENERATED_NOTICE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            build_import_block(imports),
            "",
            "",
            "def register_routers(app: FastAPI) -> None:",
        ]
        if not registrations:
            lines.append("    return None")
        for r in registrations:
            mount: str = self._mount_path(config, tree, r.entity, "{{{}_id}}")
            lines.append(
                f'    app.include_router({r.symbol}, prefix="{mount}", '
                f'tags=["{to_title_human(r.resource)}"])'
            )
        lines.append("")
        return "\n".join(lines)


__all__: List[str] = [
    "Renderer",
    "TemplateRenderer",
]

logger.debug("crudgen.templates loaded.")
