"""
tests/test_templates.py
Unit tests for crudgen.templates.TemplateRenderer.

Assertions check the structural pieces of each rendered file (class
declarations, association lines, route wiring) rather than whole files,
except for the Rails route table whose exact layout matters.
"""

from __future__ import annotations

import ast
from typing import Any, Dict, List

import pytest

from crudgen.associations import compile_entity
from crudgen.manifest import Registration, RegistrationManifest
from crudgen.models import Entity, GenerationConfig, PersistenceBackend
from crudgen.routes import infer_actions, resolve_routes
from crudgen.templates import TemplateRenderer

from conftest import belongs_to, has_many, make_entity


@pytest.fixture(scope="module")
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


def _ctx(entity: Entity, backend: PersistenceBackend = PersistenceBackend.ACTIVE_RECORD) -> Dict[str, Any]:
    member, collection = infer_actions(entity)
    return {
        "entity": entity,
        "relations": tuple(compile_entity(entity)),
        "member_actions": member,
        "collection_actions": collection,
        "config": GenerationConfig(),
        "backend": backend,
    }


POST = make_entity(
    "post",
    attributes={"title": "string", "body": "text", "status": "string"},
    associations=[
        belongs_to("user"),
        belongs_to("author", class_name="User", optional=True),
        has_many("comments", dependent="destroy"),
        has_many("taggings"),
        has_many("tags", through="taggings", source="tag"),
    ],
)


class TestRenderer:
    def test_unknown_template(self, renderer: TemplateRenderer) -> None:
        with pytest.raises(ValueError, match="Unknown template"):
            renderer.render("rails/nope", {})

    def test_template_ids_cover_every_target(self, renderer: TemplateRenderer) -> None:
        prefixes = {tid.split("/")[0] for tid in renderer.template_ids}
        assert prefixes == {"rails", "express", "fastapi"}

    def test_rendering_is_deterministic(self, renderer: TemplateRenderer) -> None:
        ctx = _ctx(POST)
        assert renderer.render("rails/model", ctx) == renderer.render("rails/model", ctx)


class TestRailsModel:
    def test_association_lines(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/model", _ctx(POST))
        lines = [line.strip() for line in text.splitlines()]
        assert "belongs_to :user" in lines
        assert "belongs_to :author, class_name: 'User', optional: true" in lines
        assert "has_many :comments, dependent: :destroy" in lines
        assert "has_many :taggings, dependent: :nullify" in lines
        assert "has_many :tags, dependent: :nullify, through: :taggings, source: :tag" in lines

    def test_restrict_and_counter_cache(self, renderer: TemplateRenderer) -> None:
        entity = make_entity(
            "comment",
            associations=[belongs_to("post", counter_cache=True), has_many("replies", dependent="restrict")],
        )
        text = renderer.render("rails/model", _ctx(entity))
        assert "  belongs_to :post, counter_cache: true\n" in text
        assert "  has_many :replies, dependent: :restrict_with_error\n" in text

    def test_polymorphic(self, renderer: TemplateRenderer) -> None:
        entity = make_entity(
            "picture",
            associations=[belongs_to("imageable", polymorphic=True)],
        )
        owner = make_entity(
            "post",
            associations=[has_many("pictures", polymorphic=True, **{"as": "imageable"})],
        )
        assert "belongs_to :imageable, polymorphic: true" in renderer.render("rails/model", _ctx(entity))
        assert "has_many :pictures, dependent: :nullify, polymorphic: true, as: :imageable" in (
            renderer.render("rails/model", _ctx(owner))
        )

    def test_class_and_validations(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/model", _ctx(POST))
        assert text.startswith("# Generated by crudgen.")
        assert "class Post < ApplicationRecord" in text
        assert "validates :title, presence: true" in text
        assert "validates :user_id, presence: true" in text
        assert "validates :author_id" not in text
        assert "scope :active, -> { where(status: 'active') }" in text
        assert text.endswith("end\n")


class TestRailsControllers:
    def test_generated_controller_lives_in_module(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/generated_controller", _ctx(POST))
        assert "module Generated\n  class PostsController < ApplicationController" in text
        assert "before_action :set_post, only: %i[show edit update destroy activate deactivate]" in text
        assert "params.require(:post).permit(:title, :body, :status, :user_id, :author_id)" in text

    def test_single_controller_has_no_module(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/controller", _ctx(POST))
        assert "module Generated" not in text
        assert "\nclass PostsController < ApplicationController\n" in text

    def test_derived_controller(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/derived_controller", _ctx(POST))
        assert "class PostsController < Generated::PostsController" in text
        assert "never overwritten" in text

    def test_custom_actions(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/controller", _ctx(POST))
        assert "def activate\n    @post.update(status: 'active')" in text
        assert "def search" in text
        assert '@posts = Post.where("title LIKE ?"' in text


class TestRailsViews:
    @pytest.mark.parametrize("template", ["view_index", "view_show", "view_new", "view_edit", "view_form"])
    def test_every_view_renders(self, renderer: TemplateRenderer, template: str) -> None:
        text = renderer.render(f"rails/{template}", _ctx(POST))
        assert text.startswith("<%# Generated by crudgen.")

    def test_form_uses_field_helpers(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("rails/view_form", _ctx(POST))
        assert "text_field :title" in text
        assert "text_area :body" in text


class TestRailsRoutes:
    def test_exact_route_table(self, renderer: TemplateRenderer) -> None:
        entities = [
            make_entity("post", attributes={"body": "text"}, associations=[has_many("comments")]),
            make_entity("tag", attributes={"label": "string"}),
            make_entity("comment", attributes={"body": "text"}, associations=[belongs_to("post")]),
        ]
        text = renderer.render("rails/routes", {"tree": resolve_routes(entities)})
        assert text == (
            "# Generated by crudgen. Do not edit: this file is rewritten on every run.\n"
            "Rails.application.routes.draw do\n"
            "  resources :posts\n"
            "  resources :tags\n"
            "\n"
            "  resources :posts do\n"
            "    resources :comments\n"
            "  end\n"
            "\n"
            "  root to: 'posts#index'\n"
            "end\n"
        )

    def test_member_and_collection_blocks(self, renderer: TemplateRenderer) -> None:
        entities = [make_entity("task", attributes={"active": "boolean"}, routes={"infer": True})]
        text = renderer.render("rails/routes", {"tree": resolve_routes(entities)})
        assert (
            "  resources :tasks do\n"
            "    member do\n"
            "      get :activate\n"
            "      get :deactivate\n"
            "    end\n"
            "    collection do\n"
            "      get :active\n"
            "      get :inactive\n"
            "    end\n"
            "  end\n"
        ) in text


class TestExpress:
    def test_sequelize_model(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("express/sequelize_model", _ctx(POST, PersistenceBackend.SEQUELIZE))
        assert "const Post = sequelize.define('Post', {" in text
        assert "Post.belongsTo(models.User, { as: 'user', foreignKey: 'user_id' });" in text
        assert "Post.hasMany(models.Comment, { as: 'comments', foreignKey: 'post_id', onDelete: 'CASCADE' });" in text
        assert "Post.belongsToMany(models.Tag, { as: 'tags', through: models.Tagging });" in text

    def test_mongoose_model_cascade(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("express/mongoose_model", _ctx(POST, PersistenceBackend.MONGOOSE))
        assert "user: { type: Schema.Types.ObjectId, ref: 'User', required: true }," in text
        assert "postSchema.virtual('comments', {" in text
        assert "await mongoose.model('Comment').deleteMany({ post: this._id });" in text
        assert "module.exports = mongoose.model('Post', postSchema);" in text

    def test_mongoose_foreign_key_names_both_sides(self, renderer: TemplateRenderer) -> None:
        user = make_entity("user", associations=[has_many("posts", foreign_key="author_id", dependent="destroy")])
        post = make_entity("post", associations=[belongs_to("author", class_name="User", foreign_key="author_id")])
        user_text = renderer.render("express/mongoose_model", _ctx(user, PersistenceBackend.MONGOOSE))
        post_text = renderer.render("express/mongoose_model", _ctx(post, PersistenceBackend.MONGOOSE))
        assert "author_id: { type: Schema.Types.ObjectId, ref: 'User', required: true }," in post_text
        assert "author:" not in post_text
        assert "  foreignField: 'author_id'," in user_text
        assert "await mongoose.model('Post').deleteMany({ author_id: this._id });" in user_text

    def test_controllers(self, renderer: TemplateRenderer) -> None:
        ctx = _ctx(POST, PersistenceBackend.SEQUELIZE)
        generated = renderer.render("express/generated_controller", ctx)
        derived = renderer.render("express/derived_controller", ctx)
        single = renderer.render("express/controller", ctx)
        assert "module.exports = PostsController;" in generated
        assert "require('../../models')" in generated
        assert "class PostsController extends GeneratedPostsController {" in derived
        assert "module.exports = new PostsController();" in derived
        assert "module.exports = new PostsController();" in single
        assert "require('../models')" in single

    def test_router_puts_collection_routes_first(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("express/router", _ctx(POST, PersistenceBackend.SEQUELIZE))
        lines: List[str] = text.splitlines()
        search = lines.index("router.get('/search', controller.search.bind(controller));")
        show = lines.index("router.get('/:id', controller.show.bind(controller));")
        assert search < show
        assert "router.get('/:id/activate', controller.activate.bind(controller));" in lines
        assert "express.Router({ mergeParams: true })" in text

    def test_routes_index_mounts_nested_paths(self, renderer: TemplateRenderer) -> None:
        entities = [make_entity("post"), make_entity("comment", associations=[belongs_to("post")])]
        manifest = RegistrationManifest()
        for name in ("post", "comment"):
            manifest.add(Registration(name, f"{name}s", f"./{name}_routes", f"{name}Routes", f"/api/{name}s"))
        text = renderer.render(
            "express/routes_index",
            {"tree": resolve_routes(entities), "manifest": manifest, "config": GenerationConfig()},
        )
        assert "const commentRoutes = require('./comment_routes');" in text
        assert "router.use('/api/posts', postRoutes);" in text
        assert "router.use('/api/posts/:post_id/comments', commentRoutes);" in text

    def test_nested_param_is_snake_cased(self, renderer: TemplateRenderer) -> None:
        entities = [
            make_entity("BlogPost"),
            make_entity("comment", associations=[belongs_to("blog_post", class_name="BlogPost")]),
        ]
        manifest = RegistrationManifest()
        manifest.add(Registration("comment", "comments", "./comment_routes", "commentRoutes", "/api/comments"))
        text = renderer.render(
            "express/routes_index",
            {"tree": resolve_routes(entities), "manifest": manifest, "config": GenerationConfig()},
        )
        assert "router.use('/api/blog_posts/:blog_post_id/comments', commentRoutes);" in text


class TestFastApi:
    @pytest.mark.parametrize(
        "template, backend",
        [
            ("fastapi/sqlalchemy_model", PersistenceBackend.SQLALCHEMY),
            ("fastapi/mongodb_model", PersistenceBackend.MONGODB),
            ("fastapi/schemas", PersistenceBackend.SQLALCHEMY),
            ("fastapi/schemas", PersistenceBackend.MONGODB),
            ("fastapi/router", PersistenceBackend.SQLALCHEMY),
            ("fastapi/router", PersistenceBackend.MONGODB),
            ("fastapi/generated_router", PersistenceBackend.SQLALCHEMY),
            ("fastapi/derived_router", PersistenceBackend.SQLALCHEMY),
        ],
    )
    def test_output_is_valid_python(
        self, renderer: TemplateRenderer, template: str, backend: PersistenceBackend
    ) -> None:
        ast.parse(renderer.render(template, _ctx(POST, backend)))

    def test_sqlalchemy_relationships(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("fastapi/sqlalchemy_model", _ctx(POST, PersistenceBackend.SQLALCHEMY))
        assert 'user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)' in text
        assert 'cascade="all, delete-orphan"' in text
        assert '__tablename__ = "posts"' in text

    def test_schemas(self, renderer: TemplateRenderer) -> None:
        text = renderer.render("fastapi/schemas", _ctx(POST, PersistenceBackend.SQLALCHEMY))
        for name in ("PostBase(BaseModel)", "PostCreate(PostBase)", "PostUpdate(PostBase)", "PostRead(PostBase)"):
            assert f"class {name}:" in text
        assert "user_id: Optional[int] = None" in text

    def test_router_variants(self, renderer: TemplateRenderer) -> None:
        ctx = _ctx(POST, PersistenceBackend.SQLALCHEMY)
        generated = renderer.render("fastapi/generated_router", ctx)
        single = renderer.render("fastapi/router", ctx)
        derived = renderer.render("fastapi/derived_router", ctx)
        assert "def build_router() -> APIRouter:" in generated
        assert "router = build_router()" not in generated
        assert single.rstrip().endswith("router = build_router()")
        assert "from app.routers.generated.posts import build_router" in derived

    def test_routes_registry(self, renderer: TemplateRenderer) -> None:
        entities = [make_entity("post"), make_entity("comment", associations=[belongs_to("post")])]
        manifest = RegistrationManifest()
        for name in ("post", "comment"):
            manifest.add(Registration(name, f"{name}s", f"app.routers.{name}s", f"{name}s_router", f"/api/{name}s"))
        text = renderer.render(
            "fastapi/routes_registry",
            {"tree": resolve_routes(entities), "manifest": manifest, "config": GenerationConfig()},
        )
        ast.parse(text)
        assert "from app.routers.comments import router as comments_router" in text
        assert 'app.include_router(posts_router, prefix="/api/posts", tags=["Posts"])' in text
        assert 'prefix="/api/posts/{post_id}/comments"' in text

    def test_registry_param_is_snake_cased(self, renderer: TemplateRenderer) -> None:
        entities = [
            make_entity("BlogPost"),
            make_entity("comment", associations=[belongs_to("blog_post", class_name="BlogPost")]),
        ]
        manifest = RegistrationManifest()
        manifest.add(Registration("comment", "comments", "app.routers.comments", "comments_router", "/api/comments"))
        text = renderer.render(
            "fastapi/routes_registry",
            {"tree": resolve_routes(entities), "manifest": manifest, "config": GenerationConfig()},
        )
        ast.parse(text)
        assert 'prefix="/api/blog_posts/{blog_post_id}/comments"' in text
