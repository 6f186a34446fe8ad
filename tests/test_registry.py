"""
Tests for loading and validating the resources configuration
"""

import copy

import pytest

from dbdrill.errors import ConfigError
from dbdrill.registry import ColumnBinding, PathBinding, load
from dbdrill.values import INTEGER


def _minimal():
    return {
        "user": {
            "name": "User",
            "search": {
                "id": {"query": "SELECT * FROM users WHERE id = $1", "params": [{"name": "id", "type": "integer"}]},
            },
            "links": {
                "Blogs": {"kind": "blog", "search": "by_editor", "search_params": ["id"]},
            },
        },
        "blog": {
            "name": "Blog",
            "search": {
                "by_editor": {"query": "SELECT * FROM blogs WHERE editor = $1", "params": [{"name": "user id"}]},
            },
        },
    }


def _load_error(document) -> ConfigError:
    with pytest.raises(ConfigError) as info:
        load(document)
    return info.value


class TestLoadSample:
    """The shipped sample resources file."""

    def test_entities(self, sample_config):
        assert [entity.name for entity in sample_config.sorted_entities()] == ["Blog", "Post", "User"]

    def test_search_params(self, sample_config):
        search = sample_config.search("user", "id")
        assert search.params[0].name == "id"
        assert search.params[0].type == INTEGER
        assert search.params[0].position == 1
        assert sample_config.search("user", "all").params == ()
        assert sample_config.search("post", "by_ids").params[0].type.is_array

    def test_bindings(self, sample_config):
        blogs = sample_config.link("user", "Blogs")
        assert blogs.bindings == (ColumnBinding("id"),)
        posts = sample_config.link("blog", "Posts")
        binding = posts.bindings[0]
        assert isinstance(binding, PathBinding)
        assert binding.column == "posts"
        assert str(binding.path) == "$[*].postId"
        assert posts.condition.equals == "public"

    def test_link_target(self, sample_config):
        link = sample_config.link("user", "Blogs")
        assert sample_config.link_target(link) is sample_config.search("blog", "by_editor")

    def test_model_is_read_only(self, sample_config):
        with pytest.raises(TypeError):
            sample_config.entities["x"] = None
        with pytest.raises(TypeError):
            sample_config.entity("user").searches["x"] = None


class TestLoadDefaults:

    def test_search_and_links_default_empty(self):
        config = load({"user": {"name": "User"}})
        assert dict(config.entity("user").searches) == {}
        assert dict(config.entity("user").links) == {}

    def test_param_type_defaults_to_text(self):
        config = load(_minimal())
        assert config.search("blog", "by_editor").params[0].type.name == "text"

    def test_link_order_does_not_matter(self):
        document = _minimal()
        reordered = {"blog": document["blog"], "user": document["user"]}
        assert load(reordered).link("user", "Blogs").target_entity == "blog"


class TestLoadErrors:
    """Every inconsistency is fatal with a kind and a location."""

    def test_unknown_entity(self):
        document = _minimal()
        document["user"]["links"]["Blogs"]["kind"] = "blgo"
        error = _load_error(document)
        assert error.kind == "unknown_entity"
        assert error.path == "user.links.Blogs.kind"
        assert "blgo" in str(error)

    def test_unknown_search(self):
        document = _minimal()
        document["user"]["links"]["Blogs"]["search"] = "by_owner"
        error = _load_error(document)
        assert error.kind == "unknown_search"
        assert "by_owner" in error.message

    def test_binding_count_mismatch(self):
        document = _minimal()
        document["user"]["links"]["Blogs"]["search_params"] = ["id", "email"]
        error = _load_error(document)
        assert error.kind == "binding_count_mismatch"
        assert "1 params" in error.message
        assert "specifies 2" in error.message

    def test_unknown_param_type(self):
        document = _minimal()
        document["user"]["search"]["id"]["params"][0]["type"] = "money"
        error = _load_error(document)
        assert error.kind == "unknown_param_type"
        assert error.path == "user.search.id.params.0.type"

    def test_duplicate_param(self):
        document = _minimal()
        document["user"]["search"]["id"]["params"].append({"name": "id"})
        assert _load_error(document).kind == "duplicate_param"

    def test_duplicate_display_name(self):
        document = _minimal()
        document["blog"]["name"] = "User"
        error = _load_error(document)
        assert error.kind == "duplicate_name"

    def test_empty_name(self):
        document = _minimal()
        document["blog"]["name"] = "  "
        assert _load_error(document).kind == "empty_name"

    def test_empty_identifier(self):
        document = _minimal()
        document[""] = {"name": "Nameless"}
        assert _load_error(document).kind == "empty_identifier"

    def test_empty_search_name(self):
        document = _minimal()
        document["blog"]["search"][""] = {"query": "SELECT 1"}
        assert _load_error(document).kind == "empty_identifier"

    def test_invalid_json_path(self):
        document = _minimal()
        document["user"]["links"]["Blogs"]["search_params"] = [{"json_path": ["doc", "$[?bad]"]}]
        error = _load_error(document)
        assert error.kind == "invalid_json_path"
        assert error.path == "user.links.Blogs.search_params.0.json_path"

    def test_unknown_key_rejected(self):
        document = _minimal()
        document["user"]["links"]["Blogs"]["serach_params"] = ["id"]
        error = _load_error(document)
        assert error.kind == "invalid_document"
        assert "serach_params" in error.path

    def test_missing_query(self):
        document = _minimal()
        del document["blog"]["search"]["by_editor"]["query"]
        error = _load_error(document)
        assert error.kind == "invalid_document"
        assert error.path == "blog.search.by_editor.query"

    def test_not_a_mapping(self):
        assert _load_error(["user"]).kind == "invalid_document"

    def test_document_is_not_modified(self):
        document = _minimal()
        before = copy.deepcopy(document)
        load(document)
        assert document == before
