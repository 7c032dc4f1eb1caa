"""Tests for variable resolution and template rewriting."""

from apiflow.engine.resolver import (
    interpolate, resolve, resolve_value, rewrite_templates
)


class TestResolve:
    def test_nested_path(self):
        assert resolve({"input": {"email": "a@b.com"}}, "input.email") == "a@b.com"

    def test_missing_path_yields_none(self):
        assert resolve({}, "input.missing.path") is None

    def test_null_intermediate_short_circuits(self):
        assert resolve({"foundData": None}, "foundData.email") is None

    def test_list_index(self):
        env = {"foundData": [{"email": "first@x.com"}, {"email": "second@x.com"}]}
        assert resolve(env, "foundData.1.email") == "second@x.com"
        assert resolve(env, "foundData.5.email") is None
        assert resolve(env, "foundData.first") is None

    def test_indexing_a_scalar(self):
        assert resolve({"input": {"age": 3}}, "input.age.value") is None

    def test_empty_path(self):
        assert resolve({"input": {}}, "") is None


class TestRewriteTemplates:
    def test_full_template_for_input_variable(self):
        assert rewrite_templates("{{email}}", ["email"]) == "input.email"

    def test_full_template_with_whitespace_and_nested_path(self):
        assert rewrite_templates("{{  profile.city }}", ["profile"]) == "input.profile.city"

    def test_full_template_for_step_output(self):
        assert rewrite_templates("{{foundData.email}}", ["email"]) == "foundData.email"

    def test_unknown_root_is_left_as_path(self):
        assert rewrite_templates("{{emial}}", ["email"]) == "emial"

    def test_partial_template_keeps_literal_text(self):
        rewritten = rewrite_templates("Hello {{name}}, you are {{createdRecord.role}}", ["name"])
        assert rewritten == "Hello {{input.name}}, you are {{createdRecord.role}}"

    def test_walks_lists_and_mappings(self):
        tree = {
            "data": {"email": "{{email}}", "tags": ["{{tag}}", "fixed"]},
            "limit": 5,
            "active": True,
            "missing": None,
        }
        assert rewrite_templates(tree, ["email", "tag"]) == {
            "data": {"email": "input.email", "tags": ["input.tag", "fixed"]},
            "limit": 5,
            "active": True,
            "missing": None,
        }

    def test_plain_strings_untouched(self):
        assert rewrite_templates("users", ["users"]) == "users"


class TestResolveValue:
    def test_reference_when_root_is_known(self):
        env = {"input": {"email": "x@y.com"}}
        assert resolve_value(env, "input.email") == "x@y.com"

    def test_literal_when_root_is_unknown(self):
        env = {"input": {}}
        assert resolve_value(env, "admin@example.com") == "admin@example.com"
        assert resolve_value(env, "emial") == "emial"

    def test_lone_placeholder_keeps_type(self):
        env = {"input": {"age": 42}}
        assert resolve_value(env, "{{input.age}}") == 42

    def test_interpolation_stringifies_and_blanks_missing(self):
        env = {"input": {"name": "Ada", "count": 3, "admin": True}}
        text = "{{input.name}} has {{input.count}} items, admin={{input.admin}}, {{input.nope}}!"
        assert interpolate(env, text) == "Ada has 3 items, admin=true, !"

    def test_tree(self):
        env = {"input": {"email": "x@y.com"}, "currentUser": {"sub": "u1"}}
        fields = {"email": "input.email", "owner": "currentUser.sub", "status": "active", "n": 1}
        assert resolve_value(env, fields) == {
            "email": "x@y.com",
            "owner": "u1",
            "status": "active",
            "n": 1,
        }
