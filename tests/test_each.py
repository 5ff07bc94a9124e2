"""Tests for {{#each}} iteration."""

from __future__ import annotations

import pytest

from coral import Environment, RenderError
from coral.environment.exceptions import ErrorCode


class TestSequences:
    """Lists, tuples and other iterables."""

    def test_shorthand_rebases_onto_element(self, env: Environment):
        source = "{{#each people}}{{ name }};{{/each}}"
        assert env.render(source, {"people": [{"name": "Ada"}, {"name": "Bob"}]}) == "Ada;Bob;"

    def test_named_target(self, env: Environment):
        source = "{{#each p in people}}{{ p.name }};{{/each}}"
        assert env.render(source, {"people": [{"name": "Ada"}]}) == "Ada;"

    def test_named_target_keeps_outer_names(self, env: Environment):
        context = {"title": "outer", "items": [{"title": "inner"}]}
        assert env.render("{{#each i in items}}{{ title }}{{/each}}", context) == "outer"
        assert env.render("{{#each items}}{{ title }}{{/each}}", context) == "inner"

    def test_fallback_to_enclosing_scope(self, env: Environment):
        source = "{{#each people}}{{ name }}@{{ team }} {{/each}}"
        context = {"team": "core", "people": [{"name": "Ada"}, {"name": "Bob"}]}
        assert env.render(source, context) == "Ada@core Bob@core "

    def test_index_and_this(self, env: Environment):
        source = "{{#each xs}}{{ @index }}:{{ this }} {{/each}}"
        assert env.render(source, {"xs": ["a", "b"]}) == "0:a 1:b "

    def test_first_and_last(self, env: Environment):
        source = "{{#each xs}}{{#if @first}}[{{/if}}{{ this }}{{#if @last}}]{{else}},{{/if}}{{/each}}"
        assert env.render(source, {"xs": ["a", "b", "c"]}) == "[a,b,c]"

    def test_single_element_is_first_and_last(self, env: Environment):
        source = "{{#each xs}}{{ @first }}/{{ @last }}{{/each}}"
        assert env.render(source, {"xs": [1]}) == "true/true"

    def test_tuple_and_generator(self, env: Environment):
        template = env.from_string("{{#each xs}}{{ this }}{{/each}}")
        assert template.render(xs=(1, 2)) == "12"
        assert template.render(xs=(n * n for n in range(4))) == "0149"

    def test_nested_loops(self, env: Environment):
        source = "{{#each rows}}{{#each this}}{{ @index }}{{ this }}{{/each}}|{{/each}}"
        assert env.render(source, {"rows": [["a", "b"], ["c"]]}) == "0a1b|0c|"

    def test_outer_index_through_named_loops(self, env: Environment):
        source = "{{#each r in rows}}{{#each c in r}}{{ c }}{{/each}}{{ @index }}{{/each}}"
        assert env.render(source, {"rows": [[1], [2, 3]]}) == "10231"

    def test_root_inside_loop(self, env: Environment):
        source = "{{#each xs}}{{ @root.sep }}{{ this }}{{/each}}"
        assert env.render(source, {"xs": [1, 2], "sep": "-"}) == "-1-2"


class TestMappings:
    """Mappings iterate over values, keyed by @key."""

    def test_key_and_value(self, env: Environment):
        source = "{{#each scores}}{{ @key }}={{ this }};{{/each}}"
        assert env.render(source, {"scores": {"a": 1, "b": 2}}) == "a=1;b=2;"

    def test_list_key_is_index(self, env: Environment):
        assert env.render("{{#each xs}}{{ @key }}{{/each}}", {"xs": ["x", "y"]}) == "01"


class TestElse:
    """The else branch runs when there is nothing to iterate."""

    @pytest.mark.parametrize("context", [{"xs": []}, {"xs": {}}, {"xs": None}, {}])
    def test_empty(self, env: Environment, context):
        assert env.render("{{#each xs}}{{ this }}{{else}}empty{{/each}}", context) == "empty"

    def test_not_taken_when_items_exist(self, env: Environment):
        assert env.render("{{#each xs}}{{ this }}{{else}}empty{{/each}}", {"xs": [0]}) == "0"


class TestNonIterables:
    """Scalars cannot be iterated."""

    @pytest.mark.parametrize("value", ["abc", 42, 1.5, True])
    def test_scalar_raises(self, env: Environment, value):
        with pytest.raises(RenderError) as exc_info:
            env.render("{{#each xs}}{{ this }}{{/each}}", {"xs": value})
        assert exc_info.value.kind is ErrorCode.TYPE_MISMATCH
        assert exc_info.value.expression == "xs"

    def test_error_does_not_leak_partial_output(self, env: Environment):
        template = env.from_string("before{{#each xs}}{{ this }}{{/each}}after")
        with pytest.raises(RenderError):
            template.render(xs="no")
        assert template.render(xs=[1]) == "before1after"


class TestDataVariablesOutsideLoops:
    """@-variables only exist inside a loop frame."""

    def test_index_outside_loop_is_blank(self, env: Environment):
        assert env.render("[{{ @index }}]") == "[]"

    def test_loop_bindings_do_not_leak(self, env: Environment):
        source = "{{#each p in xs}}{{/each}}[{{ p }}{{ @index }}]"
        assert env.render(source, {"xs": [1, 2]}) == "[]"
