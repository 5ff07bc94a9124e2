"""Tests for basic rendering: output, escaping and conditional blocks."""

from __future__ import annotations

import pytest

from coral import Environment, Markup


class TestOutput:
    """Interpolation and value conversion."""

    def test_hello(self, env: Environment):
        assert env.render("Hello, {{ name }}!", {"name": "World"}) == "Hello, World!"

    def test_nested_path(self, env: Environment):
        assert env.render("{{a.b}}", {"a": {"b": "John"}}) == "John"

    def test_missing_path_is_blank(self, env: Environment):
        assert env.render("{{a.b}}", {}) == ""
        assert env.render("[{{ a.b.c.d }}]", {"a": None}) == "[]"

    def test_keyword_arguments(self, env: Environment):
        assert env.render("{{ a }}-{{ b }}", {"a": 1}, b=2) == "1-2"

    def test_text_is_emitted_verbatim(self, env: Environment):
        source = "a > b & c\n  indented\t"
        assert env.render(source) == source

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            (True, "true"),
            (False, "false"),
            (0, "0"),
            (3.0, "3"),
            (2.5, "2.5"),
            (float("inf"), "Infinity"),
            ([1, "a", None], "1,a,"),
            ((1, 2), "1,2"),
        ],
    )
    def test_value_conversion(self, env: Environment, value, expected):
        assert env.render("{{ v }}", {"v": value}) == expected

    def test_object_context(self, env: Environment):
        class Page:
            title = "Home"

        assert env.from_string("<h1>{{ title }}</h1>").render(Page()) == "<h1>Home</h1>"

    def test_kwargs_with_object_context_rejected(self, env: Environment):
        template = env.from_string("{{ a }}")
        with pytest.raises(TypeError):
            template.render(object(), a=1)

    def test_this_at_top_level(self, env: Environment):
        assert env.render("{{ this.a }}", {"a": "x"}) == "x"

    def test_ternary(self, env: Environment):
        source = '{{ n > 1 ? "many" : "one" }}'
        assert env.render(source, {"n": 3}) == "many"
        assert env.render(source, {"n": 1}) == "one"


class TestEscaping:
    """Everything interpolated with {{ }} is escaped."""

    def test_special_characters(self, env: Environment):
        result = env.render("{{ v }}", {"v": "<b>\"Tom\" & 'Jerry'</b>"})
        assert result == "&lt;b&gt;&quot;Tom&quot; &amp; &#x27;Jerry&#x27;&lt;/b&gt;"

    def test_markup_from_data_is_escaped(self, env: Environment):
        assert env.render("{{ v }}", {"v": Markup("<i>x</i>")}) == "&lt;i&gt;x&lt;/i&gt;"

    def test_raw_output(self, env: Environment):
        assert env.render("{{{ v }}}", {"v": "<i>x</i>"}) == "<i>x</i>"

    def test_escaped_once(self, env: Environment):
        assert env.render("{{ v }}", {"v": "&amp;"}) == "&amp;amp;"

    def test_escaped_marker(self, env: Environment):
        assert env.render(r"Use \{{ name }} to print", {"name": "x"}) == "Use {{ name }} to print"

    def test_comments_produce_nothing(self, env: Environment):
        assert env.render("a{{! note }}b{{!-- {{ x }} --}}c") == "abc"


class TestConditionals:
    """if / unless / else chains."""

    SOURCE = "{{#if a}}A{{else if b}}B{{else}}C{{/if}}"

    @pytest.mark.parametrize(
        ("context", "expected"),
        [
            ({"a": 1}, "A"),
            ({"a": 0, "b": "yes"}, "B"),
            ({}, "C"),
        ],
    )
    def test_else_if_chain(self, env: Environment, context, expected):
        assert env.render(self.SOURCE, context) == expected

    @pytest.mark.parametrize("value", [None, False, 0, "", [], {}])
    def test_falsy_values(self, env: Environment, value):
        assert env.render("{{#if v}}yes{{else}}no{{/if}}", {"v": value}) == "no"

    @pytest.mark.parametrize("value", [True, 1, "0", [0], {"k": None}])
    def test_truthy_values(self, env: Environment, value):
        assert env.render("{{#if v}}yes{{else}}no{{/if}}", {"v": value}) == "yes"

    def test_unless(self, env: Environment):
        source = "{{#unless done}}todo{{else}}done{{/unless}}"
        assert env.render(source, {"done": False}) == "todo"
        assert env.render(source, {"done": True}) == "done"

    def test_condition_with_operators(self, env: Environment):
        source = "{{#if user && user.age >= 18}}adult{{/if}}"
        assert env.render(source, {"user": {"age": 20}}) == "adult"
        assert env.render(source, {"user": None}) == ""

    def test_empty_branches(self, env: Environment):
        assert env.render("{{#if a}}{{else}}{{/if}}x", {"a": 1}) == "x"


class TestWith:
    """with rebases or binds a name."""

    def test_rebase(self, env: Environment):
        source = "{{#with user}}{{ name }} ({{ this.role }}){{/with}}"
        assert env.render(source, {"user": {"name": "Ada", "role": "admin"}}) == "Ada (admin)"

    def test_outer_names_still_visible(self, env: Environment):
        source = "{{#with user}}{{ name }} @ {{ site }}{{/with}}"
        assert env.render(source, {"user": {"name": "Ada"}, "site": "coral"}) == "Ada @ coral"

    def test_as_binding(self, env: Environment):
        source = "{{#with user.profile as p}}{{ p.bio }}{{/with}}"
        assert env.render(source, {"user": {"profile": {"bio": "hi"}}}) == "hi"

    @pytest.mark.parametrize("context", [{}, {"user": None}])
    def test_skipped_for_null(self, env: Environment, context):
        assert env.render("[{{#with user}}x{{/with}}]", context) == "[]"

    def test_root_access(self, env: Environment):
        source = "{{#with a}}{{#with b}}{{ @root.title }}{{/with}}{{/with}}"
        assert env.render(source, {"a": {"b": {"title": "inner"}}, "title": "outer"}) == "outer"

    def test_scope_ends_with_block(self, env: Environment):
        source = "{{#with user}}{{ name }}{{/with}}|{{ name }}"
        assert env.render(source, {"user": {"name": "Ada"}, "name": "top"}) == "Ada|top"


class TestMarkupAndBlocks:
    """Tags and blocks combine freely outside tags."""

    def test_list(self, env: Environment):
        source = "<ul>{{#each items}}<li class=\"item\">{{ this }}</li>{{/each}}</ul>"
        assert env.render(source, {"items": ["a", "<b>"]}) == (
            '<ul><li class="item">a</li><li class="item">&lt;b&gt;</li></ul>'
        )

    def test_conditional_element(self, env: Environment):
        source = '{{#if url}}<a href="{{ url }}">link</a>{{else}}<span>none</span>{{/if}}'
        assert env.render(source, {"url": "/x"}) == '<a href="/x">link</a>'
        assert env.render(source, {}) == "<span>none</span>"

    def test_compiled_template_reusable(self, env: Environment):
        template = env.from_string("<p>{{ n }}</p>")
        assert [template.render(n=i) for i in range(3)] == ["<p>0</p>", "<p>1</p>", "<p>2</p>"]
