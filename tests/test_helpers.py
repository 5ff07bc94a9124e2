"""Tests for built-in helpers and the helper registry."""

from __future__ import annotations

from datetime import datetime

import pytest

from coral import (
    Arity,
    Environment,
    HelperRegistry,
    Markup,
    RenderError,
    Scope,
    UnknownHelperError,
)
from coral.environment.exceptions import ErrorCode
from coral.environment.terminal import strip_colors


class TestBuiltinHelpers:
    """Every engine starts with the same pure built-ins."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{~uppercase s}}", "HELLO WONDERFUL WORLD"),
            ("{{~lowercase 'ABC'}}", "abc"),
            ("{{~capitalize 'ada'}}", "Ada"),
            ("{{~titlecase 'the old man'}}", "The Old Man"),
            ("{{~trim '  x  '}}", "x"),
            ("{{~truncate s 8}}", "Hello..."),
            ('{{~truncate s 7 suffix="…"}}', "Hello…"),
            ("{{~truncate s 50}}", "Hello wonderful world"),
            ("{{~replace 'banana' 'a' 'o'}}", "bonono"),
            ("{{~slugify 'Héllo, World!'}}", "hello-world"),
            ("{{~default missing 'anon'}}", "anon"),
            ("{{~default 0 'anon'}}", "0"),
            ("{{~eq 1 '1'}}", "true"),
            ("{{~ne 1 2}}", "true"),
            ("{{~length xs}}", "3"),
            ("{{~first xs}}{{~last xs}}", "ac"),
            ("{{~reverse xs}}", "c,b,a"),
            ("{{~join xs ' | '}}", "a | b | c"),
            ("{{~join xs}}", "a, b, c"),
            ("{{~lookup m 'k'}}", "v"),
            ("{{~concat 'a' 1 true}}", "a1true"),
            ("{{~format_number 1234.5 2}}", "1,234.50"),
            ("{{~format_number 1234567}}", "1,234,567"),
            ("{{~round 3.7}}", "4"),
            ("{{~round 2.567 2}}", "2.57"),
            ("{{~abs -5}}", "5"),
            ("{{~pluralize 1 'item'}}", "item"),
            ("{{~pluralize 2 'item'}}", "items"),
            ("{{~pluralize 3 'person' 'people'}}", "people"),
            ("{{~format_date '2024-03-01T10:00:00' '%d/%m/%Y'}}", "01/03/2024"),
        ],
    )
    def test_builtin(self, env: Environment, source: str, expected: str):
        context = {"s": "Hello wonderful world", "xs": ["a", "b", "c"], "m": {"k": "v"}}
        assert env.render(source, context) == expected

    def test_format_date_from_datetime(self, env: Environment):
        assert env.render("{{~format_date d}}", {"d": datetime(2024, 1, 15, 9, 30)}) == "2024-01-15"

    def test_json_is_escaped_unless_raw(self, env: Environment):
        context = {"data": {"a": [1, None]}}
        assert env.render("{{~json data}}", context) == "{&quot;a&quot;:[1,null]}"
        assert env.render("{{{~json data}}}", context) == '{"a":[1,null]}'

    def test_json_of_list_and_dates(self, env: Environment):
        assert env.render("{{{~json d}}}", {"d": [1]}) == "[1]"
        assert env.render("{{{ json(d) }}}", {"d": {"on": datetime(2024, 1, 15)}}) == (
            '{"on":"2024-01-15T00:00:00"}'
        )
        assert env.render("{{{~json d 2}}}", {"d": [1]}) == "[\n  1\n]"

    def test_json_indent_out_of_range(self, env: Environment):
        with pytest.raises(RenderError) as exc_info:
            env.render("{{{~json d 1000000}}}", {"d": [1]})
        assert exc_info.value.kind is ErrorCode.HELPER_FAILED

    def test_output_is_escaped(self, env: Environment):
        assert env.render("{{~uppercase s}}", {"s": "<b>"}) == "&lt;B&gt;"

    def test_function_call_syntax(self, env: Environment):
        assert env.render("{{ uppercase(name) }}", {"name": "ada"}) == "ADA"
        assert env.render('{{#if eq(role, "admin")}}yes{{/if}}', {"role": "admin"}) == "yes"
        assert env.render("{{ length(xs) + 1 }}", {"xs": [1, 2]}) == "3"

    def test_helper_keyword_in_function_call(self, env: Environment):
        assert env.render("{{ truncate(s, 6, suffix='!') }}", {"s": "abcdefgh"}) == "abcde!"


class TestRegistration:
    """register_helper and the decorator."""

    def test_register_and_call(self, env: Environment):
        env.register_helper("shout", lambda s: str(s).upper() + "!", arity=1)
        assert env.render("{{~shout word}}", word="hey") == "HEY!"

    def test_decorator(self, env: Environment):
        @env.helper(arity=1)
        def money(value):
            return f"${value:,.2f}"

        assert money(2) == "$2.00"
        assert env.render("{{~money total}}", total=1500) == "$1,500.00"

    def test_decorator_with_name(self, env: Environment):
        @env.helper("greet")
        def _greet(name="you"):
            return f"hi {name}"

        assert env.render("{{~greet}}/{{~greet 'Ada'}}") == "hi you/hi Ada"

    def test_duplicate_name_rejected(self, env: Environment):
        with pytest.raises(ValueError, match="already registered"):
            env.register_helper("uppercase", str.lower)

    def test_replace(self, env: Environment):
        env.register_helper("uppercase", lambda s: "replaced", replace=True)
        assert env.render("{{~uppercase x}}", x="a") == "replaced"

    @pytest.mark.parametrize("name", ["", "with space", "1abc", "a-b"])
    def test_invalid_name(self, env: Environment, name: str):
        with pytest.raises(ValueError):
            env.register_helper(name, str)

    def test_not_callable(self, env: Environment):
        with pytest.raises(TypeError):
            env.register_helper("nope", "not a function")  # type: ignore[arg-type]

    def test_markup_result_is_trusted(self, env: Environment):
        env.register_helper("bold", lambda s: Markup(f"<b>{s}</b>"), arity=1)
        env.register_helper("plain", lambda s: f"<b>{s}</b>", arity=1)
        assert env.render("{{~bold 'x'}}") == "<b>x</b>"
        assert env.render("{{ bold('x') }}") == "<b>x</b>"
        assert env.render("{{~plain 'x'}}") == "&lt;b&gt;x&lt;/b&gt;"

    def test_markup_result_escaped_in_attribute(self, env: Environment):
        env.register_helper("bold", lambda s: Markup(f"<b>{s}</b>"), arity=1)
        assert env.render('<p title="{{~bold x}}">', x="y") == '<p title="&lt;b&gt;y&lt;/b&gt;">'

    def test_pass_context(self, env: Environment):
        def whoami(scope):
            assert isinstance(scope, Scope)
            return scope.resolve("name")

        env.register_helper("whoami", whoami, arity=0, pass_context=True)
        source = "{{~whoami}}:{{#each people}}{{~whoami}}{{/each}}"
        assert env.render(source, {"name": "root", "people": [{"name": "Ada"}]}) == "root:Ada"

    def test_registration_visible_to_compiled_templates(self, env: Environment):
        template = env.from_string("{{~later x}}")
        with pytest.raises(UnknownHelperError):
            template.render(x=1)
        env.register_helper("later", lambda v: v * 2)
        assert template.render(x=1) == "2"

    def test_engines_are_independent(self):
        first, second = Environment(), Environment()
        first.register_helper("only_here", lambda: "x")
        assert "only_here" in first.helpers
        assert "only_here" not in second.helpers
        assert second.get_helper("only_here") is None

    def test_helpers_view_is_read_only(self, env: Environment):
        view = env.helpers
        assert not hasattr(view, "register")
        with pytest.raises(TypeError):
            view["shout"] = view["uppercase"]  # type: ignore[index]
        assert "shout" not in env.helpers

    def test_replacing_helper_drops_cached_output(self):
        env = Environment(output_cache_capacity=8)
        env.register_helper("greet", lambda: "hello", arity=0)
        assert env.render("{{~greet}}") == "hello"
        env.register_helper("greet", lambda: "bye", arity=0, replace=True)
        assert env.render("{{~greet}}") == "bye"


class TestHelperFailures:
    """Arity, unknown names and helper exceptions."""

    def test_arity_mismatch(self, env: Environment):
        with pytest.raises(RenderError) as exc_info:
            env.render("{{~uppercase a b}}", {"a": 1, "b": 2})
        err = exc_info.value
        assert err.kind is ErrorCode.ARITY_MISMATCH
        assert err.name == "uppercase"
        assert "exactly 1 argument" in err.message

    def test_keyword_arguments_not_counted(self, env: Environment):
        env.register_helper("tag", lambda s, cls="x": f"{s}.{cls}", arity=1)
        assert env.render("{{~tag 'a' cls='b'}}") == "a.b"

    def test_unknown_helper(self, env: Environment):
        with pytest.raises(UnknownHelperError) as exc_info:
            env.render("{{~uppercse name}}", {"name": "x"})
        err = exc_info.value
        assert err.kind is ErrorCode.UNKNOWN_HELPER
        assert err.name == "uppercse"
        assert "Did you mean 'uppercase'" in strip_colors(str(err))

    def test_unknown_helper_in_function_call(self, env: Environment):
        with pytest.raises(UnknownHelperError):
            env.render("{{ nothing(1) }}")

    def test_helper_exception_is_wrapped(self, env: Environment):
        def explode(value):
            raise KeyError(value)

        env.register_helper("explode", explode)
        with pytest.raises(RenderError) as exc_info:
            env.render("line\n{{~explode 'boom'}}")
        err = exc_info.value
        assert err.kind is ErrorCode.HELPER_FAILED
        assert isinstance(err.__cause__, KeyError)
        assert err.lineno == 2
        assert err.expression == "~explode 'boom'"

    def test_builtin_type_error_is_wrapped(self, env: Environment):
        with pytest.raises(RenderError) as exc_info:
            env.render("{{~abs 'abc'}}")
        assert exc_info.value.kind is ErrorCode.HELPER_FAILED


class TestRegistryUnit:
    """HelperRegistry and Arity on their own."""

    def test_snapshot_is_stable(self):
        registry = HelperRegistry()
        registry.register("a", str)
        snapshot = registry.snapshot()
        registry.register("b", str)
        assert set(snapshot) == {"a"}
        assert set(registry) == {"a", "b"}
        assert len(registry) == 2

    def test_copy_is_independent(self):
        registry = HelperRegistry()
        registry.register("a", str)
        clone = registry.copy()
        clone.register("b", str)
        assert "b" not in registry

    def test_unregister(self):
        registry = HelperRegistry()
        registry.register("a", str)
        registry.unregister("a")
        assert registry.get("a") is None
        with pytest.raises(KeyError):
            registry.unregister("a")

    @pytest.mark.parametrize(
        ("spec", "accepts", "rejects"),
        [
            (None, [0, 5], []),
            (1, [1], [0, 2]),
            ((1, 2), [1, 2], [0, 3]),
            ((2, None), [2, 9], [1]),
            (Arity(0, 1), [0, 1], [2]),
        ],
    )
    def test_arity(self, spec, accepts, rejects):
        arity = Arity.of(spec)
        assert all(arity.accepts(n) for n in accepts)
        assert not any(arity.accepts(n) for n in rejects)

    def test_arity_descriptions(self):
        assert Arity.of(None).describe() == "any number of arguments"
        assert Arity.of(2).describe() == "exactly 2 arguments"
        assert Arity.of((1, 3)).describe() == "1 to 3 arguments"
        assert Arity.of((1, None)).describe() == "at least 1 argument"

    @pytest.mark.parametrize("spec", [True, "1", (1, 2, 3)])
    def test_invalid_arity_spec(self, spec):
        with pytest.raises(TypeError):
            Arity.of(spec)

    def test_invalid_arity_range(self):
        with pytest.raises(ValueError):
            Arity(3, 1)
