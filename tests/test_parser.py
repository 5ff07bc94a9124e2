"""Tests for the Coral parser: AST shape and syntax errors."""

from __future__ import annotations

import pytest

from coral import ParseError, Parser, parse, tokenize
from coral.environment.exceptions import ErrorCode
from coral.nodes import (
    STATEMENT_TYPES,
    BinOp,
    BoolOp,
    Compare,
    CondExpr,
    Const,
    Each,
    FuncCall,
    Getattr,
    Getitem,
    HelperCall,
    If,
    Interpolation,
    MethodCall,
    Name,
    PartialDef,
    PartialRef,
    Template,
    Text,
    UnaryOp,
    Unless,
    With,
)


def expr_of(source: str):
    """Parse ``{{ source }}`` and return the expression node."""
    node = parse(f"{{{{ {source} }}}}").body[0]
    assert isinstance(node, Interpolation)
    return node.expr


class TestOutputNodes:
    """Text, interpolation and helper calls."""

    def test_text_and_interpolation(self):
        template = parse("Hi {{ name }}!")
        assert isinstance(template, Template)
        text, interp, tail = template.body
        assert text == Text(lineno=1, col_offset=0, value="Hi ")
        assert isinstance(interp, Interpolation)
        assert interp.expr == Name(lineno=1, col_offset=6, name="name")
        assert interp.raw is False
        assert tail.value == "!"

    def test_raw_is_decided_at_parse_time(self):
        node = parse("{{{ body }}}").body[0]
        assert isinstance(node, Interpolation)
        assert node.raw is True

    def test_helper_call_arguments(self):
        node = parse('{{~truncate post.body 20 suffix="…"}}').body[0]
        assert isinstance(node, HelperCall)
        assert node.name == "truncate"
        assert isinstance(node.args[0], Getattr)
        assert node.args[1] == Const(lineno=1, col_offset=22, value=20)
        assert node.kwargs[0][0] == "suffix"
        assert node.kwargs[0][1].value == "…"

    def test_helper_negative_argument(self):
        node = parse("{{~round n -1}}").body[0]
        assert len(node.args) == 2
        assert node.args[1].value == -1

    def test_helper_parenthesised_argument(self):
        node = parse("{{~uppercase (a + b)}}").body[0]
        assert isinstance(node.args[0], BinOp)

    def test_positional_after_keyword(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{~h a=1 b}}")
        assert exc_info.value.code is ErrorCode.INVALID_EXPRESSION

    def test_statement_types_cover_body_nodes(self):
        template = parse("a{{ b }}{{~c}}{{#if d}}{{/if}}<p>")
        assert all(isinstance(node, STATEMENT_TYPES) for node in template.body)


class TestExpressions:
    """Precedence and postfix forms."""

    def test_dotted_path(self):
        expr = expr_of("a.b.c")
        assert isinstance(expr, Getattr) and expr.attr == "c"
        assert isinstance(expr.obj, Getattr) and expr.obj.attr == "b"

    def test_bracket_index_forms(self):
        for source in ("a.[0]", "a.0", "a[0]"):
            expr = expr_of(source)
            assert isinstance(expr, Getitem), source
            assert expr.key.value == 0

    def test_dynamic_subscript(self):
        expr = expr_of("rows[i].name")
        assert isinstance(expr, Getattr)
        assert isinstance(expr.obj, Getitem)
        assert isinstance(expr.obj.key, Name)

    def test_multiplication_binds_tighter(self):
        expr = expr_of("1 + 2 * 3")
        assert isinstance(expr, BinOp) and expr.op == "+"
        assert isinstance(expr.right, BinOp) and expr.right.op == "*"

    def test_comparison_below_logic(self):
        expr = expr_of("a > 1 && b == 2 || c")
        assert isinstance(expr, BoolOp) and expr.op == "or"
        inner = expr.values[0]
        assert isinstance(inner, BoolOp) and inner.op == "and"
        assert isinstance(inner.values[0], Compare) and inner.values[0].op == ">"

    def test_word_operators(self):
        expr = expr_of("not a and b or c")
        assert isinstance(expr, BoolOp) and expr.op == "or"
        assert isinstance(expr.values[0].values[0], UnaryOp)

    def test_ternary_is_right_associative(self):
        expr = expr_of("a ? 1 : b ? 2 : 3")
        assert isinstance(expr, CondExpr)
        assert isinstance(expr.if_false, CondExpr)

    def test_keyword_constants(self):
        assert expr_of("true").value is True
        assert expr_of("false").value is False
        assert expr_of("null").value is None
        assert expr_of("undefined").value is None

    def test_negative_literal_folded(self):
        assert expr_of("-5") == Const(lineno=1, col_offset=3, value=-5)

    def test_unary_minus_on_name(self):
        expr = expr_of("-x")
        assert isinstance(expr, UnaryOp) and expr.op == "-"

    def test_function_call_syntax(self):
        expr = expr_of("format_number(total, 2)")
        assert isinstance(expr, FuncCall)
        assert expr.name == "format_number"
        assert len(expr.args) == 2

    def test_allowed_method(self):
        expr = expr_of("name.toUpperCase()")
        assert isinstance(expr, MethodCall)
        assert expr.method == "toUpperCase"

    def test_disallowed_method_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{ user.delete() }}")
        assert exc_info.value.code is ErrorCode.METHOD_NOT_ALLOWED

    def test_dunder_method_rejected(self):
        with pytest.raises(ParseError):
            parse("{{ x.__class__() }}")

    def test_method_suggestion(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{ s.toUppercase() }}")
        assert "toUpperCase" in (exc_info.value.suggestion or "")

    def test_root_and_this(self):
        expr = expr_of("@root.title")
        assert isinstance(expr.obj, Name) and expr.obj.name == "@root"
        assert expr_of("this").name == "this"

    @pytest.mark.parametrize("source", ["", "a +", "(a", "a ? b", "a.", "else"])
    def test_malformed_expression(self, source):
        with pytest.raises(ParseError):
            parse(f"{{{{ {source} }}}}")


class TestBlocks:
    """Block structure and else handling."""

    def test_if_else_if_else(self):
        node = parse("{{#if a}}A{{else if b}}B{{else if c}}C{{else}}D{{/if}}").body[0]
        assert isinstance(node, If)
        assert [t.name for t, _ in node.elif_] == ["b", "c"]
        assert node.else_[0].value == "D"

    def test_unless_with_else(self):
        node = parse("{{#unless ok}}no{{else}}yes{{/unless}}").body[0]
        assert isinstance(node, Unless)
        assert node.body[0].value == "no"
        assert node.else_[0].value == "yes"

    def test_each_named(self):
        node = parse("{{#each p in posts}}{{ p }}{{else}}none{{/each}}").body[0]
        assert isinstance(node, Each)
        assert node.target == "p"
        assert node.rebase is False
        assert node.else_[0].value == "none"

    def test_each_shorthand_rebases(self):
        node = parse("{{#each posts}}{{ title }}{{/each}}").body[0]
        assert node.target == "item"
        assert node.rebase is True

    def test_with_as(self):
        node = parse("{{#with user.profile as p}}{{ p.bio }}{{/with}}").body[0]
        assert isinstance(node, With)
        assert node.target == "p"

    def test_nested_blocks(self):
        node = parse("{{#each rows}}{{#if ok}}x{{/if}}{{/each}}").body[0]
        assert isinstance(node.body[0], If)

    def test_unclosed_block(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{#if a}}\nbody")
        err = exc_info.value
        assert err.code is ErrorCode.UNCLOSED_BLOCK
        assert err.lineno == 1

    def test_unexpected_close(self):
        with pytest.raises(ParseError) as exc_info:
            parse("text{{/if}}")
        assert exc_info.value.code is ErrorCode.UNMATCHED_END

    def test_mismatched_close(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{#if a}}{{/each}}")
        assert exc_info.value.code is ErrorCode.UNMATCHED_END

    @pytest.mark.parametrize(
        "source",
        [
            "{{else}}",
            "a{{else if b}}c",
            "{{#with x}}a{{else}}b{{/with}}",
            "{{#each xs}}a{{else if b}}c{{/each}}",
            "{{#each xs}}a{{else}}b{{else}}c{{/each}}",
            "{{#if a}}x{{else}}y{{else}}z{{/if}}",
        ],
    )
    def test_misplaced_else(self, source):
        with pytest.raises(ParseError) as exc_info:
            parse(source)
        assert exc_info.value.code is ErrorCode.MISPLACED_ELSE

    def test_unknown_block_suggestion(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{#iff a}}{{/iff}}")
        assert "{{#if}}" in (exc_info.value.suggestion or "")

    def test_reserved_loop_variable(self):
        with pytest.raises(ParseError):
            parse("{{#each this in items}}{{/each}}")

    def test_parse_error_position(self):
        with pytest.raises(ParseError) as exc_info:
            parse("line one\n{{ a + }}", name="page.html")
        err = exc_info.value
        assert err.lineno == 2
        assert err.line == 2 and err.column == err.col_offset
        assert "page.html:2" in str(err)


class TestPartials:
    """Partial definition and reference resolution."""

    def test_local_definition_then_reference(self):
        template = parse("{{#partial row}}<li>{{ this }}</li>{{/partial}}{{> row }}")
        definition, reference = template.body
        assert isinstance(definition, PartialDef)
        assert definition.name == "row"
        assert isinstance(reference, PartialRef)
        assert reference.context is None

    def test_reference_with_context_and_hash(self):
        template = parse('{{#partial card}}x{{/partial}}{{> card user size="lg" }}')
        ref = template.body[1]
        assert isinstance(ref.context, Name)
        assert ref.hash[0][0] == "size"

    def test_forward_reference_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{> row }}{{#partial row}}x{{/partial}}")
        assert exc_info.value.code is ErrorCode.UNDEFINED_PARTIAL

    def test_globally_known_partial(self):
        template = parse("{{> header }}", partials={"header"})
        assert template.body[0].name == "header"

    def test_recursive_partial(self):
        template = parse("{{#partial tree}}{{#each children}}{{> tree }}{{/each}}{{/partial}}")
        assert isinstance(template.body[0], PartialDef)

    def test_duplicate_local_partial(self):
        with pytest.raises(ParseError):
            parse("{{#partial a}}1{{/partial}}{{#partial a}}2{{/partial}}")

    def test_quoted_partial_name(self):
        template = parse("{{> 'my partial' }}", partials={"my partial"})
        assert template.body[0].name == "my partial"

    def test_too_many_context_arguments(self):
        with pytest.raises(ParseError):
            parse("{{> p a b }}", partials={"p"})

    def test_close_match_suggestion(self):
        with pytest.raises(ParseError) as exc_info:
            parse("{{> headr }}", partials=frozenset({"header"}))
        assert "header" in (exc_info.value.suggestion or "")


class TestParserEntryPoints:
    """parse() accepts source text or a token stream."""

    def test_parse_token_stream(self):
        template = parse(tokenize("{{ a }}"))
        assert isinstance(template.body[0], Interpolation)

    def test_parser_class(self):
        template = Parser(tokenize("x"), name="t").parse()
        assert template.body[0].value == "x"

    def test_lex_error_propagates(self):
        from coral import LexError

        with pytest.raises(LexError):
            parse("{{ oops")

    def test_nodes_are_immutable(self):
        node = parse("{{ a }}").body[0]
        with pytest.raises(AttributeError):
            node.raw = True  # type: ignore[misc]
