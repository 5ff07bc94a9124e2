"""Expression parsing for the Coral parser.

Precedence, lowest to highest:

    ternary        a ? b : c
    or             a || b, a or b
    and            a && b, a and b
    equality       == != === !==
    comparison     < <= > >=
    additive       + -
    multiplicative * / %
    unary          ! not - +
    postfix        a.b  a.[0]  a.0  a[expr]  a.method(args)
    primary        literal, name, helper(args), (expr)

Helper and partial arguments are space-separated, so they are parsed at
unary level: ``{{~add a -1}}`` has two arguments.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING

from coral._types import Token, TokenType
from coral.environment.exceptions import ErrorCode
from coral.nodes import (
    BinOp,
    BoolOp,
    Compare,
    CondExpr,
    Const,
    Expr,
    FuncCall,
    Getattr,
    Getitem,
    MethodCall,
    Name,
    UnaryOp,
)
from coral.template.methods import ALLOWED_METHODS

if TYPE_CHECKING:
    from coral.environment.exceptions import ParseError

_KEYWORD_CONSTANTS: dict[str, object] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

# Names that can never be looked up as variables
RESERVED_NAMES: frozenset[str] = frozenset(
    {"true", "false", "null", "undefined", "and", "or", "not", "else"}
)

_EQUALITY_OPS = {
    TokenType.EQ: "==",
    TokenType.NE: "!=",
    TokenType.STRICT_EQ: "===",
    TokenType.STRICT_NE: "!==",
}
_COMPARISON_OPS = {
    TokenType.LT: "<",
    TokenType.LE: "<=",
    TokenType.GT: ">",
    TokenType.GE: ">=",
}
_ADDITIVE_OPS = {TokenType.ADD: "+", TokenType.SUB: "-"}
_MULTIPLICATIVE_OPS = {TokenType.MUL: "*", TokenType.DIV: "/", TokenType.MOD: "%"}


class ExpressionParsingMixin:
    """Recursive-descent expression parser.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _current: Token

        def _peek(self, offset: int = 1) -> Token: ...
        def _advance(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _match_name(self, *names: str) -> bool: ...
        def _expect(self, token_type: TokenType, message: str | None = None) -> Token: ...
        def _error(
            self,
            message: str,
            token: Token | None = None,
            suggestion: str | None = None,
            code: ErrorCode = ...,
        ) -> ParseError: ...

    def _parse_expression(self) -> Expr:
        """Parse a full expression (ternary level)."""
        return self._parse_ternary()

    def _parse_ternary(self) -> Expr:
        test = self._parse_or()
        if not self._match(TokenType.QUESTION):
            return test
        self._advance()
        if_true = self._parse_ternary()
        self._expect(TokenType.COLON, "Expected ':' in conditional expression")
        if_false = self._parse_ternary()
        return CondExpr(
            lineno=test.lineno,
            col_offset=test.col_offset,
            test=test,
            if_true=if_true,
            if_false=if_false,
        )

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        values = [left]
        while self._match(TokenType.OR) or self._match_name("or"):
            self._advance()
            values.append(self._parse_and())
        if len(values) == 1:
            return left
        return BoolOp(lineno=left.lineno, col_offset=left.col_offset, op="or", values=tuple(values))

    def _parse_and(self) -> Expr:
        left = self._parse_equality()
        values = [left]
        while self._match(TokenType.AND) or self._match_name("and"):
            self._advance()
            values.append(self._parse_equality())
        if len(values) == 1:
            return left
        return BoolOp(lineno=left.lineno, col_offset=left.col_offset, op="and", values=tuple(values))

    def _parse_equality(self) -> Expr:
        left = self._parse_comparison()
        while self._current.type in _EQUALITY_OPS:
            op = _EQUALITY_OPS[self._advance().type]
            right = self._parse_comparison()
            left = Compare(lineno=left.lineno, col_offset=left.col_offset, op=op, left=left, right=right)
        return left

    def _parse_comparison(self) -> Expr:
        left = self._parse_additive()
        while self._current.type in _COMPARISON_OPS:
            op = _COMPARISON_OPS[self._advance().type]
            right = self._parse_additive()
            left = Compare(lineno=left.lineno, col_offset=left.col_offset, op=op, left=left, right=right)
        return left

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while self._current.type in _ADDITIVE_OPS:
            op = _ADDITIVE_OPS[self._advance().type]
            right = self._parse_multiplicative()
            left = BinOp(lineno=left.lineno, col_offset=left.col_offset, op=op, left=left, right=right)
        return left

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while self._current.type in _MULTIPLICATIVE_OPS:
            op = _MULTIPLICATIVE_OPS[self._advance().type]
            right = self._parse_unary()
            left = BinOp(lineno=left.lineno, col_offset=left.col_offset, op=op, left=left, right=right)
        return left

    def _parse_unary(self) -> Expr:
        token = self._current
        if token.type is TokenType.NOT or self._match_name("not"):
            self._advance()
            operand = self._parse_unary()
            return UnaryOp(lineno=token.lineno, col_offset=token.col_offset, op="not", operand=operand)
        if token.type in (TokenType.SUB, TokenType.ADD):
            self._advance()
            operand = self._parse_unary()
            # Fold negative literals so "-1" is a constant
            if isinstance(operand, Const) and type(operand.value) in (int, float):
                value = -operand.value if token.type is TokenType.SUB else operand.value
                return Const(lineno=token.lineno, col_offset=token.col_offset, value=value)
            return UnaryOp(
                lineno=token.lineno,
                col_offset=token.col_offset,
                op=str(token.value),
                operand=operand,
            )
        return self._parse_postfix()

    def _parse_argument(self) -> Expr:
        """Parse one space-separated helper/partial argument."""
        return self._parse_unary()

    def _parse_postfix(self) -> Expr:
        expr = self._parse_primary()
        while True:
            if self._match(TokenType.DOT):
                self._advance()
                token = self._current
                if token.type is TokenType.NAME and not str(token.value).startswith("@"):
                    self._advance()
                    if self._match(TokenType.LPAREN):
                        expr = self._parse_method_call(expr, token)
                    else:
                        expr = Getattr(
                            lineno=expr.lineno,
                            col_offset=expr.col_offset,
                            obj=expr,
                            attr=str(token.value),
                        )
                elif token.type is TokenType.INTEGER:
                    self._advance()
                    key = Const(lineno=token.lineno, col_offset=token.col_offset, value=token.value)
                    expr = Getitem(lineno=expr.lineno, col_offset=expr.col_offset, obj=expr, key=key)
                elif token.type is TokenType.LBRACKET:
                    expr = self._parse_subscript(expr)
                else:
                    raise self._error(
                        "Expected a name, index or '[' after '.'",
                        code=ErrorCode.INVALID_EXPRESSION,
                    )
            elif self._match(TokenType.LBRACKET):
                expr = self._parse_subscript(expr)
            else:
                return expr

    def _parse_subscript(self, obj: Expr) -> Expr:
        self._advance()  # consume '['
        key = self._parse_expression()
        self._expect(TokenType.RBRACKET, "Expected ']' to close subscript")
        return Getitem(lineno=obj.lineno, col_offset=obj.col_offset, obj=obj, key=key)

    def _parse_method_call(self, obj: Expr, name_token: Token) -> Expr:
        method = str(name_token.value)
        if method not in ALLOWED_METHODS:
            close = get_close_matches(method, list(ALLOWED_METHODS), n=1)
            hint = f"Did you mean '{close[0]}'?" if close else (
                f"Allowed methods: {', '.join(sorted(ALLOWED_METHODS))}"
            )
            raise self._error(
                f"Method '{method}' is not allowed in templates",
                name_token,
                suggestion=hint,
                code=ErrorCode.METHOD_NOT_ALLOWED,
            )
        args, kwargs = self._parse_call_arguments()
        if kwargs:
            raise self._error(
                f"Method '{method}' does not accept keyword arguments",
                name_token,
                code=ErrorCode.INVALID_EXPRESSION,
            )
        return MethodCall(
            lineno=obj.lineno,
            col_offset=obj.col_offset,
            obj=obj,
            method=method,
            args=args,
        )

    def _parse_call_arguments(self) -> tuple[tuple[Expr, ...], tuple[tuple[str, Expr], ...]]:
        """Parse ``(a, b, key=value)``; the current token is '('."""
        self._advance()  # consume '('
        args: list[Expr] = []
        kwargs: list[tuple[str, Expr]] = []
        while not self._match(TokenType.RPAREN):
            if self._match(TokenType.NAME) and self._peek().type is TokenType.ASSIGN:
                key = str(self._advance().value)
                self._advance()  # consume '='
                kwargs.append((key, self._parse_expression()))
            elif kwargs:
                raise self._error(
                    "Positional argument follows keyword argument",
                    code=ErrorCode.INVALID_EXPRESSION,
                )
            else:
                args.append(self._parse_expression())
            if not self._match(TokenType.COMMA):
                break
            self._advance()
        self._expect(TokenType.RPAREN, "Expected ')' to close argument list")
        return tuple(args), tuple(kwargs)

    def _parse_primary(self) -> Expr:
        token = self._current

        if token.type is TokenType.STRING or token.type in (TokenType.INTEGER, TokenType.FLOAT):
            self._advance()
            return Const(lineno=token.lineno, col_offset=token.col_offset, value=token.value)

        if token.type is TokenType.NAME:
            name = str(token.value)
            if name in _KEYWORD_CONSTANTS:
                self._advance()
                return Const(
                    lineno=token.lineno,
                    col_offset=token.col_offset,
                    value=_KEYWORD_CONSTANTS[name],  # type: ignore[arg-type]
                )
            if name in RESERVED_NAMES:
                raise self._error(
                    f"Unexpected keyword '{name}'",
                    code=ErrorCode.INVALID_EXPRESSION,
                )
            self._advance()
            if self._match(TokenType.LPAREN) and not name.startswith("@") and name != "this":
                args, kwargs = self._parse_call_arguments()
                return FuncCall(
                    lineno=token.lineno,
                    col_offset=token.col_offset,
                    name=name,
                    args=args,
                    kwargs=kwargs,
                )
            return Name(lineno=token.lineno, col_offset=token.col_offset, name=name)

        if token.type is TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "Expected ')' to close parenthesised expression")
            return expr

        if token.type in (TokenType.EXPR_CLOSE, TokenType.RAW_CLOSE):
            raise self._error(
                "Expected an expression",
                code=ErrorCode.INVALID_EXPRESSION,
            )
        raise self._error(
            f"Unexpected '{token.value}' in expression",
            code=ErrorCode.INVALID_EXPRESSION,
        )
