"""Coral parser: token stream to immutable AST.

Example:
    >>> from coral.parser import parse
    >>> template = parse("{{#if user}}Hi {{ user.name }}{{/if}}")
    >>> type(template.body[0]).__name__
    'If'

"""

from coral.parser.core import Parser, parse

__all__ = ["Parser", "parse"]
