"""Interfaces for parsing JavaScript source code with conditional declarations."""

from .js_parser import ParseError, ParseResult, SourceSyntaxError, hash_source, parse_js

__all__ = ["ParseError", "ParseResult", "SourceSyntaxError", "hash_source", "parse_js"]
