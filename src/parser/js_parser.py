"""
JavaScript parsing utilities built on top of the Python `esprima` port.

`esprima` does not know the proposed `if (let x = ...)` / `while (const x = ...)`
syntax, so `parse_js` runs in three steps:

1. tokenize the source and locate every `if`/`while` head whose first token is
   a `let`/`const` declaration;
2. replace each declaration with a placeholder identifier padded to the same
   length (newlines kept), so every other node keeps its original `range` and
   `loc`, and parse the masked source;
3. parse each declaration on its own, padded with the blanked-out prefix of the
   source so its positions match too, and splice the `VariableDeclaration`
   node into the statement's `test`.

The resulting AST is the JSON-compatible dictionary form used everywhere else.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import esprima

_PLACEHOLDER = "$"
_CONDITIONAL_KEYWORDS = {"if", "while"}
_DECLARATION_KEYWORDS = {"let", "const"}
_NON_NEWLINE = re.compile("[^\\r\\n\\u2028\\u2029]")


@dataclass(frozen=True)
class ParseError:
    """Represents a recoverable parsing issue detected by esprima."""

    description: str
    line: Optional[int]
    column: Optional[int]


@dataclass(frozen=True)
class ParseResult:
    """Aggregate of the output AST plus metadata about the parse run."""

    ast: Any
    errors: List[ParseError]
    source_hash: str
    source_name: str
    conditionals: int = 0

    def to_json(self) -> str:
        """Serialise the parse result to JSON for debugging or caching."""
        payload = {
            "ast": self.ast,
            "errors": [error.__dict__ for error in self.errors],
            "source_hash": self.source_hash,
            "source_name": self.source_name,
            "conditionals": self.conditionals,
        }
        # Regex literal values are not JSON types; keep their text.
        return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


class SourceSyntaxError(RuntimeError):
    """Raised in strict mode when a conditional declaration head is malformed."""

    def __init__(self, error: ParseError):
        loc = f" (line {error.line}, column {error.column})" if error.line is not None else ""
        super().__init__(f"{error.description}{loc}")
        self.error = error


@dataclass(frozen=True)
class _DeclarationHead:
    keyword: str
    start: int
    end: int
    line: Optional[int]
    column: Optional[int]
    trailing_clause: bool


def hash_source(source: str) -> str:
    """Create a deterministic hash for cache keying."""
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def _blank(text: str) -> str:
    return _NON_NEWLINE.sub(" ", text)


def _field(token: Any, name: str) -> Any:
    if isinstance(token, dict):
        return token.get(name)
    return getattr(token, name, None)


def _is_punctuator(token: Any, value: str) -> bool:
    return _field(token, "type") == "Punctuator" and _field(token, "value") == value


def _find_declaration_heads(tokens: List[Any]) -> List[_DeclarationHead]:
    heads: List[_DeclarationHead] = []
    for index, token in enumerate(tokens[:-3]):
        if _field(token, "type") != "Keyword" or _field(token, "value") not in _CONDITIONAL_KEYWORDS:
            continue
        opener, declarator, following = tokens[index + 1], tokens[index + 2], tokens[index + 3]
        if not _is_punctuator(opener, "("):
            continue
        if _field(declarator, "value") not in _DECLARATION_KEYWORDS:
            continue
        # `let` is only a declaration when an identifier or a pattern follows.
        if not (
            _field(following, "type") == "Identifier"
            or _is_punctuator(following, "{")
            or _is_punctuator(following, "[")
        ):
            continue

        depth = 0
        braces = 0
        brackets = 0
        assigned = False
        trailing = False
        closing = None
        for candidate in tokens[index + 1 :]:
            if _is_punctuator(candidate, "("):
                depth += 1
            elif _is_punctuator(candidate, ")"):
                depth -= 1
                if depth == 0:
                    closing = candidate
                    break
            elif _is_punctuator(candidate, "{"):
                braces += 1
            elif _is_punctuator(candidate, "}"):
                braces -= 1
            elif _is_punctuator(candidate, "["):
                brackets += 1
            elif _is_punctuator(candidate, "]"):
                brackets -= 1
            elif _is_punctuator(candidate, "=") and depth == 1 and braces == 0 and brackets == 0:
                assigned = True
            elif _is_punctuator(candidate, ";") and depth == 1 and braces == 0:
                trailing = True
        if closing is None:
            continue
        # Without an initializer `let[...]` is a member access on a variable named `let`.
        if _field(declarator, "value") == "let" and _is_punctuator(following, "[") and not assigned:
            continue

        loc = _field(declarator, "loc")
        start_loc = _field(loc, "start") if loc is not None else None
        heads.append(
            _DeclarationHead(
                keyword=_field(token, "value"),
                start=_field(declarator, "range")[0],
                end=_field(closing, "range")[0],
                line=_field(start_loc, "line") if start_loc is not None else None,
                column=_field(start_loc, "column") if start_loc is not None else None,
                trailing_clause=trailing,
            )
        )
    return heads


def _mask_heads(source: str, heads: List[_DeclarationHead]) -> str:
    pieces: List[str] = []
    cursor = 0
    for head in heads:
        pieces.append(source[cursor : head.start])
        pieces.append(_PLACEHOLDER + _blank(source[head.start + 1 : head.end]))
        cursor = head.end
    pieces.append(source[cursor:])
    return "".join(pieces)


def _parse_declaration(source: str, head: _DeclarationHead, parser) -> Dict[str, Any]:
    snippet = _blank(source[: head.start]) + source[head.start : head.end] + ";"
    program = parser(snippet, loc=True, range=True)
    raw = program.toDict() if hasattr(program, "toDict") else program
    return raw["body"][0]


def _error_from_exception(exc: Exception, fallback: Optional[_DeclarationHead] = None) -> ParseError:
    description = getattr(exc, "description", None) or str(exc) or "Failed to parse source."
    line = getattr(exc, "lineNumber", None)
    column = getattr(exc, "column", None)
    if line is None and fallback is not None:
        line, column = fallback.line, fallback.column
    return ParseError(description=description, line=line, column=column)


def _splice_declarations(
    node: Any,
    declarations: Dict[int, Dict[str, Any]],
    errors: List[ParseError],
) -> int:
    """Replace placeholder tests with their declarations; return the splice count."""
    spliced = 0
    if isinstance(node, list):
        for element in node:
            spliced += _splice_declarations(element, declarations, errors)
        return spliced
    if not isinstance(node, dict):
        return 0

    for key, value in list(node.items()):
        if key in {"loc", "range"} or not isinstance(value, (dict, list)):
            continue
        start = _placeholder_start(value, declarations)
        if start is None:
            spliced += _splice_declarations(value, declarations, errors)
            continue
        if key == "test" and node.get("type") in ("IfStatement", "WhileStatement"):
            node[key] = declarations[start]
            spliced += 1
        else:
            loc = (value.get("loc") or {}).get("start") or {}
            errors.append(
                ParseError(
                    description="Declarations are only allowed in the head of `if` and `while` statements.",
                    line=loc.get("line"),
                    column=loc.get("column"),
                )
            )
    return spliced


def _placeholder_start(value: Any, declarations: Dict[int, Dict[str, Any]]) -> Optional[int]:
    if not isinstance(value, dict) or value.get("type") != "Identifier":
        return None
    if value.get("name") != _PLACEHOLDER:
        return None
    start = (value.get("range") or [None])[0]
    return start if start in declarations else None


def parse_js(
    source: str,
    *,
    source_name: str = "<input>",
    tolerant: bool = True,
    source_type: str = "script",
) -> ParseResult:
    """
    Parse JavaScript source text, including conditional declarations, into an
    esprima AST.

    Args:
        source: Raw JavaScript source code.
        source_name: Optional label used for diagnostics (defaults to `<input>`).
        tolerant: When True, esprima performs error recovery instead of raising.
        source_type: `"script"` or `"module"`; modules enable ES6 import/export.

    Returns:
        ParseResult containing the AST, any recoverable errors, and metadata.

    Raises:
        esprima.Error: If parsing fails and `tolerant` is False.
        SourceSyntaxError: If a declaration head is malformed and `tolerant` is False.
    """
    options = dict(loc=True, range=True, comment=True, tolerant=tolerant)
    parser = esprima.parseModule if source_type == "module" else esprima.parseScript
    source_hash = hash_source(source)
    try:
        tokens = esprima.tokenize(source, range=True, loc=True, tolerant=tolerant)
        heads = _find_declaration_heads(list(tokens))
        ast = parser(_mask_heads(source, heads), **options)
    except esprima.Error as exc:
        # Re-raise when caller opted into strict error handling.
        if not tolerant:
            raise
        # When tolerant parsing fails hard, convert exception into diagnostics.
        return ParseResult(
            ast=None,
            errors=[_error_from_exception(exc)],
            source_hash=source_hash,
            source_name=source_name,
        )

    errors: List[ParseError] = []
    raw_ast = ast.toDict() if hasattr(ast, "toDict") else ast

    if tolerant and isinstance(raw_ast, dict):
        # Collect recoverable errors reported by esprima in tolerant mode.
        for error in raw_ast.get("errors", []):
            errors.append(
                ParseError(
                    description=error.get("description"),
                    line=error.get("lineNumber"),
                    column=error.get("column"),
                )
            )

    declarations: Dict[int, Dict[str, Any]] = {}
    head_errors: List[ParseError] = []
    for head in heads:
        if head.trailing_clause:
            head_errors.append(
                ParseError(
                    description=f"Trailing condition clauses in `{head.keyword}` heads are not supported.",
                    line=head.line,
                    column=head.column,
                )
            )
            continue
        try:
            declarations[head.start] = _parse_declaration(source, head, parser)
        except esprima.Error as exc:
            head_errors.append(_error_from_exception(exc, head))

    spliced = _splice_declarations(raw_ast, declarations, head_errors)
    if head_errors and not tolerant:
        first = head_errors[0]
        raise SourceSyntaxError(first)
    errors.extend(head_errors)

    # A tree that still holds placeholders is never handed out.
    return ParseResult(
        ast=None if head_errors else raw_ast,
        errors=errors,
        source_hash=source_hash,
        source_name=source_name,
        conditionals=spliced,
    )


__all__ = ["ParseResult", "ParseError", "SourceSyntaxError", "hash_source", "parse_js"]
