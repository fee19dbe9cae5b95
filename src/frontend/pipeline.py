"""
Front-end pipeline: parse (or reload) a source file and analyse its bindings.

`run_frontend` is what both CLI commands call before rewriting. Parsing a
file with conditional declarations takes several esprima passes (tokenize,
masked parse, one parse per declaration head), so a clean parse can be kept
as JSON under `cache_dir`, keyed by the source hash and source type, and is
reloaded instead of re-parsed when the same source comes back.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from analyzer import AnalysisIssue, AnalysisResult, Scope, ScopeType, analyze_bindings
from parser import ParseError, ParseResult, hash_source, parse_js

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrontEndResult:
    """Parsed tree, optional binding analysis and where the tree came from."""

    parse: ParseResult
    analysis: Optional[AnalysisResult]
    from_cache: bool = False

    @property
    def has_ast(self) -> bool:
        return self.parse.ast is not None

    @property
    def conditionals(self) -> int:
        return self.parse.conditionals

    @property
    def issues(self) -> List[AnalysisIssue]:
        return list(self.analysis.issues) if self.analysis else []

    def condition_scopes(self) -> List[Scope]:
        """Scopes opened by `if`/`while` declaration heads, in source order."""
        if self.analysis is None:
            return []
        return [
            scope
            for scope in self.analysis.flatten_scopes()
            if scope.scope_type == ScopeType.CONDITION
        ]


def run_frontend(
    source: str,
    *,
    source_name: str = "<input>",
    tolerant: bool = True,
    analyze: bool = True,
    source_type: str = "script",
    cache_dir: Optional[Union[str, Path]] = None,
) -> FrontEndResult:
    """
    Parse JavaScript that may use conditional declarations, then analyse it.

    Args:
        source: Raw JavaScript source text.
        source_name: Identifier used in diagnostics, e.g. file path.
        tolerant: Forwarded to the parser; when True esprima attempts recovery.
        analyze: Toggle to disable binding analysis.
        source_type: `"script"` or `"module"`.
        cache_dir: Directory holding parse results from earlier runs
            (`None` disables caching). Only error-free parses are stored.

    Returns:
        FrontEndResult; `from_cache` tells whether the tree was reloaded.
    """
    cache_file = None
    parse_result = None
    if cache_dir is not None:
        cache_file = Path(cache_dir) / f"{hash_source(source)}-{source_type}.json"
        parse_result = _load_cached(cache_file, source_name)

    from_cache = parse_result is not None
    if parse_result is None:
        parse_result = parse_js(
            source,
            source_name=source_name,
            tolerant=tolerant,
            source_type=source_type,
        )
        if cache_file is not None and parse_result.ast is not None and not parse_result.errors:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            cache_file.write_text(parse_result.to_json(), encoding="utf-8")

    logger.debug(
        "%s: %s with %d conditional declaration(s), %d error(s)",
        source_name,
        "reloaded" if from_cache else "parsed",
        parse_result.conditionals,
        len(parse_result.errors),
    )

    analysis_result: Optional[AnalysisResult] = None
    if analyze and parse_result.ast is not None:
        analysis_result = analyze_bindings(parse_result.ast, source_name=source_name)

    return FrontEndResult(parse=parse_result, analysis=analysis_result, from_cache=from_cache)


def _load_cached(cache_file: Path, source_name: str) -> Optional[ParseResult]:
    if not cache_file.exists():
        return None
    try:
        payload = json.loads(cache_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable cache entry %s: %s", cache_file, exc)
        return None
    return ParseResult(
        ast=payload["ast"],
        errors=[ParseError(**error) for error in payload.get("errors", [])],
        source_hash=payload["source_hash"],
        source_name=source_name,
        conditionals=payload.get("conditionals", 0),
    )


__all__ = ["FrontEndResult", "run_frontend"]
