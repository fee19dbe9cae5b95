"""
Command-line interface for rewriting conditional declarations in JavaScript files.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import esprima

from emitter import EmitError, EmitOptions, emit_program
from evaluator import compare_programs
from frontend import FrontEndResult, run_frontend
from parser import SourceSyntaxError
from transformer import ProgramResult, TransformError, TransformOptions, transform_program

logger = logging.getLogger("condecl")


def _format_location(line: int | None, column: int | None) -> str:
    if line is None:
        return ""
    if column is None:
        return f":{line}"
    return f":{line}:{column}"


def _print_diagnostics(messages: List[str]) -> None:
    if not messages:
        return
    for message in messages:
        sys.stderr.write(message + "\n")


def _collect_diagnostics(frontend_result: FrontEndResult, transform_result: ProgramResult):
    diagnostics: List[str] = []
    source_name = frontend_result.parse.source_name

    for error in frontend_result.parse.errors:
        loc = _format_location(error.line, error.column)
        diagnostics.append(f"ERROR {source_name}{loc}: {error.description}")

    for issue in frontend_result.issues:
        loc = _format_location(issue.loc.line, issue.loc.column)
        diagnostics.append(f"WARNING {source_name}{loc}: {issue.message}")

    for message in transform_result.diagnostics:
        diagnostics.append(f"INFO {source_name}: {message}")

    diagnostics.append(
        f"INFO {source_name}: rewrote {transform_result.rewritten} conditional declaration(s)"
    )
    return diagnostics


def _load(args: argparse.Namespace) -> Optional[tuple]:
    input_path = Path(args.input).resolve()
    if not input_path.exists():
        sys.stderr.write(f"ERROR: Input file not found: {input_path}\n")
        return None

    try:
        source = input_path.read_text(encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(f"ERROR: Failed to read {input_path}: {exc}\n")
        return None

    source_type = "module" if getattr(args, "module", False) else "script"
    try:
        frontend_result = run_frontend(
            source,
            source_name=str(input_path),
            tolerant=not args.strict,
            analyze=True,
            source_type=source_type,
            cache_dir=args.cache_dir,
        )
    except (esprima.Error, SourceSyntaxError) as exc:
        sys.stderr.write(f"ERROR: Parsing failed: {exc}\n")
        return None

    if frontend_result.parse.ast is None:
        sys.stderr.write("ERROR: Parsing failed; no AST produced.\n")
        for error in frontend_result.parse.errors:
            loc = _format_location(error.line, error.column)
            sys.stderr.write(f"  {error.description}{loc}\n")
        return None

    options = TransformOptions(
        completion_observed=getattr(args, "completion_observed", False),
        allow_const_reassignment=getattr(args, "allow_const_reassignment", False),
    )
    try:
        transform_result = transform_program(
            frontend_result.parse.ast, source_name=str(input_path), options=options
        )
    except TransformError as exc:
        sys.stderr.write(f"ERROR: Transformation failed: {exc}\n")
        return None
    return input_path, frontend_result, transform_result


def convert_command(args: argparse.Namespace) -> int:
    loaded = _load(args)
    if loaded is None:
        return 1
    input_path, frontend_result, transform_result = loaded

    try:
        emit_result = emit_program(transform_result.program, EmitOptions())
    except EmitError as exc:
        sys.stderr.write(f"ERROR: Printing failed: {exc}\n")
        return 1

    output_path = Path(args.out) if args.out else input_path.with_suffix(".desugared.js")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(emit_result.source, encoding="utf-8")
    logger.info("wrote %s", output_path)

    diagnostics = _collect_diagnostics(frontend_result, transform_result)
    _print_diagnostics(diagnostics)

    has_errors = bool(frontend_result.parse.errors)
    if args.strict and frontend_result.issues:
        has_errors = True
    if args.strict and transform_result.diagnostics:
        has_errors = True

    return 1 if has_errors else 0


def check_command(args: argparse.Namespace) -> int:
    loaded = _load(args)
    if loaded is None:
        return 1
    input_path, frontend_result, transform_result = loaded

    comparison = compare_programs(frontend_result.parse.ast, transform_result.program)
    if comparison.equivalent:
        sys.stdout.write(
            f"OK {input_path}: {transform_result.rewritten} rewrite(s), "
            f"{comparison.original.describe()}\n"
        )
        return 0
    for difference in comparison.differences:
        sys.stderr.write(f"MISMATCH {input_path}: {difference}\n")
    return 1


def _add_common_arguments(command: argparse.ArgumentParser) -> None:
    command.add_argument("input", help="Path to the JavaScript file")
    command.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as errors and disable tolerant parsing.",
    )
    command.add_argument(
        "--module",
        action="store_true",
        help="Parse the input as an ES module (enables import/export syntax).",
    )
    command.add_argument(
        "--completion-observed",
        action="store_true",
        help="Refuse rewrites that could change the script's completion value (eval input).",
    )
    command.add_argument(
        "--allow-const-reassignment",
        action="store_true",
        help="Report reassigned const bindings instead of failing.",
    )
    command.add_argument(
        "--cache-dir",
        help="Directory for cached parse results (reused when the source is unchanged).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="condecl",
        description="Rewrite `if (let x = ...)` / `while (const x = ...)` into standard JavaScript",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Rewrite a single JS file")
    _add_common_arguments(convert_parser)
    convert_parser.add_argument(
        "--out",
        help="Output file path (defaults to the input with a .desugared.js suffix)",
    )
    convert_parser.set_defaults(func=convert_command)

    check_parser = subparsers.add_parser(
        "check", help="Evaluate a JS file before and after rewriting and compare the results"
    )
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=check_command)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
