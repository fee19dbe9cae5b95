"""Reference evaluation of JavaScript trees, used to compare programs before and after rewriting."""

from .equivalence import Comparison, compare_programs
from .interpreter import (
    UNDEFINED,
    EvaluationError,
    EvaluationResult,
    Interpreter,
    JSObject,
    JSReferenceError,
    JSSyntaxError,
    JSThrow,
    JSTypeError,
    evaluate,
    is_truthy,
    to_string,
)

__all__ = [
    "Comparison",
    "EvaluationError",
    "EvaluationResult",
    "Interpreter",
    "JSObject",
    "JSReferenceError",
    "JSSyntaxError",
    "JSThrow",
    "JSTypeError",
    "UNDEFINED",
    "compare_programs",
    "evaluate",
    "is_truthy",
    "to_string",
]
