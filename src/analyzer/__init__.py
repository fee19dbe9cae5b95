"""Semantic analysis helpers for JavaScript with conditional declarations."""

from .control_flow import (
    FALLTHROUGH,
    ExitKind,
    ExitSignal,
    collect_exits,
    completion_tails,
    misdirected_continues,
)
from .scope_tracker import (
    AnalysisIssue,
    AnalysisResult,
    Binding,
    BindingKind,
    Scope,
    ScopeType,
    SourcePosition,
    analyze_bindings,
    find_reassignments,
    source_position,
)

__all__ = [
    "AnalysisIssue",
    "AnalysisResult",
    "Binding",
    "BindingKind",
    "ExitKind",
    "ExitSignal",
    "FALLTHROUGH",
    "Scope",
    "ScopeType",
    "SourcePosition",
    "analyze_bindings",
    "collect_exits",
    "completion_tails",
    "find_reassignments",
    "misdirected_continues",
    "source_position",
]
