"""
Control-flow queries over statement subtrees.

`collect_exits` reports the `return`/`break`/`continue` statements of a branch
that leave the branch itself, which is what a rewrite has to keep pointing at
the same targets. `completion_tails` reports the statements whose completion
value can become the value of a statement list, used to refuse rewrites in
positions where that value is observed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

_FUNCTION_TYPES = {"FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"}
_LOOP_TYPES = {
    "WhileStatement",
    "DoWhileStatement",
    "ForStatement",
    "ForInStatement",
    "ForOfStatement",
}
# Statements whose completion is empty, so they never replace an earlier value.
_TRANSPARENT_TYPES = {
    "VariableDeclaration",
    "FunctionDeclaration",
    "ClassDeclaration",
    "EmptyStatement",
    "ImportDeclaration",
}


class ExitKind(str, Enum):
    FALLTHROUGH = "fallthrough"
    RETURN = "return"
    BREAK = "break"
    CONTINUE = "continue"


@dataclass(frozen=True)
class ExitSignal:
    """A control transfer leaving a branch, or a plain fall-through."""

    kind: ExitKind
    label: Optional[str] = None
    has_value: bool = False
    node: Optional[Dict[str, Any]] = None

    @property
    def is_transfer(self) -> bool:
        return self.kind != ExitKind.FALLTHROUGH


FALLTHROUGH = ExitSignal(kind=ExitKind.FALLTHROUGH)


class _ExitCollector:
    def __init__(self) -> None:
        self.signals: List[ExitSignal] = []

    def visit(
        self,
        node: Any,
        *,
        in_loop: bool,
        in_switch: bool,
        labels: FrozenSet[str],
    ) -> None:
        if isinstance(node, list):
            for element in node:
                self.visit(element, in_loop=in_loop, in_switch=in_switch, labels=labels)
            return
        if not isinstance(node, dict):
            return

        node_type = node.get("type")
        if node_type in _FUNCTION_TYPES:
            return
        if node_type == "ReturnStatement":
            self.signals.append(
                ExitSignal(
                    kind=ExitKind.RETURN,
                    has_value=node.get("argument") is not None,
                    node=node,
                )
            )
            return
        if node_type in ("BreakStatement", "ContinueStatement"):
            label = (node.get("label") or {}).get("name")
            if label is not None:
                escapes = label not in labels
            elif node_type == "BreakStatement":
                escapes = not (in_loop or in_switch)
            else:
                escapes = not in_loop
            if escapes:
                kind = ExitKind.BREAK if node_type == "BreakStatement" else ExitKind.CONTINUE
                self.signals.append(ExitSignal(kind=kind, label=label, node=node))
            return
        if node_type == "LabeledStatement":
            name = (node.get("label") or {}).get("name")
            self.visit(
                node.get("body"),
                in_loop=in_loop,
                in_switch=in_switch,
                labels=labels | {name},
            )
            return

        nested_loop = in_loop or node_type in _LOOP_TYPES
        nested_switch = in_switch or node_type == "SwitchStatement"
        for key, value in node.items():
            if key in {"loc", "range"}:
                continue
            self.visit(value, in_loop=nested_loop, in_switch=nested_switch, labels=labels)


def collect_exits(node: Any) -> List[ExitSignal]:
    """
    List the control transfers that leave `node`.

    Nested functions are opaque. Unlabelled `break` is not reported from inside a
    nested loop or `switch`, unlabelled `continue` not from inside a nested loop,
    and labelled transfers are not reported when their label is defined within
    `node`. Returns `[FALLTHROUGH]` when nothing leaves.
    """
    collector = _ExitCollector()
    collector.visit(node, in_loop=False, in_switch=False, labels=frozenset())
    return collector.signals or [FALLTHROUGH]


def misdirected_continues(node: Any) -> List[Dict[str, Any]]:
    """
    Return the labelled `continue` statements in `node` whose label is defined
    within `node` on something other than a loop. JavaScript rejects those as
    early errors.
    """
    found: List[Dict[str, Any]] = []
    _find_misdirected(node, {}, found)
    return found


def _find_misdirected(node: Any, targets: Dict[str, bool], found: List[Dict[str, Any]]) -> None:
    if isinstance(node, list):
        for element in node:
            _find_misdirected(element, targets, found)
        return
    if not isinstance(node, dict):
        return

    node_type = node.get("type")
    if node_type in _FUNCTION_TYPES:
        # Labels do not cross function boundaries.
        _find_misdirected(node.get("body"), {}, found)
        return
    if node_type == "ContinueStatement":
        label = (node.get("label") or {}).get("name")
        if label is not None and targets.get(label) is False:
            found.append(node)
        return
    if node_type == "LabeledStatement":
        names = []
        body = node
        while isinstance(body, dict) and body.get("type") == "LabeledStatement":
            names.append((body.get("label") or {}).get("name"))
            body = body.get("body")
        is_loop = isinstance(body, dict) and body.get("type") in _LOOP_TYPES
        _find_misdirected(body, {**targets, **{name: is_loop for name in names}}, found)
        return

    for key, value in node.items():
        if key not in {"loc", "range"}:
            _find_misdirected(value, targets, found)


def completion_tails(statements: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the statements whose completion value may end up as the list's value."""
    tails: List[Dict[str, Any]] = []
    for statement in reversed(statements or []):
        _collect_tails(statement, tails)
        if statement.get("type") not in _TRANSPARENT_TYPES:
            break
    return tails


def _collect_tails(node: Optional[Dict[str, Any]], tails: List[Dict[str, Any]]) -> None:
    if not isinstance(node, dict) or node.get("type") in _TRANSPARENT_TYPES:
        return
    tails.append(node)
    node_type = node.get("type")
    if node_type == "BlockStatement":
        tails.extend(completion_tails(node.get("body", [])))
    elif node_type == "LabeledStatement":
        _collect_tails(node.get("body"), tails)
    elif node_type == "IfStatement":
        _collect_tails(node.get("consequent"), tails)
        _collect_tails(node.get("alternate"), tails)
    elif node_type == "TryStatement":
        _collect_tails(node.get("block"), tails)
        handler = node.get("handler") or {}
        _collect_tails(handler.get("body"), tails)
    elif node_type == "SwitchStatement":
        for case in node.get("cases", []):
            tails.extend(completion_tails(case.get("consequent", [])))
    elif node_type in _LOOP_TYPES:
        _collect_tails(node.get("body"), tails)


__all__ = [
    "ExitKind",
    "ExitSignal",
    "FALLTHROUGH",
    "collect_exits",
    "completion_tails",
    "misdirected_continues",
]
