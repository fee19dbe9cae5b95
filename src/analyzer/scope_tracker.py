"""
Scope analysis for JavaScript ASTs that may contain conditional declarations.

The analyzer walks an esprima-compatible AST, builds a tree of lexical scopes,
and records bindings introduced by `var`, `let`, `const`, `function`, `class`,
imports, parameters and the heads of `if (let x = ...)` / `while (const x = ...)`
statements. Every write to an identifier (assignment, update, `for-in`/`for-of`
head) is recorded on the scope it occurs in and resolved once the walk is
complete, which lets the analyzer flag reassignments of `const` bindings before
any rewriting happens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class ScopeType(str, Enum):
    GLOBAL = "global"
    FUNCTION = "function"
    BLOCK = "block"
    CATCH = "catch"
    CLASS = "class"
    CONDITION = "condition"


class BindingKind(str, Enum):
    VAR = "var"
    LET = "let"
    CONST = "const"
    FUNCTION = "function"
    CLASS = "class"
    PARAMETER = "parameter"
    CATCH_PARAMETER = "catch_parameter"
    IMPORT = "import"


@dataclass(frozen=True)
class SourcePosition:
    line: Optional[int]
    column: Optional[int]


@dataclass(frozen=True)
class Binding:
    """Represents a single identifier binding within a scope."""

    name: str
    kind: BindingKind
    loc: SourcePosition
    node: Dict[str, Any]


@dataclass
class Scope:
    """A lexical scope containing zero or more bindings and child scopes."""

    scope_id: str
    scope_type: ScopeType
    node: Dict[str, Any]
    parent: Optional["Scope"] = None
    bindings: Dict[str, List[Binding]] = field(default_factory=dict)
    children: List["Scope"] = field(default_factory=list)
    writes: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def add_binding(self, binding: Binding) -> None:
        """Register a binding within the current scope."""
        self.bindings.setdefault(binding.name, []).append(binding)

    def add_child(self, child: "Scope") -> None:
        self.children.append(child)

    def resolve(self, name: str) -> Optional[Tuple["Scope", Binding]]:
        """Find the innermost scope (starting here) that binds `name`."""
        scope: Optional[Scope] = self
        while scope is not None:
            bindings = scope.bindings.get(name)
            if bindings:
                return scope, bindings[0]
            scope = scope.parent
        return None

    def function_scope(self) -> "Scope":
        scope = self
        while scope.parent is not None and scope.scope_type not in (
            ScopeType.FUNCTION,
            ScopeType.GLOBAL,
        ):
            scope = scope.parent
        return scope


@dataclass(frozen=True)
class AnalysisIssue:
    code: str
    message: str
    loc: SourcePosition


@dataclass(frozen=True)
class AnalysisResult:
    source_name: str
    root_scope: Scope
    issues: List[AnalysisIssue]

    def flatten_scopes(self) -> Iterable[Scope]:
        """Yield scopes in depth-first order."""
        stack = [self.root_scope]
        while stack:
            scope = stack.pop()
            yield scope
            stack.extend(reversed(scope.children))


def source_position(node: Optional[Dict[str, Any]]) -> SourcePosition:
    loc = (node or {}).get("loc") or {}
    start = loc.get("start") or {}
    return SourcePosition(line=start.get("line"), column=start.get("column"))


class _BindingAnalyzer:
    def __init__(self, source_name: str) -> None:
        self._source_name = source_name
        self._scope_counter = 0
        self._issues: List[AnalysisIssue] = []

    def analyze(self, ast: Dict[str, Any]) -> AnalysisResult:
        root_scope = self._new_scope(ScopeType.GLOBAL, ast, parent=None)
        self._visit(ast, root_scope)
        self._check_writes(root_scope)
        return AnalysisResult(
            source_name=self._source_name,
            root_scope=root_scope,
            issues=self._issues,
        )

    def analyze_fragment(self, root_scope: Scope, nodes: Iterable[Any]) -> Scope:
        """Walk `nodes` as if they were nested directly inside `root_scope`."""
        for node in nodes:
            self._visit(node, root_scope)
        return root_scope

    # ------------------------------------------------------------------ helpers

    def _new_scope(
        self, scope_type: ScopeType, node: Dict[str, Any], parent: Optional[Scope]
    ) -> Scope:
        scope_id = f"S{self._scope_counter}"
        self._scope_counter += 1
        scope = Scope(scope_id=scope_id, scope_type=scope_type, node=node, parent=parent)
        if parent:
            parent.add_child(scope)
        return scope

    def _add_issue(self, code: str, message: str, node: Dict[str, Any]) -> None:
        self._issues.append(
            AnalysisIssue(code=code, message=message, loc=source_position(node))
        )

    def _bind(self, scope: Scope, identifier: Any, kind: BindingKind) -> None:
        if isinstance(identifier, dict) and identifier.get("type") == "Identifier":
            scope.add_binding(
                Binding(
                    name=identifier.get("name"),
                    kind=kind,
                    loc=source_position(identifier),
                    node=identifier,
                )
            )

    def _bind_pattern(self, scope: Scope, pattern: Any, kind: BindingKind) -> None:
        for identifier in _pattern_identifiers(pattern):
            self._bind(scope, identifier, kind)

    def _record_write(self, target: Any, scope: Scope) -> None:
        for identifier in _pattern_identifiers(target):
            scope.writes.append((identifier.get("name"), identifier))

    def _check_writes(self, scope: Scope) -> None:
        for name, node in scope.writes:
            resolved = scope.resolve(name)
            if resolved and resolved[1].kind == BindingKind.CONST:
                self._add_issue(
                    code="CONST_REASSIGNMENT",
                    message=f"Assignment to constant binding '{name}'.",
                    node=node,
                )
        for child in scope.children:
            self._check_writes(child)

    def _visit(self, node: Any, scope: Scope) -> None:
        if node is None:
            return
        if isinstance(node, list):
            for element in node:
                self._visit(element, scope)
            return
        if not isinstance(node, dict):
            return

        handler = getattr(self, f"_visit_{node.get('type')}", None)
        if handler:
            handler(node, scope)
        else:
            self._generic_visit(node, scope)

    def _generic_visit(self, node: Dict[str, Any], scope: Scope) -> None:
        for key, value in node.items():
            if key in {"loc", "range"}:
                continue
            self._visit(value, scope)

    def _visit_function(self, node: Dict[str, Any], scope: Scope) -> None:
        function_scope = self._new_scope(ScopeType.FUNCTION, node, scope)
        for param in node.get("params", []):
            self._register_parameter(param, function_scope)
        self._visit(node.get("body"), function_scope)

    # ----------------------------------------------------------------- visitors

    def _visit_Program(self, node: Dict[str, Any], scope: Scope) -> None:
        self._visit(node.get("body", []), scope)

    def _visit_BlockStatement(self, node: Dict[str, Any], scope: Scope) -> None:
        block_scope = self._new_scope(ScopeType.BLOCK, node, scope)
        self._visit(node.get("body", []), block_scope)

    def _visit_VariableDeclaration(self, node: Dict[str, Any], scope: Scope) -> None:
        kind = BindingKind(node.get("kind", "var"))
        target = scope.function_scope() if kind == BindingKind.VAR else scope
        for declarator in node.get("declarations", []):
            self._bind_pattern(target, declarator.get("id"), kind)
            # Visit initializer to catch nested functions etc.
            self._visit(declarator.get("init"), scope)

    def _visit_FunctionDeclaration(self, node: Dict[str, Any], scope: Scope) -> None:
        self._bind(scope, node.get("id"), BindingKind.FUNCTION)
        self._visit_function(node, scope)

    def _visit_FunctionExpression(self, node: Dict[str, Any], scope: Scope) -> None:
        function_scope = self._new_scope(ScopeType.FUNCTION, node, scope)
        # Named function expressions bind the name within the inner scope.
        self._bind(function_scope, node.get("id"), BindingKind.FUNCTION)
        for param in node.get("params", []):
            self._register_parameter(param, function_scope)
        self._visit(node.get("body"), function_scope)

    def _visit_ArrowFunctionExpression(self, node: Dict[str, Any], scope: Scope) -> None:
        self._visit_function(node, scope)

    def _visit_ClassDeclaration(self, node: Dict[str, Any], scope: Scope) -> None:
        self._bind(scope, node.get("id"), BindingKind.CLASS)
        class_scope = self._new_scope(ScopeType.CLASS, node, scope)
        self._visit(node.get("superClass"), scope)
        self._visit(node.get("body"), class_scope)

    def _visit_ImportDeclaration(self, node: Dict[str, Any], scope: Scope) -> None:
        for specifier in node.get("specifiers", []):
            self._bind(scope, specifier.get("local"), BindingKind.IMPORT)

    def _visit_IfStatement(self, node: Dict[str, Any], scope: Scope) -> None:
        test = node.get("test") or {}
        if test.get("type") != "VariableDeclaration":
            self._generic_visit(node, scope)
            return
        condition_scope = self._new_scope(ScopeType.CONDITION, node, scope)
        self._visit_VariableDeclaration(test, condition_scope)
        self._visit(node.get("consequent"), condition_scope)
        self._visit(node.get("alternate"), condition_scope)

    def _visit_WhileStatement(self, node: Dict[str, Any], scope: Scope) -> None:
        test = node.get("test") or {}
        if test.get("type") != "VariableDeclaration":
            self._generic_visit(node, scope)
            return
        condition_scope = self._new_scope(ScopeType.CONDITION, node, scope)
        self._visit_VariableDeclaration(test, condition_scope)
        self._visit(node.get("body"), condition_scope)

    def _visit_loop_with_head(self, node: Dict[str, Any], scope: Scope) -> None:
        head = node.get("init") if node.get("type") == "ForStatement" else node.get("left")
        loop_scope = self._new_scope(ScopeType.BLOCK, node, scope)
        if isinstance(head, dict) and head.get("type") == "VariableDeclaration":
            self._visit_VariableDeclaration(head, loop_scope)
        elif node.get("type") != "ForStatement":
            self._record_write(head, scope)
        else:
            self._visit(head, loop_scope)
        for key in ("test", "update", "right", "body"):
            self._visit(node.get(key), loop_scope)

    _visit_ForStatement = _visit_loop_with_head
    _visit_ForInStatement = _visit_loop_with_head
    _visit_ForOfStatement = _visit_loop_with_head

    def _visit_AssignmentExpression(self, node: Dict[str, Any], scope: Scope) -> None:
        left = node.get("left")
        self._record_write(left, scope)
        if isinstance(left, dict) and left.get("type") == "MemberExpression":
            self._visit(left, scope)
        self._visit(node.get("right"), scope)

    def _visit_UpdateExpression(self, node: Dict[str, Any], scope: Scope) -> None:
        argument = node.get("argument")
        self._record_write(argument, scope)
        if isinstance(argument, dict) and argument.get("type") == "MemberExpression":
            self._visit(argument, scope)

    def _visit_CallExpression(self, node: Dict[str, Any], scope: Scope) -> None:
        callee = node.get("callee")
        if (
            isinstance(callee, dict)
            and callee.get("type") == "Identifier"
            and callee.get("name") == "eval"
        ):
            self._add_issue(
                code="EVAL_CALL",
                message="Use of eval makes static analysis unreliable.",
                node=callee,
            )
        self._visit(callee, scope)
        self._visit(node.get("arguments", []), scope)

    def _visit_TryStatement(self, node: Dict[str, Any], scope: Scope) -> None:
        self._visit(node.get("block"), scope)
        handler = node.get("handler")
        if isinstance(handler, dict):
            self._visit_CatchClause(handler, scope)
        self._visit(node.get("finalizer"), scope)

    def _visit_CatchClause(self, node: Dict[str, Any], scope: Scope) -> None:
        catch_scope = self._new_scope(ScopeType.CATCH, node, scope)
        self._bind_pattern(catch_scope, node.get("param"), BindingKind.CATCH_PARAMETER)
        self._visit(node.get("body"), catch_scope)

    def _visit_WithStatement(self, node: Dict[str, Any], scope: Scope) -> None:
        self._add_issue(
            code="WITH_STATEMENT",
            message="`with` statement changes scope resolution dynamically.",
            node=node,
        )
        self._visit(node.get("object"), scope)
        self._visit(node.get("body"), scope)

    def _register_parameter(self, node: Dict[str, Any], scope: Scope) -> None:
        self._bind_pattern(scope, node, BindingKind.PARAMETER)
        if isinstance(node, dict) and node.get("type") == "AssignmentPattern":
            self._visit(node.get("right"), scope)


def _pattern_identifiers(pattern: Any) -> List[Dict[str, Any]]:
    """Return the Identifier nodes a binding or assignment target introduces."""
    if not isinstance(pattern, dict):
        return []
    node_type = pattern.get("type")
    if node_type == "Identifier":
        return [pattern]
    if node_type == "ObjectPattern":
        found: List[Dict[str, Any]] = []
        for prop in pattern.get("properties", []):
            target = prop.get("argument") if prop.get("type") == "RestElement" else prop.get("value")
            found.extend(_pattern_identifiers(target))
        return found
    if node_type == "ArrayPattern":
        found = []
        for element in pattern.get("elements", []):
            found.extend(_pattern_identifiers(element))
        return found
    if node_type == "AssignmentPattern":
        return _pattern_identifiers(pattern.get("left"))
    if node_type == "RestElement":
        return _pattern_identifiers(pattern.get("argument"))
    if node_type == "VariableDeclaration":
        found = []
        for declarator in pattern.get("declarations", []):
            found.extend(_pattern_identifiers(declarator.get("id")))
        return found
    return []


def analyze_bindings(ast: Dict[str, Any], *, source_name: str = "<input>") -> AnalysisResult:
    """
    Run scope and binding analysis on a JavaScript AST.

    Args:
        ast: esprima-compatible AST (result of `parse_js`).
        source_name: Label for diagnostics and reporting.

    Returns:
        AnalysisResult with the scope tree and analysis issues.
    """
    analyzer = _BindingAnalyzer(source_name=source_name)
    return analyzer.analyze(ast)


def find_reassignments(
    name: str, nodes: Iterable[Any], *, declaration: Optional[Dict[str, Any]] = None
) -> List[Dict[str, Any]]:
    """
    Return the write sites inside `nodes` that target the binding `name`
    introduced just outside them, skipping writes to shadowing bindings.
    """
    analyzer = _BindingAnalyzer(source_name="<fragment>")
    root = analyzer._new_scope(ScopeType.CONDITION, declaration or {}, parent=None)
    root.add_binding(
        Binding(name=name, kind=BindingKind.CONST, loc=source_position(declaration), node=declaration or {})
    )
    analyzer.analyze_fragment(root, nodes)

    found: List[Dict[str, Any]] = []
    stack = [root]
    while stack:
        scope = stack.pop()
        for write_name, node in scope.writes:
            if write_name != name:
                continue
            resolved = scope.resolve(name)
            if resolved is not None and resolved[0] is root:
                found.append(node)
        stack.extend(scope.children)
    found.sort(key=lambda item: tuple(item.get("range") or (0, 0)))
    return found


__all__ = [
    "AnalysisResult",
    "AnalysisIssue",
    "Binding",
    "BindingKind",
    "Scope",
    "ScopeType",
    "SourcePosition",
    "analyze_bindings",
    "find_reassignments",
    "source_position",
]
