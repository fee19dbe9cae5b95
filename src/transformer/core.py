"""
Core rewriting logic for conditional declarations.

`if (let x = f()) A else B` becomes

    { let x = f(); if (x) A else B }

and `L: while (const x = f()) BODY` becomes

    { L: while (true) { const x = f(); if (!x) break; BODY } }

Both rewrites introduce a block and never a function, so `return`, `break` and
`continue` inside the branches keep their original targets without any
rewriting. The transformer works on esprima-compatible dictionaries, never
mutates its input and fails before producing any output when a binding cannot
be rewritten.
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from analyzer import (
    ExitSignal,
    collect_exits,
    completion_tails,
    find_reassignments,
    misdirected_continues,
)

logger = logging.getLogger(__name__)

_CONDITIONAL_TYPES = ("IfStatement", "WhileStatement")
_KIND_BY_TYPE = {"IfStatement": "if", "WhileStatement": "while"}


class TransformError(RuntimeError):
    """Raised when a node cannot be rewritten into standard syntax."""

    def __init__(self, message: str, node: Optional[Dict[str, Any]] = None):
        loc = ""
        if node and isinstance(node, dict):
            loc_meta = node.get("loc") or {}
            start = loc_meta.get("start") or {}
            line = start.get("line")
            column = start.get("column")
            if line is not None and column is not None:
                loc = f" (line {line}, column {column})"
        super().__init__(f"{message}{loc}")
        self.node = node

    @property
    def line(self) -> Optional[int]:
        return ((self.node or {}).get("loc") or {}).get("start", {}).get("line")

    @property
    def column(self) -> Optional[int]:
        return ((self.node or {}).get("loc") or {}).get("start", {}).get("column")


class InvalidBindingError(TransformError):
    """The declaration in the head binds a pattern, several names, or nothing."""


class ConstAssignmentError(InvalidBindingError):
    """A `const` binding from a conditional head is reassigned in a branch."""


class UnsupportedContextError(TransformError):
    """The conditional's completion value is observed by its surroundings."""


@dataclass(frozen=True)
class TransformOptions:
    """Switches controlling how programs are rewritten."""

    # Treat the program's own completion value as observed (eval/REPL input).
    completion_observed: bool = False
    allow_const_reassignment: bool = False


@dataclass(frozen=True)
class TransformContext:
    """Contextual information available during node transformation."""

    source_name: str
    options: TransformOptions = field(default_factory=TransformOptions)


@dataclass(frozen=True)
class DeclarationConditional:
    """An `if`/`while` statement whose test is a single `let`/`const` binding."""

    kind: str
    binding_kind: str
    binding_name: str
    initializer: Dict[str, Any]
    then_branch: Dict[str, Any]
    else_branch: Optional[Dict[str, Any]]
    node: Dict[str, Any]
    # Labels directly in front of the statement, outermost first.
    labels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TransformResult:
    block: Dict[str, Any]
    exits: List[ExitSignal]
    labels: Tuple[str, ...] = ()

    def as_statement(self) -> Dict[str, Any]:
        """The node replacing the original statement and its labels."""
        return _labeled(self.labels, self.block)


@dataclass(frozen=True)
class ProgramResult:
    program: Dict[str, Any]
    diagnostics: List[str]
    rewritten: int


def is_conditional_declaration(node: Any) -> bool:
    return (
        isinstance(node, dict)
        and node.get("type") in _CONDITIONAL_TYPES
        and (node.get("test") or {}).get("type") == "VariableDeclaration"
    )


def extract_conditional(
    node: Dict[str, Any], labels: Sequence[str] = ()
) -> Optional[DeclarationConditional]:
    """
    Recognise a conditional declaration and validate its binding.

    Returns None for ordinary `if`/`while` statements and any other node.

    Raises:
        InvalidBindingError: the head uses `var`, a destructuring pattern,
            several declarators, or omits the initializer.
    """
    if not is_conditional_declaration(node):
        return None
    declaration = node["test"]
    binding_kind = declaration.get("kind")
    if binding_kind not in ("let", "const"):
        raise InvalidBindingError(
            f"Only `let` and `const` may be declared in a condition, not `{binding_kind}`.",
            declaration,
        )
    declarators = declaration.get("declarations") or []
    if len(declarators) != 1:
        raise InvalidBindingError(
            f"A conditional declaration binds exactly one name, found {len(declarators)}.",
            declarators[1] if len(declarators) > 1 else declaration,
        )
    declarator = declarators[0]
    identifier = declarator.get("id") or {}
    if identifier.get("type") != "Identifier":
        raise InvalidBindingError(
            "Destructuring patterns are not supported in conditional declarations.",
            identifier or declarator,
        )
    if declarator.get("init") is None:
        raise InvalidBindingError(
            f"Conditional declaration of '{identifier.get('name')}' needs an initializer.",
            declarator,
        )

    kind = _KIND_BY_TYPE[node["type"]]
    return DeclarationConditional(
        kind=kind,
        binding_kind=binding_kind,
        binding_name=identifier["name"],
        initializer=declarator["init"],
        then_branch=node["consequent"] if kind == "if" else node["body"],
        else_branch=node.get("alternate") if kind == "if" else None,
        node=node,
        labels=tuple(labels),
    )


class ConditionalDeclarationTransformer:
    """Rewrites one conditional declaration into a block of standard syntax."""

    def __init__(self, *, context: Optional[TransformContext] = None):
        self.context = context or TransformContext(source_name="<input>")
        self.diagnostics: List[str] = []

    def transform(self, conditional: DeclarationConditional) -> TransformResult:
        self._check_reassignments(conditional)
        if conditional.kind == "if":
            result = self._transform_if(conditional)
        else:
            result = self._transform_while(conditional)
        self._verify_exit_targets(conditional, result)
        logger.debug(
            "%s: rewrote `%s (%s %s = ...)`%s",
            self.context.source_name,
            conditional.kind,
            conditional.binding_kind,
            conditional.binding_name,
            _format_location(conditional.node),
        )
        return result

    def _transform_if(self, conditional: DeclarationConditional) -> TransformResult:
        test = _identifier(conditional.binding_name)
        statement: Dict[str, Any] = {
            "type": "IfStatement",
            "test": test,
            "consequent": copy.deepcopy(conditional.then_branch),
            "alternate": copy.deepcopy(conditional.else_branch),
        }
        block = _block(
            [_declaration(conditional), statement],
            origin=conditional.node,
        )
        exits = collect_exits([conditional.then_branch, conditional.else_branch])
        return TransformResult(block=block, exits=exits, labels=conditional.labels)

    def _transform_while(self, conditional: DeclarationConditional) -> TransformResult:
        guard = {
            "type": "IfStatement",
            "test": {
                "type": "UnaryExpression",
                "operator": "!",
                "argument": _identifier(conditional.binding_name),
                "prefix": True,
            },
            "consequent": {"type": "BreakStatement", "label": None},
            "alternate": None,
        }
        loop: Dict[str, Any] = {
            "type": "WhileStatement",
            "test": {"type": "Literal", "value": True, "raw": "true"},
            "body": _block(
                [
                    _declaration(conditional),
                    guard,
                    copy.deepcopy(conditional.then_branch),
                ]
            ),
        }
        block = _block([_labeled(conditional.labels, loop)], origin=conditional.node)
        exits = collect_exits(conditional.then_branch)
        return TransformResult(block=block, exits=exits)

    def _check_reassignments(self, conditional: DeclarationConditional) -> None:
        if conditional.binding_kind != "const":
            return
        branches = [conditional.then_branch]
        if conditional.else_branch is not None:
            branches.append(conditional.else_branch)
        writes = find_reassignments(
            conditional.binding_name, branches, declaration=conditional.node["test"]
        )
        if not writes:
            return
        message = f"Assignment to constant binding '{conditional.binding_name}'."
        if not self.context.options.allow_const_reassignment:
            raise ConstAssignmentError(message, writes[0])
        for write in writes:
            self.diagnostics.append(f"{message}{_format_location(write)}")

    def _verify_exit_targets(
        self, conditional: DeclarationConditional, result: TransformResult
    ) -> None:
        original = _labeled(conditional.labels, conditional.node)
        rewritten = result.as_statement()
        misdirected = misdirected_continues(rewritten)
        if misdirected:
            raise TransformError(
                "Rewrite would leave `continue` targeting a label that is not on a loop.",
                misdirected[0],
            )
        before = Counter(_exit_key(signal) for signal in collect_exits(original))
        after = Counter(_exit_key(signal) for signal in collect_exits(rewritten))
        if before != after:
            raise TransformError(
                "Rewrite changed the targets of control transfers.", conditional.node
            )


def _exit_key(signal: ExitSignal):
    return signal.kind, signal.label, signal.has_value


class ProgramTransformer:
    """Walks a Program and rewrites every conditional declaration bottom-up."""

    def __init__(self, *, context: TransformContext):
        self.context = context
        self.diagnostics: List[str] = []
        self.rewritten = 0
        self._observed: Set[int] = set()
        self._conditionals = ConditionalDeclarationTransformer(context=context)

    def transform_program(self, program: Dict[str, Any]) -> Dict[str, Any]:
        if program.get("type") != "Program":
            raise TransformError("Expected Program node at the root.", program)
        if self.context.options.completion_observed:
            self._mark_observed(program.get("body", []))
        result = self._rewrite(program)
        self.diagnostics.extend(self._conditionals.diagnostics)
        return result

    def _mark_observed(self, statements: List[Dict[str, Any]]) -> None:
        self._observed.update(id(node) for node in completion_tails(statements))

    def _rewrite(self, node: Any) -> Any:
        if isinstance(node, list):
            return [self._rewrite(element) for element in node]
        if not isinstance(node, dict):
            return node

        node_type = node.get("type")
        if node_type == "DoExpression":
            self._mark_observed((node.get("body") or {}).get("body", []))
        if node_type == "LabeledStatement":
            labels, body = _label_chain(node)
            if is_conditional_declaration(body):
                return self._rewrite_conditional(body, labels=labels)
        if is_conditional_declaration(node):
            return self._rewrite_conditional(node)

        return {
            key: copy.deepcopy(value) if key in {"loc", "range"} else self._rewrite(value)
            for key, value in node.items()
        }

    def _rewrite_conditional(
        self, node: Dict[str, Any], labels: Tuple[str, ...] = ()
    ) -> Dict[str, Any]:
        conditional = extract_conditional(node, labels=labels)
        if conditional is None:
            raise TransformError("Expected an if/while statement with a declaration test.", node)
        if id(node) in self._observed:
            raise UnsupportedContextError(
                "Conditional declaration in a position whose completion value is used; "
                "rewriting it would change that value.",
                node,
            )
        conditional = replace(
            conditional,
            initializer=self._rewrite(conditional.initializer),
            then_branch=self._rewrite(conditional.then_branch),
            else_branch=self._rewrite(conditional.else_branch),
        )
        result = self._conditionals.transform(conditional)
        self.rewritten += 1
        return result.as_statement()


def _format_location(node: Optional[Dict[str, Any]]) -> str:
    if not node or not isinstance(node, dict):
        return ""
    start = (node.get("loc") or {}).get("start") or {}
    line = start.get("line")
    column = start.get("column")
    if line is None or column is None:
        return ""
    return f" (line {line}, column {column})"


def _identifier(name: str) -> Dict[str, Any]:
    return {"type": "Identifier", "name": name}


def _block(body: List[Dict[str, Any]], origin: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    block: Dict[str, Any] = {"type": "BlockStatement", "body": body}
    if origin is not None and origin.get("loc"):
        block["loc"] = copy.deepcopy(origin["loc"])
    return block


def _labeled(labels: Sequence[str], body: Dict[str, Any]) -> Dict[str, Any]:
    for label in reversed(labels):
        body = {"type": "LabeledStatement", "label": _identifier(label), "body": body}
    return body


def _label_chain(node: Dict[str, Any]) -> Tuple[Tuple[str, ...], Any]:
    """Split `A: B: stmt` into `("A", "B")` and `stmt`."""
    labels: List[str] = []
    while isinstance(node, dict) and node.get("type") == "LabeledStatement":
        labels.append((node.get("label") or {}).get("name"))
        node = node.get("body")
    return tuple(labels), node


def _declaration(conditional: DeclarationConditional) -> Dict[str, Any]:
    return {
        "type": "VariableDeclaration",
        "declarations": [
            {
                "type": "VariableDeclarator",
                "id": _identifier(conditional.binding_name),
                "init": copy.deepcopy(conditional.initializer),
            }
        ],
        "kind": conditional.binding_kind,
    }


def transform_conditional(
    node: Dict[str, Any], *, source_name: str = "<input>", options: Optional[TransformOptions] = None
) -> TransformResult:
    """
    Rewrite a single `IfStatement`/`WhileStatement` whose test is a declaration.
    Nested conditionals inside it are left as they are.
    """
    conditional = extract_conditional(node)
    if conditional is None:
        raise TransformError("Expected an if/while statement with a declaration test.", node)
    transformer = ConditionalDeclarationTransformer(
        context=TransformContext(source_name=source_name, options=options or TransformOptions())
    )
    return transformer.transform(conditional)


def transform_program(
    program: Dict[str, Any],
    *,
    source_name: str = "<input>",
    options: Optional[TransformOptions] = None,
) -> ProgramResult:
    """
    Convenience wrapper building a transformer instance and returning the
    rewritten program along with collected diagnostics.
    """
    context = TransformContext(source_name=source_name, options=options or TransformOptions())
    transformer = ProgramTransformer(context=context)
    rewritten_program = transformer.transform_program(program)
    return ProgramResult(
        program=rewritten_program,
        diagnostics=transformer.diagnostics,
        rewritten=transformer.rewritten,
    )


__all__ = [
    "ConditionalDeclarationTransformer",
    "ConstAssignmentError",
    "DeclarationConditional",
    "InvalidBindingError",
    "ProgramResult",
    "ProgramTransformer",
    "TransformContext",
    "TransformError",
    "TransformOptions",
    "TransformResult",
    "UnsupportedContextError",
    "extract_conditional",
    "is_conditional_declaration",
    "transform_conditional",
    "transform_program",
]
