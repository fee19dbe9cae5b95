"""
Serialize ESTree programs back to JavaScript source, ready for writing to disk.

The writer understands standard ES2015+ statements and expressions plus the
conditional declaration heads (`if (let x = f())`), so both original and
rewritten trees can be printed. Parentheses are inserted from an operator
precedence table rather than copied from the input; comments and original
formatting are not preserved.
"""

from __future__ import annotations

import io
import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

_PRECEDENCE = {
    "SequenceExpression": 0,
    "YieldExpression": 1,
    "AssignmentExpression": 1,
    "ArrowFunctionExpression": 1,
    "ConditionalExpression": 2,
    "UnaryExpression": 15,
    "AwaitExpression": 15,
    "UpdateExpression": 16,
    "CallExpression": 18,
    "NewExpression": 18,
    "TaggedTemplateExpression": 19,
    "MemberExpression": 19,
}

_BINARY_PRECEDENCE = {
    "??": 3,
    "||": 4,
    "&&": 5,
    "|": 6,
    "^": 7,
    "&": 8,
    "==": 9,
    "!=": 9,
    "===": 9,
    "!==": 9,
    "<": 10,
    ">": 10,
    "<=": 10,
    ">=": 10,
    "instanceof": 10,
    "in": 10,
    "<<": 11,
    ">>": 11,
    ">>>": 11,
    "+": 12,
    "-": 12,
    "*": 13,
    "/": 13,
    "%": 13,
    "**": 14,
}

_PRIMARY = 20
_WORD_OPERATORS = {"typeof", "void", "delete"}
# Statement-level expressions starting with these must be parenthesised.
_AMBIGUOUS_STARTS = ("{", "function", "class", "let [", "async function")


class EmitError(RuntimeError):
    """Raised when a node has no JavaScript rendering."""

    def __init__(self, message: str, node: Optional[Dict[str, Any]] = None):
        start = ((node or {}).get("loc") or {}).get("start") or {}
        loc = ""
        if start.get("line") is not None:
            loc = f" (line {start.get('line')}, column {start.get('column')})"
        super().__init__(f"{message}{loc}")
        self.node = node


@dataclass(frozen=True)
class EmitOptions:
    indent: str = "  "
    trailing_newline: bool = True


@dataclass(frozen=True)
class EmitResult:
    source: str
    statements: int


class _Writer:
    def __init__(self, options: EmitOptions):
        self.options = options
        self.lines: List[str] = []
        # Set while printing a `for` initializer, where a bare `in` is not allowed.
        self._no_in = False

    # ------------------------------------------------------------------ helpers

    def _line(self, depth: int, text: str) -> None:
        self.lines.append(self.options.indent * depth + text)

    def _nested(self, body: List[Dict[str, Any]], depth: int) -> str:
        """Render a braced statement list usable inside an expression."""
        if not body:
            return "{}"
        writer = _Writer(self.options)
        writer.statements(body, depth + 1)
        return "{\n" + "\n".join(writer.lines) + "\n" + self.options.indent * depth + "}"

    def statements(self, body: List[Dict[str, Any]], depth: int) -> None:
        for statement in body:
            self.statement(statement, depth)

    def statement(self, node: Dict[str, Any], depth: int) -> None:
        handler = getattr(self, f"_stmt_{node.get('type')}", None)
        if handler is None:
            raise EmitError(f"Unsupported statement node: {node.get('type')}", node)
        handler(node, depth)

    def expression(self, node: Dict[str, Any], depth: int, min_precedence: int = 0) -> str:
        handler = getattr(self, f"_expr_{node.get('type')}", None)
        if handler is None:
            raise EmitError(f"Unsupported expression node: {node.get('type')}", node)
        guard_in = self._no_in and node.get("type") == "BinaryExpression" and node.get("operator") == "in"
        if guard_in:
            self._no_in = False
        try:
            text = handler(node, depth)
        finally:
            if guard_in:
                self._no_in = True
        if guard_in or _precedence(node) < min_precedence:
            return f"({text})"
        return text

    def _clause(self, header: str, body: Dict[str, Any], depth: int) -> None:
        if body.get("type") == "BlockStatement":
            self._line(depth, f"{header} {{" if header else "{")
            self.statements(body.get("body", []), depth + 1)
            self._line(depth, "}")
        else:
            self._line(depth, header)
            self.statement(body, depth + 1)

    def _else_lead(self, depth: int) -> str:
        closing = self.options.indent * depth + "}"
        if self.lines and self.lines[-1] == closing:
            self.lines.pop()
            return "} else"
        return "else"

    def _head(self, node: Optional[Dict[str, Any]], depth: int) -> str:
        """Render a loop or condition head: an expression or a bare declaration."""
        if node is None:
            return ""
        if node.get("type") == "VariableDeclaration":
            return self._declaration(node, depth)
        return self.expression(node, depth)

    def _declaration(self, node: Dict[str, Any], depth: int) -> str:
        parts = []
        for declarator in node.get("declarations", []):
            target = self.pattern(declarator.get("id"), depth)
            init = declarator.get("init")
            if init is not None:
                target += " = " + self.expression(init, depth, 1)
            parts.append(target)
        return f"{node.get('kind', 'var')} " + ", ".join(parts)

    def pattern(self, node: Optional[Dict[str, Any]], depth: int) -> str:
        if node is None:
            return ""
        node_type = node.get("type")
        if node_type == "ObjectPattern":
            return "{" + ", ".join(self._property(prop, depth) for prop in node.get("properties", [])) + "}"
        if node_type == "ArrayPattern":
            return "[" + ", ".join(self.pattern(element, depth) for element in node.get("elements", [])) + "]"
        if node_type == "AssignmentPattern":
            return self.pattern(node.get("left"), depth) + " = " + self.expression(node.get("right"), depth, 1)
        if node_type == "RestElement":
            return "..." + self.pattern(node.get("argument"), depth)
        return self.expression(node, depth, 1)

    def _params(self, node: Dict[str, Any], depth: int) -> str:
        return "(" + ", ".join(self.pattern(param, depth) for param in node.get("params", [])) + ")"

    def _function(self, node: Dict[str, Any], depth: int) -> str:
        prefix = "async function" if node.get("async") else "function"
        if node.get("generator"):
            prefix += "*"
        name = (node.get("id") or {}).get("name")
        head = f"{prefix} {name}" if name else prefix
        body = (node.get("body") or {}).get("body", [])
        return f"{head}{self._params(node, depth)} {self._nested(body, depth)}"

    def _class(self, node: Dict[str, Any], depth: int) -> str:
        head = "class"
        name = (node.get("id") or {}).get("name")
        if name:
            head += f" {name}"
        if node.get("superClass") is not None:
            head += " extends " + self.expression(node["superClass"], depth, _PRECEDENCE["MemberExpression"])
        members = (node.get("body") or {}).get("body", [])
        if not members:
            return head + " {}"
        inner = self.options.indent * (depth + 1)
        rendered = [inner + self._method(member, depth + 1) for member in members]
        return head + " {\n" + "\n".join(rendered) + "\n" + self.options.indent * depth + "}"

    def _method(self, node: Dict[str, Any], depth: int) -> str:
        value = node.get("value") or {}
        key = self._key(node, depth)
        prefix = "static " if node.get("static") else ""
        if node.get("kind") in ("get", "set"):
            prefix += node["kind"] + " "
        if value.get("async"):
            prefix += "async "
        if value.get("generator"):
            prefix += "*"
        body = (value.get("body") or {}).get("body", [])
        return f"{prefix}{key}{self._params(value, depth)} {self._nested(body, depth)}"

    def _key(self, node: Dict[str, Any], depth: int) -> str:
        key = node.get("key") or {}
        if node.get("computed"):
            return "[" + self.expression(key, depth, 1) + "]"
        return self.expression(key, depth)

    def _property(self, node: Dict[str, Any], depth: int) -> str:
        node_type = node.get("type")
        if node_type in ("SpreadElement", "RestElement"):
            return "..." + self.pattern(node.get("argument"), depth)
        if node.get("kind") in ("get", "set") or node.get("method"):
            return self._method(node, depth)
        value = node.get("value") or {}
        if node.get("shorthand"):
            return self.pattern(value, depth)
        return f"{self._key(node, depth)}: {self.pattern(value, depth)}"

    # ----------------------------------------------------------- statement nodes

    def _stmt_Program(self, node: Dict[str, Any], depth: int) -> None:
        self.statements(node.get("body", []), depth)

    def _stmt_BlockStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._clause("", node, depth)

    def _stmt_EmptyStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, ";")

    def _stmt_DebuggerStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, "debugger;")

    def _stmt_ExpressionStatement(self, node: Dict[str, Any], depth: int) -> None:
        text = self.expression(node.get("expression"), depth)
        if text.startswith(_AMBIGUOUS_STARTS):
            text = f"({text})"
        self._line(depth, text + ";")

    def _stmt_VariableDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, self._declaration(node, depth) + ";")

    def _stmt_FunctionDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, self._function(node, depth))

    def _stmt_ClassDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, self._class(node, depth))

    def _stmt_ReturnStatement(self, node: Dict[str, Any], depth: int) -> None:
        argument = node.get("argument")
        if argument is None:
            self._line(depth, "return;")
        else:
            self._line(depth, f"return {self.expression(argument, depth)};")

    def _stmt_ThrowStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, f"throw {self.expression(node.get('argument'), depth)};")

    def _stmt_BreakStatement(self, node: Dict[str, Any], depth: int) -> None:
        label = (node.get("label") or {}).get("name")
        self._line(depth, f"break {label};" if label else "break;")

    def _stmt_ContinueStatement(self, node: Dict[str, Any], depth: int) -> None:
        label = (node.get("label") or {}).get("name")
        self._line(depth, f"continue {label};" if label else "continue;")

    def _stmt_LabeledStatement(self, node: Dict[str, Any], depth: int) -> None:
        label = node["label"]["name"]
        start = len(self.lines)
        self.statement(node.get("body"), depth)
        first = self.lines[start]
        stripped = first.lstrip()
        self.lines[start] = first[: len(first) - len(stripped)] + f"{label}: " + stripped

    def _stmt_IfStatement(self, node: Dict[str, Any], depth: int, lead: str = "") -> None:
        self._clause(f"{lead}if ({self._head(node.get('test'), depth)})", node["consequent"], depth)
        alternate = node.get("alternate")
        if alternate is None:
            return
        lead = self._else_lead(depth)
        if alternate.get("type") == "IfStatement":
            self._stmt_IfStatement(alternate, depth, lead=lead + " ")
        else:
            self._clause(lead, alternate, depth)

    def _stmt_WhileStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._clause(f"while ({self._head(node.get('test'), depth)})", node["body"], depth)

    def _stmt_DoWhileStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._clause("do", node["body"], depth)
        test = self.expression(node.get("test"), depth)
        closing = self.options.indent * depth + "}"
        if self.lines[-1] == closing:
            self.lines[-1] = closing + f" while ({test});"
        else:
            self._line(depth, f"while ({test});")

    def _stmt_ForStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._no_in = True
        try:
            init = self._head(node.get("init"), depth)
        finally:
            self._no_in = False
        test = self._head(node.get("test"), depth)
        update = self._head(node.get("update"), depth)
        self._clause(f"for ({init}; {test}; {update})", node["body"], depth)

    def _stmt_ForInStatement(self, node: Dict[str, Any], depth: int) -> None:
        left = self._for_left(node.get("left"), depth)
        self._clause(f"for ({left} in {self.expression(node.get('right'), depth)})", node["body"], depth)

    def _stmt_ForOfStatement(self, node: Dict[str, Any], depth: int) -> None:
        left = self._for_left(node.get("left"), depth)
        right = self.expression(node.get("right"), depth, 1)
        self._clause(f"for ({left} of {right})", node["body"], depth)

    def _for_left(self, node: Dict[str, Any], depth: int) -> str:
        if node.get("type") == "VariableDeclaration":
            return self._declaration(node, depth)
        return self.pattern(node, depth)

    def _stmt_TryStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._clause("try", node["block"], depth)
        handler = node.get("handler")
        if handler is not None:
            lead = self._else_lead(depth).replace("else", "catch")
            param = handler.get("param")
            header = f"{lead} ({self.pattern(param, depth)})" if param else lead
            self._clause(header, handler["body"], depth)
        finalizer = node.get("finalizer")
        if finalizer is not None:
            lead = self._else_lead(depth).replace("else", "finally")
            self._clause(lead, finalizer, depth)

    def _stmt_SwitchStatement(self, node: Dict[str, Any], depth: int) -> None:
        self._line(depth, f"switch ({self.expression(node.get('discriminant'), depth)}) {{")
        for case in node.get("cases", []):
            test = case.get("test")
            label = "default:" if test is None else f"case {self.expression(test, depth + 1)}:"
            self._line(depth + 1, label)
            self.statements(case.get("consequent", []), depth + 2)
        self._line(depth, "}")

    def _stmt_ImportDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        default, namespace, named = None, None, []
        for specifier in node.get("specifiers", []):
            local = specifier["local"]["name"]
            if specifier.get("type") == "ImportDefaultSpecifier":
                default = local
            elif specifier.get("type") == "ImportNamespaceSpecifier":
                namespace = f"* as {local}"
            else:
                imported = specifier["imported"]["name"]
                named.append(local if imported == local else f"{imported} as {local}")
        clauses = [part for part in (default, namespace) if part]
        if named:
            clauses.append("{" + ", ".join(named) + "}")
        source = self.expression(node["source"], depth)
        if clauses:
            self._line(depth, f"import {', '.join(clauses)} from {source};")
        else:
            self._line(depth, f"import {source};")

    def _stmt_ExportNamedDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        declaration = node.get("declaration")
        if declaration is not None:
            start = len(self.lines)
            self.statement(declaration, depth)
            self.lines[start] = self.options.indent * depth + "export " + self.lines[start].lstrip()
            return
        names = []
        for specifier in node.get("specifiers", []):
            local, exported = specifier["local"]["name"], specifier["exported"]["name"]
            names.append(local if local == exported else f"{local} as {exported}")
        text = "export {" + ", ".join(names) + "}"
        if node.get("source") is not None:
            text += " from " + self.expression(node["source"], depth)
        self._line(depth, text + ";")

    def _stmt_ExportDefaultDeclaration(self, node: Dict[str, Any], depth: int) -> None:
        declaration = node["declaration"]
        if declaration.get("type") in ("FunctionDeclaration", "ClassDeclaration"):
            start = len(self.lines)
            self.statement(declaration, depth)
            self.lines[start] = self.options.indent * depth + "export default " + self.lines[start].lstrip()
        else:
            self._line(depth, f"export default {self.expression(declaration, depth, 1)};")

    # --------------------------------------------------------- expression nodes

    def _expr_Identifier(self, node: Dict[str, Any], depth: int) -> str:
        return node["name"]

    def _expr_ThisExpression(self, node: Dict[str, Any], depth: int) -> str:
        return "this"

    def _expr_Super(self, node: Dict[str, Any], depth: int) -> str:
        return "super"

    def _expr_Literal(self, node: Dict[str, Any], depth: int) -> str:
        if node.get("raw") is not None:
            return node["raw"]
        regex = node.get("regex")
        if regex:
            return f"/{regex.get('pattern')}/{regex.get('flags', '')}"
        return _literal(node.get("value"))

    def _expr_TemplateLiteral(self, node: Dict[str, Any], depth: int) -> str:
        parts = ["`"]
        expressions = node.get("expressions", [])
        for index, quasi in enumerate(node.get("quasis", [])):
            parts.append(quasi["value"]["raw"])
            if index < len(expressions):
                parts.append("${" + self.expression(expressions[index], depth) + "}")
        parts.append("`")
        return "".join(parts)

    def _expr_TaggedTemplateExpression(self, node: Dict[str, Any], depth: int) -> str:
        tag = self.expression(node["tag"], depth, _PRECEDENCE["MemberExpression"])
        return tag + self._expr_TemplateLiteral(node["quasi"], depth)

    def _expr_ArrayExpression(self, node: Dict[str, Any], depth: int) -> str:
        elements = []
        for element in node.get("elements", []):
            if element is None:
                elements.append("")
            elif element.get("type") == "SpreadElement":
                elements.append("..." + self.expression(element["argument"], depth, 1))
            else:
                elements.append(self.expression(element, depth, 1))
        trailing = "," if elements and elements[-1] == "" else ""
        return "[" + ", ".join(elements) + trailing + "]"

    def _expr_ObjectExpression(self, node: Dict[str, Any], depth: int) -> str:
        properties = node.get("properties", [])
        if not properties:
            return "{}"
        return "{" + ", ".join(self._property(prop, depth) for prop in properties) + "}"

    def _expr_FunctionExpression(self, node: Dict[str, Any], depth: int) -> str:
        return self._function(node, depth)

    def _expr_ClassExpression(self, node: Dict[str, Any], depth: int) -> str:
        return self._class(node, depth)

    def _expr_ArrowFunctionExpression(self, node: Dict[str, Any], depth: int) -> str:
        prefix = "async " if node.get("async") else ""
        body = node.get("body") or {}
        if body.get("type") == "BlockStatement":
            rendered = self._nested(body.get("body", []), depth)
        else:
            rendered = self.expression(body, depth, 1)
            if body.get("type") == "ObjectExpression":
                rendered = f"({rendered})"
        return f"{prefix}{self._params(node, depth)} => {rendered}"

    def _expr_UnaryExpression(self, node: Dict[str, Any], depth: int) -> str:
        operator = node["operator"]
        argument = self.expression(node["argument"], depth, _PRECEDENCE["UnaryExpression"])
        if operator in _WORD_OPERATORS:
            return f"{operator} {argument}"
        if operator in ("-", "+") and argument.startswith(operator):
            return f"{operator} {argument}"
        return operator + argument

    def _expr_AwaitExpression(self, node: Dict[str, Any], depth: int) -> str:
        return "await " + self.expression(node["argument"], depth, _PRECEDENCE["UnaryExpression"])

    def _expr_YieldExpression(self, node: Dict[str, Any], depth: int) -> str:
        keyword = "yield*" if node.get("delegate") else "yield"
        argument = node.get("argument")
        if argument is None:
            return keyword
        return f"{keyword} {self.expression(argument, depth, 1)}"

    def _expr_UpdateExpression(self, node: Dict[str, Any], depth: int) -> str:
        argument = self.expression(node["argument"], depth, _PRECEDENCE["UnaryExpression"])
        if node.get("prefix"):
            return node["operator"] + argument
        return argument + node["operator"]

    def _expr_BinaryExpression(self, node: Dict[str, Any], depth: int) -> str:
        operator = node["operator"]
        precedence = _BINARY_PRECEDENCE.get(operator)
        if precedence is None:
            raise EmitError(f"Unsupported binary operator: {operator}", node)
        if operator == "**":
            left_min, right_min = precedence + 1, precedence
        else:
            left_min, right_min = precedence, precedence + 1
        if operator == "??":
            # `??` cannot be mixed with `&&`/`||` without parentheses.
            left_min = right_min = _BINARY_PRECEDENCE["|"]
        left = self.expression(node["left"], depth, left_min)
        right = self.expression(node["right"], depth, right_min)
        return f"{left} {operator} {right}"

    _expr_LogicalExpression = _expr_BinaryExpression

    def _expr_AssignmentExpression(self, node: Dict[str, Any], depth: int) -> str:
        left = self.pattern(node["left"], depth)
        right = self.expression(node["right"], depth, 1)
        return f"{left} {node['operator']} {right}"

    def _expr_ConditionalExpression(self, node: Dict[str, Any], depth: int) -> str:
        test = self.expression(node["test"], depth, 3)
        consequent = self.expression(node["consequent"], depth, 1)
        alternate = self.expression(node["alternate"], depth, 1)
        return f"{test} ? {consequent} : {alternate}"

    def _expr_SequenceExpression(self, node: Dict[str, Any], depth: int) -> str:
        return ", ".join(self.expression(item, depth, 1) for item in node.get("expressions", []))

    def _arguments(self, node: Dict[str, Any], depth: int) -> str:
        rendered = []
        for argument in node.get("arguments", []):
            if argument.get("type") == "SpreadElement":
                rendered.append("..." + self.expression(argument["argument"], depth, 1))
            else:
                rendered.append(self.expression(argument, depth, 1))
        return "(" + ", ".join(rendered) + ")"

    def _expr_CallExpression(self, node: Dict[str, Any], depth: int) -> str:
        callee = self.expression(node["callee"], depth, _PRECEDENCE["CallExpression"])
        return callee + self._arguments(node, depth)

    def _expr_NewExpression(self, node: Dict[str, Any], depth: int) -> str:
        callee = self.expression(node["callee"], depth, _PRECEDENCE["MemberExpression"])
        if _calls_in_chain(node["callee"]):
            # `new a().b()` would construct `a` instead of `a().b`.
            callee = f"({callee})"
        return "new " + callee + self._arguments(node, depth)

    def _expr_MemberExpression(self, node: Dict[str, Any], depth: int) -> str:
        target = self.expression(node["object"], depth, _PRECEDENCE["CallExpression"])
        if node.get("computed"):
            return f"{target}[{self.expression(node['property'], depth)}]"
        if node["object"].get("type") == "Literal" and isinstance(node["object"].get("value"), int):
            target = f"({target})"
        return f"{target}.{self.expression(node['property'], depth)}"

    def _expr_SpreadElement(self, node: Dict[str, Any], depth: int) -> str:
        return "..." + self.expression(node["argument"], depth, 1)


def _calls_in_chain(node: Dict[str, Any]) -> bool:
    """True when the member or tag chain below `node` starts at a call."""
    found = False
    while node.get("type") in ("MemberExpression", "TaggedTemplateExpression"):
        node = node["object"] if node["type"] == "MemberExpression" else node["tag"]
        found = node.get("type") == "CallExpression"
    return found


def _precedence(node: Dict[str, Any]) -> int:
    node_type = node.get("type")
    if node_type in ("BinaryExpression", "LogicalExpression"):
        return _BINARY_PRECEDENCE.get(node.get("operator"), _PRIMARY)
    return _PRECEDENCE.get(node_type, _PRIMARY)


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def emit_program(program: Dict[str, Any], options: Optional[EmitOptions] = None) -> EmitResult:
    """
    Render the given ESTree program (or single statement) to JavaScript source text.
    """
    options = options or EmitOptions()
    writer = _Writer(options)
    writer.statement(program, 0)

    buffer = io.StringIO()
    buffer.write("\n".join(writer.lines))
    if options.trailing_newline and writer.lines:
        buffer.write("\n")

    body = program.get("body") if program.get("type") == "Program" else [program]
    return EmitResult(source=buffer.getvalue(), statements=len(body or []))


__all__ = ["EmitError", "EmitOptions", "EmitResult", "emit_program"]
