"""
A small reference interpreter for the JavaScript subset the rewriter touches.

It runs esprima-compatible trees directly, including conditional declarations
(`if (let x = f())`, `while (const x = f())`) with the semantics the syntax is
meant to have: a fresh scope per evaluation of the head, the binding visible in
both branches, the initializer evaluated exactly once per test. Running a tree
before and after rewriting and comparing console output and completion values
is how the test-suite and `condecl check` establish that a rewrite is
behaviour-preserving.

Supported: `var`/`let`/`const` (with TDZ and const checks), block scoping,
function declarations/expressions/arrows and closures, `if`, `while`,
`do-while`, `for`, `for-in`, `for-of`, `switch`, labels, `break`, `continue`,
`return`, `throw`, `try`, object and array literals, member access, calls, the
usual operators, and statement completion values. Classes, generators,
`new` and async functions are not.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple


class _Undefined:
    _instance: Optional["_Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()
# Marks a statement completion that carries no value.
EMPTY = object()

_LOOP_TYPES = {"WhileStatement", "DoWhileStatement", "ForStatement", "ForInStatement", "ForOfStatement"}
_FUNCTION_TYPES = {"FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"}


class JSObject(dict):
    """A plain JavaScript object; always truthy, unlike an empty dict."""

    def __bool__(self) -> bool:
        return True


@dataclass
class JSFunction:
    name: Optional[str]
    params: List[Dict[str, Any]]
    body: Dict[str, Any]
    closure: "Environment"
    is_arrow: bool = False


class EvaluationError(RuntimeError):
    """Raised when evaluation fails; carries the node position when known."""

    def __init__(self, message: str, node: Optional[Dict[str, Any]] = None):
        start = ((node or {}).get("loc") or {}).get("start") or {}
        loc = ""
        if start.get("line") is not None:
            loc = f" (line {start.get('line')}, column {start.get('column')})"
        super().__init__(f"{message}{loc}")
        self.message = message
        self.node = node


class JSReferenceError(EvaluationError):
    pass


class JSTypeError(EvaluationError):
    pass


class JSSyntaxError(EvaluationError):
    """A `break`/`continue` with no matching target, which JavaScript rejects early."""


class JSThrow(EvaluationError):
    """An uncaught `throw`; `value` is the thrown JavaScript value."""

    def __init__(self, value: Any, node: Optional[Dict[str, Any]] = None):
        super().__init__(f"Uncaught {to_string(value)}", node)
        self.value = value


class _Abrupt(Exception):
    def __init__(self, label: Optional[str] = None):
        super().__init__(label)
        self.label = label
        self.value: Any = EMPTY


class _Break(_Abrupt):
    pass


class _Continue(_Abrupt):
    pass


class _Return(Exception):
    def __init__(self, value: Any):
        super().__init__()
        self.value = value


class _Binding:
    __slots__ = ("value", "kind", "initialized")

    def __init__(self, kind: str, value: Any = UNDEFINED, initialized: bool = True):
        self.kind = kind
        self.value = value
        self.initialized = initialized


class Environment:
    def __init__(self, parent: Optional["Environment"] = None, *, function_scope: bool = False):
        self.parent = parent
        self.function_scope = function_scope or parent is None
        self.bindings: Dict[str, _Binding] = {}

    def declare(self, name: str, kind: str, value: Any = UNDEFINED, initialized: bool = True) -> None:
        if kind == "var" and name in self.bindings:
            return
        self.bindings[name] = _Binding(kind, value, initialized)

    def initialize(self, name: str, value: Any) -> None:
        binding = self.bindings[name]
        binding.value = value
        binding.initialized = True

    def resolve(self, name: str) -> Optional[_Binding]:
        env: Optional[Environment] = self
        while env is not None:
            binding = env.bindings.get(name)
            if binding is not None:
                return binding
            env = env.parent
        return None

    def lookup(self, name: str, node: Optional[Dict[str, Any]] = None) -> Any:
        binding = self.resolve(name)
        if binding is None:
            raise JSReferenceError(f"{name} is not defined", node)
        if not binding.initialized:
            raise JSReferenceError(f"Cannot access '{name}' before initialization", node)
        return binding.value

    def assign(self, name: str, value: Any, node: Optional[Dict[str, Any]] = None) -> None:
        binding = self.resolve(name)
        if binding is None:
            self.global_env().declare(name, "var", value)
            return
        if not binding.initialized:
            raise JSReferenceError(f"Cannot access '{name}' before initialization", node)
        if binding.kind == "const":
            raise JSTypeError("Assignment to constant variable.", node)
        binding.value = value

    def var_scope(self) -> "Environment":
        env = self
        while not env.function_scope:
            assert env.parent is not None
            env = env.parent
        return env

    def global_env(self) -> "Environment":
        env = self
        while env.parent is not None:
            env = env.parent
        return env


# ------------------------------------------------------------------ conversions


def is_truthy(value: Any) -> bool:
    if value is None or value is UNDEFINED or value is False:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> float:
    if value is None or value is False:
        return 0
    if value is True:
        return 1
    if value is UNDEFINED:
        return math.nan
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return float(text) if any(c in text for c in ".eE") else int(text)
        except ValueError:
            return math.nan
    return math.nan


def to_string(value: Any) -> str:
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
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
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if item is None or item is UNDEFINED else to_string(item) for item in value)
    if isinstance(value, JSObject):
        return "[object Object]"
    if isinstance(value, JSFunction) or callable(value):
        return "function"
    return str(value)


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, JSFunction) or callable(value):
        return "function"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    nullish = (None, UNDEFINED)
    if left in nullish or right in nullish:
        return left in nullish and right in nullish
    if type_of(left) == type_of(right):
        return strict_equals(left, right)
    if type_of(left) in ("number", "string", "boolean") and type_of(right) in ("number", "string", "boolean"):
        return to_number(left) == to_number(right)
    return False


def _update_empty(value: Any, default: Any) -> Any:
    return default if value is EMPTY else value


# ---------------------------------------------------------------- interpreter


@dataclass(frozen=True)
class EvaluationResult:
    completion: Any
    output: List[str]
    globals: Dict[str, Any] = field(default_factory=dict)


class Interpreter:
    """Tree-walking evaluator over esprima-compatible dictionaries."""

    def __init__(self, host: Optional[Dict[str, Any]] = None):
        self.output: List[str] = []
        self.global_env = Environment()
        console = JSObject(log=self._console_log)
        self.global_env.declare("console", "var", console)
        for name, value in (host or {}).items():
            self.global_env.declare(name, "var", value)

    def _console_log(self, *args: Any) -> Any:
        self.output.append(" ".join(to_string(arg) for arg in args))
        return UNDEFINED

    def run(self, program: Dict[str, Any]) -> EvaluationResult:
        if program.get("type") != "Program":
            raise EvaluationError("Expected Program node at the root.", program)
        body = program.get("body", [])
        self._hoist_vars(body, self.global_env)
        self._instantiate_block(body, self.global_env)
        try:
            completion = self._statement_list(body, self.global_env)
        except _Abrupt as signal:
            raise _unmatched(signal) from None
        snapshot = {
            name: binding.value
            for name, binding in self.global_env.bindings.items()
            if binding.initialized
        }
        return EvaluationResult(
            completion=_update_empty(completion, UNDEFINED),
            output=list(self.output),
            globals=snapshot,
        )

    # ------------------------------------------------------------------ helpers

    def _hoist_vars(self, node: Any, env: Environment) -> None:
        if isinstance(node, list):
            for element in node:
                self._hoist_vars(element, env)
            return
        if not isinstance(node, dict) or node.get("type") in _FUNCTION_TYPES:
            return
        if node.get("type") == "VariableDeclaration" and node.get("kind") == "var":
            for declarator in node.get("declarations", []):
                for name in _pattern_names(declarator.get("id")):
                    env.declare(name, "var")
        for key, value in node.items():
            if key not in {"loc", "range"} and isinstance(value, (dict, list)):
                self._hoist_vars(value, env)

    def _instantiate_block(self, statements: List[Dict[str, Any]], env: Environment) -> None:
        for statement in statements:
            node_type = statement.get("type")
            if node_type == "VariableDeclaration" and statement.get("kind") in ("let", "const"):
                for declarator in statement.get("declarations", []):
                    for name in _pattern_names(declarator.get("id")):
                        env.declare(name, statement["kind"], initialized=False)
            elif node_type == "FunctionDeclaration":
                name = statement["id"]["name"]
                env.declare(name, "function", self._make_function(statement, env))

    def _make_function(self, node: Dict[str, Any], env: Environment) -> JSFunction:
        return JSFunction(
            name=(node.get("id") or {}).get("name"),
            params=node.get("params", []),
            body=node.get("body"),
            closure=env,
            is_arrow=node.get("type") == "ArrowFunctionExpression",
        )

    def _bind(self, pattern: Dict[str, Any], value: Any, env: Environment, kind: str) -> None:
        node_type = pattern.get("type")
        if node_type == "Identifier":
            name = pattern["name"]
            if kind == "var":
                env.assign(name, value, pattern)
            elif kind == "assign":
                env.assign(name, value, pattern)
            else:
                if name not in env.bindings:
                    env.declare(name, kind, initialized=False)
                env.initialize(name, value)
        elif node_type == "AssignmentPattern":
            if value is UNDEFINED:
                value = self.evaluate(pattern["right"], env)
            self._bind(pattern["left"], value, env, kind)
        elif node_type == "ObjectPattern":
            for prop in pattern.get("properties", []):
                key = self._property_key(prop, env)
                self._bind(prop["value"], self._get_property(value, key, pattern), env, kind)
        elif node_type == "ArrayPattern":
            items = list(value) if isinstance(value, (list, str)) else []
            for index, element in enumerate(pattern.get("elements", [])):
                if element is None:
                    continue
                if element.get("type") == "RestElement":
                    self._bind(element["argument"], items[index:], env, kind)
                    break
                self._bind(element, items[index] if index < len(items) else UNDEFINED, env, kind)
        elif node_type == "MemberExpression" and kind == "assign":
            target, key = self._member_reference(pattern, env)
            self._set_property(target, key, value, pattern)
        else:
            raise EvaluationError(f"Unsupported binding target: {node_type}", pattern)

    def _statement_list(self, statements: Iterable[Dict[str, Any]], env: Environment) -> Any:
        value = EMPTY
        for statement in statements:
            try:
                result = self.execute(statement, env)
            except _Abrupt as signal:
                signal.value = _update_empty(signal.value, value)
                raise
            if result is not EMPTY:
                value = result
        return value

    def _run_loop_body(self, body: Dict[str, Any], env: Environment, labels: Tuple[str, ...], value: Any):
        """Run one iteration; return (keep_going, value)."""
        try:
            result = self.execute(body, env)
        except _Continue as signal:
            if signal.label is not None and signal.label not in labels:
                signal.value = _update_empty(signal.value, value)
                raise
            result = signal.value
        except _Break as signal:
            if signal.label is not None:
                signal.value = _update_empty(signal.value, value)
                raise
            return False, _update_empty(signal.value, value)
        return True, _update_empty(result, value)

    def _declare_head(self, declaration: Dict[str, Any], env: Environment) -> Any:
        """Evaluate a conditional declaration head in `env`; return the bound value."""
        declarator = declaration["declarations"][0]
        kind = declaration["kind"]
        for name in _pattern_names(declarator["id"]):
            env.declare(name, kind, initialized=False)
        value = self.evaluate(declarator["init"], env)
        self._bind(declarator["id"], value, env, kind)
        return value

    # ----------------------------------------------------------------- statements

    def execute(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...] = ()) -> Any:
        handler = getattr(self, f"_exec_{node.get('type')}", None)
        if handler is None:
            raise EvaluationError(f"Unsupported statement node: {node.get('type')}", node)
        if node.get("type") in _LOOP_TYPES or node.get("type") == "LabeledStatement":
            return handler(node, env, labels)
        return handler(node, env)

    def _exec_EmptyStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        return EMPTY

    def _exec_ExpressionStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        return self.evaluate(node["expression"], env)

    def _exec_BlockStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        scope = Environment(env)
        body = node.get("body", [])
        self._instantiate_block(body, scope)
        return self._statement_list(body, scope)

    def _exec_VariableDeclaration(self, node: Dict[str, Any], env: Environment) -> Any:
        kind = node.get("kind", "var")
        for declarator in node.get("declarations", []):
            init = declarator.get("init")
            if init is None and kind == "var":
                continue
            value = self.evaluate(init, env) if init is not None else UNDEFINED
            self._bind(declarator["id"], value, env, kind)
        return EMPTY

    def _exec_FunctionDeclaration(self, node: Dict[str, Any], env: Environment) -> Any:
        return EMPTY

    def _exec_ReturnStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        argument = node.get("argument")
        raise _Return(self.evaluate(argument, env) if argument is not None else UNDEFINED)

    def _exec_BreakStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        raise _Break((node.get("label") or {}).get("name"))

    def _exec_ContinueStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        raise _Continue((node.get("label") or {}).get("name"))

    def _exec_ThrowStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        raise JSThrow(self.evaluate(node["argument"], env), node)

    def _exec_IfStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        test = node["test"]
        scope = env
        if test.get("type") == "VariableDeclaration":
            scope = Environment(env)
            condition = self._declare_head(test, scope)
        else:
            condition = self.evaluate(test, env)
        branch = node.get("consequent") if is_truthy(condition) else node.get("alternate")
        if branch is None:
            return UNDEFINED
        try:
            result = self.execute(branch, scope)
        except _Abrupt as signal:
            signal.value = _update_empty(signal.value, UNDEFINED)
            raise
        return _update_empty(result, UNDEFINED)

    def _exec_WhileStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        test = node["test"]
        value = UNDEFINED
        while True:
            scope = env
            if test.get("type") == "VariableDeclaration":
                scope = Environment(env)
                condition = self._declare_head(test, scope)
            else:
                condition = self.evaluate(test, env)
            if not is_truthy(condition):
                return value
            keep_going, value = self._run_loop_body(node["body"], scope, labels, value)
            if not keep_going:
                return value

    def _exec_DoWhileStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        value = UNDEFINED
        while True:
            keep_going, value = self._run_loop_body(node["body"], env, labels, value)
            if not keep_going or not is_truthy(self.evaluate(node["test"], env)):
                return value

    def _exec_ForStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        scope = Environment(env)
        init = node.get("init")
        per_iteration: List[str] = []
        if init is not None:
            if init.get("type") == "VariableDeclaration":
                self._instantiate_block([init], scope)
                self._exec_VariableDeclaration(init, scope)
                if init.get("kind") == "let":
                    per_iteration = list(scope.bindings)
            else:
                self.evaluate(init, scope)
        value = UNDEFINED
        while True:
            if per_iteration:
                scope = _copy_bindings(scope, per_iteration)
            test = node.get("test")
            if test is not None and not is_truthy(self.evaluate(test, scope)):
                return value
            keep_going, value = self._run_loop_body(node["body"], scope, labels, value)
            if not keep_going:
                return value
            if per_iteration:
                scope = _copy_bindings(scope, per_iteration)
            if node.get("update") is not None:
                self.evaluate(node["update"], scope)

    def _exec_for_each(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...], items: List[Any]) -> Any:
        left = node["left"]
        value = UNDEFINED
        for item in items:
            scope = Environment(env)
            if left.get("type") == "VariableDeclaration":
                self._bind(left["declarations"][0]["id"], item, scope, left.get("kind", "var"))
            else:
                self._bind(left, item, scope, "assign")
            keep_going, value = self._run_loop_body(node["body"], scope, labels, value)
            if not keep_going:
                break
        return value

    def _exec_ForInStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        target = self.evaluate(node["right"], env)
        if isinstance(target, dict):
            keys = list(target.keys())
        elif isinstance(target, (list, str)):
            keys = [str(index) for index in range(len(target))]
        else:
            keys = []
        return self._exec_for_each(node, env, labels, keys)

    def _exec_ForOfStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        target = self.evaluate(node["right"], env)
        if not isinstance(target, (list, str)):
            raise JSTypeError(f"{to_string(target)} is not iterable", node["right"])
        return self._exec_for_each(node, env, labels, list(target))

    def _exec_LabeledStatement(self, node: Dict[str, Any], env: Environment, labels: Tuple[str, ...]) -> Any:
        label = node["label"]["name"]
        try:
            return self.execute(node["body"], env, labels + (label,))
        except _Break as signal:
            if signal.label != label:
                raise
            return signal.value

    def _exec_SwitchStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        discriminant = self.evaluate(node["discriminant"], env)
        scope = Environment(env)
        cases = node.get("cases", [])
        for case in cases:
            self._instantiate_block(case.get("consequent", []), scope)
        start = None
        for index, case in enumerate(cases):
            if case.get("test") is not None and strict_equals(discriminant, self.evaluate(case["test"], scope)):
                start = index
                break
        if start is None:
            start = next((i for i, case in enumerate(cases) if case.get("test") is None), None)
        if start is None:
            return UNDEFINED
        value = EMPTY
        try:
            for case in cases[start:]:
                result = self._statement_list(case.get("consequent", []), scope)
                value = _update_empty(result, value)
        except _Break as signal:
            if signal.label is not None:
                raise
            return _update_empty(signal.value, UNDEFINED)
        return _update_empty(value, UNDEFINED)

    def _exec_TryStatement(self, node: Dict[str, Any], env: Environment) -> Any:
        try:
            result = self.execute(node["block"], env)
        except EvaluationError as exc:
            handler = node.get("handler")
            if handler is None:
                raise
            scope = Environment(env)
            param = handler.get("param")
            if param is not None:
                self._bind(param, _thrown_value(exc), scope, "let")
            result = self.execute(handler["body"], scope)
        finally:
            if node.get("finalizer") is not None:
                self.execute(node["finalizer"], env)
        return _update_empty(result, UNDEFINED)

    # ---------------------------------------------------------------- expressions

    def evaluate(self, node: Dict[str, Any], env: Environment) -> Any:
        handler = getattr(self, f"_eval_{node.get('type')}", None)
        if handler is None:
            raise EvaluationError(f"Unsupported expression node: {node.get('type')}", node)
        return handler(node, env)

    def _eval_Literal(self, node: Dict[str, Any], env: Environment) -> Any:
        if node.get("raw") == "null":
            return None
        return node.get("value")

    def _eval_TemplateLiteral(self, node: Dict[str, Any], env: Environment) -> Any:
        parts = []
        expressions = node.get("expressions", [])
        for index, quasi in enumerate(node.get("quasis", [])):
            parts.append(quasi["value"].get("cooked", quasi["value"].get("raw", "")))
            if index < len(expressions):
                parts.append(to_string(self.evaluate(expressions[index], env)))
        return "".join(parts)

    def _eval_Identifier(self, node: Dict[str, Any], env: Environment) -> Any:
        name = node["name"]
        if env.resolve(name) is None:
            if name == "undefined":
                return UNDEFINED
            if name == "NaN":
                return math.nan
            if name == "Infinity":
                return math.inf
        return env.lookup(name, node)

    def _eval_ThisExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        binding = env.resolve("this")
        return binding.value if binding is not None else UNDEFINED

    def _eval_ArrayExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        items: List[Any] = []
        for element in node.get("elements", []):
            if element is None:
                items.append(UNDEFINED)
            elif element.get("type") == "SpreadElement":
                items.extend(self.evaluate(element["argument"], env))
            else:
                items.append(self.evaluate(element, env))
        return items

    def _eval_ObjectExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        result = JSObject()
        for prop in node.get("properties", []):
            if prop.get("type") == "SpreadElement":
                result.update(self.evaluate(prop["argument"], env))
                continue
            result[self._property_key(prop, env)] = self.evaluate(prop["value"], env)
        return result

    def _property_key(self, prop: Dict[str, Any], env: Environment) -> str:
        key = prop["key"]
        if prop.get("computed"):
            return to_string(self.evaluate(key, env))
        if key.get("type") == "Identifier":
            return key["name"]
        return to_string(key.get("value"))

    def _eval_FunctionExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        if node.get("id") is None:
            return self._make_function(node, env)
        scope = Environment(env)
        function = self._make_function(node, scope)
        scope.declare(node["id"]["name"], "const", function)
        return function

    _eval_ArrowFunctionExpression = _eval_FunctionExpression

    def _eval_UnaryExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        operator = node["operator"]
        if operator == "typeof" and node["argument"].get("type") == "Identifier":
            if env.resolve(node["argument"]["name"]) is None:
                return "undefined"
        value = self.evaluate(node["argument"], env)
        if operator == "!":
            return not is_truthy(value)
        if operator == "-":
            return -to_number(value)
        if operator == "+":
            return to_number(value)
        if operator == "typeof":
            return type_of(value)
        if operator == "void":
            return UNDEFINED
        raise EvaluationError(f"Unsupported unary operator: {operator}", node)

    def _eval_UpdateExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        argument = node["argument"]
        old = to_number(self.evaluate(argument, env))
        new = old + 1 if node["operator"] == "++" else old - 1
        self._bind(argument, new, env, "assign")
        return new if node.get("prefix") else old

    def _eval_BinaryExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        left = self.evaluate(node["left"], env)
        right = self.evaluate(node["right"], env)
        return self._binary(node["operator"], left, right, node)

    def _binary(self, operator: str, left: Any, right: Any, node: Dict[str, Any]) -> Any:
        if operator == "+":
            if isinstance(left, str) or isinstance(right, str) or isinstance(left, (list, JSObject)) or isinstance(right, (list, JSObject)):
                return to_string(left) + to_string(right)
            return to_number(left) + to_number(right)
        if operator in ("-", "*", "/", "%", "**"):
            a, b = to_number(left), to_number(right)
            if operator == "-":
                return a - b
            if operator == "*":
                return a * b
            if operator == "**":
                return a ** b
            if b == 0:
                if operator == "%" or a == 0 or (isinstance(a, float) and math.isnan(a)):
                    return math.nan
                return math.copysign(math.inf, a) * (math.copysign(1, b) if isinstance(b, float) else 1)
            if operator == "/":
                quotient = a / b
                return int(quotient) if quotient.is_integer() and isinstance(a, int) and isinstance(b, int) else quotient
            return math.fmod(a, b) if isinstance(a, float) or isinstance(b, float) else int(math.fmod(a, b))
        if operator == "===":
            return strict_equals(left, right)
        if operator == "!==":
            return not strict_equals(left, right)
        if operator == "==":
            return loose_equals(left, right)
        if operator == "!=":
            return not loose_equals(left, right)
        if operator in ("<", ">", "<=", ">="):
            if isinstance(left, str) and isinstance(right, str):
                a, b = left, right
            else:
                a, b = to_number(left), to_number(right)
                if math.isnan(a) or math.isnan(b):
                    return False
            return {"<": a < b, ">": a > b, "<=": a <= b, ">=": a >= b}[operator]
        if operator == "in":
            return to_string(left) in right if isinstance(right, dict) else False
        raise EvaluationError(f"Unsupported binary operator: {operator}", node)

    def _eval_LogicalExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        operator = node["operator"]
        left = self.evaluate(node["left"], env)
        if operator == "&&":
            return self.evaluate(node["right"], env) if is_truthy(left) else left
        if operator == "||":
            return left if is_truthy(left) else self.evaluate(node["right"], env)
        if operator == "??":
            return self.evaluate(node["right"], env) if left is None or left is UNDEFINED else left
        raise EvaluationError(f"Unsupported logical operator: {operator}", node)

    def _eval_AssignmentExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        operator = node["operator"]
        target = node["left"]
        if operator == "=":
            value = self.evaluate(node["right"], env)
        else:
            current = self.evaluate(target, env)
            value = self._binary(operator[:-1], current, self.evaluate(node["right"], env), node)
        self._bind(target, value, env, "assign")
        return value

    def _eval_ConditionalExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        if is_truthy(self.evaluate(node["test"], env)):
            return self.evaluate(node["consequent"], env)
        return self.evaluate(node["alternate"], env)

    def _eval_SequenceExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        value: Any = UNDEFINED
        for expression in node.get("expressions", []):
            value = self.evaluate(expression, env)
        return value

    def _member_reference(self, node: Dict[str, Any], env: Environment) -> Tuple[Any, Any]:
        target = self.evaluate(node["object"], env)
        if node.get("computed"):
            key = self.evaluate(node["property"], env)
        else:
            key = node["property"]["name"]
        return target, key

    def _eval_MemberExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        target, key = self._member_reference(node, env)
        return self._get_property(target, key, node)

    def _get_property(self, target: Any, key: Any, node: Dict[str, Any]) -> Any:
        if target is None or target is UNDEFINED:
            raise JSTypeError(f"Cannot read properties of {to_string(target)} (reading '{to_string(key)}')", node)
        if isinstance(target, (list, str)):
            if key == "length":
                return len(target)
            index = to_number(key)
            if isinstance(index, (int, float)) and not math.isnan(index) and float(index).is_integer():
                position = int(index)
                return target[position] if 0 <= position < len(target) else UNDEFINED
            if isinstance(target, list) and key in _ARRAY_METHODS:
                return _ARRAY_METHODS[key](target)
            return UNDEFINED
        if isinstance(target, dict):
            return target.get(to_string(key), UNDEFINED)
        return getattr(target, to_string(key), UNDEFINED)

    def _set_property(self, target: Any, key: Any, value: Any, node: Dict[str, Any]) -> None:
        if isinstance(target, dict):
            target[to_string(key)] = value
        elif isinstance(target, list):
            position = int(to_number(key))
            while len(target) <= position:
                target.append(UNDEFINED)
            target[position] = value
        else:
            raise JSTypeError(f"Cannot set property '{to_string(key)}' of {to_string(target)}", node)

    def _eval_CallExpression(self, node: Dict[str, Any], env: Environment) -> Any:
        callee = node["callee"]
        this: Any = UNDEFINED
        if callee.get("type") == "MemberExpression":
            this, key = self._member_reference(callee, env)
            function = self._get_property(this, key, callee)
        else:
            function = self.evaluate(callee, env)
        args: List[Any] = []
        for argument in node.get("arguments", []):
            if argument.get("type") == "SpreadElement":
                args.extend(self.evaluate(argument["argument"], env))
            else:
                args.append(self.evaluate(argument, env))
        return self.call(function, args, this=this, node=node)

    def call(
        self,
        function: Any,
        args: List[Any],
        *,
        this: Any = UNDEFINED,
        node: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if isinstance(function, JSFunction):
            scope = Environment(function.closure, function_scope=True)
            if not function.is_arrow:
                scope.declare("this", "const", this)
            for index, param in enumerate(function.params):
                if param.get("type") == "RestElement":
                    self._bind(param["argument"], list(args[index:]), scope, "let")
                    break
                self._bind(param, args[index] if index < len(args) else UNDEFINED, scope, "let")
            body = function.body
            if body.get("type") != "BlockStatement":
                return self.evaluate(body, scope)
            statements = body.get("body", [])
            self._hoist_vars(statements, scope)
            self._instantiate_block(statements, scope)
            try:
                self._statement_list(statements, scope)
            except _Return as signal:
                return signal.value
            except _Abrupt as signal:
                raise _unmatched(signal) from None
            return UNDEFINED
        if callable(function):
            # Host callables return Python values; None reads as `null`.
            return function(*args)
        raise JSTypeError(f"{to_string(function)} is not a function", node)


def _array_push(target: List[Any]) -> Callable[..., Any]:
    def push(*items: Any) -> int:
        target.extend(items)
        return len(target)

    return push


def _array_pop(target: List[Any]) -> Callable[..., Any]:
    return lambda: target.pop() if target else UNDEFINED


def _array_shift(target: List[Any]) -> Callable[..., Any]:
    return lambda: target.pop(0) if target else UNDEFINED


def _array_join(target: List[Any]) -> Callable[..., Any]:
    return lambda separator=",": to_string(separator).join(
        "" if item is None or item is UNDEFINED else to_string(item) for item in target
    )


_ARRAY_METHODS: Dict[str, Callable[[List[Any]], Callable[..., Any]]] = {
    "push": _array_push,
    "pop": _array_pop,
    "shift": _array_shift,
    "join": _array_join,
}


def _copy_bindings(scope: Environment, names: List[str]) -> Environment:
    fresh = Environment(scope.parent)
    for name in names:
        binding = scope.bindings[name]
        fresh.declare(name, binding.kind, binding.value, binding.initialized)
    return fresh


def _unmatched(signal: _Abrupt) -> JSSyntaxError:
    statement = "continue" if isinstance(signal, _Continue) else "break"
    if signal.label is None:
        return JSSyntaxError(f"Illegal {statement} statement")
    return JSSyntaxError(f"Illegal {statement} statement: no enclosing target '{signal.label}'")


def _thrown_value(exc: EvaluationError) -> Any:
    if isinstance(exc, JSThrow):
        return exc.value
    return JSObject(name=type(exc).__name__.replace("JS", ""), message=exc.message)


def _pattern_names(pattern: Optional[Dict[str, Any]]) -> List[str]:
    if not pattern:
        return []
    node_type = pattern.get("type")
    if node_type == "Identifier":
        return [pattern["name"]]
    if node_type == "AssignmentPattern":
        return _pattern_names(pattern.get("left"))
    if node_type == "RestElement":
        return _pattern_names(pattern.get("argument"))
    if node_type == "ObjectPattern":
        return [name for prop in pattern.get("properties", []) for name in _pattern_names(prop.get("value") or prop.get("argument"))]
    if node_type == "ArrayPattern":
        return [name for element in pattern.get("elements", []) for name in _pattern_names(element)]
    return []


def evaluate(program: Dict[str, Any], *, host: Optional[Dict[str, Any]] = None) -> EvaluationResult:
    """
    Run `program` and return its completion value, console output and globals.

    Args:
        program: esprima-compatible Program tree; may contain conditional
            declarations.
        host: Extra global bindings, typically Python callables standing in for
            I/O or instrumented functions.

    Raises:
        EvaluationError: on uncaught throws, reference and type errors, or
            unsupported constructs. A `break` or `continue` without a
            matching target raises `JSSyntaxError`.
    """
    return Interpreter(host=host).run(program)


__all__ = [
    "EMPTY",
    "Environment",
    "EvaluationError",
    "EvaluationResult",
    "Interpreter",
    "JSFunction",
    "JSObject",
    "JSReferenceError",
    "JSSyntaxError",
    "JSThrow",
    "JSTypeError",
    "UNDEFINED",
    "evaluate",
    "is_truthy",
    "loose_equals",
    "strict_equals",
    "to_number",
    "to_string",
    "type_of",
]
