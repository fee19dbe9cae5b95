import copy
from pathlib import Path

import pytest

from analyzer import ExitKind
from frontend import run_frontend
from parser import parse_js
from transformer import (
    ConstAssignmentError,
    InvalidBindingError,
    ProgramTransformer,
    TransformContext,
    TransformError,
    TransformOptions,
    UnsupportedContextError,
    extract_conditional,
    transform_conditional,
    transform_program,
)


def _load_ast(relative_path: str):
    source_path = Path(relative_path)
    source = source_path.read_text(encoding="utf-8")
    frontend_result = run_frontend(source, source_name=str(source_path), analyze=False)
    assert frontend_result.parse.ast is not None
    return frontend_result.parse.ast


def _parse(source: str):
    result = parse_js(source)
    assert result.ast is not None, result.errors
    return result.ast


def _declaration_tests(node):
    """Yield every if/while test that is still a declaration."""
    if isinstance(node, list):
        for element in node:
            yield from _declaration_tests(element)
        return
    if not isinstance(node, dict):
        return
    if node.get("type") in ("IfStatement", "WhileStatement"):
        if (node.get("test") or {}).get("type") == "VariableDeclaration":
            yield node["test"]
    for key, value in node.items():
        if key not in ("loc", "range"):
            yield from _declaration_tests(value)


def test_if_becomes_block_with_declaration_first():
    program = _parse("if (let x = f()) { g(x); } else { h(); }")
    result = transform_program(program)

    block = result.program["body"][0]
    assert block["type"] == "BlockStatement"
    declaration, statement = block["body"]
    assert declaration["type"] == "VariableDeclaration"
    assert declaration["kind"] == "let"
    assert declaration["declarations"][0]["id"]["name"] == "x"
    assert declaration["declarations"][0]["init"]["type"] == "CallExpression"
    assert statement["type"] == "IfStatement"
    assert statement["test"] == {"type": "Identifier", "name": "x"}
    assert statement["consequent"]["body"][0]["expression"]["callee"]["name"] == "g"
    assert statement["alternate"]["body"][0]["expression"]["callee"]["name"] == "h"
    assert result.rewritten == 1
    assert not result.diagnostics


def test_while_becomes_infinite_loop_with_guard():
    program = _parse("while (const line = read()) { use(line); }")
    result = transform_program(program)

    block = result.program["body"][0]
    assert block["type"] == "BlockStatement"
    loop = block["body"][0]
    assert loop["type"] == "WhileStatement"
    assert loop["test"]["value"] is True

    declaration, guard, body = loop["body"]["body"]
    assert declaration["kind"] == "const"
    assert declaration["declarations"][0]["id"]["name"] == "line"
    assert guard["type"] == "IfStatement"
    assert guard["test"]["operator"] == "!"
    assert guard["test"]["argument"]["name"] == "line"
    assert guard["consequent"]["type"] == "BreakStatement"
    assert guard["consequent"]["label"] is None
    assert guard["alternate"] is None
    assert body["type"] == "BlockStatement"
    assert body["body"][0]["expression"]["callee"]["name"] == "use"


def test_while_with_statement_body():
    program = _parse("while (let n = next()) total += n;")
    loop = transform_program(program).program["body"][0]["body"][0]

    assert loop["body"]["body"][2]["type"] == "ExpressionStatement"


def test_label_moves_onto_synthetic_loop():
    program = _parse("outer: while (let x = next()) { continue outer; }")
    block = transform_program(program).program["body"][0]

    assert block["type"] == "BlockStatement"
    labeled = block["body"][0]
    assert labeled["type"] == "LabeledStatement"
    assert labeled["label"]["name"] == "outer"
    assert labeled["body"]["type"] == "WhileStatement"


def test_label_stays_around_if_block():
    program = _parse("done: if (let x = f()) { break done; }")
    labeled = transform_program(program).program["body"][0]

    assert labeled["type"] == "LabeledStatement"
    assert labeled["label"]["name"] == "done"
    assert labeled["body"]["type"] == "BlockStatement"
    assert labeled["body"]["body"][1]["consequent"]["body"][0]["label"]["name"] == "done"


def test_nested_conditionals_are_all_rewritten():
    program = _load_ast("tests/cases/nested.js")
    result = transform_program(program, source_name="nested.js")

    assert result.rewritten == 3
    assert list(_declaration_tests(result.program)) == []
    # The original tree still carries every declaration.
    assert len(list(_declaration_tests(program))) == 3


def test_input_tree_is_not_mutated():
    program = _load_ast("tests/cases/labeled_loop.js")
    snapshot = copy.deepcopy(program)

    transform_program(program, source_name="labeled_loop.js")

    assert program == snapshot


def test_ordinary_statements_pass_through():
    program = _load_ast("tests/cases/plain.js")
    result = transform_program(program, source_name="plain.js")

    assert result.rewritten == 0
    assert result.program == program
    assert result.program is not program


def test_transform_conditional_leaves_nested_heads():
    program = _parse("if (let a = f()) { if (let b = g()) { use(a, b); } }")
    result = transform_conditional(program["body"][0])

    inner = result.block["body"][1]["consequent"]["body"][0]
    assert inner["test"]["type"] == "VariableDeclaration"
    assert [signal.kind for signal in result.exits] == [ExitKind.FALLTHROUGH]


def test_exits_report_escaping_transfers():
    program = _parse(
        "function f() {\n"
        "  outer: for (;;) {\n"
        "    while (let x = g()) {\n"
        "      if (x > 1) break;\n"
        "      if (x < 0) return x;\n"
        "      continue outer;\n"
        "    }\n"
        "  }\n"
        "}\n"
    )
    loop = program["body"][0]["body"]["body"][0]["body"]["body"]["body"][0]
    result = transform_conditional(loop)

    exits = {(signal.kind, signal.label, signal.has_value) for signal in result.exits}
    assert exits == {
        (ExitKind.BREAK, None, False),
        (ExitKind.RETURN, None, True),
        (ExitKind.CONTINUE, "outer", False),
    }


def test_transform_conditional_rejects_plain_if():
    program = _parse("if (x) { y(); }")
    with pytest.raises(TransformError) as excinfo:
        transform_conditional(program["body"][0])
    assert "declaration test" in str(excinfo.value)


def test_destructuring_binding_is_rejected():
    program = _load_ast("tests/cases/invalid_pattern.js")
    with pytest.raises(InvalidBindingError) as excinfo:
        transform_program(program)
    assert "Destructuring" in str(excinfo.value)
    assert excinfo.value.line == 3


def test_multiple_declarators_are_rejected():
    program = _load_ast("tests/cases/invalid_multi.js")
    with pytest.raises(InvalidBindingError) as excinfo:
        transform_program(program)
    assert "exactly one" in str(excinfo.value)


def test_missing_initializer_is_rejected():
    program = _parse("if (let x) { use(x); }")
    with pytest.raises(InvalidBindingError) as excinfo:
        transform_program(program)
    assert "initializer" in str(excinfo.value)


def test_var_binding_is_rejected():
    program = _parse("if (let x = 1) { use(x); }")
    program["body"][0]["test"]["kind"] = "var"
    with pytest.raises(InvalidBindingError):
        extract_conditional(program["body"][0])


def test_extract_conditional_ignores_ordinary_statements():
    program = _parse("while (x) { x--; }")
    assert extract_conditional(program["body"][0]) is None


def test_const_reassignment_is_rejected():
    program = _load_ast("tests/cases/const_reassign.js")
    with pytest.raises(ConstAssignmentError) as excinfo:
        transform_program(program)
    assert "'value'" in str(excinfo.value)
    assert excinfo.value.line == 3


def test_const_reassignment_in_nested_function_is_rejected():
    program = _parse("if (const v = f()) { later(function () { v = 1; }); }")
    with pytest.raises(ConstAssignmentError):
        transform_program(program)


def test_const_reassignment_can_be_downgraded():
    program = _load_ast("tests/cases/const_reassign.js")
    options = TransformOptions(allow_const_reassignment=True)
    result = transform_program(program, options=options)

    assert result.rewritten == 1
    assert len(result.diagnostics) == 1
    assert "Assignment to constant binding 'value'" in result.diagnostics[0]


def test_shadowed_const_may_be_assigned():
    program = _parse("if (const v = f()) { let v = 2; v = 3; }")
    result = transform_program(program)

    assert result.rewritten == 1


def test_completion_tail_is_refused_when_observed():
    program = _load_ast("tests/cases/completion.js")
    with pytest.raises(UnsupportedContextError):
        transform_program(program, options=TransformOptions(completion_observed=True))

    result = transform_program(program)
    assert result.rewritten == 1


def test_non_tail_conditional_is_rewritten_when_observed():
    program = _parse("if (let x = f()) { 1; }\ng();\n")
    result = transform_program(program, options=TransformOptions(completion_observed=True))

    assert result.rewritten == 1


def _do_expression_program(statements):
    return {
        "type": "Program",
        "sourceType": "script",
        "body": [
            {
                "type": "ExpressionStatement",
                "expression": {
                    "type": "DoExpression",
                    "body": {"type": "BlockStatement", "body": statements},
                },
            }
        ],
    }


def test_do_expression_tail_is_refused():
    statements = _parse("if (let a = f()) { a; }\nif (let b = g()) { b; }\n")["body"]
    program = _do_expression_program(statements)

    with pytest.raises(UnsupportedContextError) as excinfo:
        transform_program(program)
    assert excinfo.value.line == 2


def test_do_expression_non_tail_is_rewritten():
    statements = _parse("if (let a = f()) { a; }\ndone();\n")["body"]
    program = _do_expression_program(statements)
    result = transform_program(program)

    assert result.rewritten == 1
    body = result.program["body"][0]["expression"]["body"]["body"]
    assert body[0]["type"] == "BlockStatement"
    assert body[0]["body"][0]["declarations"][0]["id"]["name"] == "a"
    assert body[1]["expression"]["callee"]["name"] == "done"


def test_label_chain_moves_onto_synthetic_loop():
    program = _parse(
        "var n = 0;\n"
        "A: B: while (let x = n < 3 ? ++n : 0) {\n"
        "  if (x == 2) continue A;\n"
        "  console.log(x);\n"
        "}\n"
    )
    block = transform_program(program).program["body"][1]

    assert block["type"] == "BlockStatement"
    outer = block["body"][0]
    assert outer["type"] == "LabeledStatement"
    assert outer["label"]["name"] == "A"
    inner = outer["body"]
    assert inner["type"] == "LabeledStatement"
    assert inner["label"]["name"] == "B"
    assert inner["body"]["type"] == "WhileStatement"
    assert inner["body"]["test"]["value"] is True


def test_label_chain_stays_around_if_block():
    program = _parse("A: B: if (let x = f()) { break A; }")
    outer = transform_program(program).program["body"][0]

    assert [outer["label"]["name"], outer["body"]["label"]["name"]] == ["A", "B"]
    assert outer["body"]["body"]["type"] == "BlockStatement"


def test_extract_conditional_records_label_chain():
    program = _parse("A: B: while (let x = f()) { g(x); }")
    loop = program["body"][0]["body"]["body"]

    conditional = extract_conditional(loop, labels=["A", "B"])
    assert conditional.labels == ("A", "B")


def test_program_transformer_rejects_ordinary_statement():
    transformer = ProgramTransformer(context=TransformContext(source_name="plain.js"))
    program = _parse("if (x) { y(); }")

    with pytest.raises(TransformError) as excinfo:
        transformer._rewrite_conditional(program["body"][0])
    assert "declaration test" in str(excinfo.value)
