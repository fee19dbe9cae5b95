import copy
from pathlib import Path

import pytest

from evaluator import compare_programs
from parser import parse_js
from transformer import TransformOptions, UnsupportedContextError, transform_program


def _pair(source: str):
    original = parse_js(source).ast
    assert original is not None
    return original, transform_program(original).program


def _counter_host():
    state = {"calls": 0}

    def tick():
        state["calls"] += 1
        return state["calls"]

    return {"tick": tick}


FIXTURE_OUTPUTS = [
    ("tests/cases/if_let.js", ["11 -1 1"]),
    ("tests/cases/while_read.js", ["alpha|beta 3"]),
    ("tests/cases/labeled_loop.js", ["4 1"]),
    ("tests/cases/nested.js", ["retries=3", "none", "fallback safe"]),
    ("tests/cases/plain.js", ["big medium small"]),
]


@pytest.mark.parametrize("path, expected_output", FIXTURE_OUTPUTS)
def test_fixture_behaves_the_same_after_rewriting(path, expected_output):
    original, rewritten = _pair(Path(path).read_text(encoding="utf-8"))
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent, comparison.differences
    assert comparison.original.output == expected_output
    assert comparison.original.error is None


def test_initializer_runs_exactly_once():
    original, rewritten = _pair(
        "var seen = [];\n"
        "if (let n = tick()) {\n  seen.push(n);\n} else {\n  seen.push(-n);\n}\n"
        "console.log(seen.join(','), tick());\n"
    )
    comparison = compare_programs(original, rewritten, host_factory=_counter_host)

    assert comparison.equivalent, comparison.differences
    assert comparison.rewritten.output == ["1 2"]


def test_binding_is_not_visible_after_the_statement():
    original, rewritten = _pair("if (let x = 1) {\n  x;\n}\ntypeof x;\n")
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.rewritten.completion == "undefined"


def test_return_inside_branch_reaches_enclosing_function():
    original, rewritten = _pair(
        "function f() {\n  if (let x = 42) {\n    return x;\n  }\n  return 0;\n}\nf();\n"
    )
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.rewritten.completion == "42"


def test_truthiness_of_zero_and_empty_object():
    original, rewritten = _pair(
        "var r = [];\n"
        "if (let a = 0) {\n  r.push('zero');\n}\n"
        "if (let b = {}) {\n  r.push('object');\n}\n"
        "r.join();\n"
    )
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.rewritten.completion == "object"


def test_loop_reads_until_falsy_value():
    original, rewritten = _pair(
        "var left = 3;\n"
        "var reads = 0;\n"
        "function take() {\n  reads++;\n  return left--;\n}\n"
        "var sum = 0;\n"
        "while (const n = take()) {\n  sum += n;\n}\n"
        "console.log(sum, reads);\n"
    )
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.rewritten.output == ["6 4"]


def test_errors_in_initializer_propagate_identically():
    original, rewritten = _pair("if (let x = missing()) {\n  x;\n}\n")
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.original.error.startswith("JSReferenceError")


def test_if_completion_value_is_preserved():
    source = Path("tests/cases/completion.js").read_text(encoding="utf-8")
    original, rewritten = _pair(source)
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent
    assert comparison.original.completion == "ready"


def test_loop_completion_value_changes_when_observed():
    source = "var n = 2;\nwhile (let k = n--) {\n  k;\n}\n"
    original, rewritten = _pair(source)
    comparison = compare_programs(original, rewritten)

    assert not comparison.equivalent
    assert comparison.original.completion == "1"
    assert comparison.rewritten.completion == "undefined"
    assert any("completion" in difference for difference in comparison.differences)

    with pytest.raises(UnsupportedContextError):
        transform_program(original, options=TransformOptions(completion_observed=True))


def test_label_chain_on_loop_keeps_continue_target():
    original, rewritten = _pair(
        "var n = 0;\n"
        "A: B: while (let x = n < 3 ? ++n : 0) {\n"
        "  if (x == 2) continue A;\n"
        "  console.log(x);\n"
        "}\n"
    )
    comparison = compare_programs(original, rewritten)

    assert comparison.equivalent, comparison.differences
    assert comparison.rewritten.output == ["1", "3"]


def test_stray_continue_is_reported_as_a_difference():
    original, _ = _pair("var n = 0;\nA: for (;;) {\n  while (n < 1) { n++; continue A; }\n  break;\n}\n")
    broken = copy.deepcopy(original)
    labeled = broken["body"][1]
    labeled["body"] = {"type": "BlockStatement", "body": [labeled["body"]["body"]["body"][0]]}
    comparison = compare_programs(original, broken)

    assert not comparison.equivalent
    assert comparison.original.error is None
    assert comparison.rewritten.error.startswith("JSSyntaxError")
