from analyzer import FALLTHROUGH, ExitKind, collect_exits, completion_tails, misdirected_continues
from parser import parse_js


def _body(source: str):
    result = parse_js(source)
    assert result.ast is not None
    return result.ast["body"]


def _kinds(signals):
    return sorted((signal.kind.value, signal.label or "") for signal in signals)


def test_plain_branch_falls_through():
    body = _body("a();\nb();\n")
    assert collect_exits(body) == [FALLTHROUGH]
    assert not FALLTHROUGH.is_transfer


def test_nested_functions_are_opaque():
    body = _body("function f() { return 1; }\nvar g = () => { return 2; };\n")
    assert collect_exits(body) == [FALLTHROUGH]


def test_break_inside_switch_or_loop_does_not_escape():
    body = _body(
        "switch (x) { case 1: break; }\n"
        "for (;;) { break; }\n"
        "while (y) { continue; }\n"
    )
    assert collect_exits(body) == [FALLTHROUGH]


def test_continue_inside_switch_escapes():
    body = _body("for (;;) {\n  switch (x) { case 1: continue; }\n}\n")
    statements = body[0]["body"]["body"]
    assert _kinds(collect_exits(statements)) == [("continue", "")]


def test_labels_defined_inside_are_local():
    body = _body("outer: {\n  inner: { break inner; }\n  break outer;\n}\n")
    signals = collect_exits(body[0]["body"]["body"])

    assert _kinds(signals) == [("break", "outer")]
    assert signals[0].is_transfer


def test_return_records_value():
    body = _body("function f() { if (a) return; return a; }\n")
    statements = body[0]["body"]["body"]

    signals = collect_exits(statements)
    assert [(signal.kind, signal.has_value) for signal in signals] == [
        (ExitKind.RETURN, False),
        (ExitKind.RETURN, True),
    ]


def test_completion_tails_follow_last_value_producing_statement():
    body = _body("a();\nif (x) { 1; } else { 2; }\nvar b;\nfunction f() {}\n")
    tails = completion_tails(body)

    types = [node["type"] for node in tails]
    assert types[0] == "IfStatement"
    assert types.count("ExpressionStatement") == 2
    assert body[0] not in tails


def test_completion_tails_look_through_labels_and_loops():
    body = _body("done: while (x) { try { y(); } catch (e) { z(); } }\n")
    tails = completion_tails(body)

    types = [node["type"] for node in tails]
    assert types[:3] == ["LabeledStatement", "WhileStatement", "BlockStatement"]
    assert "TryStatement" in types
    assert types.count("ExpressionStatement") == 2


def test_continue_to_loop_label_is_accepted():
    body = _body("A: B: for (;;) {\n  while (x) { continue A; }\n}\n")
    assert misdirected_continues(body) == []


def test_continue_to_block_label_is_reported():
    body = _body("A: for (;;) {\n  while (x) { continue A; }\n}\n")
    labeled = body[0]
    # Swap the labelled loop for a block holding only the inner loop.
    labeled["body"] = {"type": "BlockStatement", "body": [labeled["body"]["body"]["body"][0]]}

    found = misdirected_continues(body)
    assert len(found) == 1
    assert found[0]["label"]["name"] == "A"


def test_continue_labels_do_not_cross_functions():
    body = _body("A: for (;;) {\n  f(function () { B: for (;;) { continue B; } });\n}\n")
    assert misdirected_continues(body) == []
