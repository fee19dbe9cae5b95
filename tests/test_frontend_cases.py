import json
from pathlib import Path
from typing import Set

import pytest

from analyzer import BindingKind, ScopeType
from frontend import run_frontend
from parser import SourceSyntaxError, hash_source, parse_js


def _load(relative_path: str, **kwargs):
    source_path = Path(relative_path)
    source = source_path.read_text(encoding="utf-8")
    return run_frontend(source, source_name=str(source_path), **kwargs)


def _condition_bindings(result, kind: BindingKind) -> Set[str]:
    names: Set[str] = set()
    for scope in result.condition_scopes():
        assert scope.scope_type == ScopeType.CONDITION
        for name, bindings in scope.bindings.items():
            if any(binding.kind == kind for binding in bindings):
                names.add(name)
    return names


TEST_CASES = [
    ("tests/cases/if_let.js", 1, {"value"}, set()),
    ("tests/cases/while_read.js", 1, set(), {"line"}),
    ("tests/cases/labeled_loop.js", 1, {"item"}, set()),
    ("tests/cases/nested.js", 3, {"retries", "fallback"}, {"mode"}),
    ("tests/cases/plain.js", 0, set(), set()),
]


@pytest.mark.parametrize("path, conditionals, let_names, const_names", TEST_CASES)
def test_frontend_splices_conditional_declarations(path, conditionals, let_names, const_names):
    result = _load(path)

    assert result.has_ast
    assert not result.parse.errors
    assert result.conditionals == conditionals
    assert _condition_bindings(result, BindingKind.LET) == let_names
    assert _condition_bindings(result, BindingKind.CONST) == const_names


def test_declaration_keeps_source_positions():
    source = "var a = 1;\nif (let x = a) {\n  a = x;\n}\n"
    result = parse_js(source)

    statement = result.ast["body"][1]
    test = statement["test"]
    assert test["type"] == "VariableDeclaration"
    assert test["kind"] == "let"
    assert test["declarations"][0]["id"]["name"] == "x"
    assert test["loc"]["start"]["line"] == 2
    assert test["loc"]["start"]["column"] == 4
    assert test["range"][0] == source.index("let")
    assert statement["consequent"]["range"][0] == source.index("{\n  a")


def test_multiline_head_positions():
    source = "while (\n  const line =\n    read()\n) {\n  use(line);\n}\n"
    result = parse_js(source)

    test = result.ast["body"][0]["test"]
    init = test["declarations"][0]["init"]
    assert result.conditionals == 1
    assert test["loc"]["start"]["line"] == 2
    assert test["loc"]["start"]["column"] == 2
    assert init["loc"]["start"]["line"] == 3
    assert init["loc"]["start"]["column"] == 4


def test_let_used_as_member_is_not_a_declaration():
    result = parse_js("var let_ = {};\nif (let_.ready) {\n  go();\n}\n")

    assert result.ast is not None
    assert result.conditionals == 0
    assert result.ast["body"][1]["test"]["type"] == "MemberExpression"


def test_declaration_outside_if_or_while_is_reported():
    result = parse_js("do {\n  step();\n} while (let more = next());\n")

    assert result.ast is None
    assert any("only allowed" in error.description for error in result.errors)


def test_declaration_outside_if_or_while_raises_in_strict_mode():
    with pytest.raises(SourceSyntaxError):
        parse_js("do {\n  step();\n} while (let more = next());\n", tolerant=False)


def test_trailing_condition_clause_is_reported():
    result = _load("tests/cases/trailing_clause.js")

    assert not result.has_ast
    assert result.analysis is None
    error = result.parse.errors[0]
    assert "Trailing condition clauses" in error.description
    assert error.line == 3


def test_trailing_condition_clause_raises_in_strict_mode():
    with pytest.raises(SourceSyntaxError) as excinfo:
        _load("tests/cases/trailing_clause.js", tolerant=False)
    assert excinfo.value.error.line == 3


def test_const_reassignment_is_flagged_by_analysis():
    result = _load("tests/cases/const_reassign.js")

    codes = [issue.code for issue in result.issues]
    assert codes == ["CONST_REASSIGNMENT"]
    assert result.issues[0].loc.line == 3


def test_shadowing_binding_is_not_a_const_reassignment():
    source = "if (const v = f()) {\n  let v = 2;\n  v = 3;\n}\n"
    result = run_frontend(source)

    assert not result.issues


def test_module_source_type():
    source = "import { read } from './io.js';\nif (const data = read()) {\n  consume(data);\n}\n"
    result = run_frontend(source, source_type="module")

    assert result.has_ast
    assert result.conditionals == 1
    kinds = {
        binding.kind
        for bindings in result.analysis.root_scope.bindings.values()
        for binding in bindings
    }
    assert BindingKind.IMPORT in kinds


def test_frontend_persists_and_reloads_parse_cache(tmp_path):
    first = _load("tests/cases/if_let.js", cache_dir=tmp_path)

    cache_file = tmp_path / f"{first.parse.source_hash}-script.json"
    assert not first.from_cache
    assert cache_file.exists()
    payload = json.loads(cache_file.read_text(encoding="utf-8"))
    assert payload["conditionals"] == 1
    assert payload["ast"]["type"] == "Program"

    second = _load("tests/cases/if_let.js", cache_dir=tmp_path)
    assert second.from_cache
    assert second.parse.ast == first.parse.ast
    assert second.conditionals == 1
    assert second.analysis is not None


def test_failed_parse_is_not_cached(tmp_path):
    result = _load("tests/cases/trailing_clause.js", cache_dir=tmp_path)

    assert not result.has_ast
    assert list(tmp_path.iterdir()) == []


def test_unreadable_cache_entry_is_ignored(tmp_path):
    source = Path("tests/cases/plain.js").read_text(encoding="utf-8")
    (tmp_path / f"{hash_source(source)}-script.json").write_text("{not json", encoding="utf-8")

    result = run_frontend(source, cache_dir=tmp_path)
    assert result.has_ast
    assert not result.from_cache


def test_let_member_access_is_not_a_declaration():
    result = parse_js("if (let[0]) {\n  go();\n}\n")

    assert result.ast is not None, result.errors
    assert result.conditionals == 0
    assert result.ast["body"][0]["test"]["type"] == "MemberExpression"


def test_let_pattern_with_initializer_is_a_declaration():
    result = parse_js("if (let [first] = items) {\n  use(first);\n}\n")

    assert result.conditionals == 1
    assert result.ast["body"][0]["test"]["declarations"][0]["id"]["type"] == "ArrayPattern"
