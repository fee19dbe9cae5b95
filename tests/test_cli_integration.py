import os
import shutil
import subprocess
from pathlib import Path


def _run_cli(args, cwd: Path):
    env = os.environ.copy()
    pythonpath = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = str(Path("src").resolve()) + (os.pathsep + pythonpath if pythonpath else "")
    result = subprocess.run(
        ["python3", "-m", "cli", *args],
        cwd=cwd,
        env=env,
        check=False,
        capture_output=True,
        text=True,
    )
    return result


def test_cli_converts_if_declaration(tmp_path):
    output_path = tmp_path / "out.js"
    result = _run_cli(
        ["convert", "tests/cases/if_let.js", "--out", str(output_path)],
        cwd=Path("."),
    )
    assert result.returncode == 0, result.stderr
    assert output_path.exists()
    content = output_path.read_text(encoding="utf-8")
    assert "let value = flag ? next() : 0;" in content
    assert "if (value) {" in content
    assert "rewrote 1 conditional declaration(s)" in result.stderr


def test_cli_converts_while_declaration(tmp_path):
    output_path = tmp_path / "loop.js"
    result = _run_cli(
        ["convert", "tests/cases/while_read.js", "--out", str(output_path)],
        cwd=Path("."),
    )
    assert result.returncode == 0, result.stderr
    content = output_path.read_text(encoding="utf-8")
    assert "while (true) {" in content
    assert "const line = readLine();" in content
    assert "if (!line)" in content


def test_cli_default_output_path(tmp_path):
    source_path = tmp_path / "if_let.js"
    shutil.copy("tests/cases/if_let.js", source_path)
    result = _run_cli(["convert", str(source_path)], cwd=Path("."))

    assert result.returncode == 0, result.stderr
    assert (tmp_path / "if_let.desugared.js").exists()


def test_cli_strict_mode(tmp_path):
    output_path = tmp_path / "strict_out.js"
    result = _run_cli(
        ["convert", "tests/cases/nested.js", "--out", str(output_path), "--strict"],
        cwd=Path("."),
    )
    assert result.returncode == 0, result.stderr
    assert output_path.exists()


def test_cli_module_mode(tmp_path):
    source_path = tmp_path / "module.js"
    source_path.write_text(
        "import { read } from './io.js';\n"
        "export function load() {\n"
        "  if (const data = read()) {\n"
        "    return data;\n"
        "  }\n"
        "}\n",
        encoding="utf-8",
    )
    output_path = tmp_path / "module_out.js"
    result = _run_cli(
        ["convert", str(source_path), "--module", "--out", str(output_path)],
        cwd=Path("."),
    )
    assert result.returncode == 0, result.stderr
    content = output_path.read_text(encoding="utf-8")
    assert "import {read} from './io.js';" in content
    assert "export function load() {" in content
    assert "const data = read();" in content


def test_cli_rejects_destructuring(tmp_path):
    result = _run_cli(
        ["convert", "tests/cases/invalid_pattern.js", "--out", str(tmp_path / "x.js")],
        cwd=Path("."),
    )
    assert result.returncode == 1
    assert "Destructuring patterns" in result.stderr
    assert not (tmp_path / "x.js").exists()


def test_cli_reports_trailing_clause(tmp_path):
    result = _run_cli(
        ["convert", "tests/cases/trailing_clause.js", "--out", str(tmp_path / "x.js")],
        cwd=Path("."),
    )
    assert result.returncode == 1
    assert "Trailing condition clauses" in result.stderr

    strict = _run_cli(
        ["convert", "tests/cases/trailing_clause.js", "--strict", "--out", str(tmp_path / "x.js")],
        cwd=Path("."),
    )
    assert strict.returncode == 1
    assert "Parsing failed" in strict.stderr


def test_cli_const_reassignment(tmp_path):
    output_path = tmp_path / "const.js"
    rejected = _run_cli(
        ["convert", "tests/cases/const_reassign.js", "--out", str(output_path)],
        cwd=Path("."),
    )
    assert rejected.returncode == 1
    assert "Assignment to constant binding 'value'" in rejected.stderr

    allowed = _run_cli(
        [
            "convert",
            "tests/cases/const_reassign.js",
            "--allow-const-reassignment",
            "--out",
            str(output_path),
        ],
        cwd=Path("."),
    )
    assert allowed.returncode == 0, allowed.stderr
    assert "WARNING" in allowed.stderr
    assert output_path.exists()


def test_cli_completion_observed(tmp_path):
    result = _run_cli(
        [
            "convert",
            "tests/cases/completion.js",
            "--completion-observed",
            "--out",
            str(tmp_path / "x.js"),
        ],
        cwd=Path("."),
    )
    assert result.returncode == 1
    assert "completion value" in result.stderr


def test_cli_check_reports_equivalence():
    result = _run_cli(["check", "tests/cases/labeled_loop.js"], cwd=Path("."))

    assert result.returncode == 0, result.stderr
    assert result.stdout.startswith("OK ")
    assert "1 rewrite(s)" in result.stdout


def test_cli_check_reports_mismatch(tmp_path):
    source_path = tmp_path / "loop_value.js"
    source_path.write_text("var n = 2;\nwhile (let k = n--) {\n  k;\n}\n", encoding="utf-8")
    result = _run_cli(["check", str(source_path)], cwd=Path("."))

    assert result.returncode == 1
    assert "MISMATCH" in result.stderr


def test_cli_missing_input():
    result = _run_cli(["convert", "tests/cases/does_not_exist.js"], cwd=Path("."))

    assert result.returncode == 1
    assert "Input file not found" in result.stderr


def test_cli_without_command_prints_help():
    result = _run_cli([], cwd=Path("."))

    assert result.returncode == 1
    assert "usage: condecl" in result.stdout


def test_cli_reuses_parse_cache(tmp_path):
    cache_dir = tmp_path / "cache"
    args = ["convert", "tests/cases/if_let.js", "--out", str(tmp_path / "out.js"), "--cache-dir", str(cache_dir)]

    first = _run_cli(args, cwd=Path("."))
    assert first.returncode == 0, first.stderr
    assert len(list(cache_dir.glob("*-script.json"))) == 1

    second = _run_cli(["--verbose", *args], cwd=Path("."))
    assert second.returncode == 0, second.stderr
    assert "reloaded with 1 conditional declaration(s)" in second.stderr
