import json

import pytest
from typer.testing import CliRunner

from tapestry.cli.app import app

runner = CliRunner()


@pytest.fixture
def script(tmp_path):
    def write(source: str, name: str = "demo.tap"):
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return path

    return write


def test_run_prints_script_output(script):
    path = script('items = ["a", "b"]\nfor item in items:\n    print("item " + item)')

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 0, result.output
    assert "item a" in result.output
    assert "item b" in result.output


def test_run_uses_default_graph_tool(script):
    path = script('n = graph.add_node(name="Alpha")\nprint(n.name)')

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 0, result.output
    assert "Alpha" in result.output


def test_run_reads_json_record(script):
    record = {"id": "s1", "name": "Demo", "code": 'print("from record")', "updatedAt": "x"}
    path = script(json.dumps(record), name="demo.json")

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 0, result.output
    assert "from record" in result.output


def test_run_rejects_malformed_record(script):
    path = script("[1, 2]", name="broken.json")

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 2


def test_run_missing_file(tmp_path):
    result = runner.invoke(app, ["run", str(tmp_path / "nope.tap")])

    assert result.exit_code == 2
    assert "File not found" in result.output


def test_run_syntax_error(script):
    path = script("if x > 1\n    print(x)")

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 1
    assert "Syntax error on line 1" in result.output


def test_run_runtime_error(script):
    path = script('print("before")\nghost.haunt()')

    result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 1
    assert "before" in result.output
    assert "Error at line 2" in result.output


def test_run_step_limit_from_environment(script):
    path = script("for x in [1, 2, 3]:\n    print(x)")

    result = runner.invoke(app, ["run", str(path)], env={"TAPESTRY_MAX_STEPS": "2"})

    assert result.exit_code == 1
    assert "Step limit of 2 exceeded" in result.output


def test_run_json_log_format(script):
    path = script('print("hi")')

    result = runner.invoke(app, ["run", str(path), "--log-format", "json"])

    assert result.exit_code == 0, result.output
    assert '"event_id": "run.started"' in result.output


def test_run_step_mode_waits_for_enter(script):
    path = script('print("one")\nprint("two")')

    result = runner.invoke(app, ["run", str(path), "--step"], input="\n\n")

    assert result.exit_code == 0, result.output
    assert result.output.count("Press Enter to execute line") == 2
    assert "two" in result.output


def test_check_lists_instructions(script):
    path = script("x = 1\nif x == 1:\n    print(x)")

    result = runner.invoke(app, ["check", str(path)])

    assert result.exit_code == 0, result.output
    assert "jump_if_false" in result.output
    assert "3 instructions" in result.output


def test_check_quiet(script):
    path = script("x = 1")

    result = runner.invoke(app, ["check", str(path), "--quiet"])

    assert result.exit_code == 0, result.output
    assert "assign" not in result.output
    assert "1 instructions" in result.output


def test_check_reports_syntax_error(script):
    path = script("else:\n    print(1)")

    result = runner.invoke(app, ["check", str(path)])

    assert result.exit_code == 1
    assert "'else' must follow" in result.output


def test_tools_lists_graph_actions():
    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0, result.output
    assert "graph" in result.output
    assert "add_node" in result.output
