import io
import json
import sys

import pytest
import yaml

from ksharp.ksharp_cli import USAGE, main, parse_args


@pytest.mark.parametrize("argv, expected", [
    ([], (None, None)),
    (["a.ks"], ("a.ks", None)),
    (["--dump-ast", "a.ks"], ("a.ks", "yaml")),
    (["a.ks", "--dump-ast=json"], ("a.ks", "json")),
], ids=["repl", "script", "dump_default", "dump_json"])
def test_parse_args(argv, expected):
    assert parse_args(argv) == expected


@pytest.mark.parametrize("argv", [
    ["a.ks", "b.ks"],
    ["--bogus"],
    ["--dump-ast=xml", "a.ks"],
    ["--dump-ast"],
], ids=["two_scripts", "unknown_flag", "bad_format", "dump_without_script"])
def test_bad_usage_exits_64(argv, capsys):
    with pytest.raises(ValueError):
        parse_args(argv)
    assert main(argv) == 64
    assert USAGE in capsys.readouterr().err


def write_script(tmp_path, source: str) -> str:
    path = tmp_path / "script.ks"
    path.write_text(source, encoding="utf-8")
    return str(path)


def test_runs_script_file(tmp_path, capsys):
    assert main([write_script(tmp_path, 'print("hi");')]) == 0
    assert capsys.readouterr().out == "hi\n"


def test_missing_script_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.ks")]) == 66
    assert "file not found" in capsys.readouterr().err


def test_static_error_exit_code(tmp_path, capsys):
    assert main([write_script(tmp_path, "var = 1;")]) == 65
    assert "[line 1] Error at '=': Expect variable name." in capsys.readouterr().err


def test_runtime_error_exit_code(tmp_path, capsys):
    assert main([write_script(tmp_path, "print(1);\n1 - 'a';")]) == 70
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert "Operands must be numbers.\n[line 2]" in captured.err


def test_script_exit_ends_process(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([write_script(tmp_path, "exit 3;")])
    assert excinfo.value.code == 3


@pytest.mark.parametrize("flag, load", [
    ("--dump-ast", yaml.safe_load),
    ("--dump-ast=json", json.loads),
], ids=["yaml", "json"])
def test_dump_ast(tmp_path, capsys, flag, load):
    assert main([flag, write_script(tmp_path, "var x = 1;")]) == 0
    dumped = load(capsys.readouterr().out)
    assert dumped == [{'node': 'Var', 'name': 'x', 'initializer': {'node': 'Literal', 'value': 1}}]


def test_dump_ast_reports_syntax_errors(tmp_path, capsys):
    assert main(["--dump-ast", write_script(tmp_path, "var x = ;")]) == 65
    assert "Expect expression." in capsys.readouterr().err


def test_repl_echoes_and_keeps_state(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("var x = 2;\nx * 3;\nboom;\nprint(x);\n\nprint(99);\n"))
    assert main([]) == 0
    captured = capsys.readouterr()
    assert captured.out.startswith("K# REPL v0.1\n")
    assert "> > 6\n" in captured.out
    assert "> 2\n" in captured.out
    assert "99" not in captured.out
    assert "Undefined variable 'boom'." in captured.err


def test_repl_quits_on_eof(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("print('last');"))
    assert main([]) == 0
    assert "last\n" in capsys.readouterr().out
