import subprocess
import sys
from pathlib import Path

import pytest

from csema.ast_nodes import BinaryOp as BinaryNode, IntLiteral
from csema.compiler import Compiler
from csema.diagnostics import ExpressionTooDeep
from csema.scope import Scope
from csema.semantics import DEFAULT_MAX_DEPTH, ExpressionAnalyzer
from csema.types import PointerType, INT, LONG

ROOT = Path(__file__).resolve().parents[1]


def _run_cli(*args):
    return subprocess.run(
        [sys.executable, "csema.py", *args],
        cwd=ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def test_analyze_code_success():
    res = Compiler().analyze_code("1 + 2")
    assert res.success
    assert res.errors == []
    assert res.diagnostics == []
    assert res.expr.ctype == LONG


def test_lexer_error_becomes_error_string():
    res = Compiler().analyze_code("1 @ 2")
    assert not res.success
    assert res.expr is None
    assert res.errors[0].startswith("Lexical analysis failed")


def test_parser_error_becomes_error_string():
    res = Compiler().analyze_code("1 +")
    assert not res.success
    assert res.errors[0].startswith("Syntax analysis failed")


def test_unsupported_syntax():
    for code in ("f(1)", "a ? b : c", "x && y", "a, b", "-x", "s.x", "sizeof x"):
        res = Compiler().analyze_code(code)
        assert not res.success
        assert res.errors[0].startswith("Semantic analysis failed"), code


def test_unsupported_syntax_raises_from_analyzer():
    node = BinaryNode(line=1, column=1, operator="&&", left=IntLiteral(1, 1, 1), right=IntLiteral(1, 1, 0))
    with pytest.raises(NotImplementedError):
        ExpressionAnalyzer(Scope()).lower(node)


def test_semantic_errors_do_not_abort():
    res = Compiler().analyze_code("a + b * c")
    assert not res.success
    assert len(res.diagnostics) == 3
    assert res.expr is not None


def test_declarations_accumulate():
    comp = Compiler()
    ref = comp.declare("int *p")
    assert ref.name == "p"
    assert comp.declare("struct S { int x; };") is None
    comp.declare("struct S s")
    assert comp.analyze_code("p + 1").expr.ctype == PointerType(INT)
    assert comp.analyze_code("s = s").success


def test_analyze_file(tmp_path):
    src = tmp_path / "expr.c"
    src.write_text("x * 2\n")
    comp = Compiler()
    comp.declare("unsigned x")
    res = comp.analyze_file(str(src))
    assert res.success
    assert str(res.expr.ctype) == "long"


def test_analyze_missing_file(tmp_path):
    res = Compiler().analyze_file(str(tmp_path / "missing.c"))
    assert not res.success
    assert res.errors[0].startswith("Failed to read source file")


def test_max_depth_from_environment(monkeypatch):
    monkeypatch.setenv("CSEMA_MAX_DEPTH", "3")
    assert Compiler().max_depth == 3
    assert Compiler(max_depth=9).max_depth == 9
    monkeypatch.delenv("CSEMA_MAX_DEPTH")
    assert Compiler().max_depth == DEFAULT_MAX_DEPTH


def test_max_depth_must_be_positive():
    with pytest.raises(ValueError):
        Compiler(max_depth=0)


def test_depth_limit_reports_once():
    res = Compiler(max_depth=4).analyze_code("1+1+1+1+1+1+1+1")
    assert not res.success
    assert [type(d.kind) for d in res.diagnostics] == [ExpressionTooDeep]
    assert res.diagnostics[0].kind.limit == 4
    assert res.expr is not None


def test_default_depth_limit():
    res = Compiler().analyze_code("1" + "+1" * (DEFAULT_MAX_DEPTH + 50))
    assert [type(d.kind) for d in res.diagnostics] == [ExpressionTooDeep]


def test_depth_limit_resets_between_expressions():
    comp = Compiler(max_depth=3)
    assert not comp.analyze_code("1+1+1+1+1").success
    assert comp.analyze_code("1+1").success


def test_deep_parentheses_do_not_crash():
    res = Compiler().analyze_code("(" * 2000 + "1" + ")" * 2000)
    assert not res.success
    assert res.errors


def test_cli_prints_typed_tree():
    res = _run_cli("-d", "int *p", "p + 1")
    assert res.returncode == 0, res.stdout + res.stderr
    assert res.stdout.splitlines()[0] == "Binary + : int *"
    assert "Id p : int * lval" in res.stdout
    assert res.stdout.rstrip().endswith("type: int *")


def test_cli_reports_semantic_errors():
    res = _run_cli("-d", "const int c", "c = 1")
    assert res.returncode == 1
    assert "Error: 1:3: expression is not assignable: variable 'c' with `const` qualifier" in res.stdout


def test_cli_bad_declaration():
    res = _run_cli("-d", "int", "1")
    assert res.returncode == 1
    assert "cannot declare 'int'" in res.stdout


def test_cli_ast_and_verbose():
    res = _run_cli("--ast", "-v", "-d", "long x", "x += 1")
    assert res.returncode == 0, res.stdout + res.stderr
    assert res.stdout.startswith("Assignment(+=)")
    assert "csema.semantics" in res.stderr
