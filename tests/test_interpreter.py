import io

import pytest

from ksharp import ScriptRunner, ScriptExit
from ksharp import ksharp_ast as ast
from ksharp.ksharp_interpreter import Evaluator, is_equal, is_truthy
from ksharp.ksharp_tokens import Token, TokenType


async def run_ks(src: str, runner: ScriptRunner = None):
    out = io.StringIO()
    if runner is None:
        runner = ScriptRunner(stdout=out)
    else:
        runner.evaluator.stdout = out
    res = await runner.handle_script(src)
    return res, out.getvalue()


def assert_ok(res):
    assert res.status == 'success', res.format_error()


def assert_runtime_error(res, message: str, line: int = 1):
    assert res.status == 'error', "expected a runtime error"
    assert res.error_kind == 'runtime', res.format_error()
    assert res.error_message == message
    assert res.error_line == line
    assert res.exit_code == 70


OUTPUT_CASES = [
    ("floored_div", "print(1 div 2);", "0\n"),
    ("floored_div_negative", "print(-7 div 2);", "-4\n"),
    ("mod_sign_follows_dividend", "print(-1 mod 3);", "-1\n"),
    ("mod_negative_divisor", "print(7 mod -3);", "1\n"),
    ("power", "print(2 ^ 10);", "1024\n"),
    ("power_fractional", "print(4 ^ 0.5);", "2\n"),
    ("power_negative_base_fraction", "print(-8 ^ (1 / 3));", "NaN\n"),
    ("string_concat", 'print("a" + "b");', "ab\n"),
    ("true_division", "print(10 / 4);", "2.5\n"),
    ("float_repr", "print(0.1 + 0.2);", "0.30000000000000004\n"),
    ("base_literals", "print(0xFF + 0b1);", "256\n"),
    ("divide_by_zero", "print(1 / 0, -1 / 0, 0 / 0);", "+inf -inf NaN\n"),
    ("inf_arithmetic", "print(inf - inf, inf + 1, -inf);", "NaN +inf -inf\n"),
    ("comparisons", "print(1 < 2, 2 <= 2, 3 > 4, 3 >= 4);", "True True False False\n"),
    ("equality", "print(1 == 1, 1 != 2, zilch == zilch, zilch == false, true == 1);",
     "True True True False False\n"),
    ("string_equality", "print('a' == \"a\", 'a' == 'b', '1' == 1);", "True False False\n"),
    ("unary", "print(-(3), !zilch, !0, !'');", "-3 True False False\n"),
    ("logical_short_circuit", "print(true and 2, zilch or 'x', false and boom, 1 or boom);",
     "2 x False 1\n"),
    ("ternary", "print(1 > 2 ? 'big' : 'small');", "small\n"),
    ("ternary_lazy", "print(true ? 'ok' : boom);", "ok\n"),
    ("compound_assignment",
     "var s = 'a'; s += 'b'; var n = 2; n ^= 3; n -= 1; n *= 2; n /= 7; print(s, n);", "ab 2\n"),
    ("assignment_is_expression", "var a; var b; a = b = 4; print(a, b);", "4 4\n"),
    ("uninitialized_is_zilch", "var x; print(x);", "zilch\n"),
    ("value_formats", "sub f() {} class A {} print(f, A, A(), clock, [1, [2, 'x']], zilch, true);",
     "<sub f> <A class> <A instance> <native sub> [1, [2, x]] zilch True\n"),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("src, expected", [c[1:] for c in OUTPUT_CASES], ids=[c[0] for c in OUTPUT_CASES])
async def test_expression_output(src, expected):
    res, out = await run_ks(src)
    assert_ok(res)
    assert out == expected


RUNTIME_ERROR_CASES = [
    ("add_mixed", '1 + "a";', "Operands must be two numbers or two strings."),
    ("subtract_string", '"a" - 1;', "Operands must be numbers."),
    ("compare_bool", "true < 1;", "Operands must be numbers."),
    ("negate_string", '-"a";', "Operand must be a number."),
    ("undefined_read", "print(missing);", "Undefined variable 'missing'."),
    ("undefined_assign", "missing = 1;", "Undefined variable 'missing'."),
    ("call_non_callable", '"x"();', "Can only call subroutine and classes."),
    ("arity_mismatch", "sub f(a) {} f(1, 2);", "Expected 1 arguments but got 2."),
    ("get_on_number", "var n = 1; n.x;", "Only instances have properties."),
    ("set_on_number", "var n = 1; n.x = 1;", "Only instances have fields."),
    ("inc_statement_non_number", "var v = 'a'; inc v;",
     "Variable passed to increment statement had non-number value at runtime."),
    ("dec_statement_non_number", "var v; dec v;",
     "Variable passed to decrement statement had non-number value at runtime."),
    ("inc_expression_non_number", "var v = true; var w = inc v;",
     "Variable passed to increment expression had non-number value at runtime."),
    ("dec_expression_non_number", "var s = 'a'; var t = dec s;",
     "Variable passed to decrement expression had non-number value at runtime."),
    ("exit_non_number", "exit 'a';", "Exit code must be a number."),
    ("exit_non_integer", "exit 1.5;", "Exit code must be an integer."),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("src, message", [c[1:] for c in RUNTIME_ERROR_CASES], ids=[c[0] for c in RUNTIME_ERROR_CASES])
async def test_runtime_errors(src, message):
    res, _ = await run_ks(src)
    assert_runtime_error(res, message)
    assert res.diagnostics == [f"{message}\n[line 1]"]


@pytest.mark.asyncio
async def test_runtime_error_aborts_rest_of_script():
    res, out = await run_ks("print(1);\nprint(1 + zilch);\nprint(3);")
    assert_runtime_error(res, "Operands must be two numbers or two strings.", line=2)
    assert out == "1\n"


@pytest.mark.asyncio
@pytest.mark.parametrize("condition, expected", [
    ("0", "yes"),
    ("''", "yes"),
    ("[]", "yes"),
    ("true", "yes"),
    ("false", "no"),
    ("zilch", "no"),
], ids=["zero", "empty_string", "empty_array", "true", "false", "zilch"])
async def test_truthiness(condition, expected):
    res, out = await run_ks(f'if ({condition}) print("yes"); else print("no");')
    assert_ok(res)
    assert out == expected + "\n"


@pytest.mark.asyncio
async def test_array_literal_builds_fresh_sequence_each_visit():
    src = """
        var first;
        var second;
        for (var i = 0; i < 2; inc i) {
            var arr = [1, i];
            if (i == 0) first = arr; else second = arr;
        }
        sub make() { return [1]; }
        print(first, second, first == second, make() == make());
    """
    res, out = await run_ks(src)
    assert_ok(res)
    assert out == "[1, 0] [1, 1] False False\n"


@pytest.mark.asyncio
async def test_assigned_sequences_alias():
    runner = ScriptRunner(stdout=io.StringIO())
    res, _ = await run_ks("var a = [1]; var b = a; print(a == b);", runner)
    assert_ok(res)
    runner.evaluator.globals.values['a'].append(2.0)
    res, out = await run_ks("print(b);", runner)
    assert_ok(res)
    assert out == "[1, 2]\n"


@pytest.mark.asyncio
async def test_shadowing_leaves_outer_binding_alone():
    res, out = await run_ks("""
        var x = "outer";
        {
            var x = "inner";
            print(x);
            x = "changed";
        }
        print(x);
    """)
    assert_ok(res)
    assert out == "inner\nouter\n"


@pytest.mark.asyncio
async def test_closure_sees_declaration_time_binding():
    res, out = await run_ks("""
        var a = "global";
        {
            sub show() { print(a); }
            show();
            var a = "block";
            show();
        }
    """)
    assert_ok(res)
    assert out == "global\nglobal\n"


@pytest.mark.asyncio
async def test_closures_keep_their_environment_alive():
    res, out = await run_ks("""
        sub makeCounter() {
            var i = 0;
            sub count() {
                inc i;
                return i;
            }
            return count;
        }
        var c = makeCounter();
        c();
        print(c());
        var d = makeCounter();
        print(d(), c());
    """)
    assert_ok(res)
    assert out == "2\n1 3\n"


@pytest.mark.asyncio
async def test_block_locals_do_not_leak():
    res, _ = await run_ks("{ var inner = 1; }\nprint(inner);")
    assert_runtime_error(res, "Undefined variable 'inner'.", line=2)


@pytest.mark.asyncio
async def test_for_initializer_does_not_leak():
    res, _ = await run_ks("for (var i = 0; i < 1; inc i) {}\nprint(i);")
    assert_runtime_error(res, "Undefined variable 'i'.", line=2)


@pytest.mark.asyncio
async def test_break_exits_only_innermost_loop():
    res, out = await run_ks("""
        for (var i = 0; i < 3; inc i) {
            for (var j = 0; j < 3; inc j) {
                if (j == 1) break;
                print(i, j);
            }
        }
    """)
    assert_ok(res)
    assert out == "0 0\n1 0\n2 0\n"


@pytest.mark.asyncio
async def test_continue_in_for_still_runs_increment():
    res, out = await run_ks("""
        var seen = 0;
        for (var i = 0; i < 5; inc i) {
            if (i mod 2 == 0) continue;
            seen += 1;
        }
        print(seen);
    """)
    assert_ok(res)
    assert out == "2\n"


@pytest.mark.asyncio
async def test_break_skips_for_increment():
    res, out = await run_ks("""
        var i = 0;
        for (; i < 10; inc i) {
            if (i == 3) break;
        }
        print(i);
    """)
    assert_ok(res)
    assert out == "3\n"


@pytest.mark.asyncio
async def test_while_with_break_and_continue():
    res, out = await run_ks("""
        var i = 0;
        while (i < 10) {
            i += 1;
            if (i == 2) continue;
            if (i == 4) break;
            print(i);
        }
    """)
    assert_ok(res)
    assert out == "1\n3\n"


@pytest.mark.asyncio
async def test_return_unwinds_out_of_loops():
    res, out = await run_ks("""
        sub find() {
            for (var i = 0; ; inc i) {
                while (true) {
                    if (i == 3) return i;
                    break;
                }
            }
        }
        print(find());
    """)
    assert_ok(res)
    assert out == "3\n"


@pytest.mark.asyncio
async def test_recursion_and_implicit_zilch_return():
    res, out = await run_ks("""
        sub fib(n) {
            if (n < 2) return n;
            return fib(n - 1) + fib(n - 2);
        }
        sub nothing() {}
        print(fib(15), nothing());
    """)
    assert_ok(res)
    assert out == "610 zilch\n"


@pytest.mark.asyncio
async def test_inc_and_dec_yield_previous_value():
    res, out = await run_ks("""
        var n = 5;
        var old = inc n;
        print(old, n);
        print(dec n, n);
        { var local = 1; inc local; inc local; print(local); }
    """)
    assert_ok(res)
    assert out == "5 6\n6 5\n3\n"


@pytest.mark.asyncio
async def test_exit_raises_system_exit_with_code():
    out = io.StringIO()
    runner = ScriptRunner(stdout=out)
    with pytest.raises(SystemExit) as excinfo:
        await runner.handle_script("print(1);\nexit 3;\nprint(2);")
    assert isinstance(excinfo.value, ScriptExit)
    assert excinfo.value.code == 3
    assert excinfo.value.exit_code == 3
    assert out.getvalue() == "1\n"


@pytest.mark.asyncio
@pytest.mark.parametrize("src, code", [
    ("exit;", 0),
    ("exit 2.0;", 2),
    ("exit 1 + 1;", 2),
    ("exit -1;", -1),
], ids=["bare", "integral_float", "expression", "negative"])
async def test_exit_codes(src, code):
    runner = ScriptRunner(stdout=io.StringIO())
    with pytest.raises(ScriptExit) as excinfo:
        await runner.handle_script(src)
    assert excinfo.value.code == code


@pytest.mark.asyncio
async def test_echo_prints_lone_expression():
    runner = ScriptRunner(stdout=io.StringIO())
    out = io.StringIO()
    runner.evaluator.stdout = out
    await runner.handle_script("var x = 2;", echo=True)
    await runner.handle_script("x * 3;", echo=True)
    await runner.handle_script("x; x;", echo=True)
    assert out.getvalue() == "6\n"


@pytest.mark.asyncio
async def test_state_persists_between_runs():
    runner = ScriptRunner(stdout=io.StringIO())
    res, _ = await run_ks("var y = 1; sub fetch() { var a = y; return a; }", runner)
    assert_ok(res)
    res, _ = await run_ks("y = 2;\nboom;\ny = 3;", runner)
    assert_runtime_error(res, "Undefined variable 'boom'.", line=2)
    res, out = await run_ks("print(fetch());", runner)
    assert_ok(res)
    assert out == "2\n"


@pytest.mark.asyncio
async def test_stacktrace_lists_active_calls():
    res, _ = await run_ks("""
        sub inner(x) { return x + 'a'; }
        sub outer() { return inner(1); }
        outer();
    """)
    assert_runtime_error(res, "Operands must be two numbers or two strings.", line=2)
    assert res.stacktrace == "K# stacktrace: (outer) (inner 1)"
    assert res.format_error() == (
        "Operands must be two numbers or two strings.\n[line 2]\n"
        "K# stacktrace: (outer) (inner 1)"
    )


@pytest.mark.asyncio
async def test_top_level_error_has_no_stacktrace():
    res, _ = await run_ks("1 - 'a';")
    assert res.stacktrace is None
    assert res.format_error() == "Operands must be numbers.\n[line 1]"


@pytest.mark.asyncio
async def test_unbounded_recursion_reports_stack_overflow():
    res, _ = await run_ks("sub r(n) { return r(n + 1); }\nr(0);")
    assert res.status == 'error'
    assert res.error_kind == 'runtime'
    assert res.error_message == "Stack overflow."
    assert res.stacktrace.startswith("K# stacktrace: ... (r ")


@pytest.mark.asyncio
async def test_debug_trace_goes_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("KSHARP_DEBUG", "1")
    res, _ = await run_ks("sub f(a) { return a; } f(1);")
    assert_ok(res)
    err = capsys.readouterr().err
    assert "[DBG] call f [1.0]" in err
    assert "[DBG] return f 1.0" in err


def test_truthiness_and_equality_helpers():
    assert is_truthy(0.0) and is_truthy("") and is_truthy([])
    assert not is_truthy(None) and not is_truthy(False)
    assert is_equal(None, None)
    assert not is_equal(None, False)
    assert not is_equal(True, 1.0)
    assert is_equal(2, 2.0)
    items = [1.0]
    assert is_equal(items, items)
    assert not is_equal([1.0], [1.0])


@pytest.mark.asyncio
async def test_evaluator_runs_hand_built_tree():
    out = io.StringIO()
    evaluator = Evaluator(stdout=out)
    plus = Token(TokenType.PLUS, "+", None, 1)
    tree = [ast.Print(ast.Binary(ast.Literal(2.0), plus, ast.Literal(3.0)))]
    await evaluator.interpret(tree)
    assert out.getvalue() == "5\n"
