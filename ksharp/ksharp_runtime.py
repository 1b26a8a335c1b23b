# ksharp_runtime.py

import asyncio
import inspect
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from ksharp import ksharp_ast as ast
from ksharp.ksharp_datatypes import NativeSubroutine, VARIADIC
from ksharp.ksharp_errors import ErrorReporter, KSharpRuntimeError
from ksharp.ksharp_interpreter import Evaluator
from ksharp.ksharp_lexer import scan
from ksharp.ksharp_parser import parse
from ksharp.ksharp_resolver import Resolver

MAX_TRACE_FRAMES = 10

# ===================================================================
# 1. The Standard Library
# ===================================================================


def native_sub(arity: int):
    """Marks a StdLib method as a global native subroutine with the given arity."""
    def decorator(func):
        func._ksharp_arity = arity
        return func
    return decorator


def _require_number(value, message="Expected number input."):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise KSharpRuntimeError(None, message)
    return float(value)


class StdLib:
    """Python implementations of the K# global natives.

    Each `_name` method decorated with `native_sub` is bound as `name` in the
    global environment. Methods receive the running evaluator and the
    already-evaluated argument list.
    """

    @native_sub(0)
    def _clock(self, evaluator, args):
        return time.monotonic()

    @native_sub(1)
    async def _snooze(self, evaluator, args):
        seconds = _require_number(args[0])
        await asyncio.sleep(max(seconds, 0.0))
        return None

    @native_sub(VARIADIC)
    def _print(self, evaluator, args):
        evaluator.write(" ".join(evaluator.stringify(a) for a in args) + "\n")
        return None

    @native_sub(VARIADIC)
    async def _input(self, evaluator, args):
        if len(args) > 1:
            raise KSharpRuntimeError(None, "Input takes 0 or 1 arguments.")
        if args:
            if not isinstance(args[0], str):
                raise KSharpRuntimeError(None, "Prompt must be a string.")
            evaluator.write(args[0])
        loop = asyncio.get_running_loop()
        line = await loop.run_in_executor(None, evaluator.stdin.readline)
        if line == "":
            return None
        return line.rstrip("\r\n")

    @native_sub(VARIADIC)
    def _round(self, evaluator, args):
        if not args or len(args) > 2:
            raise KSharpRuntimeError(None, "Round takes 1 or 2 arguments.")
        number = _require_number(args[0])
        digits = 0
        if len(args) == 2:
            digits_value = _require_number(args[1], "digits must be an integer.")
            if not digits_value.is_integer():
                raise KSharpRuntimeError(None, "digits must be an integer.")
            digits = int(digits_value)
        if math.isinf(number) or math.isnan(number):
            return number
        return float(round(number, digits))

    @native_sub(1)
    def _string(self, evaluator, args):
        return evaluator.stringify(args[0])

    @native_sub(1)
    def _sqrt(self, evaluator, args):
        number = _require_number(args[0])
        if number < 0:
            return math.nan
        return math.sqrt(number)

    def natives(self) -> Dict[str, NativeSubroutine]:
        out = {}
        for name, member in inspect.getmembers(self):
            arity = getattr(member, "_ksharp_arity", None)
            if arity is None or not name.startswith('_'):
                continue
            native_name = name[1:]
            out[native_name] = NativeSubroutine(native_name, arity, member)
        return out


# ===================================================================
# 2. Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    error_kind: Optional[Literal['static', 'runtime']] = None
    error_message: Optional[str] = None
    error_line: Optional[int] = None
    diagnostics: List[str] = field(default_factory=list)
    stacktrace: Optional[str] = None

    @property
    def exit_code(self) -> int:
        if self.error_kind == 'static':
            return 65
        if self.error_kind == 'runtime':
            return 70
        return 0

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        text = "\n".join(self.diagnostics) or str(self.error_message or "Unknown error")
        if self.stacktrace:
            text = f"{text}\n{self.stacktrace}"
        return text


class ScriptRunner:
    """Scans, parses, resolves and executes K# code against one interpreter."""

    def __init__(self, stdout=None, stdin=None, load_natives: bool = True,
                 reporter: Optional[ErrorReporter] = None):
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self.evaluator = Evaluator(stdout=stdout, stdin=stdin)
        if load_natives:
            for name, native in StdLib().natives().items():
                self.evaluator.globals.define(name, native)

    def parse(self, source_code: str) -> List[ast.Stmt]:
        """Scans and parses; syntax errors land in the reporter."""
        return parse(scan(source_code, self.reporter), self.reporter)

    def _format_stacktrace(self) -> Optional[str]:
        stack = self.evaluator.call_stack
        if not stack:
            return None
        frames = []
        if len(stack) > MAX_TRACE_FRAMES:
            frames.append("...")
            stack = stack[-MAX_TRACE_FRAMES:]
        for frame in stack:
            args = " ".join(self.evaluator.stringify(a) for a in frame.get('args') or [])
            frames.append(f"({frame['name']} {args})" if args else f"({frame['name']})")
        return "K# stacktrace: " + " ".join(frames)

    def _static_failure(self) -> ExecutionResult:
        first = self.reporter.diagnostics[0] if self.reporter.diagnostics else None
        return ExecutionResult(
            status='error',
            error_kind='static',
            error_message=first.message if first else None,
            error_line=first.line if first else None,
            diagnostics=[d.format() for d in self.reporter.diagnostics],
        )

    async def handle_script(self, source_code: str, echo: bool = False) -> ExecutionResult:
        """The main entry point to execute a script.

        With `echo` (REPL mode), a source consisting of a single expression
        statement prints that expression's value.
        """
        self.reporter.reset()

        # 1. Scan and parse
        statements = self.parse(source_code)
        if self.reporter.had_error:
            return self._static_failure()

        # 2. Resolve
        Resolver(self.reporter, self.evaluator.locals).resolve(statements)
        if self.reporter.had_error:
            return self._static_failure()

        if echo and len(statements) == 1 and isinstance(statements[0], ast.Expression):
            statements = [ast.Print(statements[0].expression)]

        # 3. Evaluate
        try:
            await self.evaluator.interpret(statements)
        except KSharpRuntimeError as e:
            return self._runtime_failure(e.message, e.line)
        except RecursionError:
            return self._runtime_failure("Stack overflow.", -1)

        return ExecutionResult(status='success')

    def _runtime_failure(self, message: str, line: int) -> ExecutionResult:
        self.reporter.report_runtime_error(message, line)
        return ExecutionResult(
            status='error',
            error_kind='runtime',
            error_message=message,
            error_line=line,
            diagnostics=[d.format() for d in self.reporter.diagnostics],
            stacktrace=self._format_stacktrace(),
        )
