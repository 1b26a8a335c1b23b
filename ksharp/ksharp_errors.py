"""
Error types and the diagnostic sink shared by every K# pipeline stage.
"""
from dataclasses import dataclass
from typing import List, Literal, Optional, TextIO

from ksharp.ksharp_tokens import Token, TokenType


class KSharpRuntimeError(Exception):
    """A fault raised while evaluating a script. Carries the offending token."""
    def __init__(self, token: Optional[Token], message: str):
        super().__init__(message)
        self.token = token
        self.message = message

    @property
    def line(self) -> int:
        return self.token.line if self.token is not None else -1


class ScriptExit(SystemExit):
    """Raised by the `exit` statement. Ends the hosting process unless caught."""
    def __init__(self, code: int):
        super().__init__(code)
        self.exit_code = code


@dataclass
class Diagnostic:
    kind: Literal['static', 'runtime']
    line: int
    message: str
    where: str = ""

    def format(self) -> str:
        if self.kind == 'runtime':
            return f"{self.message}\n[line {self.line}]"
        return f"[line {self.line}] Error{self.where}: {self.message}"


class ErrorReporter:
    """Collects diagnostics from the lexer, parser, resolver and evaluator.

    When `stream` is given, each diagnostic is also written to it as soon as
    it is reported (the CLI passes `sys.stderr`).
    """
    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self.diagnostics: List[Diagnostic] = []
        self.had_error = False
        self.had_runtime_error = False

    def report_error(self, line: int, context: str, message: str):
        self._emit(Diagnostic('static', line, message, context))
        self.had_error = True

    def error_at(self, token: Token, message: str):
        if token.type == TokenType.EOF:
            self.report_error(token.line, " at end", message)
        else:
            self.report_error(token.line, f" at '{token.lexeme}'", message)

    def report_runtime_error(self, message: str, line: int):
        self._emit(Diagnostic('runtime', line, message))
        self.had_runtime_error = True

    def reset(self):
        """Clears the static error flag between REPL lines."""
        self.had_error = False
        self.had_runtime_error = False
        self.diagnostics.clear()

    @property
    def messages(self) -> List[str]:
        return [d.message for d in self.diagnostics]

    def _emit(self, diagnostic: Diagnostic):
        self.diagnostics.append(diagnostic)
        if self.stream is not None:
            print(diagnostic.format(), file=self.stream)
