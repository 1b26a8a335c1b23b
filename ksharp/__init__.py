"""
K#: a small dynamically-typed scripting language with a tree-walking interpreter.
"""
from ksharp.ksharp_runtime import ScriptRunner, ExecutionResult, StdLib
from ksharp.ksharp_interpreter import Evaluator
from ksharp.ksharp_errors import ErrorReporter, KSharpRuntimeError, ScriptExit

__all__ = [
    "ScriptRunner",
    "ExecutionResult",
    "StdLib",
    "Evaluator",
    "ErrorReporter",
    "KSharpRuntimeError",
    "ScriptExit",
]
