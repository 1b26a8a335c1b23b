"""
Defines the core runtime data types for the K# interpreter.

Script values map onto Python values directly: float for numbers, str for
strings, bool, None for `zilch`, and list for sequences (shared by
reference). Everything callable derives from `KSharpCallable`.
"""
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ksharp.ksharp_errors import KSharpRuntimeError
from ksharp.ksharp_tokens import Token

if TYPE_CHECKING:
    from ksharp import ksharp_ast as ast
    from ksharp.ksharp_interpreter import Evaluator

# Arity sentinel: accept any number of arguments.
VARIADIC = -1

CONSTRUCTOR_NAME = "construct"


# =================================================================
# Environment chain
# =================================================================

class Environment:
    """A mutable name → value frame with an optional enclosing frame.

    Frames are plain Python objects, so a frame stays alive for as long as
    any closure or bound method still references it.
    """
    def __init__(self, enclosing: Optional['Environment'] = None):
        self.enclosing = enclosing
        self.values: Dict[str, Any] = {}

    def define(self, name: str, value: Any):
        self.values[name] = value

    def get(self, name: Token) -> Any:
        env = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.enclosing
        raise KSharpRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def assign(self, name: Token, value: Any):
        env = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.enclosing
        raise KSharpRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def ancestor(self, distance: int) -> 'Environment':
        env = self
        for _ in range(distance):
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Any:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: Token, value: Any):
        self.ancestor(distance).values[name.lexeme] = value

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __repr__(self) -> str:
        keys = ', '.join(self.values.keys())
        parent = f", enclosing=#{id(self.enclosing)}" if self.enclosing else ""
        return f"<Environment values=[{keys}]{parent}>"


# =================================================================
# Callables
# =================================================================

class KSharpCallable(ABC):
    """Anything a script can call: natives, subroutines and classes."""

    @abstractmethod
    def arity(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def invoke(self, evaluator: 'Evaluator', args: List[Any]) -> Any:
        raise NotImplementedError


class NativeSubroutine(KSharpCallable):
    """Wraps a host function as a script callable.

    `func` receives `(evaluator, args)` and may be a plain function or a
    coroutine function.
    """
    def __init__(self, name: str, arity: int, func: Callable):
        self.name = name
        self._arity = arity
        self.func = func

    def arity(self) -> int:
        return self._arity

    async def invoke(self, evaluator, args):
        result = self.func(evaluator, args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"<NativeSubroutine {self.name} arity={self._arity}>"

    def __str__(self) -> str:
        return "<native sub>"


class KSharpSubroutine(KSharpCallable):
    """A user subroutine: declaration + captured environment (a closure)."""
    def __init__(self, declaration: 'ast.Subroutine', closure: Environment, is_constructor: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_constructor = is_constructor

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def bind(self, instance: 'KSharpInstance') -> 'KSharpSubroutine':
        """Returns a copy whose closure is a fresh frame defining `this`."""
        environment = Environment(self.closure)
        environment.define("this", instance)
        return KSharpSubroutine(self.declaration, environment, self.is_constructor)

    def arity(self) -> int:
        return len(self.declaration.params)

    async def invoke(self, evaluator, args):
        environment = Environment(self.closure)
        for param, arg in zip(self.declaration.params, args):
            environment.define(param.lexeme, arg)

        value = await evaluator.call_subroutine_body(self, environment)
        if self.is_constructor:
            return self.closure.get_at(0, "this")
        return value

    def __repr__(self) -> str:
        return f"<KSharpSubroutine {self.name} arity={self.arity()}>"

    def __str__(self) -> str:
        return f"<sub {self.name}>"


class KSharpClass(KSharpCallable):
    """A class value. Calling it constructs an instance."""
    def __init__(self, name: str, superclass: Optional['KSharpClass'],
                 methods: Dict[str, KSharpSubroutine],
                 static_methods: Optional[Dict[str, KSharpSubroutine]] = None,
                 get_methods: Optional[Dict[str, KSharpSubroutine]] = None,
                 set_methods: Optional[Dict[str, KSharpSubroutine]] = None):
        self.name = name
        self.superclass = superclass
        self.methods = methods
        self.static_methods = static_methods or {}
        self.get_methods = get_methods or {}
        self.set_methods = set_methods or {}

    def _find(self, table: str, name: str) -> Optional[KSharpSubroutine]:
        klass = self
        while klass is not None:
            method = getattr(klass, table).get(name)
            if method is not None:
                return method
            klass = klass.superclass
        return None

    def find_method(self, name: str) -> Optional[KSharpSubroutine]:
        return self._find("methods", name)

    def find_get_method(self, name: str) -> Optional[KSharpSubroutine]:
        return self._find("get_methods", name)

    def find_set_method(self, name: str) -> Optional[KSharpSubroutine]:
        return self._find("set_methods", name)

    def get_static_method(self, name: Token) -> KSharpSubroutine:
        method = self._find("static_methods", name.lexeme)
        if method is None:
            raise KSharpRuntimeError(name, f"Undefined static method '{name.lexeme}'.")
        return method

    def arity(self) -> int:
        initializer = self.find_method(CONSTRUCTOR_NAME)
        if initializer is None:
            return 0
        return initializer.arity()

    async def invoke(self, evaluator, args):
        instance = KSharpInstance(self)
        initializer = self.find_method(CONSTRUCTOR_NAME)
        if initializer is not None:
            await initializer.bind(instance).invoke(evaluator, args)
        return instance

    def __repr__(self) -> str:
        parent = f" <- {self.superclass.name}" if self.superclass else ""
        return f"<KSharpClass {self.name}{parent}>"

    def __str__(self) -> str:
        return f"<{self.name} class>"


class KSharpInstance:
    """An instance: owning class plus a mutable field table."""
    def __init__(self, klass: KSharpClass):
        self.klass = klass
        self.fields: Dict[str, Any] = {}

    def get_field(self, name: Token) -> Any:
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]
        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)
        raise KSharpRuntimeError(name, f"Undefined property '{name.lexeme}'.")

    def set_field(self, name: Token, value: Any, in_method: bool):
        """Fields come into existence only through assignments made inside methods."""
        if name.lexeme in self.fields or in_method:
            self.fields[name.lexeme] = value
            return
        raise KSharpRuntimeError(name, f"Undefined property '{name.lexeme}'.")

    def get_get_method(self, name: Token) -> Optional[KSharpSubroutine]:
        method = self.klass.find_get_method(name.lexeme)
        return method.bind(self) if method is not None else None

    def get_set_method(self, name: Token) -> Optional[KSharpSubroutine]:
        method = self.klass.find_set_method(name.lexeme)
        return method.bind(self) if method is not None else None

    def __repr__(self) -> str:
        return f"<KSharpInstance of {self.klass.name} fields=[{', '.join(self.fields)}]>"

    def __str__(self) -> str:
        return f"<{self.klass.name} instance>"
