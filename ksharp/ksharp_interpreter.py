"""
The core K# interpreter: an async tree-walking Evaluator.

Statements execute to either `None` (normal completion) or a `Completion`
record for break/continue/return, which each enclosing construct checks and
propagates. Genuine faults are `KSharpRuntimeError` exceptions.
"""
import math
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from ksharp import ksharp_ast as ast
from ksharp.ksharp_datatypes import (
    Environment, KSharpCallable, KSharpSubroutine, KSharpClass, KSharpInstance,
    VARIADIC, CONSTRUCTOR_NAME,
)
from ksharp.ksharp_errors import KSharpRuntimeError, ScriptExit
from ksharp.ksharp_printer import stringify
from ksharp.ksharp_tokens import Token, TokenType as T


@dataclass(frozen=True)
class Completion:
    """Abrupt completion of a statement: a break, continue or return."""
    kind: Literal['break', 'continue', 'return']
    value: Any = None


BREAK = Completion('break')
CONTINUE = Completion('continue')


def is_truthy(value: Any) -> bool:
    """Only `zilch` and `false` are falsy. Zero and empty strings are true."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_equal(a: Any, b: Any) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    # bool is an int subclass in Python; never let True equal 1.0.
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if isinstance(a, (float, int)) and isinstance(b, (float, int)):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, bool):
        return a == b
    # Sequences, callables and instances compare by identity.
    return a is b


def _is_number(value: Any) -> bool:
    return isinstance(value, (float, int)) and not isinstance(value, bool)


def _divide(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _floor_divide(a: float, b: float) -> float:
    quotient = _divide(a, b)
    if math.isinf(quotient) or math.isnan(quotient):
        return quotient
    return float(math.floor(quotient))


def _remainder(a: float, b: float) -> float:
    # Truncated remainder: the sign follows the dividend.
    if b == 0.0 or math.isinf(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


def _power(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        if a == 0.0 and b < 0:
            return math.inf
        return math.nan


class Evaluator:
    """The K# execution engine.

    One Evaluator is one interpreter instance: it owns the global
    environment, the resolver's distance map and the current environment
    pointer. None of that is safe to share between concurrent scripts.
    """
    def __init__(self, stdout=None, stdin=None):
        self.globals = Environment()
        self.environment = self.globals
        # Filled by the Resolver; read-only while executing.
        self.locals: Dict[ast.Expr, int] = {}
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stdin = stdin if stdin is not None else sys.stdin
        self.call_stack: List[Dict[str, Any]] = []

    # --- Tracing ---

    def _dbg(self, *parts):
        if os.environ.get("KSHARP_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _push_frame(self, name: str, args: List[Any], call_site: Token):
        self.call_stack.append({
            'name': name,
            'args': args,
            'line': call_site.line,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    # --- Public entry points ---

    async def interpret(self, statements: List[ast.Stmt]):
        """Executes top-level statements. Runtime errors propagate to the caller."""
        self.call_stack.clear()
        for stmt in statements:
            await self.execute(stmt)

    def stringify(self, value: Any) -> str:
        return stringify(value)

    def write(self, text: str):
        self.stdout.write(text)
        self.stdout.flush()

    # =================================================================
    # Statements
    # =================================================================

    async def execute(self, stmt: ast.Stmt) -> Optional[Completion]:
        match stmt:
            case ast.Expression(expression=expr):
                await self.evaluate(expr)

            case ast.Print(expression=expr):
                value = await self.evaluate(expr)
                self.write(self.stringify(value) + "\n")

            case ast.Var(name=name, initializer=initializer):
                value = None
                if initializer is not None:
                    value = await self.evaluate(initializer)
                self.environment.define(name.lexeme, value)

            case ast.Block(statements=statements):
                return await self.execute_block(statements, Environment(self.environment))

            case ast.If(condition=condition, then_branch=then_branch, else_branch=else_branch):
                if is_truthy(await self.evaluate(condition)):
                    return await self.execute(then_branch)
                if else_branch is not None:
                    return await self.execute(else_branch)

            case ast.While(condition=condition, body=body):
                while is_truthy(await self.evaluate(condition)):
                    completion = await self.execute(body)
                    if completion is BREAK:
                        break
                    if completion is not None and completion.kind == 'return':
                        return completion

            case ast.For():
                return await self._execute_for(stmt)

            case ast.IncStmt(variable_name=name):
                self._step_variable(stmt, name, 1.0, "increment statement")

            case ast.DecStmt(variable_name=name):
                self._step_variable(stmt, name, -1.0, "decrement statement")

            case ast.Break():
                return BREAK

            case ast.Continue():
                return CONTINUE

            case ast.Exit(token=token, exit_code=exit_code):
                await self._execute_exit(token, exit_code)

            case ast.Subroutine(name=name):
                self.environment.define(name.lexeme, KSharpSubroutine(stmt, self.environment))

            case ast.Return(value=value_expr):
                value = None
                if value_expr is not None:
                    value = await self.evaluate(value_expr)
                return Completion('return', value)

            case ast.Class():
                await self._execute_class(stmt)

            case _:
                raise TypeError(f"Unknown statement node: {stmt!r}")
        return None

    async def execute_block(self, statements: List[ast.Stmt], environment: Environment) -> Optional[Completion]:
        previous = self.environment
        try:
            self.environment = environment
            for stmt in statements:
                completion = await self.execute(stmt)
                if completion is not None:
                    return completion
        finally:
            self.environment = previous
        return None

    async def _execute_for(self, stmt: ast.For) -> Optional[Completion]:
        previous = self.environment
        self.environment = Environment(previous)
        try:
            if stmt.initializer is not None:
                await self.execute(stmt.initializer)
            while is_truthy(await self.evaluate(stmt.condition)):
                completion = await self.execute(stmt.body)
                if completion is BREAK:
                    break
                if completion is not None and completion.kind == 'return':
                    return completion
                # Runs after a normal pass and after `continue`, never after `break`.
                if stmt.increment is not None:
                    await self.execute(stmt.increment)
        finally:
            self.environment = previous
        return None

    async def _execute_exit(self, token: Token, exit_code: ast.Expr):
        value = await self.evaluate(exit_code)
        if not _is_number(value):
            raise KSharpRuntimeError(token, "Exit code must be a number.")
        if not float(value).is_integer():
            raise KSharpRuntimeError(token, "Exit code must be an integer.")
        self._dbg("exit", int(value))
        raise ScriptExit(int(value))

    async def _execute_class(self, stmt: ast.Class):
        # Pre-declare the name so the class value lands in this very frame.
        self.environment.define(stmt.name.lexeme, None)

        superclass = None
        if stmt.superclass is not None:
            superclass = await self.evaluate(stmt.superclass)
            if not isinstance(superclass, KSharpClass):
                raise KSharpRuntimeError(stmt.superclass.name, "Superclass must be a class.")

        enclosing = self.environment
        if superclass is not None:
            self.environment = Environment(self.environment)
            self.environment.define("super", superclass)

        try:
            def compile_group(declarations, constructors=False):
                return {
                    method.name.lexeme: KSharpSubroutine(
                        method, self.environment,
                        constructors and method.name.lexeme == CONSTRUCTOR_NAME,
                    )
                    for method in declarations
                }

            klass = KSharpClass(
                stmt.name.lexeme,
                superclass,
                compile_group(stmt.methods, constructors=True),
                compile_group(stmt.static_methods),
                compile_group(stmt.get_methods),
                compile_group(stmt.set_methods),
            )
        finally:
            self.environment = enclosing

        self._dbg("class", repr(klass))
        self.environment.assign(stmt.name, klass)

    async def call_subroutine_body(self, subroutine: KSharpSubroutine, environment: Environment) -> Any:
        """Runs a subroutine body in `environment`; returns the `return` value, if any."""
        completion = await self.execute_block(subroutine.declaration.body, environment)
        if completion is not None and completion.kind == 'return':
            return completion.value
        return None

    # =================================================================
    # Expressions
    # =================================================================

    async def evaluate(self, expr: ast.Expr) -> Any:
        match expr:
            case ast.Literal(value=list() as items):
                # Never memoized: every visit builds a fresh sequence.
                return [await self.evaluate(item) for item in items]

            case ast.Literal(value=value):
                return value

            case ast.Grouping(expression=inner):
                return await self.evaluate(inner)

            case ast.Unary(operator=op, right=right):
                operand = await self.evaluate(right)
                if op.type == T.MINUS:
                    self._check_number_operand(op, operand)
                    return -operand
                return not is_truthy(operand)

            case ast.Binary():
                return await self._evaluate_binary(expr)

            case ast.Logical(left=left, operator=op, right=right):
                value = await self.evaluate(left)
                if op.type == T.OR:
                    if is_truthy(value):
                        return value
                elif not is_truthy(value):
                    return value
                return await self.evaluate(right)

            case ast.Conditional(condition=condition, then=then, otherwise=otherwise):
                if is_truthy(await self.evaluate(condition)):
                    return await self.evaluate(then)
                return await self.evaluate(otherwise)

            case ast.Variable(name=name):
                return self._look_up_variable(name, expr)

            case ast.Assign(name=name, value=value_expr):
                value = await self.evaluate(value_expr)
                self._assign_variable(name, expr, value)
                return value

            case ast.Inc(variable_name=name):
                return self._step_variable(expr, name, 1.0, "increment expression")

            case ast.Dec(variable_name=name):
                return self._step_variable(expr, name, -1.0, "decrement expression")

            case ast.Call():
                return await self._evaluate_call(expr)

            case ast.Get():
                return await self._evaluate_get(expr)

            case ast.Set():
                return await self._evaluate_set(expr)

            case ast.This(keyword=keyword):
                return self._look_up_variable(keyword, expr)

            case ast.Super(method=method):
                distance = self.locals[expr]
                superclass = self.environment.get_at(distance, "super")
                instance = self.environment.get_at(distance - 1, "this")
                found = superclass.find_method(method.lexeme)
                if found is None:
                    raise KSharpRuntimeError(method, f"Undefined property '{method.lexeme}'.")
                return found.bind(instance)

        raise TypeError(f"Unknown expression node: {expr!r}")

    async def _evaluate_binary(self, expr: ast.Binary) -> Any:
        left = await self.evaluate(expr.left)
        right = await self.evaluate(expr.right)
        op = expr.operator

        match op.type:
            case T.PLUS:
                if _is_number(left) and _is_number(right):
                    return left + right
                if isinstance(left, str) and isinstance(right, str):
                    return left + right
                raise KSharpRuntimeError(op, "Operands must be two numbers or two strings.")
            case T.EQUAL_EQUAL:
                return is_equal(left, right)
            case T.BANG_EQUAL:
                return not is_equal(left, right)

        self._check_number_operands(op, left, right)
        match op.type:
            case T.MINUS:
                return left - right
            case T.STAR:
                return left * right
            case T.SLASH:
                return _divide(left, right)
            case T.MOD:
                return _remainder(left, right)
            case T.DIV:
                return _floor_divide(left, right)
            case T.CARET:
                return _power(left, right)
            case T.GREATER:
                return left > right
            case T.GREATER_EQUAL:
                return left >= right
            case T.LESSER:
                return left < right
            case T.LESSER_EQUAL:
                return left <= right
        raise KSharpRuntimeError(op, f"Unknown operator '{op.lexeme}'.")

    async def _evaluate_call(self, expr: ast.Call) -> Any:
        callee = await self.evaluate(expr.callee)
        args = [await self.evaluate(arg) for arg in expr.args]

        if not isinstance(callee, KSharpCallable):
            raise KSharpRuntimeError(expr.paren, "Can only call subroutine and classes.")

        arity = callee.arity()
        if arity != VARIADIC and len(args) != arity:
            raise KSharpRuntimeError(expr.paren, f"Expected {arity} arguments but got {len(args)}.")

        name = getattr(callee, 'name', '<call>')
        self._push_frame(name, args, expr.paren)
        self._dbg("call", name, args)
        try:
            result = await callee.invoke(self, args)
        except KSharpRuntimeError as e:
            # Natives raise without a token; pin them to this call site.
            if e.token is None:
                e.token = expr.paren
            raise
        except RecursionError:
            raise KSharpRuntimeError(expr.paren, "Stack overflow.") from None
        self._pop_frame()
        self._dbg("return", name, result)
        return result

    async def _evaluate_get(self, expr: ast.Get) -> Any:
        obj = await self.evaluate(expr.object)
        name = expr.name

        if isinstance(obj, KSharpInstance):
            getter = obj.get_get_method(name)
            if getter is not None and not expr.in_method:
                return await getter.invoke(self, [])
            if not expr.in_method and getter is None and obj.get_set_method(name) is not None:
                raise KSharpRuntimeError(
                    name, f"Instance has a set method but no matching get method for '{name.lexeme}'.")
            return obj.get_field(name)

        if isinstance(obj, KSharpClass):
            return obj.get_static_method(name)

        raise KSharpRuntimeError(name, "Only instances have properties.")

    async def _evaluate_set(self, expr: ast.Set) -> Any:
        obj = await self.evaluate(expr.object)
        name = expr.name

        if not isinstance(obj, KSharpInstance):
            raise KSharpRuntimeError(name, "Only instances have fields.")

        value = await self.evaluate(expr.value)
        setter = obj.get_set_method(name)
        if setter is not None and not expr.in_method:
            await setter.invoke(self, [value])
            return value
        if not expr.in_method and setter is None and obj.get_get_method(name) is not None:
            raise KSharpRuntimeError(
                name, f"Instance has a get method but no matching set method for '{name.lexeme}'.")
        obj.set_field(name, value, expr.in_method)
        return value

    # =================================================================
    # Variable access
    # =================================================================

    def _look_up_variable(self, name: Token, expr) -> Any:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _assign_variable(self, name: Token, expr, value: Any):
        distance = self.locals.get(expr)
        if distance is not None:
            self.environment.assign_at(distance, name, value)
        else:
            self.globals.assign(name, value)

    def _step_variable(self, node, name: Token, delta: float, what: str) -> Any:
        """Reads a number, writes it back +/- 1 to the same binding, yields the old value."""
        current = self._look_up_variable(name, node)
        if not _is_number(current):
            raise KSharpRuntimeError(name, f"Variable passed to {what} had non-number value at runtime.")
        self._assign_variable(name, node, current + delta)
        return current

    # =================================================================
    # Type checks
    # =================================================================

    def _check_number_operand(self, op: Token, operand: Any):
        if not _is_number(operand):
            raise KSharpRuntimeError(op, "Operand must be a number.")

    def _check_number_operands(self, op: Token, left: Any, right: Any):
        if not (_is_number(left) and _is_number(right)):
            raise KSharpRuntimeError(op, "Operands must be numbers.")
