"""
Static resolution pass.

Walks the whole program once before execution and records, for every
variable, `this` and `super` reference, how many scopes separate the use
from its declaration. References never found in a tracked scope are left
unrecorded and resolve against the global environment at runtime.
"""
import enum
from typing import Dict, List

from ksharp import ksharp_ast as ast
from ksharp.ksharp_datatypes import CONSTRUCTOR_NAME
from ksharp.ksharp_tokens import Token


class SubroutineType(enum.Enum):
    NONE = enum.auto()
    SUBROUTINE = enum.auto()
    CONSTRUCTOR = enum.auto()
    METHOD = enum.auto()
    STATIC_METHOD = enum.auto()


class ClassType(enum.Enum):
    NONE = enum.auto()
    CLASS = enum.auto()
    SUBCLASS = enum.auto()


class Resolver:
    def __init__(self, reporter, locals_: Dict[ast.Expr, int] = None):
        self.reporter = reporter
        # Binding distances keyed by node identity; shared with the evaluator.
        self.locals: Dict[ast.Expr, int] = {} if locals_ is None else locals_
        # Innermost scope last; name -> "definitely assigned".
        self._scopes: List[Dict[str, bool]] = []
        self._current_subroutine = SubroutineType.NONE
        self._current_class = ClassType.NONE

    def resolve(self, statements: List[ast.Stmt]) -> Dict[ast.Expr, int]:
        for stmt in statements:
            self._resolve_stmt(stmt)
        return self.locals

    # =================================================================
    # Statements
    # =================================================================

    def _resolve_stmt(self, stmt: ast.Stmt):
        match stmt:
            case ast.Block(statements=statements):
                self._begin_scope()
                for inner in statements:
                    self._resolve_stmt(inner)
                self._end_scope()

            case ast.Expression(expression=expr) | ast.Print(expression=expr):
                self._resolve_expr(expr)

            case ast.Var(name=name, initializer=initializer):
                self._declare(name)
                if initializer is not None:
                    self._resolve_expr(initializer)
                self._define(name)

            case ast.Exit(exit_code=exit_code):
                self._resolve_expr(exit_code)

            case ast.If(condition=condition, then_branch=then_branch, else_branch=else_branch):
                self._resolve_expr(condition)
                self._resolve_stmt(then_branch)
                if else_branch is not None:
                    self._resolve_stmt(else_branch)

            case ast.While(condition=condition, body=body):
                self._resolve_expr(condition)
                self._resolve_stmt(body)

            case ast.For():
                # The loop owns a scope so its initializer does not leak.
                self._begin_scope()
                if stmt.initializer is not None:
                    self._resolve_stmt(stmt.initializer)
                self._resolve_expr(stmt.condition)
                if stmt.increment is not None:
                    self._resolve_stmt(stmt.increment)
                self._resolve_stmt(stmt.body)
                self._end_scope()

            case ast.IncStmt(variable_name=name) | ast.DecStmt(variable_name=name):
                self._resolve_local(stmt, name)

            case ast.Break() | ast.Continue():
                pass

            case ast.Subroutine(name=name):
                self._declare(name)
                self._define(name)
                self._resolve_subroutine(stmt, SubroutineType.SUBROUTINE)

            case ast.Return(keyword=keyword, value=value):
                if self._current_subroutine == SubroutineType.NONE:
                    self.reporter.error_at(keyword, "Can't return from top-level code.")
                if value is not None:
                    if self._current_subroutine == SubroutineType.CONSTRUCTOR:
                        self.reporter.error_at(keyword, "Can't return a value from a class constructor.")
                    self._resolve_expr(value)

            case ast.Class():
                self._resolve_class(stmt)

            case _:
                raise TypeError(f"Unknown statement node: {stmt!r}")

    def _resolve_class(self, stmt: ast.Class):
        enclosing_class = self._current_class
        self._current_class = ClassType.CLASS

        self._declare(stmt.name)
        self._define(stmt.name)

        superclass = stmt.superclass
        if superclass is not None and superclass.name.lexeme == stmt.name.lexeme:
            self.reporter.error_at(superclass.name, "A class cannot inherit from itself.")

        if superclass is not None:
            self._current_class = ClassType.SUBCLASS
            self._resolve_expr(superclass)
            self._begin_scope()
            self._scopes[-1]["super"] = True

        self._begin_scope()
        self._scopes[-1]["this"] = True

        for method in stmt.methods:
            kind = SubroutineType.METHOD
            if method.name.lexeme == CONSTRUCTOR_NAME:
                kind = SubroutineType.CONSTRUCTOR
            self._resolve_subroutine(method, kind)
        for method in stmt.get_methods + stmt.set_methods:
            self._resolve_subroutine(method, SubroutineType.METHOD)
        self._end_scope()

        # Static methods are never bound, so no `this` frame sits above them.
        for method in stmt.static_methods:
            self._resolve_subroutine(method, SubroutineType.STATIC_METHOD)
        if superclass is not None:
            self._end_scope()

        self._current_class = enclosing_class

    def _resolve_subroutine(self, subroutine: ast.Subroutine, kind: SubroutineType):
        enclosing = self._current_subroutine
        self._current_subroutine = kind

        self._begin_scope()
        for param in subroutine.params:
            self._declare(param)
            self._define(param)
        for stmt in subroutine.body:
            self._resolve_stmt(stmt)
        self._end_scope()

        self._current_subroutine = enclosing

    # =================================================================
    # Expressions
    # =================================================================

    def _resolve_expr(self, expr: ast.Expr):
        match expr:
            case ast.Variable(name=name):
                if self._scopes and self._scopes[-1].get(name.lexeme) is False:
                    self.reporter.error_at(name, "Can't read local variable in its own initializer.")
                self._resolve_local(expr, name)

            case ast.Assign(name=name, value=value):
                self._resolve_expr(value)
                self._resolve_local(expr, name)

            case ast.Binary(left=left, right=right) | ast.Logical(left=left, right=right):
                self._resolve_expr(left)
                self._resolve_expr(right)

            case ast.Grouping(expression=inner) | ast.Unary(right=inner):
                self._resolve_expr(inner)

            case ast.Literal(value=list() as items):
                for item in items:
                    self._resolve_expr(item)

            case ast.Literal():
                pass

            case ast.Conditional(condition=condition, then=then, otherwise=otherwise):
                self._resolve_expr(condition)
                self._resolve_expr(then)
                self._resolve_expr(otherwise)

            case ast.Inc(variable_name=name) | ast.Dec(variable_name=name):
                self._resolve_local(expr, name)

            case ast.Call(callee=callee, args=args):
                self._resolve_expr(callee)
                for arg in args:
                    self._resolve_expr(arg)

            case ast.Get(object=obj):
                self._resolve_expr(obj)

            case ast.Set(object=obj, value=value):
                self._resolve_expr(value)
                self._resolve_expr(obj)

            case ast.This(keyword=keyword):
                if self._current_class == ClassType.NONE:
                    self.reporter.error_at(keyword, "Can't use 'this' outside of a class.")
                elif self._current_subroutine == SubroutineType.STATIC_METHOD:
                    self.reporter.error_at(keyword, "Can't use 'this' in a static method.")
                else:
                    self._resolve_local(expr, keyword)

            case ast.Super(keyword=keyword):
                if self._current_class == ClassType.NONE:
                    self.reporter.error_at(keyword, "Can't use 'super' outside of a class.")
                elif self._current_class != ClassType.SUBCLASS:
                    self.reporter.error_at(keyword, "Can't use 'super' in a class with no superclass.")
                elif not any("this" in scope for scope in self._scopes):
                    # super binds to the receiver; static methods have none.
                    self.reporter.error_at(keyword, "Can't use 'super' in a static method.")
                self._resolve_local(expr, keyword)

            case _:
                raise TypeError(f"Unknown expression node: {expr!r}")

    # =================================================================
    # Scope bookkeeping
    # =================================================================

    def _begin_scope(self):
        self._scopes.append({})

    def _end_scope(self):
        self._scopes.pop()

    def _declare(self, name: Token):
        if not self._scopes:
            return
        scope = self._scopes[-1]
        if name.lexeme in scope:
            self.reporter.error_at(name, "Already a variable with this name in this scope.")
            return
        scope[name.lexeme] = False

    def _define(self, name: Token):
        if not self._scopes:
            return
        self._scopes[-1][name.lexeme] = True

    def _resolve_local(self, node, name: Token):
        for distance, scope in enumerate(reversed(self._scopes)):
            if name.lexeme in scope:
                self.locals[node] = distance
                return
