"""
AST node definitions for K#.

Nodes are frozen dataclasses compared and hashed by identity (`eq=False`):
the resolver keys binding distances on the node object itself, so two
syntactically identical occurrences of `x` must stay distinct.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ksharp.ksharp_tokens import Token


class Expr:
    """Base class for expression nodes."""


class Stmt:
    """Base class for statement nodes."""


_node = dataclass(frozen=True, eq=False)


# =================================================================
# Expressions
# =================================================================

@_node
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr


@_node
class Grouping(Expr):
    expression: Expr


@_node
class Literal(Expr):
    """A scalar literal, or an array literal when `value` is a list of Expr.

    Array elements are re-evaluated every time the node is visited.
    """
    value: Union[None, bool, float, str, List[Expr]]


@_node
class Unary(Expr):
    operator: Token
    right: Expr


@_node
class Conditional(Expr):
    condition: Expr
    then: Expr
    otherwise: Expr


@_node
class Variable(Expr):
    name: Token


@_node
class Assign(Expr):
    name: Token
    value: Expr


@_node
class Logical(Expr):
    left: Expr
    operator: Token
    right: Expr


@_node
class Inc(Expr):
    variable_name: Token


@_node
class Dec(Expr):
    variable_name: Token


@_node
class Call(Expr):
    callee: Expr
    paren: Token
    args: List[Expr]


@_node
class Get(Expr):
    object: Expr
    name: Token
    in_method: bool = False


@_node
class Set(Expr):
    object: Expr
    name: Token
    value: Expr
    in_method: bool = False


@_node
class This(Expr):
    keyword: Token


@_node
class Super(Expr):
    keyword: Token
    method: Token


# =================================================================
# Statements
# =================================================================

@_node
class Expression(Stmt):
    expression: Expr


@_node
class Print(Stmt):
    expression: Expr


@_node
class Var(Stmt):
    name: Token
    initializer: Optional[Expr]


@_node
class Block(Stmt):
    statements: List[Stmt]


@_node
class Exit(Stmt):
    token: Token
    exit_code: Expr


@_node
class If(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt]


@_node
class While(Stmt):
    condition: Expr
    body: Stmt


@_node
class IncStmt(Stmt):
    variable_name: Token


@_node
class DecStmt(Stmt):
    variable_name: Token


@_node
class Break(Stmt):
    keyword: Token


@_node
class Continue(Stmt):
    keyword: Token


@_node
class For(Stmt):
    initializer: Optional[Stmt]
    condition: Expr
    increment: Optional[Expression]
    body: Stmt


@_node
class Subroutine(Stmt):
    name: Token
    params: List[Token]
    body: List[Stmt]


@_node
class Return(Stmt):
    keyword: Token
    value: Optional[Expr]


@_node
class Class(Stmt):
    name: Token
    superclass: Optional[Variable]
    methods: List[Subroutine] = field(default_factory=list)
    static_methods: List[Subroutine] = field(default_factory=list)
    get_methods: List[Subroutine] = field(default_factory=list)
    set_methods: List[Subroutine] = field(default_factory=list)
