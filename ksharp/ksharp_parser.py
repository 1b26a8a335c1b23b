"""
Recursive-descent parser for K#.

Precedence, lowest first: assignment, or, and, ternary, equality,
comparison, additive, multiplicative, exponent, unary, inc/dec prefix,
call/property postfix, primary.
"""
from typing import List, Optional

from ksharp.ksharp_tokens import Token, TokenType as T
from ksharp import ksharp_ast as ast

MAX_ARGS = 255

_COMPOUND_OPERATORS = {
    T.PLUS_EQUAL: (T.PLUS, "+"),
    T.MINUS_EQUAL: (T.MINUS, "-"),
    T.STAR_EQUAL: (T.STAR, "*"),
    T.SLASH_EQUAL: (T.SLASH, "/"),
    T.CARET_EQUAL: (T.CARET, "^"),
}

# Tokens that begin a new statement; synchronization stops in front of them.
_STATEMENT_STARTS = (T.CLASS, T.SUB, T.VAR, T.FOR, T.IF, T.WHILE, T.RETURN)


class ParseError(Exception):
    """Internal unwinding signal; the error has already been reported."""
    pass


class Parser:
    def __init__(self, tokens: List[Token], reporter):
        self.tokens = tokens
        self.reporter = reporter
        self._current = 0
        self._in_loop = False
        self._in_method = False

    def parse(self) -> List[ast.Stmt]:
        statements = []
        while not self._at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        return statements

    # =================================================================
    # Declarations
    # =================================================================

    def _declaration(self) -> Optional[ast.Stmt]:
        try:
            if self._match(T.CLASS):
                return self._class_declaration()
            if self._match(T.SUB):
                return self._subroutine("subroutine")
            if self._match(T.VAR):
                return self._var_declaration()
            return self._statement()
        except ParseError:
            self._synchronize()
            return None

    def _class_declaration(self) -> ast.Class:
        enclosing_in_method = self._in_method
        self._in_method = True
        try:
            name = self._consume(T.IDENTIFIER, "Expect class name.")

            superclass = None
            if self._match(T.LESSER_MINUS):
                self._consume(T.IDENTIFIER, "Expect superclass name.")
                superclass = ast.Variable(self._previous())

            self._consume(T.LEFT_BRACE, "Expect '{' before class body.")

            methods, static_methods, get_methods, set_methods = [], [], [], []
            while not self._check(T.RIGHT_BRACE) and not self._at_end():
                if self._match(T.STATIC):
                    static_methods.append(self._subroutine("method"))
                elif self._match(T.GET):
                    get_methods.append(self._subroutine("get method"))
                elif self._match(T.SET):
                    set_methods.append(self._subroutine("set method"))
                else:
                    methods.append(self._subroutine("method"))

            self._consume(T.RIGHT_BRACE, "Expect '}' after class body.")
        finally:
            self._in_method = enclosing_in_method

        return ast.Class(name, superclass, methods, static_methods, get_methods, set_methods)

    def _var_declaration(self) -> ast.Var:
        name = self._consume(T.IDENTIFIER, "Expect variable name.")
        initializer = None
        if self._match(T.EQUAL):
            initializer = self._expression()
        self._consume(T.SEMICOLON, "Expect ';' after variable declaration.")
        return ast.Var(name, initializer)

    def _subroutine(self, kind: str) -> ast.Subroutine:
        name = self._consume(T.IDENTIFIER, f"Expect {kind} name.")
        self._consume(T.LEFT_PAREN, f"Expect '(' after {kind} name.")

        params: List[Token] = []
        if not self._check(T.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_ARGS:
                    self._error(self._peek(), "More than 255 parameters is not allowed.")
                params.append(self._consume(T.IDENTIFIER, "Expect parameter name."))
                if not self._match(T.COMMA):
                    break
        self._consume(T.RIGHT_PAREN, "Expect ')' after parameters.")

        if kind == "get method" and params:
            self._error(self._peek(), "Get methods cannot take any arguments.")
        if kind == "set method" and len(params) != 1:
            self._error(self._peek(), "Set methods must take exactly one argument.")

        self._consume(T.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        # break/continue never cross a subroutine boundary.
        enclosing_in_loop = self._in_loop
        self._in_loop = False
        try:
            body = self._block()
        finally:
            self._in_loop = enclosing_in_loop
        return ast.Subroutine(name, params, body)

    # =================================================================
    # Statements
    # =================================================================

    def _statement(self) -> ast.Stmt:
        if self._match(T.IF):
            return self._if_statement()
        if self._match(T.WHILE):
            return self._while_statement()
        if self._match(T.FOR):
            return self._for_statement()
        if self._match(T.EXIT):
            return self._exit_statement()
        if self._match(T.INC):
            return self._inc_dec_statement(ast.IncStmt, "inc")
        if self._match(T.DEC):
            return self._inc_dec_statement(ast.DecStmt, "dec")
        if self._match(T.RETURN):
            return self._return_statement()
        if self._match(T.BREAK):
            return self._loop_jump(ast.Break, "Break")
        if self._match(T.CONTINUE):
            return self._loop_jump(ast.Continue, "Continue")
        if self._match(T.LEFT_BRACE):
            return ast.Block(self._block())
        return self._expression_statement()

    def _if_statement(self) -> ast.If:
        self._consume(T.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self._expression()
        self._consume(T.RIGHT_PAREN, "Expect ')' after condition.")

        then_branch = self._statement()
        else_branch = None
        if self._match(T.ELSE):
            else_branch = self._statement()
        return ast.If(condition, then_branch, else_branch)

    def _while_statement(self) -> ast.While:
        self._consume(T.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._expression()
        self._consume(T.RIGHT_PAREN, "Expect ')' after condition.")
        body = self._loop_body()
        return ast.While(condition, body)

    def _for_statement(self) -> ast.For:
        self._consume(T.LEFT_PAREN, "Expect '(' after 'for'.")

        if self._match(T.SEMICOLON):
            initializer = None
        elif self._match(T.VAR):
            initializer = self._var_declaration()
        else:
            initializer = self._expression_statement()

        condition = None
        if not self._check(T.SEMICOLON):
            condition = self._expression()
        self._consume(T.SEMICOLON, "Expect ';' after loop condition.")

        increment = None
        if not self._check(T.RIGHT_PAREN):
            increment = ast.Expression(self._expression())
        self._consume(T.RIGHT_PAREN, "Expect ')' after for clauses.")

        body = self._loop_body()

        if condition is None:
            condition = ast.Literal(True)
        return ast.For(initializer, condition, increment, body)

    def _loop_body(self) -> ast.Stmt:
        enclosing_in_loop = self._in_loop
        self._in_loop = True
        try:
            return self._statement()
        finally:
            self._in_loop = enclosing_in_loop

    def _exit_statement(self) -> ast.Exit:
        keyword = self._previous()
        if self._match(T.SEMICOLON):
            return ast.Exit(keyword, ast.Literal(0.0))
        exit_code = self._expression()
        self._consume(T.SEMICOLON, "Expect ';' after value.")
        return ast.Exit(keyword, exit_code)

    def _inc_dec_statement(self, node_type, keyword: str) -> ast.Stmt:
        name = self._consume(T.IDENTIFIER, f"Expect variable name after '{keyword}'.")
        self._consume(T.SEMICOLON, "Expect ';' after variable name.")
        return node_type(name)

    def _return_statement(self) -> ast.Return:
        keyword = self._previous()
        value = None
        if not self._check(T.SEMICOLON):
            value = self._expression()
        self._consume(T.SEMICOLON, "Expect ';' after return value.")
        return ast.Return(keyword, value)

    def _loop_jump(self, node_type, label: str) -> ast.Stmt:
        keyword = self._previous()
        if not self._in_loop:
            raise self._error(keyword, f"{label} statement must occur inside loop.")
        self._consume(T.SEMICOLON, f"Expect ';' after {label.lower()} statement.")
        return node_type(keyword)

    def _expression_statement(self) -> ast.Expression:
        expr = self._expression()
        self._consume(T.SEMICOLON, "Expect ';' after value.")
        return ast.Expression(expr)

    def _block(self) -> List[ast.Stmt]:
        statements = []
        while not self._check(T.RIGHT_BRACE) and not self._at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        self._consume(T.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    # =================================================================
    # Expressions
    # =================================================================

    def _expression(self) -> ast.Expr:
        return self._assignment()

    def _assignment(self) -> ast.Expr:
        expr = self._or()

        if self._match(T.EQUAL):
            equals = self._previous()
            value = self._assignment()
            match expr:
                case ast.Variable(name=name):
                    return ast.Assign(name, value)
                case ast.Get(object=obj, name=name):
                    return ast.Set(obj, name, value, self._in_method)
            self._error(equals, "Invalid assignment target.")

        elif self._match(*_COMPOUND_OPERATORS):
            equals = self._previous()
            op_type, lexeme = _COMPOUND_OPERATORS[equals.type]
            value = self._assignment()
            if isinstance(expr, ast.Variable):
                operator = Token(op_type, lexeme, None, equals.line)
                return ast.Assign(expr.name, ast.Binary(expr, operator, value))
            self._error(equals, "Invalid assignment target.")

        return expr

    def _or(self) -> ast.Expr:
        expr = self._and()
        while self._match(T.OR):
            operator = self._previous()
            expr = ast.Logical(expr, operator, self._and())
        return expr

    def _and(self) -> ast.Expr:
        expr = self._conditional()
        while self._match(T.AND):
            operator = self._previous()
            expr = ast.Logical(expr, operator, self._conditional())
        return expr

    def _conditional(self) -> ast.Expr:
        expr = self._equality()
        if self._match(T.QUESTION):
            then = self._expression()
            self._consume(T.COLON, "Expect expression.")
            otherwise = self._expression()
            expr = ast.Conditional(expr, then, otherwise)
        return expr

    def _binary_level(self, operand, *operators: T) -> ast.Expr:
        expr = operand()
        while self._match(*operators):
            operator = self._previous()
            expr = ast.Binary(expr, operator, operand())
        return expr

    def _equality(self) -> ast.Expr:
        return self._binary_level(self._comparison, T.BANG_EQUAL, T.EQUAL_EQUAL)

    def _comparison(self) -> ast.Expr:
        return self._binary_level(self._term, T.GREATER, T.GREATER_EQUAL, T.LESSER, T.LESSER_EQUAL)

    def _term(self) -> ast.Expr:
        return self._binary_level(self._factor, T.PLUS, T.MINUS)

    def _factor(self) -> ast.Expr:
        return self._binary_level(self._exponent, T.SLASH, T.STAR, T.MOD, T.DIV)

    def _exponent(self) -> ast.Expr:
        # Left-associative: 2 ^ 3 ^ 2 is (2 ^ 3) ^ 2.
        return self._binary_level(self._unary, T.CARET)

    def _unary(self) -> ast.Expr:
        if self._match(T.BANG, T.MINUS):
            operator = self._previous()
            return ast.Unary(operator, self._unary())
        return self._call()

    def _call(self) -> ast.Expr:
        expr = self._inc_dec_expr()
        while True:
            if self._match(T.LEFT_PAREN):
                expr = self._finish_call(expr)
            elif self._match(T.DOT):
                name = self._consume(T.IDENTIFIER, "Expect property name after '.'.")
                expr = ast.Get(expr, name, self._in_method)
            else:
                break
        return expr

    def _finish_call(self, callee: ast.Expr) -> ast.Call:
        args = []
        if not self._check(T.RIGHT_PAREN):
            while True:
                if len(args) >= MAX_ARGS:
                    self._error(self._peek(), "More than 255 arguments is not allowed.")
                args.append(self._expression())
                if not self._match(T.COMMA):
                    break
        paren = self._consume(T.RIGHT_PAREN, "Expect ')' after arguments.")
        return ast.Call(callee, paren, args)

    def _inc_dec_expr(self) -> ast.Expr:
        if self._match(T.INC, T.DEC):
            operator = self._previous()
            target = self._primary()
            if isinstance(target, ast.Variable):
                if operator.type == T.INC:
                    return ast.Inc(target.name)
                return ast.Dec(target.name)
            self._error(self._previous(), "Expect Variable after increment/decrement instruction.")
            return target
        return self._primary()

    def _primary(self) -> ast.Expr:
        if self._match(T.FALSE):
            return ast.Literal(False)
        if self._match(T.TRUE):
            return ast.Literal(True)
        if self._match(T.ZILCH):
            return ast.Literal(None)
        if self._match(T.INF):
            return ast.Literal(float("inf"))
        if self._match(T.NUMBER, T.STRING):
            return ast.Literal(self._previous().literal)
        if self._match(T.LEFT_SQUARE):
            return self._array()
        if self._match(T.SUPER):
            keyword = self._previous()
            self._consume(T.DOT, "Expect '.' after 'super'.")
            method = self._consume(T.IDENTIFIER, "Expect superclass method name.")
            return ast.Super(keyword, method)
        if self._match(T.THIS):
            return ast.This(self._previous())
        if self._match(T.IDENTIFIER):
            return ast.Variable(self._previous())
        if self._match(T.LEFT_PAREN):
            expr = self._expression()
            self._consume(T.RIGHT_PAREN, "Expect ')' after expression.")
            return ast.Grouping(expr)

        raise self._error(self._peek(), "Expect expression.")

    def _array(self) -> ast.Literal:
        items: List[ast.Expr] = []
        if not self._check(T.RIGHT_SQUARE):
            while True:
                if len(items) >= MAX_ARGS:
                    self._error(self._peek(), "More than 255 items is not allowed.")
                # Elements sit at logical-or precedence, so no assignment inside.
                items.append(self._or())
                if not self._match(T.COMMA):
                    break
        self._consume(T.RIGHT_SQUARE, "Expect ']' after array items.")
        return ast.Literal(items)

    # =================================================================
    # Token stream helpers
    # =================================================================

    def _match(self, *types: T) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _consume(self, token_type: T, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(self._peek(), message)

    def _check(self, token_type: T) -> bool:
        if self._at_end():
            return False
        return self._peek().type == token_type

    def _advance(self) -> Token:
        if not self._at_end():
            self._current += 1
        return self._previous()

    def _at_end(self) -> bool:
        return self._peek().type == T.EOF

    def _peek(self) -> Token:
        return self.tokens[self._current]

    def _previous(self) -> Token:
        return self.tokens[self._current - 1]

    def _error(self, token: Token, message: str) -> ParseError:
        """Reports a syntax error and returns (does not raise) the unwinding signal."""
        self.reporter.error_at(token, message)
        return ParseError(message)

    def _synchronize(self):
        """Discards tokens up to the next statement boundary."""
        self._advance()
        while not self._at_end():
            if self._previous().type == T.SEMICOLON:
                return
            if self._peek().type in _STATEMENT_STARTS:
                return
            self._advance()


def parse(tokens: List[Token], reporter) -> List[ast.Stmt]:
    return Parser(tokens, reporter).parse()
