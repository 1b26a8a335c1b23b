"""
Token definitions for the K# scanner.
"""
import enum
from dataclasses import dataclass
from typing import Any, Optional


class TokenType(enum.Enum):
    # Single character tokens.
    LEFT_PAREN = enum.auto()
    RIGHT_PAREN = enum.auto()
    LEFT_BRACE = enum.auto()
    RIGHT_BRACE = enum.auto()
    LEFT_SQUARE = enum.auto()
    RIGHT_SQUARE = enum.auto()
    COMMA = enum.auto()
    DOT = enum.auto()
    SEMICOLON = enum.auto()
    QUESTION = enum.auto()
    COLON = enum.auto()

    # One or two character tokens.
    MINUS = enum.auto()
    MINUS_EQUAL = enum.auto()
    PLUS = enum.auto()
    PLUS_EQUAL = enum.auto()
    SLASH = enum.auto()
    SLASH_EQUAL = enum.auto()
    STAR = enum.auto()
    STAR_EQUAL = enum.auto()
    CARET = enum.auto()
    CARET_EQUAL = enum.auto()
    BANG = enum.auto()
    BANG_EQUAL = enum.auto()
    EQUAL = enum.auto()
    EQUAL_EQUAL = enum.auto()
    GREATER = enum.auto()
    GREATER_EQUAL = enum.auto()
    LESSER = enum.auto()
    LESSER_EQUAL = enum.auto()
    LESSER_MINUS = enum.auto()

    # Literals.
    IDENTIFIER = enum.auto()
    STRING = enum.auto()
    NUMBER = enum.auto()

    # Keywords.
    AND = enum.auto()
    CLASS = enum.auto()
    ELSE = enum.auto()
    TRUE = enum.auto()
    FALSE = enum.auto()
    SUB = enum.auto()
    FOR = enum.auto()
    IF = enum.auto()
    ZILCH = enum.auto()
    OR = enum.auto()
    RETURN = enum.auto()
    SUPER = enum.auto()
    THIS = enum.auto()
    VAR = enum.auto()
    WHILE = enum.auto()
    EXIT = enum.auto()
    INC = enum.auto()
    DEC = enum.auto()
    BREAK = enum.auto()
    CONTINUE = enum.auto()
    MOD = enum.auto()
    DIV = enum.auto()
    INF = enum.auto()
    STATIC = enum.auto()
    GET = enum.auto()
    SET = enum.auto()

    EOF = enum.auto()


KEYWORDS = {
    "and": TokenType.AND,
    "class": TokenType.CLASS,
    "else": TokenType.ELSE,
    "false": TokenType.FALSE,
    "true": TokenType.TRUE,
    "for": TokenType.FOR,
    "sub": TokenType.SUB,
    "if": TokenType.IF,
    "zilch": TokenType.ZILCH,
    "or": TokenType.OR,
    "return": TokenType.RETURN,
    "super": TokenType.SUPER,
    "this": TokenType.THIS,
    "var": TokenType.VAR,
    "while": TokenType.WHILE,
    "exit": TokenType.EXIT,
    "inc": TokenType.INC,
    "dec": TokenType.DEC,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "mod": TokenType.MOD,
    "div": TokenType.DIV,
    "inf": TokenType.INF,
    "static": TokenType.STATIC,
    "get": TokenType.GET,
    "set": TokenType.SET,
}


@dataclass(frozen=True)
class Token:
    """A single lexical token. `literal` holds the decoded number or string, if any."""
    type: TokenType
    lexeme: str
    literal: Optional[Any]
    line: int

    def __str__(self) -> str:
        literal = "" if self.literal is None else self.literal
        return f"{self.type.name} {self.lexeme} {literal}"
