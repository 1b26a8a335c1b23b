"""
The K# scanner: source text in, token list out.
"""
import math
from typing import List, Optional

from ksharp.ksharp_tokens import Token, TokenType, KEYWORDS

_BINARY_DIGITS = "01"
_HEX_DIGITS = "0123456789abcdefABCDEF"


class Lexer:
    """Scans a whole source string into tokens.

    Scanning is error tolerant: an unexpected character, an unterminated
    string or a malformed base literal is reported to the `reporter` and the
    scan carries on, so a single pass surfaces every lexical problem.
    """

    _SINGLE = {
        '(': TokenType.LEFT_PAREN,
        ')': TokenType.RIGHT_PAREN,
        '{': TokenType.LEFT_BRACE,
        '}': TokenType.RIGHT_BRACE,
        '[': TokenType.LEFT_SQUARE,
        ']': TokenType.RIGHT_SQUARE,
        ',': TokenType.COMMA,
        '.': TokenType.DOT,
        ';': TokenType.SEMICOLON,
        '?': TokenType.QUESTION,
        ':': TokenType.COLON,
    }

    # Operators that may be followed by '=' to form a compound token.
    _WITH_EQUAL = {
        '+': (TokenType.PLUS, TokenType.PLUS_EQUAL),
        '-': (TokenType.MINUS, TokenType.MINUS_EQUAL),
        '*': (TokenType.STAR, TokenType.STAR_EQUAL),
        '^': (TokenType.CARET, TokenType.CARET_EQUAL),
        '!': (TokenType.BANG, TokenType.BANG_EQUAL),
        '=': (TokenType.EQUAL, TokenType.EQUAL_EQUAL),
        '>': (TokenType.GREATER, TokenType.GREATER_EQUAL),
    }

    def __init__(self, source: str, reporter=None):
        self.source = source
        self.reporter = reporter
        self.tokens: List[Token] = []
        self._start = 0
        self._current = 0
        self._line = 1

    def scan_tokens(self) -> List[Token]:
        while not self._at_end():
            self._start = self._current
            self._scan_token()
        self.tokens.append(Token(TokenType.EOF, "", None, self._line))
        return self.tokens

    def _scan_token(self):
        c = self._advance()

        if c in self._SINGLE:
            self._add_token(self._SINGLE[c])
            return
        if c in self._WITH_EQUAL:
            plain, compound = self._WITH_EQUAL[c]
            self._add_token(compound if self._match('=') else plain)
            return

        match c:
            case '<':
                if self._match('='):
                    self._add_token(TokenType.LESSER_EQUAL)
                elif self._match('-'):
                    self._add_token(TokenType.LESSER_MINUS)
                else:
                    self._add_token(TokenType.LESSER)
            case '/':
                if self._match('/'):
                    # A comment runs to the end of the line.
                    while self._peek() != '\n' and not self._at_end():
                        self._advance()
                elif self._match('='):
                    self._add_token(TokenType.SLASH_EQUAL)
                else:
                    self._add_token(TokenType.SLASH)
            case ' ' | '\r' | '\t':
                pass
            case '\n':
                self._line += 1
            case '"' | "'":
                self._string(c)
            case _:
                if self._is_digit(c):
                    self._number()
                elif self._is_alpha(c):
                    self._identifier()
                else:
                    self._error("Unexpected character")

    def _identifier(self):
        while self._is_alpha_numeric(self._peek()):
            self._advance()
        text = self.source[self._start:self._current]
        self._add_token(KEYWORDS.get(text, TokenType.IDENTIFIER))

    def _number(self):
        digits: Optional[str] = None
        base = 10
        if self._previous() == '0' and self._peek() == 'b':
            self._advance()
            digits, base = _BINARY_DIGITS, 2
        elif self._previous() == '0' and self._peek() == 'x':
            self._advance()
            digits, base = _HEX_DIGITS, 16

        if digits is not None:
            if self._peek() not in digits:
                self._error("invalid character following base literal.")
                return
            while self._peek() in digits:
                self._advance()
            text = self.source[self._start + 2:self._current]
            try:
                value = float(int(text, base))
            except OverflowError:
                value = math.inf
            self._add_token(TokenType.NUMBER, value)
            return

        while self._is_digit(self._peek()):
            self._advance()
        # A fractional part needs at least one digit after the '.'.
        if self._peek() == '.' and self._is_digit(self._peek_next()):
            self._advance()
            while self._is_digit(self._peek()):
                self._advance()
        self._add_token(TokenType.NUMBER, float(self.source[self._start:self._current]))

    def _string(self, quote: str):
        while self._peek() != quote and not self._at_end():
            if self._peek() == '\n':
                self._line += 1
            self._advance()

        if self._at_end():
            self._error("Unterminated string")
            return

        # The closing quote.
        self._advance()
        self._add_token(TokenType.STRING, self.source[self._start + 1:self._current - 1])

    # --- Helpers ---

    def _error(self, message: str):
        if self.reporter is not None:
            self.reporter.report_error(self._line, "", message)

    def _match(self, expected: str) -> bool:
        if self._at_end() or self.source[self._current] != expected:
            return False
        self._current += 1
        return True

    def _peek(self) -> str:
        if self._at_end():
            return '\0'
        return self.source[self._current]

    def _peek_next(self) -> str:
        if self._current + 1 >= len(self.source):
            return '\0'
        return self.source[self._current + 1]

    def _previous(self) -> str:
        return self.source[self._current - 1]

    def _advance(self) -> str:
        c = self.source[self._current]
        self._current += 1
        return c

    def _at_end(self) -> bool:
        return self._current >= len(self.source)

    @staticmethod
    def _is_digit(c: str) -> bool:
        return '0' <= c <= '9'

    @staticmethod
    def _is_alpha(c: str) -> bool:
        return ('a' <= c <= 'z') or ('A' <= c <= 'Z') or c == '_'

    def _is_alpha_numeric(self, c: str) -> bool:
        return self._is_alpha(c) or self._is_digit(c)

    def _add_token(self, token_type: TokenType, literal=None):
        text = self.source[self._start:self._current]
        self.tokens.append(Token(token_type, text, literal, self._line))


def scan(source: str, reporter=None) -> List[Token]:
    """Convenience wrapper: scan `source` and return its tokens."""
    return Lexer(source, reporter).scan_tokens()
