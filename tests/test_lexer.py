import pytest

from ksharp.ksharp_errors import ErrorReporter
from ksharp.ksharp_lexer import Lexer
from ksharp.ksharp_tokens import TokenType as T


def scan(src):
    reporter = ErrorReporter()
    tokens = Lexer(src, reporter).scan_tokens()
    return tokens, reporter


def types(src):
    tokens, _ = scan(src)
    return [t.type for t in tokens]


TYPE_CASES = [
    ("punctuation", "(){}[],.;?:", [
        T.LEFT_PAREN, T.RIGHT_PAREN, T.LEFT_BRACE, T.RIGHT_BRACE, T.LEFT_SQUARE,
        T.RIGHT_SQUARE, T.COMMA, T.DOT, T.SEMICOLON, T.QUESTION, T.COLON, T.EOF]),
    ("compound_assign", "+= -= *= /= ^=", [
        T.PLUS_EQUAL, T.MINUS_EQUAL, T.STAR_EQUAL, T.SLASH_EQUAL, T.CARET_EQUAL, T.EOF]),
    ("comparison", "< <= <- > >= == != !", [
        T.LESSER, T.LESSER_EQUAL, T.LESSER_MINUS, T.GREATER, T.GREATER_EQUAL,
        T.EQUAL_EQUAL, T.BANG_EQUAL, T.BANG, T.EOF]),
    ("inheritance_arrow_greedy", "A<-B", [T.IDENTIFIER, T.LESSER_MINUS, T.IDENTIFIER, T.EOF]),
    ("keywords", "sub class zilch inf mod div inc dec static get set", [
        T.SUB, T.CLASS, T.ZILCH, T.INF, T.MOD, T.DIV, T.INC, T.DEC, T.STATIC, T.GET, T.SET, T.EOF]),
    ("identifier_not_keyword", "subx _under var1", [T.IDENTIFIER, T.IDENTIFIER, T.IDENTIFIER, T.EOF]),
    ("comment_skipped", "1 // the rest + 2\n3", [T.NUMBER, T.NUMBER, T.EOF]),
]


@pytest.mark.parametrize("src, expected", [c[1:] for c in TYPE_CASES], ids=[c[0] for c in TYPE_CASES])
def test_token_types(src, expected):
    assert types(src) == expected


NUMBER_CASES = [
    ("integer", "42", 42.0),
    ("fraction", "3.25", 3.25),
    ("binary", "0b101", 5.0),
    ("hex", "0xFF", 255.0),
    ("hex_lower", "0xff", 255.0),
    ("wide_hex", "0x1FFFFFFFF", 8589934591.0),
    ("wide_binary", "0b1" + "0" * 32, 4294967296.0),
]


@pytest.mark.parametrize("src, expected", [c[1:] for c in NUMBER_CASES], ids=[c[0] for c in NUMBER_CASES])
def test_number_literals_decode_to_float(src, expected):
    tokens, reporter = scan(src)
    assert not reporter.had_error
    assert tokens[0].type == T.NUMBER
    assert tokens[0].literal == expected
    assert isinstance(tokens[0].literal, float)


def test_trailing_dot_is_not_fraction():
    tokens, _ = scan("1.")
    assert [t.type for t in tokens] == [T.NUMBER, T.DOT, T.EOF]
    assert tokens[0].literal == 1.0


def test_strings_with_either_quote():
    tokens, _ = scan("\"double\" 'single'")
    assert [t.literal for t in tokens[:2]] == ["double", "single"]
    assert tokens[0].lexeme == '"double"'


def test_multiline_string_tracks_lines():
    tokens, _ = scan("'a\nb'\nx")
    assert tokens[0].literal == "a\nb"
    assert tokens[0].line == 2
    assert tokens[1].lexeme == "x"
    assert tokens[1].line == 3


def test_unterminated_string_is_reported_and_scanning_continues():
    tokens, reporter = scan("var x = 1;\n'oops")
    assert reporter.had_error
    assert reporter.diagnostics[0].message == "Unterminated string"
    assert reporter.diagnostics[0].line == 2
    assert [t.type for t in tokens] == [T.VAR, T.IDENTIFIER, T.EQUAL, T.NUMBER, T.SEMICOLON, T.EOF]


def test_unexpected_character_is_reported_but_not_fatal():
    tokens, reporter = scan("1 @ 2 # 3")
    assert reporter.messages == ["Unexpected character", "Unexpected character"]
    assert [t.literal for t in tokens if t.type == T.NUMBER] == [1.0, 2.0, 3.0]
    assert reporter.diagnostics[0].format() == "[line 1] Error: Unexpected character"


def test_bad_base_literal():
    tokens, reporter = scan("0b2")
    assert reporter.messages == ["invalid character following base literal."]
    # The stray digit still scans as its own number.
    assert [t.type for t in tokens] == [T.NUMBER, T.EOF]
    assert tokens[0].literal == 2.0


def test_eof_token_line():
    tokens, _ = scan("a\nb\n")
    assert tokens[-1].type == T.EOF
    assert tokens[-1].line == 3


def test_base_literal_beyond_double_range_decodes_to_inf():
    tokens, reporter = scan("0x" + "F" * 300)
    assert not reporter.had_error
    assert tokens[0].literal == float("inf")
