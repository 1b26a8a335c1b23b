"""
Formatting of K# runtime values and expression trees.
"""
import math
from decimal import Decimal

from ksharp import ksharp_ast as ast

_SCIENTIFIC_FROM = 1e15


class Printer:
    """Formats runtime values the way scripts see them (`print`, `string`)."""

    def __init__(self):
        self._handlers = {
            type(None): self._pformat_none,
            bool: self._pformat_bool,
            float: self._pformat_number,
            int: self._pformat_number,
            str: self._pformat_str,
            list: self._pformat_list,
        }

    def pformat(self, obj) -> str:
        handler = self._handlers.get(type(obj), self._pformat_default)
        return handler(obj)

    def _pformat_none(self, obj):
        return "zilch"

    def _pformat_bool(self, obj):
        return "True" if obj else "False"

    def _pformat_number(self, obj):
        number = float(obj)
        if math.isinf(number):
            return "+inf" if number > 0 else "-inf"
        if math.isnan(number):
            return "NaN"
        text = repr(number)
        if "e" in text or abs(number) >= _SCIENTIFIC_FROM:
            # Exponent form with at least two exponent digits: 1E+15, 1.5E-07.
            mantissa, exponent = format(Decimal(text).normalize(), "E").split("E")
            return f"{mantissa}E{exponent[0]}{exponent[1:].zfill(2)}"
        if text.endswith(".0"):
            text = text[:-2]
        return text

    def _pformat_str(self, obj):
        return obj

    def _pformat_list(self, obj):
        return "[" + ", ".join(self.pformat(item) for item in obj) + "]"

    def _pformat_default(self, obj):
        return str(obj)


_printer = Printer()


def stringify(value) -> str:
    return _printer.pformat(value)


class AstPrinter:
    """Renders expressions as parenthesized prefix forms, e.g. `(+ 1 (* 2 3))`."""

    def print(self, expr: ast.Expr) -> str:
        match expr:
            case ast.Binary(left=left, operator=op, right=right) | ast.Logical(left=left, operator=op, right=right):
                return self._parenthesize(op.lexeme, left, right)
            case ast.Grouping(expression=inner):
                return self._parenthesize("group", inner)
            case ast.Literal(value=list() as items):
                return self._parenthesize("array", *items)
            case ast.Literal(value=str() as text):
                return repr(text)
            case ast.Literal(value=value):
                return stringify(value)
            case ast.Unary(operator=op, right=right):
                return self._parenthesize(op.lexeme, right)
            case ast.Conditional(condition=c, then=a, otherwise=b):
                return self._parenthesize("?", c, a, b)
            case ast.Variable(name=name):
                return name.lexeme
            case ast.Assign(name=name, value=value):
                return self._parenthesize(f"= {name.lexeme}", value)
            case ast.Inc(variable_name=name):
                return f"(inc {name.lexeme})"
            case ast.Dec(variable_name=name):
                return f"(dec {name.lexeme})"
            case ast.Call(callee=callee, args=args):
                return self._parenthesize("call", callee, *args)
            case ast.Get(object=obj, name=name):
                return f"(. {self.print(obj)} {name.lexeme})"
            case ast.Set(object=obj, name=name, value=value):
                return f"(.= {self.print(obj)} {name.lexeme} {self.print(value)})"
            case ast.This():
                return "this"
            case ast.Super(method=method):
                return f"(super {method.lexeme})"
        return repr(expr)

    def _parenthesize(self, name: str, *exprs: ast.Expr) -> str:
        parts = [name] + [self.print(e) for e in exprs]
        return "(" + " ".join(parts) + ")"
