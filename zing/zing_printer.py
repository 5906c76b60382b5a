"""
Canonical text form of ZingTTP variables.

Lists and maps are written one member per line, indented with one tab per
nesting level:

    {
    	key: value,
    	other: [
    		1,
    		2
    	]
    }
"""
import math
from decimal import Decimal

from zing.zing_variables import VariableTypeError

FIXED_MIN = 1e-3
FIXED_MAX = 1e6


class Printer:
    """Formats variables into their canonical strings."""

    def __init__(self, indent_char="\t"):
        self._indent_char = indent_char
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a variable at a nesting level."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            raise VariableTypeError(f"{type(obj).__name__} is not a variable type")
        return handler(obj, level)

    def _create_handlers(self):
        return {
            type(None): self._pformat_none,
            bool: self._pformat_bool,
            int: self._pformat_int,
            float: self._pformat_float,
            str: self._pformat_str,
            list: self._pformat_list,
            dict: self._pformat_dict,
        }

    def _pformat_none(self, obj, level):
        return ""

    def _pformat_bool(self, obj, level):
        return "true" if obj else "false"

    def _pformat_int(self, obj, level):
        return str(obj)

    def _pformat_float(self, obj, level):
        return format_float(obj)

    def _pformat_str(self, obj, level):
        return obj

    def _pformat_list(self, obj, level):
        if not obj:
            return "[]"
        indent = self._indent_char * level
        items = [f"{indent}{self._indent_char}{self.pformat(item, level + 1)}" for item in obj]
        return "[\n" + ",\n".join(items) + f"\n{indent}]"

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        indent = self._indent_char * level
        members = []
        for key, value in obj.items():
            # Null members stay visible in their parent.
            text = "NULL" if value is None else self.pformat(value, level + 1)
            members.append(f"{indent}{self._indent_char}{key}: {text}")
        return "{\n" + ",\n".join(members) + f"\n{indent}}}"


def format_float(value: float) -> str:
    """Fixed notation for 1e-3 <= |x| <= 1e6, scientific otherwise.

    Digits are the shortest ones that round-trip, so 3.6 prints as "3.6",
    2.0 as "2" and 0.000003 as "3e-6".
    """
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"

    magnitude = abs(value)
    if FIXED_MIN <= magnitude <= FIXED_MAX:
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    if value == 0:
        return "-0e0" if math.copysign(1.0, value) < 0 else "0e0"

    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    exponent += len(digits) - 1
    mantissa = str(digits[0])
    if len(digits) > 1:
        mantissa += "." + "".join(str(d) for d in digits[1:])
    return f"{'-' if sign else ''}{mantissa}e{exponent}"


_printer = Printer()


def to_string(value, depth: int = 0) -> str:
    return _printer.pformat(value, depth)
