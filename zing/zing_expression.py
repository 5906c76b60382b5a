"""
Operator expressions inside `( ... )` groups.

Scripts compose arguments by concatenation. When expression evaluation is
switched on, a parenthesised group that contains operators is instead
converted to postfix (shunting-yard) at parse time and evaluated against the
variable store when the statement runs.

Binding order, tightest first:

    ^            power
    - (prefix)   negation
    * / %        multiplicative
    + -          additive, `+` also concatenates text
    =            equality
    ! (prefix)   logical not
    &            logical and
    |            logical or
"""
import math
from typing import Any, Callable, List

from zing.zing_datatypes import Token, TokenKind, OPERATORS
from zing.zing_printer import to_string
from zing.zing_variables import INT_MIN, INT_MAX, copy_value, parse_literal, type_name


class ExpressionError(Exception):
    """Raised for malformed expressions and for operators applied to the wrong types."""


NEGATE = "neg"
PREFIX_ORDERS = {NEGATE: 1, "!": OPERATORS["!"]}


def _order(token: Token) -> int:
    if token.value in PREFIX_ORDERS:
        return PREFIX_ORDERS[token.value]
    return OPERATORS[token.value]


# =================================================================
# Infix -> postfix
# =================================================================

def to_postfix(tokens: List[Token]) -> List[Token]:
    """Reorders the tokens of an expression into postfix form.

    Only quoted strings, identifiers, operators and parentheses may appear.
    Operators of equal order associate to the left.
    """
    output: List[Token] = []
    stack: List[Token] = []
    expect_operand = True

    for token in tokens:
        match token.kind:
            case TokenKind.QUOTED | TokenKind.IDENTIFIERS:
                if not expect_operand:
                    raise ExpressionError(f"Missing operator at {token.pos}: \"{token.lexeme}\"")
                output.append(token)
                expect_operand = False
            case TokenKind.EXPRESSION_OPEN:
                if not expect_operand:
                    raise ExpressionError(f"Missing operator at {token.pos}: \"{token.lexeme}\"")
                stack.append(token)
            case TokenKind.EXPRESSION_CLOSE:
                if expect_operand:
                    raise ExpressionError(f"Missing operand at {token.pos}: \"{token.lexeme}\"")
                while stack and stack[-1].kind is not TokenKind.EXPRESSION_OPEN:
                    output.append(stack.pop())
                if not stack:
                    raise ExpressionError(f"Closed Expression Without Opening at {token.pos}")
                stack.pop()
            case TokenKind.OPERATOR if expect_operand:
                if token.value == "-":
                    stack.append(Token(token.kind, token.lexeme, token.pos, token.line, NEGATE))
                elif token.value == "!":
                    stack.append(token)
                else:
                    raise ExpressionError(f"Missing operand at {token.pos}: \"{token.lexeme}\"")
            case TokenKind.OPERATOR:
                if token.value == "!":
                    raise ExpressionError(f"Unexpected operator at {token.pos}: \"{token.lexeme}\"")
                order = _order(token)
                while (stack and stack[-1].kind is TokenKind.OPERATOR
                       and _order(stack[-1]) <= order):
                    output.append(stack.pop())
                stack.append(token)
                expect_operand = True
            case _:
                raise ExpressionError(
                    f"Expected value or variable but found {token.kind.label} "
                    f"at {token.pos}: \"{token.lexeme}\""
                )

    if expect_operand:
        raise ExpressionError("Missing operand at end of expression")
    while stack:
        token = stack.pop()
        if token.kind is TokenKind.EXPRESSION_OPEN:
            raise ExpressionError(f"Missing expression close at {token.pos}")
        output.append(token)
    return output


# =================================================================
# Evaluation
# =================================================================

def truthy(value: Any) -> bool:
    match value:
        case None:
            return False
        case bool():
            return value
        case int() | float():
            return value != 0
        case str() | list() | dict():
            return len(value) > 0
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_int(value: Any, op: str) -> Any:
    if isinstance(value, int) and not (INT_MIN <= value <= INT_MAX):
        raise ExpressionError(f"Integer overflow in \"{op}\"")
    return value


def _numeric(op: str, left: Any, right: Any):
    if not (_is_number(left) and _is_number(right)):
        raise ExpressionError(
            f"Cannot apply \"{op}\" to {type_name(left)} and {type_name(right)}"
        )
    return left, right


def _add(left, right):
    if _is_number(left) and _is_number(right):
        return _check_int(left + right, "+")
    return to_string(left) + to_string(right)


def _subtract(left, right):
    left, right = _numeric("-", left, right)
    return _check_int(left - right, "-")


def _multiply(left, right):
    left, right = _numeric("*", left, right)
    return _check_int(left * right, "*")


def _divide(left, right):
    left, right = _numeric("/", left, right)
    if right == 0:
        raise ExpressionError("Division by zero")
    if isinstance(left, int) and isinstance(right, int) and left % right == 0:
        return _check_int(left // right, "/")
    return left / right


def _modulo(left, right):
    left, right = _numeric("%", left, right)
    if right == 0:
        raise ExpressionError("Division by zero")
    return left % right


def _power(left, right):
    left, right = _numeric("^", left, right)
    if isinstance(left, int) and isinstance(right, int) and right > 127 and abs(left) > 1:
        raise ExpressionError("Integer overflow in \"^\"")
    try:
        result = left ** right
    except ZeroDivisionError:
        raise ExpressionError("Division by zero")
    except OverflowError:
        raise ExpressionError("Float overflow in \"^\"")
    if isinstance(result, complex):
        raise ExpressionError("Power has no real result")
    return _check_int(result, "^")


def _equals(left, right):
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if _is_number(left) and _is_number(right):
        return left == right or (math.isnan(left) and math.isnan(right))
    return left == right


BINARY_OPERATIONS = {
    '+': _add,
    '-': _subtract,
    '*': _multiply,
    '/': _divide,
    '%': _modulo,
    '^': _power,
    '=': _equals,
    '&': lambda left, right: truthy(left) and truthy(right),
    '|': lambda left, right: truthy(left) or truthy(right),
}


def _negate(value):
    if not _is_number(value):
        raise ExpressionError(f"Cannot apply \"-\" to {type_name(value)}")
    return _check_int(-value, "-")


UNARY_OPERATIONS = {
    NEGATE: _negate,
    '!': lambda value: not truthy(value),
}


def evaluate(postfix, lookup: Callable[[str], Any]) -> Any:
    """Evaluates a postfix token sequence.

    `lookup` maps a dotted path to a variable. An identifier that resolves to
    Null is read as literal text instead, so `(count + 1)` works for both
    variables and numbers.
    """
    stack: List[Any] = []
    for token in postfix:
        match token.kind:
            case TokenKind.QUOTED:
                stack.append(token.value)
            case TokenKind.IDENTIFIERS:
                value = lookup(token.value)
                stack.append(parse_literal(token.value) if value is None else copy_value(value))
            case TokenKind.OPERATOR if token.value in UNARY_OPERATIONS:
                if not stack:
                    raise ExpressionError(f"Missing operand at {token.pos}: \"{token.lexeme}\"")
                stack.append(UNARY_OPERATIONS[token.value](stack.pop()))
            case TokenKind.OPERATOR:
                if len(stack) < 2:
                    raise ExpressionError(f"Missing operand at {token.pos}: \"{token.lexeme}\"")
                right = stack.pop()
                left = stack.pop()
                stack.append(BINARY_OPERATIONS[token.value](left, right))
            case _:
                raise ExpressionError(f"Unexpected token at {token.pos}: \"{token.lexeme}\"")
    if len(stack) != 1:
        raise ExpressionError("Malformed expression")
    return stack[0]
