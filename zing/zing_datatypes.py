"""
Defines the core data types for the ZingTTP language.

This module provides the lexical types produced by the scanner (tokens,
keywords, operators) and the statement and argument-fragment types produced
by the parser and consumed by the runner.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

# =================================================================
# Lexical Types
# =================================================================

class TokenKind(Enum):
    """Kinds of token produced by the scanner."""
    KEYWORD = "keyword"
    LITERAL = "literal"
    QUOTED = "quoted"
    IDENTIFIERS = "identifiers"
    OPERATOR = "operator"
    WHITESPACE = "whitespace"
    EXPRESSION_OPEN = "expression-open"
    EXPRESSION_CLOSE = "expression-close"
    SUBROUTINE_OPEN = "subroutine-open"
    SUBROUTINE_CLOSE = "subroutine-close"
    INVALID = "invalid"

    @property
    def label(self) -> str:
        """Name used in diagnostics; open and close share one."""
        return self.value.split("-")[0]


HTTP_METHODS = (
    "GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "TRACE", "CONNECT", "PATCH",
)

KEYWORDS = frozenset((
    "EXIT", "SET", "PRINT", "WAIT", "ERROR", "REQUEST",
    # Flow control
    "DO", "UNTIL", "WHILE", "FOR", "IF", "ELSE", "FUN",
    # Asserts
    "ASSERT", "ASSERT_SUCCESS", "ASSERT_REDIRECT", "ASSERT_FAILED",
    "ASSERT_RANGE", "ASSERT_CODE", "ASSERT_CONTAINS", "ASSERT_ERROR",
    # File ops
    "SCRIPT", "IMPORT", "EXPORT", "APPEND", "REPORT",
) + HTTP_METHODS)

# Operator character -> binding order (lower binds tighter).
OPERATORS = {
    '^': 0,
    '*': 1, '/': 1, '%': 1,
    '+': 2, '-': 2,
    '=': 3,
    '!': 4,
    '&': 5,
    '|': 6,
}


@dataclass
class Token:
    """A single lexical unit of a script line.

    `value` depends on the kind: the keyword or word text, the quoted content
    without delimiters, the dotted path, the operator character, the length of
    a whitespace run, or the reason of an invalid token.
    """
    kind: TokenKind
    lexeme: str
    pos: int
    line: int = 0
    value: Union[str, int, None] = None

    def __repr__(self) -> str:
        return f"Token<{self.kind.name} {self.lexeme!r} @{self.line}:{self.pos}>"


# =================================================================
# Argument Fragments
# =================================================================

@dataclass(frozen=True)
class Text:
    """A literal or quoted span, appended verbatim on resolution."""
    text: str


@dataclass(frozen=True)
class VariableRef:
    """A dotted path whose stringified value is appended on resolution."""
    path: str


@dataclass(frozen=True)
class Expression:
    """An operator expression, kept as its postfix token sequence."""
    postfix: tuple
    source: str = ""


Fragment = Union[Text, VariableRef, Expression]


# =================================================================
# Statements
# =================================================================

class Statement:
    """Base class of the closed set of parsed statements."""
    __slots__ = ()


@dataclass
class Nothing(Statement):
    pass


@dataclass
class Exit(Statement):
    pass


@dataclass
class Invalid(Statement):
    message: str


@dataclass
class Print(Statement):
    args: List[Fragment] = field(default_factory=list)


@dataclass
class Set(Statement):
    name_args: List[Fragment]
    value_args: List[Fragment] = field(default_factory=list)


@dataclass
class Request(Statement):
    method: str
    args: List[Fragment]

