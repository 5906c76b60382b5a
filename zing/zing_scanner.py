"""
The ZingTTP scanner: turns one line of script text into tokens.

The scanner has two modes keyed by `expression_level`. At level 0 (statement
mode) whitespace separates arguments and bare words become keywords or
literals. Inside parentheses (expression mode) spaces are insignificant and
dotted paths, quoted strings and operator characters are recognised. The level
survives between calls, so an expression may continue over several lines.
"""
from enum import Enum
from typing import List, Optional

from zing.zing_datatypes import Token, TokenKind, KEYWORDS, OPERATORS
from zing.zing_debug import dbg


class ScanError(Enum):
    UNCLOSED_QUOTE = "Unclosed Quote"
    INVALID_EXPRESSION = "Invalid Character in Expression"
    EMPTY_EXPRESSION = "Empty Expression"
    UNEXPECTED_EXPRESSION_CLOSE = "Closed Expression Without Opening"


SPACES = " \t"
QUOTES = "'\""
WORD_BREAKS = " \t#'\"{}()"
IDENTIFIER_START = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_.")
IDENTIFIER_CHARS = IDENTIFIER_START | {"-"}


class Scanner:
    """Stateful line scanner.

    One instance is meant to follow one script: `line_number` counts the lines
    fed to it and `expression_level` carries an open expression from one line
    into the next.
    """

    def __init__(self):
        self.line = ""
        self.line_number = 0
        self.idx = 0
        self.start = 0
        self.expression_level = 0
        self._last_kind: Optional[TokenKind] = None

    # --- Public API ---

    def scan(self, line: str) -> List[Token]:
        """Scans a line into a fresh token list."""
        tokens: List[Token] = []
        self.continue_scan(line, tokens)
        return tokens

    def continue_scan(self, line: str, tokens: List[Token]) -> List[Token]:
        """Scans a line, appending to `tokens`. Stops after an invalid token."""
        self._new_line(line)
        while True:
            token = self._scan_next_token()
            if token is None:
                break
            tokens.append(token)
            if token.kind is TokenKind.INVALID:
                dbg("Scan stopped on line", self.line_number, ":", token.value)
                break
        return tokens

    def reset(self):
        self.line = ""
        self.line_number = 0
        self.idx = 0
        self.start = 0
        self.expression_level = 0
        self._last_kind = None

    @property
    def in_expression(self) -> bool:
        return self.expression_level > 0

    # --- Cursor helpers ---

    def _new_line(self, line: str):
        self.line_number += 1
        self.start = 0
        self.idx = 0
        self.line = line.rstrip("\r\n")

    def _done(self) -> bool:
        return self.idx >= len(self.line)

    def _advance(self):
        if not self._done():
            self.idx += 1

    def _current(self) -> str:
        return self.line[self.idx] if not self._done() else ""

    def _lexeme(self) -> str:
        return self.line[self.start:self.idx]

    def _skip_spaces(self):
        while not self._done() and self._current() in SPACES:
            self._advance()

    def _gen_token(self, kind: TokenKind, value=None) -> Token:
        self._last_kind = kind
        return Token(kind, self._lexeme(), self.start, self.line_number, value)

    def _invalid(self, error: ScanError) -> Token:
        # A broken line must not leave later lines in expression mode.
        self.expression_level = 0
        return self._gen_token(TokenKind.INVALID, error.value)

    # --- Scanning ---

    def _scan_next_token(self) -> Optional[Token]:
        self.start = self.idx
        self._skip_spaces()
        if self._done() or self._current() == '#':
            return None
        if 0 < self.start < self.idx and self.expression_level == 0:
            return self._gen_token(TokenKind.WHITESPACE, self.idx - self.start)
        self.start = self.idx

        c = self._current()
        if c in "(){}":
            return self._scan_single()
        if c in QUOTES:
            return self._scan_quoted(c)
        if self.expression_level == 0:
            return self._scan_word()
        return self._scan_expression()

    def _scan_single(self) -> Token:
        c = self._current()
        self._advance()
        match c:
            case '(':
                self.expression_level += 1
                return self._gen_token(TokenKind.EXPRESSION_OPEN)
            case ')':
                if self.expression_level == 0:
                    return self._invalid(ScanError.UNEXPECTED_EXPRESSION_CLOSE)
                if self._last_kind is TokenKind.EXPRESSION_OPEN:
                    return self._invalid(ScanError.EMPTY_EXPRESSION)
                self.expression_level -= 1
                return self._gen_token(TokenKind.EXPRESSION_CLOSE)
            case '{':
                return self._gen_token(TokenKind.SUBROUTINE_OPEN)
            case '}':
                return self._gen_token(TokenKind.SUBROUTINE_CLOSE)
        raise ValueError(f"Expected '{{', '}}', '(' or ')', but got {c!r}")

    def _scan_quoted(self, quote: str) -> Token:
        self._advance()
        while not self._done() and self._current() != quote:
            self._advance()

        if self._done():
            return self._invalid(ScanError.UNCLOSED_QUOTE)

        self._advance()
        token = self._gen_token(TokenKind.QUOTED, self.line[self.start + 1:self.idx - 1])
        if self.expression_level > 0:
            self._skip_spaces()
        return token

    def _scan_word(self) -> Token:
        while not self._done():
            self._advance()
            if self._current() in WORD_BREAKS:
                break
        word = self._lexeme()
        kind = TokenKind.KEYWORD if word in KEYWORDS else TokenKind.LITERAL
        return self._gen_token(kind, word)

    def _scan_expression(self) -> Token:
        c = self._current()
        if c in IDENTIFIER_START:
            return self._scan_identifiers()
        if c in OPERATORS:
            self._advance()
            return self._gen_token(TokenKind.OPERATOR, c)
        self._advance()
        return self._invalid(ScanError.INVALID_EXPRESSION)

    def _scan_identifiers(self) -> Token:
        while not self._done() and self._current() in IDENTIFIER_CHARS:
            self._advance()
        token = self._gen_token(TokenKind.IDENTIFIERS, self._lexeme())
        self._skip_spaces()
        return token


def scan(line: str, scanner: Optional[Scanner] = None) -> List[Token]:
    """Scans a single line with a fresh scanner unless one is given."""
    return (scanner or Scanner()).scan(line)
