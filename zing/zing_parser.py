"""
The ZingTTP parser: turns the tokens of one statement into a Statement.

Every statement starts with a keyword followed by up to two argument groups.
Groups are separated by whitespace tokens; inside a group, literal and quoted
text, variable references and (optionally) operator expressions are kept in
order so the runner can concatenate them later.
"""
from typing import List, Optional, Tuple

from zing.zing_datatypes import (
    Token, TokenKind, HTTP_METHODS,
    Text, VariableRef, Expression, Fragment,
    Statement, Nothing, Exit, Invalid, Print, Set, Request,
)
from zing.zing_expression import ExpressionError, to_postfix


class ParseFailure(Exception):
    """Raised internally to abandon a statement; carries the Invalid statement."""
    def __init__(self, statement: Invalid):
        super().__init__(statement.message)
        self.statement = statement


# --- Diagnostics ---

def should_start_with_keyword() -> Invalid:
    return Invalid("Statement does not start with keyword")


def unexpected_token(pos: int, lexeme: str) -> Invalid:
    return Invalid(f"Unexpected token at {pos}: \"{lexeme}\"")


def expected_other(expected: str, found: str, pos: int, lexeme: str) -> Invalid:
    return Invalid(f"Expected {expected} but found {found} at {pos}: \"{lexeme}\"")


def missing_token(expected: str, pos: int) -> Invalid:
    return Invalid(f"Missing {expected} at {pos}")


def scan_failure(token: Token) -> Invalid:
    return Invalid(f"{token.value} at {token.pos}: \"{token.lexeme}\"")


VALUE_OR_VARIABLE = "value or variable"


class Parser:
    """Builds Statements from token lists.

    With `allow_operators` set, an outermost parenthesised group containing
    operators becomes an Expression fragment instead of being rejected.
    """

    def __init__(self, allow_operators: bool = False):
        self.allow_operators = allow_operators

    def parse(self, tokens: List[Token]) -> Statement:
        if not tokens:
            return Nothing()

        for token in tokens:
            if token.kind is TokenKind.INVALID:
                return scan_failure(token)

        head = tokens[0]
        if head.kind is not TokenKind.KEYWORD:
            return should_start_with_keyword()

        arguments = tokens[1:]
        try:
            match head.value:
                case "EXIT":
                    return self._parse_exit(arguments)
                case "PRINT":
                    return self._parse_print(arguments)
                case "SET":
                    return self._parse_set(head, arguments)
                case method if method in HTTP_METHODS:
                    return self._parse_method(head, arguments)
                case _:
                    return unexpected_token(head.pos, head.lexeme)
        except ParseFailure as failure:
            return failure.statement

    # --- Statements ---

    def _parse_exit(self, arguments: List[Token]) -> Statement:
        if arguments:
            return unexpected_token(arguments[0].pos, arguments[0].lexeme)
        return Exit()

    def _parse_print(self, arguments: List[Token]) -> Statement:
        groups = self.parse_args(arguments, max_args=1)
        return Print(groups[0] if groups else [])

    def _parse_set(self, keyword: Token, arguments: List[Token]) -> Statement:
        groups = self.parse_args(arguments, max_args=2)
        if not groups or not groups[0]:
            return missing_token(VALUE_OR_VARIABLE, keyword.pos + len(keyword.lexeme))
        value_args = groups[1] if len(groups) == 2 else []
        return Set(groups[0], value_args)

    def _parse_method(self, keyword: Token, arguments: List[Token]) -> Statement:
        groups = self.parse_args(arguments, max_args=1)
        if len(groups) != 1 or not groups[0]:
            return missing_token(VALUE_OR_VARIABLE, keyword.pos + len(keyword.lexeme))
        return Request(keyword.value, groups[0])

    # --- Argument groups ---

    def parse_args(self, tokens: List[Token], max_args: int) -> List[List[Fragment]]:
        """Splits the tokens after a keyword into at most `max_args` groups.

        Raises ParseFailure when the tokens do not start with whitespace, when
        there are too many groups, or when a token cannot be part of a value.
        """
        if not tokens:
            return []
        if tokens[0].kind is not TokenKind.WHITESPACE:
            self._fail_expected(tokens[0])

        groups: List[List[Fragment]] = [[]]
        idx = 1
        while idx < len(tokens):
            token = tokens[idx]
            match token.kind:
                case TokenKind.WHITESPACE:
                    if len(groups) == max_args:
                        self._fail_expected(token)
                    groups.append([])
                case TokenKind.LITERAL | TokenKind.QUOTED:
                    groups[-1].append(Text(token.value))
                case TokenKind.IDENTIFIERS:
                    groups[-1].append(VariableRef(token.value))
                case TokenKind.EXPRESSION_OPEN:
                    if self.allow_operators:
                        fragments, idx = self._parse_group(tokens, idx)
                        groups[-1].extend(fragments)
                        continue
                case TokenKind.EXPRESSION_CLOSE:
                    pass
                case _:
                    self._fail_expected(token)
            idx += 1
        return groups

    def _parse_group(self, tokens: List[Token], open_idx: int) -> Tuple[List[Fragment], int]:
        """Collects an outermost `( ... )` group starting at `open_idx`.

        Returns the fragments for the group and the index just past its close.
        """
        depth = 0
        end = open_idx
        while end < len(tokens):
            kind = tokens[end].kind
            if kind is TokenKind.EXPRESSION_OPEN:
                depth += 1
            elif kind is TokenKind.EXPRESSION_CLOSE:
                depth -= 1
                if depth == 0:
                    break
            end += 1
        inner = tokens[open_idx + 1:end]

        if not any(t.kind is TokenKind.OPERATOR for t in inner):
            fragments: List[Fragment] = []
            for token in inner:
                match token.kind:
                    case TokenKind.QUOTED:
                        fragments.append(Text(token.value))
                    case TokenKind.IDENTIFIERS:
                        fragments.append(VariableRef(token.value))
                    case TokenKind.EXPRESSION_OPEN | TokenKind.EXPRESSION_CLOSE:
                        pass
                    case _:
                        self._fail_expected(token)
            return fragments, end + 1

        for token in inner:
            if token.kind not in (TokenKind.QUOTED, TokenKind.IDENTIFIERS, TokenKind.OPERATOR,
                                  TokenKind.EXPRESSION_OPEN, TokenKind.EXPRESSION_CLOSE):
                self._fail_expected(token)
        source = " ".join(t.lexeme for t in inner)
        try:
            postfix = to_postfix(inner)
        except ExpressionError as e:
            raise ParseFailure(Invalid(str(e)))
        return [Expression(tuple(postfix), source)], end + 1

    def _fail_expected(self, token: Token):
        raise ParseFailure(expected_other(VALUE_OR_VARIABLE, token.kind.label, token.pos, token.lexeme))


def parse(tokens: List[Token], allow_operators: bool = False) -> Statement:
    return Parser(allow_operators).parse(tokens)


def unclosed_expression(tokens: List[Token]) -> Optional[Token]:
    """Returns the `(` token left open at the end of `tokens`, if any."""
    stack: List[Token] = []
    for token in tokens:
        if token.kind is TokenKind.EXPRESSION_OPEN:
            stack.append(token)
        elif token.kind is TokenKind.EXPRESSION_CLOSE and stack:
            stack.pop()
    return stack[0] if stack else None
