import re
from typing import Any, Dict, List, Optional

from zing.zing_config import Options
from zing.zing_datatypes import (
    Token, Text, VariableRef, Expression, Fragment,
    Statement, Nothing, Exit, Invalid, Print, Set, Request,
)
from zing.zing_debug import dbg
from zing.zing_expression import ExpressionError, evaluate
from zing.zing_http import HttpClient, Outcome, Success, header_map
from zing.zing_parser import Parser, unclosed_expression
from zing.zing_printer import to_string
from zing.zing_scanner import Scanner
from zing.zing_variables import get, set_path, parse_literal, split_path

VARIABLE_NAME = re.compile(r"[A-Za-z0-9_.-]+")
LAST_REQUEST = "last_request"


# ===================================================================
# Request -> variable mapping
# ===================================================================

def request_variable(method: str, url: str, outcome: Outcome) -> Dict[str, Any]:
    """Builds the `last_request` map for a finished request."""
    response: Dict[str, Any] = {"success": outcome.success}
    if isinstance(outcome, Success):
        response["reason"] = f"{outcome.status_code} ({outcome.phrase})"
        response["code"] = outcome.status_code
        response["body"] = outcome.text
        response["headers"] = header_map(outcome.headers)
    else:
        response["reason"] = f"{outcome.reason}: {outcome.system_error}"

    return {
        "method": method,
        "url": url,
        "time_spent_ms": outcome.elapsed_ns // 1_000_000,
        "success": outcome.success,
        "headers": {name: list(values) for name, values in outcome.request_headers.items()},
        "response": response,
    }


def request_summary(method: str, outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return (
            f"Received response {outcome.status_code} ({outcome.phrase}): "
            f"{len(outcome.body)} bytes in {outcome.elapsed_ns // 1_000_000} milliseconds\n"
        )
    return f"Error while executing {method} command: {outcome.reason}: {outcome.system_error}\n"


# ===================================================================
# Runner
# ===================================================================

class ScriptRunner:
    """Reads, parses and executes statements against one variable store.

    The runner owns the root map for the whole session. The UI supplies
    lines and receives output; the client performs requests and is created
    on first use unless one is injected.
    """

    def __init__(self, ui, client=None, options: Optional[Options] = None):
        self.ui = ui
        self.options = options or Options()
        self.root: Dict[str, Any] = {}
        self.scanner = Scanner()
        self.parser = Parser(allow_operators=self.options.evaluate_expressions)
        self._client = client
        self._owns_client = client is None

    @property
    def client(self):
        if self._client is None:
            self._client = HttpClient(user_agent=self.options.user_agent)
        return self._client

    async def aclose(self):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- Loop ---

    async def run(self):
        """Executes lines until EXIT or end of input."""
        try:
            while True:
                tokens = await self.read_statement()
                if tokens is None:
                    dbg("End of input")
                    break
                statement = self.parser.parse(tokens)
                if not await self.execute(statement):
                    break
        finally:
            await self.aclose()
        self.ui.exit()

    async def read_statement(self) -> Optional[List[Token]]:
        """Reads one statement, following an open expression onto later lines.

        Returns None at end of input.
        """
        line = await self.ui.next_line()
        if line is None:
            return None
        dbg("Processing line", self.scanner.line_number + 1, ":", line)
        tokens = self.scanner.scan(line)

        while self.scanner.in_expression:
            line = await self.ui.next_line()
            if line is None:
                opener = unclosed_expression(tokens)
                self.ui.write(f"Error: Missing expression close at {opener.pos if opener else 0}\n")
                return None
            dbg("Continuing expression with", line)
            self.scanner.continue_scan(line, tokens)
        return tokens

    async def execute(self, statement: Statement) -> bool:
        """Executes one statement. Returns False when the session should end."""
        dbg("Executing", type(statement).__name__)
        try:
            match statement:
                case Nothing():
                    pass
                case Exit():
                    return False
                case Invalid(message=message):
                    self.ui.write(f"Error: {message}\n")
                case Print(args=args):
                    self.print_args(args)
                case Set(name_args=name_args, value_args=value_args):
                    self.set_variable(name_args, value_args)
                case Request(method=method, args=args):
                    await self.request(method, args)
        except ExpressionError as e:
            self.ui.write(f"Error: {e}\n")
        return True

    # --- Statements ---

    def print_args(self, args: List[Fragment]):
        if not args:
            self.ui.write(to_string(self.root))
            return
        self.ui.write(self.resolve(args) + "\n")

    def set_variable(self, name_args: List[Fragment], value_args: List[Fragment]):
        name = self.resolve(name_args).strip()
        if not VARIABLE_NAME.fullmatch(name) or not split_path(name):
            self.ui.write(f"Error: Invalid variable name \"{name}\"\n")
            return

        match value_args:
            case [VariableRef(path=path)]:
                value = get(self.root, path)
            case [Expression() as expression]:
                value = self.evaluate(expression)
            case _:
                value = parse_literal(self.resolve(value_args))

        if set_path(self.root, name, value):
            dbg("Set", name, "to", repr(value))

    async def request(self, method: str, args: List[Fragment]):
        url = self.resolve(args)
        outcome = await self.client.perform(method, url, self.options)
        set_path(self.root, LAST_REQUEST, request_variable(method, url, outcome))
        dbg("Updated", LAST_REQUEST)
        self.ui.write(request_summary(method, outcome))

    # --- Arguments ---

    def resolve(self, fragments: List[Fragment]) -> str:
        """Concatenates fragments, stringifying referenced variables."""
        parts = []
        for fragment in fragments:
            match fragment:
                case Text(text=text):
                    parts.append(text)
                case VariableRef(path=path):
                    parts.append(to_string(get(self.root, path)))
                case Expression():
                    parts.append(to_string(self.evaluate(fragment)))
        return "".join(parts)

    def evaluate(self, expression: Expression) -> Any:
        return evaluate(expression.postfix, lambda path: get(self.root, path))
