import httpx
import pytest

from zing.zing_config import Options
from zing.zing_http import Failure, FailureCategory, HttpClient, Success
from zing.zing_runtime import ScriptRunner, request_variable
from zing.zing_ui import ListInterface


class FakeClient:
    """Stands in for HttpClient: records calls and replays queued outcomes."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    async def perform(self, method, url, options):
        self.calls.append((method, url, options))
        return self.outcomes.pop(0)

    async def aclose(self):
        self.closed = True


def ok(status=200, body=b"hi", headers=None, elapsed_ms=5):
    return Success(
        status,
        httpx.Headers(headers or [("Content-Type", "text/plain")]),
        body,
        elapsed_ms * 1_000_000,
        {"host": ["example.com"], "user-agent": ["ZingTTP/test"]},
    )


async def run_lines(lines, client=None, options=None):
    ui = ListInterface(lines)
    runner = ScriptRunner(ui, client=client or FakeClient(), options=options)
    await runner.run()
    return ui, runner


# --- Scenarios ---

@pytest.mark.asyncio
async def test_set_and_print_copy():
    ui, runner = await run_lines(["SET hello world", "PRINT (hello)", "SET hello2 (hello)", "PRINT (hello2)"])
    assert ui.outputs == ["world\n", "world\n"]
    assert ui.exited


# Test cases: (id, value text, printed)
ROUND_TRIP_CASES = [
    ("hex", "0x10", "16"),
    ("octal", "0o10", "8"),
    ("float", "3.6", "3.6"),
    ("small_float", "3e-6", "3e-6"),
    ("bool", "TRUE", "true"),
    ("text", "hello", "hello"),
    ("quoted_keeps_spaces", "'a b'", "a b"),
    ("quote_layer_kept_as_string", "\"'0x5'\"", "0x5"),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("value, printed", [c[1:] for c in ROUND_TRIP_CASES], ids=[c[0] for c in ROUND_TRIP_CASES])
async def test_set_then_print_round_trip(value, printed):
    ui, _ = await run_lines([f"SET x {value}", "PRINT (x)"])
    assert ui.outputs == [printed + "\n"]


@pytest.mark.asyncio
async def test_inferred_types_are_stored():
    _, runner = await run_lines(["SET i 0x10", "SET f 3.6", "SET b false", "SET s \"'0x5'\"", "SET n NULL"])
    assert runner.root == {"i": 16, "f": 3.6, "b": False, "s": "0x5", "n": None}


@pytest.mark.asyncio
async def test_auto_vivification_prints_nested_map():
    ui, _ = await run_lines(["SET a.b.c 1", "PRINT (a)"])
    assert ui.outputs == ["{\n\tb: {\n\t\tc: 1\n\t}\n}\n"]


@pytest.mark.asyncio
async def test_null_prints_empty_and_shows_in_parent():
    ui, runner = await run_lines(["SET p", "PRINT (p)", "SET q NULL", "PRINT"])
    assert runner.root == {"p": None, "q": None}
    assert ui.outputs == ["\n", "{\n\tp: NULL,\n\tq: NULL\n}\n"]


@pytest.mark.asyncio
async def test_print_empty_store():
    ui, _ = await run_lines(["PRINT"])
    assert ui.outputs == ["{}\n"]


@pytest.mark.asyncio
async def test_copies_are_independent():
    ui, runner = await run_lines([
        "SET a.f 1",
        "SET b (a)",
        "SET b.f 2",
        "SET a.g 3",
        "PRINT (a.f)",
        "PRINT (b.f)",
    ])
    assert ui.outputs == ["1\n", "2\n"]
    assert runner.root == {"a": {"f": 1, "g": 3}, "b": {"f": 2}}


@pytest.mark.asyncio
async def test_repeated_overwrite_matches_single_set():
    _, runner = await run_lines(["SET p.q.r 1", "SET p 5", "SET p 5"])
    assert runner.root == {"p": 5}


@pytest.mark.asyncio
async def test_variable_copy_keeps_type():
    _, runner = await run_lines(["SET n 12", "SET m (n)", "SET s x(n)"])
    assert runner.root["m"] == 12
    assert runner.root["s"] == "x12"


@pytest.mark.asyncio
async def test_composed_names_and_values():
    ui, runner = await run_lines([
        "SET host example.com",
        "SET key users",
        "SET (key).count 2",
        "SET '  padded  ' yes",
        "PRINT http://(host)/(key)?n=(users.count)",
    ])
    assert runner.root["users"] == {"count": 2}
    assert runner.root["padded"] == "yes"
    assert ui.outputs == ["http://example.com/users?n=2\n"]


@pytest.mark.asyncio
async def test_error_isolation():
    ui, runner = await run_lines(["SET x 1", "WHILE x", "PRINT (x)"])
    assert ui.outputs == ['Error: Unexpected token at 0: "WHILE"\n', "1\n"]
    assert runner.root == {"x": 1}


# Test cases: (id, line, expected output)
ERROR_OUTPUT_CASES = [
    ("no_keyword", "hello", "Error: Statement does not start with keyword\n"),
    ("bad_name", "SET a! 1", 'Error: Invalid variable name "a!"\n'),
    ("dots_only_name", "SET .. 1", 'Error: Invalid variable name ".."\n'),
    ("empty_name", "SET (missing) 1", 'Error: Invalid variable name ""\n'),
    ("unclosed_quote", "PRINT 'abc", "Error: Unclosed Quote at 6: \"'abc\"\n"),
    ("operators_disabled", "PRINT (1 + 2)", 'Error: Expected value or variable but found operator at 9: "+"\n'),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("line, expected", [c[1:] for c in ERROR_OUTPUT_CASES], ids=[c[0] for c in ERROR_OUTPUT_CASES])
async def test_errors_are_reported_without_mutation(line, expected):
    ui, runner = await run_lines([line])
    assert ui.outputs == [expected]
    assert runner.root == {}


@pytest.mark.asyncio
async def test_exit_stops_the_session():
    ui, _ = await run_lines(["PRINT a", "EXIT", "PRINT b"])
    assert ui.outputs == ["a\n"]
    assert ui.exited


@pytest.mark.asyncio
async def test_expression_spanning_lines():
    ui, _ = await run_lines(["SET x 1", "PRINT (x", ")", "PRINT done"])
    assert ui.outputs == ["1\n", "done\n"]


@pytest.mark.asyncio
async def test_end_of_input_inside_expression():
    ui, _ = await run_lines(["PRINT (x"])
    assert ui.outputs == ["Error: Missing expression close at 6\n"]
    assert ui.exited


# --- Requests ---

@pytest.mark.asyncio
async def test_successful_request_populates_last_request():
    client = FakeClient(ok(headers=[("Content-Type", "text/plain"), ("X-A", "1"), ("X-A", "2")]))
    ui, runner = await run_lines(["SET host example.com", "GET http://(host)/"], client=client)

    method, url, options = client.calls[0]
    assert (method, url) == ("GET", "http://example.com/")
    assert options is runner.options
    assert not client.closed

    assert ui.outputs == ["Received response 200 (OK): 2 bytes in 5 milliseconds\n"]
    last = runner.root["last_request"]
    assert list(last) == ["method", "url", "time_spent_ms", "success", "headers", "response"]
    assert last == {
        "method": "GET",
        "url": "http://example.com/",
        "time_spent_ms": 5,
        "success": True,
        "headers": {"host": ["example.com"], "user-agent": ["ZingTTP/test"]},
        "response": {
            "success": True,
            "reason": "200 (OK)",
            "code": 200,
            "body": "hi",
            "headers": {"content-type": ["text/plain"], "x-a": ["1", "2"]},
        },
    }


@pytest.mark.asyncio
async def test_request_results_are_addressable():
    client = FakeClient(ok(headers=[("X-A", "1"), ("X-A", "2")]))
    ui, _ = await run_lines([
        "GET http://example.com/",
        "PRINT (last_request.response.code)",
        "PRINT (last_request.response.headers.x-a.1)",
        "PRINT (last_request.success)",
    ], client=client)
    assert ui.outputs[1:] == ["200\n", "2\n", "true\n"]


@pytest.mark.asyncio
async def test_client_error_status_is_not_success():
    client = FakeClient(ok(status=404, body=b""))
    ui, runner = await run_lines(["DELETE http://example.com/x"], client=client)
    assert ui.outputs == ["Received response 404 (Not Found): 0 bytes in 5 milliseconds\n"]
    last = runner.root["last_request"]
    assert last["success"] is False
    assert last["response"]["success"] is False
    assert last["response"]["code"] == 404


@pytest.mark.asyncio
async def test_failed_request_is_reported_and_recorded():
    failure = Failure(FailureCategory.OPEN, "ConnectionRefused", 1_000_000, {"host": ["localhost:1"]})
    client = FakeClient(failure)
    ui, runner = await run_lines(["GET http://localhost:1/", "PRINT after"], client=client)
    assert ui.outputs == [
        "Error while executing GET command: Could not open connection: ConnectionRefused\n",
        "after\n",
    ]
    assert runner.root["last_request"] == {
        "method": "GET",
        "url": "http://localhost:1/",
        "time_spent_ms": 1,
        "success": False,
        "headers": {"host": ["localhost:1"]},
        "response": {"success": False, "reason": "Could not open connection: ConnectionRefused"},
    }


@pytest.mark.asyncio
async def test_last_request_is_replaced():
    client = FakeClient(ok(body=b"first"), ok(status=201, body=b"second"))
    _, runner = await run_lines(["GET http://a/", "POST http://b/"], client=client)
    last = runner.root["last_request"]
    assert last["method"] == "POST"
    assert last["response"]["body"] == "second"
    assert last["response"]["reason"] == "201 (Created)"


def test_request_variable_decodes_declared_charset():
    outcome = ok(body=b"caf\xe9", headers=[("Content-Type", "text/plain; charset=latin-1")])
    assert request_variable("GET", "http://x/", outcome)["response"]["body"] == "café"


@pytest.mark.asyncio
async def test_runner_with_real_client_and_mock_transport():
    def handler(request):
        return httpx.Response(200, json={"ok": True})

    client = HttpClient(transport=httpx.MockTransport(handler), user_agent="ZingTTP/test")
    try:
        ui, runner = await run_lines(["GET http://example.com/api"], client=client)
    finally:
        await client.aclose()

    last = runner.root["last_request"]
    assert last["success"] is True
    assert last["headers"]["user-agent"] == ["ZingTTP/test"]
    assert last["response"]["headers"]["content-type"] == ["application/json"]
    assert '"ok"' in last["response"]["body"]
    assert ui.outputs[0].startswith("Received response 200 (OK): ")


@pytest.mark.asyncio
async def test_runner_closes_the_client_it_creates():
    ui = ListInterface(["GET ftp://example.com/"])
    runner = ScriptRunner(ui)
    await runner.run()
    assert ui.outputs == ["Error while executing GET command: Could not parse URI: UnsupportedUriScheme\n"]
    assert runner._client is None


# --- Expressions (opt-in) ---

@pytest.mark.asyncio
async def test_expressions_when_enabled():
    ui, runner = await run_lines([
        "SET n 2",
        "SET m (n * 3)",
        "SET ok (m = 6)",
        "PRINT total=(n + 1)",
        "PRINT (1 / 0)",
        "PRINT 'still running'",
    ], options=Options(evaluate_expressions=True))
    assert runner.root == {"n": 2, "m": 6, "ok": True}
    assert ui.outputs == ["total=3\n", "Error: Division by zero\n", "still running\n"]


@pytest.mark.asyncio
async def test_malformed_expression_reported():
    ui, _ = await run_lines(["PRINT (1 +)"], options=Options(evaluate_expressions=True))
    assert ui.outputs == ["Error: Missing operand at end of expression\n"]


@pytest.mark.asyncio
async def test_undecodable_host_is_a_failed_request():
    ui = ListInterface(["GET http://xn--a/", "PRINT after"])
    runner = ScriptRunner(ui)
    await runner.run()
    assert ui.outputs[0].startswith("Error while executing GET command: Could not parse URI: ")
    assert ui.outputs[1:] == ["after\n"]
    assert runner.root["last_request"]["success"] is False
