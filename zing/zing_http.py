import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

import httpx

from zing.zing_config import USER_AGENT
from zing.zing_debug import dbg

ACCEPT_ENCODING = "gzip, deflate"


class FailureCategory(Enum):
    """Stage of a request that failed, valued by its description."""
    TIMER = "Failed to initialise timer"
    HEADER_ALLOC = "Could not allocate memory for storing headers"
    URI = "Could not parse URI"
    OPEN = "Could not open connection"
    SEND = "Could not send request"
    FINISH = "Could not finish sending request"
    WAIT = "Failed while waiting for response"
    HEADER_SCAN = "Failed while scanning response headers"
    READ = "Failed while reading response body"


@dataclass
class Failure:
    category: FailureCategory
    system_error: str
    elapsed_ns: int = 0
    request_headers: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        return self.category.value


@dataclass
class Success:
    status_code: int
    headers: httpx.Headers
    body: bytes
    elapsed_ns: int = 0
    request_headers: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status_code < 400

    @property
    def phrase(self) -> str:
        return httpx.codes.get_reason_phrase(self.status_code) or "Unknown"

    @property
    def text(self) -> str:
        return decode_body(self.body, self.headers.get("content-type"))


Outcome = Union[Failure, Success]


# --- Helpers ---

def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


def decode_body(body: bytes, content_type: Optional[str] = None) -> str:
    """Decodes a response body with its declared charset, else UTF-8."""
    encoding = _encoding_from_content_type(content_type) or "utf-8"
    try:
        return body.decode(encoding, errors="replace")
    except (LookupError, UnicodeError):
        return body.decode("utf-8", errors="replace")


def header_map(headers: httpx.Headers) -> Dict[str, List[str]]:
    """Groups header values by lower-case name, keeping arrival order."""
    result: Dict[str, List[str]] = {}
    for name, value in headers.multi_items():
        result.setdefault(name.lower(), []).append(value)
    return result


def _header_block_size(response: httpx.Response) -> int:
    # name + ": " + value + CRLF for every header, plus the closing CRLF
    return sum(len(k) + len(v) + 4 for k, v in response.headers.raw) + 2


def _failure_category(exc: httpx.TransportError) -> FailureCategory:
    match exc:
        case httpx.UnsupportedProtocol():
            return FailureCategory.URI
        case httpx.ConnectError() | httpx.ConnectTimeout() | httpx.PoolTimeout() | httpx.ProxyError():
            return FailureCategory.OPEN
        case httpx.WriteError() | httpx.WriteTimeout():
            return FailureCategory.SEND
        case httpx.LocalProtocolError():
            return FailureCategory.FINISH
        case _:
            return FailureCategory.WAIT


# --- Client ---

class HttpClient:
    """Performs one request at a time and reports the outcome as a value.

    Redirects are not followed and there is no timeout; the only bounds are
    the header block size and the response body size from the options.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None,
                 user_agent: str = USER_AGENT):
        self.user_agent = user_agent
        self._client = httpx.AsyncClient(
            transport=transport, follow_redirects=False, timeout=None,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def perform(self, method: str, url: str, options) -> Outcome:
        started = time.perf_counter_ns()

        def elapsed() -> int:
            return time.perf_counter_ns() - started

        try:
            target = httpx.URL(url)
        except (httpx.InvalidURL, UnicodeError) as e:
            dbg("Invalid URL", url, ":", e)
            return Failure(FailureCategory.URI, type(e).__name__, elapsed())
        if target.scheme not in ("http", "https") or not target.host:
            dbg("Unsupported URL", url)
            return Failure(FailureCategory.URI, "UnsupportedUriScheme", elapsed())

        headers = httpx.Headers({
            "host": target.netloc.decode("ascii"),
            "user-agent": self.user_agent,
            "accept-encoding": ACCEPT_ENCODING,
        })
        sent = header_map(headers)

        dbg("Opening connection for", method, url)
        try:
            request = self._client.build_request(method, target, headers=headers)
            dbg("Sending request")
            response = await self._client.send(request, stream=True)
        except (httpx.InvalidURL, UnicodeError) as e:
            return Failure(FailureCategory.URI, type(e).__name__, elapsed(), sent)
        except httpx.TransportError as e:
            category = _failure_category(e)
            dbg("Request failed:", category.name, type(e).__name__)
            return Failure(category, type(e).__name__, elapsed(), sent)

        try:
            dbg("Received status", response.status_code)
            if _header_block_size(response) > options.header_buffer_size_kb * 1024:
                return Failure(FailureCategory.HEADER_SCAN, "HeaderBufferTooSmall", elapsed(), sent)

            limit = options.max_response_mem_mb * 1024 * 1024
            body = bytearray()
            try:
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > limit:
                        dbg("Response body exceeds", limit, "bytes")
                        return Failure(FailureCategory.READ, "StreamTooLong", elapsed(), sent)
            except (httpx.TransportError, httpx.DecodingError) as e:
                dbg("Reading body failed:", type(e).__name__)
                return Failure(FailureCategory.READ, type(e).__name__, elapsed(), sent)
        finally:
            await response.aclose()

        dbg("Finished reading", len(body), "bytes")
        return Success(response.status_code, response.headers, bytes(body), elapsed(), sent)
