"""HTTP client abstraction for the catalog and upload endpoints.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Scripted implementation for testing
- RetryPolicy / with_retry: exponential backoff for transient failures
"""

from __future__ import annotations

import json
import ssl
import time
import urllib.error
import urllib.request
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from mpr.core.config import RetryConfig
from mpr.core.result import Err, Ok, Result

T = TypeVar("T")

__all__ = [
    "FilePart",
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
    "RetryPolicy",
    "is_transient",
    "with_retry",
]

USER_AGENT = "mpr/0.1.0"


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors and timeouts)
        message: Human-readable error message
        body: Response body, when the server sent one
    """

    url: str
    status: int
    message: str
    body: str = ""

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: str


@dataclass(frozen=True, slots=True)
class FilePart:
    """A file attached to a multipart request under form field `name`."""

    name: str
    path: Path
    content_type: str = "application/octet-stream"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations.

    This abstraction allows injecting mock clients for testing,
    avoiding real network calls in unit tests.
    """

    def get_json(self, url: str) -> Result[object, HttpError]:
        """Fetch URL and parse the body as JSON (object or array)."""
        ...

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, str],
        files: list[FilePart],
        headers: Mapping[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        """POST a multipart/form-data body; non-2xx responses are errors."""
        ...


def _encode_multipart(fields: Mapping[str, str], files: list[FilePart]) -> tuple[bytes, str]:
    boundary = f"----mpr{uuid.uuid4().hex}"
    chunks: list[bytes] = []
    for name, value in fields.items():
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
        chunks.append(value.encode("utf-8"))
        chunks.append(b"\r\n")
    for part in files:
        chunks.append(f"--{boundary}\r\n".encode())
        chunks.append(
            f'Content-Disposition: form-data; name="{part.name}"; '
            f'filename="{part.path.name}"\r\n'.encode()
        )
        chunks.append(f"Content-Type: {part.content_type}\r\n\r\n".encode())
        chunks.append(part.path.read_bytes())
        chunks.append(b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


class RealHttpClient:
    """Real HTTP client using urllib.

    Every request is bounded by `timeout`; retrying is left to `with_retry`.
    """

    def __init__(self, timeout: float = 10.0, user_agent: str = USER_AGENT) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _send(self, req: urllib.request.Request) -> Result[HttpResponse, HttpError]:
        url = req.full_url
        try:
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                body = response.read().decode("utf-8", errors="replace")
                return Ok(HttpResponse(status=response.status, body=body))
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            return Err(HttpError(url=url, status=e.code, message=str(e.reason), body=body))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str) -> Result[object, HttpError]:
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        result = self._send(req)
        if isinstance(result, Err):
            return result

        try:
            data: object = json.loads(result.value.body)
        except json.JSONDecodeError as e:
            return Err(
                HttpError(
                    url=url,
                    status=result.value.status,
                    message=f"JSON parse error: {e}",
                    body=result.value.body,
                )
            )
        return Ok(data)

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, str],
        files: list[FilePart],
        headers: Mapping[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        try:
            body, content_type = _encode_multipart(fields, files)
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=f"Cannot read upload file: {e}"))

        all_headers = {"User-Agent": self.user_agent, "Content-Type": content_type}
        all_headers.update(headers or {})
        req = urllib.request.Request(url, data=body, headers=all_headers, method="POST")
        return self._send(req)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff: wait `initial_delay * 2**attempt` between tries.

    `max_retries` counts retries, so a call is attempted at most
    `max_retries + 1` times.
    """

    max_retries: int = 5
    initial_delay: float = 1.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(max_retries=config.max_retries, initial_delay=config.initial_delay)

    def delay_for(self, attempt: int) -> float:
        return self.initial_delay * (2**attempt)


def is_transient(error: HttpError) -> bool:
    """Rate limiting and transport failures are worth another attempt."""
    return error.status in (0, 429)


def with_retry(
    operation: Callable[[], Result[T, HttpError]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[HttpError, int, float], None] | None = None,
) -> Result[T, HttpError]:
    """Run `operation` until it succeeds, fails permanently, or retries run out.

    `on_retry(error, attempt, delay)` is called before each wait.
    """
    attempts = max(0, policy.max_retries) + 1
    result = operation()
    for attempt in range(attempts - 1):
        if isinstance(result, Ok) or not is_transient(result.error):
            return result
        delay = policy.delay_for(attempt)
        if on_retry is not None:
            on_retry(result.error, attempt + 1, delay)
        sleep(delay)
        result = operation()
    return result


def _empty_script() -> dict[str, list[object]]:
    return {}


@dataclass
class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are scripted per URL. When several are set they are returned in
    order and the last one repeats, which is how retry tests simulate a
    rate-limited endpoint that eventually recovers.

    Usage:
        client = MockHttpClient()
        client.set_json(url, HttpError(url, 429, "Too Many Requests"), [{"version": "1.21"}])
        client.get_json(url)  # Err(429)
        client.get_json(url)  # Ok([...])
    """

    _json: dict[str, list[object]] = field(default_factory=_empty_script, init=False)
    _posts: dict[str, list[object]] = field(default_factory=_empty_script, init=False)
    calls: list[tuple[str, str]] = field(default_factory=lambda: [])
    posted: list[tuple[str, dict[str, str], list[FilePart], dict[str, str]]] = field(
        default_factory=lambda: []
    )

    def set_json(self, url: str, *responses: object) -> None:
        self._json[url] = list(responses)

    def set_post(self, url: str, *responses: HttpResponse | HttpError) -> None:
        self._posts[url] = list(responses)

    @staticmethod
    def _next(script: list[object]) -> object:
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    def get_json(self, url: str) -> Result[object, HttpError]:
        self.calls.append(("get_json", url))
        script = self._json.get(url)
        if not script:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        response = self._next(script)
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def post_multipart(
        self,
        url: str,
        fields: Mapping[str, str],
        files: list[FilePart],
        headers: Mapping[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(("post_multipart", url))
        self.posted.append((url, dict(fields), list(files), dict(headers or {})))
        script = self._posts.get(url)
        if not script:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        response = self._next(script)
        if isinstance(response, HttpError):
            return Err(response)
        if isinstance(response, HttpResponse):
            return Ok(response)
        return Ok(HttpResponse(status=200, body=json.dumps(response)))
