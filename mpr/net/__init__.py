"""Network access: HTTP client and retry policy."""

from mpr.net.http import (
    FilePart,
    HttpClient,
    HttpError,
    HttpResponse,
    MockHttpClient,
    RealHttpClient,
    RetryPolicy,
    is_transient,
    with_retry,
)

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
