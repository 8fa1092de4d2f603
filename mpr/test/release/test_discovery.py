from __future__ import annotations

from mpr.core.result import Err, Ok
from mpr.net.http import HttpError, MockHttpClient, RetryPolicy
from mpr.output.console import MockConsole
from mpr.release.discovery import (
    check_service_availability,
    list_valid_tracks,
    select_tracks,
)

CATALOG = "https://api.example.test/v2/tag/game_version"
STATUS = "https://api.example.test/status"

ENTRIES: list[object] = [
    {"version": "1.21.10", "version_type": "release"},
    {"version": "25w41a", "version_type": "snapshot"},
    {"version": "1.21.9", "version_type": "release"},
    {"version": "1.21.9", "version_type": "release"},
    {"version": "1.21-pre1", "version_type": "release"},
    {"version": "1.13.2", "version_type": "release"},
    {"version": "1.14", "version_type": "release"},
    {"version": "1.20.5", "version_type": "beta"},
    {"version_type": "release"},
    "garbage",
]


class _NoSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_select_tracks_filters_and_orders() -> None:
    assert select_tracks(ENTRIES) == ["1.14", "1.21.9", "1.21.10"]


def test_select_tracks_empty() -> None:
    assert select_tracks([]) == []


def test_list_valid_tracks() -> None:
    http = MockHttpClient()
    http.set_json(CATALOG, ENTRIES)

    result = list_valid_tracks(http, CATALOG, RetryPolicy(), sleep=_NoSleep())

    assert result == Ok(["1.14", "1.21.9", "1.21.10"])


def test_list_valid_tracks_retries_rate_limit() -> None:
    http = MockHttpClient()
    http.set_json(CATALOG, HttpError(CATALOG, 429, "Too Many Requests"), ENTRIES)
    console = MockConsole()
    sleep = _NoSleep()

    result = list_valid_tracks(http, CATALOG, RetryPolicy(), console=console, sleep=sleep)

    assert isinstance(result, Ok)
    assert sleep.delays == [1.0]
    assert console.find("retrying in 1s (1/5)")


def test_list_valid_tracks_network_failure() -> None:
    http = MockHttpClient()
    http.set_json(CATALOG, HttpError(CATALOG, 0, "Connection refused"))

    result = list_valid_tracks(http, CATALOG, RetryPolicy(max_retries=2), sleep=_NoSleep())

    assert isinstance(result, Err)
    assert result.error.kind == "network"
    assert len(http.calls) == 3


def test_list_valid_tracks_unexpected_payload() -> None:
    http = MockHttpClient()
    http.set_json(CATALOG, {"error": "nope"})

    result = list_valid_tracks(http, CATALOG, RetryPolicy(), sleep=_NoSleep())

    assert isinstance(result, Err)
    assert result.error.kind == "invalid_input"


def test_service_available() -> None:
    http = MockHttpClient()
    http.set_json(STATUS, {"ok": True})

    assert check_service_availability(http, STATUS, sleep=_NoSleep()) == Ok(None)


def test_service_unavailable_is_retried_once() -> None:
    http = MockHttpClient()
    http.set_json(STATUS, HttpError(STATUS, 0, "timed out"))
    sleep = _NoSleep()

    result = check_service_availability(http, STATUS, sleep=sleep)

    assert isinstance(result, Err)
    assert result.error.kind == "network"
    assert "unreachable" in result.error.message
    assert len(http.calls) == 2
    assert sleep.delays == [1.0]
