"""Version discovery: which tracks the pack is built for.

The catalog returns every game version it knows, including snapshots and
betas. Only release-type entries passing `is_valid_track` are kept, ordered
numerically so "1.21.10" follows "1.21.9".
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import cmp_to_key

from mpr.core.result import Err, Ok, Result
from mpr.core.structured import as_obj_list, as_str_dict, get_str
from mpr.net.http import HttpClient, HttpError, RetryPolicy, with_retry
from mpr.output.console import ConsoleProtocol
from mpr.release.errors import ReleaseError
from mpr.release.version import compare_tracks, is_valid_track

__all__ = ["check_service_availability", "list_valid_tracks", "select_tracks"]


def select_tracks(entries: list[object]) -> list[str]:
    """Filter raw catalog entries to valid release tracks, sorted."""
    tracks: list[str] = []
    for entry in entries:
        table = as_str_dict(entry)
        if table is None:
            continue
        version = get_str(table, "version")
        if version is None or get_str(table, "version_type") != "release":
            continue
        if is_valid_track(version):
            tracks.append(version)
    return sorted(set(tracks), key=cmp_to_key(compare_tracks))


def list_valid_tracks(
    http: HttpClient,
    catalog_url: str,
    policy: RetryPolicy,
    *,
    console: ConsoleProtocol | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[list[str], ReleaseError]:
    def on_retry(error: HttpError, attempt: int, delay: float) -> None:
        if console is not None:
            console.warning(f"{error}; retrying in {delay:g}s ({attempt}/{policy.max_retries})")

    result = with_retry(lambda: http.get_json(catalog_url), policy, sleep=sleep, on_retry=on_retry)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="network",
                message="failed to fetch game versions",
                hint=str(result.error),
            )
        )

    entries = as_obj_list(result.value)
    if entries is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message="unexpected catalog payload",
                hint=f"expected a JSON array from {catalog_url}",
            )
        )
    return Ok(select_tracks(entries))


def check_service_availability(
    http: HttpClient,
    url: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[None, ReleaseError]:
    """Pre-flight availability check run before any build; retried once."""
    result = with_retry(lambda: http.get_json(url), RetryPolicy(max_retries=1), sleep=sleep)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="network",
                message="game services are unreachable",
                hint=f"{result.error}. This may be an outage; try again later.",
            )
        )
    return Ok(None)
