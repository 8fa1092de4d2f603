"""Upload release artifacts to the distribution service (Modrinth API v2)."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass

from mpr.core.config import ReleaseConfig
from mpr.core.result import Err, Ok, Result
from mpr.net.http import FilePart, HttpClient, HttpError, RetryPolicy, with_retry
from mpr.output.console import ConsoleProtocol
from mpr.release.errors import ReleaseError
from mpr.release.model import Artifact, TrackContext, UploadOutcome

__all__ = ["UploadPublisher", "UploadRequest", "build_upload_request", "is_duplicate"]

_DUPLICATE_MARKERS = ("duplicate", "already exists")


@dataclass(frozen=True, slots=True)
class UploadRequest:
    data: dict[str, object]
    file: FilePart


def build_upload_request(
    config: ReleaseConfig,
    ctx: TrackContext,
    artifact: Artifact,
) -> Result[UploadRequest, ReleaseError]:
    project_id = config.project.project_id
    if project_id is None:
        return Err(
            ReleaseError(
                kind="config",
                message="project id is not configured",
                hint="Set [project] id in release.toml",
            )
        )

    variant = artifact.variant
    filename = artifact.path.name
    changelog = variant.changelog.replace("{track}", ctx.track)
    changelog = changelog.replace("{release}", str(ctx.release))
    if not changelog:
        changelog = f"{config.project.name} {variant.name} for {ctx.track}"
    data: dict[str, object] = {
        "name": f"{config.project.name} {ctx.track} ({variant.name.capitalize()}) - v{ctx.release}",
        "version_number": f"{ctx.release}_{ctx.track}_{variant.name}",
        "changelog": changelog,
        "dependencies": [],
        "game_versions": [ctx.track],
        "version_type": "release",
        "loaders": list(config.project.loaders),
        "featured": True,
        "project_id": project_id,
        "file_parts": [filename],
    }
    return Ok(UploadRequest(data=data, file=FilePart(filename, artifact.path, "application/zip")))


def is_duplicate(error: HttpError) -> bool:
    """The service rejected the upload because this version already exists."""
    if error.status not in (400, 409):
        return False
    text = f"{error.message}\n{error.body}".lower()
    return any(marker in text for marker in _DUPLICATE_MARKERS)


class UploadPublisher:
    """`Publisher` that POSTs each artifact to the configured upload endpoint."""

    def __init__(
        self,
        *,
        config: ReleaseConfig,
        http: HttpClient,
        token: str | None,
        console: ConsoleProtocol,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._http = http
        self._token = token
        self._console = console
        self._sleep = sleep

    def publish(self, ctx: TrackContext, artifact: Artifact) -> Result[UploadOutcome, ReleaseError]:
        if not self._token:
            return Err(
                ReleaseError(
                    kind="config",
                    message="upload token is not set",
                    hint=f"Export {self._config.upload.token_env}",
                )
            )

        request = build_upload_request(self._config, ctx, artifact)
        if isinstance(request, Err):
            return request

        payload = request.value
        url = self._config.upload.url
        self._console.info(f"uploading {artifact.path.name}")
        policy = RetryPolicy.from_config(self._config.retry)

        def on_retry(error: HttpError, attempt: int, delay: float) -> None:
            self._console.warning(f"{error}; retrying in {delay:g}s ({attempt}/{policy.max_retries})")

        result = with_retry(
            lambda: self._http.post_multipart(
                url,
                {"data": json.dumps(payload.data)},
                [payload.file],
                {"Authorization": self._token or ""},
            ),
            policy,
            sleep=self._sleep,
            on_retry=on_retry,
        )
        match result:
            case Ok(_):
                return Ok("uploaded")
            case Err(e) if is_duplicate(e):
                return Ok("duplicate")
            case Err(e):
                return Err(
                    ReleaseError(
                        kind="network" if e.status in (0, 429) else "artifact",
                        message=f"upload of {artifact.path.name} failed",
                        hint=f"{e}: {e.body.strip()}" if e.body.strip() else str(e),
                    )
                )
