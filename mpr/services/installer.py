"""packwiz wrapper: migrate, install items, export artifacts.

`PackwizInstaller` is a thin subprocess layer. `PackwizBuilder` sequences it
into a full track build: variants are installed smallest first, each one
only adding the items the previous variants did not already cover, so a
variant list must be nested (every variant contains the smaller ones).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path
from typing import TypeAlias

from mpr.core.config import ItemDefinition, ReleaseConfig, VariantConfig
from mpr.core.result import Err, Ok, Result
from mpr.output.console import ConsoleProtocol, Style
from mpr.platform.process import run as run_process
from mpr.release.errors import ReleaseError
from mpr.release.model import Artifact, BuildOutput, TrackContext
from mpr.release.snapshot import (
    AlternativeAttempt,
    AlternativeInstalledItem,
    FailedItem,
    InstallationSnapshot,
    SuccessfulItem,
)
from mpr.release.version import ReleaseVersion

__all__ = ["PackwizBuilder", "PackwizInstaller", "artifact_filename", "snapshot_of"]

PACKWIZ_TIMEOUT_SECONDS = 2 * 60.0
PACKWIZ_EXPORT_TIMEOUT_SECONDS = 10 * 60.0

_EXPORTED_RE = re.compile(r"to\s+(.+\.mrpack)", re.IGNORECASE)

ItemRecord: TypeAlias = SuccessfulItem | FailedItem | AlternativeInstalledItem


def artifact_filename(name: str, track: str, release: ReleaseVersion, variant: str) -> str:
    return f"{name}-{track}_{release}_{variant}.mrpack"


class PackwizInstaller:
    def __init__(
        self,
        *,
        root: Path,
        console: ConsoleProtocol,
        executable: str = "packwiz",
    ) -> None:
        self._root = root
        self._console = console
        self._exe = executable

    def migrate(self, track: str) -> Result[None, ReleaseError]:
        self._console.info(f"migrating pack to {track}")
        result = run_process(
            [self._exe, "migrate", "minecraft", track, "-y"],
            cwd=self._root,
            timeout=PACKWIZ_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="artifact",
                    message=f"packwiz migrate to {track} failed",
                    hint=result.error.detail,
                )
            )
        return Ok(None)

    def _add(self, identifier: str) -> bool:
        result = run_process(
            [self._exe, "modrinth", "add", identifier, "-y"],
            cwd=self._root,
            timeout=PACKWIZ_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            self._console.print(f"  {identifier}: {result.error.detail}", Style.DIM)
            return False
        return True

    def install_item(self, item: ItemDefinition) -> ItemRecord:
        """Install the primary, falling back to alternatives in order."""
        if self._add(item.identifier):
            self._console.success(f"installed {item.identifier}")
            return SuccessfulItem(item.identifier, item.category)

        self._console.warning(f"failed to install {item.identifier}")
        for index, alternative in enumerate(item.alternatives):
            self._console.print(f"  trying alternative {alternative}", Style.DIM)
            if self._add(alternative):
                self._console.success(f"installed alternative {alternative}")
                tried = [AlternativeAttempt(a, "tried_failed") for a in item.alternatives[:index]]
                untried = [AlternativeAttempt(a, "not_attempted") for a in item.alternatives[index + 1 :]]
                return AlternativeInstalledItem(
                    item.identifier,
                    item.category,
                    installed_alternative=alternative,
                    other_alternatives=(*tried, *untried),
                )

        return FailedItem(
            item.identifier,
            item.category,
            attempted_alternatives=tuple(AlternativeAttempt(a) for a in item.alternatives),
        )

    def install(self, items: Sequence[ItemDefinition]) -> InstallationSnapshot:
        return snapshot_of([self.install_item(item) for item in items])

    def export(
        self,
        *,
        name: str,
        track: str,
        release: ReleaseVersion,
        variant: str,
    ) -> Result[Path, ReleaseError]:
        """Export a .mrpack and rename it after the release it belongs to."""
        result = run_process(
            [self._exe, "modrinth", "export"],
            cwd=self._root,
            timeout=PACKWIZ_EXPORT_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="artifact",
                    message=f"packwiz export failed ({variant})",
                    hint=result.error.detail,
                )
            )

        match = _EXPORTED_RE.search(result.value)
        if match is None:
            return Err(
                ReleaseError(
                    kind="artifact",
                    message="could not determine the exported file name",
                    hint=result.value.strip() or None,
                )
            )

        exported = self._root / match.group(1).strip()
        target = self._root / artifact_filename(name, track, release, variant)
        try:
            exported.replace(target)
        except OSError as e:
            return Err(ReleaseError(kind="artifact", message=f"cannot rename {exported.name}: {e}"))

        self._console.success(f"exported {target.name}")
        return Ok(target)


def snapshot_of(records: Sequence[ItemRecord]) -> InstallationSnapshot:
    return InstallationSnapshot.create(
        successful=[r for r in records if isinstance(r, SuccessfulItem)],
        failed=[r for r in records if isinstance(r, FailedItem)],
        alternative_installed=[r for r in records if isinstance(r, AlternativeInstalledItem)],
    )


class PackwizBuilder:
    """`TrackBuilder` that produces one artifact per variant with packwiz."""

    def __init__(
        self,
        *,
        config: ReleaseConfig,
        installer: PackwizInstaller,
        console: ConsoleProtocol,
    ) -> None:
        self._config = config
        self._installer = installer
        self._console = console

    def _ordered_variants(
        self, variants: tuple[VariantConfig, ...]
    ) -> Result[list[VariantConfig], ReleaseError]:
        items = self._config.items
        ordered = sorted(variants, key=lambda v: len(v.select(items)))
        for smaller, larger in zip(ordered, ordered[1:]):
            if not set(smaller.select(items)) <= set(larger.select(items)):
                return Err(
                    ReleaseError(
                        kind="config",
                        message=f"variant '{smaller.name}' is not contained in '{larger.name}'",
                        hint="Each variant must exclude a superset of the categories of the next",
                    )
                )
        return Ok(ordered)

    def build(self, ctx: TrackContext) -> Result[BuildOutput, ReleaseError]:
        ordered = self._ordered_variants(ctx.variants)
        if isinstance(ordered, Err):
            return ordered

        migrated = self._installer.migrate(ctx.track)
        if isinstance(migrated, Err):
            return migrated

        records: dict[str, ItemRecord] = {}
        snapshots: dict[str, InstallationSnapshot] = {}
        artifacts: list[Artifact] = []
        for variant in ordered.value:
            self._console.print(f"Building {variant.name} variant", Style.BOLD)
            selected = variant.select(self._config.items)
            for item in selected:
                if item.identifier not in records:
                    records[item.identifier] = self._installer.install_item(item)

            snapshot = snapshot_of([records[i.identifier] for i in selected])
            snapshots[variant.name] = snapshot
            if snapshot.failed:
                self._console.warning(f"{len(snapshot.failed)} item(s) failed in {variant.name}")

            exported = self._installer.export(
                name=self._config.project.name,
                track=ctx.track,
                release=ctx.release,
                variant=variant.name,
            )
            if isinstance(exported, Err):
                return exported
            artifacts.append(Artifact(variant=variant, path=exported.value))

        snapshot = snapshots.get(self._config.snapshot_variant)
        if snapshot is None:
            return Err(
                ReleaseError(
                    kind="config",
                    message=f"snapshot variant '{self._config.snapshot_variant}' was not built",
                )
            )
        return Ok(BuildOutput(snapshot=snapshot, artifacts=tuple(artifacts)))
