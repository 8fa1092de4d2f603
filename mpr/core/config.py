"""Typed release configuration.

`release.toml` lives at the root of the modpack repository and describes the
project, the ledger policy, the remote endpoints and the item list. It is
parsed once per process into frozen dataclasses; per-track values (track,
release version) are never written back into it and are instead passed
explicitly to builders and publishers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILENAME",
    "CatalogConfig",
    "ConfigError",
    "ItemDefinition",
    "ItemKind",
    "LedgerConfig",
    "ProjectConfig",
    "ReleaseConfig",
    "RetryConfig",
    "UploadConfig",
    "VariantConfig",
    "load_config",
]

CONFIG_FILENAME = "release.toml"

DEFAULT_CATALOG_URL = "https://api.modrinth.com/v2/tag/game_version"
DEFAULT_UPLOAD_URL = "https://api.modrinth.com/v2/version"
DEFAULT_SNAPSHOT_PATH = "state/{track}.json"
DEFAULT_TOKEN_ENV = "MODRINTH_PAT_TOKEN"

ItemKind = Literal["mod", "resourcepack"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when release.toml cannot be loaded or is invalid."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ItemDefinition:
    """A primary item and the fallbacks to try, in order, when it fails."""

    identifier: str
    category: str
    kind: ItemKind = "mod"
    alternatives: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class VariantConfig:
    """An artifact flavour built from a subset of the item list."""

    name: str
    changelog: str = ""
    exclude_categories: frozenset[str] = frozenset()

    def select(self, items: tuple[ItemDefinition, ...]) -> tuple[ItemDefinition, ...]:
        return tuple(i for i in items if i.category not in self.exclude_categories)


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    name: str = "Modpack"
    project_id: str | None = None
    loaders: tuple[str, ...] = ("fabric",)


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Where snapshots live and how tags are minted and pushed."""

    primary_branch: str = "main"
    remote: str = "origin"
    snapshot_path: str = DEFAULT_SNAPSHOT_PATH
    report_path: str | None = None
    push: bool = True
    # A track seen for the first time starts at the global maximum release
    # (incremented) so every track shares the same version number.
    align_new_tracks: bool = True
    # When False and no track changed, no tags are minted at all.
    tag_unchanged: bool = True

    def snapshot_path_for(self, track: str) -> str:
        return self.snapshot_path.format(track=track)

    def report_path_for(self, track: str) -> str | None:
        if self.report_path is None:
            return None
        return self.report_path.format(track=track)


@dataclass(frozen=True, slots=True)
class CatalogConfig:
    url: str = DEFAULT_CATALOG_URL
    availability_url: str | None = None


@dataclass(frozen=True, slots=True)
class UploadConfig:
    url: str = DEFAULT_UPLOAD_URL
    token_env: str = DEFAULT_TOKEN_ENV


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Exponential backoff policy for network calls.

    Attempt n (0-based) waits `initial_delay * 2**n` seconds before the next
    try; each attempt is bounded by `timeout`.
    """

    max_retries: int = 5
    initial_delay: float = 1.0
    timeout: float = 10.0


def _default_variants() -> tuple[VariantConfig, ...]:
    return (VariantConfig(name="full"),)


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Root configuration container."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    variants: tuple[VariantConfig, ...] = field(default_factory=_default_variants)
    items: tuple[ItemDefinition, ...] = ()
    snapshot_variant: str = "full"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ReleaseConfig:
        """Create a ReleaseConfig from parsed TOML.

        Raises:
            ValueError: On invalid items, variants or duplicate identifiers.
        """
        project: StrDict = get_table(data, "project") or {}
        ledger: StrDict = get_table(data, "ledger") or {}
        catalog: StrDict = get_table(data, "catalog") or {}
        upload: StrDict = get_table(data, "upload") or {}
        retry: StrDict = get_table(data, "retry") or {}

        variants = _parse_variants(get_list(data, "variants"))
        items = _parse_items(get_list(data, "items"))

        snapshot_variant = get_str(data, "snapshot_variant") or variants[-1].name
        if snapshot_variant not in {v.name for v in variants}:
            raise ValueError(f"snapshot_variant '{snapshot_variant}' is not a configured variant")

        max_retries = get_int(retry, "max_retries")
        initial_delay = get_float(retry, "initial_delay")
        timeout = get_float(retry, "timeout")
        push = get_bool(ledger, "push")
        align = get_bool(ledger, "align_new_tracks")
        tag_unchanged = get_bool(ledger, "tag_unchanged")

        return cls(
            project=ProjectConfig(
                name=get_str(project, "name") or "Modpack",
                project_id=get_str(project, "id"),
                loaders=tuple(get_str_list(project, "loaders") or ("fabric",)),
            ),
            ledger=LedgerConfig(
                primary_branch=get_str(ledger, "primary_branch") or "main",
                remote=get_str(ledger, "remote") or "origin",
                snapshot_path=get_str(ledger, "snapshot_path") or DEFAULT_SNAPSHOT_PATH,
                report_path=get_str(ledger, "report_path"),
                push=True if push is None else push,
                align_new_tracks=True if align is None else align,
                tag_unchanged=True if tag_unchanged is None else tag_unchanged,
            ),
            catalog=CatalogConfig(
                url=get_str(catalog, "url") or DEFAULT_CATALOG_URL,
                availability_url=get_str(catalog, "availability_url"),
            ),
            upload=UploadConfig(
                url=get_str(upload, "url") or DEFAULT_UPLOAD_URL,
                token_env=get_str(upload, "token_env") or DEFAULT_TOKEN_ENV,
            ),
            retry=RetryConfig(
                max_retries=5 if max_retries is None else max(0, max_retries),
                initial_delay=1.0 if initial_delay is None else max(0.0, initial_delay),
                timeout=10.0 if timeout is None else timeout,
            ),
            variants=variants,
            items=items,
            snapshot_variant=snapshot_variant,
        )


def _parse_variants(raw: list[object] | None) -> tuple[VariantConfig, ...]:
    if not raw:
        return _default_variants()

    out: list[VariantConfig] = []
    for entry in raw:
        table = as_str_dict(entry)
        if table is None:
            raise ValueError("each [[variants]] entry must be a table")
        name = get_str(table, "name")
        if name is None:
            raise ValueError("variant is missing 'name'")
        if any(v.name == name for v in out):
            raise ValueError(f"duplicate variant: {name}")
        out.append(
            VariantConfig(
                name=name,
                changelog=get_str(table, "changelog") or "",
                exclude_categories=frozenset(get_str_list(table, "exclude_categories") or ()),
            )
        )
    return tuple(out)


def _parse_items(raw: list[object] | None) -> tuple[ItemDefinition, ...]:
    if not raw:
        return ()

    out: list[ItemDefinition] = []
    seen: set[str] = set()
    duplicates: list[str] = []
    for entry in raw:
        table = as_str_dict(entry)
        if table is None:
            raise ValueError("each [[items]] entry must be a table")

        identifier = get_str(table, "identifier")
        if identifier is None:
            raise ValueError("item is missing 'identifier'")

        kind_raw = get_str(table, "kind") or "mod"
        if kind_raw not in ("mod", "resourcepack"):
            raise ValueError(f"invalid kind for {identifier}: {kind_raw}")
        kind: ItemKind = "mod" if kind_raw == "mod" else "resourcepack"

        category = get_str(table, "category")
        if category is None:
            if kind != "resourcepack":
                raise ValueError(f"item '{identifier}' is missing 'category'")
            category = "resourcepack"

        alternatives = get_str_list(table, "alternatives")
        if alternatives is None and "alternatives" in table:
            raise ValueError(f"invalid alternatives for {identifier}")

        if identifier in seen:
            duplicates.append(identifier)
        seen.add(identifier)

        out.append(
            ItemDefinition(
                identifier=identifier,
                category=category,
                kind=kind,
                alternatives=tuple(alternatives or ()),
            )
        )

    if duplicates:
        raise ValueError(f"duplicate item identifiers: {', '.join(duplicates)}")
    return tuple(out)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load and validate release.toml.

    Args:
        path: Path to the config file

    Returns:
        Ok(ReleaseConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(ReleaseConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
