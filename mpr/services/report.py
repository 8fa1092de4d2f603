"""Markdown item list for a track, written next to its snapshot.

Items are grouped by category in configuration order; installed items
(directly or through a fallback) are checked, failed ones are not.
"""

from __future__ import annotations

from mpr.core.config import ItemDefinition
from mpr.release.snapshot import InstallationSnapshot

__all__ = ["item_url", "render_report"]


def item_url(item: ItemDefinition) -> str:
    return f"https://modrinth.com/{item.kind}/{item.identifier}"


def render_report(
    items: tuple[ItemDefinition, ...],
    snapshot: InstallationSnapshot,
    *,
    track: str | None = None,
) -> str:
    fallbacks = {i.identifier: i.installed_alternative for i in snapshot.alternative_installed}
    installed = snapshot.installed_identifiers()
    known = installed | {i.identifier for i in snapshot.failed}

    by_category: dict[str, list[ItemDefinition]] = {}
    for item in items:
        if item.identifier in known:
            by_category.setdefault(item.category, []).append(item)

    lines: list[str] = []
    if track is not None:
        lines += [f"## Item list for {track}", ""]
    for category, members in by_category.items():
        lines += [f"### {category[:1].upper()}{category[1:]}", ""]
        for item in members:
            checkbox = "[x]" if item.identifier in installed else "[ ]"
            line = f"- {checkbox} [{item.identifier}]({item_url(item)})"
            if item.identifier in fallbacks:
                line += f" (via {fallbacks[item.identifier]})"
            lines.append(line)
        lines.append("")
    return "\n".join(lines).rstrip("\n") + "\n"
