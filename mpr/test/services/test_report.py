from __future__ import annotations

from mpr.core.config import ItemDefinition
from mpr.release.snapshot import (
    AlternativeInstalledItem,
    FailedItem,
    InstallationSnapshot,
    SuccessfulItem,
)
from mpr.services.report import item_url, render_report

ITEMS = (
    ItemDefinition("sodium", "optimization"),
    ItemDefinition("iris", "visual", alternatives=("oculus",)),
    ItemDefinition("lithium", "optimization"),
    ItemDefinition("xaero", "useful"),
    ItemDefinition("fresh-animations", "resourcepack", kind="resourcepack"),
    ItemDefinition("not-built", "useful"),
)

SNAPSHOT = InstallationSnapshot.create(
    successful=[
        SuccessfulItem("sodium", "optimization"),
        SuccessfulItem("lithium", "optimization"),
        SuccessfulItem("fresh-animations", "resourcepack"),
    ],
    failed=[FailedItem("xaero", "useful")],
    alternative_installed=[AlternativeInstalledItem("iris", "visual", "oculus")],
)


def test_item_url() -> None:
    assert item_url(ITEMS[0]) == "https://modrinth.com/mod/sodium"
    assert item_url(ITEMS[4]) == "https://modrinth.com/resourcepack/fresh-animations"


def test_render_report() -> None:
    assert render_report(ITEMS, SNAPSHOT, track="1.21.10") == (
        "## Item list for 1.21.10\n"
        "\n"
        "### Optimization\n"
        "\n"
        "- [x] [sodium](https://modrinth.com/mod/sodium)\n"
        "- [x] [lithium](https://modrinth.com/mod/lithium)\n"
        "\n"
        "### Visual\n"
        "\n"
        "- [x] [iris](https://modrinth.com/mod/iris) (via oculus)\n"
        "\n"
        "### Useful\n"
        "\n"
        "- [ ] [xaero](https://modrinth.com/mod/xaero)\n"
        "\n"
        "### Resourcepack\n"
        "\n"
        "- [x] [fresh-animations](https://modrinth.com/resourcepack/fresh-animations)\n"
    )


def test_render_report_without_header() -> None:
    snapshot = InstallationSnapshot.create(successful=[SuccessfulItem("sodium", "optimization")])
    assert render_report(ITEMS, snapshot) == (
        "### Optimization\n\n- [x] [sodium](https://modrinth.com/mod/sodium)\n"
    )


def test_render_report_is_deterministic() -> None:
    assert render_report(ITEMS, SNAPSHOT) == render_report(ITEMS, SNAPSHOT)
