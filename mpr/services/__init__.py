"""Adapters to the external tools the orchestrator drives.

- installer: packwiz builds (`PackwizBuilder` implements `TrackBuilder`)
- upload: artifact uploads (`UploadPublisher` implements `Publisher`)
- report: markdown item list per track
"""

from mpr.services.installer import PackwizBuilder, PackwizInstaller
from mpr.services.upload import UploadPublisher

__all__ = [
    "PackwizBuilder",
    "PackwizInstaller",
    "UploadPublisher",
]
