"""Release domain: versions, tags, snapshots, change detection and the
two-phase orchestrator.

Import concrete modules directly (`mpr.release.orchestrator`, ...); this
package keeps no re-exports so the ledger can depend on `tags` and `version`
without pulling in the orchestrator.
"""

from __future__ import annotations
