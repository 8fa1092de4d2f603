"""Git-backed release ledger.

Usage:
    from mpr.git import Ledger

    ledger = Ledger(Path("/path/to/pack"))
    latest = ledger.latest_tag("1.21.10")
"""

from mpr.git.ledger import Ledger

__all__ = ["Ledger"]
