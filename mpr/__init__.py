"""Release ledger and publisher for multi-track modpacks."""

__version__ = "0.1.0"
