"""
Holder Scan package initializer.

This package exposes the analysis runs for external usage.  Lower-level
pieces (scheduler, enumerator, classifier, data sources) should be
imported explicitly from their respective modules.
"""

from .data_sources._clients import open_clients  # noqa: F401
from .scan_service import (  # noqa: F401
    analyze_bundles,
    analyze_early_buyers,
    analyze_fresh_wallets,
    analyze_team_supply,
    scan_top_holders,
)

__all__ = [
    "open_clients",
    "analyze_team_supply",
    "analyze_fresh_wallets",
    "analyze_bundles",
    "analyze_early_buyers",
    "scan_top_holders",
]
