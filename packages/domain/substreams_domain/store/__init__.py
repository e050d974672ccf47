"""Store snapshot access and statistics.

Architecture:
    ModuleGraph → ModuleHashes → StoreConfig (namespace) → select_latest → StoreStats

Usage:
    from substreams_domain.store import StoreStatsCollector, stats_to_json

    collector = StoreStatsCollector(backend)
    print(stats_to_json(collector.collect_all(manifest.graph)))
"""

from .base import KeyValueView, SnapshotFile, StoreBackend, StoreConfig
from .memory import InMemoryKeyValueView, InMemoryStoreBackend
from .selector import latest_complete_file, select_latest
from .stats import (
    STATS_COLUMNS,
    StoreStatsCollector,
    calculate_store_stats,
    collect_store_stats,
    initialize_store_stats,
    stats_to_frame,
    stats_to_json,
)

__all__ = [
    "KeyValueView",
    "SnapshotFile",
    "StoreBackend",
    "StoreConfig",
    "InMemoryKeyValueView",
    "InMemoryStoreBackend",
    "latest_complete_file",
    "select_latest",
    "STATS_COLUMNS",
    "StoreStatsCollector",
    "calculate_store_stats",
    "collect_store_stats",
    "initialize_store_stats",
    "stats_to_frame",
    "stats_to_json",
]
