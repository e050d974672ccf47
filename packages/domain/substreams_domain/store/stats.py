"""Store statistics collection.

For every store module of a graph, the collector:
1. Builds the store identity from the module signature and update policy
2. Selects the latest complete snapshot (see selector.py)
3. Iterates every key/value pair once, accumulating counts and sizes
4. Computes mean and population standard deviation of key and value sizes

Stores are read concurrently, one task per store module. The coordinator
waits in short slices, so a cancelled token or a passed deadline ends the
join even while a backend call is blocked. Results are put in topological
order after the join, so the output never depends on scheduling.

Failure handling is per store:
- EmptyStoreError: the record keeps only its identity fields
- any other failure: logged, and the store is left out of the results

Output DataFrames / documents:
- stats_to_frame(): one row per store with flattened key/value columns
- stats_to_json(): the `store-stats` JSON report
"""

import math
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Set, Tuple

import pandas as pd
from pydantic import TypeAdapter

from .base import KeyValueView, StoreBackend, StoreConfig
from .selector import select_latest
from ..cancellation import CancellationToken, TaskCancelled
from ..errors import EmptyStoreError, LoadFailureError, StorageError
from ..graph.base import ModuleGraph
from ..graph.signature import ModuleHashes
from ..logging import get_logger
from ..schemas.config import StoreStatsCFG
from ..schemas.modules import Module
from ..schemas.stats import BlockRange, KeyStats, StoreFileInfo, StoreStats, ValueStats

# Granularity of the join loop checking cancellation and the deadline
JOIN_POLL_SECONDS = 0.05


# =============================================================================
# Single Store
# =============================================================================

def initialize_store_stats(config: StoreConfig) -> StoreStats:
    """Statistics record holding only the store identity."""
    return StoreStats(
        module_name=config.name,
        module_hash=config.module_hash,
        module_initial_block=config.initial_block,
        module_value_type=config.value_type,
        module_update_policy=config.update_policy,
    )


def _std_dev(lengths: pd.Series, mean: float) -> float:
    """Population standard deviation against an already computed mean."""
    return math.sqrt(((lengths - mean) ** 2).mean())


def calculate_store_stats(
    view: KeyValueView,
    stats: StoreStats,
    cancellation_token: Optional[CancellationToken] = None,
) -> StoreStats:
    """Fill `stats` with the size distribution of every entry in `view`.

    Sizes are byte lengths (keys UTF-8 encoded). The largest value is
    reported by its key, not its content. Empty stores get no key/value
    sections.

    Args:
        view: Loaded snapshot
        stats: Record to fill (identity fields already set)
        cancellation_token: Checked between entries

    Returns:
        The same `stats` record

    Raises:
        LoadFailureError: If iterating the snapshot fails
        TaskCancelled: If the token is cancelled during iteration
    """
    key_stats = KeyStats()
    value_stats = ValueStats()
    key_lens: List[int] = []
    value_lens: List[int] = []

    def visit(key: str, value: bytes) -> None:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()

        key_len = len(key.encode("utf-8"))
        value_len = len(value)
        key_lens.append(key_len)
        value_lens.append(value_len)

        if key_len > key_stats.largest_size_bytes:
            key_stats.largest_size_bytes = key_len
            key_stats.largest = key

        if value_len > value_stats.largest_size_bytes:
            value_stats.largest_size_bytes = value_len
            value_stats.largest_value_key = key

    try:
        view.iterate(visit)
    except (OSError, ValueError) as exc:
        raise LoadFailureError(f"iterating store: {exc}", module=stats.module_name) from exc

    stats.count = len(key_lens)
    if stats.count == 0:
        stats.key_stats = None
        stats.value_stats = None
        return stats

    keys = pd.Series(key_lens, dtype="float64")
    values = pd.Series(value_lens, dtype="float64")

    key_stats.total_size_bytes = sum(key_lens)
    value_stats.total_size_bytes = sum(value_lens)

    key_stats.average_size_bytes = key_stats.total_size_bytes / stats.count
    value_stats.average_size_bytes = value_stats.total_size_bytes / stats.count

    key_stats.std_dev_size_bytes = _std_dev(keys, key_stats.average_size_bytes)
    value_stats.std_dev_size_bytes = _std_dev(values, value_stats.average_size_bytes)

    stats.key_stats = key_stats
    stats.value_stats = value_stats
    return stats


# =============================================================================
# Collector
# =============================================================================

class StoreStatsCollector:
    """Collects statistics for every store module of a graph.

    Example:
        collector = StoreStatsCollector(backend, StoreStatsCFG(timeout_seconds=60))
        stats = collector.collect_all(manifest.graph)
        print(stats_to_json(stats))
    """

    def __init__(
        self,
        backend: StoreBackend,
        config: Optional[StoreStatsCFG] = None,
        logger=None,
    ):
        """Initialize the collector.

        Args:
            backend: Storage backend holding the snapshot files
            config: Concurrency and deadline settings
            logger: structlog logger (default: module logger)
        """
        self.backend = backend
        self.config = config or StoreStatsCFG()
        self._log = logger or get_logger(__name__)

    def collect_all(
        self,
        graph: ModuleGraph,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[StoreStats]:
        """Collect statistics for all store modules, in topological order.

        Map modules are skipped. Stores that fail to load, or that are still
        running when the token is cancelled or the deadline passes, are left
        out.

        Args:
            graph: Validated module graph
            cancellation_token: Token the caller may cancel to abort the run

        Returns:
            One StoreStats per collected store
        """
        store_modules = graph.store_modules()
        if not store_modules:
            return []

        # Signatures are computed up front so tasks share no mutable state
        hashes = ModuleHashes(graph)
        module_hashes = {module.name: hashes.hash_hex(module) for module in store_modules}

        token = cancellation_token or CancellationToken()
        workers = len(store_modules)
        if self.config.max_workers is not None:
            workers = min(workers, self.config.max_workers)

        start = time.monotonic()
        results: List[StoreStats] = []
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="store-stats")
        pending = set()
        try:
            futures = {
                executor.submit(self.collect_module, module, module_hashes[module.name], token): module
                for module in store_modules
            }
            pending, reason = self._join(futures, token, start)

            if pending:
                token.cancel()
                for future in pending:
                    future.cancel()
                self._log.warning(
                    "store_stats.join_aborted",
                    reason=reason,
                    timeout_seconds=self.config.timeout_seconds,
                    pending=sorted(futures[future].name for future in pending),
                )

            done = [future for future in futures if future not in pending]
            for future in done:
                module = futures[future]
                try:
                    stats = future.result()
                except Exception:
                    self._log.exception("store_stats.module_failed", module=module.name)
                    continue
                if stats is not None:
                    results.append(stats)
        finally:
            executor.shutdown(wait=not pending, cancel_futures=True)

        results.sort(key=lambda stats: graph.position(stats.module_name))
        self._log.debug(
            "store_stats.finished",
            stores=len(store_modules),
            collected=len(results),
            duration=time.monotonic() - start,
        )
        return results

    def _join(
        self,
        futures: Dict[Future, Module],
        token: CancellationToken,
        start: float,
    ) -> Tuple[Set[Future], Optional[str]]:
        """Wait for the tasks until all finish, the token is cancelled or the deadline passes.

        Returns:
            (futures still pending, "cancelled" / "deadline" or None)
        """
        pending: Set[Future] = set(futures)
        deadline = None
        if self.config.timeout_seconds is not None:
            deadline = start + self.config.timeout_seconds

        while pending:
            if token.is_cancelled():
                return pending, "cancelled"

            poll = JOIN_POLL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return pending, "deadline"
                poll = min(poll, remaining)

            _, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)

        return pending, None

    def collect_module(
        self,
        module: Module,
        module_hash: str,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Optional[StoreStats]:
        """Collect statistics for one store module.

        Returns:
            StoreStats (identity only for empty stores), or None if the store
            could not be read or the task was cancelled
        """
        token = cancellation_token or CancellationToken()
        log = self._log.bind(module=module.name, module_hash=module_hash)
        start = time.monotonic()

        if token.is_cancelled():
            log.debug("store_stats.module_cancelled")
            return None

        config = StoreConfig(
            name=module.name,
            module_hash=module_hash,
            initial_block=module.initial_block,
            update_policy=module.update_policy,
            value_type=module.value_type,
        )
        stats = initialize_store_stats(config)

        try:
            view, file = select_latest(config, self.backend)
        except EmptyStoreError:
            log.debug("store_stats.empty_store")
            return stats
        except StorageError as exc:
            log.error("store_stats.load_failed", error=str(exc))
            return None

        stats.file_info = StoreFileInfo(
            file_name=file.filename,
            size_bytes=file.size,
            block_range=BlockRange(start_block=file.start_block, exclusive_end_block=file.end_block),
        )

        try:
            calculate_store_stats(view, stats, token)
        except TaskCancelled:
            log.debug("store_stats.module_cancelled")
            return None
        except StorageError as exc:
            log.error("store_stats.iteration_failed", error=str(exc))
            return None

        log.debug(
            "store_stats.module_finished",
            count=stats.count,
            duration=time.monotonic() - start,
        )
        return stats


def collect_store_stats(
    graph: ModuleGraph,
    backend: StoreBackend,
    config: Optional[StoreStatsCFG] = None,
    cancellation_token: Optional[CancellationToken] = None,
    logger=None,
) -> List[StoreStats]:
    """Collect statistics for all store modules of `graph` (see StoreStatsCollector)."""
    collector = StoreStatsCollector(backend, config=config, logger=logger)
    return collector.collect_all(graph, cancellation_token=cancellation_token)


# =============================================================================
# Output
# =============================================================================

STATS_COLUMNS = [
    "module_name",
    "module_hash",
    "module_initial_block",
    "module_update_policy",
    "module_value_type",
    "count",
    "file_name",
    "file_size_bytes",
    "start_block",
    "end_block",
    "keys_total_size_bytes",
    "keys_largest_size_bytes",
    "keys_average_size_bytes",
    "keys_std_dev_size_bytes",
    "largest_key",
    "values_total_size_bytes",
    "values_largest_size_bytes",
    "values_average_size_bytes",
    "values_std_dev_size_bytes",
    "largest_value_key",
]


def stats_to_frame(stats: List[StoreStats]) -> pd.DataFrame:
    """Flatten statistics records into one row per store.

    Columns of absent sections (empty stores) are None.
    """
    rows = []
    for record in stats:
        row = {
            "module_name": record.module_name,
            "module_hash": record.module_hash,
            "module_initial_block": record.module_initial_block,
            "module_update_policy": record.module_update_policy,
            "module_value_type": record.module_value_type,
            "count": record.count,
            "file_name": None,
            "file_size_bytes": None,
            "start_block": None,
            "end_block": None,
        }
        if record.file_info is not None:
            row["file_name"] = record.file_info.file_name
            row["file_size_bytes"] = record.file_info.size_bytes
            row["start_block"] = record.file_info.block_range.start_block
            row["end_block"] = record.file_info.block_range.exclusive_end_block

        for prefix, section in (("keys", record.key_stats), ("values", record.value_stats)):
            for field in ("total_size_bytes", "largest_size_bytes", "average_size_bytes", "std_dev_size_bytes"):
                row[f"{prefix}_{field}"] = getattr(section, field) if section is not None else None

        row["largest_key"] = record.key_stats.largest if record.key_stats is not None else None
        row["largest_value_key"] = (
            record.value_stats.largest_value_key if record.value_stats is not None else None
        )
        rows.append(row)

    return pd.DataFrame(rows, columns=STATS_COLUMNS)


_STATS_LIST = TypeAdapter(List[StoreStats])


def stats_to_json(stats: List[StoreStats]) -> str:
    """Render the `store-stats` JSON report (indent 2, absent sections omitted)."""
    return _STATS_LIST.dump_json(stats, indent=2, by_alias=True, exclude_none=True).decode("utf-8")
