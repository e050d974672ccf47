"""Tests for store statistics.

Tests cover:
- Size distribution (count, total, largest, mean, population std dev)
- Collector: map modules skipped, empty stores kept with identity only,
  failing stores left out, results in topological order
- Cancellation and deadline handling
- DataFrame and JSON output
"""

import json
import math
import threading
import time

import pytest

from substreams_domain.cancellation import CancellationToken, TaskCancelled
from substreams_domain.errors import LoadFailureError
from substreams_domain.graph import ModuleGraph, ModuleHashes
from substreams_domain.schemas import (
    Code,
    MapInput,
    Module,
    SourceInput,
    StoreStatsCFG,
)
from substreams_domain.store import (
    STATS_COLUMNS,
    InMemoryKeyValueView,
    InMemoryStoreBackend,
    SnapshotFile,
    StoreConfig,
    StoreStatsCollector,
    calculate_store_stats,
    collect_store_stats,
    initialize_store_stats,
    stats_to_frame,
    stats_to_json,
)


# Key sizes 3, 5, 7; value sizes 10, 30, 20
ENTRIES = {
    "aaa": b"x" * 10,
    "bbbbb": b"x" * 30,
    "ccccccc": b"x" * 20,
}


def map_module(name):
    return Module(
        name=name,
        kind="map",
        output_type="proto:erc20.v1.Transfers",
        code=Code(file="./erc20.wasm", content=b"\x00asm", entrypoint="map"),
        inputs=[SourceInput(source="sf.ethereum.type.v2.Block")],
    )


def store_module(name, policy="sum", value_type="bigint", content=b"\x00asm"):
    return Module(
        name=name,
        kind="store",
        update_policy=policy,
        value_type=value_type,
        initial_block=100,
        code=Code(file="./erc20.wasm", content=content, entrypoint=f"store_{name}"),
        inputs=[MapInput(map="map_transfers")],
    )


def build_graph(*store_names):
    """map_transfers feeding every named store; stores declared first."""
    return ModuleGraph([store_module(name) for name in store_names] + [map_module("map_transfers")])


def namespace(graph, name):
    return f"{ModuleHashes(graph).hash_hex(name)}/states"


def snapshot(end_block=1000, filename=None, partial=False):
    return SnapshotFile(
        start_block=100,
        end_block=end_block,
        filename=filename or f"{end_block:010d}-0000000100.kv",
        partial=partial,
    )


def empty_stats(name="store_balances"):
    return initialize_store_stats(StoreConfig(
        name=name,
        module_hash="ab" * 20,
        initial_block=100,
        update_policy="sum",
        value_type="bigint",
    ))


class ScriptedBackend(InMemoryStoreBackend):
    """In-memory backend whose open() can be overridden per namespace."""

    def __init__(self, views=None, failures=None):
        super().__init__()
        self.views = views or {}
        self.failures = failures or {}

    def open(self, namespace, file):
        if namespace in self.failures:
            raise self.failures[namespace]
        if namespace in self.views:
            return self.views[namespace]
        return super().open(namespace, file)


class BlockingListBackend(InMemoryStoreBackend):
    """Backend whose list_files() hangs for the given namespaces until released."""

    def __init__(self, blocked=(), max_block_seconds=3.0):
        super().__init__()
        self.blocked = set(blocked)
        self.max_block_seconds = max_block_seconds
        self.release = threading.Event()

    def list_files(self, namespace):
        if namespace in self.blocked:
            self.release.wait(self.max_block_seconds)
        return super().list_files(namespace)


class SlowView:
    """View visiting one entry every `delay` seconds."""

    def __init__(self, entries=200, delay=0.05):
        self.entries = entries
        self.delay = delay

    def iterate(self, visit):
        for i in range(self.entries):
            time.sleep(self.delay)
            visit(f"key{i}", b"value")


class BrokenView:
    def iterate(self, visit):
        visit("a", b"1")
        raise OSError("truncated file")


# =============================================================================
# Size Distribution
# =============================================================================

def test_key_and_value_sizes():
    stats = calculate_store_stats(InMemoryKeyValueView(ENTRIES), empty_stats())

    assert stats.count == 3

    assert stats.key_stats.total_size_bytes == 15
    assert stats.key_stats.largest_size_bytes == 7
    assert stats.key_stats.largest == "ccccccc"
    assert stats.key_stats.average_size_bytes == pytest.approx(5.0)
    assert stats.key_stats.std_dev_size_bytes == pytest.approx(math.sqrt(8 / 3))

    assert stats.value_stats.total_size_bytes == 60
    assert stats.value_stats.largest_size_bytes == 30
    assert stats.value_stats.largest_value_key == "bbbbb"
    assert stats.value_stats.average_size_bytes == pytest.approx(20.0)
    assert stats.value_stats.std_dev_size_bytes == pytest.approx(math.sqrt(200 / 3))


def test_single_entry_has_zero_std_dev():
    stats = calculate_store_stats(InMemoryKeyValueView({"k": b"v"}), empty_stats())

    assert stats.count == 1
    assert stats.key_stats.std_dev_size_bytes == 0.0
    assert stats.value_stats.std_dev_size_bytes == 0.0


def test_key_size_is_utf8_length():
    stats = calculate_store_stats(InMemoryKeyValueView({"é": b""}), empty_stats())

    assert stats.key_stats.total_size_bytes == 2


def test_empty_view_has_no_sections():
    stats = calculate_store_stats(InMemoryKeyValueView({}), empty_stats())

    assert stats.count == 0
    assert stats.key_stats is None
    assert stats.value_stats is None


def test_iteration_failure():
    with pytest.raises(LoadFailureError, match="truncated file"):
        calculate_store_stats(BrokenView(), empty_stats())


def test_cancelled_iteration():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(TaskCancelled):
        calculate_store_stats(InMemoryKeyValueView(ENTRIES), empty_stats(), token)


def test_initialize_keeps_identity():
    stats = empty_stats()

    assert stats.module_name == "store_balances"
    assert stats.module_initial_block == 100
    assert stats.module_update_policy == "sum"
    assert stats.module_value_type == "bigint"
    assert stats.count == 0
    assert stats.is_empty


# =============================================================================
# Collector
# =============================================================================

def test_collect_store():
    graph = build_graph("store_balances")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(), ENTRIES)

    [stats] = StoreStatsCollector(backend).collect_all(graph)

    assert stats.module_name == "store_balances"
    assert stats.module_hash == ModuleHashes(graph).hash_hex("store_balances")
    assert stats.module_initial_block == 100
    assert stats.count == 3
    assert stats.file_info.file_name == "0000001000-0000000100.kv"
    assert stats.file_info.block_range.start_block == 100
    assert stats.file_info.block_range.exclusive_end_block == 1000
    assert stats.file_info.size_bytes == 75


def test_map_modules_are_skipped():
    graph = build_graph()

    assert StoreStatsCollector(InMemoryStoreBackend()).collect_all(graph) == []


def test_empty_store_keeps_identity():
    graph = build_graph("store_balances")

    [stats] = StoreStatsCollector(InMemoryStoreBackend()).collect_all(graph)

    assert stats.module_name == "store_balances"
    assert stats.count == 0
    assert stats.file_info is None
    assert stats.key_stats is None
    assert stats.value_stats is None


def test_only_partial_files_is_empty_store():
    graph = build_graph("store_balances")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(partial=True), ENTRIES)

    [stats] = StoreStatsCollector(backend).collect_all(graph)

    assert stats.is_empty


def test_failing_store_is_left_out():
    graph = build_graph("store_balances", "store_counts")
    balances_ns = namespace(graph, "store_balances")
    counts_ns = namespace(graph, "store_counts")
    backend = ScriptedBackend(failures={counts_ns: OSError("disk error")})
    backend.add_snapshot(balances_ns, snapshot(), ENTRIES)
    backend.add_snapshot(counts_ns, snapshot(), ENTRIES)

    results = StoreStatsCollector(backend).collect_all(graph)

    assert [stats.module_name for stats in results] == ["store_balances"]


def test_unexpected_task_error_is_left_out():
    graph = build_graph("store_balances", "store_counts")
    balances_ns = namespace(graph, "store_balances")
    counts_ns = namespace(graph, "store_counts")
    backend = ScriptedBackend(failures={balances_ns: RuntimeError("boom")})
    backend.add_snapshot(balances_ns, snapshot(), ENTRIES)
    backend.add_snapshot(counts_ns, snapshot(), ENTRIES)

    results = StoreStatsCollector(backend).collect_all(graph)

    assert [stats.module_name for stats in results] == ["store_counts"]


def test_results_in_topological_order():
    """Slow first store still comes first in the output."""
    graph = build_graph("store_a", "store_b", "store_c")
    backend = ScriptedBackend(views={namespace(graph, "store_a"): SlowView(entries=3, delay=0.05)})
    for name in ("store_a", "store_b", "store_c"):
        backend.add_snapshot(namespace(graph, name), snapshot(), ENTRIES)

    results = StoreStatsCollector(backend).collect_all(graph)

    assert [stats.module_name for stats in results] == ["store_a", "store_b", "store_c"]
    assert [stats.count for stats in results] == [3, 3, 3]


def test_bounded_workers():
    graph = build_graph("store_a", "store_b", "store_c")
    backend = InMemoryStoreBackend()
    for name in ("store_a", "store_b", "store_c"):
        backend.add_snapshot(namespace(graph, name), snapshot(), ENTRIES)

    results = StoreStatsCollector(backend, StoreStatsCFG(max_workers=1)).collect_all(graph)

    assert [stats.module_name for stats in results] == ["store_a", "store_b", "store_c"]


def test_precancelled_token_collects_nothing():
    graph = build_graph("store_balances")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(), ENTRIES)
    token = CancellationToken()
    token.cancel()

    assert StoreStatsCollector(backend).collect_all(graph, cancellation_token=token) == []


def test_cancel_during_blocked_listing_ends_join():
    """Cancelling from another thread returns without waiting on the hung backend."""
    graph = build_graph("store_fast", "store_hung")
    backend = BlockingListBackend(blocked={namespace(graph, "store_hung")})
    backend.add_snapshot(namespace(graph, "store_fast"), snapshot(), ENTRIES)
    token = CancellationToken()
    timer = threading.Timer(0.2, token.cancel)

    start = time.monotonic()
    timer.start()
    try:
        results = StoreStatsCollector(backend).collect_all(graph, cancellation_token=token)
    finally:
        timer.cancel()
        backend.release.set()
    elapsed = time.monotonic() - start

    assert elapsed < 1.0
    assert [stats.module_name for stats in results] == ["store_fast"]


def test_deadline_during_blocked_listing_ends_join():
    graph = build_graph("store_hung")
    backend = BlockingListBackend(blocked={namespace(graph, "store_hung")})
    token = CancellationToken()

    start = time.monotonic()
    try:
        results = StoreStatsCollector(backend, StoreStatsCFG(timeout_seconds=0.2)).collect_all(
            graph, cancellation_token=token,
        )
    finally:
        backend.release.set()

    assert time.monotonic() - start < 1.0
    assert results == []
    assert token.is_cancelled()


def test_deadline_leaves_out_slow_store():
    graph = build_graph("store_fast", "store_slow")
    slow_ns = namespace(graph, "store_slow")
    backend = ScriptedBackend(views={slow_ns: SlowView(entries=200, delay=0.05)})
    backend.add_snapshot(namespace(graph, "store_fast"), snapshot(), ENTRIES)
    backend.add_snapshot(slow_ns, snapshot(), {})
    token = CancellationToken()

    start = time.monotonic()
    results = StoreStatsCollector(backend, StoreStatsCFG(timeout_seconds=0.5)).collect_all(
        graph, cancellation_token=token,
    )

    assert time.monotonic() - start < 5
    assert [stats.module_name for stats in results] == ["store_fast"]
    assert token.is_cancelled()


def test_collect_store_stats_helper():
    graph = build_graph("store_balances")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(), ENTRIES)

    [stats] = collect_store_stats(graph, backend)

    assert stats.count == 3


def test_code_change_moves_namespace():
    """A store whose code changed reads from a fresh namespace."""
    graph = build_graph("store_balances")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(), ENTRIES)

    changed = ModuleGraph([store_module("store_balances", content=b"\x00asm-v2"), map_module("map_transfers")])
    [stats] = StoreStatsCollector(backend).collect_all(changed)

    assert stats.is_empty


# =============================================================================
# Output
# =============================================================================

def collected_stats():
    graph = build_graph("store_balances", "store_counts")
    backend = InMemoryStoreBackend()
    backend.add_snapshot(namespace(graph, "store_balances"), snapshot(), ENTRIES)
    return StoreStatsCollector(backend).collect_all(graph)


def test_stats_to_json_report_keys():
    report = json.loads(stats_to_json(collected_stats()))

    balances, counts = report
    assert balances["module_name"] == "store_balances"
    assert balances["module_update_policy"] == "sum"
    assert balances["module_value_type"] == "bigint"
    assert balances["count"] == 3
    assert balances["file_info"]["name"] == "0000001000-0000000100.kv"
    assert balances["file_info"]["block_range"] == {"start_block": 100, "exclusive_end_block": 1000}
    assert balances["keys"]["total_size_bytes"] == 15
    assert balances["keys"]["largest"] == "ccccccc"
    assert balances["values"]["largest_value_key"] == "bbbbb"


def test_stats_to_json_omits_absent_sections():
    _, counts = json.loads(stats_to_json(collected_stats()))

    assert counts["module_name"] == "store_counts"
    assert counts["count"] == 0
    assert "file_info" not in counts
    assert "keys" not in counts
    assert "values" not in counts


def test_stats_to_json_empty_list():
    assert json.loads(stats_to_json([])) == []


def test_stats_to_json_matches_record_reports():
    stats = collected_stats()
    text = stats_to_json(stats)

    assert isinstance(text, str)
    assert text.startswith("[\n  {")
    assert json.loads(text) == [record.to_report() for record in stats]


def test_stats_to_frame():
    frame = stats_to_frame(collected_stats())

    assert list(frame.columns) == STATS_COLUMNS
    assert list(frame["module_name"]) == ["store_balances", "store_counts"]
    assert frame.loc[0, "keys_total_size_bytes"] == 15
    assert frame.loc[0, "largest_value_key"] == "bbbbb"
    assert frame.loc[0, "values_std_dev_size_bytes"] == pytest.approx(math.sqrt(200 / 3))
    assert frame["file_name"].isna().tolist() == [False, True]


def test_stats_to_frame_empty():
    frame = stats_to_frame([])

    assert frame.empty
    assert list(frame.columns) == STATS_COLUMNS
