"""Smoke tests for schema validation.

These tests verify that:
1. All schemas can be imported
2. Basic instantiation works
3. Field validation catches obvious errors
4. Discriminated unions work correctly
"""

import pytest
from pydantic import ValidationError

from substreams_domain.schemas import (
    # Base
    DomainModel,
    UpdatePolicy,
    InputMode,
    # Modules
    Code,
    Module,
    SourceInput,
    StoreInput,
    MapInput,
    # Transform message
    KindMap,
    KindStore,
    TransformModule,
    # Statistics
    BlockRange,
    StoreFileInfo,
    StoreStats,
    # Configuration
    StoreStatsCFG,
    StatsReportCFG,
)


class TestBasicInstantiation:
    """Test that basic schema instantiation works."""

    def test_map_module(self):
        """Test creating a map module reading a source."""
        module = Module(
            name="map_transfers",
            kind="map",
            output_type="proto:erc20.v1.Transfers",
            inputs=[SourceInput(source="sf.ethereum.type.v2.Block")],
        )
        assert module.is_map
        assert module.update_policy is None
        assert module.dependencies() == []

    def test_store_module(self):
        """Test creating a store module with an enum policy."""
        module = Module(
            name="store_balances",
            kind="store",
            update_policy=UpdatePolicy.SUM,
            value_type="bigint",
            inputs=[MapInput(map="map_transfers")],
        )
        assert module.is_store
        assert module.update_policy == "sum"
        assert module.dependencies() == ["map_transfers"]

    def test_code_identity(self):
        assert Code(file="./erc20.wasm").identity == "./erc20.wasm"
        assert Code(native="transfers").identity == "transfers"
        assert Code().identity == ""

    def test_enum_str(self):
        assert str(UpdatePolicy.SUM) == "sum"
        assert str(InputMode.DELTAS) == "deltas"

    def test_default_configs(self):
        assert StoreStatsCFG().max_workers is None
        assert StoreStatsCFG().timeout_seconds is None
        assert StatsReportCFG().include_graph_sheet is True


class TestFieldValidation:
    """Test that field validation catches errors."""

    def test_negative_initial_block(self):
        with pytest.raises(ValidationError):
            Module(name="map_a", kind="map", output_type="x", initial_block=-1)

    def test_assignment_is_validated(self):
        """DomainModel validates on assignment."""
        module = Module(name="map_a", kind="map", output_type="x")
        with pytest.raises(ValidationError):
            module.initial_block = -5

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            Module(name="map_a", kind="reduce")

    def test_invalid_store_reference(self):
        with pytest.raises(ValidationError):
            StoreInput(store="not-a-name")

    def test_invalid_mode(self):
        with pytest.raises(ValidationError):
            StoreInput(store="store_a", mode="latest")

    def test_zero_workers(self):
        with pytest.raises(ValidationError):
            StoreStatsCFG(max_workers=0)

    def test_zero_timeout(self):
        with pytest.raises(ValidationError):
            StoreStatsCFG(timeout_seconds=0)

    def test_sheet_name_too_long(self):
        """Excel limits sheet names to 31 characters."""
        with pytest.raises(ValidationError):
            StatsReportCFG(stats_sheet_name="x" * 32)

    def test_negative_count(self):
        with pytest.raises(ValidationError):
            StoreStats(module_name="store_a", module_hash="ab", count=-1)


class TestDiscriminatedUnions:
    """Test that inputs and kinds resolve to the right variant."""

    def test_inputs_from_dicts(self):
        module = Module(
            name="map_a",
            kind="map",
            output_type="x",
            inputs=[
                {"input_type": "source", "source": "sf.ethereum.type.v2.Block"},
                {"input_type": "store", "store": "store_b"},
                {"input_type": "map", "map": "map_c"},
            ],
        )
        source, store, map_input = module.inputs
        assert isinstance(source, SourceInput)
        assert isinstance(store, StoreInput)
        assert store.mode == "get"
        assert isinstance(map_input, MapInput)

    def test_unknown_input_type(self):
        with pytest.raises(ValidationError):
            Module(name="map_a", kind="map", output_type="x", inputs=[{"input_type": "table", "table": "t"}])

    def test_transform_kinds(self):
        module = TransformModule(
            name="store_a",
            code_index=0,
            code_entrypoint="build_state",
            kind={"kind_type": "store", "update_policy": "max", "value_type": "int64"},
        )
        assert isinstance(module.kind, KindStore)

        module.kind = {"kind_type": "map", "output_type": "proto:x"}
        assert isinstance(module.kind, KindMap)


class TestSerialization:
    """Test report key names."""

    def test_file_info_alias(self):
        info = StoreFileInfo(
            file_name="0000001000-0000000000.kv",
            size_bytes=10,
            block_range=BlockRange(start_block=0, exclusive_end_block=1000),
        )
        dumped = info.model_dump(by_alias=True)
        assert dumped["name"] == "0000001000-0000000000.kv"
        assert "file_name" not in dumped

    def test_empty_store_report(self):
        report = StoreStats(module_name="store_a", module_hash="ab").to_report()
        assert report == {
            "module_name": "store_a",
            "module_hash": "ab",
            "module_initial_block": 0,
            "module_value_type": "",
            "module_update_policy": "",
            "count": 0,
        }

    def test_domain_model_base(self):
        assert issubclass(StoreStats, DomainModel)
        assert issubclass(Module, DomainModel)
