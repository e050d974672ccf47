"""Store statistics report models.

One StoreStats record is produced per store module by the statistics
collector (see store/stats.py). Field names serialize to the keys of the
`store-stats` JSON report:

    {
      "module_name": "store_balances",
      "module_hash": "3f2a...",
      "module_initial_block": 12287507,
      "module_value_type": "bigint",
      "module_update_policy": "sum",
      "count": 3,
      "file_info": {"name": "...", "size_bytes": 123, "block_range": {...}},
      "keys": {"total_size_bytes": 15, "largest_size_bytes": 7, ...},
      "values": {"total_size_bytes": 60, "largest_size_bytes": 30, ...}
    }

Records for stores that were never materialized only carry the identity
fields and a zero count.
"""

from typing import Optional
from pydantic import Field

from .base import DomainModel, BlockNumber


class BlockRange(DomainModel):
    """Block range covered by a snapshot file (end exclusive)."""

    start_block: BlockNumber

    exclusive_end_block: BlockNumber


class StoreFileInfo(DomainModel):
    """Snapshot file a store's statistics were computed from."""

    file_name: str = Field(serialization_alias="name")

    size_bytes: int = Field(ge=0)

    block_range: BlockRange


class SizeStats(DomainModel):
    """Size distribution of keys or values, in bytes."""

    total_size_bytes: int = 0

    largest_size_bytes: int = 0

    average_size_bytes: float = 0.0

    std_dev_size_bytes: float = 0.0


class KeyStats(SizeStats):
    largest: str = Field(default="", description="Largest key")


class ValueStats(SizeStats):
    largest_value_key: str = Field(default="", description="Key holding the largest value")


class StoreStats(DomainModel):
    """Statistics of one store's latest complete snapshot."""

    module_name: str

    module_hash: str = Field(description="Hex module signature")

    module_initial_block: BlockNumber = 0

    module_value_type: str = ""

    module_update_policy: str = ""

    count: int = Field(default=0, ge=0, description="Number of keys")

    file_info: Optional[StoreFileInfo] = None

    key_stats: Optional[KeyStats] = Field(default=None, serialization_alias="keys")

    value_stats: Optional[ValueStats] = Field(default=None, serialization_alias="values")

    @property
    def is_empty(self) -> bool:
        """True when no snapshot was found for the store."""
        return self.file_info is None

    def to_report(self) -> dict:
        """JSON-ready dict using report key names, absent sections omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
