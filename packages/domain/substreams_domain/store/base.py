"""Storage backend contract for persisted store state.

The key/value store implementation lives outside this package. What the
statistics code needs from it is captured by two protocols:

- StoreBackend: lists the snapshot files of a namespace and opens one
- KeyValueView: the loaded key/value state of one snapshot

A namespace is derived from a StoreConfig. Since it is keyed by the module
signature, any change to a module or its dependencies points at a fresh
namespace and stale state is never read.
"""

from dataclasses import dataclass
from typing import Callable, List, Protocol

from pydantic import Field

from ..schemas.base import DomainModel, BlockNumber, UpdatePolicy, ValueType


@dataclass(frozen=True)
class SnapshotFile:
    """Metadata about one persisted store file.

    Attributes:
        start_block: First block covered
        end_block: Block the snapshot state is valid at (exclusive end)
        filename: File name within the namespace
        size: Size in bytes
        partial: True for incomplete ranges still being written
    """

    start_block: int
    end_block: int
    filename: str
    size: int = 0
    partial: bool = False


class KeyValueView(Protocol):
    """Loaded key/value state of one snapshot."""

    def iterate(self, visit: Callable[[str, bytes], None]) -> None:
        """Call `visit(key, value)` once per entry; exceptions from visit propagate."""
        ...


class StoreBackend(Protocol):
    """Read access to persisted store files."""

    def list_files(self, namespace: str) -> List[SnapshotFile]:
        ...

    def open(self, namespace: str, file: SnapshotFile) -> KeyValueView:
        ...


class StoreConfig(DomainModel):
    """Identity of a store's persisted state.

    Example:
        StoreConfig(
            name="store_balances",
            module_hash=hashes.hash_hex("store_balances"),
            initial_block=12287507,
            update_policy="sum",
            value_type="bigint",
        ).namespace
        → "5f1c0b3e.../states"
    """

    name: str

    module_hash: str = Field(min_length=1, description="Hex module signature")

    initial_block: BlockNumber = 0

    update_policy: UpdatePolicy

    value_type: ValueType

    @property
    def namespace(self) -> str:
        return f"{self.module_hash}/states"
