"""In-memory StoreBackend.

Holds snapshot files and their entries in dictionaries. Useful for tests
and for tools that assemble store state without touching disk.
"""

import threading
from typing import Callable, Dict, List, Mapping, Tuple

from .base import SnapshotFile


class InMemoryKeyValueView:
    """Key/value state of one in-memory snapshot."""

    def __init__(self, entries: Mapping[str, bytes]):
        self._entries = dict(entries)

    def iterate(self, visit: Callable[[str, bytes], None]) -> None:
        for key in sorted(self._entries):
            visit(key, self._entries[key])

    def __len__(self) -> int:
        return len(self._entries)


class InMemoryStoreBackend:
    """StoreBackend keeping snapshot files in memory.

    Example:
        backend = InMemoryStoreBackend()
        backend.add_snapshot(
            config.namespace,
            SnapshotFile(start_block=0, end_block=1000, filename="0000001000-0000000000.kv"),
            {"balance:alice": b"100"},
        )
    """

    def __init__(self) -> None:
        self._files: Dict[str, List[SnapshotFile]] = {}
        self._entries: Dict[Tuple[str, str], Dict[str, bytes]] = {}
        self._lock = threading.Lock()

    def add_snapshot(
        self,
        namespace: str,
        file: SnapshotFile,
        entries: Mapping[str, bytes],
    ) -> SnapshotFile:
        """Register a snapshot file and its entries.

        When `file.size` is 0 it is replaced by the summed key and value sizes.
        """
        if file.size == 0:
            size = sum(len(key.encode()) + len(value) for key, value in entries.items())
            file = SnapshotFile(
                start_block=file.start_block,
                end_block=file.end_block,
                filename=file.filename,
                size=size,
                partial=file.partial,
            )
        with self._lock:
            self._files.setdefault(namespace, []).append(file)
            self._entries[(namespace, file.filename)] = dict(entries)
        return file

    def list_files(self, namespace: str) -> List[SnapshotFile]:
        with self._lock:
            return list(self._files.get(namespace, []))

    def open(self, namespace: str, file: SnapshotFile) -> InMemoryKeyValueView:
        with self._lock:
            entries = self._entries.get((namespace, file.filename))
        if entries is None:
            raise FileNotFoundError(f"{namespace}/{file.filename}")
        return InMemoryKeyValueView(entries)
