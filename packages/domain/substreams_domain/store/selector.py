"""Snapshot selection - picks the authoritative file of a store.

A store namespace may hold several snapshot files covering overlapping
ranges, plus partial files still being written. The authoritative state is
the complete file reaching the highest block.
"""

from typing import List, Tuple

from .base import KeyValueView, SnapshotFile, StoreBackend, StoreConfig
from ..errors import EmptyStoreError, ListingError, LoadFailureError


def latest_complete_file(files: List[SnapshotFile]) -> SnapshotFile:
    """Complete file with the greatest end block; ties go to the greatest filename.

    Raises:
        EmptyStoreError: If no complete file is present
    """
    complete = [file for file in files if not file.partial]
    if not complete:
        raise EmptyStoreError("store has no complete snapshot file")
    return max(complete, key=lambda file: (file.end_block, file.filename))


def select_latest(config: StoreConfig, backend: StoreBackend) -> Tuple[KeyValueView, SnapshotFile]:
    """Open the latest complete snapshot of a store.

    Args:
        config: Store identity (its namespace is keyed by module hash)
        backend: Storage backend to read from

    Returns:
        (loaded key/value view, selected file)

    Raises:
        ListingError: If the namespace cannot be listed
        EmptyStoreError: If there are no files, or only partial ones
        LoadFailureError: If the selected file cannot be read
    """
    try:
        files = backend.list_files(config.namespace)
    except OSError as exc:
        raise ListingError(f"listing snapshot files: {exc}", module=config.name) from exc

    if not files:
        raise EmptyStoreError(
            f"store is empty (hash {config.module_hash})",
            module=config.name,
        )

    try:
        latest = latest_complete_file(files)
    except EmptyStoreError as exc:
        raise EmptyStoreError(
            f"store only has partial files (hash {config.module_hash})",
            module=config.name,
        ) from exc

    try:
        view = backend.open(config.namespace, latest)
    except (OSError, ValueError) as exc:
        raise LoadFailureError(
            f"loading store file {latest.filename!r}: {exc}",
            module=config.name,
        ) from exc

    return view, latest
