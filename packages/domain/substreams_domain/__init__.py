"""Substreams Domain - module graph, signatures and store statistics.

This package provides the dependency and caching backbone of a substreams
pipeline:
- Manifest and module definitions with load-time validation
- Module DAG with topological ordering and ancestor queries
- Content-addressed module signatures used as storage keys
- Snapshot selection and concurrent statistics over persisted stores

The domain layer does not execute modules and does not implement the
key/value store; storage is consumed through the StoreBackend protocol.
"""

from .schemas import *  # noqa: F403, F401

__version__ = "0.1.0"
