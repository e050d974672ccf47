"""Module dependency graph and signatures.

Architecture:
    Modules (schemas) → ModuleGraph (validation + order) → ModuleHashes (signatures)

Key concepts:
- Inputs referencing map/store modules are graph edges; sources are roots
- The graph is validated on construction (dangling references, cycles)
- Signatures chain through ancestors so upstream changes propagate downstream

Usage:
    from substreams_domain.graph import ModuleGraph, ModuleHashes

    graph = ModuleGraph(manifest.modules)
    hashes = ModuleHashes(graph)
    namespace_key = hashes.hash_hex("store_balances")
"""

from .base import ModuleGraph, topological_sort
from .signature import ModuleHashes, module_signature
from .mermaid import mermaid_edges, render_mermaid

__all__ = [
    "ModuleGraph",
    "topological_sort",
    "ModuleHashes",
    "module_signature",
    "mermaid_edges",
    "render_mermaid",
]
