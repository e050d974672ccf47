"""Module signatures - content hashes used as storage keys.

A module's signature is the SHA-1 digest of, in order:
    1. its kind ("map" or "store")
    2. its raw code bytes
    3. its entrypoint
    4. its input names ("map:x", "store:y", ...) sorted lexicographically
    5. the signature of every ancestor, in topological order

Because step 5 uses ancestor signatures rather than ancestor content, a
change anywhere upstream changes every downstream signature, while siblings
and ancestors keep theirs. Two modules share a signature exactly when their
definitions and complete dependency closures are identical, which is what
lets previously computed store state be reused.

Signatures are memoized per module name, so shared ancestors in diamond
shaped graphs are hashed once and contribute once.
"""

import hashlib
from typing import Dict, Union

from .base import ModuleGraph
from ..schemas.modules import Module


class ModuleHashes:
    """Memoized signatures over one ModuleGraph.

    Example:
        hashes = ModuleHashes(graph)
        hashes.hash_hex("store_balances")
        → "5f1c0b3e..."
    """

    def __init__(self, graph: ModuleGraph):
        self.graph = graph
        self._cache: Dict[str, bytes] = {}

    def hash_module(self, module: Union[Module, str]) -> bytes:
        """Signature of a module of the graph (20 bytes).

        Raises:
            UnknownModuleError: If the module is not in the graph
        """
        name = module if isinstance(module, str) else module.name
        if name in self._cache:
            return self._cache[name]

        module = self.graph.get(name)
        digest = hashlib.sha1()
        digest.update(str(module.kind).encode())
        digest.update(module.code.content)
        digest.update(module.code.entrypoint.encode())

        for input_name in sorted(inp.name for inp in module.inputs):
            digest.update(input_name.encode())

        for ancestor in self.graph.ancestors_of(name):
            digest.update(self.hash_module(ancestor.name))

        self._cache[name] = digest.digest()
        return self._cache[name]

    def hash_hex(self, module: Union[Module, str]) -> str:
        """Hex form of the signature, used as the storage namespace key."""
        return self.hash_module(module).hex()

    def compute_all(self) -> Dict[str, bytes]:
        """Signatures of every module, computed in topological order."""
        return {module.name: self.hash_module(module) for module in self.graph.topological_sort()}


def module_signature(module: Union[Module, str], graph: ModuleGraph) -> bytes:
    """Signature of one module (see ModuleHashes)."""
    return ModuleHashes(graph).hash_module(module)
