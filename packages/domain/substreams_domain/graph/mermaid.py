"""Mermaid rendering of the module dependency diagram.

One edge per input, labelled with the input name and, for store inputs,
the access mode:

    graph TD;
      sf.ethereum.type.v2.Block -- "source:sf.ethereum.type.v2.Block" --> map_transfers
      map_transfers -- "map:map_transfers" --> store_balances
      store_balances -- "store:store_balances:deltas" --> map_balance_changes
"""

from typing import List

from ..schemas.modules import Module, StoreInput


def mermaid_edges(modules: List[Module]) -> List[str]:
    """Diagram edges in module declaration order, then input declaration order."""
    edges = []
    for module in modules:
        for inp in module.inputs:
            label = inp.name
            if isinstance(inp, StoreInput):
                label = f"{label}:{inp.mode}"
            producer = inp.name.split(":", 1)[1]
            edges.append(f'  {producer} -- "{label}" --> {module.name}')
    return edges


def render_mermaid(modules: List[Module]) -> str:
    """Fenced mermaid block for the module list."""
    lines = ["```mermaid", "graph TD;"]
    lines.extend(mermaid_edges(modules))
    lines.append("```")
    return "\n".join(lines) + "\n"
