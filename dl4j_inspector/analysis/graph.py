# dl4j_inspector/analysis/graph.py
"""
Directed connectivity graph over vertex names.

Nodes live in an arena indexed by integer; edges are insertion-ordered index
sets. Names that only ever appear as someone's input are added as implicit
(undeclared) nodes. Cycles are kept as described.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from dl4j_inspector.model_formats.dl4j.config import RawVertex


def assign_names(vertices: Sequence[RawVertex]) -> List[str]:
    """Declared name per vertex, ``layer_<index>`` when blank or already taken."""
    names: List[str] = []
    taken = set()
    for v in vertices:
        name = v.declared_name
        if not name or name in taken:
            name = f"layer_{v.index}"
            suffix = 1
            while name in taken:
                name = f"layer_{v.index}_{suffix}"
                suffix += 1
        taken.add(name)
        names.append(name)
    return names


class ConnectivityGraph:
    def __init__(self) -> None:
        self._names: List[str] = []
        self._index: Dict[str, int] = {}
        self._declared: List[bool] = []
        # dicts used as ordered sets of node indices
        self._inbound: List[Dict[int, None]] = []
        self._outbound: List[Dict[int, None]] = []

    @classmethod
    def build(
        cls, names: Sequence[str], inputs: Sequence[Iterable[str]]
    ) -> "ConnectivityGraph":
        """Build the graph from vertex names and their declared input lists."""
        g = cls()
        for name in names:
            g._declare(name)
        for name, sources in zip(names, inputs):
            target = g._index[name]
            for source in sources:
                g.add_edge(g._node(source), target)
        return g

    def _node(self, name: str) -> int:
        idx = self._index.get(name)
        if idx is None:
            idx = len(self._names)
            self._index[name] = idx
            self._names.append(name)
            self._declared.append(False)
            self._inbound.append({})
            self._outbound.append({})
        return idx

    def _declare(self, name: str) -> int:
        idx = self._node(name)
        self._declared[idx] = True
        return idx

    def add_edge(self, source: int, target: int) -> None:
        self._outbound[source][target] = None
        self._inbound[target][source] = None

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def index_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def is_declared(self, name: str) -> bool:
        idx = self._index.get(name)
        return idx is not None and self._declared[idx]

    def inbound(self, name: str) -> List[str]:
        idx = self._index.get(name)
        if idx is None:
            return []
        return [self._names[i] for i in self._inbound[idx]]

    def outbound(self, name: str) -> List[str]:
        idx = self._index.get(name)
        if idx is None:
            return []
        return [self._names[i] for i in self._outbound[idx]]

    def external_inputs(self) -> List[str]:
        """Names referenced as inputs but never declared as vertices."""
        return [n for n, declared in zip(self._names, self._declared) if not declared]
