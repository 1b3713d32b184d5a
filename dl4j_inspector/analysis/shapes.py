# dl4j_inspector/analysis/shapes.py
"""
Fixed-point propagation of missing layer dimensions along graph edges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from dl4j_inspector.analysis.graph import ConnectivityGraph
from dl4j_inspector.model_formats.dl4j.layers import LayerConfig, layer_kind

# Kinds whose parameter count depends on both dimensions.
PARAMETERIZED_KINDS = frozenset({"conv", "dense", "output", "embedding", "lstm"})


@dataclass
class ShapeTable:
    """Known ``nIn``/``nOut`` per vertex name."""

    n_in: Dict[str, Optional[int]] = field(default_factory=dict)
    n_out: Dict[str, Optional[int]] = field(default_factory=dict)

    @classmethod
    def from_layers(cls, layers: Sequence[Tuple[str, LayerConfig]]) -> "ShapeTable":
        table = cls()
        for name, config in layers:
            table.n_in[name] = config.n_in
            table.n_out[name] = config.n_out
        return table

    def dims(self, name: str) -> Tuple[Optional[int], Optional[int]]:
        return self.n_in.get(name), self.n_out.get(name)


@dataclass
class PropagationResult:
    iterations: int
    resolved: List[str]
    unresolved: List[str]


def _infer_step(
    name: str, config: LayerConfig, graph: ConnectivityGraph, table: ShapeTable
) -> bool:
    kind = layer_kind(config.type_tag)
    changed = False
    if kind in ("dense", "output"):
        if table.n_in.get(name) is None:
            inbound = graph.inbound(name)
            outs = [table.n_out.get(n) for n in inbound]
            if inbound and all(o is not None for o in outs):
                # merged inputs arrive concatenated
                table.n_in[name] = sum(outs)
                changed = True
        if table.n_out.get(name) is None and config.n_out is not None:
            table.n_out[name] = config.n_out
            changed = True
    elif kind == "conv":
        if table.n_out.get(name) is None and config.n_out is not None:
            table.n_out[name] = config.n_out
            changed = True
        if table.n_in.get(name) is None:
            inbound = graph.inbound(name)
            if len(inbound) == 1 and table.n_out.get(inbound[0]) is not None:
                table.n_in[name] = table.n_out[inbound[0]]
                changed = True
    return changed


def _is_pending(name: str, config: LayerConfig, table: ShapeTable) -> bool:
    kind = layer_kind(config.type_tag)
    if kind not in ("dense", "output", "conv"):
        return False
    return table.n_in.get(name) is None or table.n_out.get(name) is None


def propagate_shapes(
    graph: ConnectivityGraph,
    layers: Sequence[Tuple[str, LayerConfig]],
    table: ShapeTable,
) -> PropagationResult:
    """Fill ``table`` in place until no pass changes anything.

    At most ``len(layers)`` passes are made, whatever the graph looks like.
    """
    worklist = [(name, config) for name, config in layers if _is_pending(name, config, table)]
    resolved: List[str] = []
    iterations = 0
    for _ in range(len(layers)):
        if not worklist:
            break
        iterations += 1
        changed = False
        remaining = []
        for name, config in worklist:
            if _infer_step(name, config, graph, table):
                changed = True
                if name not in resolved:
                    resolved.append(name)
            if _is_pending(name, config, table):
                remaining.append((name, config))
        worklist = remaining
        if not changed:
            break

    unresolved = [
        name
        for name, config in layers
        if layer_kind(config.type_tag) in PARAMETERIZED_KINDS
        and (table.n_in.get(name) is None or table.n_out.get(name) is None)
    ]
    return PropagationResult(iterations=iterations, resolved=resolved, unresolved=unresolved)
