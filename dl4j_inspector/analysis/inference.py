# dl4j_inspector/analysis/inference.py
"""
Approximate two-branch forward pass over decoded layers.

Each weighted layer is treated as a dense map ``out = act(b + x·K)`` with a
row-major ``[nIn, nOut]`` kernel. Two branches are walked independently,
concatenated, and fed through the post-merge chain. This is a visual aid only:
activations are guessed from the type tag and shape mismatches pass values
through unchanged with a warning.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from dl4j_inspector.analysis.base import LayerNode, WeightProvenance


@dataclass
class InferenceInput:
    branch_a: List[float]
    branch_b: List[float]


@dataclass
class InferenceResult:
    layer_outputs: Dict[str, List[float]] = field(default_factory=dict)
    final_output: List[float] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    uses_synthetic_weights: bool = False


@dataclass
class Chain:
    layers: List[LayerNode]

    @property
    def last(self) -> LayerNode:
        return self.layers[-1]


def is_weighted(layer: Optional[LayerNode]) -> bool:
    return layer is not None and layer.kernel_values is not None and bool(layer.bias_values)


def expected_input_size(layer: LayerNode) -> float:
    return len(layer.kernel_values) / len(layer.bias_values)


def format_length(value: float) -> str:
    """Integral lengths as plain integers, anything else via ``repr``."""
    return str(int(value)) if float(value).is_integer() else repr(value)


def activation_for(layer: LayerNode) -> str:
    lt = layer.layer_type.lower()
    if "outputlayer" in lt:
        return "identity"
    if "denselayer" in lt or "convolutionlayer" in lt:
        return "tanh"
    return "identity"


def _activate(values: np.ndarray, activation: str) -> np.ndarray:
    if activation == "tanh":
        return np.tanh(values)
    return values


def dense_forward(x: Sequence[float], layer: LayerNode, warnings: List[str]) -> List[float]:
    if not is_weighted(layer):
        warnings.append(f"Missing weights for layer {layer.name}")
        return list(x)
    vec = np.asarray(x, dtype=np.float64)
    kernel = np.asarray(layer.kernel_values, dtype=np.float64)
    bias = np.asarray(layer.bias_values, dtype=np.float64)
    n_in = vec.size
    n_out = bias.size
    if kernel.size != n_in * n_out:
        warnings.append(
            f"Kernel size mismatch for {layer.name} expected {n_in * n_out} got {kernel.size}"
        )
        return vec.tolist()
    out = vec @ kernel.reshape(n_in, n_out) + bias
    return _activate(out, activation_for(layer)).tolist()


def forward_chain(start: LayerNode, layer_map: Mapping[str, LayerNode]) -> Chain:
    """Follow weighted single-input successors from ``start``."""
    chain = [start]
    visited = {start.name}
    last = start
    while True:
        nxt = next(
            (
                layer_map[n]
                for n in last.outbound_nodes
                if is_weighted(layer_map.get(n)) and len(layer_map[n].inbound_nodes) <= 1
            ),
            None,
        )
        if nxt is None or nxt.name in visited:
            break
        chain.append(nxt)
        visited.add(nxt.name)
        last = nxt
    return Chain(chain)


def _pick_start(
    requested: Optional[str],
    layer_map: Mapping[str, LayerNode],
    candidates: Sequence[LayerNode],
    weighted: Sequence[LayerNode],
    exclude: Optional[str] = None,
) -> LayerNode:
    layer = layer_map.get(requested) if requested else None
    if is_weighted(layer):
        return layer
    for pool in (candidates, weighted):
        for l in pool:
            if l.name != exclude:
                return l
    return weighted[0]


def select_starts(
    layers: Sequence[LayerNode],
    start_a: Optional[str] = None,
    start_b: Optional[str] = None,
) -> Tuple[Optional[LayerNode], Optional[LayerNode]]:
    """Branch start layers: the requested ones if weighted, else entry points."""
    layer_map = {l.name: l for l in layers}
    weighted = [l for l in layers if is_weighted(l)]
    if not weighted:
        return None, None
    # entry points: weighted layers without a weighted predecessor
    candidates = [
        l for l in weighted if not any(is_weighted(layer_map.get(n)) for n in l.inbound_nodes)
    ]
    a_start = _pick_start(start_a, layer_map, candidates, weighted)
    b_start = _pick_start(start_b, layer_map, candidates, weighted, exclude=a_start.name)
    return a_start, b_start


def run_inference(
    layers: Sequence[LayerNode],
    inputs: InferenceInput,
    *,
    start_a: Optional[str] = None,
    start_b: Optional[str] = None,
) -> InferenceResult:
    """Run the two-branch approximate forward pass."""
    result = InferenceResult()
    warnings = result.warnings
    layer_map = {l.name: l for l in layers}

    weighted = [l for l in layers if is_weighted(l)]
    if not weighted:
        warnings.append("No weighted layers available for inference.")
        return result
    result.uses_synthetic_weights = any(
        l.weight_provenance is WeightProvenance.SYNTHETIC for l in weighted
    )

    a_start, b_start = select_starts(layers, start_a, start_b)

    branches = (("branchA", a_start, inputs.branch_a), ("branchB", b_start, inputs.branch_b))
    for label, start, vec in branches:
        expected = expected_input_size(start)
        if len(vec) != expected:
            warnings.append(f"{label} length {len(vec)} != expected {format_length(expected)}")

    a_chain = forward_chain(a_start, layer_map)
    b_chain = forward_chain(b_start, layer_map)

    a_out: List[float] = list(inputs.branch_a)
    for l in a_chain.layers:
        a_out = dense_forward(a_out, l, warnings)
        result.layer_outputs[l.name] = a_out

    b_out: List[float] = list(inputs.branch_b)
    for l in b_chain.layers:
        b_out = dense_forward(b_out, l, warnings)
        result.layer_outputs[l.name] = b_out

    merge_node = next(
        (
            l
            for l in layers
            if a_chain.last.name in l.inbound_nodes and b_chain.last.name in l.inbound_nodes
        ),
        None,
    )
    merged = a_out + b_out

    post_start: Optional[LayerNode] = None
    if merge_node is not None:
        result.layer_outputs[merge_node.name] = merged
        if is_weighted(merge_node):
            post_start = merge_node
        else:
            post_start = next(
                (layer_map[n] for n in merge_node.outbound_nodes if is_weighted(layer_map.get(n))),
                None,
            )
    else:
        warnings.append("Merge node not found; proceeding with concatenated vector.")
        post_start = next((l for l in weighted if expected_input_size(l) == len(merged)), None)

    current = merged
    visited = set()
    node = post_start
    while node is not None and node.name not in visited:
        current = dense_forward(current, node, warnings)
        result.layer_outputs[node.name] = current
        visited.add(node.name)
        node = next(
            (layer_map[n] for n in node.outbound_nodes if is_weighted(layer_map.get(n))), None
        )

    result.final_output = current
    return result


def random_input(length: int, scale: float = 1.0, seed: Optional[int] = None) -> List[float]:
    """Uniform values in ``[-scale/2, scale/2)``."""
    rng = random.Random(seed)
    return [(rng.random() - 0.5) * scale for _ in range(length)]
