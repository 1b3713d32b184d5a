# dl4j_inspector/analysis/weights.py
"""
Mapping of the flat parameter array onto layers, with synthetic fallbacks.

Real weights are only attached when every declared ``<layer>_W``/``<layer>_b``
variable can be sized and the sizes add up to the flat array length exactly.
Otherwise every parameterized layer gets placeholder values so statistics and
inference stay usable; each such substitution is reported in the diagnostics
and tagged ``WeightProvenance.SYNTHETIC``.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from loguru import logger

from dl4j_inspector.analysis.base import LayerNode, WeightProvenance, WeightStat, generate_id
from dl4j_inspector.analysis.shapes import ShapeTable
from dl4j_inspector.analysis.stats import (
    DEFAULT_BINS,
    Values,
    compute_histogram,
    compute_stats,
    finite_values,
)
from dl4j_inspector.model_formats.dl4j.layers import LayerConfig, bias_size_of, kernel_size_of

_VARIABLE = re.compile(r"^(?P<layer>.+)_(?P<suffix>W|b)$")
_OUTPUT_DIM = re.compile(r"\[(\d+)\]$")

NO_VARIABLE_MAPPING = (
    "No variable mapping available; attached synthetic weights for visualization and inference."
)
UNDECODABLE_BLOB = (
    "coefficients.bin holds no structured ND4J weight data; attached synthetic weights."
)
NO_BLOB = "No binary weights in archive; attached synthetic weights."


@dataclass
class VariableSlice:
    variable: str
    layer_name: str
    group: str  # "kernel" | "bias"
    size: int


@dataclass
class WeightAttachment:
    weight_stats: List[WeightStat] = field(default_factory=list)
    skipped_items: List[str] = field(default_factory=list)


def plan_variables(
    variables: Sequence[str],
    layers: Mapping[str, LayerNode],
    configs: Mapping[str, LayerConfig],
    table: ShapeTable,
) -> List[VariableSlice]:
    """Expected size of every recognizable variable, in declaration order."""
    plan: List[VariableSlice] = []
    for variable in variables:
        m = _VARIABLE.match(variable)
        if m is None:
            continue
        layer_name = m.group("layer")
        config = configs.get(layer_name)
        if layer_name not in layers or config is None:
            continue
        n_in, n_out = table.dims(layer_name)
        if m.group("suffix") == "W":
            group, size = "kernel", kernel_size_of(config, n_in, n_out)
        else:
            group, size = "bias", bias_size_of(config, n_out)
        if size > 0:
            plan.append(VariableSlice(variable=variable, layer_name=layer_name, group=group, size=size))
    return plan


class WeightSlicer:
    """Attach kernel/bias values and statistics to decoded layers."""

    def __init__(
        self,
        *,
        seed: Optional[int] = 0,
        histogram_bins: int = DEFAULT_BINS,
        max_synthetic_kernel: int = 10_000,
        max_synthetic_bias: int = 1_000,
        kernel_scale: float = 0.1,
        bias_scale: float = 0.05,
    ):
        self.rng = random.Random(seed)
        self.histogram_bins = histogram_bins
        self.max_synthetic_kernel = max_synthetic_kernel
        self.max_synthetic_bias = max_synthetic_bias
        self.kernel_scale = kernel_scale
        self.bias_scale = bias_scale

    def _summarize(
        self, layer: LayerNode, group: str, values: Values, provenance: WeightProvenance
    ) -> WeightStat:
        finite = finite_values(values)
        s = compute_stats(finite)
        return WeightStat(
            id=generate_id(),
            layer_node_id=layer.id,
            parameter_group=group,
            min=s.min,
            max=s.max,
            mean=s.mean,
            std_dev=s.std_dev,
            num_values=int(finite.size),
            histogram_bins=compute_histogram(finite, self.histogram_bins),
            provenance=provenance,
        )

    def attach_real(
        self, flat: np.ndarray, plan: Sequence[VariableSlice], layers: Mapping[str, LayerNode]
    ) -> WeightAttachment:
        result = WeightAttachment()
        cursor = 0
        for vs in plan:
            chunk = flat[cursor : cursor + vs.size]
            cursor += vs.size
            layer = layers[vs.layer_name]
            if vs.group == "kernel":
                layer.kernel_values = chunk.tolist()
            else:
                layer.bias_values = chunk.tolist()
            layer.weight_provenance = WeightProvenance.REAL
            bad = int(np.count_nonzero(~np.isfinite(chunk)))
            if bad:
                result.skipped_items.append(
                    f"Layer {vs.layer_name}: {bad} non-finite {vs.group} values "
                    f"excluded from statistics"
                )
            result.weight_stats.append(
                self._summarize(layer, vs.group, chunk, WeightProvenance.REAL)
            )
        return result

    def synthesize(self, layers: Sequence[LayerNode]) -> List[WeightStat]:
        """Placeholder weights for every layer with a nonzero parameter count."""
        stats: List[WeightStat] = []
        for layer in layers:
            if layer.num_parameters <= 0:
                continue
            k = self.kernel_scale
            kernel = [
                self.rng.uniform(-k, k)
                for _ in range(min(layer.num_parameters, self.max_synthetic_kernel))
            ]
            bias: List[float] = []
            m = _OUTPUT_DIM.search(layer.output_shape or "")
            if m:
                b = self.bias_scale
                bias = [
                    self.rng.uniform(-b, b)
                    for _ in range(min(int(m.group(1)), self.max_synthetic_bias))
                ]
            layer.weight_provenance = WeightProvenance.SYNTHETIC
            if kernel:
                layer.kernel_values = kernel
                stats.append(self._summarize(layer, "kernel", kernel, WeightProvenance.SYNTHETIC))
            if bias:
                layer.bias_values = bias
                stats.append(self._summarize(layer, "bias", bias, WeightProvenance.SYNTHETIC))
        return stats

    def attach(
        self,
        layers: Sequence[LayerNode],
        configs: Mapping[str, LayerConfig],
        table: ShapeTable,
        *,
        flat: Optional[Values],
        variables: Optional[Sequence[str]],
        has_blob: bool,
    ) -> WeightAttachment:
        result = WeightAttachment()
        by_name: Dict[str, LayerNode] = {l.name: l for l in layers}

        if flat is not None and variables is not None:
            flat = np.asarray(flat, dtype=np.float32)
            plan = plan_variables(variables, by_name, configs, table)
            expected = sum(vs.size for vs in plan)
            if expected == len(flat):
                logger.debug(
                    "Slicing {n} values into {v} variables", n=len(flat), v=len(plan)
                )
                real = self.attach_real(flat, plan, by_name)
                result.weight_stats += real.weight_stats
                result.skipped_items += real.skipped_items
            else:
                result.skipped_items.append(
                    f"Flattened weight length ({len(flat)}) does not match expected "
                    f"variable sizes total ({expected})"
                )
                result.weight_stats += self.synthesize(layers)
        elif flat is None:
            synthetic = self.synthesize(layers)
            if has_blob:
                result.skipped_items.append(UNDECODABLE_BLOB)
            elif synthetic:
                result.skipped_items.append(NO_BLOB)
            result.weight_stats += synthetic

        parameterized = any(l.num_parameters > 0 for l in layers)
        if parameterized and not any(l.has_weights for l in layers):
            result.skipped_items.append(NO_VARIABLE_MAPPING)
            result.weight_stats += self.synthesize(layers)

        return result
