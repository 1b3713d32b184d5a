# dl4j_inspector/analysis/base.py
"""
Import result records shared by the decoder, reporters and the inference engine.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


def generate_id() -> str:
    return uuid.uuid4().hex


class WeightProvenance(str, Enum):
    """Where a layer's weight values came from."""

    REAL = "real"  # sliced from coefficients.bin
    SYNTHETIC = "synthetic"  # generated placeholder values


@dataclass
class HistogramBin:
    min: float
    max: float
    count: int


@dataclass
class WeightStat:
    """Summary of one parameter group of one layer."""

    id: str
    layer_node_id: str
    parameter_group: str  # "kernel" | "bias"
    min: float
    max: float
    mean: float
    std_dev: float
    num_values: int
    histogram_bins: List[HistogramBin]
    provenance: WeightProvenance = WeightProvenance.REAL


@dataclass
class LayerNode:
    id: str
    model_id: str
    name: str
    layer_type: str
    num_parameters: int
    inbound_nodes: List[str] = field(default_factory=list)
    outbound_nodes: List[str] = field(default_factory=list)
    input_shape: Optional[str] = None
    output_shape: Optional[str] = None
    kernel_values: Optional[List[float]] = None
    bias_values: Optional[List[float]] = None
    weight_provenance: Optional[WeightProvenance] = None

    @property
    def has_weights(self) -> bool:
        return bool(self.kernel_values) or bool(self.bias_values)


@dataclass
class Model:
    id: str
    name: str
    created_at: str
    source_file_name: str
    num_layers: int = 0
    total_parameters: int = 0
    description: Optional[str] = None
    raw_config_json: Optional[str] = None
    binary_parameters: Optional[int] = None
    expected_parameters: Optional[int] = None
    parameter_mismatch: Optional[bool] = None
    parameter_match_ratio: Optional[float] = None


@dataclass
class ImportSummary:
    num_layers: int
    total_parameters: int
    layers_with_weights: int
    skipped_items: List[str] = field(default_factory=list)
    unresolved_shapes: List[str] = field(default_factory=list)
    synthetic_weights: bool = False
    has_binary_weights: bool = False
    has_updater_state: bool = False
    binary_parameters: Optional[int] = None
    expected_parameters: Optional[int] = None
    parameter_mismatch: Optional[bool] = None
    parameter_match_ratio: Optional[float] = None


@dataclass
class ImportResult:
    """Everything the decoder produced for one archive."""

    model: Model
    layers: List[LayerNode]
    weight_stats: List[WeightStat]
    summary: ImportSummary

    def layer(self, name: str) -> Optional[LayerNode]:
        return next((l for l in self.layers if l.name == name), None)

    def stats_for(self, layer: LayerNode) -> List[WeightStat]:
        return [ws for ws in self.weight_stats if ws.layer_node_id == layer.id]


LAYER_SORT_KEYS: Dict[str, Callable[[LayerNode], Any]] = {
    "name": lambda l: (l.name.lower(), l.name),
    "layer_type": lambda l: (l.layer_type.lower(), l.name),
    "num_parameters": lambda l: (l.num_parameters, l.name),
}
