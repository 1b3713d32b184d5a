# dl4j_inspector/sample.py
"""
Sample DL4J archives for demos and tests.

Two layouts are available:
- linear: input(784) → dense(128) → dense(64) → output(10)
- branched: two inputs feeding dense_a/dense_b, concatenated into an output
  layer whose ``nIn`` is left for shape inference to fill in.
"""

from __future__ import annotations

import io
import json
import random
import zipfile
from typing import Any, Dict, List, Optional, Tuple

from dl4j_inspector.io.archive import (
    COEFFICIENTS_ENTRY,
    CONFIGURATION_ENTRY,
    UPDATER_STATE_ENTRY,
)
from dl4j_inspector.model_formats.nd4j.blob import encode_flat_weights

_PKG = "org.deeplearning4j.nn.conf.layers."

# name, class, nIn (None = inferred), nOut, inputs
LayerSpec = Tuple[str, str, Optional[int], int, List[str]]

LINEAR_LAYERS: List[LayerSpec] = [
    ("layer_1_dense", "DenseLayer", 784, 128, ["input_data"]),
    ("layer_2_dense", "DenseLayer", 128, 64, ["layer_1_dense"]),
    ("output_layer", "OutputLayer", 64, 10, ["layer_2_dense"]),
]

BRANCHED_LAYERS: List[LayerSpec] = [
    ("dense_a", "DenseLayer", 4, 8, ["input_a"]),
    ("dense_b", "DenseLayer", 3, 8, ["input_b"]),
    ("output", "OutputLayer", None, 3, ["dense_a", "dense_b"]),
]


def _vertex(name: str, cls: str, n_in: Optional[int], n_out: int, inputs: List[str]) -> Dict[str, Any]:
    layer: Dict[str, Any] = {"@class": _PKG + cls, "nOut": n_out, "hasBias": True}
    if n_in is not None:
        layer["nIn"] = n_in
    layer["activation"] = "softmax" if cls == "OutputLayer" else "tanh"
    return {"vertexName": name, "layer": layer, "inputs": inputs}


def sample_configuration(*, branched: bool = False) -> Dict[str, Any]:
    specs = BRANCHED_LAYERS if branched else LINEAR_LAYERS
    vertices = [_vertex(*spec) for spec in specs]
    if branched:
        network_inputs = ["input_a", "input_b"]
    else:
        network_inputs = ["input_data"]
        vertices.insert(
            0,
            {
                "vertexName": "input_data",
                "layer": {"@class": _PKG + "InputType", "nIn": 784, "nOut": 784, "type": "Input"},
                "inputs": [],
            },
        )
    variables = [f"{spec[0]}_{suffix}" for spec in specs for suffix in ("W", "b")]
    return {
        "networkInputs": network_inputs,
        "networkOutputs": [specs[-1][0]],
        "defaultConfiguration": {"variables": variables},
        "vertices": vertices,
    }


def _sample_weights(specs: List[LayerSpec], rng: random.Random) -> List[float]:
    n_out_of = {}
    values: List[float] = []
    for name, _cls, n_in, n_out, inputs in specs:
        if n_in is None:
            n_in = sum(n_out_of[i] for i in inputs)
        n_out_of[name] = n_out
        values.extend(rng.uniform(-0.05, 0.05) for _ in range(n_in * n_out))
        values.extend(rng.uniform(-0.01, 0.01) for _ in range(n_out))
    return values


def build_sample_archive(*, seed: int = 0, branched: bool = False) -> bytes:
    """Zip bytes with configuration.json, coefficients.bin and an empty updater state."""
    rng = random.Random(seed)
    specs = BRANCHED_LAYERS if branched else LINEAR_LAYERS
    config = sample_configuration(branched=branched)

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(CONFIGURATION_ENTRY, json.dumps(config, indent=2))
        zf.writestr(COEFFICIENTS_ENTRY, encode_flat_weights(_sample_weights(specs, rng)))
        zf.writestr(UPDATER_STATE_ENTRY, b"")
    return buf.getvalue()
