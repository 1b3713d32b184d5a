# dl4j_inspector/model_formats/dl4j/layers.py
"""
Canonical layer descriptors and parameter-count rules.

Raw layer objects come in several historical shapes: ``@class`` or ``type`` tags,
Jackson wrapper objects (``{"dense": {...}}``), and ``nIn``/``nOut`` versus
``nin``/``nout`` dimension keys. ``layer_config_from_dict`` is the single place
where those conventions are resolved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

UNKNOWN_TYPE = "Unknown"

# Wrapper-object keys used by older exports, mapped to the class names the
# rest of the pipeline matches on.
WRAPPER_TYPES: Dict[str, str] = {
    "dense": "DenseLayer",
    "output": "OutputLayer",
    "rnnoutput": "RnnOutputLayer",
    "convolution": "ConvolutionLayer",
    "convolution1d": "Convolution1DLayer",
    "embedding": "EmbeddingLayer",
    "lstm": "LSTM",
    "graveslstm": "GravesLSTM",
    "subsampling": "SubsamplingLayer",
    "batchnormalization": "BatchNormalization",
    "activation": "ActivationLayer",
    "dropout": "DropoutLayer",
}

_CONV = re.compile(r"ConvolutionLayer$", re.IGNORECASE)
_DENSE = re.compile(r"DenseLayer$", re.IGNORECASE)
_OUTPUT = re.compile(r"OutputLayer$", re.IGNORECASE)
_EMBEDDING = re.compile(r"EmbeddingLayer$", re.IGNORECASE)
_LSTM = re.compile(r"LSTM$", re.IGNORECASE)


@dataclass
class LayerConfig:
    """Typed view of one raw layer object."""

    type_tag: str = UNKNOWN_TYPE
    n_in: Optional[int] = None
    n_out: Optional[int] = None
    kernel_size: Optional[Tuple[int, int]] = None
    has_bias: bool = True


@dataclass
class NormalizedLayer:
    layer_type: str
    input_shape: Optional[str]
    output_shape: Optional[str]
    num_parameters: int


def layer_kind(type_tag: str) -> str:
    """Classify a type tag: conv, dense, output, embedding, lstm or other."""
    if _CONV.search(type_tag):
        return "conv"
    if _DENSE.search(type_tag):
        return "dense"
    if _OUTPUT.search(type_tag):
        return "output"
    if _EMBEDDING.search(type_tag):
        return "embedding"
    if _LSTM.search(type_tag):
        return "lstm"
    return "other"


def _as_dim(value: Any) -> Optional[int]:
    """Non-negative integral dimension, else None (left to shape inference)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    return None


def _first_dim(raw: Dict[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        dim = _as_dim(raw.get(key))
        if dim is not None:
            return dim
    return None


def _kernel_size(value: Any) -> Optional[Tuple[int, int]]:
    if isinstance(value, (list, tuple)) and value:
        k_h = _as_dim(value[0])
        k_w = _as_dim(value[1]) if len(value) > 1 else k_h
        if k_h is not None and k_w is not None:
            return k_h, k_w
        return None
    k = _as_dim(value)
    return (k, k) if k is not None else None


def unwrap_layer(raw: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    """Resolve a Jackson wrapper object into ``(type_tag, body)``."""
    if "@class" in raw or "type" in raw:
        return None, raw
    if len(raw) == 1:
        key, body = next(iter(raw.items()))
        if isinstance(body, dict):
            return WRAPPER_TYPES.get(key.lower(), key), body
    return None, raw


def layer_config_from_dict(raw: Dict[str, Any]) -> LayerConfig:
    if not isinstance(raw, dict):
        raise TypeError(f"layer configuration must be an object, got {type(raw).__name__}")
    wrapped_type, body = unwrap_layer(raw)
    type_tag = body.get("@class") or body.get("type") or wrapped_type or UNKNOWN_TYPE
    return LayerConfig(
        type_tag=str(type_tag),
        n_in=_first_dim(body, "nIn", "nin"),
        n_out=_first_dim(body, "nOut", "nout"),
        kernel_size=_kernel_size(body.get("kernelSize")),
        has_bias=body.get("hasBias") is not False,
    )


def count_parameters(kind: str, config: LayerConfig, n_in: Optional[int], n_out: Optional[int]) -> int:
    if n_in is None or n_out is None:
        return 0
    if kind == "conv":
        if config.kernel_size is None:
            return 0
        k_h, k_w = config.kernel_size
        return n_out * n_in * k_h * k_w + (n_out if config.has_bias else 0)
    if kind in ("dense", "output"):
        return n_in * n_out + (n_out if config.has_bias else 0)
    if kind == "embedding":
        return n_in * n_out
    if kind == "lstm":
        # approximation of the gate weights, recurrent weights and biases
        return 4 * (n_in + n_out + 1) * n_out
    return 0


def normalize_layer(
    config: LayerConfig, n_in: Optional[int] = None, n_out: Optional[int] = None
) -> NormalizedLayer:
    """Produce the canonical descriptor for one layer.

    ``n_in``/``n_out`` supplement dimensions the configuration leaves out; declared
    dimensions always win.
    """
    n_in = config.n_in if config.n_in is not None else n_in
    n_out = config.n_out if config.n_out is not None else n_out
    input_shape = output_shape = None
    if n_in is not None and n_out is not None:
        input_shape = f"[{n_in}]"
        output_shape = f"[{n_out}]"
    return NormalizedLayer(
        layer_type=config.type_tag,
        input_shape=input_shape,
        output_shape=output_shape,
        num_parameters=count_parameters(layer_kind(config.type_tag), config, n_in, n_out),
    )


def kernel_size_of(config: LayerConfig, n_in: Optional[int], n_out: Optional[int]) -> int:
    """Number of values in the ``<layer>_W`` variable."""
    if n_in is None or n_out is None:
        return 0
    kind = layer_kind(config.type_tag)
    if kind == "conv":
        if config.kernel_size is None:
            return 0
        k_h, k_w = config.kernel_size
        return n_out * n_in * k_h * k_w
    if kind == "lstm":
        return n_in * 4 * n_out
    return n_in * n_out


def bias_size_of(config: LayerConfig, n_out: Optional[int]) -> int:
    """Number of values in the ``<layer>_b`` variable."""
    if n_out is None:
        return 0
    if layer_kind(config.type_tag) == "lstm":
        return 4 * n_out
    return n_out
