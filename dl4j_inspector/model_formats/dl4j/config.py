# dl4j_inspector/model_formats/dl4j/config.py
"""
Schema-tolerant reader for DL4J ``configuration.json`` documents.

The JSON is decoded once into ``ArchiveConfig``/``RawVertex`` records. Layer
objects are kept raw here and turned into ``LayerConfig`` by the decoder, so a
single malformed layer can be skipped without failing the whole archive.

Accepted shapes:
- ``vertices`` or ``layers``: a list, or a map keyed by vertex name
  (ComputationGraph). Inputs come from each entry's ``inputs`` or from the
  top-level ``vertexInputs`` map.
- ``confs``: a sequential list (MultiLayerNetwork), wired into a linear chain.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .layers import unwrap_layer


class ConfigurationError(Exception):
    """Raised when the configuration text is not a usable JSON object."""


@dataclass
class RawVertex:
    index: int
    declared_name: Optional[str]
    inputs: List[str]
    raw_layer: Any


@dataclass
class ArchiveConfig:
    kind: str  # "graph" | "multilayer" | "empty"
    vertices: List[RawVertex]
    variables: Optional[List[str]] = None
    network_inputs: List[str] = field(default_factory=list)
    network_outputs: List[str] = field(default_factory=list)


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None]


def _layer_of(entry: Any) -> Any:
    """Find the layer object under ``layerConf.layer`` or ``layer``."""
    if not isinstance(entry, dict):
        return entry
    layer_conf = entry.get("layerConf")
    if isinstance(layer_conf, dict) and layer_conf.get("layer") is not None:
        return layer_conf["layer"]
    if entry.get("layer") is not None:
        return entry["layer"]
    if "@class" in entry or "type" in entry:
        # non-layer vertices (merge, preprocessor, ...) carry their own tag
        return entry
    return {}


def _layer_name(layer: Any) -> Optional[str]:
    if not isinstance(layer, dict):
        return None
    _, body = unwrap_layer(layer)
    return _str_or_none(body.get("layerName"))


def _graph_vertices(entries: Any, vertex_inputs: Dict[str, Any]) -> List[RawVertex]:
    if isinstance(entries, dict):
        items = list(entries.items())
    elif isinstance(entries, list):
        items = [(None, e) for e in entries]
    else:
        return []

    vertices: List[RawVertex] = []
    for index, (key, entry) in enumerate(items):
        name = None
        inputs: List[str] = []
        if isinstance(entry, dict):
            name = _str_or_none(entry.get("vertexName")) or _str_or_none(entry.get("name"))
            inputs = _str_list(entry.get("inputs"))
        layer = _layer_of(entry)
        name = name or _str_or_none(key) or _layer_name(layer)
        if not inputs and name in vertex_inputs:
            inputs = _str_list(vertex_inputs[name])
        vertices.append(
            RawVertex(index=index, declared_name=name, inputs=inputs, raw_layer=layer)
        )
    return vertices


def _sequential_vertices(confs: List[Any]) -> tuple[List[RawVertex], List[str]]:
    vertices: List[RawVertex] = []
    variables: List[str] = []
    previous: Optional[str] = None
    for index, conf in enumerate(confs):
        layer = _layer_of(conf)
        name = _layer_name(layer) or f"layer_{index}"
        vertices.append(
            RawVertex(
                index=index,
                declared_name=name,
                inputs=[previous] if previous is not None else [],
                raw_layer=layer,
            )
        )
        if isinstance(conf, dict):
            variables.extend(f"{name}_{v}" for v in _str_list(conf.get("variables")))
        previous = name
    return vertices, variables


def parse_configuration(text: str) -> ArchiveConfig:
    """Decode configuration JSON into an ``ArchiveConfig``."""
    try:
        doc = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ConfigurationError(f"Invalid configuration JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigurationError("Configuration root must be a JSON object")

    default_conf = doc.get("defaultConfiguration")
    variables: Optional[List[str]] = None
    if isinstance(default_conf, dict) and isinstance(default_conf.get("variables"), list):
        variables = _str_list(default_conf["variables"])

    vertex_inputs = doc.get("vertexInputs")
    if not isinstance(vertex_inputs, dict):
        vertex_inputs = {}

    entries = doc.get("vertices") or doc.get("layers") or []
    vertices = _graph_vertices(entries, vertex_inputs)
    kind = "graph"

    if not vertices and isinstance(doc.get("confs"), list) and doc["confs"]:
        vertices, conf_variables = _sequential_vertices(doc["confs"])
        kind = "multilayer"
        if variables is None and conf_variables:
            variables = conf_variables

    if not vertices:
        kind = "empty"

    return ArchiveConfig(
        kind=kind,
        vertices=vertices,
        variables=variables,
        network_inputs=_str_list(doc.get("networkInputs")),
        network_outputs=_str_list(doc.get("networkOutputs")),
    )
