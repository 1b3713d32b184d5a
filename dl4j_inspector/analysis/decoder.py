# dl4j_inspector/analysis/decoder.py
"""
Archive decoder: configuration + coefficients → ``ImportResult``.

Stages: open container, extract flat weights, read configuration, build the
connectivity graph, propagate shapes, finalize per-layer parameter counts, and
attach weights with statistics. Only a missing or unreadable configuration is
fatal; everything else is recorded in ``summary.skipped_items``.
"""
from __future__ import annotations

import asyncio
import dataclasses
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger

from dl4j_inspector.analysis.base import (
    ImportResult,
    ImportSummary,
    LayerNode,
    Model,
    WeightProvenance,
    generate_id,
)
from dl4j_inspector.analysis.graph import ConnectivityGraph, assign_names
from dl4j_inspector.analysis.shapes import PropagationResult, ShapeTable, propagate_shapes
from dl4j_inspector.analysis.stats import DEFAULT_BINS
from dl4j_inspector.analysis.weights import WeightSlicer
from dl4j_inspector.io.archive import ArchiveDecodeError, open_archive
from dl4j_inspector.io.file_reader import LocalFileSource
from dl4j_inspector.model_formats.dl4j.config import (
    ArchiveConfig,
    ConfigurationError,
    parse_configuration,
)
from dl4j_inspector.model_formats.dl4j.layers import (
    LayerConfig,
    layer_config_from_dict,
    normalize_layer,
)
from dl4j_inspector.model_formats.nd4j.blob import extract_flat_weights, heuristic_float_count
from dl4j_inspector.observability import Timer

__all__ = [
    "ArchiveDecodeError",
    "DecoderOptions",
    "ModelDecoder",
    "decode_archive",
    "decode_path",
    "decode_path_async",
    "recompute_model",
]

_ARCHIVE_SUFFIX = re.compile(r"\.(json|zip)$", re.IGNORECASE)


@dataclass
class DecoderOptions:
    """Tunables for a decode run."""

    seed: Optional[int] = 0  # None draws synthetic weights from OS entropy
    histogram_bins: int = DEFAULT_BINS
    max_synthetic_kernel: int = 10_000
    max_synthetic_bias: int = 1_000
    kernel_scale: float = 0.1
    bias_scale: float = 0.05


@dataclass
class LayerBuild:
    """Intermediate graph state shared by decoding and recomputation."""

    layers: List[LayerNode]
    configs: Dict[str, LayerConfig]
    table: ShapeTable
    propagation: PropagationResult
    skipped_items: List[str]


def build_layers(config: ArchiveConfig, model_id: str) -> LayerBuild:
    names = assign_names(config.vertices)
    graph = ConnectivityGraph.build(names, [v.inputs for v in config.vertices])
    if graph.external_inputs():
        logger.debug("External inputs: {names}", names=", ".join(graph.external_inputs()))
    skipped: List[str] = []

    configs: Dict[str, LayerConfig] = {}
    for name, vertex in zip(names, config.vertices):
        try:
            configs[name] = layer_config_from_dict(vertex.raw_layer)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            logger.warning("Skipping layer {name}: {error}", name=name, error=e)
            skipped.append(f"Layer {vertex.declared_name or name}: {e}")

    ordered: List[Tuple[str, LayerConfig]] = [(n, configs[n]) for n in names if n in configs]
    table = ShapeTable.from_layers(ordered)
    with Timer("shapes") as t:
        propagation = propagate_shapes(graph, ordered, table)
    logger.debug(
        "Shape inference: {it} passes, {r} resolved, {u} unresolved in {ms:.2f}ms",
        it=propagation.iterations,
        r=len(propagation.resolved),
        u=len(propagation.unresolved),
        ms=t.duration_ms,
    )
    if propagation.unresolved:
        logger.warning(
            "Could not infer dimensions for: {names}", names=", ".join(propagation.unresolved)
        )

    layers: List[LayerNode] = []
    for name, layer_conf in ordered:
        n_in, n_out = table.dims(name)
        norm = normalize_layer(layer_conf, n_in, n_out)
        layers.append(
            LayerNode(
                id=generate_id(),
                model_id=model_id,
                name=name,
                layer_type=norm.layer_type,
                input_shape=norm.input_shape,
                output_shape=norm.output_shape,
                num_parameters=norm.num_parameters,
                inbound_nodes=graph.inbound(name),
                outbound_nodes=graph.outbound(name),
            )
        )
    return LayerBuild(
        layers=layers,
        configs=configs,
        table=table,
        propagation=propagation,
        skipped_items=skipped,
    )


def _match(binary: Optional[int], total: int) -> Tuple[Optional[bool], Optional[float]]:
    if binary is None:
        return None, None
    return binary != total, (binary / total if total > 0 else 0.0)


class ModelDecoder:
    """Decodes DL4J model archives into ``ImportResult`` records."""

    def __init__(self, options: Optional[DecoderOptions] = None):
        self.options = options or DecoderOptions()

    def _slicer(self) -> WeightSlicer:
        o = self.options
        return WeightSlicer(
            seed=o.seed,
            histogram_bins=o.histogram_bins,
            max_synthetic_kernel=o.max_synthetic_kernel,
            max_synthetic_bias=o.max_synthetic_bias,
            kernel_scale=o.kernel_scale,
            bias_scale=o.bias_scale,
        )

    def decode(self, data: bytes, file_name: str = "model.json") -> ImportResult:
        """Decode raw archive bytes.

        Raises:
            ArchiveDecodeError: no configuration could be found or parsed.
        """
        with Timer("decode") as t_total:
            try:
                contents = open_archive(data, file_name)
                config = parse_configuration(contents.config_text)
            except (ArchiveDecodeError, ConfigurationError) as e:
                logger.error("Failed to decode {file}: {error}", file=file_name, error=e)
                raise ArchiveDecodeError(f"Failed to parse DL4J model: {e}") from e
            logger.debug(
                "Opened {file}: config={entry}, {n} entries, noParams={np}, kind={kind}",
                file=file_name,
                entry=contents.config_entry or "<plain json>",
                n=len(contents.entries),
                np=contents.has_no_params_marker,
                kind=config.kind,
            )

            has_binary = False
            binary_count: Optional[int] = None
            flat = None
            if contents.coefficients is not None:
                blob = contents.coefficients
                has_binary = len(blob) > 0
                with Timer("coefficients") as t_blob:
                    flat = extract_flat_weights(blob)
                binary_count = len(flat) if flat is not None else heuristic_float_count(blob)
                logger.debug(
                    "coefficients.bin: {n} bytes, structured={ok}, {ms:.2f}ms",
                    n=len(blob),
                    ok=flat is not None,
                    ms=t_blob.duration_ms,
                )

            model = Model(
                id=generate_id(),
                name=_ARCHIVE_SUFFIX.sub("", file_name),
                created_at=datetime.now(timezone.utc).isoformat(),
                source_file_name=file_name,
                raw_config_json=contents.config_text,
            )

            build = build_layers(config, model.id)
            skipped = list(build.skipped_items)

            attachment = self._slicer().attach(
                build.layers,
                build.configs,
                build.table,
                flat=flat,
                variables=config.variables,
                has_blob=contents.coefficients is not None,
            )
            skipped += attachment.skipped_items
            for item in attachment.skipped_items:
                logger.warning(item)

            total = sum(l.num_parameters for l in build.layers)
            mismatch, ratio = _match(binary_count, total)
            model = dataclasses.replace(
                model,
                num_layers=len(build.layers),
                total_parameters=total,
                expected_parameters=total,
                binary_parameters=binary_count,
                parameter_mismatch=mismatch,
                parameter_match_ratio=ratio,
            )

            stats = attachment.weight_stats
            summary = ImportSummary(
                num_layers=len(build.layers),
                total_parameters=total,
                layers_with_weights=len({ws.layer_node_id for ws in stats}),
                skipped_items=skipped,
                unresolved_shapes=list(build.propagation.unresolved),
                synthetic_weights=any(ws.provenance is WeightProvenance.SYNTHETIC for ws in stats),
                has_binary_weights=has_binary,
                has_updater_state=contents.has_updater_state,
                binary_parameters=binary_count,
                expected_parameters=total,
                parameter_mismatch=mismatch,
                parameter_match_ratio=ratio,
            )

        logger.info(
            "Decoded {file}: {n} layers, {p} parameters in {ms:.2f}ms",
            file=file_name,
            n=summary.num_layers,
            p=summary.total_parameters,
            ms=t_total.duration_ms,
        )
        return ImportResult(model=model, layers=build.layers, weight_stats=stats, summary=summary)


def decode_archive(
    data: bytes, file_name: str = "model.json", options: Optional[DecoderOptions] = None
) -> ImportResult:
    return ModelDecoder(options).decode(data, file_name)


def decode_path(path: str, options: Optional[DecoderOptions] = None) -> ImportResult:
    src = LocalFileSource(path)
    return ModelDecoder(options).decode(src.read_bytes(), src.file_name)


async def decode_path_async(path: str, options: Optional[DecoderOptions] = None) -> ImportResult:
    """Like ``decode_path``; only the file read is awaited."""
    src = LocalFileSource(path)
    data = await asyncio.to_thread(src.read_bytes)
    return ModelDecoder(options).decode(data, src.file_name)


def recompute_model(model: Model) -> Model:
    """Return a replacement ``Model`` with totals recomputed from its raw configuration."""
    if model.raw_config_json is None:
        raise ArchiveDecodeError(f"Model {model.name} has no stored configuration")
    try:
        config = parse_configuration(model.raw_config_json)
    except ConfigurationError as e:
        raise ArchiveDecodeError(f"Failed to parse DL4J model: {e}") from e

    build = build_layers(config, model.id)
    total = sum(l.num_parameters for l in build.layers)
    mismatch, ratio = _match(model.binary_parameters, total)
    return dataclasses.replace(
        model,
        num_layers=len(build.layers),
        total_parameters=total,
        expected_parameters=total,
        parameter_mismatch=mismatch,
        parameter_match_ratio=ratio,
    )
