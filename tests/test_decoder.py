import asyncio
import dataclasses
import json

import pytest

from dl4j_inspector.analysis.base import WeightProvenance
from dl4j_inspector.analysis.decoder import (
    ArchiveDecodeError,
    DecoderOptions,
    decode_archive,
    decode_path,
    decode_path_async,
    recompute_model,
)
from dl4j_inspector.analysis.weights import NO_BLOB, NO_VARIABLE_MAPPING, UNDECODABLE_BLOB
from dl4j_inspector.model_formats.nd4j.blob import encode_flat_weights
from dl4j_inspector.sample import build_sample_archive, sample_configuration

from conftest import layer, make_zip, vertex


def _decode_json(config, name="model.json", **kwargs):
    return decode_archive(json.dumps(config).encode(), name, **kwargs)


def test_linear_chain_parameter_counts(linear_config):
    result = _decode_json(linear_config)
    counts = {l.name: l.num_parameters for l in result.layers}
    assert counts == {"input": 0, "dense": 100_480, "out": 1_290}
    assert len([l for l in result.layers if l.num_parameters > 0]) == 2
    assert result.summary.total_parameters == 101_770
    assert result.model.total_parameters == 101_770
    assert result.model.num_layers == 3
    assert result.layer("dense").input_shape == "[784]"
    assert result.layer("dense").outbound_nodes == ["out"]


def test_total_equals_sum_of_layers(linear_config):
    result = _decode_json(linear_config)
    assert result.summary.total_parameters == sum(l.num_parameters for l in result.layers)
    assert result.summary.num_layers == len(result.layers)


def test_json_only_archive_has_no_binary(linear_config):
    result = _decode_json(linear_config)
    s = result.summary
    assert not s.has_binary_weights
    assert s.binary_parameters is None
    assert s.parameter_mismatch is None
    assert s.parameter_match_ratio is None
    assert s.skipped_items == [NO_BLOB]
    assert s.synthetic_weights
    assert result.model.name == "model"
    assert result.model.raw_config_json == json.dumps(linear_config)


def test_dangling_input_stays_in_graph():
    config = {"vertices": [vertex("d", layer("DenseLayer", 2, 2), ["ghost"])]}
    result = _decode_json(config)
    assert [l.name for l in result.layers] == ["d"]
    assert result.layer("d").inbound_nodes == ["ghost"]
    assert result.layer("ghost") is None


def test_short_blob_records_one_diagnostic(linear_config):
    result = decode_archive(make_zip(linear_config, b"\x00\x01\x02"), "short.zip")
    s = result.summary
    assert s.skipped_items == [UNDECODABLE_BLOB]
    assert s.has_binary_weights
    assert s.synthetic_weights
    assert s.binary_parameters is None
    assert all(ws.provenance is WeightProvenance.SYNTHETIC for ws in result.weight_stats)


def test_sample_archive_uses_real_weights():
    result = decode_archive(build_sample_archive(), "sample.zip")
    s = result.summary
    assert result.model.name == "sample"
    assert s.skipped_items == []
    assert not s.synthetic_weights
    assert s.has_updater_state
    assert s.binary_parameters == s.total_parameters == 109_386
    assert s.parameter_mismatch is False
    assert s.parameter_match_ratio == 1.0
    assert s.layers_with_weights == 3
    assert len(result.layer("layer_1_dense").kernel_values) == 784 * 128
    assert len(result.stats_for(result.layer("output_layer"))) == 2


def test_branched_sample_infers_merge_dims():
    result = decode_archive(build_sample_archive(branched=True), "branched.zip")
    out = result.layer("output")
    assert out.input_shape == "[16]"
    assert out.num_parameters == 51
    assert result.summary.total_parameters == 123
    assert result.summary.unresolved_shapes == []
    assert not result.summary.synthetic_weights


def test_weight_length_mismatch_is_reported():
    config = sample_configuration()
    result = decode_archive(make_zip(config, encode_flat_weights([0.0] * 10)), "m.zip")
    s = result.summary
    assert s.skipped_items == [
        "Flattened weight length (10) does not match expected variable sizes total (109386)"
    ]
    assert s.binary_parameters == 10
    assert s.parameter_mismatch is True
    assert s.parameter_match_ratio == pytest.approx(10 / 109_386)
    assert s.synthetic_weights


def test_missing_variables_fall_back_to_synthetic():
    config = sample_configuration(branched=True)
    del config["defaultConfiguration"]
    result = decode_archive(make_zip(config, encode_flat_weights([0.0] * 123)), "m.zip")
    assert result.summary.skipped_items == [NO_VARIABLE_MAPPING]
    assert result.summary.parameter_mismatch is False


def test_malformed_layer_is_skipped():
    config = {
        "vertices": [
            {"vertexName": "bad", "layer": [1, 2]},
            vertex("ok", layer("DenseLayer", 2, 2), ["bad"]),
        ]
    }
    result = _decode_json(config)
    assert [l.name for l in result.layers] == ["ok"]
    assert result.layer("ok").inbound_nodes == ["bad"]
    assert any(item.startswith("Layer bad:") for item in result.summary.skipped_items)


def test_unresolved_dims_are_listed():
    config = {"vertices": [vertex("o", layer("OutputLayer", None, 3), ["ghost"])]}
    result = _decode_json(config)
    assert result.summary.unresolved_shapes == ["o"]
    assert result.layer("o").num_parameters == 0


def test_empty_configuration_decodes_to_nothing():
    result = _decode_json({})
    assert result.layers == []
    assert result.summary.total_parameters == 0
    assert result.summary.skipped_items == []


@pytest.mark.parametrize("data", [b"not json", b"[]"])
def test_fatal_configuration_errors(data):
    with pytest.raises(ArchiveDecodeError, match="Failed to parse DL4J model"):
        decode_archive(data, "bad.json")


def test_zip_without_configuration_is_fatal():
    with pytest.raises(ArchiveDecodeError):
        decode_archive(make_zip("{}", config_name="notes.txt"), "bad.zip")


def test_seeded_synthetic_weights_are_reproducible(linear_config):
    options = DecoderOptions(seed=3, histogram_bins=5)
    a = _decode_json(linear_config, options=options)
    b = _decode_json(linear_config, options=options)
    assert a.layer("out").kernel_values == b.layer("out").kernel_values
    assert all(len(ws.histogram_bins) <= 5 for ws in a.weight_stats)


def test_decode_path_and_async(tmp_path):
    path = tmp_path / "sample.zip"
    path.write_bytes(build_sample_archive())
    sync_result = decode_path(str(path))
    async_result = asyncio.run(decode_path_async(str(path)))
    assert sync_result.model.source_file_name == "sample.zip"
    assert async_result.summary.total_parameters == sync_result.summary.total_parameters


def test_recompute_model_restores_totals(linear_config):
    model = _decode_json(linear_config).model
    stale = dataclasses.replace(model, total_parameters=0, num_layers=0)
    fresh = recompute_model(stale)
    assert fresh.total_parameters == 101_770
    assert fresh.num_layers == 3
    assert fresh.id == model.id
    assert stale.total_parameters == 0


def test_recompute_model_rechecks_binary_count():
    model = decode_archive(build_sample_archive(), "sample.zip").model
    fresh = recompute_model(dataclasses.replace(model, binary_parameters=100))
    assert fresh.parameter_mismatch is True
    assert fresh.parameter_match_ratio == pytest.approx(100 / 109_386)


def test_recompute_model_requires_configuration(linear_config):
    model = dataclasses.replace(_decode_json(linear_config).model, raw_config_json=None)
    with pytest.raises(ArchiveDecodeError):
        recompute_model(model)


def _two_by_two(coefficients: bytes) -> bytes:
    config = {
        "defaultConfiguration": {"variables": ["d_W", "d_b"]},
        "vertices": [vertex("d", layer("DenseLayer", 2, 2))],
    }
    return make_zip(config, coefficients)


@pytest.mark.parametrize("bad", [float("nan"), float("inf")], ids=["nan", "inf"])
def test_non_finite_weights_are_excluded_from_stats(bad):
    blob = encode_flat_weights([0.1, bad, 0.2, 0.3, 0.0, 0.0])
    result = decode_archive(_two_by_two(blob), "m.zip")
    s = result.summary
    assert s.skipped_items == ["Layer d: 1 non-finite kernel values excluded from statistics"]
    assert not s.synthetic_weights
    kernel, bias = result.stats_for(result.layer("d"))
    assert kernel.provenance is WeightProvenance.REAL
    assert kernel.num_values == 3
    assert sum(b.count for b in kernel.histogram_bins) == 3
    assert kernel.max == pytest.approx(0.3)
    assert bias.num_values == 2
    assert len(result.layer("d").kernel_values) == 4


def test_double_weights_overflowing_float32_are_excluded():
    blob = encode_flat_weights([1e300, -1e300, 0.5, 0.25, 0.0, 0.0], "DOUBLE")
    result = decode_archive(_two_by_two(blob), "m.zip")
    assert result.summary.skipped_items == [
        "Layer d: 2 non-finite kernel values excluded from statistics"
    ]
    kernel = result.stats_for(result.layer("d"))[0]
    assert kernel.num_values == 2
    assert (kernel.min, kernel.max) == (0.25, 0.5)
    assert kernel.mean == pytest.approx(0.375)


def test_negative_declared_dim_is_inferred_from_inbound_layer():
    config = {
        "vertices": [
            vertex("d", layer("DenseLayer", 2, 3)),
            vertex("o", layer("OutputLayer", -3, 2), ["d"]),
        ]
    }
    result = _decode_json(config)
    assert result.layer("o").input_shape == "[3]"
    assert result.layer("o").num_parameters == 8
    assert result.summary.total_parameters == 17
