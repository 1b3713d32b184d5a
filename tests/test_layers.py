import pytest

from dl4j_inspector.model_formats.dl4j.layers import (
    LayerConfig,
    bias_size_of,
    kernel_size_of,
    layer_config_from_dict,
    layer_kind,
    normalize_layer,
)

from conftest import LAYERS


def _normalize(raw, n_in=None, n_out=None):
    return normalize_layer(layer_config_from_dict(raw), n_in, n_out)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"@class": LAYERS + "ConvolutionLayer", "nIn": 3, "nOut": 8, "kernelSize": [3, 3]}, 224),
        (
            {"@class": LAYERS + "ConvolutionLayer", "nIn": 3, "nOut": 8, "kernelSize": [3, 3], "hasBias": False},
            216,
        ),
        ({"@class": LAYERS + "ConvolutionLayer", "nIn": 3, "nOut": 8}, 0),
        ({"type": "DenseLayer", "nin": 10, "nout": 5}, 55),
        ({"@class": LAYERS + "OutputLayer", "nIn": 128, "nOut": 10}, 1290),
        ({"@class": LAYERS + "EmbeddingLayer", "nIn": 100, "nOut": 16}, 1600),
        ({"@class": LAYERS + "LSTM", "nIn": 10, "nOut": 20}, 2480),
        ({"dense": {"nIn": 2, "nOut": 3}}, 9),
        ({"@class": LAYERS + "SubsamplingLayer", "nIn": 4, "nOut": 4}, 0),
    ],
    ids=["conv", "conv-no-bias", "conv-no-kernel", "dense-lowercase-keys", "output", "embedding", "lstm", "wrapper", "other"],
)
def test_parameter_counts(raw, expected):
    assert _normalize(raw).num_parameters == expected


def test_wrapper_object_resolves_type_tag():
    config = layer_config_from_dict({"dense": {"nIn": 2, "nOut": 3, "layerName": "fc"}})
    assert config.type_tag == "DenseLayer"
    assert (config.n_in, config.n_out) == (2, 3)


def test_shapes_require_both_dims():
    norm = _normalize({"@class": LAYERS + "DenseLayer", "nOut": 5})
    assert norm.input_shape is None
    assert norm.output_shape is None
    assert norm.num_parameters == 0


def test_declared_dims_win_over_inferred():
    norm = _normalize({"@class": LAYERS + "DenseLayer", "nIn": 4, "nOut": 2}, n_in=99, n_out=99)
    assert (norm.input_shape, norm.output_shape) == ("[4]", "[2]")
    assert norm.num_parameters == 10


def test_inferred_dims_fill_gaps():
    norm = _normalize({"@class": LAYERS + "OutputLayer", "nOut": 3}, n_in=16)
    assert norm.input_shape == "[16]"
    assert norm.num_parameters == 51


def test_boolean_and_fractional_dims_are_ignored():
    config = layer_config_from_dict({"type": "DenseLayer", "nIn": True, "nOut": 2.5})
    assert config.n_in is None
    assert config.n_out is None
    assert layer_config_from_dict({"type": "DenseLayer", "nIn": 4.0}).n_in == 4


def test_negative_dims_are_treated_as_missing():
    config = layer_config_from_dict({"type": "DenseLayer", "nIn": -3, "nOut": 10})
    assert config.n_in is None
    assert config.n_out == 10
    norm = normalize_layer(config)
    assert norm.num_parameters == 0
    assert norm.input_shape is None


def test_negative_dim_falls_back_to_lowercase_key():
    config = layer_config_from_dict({"type": "DenseLayer", "nIn": -1, "nin": 6, "nOut": 2})
    assert config.n_in == 6
    assert _normalize({"type": "DenseLayer", "nIn": -3, "nOut": 10}, n_in=4).num_parameters == 50


def test_missing_type_is_unknown():
    assert layer_config_from_dict({"nIn": 1, "nOut": 1}).type_tag == "Unknown"


def test_non_object_layer_raises():
    with pytest.raises(TypeError):
        layer_config_from_dict([1, 2])


@pytest.mark.parametrize(
    "tag, kind",
    [
        (LAYERS + "ConvolutionLayer", "conv"),
        ("densELayer", "dense"),
        (LAYERS + "RnnOutputLayer", "output"),
        (LAYERS + "GravesLSTM", "lstm"),
        (LAYERS + "EmbeddingLayer", "embedding"),
        (LAYERS + "BatchNormalization", "other"),
    ],
)
def test_layer_kind(tag, kind):
    assert layer_kind(tag) == kind


def test_variable_sizes():
    conv = LayerConfig(type_tag="ConvolutionLayer", kernel_size=(2, 2))
    lstm = LayerConfig(type_tag="LSTM")
    dense = LayerConfig(type_tag="DenseLayer")
    assert kernel_size_of(conv, 3, 4) == 48
    assert kernel_size_of(lstm, 3, 4) == 48
    assert kernel_size_of(dense, 3, 4) == 12
    assert kernel_size_of(dense, None, 4) == 0
    assert bias_size_of(lstm, 4) == 16
    assert bias_size_of(dense, 4) == 4
    assert bias_size_of(dense, None) == 0
