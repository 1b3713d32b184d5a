"""Shared fixtures: archive builders for decoder and CLI tests."""

from __future__ import annotations

import io
import json
import zipfile
from typing import Any, Dict, Optional, Sequence

import pytest
from loguru import logger

from dl4j_inspector.model_formats.nd4j.blob import encode_flat_weights

LAYERS = "org.deeplearning4j.nn.conf.layers."


def layer(cls: str, n_in: Optional[int] = None, n_out: Optional[int] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"@class": LAYERS + cls}
    if n_in is not None:
        body["nIn"] = n_in
    if n_out is not None:
        body["nOut"] = n_out
    body.update(extra)
    return body


def vertex(name: str, body: Any, inputs: Sequence[str] = ()) -> Dict[str, Any]:
    return {"vertexName": name, "layer": body, "inputs": list(inputs)}


def make_zip(
    config: Any,
    coefficients: Optional[bytes] = None,
    *,
    config_name: str = "configuration.json",
    extra: Optional[Dict[str, bytes]] = None,
) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        text = config if isinstance(config, str) else json.dumps(config)
        zf.writestr(config_name, text)
        if coefficients is not None:
            zf.writestr("coefficients.bin", coefficients)
        for name, data in (extra or {}).items():
            zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture()
def linear_config() -> Dict[str, Any]:
    """input[784] -> dense[784->128] -> output[128->10]."""
    return {
        "vertices": [
            vertex("input", layer("InputType", 784, 784)),
            vertex("dense", layer("DenseLayer", 784, 128), ["input"]),
            vertex("out", layer("OutputLayer", 128, 10), ["dense"]),
        ]
    }


@pytest.fixture()
def small_config() -> Dict[str, Any]:
    """dense[2->3] -> output[3->2], 17 parameters, with variables declared."""
    return {
        "defaultConfiguration": {"variables": ["d_W", "d_b", "o_W", "o_b"]},
        "vertices": [
            vertex("d", layer("DenseLayer", 2, 3), ["in"]),
            vertex("o", layer("OutputLayer", 3, 2), ["d"]),
        ],
    }


@pytest.fixture()
def small_weights() -> bytes:
    return encode_flat_weights([float(i) for i in range(17)])


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    # CLI runs install a stderr sink bound to pytest's capture stream
    logger.remove()
