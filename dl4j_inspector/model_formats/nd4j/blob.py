# dl4j_inspector/model_formats/nd4j/blob.py
"""
ND4J ``coefficients.bin`` extraction.

The blob written by ``Nd4j.write`` holds two consecutive data buffers: the
shape-info buffer followed by the flattened parameter buffer. Each buffer is
framed as ``{utf allocation mode, long length, utf data type}`` followed by
``length`` big-endian elements. There is no magic number; the layout is
recognized only by decoding it successfully.
"""

from __future__ import annotations

import struct
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from .nd4j import (
    DEFAULT_ELEMENT_SIZE,
    ELEMENT_SIZES,
    FLOAT_TYPES,
    UNSUPPORTED_TYPES,
    DataBufferHeader,
    Nd4jParseError,
)
from .records import Buffer, read_long, read_utf, read_values, write_long, write_utf, write_values

DEFAULT_ALLOCATION_MODE = "MIXED_DATA_TYPES"


def parse_data_buffer(buf: Buffer, offset: int) -> Optional[DataBufferHeader]:
    """Decode the framing of one data buffer starting at ``offset``.

    Returns None when the framing cannot be read or the payload would run past
    the end of ``buf``.
    """
    alloc, off = read_utf(buf, offset)
    if not alloc:
        return None
    length, off = read_long(buf, off)
    if length <= 0:
        return None
    data_type, off = read_utf(buf, off)
    if not data_type or data_type in UNSUPPORTED_TYPES:
        return None
    header = DataBufferHeader(
        allocation_mode=alloc,
        length=length,
        data_type=data_type,
        values_offset=off,
        element_size=ELEMENT_SIZES.get(data_type, DEFAULT_ELEMENT_SIZE),
    )
    if header.end_offset > len(buf):
        return None
    return header


def _decode_flat(buf: Buffer) -> np.ndarray:
    shape = parse_data_buffer(buf, 0)
    if shape is None:
        raise Nd4jParseError("Shape buffer framing not found")
    data = parse_data_buffer(buf, shape.end_offset)
    if data is None:
        raise Nd4jParseError("Data buffer framing not found")
    if data.data_type not in FLOAT_TYPES:
        raise Nd4jParseError(f"Unsupported parameter data type {data.data_type}")

    values, end = read_values(buf, data.values_offset, data.length, data.data_type)
    if end == data.values_offset:
        raise Nd4jParseError("Parameter payload truncated")
    # DOUBLE values outside the float32 range become +-inf
    with np.errstate(over="ignore"):
        return values.astype(np.float32)


def extract_flat_weights(blob: Buffer) -> Optional[np.ndarray]:
    """Return the flattened parameter array stored in ``blob``, or None."""
    try:
        return _decode_flat(memoryview(blob))
    except (Nd4jParseError, struct.error) as e:
        logger.debug("ND4J blob not decodable: {error}", error=e)
        return None


def heuristic_float_count(blob: Buffer) -> Optional[int]:
    """Guess a float count from the raw byte length when decoding fails."""
    n = len(blob)
    return n // 4 if n % 4 == 0 else None


def _shape_info(n: int) -> List[int]:
    # rank 2 row vector [1, n], c-order strides, extras, element-wise stride, order 'c'
    return [2, 1, n, n, 1, 0, 1, ord("c")]


def _encode_buffer(values: Sequence, data_type: str, allocation_mode: str) -> bytes:
    return (
        write_utf(allocation_mode)
        + write_long(len(values))
        + write_utf(data_type)
        + write_values(values, data_type)
    )


def encode_flat_weights(
    values: Sequence[float],
    data_type: str = "FLOAT",
    *,
    allocation_mode: str = DEFAULT_ALLOCATION_MODE,
) -> bytes:
    """Serialize ``values`` as a shape buffer followed by a data buffer."""
    if data_type not in FLOAT_TYPES:
        raise Nd4jParseError(f"Parameters must be FLOAT or DOUBLE, not {data_type}")
    return _encode_buffer(_shape_info(len(values)), "LONG", allocation_mode) + _encode_buffer(
        values, data_type, allocation_mode
    )
