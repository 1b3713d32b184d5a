# dl4j_inspector/model_formats/nd4j/records.py
"""
Framed big-endian record reader for Java DataOutputStream output.

Every reader takes a buffer and an offset and returns ``(value, next_offset)``.
Reads that would run past the end of the buffer return an empty value and the
unchanged offset instead of raising; callers compare offsets to detect that.
"""

from __future__ import annotations

import struct
from typing import Tuple, Union

import numpy as np

from .nd4j import NUMPY_DTYPES, Nd4jParseError

Buffer = Union[bytes, bytearray, memoryview]


def _unpack(buf: Buffer, off: int, fmt: str) -> tuple[tuple, int]:
    vals = struct.unpack_from(fmt, buf, off)
    return vals, off + struct.calcsize(fmt)


def read_utf(buf: Buffer, offset: int) -> Tuple[str, int]:
    """Read a ``writeUTF`` string: u16 length, then single-byte characters."""
    if offset < 0 or offset + 2 > len(buf):
        return "", offset
    (ln,), start = _unpack(buf, offset, ">H")
    if start + ln > len(buf):
        return "", offset
    # ASCII subset of modified UTF-8; one char per byte.
    return bytes(buf[start : start + ln]).decode("latin-1"), start + ln


def read_long(buf: Buffer, offset: int) -> Tuple[int, int]:
    """Read a ``writeLong`` value (8 bytes, big-endian, signed)."""
    if offset < 0 or offset + 8 > len(buf):
        return 0, offset
    (v,), off = _unpack(buf, offset, ">q")
    return v, off


def _dtype(data_type: str) -> np.dtype:
    dtype = NUMPY_DTYPES.get(data_type)
    if dtype is None:
        raise Nd4jParseError(f"Cannot decode element type {data_type!r}")
    return np.dtype(dtype)


def read_values(buf: Buffer, offset: int, count: int, data_type: str) -> Tuple[np.ndarray, int]:
    """Read ``count`` big-endian elements of ``data_type`` as a read-only array view."""
    dtype = _dtype(data_type)
    end = offset + count * dtype.itemsize
    if count <= 0 or offset < 0 or end > len(buf):
        return np.empty(0, dtype=dtype), offset
    return np.frombuffer(buf, dtype=dtype, count=count, offset=offset), end


def write_utf(value: str) -> bytes:
    raw = value.encode("latin-1")
    if len(raw) > 0xFFFF:
        raise Nd4jParseError("String too long for a u16 length prefix")
    return struct.pack(">H", len(raw)) + raw


def write_long(value: int) -> bytes:
    return struct.pack(">q", value)


def write_values(values, data_type: str) -> bytes:
    return np.asarray(values, dtype=_dtype(data_type)).tobytes()
