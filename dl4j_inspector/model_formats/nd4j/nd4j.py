# dl4j_inspector/model_formats/nd4j/nd4j.py
"""
ND4J data buffer shared structures and exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass

# Element widths in bytes per ND4J data type tag.
ELEMENT_SIZES = {
    "DOUBLE": 8,
    "FLOAT": 4,
    "HALF": 2,
    "INT": 4,
    "LONG": 8,
    "SHORT": 2,
    "BYTE": 1,
    "UBYTE": 1,
    "BOOL": 1,
    "UINT64": 8,
    "UINT32": 4,
    "UINT16": 2,
}

# Tags not listed above are assumed to be 4 bytes wide.
DEFAULT_ELEMENT_SIZE = 4

# Payloads we refuse to guess at.
UNSUPPORTED_TYPES = frozenset({"COMPRESSED"})

# Big-endian numpy dtypes for the tags we can decode to numbers.
NUMPY_DTYPES = {
    "DOUBLE": ">f8",
    "FLOAT": ">f4",
    "HALF": ">f2",
    "INT": ">i4",
    "LONG": ">i8",
    "SHORT": ">i2",
    "BYTE": "i1",
    "UBYTE": "u1",
    "BOOL": "?",
    "UINT64": ">u8",
    "UINT32": ">u4",
    "UINT16": ">u2",
}

FLOAT_TYPES = frozenset({"FLOAT", "DOUBLE"})


@dataclass
class DataBufferHeader:
    """Framing of one serialized ND4J data buffer."""

    allocation_mode: str
    length: int  # number of elements
    data_type: str
    values_offset: int  # absolute offset of the first element
    element_size: int

    @property
    def values_byte_length(self) -> int:
        return self.length * self.element_size

    @property
    def end_offset(self) -> int:
        return self.values_offset + self.values_byte_length


class Nd4jParseError(Exception):
    """Raised when an ND4J binary blob is malformed."""
