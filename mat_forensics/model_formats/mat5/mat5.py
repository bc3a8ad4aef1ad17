# mat_forensics/model_formats/mat5/mat5.py
"""
MAT5 shared structures and exceptions.

Every structure is frozen and holds tuples: a parsed tree is built once and
compares by value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from mat_forensics.model_formats.mat5.mat5_types import ArrayClass, DataType

HEADER_SIZE = 128
HEADER_TEXT_SIZE = 116
MAT5_VERSION = 0x0100


@dataclass(frozen=True)
class Header:
    text: str
    endian: str  # 'LE' or 'BE'
    version: int = MAT5_VERSION

    @property
    def is_little_endian(self) -> bool:
        return self.endian == "LE"


@dataclass(frozen=True)
class Tag:
    data_type: DataType
    byte_size: int
    padding_size: int
    compact: bool = False

    @property
    def tag_size(self) -> int:
        return 4 if self.compact else 8


@dataclass(frozen=True)
class ArrayFlags:
    is_complex: bool
    is_global: bool
    is_logical: bool
    array_class: ArrayClass
    nzmax: int  # only meaningful for sparse arrays


@dataclass(frozen=True)
class NumericData:
    """Homogeneous run of one primitive kind, discriminated by ``data_type``."""

    data_type: DataType
    values: Tuple[Union[int, float], ...]

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class NumericMatrix:
    flags: ArrayFlags
    dims: Tuple[int, ...]
    name: str
    real: NumericData
    imag: Optional[NumericData] = None


@dataclass(frozen=True)
class SparseMatrix:
    flags: ArrayFlags
    dims: Tuple[int, ...]
    name: str
    row_indices: Tuple[int, ...]  # CSC row index per nonzero
    column_shifts: Tuple[int, ...]  # CSC column pointers
    real: NumericData
    imag: Optional[NumericData] = None


@dataclass(frozen=True)
class StructureMatrix:
    flags: ArrayFlags
    dims: Tuple[int, ...]
    name: str
    field_name_length: int
    field_names: Tuple[str, ...]
    fields: Tuple["DataElement", ...]


@dataclass(frozen=True)
class Unsupported:
    """Placeholder for an element that is recognised but not decoded."""

    reason: str
    array_class: Optional[ArrayClass] = None


DataElement = Union[NumericMatrix, SparseMatrix, StructureMatrix, Unsupported]


@dataclass(frozen=True)
class ParseResult:
    header: Header
    elements: Tuple[DataElement, ...]


@dataclass(frozen=True)
class ParseOptions:
    """Decoder limits.

    Attributes:
        max_depth: Deepest structure-field / compressed-body nesting accepted.
            Top-level elements sit at depth 0.
    """

    max_depth: int = 32


def element_count(dims: Tuple[int, ...]) -> int:
    """Product of the dimension extents."""
    p = 1
    for d in dims:
        p *= d
    return p


class MAT5ParseError(Exception):
    """Raised when a MAT5 buffer is malformed.

    ``offset`` is relative to the buffer that was being parsed. When
    ``inflated`` is set, that buffer is the inflated body of a compressed
    element and the offset has no relation to positions in the file.
    """

    def __init__(self, message: str, *, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.inflated = False

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        where = "inflated buffer" if self.inflated else "buffer"
        return f"{self.message} (at offset {self.offset} of {where})"


class MalformedHeaderError(MAT5ParseError):
    """Bad non-null guard, version or endianness marker."""


class UnknownTypeCodeError(MAT5ParseError):
    """Tag type code or array class outside the known set."""


class SanityCheckError(MAT5ParseError):
    """Declared and actual lengths or types disagree."""


class NestingDepthError(SanityCheckError):
    """Structure or compression nesting exceeds ParseOptions.max_depth."""


class Utf8DecodeError(MAT5ParseError):
    """Array name or field name is not valid UTF-8."""


class DecompressionError(MAT5ParseError):
    """A compressed element could not be inflated."""


class IncompleteError(MAT5ParseError):
    """Fewer bytes available than declared."""

    def __init__(self, message: str, *, offset: Optional[int] = None, needed: int = 0):
        super().__init__(message, offset=offset)
        self.needed = needed
