# mat_forensics/model_formats/mat5/mat5_types.py
"""
MAT5 type codes, array classes and the packed-storage compatibility table.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, FrozenSet, Optional


class DataType(IntEnum):
    """Tag type codes (miINT8 ... miUTF32)."""

    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    SINGLE = 7
    # 8 is reserved
    DOUBLE = 9
    # 10 and 11 are reserved
    INT64 = 12
    UINT64 = 13
    MATRIX = 14
    COMPRESSED = 15
    UTF8 = 16
    UTF16 = 17
    UTF32 = 18


class ArrayClass(IntEnum):
    """Array class codes stored in the low byte of the array-flags word."""

    CELL = 1
    STRUCT = 2
    OBJECT = 3
    CHAR = 4
    SPARSE = 5
    DOUBLE = 6
    SINGLE = 7
    INT8 = 8
    UINT8 = 9
    INT16 = 10
    UINT16 = 11
    INT32 = 12
    UINT32 = 13
    INT64 = 14
    UINT64 = 15


@dataclass(frozen=True)
class PrimitiveFormat:
    """How one numeric primitive is laid out on disk."""

    code: str  # struct format character
    width: int  # bytes per element


NUMERIC_FORMATS: Dict[DataType, PrimitiveFormat] = {
    DataType.INT8: PrimitiveFormat("b", 1),
    DataType.UINT8: PrimitiveFormat("B", 1),
    DataType.INT16: PrimitiveFormat("h", 2),
    DataType.UINT16: PrimitiveFormat("H", 2),
    DataType.INT32: PrimitiveFormat("i", 4),
    DataType.UINT32: PrimitiveFormat("I", 4),
    DataType.SINGLE: PrimitiveFormat("f", 4),
    DataType.DOUBLE: PrimitiveFormat("d", 8),
    DataType.INT64: PrimitiveFormat("q", 8),
    DataType.UINT64: PrimitiveFormat("Q", 8),
}

# Classes that are recognised but decoded to a placeholder.
UNSUPPORTED_CLASSES: FrozenSet[ArrayClass] = frozenset(
    {ArrayClass.CELL, ArrayClass.OBJECT, ArrayClass.CHAR}
)

# Numeric type a declared array class is checked against.
# NOTE: INT32 maps to UINT32, unlike every other signed class. Kept as-is until
# confirmed against the MathWorks format reference (see DESIGN.md).
CLASS_NUMERIC_TYPE: Dict[ArrayClass, DataType] = {
    ArrayClass.DOUBLE: DataType.DOUBLE,
    ArrayClass.SINGLE: DataType.SINGLE,
    ArrayClass.INT8: DataType.INT8,
    ArrayClass.UINT8: DataType.UINT8,
    ArrayClass.INT16: DataType.INT16,
    ArrayClass.UINT16: DataType.UINT16,
    ArrayClass.INT32: DataType.UINT32,
    ArrayClass.UINT32: DataType.UINT32,
    ArrayClass.INT64: DataType.INT64,
    ArrayClass.UINT64: DataType.UINT64,
}

_NARROW = frozenset({DataType.UINT8, DataType.INT16, DataType.UINT16})

# Stored types permitted for each declared numeric type (packed storage).
COMPATIBLE_STORAGE: Dict[DataType, FrozenSet[DataType]] = {
    DataType.INT8: frozenset({DataType.INT8}),
    DataType.UINT8: frozenset({DataType.UINT8}),
    DataType.INT16: frozenset({DataType.UINT8, DataType.INT16}),
    DataType.UINT16: frozenset({DataType.UINT8, DataType.UINT16}),
    DataType.INT32: _NARROW | {DataType.INT32},
    DataType.UINT32: _NARROW | {DataType.UINT32},
    DataType.INT64: _NARROW | {DataType.INT32, DataType.INT64},
    DataType.UINT64: _NARROW | {DataType.INT32, DataType.UINT64},
    DataType.SINGLE: _NARROW | {DataType.INT32, DataType.SINGLE},
    DataType.DOUBLE: _NARROW | {DataType.INT32, DataType.DOUBLE},
}


def numeric_data_type(array_class: ArrayClass) -> Optional[DataType]:
    """Numeric type backing a numeric array class, or None for non-numeric classes."""
    return CLASS_NUMERIC_TYPE.get(array_class)


def compatible(declared: DataType, stored: DataType) -> bool:
    """True if data declared as ``declared`` may be stored as ``stored``."""
    return stored in COMPATIBLE_STORAGE.get(declared, frozenset())


def class_accepts_storage(array_class: ArrayClass, stored: DataType) -> bool:
    """Packed-storage check for a declared array class."""
    declared = numeric_data_type(array_class)
    return declared is not None and compatible(declared, stored)
