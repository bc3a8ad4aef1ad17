"""Packed-storage compatibility table."""

from __future__ import annotations

import pytest

from mat_forensics.model_formats.mat5.mat5_types import (
    COMPATIBLE_STORAGE,
    ArrayClass,
    DataType as D,
    class_accepts_storage,
    compatible,
    numeric_data_type,
)

NARROW = {D.UINT8, D.INT16, D.UINT16}

EXPECTED = {
    D.INT8: {D.INT8},
    D.UINT8: {D.UINT8},
    D.INT16: {D.UINT8, D.INT16},
    D.UINT16: {D.UINT8, D.UINT16},
    D.INT32: NARROW | {D.INT32},
    D.UINT32: NARROW | {D.UINT32},
    D.INT64: NARROW | {D.INT32, D.INT64},
    D.UINT64: NARROW | {D.INT32, D.UINT64},
    D.SINGLE: NARROW | {D.INT32, D.SINGLE},
    D.DOUBLE: NARROW | {D.INT32, D.DOUBLE},
}


def test_table_matches_permitted_pairs_exactly() -> None:
    assert {k: set(v) for k, v in COMPATIBLE_STORAGE.items()} == EXPECTED


@pytest.mark.parametrize(
    "declared,stored,ok",
    [
        (D.DOUBLE, D.UINT8, True),
        (D.DOUBLE, D.INT32, True),
        (D.DOUBLE, D.INT8, False),
        (D.DOUBLE, D.UINT32, False),
        (D.DOUBLE, D.INT64, False),
        (D.SINGLE, D.DOUBLE, False),
        (D.INT8, D.INT16, False),
        (D.UINT8, D.INT8, False),
        (D.UINT16, D.INT16, False),
        (D.INT64, D.UINT32, False),
        (D.MATRIX, D.DOUBLE, False),
    ],
)
def test_compatible(declared: D, stored: D, ok: bool) -> None:
    assert compatible(declared, stored) is ok


def test_int32_class_checks_against_uint32() -> None:
    assert numeric_data_type(ArrayClass.INT32) == D.UINT32
    assert class_accepts_storage(ArrayClass.INT32, D.UINT32) is True
    assert class_accepts_storage(ArrayClass.INT32, D.INT32) is False
    assert class_accepts_storage(ArrayClass.UINT32, D.UINT32) is True


def test_other_classes_map_to_matching_type() -> None:
    assert numeric_data_type(ArrayClass.DOUBLE) == D.DOUBLE
    assert numeric_data_type(ArrayClass.INT16) == D.INT16
    assert numeric_data_type(ArrayClass.UINT64) == D.UINT64


@pytest.mark.parametrize(
    "array_class",
    [ArrayClass.CELL, ArrayClass.STRUCT, ArrayClass.OBJECT, ArrayClass.CHAR, ArrayClass.SPARSE],
)
def test_non_numeric_classes(array_class: ArrayClass) -> None:
    assert numeric_data_type(array_class) is None
    assert class_accepts_storage(array_class, D.DOUBLE) is False
