"""Top-level driver: element loop, fallback for foreign types, endianness symmetry."""

from __future__ import annotations

import struct

import pytest
from loguru import logger

from mat5_builder import (
    SPARSE1,
    SPARSE2,
    array_flags,
    array_name,
    compressed,
    dimensions,
    header,
    mat_file,
    matrix,
    numeric_matrix,
    sparse_matrix,
    struct_matrix,
    subelement,
    tag,
)
from mat_forensics.model_formats.mat5.mat5 import (
    IncompleteError,
    NumericMatrix,
    ParseResult,
    UnknownTypeCodeError,
    Unsupported,
)
from mat_forensics.model_formats.mat5.mat5_parser import parse_mat5
from mat_forensics.model_formats.mat5.mat5_types import ArrayClass, DataType


def _logical_file(endian: str) -> bytes:
    leaf = numeric_matrix("", (1, 2), ArrayClass.UINT16, DataType.UINT8, (3, 4), endian=endian)
    return mat_file(
        numeric_matrix("a", (2, 2), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0, -2.0, 3.5, 4.0), endian=endian),
        numeric_matrix("i", (1, 3), ArrayClass.INT64, DataType.INT32, (-1, 0, 2**31 - 1), endian=endian),
        numeric_matrix(
            "z", (1, 2), ArrayClass.SINGLE, DataType.SINGLE, (1.0, 2.0), imag=(0.5, -0.5), endian=endian
        ),
        sparse_matrix("s1", endian=endian, **SPARSE1),
        compressed(sparse_matrix("s2", endian=endian, **SPARSE2), endian=endian),
        struct_matrix("st", (1, 1), ["leaf"], [leaf], endian=endian),
        endian=endian,
    )


def test_endianness_symmetry() -> None:
    le = parse_mat5(_logical_file("LE"))
    be = parse_mat5(_logical_file("BE"))
    assert le.header.endian == "LE"
    assert be.header.endian == "BE"
    assert len(le.elements) == 6
    assert le.elements == be.elements


def test_elements_in_file_order() -> None:
    result = parse_mat5(_logical_file("LE"))
    names = [el.name for el in result.elements]
    assert names == ["a", "i", "z", "s1", "s2", "st"]


def test_header_only_file_has_no_elements() -> None:
    result = parse_mat5(header())
    assert isinstance(result, ParseResult)
    assert result.elements == ()


@pytest.mark.parametrize("wrap", [bytes, bytearray, memoryview])
def test_accepts_any_bytes_like(wrap) -> None:
    raw = mat_file(numeric_matrix("a", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,)))
    result = parse_mat5(wrap(raw))
    assert isinstance(result.elements[0], NumericMatrix)


def test_foreign_top_level_type_is_skipped(diagnostics, sink) -> None:
    foreign = subelement(DataType.DOUBLE, struct.pack("<2d", 1.0, 2.0))
    following = numeric_matrix("a", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    result = parse_mat5(mat_file(foreign, following), on_diagnostic=sink)
    assert result.elements[0] == Unsupported(reason="DOUBLE element")
    assert result.elements[1].name == "a"
    assert len(diagnostics) == 1
    assert diagnostics[0].event == "unsupported_element_type"
    assert diagnostics[0].offset == 128
    assert diagnostics[0].context == {"data_type": "DOUBLE"}


def test_last_element_may_omit_padding(sink) -> None:
    foreign = subelement(DataType.UINT8, b"abc", compact=False)
    assert len(foreign) == 16
    result = parse_mat5(mat_file(foreign[:11]), on_diagnostic=sink)
    assert result.elements == (Unsupported(reason="UINT8 element"),)


def test_unknown_top_level_type_code() -> None:
    raw = mat_file(struct.pack("<II", 8, 8) + b"\x00" * 8)
    with pytest.raises(UnknownTypeCodeError) as exc:
        parse_mat5(raw)
    assert exc.value.offset == 128


def test_element_longer_than_input_is_incomplete() -> None:
    raw = numeric_matrix("a", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    with pytest.raises(IncompleteError) as exc:
        parse_mat5(mat_file(raw[:-8]))
    assert exc.value.offset == 136


def test_trailing_partial_tag_is_incomplete() -> None:
    raw = numeric_matrix("a", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    with pytest.raises(IncompleteError):
        parse_mat5(mat_file(raw) + b"\x0e\x00")


def test_empty_top_level_matrix(diagnostics, sink) -> None:
    result = parse_mat5(mat_file(tag(DataType.MATRIX, 0)), on_diagnostic=sink)
    assert result.elements == (Unsupported(reason="empty MATRIX element"),)
    assert diagnostics[0].event == "empty_matrix"


def test_default_diagnostic_sink_logs_warning() -> None:
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        body = array_flags(ArrayClass.CELL) + dimensions((1, 1)) + array_name("c")
        parse_mat5(mat_file(matrix(body)))
    finally:
        logger.remove(handler_id)
    assert len(messages) == 1
    assert "unsupported_array_class" in messages[0]
    assert messages[0].record["extra"]["event"] == "unsupported_array_class"
