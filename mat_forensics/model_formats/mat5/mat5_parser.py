# mat_forensics/model_formats/mat5/mat5_parser.py
"""
MAT5 (MATLAB Level 5) decoder with per-file endianness.

Every reader takes ``(buf, off, ...)`` and returns ``(value, next_off)``.
Offsets are absolute within ``buf``; element bodies are bounded by slicing
``buf[:end]`` so positions stay comparable across nested readers.
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from loguru import logger

from mat_forensics.observability import Diagnostic, DiagnosticSink, log_diagnostic

from .mat5 import (
    HEADER_TEXT_SIZE,
    MAT5_VERSION,
    ArrayFlags,
    DataElement,
    DecompressionError,
    Header,
    IncompleteError,
    MalformedHeaderError,
    MAT5ParseError,
    NestingDepthError,
    NumericData,
    NumericMatrix,
    ParseOptions,
    ParseResult,
    SanityCheckError,
    SparseMatrix,
    StructureMatrix,
    Tag,
    UnknownTypeCodeError,
    Unsupported,
    Utf8DecodeError,
    element_count,
)
from .mat5_types import (
    NUMERIC_FORMATS,
    UNSUPPORTED_CLASSES,
    ArrayClass,
    DataType,
    class_accepts_storage,
)

_PREFIX = {"LE": "<", "BE": ">"}

_FLAG_COMPLEX = 0x0800
_FLAG_GLOBAL = 0x0400
_FLAG_LOGICAL = 0x0200


@dataclass(frozen=True)
class _Context:
    endian: str
    max_depth: int
    emit: DiagnosticSink


def _unpack(buf: memoryview, off: int, fmt: str) -> tuple[tuple, int]:
    size = struct.calcsize(fmt)
    if off + size > len(buf):
        raise IncompleteError(
            f"Need {size} bytes, {max(len(buf) - off, 0)} available",
            offset=off,
            needed=size,
        )
    return struct.unpack_from(fmt, buf, off), off + size


def _bytes(buf: memoryview, off: int, n: int) -> tuple[bytes, int]:
    if off + n > len(buf):
        raise IncompleteError(
            f"Need {n} bytes, {max(len(buf) - off, 0)} available", offset=off, needed=n
        )
    return bytes(buf[off : off + n]), off + n


def _check(ok: bool, message: str, off: int) -> None:
    if not ok:
        raise SanityCheckError(message, offset=off)


def _ceil_to_multiple(x: int, multiple: int) -> int:
    return ((x + multiple - 1) // multiple) * multiple


def _skip_padding(buf: memoryview, off: int, tag: Tag) -> int:
    _, off = _bytes(buf, off, tag.padding_size)
    return off


def _decode_utf8(raw: bytes, off: int, what: str) -> str:
    try:
        return raw.decode("utf-8", "strict")
    except UnicodeDecodeError as e:
        raise Utf8DecodeError(f"{what} is not valid UTF-8: {e.reason}", offset=off) from e


# ---------------------------------------------------------------------------
# Header and tags
# ---------------------------------------------------------------------------


def parse_header(buf: memoryview) -> tuple[Header, int]:
    """Parse the 128-byte preamble and detect byte order."""
    if len(buf) >= 4 and b"\x00" in bytes(buf[:4]):
        # A null in the first four bytes marks a Level 4 file.
        raise MalformedHeaderError(
            "Null byte in first four header bytes; not a MAT5 file", offset=0
        )
    text_raw, off = _bytes(buf, 0, HEADER_TEXT_SIZE)
    _, off = _bytes(buf, off, 8)  # subsystem data offset
    # Read the version as little-endian and fix it up once the marker is known.
    (version,), off = _unpack(buf, off, "<H")
    marker, off = _bytes(buf, off, 2)
    if marker == b"IM":
        endian = "LE"
    elif marker == b"MI":
        endian = "BE"
        version = ((version & 0xFF) << 8) | (version >> 8)
    else:
        raise MalformedHeaderError(f"Invalid endianness marker {marker!r}", offset=126)
    if version != MAT5_VERSION:
        raise MalformedHeaderError(f"Unsupported version 0x{version:04x}", offset=124)
    try:
        text = text_raw.decode("utf-8")
    except UnicodeDecodeError:
        text = ""
    return Header(text=text, endian=endian, version=version), off


def _to_data_type(code: int, off: int) -> DataType:
    try:
        return DataType(code)
    except ValueError as e:
        raise UnknownTypeCodeError(f"Unknown data type code {code}", offset=off) from e


def read_tag(buf: memoryview, off: int, endian: str) -> tuple[Tag, int]:
    """Read a long (8-byte) or compact (4-byte) tag.

    The first word is peeked: zero upper 16 bits select the long form.
    Padding is reported but never consumed here.
    """
    e = _PREFIX[endian]
    (word,), _ = _unpack(buf, off, e + "I")
    if word & 0xFFFF0000 == 0:
        (code, size), _ = _unpack(buf, off, e + "II")
        tag = Tag(_to_data_type(code, off), size, _ceil_to_multiple(size, 8) - size)
        return tag, off + tag.tag_size
    data_type = _to_data_type(word & 0xFFFF, off)
    size = word >> 16
    _check(size <= 4, f"Compact tag declares {size} bytes (max 4)", off)
    tag = Tag(data_type, size, 4 - size, compact=True)
    return tag, off + tag.tag_size


# ---------------------------------------------------------------------------
# Subelements
# ---------------------------------------------------------------------------


def read_numeric_subelement(buf: memoryview, off: int, endian: str) -> tuple[NumericData, int]:
    """Read one tagged run of numeric primitives."""
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    fmt = NUMERIC_FORMATS.get(tag.data_type)
    _check(fmt is not None, f"{tag.data_type.name} is not a numeric data type", tag_off)
    _check(
        tag.byte_size % fmt.width == 0,
        f"{tag.byte_size} bytes is not a multiple of {tag.data_type.name} width {fmt.width}",
        tag_off,
    )
    count = tag.byte_size // fmt.width
    values, off = _unpack(buf, off, f"{_PREFIX[endian]}{count}{fmt.code}")
    off = _skip_padding(buf, off, tag)
    return NumericData(tag.data_type, values), off


def read_array_flags(buf: memoryview, off: int, endian: str) -> tuple[ArrayFlags, int]:
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.UINT32 and tag.byte_size == 8,
        f"Array flags must be UINT32/8 bytes, got {tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    words_off = off
    (flags_word, nzmax), off = _unpack(buf, off, _PREFIX[endian] + "II")
    try:
        array_class = ArrayClass(flags_word & 0xFF)
    except ValueError as e:
        raise UnknownTypeCodeError(
            f"Unknown array class {flags_word & 0xFF}", offset=words_off
        ) from e
    off = _skip_padding(buf, off, tag)
    return (
        ArrayFlags(
            is_complex=bool(flags_word & _FLAG_COMPLEX),
            is_global=bool(flags_word & _FLAG_GLOBAL),
            is_logical=bool(flags_word & _FLAG_LOGICAL),
            array_class=array_class,
            nzmax=nzmax,
        ),
        off,
    )


def read_dimensions(buf: memoryview, off: int, endian: str) -> tuple[Tuple[int, ...], int]:
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.INT32 and tag.byte_size >= 8 and tag.byte_size % 4 == 0,
        f"Dimensions must be INT32, >= 8 bytes, multiple of 4; got "
        f"{tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    dims, off = _unpack(buf, off, f"{_PREFIX[endian]}{tag.byte_size // 4}i")
    _check(all(d >= 0 for d in dims), f"Dimensions hold negative extents {dims}", tag_off)
    off = _skip_padding(buf, off, tag)
    return dims, off


def read_array_name(
    buf: memoryview, off: int, endian: str, *, allow_empty: bool = False
) -> tuple[str, int]:
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.INT8 and (allow_empty or tag.byte_size > 0),
        f"Array name must be non-empty INT8, got {tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    raw, nxt = _bytes(buf, off, tag.byte_size)
    name = _decode_utf8(raw, off, "Array name")
    return name, _skip_padding(buf, nxt, tag)


def read_field_name_length(buf: memoryview, off: int, endian: str) -> tuple[int, int]:
    """Read the tag-prefixed 4-byte field-name stride of a structure."""
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.INT32 and tag.byte_size == 4,
        f"Field name length must be INT32/4 bytes, got {tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    (length,), off = _unpack(buf, off, _PREFIX[endian] + "i")
    return length, _skip_padding(buf, off, tag)


def read_field_names(
    buf: memoryview, off: int, endian: str, count: int, stride: int
) -> tuple[Tuple[str, ...], int]:
    """Read ``count`` null-terminated names, each occupying ``stride`` bytes."""
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.INT8 and tag.byte_size == count * stride,
        f"Field names must be INT8 of {count} x {stride} bytes, got "
        f"{tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    names: List[str] = []
    for _ in range(count):
        slot_off = off
        raw, off = _bytes(buf, off, stride)
        names.append(_decode_utf8(raw.split(b"\x00", 1)[0], slot_off, "Field name"))
    return tuple(names), _skip_padding(buf, off, tag)


def read_index_array(
    buf: memoryview, off: int, endian: str, what: str = "Index array"
) -> tuple[Tuple[int, ...], int]:
    """Read a sparse row-index or column-shift array as non-negative ints."""
    tag_off = off
    tag, off = read_tag(buf, off, endian)
    _check(
        tag.data_type == DataType.INT32 and tag.byte_size > 0 and tag.byte_size % 4 == 0,
        f"{what} must be non-empty INT32, got {tag.data_type.name}/{tag.byte_size}",
        tag_off,
    )
    values, off = _unpack(buf, off, f"{_PREFIX[endian]}{tag.byte_size // 4}i")
    _check(all(v >= 0 for v in values), f"{what} holds negative entries", tag_off)
    return values, _skip_padding(buf, off, tag)


# ---------------------------------------------------------------------------
# Matrix assembly
# ---------------------------------------------------------------------------


def _read_numeric_matrix(
    buf: memoryview, off: int, ctx: _Context, flags: ArrayFlags, allow_empty_name: bool
) -> tuple[NumericMatrix, int]:
    dims, off = read_dimensions(buf, off, ctx.endian)
    name, off = read_array_name(buf, off, ctx.endian, allow_empty=allow_empty_name)
    n_required = element_count(dims)

    def read_part(off: int, part: str) -> tuple[NumericData, int]:
        start = off
        data, off = read_numeric_subelement(buf, off, ctx.endian)
        _check(
            len(data) == n_required,
            f"{part} part of {name!r} has {len(data)} elements, dimensions require {n_required}",
            start,
        )
        _check(
            class_accepts_storage(flags.array_class, data.data_type),
            f"{flags.array_class.name} array {name!r} cannot be stored as "
            f"{data.data_type.name}",
            start,
        )
        return data, off

    real, off = read_part(off, "Real")
    imag = None
    if flags.is_complex:
        imag, off = read_part(off, "Imaginary")
    return NumericMatrix(flags, dims, name, real, imag), off


def _read_sparse_matrix(
    buf: memoryview, off: int, ctx: _Context, flags: ArrayFlags, allow_empty_name: bool
) -> tuple[SparseMatrix, int]:
    dims, off = read_dimensions(buf, off, ctx.endian)
    name, off = read_array_name(buf, off, ctx.endian, allow_empty=allow_empty_name)
    rows, off = read_index_array(buf, off, ctx.endian, "Row index")
    cols, off = read_index_array(buf, off, ctx.endian, "Column shift")

    # Sparse payloads allow wider storage; only the count is checked.
    start = off
    real, off = read_numeric_subelement(buf, off, ctx.endian)
    _check(
        len(real) == flags.nzmax,
        f"Sparse {name!r} has {len(real)} real values, nzmax is {flags.nzmax}",
        start,
    )
    imag = None
    if flags.is_complex:
        start = off
        imag, off = read_numeric_subelement(buf, off, ctx.endian)
        _check(
            len(imag) == flags.nzmax,
            f"Sparse {name!r} has {len(imag)} imaginary values, nzmax is {flags.nzmax}",
            start,
        )
    return SparseMatrix(flags, dims, name, rows, cols, real, imag), off


def _read_structure_matrix(
    buf: memoryview,
    off: int,
    ctx: _Context,
    flags: ArrayFlags,
    allow_empty_name: bool,
    depth: int,
) -> tuple[StructureMatrix, int]:
    dims, off = read_dimensions(buf, off, ctx.endian)
    name, off = read_array_name(buf, off, ctx.endian, allow_empty=allow_empty_name)
    stride_off = off
    stride, off = read_field_name_length(buf, off, ctx.endian)
    field_count = element_count(dims)
    _check(
        field_count == 0 or stride > 0,
        f"Structure {name!r} declares field name length {stride}",
        stride_off,
    )
    field_names, off = read_field_names(buf, off, ctx.endian, field_count, stride)

    fields: List[DataElement] = []
    for _ in range(field_count):
        field, off = _read_field(buf, off, ctx, depth + 1)
        fields.append(field)
    return (
        StructureMatrix(flags, dims, name, stride, field_names, tuple(fields)),
        off,
    )


def _read_matrix(
    buf: memoryview, off: int, ctx: _Context, depth: int, *, nested: bool = False
) -> tuple[DataElement, int]:
    """Dispatch on the declared array class once the flags are read."""
    flags_off = off
    flags, off = read_array_flags(buf, off, ctx.endian)
    cls = flags.array_class
    if cls in UNSUPPORTED_CLASSES:
        ctx.emit(
            Diagnostic(
                event="unsupported_array_class",
                message=f"{cls.name} arrays are not decoded",
                offset=flags_off,
                context={"array_class": cls.name},
            )
        )
        # Caller skips the remainder of the bounded element.
        return Unsupported(reason=f"{cls.name} array", array_class=cls), len(buf)
    if cls == ArrayClass.STRUCT:
        return _read_structure_matrix(buf, off, ctx, flags, nested, depth)
    if cls == ArrayClass.SPARSE:
        return _read_sparse_matrix(buf, off, ctx, flags, nested)
    return _read_numeric_matrix(buf, off, ctx, flags, nested)


def _read_field(buf: memoryview, off: int, ctx: _Context, depth: int) -> tuple[DataElement, int]:
    """Read one structure field: a tagged Matrix element bounded by its length."""
    if depth > ctx.max_depth:
        raise NestingDepthError(f"Nesting depth exceeds {ctx.max_depth}", offset=off)
    tag_off = off
    tag, off = read_tag(buf, off, ctx.endian)
    _check(
        tag.data_type == DataType.MATRIX,
        f"Structure field must be a MATRIX element, got {tag.data_type.name}",
        tag_off,
    )
    end = _element_end(buf, off, tag)
    if tag.byte_size == 0:
        field: DataElement = _empty_matrix(ctx, tag_off)
    else:
        field, _ = _read_matrix(buf[:end], off, ctx, depth, nested=True)
    return field, _skip_padding(buf, end, tag)


def _empty_matrix(ctx: _Context, off: int) -> Unsupported:
    ctx.emit(
        Diagnostic(event="empty_matrix", message="MATRIX element with no content", offset=off)
    )
    return Unsupported(reason="empty MATRIX element")


# ---------------------------------------------------------------------------
# Elements, decompression and driver
# ---------------------------------------------------------------------------


def _element_end(buf: memoryview, off: int, tag: Tag) -> int:
    end = off + tag.byte_size
    if end > len(buf):
        raise IncompleteError(
            f"{tag.data_type.name} element declares {tag.byte_size} bytes, "
            f"{len(buf) - off} available",
            offset=off,
            needed=tag.byte_size,
        )
    return end


def _inflate_element(
    buf: memoryview, off: int, end: int, ctx: _Context, depth: int
) -> DataElement:
    """Inflate a COMPRESSED body and decode the single element inside it."""
    try:
        inflated = zlib.decompress(buf[off:end])
    except zlib.error as e:
        raise DecompressionError(f"Failed to inflate compressed element: {e}", offset=off) from e
    logger.debug(
        "Inflated {src} bytes at offset {off} into {dst} bytes",
        src=end - off,
        off=off,
        dst=len(inflated),
    )
    try:
        element, _ = _read_element(memoryview(inflated), 0, ctx, depth + 1)
    except MAT5ParseError as err:
        err.inflated = True
        raise
    # Trailing bytes of the inflated buffer are ignored.
    return element


def _read_element(
    buf: memoryview, off: int, ctx: _Context, depth: int
) -> tuple[DataElement, int]:
    if depth > ctx.max_depth:
        raise NestingDepthError(f"Nesting depth exceeds {ctx.max_depth}", offset=off)
    tag_off = off
    tag, off = read_tag(buf, off, ctx.endian)
    end = _element_end(buf, off, tag)

    if tag.data_type == DataType.COMPRESSED:
        # Compressed elements carry no padding.
        return _inflate_element(buf, off, end, ctx, depth), end

    if tag.data_type == DataType.MATRIX:
        if tag.byte_size == 0:
            element: DataElement = _empty_matrix(ctx, tag_off)
        else:
            element, _ = _read_matrix(buf[:end], off, ctx, depth)
    else:
        ctx.emit(
            Diagnostic(
                event="unsupported_element_type",
                message=f"Unsupported variable type {tag.data_type.name} "
                "(must be MATRIX or COMPRESSED)",
                offset=tag_off,
                context={"data_type": tag.data_type.name},
            )
        )
        element = Unsupported(reason=f"{tag.data_type.name} element")

    # The last element of a buffer may omit its padding.
    return element, min(end + tag.padding_size, len(buf))


def parse_mat5(
    buf: Union[bytes, bytearray, memoryview],
    *,
    options: Optional[ParseOptions] = None,
    on_diagnostic: Optional[DiagnosticSink] = None,
) -> ParseResult:
    """Decode a complete MAT5 buffer into its header and top-level elements.

    Args:
        buf: The whole file contents.
        options: Decoder limits; defaults to ``ParseOptions()``.
        on_diagnostic: Receives non-fatal events; defaults to a loguru warning.

    Raises:
        MAT5ParseError: On the first structural failure. No partial result is returned.
    """
    mv = buf if isinstance(buf, memoryview) else memoryview(buf)
    options = options or ParseOptions()
    header, off = parse_header(mv)
    ctx = _Context(
        endian=header.endian,
        max_depth=options.max_depth,
        emit=on_diagnostic or log_diagnostic,
    )

    elements: List[DataElement] = []
    while off < len(mv):
        start = off
        element, off = _read_element(mv, off, ctx, 0)
        logger.debug(
            "Element {index} [{start}, {end}) decoded as {kind}",
            index=len(elements),
            start=start,
            end=off,
            kind=type(element).__name__,
        )
        elements.append(element)
    return ParseResult(header=header, elements=tuple(elements))
