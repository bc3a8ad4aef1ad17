"""Analyzer, JSON report and CLI entry points."""

from __future__ import annotations

import hashlib
import json

import pytest

from mat5_builder import (
    array_flags,
    array_name,
    dimensions,
    mat_file,
    matrix,
    numeric_matrix,
    struct_matrix,
)
from mat_forensics.analysis.mat5_analyzer import Mat5Analyzer, walk_elements
from mat_forensics.cli import main
from mat_forensics.model_formats.mat5.mat5 import ParseOptions
from mat_forensics.model_formats.mat5.mat5_parser import parse_mat5
from mat_forensics.model_formats.mat5.mat5_types import ArrayClass, DataType
from mat_forensics.observability import to_dict


@pytest.fixture
def sparse1_path(tmp_path, sparse1_bytes):
    p = tmp_path / "sparse1.mat"
    p.write_bytes(sparse1_bytes)
    return p


def test_analyzer_on_sparse_file(sparse1_path, sparse1_bytes) -> None:
    rep = Mat5Analyzer(str(sparse1_path)).run(stages=["sha256", "structure"])
    assert rep.ok
    assert rep.format == "mat5"
    assert rep.file_size == len(sparse1_bytes)
    assert rep.sha256_hex == hashlib.sha256(sparse1_bytes).hexdigest()
    assert rep.stages_run == ["sha256", "structure"]
    assert rep.metadata["endian"] == "LE"
    assert rep.metadata["version"] == "0x0100"
    assert rep.metadata["n_elements"] == 1
    assert "parse_ms" in rep.metadata

    elements = rep.group("element")
    assert [f.name for f in elements] == ["element:sparse1"]
    assert elements[0].context["kind"] == "SparseMatrix"
    assert elements[0].context["nzmax"] == 7

    invariants = {f.name: f.ok for f in rep.group("invariant")}
    assert invariants == {
        "invariant:sparse_cardinality:sparse1": True,
        "invariant:csc_layout:sparse1": True,
    }


def test_analyzer_stage_selection(sparse1_path) -> None:
    rep = Mat5Analyzer(str(sparse1_path)).run(stages=["sha256"])
    assert rep.stages_run == ["sha256"]
    assert rep.findings == []


def test_analyzer_reports_header_failure(tmp_path) -> None:
    p = tmp_path / "bad.mat"
    p.write_bytes(b"\x00" * 128)
    rep = Mat5Analyzer(str(p)).run(stages=["structure"])
    assert not rep.ok
    assert rep.reason_matrix[0].target == "mat5 header"
    assert rep.reason_matrix[0].reason.startswith("MalformedHeaderError")


def test_analyzer_reports_element_failure(tmp_path) -> None:
    el = numeric_matrix("a", (2, 2), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    p = tmp_path / "count.mat"
    p.write_bytes(mat_file(el))
    rep = Mat5Analyzer(str(p)).run(stages=["structure"])
    assert not rep.ok
    assert rep.reason_matrix[0].target == "mat5 elements"
    assert rep.reason_matrix[0].reason.startswith("SanityCheckError")


def test_analyzer_on_empty_file(tmp_path) -> None:
    p = tmp_path / "empty.mat"
    p.write_bytes(b"")
    rep = Mat5Analyzer(str(p)).run(stages=["sha256", "structure"])
    assert rep.file_size == 0
    assert not rep.ok
    assert rep.reason_matrix[0].target == "mat5 header"


def test_analyzer_records_diagnostics(tmp_path) -> None:
    cell = matrix(array_flags(ArrayClass.CELL) + dimensions((1, 1)) + array_name("c"))
    p = tmp_path / "cell.mat"
    p.write_bytes(mat_file(cell))
    rep = Mat5Analyzer(str(p)).run(stages=["structure"])
    assert rep.ok
    diags = rep.group("diagnostic")
    assert [f.name for f in diags] == ["diagnostic:unsupported_array_class:0"]
    assert diags[0].context == {"offset": 136, "array_class": "CELL"}


def test_analyzer_honours_max_depth(tmp_path) -> None:
    leaf = numeric_matrix("", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    p = tmp_path / "nested.mat"
    p.write_bytes(mat_file(struct_matrix("s", (1, 1), ["x"], [leaf])))
    assert Mat5Analyzer(str(p)).run(stages=["structure"]).ok
    rep = Mat5Analyzer(str(p), options=ParseOptions(max_depth=0)).run(stages=["structure"])
    assert not rep.ok
    assert "NestingDepthError" in rep.reason_matrix[0].reason


def test_walk_names_nested_fields() -> None:
    leaf = numeric_matrix("", (1, 1), ArrayClass.DOUBLE, DataType.DOUBLE, (1.0,))
    inner = struct_matrix("", (1, 1), ["x"], [leaf])
    result = parse_mat5(mat_file(struct_matrix("outer", (1, 1), ["inner"], [inner])))
    paths = [path for path, _ in walk_elements(result.elements)]
    assert paths == ["outer", "outer.inner", "outer.inner.x"]


def test_to_dict_uses_enum_names(sparse1_bytes) -> None:
    d = to_dict(parse_mat5(sparse1_bytes))
    el = d["elements"][0]
    assert el["flags"]["array_class"] == "SPARSE"
    assert el["real"]["data_type"] == "DOUBLE"
    assert el["row_indices"] == [5, 7, 2, 0, 1, 3, 6]


def test_cli_scan_writes_json(sparse1_path, tmp_path) -> None:
    out = tmp_path / "report.json"
    assert main(["scan", str(sparse1_path), "--json-out", str(out)]) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["ok"] is True
    assert data["format"] == "mat5"
    assert data["metadata"]["endian"] == "LE"


def test_cli_scan_failed_file_still_returns_zero(tmp_path, capsys) -> None:
    p = tmp_path / "bad.mat"
    p.write_bytes(b"\x00" * 128)
    assert main(["scan", str(p)]) == 0
    assert "FAILED" in capsys.readouterr().out


def test_cli_missing_file(tmp_path) -> None:
    assert main(["scan", str(tmp_path / "nope.mat")]) == 2


def test_cli_version(capsys) -> None:
    assert main(["version"]) == 0
    assert "MAT Forensics Version" in capsys.readouterr().out


def test_cli_without_command() -> None:
    assert main([]) == 1


def test_cli_rejects_non_positive_depth(sparse1_path) -> None:
    with pytest.raises(SystemExit):
        main(["scan", str(sparse1_path), "--max-depth", "0"])
