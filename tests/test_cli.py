"""Tests for the receipts-core command line."""

import json

import pytest

from receipts_core.cli import _build_parser, build_pipeline, main


@pytest.fixture
def export_file(tmp_path, raw_receipt, raw_online_simple):
    path = tmp_path / "receipts.json"
    path.write_text(json.dumps([raw_receipt, raw_online_simple, {"orderNumber": "bad"}]), encoding="utf-8")
    return path


def test_prints_summary(export_file, capsys) -> None:
    assert main([str(export_file)]) == 0

    captured = capsys.readouterr()
    summary = json.loads(captured.out)
    assert summary["transaction_count"] == 2
    assert summary["overview"]["visit_count"] == 2
    assert "1 of 3 records could not be processed" in captured.err


def test_sections_and_filters(export_file, capsys) -> None:
    code = main([str(export_file), "--location", "1", "--section", "overview", "--section", "payments"])

    summary = json.loads(capsys.readouterr().out)
    assert code == 0
    assert summary["filtered_count"] == 1
    assert set(summary) == {"normalization", "transaction_count", "filtered_count", "filters", "overview", "payments"}
    assert summary["filters"] == [{"name": "LocationFilter", "locations": ["1"]}]


def test_writes_output_file(export_file, tmp_path) -> None:
    out = tmp_path / "summary.json"

    assert main([str(export_file), "-o", str(out)]) == 0
    assert json.loads(out.read_text(encoding="utf-8"))["filtered_count"] == 2


def test_graphql_envelope_and_multiple_files(tmp_path, raw_receipt, capsys) -> None:
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"
    first.write_text(json.dumps({"data": {"receiptsWithCounts": {"receipts": [raw_receipt]}}}), encoding="utf-8")
    second.write_text(json.dumps([raw_receipt]), encoding="utf-8")

    assert main([str(first), str(second), "--section", "overview"]) == 0
    assert json.loads(capsys.readouterr().out)["transaction_count"] == 2


def test_no_processable_records(tmp_path) -> None:
    path = tmp_path / "empty.json"
    path.write_text(json.dumps([{"foo": 1}]), encoding="utf-8")

    assert main([str(path)]) == 1


@pytest.mark.parametrize(
    "extra",
    [
        ["--config", "does-not-exist.json"],
        ["--start", "2024-05-01", "--end", "2024-01-01"],
    ],
)
def test_bad_input_exit_code(export_file, extra, capsys) -> None:
    assert main([str(export_file), *extra]) == 2
    assert "ERROR" in capsys.readouterr().err


def test_export_that_is_not_utf8(tmp_path, capsys) -> None:
    path = tmp_path / "export.json"
    path.write_bytes(b"\xff\xfe")

    assert main([str(path)]) == 2
    assert "ERROR" in capsys.readouterr().err


def test_missing_export_file(tmp_path) -> None:
    assert main([str(tmp_path / "nope.json")]) == 2


def test_build_pipeline_from_flags() -> None:
    args = _build_parser().parse_args(
        ["x.json", "--year", "2024", "--year", "2023", "--start", "2023-06-01", "--type", "Sales"]
    )

    config = build_pipeline(args).get_filters_config()

    assert [c["name"] for c in config] == ["YearFilter", "DateRangeFilter", "TransactionTypeFilter"]
    assert config[1] == {"name": "DateRangeFilter", "start": "2023-06-01", "end": "9999-12-31"}
