import io
import json
from pathlib import Path
import sys

import openpyxl
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from collector.table_parser import (
    parse_table,
    rows_from_grid,
    normalize_to_array,
    coerce_cell,
)
from core.errors import TableParseError


def _workbook_bytes(sheets):
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for title, grid in sheets.items():
        ws = wb.create_sheet(title)
        for row in grid:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_workbook_sheets_become_datasets():
    data = _workbook_bytes({
        "Summary": [["Metric", "Value"], ["Peak", 12.5]],
        "Joint Positions": [
            ["t", "RightWrist/Velocity_X", "Note"],
            [0.0, 1.0, "start"],
            [0.5, 2.0, None],
        ],
        "Empty": [],
    })

    parsed = parse_table(data, "Kinematic_Data (1).xlsx")

    assert parsed.kind == "workbook"
    assert parsed.names == ["Summary", "Joint Positions"]
    assert parsed.datasets["Joint Positions"] == [
        {"t": 0.0, "RightWrist/Velocity_X": 1.0, "Note": "start"},
        {"t": 0.5, "RightWrist/Velocity_X": 2.0},
    ]


def test_frame_column_derives_time():
    rows = rows_from_grid([["frame", "v"], [0, 1], [60, 2], [120, 3]], fps=120)

    assert [r["t"] for r in rows] == [0.0, 0.5, 1.0]
    assert rows[1] == {"t": 0.5, "frame": 60, "v": 2}


def test_header_is_first_non_empty_row():
    rows = rows_from_grid([[None, None], ["", " "], ["a", "b"], [1, "2.5"], [None, None]])
    assert rows == [{"a": 1, "b": 2.5}]


def test_csv_upload_named_after_file_stem():
    data = "\ufefftime,Hip/Rotation_Z\n0,10\n0.25,12\n".encode("utf-8")

    parsed = parse_table(data, "pitch 3.csv")

    assert parsed.kind == "csv"
    assert parsed.datasets == {"pitch 3": [
        {"time": 0.0, "Hip/Rotation_Z": 10.0},
        {"time": 0.25, "Hip/Rotation_Z": 12.0},
    ]}


def test_json_document_array_or_known_key():
    rows = [{"t": 0, "v": 1}]
    assert parse_table(json.dumps(rows).encode(), "x.json").datasets == {"Data": rows}

    doc = {"meta": {"fps": 120}, "frames": rows}
    parsed = parse_table(json.dumps(doc).encode(), "capture.json")
    assert parsed.kind == "json"
    assert parsed.datasets == {"Data": rows}


def test_normalize_to_array_probe_order():
    assert normalize_to_array({"series": [2], "data": [1]}) == [1]
    assert normalize_to_array({"data": "nope", "points": [3]}) == [3]
    assert normalize_to_array({"other": [1]}) is None
    assert normalize_to_array("text") is None


def test_json_without_array_payload_is_a_parse_error():
    with pytest.raises(TableParseError):
        parse_table(b'{"meta": {}}', "capture.json")

    with pytest.raises(TableParseError):
        parse_table(b"{broken", "capture.json")


def test_unknown_extension_is_sniffed():
    data = _workbook_bytes({"Sheet": [["v"], [1]]})
    assert parse_table(data, "upload.bin").kind == "workbook"
    assert parse_table(b'[{"v": 1}]', "upload").kind == "json"
    assert parse_table(b"v\n1\n", "upload").kind == "csv"


def test_no_usable_sheets():
    data = _workbook_bytes({"Blank": []})
    with pytest.raises(TableParseError, match="No usable sheets"):
        parse_table(data, "blank.xlsx")

    with pytest.raises(TableParseError):
        parse_table(b"not a zip", "broken.xlsx")


def test_coerce_cell():
    assert coerce_cell(" 3.5 ") == 3.5
    assert coerce_cell("  ") is None
    assert coerce_cell("inf") == "inf"
    assert coerce_cell("abc") == "abc"
    assert coerce_cell(7) == 7


def test_csv_reader_errors_become_parse_errors():
    data = b"t,v,note\n0,1," + b"x" * 200000 + b"\n"

    with pytest.raises(TableParseError, match="field larger than field limit"):
        parse_table(data, "huge.csv")
