"""
Motion Sync Viewer - Table Parser
Turns spreadsheet, CSV and raw JSON documents into a dataset collection.

- Workbooks (.xlsx/.xlsm): one dataset per worksheet, first non-empty row is the header
- CSV/TSV: one dataset named after the file stem
- JSON: the document itself if it is an array, else the first array under
  data|frames|samples|points|series, as the single dataset "Data"
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time as time_cls
from pathlib import Path
from typing import Optional, List, Any, Iterable, Sequence

import openpyxl

from config import FPS, JSON_ARRAY_KEYS, JSON_DATASET_NAME, TIME_KEYS
from core.channels import is_finite_number
from core.errors import TableParseError
from core.models import Dataset, DatasetCollection, Row

logger = logging.getLogger("table_parser")

WORKBOOK_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
CSV_SUFFIXES = (".csv", ".tsv", ".txt")
JSON_SUFFIXES = (".json",)


@dataclass
class ParsedTable:
    datasets: DatasetCollection
    kind: str  # "workbook" | "csv" | "json"

    @property
    def names(self) -> List[str]:
        return list(self.datasets.keys())


def coerce_cell(value: Any) -> Any:
    """
    Normalize one cell: numbers stay numbers, numeric text becomes float,
    blank text becomes None, dates become ISO strings.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (datetime, date, time_cls)):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    return number if math.isfinite(number) else text


def rows_from_grid(grid: Iterable[Sequence[Any]], fps: int = FPS) -> Dataset:
    """
    Convert a header + records grid into row dicts.

    Blank cells are left out of the row. If the header has ``frame`` but no
    time column, ``t = frame / fps`` is derived.
    """
    header: Optional[List[str]] = None
    rows: Dataset = []

    for raw in grid:
        cells = list(raw or [])
        if header is None:
            if any(coerce_cell(c) is not None for c in cells):
                header = [str(c).strip() if c is not None else "" for c in cells]
            continue

        row: Row = {}
        for name, cell in zip(header, cells):
            if not name:
                continue
            value = coerce_cell(cell)
            if value is not None:
                row[name] = value
        if row:
            rows.append(row)

    if header and "frame" in header and not any(k in header for k in TIME_KEYS):
        for i, row in enumerate(rows):
            frame = row.get("frame")
            if is_finite_number(frame):
                rows[i] = {"t": frame / fps, **row}

    return rows


def parse_workbook(data: bytes, fps: int = FPS) -> DatasetCollection:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise TableParseError(f"Couldn't read that workbook: {e}") from e

    datasets: DatasetCollection = {}
    try:
        for ws in wb.worksheets:
            try:
                rows = rows_from_grid(ws.iter_rows(values_only=True), fps)
            except Exception as e:
                raise TableParseError(f"Couldn't read sheet {ws.title!r}: {e}") from e
            if rows:
                datasets[ws.title] = rows
            else:
                logger.debug(f"Skipping empty sheet {ws.title!r}")
    finally:
        wb.close()
    return datasets


def parse_csv(data: bytes, name: str, fps: int = FPS, delimiter: str = ",") -> DatasetCollection:
    text = data.decode("utf-8-sig", errors="replace")
    try:
        rows = rows_from_grid(csv.reader(io.StringIO(text), delimiter=delimiter), fps)
    except csv.Error as e:
        raise TableParseError(f"Couldn't read {name!r}: {e}") from e
    return {name: rows} if rows else {}


def normalize_to_array(document: Any) -> Optional[list]:
    """The document if it is a list, else the first list under a recognized key."""
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for key in JSON_ARRAY_KEYS:
            if isinstance(document.get(key), list):
                return document[key]
    return None


def parse_json_document(data: bytes) -> DatasetCollection:
    try:
        document = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TableParseError(f"Couldn't read that JSON: {e}") from e

    rows = normalize_to_array(document)
    if rows is None:
        keys = "|".join(JSON_ARRAY_KEYS)
        raise TableParseError(f"No array payload found (expected a list or one of {keys})")
    return {JSON_DATASET_NAME: rows}


def _detect_kind(data: bytes, filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix in WORKBOOK_SUFFIXES:
        return "workbook"
    if suffix in JSON_SUFFIXES:
        return "json"
    if suffix in CSV_SUFFIXES:
        return "csv"
    # Unknown extension: zip container -> workbook, bracket -> JSON, else text
    if data[:2] == b"PK":
        return "workbook"
    if data.lstrip()[:1] in (b"[", b"{"):
        return "json"
    return "csv"


def parse_table(data: bytes, filename: str, fps: int = FPS) -> ParsedTable:
    """
    Parse a table file into named datasets.

    Raises:
        TableParseError: unreadable input or no usable dataset
    """
    kind = _detect_kind(data, filename)
    if kind == "workbook":
        datasets = parse_workbook(data, fps)
    elif kind == "json":
        datasets = parse_json_document(data)
    else:
        delimiter = "\t" if filename.lower().endswith(".tsv") else ","
        datasets = parse_csv(data, Path(filename).stem or JSON_DATASET_NAME, fps, delimiter)

    if not datasets:
        raise TableParseError("No usable sheets found.")

    logger.info(f"Parsed {filename}: {kind}, datasets={list(datasets.keys())}")
    return ParsedTable(datasets=datasets, kind=kind)
