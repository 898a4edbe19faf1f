"""Spreadsheet reading and writing for catalog import and registry export."""
from __future__ import annotations

import csv
import logging
from datetime import date
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import xlrd
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .errors import ImportFileError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".xlsx", ".xls", ".csv"}

EXPORT_SHEET_NAME = "Inventory"


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (date,)):
        return value.isoformat()
    return str(value).strip()


def _rows_from_matrix(matrix: Sequence[Sequence[Any]]) -> Tuple[List[str], List[Dict[str, str]]]:
    if not matrix:
        raise ImportFileError("Missing header row")
    header_labels = [_cell_to_text(value) for value in matrix[0]]
    if not any(header_labels):
        raise ImportFileError("Missing header row")
    rows: List[Dict[str, str]] = []
    for raw_row in matrix[1:]:
        record: Dict[str, str] = {}
        for col_index, label in enumerate(header_labels):
            if not label:
                continue
            value = raw_row[col_index] if col_index < len(raw_row) else None
            record[label] = _cell_to_text(value)
        if not any(value for value in record.values()):
            continue
        rows.append(record)
    return header_labels, rows


def _parse_xlsx(data: bytes) -> List[List[Any]]:
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportFileError("Invalid XLSX file") from exc
    try:
        if not workbook.sheetnames:
            raise ImportFileError("Missing worksheet")
        sheet = workbook[workbook.sheetnames[0]]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _parse_xls(data: bytes) -> List[List[Any]]:
    try:
        workbook = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise ImportFileError("Invalid XLS file") from exc
    if workbook.nsheets == 0:
        raise ImportFileError("Missing worksheet")
    sheet = workbook.sheet_by_index(0)
    matrix: List[List[Any]] = []
    for row_index in range(sheet.nrows):
        values: List[Any] = []
        for col_index in range(sheet.ncols):
            cell = sheet.cell(row_index, col_index)
            if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                values.append(None)
            else:
                values.append(cell.value)
        matrix.append(values)
    return matrix


def _parse_csv(data: bytes) -> List[List[Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportFileError("CSV file must be UTF-8 encoded") from exc
    return [list(row) for row in csv.reader(StringIO(text))]


def read_first_sheet(data: bytes, filename: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """Return the header labels and non-empty data rows of the first sheet.

    Cell values are converted to stripped strings; whole numbers lose their
    trailing ``.0``.
    """

    extension = Path(filename or "").suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise ImportFileError("Please choose an .xlsx, .xls or .csv file")
    if not data:
        raise ImportFileError("Empty file")
    if extension == ".xlsx":
        matrix = _parse_xlsx(data)
    elif extension == ".xls":
        matrix = _parse_xls(data)
    else:
        matrix = _parse_csv(data)
    header_labels, rows = _rows_from_matrix(matrix)
    logger.debug("Read %d data rows from %s", len(rows), filename)
    return header_labels, rows


def write_workbook(
    fieldnames: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    *,
    sheet_name: str = EXPORT_SHEET_NAME,
    column_widths: Optional[Sequence[int]] = None,
) -> bytes:
    """Render rows as a single-sheet xlsx workbook with one header row."""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    sheet.append(list(fieldnames))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        values = []
        for field in fieldnames:
            value = row.get(field, "")
            values.append("" if value is None else value)
        sheet.append(values)
        # openpyxl turns any string starting with "=" into a formula
        for cell in sheet[sheet.max_row]:
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"
    if column_widths:
        for index, width in enumerate(column_widths, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_filename(prefix: str = "inventory_export", on: Optional[date] = None) -> str:
    day = on or date.today()
    return f"{prefix}_{day.isoformat()}.xlsx"


__all__ = [
    "EXPORT_SHEET_NAME",
    "SUPPORTED_EXTENSIONS",
    "export_filename",
    "read_first_sheet",
    "write_workbook",
]
