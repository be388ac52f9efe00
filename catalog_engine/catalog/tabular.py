"""Tabular file parser for seller catalog uploads.

Turns CSV, XLS and XLSX bytes into a format-independent table: a
normalized header list and numbered raw rows mapping header to text.

Example usage:
    table = parse_tabular(content, "catalog.csv")
    for row in table.rows:
        if not row.is_blank():
            sku = row.get("sku")
"""

import csv
import io
import os
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from catalog_engine.domain.exceptions import UnreadableFileError, UnsupportedFileTypeError

KNOWN_HEADERS: tuple[str, ...] = (
    "sku",
    "title",
    "description",
    "price",
    "stock",
    "category",
    "shippingmethods",
    "mainimageurl",
    "galleryimageurls",
    "weightkg",
    "lengthcm",
    "widthcm",
    "heightcm",
)

REQUIRED_HEADERS: tuple[str, ...] = ("sku", "title", "price", "stock", "category")

_EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


@dataclass
class RawRow:
    """One data row of an uploaded file.

    Attributes:
        row_number: Row number as the seller sees it (header is row 1).
        values: Normalized header to cell text.
    """

    row_number: int
    values: dict[str, str | None] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        """Get a cell by normalized header name."""
        return self.values.get(key)

    def is_blank(self) -> bool:
        """Check whether every cell is empty or whitespace."""
        return all(value is None or not value.strip() for value in self.values.values())


@dataclass
class ParsedTable:
    """Parsed upload."""

    headers: list[str]
    rows: list[RawRow]

    @property
    def total_rows(self) -> int:
        """Number of data rows, blank rows included."""
        return len(self.rows)


def normalize_header(header: Any) -> str | None:
    """Normalize a column header.

    Removes spaces and lower-cases. Unknown headers are kept as-is so
    that extra columns never shift the known ones.

    Args:
        header: Raw header cell.

    Returns:
        Normalized header, or None for a blank header.
    """
    if header is None or _is_missing(header):
        return None
    cleaned = str(header).replace(" ", "").strip().lower()
    return cleaned or None


def file_extension(file_name: str) -> str:
    """Get the lower-cased extension of a file name, dot included."""
    return os.path.splitext(file_name or "")[1].lower()


def guess_content_type(file_name: str) -> str:
    """Guess the content type of an uploaded file from its extension.

    Args:
        file_name: Uploaded file name.

    Returns:
        MIME type string.
    """
    extension = file_extension(file_name)
    if extension == ".csv":
        return "text/csv"
    if extension == ".xlsx":
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    if extension == ".xls":
        return "application/vnd.ms-excel"
    return "application/octet-stream"


def parse_tabular(content: bytes, file_name: str) -> ParsedTable:
    """Parse an uploaded catalog file.

    Args:
        content: Raw file bytes.
        file_name: Original file name; its extension selects the reader.

    Returns:
        ParsedTable with normalized headers and numbered rows.

    Raises:
        UnsupportedFileTypeError: If the extension is not csv, xls or xlsx.
        UnreadableFileError: If the bytes cannot be decoded.
    """
    extension = file_extension(file_name)
    if extension == ".csv":
        return _parse_csv(content, file_name)
    if extension in _EXCEL_ENGINES:
        return _parse_excel(content, file_name, _EXCEL_ENGINES[extension])
    raise UnsupportedFileTypeError(file_name)


def _parse_csv(content: bytes, file_name: str) -> ParsedTable:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnreadableFileError(file_name, "CSV files must be UTF-8 encoded.") from e

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        records = [record for record in reader if record]
    except csv.Error as e:
        raise UnreadableFileError(file_name, str(e)) from e

    if not records:
        return ParsedTable(headers=[], rows=[])

    header_cells = [normalize_header(cell) for cell in records[0]]
    headers = [h for h in header_cells if h]

    rows: list[RawRow] = []
    for row_number, record in enumerate(records[1:], start=2):
        values: dict[str, str | None] = {}
        for header, cell in zip(header_cells, record):
            if header:
                values[header] = cell
        rows.append(RawRow(row_number=row_number, values=values))

    return ParsedTable(headers=headers, rows=rows)


def _parse_excel(content: bytes, file_name: str, engine: str) -> ParsedTable:
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as e:
        raise UnreadableFileError(file_name, "the spreadsheet is damaged or not an Excel file.") from e

    if frame.empty:
        return ParsedTable(headers=[], rows=[])

    records = frame.values.tolist()
    header_cells = [normalize_header(cell) for cell in records[0]]
    headers = [h for h in header_cells if h]

    rows: list[RawRow] = []
    for index, record in enumerate(records[1:], start=1):
        values = {
            header: _cell_text(cell)
            for header, cell in zip(header_cells, record)
            if header
        }
        # pandas index is 0-based and row 0 is the header
        rows.append(RawRow(row_number=index + 1, values=values))

    return ParsedTable(headers=headers, rows=rows)


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_text(value: Any) -> str | None:
    """Render a spreadsheet cell as text.

    Whole-number floats lose their ``.0`` so integer columns such as
    stock read the way the seller typed them.
    """
    if value is None or _is_missing(value):
        return None
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return str(value)
