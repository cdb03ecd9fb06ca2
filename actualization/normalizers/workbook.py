"""
actualization/normalizers/workbook.py

Workbook reading and header-keyed row extraction.

Sheets are held as raw cell grids. ``Sheet.records`` turns a grid into
row mappings keyed by header text the way spreadsheet row-object exports
do: blank header slots become ``__EMPTY``, ``__EMPTY_1``, ...; duplicate
headers get ``_1``, ``_2`` suffixes; blank cells are left out; fully blank
rows are skipped.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence

import pandas as pd

from actualization.errors import ParseError

logger = logging.getLogger(__name__)

EMPTY_HEADER = "__EMPTY"

_ENGINES_BY_EXTENSION: dict[str, str] = {
    ".xlsx": "openpyxl",
    ".xlsm": "openpyxl",
    ".xls": "xlrd",
}


def normalize_header(header: Any) -> str:
    """
    Normalize a column name for flexible matching.

    "Sell Line", "sellline" and " SELL LINE " all normalize to "sellline".
    """

    return "".join(ch for ch in str(header).strip().lower() if ch.isalnum())


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def header_text(value: Any) -> str:
    """
    Render a header cell as text; date headers render as ``M/YYYY``.
    """

    if isinstance(value, (datetime, date)):
        return f"{value.month}/{value.year}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Sheet:
    name: str
    rows: list[list[Any]] = field(default_factory=list)

    def find_row(self, predicate: Callable[[Sequence[Any]], bool]) -> int | None:
        for index, row in enumerate(self.rows):
            if predicate(row):
                return index
        return None

    def headers(self, header_row: int = 0) -> list[str]:
        if header_row >= len(self.rows):
            return []

        raw_headers = self.rows[header_row]
        headers: list[str] = []
        seen: dict[str, int] = {}
        for value in raw_headers:
            base = EMPTY_HEADER if is_blank(value) else header_text(value)
            count = seen.get(base, 0)
            headers.append(base if count == 0 else f"{base}_{count}")
            seen[base] = count + 1
        return headers

    def records(self, header_row: int = 0) -> list[dict[str, Any]]:
        """
        Return one mapping per non-blank row below ``header_row``.
        """

        headers = self.headers(header_row)
        records: list[dict[str, Any]] = []
        for row in self.rows[header_row + 1 :]:
            record = {
                headers[index]: value
                for index, value in enumerate(row)
                if index < len(headers) and not is_blank(value)
            }
            if record:
                records.append(record)
        return records


@dataclass(frozen=True)
class Workbook:
    sheets: list[Sheet] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def first_sheet(self) -> Sheet:
        if not self.sheets:
            raise ParseError("Workbook does not contain any sheet.")
        return self.sheets[0]

    @classmethod
    def from_rows(cls, sheets: Mapping[str, Iterable[Sequence[Any]]]) -> "Workbook":
        return cls(
            sheets=[
                Sheet(name=name, rows=[list(row) for row in rows])
                for name, rows in sheets.items()
            ]
        )


def header_lookup(headers: Iterable[str]) -> dict[str, str]:
    """
    Map normalized header keys to the first raw header carrying them.
    """

    lookup: dict[str, str] = {}
    for header in headers:
        normalized = normalize_header(header)
        if normalized and normalized not in lookup:
            lookup[normalized] = header
    return lookup


def first_value(record: Mapping[str, Any], lookup: Mapping[str, str], *names: str) -> Any:
    """
    Return the first non-blank value among the header ``names``.
    """

    for name in names:
        raw_header = lookup.get(normalize_header(name))
        if raw_header is None:
            continue
        value = record.get(raw_header)
        if not is_blank(value):
            return value
    return None


def read_workbook(file_name: str, payload: bytes) -> Workbook:
    """
    Read every sheet of an Excel workbook into raw cell grids.
    """

    extension = Path(file_name or "").suffix.lower()
    engine = _ENGINES_BY_EXTENSION.get(extension)
    if engine is None:
        raise ParseError(f"Unsupported workbook extension: {extension or file_name!r}.")
    if not payload:
        raise ParseError("Uploaded workbook is empty.")

    try:
        frames = pd.read_excel(
            io.BytesIO(payload),
            sheet_name=None,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as exc:  # noqa: BLE001
        raise ParseError(f"Error reading the file: {exc}") from exc

    sheets = [
        Sheet(name=str(name), rows=[_clean_row(row) for row in frame.itertuples(index=False, name=None)])
        for name, frame in frames.items()
    ]
    if not sheets:
        raise ParseError("Workbook does not contain any sheet.")

    logger.info(
        "Workbook read file=%s engine=%s sheets=%s",
        file_name,
        engine,
        [sheet.name for sheet in sheets],
    )
    return Workbook(sheets=sheets)


def _clean_row(row: Sequence[Any]) -> list[Any]:
    cleaned: list[Any] = []
    for value in row:
        if is_blank(value):
            cleaned.append(None)
        elif isinstance(value, pd.Timestamp):
            cleaned.append(value.to_pydatetime())
        else:
            cleaned.append(value)
    return cleaned
