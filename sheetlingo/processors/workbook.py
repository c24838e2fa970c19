# sheetlingo/processors/workbook.py
"""
Workbook adapter over openpyxl.

Loads an uploaded payload into an in-memory model, classifies cells, reads
and writes cell text, and serializes the model back to bytes. Everything the
extractor and rewrite engine know about openpyxl lives here.
"""

import datetime
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional

import openpyxl
from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.styles.numbers import is_date_format
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula
from openpyxl.worksheet.worksheet import Worksheet

from sheetlingo.models.types import SourceFile
from sheetlingo.processors.drawing_text import DrawingTextReader
from sheetlingo.services.exceptions import ContractViolation, FormatError

# Module logger
logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = ('.xlsx', '.xls', '.xlsm')

# Excel cell character limit (32,767 characters per cell)
EXCEL_CELL_CHAR_LIMIT = 32767

_LOAD_ERRORS = (
    OSError,
    zipfile.BadZipFile,
    InvalidFileException,
    KeyError,
    ValueError,
    TypeError,
    SyntaxError,  # XML parse errors from ElementTree / lxml
)


class CellKind(Enum):
    EMPTY = "empty"
    FORMULA = "formula"
    RICH_TEXT = "rich_text"
    STRING = "string"
    OTHER = "other"          # Numbers, dates, booleans, error values


@dataclass
class RichTextRun:
    """One formatting run of a rich-text cell. font is None for unformatted runs."""
    text: str
    font: Any = None


@dataclass
class WorkbookModel:
    """A loaded workbook plus the raw package it came from."""
    name: str
    workbook: Workbook
    package: bytes
    _drawings: Optional[DrawingTextReader] = field(default=None, repr=False)

    @property
    def worksheets(self) -> list[Worksheet]:
        return self.workbook.worksheets

    def list_drawing_text_runs(self, sheet: Worksheet) -> list[str]:
        """Drawing text runs (shapes, text boxes, charts) attached to a sheet."""
        if self._drawings is None:
            try:
                self._drawings = DrawingTextReader(self.package)
            except FormatError as e:
                raise FormatError(str(e), self.name) from e
        return self._drawings.list_drawing_text_runs(sheet.title)

    def close(self) -> None:
        self.workbook.close()


def load_workbook(file: SourceFile) -> WorkbookModel:
    """
    Open a workbook payload.

    Raises:
        FormatError: for .xls payloads and anything openpyxl cannot parse
    """
    extension = file.extension
    if extension == '.xls':
        # openpyxl only reads Office Open XML packages
        raise FormatError(
            "Legacy XLS workbooks cannot be opened. Save the file as .xlsx and upload it again.",
            file.name,
        )

    try:
        workbook = openpyxl.load_workbook(
            io.BytesIO(file.data),
            rich_text=True,
            keep_vba=(extension == '.xlsm'),
            keep_links=True,
        )
    except _LOAD_ERRORS as e:
        logger.warning("Failed to open workbook %s: %s", file.name, e)
        raise FormatError(f"Cannot read workbook: {e}", file.name) from e

    logger.debug("Loaded workbook %s (%d sheets)", file.name, len(workbook.worksheets))
    return WorkbookModel(name=file.name, workbook=workbook, package=file.data)


def serialize_workbook(model: WorkbookModel) -> bytes:
    """Save the (mutated) model to an in-memory package."""
    buffer = io.BytesIO()
    try:
        model.workbook.save(buffer)
    except (OSError, ValueError, TypeError, KeyError) as e:
        raise FormatError(f"Cannot write workbook: {e}", model.name) from e
    return buffer.getvalue()


def is_visible(sheet: Worksheet) -> bool:
    return sheet.sheet_state == Worksheet.SHEETSTATE_VISIBLE


def iter_master_cells(sheet: Worksheet) -> Iterator[Cell]:
    """
    Yield every cell of the used range row by row, empty cells included.

    Subordinate cells of merged ranges are skipped; only the top-left master
    of a merged range (or an unmerged cell) is yielded.
    """
    for merged_range in sheet.merged_cells.ranges:
        master = sheet.cell(row=merged_range.min_row, column=merged_range.min_col)
        if isinstance(master, MergedCell):
            raise ContractViolation(
                f"Merged range {merged_range.coord} on sheet {sheet.title!r} has no master cell"
            )

    for row in sheet.iter_rows():
        for cell in row:
            if isinstance(cell, MergedCell):
                continue
            yield cell


def cell_kind(cell: Cell) -> CellKind:
    value = cell.value
    if value is None or value == "":
        return CellKind.EMPTY
    if cell.data_type == 'f' or isinstance(value, (ArrayFormula, DataTableFormula)):
        return CellKind.FORMULA
    if isinstance(value, CellRichText):
        return CellKind.RICH_TEXT
    if cell.data_type == 's' and isinstance(value, str):
        return CellKind.STRING
    return CellKind.OTHER


def formula_text(cell: Cell) -> Optional[str]:
    """Formula source ("=SUM(A1:A3)"), or None for data-table formulas."""
    value = cell.value
    if isinstance(value, ArrayFormula):
        return value.text
    if isinstance(value, str):
        return value
    return None


def set_formula_text(cell: Cell, text: str) -> None:
    value = cell.value
    if isinstance(value, ArrayFormula):
        cell.value = ArrayFormula(ref=value.ref, text=text)
    else:
        cell.value = text


def rich_text_runs(cell: Cell) -> list[RichTextRun]:
    runs = []
    for part in cell.value:
        if isinstance(part, TextBlock):
            if part.text is None:
                raise ContractViolation(f"Rich-text run without text in cell {cell.coordinate}")
            runs.append(RichTextRun(text=part.text, font=part.font))
        elif isinstance(part, str):
            runs.append(RichTextRun(text=part))
        else:
            raise ContractViolation(
                f"Unexpected rich-text part {type(part).__name__} in cell {cell.coordinate}"
            )
    return runs


def set_rich_text_runs(cell: Cell, runs: list[RichTextRun]) -> None:
    cell.value = CellRichText([
        TextBlock(run.font, run.text) if run.font is not None else run.text
        for run in runs
    ])


def write_text(cell: Cell, text: str) -> None:
    """
    Store text as a plain string value.

    Text is never promoted to a formula or error value, even if it starts
    with "=" or "#".
    """
    if len(text) > EXCEL_CELL_CHAR_LIMIT:
        truncated = text[:EXCEL_CELL_CHAR_LIMIT - 3] + "..."
        logger.warning(
            "Translation truncated for cell %s: %d -> %d chars (Excel limit: %d)",
            cell.coordinate, len(text), len(truncated), EXCEL_CELL_CHAR_LIMIT,
        )
        text = truncated
    cell.value = text
    cell.data_type = 's'


def display_text(cell: Cell) -> str:
    """String a user would see for a non-formula, non-rich-text value."""
    value = cell.value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return format_date(value, cell.number_format)
    return str(value)


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if 'e' in text or 'E' in text:
        # 1e-07 -> 0.0000001
        text = format(Decimal(text), 'f')
    return text


# =============================================================================
# Date rendering through Excel number formats
# =============================================================================

_RE_DATE_TOKEN = re.compile(
    r'"[^"]*"|\\.|\[[^\]]*\]|yyyy|yy|mmmmm|mmmm|mmm|mm|m|dddd|ddd|dd|d|hh|h|ss|s|'
    r'AM/PM|am/pm|A/P|a/p|.',
    re.IGNORECASE,
)
_TIME_TOKENS = {"h", "hh", "s", "ss"}


def format_date(value: Any, number_format: Optional[str]) -> str:
    """
    Render a date/time value through an Excel number format.

    Covers the year, month, day, hour, minute, second and AM/PM tokens used by
    the built-in and common custom formats. Values whose format is not a date
    format fall back to ISO 8601.
    """
    if not number_format or not is_date_format(number_format):
        return _iso_date(value)

    section = number_format.split(';', 1)[0]
    tokens = [t for t in _RE_DATE_TOKEN.findall(section)]
    lowered = [t.lower() for t in tokens]
    twelve_hour = any(t in ("am/pm", "a/p") for t in lowered)

    parts = []
    for index, token in enumerate(tokens):
        key = lowered[index]
        if key in ("m", "mm") and _is_minute_token(lowered, index):
            minute = getattr(value, "minute", 0)
            parts.append(f"{minute:02d}" if key == "mm" else str(minute))
        else:
            parts.append(_render_date_token(value, token, key, twelve_hour))
    return "".join(parts)


def _is_minute_token(tokens: list[str], index: int) -> bool:
    """Excel reads m/mm as minutes right after an hour or right before seconds."""
    for previous in reversed(tokens[:index]):
        if previous in _TIME_TOKENS or previous in ("yyyy", "yy", "d", "dd", "mmm", "mmmm"):
            return previous in ("h", "hh")
    for following in tokens[index + 1:]:
        if following in _TIME_TOKENS or following in ("yyyy", "yy", "d", "dd"):
            return following in ("s", "ss")
    return False


def _render_date_token(value: Any, token: str, key: str, twelve_hour: bool) -> str:
    year = getattr(value, "year", 1900)
    month = getattr(value, "month", 1)
    day = getattr(value, "day", 1)
    hour = getattr(value, "hour", 0)
    second = getattr(value, "second", 0)

    if key == "yyyy":
        return f"{year:04d}"
    if key == "yy":
        return f"{year % 100:02d}"
    if key in ("mmmmm", "mmmm", "mmm"):
        name = datetime.date(2000, month, 1).strftime("%B")
        return {"mmmmm": name[0], "mmmm": name, "mmm": name[:3]}[key]
    if key == "mm":
        return f"{month:02d}"
    if key == "m":
        return str(month)
    if key in ("dddd", "ddd"):
        weekday = datetime.date(year, month, day).strftime("%A")
        return weekday if key == "dddd" else weekday[:3]
    if key == "dd":
        return f"{day:02d}"
    if key == "d":
        return str(day)
    if key in ("hh", "h"):
        shown = (hour % 12 or 12) if twelve_hour else hour
        return f"{shown:02d}" if key == "hh" else str(shown)
    if key == "ss":
        return f"{second:02d}"
    if key == "s":
        return str(second)
    if key == "am/pm":
        return "AM" if hour < 12 else "PM"
    if key == "a/p":
        return "A" if hour < 12 else "P"
    if token.startswith('"') and token.endswith('"') and len(token) >= 2:
        return token[1:-1]
    if token.startswith('\\'):
        return token[1:]
    if token.startswith('['):
        # Locale / colour / elapsed-time markers are not rendered
        return ""
    return token


def _iso_date(value: Any) -> str:
    if isinstance(value, datetime.datetime):
        if value.time() == datetime.time(0, 0):
            return value.date().isoformat()
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M:%S")
    return value.isoformat()
