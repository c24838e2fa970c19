# sheetlingo/processors/drawing_text.py
"""
Read-only access to text inside drawing objects (shapes, text boxes, charts).

openpyxl does not expose shape text, so the package XML is parsed directly:

    xl/workbook.xml                       sheet name -> r:id
    xl/_rels/workbook.xml.rels            r:id -> xl/worksheets/sheetN.xml
    xl/worksheets/_rels/sheetN.xml.rels   drawing relationship -> xl/drawings/drawingN.xml
    xl/drawings/_rels/drawingN.xml.rels   chart relationship -> xl/charts/chartN.xml

Text runs are DrawingML <a:r>/<a:fld> elements with an <a:t> child, found at any
depth (group shapes, graphic frames, chart rich-text bodies).

Elements are matched by local name and relationship types by suffix so both
the transitional and strict ECMA-376 namespaces are accepted.
"""

import io
import logging
import posixpath
import zipfile
from typing import Optional
from xml.etree import ElementTree as ET

from sheetlingo.services.exceptions import FormatError

logger = logging.getLogger(__name__)

# Bump when the set of parts or elements read here changes
DRAWING_PARSER_VERSION = 1

_DEFAULT_WORKBOOK_PART = "xl/workbook.xml"
_RUN_ELEMENTS = {"r", "fld"}


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _namespace(tag: str) -> str:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def _rels_path(part: str) -> str:
    """xl/worksheets/sheet1.xml -> xl/worksheets/_rels/sheet1.xml.rels"""
    directory, name = posixpath.split(part)
    return posixpath.join(directory, "_rels", f"{name}.rels")


def _resolve_target(source_part: str, target: str) -> str:
    """Resolve a relationship target against the part that owns the .rels file."""
    if target.startswith("/"):
        return target.lstrip("/")
    return posixpath.normpath(posixpath.join(posixpath.dirname(source_part), target))


class DrawingTextReader:
    """
    Index of drawing text runs per sheet name for one workbook package.

    Usage:
        reader = DrawingTextReader(xlsx_bytes)
        reader.list_drawing_text_runs("Sheet1")  # -> ["Title", "Legend", ...]
    """

    def __init__(self, data: bytes):
        self._runs_by_sheet: dict[str, list[str]] = {}
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as package:
                self._index(package)
        except zipfile.BadZipFile as e:
            raise FormatError(f"Not a valid spreadsheet package: {e}") from e

    def list_drawing_text_runs(self, sheet_name: str) -> list[str]:
        """Raw text of every drawing run attached to the sheet, in document order."""
        return list(self._runs_by_sheet.get(sheet_name, []))

    @property
    def sheet_names(self) -> list[str]:
        return list(self._runs_by_sheet.keys())

    # ------------------------------------------------------------------

    def _index(self, package: zipfile.ZipFile) -> None:
        for sheet_name, sheet_part in self._sheet_parts(package).items():
            runs: list[str] = []
            for drawing_part in self._related_parts(package, sheet_part, "/drawing"):
                runs.extend(self._text_runs(package, drawing_part))
                for chart_part in self._related_parts(package, drawing_part, "/chart"):
                    runs.extend(self._text_runs(package, chart_part))
            if runs:
                logger.debug("Sheet %s: %d drawing text runs", sheet_name, len(runs))
            self._runs_by_sheet[sheet_name] = runs

    def _workbook_part(self, package: zipfile.ZipFile) -> str:
        for _rid, rel_type, target in self._read_rels(package, "_rels/.rels"):
            if rel_type.endswith("/officeDocument"):
                return target.lstrip("/")
        return _DEFAULT_WORKBOOK_PART

    def _sheet_parts(self, package: zipfile.ZipFile) -> dict[str, str]:
        """Map sheet name -> part path for worksheets and chartsheets."""
        workbook_part = self._workbook_part(package)
        root = self._parse(package, workbook_part)
        if root is None:
            return {}

        rid_to_part = {
            rid: _resolve_target(workbook_part, target)
            for rid, _rel_type, target in self._read_rels(package, _rels_path(workbook_part))
        }

        parts: dict[str, str] = {}
        for elem in root.iter():
            if _local_name(elem.tag) != "sheet":
                continue
            name = elem.get("name", "")
            rid = None
            for attr_name, attr_value in elem.attrib.items():
                if attr_name.endswith("}id"):
                    rid = attr_value
                    break
            part = rid_to_part.get(rid) if rid else None
            if name and part:
                parts[name] = part
        return parts

    def _related_parts(self, package: zipfile.ZipFile, source_part: str, type_suffix: str) -> list[str]:
        return [
            _resolve_target(source_part, target)
            for _rid, rel_type, target in self._read_rels(package, _rels_path(source_part))
            if rel_type.endswith(type_suffix)
        ]

    def _read_rels(self, package: zipfile.ZipFile, rels_part: str) -> list[tuple[str, str, str]]:
        root = self._parse(package, rels_part)
        if root is None:
            return []
        rels = []
        for elem in root:
            if _local_name(elem.tag) != "Relationship":
                continue
            # External targets (hyperlinks, linked images) are not package parts
            if elem.get("TargetMode") == "External":
                continue
            rels.append((elem.get("Id", ""), elem.get("Type", ""), elem.get("Target", "")))
        return rels

    def _text_runs(self, package: zipfile.ZipFile, part: str) -> list[str]:
        root = self._parse(package, part)
        if root is None:
            return []
        runs = []
        for elem in root.iter():
            if _local_name(elem.tag) not in _RUN_ELEMENTS or "drawingml" not in _namespace(elem.tag):
                continue
            for child in elem:
                if _local_name(child.tag) == "t" and child.text:
                    runs.append(child.text)
        return runs

    def _parse(self, package: zipfile.ZipFile, part: str) -> Optional[ET.Element]:
        """Parse a package part; None when the part does not exist."""
        try:
            with package.open(part) as stream:
                return ET.parse(stream).getroot()
        except KeyError:
            return None
        except ET.ParseError as e:
            raise FormatError(f"Malformed XML in package part {part}: {e}") from e


def list_drawing_text_runs(data: bytes, sheet_name: str) -> list[str]:
    """Convenience wrapper for a single lookup."""
    return DrawingTextReader(data).list_drawing_text_runs(sheet_name)
