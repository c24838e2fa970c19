from __future__ import annotations

import openpyxl
import pytest

from sheetlingo.processors.drawing_text import DrawingTextReader, list_drawing_text_runs
from sheetlingo.services.exceptions import FormatError

from conftest import add_package_parts, workbook_bytes

_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
_DRAWING_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/drawing"
_CHART_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/chart"
_HYPERLINK_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/hyperlink"

SHEET_RELS = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="{_REL_NS}">
  <Relationship Id="rId1" Type="{_DRAWING_REL}" Target="../drawings/drawing1.xml"/>
  <Relationship Id="rId2" Type="{_HYPERLINK_REL}" Target="https://example.com" TargetMode="External"/>
</Relationships>"""

DRAWING_RELS = f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="{_REL_NS}">
  <Relationship Id="rId1" Type="{_CHART_REL}" Target="../charts/chart1.xml"/>
</Relationships>"""

DRAWING = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<xdr:wsDr xmlns:xdr="http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing"
          xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">
  <xdr:twoCellAnchor>
    <xdr:sp>
      <xdr:txBody>
        <a:bodyPr/>
        <a:p><a:r><a:t>Shape Title</a:t></a:r><a:r><a:t> second run</a:t></a:r></a:p>
        <a:p><a:r><a:t>42</a:t></a:r></a:p>
      </xdr:txBody>
    </xdr:sp>
  </xdr:twoCellAnchor>
  <xdr:twoCellAnchor>
    <xdr:grpSp>
      <xdr:sp>
        <xdr:txBody><a:p><a:fld id="{1}" type="slidenum"><a:t>Field text</a:t></a:fld></a:p></xdr:txBody>
      </xdr:sp>
    </xdr:grpSp>
  </xdr:twoCellAnchor>
</xdr:wsDr>"""

CHART = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<c:chartSpace xmlns:c="http://schemas.openxmlformats.org/drawingml/2006/chart"
              xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">
  <c:chart><c:title><c:tx><c:rich><a:p><a:r><a:t>Sales by Region</a:t></a:r></a:p></c:rich></c:tx></c:title></c:chart>
</c:chartSpace>"""


def _package_with_drawing() -> bytes:
    wb = openpyxl.Workbook()
    wb.active.title = "Data"
    wb.active["A1"] = "cell"
    wb.create_sheet("Empty")
    return add_package_parts(workbook_bytes(wb), {
        "xl/worksheets/_rels/sheet1.xml.rels": SHEET_RELS,
        "xl/drawings/drawing1.xml": DRAWING,
        "xl/drawings/_rels/drawing1.xml.rels": DRAWING_RELS,
        "xl/charts/chart1.xml": CHART,
    })


@pytest.mark.unit
def test_runs_from_shapes_groups_and_charts() -> None:
    reader = DrawingTextReader(_package_with_drawing())
    assert reader.list_drawing_text_runs("Data") == [
        "Shape Title",
        " second run",
        "42",
        "Field text",
        "Sales by Region",
    ]


@pytest.mark.unit
def test_sheet_without_drawings_has_no_runs() -> None:
    data = _package_with_drawing()
    assert list_drawing_text_runs(data, "Empty") == []
    assert list_drawing_text_runs(data, "Missing") == []


@pytest.mark.unit
def test_plain_workbook_has_no_runs() -> None:
    wb = openpyxl.Workbook()
    wb.active["A1"] = "x"
    reader = DrawingTextReader(workbook_bytes(wb))
    assert reader.list_drawing_text_runs("Sheet") == []
    assert "Sheet" in reader.sheet_names


@pytest.mark.unit
def test_malformed_drawing_xml_raises_format_error() -> None:
    wb = openpyxl.Workbook()
    data = add_package_parts(workbook_bytes(wb), {
        "xl/worksheets/_rels/sheet1.xml.rels": SHEET_RELS,
        "xl/drawings/drawing1.xml": "<xdr:wsDr><unclosed>",
    })
    with pytest.raises(FormatError):
        DrawingTextReader(data)


@pytest.mark.unit
def test_not_a_zip_raises_format_error() -> None:
    with pytest.raises(FormatError):
        DrawingTextReader(b"plain bytes")
