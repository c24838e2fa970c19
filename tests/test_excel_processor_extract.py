from __future__ import annotations

import datetime

import openpyxl
import pytest
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

import sheetlingo.processors.excel_processor as excel_processor_module
import sheetlingo.processors.workbook as workbook_module
from sheetlingo.models.types import ExtractionOptions, SourceFile
from sheetlingo.processors.excel_processor import ExcelProcessor
from sheetlingo.services.exceptions import ContractViolation, FormatError


def _build_sample_workbook() -> openpyxl.Workbook:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Main"

    ws["A1"] = "Hello"
    ws["B1"] = "  Technical specification  "
    ws["C1"] = 100
    ws["D1"] = "-3.14"
    ws["E1"] = "DN50"
    ws["F1"] = "1,000"
    ws["G1"] = "50%"
    ws["H1"] = "v12"
    ws["I1"] = " 12 "
    ws["J1"] = 2.5  # numeric, filtered
    ws["K1"] = True

    ws["A2"] = '=CONCATENATE("Hello", " ", "World")'
    ws["B2"] = '=IF(A1="","Empty","42")'
    ws["C2"] = CellRichText([TextBlock(InlineFont(b=True), "Bold "), "tail"])

    ws.merge_cells("A4:C4")
    ws["A4"] = "Total"

    ws["A5"] = datetime.datetime(2024, 1, 5)
    ws["A5"].number_format = "yyyy-mm-dd"

    hidden = wb.create_sheet("Hidden")
    hidden["A1"] = "HiddenOnly"
    hidden["A2"] = "Hello"
    hidden.sheet_state = "hidden"
    return wb


@pytest.fixture
def sample(make_source) -> SourceFile:
    return make_source(_build_sample_workbook())


@pytest.mark.unit
def test_default_options(sample: SourceFile) -> None:
    terms = ExcelProcessor().extract_terms([sample], ExtractionOptions())

    assert terms == {
        "Hello",
        "Technical specification",
        "DN50",
        "1,000",
        "50%",
        "v12",
        "TRUE",
        "Bold",
        "tail",
        "Total",
        "2024-01-05",
    }


@pytest.mark.unit
def test_formula_cells_never_use_cached_value(sample: SourceFile) -> None:
    terms = ExcelProcessor().extract_terms([sample], ExtractionOptions())
    assert not any(term.startswith("=") for term in terms)
    assert "World" not in terms


@pytest.mark.unit
def test_formula_literals_when_enabled(sample: SourceFile) -> None:
    options = ExtractionOptions(translate_formulas=True)
    terms = ExcelProcessor().extract_terms([sample], options)

    assert {"Hello", "World", "Empty"} <= terms
    # Blank and numeric literals are filtered like any other text
    assert " " not in terms
    assert "" not in terms
    assert "42" not in terms


@pytest.mark.unit
def test_rich_text_as_one_unit(sample: SourceFile) -> None:
    options = ExtractionOptions(preserve_rich_text_formatting=False)
    terms = ExcelProcessor().extract_terms([sample], options)

    assert "Bold tail" in terms
    assert "Bold" not in terms
    assert "tail" not in terms


@pytest.mark.unit
def test_hidden_sheets(sample: SourceFile) -> None:
    processor = ExcelProcessor()

    visible_only = processor.extract_terms([sample], ExtractionOptions())
    assert "HiddenOnly" not in visible_only

    all_sheets = processor.extract_terms(
        [sample], ExtractionOptions(process_visible_sheets_only=False)
    )
    assert "HiddenOnly" in all_sheets


@pytest.mark.unit
def test_merged_range_contributes_once(make_source) -> None:
    wb = openpyxl.Workbook()
    wb.active.merge_cells("A1:D3")
    wb.active["A1"] = "Total"

    terms = ExcelProcessor().extract_terms([make_source(wb)], ExtractionOptions())
    assert terms == {"Total"}


@pytest.mark.unit
def test_extraction_is_idempotent(sample: SourceFile) -> None:
    processor = ExcelProcessor()
    options = ExtractionOptions(translate_formulas=True)
    assert processor.extract_terms([sample], options) == processor.extract_terms([sample], options)


@pytest.mark.unit
def test_terms_are_deduplicated_across_files(make_source) -> None:
    first = openpyxl.Workbook()
    first.active["A1"] = "Hello"
    second = openpyxl.Workbook()
    second.active["B2"] = " Hello "
    second.active["B3"] = "Goodbye"

    terms = ExcelProcessor().extract_terms(
        [make_source(first, "a.xlsx"), make_source(second, "b.xlsx")],
        ExtractionOptions(),
    )
    assert terms == {"Hello", "Goodbye"}


@pytest.mark.unit
def test_drawing_runs_follow_shapes_option(sample: SourceFile, monkeypatch) -> None:
    monkeypatch.setattr(
        workbook_module.WorkbookModel,
        "list_drawing_text_runs",
        lambda self, sheet: ["  Legend  ", "100", " "] if sheet.title == "Main" else ["HiddenShape"],
    )
    processor = ExcelProcessor()

    with_shapes = processor.extract_terms([sample], ExtractionOptions())
    assert "Legend" in with_shapes
    assert "100" not in with_shapes
    assert "HiddenShape" not in with_shapes

    without_shapes = processor.extract_terms([sample], ExtractionOptions(extract_from_shapes=False))
    assert "Legend" not in without_shapes


@pytest.mark.unit
def test_corrupt_file_fails_the_batch(sample: SourceFile) -> None:
    broken = SourceFile("broken.xlsx", b"garbage")
    with pytest.raises(FormatError) as exc_info:
        ExcelProcessor().extract_terms([sample, broken], ExtractionOptions())
    assert exc_info.value.file_name == "broken.xlsx"


@pytest.mark.unit
def test_contract_violation_names_the_file(sample: SourceFile, monkeypatch) -> None:
    def broken_cells(sheet):
        raise ContractViolation(f"Merged range A1:B1 on sheet {sheet.title!r} has no master cell")
        yield

    monkeypatch.setattr(excel_processor_module, "iter_master_cells", broken_cells)
    with pytest.raises(ContractViolation) as exc_info:
        ExcelProcessor().extract_terms([sample], ExtractionOptions())
    assert exc_info.value.file_name == "book.xlsx"
    assert "book.xlsx: Merged range" in str(exc_info.value)


@pytest.mark.unit
def test_supported_extensions() -> None:
    processor = ExcelProcessor()
    assert processor.supports_extension(".XLSX")
    assert processor.supports_extension(".xlsm")
    assert processor.supports_extension(".xls")
    assert not processor.supports_extension(".csv")
