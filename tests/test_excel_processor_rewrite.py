from __future__ import annotations

import datetime

import openpyxl
import pytest
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

from sheetlingo.models.types import ExtractionOptions, MatchPolicy, SourceFile, TermEntry
import sheetlingo.processors.excel_processor as excel_processor_module
from sheetlingo.processors.excel_processor import ExcelProcessor
from sheetlingo.services.exceptions import ContractViolation, FormatError

from conftest import reload_workbook


def _entries(*pairs, policy: MatchPolicy = MatchPolicy.FLEXIBLE) -> list[TermEntry]:
    return [
        TermEntry(id=f"1-{i}", source=source, target=target, policy=policy)
        for i, (source, target) in enumerate(pairs)
    ]


def _rewrite(source: SourceFile, entries: list[TermEntry], **options) -> openpyxl.Workbook:
    translated = ExcelProcessor().apply_dictionary(source, entries, ExtractionOptions(**options))
    assert translated.name == source.name
    return reload_workbook(translated.data)


class TestPlainCells:

    @pytest.mark.unit
    def test_exact_then_flexible(self, make_source) -> None:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws["A1"] = "hello"
        ws["A2"] = "New York City"
        ws["A3"] = "Untouched"

        result = _rewrite(
            make_source(wb),
            _entries(("Hello", "Привет"), ("York", "Йорк"), ("New York", "Нью-Йорк")),
        )
        ws = result.active
        assert ws["A1"].value == "Привет"
        assert ws["A2"].value == "Нью-Йорк City"
        assert ws["A3"].value == "Untouched"

    @pytest.mark.unit
    def test_non_text_values_are_untouched(self, make_source) -> None:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws["A1"] = 100
        ws["A2"] = True
        ws["A3"] = datetime.datetime(2024, 1, 5)
        ws["A3"].number_format = "yyyy-mm-dd"

        result = _rewrite(
            make_source(wb),
            _entries(("100", "сто"), ("TRUE", "ИСТИНА"), ("2024-01-05", "5 января")),
        )
        ws = result.active
        assert ws["A1"].value == 100
        assert ws["A2"].value is True
        assert ws["A3"].value == datetime.datetime(2024, 1, 5)

    @pytest.mark.unit
    def test_target_starting_with_equals_is_stored_as_text(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = "Sum"

        result = _rewrite(make_source(wb), _entries(("Sum", "=SUM(1,2)")))
        cell = result.active["A1"]
        assert cell.value == "=SUM(1,2)"
        assert cell.data_type == "s"

    @pytest.mark.unit
    def test_untranslated_entries_do_not_erase_text(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = "Hello"

        result = _rewrite(make_source(wb), _entries(("Hello", "")))
        assert result.active["A1"].value == "Hello"

    @pytest.mark.unit
    def test_merged_range_rewrites_master_only(self, make_source) -> None:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.merge_cells("A1:C1")
        ws["A1"] = "Total"

        result = _rewrite(make_source(wb), _entries(("Total", "Итого")))
        ws = result.active
        assert ws["A1"].value == "Итого"
        assert "A1:C1" in {r.coord for r in ws.merged_cells.ranges}

    @pytest.mark.unit
    def test_hidden_sheets_are_rewritten(self, make_source) -> None:
        wb = openpyxl.Workbook()
        hidden = wb.create_sheet("Hidden")
        hidden["A1"] = "Hello"
        hidden.sheet_state = "hidden"

        result = _rewrite(make_source(wb), _entries(("Hello", "Привет")))
        assert result["Hidden"]["A1"].value == "Привет"
        assert result["Hidden"].sheet_state == "hidden"


class TestFormulas:

    @pytest.mark.unit
    def test_formula_literals_are_translated(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = '=CONCATENATE("Hello", " ", "World")'

        result = _rewrite(
            make_source(wb),
            _entries(("Hello", "Bonjour"), policy=MatchPolicy.EXACT_ONLY)
            + _entries(("World", "Monde")),
            translate_formulas=True,
        )
        assert result.active["A1"].value == '=CONCATENATE("Bonjour", " ", "Monde")'

    @pytest.mark.unit
    def test_formulas_untouched_when_disabled(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = '=CONCATENATE("Hello", " ", "World")'

        result = _rewrite(make_source(wb), _entries(("Hello", "Bonjour")))
        assert result.active["A1"].value == '=CONCATENATE("Hello", " ", "World")'

    @pytest.mark.unit
    def test_quotes_in_target_are_doubled(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = '=IF(A2>0,"Yes","No")'

        result = _rewrite(
            make_source(wb),
            _entries(("Yes", 'say "yes"')),
            translate_formulas=True,
        )
        assert result.active["A1"].value == '=IF(A2>0,"say ""yes""","No")'

    @pytest.mark.unit
    def test_overlong_literal_fails_with_file_name(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = '=UPPER("Hello")'

        with pytest.raises(FormatError) as exc_info:
            ExcelProcessor().apply_dictionary(
                make_source(wb, "long.xlsx"),
                _entries(("Hello", "x" * 300)),
                ExtractionOptions(translate_formulas=True),
            )
        assert exc_info.value.file_name == "long.xlsx"


class TestRichText:

    @staticmethod
    def _rich_source(make_source) -> SourceFile:
        wb = openpyxl.Workbook()
        wb.active["A1"] = CellRichText([
            TextBlock(InlineFont(b=True), "Bold "),
            TextBlock(InlineFont(i=True), "text here"),
        ])
        return make_source(wb)

    @pytest.mark.unit
    def test_preserve_mode_matches_trimmed_runs(self, make_source) -> None:
        result = _rewrite(
            self._rich_source(make_source),
            _entries(("Bold", "Gras"), ("here", "ici")),
        )
        value = result.active["A1"].value
        assert isinstance(value, CellRichText)
        blocks = [part for part in value if isinstance(part, TextBlock)]
        assert [block.text for block in blocks] == ["Gras", "text here"]
        assert blocks[0].font.b is True
        assert blocks[1].font.i is True

    @pytest.mark.unit
    def test_flatten_mode_writes_plain_string(self, make_source) -> None:
        result = _rewrite(
            self._rich_source(make_source),
            _entries(("Bold", "Gras"), ("here", "ici")),
            preserve_rich_text_formatting=False,
        )
        assert result.active["A1"].value == "Gras text ici"

    @pytest.mark.unit
    def test_flatten_mode_keeps_unmatched_cell_formatted(self, make_source) -> None:
        wb = openpyxl.Workbook()
        wb.active["A1"] = CellRichText([
            TextBlock(InlineFont(b=True), "Nothing "),
            TextBlock(InlineFont(i=True), "matches"),
        ])

        result = _rewrite(
            make_source(wb),
            _entries(("Zebra", "Zèbre")),
            preserve_rich_text_formatting=False,
        )
        value = result.active["A1"].value
        assert isinstance(value, CellRichText)
        assert str(value) == "Nothing matches"


@pytest.mark.unit
def test_rewrite_of_corrupt_file_raises_format_error() -> None:
    with pytest.raises(FormatError) as exc_info:
        ExcelProcessor().apply_dictionary(
            SourceFile("bad.xlsm", b"\x00\x01"), [], ExtractionOptions()
        )
    assert exc_info.value.file_name == "bad.xlsm"


@pytest.mark.unit
def test_contract_violation_carries_file_name(make_source, monkeypatch) -> None:
    def broken_cells(sheet):
        raise ContractViolation("Rich-text run without text in cell A1")
        yield

    monkeypatch.setattr(excel_processor_module, "iter_master_cells", broken_cells)
    wb = openpyxl.Workbook()
    wb.active["A1"] = "Hello"

    with pytest.raises(ContractViolation) as exc_info:
        ExcelProcessor().apply_dictionary(
            make_source(wb, "broken.xlsx"), _entries(("Hello", "Привет")), ExtractionOptions()
        )
    assert exc_info.value.file_name == "broken.xlsx"
    assert str(exc_info.value).startswith("broken.xlsx: ")
