# sheetlingo/processors/excel_processor.py
"""
Processor for Excel workbooks (.xlsx, .xlsm).

Extraction walks every (visible) worksheet and collects the strings a reader
would want translated: plain cell text, rich-text runs, string literals inside
formulas and text in drawing objects. The rewrite walks the same cells and
replaces text through a TermMatcher built from the dictionary.

Legacy .xls payloads are accepted by the upload filter but rejected on load
with a FormatError, since openpyxl only reads Office Open XML packages.
"""

import logging
from typing import Iterable

from openpyxl.cell.cell import Cell
from openpyxl.worksheet.worksheet import Worksheet

from sheetlingo.models.types import ExtractionOptions, SourceFile, TermEntry, TranslatedFile
from sheetlingo.processors.base import FileProcessor
from sheetlingo.processors.term_matcher import (
    TermMatcher,
    clean_term,
    iter_formula_literals,
    replace_formula_literals,
)
from sheetlingo.processors.workbook import (
    SPREADSHEET_EXTENSIONS,
    CellKind,
    WorkbookModel,
    cell_kind,
    display_text,
    formula_text,
    is_visible,
    iter_master_cells,
    load_workbook,
    rich_text_runs,
    serialize_workbook,
    set_formula_text,
    set_rich_text_runs,
    write_text,
)
from sheetlingo.services.exceptions import ContractViolation, FormatError

logger = logging.getLogger(__name__)


def _with_file_name(error, file_name: str):
    """Same error type, tagged with the file it came from."""
    return type(error)(str(error), file_name)


class ExcelProcessor(FileProcessor):
    """
    Processor for Excel files.

    Usage:
        processor = ExcelProcessor()
        terms = processor.extract_terms(files, options)
        translated = processor.apply_dictionary(files[0], dictionary.entries, options)
    """

    @property
    def supported_extensions(self) -> list[str]:
        return list(SPREADSHEET_EXTENSIONS)

    # =========================================================================
    # Extraction
    # =========================================================================

    def extract_terms(
        self, files: Iterable[SourceFile], options: ExtractionOptions
    ) -> set[str]:
        terms: set[str] = set()
        for file in files:
            model = load_workbook(file)
            try:
                file_terms = self._extract_from_workbook(model, options)
            except ContractViolation as e:
                raise _with_file_name(e, file.name) from e
            finally:
                model.close()
            logger.info("Extracted %d terms from %s", len(file_terms), file.name)
            terms.update(file_terms)
        logger.info("Extraction finished: %d distinct terms", len(terms))
        return terms

    def _extract_from_workbook(self, model: WorkbookModel, options: ExtractionOptions) -> set[str]:
        terms: set[str] = set()
        for sheet in model.worksheets:
            if options.process_visible_sheets_only and not is_visible(sheet):
                logger.debug("Skipping hidden sheet %r in %s", sheet.title, model.name)
                continue

            if options.extract_from_shapes:
                for run in model.list_drawing_text_runs(sheet):
                    self._add_term(terms, run)

            for cell in iter_master_cells(sheet):
                for text in self._cell_texts(cell, options):
                    self._add_term(terms, text)
        return terms

    def _cell_texts(self, cell: Cell, options: ExtractionOptions) -> list[str]:
        """Candidate strings for one master cell, before trimming and filtering."""
        kind = cell_kind(cell)
        if kind == CellKind.EMPTY:
            return []
        if kind == CellKind.FORMULA:
            # Formula cells never fall back to their cached value
            if not options.translate_formulas:
                return []
            formula = formula_text(cell)
            return list(iter_formula_literals(formula)) if formula else []
        if kind == CellKind.RICH_TEXT:
            runs = rich_text_runs(cell)
            if options.preserve_rich_text_formatting:
                return [run.text for run in runs]
            return ["".join(run.text for run in runs)]
        if kind == CellKind.STRING:
            return [cell.value]
        return [display_text(cell)]

    @staticmethod
    def _add_term(terms: set[str], text: str) -> None:
        term = clean_term(text)
        if term:
            terms.add(term)

    # =========================================================================
    # Rewrite
    # =========================================================================

    def apply_dictionary(
        self,
        file: SourceFile,
        entries: list[TermEntry],
        options: ExtractionOptions,
    ) -> TranslatedFile:
        matcher = TermMatcher(entries)
        model = load_workbook(file)
        try:
            changed = 0
            for sheet in model.worksheets:
                changed += self._rewrite_sheet(sheet, matcher, options)
            data = serialize_workbook(model)
        except (FormatError, ContractViolation) as e:
            if e.file_name:
                raise
            raise _with_file_name(e, file.name) from e
        finally:
            model.close()

        logger.info("Rewrote %s: %d cells changed", file.name, changed)
        return TranslatedFile(name=file.name, data=data)

    def _rewrite_sheet(self, sheet: Worksheet, matcher: TermMatcher, options: ExtractionOptions) -> int:
        # Every sheet is rewritten regardless of visibility
        changed = 0
        for cell in iter_master_cells(sheet):
            if self._rewrite_cell(cell, matcher, options):
                changed += 1
        if changed:
            logger.debug("Sheet %r: %d cells changed", sheet.title, changed)
        return changed

    def _rewrite_cell(self, cell: Cell, matcher: TermMatcher, options: ExtractionOptions) -> bool:
        """Rewrite one master cell in place. Returns True if the cell changed."""
        kind = cell_kind(cell)

        if kind == CellKind.FORMULA:
            if not options.translate_formulas:
                return False
            formula = formula_text(cell)
            if not formula:
                return False
            rewritten = replace_formula_literals(formula, matcher.translate)
            if rewritten == formula:
                return False
            set_formula_text(cell, rewritten)
            return True

        if kind == CellKind.RICH_TEXT:
            runs = rich_text_runs(cell)
            if options.preserve_rich_text_formatting:
                # Exact matches only, so run boundaries and fonts survive
                changed = False
                for run in runs:
                    target = matcher.exact(run.text)
                    if target is not None and target != run.text:
                        run.text = target
                        changed = True
                if changed:
                    set_rich_text_runs(cell, runs)
                return changed

            text = "".join(run.text for run in runs)
            translated = matcher.translate(text)
            if translated == text:
                return False
            write_text(cell, translated)
            return True

        if kind == CellKind.STRING:
            translated = matcher.translate(cell.value)
            if translated == cell.value:
                return False
            write_text(cell, translated)
            return True

        # Numbers, dates, booleans, errors and blanks keep their value
        return False
