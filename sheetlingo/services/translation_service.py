# sheetlingo/services/translation_service.py
"""
Session orchestration: upload -> extract -> dictionary -> rewrite -> download.

One TranslationService holds the state of a session: the uploaded files, the
extraction options snapshot and the dictionary. Steps run sequentially on the
caller's thread.
"""

import io
import logging
import re
import time
import unicodedata
import zipfile
from pathlib import Path
from typing import Iterable, Optional

from sheetlingo.config.settings import AppSettings
from sheetlingo.models.types import (
    ExtractionOptions,
    FileFailure,
    FileTranslationReport,
    MatchPolicy,
    SourceFile,
    TermEntry,
    TranslatedFile,
    TranslationModel,
    find_language,
)
from sheetlingo.processors.excel_processor import ExcelProcessor
from sheetlingo.services.dictionary import TermDictionary
from sheetlingo.services.exceptions import ContractViolation, FormatError
from sheetlingo.services.translation_backends import TranslationBackend, create_backend

logger = logging.getLogger(__name__)

# Characters forbidden in Windows file names (plus control characters)
_RE_FILENAME_FORBIDDEN = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def _sanitize_output_name(name: str) -> str:
    """Replace characters that are not allowed in file names, keeping Unicode."""
    sanitized = _RE_FILENAME_FORBIDDEN.sub('_', unicodedata.normalize('NFC', name))
    sanitized = sanitized.strip()
    return sanitized or 'translated_file.xlsx'


class TranslationService:
    """
    Drives one workbook translation session.

    Usage:
        service = TranslationService(settings)
        files = service.load_files(service.filter_supported(paths))
        service.extract(files, settings.extraction_options())
        service.fill_dictionary("Russian")
        report = service.translate_files()
        service.save_outputs(report, Path("out"), "ru")
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        processor: Optional[ExcelProcessor] = None,
    ):
        self.settings = settings or AppSettings()
        self.processor = processor or ExcelProcessor()
        self.files: list[SourceFile] = []
        self.dictionary: Optional[TermDictionary] = None
        self.options: Optional[ExtractionOptions] = None

    # =========================================================================
    # Upload
    # =========================================================================

    def filter_supported(self, paths: Iterable[Path]) -> list[Path]:
        """Keep paths with a spreadsheet extension (case-insensitive)."""
        supported = []
        for path in paths:
            path = Path(path)
            if self.processor.supports_extension(path.suffix):
                supported.append(path)
            else:
                logger.warning("Skipping unsupported file: %s", path.name)
        return supported

    def load_files(self, paths: Iterable[Path]) -> list[SourceFile]:
        return [SourceFile.from_path(Path(path)) for path in paths]

    # =========================================================================
    # Extraction and dictionary
    # =========================================================================

    def extract(self, files: list[SourceFile], options: ExtractionOptions) -> TermDictionary:
        """
        Extract terms from files and build a fresh dictionary.

        The options are kept and reused by translate_files().

        Raises:
            FormatError: if any file cannot be read (nothing is kept)
        """
        terms = self.processor.extract_terms(files, options)
        self.files = list(files)
        self.options = options
        self.dictionary = TermDictionary.from_terms(terms)
        return self.dictionary

    def _require_dictionary(self) -> TermDictionary:
        if self.dictionary is None:
            raise RuntimeError("No dictionary: run extract() first")
        return self.dictionary

    def fill_dictionary(
        self,
        target_language: Optional[str] = None,
        backend: Optional[TranslationBackend] = None,
    ) -> int:
        """
        Fill dictionary targets through a translation backend.

        Args:
            target_language: Language name or code (default: settings.target_language)
            backend: Backend to use (default: created from settings.translation_model)

        Raises:
            BackendError: the dictionary is left unchanged
            ValueError: unknown target language
        """
        dictionary = self._require_dictionary()
        language_value = target_language or self.settings.target_language
        language = find_language(language_value)
        if language is None:
            raise ValueError(f"Unknown target language: {language_value}")
        if backend is None:
            backend = create_backend(TranslationModel(self.settings.translation_model), self.settings)
        return dictionary.fill_targets(language.name, backend)

    def update_entry(
        self,
        entry_id: str,
        target: Optional[str] = None,
        policy: Optional[MatchPolicy] = None,
    ) -> TermEntry:
        return self._require_dictionary().update_entry(entry_id, target=target, policy=policy)

    # =========================================================================
    # Rewrite and download
    # =========================================================================

    def translate_files(self, stop_on_error: bool = False) -> FileTranslationReport:
        """
        Rewrite every loaded file with the current dictionary.

        Files are processed one at a time. A file that fails is recorded in
        the report and the remaining files are still processed, unless
        stop_on_error is set.
        """
        dictionary = self._require_dictionary()
        options = self.options or ExtractionOptions()
        entries = list(dictionary.entries)

        report = FileTranslationReport()
        for file in self.files:
            try:
                report.translated.append(self.processor.apply_dictionary(file, entries, options))
            except (FormatError, ContractViolation) as e:
                logger.error("Failed to translate %s: %s", file.name, e)
                report.failures.append(FileFailure(name=file.name, error_message=str(e)))
                if stop_on_error:
                    break

        logger.info(report.get_summary())
        return report

    @staticmethod
    def output_name(name: str, language_code: str) -> str:
        """Name of a translated file, e.g. "[RU] report.xlsx"."""
        return _sanitize_output_name(TranslatedFile(name=name, data=b"").download_name(language_code))

    def save_outputs(
        self,
        report: FileTranslationReport,
        output_dir: Path,
        language_code: str,
    ) -> list[Path]:
        """Write translated files into output_dir. Returns the written paths."""
        output_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for translated in report.translated:
            path = output_dir / self.output_name(translated.name, language_code)
            path.write_bytes(translated.data)
            logger.info("Saved %s", path)
            written.append(path)
        return written

    def build_zip(
        self,
        translated: list[TranslatedFile],
        language_code: str,
        timestamp_ms: Optional[int] = None,
    ) -> tuple[str, bytes]:
        """
        Bundle translated files into one archive.

        Returns:
            (archive name "Translated_Files_<ms>.zip", archive bytes)
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            for item in translated:
                archive.writestr(self.output_name(item.name, language_code), item.data)
        archive_name = f"Translated_Files_{timestamp_ms}.zip"
        logger.info("Built %s with %d files", archive_name, len(translated))
        return archive_name, buffer.getvalue()

    def reset(self) -> None:
        """Discard files, dictionary and the options snapshot."""
        self.files = []
        self.dictionary = None
        self.options = None
