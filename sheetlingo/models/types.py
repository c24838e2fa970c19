# sheetlingo/models/types.py
"""
Core data types for SheetLingo.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class MatchPolicy(Enum):
    """How a dictionary entry may be matched during rewrite"""
    FLEXIBLE = "FLEXIBLE"        # Exact match first, then substring substitution
    EXACT_ONLY = "EXACT_ONLY"    # Whole-text (trimmed, case-insensitive) match only


class TranslationModel(Enum):
    """Supported translation providers"""
    GEMINI = "Gemini"
    BAILIAN = "Alibaba Bailian"


@dataclass(frozen=True)
class ExtractionOptions:
    """
    Option set shared by extraction and rewrite.

    The same instance must be used for both phases of a session so that the
    dictionary keys line up with the cells the rewrite engine visits.
    """
    translate_formulas: bool = False
    preserve_rich_text_formatting: bool = True
    extract_from_shapes: bool = True
    process_visible_sheets_only: bool = True


@dataclass
class TermEntry:
    """
    A single dictionary row.
    """
    id: str                          # Stable for the session (e.g., "1718000000000-3")
    source: str                      # Extracted text, unique within a dictionary
    target: str = ""                 # Filled by translation or manual edit
    policy: MatchPolicy = MatchPolicy.FLEXIBLE


@dataclass(frozen=True)
class SourceFile:
    """An uploaded workbook payload."""
    name: str
    data: bytes

    @classmethod
    def from_path(cls, path: Path) -> "SourceFile":
        return cls(name=path.name, data=path.read_bytes())

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()


@dataclass(frozen=True)
class TranslatedFile:
    """
    Rewritten workbook, named after the original input file.
    """
    name: str
    data: bytes

    def download_name(self, language_code: str) -> str:
        """Name offered for download, e.g. "[RU] report.xlsx"."""
        return f"[{language_code.upper()}] {self.name}"


@dataclass(frozen=True)
class Language:
    code: str
    name: str


LANGUAGES: list[Language] = [
    Language("en", "English"),
    Language("ru", "Russian"),
    Language("zh", "Chinese (Simplified)"),
    Language("zh-TW", "Chinese (Traditional)"),
    Language("ja", "Japanese"),
    Language("ko", "Korean"),
    Language("de", "German"),
    Language("fr", "French"),
    Language("es", "Spanish"),
    Language("it", "Italian"),
    Language("pt", "Portuguese"),
    Language("ar", "Arabic"),
    Language("tr", "Turkish"),
    Language("kk", "Kazakh"),
    Language("uz", "Uzbek"),
    Language("vi", "Vietnamese"),
    Language("th", "Thai"),
]


def find_language(value: str) -> Optional[Language]:
    """Look up a language by name or code (case-insensitive)."""
    needle = value.strip().lower()
    for language in LANGUAGES:
        if language.name.lower() == needle or language.code.lower() == needle:
            return language
    return None


@dataclass(frozen=True)
class FileFailure:
    """A file that could not be rewritten."""
    name: str
    error_message: str


@dataclass
class FileTranslationReport:
    """
    Result of rewriting a batch of workbooks.

    Failed files are listed separately so that one corrupt upload does not
    hide the outputs of the others.
    """
    translated: list[TranslatedFile] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return len(self.failures) > 0

    @property
    def total_files(self) -> int:
        return len(self.translated) + len(self.failures)

    def get_summary(self) -> str:
        """Get a human-readable summary of the batch."""
        if not self.has_issues:
            return f"Success: {len(self.translated)}/{self.total_files} files translated"
        failed = ", ".join(f.name for f in self.failures)
        return (
            f"Completed with issues: {len(self.translated)}/{self.total_files} files translated "
            f"(failed: {failed})"
        )
