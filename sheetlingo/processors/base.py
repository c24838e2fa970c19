# sheetlingo/processors/base.py
"""
Abstract base class for file processors.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from sheetlingo.models.types import ExtractionOptions, SourceFile, TermEntry, TranslatedFile
from sheetlingo.processors.term_matcher import clean_term


class FileProcessor(ABC):
    """
    Abstract base class for file processors.
    A processor extracts translatable terms from a file type and writes a
    dictionary back into it.
    """

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return list of supported file extensions"""
        pass

    @abstractmethod
    def extract_terms(
        self, files: Iterable[SourceFile], options: ExtractionOptions
    ) -> set[str]:
        """
        Collect the distinct translatable strings of a batch of files.

        Args:
            files: Uploaded payloads
            options: Extraction toggles (must be reused for the rewrite)

        Returns:
            Trimmed, non-numeric terms, deduplicated across the whole batch
        """
        pass

    @abstractmethod
    def apply_dictionary(
        self,
        file: SourceFile,
        entries: list[TermEntry],
        options: ExtractionOptions,
    ) -> TranslatedFile:
        """
        Rewrite one file using the dictionary.

        Args:
            file: Original payload
            entries: Dictionary rows, in dictionary order
            options: The same options used for extraction

        Returns:
            TranslatedFile named after the original file
        """
        pass

    def should_translate(self, text: str) -> bool:
        """
        Check if text belongs in the dictionary.
        Blank and purely numeric strings are skipped.
        """
        return bool(clean_term(text))

    def supports_extension(self, extension: str) -> bool:
        """Check if this processor supports the given file extension"""
        return extension.lower() in self.supported_extensions
