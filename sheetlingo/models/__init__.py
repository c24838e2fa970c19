"""
Data models for SheetLingo.
"""

from .types import (
    MatchPolicy,
    TranslationModel,
    ExtractionOptions,
    TermEntry,
    SourceFile,
    TranslatedFile,
    Language,
    LANGUAGES,
    find_language,
    FileFailure,
    FileTranslationReport,
)

__all__ = [
    'MatchPolicy',
    'TranslationModel',
    'ExtractionOptions',
    'TermEntry',
    'SourceFile',
    'TranslatedFile',
    'Language',
    'LANGUAGES',
    'find_language',
    'FileFailure',
    'FileTranslationReport',
]
