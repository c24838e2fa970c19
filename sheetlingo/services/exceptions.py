# sheetlingo/services/exceptions.py
"""
Shared exception types for the extraction/rewrite engine and translation backends.
"""

from typing import Optional


class SheetLingoError(Exception):
    """Base class for all SheetLingo errors."""

    pass


class FormatError(SheetLingoError):
    """Raised when a workbook cannot be read or written.

    Carries the file name so batch callers can report which upload failed.
    """

    def __init__(self, message: str, file_name: Optional[str] = None):
        self.file_name = file_name
        if file_name:
            message = f"{file_name}: {message}"
        super().__init__(message)


class BackendError(SheetLingoError):
    """Raised when the translation backend fails or returns an unusable response."""

    pass


class ContractViolation(SheetLingoError):
    """Raised when the workbook model breaks an invariant the engine relies on."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        self.file_name = file_name
        if file_name:
            message = f"{file_name}: {message}"
        super().__init__(message)
