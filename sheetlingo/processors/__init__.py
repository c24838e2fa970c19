# sheetlingo/processors/__init__.py
"""
File processors for SheetLingo.

openpyxl-backed modules are lazy-loaded for faster startup.
Use explicit imports like:
    from sheetlingo.processors.excel_processor import ExcelProcessor
"""

# Fast imports - base classes and matching
from .base import FileProcessor
from .term_matcher import TermMatcher, clean_term, is_purely_numeric

# Lazy-loaded processors via __getattr__
_LAZY_IMPORTS = {
    'ExcelProcessor': 'excel_processor',
    'WorkbookModel': 'workbook',
    'load_workbook': 'workbook',
    'serialize_workbook': 'workbook',
    'DrawingTextReader': 'drawing_text',
    'list_drawing_text_runs': 'drawing_text',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'excel_processor', 'workbook', 'drawing_text', 'term_matcher', 'base'}


def __getattr__(name: str):
    """Lazy-load heavy processor modules on first access."""
    import importlib
    # Support accessing submodules directly (for unittest.mock.patch)
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'FileProcessor',
    'TermMatcher',
    'clean_term',
    'is_purely_numeric',
    'ExcelProcessor',
    'WorkbookModel',
    'load_workbook',
    'serialize_workbook',
    'DrawingTextReader',
    'list_drawing_text_runs',
]
