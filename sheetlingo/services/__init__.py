# sheetlingo/services/__init__.py
"""
Service layer for SheetLingo.

Service imports are lazy-loaded so that importing the exceptions does not
pull in openpyxl.
Use explicit imports like:
    from sheetlingo.services.translation_service import TranslationService
"""

# Fast imports - exception types
from .exceptions import BackendError, ContractViolation, FormatError, SheetLingoError

# Lazy-loaded services via __getattr__
_LAZY_IMPORTS = {
    'TranslationService': 'translation_service',
    'TermDictionary': 'dictionary',
    'TranslationBackend': 'translation_backends',
    'GeminiBackend': 'translation_backends',
    'BailianBackend': 'translation_backends',
    'create_backend': 'translation_backends',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'translation_service', 'dictionary', 'translation_backends', 'exceptions'}


def __getattr__(name: str):
    """Lazy-load service modules on first access."""
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
    'SheetLingoError',
    'FormatError',
    'BackendError',
    'ContractViolation',
    'TranslationService',
    'TermDictionary',
    'TranslationBackend',
    'GeminiBackend',
    'BailianBackend',
    'create_backend',
]
