# sheetlingo/config/__init__.py
"""
Configuration management for SheetLingo.
"""

from .settings import (
    AppSettings,
    get_default_settings_path,
    invalidate_settings_cache,
)

__all__ = [
    'AppSettings',
    'get_default_settings_path',
    'invalidate_settings_cache',
]
