# sheetlingo/config/settings.py
"""
Application settings management for SheetLingo.

Settings are split into two files:
- settings.template.json: defaults shipped with the application
- user_settings.json: only the values the user changed

load() reads the template first and overlays the user settings.

Cache:
- _settings_cache maps a settings path to an AppSettings instance
- entries are invalidated when either file's mtime changes
- save() refreshes the cache
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sheetlingo.models.types import ExtractionOptions

# Module logger
logger = logging.getLogger(__name__)

# Settings cache: path -> (mtime_template, mtime_user, AppSettings)
_settings_cache: dict[str, tuple[float, float, "AppSettings"]] = {}
_settings_cache_lock = threading.Lock()

# Settings the user can change (persisted to user_settings.json)
USER_SETTINGS_KEYS = {
    # Extraction options (upload step)
    "translate_formulas",
    "preserve_rich_text_formatting",
    "extract_from_shapes",
    "process_visible_sheets_only",
    # Dictionary step
    "target_language",
    "translation_model",
    # Output
    "output_directory",
}


@dataclass
class AppSettings:
    """Application settings"""

    # Extraction options
    translate_formulas: bool = False
    preserve_rich_text_formatting: bool = True
    extract_from_shapes: bool = True
    process_visible_sheets_only: bool = True

    # Translation
    target_language: str = "Russian"
    translation_model: str = "Gemini"          # TranslationModel value
    gemini_model: str = "gemini-2.5-flash"

    # Advanced
    max_chars_per_batch: int = 8000     # Max characters per backend request
    request_timeout: int = 120          # Seconds

    # Output
    output_directory: Optional[str] = None  # None = same as input

    @classmethod
    def load(cls, path: Path, use_cache: bool = True) -> "AppSettings":
        """Load settings from template and user settings files.

        Args:
            path: Settings path (config/settings.json). Used as the base
                  directory for settings.template.json and user_settings.json.
            use_cache: Return the cached instance when neither file changed.
        """
        config_dir = path.parent
        template_path = config_dir / "settings.template.json"
        user_settings_path = config_dir / "user_settings.json"

        cache_key = str(path.resolve())

        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0

        if use_cache:
            with _settings_cache_lock:
                if cache_key in _settings_cache:
                    cached_template_mtime, cached_user_mtime, cached_settings = _settings_cache[cache_key]
                    if cached_template_mtime == template_mtime and cached_user_mtime == user_mtime:
                        logger.debug("Using cached settings for: %s", path)
                        return cached_settings

        data = {}

        # 1. Template (shipped defaults)
        if template_path.exists():
            try:
                with open(template_path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                    logger.debug("Loaded template settings from: %s", template_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load template settings: %s", e)

        # 2. User overrides
        if user_settings_path.exists():
            try:
                with open(user_settings_path, 'r', encoding='utf-8-sig') as f:
                    user_data = json.load(f)
                    for key in USER_SETTINGS_KEYS:
                        if key in user_data:
                            data[key] = user_data[key]
                    logger.debug("Loaded user settings from: %s", user_settings_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load user settings: %s", e)

        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        settings = cls(**filtered_data)
        settings._validate()

        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, settings)

        return settings

    def _validate(self) -> None:
        """Reset out-of-range values to defaults with a warning."""
        from sheetlingo.models.types import TranslationModel, find_language

        if self.max_chars_per_batch < 100:
            logger.warning("max_chars_per_batch too small (%d), resetting to 8000", self.max_chars_per_batch)
            self.max_chars_per_batch = 8000

        if self.request_timeout < 10:
            logger.warning("request_timeout too small (%d), resetting to 120", self.request_timeout)
            self.request_timeout = 120
        elif self.request_timeout > 1800:
            logger.warning("request_timeout too large (%d), resetting to 120", self.request_timeout)
            self.request_timeout = 120

        known_models = {m.value for m in TranslationModel}
        if self.translation_model not in known_models:
            logger.warning("Unknown translation_model %r, resetting to Gemini", self.translation_model)
            self.translation_model = TranslationModel.GEMINI.value

        if find_language(self.target_language) is None:
            logger.warning("Unknown target_language %r, resetting to Russian", self.target_language)
            self.target_language = "Russian"

    def save(self, path: Path) -> None:
        """Save user-changeable settings to user_settings.json next to path."""
        config_dir = path.parent
        user_settings_path = config_dir / "user_settings.json"
        template_path = config_dir / "settings.template.json"

        config_dir.mkdir(parents=True, exist_ok=True)

        data = {}
        for key in USER_SETTINGS_KEYS:
            if hasattr(self, key):
                data[key] = getattr(self, key)

        with open(user_settings_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug("Saved user settings to: %s", user_settings_path)

        cache_key = str(path.resolve())
        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0
        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, self)

    def extraction_options(self) -> ExtractionOptions:
        """Snapshot the four extraction toggles as an immutable value."""
        return ExtractionOptions(
            translate_formulas=self.translate_formulas,
            preserve_rich_text_formatting=self.preserve_rich_text_formatting,
            extract_from_shapes=self.extract_from_shapes,
            process_visible_sheets_only=self.process_visible_sheets_only,
        )

    def get_output_directory(self, input_path: Path) -> Path:
        """
        Get output directory for translated files.
        Returns input file's directory if output_directory is None.
        """
        if self.output_directory:
            return Path(self.output_directory)
        return input_path.parent


def get_default_settings_path() -> Path:
    """Get default settings file path"""
    return Path(__file__).parent.parent.parent / "config" / "settings.json"


def invalidate_settings_cache(path: Optional[Path] = None) -> None:
    """Invalidate settings cache.

    Args:
        path: Only clear the entry for this path. None clears everything.
    """
    with _settings_cache_lock:
        if path is None:
            _settings_cache.clear()
            logger.debug("Cleared all settings cache")
        else:
            cache_key = str(path.resolve())
            if cache_key in _settings_cache:
                del _settings_cache[cache_key]
                logger.debug("Cleared settings cache for: %s", path)
