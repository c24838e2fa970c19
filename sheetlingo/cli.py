# sheetlingo/cli.py
"""
Command line entry point.

    sheetlingo extract book.xlsx other.xlsm -o dictionary.csv
    sheetlingo translate book.xlsx -d dictionary.csv -o out/
    sheetlingo translate book.xlsx --fill --language Russian --model Gemini --zip
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

from sheetlingo import __app_name__, __version__
from sheetlingo.config.settings import AppSettings, get_default_settings_path
from sheetlingo.models.types import ExtractionOptions, TranslationModel, find_language
from sheetlingo.services.exceptions import SheetLingoError
from sheetlingo.services.translation_service import TranslationService

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(verbose: bool = False):
    """Configure logging to console and file.

    Log file location: ~/.sheetlingo/logs/sheetlingo.log (UTF-8, append mode).
    Falls back to console-only logging when the directory cannot be created.

    Returns:
        tuple: (console_handler, file_handler) to keep references alive
    """
    logs_dir = Path.home() / ".sheetlingo" / "logs"
    log_file_path = logs_dir / "sheetlingo.log"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))

    file_handler = None
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    except OSError as e:
        print(f"[WARNING] Failed to create log file {log_file_path}: {e}", file=sys.stderr)
        file_handler = None

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)
    if file_handler:
        root_logger.addHandler(file_handler)

    # Suppress verbose logging from third-party libraries
    for name in ['urllib3', 'openpyxl', 'asyncio', 'concurrent']:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("%s %s, argv: %s", __app_name__, __version__, sys.argv)
    if file_handler:
        logger.debug("Log file: %s", log_file_path)
    return console_handler, file_handler


def _add_option_flags(parser: argparse.ArgumentParser) -> None:
    """Extraction toggles. Unset flags fall back to the saved settings."""
    group = parser.add_argument_group("extraction options")
    group.add_argument("--formulas", dest="translate_formulas",
                       action=argparse.BooleanOptionalAction, default=None,
                       help="Translate string literals inside formulas")
    group.add_argument("--rich-text", dest="preserve_rich_text_formatting",
                       action=argparse.BooleanOptionalAction, default=None,
                       help="Keep rich-text runs and their formatting")
    group.add_argument("--shapes", dest="extract_from_shapes",
                       action=argparse.BooleanOptionalAction, default=None,
                       help="Extract text from shapes, text boxes and charts")
    group.add_argument("--visible-only", dest="process_visible_sheets_only",
                       action=argparse.BooleanOptionalAction, default=None,
                       help="Extract from visible sheets only")


def _options_from_args(args: argparse.Namespace, settings: AppSettings) -> ExtractionOptions:
    defaults = settings.extraction_options()
    values = {}
    for name in ("translate_formulas", "preserve_rich_text_formatting",
                 "extract_from_shapes", "process_visible_sheets_only"):
        value = getattr(args, name, None)
        values[name] = getattr(defaults, name) if value is None else value
    return ExtractionOptions(**values)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetlingo",
        description="Extract, translate and rewrite terms in Excel workbooks",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    parser.add_argument("--settings", type=Path, default=None,
                        help="Settings path (default: config/settings.json)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract terms into a dictionary CSV")
    extract.add_argument("files", nargs="+", type=Path)
    extract.add_argument("-o", "--output", type=Path, required=True, help="Dictionary CSV to write")
    _add_option_flags(extract)

    translate = subparsers.add_parser("translate", help="Rewrite workbooks with a dictionary")
    translate.add_argument("files", nargs="+", type=Path)
    translate.add_argument("-d", "--dictionary", type=Path, default=None,
                           help="Dictionary CSV with targets to apply")
    translate.add_argument("--fill", action="store_true",
                           help="Fill dictionary targets with the translation model")
    translate.add_argument("--language", default=None, help="Target language name or code")
    translate.add_argument("--model", default=None,
                           choices=[m.value for m in TranslationModel],
                           help="Translation model used by --fill")
    translate.add_argument("-o", "--output-dir", type=Path, default=None)
    translate.add_argument("--zip", action="store_true", help="Write one archive instead of files")
    translate.add_argument("--stop-on-error", action="store_true")
    translate.add_argument("--export-dictionary", type=Path, default=None,
                           help="Also save the final dictionary as CSV")
    _add_option_flags(translate)

    return parser


def _load_inputs(service: TranslationService, paths: list[Path]):
    supported = service.filter_supported(paths)
    if not supported:
        raise FileNotFoundError("No supported workbooks given (.xlsx, .xls, .xlsm)")
    return service.load_files(supported)


def run_extract(args: argparse.Namespace, settings: AppSettings) -> int:
    service = TranslationService(settings)
    files = _load_inputs(service, args.files)
    dictionary = service.extract(files, _options_from_args(args, settings))
    dictionary.export_csv(args.output)
    print(f"{len(dictionary)} terms written to {args.output}")
    return 0


def run_translate(args: argparse.Namespace, settings: AppSettings) -> int:
    language_value = args.language or settings.target_language
    language = find_language(language_value)
    if language is None:
        raise ValueError(f"Unknown target language: {language_value}")
    if args.model:
        settings = dataclasses.replace(settings, translation_model=args.model)

    service = TranslationService(settings)
    files = _load_inputs(service, args.files)
    dictionary = service.extract(files, _options_from_args(args, settings))

    if args.dictionary:
        dictionary.import_csv(args.dictionary)
    if args.fill:
        service.fill_dictionary(language.name)
    if not dictionary.is_complete:
        logger.warning("%d dictionary entries have no target and will be left as is",
                       dictionary.untranslated_count)
    if args.export_dictionary:
        dictionary.export_csv(args.export_dictionary)

    report = service.translate_files(stop_on_error=args.stop_on_error)

    output_dir = args.output_dir or settings.get_output_directory(args.files[0])
    if args.zip and report.translated:
        archive_name, data = service.build_zip(report.translated, language.code)
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / archive_name).write_bytes(data)
        print(f"Wrote {output_dir / archive_name}")
    else:
        for path in service.save_outputs(report, output_dir, language.code):
            print(f"Wrote {path}")

    for failure in report.failures:
        print(f"FAILED {failure.name}: {failure.error_message}", file=sys.stderr)
    print(report.get_summary())
    return 1 if report.has_issues else 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    settings = AppSettings.load(args.settings or get_default_settings_path())
    commands = {"extract": run_extract, "translate": run_translate}
    try:
        return commands[args.command](args, settings)
    except (SheetLingoError, ValueError, OSError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
