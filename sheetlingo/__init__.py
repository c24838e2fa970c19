# sheetlingo/__init__.py
"""
SheetLingo - Excel workbook term dictionary and translation tool

Extracts translatable terms from workbooks, fills a dictionary through Gemini
or Alibaba Bailian, and writes the dictionary back into copies of the files.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml.

    Returns:
        str: version string (e.g. "0.1.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except (ImportError, OSError, ValueError):
        pass

    # Fallback: hard-coded version
    return "0.1.0"


__version__ = _get_version()
__app_name__ = "SheetLingo"
