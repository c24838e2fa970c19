from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path
from typing import Callable

import openpyxl
import pytest


# Ensure the project root is importable when running `pytest` via its entrypoint,
# where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sheetlingo.models.types import SourceFile  # noqa: E402


def workbook_bytes(wb: openpyxl.Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    wb.close()
    return buffer.getvalue()


def reload_workbook(data: bytes) -> openpyxl.Workbook:
    return openpyxl.load_workbook(io.BytesIO(data), rich_text=True)


def add_package_parts(data: bytes, parts: dict[str, str]) -> bytes:
    """Copy a package and add (or replace) XML parts."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as src, zipfile.ZipFile(buffer, "w") as dst:
        for item in src.infolist():
            if item.filename not in parts:
                dst.writestr(item, src.read(item.filename))
        for name, xml in parts.items():
            dst.writestr(name, xml)
    return buffer.getvalue()


@pytest.fixture
def make_source() -> Callable[..., SourceFile]:
    """Build a SourceFile from an openpyxl Workbook."""

    def _make(wb: openpyxl.Workbook, name: str = "book.xlsx") -> SourceFile:
        return SourceFile(name=name, data=workbook_bytes(wb))

    return _make
